"""Create users and vaccination tables"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "20261019_vaccination_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # users (owned by the identity system, read-only for the engine)
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("email", sa.String(150), nullable=False),
        sa.Column("cpf", sa.String(14), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="EMPLOYEE"),
        sa.Column("coren", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("cpf", name="uq_users_cpf"),
        sa.UniqueConstraint("coren", name="uq_users_coren"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    # vaccines
    op.create_table(
        "vaccines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("manufacturer", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("doses_required", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("interval_days", sa.Integer(), nullable=True),
        sa.Column("is_obligatory", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("min_stock_level", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("doses_required >= 1", name="check_doses_required_positive"),
        sa.CheckConstraint("interval_days IS NULL OR interval_days > 0", name="check_interval_days_positive"),
        sa.CheckConstraint("min_stock_level IS NULL OR min_stock_level >= 0", name="check_min_stock_level_positive"),
    )
    op.create_index("ix_vaccines_id", "vaccines", ["id"])
    op.create_index("ix_vaccines_name", "vaccines", ["name"])
    op.create_index("ix_vaccines_deleted_at", "vaccines", ["deleted_at"])
    op.create_index(
        "uq_vaccines_name_manufacturer_not_deleted",
        "vaccines",
        ["name", "manufacturer"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
        sqlite_where=sa.text("deleted_at IS NULL"),
    )

    # vaccine_batches
    op.create_table(
        "vaccine_batches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vaccine_id", sa.Integer(), sa.ForeignKey("vaccines.id", ondelete="CASCADE"), nullable=False),
        sa.Column("batch_number", sa.String(100), nullable=False),
        sa.Column("expiration_date", sa.Date(), nullable=False),
        sa.Column("received_date", sa.Date(), nullable=False),
        sa.Column("initial_quantity", sa.Integer(), nullable=False),
        sa.Column("current_quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="AVAILABLE"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("batch_number", name="uq_vaccine_batches_batch_number"),
        sa.CheckConstraint("initial_quantity >= 0", name="check_initial_quantity_positive"),
        sa.CheckConstraint("current_quantity >= 0", name="check_current_quantity_positive"),
        sa.CheckConstraint("current_quantity <= initial_quantity", name="check_current_quantity_logic"),
    )
    op.create_index("ix_vaccine_batches_id", "vaccine_batches", ["id"])
    op.create_index("ix_vaccine_batches_vaccine_id", "vaccine_batches", ["vaccine_id"])
    op.create_index("ix_vaccine_batches_expiration_date", "vaccine_batches", ["expiration_date"])
    op.create_index("ix_vaccine_batches_status", "vaccine_batches", ["status"])
    op.create_index("ix_vaccine_batches_deleted_at", "vaccine_batches", ["deleted_at"])

    # vaccine_schedulings
    op.create_table(
        "vaccine_schedulings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("vaccine_id", sa.Integer(), sa.ForeignKey("vaccines.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "assigned_nurse_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("scheduled_date", sa.DateTime(), nullable=False),
        sa.Column("dose_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(20), nullable=False, server_default="SCHEDULED"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_vaccine_schedulings_id", "vaccine_schedulings", ["id"])
    op.create_index("ix_vaccine_schedulings_user_id", "vaccine_schedulings", ["user_id"])
    op.create_index("ix_vaccine_schedulings_vaccine_id", "vaccine_schedulings", ["vaccine_id"])
    op.create_index("ix_vaccine_schedulings_assigned_nurse_id", "vaccine_schedulings", ["assigned_nurse_id"])
    op.create_index("ix_vaccine_schedulings_scheduled_date", "vaccine_schedulings", ["scheduled_date"])
    op.create_index(
        "ix_vaccine_schedulings_scheduled_date_nurse",
        "vaccine_schedulings",
        ["scheduled_date", "assigned_nurse_id"],
    )
    # One live (non-cancelled) scheduling per patient/vaccine/dose
    op.create_index(
        "uq_vaccine_schedulings_user_vaccine_dose_live",
        "vaccine_schedulings",
        ["user_id", "vaccine_id", "dose_number"],
        unique=True,
        postgresql_where=sa.text("status <> 'CANCELLED'"),
        sqlite_where=sa.text("status <> 'CANCELLED'"),
    )

    # vaccine_applications
    op.create_table(
        "vaccine_applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "scheduling_id",
            sa.Integer(),
            sa.ForeignKey("vaccine_schedulings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "batch_id", sa.Integer(), sa.ForeignKey("vaccine_batches.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("applied_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("vaccine_id", sa.Integer(), sa.ForeignKey("vaccines.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("dose_number", sa.Integer(), nullable=False),
        sa.Column("application_date", sa.DateTime(), nullable=False),
        sa.Column("application_site", sa.String(100), nullable=False),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("scheduling_id", name="uq_vaccine_applications_scheduling_id"),
        sa.UniqueConstraint(
            "user_id", "vaccine_id", "dose_number", name="uq_vaccine_applications_user_vaccine_dose"
        ),
    )
    op.create_index("ix_vaccine_applications_id", "vaccine_applications", ["id"])
    op.create_index("ix_vaccine_applications_batch_id", "vaccine_applications", ["batch_id"])
    op.create_index("ix_vaccine_applications_applied_by_id", "vaccine_applications", ["applied_by_id"])
    op.create_index("ix_vaccine_applications_user_id", "vaccine_applications", ["user_id"])
    op.create_index("ix_vaccine_applications_vaccine_id", "vaccine_applications", ["vaccine_id"])
    op.create_index("ix_vaccine_applications_application_date", "vaccine_applications", ["application_date"])
    op.create_index("ix_vaccine_applications_user_vaccine", "vaccine_applications", ["user_id", "vaccine_id"])


def downgrade() -> None:
    op.drop_table("vaccine_applications")
    op.drop_index("uq_vaccine_schedulings_user_vaccine_dose_live", table_name="vaccine_schedulings")
    op.drop_table("vaccine_schedulings")
    op.drop_table("vaccine_batches")
    op.drop_index("uq_vaccines_name_manufacturer_not_deleted", table_name="vaccines")
    op.drop_table("vaccines")
    op.drop_table("users")
