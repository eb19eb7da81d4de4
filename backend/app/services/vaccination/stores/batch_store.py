"""Vaccine batch store - owns the stock decrement"""
import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import case, func, update

from app.models.vaccination import BatchStatus, VaccineBatch
from app.services.vaccination.commands import BatchFilters, Page
from app.services.vaccination.stores.base import BaseStore, retry_read

logger = logging.getLogger(__name__)

# Statuses a batch leaves once its expiration date has passed
EXPIRABLE_STATUSES = (BatchStatus.AVAILABLE, BatchStatus.DEPLETED)


class BatchStore(BaseStore[VaccineBatch]):
    model = VaccineBatch

    @retry_read
    def find_by_batch_number(self, batch_number: str) -> Optional[VaccineBatch]:
        # Numbers stay reserved after a soft delete
        return self.db.query(VaccineBatch).filter(
            func.lower(VaccineBatch.batch_number) == batch_number.strip().lower()
        ).first()

    def get_for_update(self, batch_id: int) -> Optional[VaccineBatch]:
        """Load a batch holding its row lock until the transaction ends"""
        return self._query().filter(VaccineBatch.id == batch_id).with_for_update().first()

    @retry_read
    def list(self, filters: BatchFilters, page: int, per_page: int) -> Page[VaccineBatch]:
        query = self._query()
        if filters.vaccine_id is not None:
            query = query.filter(VaccineBatch.vaccine_id == filters.vaccine_id)
        if filters.status is not None:
            query = query.filter(VaccineBatch.status == filters.status)
        return self._paginate(
            query.order_by(VaccineBatch.expiration_date, VaccineBatch.id), page, per_page
        )

    @retry_read
    def list_expired_unmarked(self, today: date) -> List[VaccineBatch]:
        """Batches past expiration whose status still says otherwise"""
        return self._query().filter(
            VaccineBatch.expiration_date < today,
            VaccineBatch.status.notin_([BatchStatus.EXPIRED, BatchStatus.DISCARDED]),
        ).order_by(VaccineBatch.expiration_date, VaccineBatch.id).all()

    @retry_read
    def list_expiring_between(self, start: date, end: date) -> List[VaccineBatch]:
        return self._query().filter(
            VaccineBatch.status == BatchStatus.AVAILABLE,
            VaccineBatch.expiration_date >= start,
            VaccineBatch.expiration_date <= end,
        ).order_by(VaccineBatch.expiration_date, VaccineBatch.id).all()

    @retry_read
    def available_stock_by_vaccine(self, today: date) -> Dict[int, int]:
        """Sum of usable doses (AVAILABLE and not expired) per vaccine"""
        rows = self.db.query(
            VaccineBatch.vaccine_id,
            func.coalesce(func.sum(VaccineBatch.current_quantity), 0),
        ).filter(
            VaccineBatch.deleted_at.is_(None),
            VaccineBatch.status == BatchStatus.AVAILABLE,
            VaccineBatch.expiration_date >= today,
        ).group_by(VaccineBatch.vaccine_id).all()
        return {vaccine_id: int(total) for vaccine_id, total in rows}

    def soft_delete_for_vaccine(self, vaccine_id: int, deleted_at) -> int:
        return self.db.query(VaccineBatch).filter(
            VaccineBatch.vaccine_id == vaccine_id,
            VaccineBatch.deleted_at.is_(None),
        ).update({VaccineBatch.deleted_at: deleted_at}, synchronize_session=False)

    def mark_expired(self, batches: List[VaccineBatch], today: date) -> List[VaccineBatch]:
        """Lazy EXPIRED transition for batches read past their expiration date.

        Uses a guarded UPDATE so a concurrent discard or decrement is never
        overwritten; returns the batches whose status changed.
        """
        stale = [
            b for b in batches
            if b.expiration_date < today and b.status in EXPIRABLE_STATUSES
        ]
        if not stale:
            return []
        ids = [b.id for b in stale]
        self.db.execute(
            update(VaccineBatch)
            .where(
                VaccineBatch.id.in_(ids),
                VaccineBatch.expiration_date < today,
                VaccineBatch.status.in_(EXPIRABLE_STATUSES),
            )
            .values(status=BatchStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        for batch in stale:
            self.db.refresh(batch)
        logger.info(f"Marked {len(stale)} batch(es) as EXPIRED: {ids}")
        return stale

    def decrement_stock(self, batch_id: int) -> bool:
        """Take one dose from the batch in a single conditional UPDATE.

        The row only changes while it is AVAILABLE with stock left, and the
        DEPLETED transition happens in the same statement when the last dose
        is taken. Returns False when no row matched (nothing was taken).
        """
        result = self.db.execute(
            update(VaccineBatch)
            .where(
                VaccineBatch.id == batch_id,
                VaccineBatch.status == BatchStatus.AVAILABLE,
                VaccineBatch.current_quantity > 0,
            )
            .values(
                current_quantity=VaccineBatch.current_quantity - 1,
                status=case(
                    (VaccineBatch.current_quantity <= 1, BatchStatus.DEPLETED.value),
                    else_=VaccineBatch.status,
                ),
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
