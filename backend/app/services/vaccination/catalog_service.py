"""Vaccine catalog service"""
import logging
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.vaccination import Vaccine
from app.services.vaccination.commands import Page, VaccineFilters
from app.services.vaccination.errors import (
    DuplicateVaccineError,
    NotFoundError,
    ValidationError,
    VaccineInUseError,
)
from app.services.vaccination.stores import BatchStore, VaccineStore
from app.utils.time_helpers import Clock, utc_now

logger = logging.getLogger(__name__)

# Fields that can still change once doses of the vaccine were applied
NON_BREAKING_FIELDS = {"description", "min_stock_level"}


class CatalogService:
    def __init__(self, db: Session, vaccines: VaccineStore, batches: BatchStore, clock: Clock = utc_now):
        self.db = db
        self.vaccines = vaccines
        self.batches = batches
        self.clock = clock

    def get_vaccine(self, vaccine_id: int) -> Vaccine:
        vaccine = self.vaccines.get(vaccine_id)
        if not vaccine:
            raise NotFoundError.for_entity("Vaccine", vaccine_id)
        return vaccine

    def list_vaccines(self, filters: VaccineFilters, page: int, per_page: int) -> Page[Vaccine]:
        return self.vaccines.list(filters, page, per_page)

    def create_vaccine(self, data: Dict[str, Any]) -> Vaccine:
        data = dict(data)
        data["name"] = data["name"].strip()
        data["manufacturer"] = data["manufacturer"].strip()
        self._validate_dose_plan(data)
        if self.vaccines.find_by_name_manufacturer(data["name"], data["manufacturer"]):
            raise DuplicateVaccineError()

        vaccine = Vaccine(**data)
        try:
            self.vaccines.add(vaccine)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateVaccineError()
        self.db.refresh(vaccine)
        logger.info(f"Created vaccine {vaccine.id} ({vaccine.name} / {vaccine.manufacturer})")
        return vaccine

    def update_vaccine(self, vaccine_id: int, patch: Dict[str, Any]) -> Vaccine:
        vaccine = self.get_vaccine(vaccine_id)
        if not patch:
            raise ValidationError("At least one field must be provided for update")

        changed = {k for k, v in patch.items() if getattr(vaccine, k) != v}
        if changed - NON_BREAKING_FIELDS and self.vaccines.has_applications(vaccine.id):
            raise VaccineInUseError(fields=sorted(changed - NON_BREAKING_FIELDS))

        merged = {
            "doses_required": vaccine.doses_required,
            "interval_days": vaccine.interval_days,
            "min_stock_level": vaccine.min_stock_level,
            **patch,
        }
        self._validate_dose_plan(merged)

        name = patch.get("name", vaccine.name).strip()
        manufacturer = patch.get("manufacturer", vaccine.manufacturer).strip()
        if {"name", "manufacturer"} & changed:
            existing = self.vaccines.find_by_name_manufacturer(name, manufacturer)
            if existing and existing.id != vaccine.id:
                raise DuplicateVaccineError()

        for field, value in patch.items():
            if field in ("name", "manufacturer"):
                value = value.strip()
            setattr(vaccine, field, value)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateVaccineError()
        self.db.refresh(vaccine)
        return vaccine

    def delete_vaccine(self, vaccine_id: int) -> None:
        """Soft delete the vaccine and its batches"""
        vaccine = self.get_vaccine(vaccine_id)
        if self.vaccines.has_applications(vaccine.id):
            raise VaccineInUseError("Vaccine has applications and cannot be deleted")
        now = self.clock()
        vaccine.deleted_at = now
        retired = self.batches.soft_delete_for_vaccine(vaccine.id, now)
        self.db.commit()
        logger.info(f"Deleted vaccine {vaccine_id} and {retired} batch(es)")

    @staticmethod
    def _validate_dose_plan(data: Dict[str, Any]) -> None:
        if data.get("doses_required") is not None and data["doses_required"] < 1:
            raise ValidationError("doses_required must be at least 1")
        if data.get("interval_days") is not None and data["interval_days"] <= 0:
            raise ValidationError("interval_days must be greater than 0")
        if data.get("min_stock_level") is not None and data["min_stock_level"] < 0:
            raise ValidationError("min_stock_level cannot be negative")
