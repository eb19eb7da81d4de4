"""
Batch inventory service.

Administrative batch edits go through here; the application engine only
touches stock through ``BatchStore.decrement_stock``. Expiration is applied
lazily: reads that return a batch past its expiration date flip it to
EXPIRED before answering.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.vaccination import BatchStatus, VaccineBatch
from app.services.vaccination.commands import BatchFilters, Page
from app.services.vaccination.errors import (
    DuplicateBatchNumberError,
    InvalidBatchQuantityError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from app.services.vaccination.stores import BatchStore, VaccineStore
from app.utils.time_helpers import Clock, utc_now

logger = logging.getLogger(__name__)


def derive_status(batch: VaccineBatch, today: date) -> BatchStatus:
    """Status implied by the batch data (DISCARDED is sticky)"""
    if batch.status == BatchStatus.DISCARDED:
        return BatchStatus.DISCARDED
    if batch.expiration_date < today:
        return BatchStatus.EXPIRED
    if batch.current_quantity == 0:
        return BatchStatus.DEPLETED
    return BatchStatus.AVAILABLE


class InventoryService:
    def __init__(self, db: Session, batches: BatchStore, vaccines: VaccineStore, clock: Clock = utc_now):
        self.db = db
        self.batches = batches
        self.vaccines = vaccines
        self.clock = clock

    def _today(self) -> date:
        return self.clock().date()

    # ============ READS ============
    def get_batch(self, batch_id: int) -> VaccineBatch:
        batch = self.batches.get(batch_id)
        if not batch:
            raise NotFoundError.for_entity("Vaccine batch", batch_id)
        if self.batches.mark_expired([batch], self._today()):
            self.db.commit()
        return batch

    def list_batches(self, filters: BatchFilters, page: int, per_page: int) -> Page[VaccineBatch]:
        if filters.vaccine_id is not None and not self.vaccines.get(filters.vaccine_id):
            raise NotFoundError.for_entity("Vaccine", filters.vaccine_id)
        result = self.batches.list(filters, page, per_page)
        if self.batches.mark_expired(result.items, self._today()):
            self.db.commit()
        return result

    # ============ WRITES ============
    def create_batch(
        self,
        vaccine_id: int,
        batch_number: str,
        quantity: int,
        expiration_date: date,
        received_date: Optional[date] = None,
    ) -> VaccineBatch:
        if not self.vaccines.get(vaccine_id):
            raise NotFoundError.for_entity("Vaccine", vaccine_id)

        batch_number = batch_number.strip()
        if not batch_number:
            raise ValidationError("batch_number cannot be empty")
        if self.batches.find_by_batch_number(batch_number):
            raise DuplicateBatchNumberError(batch_number)
        if quantity < 1:
            raise InvalidBatchQuantityError("Batch quantity must be at least 1")

        today = self._today()
        received_date = received_date or today
        if expiration_date < received_date:
            raise ValidationError("Expiration date cannot be before the received date")
        if expiration_date < today:
            raise ValidationError("Cannot register an already expired batch")

        batch = VaccineBatch(
            vaccine_id=vaccine_id,
            batch_number=batch_number,
            initial_quantity=quantity,
            current_quantity=quantity,
            expiration_date=expiration_date,
            received_date=received_date,
            status=BatchStatus.AVAILABLE,
        )
        try:
            self.batches.add(batch)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateBatchNumberError(batch_number)
        self.db.refresh(batch)
        logger.info(f"Created batch {batch.batch_number} for vaccine {vaccine_id} with {quantity} doses")
        return batch

    def update_batch(self, batch_id: int, patch: Dict[str, Any]) -> VaccineBatch:
        """Administrative correction of a batch under a row lock"""
        if not patch:
            raise ValidationError("At least one field must be provided for update")

        batch = self.batches.get_for_update(batch_id)
        if not batch:
            self.db.rollback()
            raise NotFoundError.for_entity("Vaccine batch", batch_id)

        try:
            self._apply_patch(batch, patch)
        except Exception:
            self.db.rollback()
            raise

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateBatchNumberError(patch.get("batch_number", batch_id))
        self.db.refresh(batch)
        logger.info(f"Updated batch {batch.id}: {sorted(patch)} -> status {batch.status.value}")
        return batch

    def discard_batch(self, batch_id: int) -> VaccineBatch:
        return self.update_batch(batch_id, {"status": BatchStatus.DISCARDED})

    def _apply_patch(self, batch: VaccineBatch, patch: Dict[str, Any]) -> None:
        if batch.status == BatchStatus.DISCARDED:
            raise InvalidStatusTransitionError(
                batch.status, patch.get("status"), message="Discarded batches cannot be modified"
            )

        target_status = patch.get("status")
        if target_status is not None and BatchStatus(target_status) != BatchStatus.DISCARDED:
            raise InvalidStatusTransitionError(
                batch.status, target_status, message="Only DISCARDED can be set explicitly on a batch"
            )

        if "batch_number" in patch and patch["batch_number"] is not None:
            number = patch["batch_number"].strip()
            existing = self.batches.find_by_batch_number(number)
            if existing and existing.id != batch.id:
                raise DuplicateBatchNumberError(number)
            batch.batch_number = number

        initial = patch.get("initial_quantity", batch.initial_quantity)
        current = patch.get("current_quantity", batch.current_quantity)
        if initial is None or current is None or initial < 0 or current < 0:
            raise InvalidBatchQuantityError("Quantities cannot be negative")
        if current > initial:
            raise InvalidBatchQuantityError(
                f"Current quantity ({current}) cannot exceed the initial quantity ({initial})"
            )
        batch.initial_quantity = initial
        batch.current_quantity = current

        received = patch.get("received_date") or batch.received_date
        expiration = patch.get("expiration_date") or batch.expiration_date
        if expiration < received:
            raise ValidationError("Expiration date cannot be before the received date")
        batch.received_date = received
        batch.expiration_date = expiration

        if target_status is not None:
            batch.status = BatchStatus.DISCARDED
        else:
            batch.status = derive_status(batch, self._today())
