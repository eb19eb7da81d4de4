"""Vaccine scheduling store"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import joinedload

from app.models.vaccination import SchedulingStatus, VaccineScheduling
from app.services.vaccination.commands import Page, SchedulingFilters
from app.services.vaccination.stores.base import BaseStore, retry_read

OPEN_STATUSES = (SchedulingStatus.SCHEDULED, SchedulingStatus.CONFIRMED)


class SchedulingStore(BaseStore[VaccineScheduling]):
    model = VaccineScheduling
    # Cancellation is a status, schedulings are never deleted
    soft_delete = False

    def _query(self):
        return super()._query().options(
            joinedload(VaccineScheduling.vaccine),
            joinedload(VaccineScheduling.patient),
            joinedload(VaccineScheduling.nurse),
            joinedload(VaccineScheduling.application),
        )

    @retry_read
    def find_live(self, user_id: int, vaccine_id: int, dose_number: int) -> Optional[VaccineScheduling]:
        """The non-cancelled scheduling of a dose, if any"""
        return self._query().filter(
            VaccineScheduling.user_id == user_id,
            VaccineScheduling.vaccine_id == vaccine_id,
            VaccineScheduling.dose_number == dose_number,
            VaccineScheduling.status != SchedulingStatus.CANCELLED,
        ).first()

    @retry_read
    def list_live_for_user_vaccine(self, user_id: int, vaccine_id: int) -> List[VaccineScheduling]:
        return self._query().filter(
            VaccineScheduling.user_id == user_id,
            VaccineScheduling.vaccine_id == vaccine_id,
            VaccineScheduling.status != SchedulingStatus.CANCELLED,
        ).order_by(VaccineScheduling.dose_number).all()

    @retry_read
    def list(self, filters: SchedulingFilters, page: int, per_page: int) -> Page[VaccineScheduling]:
        query = self._query()
        if filters.status is not None:
            query = query.filter(VaccineScheduling.status == filters.status)
        if filters.vaccine_id is not None:
            query = query.filter(VaccineScheduling.vaccine_id == filters.vaccine_id)
        if filters.user_id is not None:
            query = query.filter(VaccineScheduling.user_id == filters.user_id)
        if filters.nurse_id is not None:
            query = query.filter(VaccineScheduling.assigned_nurse_id == filters.nurse_id)
        if filters.start_date is not None:
            query = query.filter(VaccineScheduling.scheduled_date >= filters.start_date)
        if filters.end_date is not None:
            query = query.filter(VaccineScheduling.scheduled_date <= filters.end_date)
        return self._paginate(
            query.order_by(VaccineScheduling.scheduled_date, VaccineScheduling.id), page, per_page
        )

    @retry_read
    def list_between(
        self,
        start: datetime,
        end: datetime,
        nurse_id: Optional[int] = None,
        statuses=None,
    ) -> List[VaccineScheduling]:
        query = self._query().filter(
            VaccineScheduling.scheduled_date >= start,
            VaccineScheduling.scheduled_date <= end,
        )
        if nurse_id is not None:
            query = query.filter(VaccineScheduling.assigned_nurse_id == nurse_id)
        if statuses:
            query = query.filter(VaccineScheduling.status.in_(statuses))
        return query.order_by(VaccineScheduling.scheduled_date, VaccineScheduling.id).all()
