"""Vaccine application store (append-only)"""
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from app.models.vaccination import VaccineApplication
from app.services.vaccination.commands import ApplicationFilters, Page
from app.services.vaccination.stores.base import BaseStore, retry_read


class ApplicationStore(BaseStore[VaccineApplication]):
    model = VaccineApplication
    # Applications are never deleted
    soft_delete = False

    def _query(self):
        return super()._query().options(
            joinedload(VaccineApplication.vaccine),
            joinedload(VaccineApplication.batch),
            joinedload(VaccineApplication.patient),
            joinedload(VaccineApplication.applied_by),
        )

    @retry_read
    def find_by_dose(self, user_id: int, vaccine_id: int, dose_number: int) -> Optional[VaccineApplication]:
        return self._query().filter(
            VaccineApplication.user_id == user_id,
            VaccineApplication.vaccine_id == vaccine_id,
            VaccineApplication.dose_number == dose_number,
        ).first()

    @retry_read
    def list_for_user_vaccine(self, user_id: int, vaccine_id: int) -> List[VaccineApplication]:
        return self._query().filter(
            VaccineApplication.user_id == user_id,
            VaccineApplication.vaccine_id == vaccine_id,
        ).order_by(VaccineApplication.dose_number).all()

    @retry_read
    def count_for_user_vaccine(self, user_id: int, vaccine_id: int) -> int:
        return self.db.query(func.count(VaccineApplication.id)).filter(
            VaccineApplication.user_id == user_id,
            VaccineApplication.vaccine_id == vaccine_id,
        ).scalar() or 0

    @retry_read
    def dose_counts(self, user_ids: List[int]) -> Dict[Tuple[int, int], int]:
        """Applied doses per (user_id, vaccine_id) for the given users"""
        if not user_ids:
            return {}
        rows = self.db.query(
            VaccineApplication.user_id,
            VaccineApplication.vaccine_id,
            func.count(VaccineApplication.id),
        ).filter(
            VaccineApplication.user_id.in_(user_ids)
        ).group_by(VaccineApplication.user_id, VaccineApplication.vaccine_id).all()
        return {(user_id, vaccine_id): count for user_id, vaccine_id, count in rows}

    @retry_read
    def list_for_user(self, user_id: int) -> List[VaccineApplication]:
        return self._query().filter(
            VaccineApplication.user_id == user_id
        ).order_by(VaccineApplication.application_date, VaccineApplication.id).all()

    @retry_read
    def list(self, filters: ApplicationFilters, page: int, per_page: int) -> Page[VaccineApplication]:
        query = self._query()
        if filters.user_id is not None:
            query = query.filter(VaccineApplication.user_id == filters.user_id)
        if filters.vaccine_id is not None:
            query = query.filter(VaccineApplication.vaccine_id == filters.vaccine_id)
        if filters.applied_by_id is not None:
            query = query.filter(VaccineApplication.applied_by_id == filters.applied_by_id)
        if filters.batch_id is not None:
            query = query.filter(VaccineApplication.batch_id == filters.batch_id)
        if filters.dose_number is not None:
            query = query.filter(VaccineApplication.dose_number == filters.dose_number)
        if filters.start_date is not None:
            query = query.filter(VaccineApplication.application_date >= filters.start_date)
        if filters.end_date is not None:
            query = query.filter(VaccineApplication.application_date <= filters.end_date)
        return self._paginate(
            query.order_by(VaccineApplication.application_date.desc(), VaccineApplication.id.desc()),
            page,
            per_page,
        )
