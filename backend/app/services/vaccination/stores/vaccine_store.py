"""Vaccine catalog store"""
from typing import List, Optional

from sqlalchemy import func, or_

from app.models.vaccination import Vaccine, VaccineApplication
from app.services.vaccination.commands import Page, VaccineFilters
from app.services.vaccination.stores.base import BaseStore, retry_read


class VaccineStore(BaseStore[Vaccine]):
    model = Vaccine

    @retry_read
    def find_by_name_manufacturer(self, name: str, manufacturer: str) -> Optional[Vaccine]:
        return self._query().filter(
            func.lower(Vaccine.name) == name.strip().lower(),
            func.lower(Vaccine.manufacturer) == manufacturer.strip().lower(),
        ).first()

    @retry_read
    def list(self, filters: VaccineFilters, page: int, per_page: int) -> Page[Vaccine]:
        query = self._query()
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.filter(or_(Vaccine.name.ilike(pattern), Vaccine.manufacturer.ilike(pattern)))
        if filters.is_obligatory is not None:
            query = query.filter(Vaccine.is_obligatory.is_(filters.is_obligatory))
        return self._paginate(query.order_by(Vaccine.name, Vaccine.id), page, per_page)

    @retry_read
    def list_all(self) -> List[Vaccine]:
        return self._query().order_by(Vaccine.name, Vaccine.id).all()

    @retry_read
    def list_with_min_stock(self) -> List[Vaccine]:
        return self._query().filter(Vaccine.min_stock_level.isnot(None)).order_by(Vaccine.id).all()

    @retry_read
    def has_applications(self, vaccine_id: int) -> bool:
        return self.db.query(VaccineApplication.id).filter(
            VaccineApplication.vaccine_id == vaccine_id
        ).first() is not None
