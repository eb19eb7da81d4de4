"""
Base store with common query helpers.

Stores wrap a SQLAlchemy Session and never commit: the service that owns
the unit of work decides when to commit or roll back.
"""
import logging
from functools import wraps
from typing import Callable, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query, Session

from app.services.vaccination.commands import Page

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_read(f: Callable) -> Callable:
    """Retry an idempotent read once when the connection drops.

    Only for plain SELECTs issued before any write of the current unit of
    work: the retry rolls the session back to get a fresh connection.
    """
    @wraps(f)
    def wrapper(self, *args, **kwargs):
        try:
            return f(self, *args, **kwargs)
        except OperationalError as e:
            logger.warning(f"{type(self).__name__}.{f.__name__} failed, retrying once: {e.orig}")
            self.db.rollback()
            return f(self, *args, **kwargs)
    return wrapper


class BaseStore(Generic[T]):
    """Common lookups shared by the entity stores"""

    model: Type[T]
    soft_delete = True

    def __init__(self, db: Session):
        self.db = db

    def _query(self) -> Query:
        query = self.db.query(self.model)
        if self.soft_delete:
            query = query.filter(self.model.deleted_at.is_(None))
        return query

    @retry_read
    def get(self, entity_id: int) -> Optional[T]:
        return self._query().filter(self.model.id == entity_id).first()

    def add(self, entity: T) -> T:
        self.db.add(entity)
        self.db.flush()
        return entity

    def _paginate(self, query: Query, page: int, per_page: int) -> Page[T]:
        total = query.order_by(None).count()
        items = query.offset((page - 1) * per_page).limit(per_page).all()
        return Page(items=items, page=page, per_page=per_page, total=total)
