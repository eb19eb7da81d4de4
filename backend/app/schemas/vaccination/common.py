"""Shared Pydantic schemas: pagination and user summaries"""
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

from app.models.vaccination.types import UserRole

T = TypeVar("T")


class PaginationMeta(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    pagination: PaginationMeta

    @classmethod
    def from_page(cls, page):
        return cls.model_validate(
            {
                "items": page.items,
                "pagination": {
                    "page": page.page,
                    "per_page": page.per_page,
                    "total": page.total,
                    "total_pages": page.total_pages,
                    "has_next": page.has_next,
                    "has_prev": page.has_prev,
                },
            },
            from_attributes=True,
        )


class UserSummaryResponse(BaseModel):
    id: int
    name: str
    email: str
    cpf: Optional[str] = None
    role: UserRole
    coren: Optional[str] = None

    class Config:
        from_attributes = True
