"""Vaccine application endpoints"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.auth import get_current_user_id
from app.core.config import settings
from app.schemas.vaccination import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationUpdate,
    PaginatedResponse,
    UserHistoryResponse,
)
from app.services.vaccination import VaccinationServices, get_services
from app.services.vaccination.commands import ApplicationFilters
from app.utils.time_helpers import end_of_day, start_of_day

router = APIRouter()


# ============ APPLICATIONS ============
@router.post("/applications", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_application(
    application: ApplicationCreate,
    current_user_id: int = Depends(get_current_user_id),
    services: VaccinationServices = Depends(get_services),
):
    """Record an applied dose (from a scheduling or walk-in) and take it from the batch"""
    return services.applications.create_application(application.to_command(), requested_by_id=current_user_id)


@router.get("/applications", response_model=PaginatedResponse[ApplicationResponse])
async def list_applications(
    user_id: Optional[int] = None,
    vaccine_id: Optional[int] = None,
    applied_by_id: Optional[int] = None,
    batch_id: Optional[int] = None,
    dose_number: Optional[int] = Query(None, ge=1),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    services: VaccinationServices = Depends(get_services),
):
    """List applications with filters"""
    filters = ApplicationFilters(
        user_id=user_id,
        vaccine_id=vaccine_id,
        applied_by_id=applied_by_id,
        batch_id=batch_id,
        dose_number=dose_number,
        start_date=start_of_day(start_date) if start_date else None,
        end_date=end_of_day(end_date) if end_date else None,
    )
    result = services.applications.list_applications(filters, page, per_page)
    return PaginatedResponse[ApplicationResponse].from_page(result)


@router.get("/applications/history/{user_id}", response_model=UserHistoryResponse)
async def get_user_history(user_id: int, services: VaccinationServices = Depends(get_services)):
    """Vaccination history of a user"""
    history = services.applications.get_user_history(user_id)
    return UserHistoryResponse.model_validate(history, from_attributes=True)


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
async def get_application(application_id: int, services: VaccinationServices = Depends(get_services)):
    """Get a specific application"""
    return services.applications.get_application(application_id)


@router.patch("/applications/{application_id}", response_model=ApplicationResponse)
async def update_application(
    application_id: int,
    application: ApplicationUpdate,
    current_user_id: int = Depends(get_current_user_id),
    services: VaccinationServices = Depends(get_services),
):
    """Edit site/observations (applier or manager only)"""
    return services.applications.update_application(
        application_id, application.model_dump(exclude_unset=True), requested_by_id=current_user_id
    )
