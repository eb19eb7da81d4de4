"""Vaccine scheduling endpoints"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.config import settings
from app.models.vaccination import SchedulingStatus
from app.schemas.vaccination import (
    MonthlySchedulingResponse,
    PaginatedResponse,
    ReminderResponse,
    SchedulingCreate,
    SchedulingResponse,
    SchedulingUpdate,
)
from app.services.vaccination import VaccinationServices, get_services
from app.services.vaccination.commands import SchedulingFilters
from app.utils.time_helpers import end_of_day, start_of_day

router = APIRouter()


# ============ SCHEDULINGS ============
@router.post("/schedulings", response_model=SchedulingResponse, status_code=status.HTTP_201_CREATED)
async def create_scheduling(
    scheduling: SchedulingCreate,
    services: VaccinationServices = Depends(get_services),
):
    """Book a vaccine dose for a patient"""
    return services.scheduling.create_scheduling(
        user_id=scheduling.user_id,
        vaccine_id=scheduling.vaccine_id,
        scheduled_date=scheduling.scheduled_date,
        dose_number=scheduling.dose_number,
        nurse_id=scheduling.assigned_nurse_id,
        notes=scheduling.notes,
    )


@router.get("/schedulings", response_model=PaginatedResponse[SchedulingResponse])
async def list_schedulings(
    scheduling_status: Optional[SchedulingStatus] = Query(None, alias="status"),
    vaccine_id: Optional[int] = None,
    user_id: Optional[int] = None,
    nurse_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    services: VaccinationServices = Depends(get_services),
):
    """List schedulings with filters"""
    filters = SchedulingFilters(
        status=scheduling_status,
        vaccine_id=vaccine_id,
        user_id=user_id,
        nurse_id=nurse_id,
        start_date=start_of_day(start_date) if start_date else None,
        end_date=end_of_day(end_date) if end_date else None,
    )
    result = services.scheduling.list_schedulings(filters, page, per_page)
    return PaginatedResponse[SchedulingResponse].from_page(result)


@router.get("/schedulings/by-date", response_model=List[SchedulingResponse])
async def get_schedulings_by_date(
    day: Optional[date] = Query(None, alias="date", description="Defaults to today"),
    nurse_id: Optional[int] = None,
    services: VaccinationServices = Depends(get_services),
):
    """Schedulings of one day"""
    return services.scheduling.get_schedulings_by_date(day=day, nurse_id=nurse_id)


@router.get("/schedulings/nurse/{nurse_id}/monthly", response_model=MonthlySchedulingResponse)
async def get_nurse_monthly(
    nurse_id: int,
    year: int = Query(..., ge=1),
    month: int = Query(..., description="1-12"),
    services: VaccinationServices = Depends(get_services),
):
    """Month calendar of a nurse, one key per day"""
    grouped = services.scheduling.get_monthly(nurse_id, year, month)
    return MonthlySchedulingResponse(
        nurse_id=nurse_id,
        year=year,
        month=month,
        days={
            day: [SchedulingResponse.model_validate(s) for s in schedulings]
            for day, schedulings in grouped.items()
        },
    )


@router.post("/schedulings/reminders", response_model=ReminderResponse)
async def send_reminders(
    within_hours: int = Query(settings.REMINDER_WINDOW_HOURS, ge=1),
    services: VaccinationServices = Depends(get_services),
):
    """Notify patients and nurses of schedulings due soon"""
    reminded = services.scheduling.send_reminders(within_hours=within_hours)
    return ReminderResponse(reminded=reminded, within_hours=within_hours)


@router.get("/schedulings/{scheduling_id}", response_model=SchedulingResponse)
async def get_scheduling(scheduling_id: int, services: VaccinationServices = Depends(get_services)):
    """Get a specific scheduling"""
    return services.scheduling.get_scheduling(scheduling_id)


@router.patch("/schedulings/{scheduling_id}", response_model=SchedulingResponse)
async def update_scheduling(
    scheduling_id: int,
    scheduling: SchedulingUpdate,
    services: VaccinationServices = Depends(get_services),
):
    """Confirm, cancel, reassign or reschedule"""
    return services.scheduling.update_scheduling(scheduling_id, scheduling.model_dump(exclude_unset=True))


@router.post("/schedulings/{scheduling_id}/cancel", response_model=SchedulingResponse)
async def cancel_scheduling(scheduling_id: int, services: VaccinationServices = Depends(get_services)):
    """Cancel a scheduling (it stays on record)"""
    return services.scheduling.cancel_scheduling(scheduling_id)
