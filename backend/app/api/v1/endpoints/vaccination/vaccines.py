"""Vaccine catalog endpoints"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.config import settings
from app.models.vaccination import BatchStatus
from app.schemas.vaccination import (
    BatchResponse,
    PaginatedResponse,
    VaccineCreate,
    VaccineResponse,
    VaccineUpdate,
)
from app.services.vaccination import VaccinationServices, get_services
from app.services.vaccination.commands import BatchFilters, VaccineFilters

router = APIRouter()


# ============ VACCINES ============
@router.get("/vaccines", response_model=PaginatedResponse[VaccineResponse])
async def list_vaccines(
    search: Optional[str] = None,
    is_obligatory: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    services: VaccinationServices = Depends(get_services),
):
    """List vaccines (search matches name or manufacturer)"""
    result = services.catalog.list_vaccines(VaccineFilters(search=search, is_obligatory=is_obligatory), page, per_page)
    return PaginatedResponse[VaccineResponse].from_page(result)


@router.post("/vaccines", response_model=VaccineResponse, status_code=status.HTTP_201_CREATED)
async def create_vaccine(vaccine: VaccineCreate, services: VaccinationServices = Depends(get_services)):
    """Create a vaccine"""
    return services.catalog.create_vaccine(vaccine.model_dump())


@router.get("/vaccines/{vaccine_id}", response_model=VaccineResponse)
async def get_vaccine(vaccine_id: int, services: VaccinationServices = Depends(get_services)):
    """Get a specific vaccine"""
    return services.catalog.get_vaccine(vaccine_id)


@router.put("/vaccines/{vaccine_id}", response_model=VaccineResponse)
async def update_vaccine(
    vaccine_id: int,
    vaccine: VaccineUpdate,
    services: VaccinationServices = Depends(get_services),
):
    """Update a vaccine (only description/min_stock_level once doses were applied)"""
    return services.catalog.update_vaccine(vaccine_id, vaccine.model_dump(exclude_unset=True))


@router.delete("/vaccines/{vaccine_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vaccine(vaccine_id: int, services: VaccinationServices = Depends(get_services)):
    """Soft delete a vaccine and its batches"""
    services.catalog.delete_vaccine(vaccine_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/vaccines/{vaccine_id}/batches", response_model=PaginatedResponse[BatchResponse])
async def list_vaccine_batches(
    vaccine_id: int,
    batch_status: Optional[BatchStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    services: VaccinationServices = Depends(get_services),
):
    """List the batches of a vaccine"""
    result = services.inventory.list_batches(
        BatchFilters(vaccine_id=vaccine_id, status=batch_status), page, per_page
    )
    return PaginatedResponse[BatchResponse].from_page(result)
