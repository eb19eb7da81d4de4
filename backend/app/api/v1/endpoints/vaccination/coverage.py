"""Vaccination coverage endpoint"""
from fastapi import APIRouter, Depends

from app.api.auth import get_current_user_id
from app.schemas.vaccination import VaccinationCoverageResponse
from app.services.vaccination import VaccinationServices, get_services

router = APIRouter()


@router.get("/coverage", response_model=VaccinationCoverageResponse)
async def get_coverage(
    current_user_id: int = Depends(get_current_user_id),
    services: VaccinationServices = Depends(get_services),
):
    """Per-vaccine coverage over active users (managers only)"""
    return services.coverage.get_coverage(requested_by_id=current_user_id)
