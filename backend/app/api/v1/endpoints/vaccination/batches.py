"""Vaccine batch endpoints (administrative)"""
from fastapi import APIRouter, Depends, status

from app.schemas.vaccination import BatchCreate, BatchResponse, BatchUpdate
from app.services.vaccination import VaccinationServices, get_services

router = APIRouter()


# ============ BATCHES ============
@router.post("/batches", response_model=BatchResponse, status_code=status.HTTP_201_CREATED)
async def create_batch(batch: BatchCreate, services: VaccinationServices = Depends(get_services)):
    """Register a received batch"""
    return services.inventory.create_batch(
        vaccine_id=batch.vaccine_id,
        batch_number=batch.batch_number,
        quantity=batch.quantity,
        expiration_date=batch.expiration_date,
        received_date=batch.received_date,
    )


@router.get("/batches/{batch_id}", response_model=BatchResponse)
async def get_batch(batch_id: int, services: VaccinationServices = Depends(get_services)):
    """Get a specific batch"""
    return services.inventory.get_batch(batch_id)


@router.put("/batches/{batch_id}", response_model=BatchResponse)
async def update_batch(
    batch_id: int,
    batch: BatchUpdate,
    services: VaccinationServices = Depends(get_services),
):
    """Correct quantities/dates of a batch or discard it"""
    return services.inventory.update_batch(batch_id, batch.model_dump(exclude_unset=True))


@router.post("/batches/{batch_id}/discard", response_model=BatchResponse)
async def discard_batch(batch_id: int, services: VaccinationServices = Depends(get_services)):
    """Retire a batch (terminal)"""
    return services.inventory.discard_batch(batch_id)
