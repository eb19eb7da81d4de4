"""Inventory alert endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from app.schemas.vaccination import AlertResponse, StockNotificationResponse
from app.services.vaccination import VaccinationServices, get_services

router = APIRouter()


@router.get("/alerts", response_model=List[AlertResponse])
async def get_alerts(
    horizon_days: Optional[int] = None,
    services: VaccinationServices = Depends(get_services),
):
    """LOW_STOCK, EXPIRED_BATCH and NEARING_EXPIRATION_BATCH groups (empty groups omitted)"""
    return [AlertResponse.from_alert(alert) for alert in services.alerts.get_alerts(horizon_days)]


@router.post("/alerts/notify", response_model=StockNotificationResponse)
async def send_stock_notifications(
    horizon_days: Optional[int] = None,
    services: VaccinationServices = Depends(get_services),
):
    """Send LOW_STOCK and BATCH_EXPIRING notifications to the managers"""
    return services.alerts.send_stock_notifications(horizon_days)
