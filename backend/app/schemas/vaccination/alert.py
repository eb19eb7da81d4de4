"""Pydantic schemas for inventory alerts and stock notifications"""
from typing import List, Union

from pydantic import BaseModel

from app.schemas.vaccination.batch import BatchResponse
from app.schemas.vaccination.vaccine import VaccineResponse
from app.services.vaccination.alerts_service import AlertType


class AlertResponse(BaseModel):
    alert_type: AlertType
    # Vaccines for LOW_STOCK, batches for the expiration alerts
    objects: List[Union[VaccineResponse, BatchResponse]]

    @classmethod
    def from_alert(cls, alert):
        schema = VaccineResponse if alert.alert_type == AlertType.LOW_STOCK else BatchResponse
        return cls(
            alert_type=alert.alert_type,
            objects=[schema.model_validate(obj) for obj in alert.objects],
        )


class StockNotificationResponse(BaseModel):
    low_stock: int
    batch_expiring: int
    recipients: int
    delivered: int

    class Config:
        from_attributes = True
