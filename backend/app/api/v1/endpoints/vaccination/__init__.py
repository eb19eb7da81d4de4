"""Vaccination Module - Router aggregation"""
from fastapi import APIRouter

from .alerts import router as alerts_router
from .applications import router as applications_router
from .batches import router as batches_router
from .coverage import router as coverage_router
from .schedulings import router as schedulings_router
from .vaccines import router as vaccines_router

router = APIRouter(prefix="/vaccination", tags=["vaccination"])

router.include_router(vaccines_router)
router.include_router(batches_router)
router.include_router(schedulings_router)
router.include_router(applications_router)
router.include_router(alerts_router)
router.include_router(coverage_router)
