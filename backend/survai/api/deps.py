"""
Service wiring for the API routers.

Each request gets service objects bound to the shared session factory;
tests replace them through `app.dependency_overrides`.
"""
from __future__ import annotations

from typing import Any, NoReturn

from fastapi import HTTPException

from survai.core.database import SessionLocal
from survai.core.errors import TrackingError
from survai.core.time import now_utc
from survai.services.click_tracker import ClickTracker
from survai.services.conversion_recorder import ConversionRecorder
from survai.services.epc_calculator import EpcCalculator
from survai.services.presentation import PresentationService
from survai.services.ranking import RankingEngine


def get_click_tracker() -> ClickTracker:
    return ClickTracker(SessionLocal)


def get_epc_calculator() -> EpcCalculator:
    return EpcCalculator(SessionLocal)


def get_conversion_recorder() -> ConversionRecorder:
    return ConversionRecorder(SessionLocal, calculator=get_epc_calculator())


def get_presentation_service() -> PresentationService:
    return PresentationService(SessionLocal, RankingEngine(get_epc_calculator()))


def envelope(data: Any) -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "timestamp": now_utc().isoformat(),
    }


def raise_http(exc: TrackingError) -> NoReturn:
    raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
