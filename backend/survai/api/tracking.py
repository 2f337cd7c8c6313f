"""
Tracking API Router
Click tracking, conversion postbacks/pixels and click analytics.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field, IPvAnyAddress

from survai.api.deps import (
    envelope,
    get_click_tracker,
    get_conversion_recorder,
    get_epc_calculator,
    raise_http,
)
from survai.core.errors import TrackingError, ValidationError
from survai.services.click_tracker import ClickTracker, generate_pixel_url
from survai.services.conversion_recorder import ConversionRecorder
from survai.services.epc_calculator import EpcCalculator

router = APIRouter()
logger = logging.getLogger(__name__)


class TrackClickRequest(BaseModel):
    sessionId: str = Field("", max_length=255)
    questionId: str = Field("", max_length=255)
    offerId: str = Field("", max_length=255)
    buttonVariantId: str = Field("", max_length=255)
    timestamp: Optional[int] = Field(None, gt=0)
    userAgent: Optional[str] = Field(None, max_length=1000)
    ipAddress: Optional[IPvAnyAddress] = None


class ConversionRequest(BaseModel):
    click_id: str = Field("", max_length=255)
    revenue: Optional[Union[float, str]] = None


class GeneratePixelRequest(BaseModel):
    clickId: str = Field("", max_length=255)
    surveyId: str = Field("", max_length=255)


def parse_revenue(raw) -> Optional[Decimal]:
    """Postback revenue: absent, or a positive amount with at most two decimals."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation as exc:
        raise ValidationError("Revenue must be a number") from exc
    if not value.is_finite() or value <= 0:
        raise ValidationError("Revenue must be positive")
    if value != value.quantize(Decimal("0.01")):
        raise ValidationError("Revenue must have at most 2 decimal places")
    return value


def _record_conversion(
    recorder: ConversionRecorder,
    click_id: str,
    raw_revenue,
    *,
    refresh_offer_metrics: bool = False,
) -> dict:
    try:
        record = recorder.mark_conversion(
            click_id,
            parse_revenue(raw_revenue),
            refresh_offer_metrics=refresh_offer_metrics,
        )
    except TrackingError as exc:
        raise_http(exc)
    except Exception as exc:
        logger.exception("Unexpected conversion failure for click_id=%s", click_id)
        raise HTTPException(status_code=500, detail="Failed to record conversion") from exc
    return envelope({"converted": True, "clickId": record.click_id})


@router.post("/click")
def track_click(
    payload: TrackClickRequest,
    request: Request,
    tracker: ClickTracker = Depends(get_click_tracker),
):
    """Record a CTA click and return the offer redirect URL."""
    user_agent = payload.userAgent or request.headers.get("user-agent")
    ip_address = str(payload.ipAddress) if payload.ipAddress else None
    if ip_address is None and request.client:
        ip_address = request.client.host

    try:
        record = tracker.track_click(
            payload.sessionId,
            payload.questionId,
            payload.offerId,
            payload.buttonVariantId,
            timestamp=payload.timestamp,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        redirect_url = tracker.redirect_url_for(record)
    except TrackingError as exc:
        raise_http(exc)
    except Exception as exc:
        logger.exception("Unexpected click tracking failure for offer_id=%s", payload.offerId)
        raise HTTPException(status_code=500, detail="Failed to track click") from exc

    return envelope({"clickTrack": record.to_payload(), "redirectUrl": redirect_url})


@router.get("/conversion")
def record_conversion_query(
    click_id: str = Query(""),
    revenue: Optional[str] = Query(None),
    recorder: ConversionRecorder = Depends(get_conversion_recorder),
):
    """Conversion postback via query string. Safe to repeat."""
    return _record_conversion(recorder, click_id, revenue)


@router.post("/conversion")
def record_conversion_body(
    payload: ConversionRequest,
    recorder: ConversionRecorder = Depends(get_conversion_recorder),
):
    """Conversion postback via JSON body. Safe to repeat."""
    return _record_conversion(recorder, payload.click_id, payload.revenue)


@router.get("/pixel/{click_id}")
def handle_pixel(
    click_id: str,
    revenue: Optional[str] = Query(None),
    recorder: ConversionRecorder = Depends(get_conversion_recorder),
):
    """Conversion pixel; also refreshes the offer's metrics snapshot."""
    return _record_conversion(recorder, click_id, revenue, refresh_offer_metrics=True)


@router.post("/pixel")
def generate_pixel(payload: GeneratePixelRequest):
    """Build the tracking pixel URL for a click."""
    if not payload.clickId.strip() or not payload.surveyId.strip():
        raise HTTPException(status_code=400, detail="clickId and surveyId are required")
    return envelope({"pixelUrl": generate_pixel_url(payload.clickId.strip(), payload.surveyId.strip())})


@router.get("/analytics")
def get_analytics(
    offerId: Optional[str] = Query(None, max_length=255),
    calculator: EpcCalculator = Depends(get_epc_calculator),
):
    """Clicks, conversions, revenue and EPC for one offer or all offers."""
    try:
        analytics = calculator.get_analytics(offerId or None)
    except TrackingError as exc:
        raise_http(exc)
    return envelope(analytics)
