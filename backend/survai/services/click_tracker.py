"""
Click tracking for CTA offer buttons.

Validates a click against the session and offer registries and appends one
row to the click ledger. The returned click id is the correlation key that
conversion postbacks and pixels report back.
"""
from __future__ import annotations

import logging
import re
from typing import Callable
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from survai.core.config import settings
from survai.core.errors import (
    ClickTrackingFailedError,
    InactiveOfferError,
    InvalidSessionError,
    OfferNotFoundError,
    TrackingError,
    ValidationError,
)
from survai.core.time import epoch_ms, from_epoch_ms
from survai.models.models import SurveyResponse
from survai.services.click_ledger import ClickLedger, ClickRecord
from survai.services.offers import OfferView, load_offer

logger = logging.getLogger(__name__)

_TABLET_RE = re.compile(r"iPad|Android(?!.*Mobile)", re.IGNORECASE)
_MOBILE_RE = re.compile(r"Mobile|iPhone|Android", re.IGNORECASE)

REQUIRED_CLICK_FIELDS = ("sessionId", "questionId", "offerId", "buttonVariantId")


def detect_device_type(user_agent: str | None) -> str:
    ua = user_agent or ""
    if _TABLET_RE.search(ua):
        return "TABLET"
    if _MOBILE_RE.search(ua):
        return "MOBILE"
    return "DESKTOP"


def is_mobile_device(user_agent: str | None) -> bool:
    return bool(_MOBILE_RE.search(user_agent or ""))


def generate_offer_url(
    offer: OfferView,
    *,
    click_id: str,
    session_id: str | None = None,
    survey_id: str | None = None,
) -> str:
    """
    Expand `{click_id}`, `{survey_id}` and `{session_id}` tokens in the offer's
    destination URL, then pin the same values as query parameters.
    """
    variables = {"click_id": click_id, "survey_id": survey_id, "session_id": session_id}
    url = offer.destination_url
    for key, value in variables.items():
        if value:
            url = url.replace("{" + key + "}", quote(str(value), safe=""))

    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    for key, value in variables.items():
        if value:
            query[key] = str(value)
    return urlunsplit(parts._replace(query=urlencode(query)))


def generate_pixel_url(click_id: str, survey_id: str) -> str:
    params = urlencode({"click_id": click_id, "survey_id": survey_id, "t": str(epoch_ms())})
    return f"{settings.TRACKING_PIXEL_URL}?{params}"


def _clean_id(value) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


class ClickTracker:
    """Validates click requests and appends them to the ledger atomically."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        ledger: ClickLedger | None = None,
        click_id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ledger = ledger or ClickLedger()
        self._click_id_factory = click_id_factory or (lambda: str(uuid.uuid4()))

    def track_click(
        self,
        session_id: str,
        question_id: str,
        offer_id: str,
        button_variant_id: str,
        *,
        timestamp: int | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> ClickRecord:
        ids = dict(
            zip(
                REQUIRED_CLICK_FIELDS,
                (_clean_id(session_id), _clean_id(question_id), _clean_id(offer_id), _clean_id(button_variant_id)),
            )
        )
        if not all(ids.values()):
            raise ValidationError(
                "Missing required parameters: sessionId, questionId, offerId, and buttonVariantId are required"
            )
        if timestamp is not None and (
            isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp <= 0
        ):
            raise ValidationError("Timestamp must be a positive integer")
        clicked_ms = timestamp or epoch_ms()
        try:
            clicked_at = from_epoch_ms(clicked_ms)
        except (ValueError, OverflowError, OSError) as exc:
            raise ValidationError("Timestamp must be a positive integer") from exc

        db = self._session_factory()
        try:
            response = (
                db.query(SurveyResponse)
                .filter(SurveyResponse.session_id == ids["sessionId"])
                .first()
            )
            if response is None:
                raise InvalidSessionError(ids["sessionId"])

            offer = load_offer(db, ids["offerId"])
            if offer is None:
                raise OfferNotFoundError(ids["offerId"])
            if not offer.is_active:
                raise InactiveOfferError(offer.id, offer.status)

            click_id = self._click_id_factory()
            session_data = {
                "sessionId": ids["sessionId"],
                "clickId": click_id,
                "deviceInfo": {
                    "type": detect_device_type(user_agent),
                    "isMobile": is_mobile_device(user_agent),
                },
            }
            if ip_address:
                session_data["ipAddress"] = ip_address
            if user_agent:
                session_data["userAgent"] = user_agent

            row = self._ledger.append(
                db,
                click_id=click_id,
                offer_id=offer.id,
                response_id=str(response.id),
                session_data=session_data,
                metadata={
                    "questionId": ids["questionId"],
                    "buttonVariantId": ids["buttonVariantId"],
                    "timestamp": clicked_ms,
                },
                clicked_at=clicked_at,
            )
            db.commit()
            db.refresh(row)
            record = ClickRecord.from_row(row)
        except TrackingError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to track click for offer_id=%s", ids["offerId"])
            raise ClickTrackingFailedError(exc) from exc
        finally:
            db.close()

        logger.info(
            "Tracked click click_id=%s offer_id=%s question_id=%s",
            record.click_id,
            record.offer_id,
            ids["questionId"],
        )
        return record

    def redirect_url_for(self, record: ClickRecord) -> str:
        """Destination URL for a freshly tracked click."""
        db = self._session_factory()
        try:
            offer = load_offer(db, record.offer_id)
            response = db.get(SurveyResponse, record.response_id) if record.response_id else None
            survey_id = str(response.survey_id) if response is not None else None
        finally:
            db.close()
        if offer is None:
            raise OfferNotFoundError(record.offer_id)
        return generate_offer_url(
            offer,
            click_id=record.click_id,
            session_id=record.session.get("sessionId"),
            survey_id=survey_id,
        )
