"""
Conversion recording for postbacks and pixels.

Affiliate networks deliver postbacks at least once, so the same click id can
arrive several times, possibly concurrently. Only the first delivery changes
the ledger; every later one returns the stored conversion untouched.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from survai.core.errors import (
    ClickNotFoundError,
    ConversionFailedError,
    TrackingError,
    ValidationError,
)
from survai.core.time import now_utc
from survai.services.click_ledger import ClickLedger, ClickRecord
from survai.services.epc_calculator import EpcCalculator

logger = logging.getLogger(__name__)


def normalize_revenue(revenue) -> Decimal:
    """Coerce an optional revenue to a non-negative cent amount (None -> 0)."""
    if revenue is None:
        return Decimal("0.00")
    if isinstance(revenue, bool):
        raise ValidationError("Revenue must be a number")
    try:
        value = Decimal(str(revenue))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Revenue must be a number") from exc
    if not value.is_finite():
        raise ValidationError("Revenue must be a finite number")
    if value < 0:
        raise ValidationError("Revenue cannot be negative")
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class ConversionRecorder:
    """Marks ledger clicks as converted, exactly once per click id."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        ledger: ClickLedger | None = None,
        calculator: EpcCalculator | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ledger = ledger or ClickLedger()
        self._calculator = calculator or EpcCalculator(session_factory, ledger=self._ledger)

    def mark_conversion(
        self,
        click_id: str,
        revenue=None,
        *,
        refresh_offer_metrics: bool = False,
    ) -> ClickRecord:
        if not isinstance(click_id, str) or not click_id.strip():
            raise ValidationError("Click ID is required and must be a string")
        click_id = click_id.strip()
        amount = normalize_revenue(revenue)

        db = self._session_factory()
        try:
            row = self._ledger.find_by_click_id(db, click_id, for_update=True)
            if row is None:
                raise ClickNotFoundError(click_id)

            if row.converted:
                record = ClickRecord.from_row(row)
                db.rollback()
                logger.info("Duplicate conversion for click_id=%s ignored", click_id)
                return record

            applied = self._ledger.mark_converted(
                db,
                click_id,
                revenue=amount,
                converted_at=now_utc(),
            )
            if not applied:
                # Another transaction converted this click between our read and write.
                db.rollback()
                row = self._ledger.find_by_click_id(db, click_id)
                if row is None:
                    raise ClickNotFoundError(click_id)
                record = ClickRecord.from_row(row)
                db.rollback()
                logger.info("Concurrent conversion for click_id=%s already applied", click_id)
                return record

            if refresh_offer_metrics:
                self._calculator.refresh_offer_metrics(db, str(row.offer_id))

            db.commit()
            db.refresh(row)
            record = ClickRecord.from_row(row)
        except TrackingError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to mark conversion for click_id=%s", click_id)
            raise ConversionFailedError(click_id, exc) from exc
        finally:
            db.close()

        logger.info(
            "Recorded conversion click_id=%s offer_id=%s revenue=%s",
            record.click_id,
            record.offer_id,
            record.revenue,
        )
        return record
