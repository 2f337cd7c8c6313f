"""
EPC (earnings per click) metrics derived from the click ledger.

Metrics are always recomputed from raw ledger rows; the `offers.metrics`
snapshot written by `refresh_offer_metrics` is for dashboards only.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from survai.core.config import settings
from survai.core.errors import NotFoundError, ValidationError
from survai.core.time import days_ago, now_utc
from survai.models.models import Offer, Question
from survai.services.click_ledger import ClickLedger, LedgerTotals
from survai.services.offers import ACTIVE_STATUS

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def _round2(value: Decimal) -> float:
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class EpcMetric:
    subject_id: str
    total_clicks: int
    total_conversions: int
    total_revenue: float
    epc: float
    conversion_rate: float
    last_updated: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "subjectId": self.subject_id,
            "totalClicks": self.total_clicks,
            "totalConversions": self.total_conversions,
            "totalRevenue": self.total_revenue,
            "epc": self.epc,
            "conversionRate": self.conversion_rate,
            "lastUpdated": self.last_updated.isoformat(),
        }


def calculate_epc(
    total_clicks: int,
    total_conversions: int,
    total_revenue: Decimal | float | int,
    *,
    subject_id: str = "",
) -> EpcMetric:
    """
    Build an EpcMetric from raw counters.

    Zero clicks yields epc == conversion_rate == 0; values are rounded to cents.
    """
    clicks = max(0, int(total_clicks or 0))
    conversions = max(0, int(total_conversions or 0))
    revenue = Decimal(str(total_revenue or 0))
    if clicks > 0:
        epc = revenue / clicks
        conversion_rate = Decimal(conversions) / clicks * 100
    else:
        epc = Decimal("0")
        conversion_rate = Decimal("0")
    return EpcMetric(
        subject_id=subject_id,
        total_clicks=clicks,
        total_conversions=conversions,
        total_revenue=_round2(revenue),
        epc=_round2(epc),
        conversion_rate=_round2(conversion_rate),
        last_updated=now_utc(),
    )


class EpcCalculator:
    """Computes EPC for offers and questions from the click ledger."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        ledger: ClickLedger | None = None,
        window_days: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ledger = ledger or ClickLedger()
        self._window_days = int(settings.EPC_WINDOW_DAYS if window_days is None else window_days)

    def _since(self) -> datetime | None:
        if self._window_days <= 0:
            return None
        return days_ago(self._window_days)

    def compute_epc(self, subject_id: str) -> EpcMetric:
        """EPC for an offer id or a question id, in a fresh read-only session."""
        if not isinstance(subject_id, str) or not subject_id.strip():
            raise ValidationError("Subject ID is required and must be a string")
        db = self._session_factory()
        try:
            return self.compute_epc_in(db, subject_id)
        finally:
            db.close()

    def compute_epc_in(self, db: Session, subject_id: str) -> EpcMetric:
        if db.get(Offer, subject_id) is not None:
            return self._offer_metric(db, subject_id)
        question = db.get(Question, subject_id)
        if question is not None:
            return self._question_metric(db, question)
        raise NotFoundError(f"EPC subject {subject_id} not found")

    def _offer_metric(self, db: Session, offer_id: str) -> EpcMetric:
        totals = self._ledger.totals(db, offer_ids=[offer_id], since=self._since())
        return self._metric_from_totals(offer_id, totals)

    @staticmethod
    def _metric_from_totals(subject_id: str, totals: LedgerTotals) -> EpcMetric:
        return calculate_epc(
            totals.total_clicks,
            totals.total_conversions,
            totals.total_revenue,
            subject_id=subject_id,
        )

    def _question_metric(self, db: Session, question: Question) -> EpcMetric:
        """
        A question's EPC is the mean of the positive EPCs of its linked
        active offers; paused and archived offers are excluded.

        Counters are summed across those offers.
        """
        offer_ids = [
            str(link.offer_id)
            for link in question.offer_links
            if link.offer is not None and link.offer.status == ACTIVE_STATUS
        ]
        per_offer = [self._offer_metric(db, offer_id) for offer_id in offer_ids]
        combined = calculate_epc(
            sum(metric.total_clicks for metric in per_offer),
            sum(metric.total_conversions for metric in per_offer),
            sum((Decimal(str(metric.total_revenue)) for metric in per_offer), Decimal("0")),
            subject_id=str(question.id),
        )

        positive = [Decimal(str(metric.epc)) for metric in per_offer if metric.epc > 0]
        if not positive:
            logger.debug("Question %s has no offers with positive EPC", question.id)
            epc = 0.0
        else:
            epc = _round2(sum(positive, Decimal("0")) / len(positive))

        return EpcMetric(
            subject_id=combined.subject_id,
            total_clicks=combined.total_clicks,
            total_conversions=combined.total_conversions,
            total_revenue=combined.total_revenue,
            epc=epc,
            conversion_rate=combined.conversion_rate,
            last_updated=combined.last_updated,
        )

    def get_analytics(self, offer_id: str | None = None) -> dict[str, Any]:
        """All-time click analytics for one offer, or for the whole ledger."""
        db = self._session_factory()
        try:
            if offer_id is not None and db.get(Offer, offer_id) is None:
                raise NotFoundError(f"Offer {offer_id} not found")
            totals = self._ledger.totals(
                db,
                offer_ids=([offer_id] if offer_id is not None else None),
            )
        finally:
            db.close()

        metric = calculate_epc(
            totals.total_clicks,
            totals.total_conversions,
            totals.total_revenue,
            subject_id=offer_id or "",
        )
        return {
            "offerId": offer_id,
            "totalClicks": metric.total_clicks,
            "conversions": metric.total_conversions,
            "conversionRate": metric.conversion_rate,
            "totalRevenue": metric.total_revenue,
            "epc": metric.epc,
        }

    def refresh_offer_metrics(self, db: Session, offer_id: str) -> EpcMetric:
        """Write the offer's dashboard snapshot inside the caller's transaction."""
        offer = db.get(Offer, offer_id)
        if offer is None:
            raise NotFoundError(f"Offer {offer_id} not found")
        metric = self._offer_metric(db, offer_id)
        snapshot = dict(offer.metrics or {})
        snapshot.update(metric.to_payload())
        snapshot.pop("subjectId", None)
        offer.metrics = snapshot
        db.flush()
        return metric
