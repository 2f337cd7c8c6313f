"""
EPC-driven ordering of questions and offers.

Items are ordered by EPC descending with static order breaking ties. If the
EPC lookup fails for any item the whole set falls back to static order;
EPC-ordered and static-ordered items are never mixed in one result.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any, Iterable, Protocol

from survai.core.config import settings
from survai.core.errors import RankingDegradedError
from survai.services.epc_calculator import EpcMetric
from survai.services.offers import OfferView

logger = logging.getLogger(__name__)


class EpcSource(Protocol):
    def compute_epc(self, subject_id: str) -> EpcMetric: ...


@dataclass(frozen=True)
class RankableItem:
    id: str
    static_order: int
    payload: Any = None


@dataclass(frozen=True)
class RankingOutcome:
    items: list[RankableItem]
    epc_by_id: dict[str, EpcMetric] = field(default_factory=dict)
    degraded_reason: str | None = None
    failed_subject_id: str | None = None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None


def static_order(items: Iterable[RankableItem]) -> list[RankableItem]:
    return sorted(items, key=lambda item: item.static_order)


class RankingEngine:
    """Orders items by EPC, degrading to static order on any lookup failure."""

    def __init__(self, calculator: EpcSource, *, timeout_seconds: float | None = None) -> None:
        self._calculator = calculator
        self._timeout = float(
            settings.EPC_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )

    async def order_by_epc(self, items: Iterable[RankableItem]) -> list[RankableItem]:
        outcome = await self.rank(items)
        return outcome.items

    async def rank(self, items: Iterable[RankableItem]) -> RankingOutcome:
        candidates = list(items)
        if not candidates:
            return RankingOutcome(items=[])

        results = await asyncio.gather(
            *(self._lookup(item.id) for item in candidates),
            return_exceptions=True,
        )

        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            for failure in failures:
                logger.warning(
                    "EPC ranking degraded to static order: subject_id=%s cause=%r",
                    getattr(failure, "subject_id", None),
                    getattr(failure, "cause", failure),
                )
            first = failures[0]
            return RankingOutcome(
                items=static_order(candidates),
                degraded_reason=str(first),
                failed_subject_id=getattr(first, "subject_id", None),
            )

        epc_by_id = {item.id: metric for item, metric in zip(candidates, results)}
        ranked = sorted(
            candidates,
            key=lambda item: (-epc_by_id[item.id].epc, item.static_order),
        )
        return RankingOutcome(items=ranked, epc_by_id=epc_by_id)

    async def _lookup(self, subject_id: str) -> EpcMetric:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._calculator.compute_epc, subject_id),
                timeout=self._timeout,
            )
        except Exception as exc:
            raise RankingDegradedError(subject_id, exc) from exc

    async def rank_offers(self, offers: list[OfferView]) -> list[dict[str, Any]]:
        """Offers ranked by EPC (rank 1 is best); list position is static order."""
        outcome = await self.rank(
            RankableItem(id=offer.id, static_order=index, payload=offer)
            for index, offer in enumerate(offers)
        )
        ranked: list[dict[str, Any]] = []
        for position, item in enumerate(outcome.items, start=1):
            metric = outcome.epc_by_id.get(item.id)
            ranked.append(
                {
                    "offerId": item.id,
                    "title": item.payload.title,
                    "epc": metric.epc if metric else None,
                    "totalClicks": metric.total_clicks if metric else None,
                    "conversions": metric.total_conversions if metric else None,
                    "rank": position,
                }
            )
        return ranked
