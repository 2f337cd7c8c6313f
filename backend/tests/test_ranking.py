from __future__ import annotations

import asyncio
import logging
import time

from survai.services.epc_calculator import calculate_epc
from survai.services.offers import OfferView
from survai.services.ranking import RankableItem, RankingEngine


class _FakeCalculator:
    def __init__(self, epcs: dict[str, float], *, failing: set[str] = frozenset(), slow: set[str] = frozenset()):
        self.epcs = epcs
        self.failing = set(failing)
        self.slow = set(slow)
        self.calls: list[str] = []

    def compute_epc(self, subject_id: str):
        self.calls.append(subject_id)
        if subject_id in self.failing:
            raise RuntimeError(f"storage unavailable for {subject_id}")
        if subject_id in self.slow:
            time.sleep(0.3)
        # One click carrying the desired revenue yields epc == revenue.
        return calculate_epc(1, 1, self.epcs.get(subject_id, 0), subject_id=subject_id)


def _items(*pairs: tuple[str, int]) -> list[RankableItem]:
    return [RankableItem(id=item_id, static_order=order) for item_id, order in pairs]


def _ids(items) -> list[str]:
    return [item.id for item in items]


def test_orders_by_epc_descending():
    calculator = _FakeCalculator({"a": 1.0, "b": 7.5, "c": 3.0})
    ranked = asyncio.run(
        RankingEngine(calculator, timeout_seconds=1).order_by_epc(_items(("a", 1), ("b", 2), ("c", 3)))
    )
    assert _ids(ranked) == ["b", "c", "a"]
    assert sorted(calculator.calls) == ["a", "b", "c"]


def test_equal_epc_breaks_ties_by_static_order():
    calculator = _FakeCalculator({"x": 2.50, "y": 2.50})
    ranked = asyncio.run(RankingEngine(calculator, timeout_seconds=1).order_by_epc(_items(("x", 5), ("y", 2))))
    assert [item.static_order for item in ranked] == [2, 5]


def test_one_failure_falls_back_to_pure_static_order(caplog):
    calculator = _FakeCalculator({"a": 9.0, "b": 1.0, "c": 5.0, "d": 0.0}, failing={"c"})
    items = _items(("a", 4), ("b", 1), ("c", 3), ("d", 2))

    with caplog.at_level(logging.WARNING, logger="survai.services.ranking"):
        ranked = asyncio.run(RankingEngine(calculator, timeout_seconds=1).order_by_epc(items))

    assert _ids(ranked) == ["b", "d", "c", "a"]
    assert "subject_id=c" in caplog.text
    assert "storage unavailable" in caplog.text


def test_outcome_records_degraded_reason():
    calculator = _FakeCalculator({"a": 1.0, "b": 2.0}, failing={"b"})
    outcome = asyncio.run(RankingEngine(calculator, timeout_seconds=1).rank(_items(("a", 2), ("b", 1))))

    assert outcome.degraded is True
    assert outcome.failed_subject_id == "b"
    assert outcome.epc_by_id == {}
    assert _ids(outcome.items) == ["b", "a"]


def test_timeout_counts_as_failure():
    calculator = _FakeCalculator({"fast": 1.0, "slow": 50.0}, slow={"slow"})
    outcome = asyncio.run(
        RankingEngine(calculator, timeout_seconds=0.05).rank(_items(("fast", 2), ("slow", 1)))
    )
    assert outcome.degraded is True
    assert outcome.failed_subject_id == "slow"
    assert _ids(outcome.items) == ["slow", "fast"]


def test_successful_outcome_exposes_metrics():
    calculator = _FakeCalculator({"a": 1.0, "b": 2.0})
    outcome = asyncio.run(RankingEngine(calculator, timeout_seconds=1).rank(_items(("a", 1), ("b", 2))))
    assert outcome.degraded is False
    assert outcome.epc_by_id["b"].epc == 2.0


def test_empty_input_returns_empty_list():
    calculator = _FakeCalculator({})
    assert asyncio.run(RankingEngine(calculator, timeout_seconds=1).order_by_epc([])) == []
    assert calculator.calls == []


def test_duplicate_static_orders_keep_input_order_deterministically():
    calculator = _FakeCalculator({"p": 1.0, "q": 1.0, "r": 1.0})
    items = _items(("p", 1), ("q", 1), ("r", 0))
    engine = RankingEngine(calculator, timeout_seconds=1)
    first = asyncio.run(engine.order_by_epc(items))
    second = asyncio.run(engine.order_by_epc(items))
    assert _ids(first) == _ids(second) == ["r", "p", "q"]


def test_rank_offers_assigns_positions():
    offers = [
        OfferView(id="o1", title="First", status="ACTIVE", destination_url="https://x.test/1"),
        OfferView(id="o2", title="Second", status="ACTIVE", destination_url="https://x.test/2"),
    ]
    calculator = _FakeCalculator({"o1": 0.5, "o2": 4.0})

    ranked = asyncio.run(RankingEngine(calculator, timeout_seconds=1).rank_offers(offers))

    assert ranked == [
        {"offerId": "o2", "title": "Second", "epc": 4.0, "totalClicks": 1, "conversions": 1, "rank": 1},
        {"offerId": "o1", "title": "First", "epc": 0.5, "totalClicks": 1, "conversions": 1, "rank": 2},
    ]


def test_rank_offers_degraded_keeps_static_order_without_metrics():
    offers = [
        OfferView(id="o1", title="First", status="ACTIVE", destination_url="https://x.test/1"),
        OfferView(id="o2", title="Second", status="ACTIVE", destination_url="https://x.test/2"),
    ]
    calculator = _FakeCalculator({"o1": 0.5, "o2": 4.0}, failing={"o1"})

    ranked = asyncio.run(RankingEngine(calculator, timeout_seconds=1).rank_offers(offers))

    assert [entry["offerId"] for entry in ranked] == ["o1", "o2"]
    assert all(entry["epc"] is None for entry in ranked)
