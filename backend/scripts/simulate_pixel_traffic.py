#!/usr/bin/env python3
"""
Fire simulated clicks and conversion pixels at the tracking services and
verify that duplicate pixels do not change the offer's EPC.
"""

import argparse
import asyncio
import random
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from survai.core.database import SessionLocal
from survai.core.errors import TrackingError
from survai.services.click_tracker import ClickTracker
from survai.services.conversion_recorder import ConversionRecorder
from survai.services.epc_calculator import EpcCalculator, calculate_epc
from survai.services.ranking import RankableItem, RankingEngine


async def simulate(
    *,
    session_id: str,
    question_id: str,
    offer_id: str,
    clicks: int,
    conversion_rate: float,
    revenue_min: float,
    revenue_max: float,
    double_conversions: bool,
    seed: int | None,
) -> int:
    rng = random.Random(seed)
    calculator = EpcCalculator(SessionLocal, window_days=0)
    tracker = ClickTracker(SessionLocal)
    recorder = ConversionRecorder(SessionLocal, calculator=calculator)

    baseline = calculator.compute_epc(offer_id)
    tracked = 0
    converted = 0
    blocked_duplicates = 0
    revenue_total = Decimal("0")
    errors: list[str] = []

    for index in range(clicks):
        try:
            record = tracker.track_click(
                session_id,
                question_id,
                offer_id,
                f"sim-button-{index % 3}",
                user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0) Mobile",
            )
        except TrackingError as exc:
            errors.append(str(exc))
            continue
        tracked += 1

        if rng.random() * 100 >= conversion_rate:
            continue
        revenue = Decimal(str(round(rng.uniform(revenue_min, revenue_max), 2)))
        result = recorder.mark_conversion(record.click_id, revenue, refresh_offer_metrics=True)
        converted += 1
        revenue_total += result.revenue or Decimal("0")

        if double_conversions:
            repeat = recorder.mark_conversion(record.click_id, revenue * 2)
            if repeat.revenue == result.revenue and repeat.converted_at == result.converted_at:
                blocked_duplicates += 1

    expected = calculate_epc(
        baseline.total_clicks + tracked,
        baseline.total_conversions + converted,
        Decimal(str(baseline.total_revenue)) + revenue_total,
        subject_id=offer_id,
    )
    observed = calculator.compute_epc(offer_id)
    ranked = await RankingEngine(calculator).order_by_epc([RankableItem(id=offer_id, static_order=1)])

    print(
        {
            "clicks_tracked": tracked,
            "conversions": converted,
            "blocked_duplicate_conversions": blocked_duplicates,
            "revenue": float(revenue_total),
            "expected_epc": expected.epc,
            "observed_epc": observed.epc,
            "ranked": [item.id for item in ranked],
            "errors": errors,
        }
    )
    return 0 if expected.epc == observed.epc and not errors else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Simulate click and pixel traffic for one offer.")
    parser.add_argument("--session-id", required=True)
    parser.add_argument("--question-id", required=True)
    parser.add_argument("--offer-id", required=True)
    parser.add_argument("--clicks", type=int, default=10)
    parser.add_argument("--conversion-rate", type=float, default=30.0, help="Percent of clicks that convert (0-100)")
    parser.add_argument("--revenue-min", type=float, default=10.0)
    parser.add_argument("--revenue-max", type=float, default=50.0)
    parser.add_argument(
        "--no-double-conversions",
        action="store_true",
        help="Skip re-firing each conversion pixel a second time.",
    )
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()
    return asyncio.run(
        simulate(
            session_id=args.session_id,
            question_id=args.question_id,
            offer_id=args.offer_id,
            clicks=args.clicks,
            conversion_rate=args.conversion_rate,
            revenue_min=args.revenue_min,
            revenue_max=args.revenue_max,
            double_conversions=not args.no_double_conversions,
            seed=args.seed,
        )
    )


if __name__ == "__main__":
    raise SystemExit(main())
