from __future__ import annotations

from datetime import timedelta
import math

import pytest

from survai.core.errors import NotFoundError, ValidationError
from survai.core.time import now_utc
from survai.models.models import ClickTrack, Offer
from survai.services.click_tracker import ClickTracker
from survai.services.conversion_recorder import ConversionRecorder
from survai.services.epc_calculator import EpcCalculator, calculate_epc


def _click(SessionLocal, click_id: str, offer_id: str, revenue=None):
    ClickTracker(SessionLocal, click_id_factory=lambda: click_id).track_click("S1", "Q1", offer_id, "B1")
    if revenue is not None:
        ConversionRecorder(SessionLocal).mark_conversion(click_id, revenue)


def test_calculate_epc_with_zero_clicks_is_exactly_zero():
    metric = calculate_epc(0, 0, 0, subject_id="O1")
    assert metric.epc == 0
    assert metric.conversion_rate == 0
    assert not math.isnan(metric.epc)
    assert not math.isinf(metric.conversion_rate)


def test_calculate_epc_rounds_to_cents():
    metric = calculate_epc(3, 1, 10)
    assert metric.epc == 3.33
    assert metric.conversion_rate == 33.33
    assert metric.total_revenue == 10.0


def test_scenario_single_converted_click(session_factory, seed_catalog):
    seed_catalog(session_factory)
    _click(session_factory, "c-123", "O1", revenue=25.00)
    ConversionRecorder(session_factory).mark_conversion("c-123", 99.00)

    metric = EpcCalculator(session_factory, window_days=0).compute_epc("O1")

    assert metric.subject_id == "O1"
    assert metric.total_clicks == 1
    assert metric.total_conversions == 1
    assert metric.total_revenue == 25.0
    assert metric.epc == 25.0
    assert metric.conversion_rate == 100.0


def test_offer_without_clicks(session_factory, seed_catalog):
    seed_catalog(session_factory)
    metric = EpcCalculator(session_factory, window_days=0).compute_epc("O1")
    assert (metric.total_clicks, metric.total_conversions, metric.total_revenue) == (0, 0, 0.0)
    assert metric.epc == 0
    assert metric.conversion_rate == 0


def test_unconverted_clicks_dilute_epc(session_factory, seed_catalog):
    seed_catalog(session_factory)
    _click(session_factory, "c-1", "O1", revenue=10)
    _click(session_factory, "c-2", "O1")
    _click(session_factory, "c-3", "O1")
    _click(session_factory, "c-4", "O1", revenue=30)

    metric = EpcCalculator(session_factory, window_days=0).compute_epc("O1")

    assert metric.total_clicks == 4
    assert metric.total_conversions == 2
    assert metric.total_revenue == 40.0
    assert metric.epc == 10.0
    assert metric.conversion_rate == 50.0


def test_question_epc_averages_positive_offer_epcs(session_factory, seed_catalog):
    seed_catalog(
        session_factory,
        offers={"O1": "ACTIVE", "O2": "ACTIVE", "O3": "ACTIVE"},
        links={"Q1": ["O1", "O2", "O3"]},
    )
    _click(session_factory, "c-1", "O1", revenue=10)  # O1 epc 10
    _click(session_factory, "c-2", "O2", revenue=4)
    _click(session_factory, "c-3", "O2")  # O2 epc 2
    _click(session_factory, "c-4", "O3")  # O3 epc 0, excluded from the mean

    metric = EpcCalculator(session_factory, window_days=0).compute_epc("Q1")

    assert metric.subject_id == "Q1"
    assert metric.epc == 6.0
    assert metric.total_clicks == 4
    assert metric.total_conversions == 2
    assert metric.total_revenue == 14.0


def test_question_without_offers_has_zero_epc(session_factory, seed_catalog):
    seed_catalog(session_factory, questions={"Q1": 1, "Q2": 2})
    metric = EpcCalculator(session_factory, window_days=0).compute_epc("Q2")
    assert metric.epc == 0
    assert metric.total_clicks == 0


def test_unknown_subject_raises_not_found(session_factory, seed_catalog):
    seed_catalog(session_factory)
    with pytest.raises(NotFoundError, match="nope"):
        EpcCalculator(session_factory).compute_epc("nope")


def test_blank_subject_is_rejected():
    with pytest.raises(ValidationError):
        EpcCalculator(lambda: None).compute_epc(" ")


def test_window_excludes_old_clicks(session_factory, seed_catalog):
    seed_catalog(session_factory)
    _click(session_factory, "c-old", "O1", revenue=100)
    _click(session_factory, "c-new", "O1", revenue=20)
    with session_factory() as db:
        old = db.query(ClickTrack).filter(ClickTrack.click_id == "c-old").one()
        old.clicked_at = now_utc() - timedelta(days=30)
        db.commit()

    windowed = EpcCalculator(session_factory, window_days=7).compute_epc("O1")
    all_time = EpcCalculator(session_factory, window_days=0).compute_epc("O1")

    assert windowed.total_clicks == 1
    assert windowed.epc == 20.0
    assert all_time.total_clicks == 2
    assert all_time.epc == 60.0


def test_get_analytics_for_offer_and_whole_ledger(session_factory, seed_catalog):
    seed_catalog(session_factory, offers={"O1": "ACTIVE", "O2": "ACTIVE"})
    _click(session_factory, "c-1", "O1", revenue=12)
    _click(session_factory, "c-2", "O1")
    _click(session_factory, "c-3", "O2", revenue=3)
    calculator = EpcCalculator(session_factory)

    per_offer = calculator.get_analytics("O1")
    overall = calculator.get_analytics()

    assert per_offer == {
        "offerId": "O1",
        "totalClicks": 2,
        "conversions": 1,
        "conversionRate": 50.0,
        "totalRevenue": 12.0,
        "epc": 6.0,
    }
    assert overall["totalClicks"] == 3
    assert overall["conversions"] == 2
    assert overall["totalRevenue"] == 15.0
    assert overall["epc"] == 5.0


def test_get_analytics_unknown_offer(session_factory, seed_catalog):
    seed_catalog(session_factory)
    with pytest.raises(NotFoundError):
        EpcCalculator(session_factory).get_analytics("O404")


def test_question_epc_ignores_paused_offers(session_factory, seed_catalog):
    seed_catalog(
        session_factory,
        offers={"O1": "ACTIVE", "O2": "ACTIVE"},
        questions={"Q1": 1, "Q2": 2},
        links={"Q1": ["O1"], "Q2": ["O2"]},
    )
    _click(session_factory, "c-1", "O1", revenue=5)
    _click(session_factory, "c-2", "O2", revenue=100)
    with session_factory() as db:
        db.get(Offer, "O2").status = "PAUSED"
        db.commit()

    calculator = EpcCalculator(session_factory, window_days=0)
    paused_only = calculator.compute_epc("Q2")

    assert paused_only.epc == 0
    assert paused_only.total_clicks == 0
    assert calculator.compute_epc("Q1").epc == 5.0
    # The offer's own history is still reported.
    assert calculator.compute_epc("O2").epc == 100.0
