"""Tests for autoconsumption.metrics module."""

import json

import pandas as pd
import pytest

from autoconsumption.aligner import AlignedSlot
from autoconsumption.metrics import (
    AutoconsumptionMetrics,
    aggregate,
    exceeds_full,
    monthly_to_frame,
    rate,
    slots_to_frame,
)
from autoconsumption.simulator import SimulatedSlot, simulate


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_slot(ts, consumption, production, auto, surplus, grid):
    return SimulatedSlot(pd.Timestamp(ts), consumption, production, auto, surplus, grid)


def _make_two_months():
    return [
        _make_slot("2023-01-31 23:30", 1.0, 0.0, 0.0, 0.0, 1.0),
        _make_slot("2023-02-01 12:00", 0.5, 2.0, 0.5, 1.5, 0.0),
        _make_slot("2023-02-01 12:30", 1.0, 1.0, 1.0, 0.0, 0.0),
    ]


# ---------------------------------------------------------------------------
# TestRate
# ---------------------------------------------------------------------------

class TestRate:
    def test_percent(self):
        assert rate(1.0, 4.0) == pytest.approx(25.0)

    def test_zero_denominator(self):
        assert rate(0.0, 0.0) == 0.0
        assert rate(5.0, 0.0) == 0.0

    def test_bounded(self):
        assert rate(5.0, 4.0) == 100.0

    def test_exceeds_full(self):
        assert exceeds_full(5.0, 4.0)
        assert not exceeds_full(4.0, 4.0)
        assert not exceeds_full(1.0, 0.0)


# ---------------------------------------------------------------------------
# TestAggregate
# ---------------------------------------------------------------------------

class TestAggregate:
    def test_empty(self):
        m = aggregate([])
        assert isinstance(m, AutoconsumptionMetrics)
        assert m.total_consumption == 0.0
        assert m.autoconsumption_rate == 0.0
        assert m.self_production_rate == 0.0
        assert m.slots == []
        assert m.monthly == []

    def test_totals(self):
        m = aggregate(_make_two_months())
        assert m.total_consumption == pytest.approx(2.5)
        assert m.total_production == pytest.approx(3.0)
        assert m.total_autoconsumption == pytest.approx(1.5)
        assert m.total_surplus == pytest.approx(1.5)
        assert m.total_grid_import == pytest.approx(1.0)
        assert m.total_battery_charge == 0.0

    def test_rates(self):
        m = aggregate(_make_two_months())
        assert m.autoconsumption_rate == pytest.approx(50.0)
        assert m.self_production_rate == pytest.approx(60.0)
        assert m.self_sufficiency_rate == m.self_production_rate

    def test_zero_production_rate(self):
        m = aggregate([_make_slot("2023-01-01", 1.0, 0.0, 0.0, 0.0, 1.0)])
        assert m.autoconsumption_rate == 0.0
        assert m.self_production_rate == 0.0

    def test_zero_consumption_rate(self):
        m = aggregate([_make_slot("2023-01-01 12:00", 0.0, 1.0, 0.0, 1.0, 0.0)])
        assert m.self_production_rate == 0.0
        assert m.autoconsumption_rate == 0.0

    def test_monthly_by_calendar_month(self):
        m = aggregate(_make_two_months())
        assert [mb.month for mb in m.monthly] == ["2023-01", "2023-02"]
        jan, feb = m.monthly
        assert jan.consumption == pytest.approx(1.0)
        assert jan.autoconsumption_rate == 0.0
        assert feb.production == pytest.approx(3.0)
        assert feb.autoconsumption == pytest.approx(1.5)
        assert feb.autoconsumption_rate == pytest.approx(50.0)
        assert feb.self_production_rate == pytest.approx(100.0)

    def test_monthly_sums_match_totals(self):
        m = aggregate(_make_two_months())
        assert sum(mb.consumption for mb in m.monthly) == pytest.approx(m.total_consumption)
        assert sum(mb.production for mb in m.monthly) == pytest.approx(m.total_production)

    def test_monthly_sorted_across_years(self):
        slots = [_make_slot("2024-01-05", 1, 0, 0, 0, 1),
                 _make_slot("2023-12-05", 1, 0, 0, 0, 1)]
        assert [mb.month for mb in aggregate(slots).monthly] == ["2023-12", "2024-01"]

    def test_battery_totals(self):
        dates = pd.date_range("2023-06-01 11:00", freq="30min", periods=3)
        slots = [AlignedSlot(dates[0], 0.0, 2.0), AlignedSlot(dates[1], 1.0, 0.0),
                 AlignedSlot(dates[2], 1.0, 0.0)]
        m = aggregate(simulate(slots, 5))
        assert m.total_battery_charge == pytest.approx(2.0)
        assert m.total_battery_discharge == pytest.approx(2.0)
        assert 0 <= m.autoconsumption_rate <= 100
        assert 0 <= m.self_production_rate <= 100

    def test_capped_rate_is_flagged(self):
        # Stored energy covers the load while production is tiny
        slots = [AlignedSlot(pd.Timestamp("2023-12-01 18:00"), 1.0, 0.1)]
        m = aggregate(simulate(slots, 5))
        assert m.total_autoconsumption == pytest.approx(0.6)
        assert m.autoconsumption_rate == 100.0
        assert m.rates_capped is True
        assert m.monthly[0].rate_capped is True
        assert m.to_dict()["rates_capped"] is True

    def test_uncapped_rates_not_flagged(self):
        m = aggregate(_make_two_months())
        assert m.rates_capped is False
        assert not any(mb.rate_capped for mb in m.monthly)


# ---------------------------------------------------------------------------
# TestSerialization
# ---------------------------------------------------------------------------

class TestSerialization:
    def test_json_round_trip(self):
        m = aggregate(_make_two_months())
        d = json.loads(m.to_json())
        assert d["total_consumption"] == pytest.approx(2.5)
        assert len(d["slots"]) == 3
        assert d["slots"][0]["timestamp"] == "2023-01-31T23:30:00"
        assert d["monthly"][1]["month"] == "2023-02"
        assert "self_sufficiency_rate" in d

    def test_without_slots(self):
        d = aggregate(_make_two_months()).to_dict(include_slots=False)
        assert "slots" not in d

    def test_frames(self):
        m = aggregate(_make_two_months())
        df = slots_to_frame(m.slots)
        assert len(df) == 3
        assert df["battery_level_kwh"].isna().all()
        monthly = monthly_to_frame(m)
        assert list(monthly["month"]) == ["2023-01", "2023-02"]

    def test_empty_frames(self):
        assert slots_to_frame([]).empty
        assert monthly_to_frame(AutoconsumptionMetrics()).empty
