"""Aggregation of simulated slots into annual and monthly metrics.

Operates on the per-slot simulation output. Rates are percentages and are
0 whenever their denominator is 0.
"""

import json
from dataclasses import dataclass, field, asdict

import numpy as np
import pandas as pd

SLOT_COLUMNS = [
    "timestamp", "consumption_kwh", "production_kwh", "autoconsumption_kwh",
    "surplus_kwh", "grid_import_kwh", "battery_charge_kwh",
    "battery_discharge_kwh", "battery_level_kwh",
]

MONTHLY_COLUMNS = [
    "month", "consumption", "production", "autoconsumption", "surplus",
    "grid_import", "autoconsumption_rate", "self_production_rate",
]


def rate(numerator: float, denominator: float) -> float:
    """numerator / denominator in percent, 0 for a zero denominator.

    Capped at 100: energy held in the battery at the start of a run can be
    discharged in a period that produced less than it consumed from storage.
    exceeds_full() tells when the cap applied.
    """
    if not denominator or denominator <= 0:
        return 0.0
    return min(100.0, max(0.0, float(numerator) / float(denominator) * 100))


def exceeds_full(numerator: float, denominator: float) -> bool:
    """True when rate(numerator, denominator) had to be capped at 100."""
    return bool(denominator > 0 and numerator > denominator * (1 + 1e-9))


@dataclass
class MonthlyBreakdown:
    month: str                      # "YYYY-MM"
    consumption: float
    production: float
    autoconsumption: float
    surplus: float
    grid_import: float
    autoconsumption_rate: float
    self_production_rate: float
    rate_capped: bool = False

@dataclass
class AutoconsumptionMetrics:
    """Energy balance of one analysis (kWh and %)."""
    total_consumption: float = 0.0
    total_production: float = 0.0
    total_autoconsumption: float = 0.0
    total_surplus: float = 0.0
    total_grid_import: float = 0.0
    total_battery_charge: float = 0.0
    total_battery_discharge: float = 0.0
    autoconsumption_rate: float = 0.0     # autoconsumption / production
    self_production_rate: float = 0.0     # autoconsumption / consumption
    rates_capped: bool = False            # a total or monthly rate was held at 100
    slots: list = field(default_factory=list)
    monthly: list[MonthlyBreakdown] = field(default_factory=list)

    @property
    def self_sufficiency_rate(self) -> float:
        return self.self_production_rate

    def to_dict(self, include_slots: bool = True) -> dict:
        """JSON-compatible dict, with the per-slot series for charting."""
        d = {
            "total_consumption": self.total_consumption,
            "total_production": self.total_production,
            "total_autoconsumption": self.total_autoconsumption,
            "total_surplus": self.total_surplus,
            "total_grid_import": self.total_grid_import,
            "total_battery_charge": self.total_battery_charge,
            "total_battery_discharge": self.total_battery_discharge,
            "autoconsumption_rate": self.autoconsumption_rate,
            "self_production_rate": self.self_production_rate,
            "self_sufficiency_rate": self.self_sufficiency_rate,
            "rates_capped": self.rates_capped,
            "monthly": [asdict(m) for m in self.monthly],
        }
        if include_slots:
            d["slots"] = [slot.to_dict() for slot in self.slots]
        return d

    def to_json(self, include_slots: bool = True, **kwargs) -> str:
        return json.dumps(self.to_dict(include_slots), **kwargs)


def slots_to_frame(slots) -> pd.DataFrame:
    """Per-slot simulation output as a DataFrame (battery columns may be NaN)."""
    if not slots:
        return pd.DataFrame(columns=SLOT_COLUMNS)
    rows = []
    for slot in slots:
        row = {col: getattr(slot, col) for col in SLOT_COLUMNS}
        rows.append({k: (np.nan if v is None else v) for k, v in row.items()})
    df = pd.DataFrame(rows)
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    return df


def monthly_to_frame(metrics: AutoconsumptionMetrics) -> pd.DataFrame:
    if not metrics.monthly:
        return pd.DataFrame(columns=MONTHLY_COLUMNS)
    return pd.DataFrame([asdict(m) for m in metrics.monthly])[MONTHLY_COLUMNS]


def compute_monthly_breakdown(df: pd.DataFrame) -> list[MonthlyBreakdown]:
    """Group slots by the calendar month of their instant."""
    if df.empty:
        return []
    grouped = df.groupby(df["timestamp"].dt.strftime("%Y-%m")).agg(
        consumption=("consumption_kwh", "sum"),
        production=("production_kwh", "sum"),
        autoconsumption=("autoconsumption_kwh", "sum"),
        surplus=("surplus_kwh", "sum"),
        grid_import=("grid_import_kwh", "sum"),
    ).sort_index()

    months = []
    for month, row in grouped.iterrows():
        months.append(MonthlyBreakdown(
            month=str(month),
            consumption=float(row["consumption"]),
            production=float(row["production"]),
            autoconsumption=float(row["autoconsumption"]),
            surplus=float(row["surplus"]),
            grid_import=float(row["grid_import"]),
            autoconsumption_rate=rate(row["autoconsumption"], row["production"]),
            self_production_rate=rate(row["autoconsumption"], row["consumption"]),
            rate_capped=exceeds_full(row["autoconsumption"], row["production"]),
        ))
    return months


def aggregate(slots) -> AutoconsumptionMetrics:
    """Reduce simulated slots to totals, rates and a monthly roll-up."""
    slots = list(slots or [])
    if not slots:
        return AutoconsumptionMetrics()

    df = slots_to_frame(slots)
    totals = df[SLOT_COLUMNS[1:]].fillna(0).sum()

    total_consumption = float(totals["consumption_kwh"])
    total_production = float(totals["production_kwh"])
    total_autoconsumption = float(totals["autoconsumption_kwh"])

    monthly = compute_monthly_breakdown(df)
    rates_capped = (exceeds_full(total_autoconsumption, total_production)
                    or any(m.rate_capped for m in monthly))

    return AutoconsumptionMetrics(
        total_consumption=total_consumption,
        total_production=total_production,
        total_autoconsumption=total_autoconsumption,
        total_surplus=float(totals["surplus_kwh"]),
        total_grid_import=float(totals["grid_import_kwh"]),
        total_battery_charge=float(totals["battery_charge_kwh"]),
        total_battery_discharge=float(totals["battery_discharge_kwh"]),
        autoconsumption_rate=rate(total_autoconsumption, total_production),
        self_production_rate=rate(total_autoconsumption, total_consumption),
        rates_capped=rates_capped,
        slots=slots,
        monthly=monthly,
    )
