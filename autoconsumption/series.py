"""Input boundary for the consumption and production series.

The meter-data collaborator delivers ``{timestamp, value, unit}`` records
(average power over the slot, or energy per slot for Wh/kWh/MWh meters).
The irradiance model delivers either raw ``{time, P, ...}`` records (power
in W) or records already pre-processed upstream as
``{timestamp, date, time, production}`` (energy in kWh).

The production shape is resolved once here and normalized to
ProductionEnergyPoint, so the aligner only ever sees energy.
"""

from dataclasses import dataclass
from typing import Any

from autoconsumption.config import DEFAULT_PRODUCTION_STEP_HOURS
from autoconsumption.units import (
    ENERGY_UNITS,
    parse_number,
    power_to_energy,
    to_kw,
    to_kwh,
    watts_to_energy,
)


# === Boundary types ===

@dataclass(frozen=True)
class ConsumptionPoint:
    """One meter reading: average power (kW) or energy drawn over the slot (kWh).

    The slot duration is only known once the whole series has been seen, so
    the reading stays in its own unit until energy_kwh() is called.
    """
    timestamp: Any
    value: float
    unit: str = "kW"

    @property
    def is_energy(self) -> bool:
        return self.unit == "kWh"

    def energy_kwh(self, slot_hours: float) -> float:
        if self.is_energy:
            return self.value
        return power_to_energy(self.value, slot_hours)


@dataclass(frozen=True)
class RawProductionPoint:
    """Irradiance-model output: average power (W) over the model step."""
    time: Any
    power_w: float


@dataclass(frozen=True)
class ProcessedProductionPoint:
    """Production already converted upstream to energy per step (kWh)."""
    timestamp: Any
    energy_kwh: float


@dataclass(frozen=True)
class ProductionEnergyPoint:
    timestamp: Any
    energy_kwh: float


def _field(record, *names, default=None):
    """Read the first present field from a dict or an attribute holder."""
    for name in names:
        if isinstance(record, dict):
            if name in record:
                return record[name]
        elif hasattr(record, name):
            return getattr(record, name)
    return default


# === Consumption ===

def load_consumption(records) -> list[ConsumptionPoint]:
    """Build ConsumptionPoints from meter records.

    Power units are brought to kW and energy units (Wh, kWh, MWh) to kWh.
    Unparseable values are kept as NaN for the aligner to count.
    """
    points = []
    for record in records or []:
        if isinstance(record, ConsumptionPoint):
            points.append(record)
            continue
        unit = str(_field(record, "unit", default="kW") or "kW").strip()
        value = parse_number(_field(record, "value", "power_kw", "powerKw"))
        if unit in ENERGY_UNITS:
            value = to_kwh(value, unit)
            unit = "kWh"
        elif unit in ("W", "MW"):
            value = to_kw(value, unit, 1.0)
            unit = "kW"
        points.append(ConsumptionPoint(
            timestamp=_field(record, "timestamp", "date", "time"),
            value=value,
            unit=unit,
        ))
    return points


# === Production ===

def detect_production_shape(records) -> str:
    """Return "processed", "raw" or "empty" from the first record's fields."""
    if not records:
        return "empty"
    first = records[0]
    if isinstance(first, (ProcessedProductionPoint, ProductionEnergyPoint)):
        return "processed"
    if isinstance(first, RawProductionPoint):
        return "raw"
    if _field(first, "production", "energy_kwh") is not None:
        return "processed"
    return "raw"


def to_production_point(record, shape: str):
    """Resolve one record to its tagged boundary type."""
    if isinstance(record, (RawProductionPoint, ProcessedProductionPoint)):
        return record
    if isinstance(record, ProductionEnergyPoint):
        return ProcessedProductionPoint(record.timestamp, record.energy_kwh)
    if shape == "processed":
        return ProcessedProductionPoint(
            timestamp=_field(record, "timestamp", "time"),
            energy_kwh=parse_number(_field(record, "production", "energy_kwh")),
        )
    return RawProductionPoint(
        time=_field(record, "time", "timestamp"),
        power_w=parse_number(_field(record, "P", "power_w")),
    )


def normalize_production(records,
                         step_hours: float = DEFAULT_PRODUCTION_STEP_HOURS
                         ) -> list[ProductionEnergyPoint]:
    """Normalize either production shape to energy per step (kWh)."""
    shape = detect_production_shape(records)
    if shape == "empty":
        return []

    points = []
    for record in records:
        point = to_production_point(record, shape)
        if isinstance(point, RawProductionPoint):
            points.append(ProductionEnergyPoint(
                point.time, watts_to_energy(point.power_w, step_hours)))
        else:
            points.append(ProductionEnergyPoint(point.timestamp, point.energy_kwh))
    return points


# === Irradiance-model (PVGIS) responses ===

def pvgis_step_hours(response: dict) -> float:
    """Step duration in hours declared by a PVGIS response (minutes), default 1 h."""
    meta = response.get("meta") or {}
    outputs = response.get("outputs") or {}
    step_min = (meta.get("time_step") or meta.get("timestep")
                or outputs.get("timestep") or 60)
    minutes = parse_number(step_min)
    if not minutes or minutes != minutes or minutes <= 0:
        minutes = 60.0
    return minutes / 60.0


def production_records_from_pvgis(response: dict) -> list[dict]:
    """Extract the hourly records of a PVGIS seriescalc response."""
    outputs = response.get("outputs") or {}
    hourly = outputs.get("hourly")
    if hourly is None:
        raise ValueError("Invalid PVGIS response: missing outputs.hourly")
    return list(hourly)
