"""Energy balance simulation with an optional storage buffer.

Scans the aligned slots in time order. Each slot first serves consumption
directly from production; the leftover production charges the battery and
the leftover consumption is served from the battery. Whatever remains is
exported (surplus) or drawn from the grid (grid import).

Two storage modes:
  - physical battery: usable band 10 %-90 % of nominal capacity, starts at
    20 %, at most 50 % of nominal moved per slot;
  - virtual battery (capacity >= 1000 kWh): a notional net-metering buffer,
    full band, no rate cap, starts empty.
A capacity of 0 disables storage.
"""

import math
from dataclasses import dataclass, asdict

import numpy as np
import pandas as pd

from autoconsumption.config import EngineConfig


@dataclass
class SimulatedSlot:
    timestamp: pd.Timestamp
    consumption_kwh: float
    production_kwh: float
    autoconsumption_kwh: float
    surplus_kwh: float
    grid_import_kwh: float
    battery_charge_kwh: float | None = None
    battery_discharge_kwh: float | None = None
    battery_level_kwh: float | None = None

    @property
    def direct_autoconsumption_kwh(self) -> float:
        return self.autoconsumption_kwh - (self.battery_discharge_kwh or 0.0)

    def to_dict(self) -> dict:
        """JSON-compatible dict; battery fields are omitted without storage."""
        d = asdict(self)
        d["timestamp"] = pd.Timestamp(self.timestamp).isoformat()
        if self.battery_level_kwh is None:
            for key in ("battery_charge_kwh", "battery_discharge_kwh",
                        "battery_level_kwh"):
                d.pop(key)
        return d


@dataclass
class BatteryState:
    """Storage state carried across slots within one simulation run."""
    level_kwh: float
    min_kwh: float
    max_kwh: float
    max_rate_kwh: float

    @classmethod
    def for_capacity(cls, capacity_kwh: float,
                     config: EngineConfig | None = None) -> "BatteryState | None":
        """Initial state for a nominal capacity, or None when storage is disabled."""
        config = config or EngineConfig()
        if not capacity_kwh or capacity_kwh <= 0 or math.isnan(capacity_kwh):
            return None
        if capacity_kwh >= config.virtual_threshold_kwh:
            return cls(level_kwh=0.0, min_kwh=0.0, max_kwh=capacity_kwh,
                       max_rate_kwh=np.inf)
        return cls(
            level_kwh=capacity_kwh * config.initial_soc,
            min_kwh=capacity_kwh * config.min_soc,
            max_kwh=capacity_kwh * config.max_soc,
            max_rate_kwh=capacity_kwh * config.max_rate_fraction,
        )

    def charge(self, available_kwh: float) -> float:
        """Store up to available_kwh; returns the energy actually stored."""
        room = max(0.0, self.max_kwh - self.level_kwh)
        amount = max(0.0, min(available_kwh, room, self.max_rate_kwh))
        self.level_kwh += amount
        return amount

    def discharge(self, needed_kwh: float) -> float:
        """Deliver up to needed_kwh; returns the energy actually delivered."""
        stock = max(0.0, self.level_kwh - self.min_kwh)
        amount = max(0.0, min(needed_kwh, stock, self.max_rate_kwh))
        self.level_kwh -= amount
        return amount


def battery_mode(capacity_kwh: float, config: EngineConfig | None = None) -> str:
    """Return "none", "physical" or "virtual" for a storage capacity."""
    config = config or EngineConfig()
    if not capacity_kwh or capacity_kwh <= 0:
        return "none"
    if capacity_kwh >= config.virtual_threshold_kwh:
        return "virtual"
    return "physical"


def _non_negative(value) -> float:
    value = float(value)
    if math.isnan(value) or value < 0:
        return 0.0
    return value


class EnergyBalanceSimulator:
    """Split each slot's energy into self-consumed, exported and imported parts."""

    def __init__(self, storage_capacity_kwh: float = 0.0,
                 config: EngineConfig | None = None):
        self.storage_capacity_kwh = storage_capacity_kwh or 0.0
        self.config = config or EngineConfig()

    @property
    def mode(self) -> str:
        return battery_mode(self.storage_capacity_kwh, self.config)

    def simulate(self, slots) -> list[SimulatedSlot]:
        """Run the slot-by-slot scan; a fresh battery state is used per call."""
        battery = BatteryState.for_capacity(self.storage_capacity_kwh, self.config)
        results = []

        for slot in slots:
            consumption = _non_negative(slot.consumption_kwh)
            production = _non_negative(slot.production_kwh)

            direct = min(production, consumption)
            remaining_production = production - direct
            remaining_consumption = consumption - direct
            autoconsumption = direct

            charge = discharge = level = None
            if battery is not None:
                charge = battery.charge(remaining_production)
                remaining_production -= charge

                discharge = battery.discharge(remaining_consumption)
                remaining_consumption -= discharge
                autoconsumption += discharge
                level = battery.level_kwh

            results.append(SimulatedSlot(
                timestamp=slot.timestamp,
                consumption_kwh=consumption,
                production_kwh=production,
                autoconsumption_kwh=autoconsumption,
                surplus_kwh=max(0.0, remaining_production),
                grid_import_kwh=max(0.0, remaining_consumption),
                battery_charge_kwh=charge,
                battery_discharge_kwh=discharge,
                battery_level_kwh=level,
            ))

        return results


def simulate(slots, storage_capacity_kwh: float = 0.0,
             config: EngineConfig | None = None) -> list[SimulatedSlot]:
    """Functional shortcut for EnergyBalanceSimulator(...).simulate(slots)."""
    return EnergyBalanceSimulator(storage_capacity_kwh, config).simulate(slots)
