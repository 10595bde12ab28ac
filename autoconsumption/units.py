"""Power / energy conversions.

Every component consumes and produces energy (kWh) per slot. All the
kW <-> kWh and W <-> kWh arithmetic lives here so that no call site has to
guess what a bare "value" field means.

Functions accept plain floats as well as numpy arrays and pandas Series.
"""

import re

import pandas as pd
from rich.console import Console

console = Console()

VALID_UNITS = ["W", "kW", "Wh", "kWh", "MWh", "MW"]
ENERGY_UNITS = ("Wh", "kWh", "MWh")


def power_to_energy(power_kw, duration_hours: float):
    """Energy (kWh) delivered by an average power (kW) held for duration_hours."""
    return power_kw * duration_hours


def energy_to_power(energy_kwh, duration_hours: float):
    """Average power (kW) over duration_hours for a given energy (kWh)."""
    if duration_hours <= 0:
        raise ValueError(f"duration_hours must be positive, got {duration_hours}")
    return energy_kwh / duration_hours


def watts_to_kw(power_w):
    return power_w / 1000.0


def watts_to_energy(power_w, duration_hours: float):
    """Energy (kWh) from an average power given in W (irradiance-model output)."""
    return power_to_energy(watts_to_kw(power_w), duration_hours)


def to_kw(value, unit: str, hours_per_interval: float):
    """Convert values to kW based on the source unit.

    Conversions:
      W    -> divide by 1000
      kW   -> as-is
      Wh   -> divide by (1000 * hours_per_interval)
      kWh  -> divide by hours_per_interval
      MWh  -> multiply by 1000 / hours_per_interval
      MW   -> multiply by 1000
    """
    unit = (unit or "kW").strip()
    if unit == "W":
        return watts_to_kw(value)
    elif unit == "kW":
        return value
    elif unit == "Wh":
        return energy_to_power(value / 1000.0, hours_per_interval)
    elif unit == "kWh":
        return energy_to_power(value, hours_per_interval)
    elif unit == "MWh":
        return energy_to_power(value * 1000.0, hours_per_interval)
    elif unit == "MW":
        return value * 1000.0
    else:
        console.print(f"[yellow]Unknown unit '{unit}', treating as kW[/yellow]")
        return value


def to_kwh(value, unit: str):
    """Convert an energy reading (Wh, kWh, MWh) to kWh."""
    unit = (unit or "kWh").strip()
    if unit == "Wh":
        return value / 1000.0
    elif unit == "MWh":
        return value * 1000.0
    elif unit == "kWh":
        return value
    raise ValueError(f"Not an energy unit: {unit}")


def parse_number(value) -> float:
    """Parse a reading that may arrive as a number or a formatted string.

    Handles:
      - European: 1.234,56 -> 1234.56
      - European decimal only: 1234,56 -> 1234.56
      - US: 1,234.56 -> 1234.56
      - Space / non-breaking space thousands separators
      - Trailing unit suffixes ("2.5 kW")
      - None / empty / garbage -> NaN
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        if pd.isna(value):
            return float("nan")
        return float(value)

    if value is None or pd.isna(value):
        return float("nan")

    value = str(value).strip()
    if not value:
        return float("nan")

    value = value.replace("\xa0", "").replace("\u202f", "").replace(" ", "")
    value = re.sub(r'[a-zA-Z%°]+$', '', value).strip()
    if not value:
        return float("nan")

    if "," in value and "." in value:
        if value.rfind(",") > value.rfind("."):
            value = value.replace(".", "").replace(",", ".")
        else:
            value = value.replace(",", "")
    elif "," in value:
        value = value.replace(",", ".")

    try:
        return float(value)
    except ValueError:
        return float("nan")
