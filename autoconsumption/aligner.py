"""Alignment of the consumption load curve with the production profile.

The consumption series is a real calendar history sampled every slot
(half-hourly for most meters). The production series is a typical year at
hourly resolution. Both are joined on the month/day/hour key, so the
production year never has to match the consumption year.

Pure module apart from console reporting; produces one AlignedSlot per
retained consumption point, in ascending time order.
"""

import math
from collections import defaultdict
from dataclasses import dataclass

import pandas as pd
from rich.console import Console

from autoconsumption.config import EngineConfig
from autoconsumption.series import load_consumption, normalize_production
from autoconsumption.timestamps import (
    MalformedTimestamp,
    month_day_hour_key,
    normalize_timestamp,
)

console = Console()

# minutes -> hours per slot
STANDARD_SLOT_MINUTES = {10: 10 / 60, 15: 15 / 60, 30: 30 / 60, 60: 1.0}


@dataclass(frozen=True)
class AlignedSlot:
    timestamp: pd.Timestamp
    consumption_kwh: float
    production_kwh: float


@dataclass
class AlignmentReport:
    """Data-quality counters of one alignment run."""
    consumption_points: int = 0
    retained_points: int = 0
    truncated_points: int = 0
    malformed_consumption: int = 0
    malformed_production: int = 0
    invalid_consumption_values: int = 0
    invalid_production_values: int = 0
    production_points: int = 0
    production_keys: int = 0
    slot_hours: float = 0.5
    slot_confidence: float = 0.0
    has_production_data: bool = False

    @property
    def data_quality_losses(self) -> int:
        return self.malformed_consumption + self.malformed_production


def _clean_energy(value) -> tuple[float, bool]:
    """Clamp an energy to a finite non-negative float. Returns (value, was_invalid)."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0, True
    if math.isnan(value) or math.isinf(value):
        return 0.0, True
    if value < 0:
        return 0.0, True
    return value, False


def detect_slot_hours(instants, default_hours: float = 0.5) -> dict:
    """Infer the sampling interval from consecutive timestamp deltas.

    Returns dict with:
        - hours_per_interval: float
        - minutes: float
        - is_standard: whether the median delta snapped to 10/15/30/60 min
        - confidence: share of deltas within 30 % of the detected interval
    """
    result = {
        "hours_per_interval": default_hours,
        "minutes": default_hours * 60,
        "is_standard": False,
        "confidence": 0.0,
    }
    dates = pd.Series(pd.to_datetime(list(instants))).dropna().sort_values()
    if len(dates) < 2:
        return result

    diff_minutes = dates.diff().dropna().dt.total_seconds() / 60
    diff_minutes = diff_minutes[diff_minutes > 0]
    if diff_minutes.empty:
        return result

    median_minutes = float(diff_minutes.median())
    closest = min(STANDARD_SLOT_MINUTES, key=lambda m: abs(median_minutes - m))
    if abs(median_minutes - closest) <= closest * 0.2:
        result["minutes"] = float(closest)
        result["hours_per_interval"] = STANDARD_SLOT_MINUTES[closest]
        result["is_standard"] = True
    else:
        result["minutes"] = median_minutes
        result["hours_per_interval"] = median_minutes / 60

    target = result["minutes"]
    tolerance = target * 0.3
    matching = ((diff_minutes >= target - tolerance)
                & (diff_minutes <= target + tolerance)).sum()
    result["confidence"] = float(matching / len(diff_minutes))
    return result


def build_production_lookup(points) -> tuple[dict[str, float], int, int]:
    """Map month/day/hour keys to hourly production energy (kWh).

    Steps shorter than an hour add up within their hour. When the series
    spans several years, each key holds the mean over the years carrying it.

    Returns (lookup, malformed_count, invalid_value_count).
    """
    per_year = defaultdict(float)
    malformed = 0
    invalid = 0
    for point in points:
        parsed = normalize_timestamp(point.timestamp)
        if isinstance(parsed, MalformedTimestamp):
            malformed += 1
            continue
        energy, was_invalid = _clean_energy(point.energy_kwh)
        invalid += was_invalid
        per_year[(parsed.instant.year, parsed.key)] += energy

    sums = defaultdict(float)
    counts = defaultdict(int)
    for (_, key), energy in per_year.items():
        sums[key] += energy
        counts[key] += 1
    lookup = {key: sums[key] / counts[key] for key in sums}
    return lookup, malformed, invalid


class TimeSeriesAligner:
    """Join a consumption load curve and a production profile slot by slot."""

    def __init__(self, config: EngineConfig | None = None, silent: bool = True):
        self.config = config or EngineConfig()
        self.silent = silent
        self.report = AlignmentReport(slot_hours=self.config.default_slot_hours)

    def _print(self, message: str):
        if not self.silent:
            console.print(message)

    def slot_production(self, instant: pd.Timestamp, lookup: dict,
                        slot_hours: float) -> float:
        """Production energy (kWh) falling in the slot starting at instant.

        Production is taken as flat within the hour, so a slot of one hour
        or less gets slot_hours of its own hour (half of it for a 30-min
        slot). Longer slots collect each hour they cover, weighted by the
        overlap.
        """
        if slot_hours <= 1.0:
            return lookup.get(month_day_hour_key(instant), 0.0) * slot_hours

        end = instant + pd.Timedelta(hours=slot_hours)
        hour = instant.replace(minute=0, second=0, microsecond=0, nanosecond=0)
        total = 0.0
        while hour < end:
            next_hour = hour + pd.Timedelta(hours=1)
            overlap = (min(end, next_hour) - max(instant, hour)).total_seconds() / 3600
            total += lookup.get(month_day_hour_key(hour), 0.0) * overlap
            hour = next_hour
        return total

    def align(self, consumption, production) -> list[AlignedSlot]:
        """Align consumption and production onto the consumption slots."""
        self.report = report = AlignmentReport(slot_hours=self.config.default_slot_hours)
        self._print("\n[bold cyan]Aligning consumption and production[/bold cyan]")

        # Production lookup
        production_points = normalize_production(
            production or [], self.config.production_step_hours)
        lookup, report.malformed_production, report.invalid_production_values = (
            build_production_lookup(production_points))
        report.production_points = len(production_points)
        report.production_keys = len(lookup)
        report.has_production_data = bool(production_points)
        if not production_points:
            self._print("  [yellow]No solar production data: production set to zero[/yellow]")
        elif report.malformed_production:
            self._print(f"  [yellow]Warning: {report.malformed_production} production "
                        "timestamps could not be parsed[/yellow]")

        # Consumption timestamps
        points = load_consumption(consumption)
        report.consumption_points = len(points)
        parsed_points = []
        for point in points:
            parsed = normalize_timestamp(point.timestamp)
            if isinstance(parsed, MalformedTimestamp):
                report.malformed_consumption += 1
                continue
            parsed_points.append((parsed.instant, point))
        if report.malformed_consumption:
            self._print(f"  [yellow]Warning: {report.malformed_consumption} consumption "
                        "timestamps could not be parsed and were skipped[/yellow]")
        if not parsed_points:
            self._print("  [yellow]Consumption series is empty[/yellow]")
            return []

        # Slot duration
        if self.config.slot_hours:
            slot_hours = self.config.slot_hours
            report.slot_confidence = 1.0
        else:
            detection = detect_slot_hours(
                [instant for instant, _ in parsed_points],
                self.config.default_slot_hours)
            slot_hours = detection["hours_per_interval"]
            report.slot_confidence = detection["confidence"]
        report.slot_hours = slot_hours
        self._print(f"  Slot duration: [bold]{slot_hours * 60:g} min[/bold]")
        if slot_hours < 1.0 and 60 % round(slot_hours * 60, 6):
            self._print(f"  [yellow]Warning: {slot_hours * 60:g}-min slots do not divide the "
                        "hour; each slot takes its share from the hour it starts in[/yellow]")

        # Keep the most recent year only
        slots_per_day = max(1, round(24 / slot_hours))
        limit = self.config.days_retained * slots_per_day
        parsed_points.sort(key=lambda item: item[0], reverse=True)
        if len(parsed_points) > limit:
            report.truncated_points = len(parsed_points) - limit
            self._print(f"  [yellow]{len(parsed_points)} points "
                        f"({len(parsed_points) / slots_per_day:.0f} days): keeping the "
                        f"last {self.config.days_retained} days ({limit} points)[/yellow]")
            parsed_points = parsed_points[:limit]
        parsed_points.sort(key=lambda item: item[0])

        aligned = []
        for instant, point in parsed_points:
            consumption_kwh, was_invalid = _clean_energy(point.energy_kwh(slot_hours))
            report.invalid_consumption_values += was_invalid
            aligned.append(AlignedSlot(
                timestamp=instant,
                consumption_kwh=consumption_kwh,
                production_kwh=self.slot_production(instant, lookup, slot_hours),
            ))
        report.retained_points = len(aligned)

        if report.invalid_consumption_values:
            self._print(f"  [yellow]{report.invalid_consumption_values} consumption "
                        "values were empty or negative and counted as zero[/yellow]")
        total_consumption = sum(slot.consumption_kwh for slot in aligned)
        total_production = sum(slot.production_kwh for slot in aligned)
        self._print(f"  Aligned [bold]{len(aligned)}[/bold] slots "
                    f"({len(aligned) / slots_per_day:.1f} days): "
                    f"consumption {total_consumption:.2f} kWh, "
                    f"production {total_production:.2f} kWh")
        return aligned


def align_time_series(consumption, production,
                      config: EngineConfig | None = None) -> list[AlignedSlot]:
    """Functional shortcut for TimeSeriesAligner(config).align(...)."""
    return TimeSeriesAligner(config).align(consumption, production)
