"""
Autoconsumption Engine - Analysis Pipeline
==========================================
raw series -> timestamp normalization -> alignment -> energy balance
simulation -> metrics.

Every call is independent: no state survives between analyses, so several
capacities can be evaluated side by side.

Usage:
    result = analyze(load_curve, pvgis_hourly, storage_capacity_kwh=5)
    result.metrics.autoconsumption_rate
"""

from dataclasses import dataclass, replace

from rich.console import Console

from autoconsumption.aligner import AlignmentReport, TimeSeriesAligner
from autoconsumption.config import EngineConfig
from autoconsumption.metrics import AutoconsumptionMetrics, aggregate
from autoconsumption.simulator import EnergyBalanceSimulator, battery_mode

console = Console()

DEFAULT_SCENARIO_CAPACITIES = [0.0, 5.0, 10.0, 1000.0]


@dataclass
class AnalysisResult:
    metrics: AutoconsumptionMetrics
    report: AlignmentReport
    storage_capacity_kwh: float = 0.0
    mode: str = "none"

    def to_dict(self, include_slots: bool = True) -> dict:
        d = self.metrics.to_dict(include_slots)
        d["storage_capacity_kwh"] = self.storage_capacity_kwh
        d["battery_mode"] = self.mode
        return d


def analyze(consumption, production, storage_capacity_kwh: float = 0.0,
            config: EngineConfig | None = None,
            step_hours: float | None = None,
            silent: bool = True) -> AnalysisResult:
    """Run the complete autoconsumption analysis.

    Args:
        consumption: load-curve records ({timestamp, value, unit}) or
            ConsumptionPoints; power units are averaged over the slot,
            energy units (Wh, kWh, MWh) are the energy drawn in it.
        production: raw ({time, P}) or pre-processed
            ({timestamp, production}) irradiance-model records.
        storage_capacity_kwh: 0 for no battery, >= 1000 for a virtual battery.
        config: engine assumptions; defaults to EngineConfig().
        step_hours: duration of one raw production step, overrides
            config.production_step_hours (e.g. from pvgis_step_hours).
        silent: suppress console reporting.
    """
    config = config or EngineConfig()
    if step_hours is not None:
        config = replace(config, production_step_hours=step_hours)

    aligner = TimeSeriesAligner(config, silent=silent)
    slots = aligner.align(consumption, production)

    simulator = EnergyBalanceSimulator(storage_capacity_kwh, config)
    metrics = aggregate(simulator.simulate(slots))

    if not silent:
        console.print(f"  Battery: [bold]{simulator.mode}[/bold]"
                      + (f" ({storage_capacity_kwh:g} kWh)" if simulator.mode != "none" else ""))
        console.print(f"  Autoconsumption rate: [bold]{metrics.autoconsumption_rate:.1f}%[/bold], "
                      f"self-production rate: [bold]{metrics.self_production_rate:.1f}%[/bold]")

    return AnalysisResult(
        metrics=metrics,
        report=aligner.report,
        storage_capacity_kwh=storage_capacity_kwh or 0.0,
        mode=simulator.mode,
    )


def compare_scenarios(consumption, production, capacities=None,
                      config: EngineConfig | None = None,
                      step_hours: float | None = None) -> list[dict]:
    """Evaluate several storage capacities on the same input series.

    Returns one summary row per capacity, in the given order, with the gain
    in autoconsumption rate against the no-battery baseline.
    """
    config = config or EngineConfig()
    capacities = DEFAULT_SCENARIO_CAPACITIES if capacities is None else capacities

    baseline = analyze(consumption, production, 0.0, config, step_hours)
    rows = []
    for capacity in capacities:
        if not capacity:
            result = baseline
        else:
            result = analyze(consumption, production, capacity, config, step_hours)
        m = result.metrics
        rows.append({
            "capacity_kwh": float(capacity or 0.0),
            "mode": battery_mode(capacity, config),
            "total_consumption": m.total_consumption,
            "total_production": m.total_production,
            "total_autoconsumption": m.total_autoconsumption,
            "total_surplus": m.total_surplus,
            "total_grid_import": m.total_grid_import,
            "autoconsumption_rate": m.autoconsumption_rate,
            "self_production_rate": m.self_production_rate,
            "rate_gain": (m.autoconsumption_rate
                          - baseline.metrics.autoconsumption_rate),
        })
    return rows
