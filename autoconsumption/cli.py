import os
import sys

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from autoconsumption.config import VIRTUAL_BATTERY_THRESHOLD_KWH, load_config_json, EngineConfig
from autoconsumption.engine import analyze, compare_scenarios
from autoconsumption.exporter import save_autoconsumption_xlsx
from autoconsumption.file_reader import clean_path, load_consumption_file, load_production_file

console = Console()


def prompt_file_path(label: str) -> str:
    """Prompt until an existing file path is given."""
    while True:
        path = clean_path(Prompt.ask(f"\nEnter {label} file path (drag & drop supported)"))
        if os.path.isfile(path):
            return path
        console.print(f"[red]File not found: {path}[/red]")


def prompt_storage_capacity() -> float:
    """Ask for the storage capacity in kWh (0 = none, >= 1000 = virtual)."""
    console.print(f"\n  Storage: 0 = no battery, >= {VIRTUAL_BATTERY_THRESHOLD_KWH:g} kWh "
                  "= virtual battery")
    while True:
        answer = Prompt.ask("  Battery capacity (kWh)", default="0")
        try:
            value = float(answer.replace(",", "."))
            if value >= 0:
                return value
        except ValueError:
            pass
        console.print("  [red]Please enter a non-negative number.[/red]")


def _rate_color(value: float) -> str:
    if value >= 70:
        return "bold green"
    elif value >= 40:
        return "bold yellow"
    return "bold red"


def display_results(result):
    """Rich tables: energy balance, data quality and monthly breakdown."""
    m = result.metrics
    r = result.report

    table = Table(title="Autoconsumption Summary", show_lines=True, expand=True)
    table.add_column("Metric", style="bold", width=28)
    table.add_column("Value", width=30)

    mode = result.mode
    if mode != "none":
        mode = f"{mode} ({result.storage_capacity_kwh:g} kWh)"
    table.add_row("Battery", mode)
    table.add_row("Consumption", f"{m.total_consumption:,.1f} kWh")
    table.add_row("Production", f"{m.total_production:,.1f} kWh")
    table.add_row("Autoconsumption", f"{m.total_autoconsumption:,.1f} kWh")
    table.add_row("Surplus (export)", f"{m.total_surplus:,.1f} kWh")
    table.add_row("Grid import", f"{m.total_grid_import:,.1f} kWh")
    color = _rate_color(m.autoconsumption_rate)
    table.add_row("Autoconsumption rate", f"[{color}]{m.autoconsumption_rate:.1f}%[/{color}]")
    color = _rate_color(m.self_production_rate)
    table.add_row("Self-production rate", f"[{color}]{m.self_production_rate:.1f}%[/{color}]")
    console.print(table)
    if m.rates_capped:
        console.print("  [yellow]Energy discharged from storage exceeded production in a period: "
                      "autoconsumption rate held at 100%[/yellow]")

    quality = Table(title="Data Quality", show_lines=True)
    quality.add_column("Check", width=34)
    quality.add_column("Value", width=14)
    quality.add_row("Slot duration", f"{r.slot_hours * 60:g} min ({r.slot_confidence:.0%})")
    quality.add_row("Slots analysed", str(r.retained_points))
    quality.add_row("Older slots dropped", str(r.truncated_points))
    quality.add_row("Malformed consumption timestamps", str(r.malformed_consumption))
    quality.add_row("Malformed production timestamps", str(r.malformed_production))
    quality.add_row("Invalid consumption values", str(r.invalid_consumption_values))
    quality.add_row("Solar data available", "yes" if r.has_production_data else "[yellow]no[/yellow]")
    console.print(quality)

    if m.monthly:
        monthly = Table(title="Monthly Breakdown", show_lines=False)
        for header in ("Month", "Consumption", "Production", "Autoconso.", "Rate"):
            monthly.add_column(header, justify="right")
        for month in m.monthly:
            monthly.add_row(month.month,
                            f"{month.consumption:,.1f}",
                            f"{month.production:,.1f}",
                            f"{month.autoconsumption:,.1f}",
                            f"{month.autoconsumption_rate:.1f}%")
        console.print(monthly)


def display_comparison(rows: list[dict]):
    table = Table(title="Storage Scenarios", show_lines=True)
    for header in ("Capacity", "Mode", "Autoconso. rate", "Self-prod. rate",
                   "Surplus (kWh)", "Gain"):
        table.add_column(header, justify="right")
    for row in rows:
        table.add_row(f"{row['capacity_kwh']:g} kWh", row["mode"],
                      f"{row['autoconsumption_rate']:.1f}%",
                      f"{row['self_production_rate']:.1f}%",
                      f"{row['total_surplus']:,.1f}",
                      f"{row['rate_gain']:+.1f} pts")
    console.print(table)


def run(config_path: str | None = None):
    """Interactive flow: load both series, analyse, display, export."""
    try:
        console.print(Panel(
            "[bold]Autoconsumption Engine[/bold]\n"
            "Aligns a smart-meter load curve with a solar production profile "
            "and estimates autoconsumption, with or without storage.",
            title="Welcome",
            border_style="cyan",
        ))
        config = load_config_json(config_path) if config_path else EngineConfig()

        consumption_path = prompt_file_path("consumption (load curve)")
        consumption = load_consumption_file(consumption_path)

        production_path = prompt_file_path("production (PVGIS)")
        production, step_hours = load_production_file(production_path)

        capacity = prompt_storage_capacity()
        result = analyze(consumption, production, capacity, config,
                         step_hours=step_hours, silent=False)
        display_results(result)

        comparison = None
        if Confirm.ask("\nCompare storage scenarios?", default=False):
            comparison = compare_scenarios(consumption, production, config=config,
                                           step_hours=step_hours)
            display_comparison(comparison)

        if Confirm.ask("\nSave results to XLSX?", default=True):
            base_name = os.path.splitext(os.path.basename(consumption_path))[0]
            default_name = f"{base_name}_autoconsumption.xlsx"
            name = Prompt.ask("  Output file name", default=default_name)
            output_path = os.path.join(os.path.dirname(consumption_path), name)
            save_autoconsumption_xlsx(result, output_path, comparison)

        console.print("\n[bold green]Done![/bold green]")

    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user.[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[bold red]Error: {e}[/bold red]")
        console.print_exception(show_locals=False)
        sys.exit(1)


def main():
    run(sys.argv[1] if len(sys.argv) > 1 else None)
