import os

import pandas as pd
from openpyxl import load_workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from rich.console import Console

from autoconsumption.metrics import monthly_to_frame, slots_to_frame

console = Console()

SLOT_HEADERS = {
    "timestamp": "Date & Time",
    "consumption_kwh": "Consumption (kWh)",
    "production_kwh": "Production (kWh)",
    "autoconsumption_kwh": "Autoconsumption (kWh)",
    "surplus_kwh": "Surplus (kWh)",
    "grid_import_kwh": "Grid Import (kWh)",
    "battery_charge_kwh": "Battery Charge (kWh)",
    "battery_discharge_kwh": "Battery Discharge (kWh)",
    "battery_level_kwh": "Battery Level (kWh)",
}

MONTHLY_HEADERS = {
    "month": "Month",
    "consumption": "Consumption (kWh)",
    "production": "Production (kWh)",
    "autoconsumption": "Autoconsumption (kWh)",
    "surplus": "Surplus (kWh)",
    "grid_import": "Grid Import (kWh)",
    "autoconsumption_rate": "Autoconsumption Rate (%)",
    "self_production_rate": "Self-Production Rate (%)",
}


def summary_rows(result) -> list[dict]:
    """Metric/value rows of the Summary sheet for an AnalysisResult."""
    m = result.metrics
    r = result.report
    return [
        {"Metric": "Battery Mode", "Value": result.mode},
        {"Metric": "Storage Capacity (kWh)", "Value": round(result.storage_capacity_kwh, 1)},
        {"Metric": "Total Consumption (kWh)", "Value": round(m.total_consumption, 1)},
        {"Metric": "Total Production (kWh)", "Value": round(m.total_production, 1)},
        {"Metric": "Autoconsumption (kWh)", "Value": round(m.total_autoconsumption, 1)},
        {"Metric": "Surplus (kWh)", "Value": round(m.total_surplus, 1)},
        {"Metric": "Grid Import (kWh)", "Value": round(m.total_grid_import, 1)},
        {"Metric": "Battery Charge (kWh)", "Value": round(m.total_battery_charge, 1)},
        {"Metric": "Battery Discharge (kWh)", "Value": round(m.total_battery_discharge, 1)},
        {"Metric": "Autoconsumption Rate", "Value": f"{m.autoconsumption_rate:.1f}%"},
        {"Metric": "Self-Production Rate", "Value": f"{m.self_production_rate:.1f}%"},
        {"Metric": "Rates Capped at 100%", "Value": "yes" if m.rates_capped else "no"},
        {"Metric": "Slot Duration (min)", "Value": round(r.slot_hours * 60)},
        {"Metric": "Slots Analysed", "Value": r.retained_points},
        {"Metric": "Slots Dropped (older than one year)", "Value": r.truncated_points},
        {"Metric": "Malformed Consumption Timestamps", "Value": r.malformed_consumption},
        {"Metric": "Malformed Production Timestamps", "Value": r.malformed_production},
    ]


def save_autoconsumption_xlsx(result, output_path: str,
                              comparison: list[dict] | None = None,
                              include_slots: bool = True):
    """Save an AnalysisResult to a formatted XLSX file.

    Args:
        result: AnalysisResult from engine.analyze
        output_path: Full path for the output file
        comparison: Optional rows from engine.compare_scenarios
        include_slots: Write the per-slot series sheet
    """
    console.print(f"\n  Saving autoconsumption XLSX: "
                  f"[bold]{os.path.basename(output_path)}[/bold]")

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        pd.DataFrame(summary_rows(result)).to_excel(
            writer, sheet_name="Summary", index=False)

        monthly_to_frame(result.metrics).rename(columns=MONTHLY_HEADERS).to_excel(
            writer, sheet_name="Monthly", index=False)

        if include_slots:
            df_slots = slots_to_frame(result.metrics.slots)
            if result.mode == "none":
                df_slots = df_slots.drop(columns=["battery_charge_kwh",
                                                  "battery_discharge_kwh",
                                                  "battery_level_kwh"])
            if not df_slots.empty:
                df_slots["timestamp"] = df_slots["timestamp"].dt.strftime("%Y-%m-%d %H:%M")
            df_slots.rename(columns=SLOT_HEADERS).to_excel(
                writer, sheet_name="Slots", index=False)

        if comparison:
            pd.DataFrame(comparison).to_excel(
                writer, sheet_name="Scenario Comparison", index=False)

    # Format with openpyxl
    wb = load_workbook(output_path)
    header_font = Font(bold=True, size=11)
    for ws in wb.worksheets:
        for col_idx in range(1, ws.max_column + 1):
            cell = ws.cell(row=1, column=col_idx)
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")
            col_letter = get_column_letter(col_idx)
            ws.column_dimensions[col_letter].width = 36 if ws.title == "Summary" and col_idx == 1 else 22

    if "Slots" in wb.sheetnames:
        ws = wb["Slots"]
        for row in ws.iter_rows(min_row=2, min_col=2, max_col=ws.max_column):
            for cell in row:
                if cell.value is not None:
                    cell.number_format = "#,##0.000"

    wb.save(output_path)
    console.print(f"  [green]Saved: {output_path}[/green]")
