import itertools
import json
import os

import chardet
import pandas as pd
from rich.console import Console

from autoconsumption.series import pvgis_step_hours, production_records_from_pvgis

console = Console()

TIMESTAMP_COLUMN_NAMES = ["timestamp", "date", "datetime", "horodate", "time", "date & time"]
CONSUMPTION_COLUMN_NAMES = ["value", "valeur", "consumption", "consommation",
                            "consumption (kw)", "power", "kw"]
UNIT_COLUMN_NAMES = ["unit", "unite", "unité"]
DELIMITER_NAMES = {";": "semicolon", "\t": "tab", ",": "comma"}


def clean_path(path: str) -> str:
    """Strip the quotes a drag-and-drop path arrives with."""
    return path.strip().strip('"').strip("'")


def detect_encoding(file_path: str) -> str:
    """Detect file encoding using chardet."""
    with open(file_path, "rb") as f:
        raw = f.read(100_000)
    result = chardet.detect(raw)
    encoding = result["encoding"] or "utf-8"
    console.print(f"  Detected encoding: [bold]{encoding}[/bold] "
                  f"(confidence: {result['confidence'] or 0:.0%})")
    return encoding


def detect_delimiter(file_path: str, encoding: str, sample_lines: int = 20) -> str:
    """Pick the separator that splits every sampled line into the same number of fields.

    Meter exports from French portals use ";" with decimal commas, so ";" and
    tab are tried before ",".
    """
    with open(file_path, "r", encoding=encoding, errors="replace") as f:
        sample = [line.rstrip("\r\n") for line in itertools.islice(f, sample_lines)]
    sample = [line for line in sample if line.strip()]

    for delim, name in DELIMITER_NAMES.items():
        widths = {len(line.split(delim)) for line in sample}
        if len(widths) == 1 and widths.pop() > 1:
            console.print(f"  Detected delimiter: [bold]{name}[/bold]")
            return delim

    console.print("  [yellow]Could not detect delimiter, defaulting to comma[/yellow]")
    return ","


def _check_file(file_path: str) -> tuple[str, str]:
    file_path = clean_path(file_path)
    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")
    return file_path, os.path.splitext(file_path)[1].lower()


def load_table(file_path: str) -> pd.DataFrame:
    """Load a CSV or XLSX file into a string DataFrame."""
    file_path, ext = _check_file(file_path)
    if ext in (".xlsx", ".xls"):
        df = pd.read_excel(file_path, header=0, dtype=str)
    elif ext in (".csv", ".txt", ".tsv"):
        encoding = detect_encoding(file_path)
        delimiter = detect_delimiter(file_path, encoding)
        df = pd.read_csv(file_path, sep=delimiter, encoding=encoding,
                         dtype=str, keep_default_na=False)
    else:
        raise ValueError(f"Unsupported file format: {ext}")
    df.columns = [str(c).strip() for c in df.columns]
    return df


def _find_column(df: pd.DataFrame, names: list[str], exclude=()) -> str | None:
    lowered = {c.lower(): c for c in df.columns if c not in exclude}
    for name in names:
        if name in lowered:
            return lowered[name]
    return None


def _load_json(file_path: str):
    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_consumption_file(file_path: str) -> list[dict]:
    """Read a load curve as {timestamp, value, unit} records.

    Accepts a JSON list of records, or a CSV/XLSX table with a timestamp
    column, a value column and an optional unit column (kW assumed).
    """
    file_path, ext = _check_file(file_path)
    console.print(f"\n[bold cyan]Loading consumption[/bold cyan]: {os.path.basename(file_path)}")

    if ext == ".json":
        data = _load_json(file_path)
        if isinstance(data, dict):
            data = data.get("data") or data.get("loadCurve") or data.get("records") or []
        if not isinstance(data, list):
            raise ValueError("Consumption JSON must be a list of {timestamp, value, unit} records")
        records = data
    else:
        df = load_table(file_path)
        if len(df.columns) < 2:
            raise ValueError("Consumption table needs a timestamp and a value column")
        ts_col = _find_column(df, TIMESTAMP_COLUMN_NAMES) or df.columns[0]
        value_col = (_find_column(df, CONSUMPTION_COLUMN_NAMES, exclude=(ts_col,))
                     or next(c for c in df.columns if c != ts_col))
        unit_col = _find_column(df, UNIT_COLUMN_NAMES, exclude=(ts_col, value_col))
        records = [
            {
                "timestamp": row[ts_col],
                "value": row[value_col],
                "unit": row[unit_col] if unit_col else "kW",
            }
            for _, row in df.iterrows()
        ]

    console.print(f"  Rows: [bold]{len(records)}[/bold]")
    return records


def load_production_file(file_path: str) -> tuple[list[dict], float]:
    """Read a production profile. Returns (records, step_hours).

    Accepts a PVGIS seriescalc JSON response, a JSON list of raw
    ({time, P}) or processed ({timestamp, production}) records, or a
    CSV/XLSX table with the same column names.
    """
    file_path, ext = _check_file(file_path)
    console.print(f"\n[bold cyan]Loading production[/bold cyan]: {os.path.basename(file_path)}")

    step_hours = 1.0
    if ext == ".json":
        data = _load_json(file_path)
        if isinstance(data, dict):
            records = production_records_from_pvgis(data)
            step_hours = pvgis_step_hours(data)
        elif isinstance(data, list):
            records = data
        else:
            raise ValueError("Unsupported production JSON layout")
    else:
        df = load_table(file_path)
        lowered = {c.lower(): c for c in df.columns}
        if "production" in lowered:
            ts_col = _find_column(df, ["timestamp", "date", "time"]) or df.columns[0]
            records = [{"timestamp": row[ts_col], "production": row[lowered["production"]]}
                       for _, row in df.iterrows()]
        elif "p" in lowered:
            ts_col = _find_column(df, ["time", "timestamp", "date"]) or df.columns[0]
            records = [{"time": row[ts_col], "P": row[lowered["p"]]}
                       for _, row in df.iterrows()]
        else:
            raise ValueError("Production table needs a 'P' (W) or 'production' (kWh) column")

    console.print(f"  Rows: [bold]{len(records)}[/bold], step: [bold]{step_hours * 60:g} min[/bold]")
    return records, step_hours
