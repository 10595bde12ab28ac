from unittest.mock import patch

import pandas as pd
import pytest

from autoconsumption.cli import (
    _rate_color,
    display_comparison,
    display_results,
    prompt_file_path,
    prompt_storage_capacity,
    run,
)
from autoconsumption.engine import analyze, compare_scenarios


def _make_inputs():
    dates = pd.date_range("2023-01-15 00:00", freq="30min", periods=4)
    consumption = [{"timestamp": d.isoformat(), "value": 1.0, "unit": "kW"} for d in dates]
    production = [{"time": f"20200115:{h:02d}10", "P": 2000.0} for h in range(24)]
    return consumption, production


# ── prompt_storage_capacity ──────────────────────────────────────────────────


class TestPromptStorageCapacity:
    @patch("autoconsumption.cli.Prompt.ask", return_value="0")
    def test_default_no_battery(self, mock_ask):
        assert prompt_storage_capacity() == 0.0

    @patch("autoconsumption.cli.Prompt.ask", return_value="13,5")
    def test_comma_decimal(self, mock_ask):
        assert prompt_storage_capacity() == pytest.approx(13.5)

    @patch("autoconsumption.cli.Prompt.ask", side_effect=["abc", "-2", "5"])
    def test_reprompts_until_valid(self, mock_ask):
        assert prompt_storage_capacity() == 5.0
        assert mock_ask.call_count == 3


# ── prompt_file_path ─────────────────────────────────────────────────────────


class TestPromptFilePath:
    def test_strips_quotes(self, tmp_path):
        f = tmp_path / "load.csv"
        f.write_text("timestamp,value\n")
        with patch("autoconsumption.cli.Prompt.ask", return_value=f'"{f}"'):
            assert prompt_file_path("consumption") == str(f)

    def test_reprompts_on_missing(self, tmp_path):
        f = tmp_path / "load.csv"
        f.write_text("timestamp,value\n")
        answers = [str(tmp_path / "missing.csv"), str(f)]
        with patch("autoconsumption.cli.Prompt.ask", side_effect=answers) as mock_ask:
            assert prompt_file_path("consumption") == str(f)
            assert mock_ask.call_count == 2


# ── display ──────────────────────────────────────────────────────────────────


class TestDisplay:
    @pytest.mark.parametrize("value, expected", [
        (85.0, "bold green"),
        (50.0, "bold yellow"),
        (10.0, "bold red"),
    ])
    def test_rate_color(self, value, expected):
        assert _rate_color(value) == expected

    def test_display_does_not_raise(self):
        consumption, production = _make_inputs()
        display_results(analyze(consumption, production, 5))
        display_comparison(compare_scenarios(consumption, production, [0, 5]))

    def test_display_capped_rates(self):
        dates = pd.date_range("2023-12-01 18:00", freq="30min", periods=2)
        consumption = [{"timestamp": d.isoformat(), "value": 2.0, "unit": "kW"} for d in dates]
        production = [{"timestamp": "2023-12-01T18:00:00", "production": 0.2}]
        result = analyze(consumption, production, 5)
        assert result.metrics.rates_capped
        display_results(result)


# ── run ──────────────────────────────────────────────────────────────────────


class TestRun:
    def test_missing_config_exits_1(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            run(str(tmp_path / "nope.json"))
        assert exc.value.code == 1

    @patch("autoconsumption.cli.prompt_file_path", side_effect=KeyboardInterrupt)
    def test_cancel_exits_0(self, mock_prompt):
        with pytest.raises(SystemExit) as exc:
            run()
        assert exc.value.code == 0
