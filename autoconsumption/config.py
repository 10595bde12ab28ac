"""
Autoconsumption Engine - Configuration Model
============================================
Holds the constants of the battery model and of the time-series alignment,
with JSON save/load so a study can be re-run with the same assumptions.
"""

import json
from dataclasses import dataclass, asdict, fields
from typing import Optional


# === Defaults ===

DEFAULT_INITIAL_SOC = 0.2          # Battery starts a run at 20 % of nominal
DEFAULT_MIN_SOC = 0.1              # Usable band lower bound
DEFAULT_MAX_SOC = 0.9              # Usable band upper bound
DEFAULT_MAX_RATE_FRACTION = 0.5    # Max energy moved per slot, share of nominal
VIRTUAL_BATTERY_THRESHOLD_KWH = 1000.0
DAYS_RETAINED = 365
DEFAULT_SLOT_HOURS = 0.5           # Half-hourly smart-meter load curve
DEFAULT_PRODUCTION_STEP_HOURS = 1.0


@dataclass
class EngineConfig:
    """Tunable assumptions of one autoconsumption analysis."""
    initial_soc: float = DEFAULT_INITIAL_SOC
    min_soc: float = DEFAULT_MIN_SOC
    max_soc: float = DEFAULT_MAX_SOC
    max_rate_fraction: float = DEFAULT_MAX_RATE_FRACTION
    virtual_threshold_kwh: float = VIRTUAL_BATTERY_THRESHOLD_KWH
    days_retained: int = DAYS_RETAINED
    default_slot_hours: float = DEFAULT_SLOT_HOURS
    slot_hours: Optional[float] = None          # Forces the consumption slot duration
    production_step_hours: float = DEFAULT_PRODUCTION_STEP_HOURS

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise ValueError when the assumptions are inconsistent."""
        for name in ("initial_soc", "min_soc", "max_soc"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.min_soc > self.max_soc:
            raise ValueError(
                f"min_soc ({self.min_soc}) cannot exceed max_soc ({self.max_soc})")
        if self.max_rate_fraction <= 0:
            raise ValueError("max_rate_fraction must be positive")
        if self.virtual_threshold_kwh <= 0:
            raise ValueError("virtual_threshold_kwh must be positive")
        if self.days_retained < 1:
            raise ValueError("days_retained must be at least 1")
        if self.default_slot_hours <= 0:
            raise ValueError("default_slot_hours must be positive")
        if self.slot_hours is not None and self.slot_hours <= 0:
            raise ValueError("slot_hours must be positive when set")
        if self.production_step_hours <= 0:
            raise ValueError("production_step_hours must be positive")


# === Serialization ===

def config_to_dict(config: EngineConfig) -> dict:
    """Serialize an EngineConfig to a JSON-compatible dict."""
    return asdict(config)


def config_from_dict(d: dict) -> EngineConfig:
    """Deserialize a dict (from JSON) into an EngineConfig.

    Unknown keys are ignored, missing keys fall back to the defaults.
    """
    known = {f.name for f in fields(EngineConfig)}
    return EngineConfig(**{k: v for k, v in d.items() if k in known})


def save_config_json(config: EngineConfig, path: str):
    """Save an EngineConfig to a JSON file."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)


def load_config_json(path: str) -> EngineConfig:
    """Load an EngineConfig from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return config_from_dict(json.load(f))
