"""
Control System Domain Objects
==============================
Dataclasses for pH regulation timing, reagents and loop metrics.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.domain.exceptions import ConfigurationError
from app.domain.ph import OptimalRange
from app.enums import PumpType
from app.utils.time import ms_to_iso

BASIC_REAGENT = "Ammonium Hydroxide (NH4OH)"
ACIDIC_REAGENT = "Acetic Acid (CH3COOH)"
REAGENT_CONCENTRATION = "1%"


@dataclass
class ControllerSettings:
    """Configuration for one pH regulation controller."""
    # Staleness detection
    stale_threshold_ms: int = 10_000
    staleness_check_interval_ms: int = 10_000

    # Simulator
    sim_interval_ms: int = 2_000
    sim_step: float = 0.15
    sim_min: float = 6.2
    sim_max: float = 7.8
    sim_seed_value: float = 7.0

    # Pump decisions
    pump_cooldown_ms: int = 10_000  # Minimum spacing between pump events

    # Band used until a crop is selected
    default_ph_min: float = 6.5
    default_ph_max: float = 7.5

    # Reagent labels
    basic_reagent: str = BASIC_REAGENT
    acidic_reagent: str = ACIDIC_REAGENT
    concentration: str = REAGENT_CONCENTRATION

    def __post_init__(self) -> None:
        if self.sim_min > self.sim_max:
            raise ConfigurationError("sim_min must not exceed sim_max")
        for name in ("stale_threshold_ms", "staleness_check_interval_ms", "sim_interval_ms"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.pump_cooldown_ms < 0:
            raise ConfigurationError("pump_cooldown_ms must not be negative")

    @property
    def default_range(self) -> OptimalRange:
        return OptimalRange(self.default_ph_min, self.default_ph_max)

    def reagent_for(self, pump_type: PumpType) -> str:
        return self.basic_reagent if pump_type == PumpType.BASIC else self.acidic_reagent


@dataclass
class ControlMetrics:
    """Counters for one controller's lifetime."""
    readings_ingested: int = 0
    readings_dropped: int = 0
    simulated_readings: int = 0
    pump_events: int = 0
    suppressed_by_cooldown: int = 0
    mode_transitions: int = 0
    last_pump_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'readings_ingested': self.readings_ingested,
            'readings_dropped': self.readings_dropped,
            'simulated_readings': self.simulated_readings,
            'pump_events': self.pump_events,
            'suppressed_by_cooldown': self.suppressed_by_cooldown,
            'mode_transitions': self.mode_transitions,
            'last_pump_at': ms_to_iso(self.last_pump_at),
        }
