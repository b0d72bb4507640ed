"""
Pump decision engine.

Compares the latest pH value with the optimal band and decides whether a
corrective pump should run. The engine is stateless; cooldown bookkeeping
lives in ControllerState so the owning controller can apply it under its lock.
"""

from __future__ import annotations

import logging

from app.domain.control import ControllerSettings
from app.domain.ph import ControllerState, OptimalRange, PumpEvent
from app.enums import PumpOrigin, PumpType

logger = logging.getLogger(__name__)


def choose_pump(value: float, optimal_range: OptimalRange) -> PumpType | None:
    """Pump needed to bring ``value`` back into the band, if any."""
    if value < optimal_range.min:
        return PumpType.BASIC
    if value > optimal_range.max:
        return PumpType.ACIDIC
    return None


def in_cooldown(state: ControllerState, now: int, cooldown_ms: int) -> bool:
    if state.last_pump_at is None:
        return False
    return now - state.last_pump_at < cooldown_ms


class PumpDecisionEngine:
    """Decide at most one pump action per cooldown window."""

    def __init__(self, settings: ControllerSettings):
        self.settings = settings

    def evaluate(
        self,
        latest_value: float | None,
        optimal_range: OptimalRange,
        state: ControllerState,
        now: int,
    ) -> PumpEvent | None:
        """
        Return the PumpEvent to emit, or None.

        On emission ``state.last_pump_at`` is set to ``now``. The caller is
        responsible for recording and publishing the event.
        """
        if latest_value is None:
            return None

        if in_cooldown(state, now, self.settings.pump_cooldown_ms):
            if choose_pump(latest_value, optimal_range) is not None:
                logger.debug(
                    "Pump suppressed by cooldown (value=%.2f, last_pump_at=%s)",
                    latest_value,
                    state.last_pump_at,
                )
            return None

        pump_type = choose_pump(latest_value, optimal_range)
        if pump_type is None:
            return None

        state.last_pump_at = now
        return PumpEvent(
            pump_type=pump_type,
            reagent=self.settings.reagent_for(pump_type),
            concentration=self.settings.concentration,
            ph_before=latest_value,
            timestamp=now,
            origin=PumpOrigin.CONTROLLER,
        )
