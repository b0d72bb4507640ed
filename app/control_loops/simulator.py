"""
pH simulator used while the sensor feed is stale.

Produces a bounded random walk so the dashboard keeps a continuous series.
The bounds are narrower than the 0-14 scale so synthetic values stay in the
expected operating range.
"""

from __future__ import annotations

import random
from typing import Callable

from app.domain.control import ControllerSettings

UniformSource = Callable[[float, float], float]


class PHSimulator:
    def __init__(self, settings: ControllerSettings, uniform: UniformSource | None = None):
        self.settings = settings
        self._uniform = uniform or random.uniform

    def clamp(self, value: float) -> float:
        return max(self.settings.sim_min, min(self.settings.sim_max, value))

    def next_value(self, current: float | None) -> float:
        """Next sample: ``clamp(current + U(-step, +step))`` rounded to 2 decimals."""
        base = self.settings.sim_seed_value if current is None else current
        step = self._uniform(-self.settings.sim_step, self.settings.sim_step)
        return self.clamp(round(base + step, 2))
