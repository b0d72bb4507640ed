"""
Control Loops Package
=====================

This package contains the pH control layer of the application:
- PHRegulationController: ingestion, staleness detection and mode switching
- PumpDecisionEngine: band comparison with a cooldown window
- PHSimulator: bounded random walk used while the sensor is stale

Architecture:
    Sensor line / API reading
         │
         ▼
    ┌─────────────────────────────────┐
    │   PHRegulationController        │
    │   ├── staleness task (10s)      │  ← LIVE -> SIMULATED
    │   ├── simulator task (2s)       │  ← synthetic readings while stale
    │   └── PumpDecisionEngine        │  ← basic / acidic / none
    └─────────────────────────────────┘
         │
         ▼
      EventBus  →  MonitoringService persistence (readings, pump logs)
"""

from app.control_loops.ph_controller import PHRegulationController
from app.control_loops.pump_decision import PumpDecisionEngine, choose_pump
from app.control_loops.simulator import PHSimulator

__all__ = [
    "PHRegulationController",
    "PHSimulator",
    "PumpDecisionEngine",
    "choose_pump",
]
