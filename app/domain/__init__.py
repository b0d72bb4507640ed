"""
Domain Value Objects Package
=============================
Value objects and pure logic for pH regulation and crop selection.

Nothing in this package performs I/O; services and control loops wire these
objects to storage, timers and the HTTP layer.
"""

from .control import ControllerSettings, ControlMetrics
from .crop_recommendation import CropRecommendationScorer, ScoredCrop
from .crops import CROP_CATALOG, CropSpec, find_crop, require_crop
from .exceptions import EcoSterileError
from .farm_profile import FarmProfile
from .ph import ControllerState, OperationResult, OptimalRange, PumpEvent, Reading
from .ph_analytics import PHSummary, classify_ph, summarize

__all__ = [
    # pH regulation
    "ControllerSettings",
    "ControllerState",
    "ControlMetrics",
    "OperationResult",
    "OptimalRange",
    "PumpEvent",
    "Reading",
    # Analytics
    "PHSummary",
    "classify_ph",
    "summarize",
    # Crops
    "CROP_CATALOG",
    "CropRecommendationScorer",
    "CropSpec",
    "FarmProfile",
    "ScoredCrop",
    "find_crop",
    "require_crop",
    # Errors
    "EcoSterileError",
]
