"""
Crop Catalog
============
Static crop list consumed by the controller (optimal pH band) and the
recommendation scorer. Catalog order is significant: it breaks ranking ties.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from app.domain.exceptions import NotFoundError
from app.domain.ph import OptimalRange

CATEGORIES: dict[str, str] = {
    "cereals": "Cereals",
    "pulses": "Pulses",
    "vegetables": "Vegetables",
    "fruits": "Fruits",
    "cash_crops": "Cash Crops",
}


@dataclass(frozen=True)
class CropSpec:
    value: str
    label: str
    min_ph: float
    max_ph: float
    category: str

    @property
    def optimal_range(self) -> OptimalRange:
        return OptimalRange(self.min_ph, self.max_ph)

    @property
    def ph_midpoint(self) -> float:
        return (self.min_ph + self.max_ph) / 2

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "label": self.label,
            "min_ph": self.min_ph,
            "max_ph": self.max_ph,
            "category": self.category,
        }


CROP_CATALOG: tuple[CropSpec, ...] = (
    CropSpec("rice", "Rice (Dhaan)", 5.5, 6.5, "cereals"),
    CropSpec("wheat", "Wheat (Gehun)", 6.0, 7.5, "cereals"),
    CropSpec("maize", "Maize/Corn", 5.5, 7.5, "cereals"),
    CropSpec("chickpea", "Chickpea (Chana)", 6.0, 7.5, "pulses"),
    CropSpec("pigeon_pea", "Pigeon Pea (Arhar)", 5.5, 7.0, "pulses"),
    CropSpec("tomato", "Tomato", 5.5, 6.8, "vegetables"),
    CropSpec("potato", "Potato", 5.0, 6.0, "vegetables"),
    CropSpec("onion", "Onion", 6.0, 7.0, "vegetables"),
    CropSpec("cabbage", "Cabbage", 6.0, 7.5, "vegetables"),
    CropSpec("carrot", "Carrot", 6.0, 7.0, "vegetables"),
    CropSpec("mango", "Mango", 5.5, 7.5, "fruits"),
    CropSpec("banana", "Banana", 5.5, 7.0, "fruits"),
    CropSpec("apple", "Apple", 5.5, 6.5, "fruits"),
    CropSpec("cotton", "Cotton", 5.5, 7.5, "cash_crops"),
    CropSpec("sugarcane", "Sugarcane", 6.0, 7.5, "cash_crops"),
)


def find_crop(value: str | None, catalog: Iterable[CropSpec] = CROP_CATALOG) -> CropSpec | None:
    if not value:
        return None
    key = value.strip().lower()
    for crop in catalog:
        if crop.value == key:
            return crop
    return None


def require_crop(value: str | None, catalog: Iterable[CropSpec] = CROP_CATALOG) -> CropSpec:
    crop = find_crop(value, catalog)
    if crop is None:
        raise NotFoundError(f"Unknown crop: {value}", detail={"crop": value})
    return crop


def crops_in_category(category: str | None, catalog: Iterable[CropSpec] = CROP_CATALOG) -> list[CropSpec]:
    """Filter the catalog by category; ``None`` or ``"all"`` returns everything."""
    if not category or category == "all":
        return list(catalog)
    return [crop for crop in catalog if crop.category == category]
