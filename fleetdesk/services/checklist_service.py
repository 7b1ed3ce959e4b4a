"""
Checklist definitions and the OUT/IN comparison rule.

Driver and vehicle checklists are fixed sets of boolean items. On return the
vehicle checklist is compared with the one captured at departure: an item that
was ticked at OUT and is unticked at IN is a mismatch. Improvements are never
flagged, and the free-text damages note is not part of the comparison.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence


@dataclass(frozen=True)
class ChecklistItem:
    key: str      # camelCase wire key
    label: str


DAMAGES_KEY = "damages"

DRIVER_CHECKLIST_ITEMS = (
    ChecklistItem("idCard", "ID Card"),
    ChecklistItem("uniform", "Uniform"),
    ChecklistItem("shoes", "Shoes"),
    ChecklistItem("groomed", "Groomed"),
)

VEHICLE_CHECKLIST_ITEMS = (
    ChecklistItem("fireExtinguisher", "Fire Extinguisher"),
    ChecklistItem("stepney", "Stepney"),
    ChecklistItem("carFreshener", "Car Freshener"),
    ChecklistItem("cleaningCloth", "Cleaning Cloth"),
    ChecklistItem("umbrella", "Umbrella"),
    ChecklistItem("torch", "Torch"),
    ChecklistItem("toolkit", "Toolkit"),
    ChecklistItem("spanner", "Spanner"),
    ChecklistItem("medicalKit", "Medical Kit"),
    ChecklistItem("carCharger", "Car Charger"),
    ChecklistItem("jack", "Jack"),
    ChecklistItem("lightsWorking", "Lights Working"),
    ChecklistItem("tyrePressure", "Tyre Pressure"),
    ChecklistItem("wheelCaps", "Wheel Caps"),
    ChecklistItem("wiperWater", "Wiper Water"),
    ChecklistItem("cleanliness", "Cleanliness"),
    ChecklistItem("antenna", "Antenna"),
    ChecklistItem("acWorking", "AC Working"),
    ChecklistItem("mobileCable", "Mobile Cable"),
    ChecklistItem("mobileAdapter", "Mobile Adapter"),
    ChecklistItem("phoneStand", "Phone Stand"),
    ChecklistItem("hornWorking", "Horn Working"),
)

_LABELS = {item.key: item.label for item in DRIVER_CHECKLIST_ITEMS + VEHICLE_CHECKLIST_ITEMS}


def checklist_keys(items: Sequence[ChecklistItem] = VEHICLE_CHECKLIST_ITEMS) -> List[str]:
    return [item.key for item in items]


def _as_mapping(checklist: Any) -> Optional[Mapping[str, Any]]:
    """Accept a pydantic checklist model or a plain mapping keyed by wire keys."""
    if checklist is None:
        return None
    if hasattr(checklist, "model_dump"):
        return checklist.model_dump(by_alias=True)
    return checklist


def diff(out_checklist: Any, in_checklist: Any,
         items: Sequence[ChecklistItem] = VEHICLE_CHECKLIST_ITEMS) -> List[str]:
    """
    Return the keys that were True at OUT and are False at IN.

    Canonical keys come first in declared order; any other boolean keys follow
    alphabetically. Returns [] when either checklist is missing.
    """
    out_map = _as_mapping(out_checklist)
    in_map = _as_mapping(in_checklist)
    if out_map is None or in_map is None:
        return []

    canonical = checklist_keys(items)
    extra = sorted(k for k in out_map if k not in canonical and k != DAMAGES_KEY)

    mismatches = []
    for key in canonical + extra:
        if key == DAMAGES_KEY or key not in in_map:
            continue
        if out_map.get(key) is True and in_map[key] is False:
            mismatches.append(key)
    return mismatches


def label_for(key: str) -> str:
    if key in _LABELS:
        return _LABELS[key]
    # camelCase -> "Camel Case" for keys outside the fixed sets
    spaced = "".join(f" {c}" if c.isupper() else c for c in key)
    return spaced.strip().title()


def describe_mismatches(keys: Iterable[str]) -> List[str]:
    return [label_for(k) for k in keys]


def damage_note_changed(out_checklist: Any, in_checklist: Any) -> bool:
    """True when the return damages note is non-empty and differs from departure."""
    in_map = _as_mapping(in_checklist)
    if not in_map:
        return False
    in_note = (in_map.get(DAMAGES_KEY) or "").strip()
    if not in_note:
        return False
    out_map = _as_mapping(out_checklist) or {}
    out_note = (out_map.get(DAMAGES_KEY) or "").strip()
    return in_note != out_note
