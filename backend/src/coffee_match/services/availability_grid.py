"""Weekly availability grid: 7 weekdays x {morning, afternoon} booleans.

Pure value type, no database access. Built from a ``UserAvailabilityConfig``
row (or any object with the same 14 attributes) and used by the pairing
engine for the overlap test and by the notification flow for slot lists.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from coffee_match.domain.enums import DayPeriod, Weekday

# (weekday, period, column name), in display order
SLOTS: tuple[tuple[Weekday, DayPeriod, str], ...] = tuple(
    (day, period, f"{day.value}_{period.value}")
    for day in Weekday
    for period in DayPeriod
)

SLOT_FIELDS: tuple[str, ...] = tuple(field for _, _, field in SLOTS)


@dataclass(frozen=True)
class AvailabilityGrid:
    """Immutable 14-slot grid, indexed in ``SLOTS`` order."""

    slots: tuple[bool, ...]

    def __post_init__(self):
        if len(self.slots) != len(SLOTS):
            raise ValueError(f"availability grid needs {len(SLOTS)} slots, got {len(self.slots)}")

    @classmethod
    def from_config(cls, config: Any) -> "AvailabilityGrid":
        return cls(tuple(bool(getattr(config, field, False)) for field in SLOT_FIELDS))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "AvailabilityGrid":
        """Build from a ``{"monday_morning": True, ...}`` mapping; missing keys are False."""
        return cls(tuple(bool(values.get(field, False)) for field in SLOT_FIELDS))

    @classmethod
    def empty(cls) -> "AvailabilityGrid":
        return cls((False,) * len(SLOTS))

    def as_dict(self) -> dict[str, bool]:
        return dict(zip(SLOT_FIELDS, self.slots))

    def is_empty(self) -> bool:
        """An all-false grid is incomplete; its owner cannot be matched."""
        return not any(self.slots)

    def overlaps(self, other: "AvailabilityGrid") -> bool:
        """True iff some (weekday, period) is available in both grids."""
        return any(a and b for a, b in zip(self.slots, other.slots))

    def common_slots(self, other: "AvailabilityGrid") -> list[tuple[Weekday, DayPeriod]]:
        return [
            (day, period)
            for (day, period, _), a, b in zip(SLOTS, self.slots, other.slots)
            if a and b
        ]

    def available_slots(self) -> list[tuple[Weekday, DayPeriod]]:
        return [(day, period) for (day, period, _), on in zip(SLOTS, self.slots) if on]

    def to_availability(self) -> dict[str, list[str]]:
        """Convert to the per-match availability shape: {"Monday": ["morning", ...]}."""
        availability: dict[str, list[str]] = {}
        for day, period in self.available_slots():
            availability.setdefault(day.label, []).append(period.value)
        return availability


def grid_or_none(config: Optional[Any]) -> Optional[AvailabilityGrid]:
    """Return the grid for a stored config, or None when missing or all false."""
    if config is None:
        return None
    grid = AvailabilityGrid.from_config(config)
    if grid.is_empty():
        return None
    return grid


def format_availability_slots(availability: Mapping[str, Iterable[str]] | None) -> list[dict[str, str]]:
    """Flatten per-match availability into ``[{"Day": ..., "Period": ...}]`` for email templates.

    Days are emitted Monday→Sunday regardless of input order; unknown day
    keys are dropped. Known periods are title-cased, free-text times pass
    through unchanged.
    """
    if not availability:
        return []

    by_day = {str(key).strip().lower(): value for key, value in availability.items()}
    period_names = {p.value: p.label for p in DayPeriod}

    slots: list[dict[str, str]] = []
    for day in Weekday:
        periods = by_day.get(day.value)
        if not periods:
            continue
        for period in periods:
            slots.append({"Day": day.label, "Period": period_names.get(period, period)})
    return slots
