"""
Overlap detection between work shifts of the same provider.

Each occurrence day of a shift becomes one time slot. Shifts without times
occupy the whole day; vacations never take part.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Set

from clinica.modules.shifts.recurrence import generate_recurring_dates
from clinica.modules.shifts.schemas import Shift


@dataclass(frozen=True)
class TimeSlot:
    shift_id: str
    provider_id: str
    start: datetime
    end: datetime

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start < other.end and self.end > other.start


def slot_for_day(shift: Shift, day: date) -> TimeSlot:
    start = datetime.combine(day, shift.start_time or time.min)
    if shift.end_time is not None and shift.end_time > (shift.start_time or time.min):
        end = datetime.combine(day, shift.end_time)
    else:
        end = datetime.combine(day + timedelta(days=1), time.min)
    return TimeSlot(shift.id, shift.provider_id, start, end)


def effective_slots(
    shift: Shift,
    window_start: date,
    window_end: date,
    all_shifts: Optional[Iterable[Shift]] = None,
) -> List[TimeSlot]:
    if shift.is_vacation:
        return []
    days = generate_recurring_dates(shift, window_start, window_end, all_shifts)
    return [slot_for_day(shift, day) for day in days]


def detect_all_shift_conflicts(
    shifts: List[Shift],
    window_start: date,
    window_end: date,
    all_shifts: Optional[List[Shift]] = None,
) -> Set[str]:
    """Ids of shifts overlapping another shift of the same provider in the window."""
    context = all_shifts if all_shifts is not None else shifts
    by_provider: Dict[str, List[TimeSlot]] = defaultdict(list)
    for shift in shifts:
        for slot in effective_slots(shift, window_start, window_end, context):
            by_provider[slot.provider_id].append(slot)

    conflicting: Set[str] = set()
    for slots in by_provider.values():
        slots.sort(key=lambda s: s.start)
        for i, slot_a in enumerate(slots):
            for slot_b in slots[i + 1:]:
                if slot_b.start >= slot_a.end:
                    break
                if slot_a.shift_id != slot_b.shift_id and slot_a.overlaps(slot_b):
                    conflicting.add(slot_a.shift_id)
                    conflicting.add(slot_b.shift_id)
    return conflicting


def find_conflicts_for_shift(
    candidate: Shift,
    existing: List[Shift],
    window_start: date,
    window_end: date,
) -> List[Shift]:
    """Existing shifts that a new or edited shift would overlap."""
    if candidate.is_vacation or candidate.start_time is None or candidate.end_time is None:
        return []
    others = [s for s in existing if s.id != candidate.id and s.provider_id == candidate.provider_id]
    candidate_slots = effective_slots(candidate, window_start, window_end, existing)
    if not candidate_slots:
        return []
    found = []
    for other in others:
        other_slots = effective_slots(other, window_start, window_end, existing)
        if any(a.overlaps(b) for a in candidate_slots for b in other_slots):
            found.append(other)
    return found
