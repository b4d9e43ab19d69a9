from typing import Dict, Iterable, List, Optional

from atelier_planner.config import default_blocks, default_days, default_short_day
from atelier_planner.models.scheduling_model import Day, SlotRange, TimeSlot, WEEK


def default_week_slots(days: Optional[List[Day]] = None, short_day: Day = default_short_day) -> List[TimeSlot]:
    """Generate the special-week slots: three blocks per day, two on the short day."""
    days = days or default_days
    timeslots = []
    order = 1
    for day in WEEK:
        if day not in days:
            continue
        blocks = default_blocks[:2] if day == short_day else default_blocks
        for label, start, end in blocks:
            timeslots.append(TimeSlot(
                id=order,
                day=day,
                period=label,
                order=order,
                start_time=start,
                end_time=end,
            ))
            order += 1
    return timeslots


class Calendar:
    """Ordered view over the week's active time slots.

    A slot's position inside its day drives every range computation; slots of
    different days are never contiguous.
    """

    def __init__(self, slots: Iterable[TimeSlot], short_day: Day = default_short_day):
        self.short_day = short_day
        self._slots = sorted((s for s in slots if s.active), key=lambda s: s.order)
        self._by_id: Dict[int, TimeSlot] = {s.id: s for s in self._slots}
        self._by_day: Dict[Day, List[TimeSlot]] = {}
        for s in self._slots:
            self._by_day.setdefault(s.day, []).append(s)

    def __len__(self):
        return len(self._slots)

    def __contains__(self, slot_id) -> bool:
        return slot_id in self._by_id

    @property
    def days(self) -> List[Day]:
        return [d for d in WEEK if d in self._by_day]

    def get(self, slot_id: int) -> Optional[TimeSlot]:
        return self._by_id.get(slot_id)

    def slots_ordered_by_day(self) -> List[TimeSlot]:
        return [s for d in self.days for s in self._by_day[d]]

    def slots_for_day(self, day: Day) -> List[TimeSlot]:
        return list(self._by_day.get(day, []))

    def position(self, slot: TimeSlot) -> int:
        return self._by_day[slot.day].index(slot)

    def block_start_candidates(self, duration: int, day: Day) -> List[TimeSlot]:
        day_slots = self._by_day.get(day, [])
        if duration >= 6:
            starts = day_slots[:1]
        elif duration == 4:
            starts = day_slots[:1] if day == self.short_day else day_slots[:2]
        else:
            starts = day_slots
        count = (duration + 1) // 2
        return [s for s in starts if self.position(s) + count <= len(day_slots)]

    def slot_range(self, start_slot_id: int, slot_count: int, full_day: bool = False) -> Optional[SlotRange]:
        """Blocks covered by a placement, or None when it leaves the day or the calendar."""
        start = self._by_id.get(start_slot_id)
        if start is None or slot_count < 1:
            return None
        day_slots = self._by_day[start.day]
        first = day_slots.index(start)
        if first + slot_count > len(day_slots):
            return None
        covered = day_slots[first:first + slot_count]
        return SlotRange(
            day=start.day,
            start=first,
            end=first + slot_count,
            slot_ids=[s.id for s in covered],
            full_day=full_day,
        )

    def covered_slot_ids(self, start_slot_id: int, slot_count: int) -> List[int]:
        """Slot ids an existing placement holds, clipped to its day."""
        start = self._by_id.get(start_slot_id)
        if start is None:
            return []
        day_slots = self._by_day[start.day]
        first = day_slots.index(start)
        return [s.id for s in day_slots[first:first + max(slot_count, 1)]]

    def period_label(self, slot_range: SlotRange) -> str:
        return self._by_id[slot_range.slot_ids[0]].period
