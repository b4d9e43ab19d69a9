from collections import defaultdict
from typing import Dict, Iterable, Optional, Set

from atelier_planner.models.scheduling_model import DutyAssignment, Placement, UnknownRecordError, Workshop


class OccupancyTracker:
    """Per-run occupancy state: room and teacher usage by slot plus teaching load.

    Built fresh for each allocation run. `reserve` does no deduplication, call it
    once per placement.
    """

    def __init__(self):
        self.room_occupied: Dict[int, Dict[int, int]] = defaultdict(dict)
        self.teacher_occupied: Dict[int, Dict[str, int]] = defaultdict(dict)
        self.teacher_load_used: Dict[str, int] = defaultdict(int)
        self.duty_slots: Dict[str, Set[int]] = defaultdict(set)

    def reserve(self, slot_ids: Iterable[int], room_id: Optional[int], teacher_ids: Iterable[str],
                workshop_id: int, duration: int):
        teacher_ids = list(teacher_ids)
        for slot_id in slot_ids:
            if room_id is not None:
                self.room_occupied[slot_id][room_id] = workshop_id
            for teacher in teacher_ids:
                self.teacher_occupied[slot_id][teacher] = workshop_id
        for teacher in teacher_ids:
            self.teacher_load_used[teacher] += duration

    def reserve_duty(self, teacher: str, slot_id: int):
        self.duty_slots[teacher].add(slot_id)

    def is_room_free(self, slot_ids: Iterable[int], room_id: int) -> bool:
        return all(room_id not in self.room_occupied.get(s, {}) for s in slot_ids)

    def is_teacher_free(self, slot_ids: Iterable[int], teacher_id: str) -> bool:
        duties = self.duty_slots.get(teacher_id, set())
        for s in slot_ids:
            if teacher_id in self.teacher_occupied.get(s, {}) or s in duties:
                return False
        return True

    def load_used(self, teacher_id: str) -> int:
        return self.teacher_load_used.get(teacher_id, 0)

    @classmethod
    def seeded(cls, placements: Iterable[Placement], workshops: Dict[int, Workshop], slot_ids_of,
               duties: Iterable[DutyAssignment] = ()) -> "OccupancyTracker":
        """Tracker pre-filled from placements that already exist.

        `slot_ids_of(placement)` returns the slot ids a placement covers; load is
        recomputed from the placements rather than trusted from storage. A
        placement whose workshop is not in `workshops` raises UnknownRecordError.
        """
        tracker = cls()
        for p in placements:
            workshop = workshops.get(p.workshop_id)
            if workshop is None:
                raise UnknownRecordError("workshop", p.workshop_id)
            tracker.reserve(slot_ids_of(p), p.room_id, workshop.teachers, p.workshop_id, workshop.duration)
        for d in duties:
            tracker.reserve_duty(d.teacher, d.slot_id)
        return tracker
