from collections import defaultdict
from itertools import combinations
from typing import Dict, Iterable, List, Optional

from atelier_planner.models.scheduling_model import PlanningSnapshot, Placement, Workshop
from atelier_planner.services.calendar_service import Calendar
from atelier_planner.services.conflict_service import ConflictDetector

VALID_DURATIONS = (2, 4, 6)


class SnapshotValidator:
    """Handles all pre-checks before running the engine on a snapshot."""

    def __init__(self, snapshot: PlanningSnapshot):
        self.snapshot = snapshot

    def validate(self) -> List[str]:
        errors = []
        snap = self.snapshot

        slot_ids = [s.id for s in snap.slots]
        if len(slot_ids) != len(set(slot_ids)):
            errors.append("Duplicate time slot ids.")
        orders = [s.order for s in snap.slots]
        if len(orders) != len(set(orders)):
            errors.append("Time slots must have distinct order values.")

        room_ids = {r.id for r in snap.rooms}
        if len(room_ids) != len(snap.rooms):
            errors.append("Duplicate room ids.")

        workshop_ids = set()
        for w in snap.workshops:
            if w.id in workshop_ids:
                errors.append(f"Duplicate workshop id {w.id}.")
            workshop_ids.add(w.id)
            if w.duration not in VALID_DURATIONS:
                errors.append(f"Workshop {w.name} has duration {w.duration}; expected 2, 4 or 6 periods.")
            if not 1 <= len(w.teachers) <= 3:
                errors.append(f"Workshop {w.name} must have between 1 and 3 teachers.")
            if w.max_capacity <= 0:
                errors.append(f"Workshop {w.name} must offer at least one place.")

        known_slots = set(slot_ids)
        for p in snap.placements:
            if p.workshop_id not in workshop_ids:
                errors.append(f"Placement {p.id} references unknown workshop {p.workshop_id}.")
            if p.start_slot_id not in known_slots:
                errors.append(f"Placement {p.id} references unknown slot {p.start_slot_id}.")
            if p.room_id is not None and p.room_id not in room_ids:
                errors.append(f"Placement {p.id} references unknown room {p.room_id}.")

        placement_ids = {p.id for p in snap.placements if p.id is not None}
        for e in snap.enrollments:
            if e.placement_id not in placement_ids:
                errors.append(f"Enrollment {e.id} references unknown placement {e.placement_id}.")

        for d in snap.duties:
            if d.slot_id not in known_slots:
                errors.append(f"Duty of {d.teacher} references unknown slot {d.slot_id}.")

        for t in snap.teacher_loads:
            if t.max_periods < 0:
                errors.append(f"Teacher {t.teacher} has a negative load maximum.")

        return errors


def verify_placements(calendar: Calendar, workshops: Iterable[Workshop], placements: Iterable[Placement],
                      load_max: Optional[Dict[str, int]] = None) -> List[str]:
    """Room, teacher and load violations over a set of placements (empty when sound)."""
    placements = list(placements)
    detector = ConflictDetector(calendar, workshops, placements)
    load_max = load_max or {}
    violations = []

    ranges = [(p, detector.placement_range(p)) for p in placements]
    for (a, ra), (b, rb) in combinations(ranges, 2):
        if ra is None or rb is None or not ra.overlaps(rb):
            continue
        if a.room_id is not None and a.room_id == b.room_id:
            violations.append(f"Room {a.room_id} double-booked by workshops {a.workshop_id} and {b.workshop_id} "
                              f"on {ra.day.value}.")
        wa, wb = detector.workshops.get(a.workshop_id), detector.workshops.get(b.workshop_id)
        if wa and wb:
            for teacher in sorted(set(wa.teachers) & set(wb.teachers)):
                violations.append(f"Teacher {teacher} double-booked by workshops {a.workshop_id} and "
                                  f"{b.workshop_id} on {ra.day.value}.")

    used = defaultdict(int)
    for p in placements:
        workshop = detector.workshops.get(p.workshop_id)
        if workshop:
            for teacher in workshop.teachers:
                used[teacher] += workshop.duration
    for teacher, total in sorted(used.items()):
        max_periods = load_max.get(teacher, 0)
        if max_periods > 0 and total > max_periods:
            violations.append(f"Teacher {teacher} teaches {total} periods, above the maximum of {max_periods}.")

    return violations
