from collections import Counter
from typing import Dict, Iterable, List, Optional

from atelier_planner.models.scheduling_model import (
    EnrollmentStatus, Placement, Room, TeacherLoad, WorkshopStatus
)
from atelier_planner.services.conflict_service import ConflictDetector


class ReportService:
    """Read-only summaries of a planning state."""

    def __init__(self, detector: ConflictDetector, rooms: Iterable[Room] = (),
                 teacher_loads: Iterable[TeacherLoad] = ()):
        self.detector = detector
        self.calendar = detector.calendar
        self.rooms: Dict[int, Room] = {r.id: r for r in rooms}
        self.teacher_loads = list(teacher_loads)

    def _enrolled(self, placement_id: Optional[int]) -> int:
        return sum(1 for e in self.detector.enrollments
                   if e.placement_id == placement_id and e.status == EnrollmentStatus.CONFIRMED)

    def _room_name(self, room_id: Optional[int]) -> str:
        room = self.rooms.get(room_id)
        if room is None:
            return "" if room_id is None else f"Room {room_id}"
        return room.name or f"Room {room.id}"

    def stats(self) -> dict:
        placements = self.detector.placements
        approved = [w for w in self.detector.workshops.values() if w.status == WorkshopStatus.APPROVED]
        placed_ids = {p.workshop_id for p in placements}
        per_day = Counter()
        for p in placements:
            slot = self.calendar.get(p.start_slot_id)
            if slot is not None:
                per_day[slot.day.value] += 1
        return {
            "approved_workshops": len(approved),
            "placed_workshops": len([w for w in approved if w.id in placed_ids]),
            "unplaced_workshops": len([w for w in approved if w.id not in placed_ids]),
            "placements": len(placements),
            "rooms_used": len({p.room_id for p in placements if p.room_id is not None}),
            "placements_per_day": {d.value: per_day.get(d.value, 0) for d in self.calendar.days},
        }

    def low_enrollment(self, threshold: int = 5) -> List[dict]:
        """Placements with fewer confirmed students than `threshold`, emptiest first."""
        rows = []
        for p in self.detector.placements:
            workshop = self.detector.workshops.get(p.workshop_id)
            slot = self.calendar.get(p.start_slot_id)
            if workshop is None or slot is None or workshop.status != WorkshopStatus.APPROVED:
                continue
            enrolled = self._enrolled(p.id)
            if enrolled >= threshold:
                continue
            rows.append((enrolled, slot.order, {
                "placement_id": p.id,
                "workshop_id": workshop.id,
                "workshop_name": workshop.name,
                "day": slot.day.value,
                "period": slot.period,
                "room": self._room_name(p.room_id),
                "enrolled": enrolled,
                "places_left": workshop.max_capacity - enrolled,
            }))
        rows.sort(key=lambda r: (r[0], r[1]))
        return [row for _, _, row in rows]

    def teacher_loads_summary(self) -> List[dict]:
        used = Counter()
        for p in self.detector.placements:
            workshop = self.detector.workshops.get(p.workshop_id)
            if workshop is None:
                continue
            for teacher in workshop.teachers:
                used[teacher] += workshop.duration
        configured = {t.teacher: t.max_periods for t in self.teacher_loads}
        teachers = sorted(set(used) | set(configured))
        return [
            {
                "teacher": t,
                "used_periods": used.get(t, 0),
                "max_periods": configured.get(t, 0),
                "remaining": None if configured.get(t, 0) <= 0 else configured[t] - used.get(t, 0),
            }
            for t in teachers
        ]

    def grid(self) -> Dict[str, Dict[str, Dict[str, dict]]]:
        """day -> period -> room name -> cell; later blocks of a long placement are continuation cells."""
        grid: Dict[str, Dict[str, Dict[str, dict]]] = {
            d.value: {s.period: {} for s in self.calendar.slots_for_day(d)} for d in self.calendar.days
        }
        for p in self.detector.placements:
            workshop = self.detector.workshops.get(p.workshop_id)
            slot_range = self.detector.placement_range(p)
            if workshop is None or slot_range is None:
                continue
            cell = {
                "placement_id": p.id,
                "workshop_id": workshop.id,
                "workshop_name": workshop.name,
                "teachers": workshop.teachers,
                "enrolled": self._enrolled(p.id),
                "max_capacity": workshop.max_capacity,
                "slot_count": p.slot_count,
                "duration": workshop.duration,
            }
            room = self._room_name(p.room_id)
            for i, slot_id in enumerate(slot_range.slot_ids):
                slot = self.calendar.get(slot_id)
                grid[slot.day.value][slot.period][room] = dict(cell, continuation=i > 0)
        return grid

    def placement_rows(self, placements: Iterable[Placement]) -> List[dict]:
        rows = []
        for p in placements:
            workshop = self.detector.workshops.get(p.workshop_id)
            slot = self.calendar.get(p.start_slot_id)
            rows.append({
                "workshop_id": p.workshop_id,
                "workshop_name": workshop.name if workshop else "",
                "teachers": workshop.teachers if workshop else [],
                "room_id": p.room_id,
                "room": self._room_name(p.room_id),
                "start_slot_id": p.start_slot_id,
                "slot_count": p.slot_count,
                "day": slot.day.value if slot else None,
                "period": slot.period if slot else None,
                "order": slot.order if slot else None,
            })
        rows.sort(key=lambda r: (r["order"] is None, r["order"] or 0, r["room"]))
        return rows
