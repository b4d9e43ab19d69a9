from typing import Dict, Optional, Set

from atelier_planner.models.scheduling_model import (
    FailureReason, FeasibilityResult, Room, SlotRange, TimeSlot, Workshop
)
from atelier_planner.services.calendar_service import Calendar
from atelier_planner.services.occupancy_service import OccupancyTracker


class FeasibilityChecker:
    """Decides whether one occurrence of a workshop fits a (start slot, room) pair."""

    def __init__(self, calendar: Calendar, tracker: OccupancyTracker,
                 availability: Optional[Dict[str, Set[int]]] = None,
                 load_max: Optional[Dict[str, int]] = None):
        self.calendar = calendar
        self.tracker = tracker
        self.availability = availability or {}
        self.load_max = load_max or {}

    def slot_range(self, workshop: Workshop, start_slot: TimeSlot) -> Optional[SlotRange]:
        return self.calendar.slot_range(start_slot.id, workshop.slot_count, full_day=workshop.duration >= 6)

    def is_declared_available(self, teacher: str, slot_ids) -> bool:
        # No declaration at all means available everywhere
        declared = self.availability.get(teacher)
        if declared is None:
            return True
        return all(s in declared for s in slot_ids)

    def remaining_load(self, teacher: str) -> Optional[int]:
        """Periods left in the teacher's budget, None when unlimited."""
        max_periods = self.load_max.get(teacher, 0)
        if max_periods <= 0:
            return None
        return max_periods - self.tracker.load_used(teacher)

    def load_allows(self, workshop: Workshop) -> bool:
        for teacher in workshop.teachers:
            remaining = self.remaining_load(teacher)
            if remaining is not None and remaining < workshop.duration:
                return False
        return True

    def can_place(self, workshop: Workshop, start_slot: TimeSlot, room: Room) -> FeasibilityResult:
        slot_range = self.slot_range(workshop, start_slot)
        if slot_range is None:
            return FeasibilityResult(ok=False, reason=FailureReason.OUT_OF_CALENDAR)
        slot_ids = slot_range.slot_ids

        for teacher in workshop.teachers:
            if not self.is_declared_available(teacher, slot_ids):
                return FeasibilityResult(ok=False, reason=FailureReason.TEACHER_UNAVAILABLE)

        for teacher in workshop.teachers:
            if not self.tracker.is_teacher_free(slot_ids, teacher):
                return FeasibilityResult(ok=False, reason=FailureReason.TEACHER_BUSY)

        if room.capacity < workshop.max_capacity:
            return FeasibilityResult(ok=False, reason=FailureReason.ROOM_TOO_SMALL)

        if workshop.required_room_type and workshop.required_room_type != room.room_type:
            return FeasibilityResult(ok=False, reason=FailureReason.ROOM_TYPE_MISMATCH)

        if not room.available or not self.tracker.is_room_free(slot_ids, room.id):
            return FeasibilityResult(ok=False, reason=FailureReason.ROOM_BUSY)

        if not self.load_allows(workshop):
            return FeasibilityResult(ok=False, reason=FailureReason.LOAD_EXCEEDED)

        return FeasibilityResult(ok=True)
