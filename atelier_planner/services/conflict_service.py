import logging
from typing import Dict, Iterable, List, Optional

from atelier_planner.models.scheduling_model import (
    Conflict, ConflictType, Day, DutyAssignment, Enrollment, EnrollmentStatus,
    Placement, SlotRange, Workshop
)
from atelier_planner.services.calendar_service import Calendar

logger = logging.getLogger(__name__)


def ranges_conflict(a: SlotRange, b: SlotRange) -> bool:
    """Half-open overlap on the same day; a full-day range blocks the whole day."""
    return a.overlaps(b)


def format_conflict_message(conflict: Conflict) -> str:
    when = f"{conflict.day.value.capitalize()} {conflict.period}" if conflict.day else ""
    if conflict.type == ConflictType.TEACHER:
        return f"Teacher Conflict: already busy with \"{conflict.conflicting_activity_name}\" on {when}."
    if conflict.type == ConflictType.STUDENT:
        return f"Schedule Conflict: already enrolled in \"{conflict.conflicting_activity_name}\" ({when})."
    if conflict.type == ConflictType.ROOM:
        return f"Room Conflict: the room is already occupied by \"{conflict.conflicting_activity_name}\" on {when}."
    return f"Invalid placement: {conflict.conflicting_activity_name}."


def format_suggestions_message(vacant_blocks: Dict[Day, List[str]]) -> str:
    """Format free blocks into a readable message."""
    messages = []
    for day, blocks in vacant_blocks.items():
        if blocks:
            messages.append(f"{day.value.capitalize()}: {', '.join(blocks)}")
    if messages:
        return "Available blocks: " + ", ".join(messages)
    return ""


class ConflictDetector:
    """Interval-overlap checks shared by manual placement, duty assignment and enrollment.

    Every check works on the canonical `SlotRange` (block positions within a day),
    so a check of A against B always agrees with B against A.
    """

    def __init__(self, calendar: Calendar, workshops: Iterable[Workshop],
                 placements: Iterable[Placement], enrollments: Iterable[Enrollment] = (),
                 duties: Iterable[DutyAssignment] = ()):
        self.calendar = calendar
        self.workshops: Dict[int, Workshop] = {w.id: w for w in workshops}
        self.placements: List[Placement] = list(placements)
        self.enrollments: List[Enrollment] = list(enrollments)
        self.duties: List[DutyAssignment] = list(duties)

    def placement_by_id(self, placement_id: int) -> Optional[Placement]:
        return next((p for p in self.placements if p.id == placement_id), None)

    def placement_range(self, placement: Placement) -> Optional[SlotRange]:
        workshop = self.workshops.get(placement.workshop_id)
        full_day = bool(workshop and workshop.duration >= 6)
        slot_range = self.calendar.slot_range(placement.start_slot_id, placement.slot_count, full_day=full_day)
        if slot_range is None:
            # Stored placement overflowing its day: keep what lies inside the day
            slot_ids = self.calendar.covered_slot_ids(placement.start_slot_id, placement.slot_count)
            if not slot_ids:
                return None
            first = self.calendar.get(slot_ids[0])
            start = self.calendar.position(first)
            slot_range = SlotRange(day=first.day, start=start, end=start + len(slot_ids),
                                   slot_ids=slot_ids, full_day=full_day)
        return slot_range

    def range_for(self, workshop: Workshop, start_slot_id: int) -> Optional[SlotRange]:
        return self.calendar.slot_range(start_slot_id, workshop.slot_count, full_day=workshop.duration >= 6)

    def _activity_name(self, placement: Placement) -> str:
        workshop = self.workshops.get(placement.workshop_id)
        return workshop.name if workshop else f"Workshop {placement.workshop_id}"

    def _period(self, slot_range: SlotRange) -> str:
        return self.calendar.period_label(slot_range)

    def check_teacher_conflict(self, teacher: str, slot_range: SlotRange,
                               exclude_placement_id: Optional[int] = None) -> Optional[Conflict]:
        for placement in self.placements:
            if exclude_placement_id is not None and placement.id == exclude_placement_id:
                continue
            workshop = self.workshops.get(placement.workshop_id)
            if workshop is None or teacher not in workshop.teachers:
                continue
            other = self.placement_range(placement)
            if other is not None and ranges_conflict(slot_range, other):
                logger.debug("Teacher %s busy with workshop %s", teacher, workshop.id)
                return Conflict(
                    type=ConflictType.TEACHER,
                    conflicting_activity_name=workshop.name,
                    day=other.day,
                    period=self._period(other),
                )

        # Duties are single-slot reservations
        for duty in self.duties:
            if duty.teacher != teacher:
                continue
            other = self.calendar.slot_range(duty.slot_id, 1)
            if other is not None and ranges_conflict(slot_range, other):
                return Conflict(
                    type=ConflictType.TEACHER,
                    conflicting_activity_name=duty.label,
                    day=other.day,
                    period=self._period(other),
                    activity_type=duty.duty_type.value,
                )
        return None

    def check_room_conflict(self, room_id: int, slot_range: SlotRange,
                            exclude_placement_id: Optional[int] = None,
                            exclude_workshop_id: Optional[int] = None) -> Optional[Conflict]:
        for placement in self.placements:
            if placement.room_id != room_id:
                continue
            if exclude_placement_id is not None and placement.id == exclude_placement_id:
                continue
            if exclude_workshop_id is not None and placement.workshop_id == exclude_workshop_id:
                continue
            other = self.placement_range(placement)
            if other is not None and ranges_conflict(slot_range, other):
                return Conflict(
                    type=ConflictType.ROOM,
                    conflicting_activity_name=self._activity_name(placement),
                    day=other.day,
                    period=self._period(other),
                )
        return None

    def check_student_conflict(self, student_id: int, slot_range: SlotRange,
                               exclude_enrollment_id: Optional[int] = None) -> Optional[Conflict]:
        for enrollment in self.enrollments:
            if enrollment.student_id != student_id or enrollment.status != EnrollmentStatus.CONFIRMED:
                continue
            if exclude_enrollment_id is not None and enrollment.id == exclude_enrollment_id:
                continue
            placement = self.placement_by_id(enrollment.placement_id)
            if placement is None:
                continue
            other = self.placement_range(placement)
            if other is not None and ranges_conflict(slot_range, other):
                return Conflict(
                    type=ConflictType.STUDENT,
                    conflicting_activity_name=self._activity_name(placement),
                    day=other.day,
                    period=self._period(other),
                )
        return None

    def vacant_blocks_for_teacher(self, teacher: str, days: Iterable[Day]) -> Dict[Day, List[str]]:
        """Blocks on the given days where the teacher has neither a workshop nor a duty."""
        vacant: Dict[Day, List[str]] = {}
        for day in days:
            free = []
            for slot in self.calendar.slots_for_day(day):
                single = self.calendar.slot_range(slot.id, 1)
                if self.check_teacher_conflict(teacher, single) is None:
                    free.append(slot.period)
            vacant[day] = free
        return vacant

    def vacant_blocks_for_room(self, room_id: int, days: Iterable[Day]) -> Dict[Day, List[str]]:
        vacant: Dict[Day, List[str]] = {}
        for day in days:
            vacant[day] = [
                slot.period for slot in self.calendar.slots_for_day(day)
                if self.check_room_conflict(room_id, self.calendar.slot_range(slot.id, 1)) is None
            ]
        return vacant
