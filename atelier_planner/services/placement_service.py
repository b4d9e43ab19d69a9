import logging
from typing import Dict, Iterable, Optional

from atelier_planner.models.scheduling_model import (
    Conflict, ConflictType, FailureReason, Placement, PlacementDecision, Room,
    TeacherLoad, UnknownRecordError, Workshop, WorkshopStatus, category_of
)
from atelier_planner.services.conflict_service import (
    ConflictDetector, format_conflict_message, format_suggestions_message
)

logger = logging.getLogger(__name__)


class PlacementService:
    """Single-placement requests issued by an administrator.

    Same conflict rules as the allocator but answered one request at a time,
    with the colliding activity reported back to the caller.
    """

    def __init__(self, detector: ConflictDetector, rooms: Iterable[Room],
                 teacher_loads: Iterable[TeacherLoad] = ()):
        self.detector = detector
        self.calendar = detector.calendar
        self.rooms: Dict[int, Room] = {r.id: r for r in rooms}
        self.load_max: Dict[str, int] = {t.teacher: t.max_periods for t in teacher_loads}

    def _workshop(self, workshop_id: int) -> Workshop:
        workshop = self.detector.workshops.get(workshop_id)
        if workshop is None or workshop.status != WorkshopStatus.APPROVED:
            raise UnknownRecordError("approved workshop", workshop_id)
        return workshop

    def _room(self, room_id: int) -> Room:
        room = self.rooms.get(room_id)
        if room is None:
            raise UnknownRecordError("room", room_id)
        return room

    def _reject(self, reason: FailureReason, conflict: Optional[Conflict] = None,
                message: str = "", suggestions: str = "") -> PlacementDecision:
        if conflict is not None and not message:
            message = format_conflict_message(conflict)
        logger.info("Placement rejected: %s %s", reason.value, message)
        return PlacementDecision(
            accepted=False,
            reason=reason,
            category=category_of(reason),
            conflict=conflict,
            message=message,
            suggestions=suggestions,
        )

    def load_used(self, teacher: str, exclude_placement_id: Optional[int] = None) -> int:
        used = 0
        for p in self.detector.placements:
            if exclude_placement_id is not None and p.id == exclude_placement_id:
                continue
            workshop = self.detector.workshops.get(p.workshop_id)
            if workshop is not None and teacher in workshop.teachers:
                used += workshop.duration
        return used

    def _check(self, workshop: Workshop, room: Room, start_slot_id: int,
               exclude_placement_id: Optional[int], force: bool) -> Optional[PlacementDecision]:
        if start_slot_id not in self.calendar:
            raise UnknownRecordError("slot", start_slot_id)
        slot_range = self.detector.range_for(workshop, start_slot_id)
        if slot_range is None:
            return self._reject(
                FailureReason.OUT_OF_CALENDAR,
                Conflict(type=ConflictType.STRUCTURAL,
                         conflicting_activity_name="not enough blocks left in the day from this slot"),
            )

        for p in self.detector.placements:
            if p.id != exclude_placement_id and p.workshop_id == workshop.id and p.start_slot_id == start_slot_id:
                return self._reject(FailureReason.ALREADY_PLACED,
                                    message="This workshop is already placed on this slot")

        if not force:
            if room.capacity < workshop.max_capacity:
                return self._reject(FailureReason.ROOM_TOO_SMALL,
                                    message=f"Room {room.name or room.id} seats {room.capacity}, "
                                            f"workshop needs {workshop.max_capacity}")
            if workshop.required_room_type and workshop.required_room_type != room.room_type:
                return self._reject(FailureReason.ROOM_TYPE_MISMATCH,
                                    message=f"Workshop requires a room of type {workshop.required_room_type}")

        # own occurrences are caught by the teacher check below
        conflict = self.detector.check_room_conflict(room.id, slot_range,
                                                     exclude_placement_id=exclude_placement_id,
                                                     exclude_workshop_id=workshop.id)
        if conflict:
            vacant = self.detector.vacant_blocks_for_room(room.id, [slot_range.day])
            return self._reject(FailureReason.ROOM_BUSY, conflict, suggestions=format_suggestions_message(vacant))

        for teacher in workshop.teachers:
            conflict = self.detector.check_teacher_conflict(teacher, slot_range, exclude_placement_id)
            if conflict:
                vacant = self.detector.vacant_blocks_for_teacher(teacher, [slot_range.day])
                return self._reject(FailureReason.TEACHER_BUSY, conflict,
                                    suggestions=format_suggestions_message(vacant))

        if not force:
            for teacher in workshop.teachers:
                max_periods = self.load_max.get(teacher, 0)
                if max_periods > 0 and self.load_used(teacher, exclude_placement_id) + workshop.duration > max_periods:
                    return self._reject(FailureReason.LOAD_EXCEEDED,
                                        message=f"Teacher {teacher} would exceed {max_periods} periods")
        return None

    def place(self, workshop_id: int, room_id: int, start_slot_id: int, force: bool = False) -> PlacementDecision:
        """Add one more occurrence of an approved workshop."""
        workshop = self._workshop(workshop_id)
        room = self._room(room_id)
        rejection = self._check(workshop, room, start_slot_id, None, force)
        if rejection:
            return rejection

        placement = Placement(
            id=self._next_id(),
            workshop_id=workshop.id,
            room_id=room.id,
            start_slot_id=start_slot_id,
            slot_count=workshop.slot_count,
        )
        self.detector.placements.append(placement)
        iteration = sum(1 for p in self.detector.placements if p.workshop_id == workshop.id)
        logger.info("Workshop %s placed manually (occurrence %d)", workshop.id, iteration)
        return PlacementDecision(
            accepted=True,
            placement=placement,
            message=f"Workshop \"{workshop.name}\" placed (occurrence {iteration})",
        )

    def move(self, placement_id: int, room_id: Optional[int] = None, start_slot_id: Optional[int] = None,
             force: bool = False) -> PlacementDecision:
        """Re-check an existing placement at a new room and/or start slot."""
        current = self.detector.placement_by_id(placement_id)
        if current is None:
            raise UnknownRecordError("placement", placement_id)
        workshop = self._workshop(current.workshop_id)
        room = self._room(room_id if room_id is not None else current.room_id)
        start_slot_id = start_slot_id if start_slot_id is not None else current.start_slot_id

        rejection = self._check(workshop, room, start_slot_id, placement_id, force)
        if rejection:
            return rejection

        moved = current.model_copy(update={"room_id": room.id, "start_slot_id": start_slot_id})
        self.detector.placements = [moved if p.id == placement_id else p for p in self.detector.placements]
        return PlacementDecision(accepted=True, placement=moved, message="Placement updated")

    def _next_id(self) -> int:
        ids = [p.id for p in self.detector.placements if p.id is not None]
        return max(ids, default=0) + 1
