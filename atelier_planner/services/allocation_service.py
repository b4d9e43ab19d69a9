import logging
from typing import Dict, Iterable, List, Optional, Set

from atelier_planner.models.scheduling_model import (
    AllocationResult, Day, DutyAssignment, FailureReason, Placement, PlacementFailure,
    Room, TeacherLoad, Workshop, WorkshopStatus, category_of
)
from atelier_planner.services.calendar_service import Calendar
from atelier_planner.services.feasibility_service import FeasibilityChecker
from atelier_planner.services.occupancy_service import OccupancyTracker

logger = logging.getLogger(__name__)


class AllocationService:
    """Greedy batch allocator.

    Longer workshops go first. Each workshop is repeated across the week until
    its teachers' load budget is spent or no (day, slot, room) admits another
    occurrence. Accepted placements are never rolled back within a run.
    """

    def __init__(self, calendar: Calendar, rooms: Iterable[Room],
                 availability: Optional[Dict[str, Set[int]]] = None,
                 teacher_loads: Iterable[TeacherLoad] = (),
                 max_occurrences: int = 0):
        self.calendar = calendar
        self.rooms = sorted((r for r in rooms if r.available), key=lambda r: r.capacity, reverse=True)
        self.availability = availability or {}
        self.load_max = {t.teacher: t.max_periods for t in teacher_loads}
        self.max_occurrences = max_occurrences

    def allocate(self, workshops: List[Workshop], existing_placements: Iterable[Placement] = (),
                 duties: Iterable[DutyAssignment] = (), catalogue: Iterable[Workshop] = ()) -> AllocationResult:
        """Place `workshops` around `existing_placements`.

        `catalogue` lists every known workshop, so the teachers of existing
        placements outside the batch are still blocked.
        """
        existing_placements = list(existing_placements)
        by_id = {w.id: w for w in catalogue}
        by_id.update((w.id, w) for w in workshops)
        tracker = OccupancyTracker.seeded(
            existing_placements, by_id,
            lambda p: self.calendar.covered_slot_ids(p.start_slot_id, p.slot_count),
            duties,
        )
        checker = FeasibilityChecker(self.calendar, tracker, self.availability, self.load_max)

        day_counts: Dict[Day, int] = {d: 0 for d in self.calendar.days}
        for p in existing_placements:
            slot = self.calendar.get(p.start_slot_id)
            if slot is not None:
                day_counts[slot.day] += 1

        result = AllocationResult()
        candidates = self._schedulable(workshops)
        logger.info("Starting allocation of %d workshops over %d slots and %d rooms",
                    len(candidates), len(self.calendar), len(self.rooms))

        for workshop in candidates:
            placed, reason = self._place_occurrences(workshop, checker, tracker, day_counts)
            result.placed.extend(placed)
            if not placed:
                logger.warning("Workshop %s (%s) not placed: %s", workshop.id, workshop.name, reason.value)
                result.failures.append(PlacementFailure(
                    workshop_id=workshop.id,
                    workshop_name=workshop.name,
                    reason=reason,
                    category=category_of(reason),
                ))

        logger.info("Allocation finished: %d placements, %d workshops failed",
                    len(result.placed), len(result.failures))
        return result

    def _schedulable(self, workshops: List[Workshop]) -> List[Workshop]:
        approved = [w for w in workshops if w.status == WorkshopStatus.APPROVED]
        skipped = len(workshops) - len(approved)
        if skipped:
            logger.debug("Skipping %d workshops that are not approved", skipped)
        # sorted() is stable: equal keys keep their input order
        return sorted(approved, key=lambda w: (w.duration, w.max_capacity), reverse=True)

    def _rank_days(self, day_counts: Dict[Day, int]) -> List[Day]:
        natural = {d: i for i, d in enumerate(self.calendar.days)}
        return sorted(self.calendar.days, key=lambda d: (day_counts[d], natural[d]))

    def _place_occurrences(self, workshop: Workshop, checker: FeasibilityChecker,
                           tracker: OccupancyTracker, day_counts: Dict[Day, int]):
        placed: List[Placement] = []
        reason = FailureReason.OUT_OF_CALENDAR if self.rooms else FailureReason.NO_ROOMS

        while True:
            if self.max_occurrences and len(placed) >= self.max_occurrences:
                break
            if not checker.load_allows(workshop):
                reason = FailureReason.LOAD_EXCEEDED
                break
            placement, last_reason = self._place_one(workshop, checker, tracker, day_counts)
            if placement is None:
                if last_reason is not None:
                    reason = last_reason
                break
            placed.append(placement)

        return placed, reason

    def _place_one(self, workshop: Workshop, checker: FeasibilityChecker,
                   tracker: OccupancyTracker, day_counts: Dict[Day, int]):
        last_reason = None
        for day in self._rank_days(day_counts):
            for start_slot in self.calendar.block_start_candidates(workshop.duration, day):
                for room in self.rooms:
                    verdict = checker.can_place(workshop, start_slot, room)
                    if not verdict.ok:
                        last_reason = verdict.reason
                        continue
                    slot_ids = checker.slot_range(workshop, start_slot).slot_ids
                    tracker.reserve(slot_ids, room.id, workshop.teachers, workshop.id, workshop.duration)
                    day_counts[day] += 1
                    logger.info("Workshop %s (%s) placed on %s %s in room %s",
                                workshop.id, workshop.name, day.value, start_slot.period, room.id)
                    return Placement(
                        workshop_id=workshop.id,
                        room_id=room.id,
                        start_slot_id=start_slot.id,
                        slot_count=workshop.slot_count,
                    ), None
        return None, last_reason
