import itertools
import logging
import threading
from collections import defaultdict
from contextlib import ExitStack
from typing import Dict, Iterable, List, Optional, Set

from atelier_planner.models.scheduling_model import (
    BulkEnrollmentReport, Conflict, Enrollment, EnrollmentDecision, EnrollmentStatus,
    FailureReason, Placement, UnknownRecordError, category_of
)
from atelier_planner.services.conflict_service import ConflictDetector, format_conflict_message

logger = logging.getLogger(__name__)


class EnrollmentBook:
    """Student enrollments on placed workshops.

    Check and insert run under a per-student and a per-placement lock held by
    this book, so threads sharing one book cannot both take the last seat.
    Each API request builds its own book from a snapshot; across requests the
    host store must serialize the insert (transaction or row lock).
    """

    def __init__(self, detector: ConflictDetector, quota_percent: int = 100,
                 locked_students: Iterable[int] = ()):
        self.detector = detector
        self.quota_percent = quota_percent
        self.locked_students: Set[int] = set(locked_students)
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._ids = itertools.count(max((e.id for e in detector.enrollments), default=0) + 1)

    @property
    def enrollments(self) -> List[Enrollment]:
        return self.detector.enrollments

    def _lock(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks[key]

    def _placement(self, placement_id: int) -> Placement:
        placement = self.detector.placement_by_id(placement_id)
        if placement is None:
            raise UnknownRecordError("placement", placement_id)
        return placement

    def confirmed_count(self, placement_id: int) -> int:
        return sum(1 for e in self.enrollments
                   if e.placement_id == placement_id and e.status == EnrollmentStatus.CONFIRMED)

    def capacity(self, placement: Placement, manual: bool = False) -> int:
        """Seats open on a placement; self-enrollment only sees the quota share."""
        workshop = self.detector.workshops.get(placement.workshop_id)
        max_capacity = workshop.max_capacity if workshop else 0
        if manual:
            return max_capacity
        return max_capacity * self.quota_percent // 100

    def _reject(self, reason: FailureReason, message: str, conflict: Optional[Conflict] = None) -> EnrollmentDecision:
        return EnrollmentDecision(
            accepted=False,
            reason=reason,
            category=category_of(reason),
            conflict=conflict,
            message=message,
        )

    def enroll(self, student_id: int, placement_id: int, manual: bool = False,
               force: bool = False) -> EnrollmentDecision:
        """Enroll a student on one placement.

        `manual` marks an administrator enrollment: locked students may still be
        enrolled and the full capacity applies. `force` additionally skips the
        time-conflict check.
        """
        placement = self._placement(placement_id)

        with ExitStack() as stack:
            # student lock first, always, to keep the acquisition order fixed
            stack.enter_context(self._lock(f"student:{student_id}"))
            stack.enter_context(self._lock(f"placement:{placement_id}"))

            if not manual and student_id in self.locked_students:
                return self._reject(FailureReason.ENROLLMENTS_LOCKED,
                                    "Enrollments are validated and can no longer be changed")

            if any(e.student_id == student_id and e.placement_id == placement_id
                   and e.status == EnrollmentStatus.CONFIRMED for e in self.enrollments):
                return self._reject(FailureReason.ALREADY_ENROLLED, "Already enrolled on this slot")

            if not force:
                slot_range = self.detector.placement_range(placement)
                conflict = self.detector.check_student_conflict(student_id, slot_range) if slot_range else None
                if conflict:
                    logger.info("Student %s rejected on placement %s: %s",
                                student_id, placement_id, conflict.conflicting_activity_name)
                    return self._reject(FailureReason.STUDENT_BUSY, format_conflict_message(conflict), conflict)

            capacity = self.capacity(placement, manual)
            if self.confirmed_count(placement_id) >= capacity:
                return self._reject(FailureReason.WORKSHOP_FULL, "No places left")

            enrollment = Enrollment(
                id=self._next_id(),
                student_id=student_id,
                placement_id=placement_id,
                manual=manual,
            )
            self.enrollments.append(enrollment)

        workshop = self.detector.workshops.get(placement.workshop_id)
        name = workshop.name if workshop else f"Workshop {placement.workshop_id}"
        return EnrollmentDecision(accepted=True, enrollment=enrollment, message=f"Enrolled in \"{name}\"")

    def enroll_many(self, placement_id: int, student_ids: Iterable[int], force: bool = False) -> BulkEnrollmentReport:
        """Administrator enrollment of a group of students, e.g. a whole class.

        A student already confirmed on any occurrence of the same workshop is
        reported in `already_enrolled`.
        """
        placement = self._placement(placement_id)
        occurrences = {p.id for p in self.detector.placements if p.workshop_id == placement.workshop_id}
        occurrences.add(placement_id)
        report = BulkEnrollmentReport()
        seen = set()
        for student_id in student_ids:
            if student_id in seen:
                continue
            seen.add(student_id)
            if any(e.student_id == student_id and e.placement_id in occurrences
                   and e.status == EnrollmentStatus.CONFIRMED for e in self.enrollments):
                report.already_enrolled.append(student_id)
                continue
            decision = self.enroll(student_id, placement_id, manual=True, force=force)
            if decision.accepted:
                report.enrolled.append(decision.enrollment)
            else:
                report.rejected[student_id] = decision
        logger.info("Bulk enrollment on placement %s: %d enrolled, %d already, %d rejected",
                    placement_id, len(report.enrolled), len(report.already_enrolled), len(report.rejected))
        return report

    def cancel(self, enrollment_id: int, manual: bool = False) -> Enrollment:
        enrollment = next((e for e in self.enrollments if e.id == enrollment_id), None)
        if enrollment is None:
            raise UnknownRecordError("enrollment", enrollment_id)
        if not manual and enrollment.student_id in self.locked_students:
            raise PermissionError("Enrollments are validated and can no longer be changed")
        enrollment.status = EnrollmentStatus.CANCELLED
        return enrollment

    def lock_student(self, student_id: int) -> bool:
        """Student validates their choices; refused when nothing is confirmed yet."""
        if student_id in self.locked_students:
            return False
        if not any(e.student_id == student_id and e.status == EnrollmentStatus.CONFIRMED
                   for e in self.enrollments):
            return False
        self.locked_students.add(student_id)
        return True

    def invalidate_placement(self, placement_id: int) -> List[Enrollment]:
        """Cancel every confirmed enrollment bound to a deleted placement."""
        cancelled = []
        for e in self.enrollments:
            if e.placement_id == placement_id and e.status == EnrollmentStatus.CONFIRMED:
                e.status = EnrollmentStatus.CANCELLED
                cancelled.append(e)
        self.detector.placements = [p for p in self.detector.placements if p.id != placement_id]
        return cancelled

    def _next_id(self) -> int:
        with self._guard:
            return next(self._ids)
