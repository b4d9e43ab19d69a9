import logging
from typing import Optional

from atelier_planner.models.scheduling_model import (
    DutyAssignment, DutyType, FailureReason, DutyDecision, UnknownRecordError, category_of
)
from atelier_planner.services.conflict_service import ConflictDetector, format_conflict_message

logger = logging.getLogger(__name__)


class DutyRoster:
    """On-call and release duties: one-slot teacher commitments outside workshops."""

    def __init__(self, detector: ConflictDetector):
        self.detector = detector

    def assign(self, teacher: str, slot_id: int, duty_type: DutyType = DutyType.ON_CALL) -> DutyDecision:
        slot_range = self.detector.calendar.slot_range(slot_id, 1)
        if slot_range is None:
            raise UnknownRecordError("slot", slot_id)

        if any(d.teacher == teacher and d.slot_id == slot_id for d in self.detector.duties):
            return DutyDecision(
                accepted=False,
                reason=FailureReason.TEACHER_BUSY,
                category=category_of(FailureReason.TEACHER_BUSY),
                message=f"Teacher {teacher} already has a duty on this slot",
            )

        conflict = self.detector.check_teacher_conflict(teacher, slot_range)
        if conflict:
            logger.info("Duty for %s on slot %s rejected", teacher, slot_id)
            return DutyDecision(
                accepted=False,
                reason=FailureReason.TEACHER_BUSY,
                category=category_of(FailureReason.TEACHER_BUSY),
                conflict=conflict,
                message=format_conflict_message(conflict),
            )

        duty = DutyAssignment(id=self._next_id(), teacher=teacher, slot_id=slot_id, duty_type=duty_type)
        self.detector.duties.append(duty)
        return DutyDecision(accepted=True, duty=duty, message=f"{duty.label} added for {teacher}")

    def remove(self, duty_id: int) -> Optional[DutyAssignment]:
        for duty in self.detector.duties:
            if duty.id == duty_id:
                self.detector.duties.remove(duty)
                return duty
        return None

    def _next_id(self) -> int:
        return max((d.id for d in self.detector.duties if d.id is not None), default=0) + 1
