import pytest

from atelier_planner.models.scheduling_model import DutyType, FailureReason, Placement, UnknownRecordError
from atelier_planner.services.conflict_service import ConflictDetector
from atelier_planner.services.duty_service import DutyRoster

from conftest import workshop


@pytest.fixture
def roster(calendar):
    detector = ConflictDetector(
        calendar,
        [workshop(1, duration=6, teachers=["A"], name="Hiking")],
        [Placement(id=1, workshop_id=1, room_id=None, start_slot_id=4, slot_count=3)],
    )
    return DutyRoster(detector)


def test_assign_duty(roster):
    decision = roster.assign("A", 1)
    assert decision.accepted
    assert decision.duty.id == 1
    assert decision.duty.duty_type == DutyType.ON_CALL
    assert decision.message == "On-call duty added for A"

    release = roster.assign("A", 2, DutyType.RELEASE)
    assert release.duty.id == 2
    assert release.duty.label == "Release"


def test_duty_on_workshop_day_rejected(roster):
    # Tuesday is taken by the full-day workshop
    decision = roster.assign("A", 6)
    assert not decision.accepted
    assert decision.reason == FailureReason.TEACHER_BUSY
    assert decision.conflict.conflicting_activity_name == "Hiking"


def test_duplicate_duty_rejected(roster):
    assert roster.assign("B", 7).accepted
    decision = roster.assign("B", 7, DutyType.RELEASE)
    assert decision.reason == FailureReason.TEACHER_BUSY
    assert decision.conflict is None


def test_duties_per_teacher(roster):
    assert roster.assign("B", 7).accepted
    assert roster.assign("C", 7).accepted


def test_unknown_slot(roster):
    with pytest.raises(UnknownRecordError):
        roster.assign("A", 99)


def test_remove(roster):
    duty = roster.assign("B", 7).duty
    assert roster.remove(duty.id) == duty
    assert roster.detector.duties == []
    assert roster.remove(duty.id) is None
