from concurrent.futures import ThreadPoolExecutor

import pytest

from atelier_planner.models.scheduling_model import (
    Enrollment, EnrollmentStatus, ErrorCategory, FailureReason, Placement, UnknownRecordError
)
from atelier_planner.services.conflict_service import ConflictDetector
from atelier_planner.services.enrollment_service import EnrollmentBook

from conftest import workshop


def make_book(calendar, quota_percent=100, locked_students=(), enrollments=(), extra_placements=()):
    workshops = [
        workshop(1, duration=6, max_capacity=4, name="Hiking"),
        workshop(2, duration=2, max_capacity=2, name="Chess"),
        workshop(3, duration=2, max_capacity=10, name="Cooking"),
    ]
    placements = [
        Placement(id=1, workshop_id=1, room_id=1, start_slot_id=1, slot_count=3),
        Placement(id=2, workshop_id=2, room_id=2, start_slot_id=3, slot_count=1),
        Placement(id=3, workshop_id=3, room_id=1, start_slot_id=4, slot_count=1),
    ] + list(extra_placements)
    detector = ConflictDetector(calendar, workshops, placements, enrollments)
    return EnrollmentBook(detector, quota_percent, locked_students)


@pytest.fixture
def book(calendar):
    return make_book(calendar)


def test_enroll(book):
    decision = book.enroll(1, 3)
    assert decision.accepted
    assert decision.enrollment.id == 1
    assert decision.enrollment.status == EnrollmentStatus.CONFIRMED
    assert decision.message == 'Enrolled in "Cooking"'


def test_enrollments_are_confirmed_or_cancelled():
    assert [s.value for s in EnrollmentStatus] == ["confirmed", "cancelled"]


def test_ids_continue_after_existing(calendar):
    book = make_book(calendar, enrollments=[Enrollment(id=41, student_id=9, placement_id=3)])
    assert book.enroll(1, 3).enrollment.id == 42


def test_full_day_workshop_blocks_same_day(book):
    assert book.enroll(1, 1).accepted
    decision = book.enroll(1, 2)
    assert decision.reason == FailureReason.STUDENT_BUSY
    assert decision.category == ErrorCategory.AVAILABILITY
    assert decision.conflict.conflicting_activity_name == "Hiking"
    assert book.enroll(1, 3).accepted


def test_conflict_found_from_either_side(book):
    assert book.enroll(2, 2).accepted
    decision = book.enroll(2, 1)
    assert decision.reason == FailureReason.STUDENT_BUSY
    assert decision.conflict.conflicting_activity_name == "Chess"


def test_admin_force_skips_time_conflict(book):
    assert book.enroll(1, 1).accepted
    assert not book.enroll(1, 2, manual=True).accepted
    forced = book.enroll(1, 2, manual=True, force=True)
    assert forced.accepted
    assert forced.enrollment.manual


def test_already_enrolled(book):
    assert book.enroll(1, 3).accepted
    assert book.enroll(1, 3).reason == FailureReason.ALREADY_ENROLLED


def test_workshop_full(book):
    assert book.enroll(1, 2).accepted
    assert book.enroll(2, 2).accepted
    decision = book.enroll(3, 2)
    assert decision.reason == FailureReason.WORKSHOP_FULL
    assert decision.category == ErrorCategory.CAPACITY


def test_quota_applies_to_self_enrollment_only(calendar):
    book = make_book(calendar, quota_percent=50)
    assert book.capacity(book.detector.placement_by_id(2)) == 1
    assert book.enroll(1, 2).accepted
    assert book.enroll(2, 2).reason == FailureReason.WORKSHOP_FULL
    assert book.enroll(2, 2, manual=True).accepted


def test_locked_student(calendar):
    book = make_book(calendar, locked_students=[5])
    assert book.enroll(5, 3).reason == FailureReason.ENROLLMENTS_LOCKED
    assert book.enroll(5, 3, manual=True).accepted


def test_lock_student_needs_a_confirmed_enrollment(book):
    assert not book.lock_student(1)
    enrollment = book.enroll(1, 3).enrollment
    assert book.lock_student(1)
    assert not book.lock_student(1)
    with pytest.raises(PermissionError):
        book.cancel(enrollment.id)
    assert book.cancel(enrollment.id, manual=True).status == EnrollmentStatus.CANCELLED


def test_cancel_frees_the_seat(book):
    first = book.enroll(1, 2).enrollment
    assert book.enroll(2, 2).accepted
    book.cancel(first.id)
    assert book.confirmed_count(2) == 1
    assert book.enroll(3, 2).accepted
    # cancelled enrollments no longer block the student's time
    assert book.enroll(1, 1).accepted


def test_cancel_unknown(book):
    with pytest.raises(UnknownRecordError):
        book.cancel(77)


def test_unknown_placement(book):
    with pytest.raises(UnknownRecordError):
        book.enroll(1, 99)


def test_bulk_enrollment(book):
    assert book.enroll(1, 2).accepted
    assert book.enroll(4, 1).accepted
    report = book.enroll_many(2, [1, 2, 2, 4, 3])

    assert [e.student_id for e in report.enrolled] == [2]
    assert report.already_enrolled == [1]
    assert report.rejected[4].reason == FailureReason.STUDENT_BUSY
    assert report.rejected[3].reason == FailureReason.WORKSHOP_FULL
    assert all(e.manual for e in report.enrolled)


def test_bulk_enrollment_counts_other_occurrences_of_the_workshop(calendar):
    second_cooking = Placement(id=4, workshop_id=3, room_id=1, start_slot_id=10, slot_count=1)
    book = make_book(calendar, extra_placements=[second_cooking])
    assert book.enroll(1, 3).accepted

    report = book.enroll_many(4, [1, 2])

    assert report.already_enrolled == [1]
    assert [e.student_id for e in report.enrolled] == [2]
    assert report.rejected == {}
    assert book.confirmed_count(4) == 1


def test_bulk_enrollment_forced(book):
    assert book.enroll(4, 1).accepted
    report = book.enroll_many(2, [4], force=True)
    assert [e.student_id for e in report.enrolled] == [4]


def test_invalidate_placement(book):
    book.enroll(1, 3)
    book.enroll(2, 3)
    cancelled = book.invalidate_placement(3)
    assert {e.student_id for e in cancelled} == {1, 2}
    assert book.detector.placement_by_id(3) is None
    assert book.confirmed_count(3) == 0


def test_concurrent_enrollments_respect_capacity(book):
    with ThreadPoolExecutor(max_workers=8) as pool:
        decisions = list(pool.map(lambda s: book.enroll(s, 2), range(100, 140)))

    accepted = [d for d in decisions if d.accepted]
    assert len(accepted) == 2
    assert book.confirmed_count(2) == 2
    assert {d.reason for d in decisions if not d.accepted} == {FailureReason.WORKSHOP_FULL}
    assert len({d.enrollment.id for d in accepted}) == 2


def test_concurrent_requests_of_one_student(book):
    # placements 1 and 2 overlap on Monday: only one may win
    with ThreadPoolExecutor(max_workers=2) as pool:
        decisions = list(pool.map(lambda p: book.enroll(7, p), [1, 2, 1, 2]))
    assert sum(d.accepted for d in decisions) == 1
