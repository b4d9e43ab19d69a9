import pytest

from atelier_planner.formatter import ScheduleFormatter
from atelier_planner.models.scheduling_model import (
    AllocationResult, Enrollment, EnrollmentStatus, ErrorCategory, FailureReason, Placement,
    PlacementFailure, TeacherLoad, WorkshopStatus
)
from atelier_planner.services.conflict_service import ConflictDetector
from atelier_planner.services.report_service import ReportService

from conftest import workshop

PLACEMENTS = [
    Placement(id=1, workshop_id=1, room_id=1, start_slot_id=1, slot_count=3),
    Placement(id=2, workshop_id=2, room_id=2, start_slot_id=4, slot_count=1),
    Placement(id=3, workshop_id=3, room_id=3, start_slot_id=9, slot_count=2),
    Placement(id=4, workshop_id=2, room_id=2, start_slot_id=5, slot_count=1),
]


@pytest.fixture
def reports(calendar, rooms):
    workshops = [
        workshop(1, duration=6, teachers=["A"], name="Hiking"),
        workshop(2, duration=2, max_capacity=10, teachers=["B"], name="Chess"),
        workshop(3, duration=4, teachers=["A", "C"], name="Cooking"),
        workshop(4, status=WorkshopStatus.DRAFT),
        workshop(5, name="Knitting"),
    ]
    enrollments = [Enrollment(id=i, student_id=i, placement_id=2) for i in range(1, 7)]
    enrollments += [
        Enrollment(id=7, student_id=7, placement_id=2, status=EnrollmentStatus.CANCELLED),
        Enrollment(id=8, student_id=8, placement_id=1),
        Enrollment(id=9, student_id=9, placement_id=4),
        Enrollment(id=10, student_id=10, placement_id=4),
        Enrollment(id=11, student_id=11, placement_id=4),
    ]
    detector = ConflictDetector(calendar, workshops, PLACEMENTS, enrollments)
    return ReportService(detector, rooms, [TeacherLoad(teacher="A", max_periods=12),
                                           TeacherLoad(teacher="B", max_periods=0)])


def test_stats(reports):
    assert reports.stats() == {
        "approved_workshops": 4,
        "placed_workshops": 3,
        "unplaced_workshops": 1,
        "placements": 4,
        "rooms_used": 3,
        "placements_per_day": {"monday": 1, "tuesday": 2, "wednesday": 0, "thursday": 1, "friday": 0},
    }


def test_low_enrollment_emptiest_first(reports):
    rows = reports.low_enrollment(threshold=5)
    assert [r["placement_id"] for r in rows] == [3, 1, 4]
    assert rows[0]["enrolled"] == 0
    assert rows[0]["places_left"] == 20
    assert rows[0]["room"] == "Lab"
    assert rows[2]["day"] == "tuesday"
    assert reports.low_enrollment(threshold=1) == [rows[0]]


def test_teacher_loads(reports):
    assert reports.teacher_loads_summary() == [
        {"teacher": "A", "used_periods": 10, "max_periods": 12, "remaining": 2},
        {"teacher": "B", "used_periods": 4, "max_periods": 0, "remaining": None},
        {"teacher": "C", "used_periods": 4, "max_periods": 0, "remaining": None},
    ]


def test_grid_marks_continuation_cells(reports):
    grid = reports.grid()
    assert list(grid) == ["monday", "tuesday", "wednesday", "thursday", "friday"]
    assert grid["wednesday"] == {"P1-2": {}, "P3-4": {}}

    monday = grid["monday"]
    assert [monday[p]["A101"]["continuation"] for p in ("P1-2", "P3-4", "P6-7")] == [False, True, True]
    assert monday["P1-2"]["A101"]["workshop_name"] == "Hiking"
    assert monday["P1-2"]["A101"]["enrolled"] == 1

    thursday = grid["thursday"]
    assert thursday["P1-2"]["Lab"]["workshop_name"] == "Cooking"
    assert thursday["P3-4"]["Lab"]["continuation"]
    assert thursday["P6-7"] == {}
    assert grid["tuesday"]["P1-2"]["B12"]["enrolled"] == 6


def test_formatter_json(reports):
    failure = PlacementFailure(workshop_id=5, workshop_name="Knitting", reason=FailureReason.ROOM_TOO_SMALL,
                               category=ErrorCategory.CAPACITY)
    result = AllocationResult(placed=PLACEMENTS[2:3] + PLACEMENTS[:1], failures=[failure])
    data = ScheduleFormatter(reports).to_json(result)

    assert data["summary"] == {"placed": 2, "workshops_placed": 2, "failed": 1}
    assert [row["workshop_name"] for row in data["schedule"]] == ["Hiking", "Cooking"]
    assert data["failures"][0]["reason"] == "ROOM_TOO_SMALL"
    assert data["failures"][0]["category"] == "capacity"


def test_formatter_text(reports):
    failure = PlacementFailure(workshop_id=5, workshop_name="Knitting", reason=FailureReason.NO_ROOMS,
                               category=ErrorCategory.CAPACITY)
    text = ScheduleFormatter(reports).to_text(AllocationResult(placed=PLACEMENTS[:1], failures=[failure]))
    lines = text.splitlines()
    assert lines[0] == "WEEKLY TIMETABLE:"
    assert "  P1-2 x3, Hiking, A101, Teachers: A" in lines
    assert "  (no workshops)" in lines
    assert lines[-1] == "  Knitting (5): NO_ROOMS"
