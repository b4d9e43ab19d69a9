import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from atelier_planner.config import get_settings
from atelier_planner.formatter import ScheduleFormatter
from atelier_planner.models.scheduling_model import (
    BulkEnrollmentReport, Conflict, DutyDecision, DutyType, EnrollmentDecision,
    PlacementDecision, PlanningSnapshot, TimeSlot, UnknownRecordError
)
from atelier_planner.services.allocation_service import AllocationService
from atelier_planner.services.calendar_service import Calendar, default_week_slots
from atelier_planner.services.conflict_service import ConflictDetector, format_suggestions_message
from atelier_planner.services.duty_service import DutyRoster
from atelier_planner.services.enrollment_service import EnrollmentBook
from atelier_planner.services.placement_service import PlacementService
from atelier_planner.services.report_service import ReportService
from atelier_planner.validator import SnapshotValidator

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request body models ---
class ManualPlacementRequest(BaseModel):
    snapshot: PlanningSnapshot
    workshop_id: int
    room_id: int
    start_slot_id: int
    force: bool = False


class MovePlacementRequest(BaseModel):
    snapshot: PlanningSnapshot
    placement_id: int
    room_id: Optional[int] = None
    start_slot_id: Optional[int] = None
    force: bool = False


class EnrollmentRequest(BaseModel):
    snapshot: PlanningSnapshot
    student_id: int
    placement_id: int
    manual: bool = False
    force: bool = False


class BulkEnrollmentRequest(BaseModel):
    snapshot: PlanningSnapshot
    placement_id: int
    student_ids: List[int]
    force: bool = False


class DutyRequest(BaseModel):
    snapshot: PlanningSnapshot
    teacher: str
    slot_id: int
    duty_type: DutyType = DutyType.ON_CALL


class TeacherConflictRequest(BaseModel):
    snapshot: PlanningSnapshot
    teacher: str
    start_slot_id: int
    slot_count: int = 1
    exclude_placement_id: Optional[int] = None


class StudentConflictRequest(BaseModel):
    snapshot: PlanningSnapshot
    student_id: int
    placement_id: int
    exclude_enrollment_id: Optional[int] = None


class ConflictResponse(BaseModel):
    conflict: bool
    details: Optional[Conflict] = None
    message: str = "No conflicts detected."
    suggestions: str = ""


# --- Helpers ---
def _checked(snapshot: PlanningSnapshot) -> PlanningSnapshot:
    errors = SnapshotValidator(snapshot).validate()
    if errors:
        logger.info("Snapshot rejected with %d errors", len(errors))
        raise HTTPException(status_code=400, detail=errors)
    return snapshot


def _calendar(snapshot: PlanningSnapshot) -> Calendar:
    return Calendar(snapshot.slots, short_day=get_settings().short_day)


def _detector(snapshot: PlanningSnapshot) -> ConflictDetector:
    return ConflictDetector(
        _calendar(snapshot), snapshot.workshops, snapshot.placements,
        snapshot.enrollments, snapshot.duties,
    )


def _not_found(exc: UnknownRecordError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


# --- Endpoints ---
@router.get("/calendar/default", response_model=List[TimeSlot])
def default_calendar():
    return default_week_slots(short_day=get_settings().short_day)


@router.post("/allocate")
def allocate(snapshot: PlanningSnapshot):
    """
    Place every approved workshop of the snapshot into a room and a block.
    Existing placements are kept and never collided with.
    """
    _checked(snapshot)
    settings = get_settings()
    calendar = _calendar(snapshot)
    service = AllocationService(
        calendar, snapshot.rooms, snapshot.availability, snapshot.teacher_loads,
        max_occurrences=settings.max_occurrences,
    )
    result = service.allocate(snapshot.workshops, snapshot.placements, snapshot.duties,
                              catalogue=snapshot.workshops)
    reports = ReportService(_detector(snapshot), snapshot.rooms, snapshot.teacher_loads)
    return ScheduleFormatter(reports).to_json(result)


@router.post("/placements/manual", response_model=PlacementDecision)
def place_manually(request: ManualPlacementRequest):
    snapshot = _checked(request.snapshot)
    service = PlacementService(_detector(snapshot), snapshot.rooms, snapshot.teacher_loads)
    try:
        return service.place(request.workshop_id, request.room_id, request.start_slot_id, force=request.force)
    except UnknownRecordError as exc:
        raise _not_found(exc)


@router.post("/placements/move", response_model=PlacementDecision)
def move_placement(request: MovePlacementRequest):
    snapshot = _checked(request.snapshot)
    service = PlacementService(_detector(snapshot), snapshot.rooms, snapshot.teacher_loads)
    try:
        return service.move(request.placement_id, request.room_id, request.start_slot_id, force=request.force)
    except UnknownRecordError as exc:
        raise _not_found(exc)


@router.post("/enrollments", response_model=EnrollmentDecision)
def enroll(request: EnrollmentRequest):
    snapshot = _checked(request.snapshot)
    book = EnrollmentBook(_detector(snapshot), get_settings().enrollment_quota_percent, snapshot.locked_students)
    try:
        return book.enroll(request.student_id, request.placement_id, manual=request.manual, force=request.force)
    except UnknownRecordError as exc:
        raise _not_found(exc)


@router.post("/enrollments/bulk", response_model=BulkEnrollmentReport)
def enroll_bulk(request: BulkEnrollmentRequest):
    snapshot = _checked(request.snapshot)
    book = EnrollmentBook(_detector(snapshot), get_settings().enrollment_quota_percent, snapshot.locked_students)
    try:
        return book.enroll_many(request.placement_id, request.student_ids, force=request.force)
    except UnknownRecordError as exc:
        raise _not_found(exc)


@router.post("/duties", response_model=DutyDecision)
def assign_duty(request: DutyRequest):
    snapshot = _checked(request.snapshot)
    try:
        return DutyRoster(_detector(snapshot)).assign(request.teacher, request.slot_id, request.duty_type)
    except UnknownRecordError as exc:
        raise _not_found(exc)


@router.post("/conflicts/teacher", response_model=ConflictResponse)
def check_teacher_conflict(request: TeacherConflictRequest):
    snapshot = _checked(request.snapshot)
    detector = _detector(snapshot)
    slot_range = detector.calendar.slot_range(request.start_slot_id, request.slot_count)
    if slot_range is None:
        raise HTTPException(status_code=400, detail="Slot range leaves the day or the calendar")
    conflict = detector.check_teacher_conflict(request.teacher, slot_range, request.exclude_placement_id)
    if conflict is None:
        return ConflictResponse(conflict=False)
    vacant = detector.vacant_blocks_for_teacher(request.teacher, [slot_range.day])
    return ConflictResponse(
        conflict=True,
        details=conflict,
        message=f"Conflict with {conflict.conflicting_activity_name}",
        suggestions=format_suggestions_message(vacant),
    )


@router.post("/conflicts/student", response_model=ConflictResponse)
def check_student_conflict(request: StudentConflictRequest):
    snapshot = _checked(request.snapshot)
    detector = _detector(snapshot)
    placement = detector.placement_by_id(request.placement_id)
    if placement is None:
        raise HTTPException(status_code=404, detail=f"Unknown placement: {request.placement_id}")
    slot_range = detector.placement_range(placement)
    conflict = detector.check_student_conflict(request.student_id, slot_range, request.exclude_enrollment_id)
    if conflict is None:
        return ConflictResponse(conflict=False)
    return ConflictResponse(conflict=True, details=conflict, message=f"Conflict with {conflict.conflicting_activity_name}")


@router.post("/reports/stats")
def report_stats(snapshot: PlanningSnapshot):
    return ReportService(_detector(_checked(snapshot)), snapshot.rooms).stats()


@router.post("/reports/low-enrollment")
def report_low_enrollment(snapshot: PlanningSnapshot, threshold: Optional[int] = None):
    if threshold is None:
        threshold = get_settings().low_enrollment_threshold
    return ReportService(_detector(_checked(snapshot)), snapshot.rooms).low_enrollment(threshold)


@router.post("/reports/grid")
def report_grid(snapshot: PlanningSnapshot):
    return ReportService(_detector(_checked(snapshot)), snapshot.rooms).grid()


@router.post("/reports/teacher-loads")
def report_teacher_loads(snapshot: PlanningSnapshot):
    return ReportService(_detector(_checked(snapshot)), snapshot.rooms, snapshot.teacher_loads).teacher_loads_summary()
