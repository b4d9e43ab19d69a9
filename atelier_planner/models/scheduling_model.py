from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Set


class Day(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"


WEEK = [Day.MONDAY, Day.TUESDAY, Day.WEDNESDAY, Day.THURSDAY, Day.FRIDAY]


class WorkshopStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class EnrollmentStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class DutyType(str, Enum):
    ON_CALL = "on_call"
    RELEASE = "release"


class ErrorCategory(str, Enum):
    STRUCTURAL = "structural"
    AVAILABILITY = "availability"
    CAPACITY = "capacity"
    LOAD = "load"
    TYPE_MISMATCH = "type_mismatch"
    RACE = "race"


class FailureReason(str, Enum):
    OUT_OF_CALENDAR = "OUT_OF_CALENDAR"
    TEACHER_UNAVAILABLE = "TEACHER_UNAVAILABLE"
    TEACHER_BUSY = "TEACHER_BUSY"
    ROOM_TOO_SMALL = "ROOM_TOO_SMALL"
    ROOM_TYPE_MISMATCH = "ROOM_TYPE_MISMATCH"
    ROOM_BUSY = "ROOM_BUSY"
    LOAD_EXCEEDED = "LOAD_EXCEEDED"
    # Outside the canPlace vocabulary: raised by the allocator and the
    # interactive services only.
    NO_ROOMS = "NO_ROOMS"
    STUDENT_BUSY = "STUDENT_BUSY"
    WORKSHOP_FULL = "WORKSHOP_FULL"
    ALREADY_ENROLLED = "ALREADY_ENROLLED"
    ALREADY_PLACED = "ALREADY_PLACED"
    ENROLLMENTS_LOCKED = "ENROLLMENTS_LOCKED"


REASON_CATEGORY: Dict[FailureReason, ErrorCategory] = {
    FailureReason.OUT_OF_CALENDAR: ErrorCategory.STRUCTURAL,
    FailureReason.TEACHER_UNAVAILABLE: ErrorCategory.AVAILABILITY,
    FailureReason.TEACHER_BUSY: ErrorCategory.AVAILABILITY,
    FailureReason.ROOM_TOO_SMALL: ErrorCategory.CAPACITY,
    FailureReason.ROOM_TYPE_MISMATCH: ErrorCategory.TYPE_MISMATCH,
    FailureReason.ROOM_BUSY: ErrorCategory.AVAILABILITY,
    FailureReason.LOAD_EXCEEDED: ErrorCategory.LOAD,
    FailureReason.NO_ROOMS: ErrorCategory.CAPACITY,
    FailureReason.STUDENT_BUSY: ErrorCategory.AVAILABILITY,
    FailureReason.WORKSHOP_FULL: ErrorCategory.CAPACITY,
    FailureReason.ALREADY_ENROLLED: ErrorCategory.AVAILABILITY,
    FailureReason.ALREADY_PLACED: ErrorCategory.AVAILABILITY,
    FailureReason.ENROLLMENTS_LOCKED: ErrorCategory.AVAILABILITY,
}


def category_of(reason: FailureReason) -> ErrorCategory:
    return REASON_CATEGORY[reason]


class UnknownRecordError(LookupError):
    """A request referenced a workshop, room, slot, placement or enrollment that is not in the snapshot."""

    def __init__(self, kind: str, record_id):
        super().__init__(f"Unknown {kind}: {record_id}")
        self.kind = kind
        self.record_id = record_id


# ----------------------------
# Snapshot records
# ----------------------------
class TimeSlot(BaseModel):
    id: int
    day: Day
    period: str
    order: int
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    active: bool = True


class Room(BaseModel):
    id: int
    name: str = ""
    capacity: int
    room_type: Optional[str] = None
    available: bool = True


class Workshop(BaseModel):
    id: int
    name: str
    duration: int  # periods: 2, 4 or 6
    max_capacity: int
    required_room_type: Optional[str] = None
    teachers: List[str]
    status: WorkshopStatus = WorkshopStatus.APPROVED

    @property
    def slot_count(self) -> int:
        # 2 periods per block
        return (self.duration + 1) // 2


class TeacherLoad(BaseModel):
    teacher: str
    max_periods: int = 0  # 0 = unlimited


class Placement(BaseModel):
    id: Optional[int] = None
    workshop_id: int
    room_id: Optional[int] = None
    start_slot_id: int
    slot_count: int


class Enrollment(BaseModel):
    id: int
    student_id: int
    placement_id: int
    status: EnrollmentStatus = EnrollmentStatus.CONFIRMED
    manual: bool = False


class DutyAssignment(BaseModel):
    id: Optional[int] = None
    teacher: str
    slot_id: int
    duty_type: DutyType = DutyType.ON_CALL

    @property
    def label(self) -> str:
        return "On-call duty" if self.duty_type == DutyType.ON_CALL else "Release"


class PlanningSnapshot(BaseModel):
    slots: List[TimeSlot] = Field(default_factory=list)
    rooms: List[Room] = Field(default_factory=list)
    workshops: List[Workshop] = Field(default_factory=list)
    availability: Dict[str, Set[int]] = Field(default_factory=dict)
    teacher_loads: List[TeacherLoad] = Field(default_factory=list)
    placements: List[Placement] = Field(default_factory=list)
    enrollments: List[Enrollment] = Field(default_factory=list)
    duties: List[DutyAssignment] = Field(default_factory=list)
    locked_students: Set[int] = Field(default_factory=set)

    def load_max(self) -> Dict[str, int]:
        return {t.teacher: t.max_periods for t in self.teacher_loads}


# ----------------------------
# Engine results
# ----------------------------
class SlotRange(BaseModel):
    day: Day
    start: int  # block position within the day, inclusive
    end: int  # exclusive
    slot_ids: List[int]
    full_day: bool = False

    def overlaps(self, other: "SlotRange") -> bool:
        if self.day != other.day:
            return False
        if self.full_day or other.full_day:
            return True
        return self.start < other.end and other.start < self.end


class FeasibilityResult(BaseModel):
    ok: bool
    reason: Optional[FailureReason] = None

    @property
    def category(self) -> Optional[ErrorCategory]:
        return category_of(self.reason) if self.reason else None


class ConflictType(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"
    ROOM = "room"
    STRUCTURAL = "structural"


class Conflict(BaseModel):
    type: ConflictType
    conflicting_activity_name: str
    day: Optional[Day] = None
    period: Optional[str] = None
    activity_type: str = "workshop"


class PlacementFailure(BaseModel):
    workshop_id: int
    workshop_name: str
    reason: FailureReason
    category: ErrorCategory


class AllocationResult(BaseModel):
    placed: List[Placement] = Field(default_factory=list)
    failures: List[PlacementFailure] = Field(default_factory=list)


class PlacementDecision(BaseModel):
    accepted: bool
    placement: Optional[Placement] = None
    reason: Optional[FailureReason] = None
    category: Optional[ErrorCategory] = None
    conflict: Optional[Conflict] = None
    message: str = ""
    suggestions: str = ""


class EnrollmentDecision(BaseModel):
    accepted: bool
    enrollment: Optional[Enrollment] = None
    reason: Optional[FailureReason] = None
    category: Optional[ErrorCategory] = None
    conflict: Optional[Conflict] = None
    message: str = ""


class BulkEnrollmentReport(BaseModel):
    enrolled: List[Enrollment] = Field(default_factory=list)
    already_enrolled: List[int] = Field(default_factory=list)
    rejected: Dict[int, EnrollmentDecision] = Field(default_factory=dict)


class DutyDecision(BaseModel):
    accepted: bool
    duty: Optional[DutyAssignment] = None
    reason: Optional[FailureReason] = None
    category: Optional[ErrorCategory] = None
    conflict: Optional[Conflict] = None
    message: str = ""
