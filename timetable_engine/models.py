# Immutable pydantic models for one term's scheduling input and output.
from datetime import time
from enum import Enum
from functools import cached_property
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from timetable_engine.exceptions import InputError
from timetable_engine.utils import parse_time


class Day(str, Enum):
    MONDAY = 'Monday'
    TUESDAY = 'Tuesday'
    WEDNESDAY = 'Wednesday'
    THURSDAY = 'Thursday'
    FRIDAY = 'Friday'
    SATURDAY = 'Saturday'
    SUNDAY = 'Sunday'

    @classmethod
    def _missing_(cls, value):
        # "Mon", "monday", "MON"
        if isinstance(value, str):
            key = value.strip().lower()
            for day in cls:
                if key in (day.value.lower(), day.short.lower()):
                    return day
        return None

    @property
    def short(self) -> str:
        return self.value[:3]

    @property
    def order(self) -> int:
        return DAY_ORDER[self]

    @classmethod
    def ordered(cls) -> List['Day']:
        return list(cls)


DAY_ORDER: Dict[Day, int] = {day: idx for idx, day in enumerate(Day)}


def _parse_days(value: Any) -> Any:
    if value is None:
        return ()
    if isinstance(value, (str, Day)):
        value = [value]
    days = {Day(v) for v in value}
    return tuple(sorted(days, key=lambda d: d.order))


class ConflictKind(str, Enum):
    ROOM_CONFLICT = 'room_conflict'
    FACULTY_CONFLICT = 'faculty_conflict'
    OFFERING_ALREADY_SCHEDULED = 'offering_already_scheduled'


class Violation(str, Enum):
    ROOM_CONFLICT = 'room_conflict'
    FACULTY_CONFLICT = 'faculty_conflict'
    OFFERING_ALREADY_SCHEDULED = 'offering_already_scheduled'
    UNKNOWN_OFFERING = 'unknown_offering'
    UNKNOWN_ROOM = 'unknown_room'
    UNKNOWN_TIMESLOT = 'unknown_timeslot'
    UNKNOWN_FACULTY = 'unknown_faculty'
    DAY_OUTSIDE_TERM = 'day_outside_term'
    ROOM_TOO_SMALL = 'room_too_small'
    ROOM_TYPE_MISMATCH = 'room_type_mismatch'
    FACULTY_NOT_ELIGIBLE = 'faculty_not_eligible'
    FACULTY_UNAVAILABLE = 'faculty_unavailable'


class UnplacedReason(str, Enum):
    NO_ELIGIBLE_FACULTY = 'no_eligible_faculty'
    NO_MATCHING_ROOM = 'no_matching_room'
    NO_AVAILABLE_SLOT = 'no_available_slot'
    CONFLICTS = 'conflicts'


class EntityModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    # Entities are identified by id only
    def __hash__(self) -> int:
        return self.id.__hash__()

    def __eq__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.id == other.id


class Room(EntityModel):
    id: int
    name: str = ''
    capacity: int = Field(gt=0)
    room_type: Optional[str] = None


class TimeSlot(EntityModel):
    id: int
    start_time: time
    end_time: time
    term_id: Optional[int] = None

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def _parse_time(cls, value):
        return parse_time(value)

    @model_validator(mode='after')
    def _check_bounds(self):
        if self.start_time >= self.end_time:
            raise ValueError(f'TimeSlot {self.id}: start_time must be before end_time')
        return self

    @property
    def sort_key(self) -> Tuple[time, time, int]:
        return self.start_time, self.end_time, self.id


class Course(EntityModel):
    id: int
    code: str
    name: str = ''
    course_type: Optional[str] = None
    department_id: Optional[int] = None
    theory_credits: float = Field(default=0.0, ge=0)
    lab_credits: float = Field(default=0.0, ge=0)

    # Room type every offering of this course must be placed in
    required_room_type: Optional[str] = None


class Offering(EntityModel):
    id: int
    course_id: int
    section: Optional[str] = None
    enrollment_limit: Optional[int] = Field(default=None, ge=0)

    # Declared order matters: it is the order candidates are tried in.
    faculty_ids: Tuple[int, ...] = ()

    # Resolved preference data
    preferred_days: Tuple[Day, ...] = ()
    preferred_start: Optional[time] = None
    preferred_end: Optional[time] = None
    preference_weight: float = Field(default=1.0, ge=0)

    @model_validator(mode='before')
    @classmethod
    def _single_faculty(cls, data):
        if isinstance(data, dict) and 'faculty_id' in data and 'faculty_ids' not in data:
            data = dict(data)
            faculty_id = data.pop('faculty_id')
            data['faculty_ids'] = () if faculty_id is None else (faculty_id,)
        return data

    @field_validator('faculty_ids', mode='after')
    @classmethod
    def _unique_faculty(cls, value):
        if len(set(value)) != len(value):
            raise ValueError('faculty_ids must not repeat')
        return value

    @field_validator('preferred_days', mode='before')
    @classmethod
    def _parse_days(cls, value):
        return _parse_days(value)

    @field_validator('preferred_start', 'preferred_end', mode='before')
    @classmethod
    def _parse_time(cls, value):
        return None if value is None else parse_time(value)

    @model_validator(mode='after')
    def _check_window(self):
        if self.preferred_start and self.preferred_end and self.preferred_start >= self.preferred_end:
            raise ValueError(f'Offering {self.id}: preferred_start must be before preferred_end')
        return self

    @property
    def class_size(self) -> Optional[int]:
        return self.enrollment_limit


class Faculty(EntityModel):
    id: int
    name: str = ''
    department_id: Optional[int] = None
    email: Optional[str] = None

    preferred_days: Tuple[Day, ...] = ()
    unavailable_slots: Tuple[Tuple[Day, int], ...] = ()

    @field_validator('preferred_days', mode='before')
    @classmethod
    def _parse_days(cls, value):
        return _parse_days(value)

    @field_validator('unavailable_slots', mode='before')
    @classmethod
    def _parse_slots(cls, value):
        if value is None:
            return ()
        pairs = set()
        for item in value:
            if isinstance(item, dict):
                pairs.add((Day(item['day']), int(item['timeslot_id'])))
            else:
                day, slot_id = item
                pairs.add((Day(day), int(slot_id)))
        return tuple(sorted(pairs, key=lambda p: (p[0].order, p[1])))

    @cached_property
    def unavailable(self) -> frozenset:
        return frozenset(self.unavailable_slots)


class Assignment(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    offering_id: int
    day: Day
    timeslot_id: int
    room_id: int
    faculty_id: int

    @field_validator('day', mode='before')
    @classmethod
    def _parse_day(cls, value):
        return Day(value)


RoomKey = Tuple[int, Day, int]
FacultyKey = Tuple[int, Day, int]


def room_conflict_key(assignment: Assignment) -> RoomKey:
    return assignment.room_id, assignment.day, assignment.timeslot_id


def faculty_conflict_key(assignment: Assignment) -> FacultyKey:
    return assignment.faculty_id, assignment.day, assignment.timeslot_id


def offering_key(assignment: Assignment) -> int:
    return assignment.offering_id


class SoftConstraintWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    offering_time_window: float = Field(default=1.0, ge=0)
    offering_preferred_days: float = Field(default=1.0, ge=0)
    faculty_preferred_days: float = Field(default=0.5, ge=0)
    faculty_slot_gap: float = Field(default=0.5, ge=0)
    room_capacity_slack: float = Field(default=0.25, ge=0)
    faculty_day_balance: float = Field(default=0.25, ge=0)


class TermSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    term_id: Optional[int] = None
    days: Tuple[Day, ...] = tuple(Day)
    rooms: Tuple[Room, ...] = ()
    timeslots: Tuple[TimeSlot, ...] = ()
    courses: Tuple[Course, ...] = ()
    offerings: Tuple[Offering, ...] = ()
    faculty: Tuple[Faculty, ...] = ()

    weights: Optional[SoftConstraintWeights] = None

    @field_validator('days', mode='before')
    @classmethod
    def _parse_days(cls, value):
        return _parse_days(value)

    @classmethod
    def parse(cls, data: Any) -> 'TermSnapshot':
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InputError('Malformed term snapshot', details={'errors': exc.errors(include_url=False)}) from exc

    @cached_property
    def rooms_by_id(self) -> Dict[int, Room]:
        return {room.id: room for room in self.rooms}

    @cached_property
    def timeslots_by_id(self) -> Dict[int, TimeSlot]:
        return {slot.id: slot for slot in self.timeslots}

    @cached_property
    def courses_by_id(self) -> Dict[int, Course]:
        return {course.id: course for course in self.courses}

    @cached_property
    def offerings_by_id(self) -> Dict[int, Offering]:
        return {offering.id: offering for offering in self.offerings}

    @cached_property
    def faculty_by_id(self) -> Dict[int, Faculty]:
        return {member.id: member for member in self.faculty}

    @cached_property
    def ordered_timeslots(self) -> List[TimeSlot]:
        return sorted(self.timeslots, key=lambda s: s.sort_key)

    @cached_property
    def ordered_rooms(self) -> List[Room]:
        return sorted(self.rooms, key=lambda r: (r.capacity, r.id))

    def eligible_faculty(self, offering: Offering) -> List[Faculty]:
        if offering.faculty_ids:
            return [self.faculty_by_id[f] for f in offering.faculty_ids if f in self.faculty_by_id]

        course = self.courses_by_id.get(offering.course_id)
        department_id = course.department_id if course else None
        members = sorted(self.faculty, key=lambda f: f.id)
        if department_id is None:
            return members
        return [f for f in members if f.department_id == department_id]

    def matching_rooms(self, offering: Offering) -> List[Room]:
        course = self.courses_by_id.get(offering.course_id)
        required_type = course.required_room_type if course else None
        size = offering.class_size
        return [
            room for room in self.ordered_rooms
            if (required_type is None or room.room_type == required_type)
               and (size is None or room.capacity >= size)
        ]


class UnplacedOffering(BaseModel):
    model_config = ConfigDict(frozen=True)

    offering_id: int
    reason: UnplacedReason


class Timetable(BaseModel):
    model_config = ConfigDict(frozen=True)

    term_id: Optional[int] = None
    assignments: Tuple[Assignment, ...] = ()
    valid: bool = False
    unplaced: Tuple[int, ...] = ()
    total_soft_cost: float = 0.0

    diagnostics: Tuple[UnplacedOffering, ...] = ()
    steps: int = 0

    @property
    def placed_count(self) -> int:
        return len(self.assignments)

    def assignment_for(self, offering_id: int) -> Optional[Assignment]:
        for assignment in self.assignments:
            if assignment.offering_id == offering_id:
                return assignment
        return None

    def without(self, offering_id: int) -> 'Timetable':
        """Copy of this timetable with one offering's assignment dropped."""
        kept = tuple(a for a in self.assignments if a.offering_id != offering_id)
        return self.model_copy(update={
            'assignments': kept,
            'valid': False,
            'unplaced': tuple(sorted(set(self.unplaced) | {offering_id})),
        })


def assignment_sort_key(snapshot: TermSnapshot) -> Callable[[Assignment], tuple]:
    slots = snapshot.timeslots_by_id

    def key(assignment: Assignment):
        slot = slots.get(assignment.timeslot_id)
        slot_key = slot.sort_key if slot else (time.max, time.max, assignment.timeslot_id)
        return assignment.day.order, slot_key, assignment.room_id, assignment.offering_id

    return key
