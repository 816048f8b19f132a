import logging
from collections import Counter
from typing import List, Optional, Tuple

from timetable_engine.exceptions import InputError
from timetable_engine.models import Assignment, TermSnapshot, Timetable, Violation, assignment_sort_key
from timetable_engine.tracker import ConstraintIndex

logger = logging.getLogger(__name__)


class ConstraintCheckerEngine:
    def __init__(self, snapshot: TermSnapshot):
        self.snapshot = snapshot
        self.days = frozenset(snapshot.days)
        self.eligible = {
            offering.id: [f.id for f in snapshot.eligible_faculty(offering)]
            for offering in snapshot.offerings
        }

    def check(self, assignment: Assignment, index: ConstraintIndex) -> Optional[Violation]:
        return self.check_static(assignment) or self.check_conflicts(assignment, index)

    def check_conflicts(self, assignment: Assignment, index: ConstraintIndex) -> Optional[Violation]:
        # No overlapping
        if index.query_offering(assignment.offering_id) is not None:
            return Violation.OFFERING_ALREADY_SCHEDULED
        if index.query_room(assignment.day, assignment.timeslot_id, assignment.room_id) is not None:
            return Violation.ROOM_CONFLICT
        if index.query_faculty(assignment.day, assignment.timeslot_id, assignment.faculty_id) is not None:
            return Violation.FACULTY_CONFLICT
        return None

    def is_valid_assignment(self, assignment: Assignment, index: ConstraintIndex) -> bool:
        return self.check(assignment, index) is None

    def check_static(self, assignment: Assignment) -> Optional[Violation]:
        snapshot = self.snapshot

        offering = snapshot.offerings_by_id.get(assignment.offering_id)
        if offering is None:
            return Violation.UNKNOWN_OFFERING
        room = snapshot.rooms_by_id.get(assignment.room_id)
        if room is None:
            return Violation.UNKNOWN_ROOM
        if assignment.timeslot_id not in snapshot.timeslots_by_id:
            return Violation.UNKNOWN_TIMESLOT
        faculty = snapshot.faculty_by_id.get(assignment.faculty_id)
        if faculty is None:
            return Violation.UNKNOWN_FACULTY
        if assignment.day not in self.days:
            return Violation.DAY_OUTSIDE_TERM

        violation = self.validate_room(assignment, room, offering)
        if violation:
            return violation
        return self.validate_faculty(assignment, faculty)

    def validate_room(self, assignment, room, offering) -> Optional[Violation]:
        size = offering.class_size
        if size is not None and room.capacity < size:
            return Violation.ROOM_TOO_SMALL

        course = self.snapshot.courses_by_id.get(offering.course_id)
        if course and course.required_room_type is not None and room.room_type != course.required_room_type:
            return Violation.ROOM_TYPE_MISMATCH
        return None

    def validate_faculty(self, assignment, faculty) -> Optional[Violation]:
        if faculty.id not in self.eligible[assignment.offering_id]:
            return Violation.FACULTY_NOT_ELIGIBLE
        if (assignment.day, assignment.timeslot_id) in faculty.unavailable:
            return Violation.FACULTY_UNAVAILABLE
        return None


def _duplicates(ids) -> List[int]:
    return sorted(i for i, count in Counter(ids).items() if count > 1)


def validate_snapshot(snapshot: TermSnapshot):
    """
    Reject snapshots the search cannot trust. Collects every problem found and
    raises a single InputError listing them.
    """
    problems = []

    for entity, items in (
        ('room', snapshot.rooms),
        ('timeslot', snapshot.timeslots),
        ('course', snapshot.courses),
        ('offering', snapshot.offerings),
        ('faculty', snapshot.faculty),
    ):
        duplicated = _duplicates(item.id for item in items)
        if duplicated:
            problems.append({'problem': 'duplicate_id', 'entity': entity, 'ids': duplicated})

    for offering in snapshot.offerings:
        if offering.course_id not in snapshot.courses_by_id:
            problems.append({
                'problem': 'missing_reference', 'entity': 'offering', 'ids': [offering.id],
                'references': 'course', 'missing': [offering.course_id],
            })
        missing = [f for f in offering.faculty_ids if f not in snapshot.faculty_by_id]
        if missing:
            problems.append({
                'problem': 'missing_reference', 'entity': 'offering', 'ids': [offering.id],
                'references': 'faculty', 'missing': missing,
            })

    for member in snapshot.faculty:
        missing = sorted({slot_id for _, slot_id in member.unavailable_slots} - set(snapshot.timeslots_by_id))
        if missing:
            problems.append({
                'problem': 'missing_reference', 'entity': 'faculty', 'ids': [member.id],
                'references': 'timeslot', 'missing': missing,
            })

    if snapshot.offerings:
        for entity, items in (('room', snapshot.rooms), ('timeslot', snapshot.timeslots), ('day', snapshot.days)):
            if not items:
                problems.append({'problem': 'empty_resource', 'entity': entity, 'ids': []})

    if problems:
        first = problems[0]
        raise InputError(
            f"Invalid term snapshot: {first['problem']} ({first['entity']} {first['ids']})",
            details={'problems': problems},
        )


def find_violations(timetable: Timetable, snapshot: TermSnapshot) -> List[Tuple[Assignment, Violation]]:
    """Every assignment that breaks a hard constraint, in timetable order."""
    checker = ConstraintCheckerEngine(snapshot)
    index = ConstraintIndex()
    violations = []
    for assignment in timetable.assignments:
        violation = checker.check(assignment, index)
        if violation:
            violations.append((assignment, violation))
            continue
        index.try_insert(assignment)
    return violations


def validate_previous_timetable(previous: Timetable, snapshot: TermSnapshot) -> List[Assignment]:
    """
    Assignments of ``previous`` that still hold under ``snapshot``, in canonical order.

    Unknown or repeated offerings make the timetable unusable and raise
    InputError. Assignments that no longer fit the snapshot (a shrunk room, a
    new unavailability, a dropped day, a clash with an earlier kept
    assignment) are dropped so the search can place those offerings again.
    """
    offering_ids = [a.offering_id for a in previous.assignments]
    unknown = sorted({i for i in offering_ids if i not in snapshot.offerings_by_id})
    repeated = _duplicates(offering_ids)
    if unknown or repeated:
        problems = []
        if unknown:
            problems.append({'problem': 'unknown_offering', 'ids': unknown})
        if repeated:
            problems.append({'problem': 'duplicate_offering', 'ids': repeated})
        raise InputError(
            f"Invalid previous timetable: {problems[0]['problem']} (offering {problems[0]['ids']})",
            details={'problems': problems},
        )

    checker = ConstraintCheckerEngine(snapshot)
    index = ConstraintIndex()
    kept = []
    for assignment in sorted(previous.assignments, key=assignment_sort_key(snapshot)):
        violation = checker.check(assignment, index)
        if violation:
            logger.warning(
                'Dropping previous assignment of offering %d: %s', assignment.offering_id, violation.value,
            )
            continue
        index.try_insert(assignment)
        kept.append(assignment)
    return kept
