import pytest

from conftest import make_snapshot
from timetable_engine.exceptions import InputError
from timetable_engine.models import Assignment, Timetable, Violation
from timetable_engine.tracker import ConstraintIndex
from timetable_engine.validation import (
    ConstraintCheckerEngine, find_violations, validate_previous_timetable, validate_snapshot,
)


def make_assignment(**kwargs):
    values = dict(offering_id=1, day='Monday', timeslot_id=1, room_id=1, faculty_id=1)
    values.update(kwargs)
    return Assignment(**values)


def problems_of(snapshot):
    with pytest.raises(InputError) as exc_info:
        validate_snapshot(snapshot)
    return exc_info.value.details['problems']


def test_valid_snapshot_passes():
    validate_snapshot(make_snapshot())


def test_duplicate_identifiers_are_rejected():
    snapshot = make_snapshot(rooms=[
        {'id': 1, 'capacity': 30},
        {'id': 1, 'capacity': 40},
    ])
    problems = problems_of(snapshot)
    assert problems == [{'problem': 'duplicate_id', 'entity': 'room', 'ids': [1]}]


def test_offering_with_missing_course_is_rejected():
    snapshot = make_snapshot(offerings=[{'id': 1, 'course_id': 99, 'faculty_id': 1}])
    problems = problems_of(snapshot)
    assert problems[0]['references'] == 'course'
    assert problems[0]['missing'] == [99]


def test_offering_with_missing_faculty_is_rejected():
    snapshot = make_snapshot(offerings=[{'id': 1, 'course_id': 1, 'faculty_ids': [1, 42]}])
    problems = problems_of(snapshot)
    assert problems[0]['references'] == 'faculty'
    assert problems[0]['missing'] == [42]


def test_unavailability_must_reference_known_timeslots():
    snapshot = make_snapshot(faculty=[
        {'id': 1, 'department_id': 1, 'unavailable_slots': [['Mon', 8]]},
        {'id': 2, 'department_id': 2},
    ])
    assert problems_of(snapshot)[0]['references'] == 'timeslot'


@pytest.mark.parametrize('field', ['rooms', 'timeslots'])
def test_offerings_need_rooms_and_timeslots(field):
    problems = problems_of(make_snapshot(**{field: []}))
    assert problems[0]['problem'] == 'empty_resource'


def test_empty_resources_are_fine_without_offerings():
    validate_snapshot(make_snapshot(rooms=[], timeslots=[], offerings=[]))


def test_all_problems_are_reported_together():
    snapshot = make_snapshot(
        courses=[{'id': 1, 'code': 'X'}, {'id': 1, 'code': 'Y'}],
        offerings=[{'id': 1, 'course_id': 5, 'faculty_id': 1}],
    )
    kinds = [p['problem'] for p in problems_of(snapshot)]
    assert kinds == ['duplicate_id', 'missing_reference']


@pytest.fixture
def checker_snapshot():
    return make_snapshot(
        days=['Monday'],
        courses=[
            {'id': 1, 'code': 'CS101', 'department_id': 1, 'required_room_type': 'Lecture'},
            {'id': 2, 'code': 'MA101', 'department_id': 2},
        ],
        faculty=[
            {'id': 1, 'department_id': 1, 'unavailable_slots': [['Monday', 2]]},
            {'id': 2, 'department_id': 2},
        ],
        rooms=[
            {'id': 1, 'capacity': 30, 'room_type': 'Lecture'},
            {'id': 2, 'capacity': 60, 'room_type': 'Lecture'},
            {'id': 3, 'capacity': 90, 'room_type': 'Hall'},
        ],
    )


@pytest.mark.parametrize('changes, expected', [
    ({}, None),
    ({'offering_id': 9}, Violation.UNKNOWN_OFFERING),
    ({'room_id': 9}, Violation.UNKNOWN_ROOM),
    ({'timeslot_id': 9}, Violation.UNKNOWN_TIMESLOT),
    ({'faculty_id': 9}, Violation.UNKNOWN_FACULTY),
    ({'day': 'Tuesday'}, Violation.DAY_OUTSIDE_TERM),
    ({'room_id': 3}, Violation.ROOM_TYPE_MISMATCH),
    ({'offering_id': 2, 'faculty_id': 2}, Violation.ROOM_TOO_SMALL),
    ({'faculty_id': 2}, Violation.FACULTY_NOT_ELIGIBLE),
    ({'timeslot_id': 2}, Violation.FACULTY_UNAVAILABLE),
])
def test_static_checks(checker_snapshot, changes, expected):
    checker = ConstraintCheckerEngine(checker_snapshot)
    assert checker.check(make_assignment(**changes), ConstraintIndex()) == expected


def test_conflicts_come_from_the_index(checker_snapshot):
    checker = ConstraintCheckerEngine(checker_snapshot)
    index = ConstraintIndex()
    index.try_insert(make_assignment(offering_id=2, room_id=1, faculty_id=2))

    assert checker.check(make_assignment(), index) == Violation.ROOM_CONFLICT
    assert checker.is_valid_assignment(make_assignment(room_id=2), index)

    index.try_insert(make_assignment(room_id=2))
    assert checker.check(make_assignment(room_id=2), index) == Violation.OFFERING_ALREADY_SCHEDULED


def test_find_violations_reports_double_booking():
    snapshot = make_snapshot(days=['Monday'])
    timetable = Timetable(assignments=(
        make_assignment(offering_id=1, room_id=2, faculty_id=1),
        make_assignment(offering_id=2, room_id=2, faculty_id=2),
    ))
    violations = find_violations(timetable, snapshot)
    assert [(a.offering_id, v) for a, v in violations] == [(2, Violation.ROOM_CONFLICT)]


def test_previous_timetable_with_unknown_offering_is_rejected():
    snapshot = make_snapshot()
    stale = Timetable(assignments=(make_assignment(offering_id=77),))
    with pytest.raises(InputError) as exc_info:
        validate_previous_timetable(stale, snapshot)
    assert exc_info.value.details['problems'] == [{'problem': 'unknown_offering', 'ids': [77]}]


def test_previous_timetable_with_repeated_offering_is_rejected():
    snapshot = make_snapshot()
    twice = Timetable(assignments=(
        make_assignment(offering_id=1, timeslot_id=1),
        make_assignment(offering_id=1, timeslot_id=2),
    ))
    with pytest.raises(InputError) as exc_info:
        validate_previous_timetable(twice, snapshot)
    assert exc_info.value.details['problems'] == [{'problem': 'duplicate_offering', 'ids': [1]}]


def test_previous_assignments_that_no_longer_fit_are_dropped(caplog):
    # Room 2 shrank below offering 2's enrollment of 40
    snapshot = make_snapshot(rooms=[
        {'id': 1, 'name': 'A-101', 'capacity': 30, 'room_type': 'Lecture'},
        {'id': 2, 'name': 'A-102', 'capacity': 35, 'room_type': 'Lecture'},
    ])
    previous = Timetable(assignments=(
        make_assignment(offering_id=1, room_id=1, faculty_id=1),
        make_assignment(offering_id=2, room_id=2, faculty_id=2),
    ))
    with caplog.at_level('WARNING', logger='timetable_engine.validation'):
        kept = validate_previous_timetable(previous, snapshot)

    assert kept == [previous.assignments[0]]
    assert 'room_too_small' in caplog.text


def test_previous_assignments_clashing_with_earlier_ones_are_dropped():
    snapshot = make_snapshot(days=['Monday'])
    previous = Timetable(assignments=(
        make_assignment(offering_id=2, room_id=2, faculty_id=2),
        make_assignment(offering_id=1, room_id=2, faculty_id=1),
    ))
    kept = validate_previous_timetable(previous, snapshot)
    # Canonical order puts offering 1 first on equal day, slot and room
    assert [a.offering_id for a in kept] == [1]


def test_previous_assignments_on_removed_days_are_dropped():
    snapshot = make_snapshot(days=['Tuesday'])
    previous = Timetable(assignments=(make_assignment(offering_id=1, room_id=1, faculty_id=1),))
    assert validate_previous_timetable(previous, snapshot) == []
