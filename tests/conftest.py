import pytest

from timetable_engine.config import get_settings
from timetable_engine.models import TermSnapshot


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    # settings are cached per process; start every test from the defaults
    for name in ('TIMETABLE_EXPLORATION_BUDGET', 'TIMETABLE_WEIGHTS_FILE', 'TIMETABLE_LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_snapshot(**overrides) -> TermSnapshot:
    data = {
        'term_id': 1,
        'days': ['Monday', 'Tuesday'],
        'rooms': [
            {'id': 1, 'name': 'A-101', 'capacity': 30, 'room_type': 'Lecture'},
            {'id': 2, 'name': 'A-102', 'capacity': 60, 'room_type': 'Lecture'},
        ],
        'timeslots': [
            {'id': 1, 'start_time': '09:00', 'end_time': '10:00'},
            {'id': 2, 'start_time': '10:00', 'end_time': '11:00'},
        ],
        'courses': [
            {'id': 1, 'code': 'CS101', 'name': 'Programming', 'department_id': 1, 'theory_credits': 3},
            {'id': 2, 'code': 'MA101', 'name': 'Calculus', 'department_id': 2, 'theory_credits': 4},
        ],
        'offerings': [
            {'id': 1, 'course_id': 1, 'section': 'A', 'enrollment_limit': 25, 'faculty_id': 1},
            {'id': 2, 'course_id': 2, 'section': 'A', 'enrollment_limit': 40, 'faculty_id': 2},
        ],
        'faculty': [
            {'id': 1, 'name': 'Ada Lovelace', 'department_id': 1},
            {'id': 2, 'name': 'Carl Gauss', 'department_id': 2},
        ],
    }
    data.update(overrides)
    return TermSnapshot.parse(data)


def make_term_snapshot(offering_count: int = 20) -> TermSnapshot:
    """A realistic week: five days, four slots, three lecture rooms and a lab."""
    courses = [
        {'id': 1, 'code': 'CS101', 'department_id': 1},
        {'id': 2, 'code': 'CS102', 'department_id': 1},
        {'id': 3, 'code': 'CS201L', 'department_id': 1, 'course_type': 'Lab', 'lab_credits': 2,
         'required_room_type': 'Lab'},
        {'id': 4, 'code': 'MA101', 'department_id': 2},
        {'id': 5, 'code': 'PH101', 'department_id': 3},
        {'id': 6, 'code': 'EN101', 'department_id': 4},
    ]
    faculty = [
        {'id': 1, 'name': 'F1', 'department_id': 1, 'preferred_days': ['Mon', 'Wed']},
        {'id': 2, 'name': 'F2', 'department_id': 1},
        {'id': 3, 'name': 'F3', 'department_id': 2, 'unavailable_slots': [['Monday', 1], ['Friday', 4]]},
        {'id': 4, 'name': 'F4', 'department_id': 3},
        {'id': 5, 'name': 'F5', 'department_id': 4, 'preferred_days': ['Thu']},
    ]
    offerings = []
    for i in range(1, offering_count + 1):
        course = courses[(i - 1) % len(courses)]
        members = [f['id'] for f in faculty if f['department_id'] == course['department_id']]
        offerings.append({
            'id': i,
            'course_id': course['id'],
            'section': chr(ord('A') + (i - 1) // len(courses)),
            'enrollment_limit': 20 + (i * 7) % 35,
            'faculty_ids': members,
            'preferred_start': '09:00' if i % 3 == 0 else None,
            'preferred_end': '11:00' if i % 3 == 0 else None,
        })
    return TermSnapshot.parse({
        'term_id': 7,
        'days': ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday'],
        'rooms': [
            {'id': 1, 'name': 'R1', 'capacity': 30, 'room_type': 'Lecture'},
            {'id': 2, 'name': 'R2', 'capacity': 45, 'room_type': 'Lecture'},
            {'id': 3, 'name': 'R3', 'capacity': 60, 'room_type': 'Lecture'},
            {'id': 4, 'name': 'L1', 'capacity': 60, 'room_type': 'Lab'},
        ],
        'timeslots': [
            {'id': 1, 'start_time': '09:00', 'end_time': '10:00'},
            {'id': 2, 'start_time': '10:00', 'end_time': '11:00'},
            {'id': 3, 'start_time': '11:00', 'end_time': '12:00'},
            {'id': 4, 'start_time': '13:00', 'end_time': '14:00'},
        ],
        'courses': courses,
        'offerings': offerings,
        'faculty': faculty,
    })


def make_tight_snapshot() -> TermSnapshot:
    """One instructor, one day, three slots, six offerings: at most three fit."""
    return TermSnapshot.parse({
        'term_id': 3,
        'days': ['Monday'],
        'rooms': [
            {'id': 1, 'capacity': 30, 'room_type': 'Lecture'},
            {'id': 2, 'capacity': 50, 'room_type': 'Lecture'},
        ],
        'timeslots': [
            {'id': 1, 'start_time': '08:00', 'end_time': '09:00'},
            {'id': 2, 'start_time': '09:00', 'end_time': '10:00'},
            {'id': 3, 'start_time': '12:00', 'end_time': '13:00'},
        ],
        'courses': [{'id': 1, 'code': 'CS101', 'department_id': 1}],
        'offerings': [
            {'id': i, 'course_id': 1, 'enrollment_limit': 10 * i, 'faculty_id': 1,
             'preferred_start': '09:00', 'preferred_end': '13:00'}
            for i in range(1, 7)
        ],
        'faculty': [{'id': 1, 'name': 'Solo', 'department_id': 1}],
    })
