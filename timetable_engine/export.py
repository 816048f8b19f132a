# Shapes a Timetable into the rows the persistence layer stores.
from typing import Any, Dict, Iterable, List, Optional

from timetable_engine.models import Assignment, Timetable


def timetable_entry_rows(timetable: Timetable) -> List[Dict[str, Any]]:
    """One ``timetable_entry`` row per assignment; ``day`` uses the short code ("Mon")."""
    return [
        {
            'term_id': timetable.term_id,
            'day': assignment.day.short,
            'timeslot_id': assignment.timeslot_id,
            'offering_id': assignment.offering_id,
            'room_id': assignment.room_id,
            'faculty_id': assignment.faculty_id,
        }
        for assignment in timetable.assignments
    ]


def generation_record(timetable: Timetable) -> Dict[str, Any]:
    return {
        'term_id': timetable.term_id,
        'output_json': timetable.model_dump(mode='json'),
        'is_valid': timetable.valid,
    }


def timetable_from_rows(rows: Iterable[Dict[str, Any]], term_id: Optional[int] = None) -> Timetable:
    # Persisted rows say nothing about unplaced offerings; the generator works those out.
    assignments = tuple(
        Assignment.model_validate(row)
        for row in rows
        if term_id is None or row.get('term_id') in (None, term_id)
    )
    return Timetable(term_id=term_id, assignments=assignments, valid=False)
