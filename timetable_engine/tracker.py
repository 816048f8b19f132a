from collections import defaultdict
from typing import Dict, Iterator, List, Optional

from timetable_engine.models import (
    Assignment, ConflictKind, Day, FacultyKey, RoomKey,
    faculty_conflict_key, offering_key, room_conflict_key,
)


class ConstraintIndex:
    """
    Occupancy of rooms, faculty and offerings for one working set of assignments.

    Owned by a single search; not safe for concurrent mutation.
    """
    def __init__(self):
        self.by_room: Dict[RoomKey, Assignment] = {}
        self.by_faculty: Dict[FacultyKey, Assignment] = {}
        self.by_offering: Dict[int, Assignment] = {}

        # Tracker
        self.faculty_slots_on_day = defaultdict(lambda: defaultdict(set))
        self.faculty_load_by_day = defaultdict(lambda: defaultdict(int))
        self.room_load = defaultdict(int)

    def try_insert(self, assignment: Assignment) -> Optional[ConflictKind]:
        room_key = room_conflict_key(assignment)
        faculty_key = faculty_conflict_key(assignment)
        key = offering_key(assignment)

        # Check all three before touching anything
        if key in self.by_offering:
            return ConflictKind.OFFERING_ALREADY_SCHEDULED
        if room_key in self.by_room:
            return ConflictKind.ROOM_CONFLICT
        if faculty_key in self.by_faculty:
            return ConflictKind.FACULTY_CONFLICT

        self.by_room[room_key] = assignment
        self.by_faculty[faculty_key] = assignment
        self.by_offering[key] = assignment

        self.faculty_slots_on_day[assignment.faculty_id][assignment.day].add(assignment.timeslot_id)
        self.faculty_load_by_day[assignment.faculty_id][assignment.day] += 1
        self.room_load[assignment.room_id] += 1
        return None

    def remove(self, assignment: Assignment):
        key = offering_key(assignment)
        if self.by_offering.get(key) != assignment:
            return

        del self.by_offering[key]
        del self.by_room[room_conflict_key(assignment)]
        del self.by_faculty[faculty_conflict_key(assignment)]

        self.faculty_slots_on_day[assignment.faculty_id][assignment.day].discard(assignment.timeslot_id)
        self.faculty_load_by_day[assignment.faculty_id][assignment.day] -= 1
        self.room_load[assignment.room_id] -= 1

    def query_room(self, day: Day, timeslot_id: int, room_id: int) -> Optional[Assignment]:
        return self.by_room.get((room_id, day, timeslot_id))

    def query_faculty(self, day: Day, timeslot_id: int, faculty_id: int) -> Optional[Assignment]:
        return self.by_faculty.get((faculty_id, day, timeslot_id))

    def query_offering(self, offering_id: int) -> Optional[Assignment]:
        return self.by_offering.get(offering_id)

    def faculty_load(self, faculty_id: int) -> int:
        return sum(self.faculty_load_by_day[faculty_id].values())

    def assignments(self) -> List[Assignment]:
        # dicts keep insertion order
        return list(self.by_offering.values())

    def copy(self) -> 'ConstraintIndex':
        clone = ConstraintIndex()
        for assignment in self.by_offering.values():
            clone.try_insert(assignment)
        return clone

    def __len__(self) -> int:
        return len(self.by_offering)

    def __contains__(self, assignment: Assignment) -> bool:
        return self.by_offering.get(offering_key(assignment)) == assignment

    def __iter__(self) -> Iterator[Assignment]:
        return iter(self.assignments())
