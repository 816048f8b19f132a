import math
from datetime import time
from typing import Dict

import numpy as np

from timetable_engine.models import Assignment, SoftConstraintWeights, TermSnapshot
from timetable_engine.tracker import ConstraintIndex
from timetable_engine.utils import overlap_seconds, time_to_seconds

DAY_END = time(23, 59, 59)


class ScoreEngine:
    """
    Soft cost of placing an assignment given what the index already holds.

    Each ``_score_<name>`` returns a non-negative penalty, weighted by the
    matching field of ``SoftConstraintWeights``. Lower totals are better.
    """
    def __init__(self, snapshot: TermSnapshot, weights: SoftConstraintWeights, index: ConstraintIndex):
        self.snapshot = snapshot
        self.weights: Dict[str, float] = weights.model_dump()
        self.index = index
        self.slot_position = {slot.id: idx for idx, slot in enumerate(snapshot.ordered_timeslots)}
        self.day_position = {day: idx for idx, day in enumerate(snapshot.days)}

    def score_assignment(self, assignment: Assignment) -> float:
        scores = self._penalties(assignment, skip_unweighted=True)
        return sum(self.weights[key] * scores[key] for key in scores)

    def breakdown(self, assignment: Assignment) -> Dict[str, float]:
        return self._penalties(assignment, skip_unweighted=False)

    def _penalties(self, assignment: Assignment, skip_unweighted: bool) -> Dict[str, float]:
        scores = {}
        for key, weight in self.weights.items():
            if skip_unweighted and not weight:
                continue
            score_func = getattr(self, f'_score_{key}', None)
            if not score_func:
                continue
            scores[key] = score_func(assignment)
        return scores

    def _score_offering_time_window(self, assignment: Assignment) -> float:
        offering = self.snapshot.offerings_by_id[assignment.offering_id]
        if offering.preferred_start is None and offering.preferred_end is None:
            return 0.0

        slot = self.snapshot.timeslots_by_id[assignment.timeslot_id]
        duration = time_to_seconds(slot.end_time) - time_to_seconds(slot.start_time)
        inside = overlap_seconds(
            slot.start_time, slot.end_time,
            offering.preferred_start or time.min, offering.preferred_end or DAY_END,
        )
        return offering.preference_weight * (1.0 - inside / duration)

    def _score_offering_preferred_days(self, assignment: Assignment) -> float:
        offering = self.snapshot.offerings_by_id[assignment.offering_id]
        if not offering.preferred_days or assignment.day in offering.preferred_days:
            return 0.0
        return offering.preference_weight

    def _score_faculty_preferred_days(self, assignment: Assignment) -> float:
        faculty = self.snapshot.faculty_by_id[assignment.faculty_id]
        if not faculty.preferred_days or assignment.day in faculty.preferred_days:
            return 0.0
        return 1.0

    def _score_faculty_slot_gap(self, assignment: Assignment) -> float:
        # Idle slots between this class and the faculty member's nearest class that day
        taken = self.index.faculty_slots_on_day[assignment.faculty_id][assignment.day]
        position = self.slot_position[assignment.timeslot_id]
        others = [self.slot_position[s] for s in taken if s != assignment.timeslot_id]
        if not others:
            return 0.0

        gap = min(abs(position - other) for other in others) - 1
        max_gap = max(len(self.slot_position) - 2, 1)
        return min(gap / max_gap, 1.0)

    def _score_room_capacity_slack(self, assignment: Assignment) -> float:
        offering = self.snapshot.offerings_by_id[assignment.offering_id]
        size = offering.class_size
        if size is None:
            return 0.0
        room = self.snapshot.rooms_by_id[assignment.room_id]
        return (room.capacity - size) / room.capacity

    def _score_faculty_day_balance(self, assignment: Assignment) -> float:
        days = len(self.day_position)
        if days < 2:
            return 0.0

        per_day = self.index.faculty_load_by_day[assignment.faculty_id]
        loads = np.array([per_day[day] for day in self.snapshot.days], dtype=float)
        loads[self.day_position[assignment.day]] += 1

        # Coefficient of variation, scaled so that "everything on one day" is 1
        variation = loads.std() / loads.mean()
        return float(variation / math.sqrt(days - 1))
