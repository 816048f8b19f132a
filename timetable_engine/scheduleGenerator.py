import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from timetable_engine.config import get_settings
from timetable_engine.exceptions import ConfigurationError
from timetable_engine.models import (
    Assignment, Offering, SoftConstraintWeights, TermSnapshot, Timetable,
    UnplacedOffering, UnplacedReason, assignment_sort_key,
)
from timetable_engine.score import ScoreEngine
from timetable_engine.tracker import ConstraintIndex
from timetable_engine.validation import ConstraintCheckerEngine, validate_previous_timetable, validate_snapshot

logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    # One level of the search: the offering being placed and its ranked candidates.
    offering: Offering
    candidates: List[Tuple[float, Assignment]]
    base_placed: int
    base_cost: float
    position: int = 0
    current: Optional[Tuple[float, Assignment]] = None
    skipped: bool = False

    @property
    def placed(self) -> int:
        return self.base_placed + (1 if self.current else 0)

    @property
    def cost(self) -> float:
        return self.base_cost + (self.current[0] if self.current else 0.0)


@dataclass(frozen=True)
class _Best:
    placed: int
    cost: float
    assignments: Tuple[Assignment, ...]
    unplaced: Tuple[int, ...]


class ScheduleGenerator:
    """
    Backtracking search over (day, timeslot, room, faculty) tuples.

    Offerings are placed most-constrained first. For each one the feasible
    tuples are tried cheapest first; an offering whose tuples are all
    exhausted is left unplaced for that branch so the rest can still be
    placed. The search stops once every offering with a feasible tuple is
    placed, when the tree is exhausted, or after ``budget`` backtrack steps,
    and returns the best schedule seen (most offerings placed, then lowest soft cost).

    With ``previous`` the search repairs that timetable: assignments that still
    fit the snapshot are kept as they are and only the missing or dropped
    offerings are placed.
    """
    def __init__(
        self,
        snapshot: TermSnapshot,
        previous: Optional[Timetable] = None,
        budget: Optional[int] = None,
        weights: Optional[SoftConstraintWeights] = None,
    ):
        settings = get_settings()
        self.snapshot = snapshot
        self.budget = settings.exploration_budget if budget is None else budget
        if self.budget <= 0:
            raise ConfigurationError(f'Exploration budget must be positive, got {self.budget}')

        validate_snapshot(snapshot)
        kept = validate_previous_timetable(previous, snapshot) if previous is not None else None

        self.weights = weights or snapshot.weights or settings.resolved_weights()

        self.tracker = ConstraintIndex()
        self.constraints = ConstraintCheckerEngine(snapshot)
        self.scorer = ScoreEngine(snapshot, self.weights, self.tracker)

        self.fixed_cost = self._load_previous(kept)
        pending = [o for o in snapshot.offerings if self.tracker.query_offering(o.id) is None]

        self.domains: Dict[int, List[Assignment]] = {o.id: self.get_static_candidates(o) for o in pending}
        self.offerings: List[Offering] = sorted(pending, key=self.get_offering_priority)

        # placeable_after[d]: offerings deeper than d that have at least one candidate
        self.placeable_after = [0] * len(self.offerings)
        for depth in range(len(self.offerings) - 2, -1, -1):
            nxt = self.offerings[depth + 1]
            self.placeable_after[depth] = self.placeable_after[depth + 1] + (1 if self.domains[nxt.id] else 0)
        placeable = sum(1 for o in self.offerings if self.domains[o.id])
        self.target = len(self.tracker) + placeable

        self.steps = 0
        self.best: Optional[_Best] = None

    def _load_previous(self, kept: Optional[List[Assignment]]) -> float:
        if kept is None:
            return 0.0

        cost = 0.0
        for assignment in kept:
            cost += self.scorer.score_assignment(assignment)
            self.tracker.try_insert(assignment)
        logger.info('Repair mode: keeping %d assignments from the previous timetable', len(self.tracker))
        return cost

    def get_static_candidates(self, offering: Offering) -> List[Assignment]:
        rooms = self.snapshot.matching_rooms(offering)
        teachers = self.snapshot.eligible_faculty(offering)

        candidates = []
        for day in self.snapshot.days:
            for slot in self.snapshot.ordered_timeslots:
                for room in rooms:
                    for teacher in teachers:
                        assignment = Assignment(
                            offering_id=offering.id, day=day, timeslot_id=slot.id,
                            room_id=room.id, faculty_id=teacher.id,
                        )
                        if self.constraints.check_static(assignment) is None:
                            candidates.append(assignment)
        return candidates

    def get_offering_priority(self, offering: Offering) -> Tuple[int, int, int]:
        # Ascending sort: fewest rooms, then fewest free faculty slots, then id
        rooms = len(self.snapshot.matching_rooms(offering))
        free = max(
            (self._free_faculty_slots(teacher.id) for teacher in self.snapshot.eligible_faculty(offering)),
            default=0,
        )
        return rooms, free, offering.id

    def _free_faculty_slots(self, faculty_id: int) -> int:
        teacher = self.snapshot.faculty_by_id[faculty_id]
        return sum(
            1
            for day in self.snapshot.days
            for slot in self.snapshot.timeslots
            if (day, slot.id) not in teacher.unavailable
            and self.tracker.query_faculty(day, slot.id, faculty_id) is None
        )

    def get_available_candidates(self, offering: Offering) -> List[Tuple[float, Assignment]]:
        scored = []
        for assignment in self.domains[offering.id]:
            if self.constraints.check_conflicts(assignment, self.tracker) is not None:
                continue
            scored.append((self.scorer.score_assignment(assignment), assignment))

        # Stable: equal costs keep enumeration order
        scored.sort(key=lambda c: c[0])
        return scored

    def generate(self) -> Timetable:
        logger.info(
            'Generating timetable for term %s: %d offerings to place, %d kept, budget %d',
            self.snapshot.term_id, len(self.offerings), len(self.tracker), self.budget,
        )

        exhausted = self._search()
        timetable = self._make_timetable()

        if exhausted:
            logger.warning(
                'Exploration budget of %d steps exhausted; returning best partial timetable', self.budget,
            )
        logger.info(
            'Placed %d of %d offerings (valid=%s, cost=%.4f, steps=%d)',
            timetable.placed_count, len(self.snapshot.offerings), timetable.valid,
            timetable.total_soft_cost, self.steps,
        )
        return timetable

    def _search(self) -> bool:
        """Run the search; True when it stopped because the budget ran out."""
        if not self.offerings:
            self._record(len(self.tracker), self.fixed_cost, ())
            return False

        stack = [self._make_frame(0, len(self.tracker), self.fixed_cost)]
        while stack:
            frame = stack[-1]
            if frame.current is not None:
                self._undo(frame)
                self.steps += 1
                if self.steps >= self.budget:
                    return True

            if not self._advance(frame, remaining=self.placeable_after[len(stack) - 1]):
                stack.pop()
                continue

            if len(stack) == len(self.offerings):
                unplaced = tuple(f.offering.id for f in stack if f.skipped)
                self._record(frame.placed, frame.cost, unplaced)
                if self.best.placed >= self.target:
                    return False
            else:
                stack.append(self._make_frame(len(stack), frame.placed, frame.cost))
        return False

    def _make_frame(self, depth: int, placed: int, cost: float) -> _Frame:
        offering = self.offerings[depth]
        candidates = self.get_available_candidates(offering)
        logger.debug('Depth %d: offering %d has %d feasible candidates', depth, offering.id, len(candidates))
        return _Frame(offering=offering, candidates=candidates, base_placed=placed, base_cost=cost)

    def _advance(self, frame: _Frame, remaining: int) -> bool:
        """Move ``frame`` to its next choice. False when it has none left."""
        while frame.position < len(frame.candidates):
            cost, assignment = frame.candidates[frame.position]
            frame.position += 1

            # Candidates are sorted by cost, so once one cannot win none can.
            if not self._can_improve(frame.base_placed + 1 + remaining, frame.base_cost + cost):
                frame.position = len(frame.candidates)
                break
            if self.tracker.try_insert(assignment) is not None:
                continue
            frame.current = (cost, assignment)
            return True

        if frame.skipped:
            frame.skipped = False
            return False

        # Leave this offering unplaced on this branch
        if not self._can_improve(frame.base_placed + remaining, frame.base_cost):
            return False
        frame.skipped = True
        return True

    def _undo(self, frame: _Frame):
        self.tracker.remove(frame.current[1])
        frame.current = None

    def _can_improve(self, placed: int, cost: float) -> bool:
        best = self.best
        return best is None or placed > best.placed or (placed == best.placed and cost < best.cost)

    def _record(self, placed: int, cost: float, unplaced: Tuple[int, ...]):
        if self._can_improve(placed, cost):
            self.best = _Best(
                placed=placed, cost=cost,
                assignments=tuple(self.tracker.assignments()),
                unplaced=tuple(sorted(unplaced)),
            )

    def _make_timetable(self) -> Timetable:
        best = self.best
        diagnostics = tuple(
            UnplacedOffering(offering_id=offering_id, reason=self.get_unplaced_reason(offering_id))
            for offering_id in best.unplaced
        )
        return Timetable(
            term_id=self.snapshot.term_id,
            assignments=tuple(sorted(best.assignments, key=assignment_sort_key(self.snapshot))),
            valid=not best.unplaced,
            unplaced=best.unplaced,
            total_soft_cost=best.cost,
            diagnostics=diagnostics,
            steps=self.steps,
        )

    def get_unplaced_reason(self, offering_id: int) -> UnplacedReason:
        if self.domains[offering_id]:
            return UnplacedReason.CONFLICTS

        offering = self.snapshot.offerings_by_id[offering_id]
        if not self.snapshot.eligible_faculty(offering):
            return UnplacedReason.NO_ELIGIBLE_FACULTY
        if not self.snapshot.matching_rooms(offering):
            return UnplacedReason.NO_MATCHING_ROOM
        return UnplacedReason.NO_AVAILABLE_SLOT


def generate(
    snapshot: Union[TermSnapshot, Dict[str, Any]],
    previous: Optional[Timetable] = None,
    budget: Optional[int] = None,
    weights: Optional[SoftConstraintWeights] = None,
) -> Timetable:
    """Build (or repair) a timetable for one term snapshot."""
    if not isinstance(snapshot, TermSnapshot):
        snapshot = TermSnapshot.parse(snapshot)
    return ScheduleGenerator(snapshot, previous=previous, budget=budget, weights=weights).generate()
