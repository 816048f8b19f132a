from timetable_engine.exceptions import ConfigurationError, EngineError, InputError
from timetable_engine.models import (
    Assignment, Course, Day, Faculty, Offering, Room, SoftConstraintWeights,
    TermSnapshot, TimeSlot, Timetable, UnplacedOffering, UnplacedReason,
)
from timetable_engine.scheduleGenerator import ScheduleGenerator, generate

__all__ = [
    'Assignment', 'ConfigurationError', 'Course', 'Day', 'EngineError', 'Faculty',
    'InputError', 'Offering', 'Room', 'ScheduleGenerator', 'SoftConstraintWeights',
    'TermSnapshot', 'TimeSlot', 'Timetable', 'UnplacedOffering', 'UnplacedReason',
    'generate',
]
