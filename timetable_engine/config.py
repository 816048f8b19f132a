from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from timetable_engine.config_loader import ConfigLoader
from timetable_engine.models import SoftConstraintWeights


class SchedulerSettings(BaseSettings):
    # e.g. TIMETABLE_EXPLORATION_BUDGET=5000, TIMETABLE_WEIGHTS__FACULTY_SLOT_GAP=2
    model_config = SettingsConfigDict(
        env_prefix='TIMETABLE_',
        env_nested_delimiter='__',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
    )

    # Counted in backtrack steps
    exploration_budget: int = Field(default=2000, gt=0)

    weights: SoftConstraintWeights = SoftConstraintWeights()
    weights_file: Optional[str] = None

    log_level: str = 'INFO'

    def resolved_weights(self) -> SoftConstraintWeights:
        if self.weights_file:
            return ConfigLoader.load_weights(self.weights_file)
        return self.weights


@lru_cache
def get_settings() -> SchedulerSettings:
    return SchedulerSettings()
