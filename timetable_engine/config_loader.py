# parses weight files and snapshot documents from JSON

import json
from typing import Any, Dict

from pydantic import ValidationError

from timetable_engine.exceptions import ConfigurationError, InputError
from timetable_engine.export import timetable_from_rows
from timetable_engine.models import SoftConstraintWeights, TermSnapshot, Timetable


class ConfigLoader:
    @staticmethod
    def load(config_path: str) -> Dict[str, Any]:
        try:
            with open(config_path, 'r') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f'Cannot read {config_path}: {exc}') from exc

    @classmethod
    def load_weights(cls, config_path: str) -> SoftConstraintWeights:
        data = cls.load(config_path)
        # Either the weights themselves or {"weights": {...}}
        if isinstance(data, dict) and isinstance(data.get('weights'), dict):
            data = data['weights']
        try:
            return SoftConstraintWeights.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(
                f'Invalid soft constraint weights in {config_path}',
                details={'errors': exc.errors(include_url=False)},
            ) from exc

    @classmethod
    def load_snapshot(cls, path: str) -> TermSnapshot:
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise InputError(f'Cannot read snapshot {path}: {exc}') from exc
        return TermSnapshot.parse(data)

    @classmethod
    def load_timetable(cls, path: str, term_id=None) -> Timetable:
        """Previous timetable: a dumped Timetable, a generation record or a list of entry rows."""
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise InputError(f'Cannot read timetable {path}: {exc}') from exc

        try:
            if isinstance(data, list):
                return timetable_from_rows(data, term_id=term_id)
            if 'output_json' in data:
                data = data['output_json']
            return Timetable.model_validate(data)
        except ValidationError as exc:
            raise InputError(
                f'Malformed timetable in {path}',
                details={'errors': exc.errors(include_url=False)},
            ) from exc
