from datetime import time
from typing import Union


def parse_time(value: Union[str, time]) -> time:
    # Accepts "9:00", "09:00" and "09:00:00"
    if isinstance(value, time):
        return value
    parts = [int(p) for p in str(value).strip().split(':')]
    if len(parts) == 2:
        parts.append(0)
    if len(parts) != 3:
        raise ValueError(f'Invalid time value: {value!r}')
    return time(*parts)


def time_to_seconds(value: time) -> float:
    return value.hour * 3600 + value.minute * 60 + value.second + value.microsecond / 1_000_000


def overlap_seconds(start: time, end: time, window_start: time, window_end: time) -> float:
    lo = max(time_to_seconds(start), time_to_seconds(window_start))
    hi = min(time_to_seconds(end), time_to_seconds(window_end))
    return max(0.0, hi - lo)
