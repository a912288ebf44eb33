# trun/utils/fmt.py
"""
Human-readable formatting for run statistics.
"""

import math
from typing import Optional


def format_distance(meters: float) -> str:
    """
    ``532m`` below one kilometre, ``1.23km`` above.
    """
    if meters < 1000:
        return f"{math.floor(meters + 0.5)}m"
    return f"{meters / 1000:.2f}km"


def format_duration(seconds: int) -> str:
    """
    ``MM:SS``, or ``H:MM:SS`` once the run passes an hour.
    """
    seconds = int(seconds)
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"


def pace_seconds_per_km(
    meters: float, seconds: float, min_distance_m: float = 10.0
) -> Optional[float]:
    """
    Seconds per kilometre, or None while the distance is too short to be
    meaningful.
    """
    if meters < min_distance_m:
        return None
    return seconds / (meters / 1000)


def format_pace(meters: float, seconds: float, min_distance_m: float = 10.0) -> str:
    """
    Pace as ``M:SS`` per kilometre, ``--:--`` below `min_distance_m`.
    """
    pace = pace_seconds_per_km(meters, seconds, min_distance_m)
    if pace is None:
        return "--:--"
    m = math.floor(pace / 60)
    s = math.floor(pace % 60 + 0.5)
    if s == 60:
        m, s = m + 1, 0
    return f"{m}:{s:02d}"
