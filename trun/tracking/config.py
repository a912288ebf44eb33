# trun/tracking/config.py

from dataclasses import dataclass

from trun.utils.geo import GRID_SIZE


@dataclass
class TrackingConfig:
    """
    Configuration for a tracking session.

    Attributes
    ----------
    grid_size
        Tile edge length (degrees) used when claiming tiles.
    min_move_m
        Jitter filter: a sample must be more than this many metres from the
        last accepted point to grow the path.
    tick_interval_s
        Seconds between duration clock ticks.
    min_pace_distance_m
        Distance (m) below which no pace is reported.
    """
    grid_size:           float = GRID_SIZE
    min_move_m:          float = 3.0
    tick_interval_s:     float = 1.0
    min_pace_distance_m: float = 10.0

    @classmethod
    def running(cls):
        """Preset for running (default thresholds)."""
        return cls()

    @classmethod
    def walking(cls):
        """Preset for walking (slower movement, tighter thresholds)."""
        return cls(
            min_move_m=2.0,
            min_pace_distance_m=5.0,
        )
