"""
Live tracking session: turns a stream of raw position samples into a path,
a running distance and a set of claimed tiles.

States are Idle and Tracking. `start` moves Idle -> Tracking; `stop` moves
back to Idle keeping everything accumulated; `reset` stops and clears.
"""

from __future__ import annotations

import asyncio
import math
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from trun.errors import SampleError, SessionStateError, UnsupportedCapability
from trun.tracking.config import TrackingConfig
from trun.tracking.sources import LocationSource
from trun.utils.fmt import pace_seconds_per_km
from trun.utils.geo import Coordinate, coordinate_to_tile_key, haversine
from trun.utils.log import get_logger

logger = get_logger(__name__)

UNSUPPORTED_MESSAGE = "Geolocation is not supported on this host."


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TrackingSession:
    """
    Stateful tracking engine for a single run.

    The session owns both of its subscriptions: the location source watch
    and the duration timer. `stop` releases the two together.

    Parameters
    ----------
    source
        Location source to subscribe to; None means the host has no
        location capability.
    cfg
        Grid size, jitter threshold and tick interval.
    clock
        Monotonic clock (seconds) used for the duration; injectable for tests.
    """

    def __init__(
        self,
        source: Optional[LocationSource],
        cfg: Optional[TrackingConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.cfg = cfg or TrackingConfig.running()
        self._clock = clock
        self._watch_handle: Any = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._clear()

    def _clear(self) -> None:
        self.position: Optional[Coordinate] = None
        self.path: list[Coordinate] = []
        self.distance = 0.0
        self.claimed_tiles: set[str] = set()
        self.is_tracking = False
        self.duration = 0
        self.start_time: Optional[str] = None
        self.error: Optional[str] = None
        self._start_clock: Optional[float] = None

    # ------------------------------------------------------------------
    # lifecycle

    def start(self) -> None:
        """
        Begin a new run: clear accumulated state, subscribe to the source and
        start the duration clock.

        Raises
        ------
        SessionStateError
            If the session is already tracking.
        UnsupportedCapability
            If there is no available location source. The message is also
            recorded in `error`; nothing else changes.
        """
        if self.is_tracking:
            raise SessionStateError("Session is already tracking.")
        if self.source is None or not self.source.available:
            self.error = UNSUPPORTED_MESSAGE
            logger.warning(UNSUPPORTED_MESSAGE)
            raise UnsupportedCapability(UNSUPPORTED_MESSAGE)

        # raises RuntimeError outside a running loop, before any state changes
        loop = asyncio.get_running_loop()

        self.error = None
        self.path = []
        self.distance = 0.0
        self.claimed_tiles = set()
        self.duration = 0
        self.start_time = _utc_now_iso()
        self._start_clock = self._clock()

        self._schedule_tick(loop)
        self._watch_handle = self.source.watch(self.on_sample, self.on_error)
        self.is_tracking = True
        logger.info("Tracking started at %s", self.start_time)

    def stop(self) -> None:
        """
        Release the source watch and the timer. Accumulated path, distance,
        tiles and duration are kept. A no-op when already idle.
        """
        if self._watch_handle is not None:
            if self.source is not None:
                self.source.clear_watch(self._watch_handle)
            self._watch_handle = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.is_tracking:
            self.is_tracking = False
            logger.info(
                "Tracking stopped: %d points, %.1f m, %d tiles, %d s",
                len(self.path), self.distance, len(self.claimed_tiles), self.duration,
            )

    def reset(self) -> None:
        """
        Stop, then clear everything back to a blank idle session.
        """
        self.stop()
        self._clear()

    # ------------------------------------------------------------------
    # callbacks

    def on_sample(self, coord: Coordinate) -> None:
        """
        Handle one raw position sample.

        The current position always follows the sample. The path, distance
        and tile set only grow when the sample is more than `min_move_m`
        from the last accepted point.
        """
        if not self.is_tracking:
            return
        lat, lng = float(coord[0]), float(coord[1])
        new_pos = (lat, lng)
        self.position = new_pos

        if self.path:
            step = haversine(self.path[-1], new_pos)
            if step <= self.cfg.min_move_m:
                return
            self.distance += step
        self.path.append(new_pos)

        tile_key = coordinate_to_tile_key(new_pos, self.cfg.grid_size)
        if tile_key not in self.claimed_tiles:
            self.claimed_tiles.add(tile_key)
            logger.debug("Claimed tile %s (%d total)", tile_key, len(self.claimed_tiles))

    def on_error(self, exc: BaseException) -> None:
        """
        Record a sensor failure. Tracking carries on.
        """
        if not self.is_tracking:
            return
        err = exc if isinstance(exc, SampleError) else SampleError(str(exc))
        self.error = f"GPS error: {err}"
        logger.warning(self.error)

    def tick(self) -> None:
        """
        Recompute the duration as whole seconds elapsed since `start`.
        """
        if not self.is_tracking or self._start_clock is None:
            return
        elapsed = math.floor(self._clock() - self._start_clock)
        self.duration = max(self.duration, elapsed)

    def _schedule_tick(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        loop = loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self.cfg.tick_interval_s, self._on_timer)

    def _on_timer(self) -> None:
        if not self.is_tracking:
            return
        self.tick()
        self._schedule_tick()

    # ------------------------------------------------------------------
    # views

    @property
    def pace(self) -> Optional[float]:
        """
        Seconds per kilometre, None until enough distance is covered.
        """
        return pace_seconds_per_km(
            self.distance, self.duration, self.cfg.min_pace_distance_m
        )

    def snapshot(self) -> dict:
        """
        Plain-value view of the session state.
        """
        return {
            "position": self.position,
            "path": list(self.path),
            "distance": self.distance,
            "claimed_tiles": sorted(self.claimed_tiles),
            "is_tracking": self.is_tracking,
            "error": self.error,
            "duration": self.duration,
            "start_time": self.start_time,
            "pace": self.pace,
        }

    def to_payload(self) -> dict:
        """
        Run payload in the shape the run store accepts.
        """
        return {
            "path": [list(p) for p in self.path],
            "distance": self.distance,
            "claimedTiles": sorted(self.claimed_tiles),
            "duration": self.duration,
            "startTime": self.start_time,
        }
