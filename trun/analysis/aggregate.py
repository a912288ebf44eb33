"""
Run aggregation: package a finished session into a stored run record, and
compute totals across stored runs.
"""

from __future__ import annotations

import math
import secrets
import string
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Iterable, Union

from pydantic import ValidationError

from trun.errors import InvalidRun
from trun.tracking.session import TrackingSession
from trun.utils.geo import GRID_SIZE, tile_key_to_bounds
from trun.utils.log import get_logger
from trun.utils.validate import AggregateStats, RunRecord, TileBounds

logger = get_logger(__name__)

MIN_PATH_POINTS = 2
INVALID_PATH_MESSAGE = "Invalid run path. Must have at least 2 points."
ID_ALPHABET = string.digits + string.ascii_lowercase
ID_SUFFIX_LEN = 7


def new_run_id() -> str:
    """
    ``run_<epoch ms>_<random base36>``: time-ordered, collision resistant.
    """
    suffix = "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_SUFFIX_LEN))
    return f"run_{int(time.time() * 1000)}_{suffix}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _number(value: Any) -> float:
    """
    Numeric fields from untrusted payloads: anything but a finite number is 0.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return value


def _field(run: Any, *names: str) -> Any:
    """
    Read the first present field among `names` from a mapping or an object.
    """
    for name in names:
        if isinstance(run, Mapping):
            if name in run:
                return run[name]
        elif hasattr(run, name):
            return getattr(run, name)
    return None


def _timestamp(value: Any) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str) and value:
        return value
    return None


def build_run_record(
    run: Union[TrackingSession, Mapping[str, Any]],
    end_time: Union[datetime, str, None] = None,
) -> RunRecord:
    """
    Build an immutable run record from a finished session or a run payload.

    Parameters
    ----------
    run
        A `TrackingSession`, or a mapping shaped like the HTTP body
        (``path``, ``distance``, ``claimedTiles``, ``duration``,
        ``startTime``, ``endTime``).
    end_time
        When the run ended; falls back to the payload's ``endTime``, then to now.

    Returns
    -------
    RunRecord
        Record with a freshly generated id and creation timestamp.

    Raises
    ------
    InvalidRun
        If the path has fewer than 2 points or holds malformed points.
    """
    payload = run.to_payload() if isinstance(run, TrackingSession) else run
    if not isinstance(payload, Mapping):
        raise InvalidRun(INVALID_PATH_MESSAGE)

    path = payload.get("path")
    if not isinstance(path, (list, tuple)) or len(path) < MIN_PATH_POINTS:
        raise InvalidRun(INVALID_PATH_MESSAGE)

    tiles = _field(payload, "claimedTiles", "claimed_tiles")
    if not isinstance(tiles, (list, tuple, set, frozenset)):
        tiles = []

    now = _now_iso()
    try:
        record = RunRecord(
            id=new_run_id(),
            path=path,
            distance=_number(payload.get("distance")),
            claimed_tiles=tuple(t for t in tiles if isinstance(t, str)),
            duration=_number(payload.get("duration")),
            start_time=_timestamp(_field(payload, "startTime", "start_time")) or now,
            end_time=(
                _timestamp(end_time)
                or _timestamp(_field(payload, "endTime", "end_time"))
                or now
            ),
            created_at=now,
        )
    except ValidationError as e:
        raise InvalidRun(f"Invalid run path: {e.error_count()} malformed point(s).") from e

    logger.debug("Built run record %s (%d points)", record.id, len(record.path))
    return record


def compute_aggregate_stats(
    records: Iterable[Union[RunRecord, Mapping[str, Any]]]
) -> AggregateStats:
    """
    Totals across runs.

    Distance and duration are plain sums (missing or non-numeric fields count
    as 0). ``unique_tiles_claimed`` is the size of the union of every run's
    tiles, so a tile claimed on several runs counts once.
    """
    total_runs = 0
    total_distance = 0.0
    total_duration = 0.0
    all_tiles: set[str] = set()
    for rec in records:
        total_runs += 1
        total_distance += _number(_field(rec, "distance"))
        total_duration += _number(_field(rec, "duration"))
        tiles = _field(rec, "claimed_tiles", "claimedTiles")
        if isinstance(tiles, (list, tuple, set, frozenset)):
            all_tiles.update(t for t in tiles if isinstance(t, str))
    return AggregateStats(
        total_runs=total_runs,
        total_distance=total_distance,
        total_duration=total_duration,
        unique_tiles_claimed=len(all_tiles),
    )


def tile_bounds(record: RunRecord, grid_size: float = GRID_SIZE) -> list[TileBounds]:
    """
    Bounds of every tile a run claimed, for drawing them on a map.
    """
    out: list[TileBounds] = []
    for key in record.claimed_tiles:
        try:
            bounds = tile_key_to_bounds(key, grid_size)
        except ValueError:
            logger.warning("Run %s has malformed tile key %r", record.id, key)
            continue
        out.append(TileBounds(key=key, bounds=bounds))
    return out
