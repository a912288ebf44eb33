"""
Location sources: the collaborators that feed position samples into a
tracking session.

A source hands samples to `on_sample` and delivery failures to `on_error`
until the handle returned by `watch` is passed back to `clear_watch`.
"""

from __future__ import annotations

import asyncio
import csv
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol, Union

from trun.errors import SampleError
from trun.utils.geo import Coordinate
from trun.utils.log import get_logger

logger = get_logger(__name__)

SampleCallback = Callable[[Coordinate], None]
ErrorCallback = Callable[[BaseException], None]

LAT_COLUMNS = ("lat", "latitude")
LNG_COLUMNS = ("lng", "lon", "long", "longitude")


class LocationSource(Protocol):
    available: bool

    def watch(self, on_sample: SampleCallback, on_error: ErrorCallback) -> Any: ...

    def clear_watch(self, handle: Any) -> None: ...


class PushSource:
    """
    Source whose samples are pushed in by the caller, e.g. an HTTP endpoint
    relaying a browser's geolocation updates.
    """

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self._watchers: dict[int, tuple[SampleCallback, ErrorCallback]] = {}
        self._next_id = 1

    @property
    def watching(self) -> bool:
        return bool(self._watchers)

    def watch(self, on_sample: SampleCallback, on_error: ErrorCallback) -> int:
        handle = self._next_id
        self._next_id += 1
        self._watchers[handle] = (on_sample, on_error)
        return handle

    def clear_watch(self, handle: int) -> None:
        self._watchers.pop(handle, None)

    def push(self, coord: Coordinate) -> None:
        """
        Deliver a sample to every active watcher.
        """
        for on_sample, _ in list(self._watchers.values()):
            on_sample(coord)

    def fail(self, message: str) -> None:
        """
        Report a delivery failure to every active watcher.
        """
        err = SampleError(message)
        for _, on_error in list(self._watchers.values()):
            on_error(err)


class ReplaySource:
    """
    Replays a recorded sequence of samples on the running asyncio loop.

    Items that are exceptions are delivered through `on_error` instead of
    `on_sample`, which lets a replay reproduce sensor dropouts.
    """

    def __init__(
        self,
        samples: Iterable[Union[Coordinate, BaseException]],
        interval: float = 0.0,
    ) -> None:
        self.available = True
        self.samples = list(samples)
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_csv(cls, csv_path: str | Path, interval: float = 0.0) -> "ReplaySource":
        """
        Load samples from a CSV file with latitude and longitude columns.

        Rows with missing or unparsable coordinates are skipped.
        """
        samples: list[Coordinate] = []
        with open(csv_path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            fields = {name.strip().lower(): name for name in reader.fieldnames or []}
            lat_col = next((fields[c] for c in LAT_COLUMNS if c in fields), None)
            lng_col = next((fields[c] for c in LNG_COLUMNS if c in fields), None)
            if lat_col is None or lng_col is None:
                raise ValueError(f"{csv_path}: no latitude/longitude columns")
            skipped = 0
            for row in reader:
                try:
                    samples.append((float(row[lat_col]), float(row[lng_col])))
                except (TypeError, ValueError):
                    skipped += 1
        if skipped:
            logger.warning("Skipped %d unparsable rows in %s", skipped, csv_path)
        logger.info("Loaded %d samples from %s", len(samples), csv_path)
        return cls(samples, interval=interval)

    def watch(self, on_sample: SampleCallback, on_error: ErrorCallback) -> asyncio.Task:
        self._task = asyncio.get_running_loop().create_task(
            self._replay(on_sample, on_error)
        )
        return self._task

    def clear_watch(self, handle: asyncio.Task) -> None:
        handle.cancel()

    async def wait(self) -> None:
        """
        Wait until the current replay has delivered every sample or was
        cancelled.
        """
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _replay(self, on_sample: SampleCallback, on_error: ErrorCallback) -> None:
        for item in self.samples:
            if isinstance(item, BaseException):
                on_error(item)
            else:
                on_sample(item)
            await asyncio.sleep(self.interval)
