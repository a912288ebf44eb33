"""
Pydantic schemas for run records, stats and the live session API.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base model: snake_case in Python, camelCase on the wire.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RunRecord(CamelModel):
    """
    A finished run, as stored and served. Never mutated after creation.
    """
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    path: tuple[tuple[float, float], ...]
    distance: float = 0.0
    claimed_tiles: tuple[str, ...] = ()
    duration: float = 0.0
    start_time: str
    end_time: str
    created_at: str


class AggregateStats(CamelModel):
    """
    Totals across every stored run.
    """
    total_runs: int
    total_distance: float
    total_duration: float
    unique_tiles_claimed: int


class TileBounds(CamelModel):
    """
    Rectangle covered by one claimed tile: [[south, west], [north, east]].
    """
    key: str
    bounds: tuple[tuple[float, float], tuple[float, float]]


class Sample(BaseModel):
    """
    One raw position sample pushed to the live session.
    """
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class SampleFailure(BaseModel):
    message: str = "Position unavailable"


class SessionState(CamelModel):
    """
    Snapshot of the live tracking session.
    """
    position: Optional[tuple[float, float]] = None
    path: list[tuple[float, float]]
    distance: float
    claimed_tiles: list[str]
    is_tracking: bool
    error: Optional[str] = None
    duration: int
    start_time: Optional[str] = None
    pace: Optional[float] = None
