# trun/server.py
"""
FastAPI server for the trun CLI: the run store plus a live tracking session
fed by pushed position samples.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, FastAPI, Request
from starlette.responses import JSONResponse

from trun.errors import InvalidRun, SessionStateError, UnsupportedCapability
from trun.analysis.aggregate import build_run_record, tile_bounds
from trun.storage.dao import DAO, db_path_for
from trun.tracking.config import TrackingConfig
from trun.tracking.session import TrackingSession
from trun.tracking.sources import PushSource
from trun.utils.geo import tile_key_to_bounds
from trun.utils.validate import (
    AggregateStats,
    RunRecord,
    Sample,
    SampleFailure,
    SessionState,
    TileBounds,
)

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _record_json(record: RunRecord) -> dict:
    return record.model_dump(mode="json", by_alias=True)


def _session_json(session: TrackingSession) -> dict:
    state = SessionState(**session.snapshot())
    return state.model_dump(mode="json", by_alias=True)


def create_app(
    name: str,
    db_path: Optional[str] = None,
    cfg: Optional[TrackingConfig] = None,
) -> FastAPI:
    """
    Build a FastAPI instance bound to one run store.

    Parameters
    ----------
    name
        Store name; selects the SQLite file unless `db_path` is given.
    db_path
        Explicit SQLite path (tests use a temporary file).
    cfg
        Tracking configuration for the live session.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.session.stop()
        app.state.dao.close()

    app = FastAPI(title="trun", lifespan=lifespan)
    app.state.name = name
    app.state.dao = DAO(db_path or db_path_for(name))
    app.state.source = PushSource()
    app.state.session = TrackingSession(app.state.source, cfg)

    @app.exception_handler(InvalidRun)
    async def invalid_run(request: Request, exc: InvalidRun) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(SessionStateError)
    async def bad_transition(request: Request, exc: SessionStateError) -> JSONResponse:
        return _error(409, str(exc))

    @app.exception_handler(UnsupportedCapability)
    async def unsupported(request: Request, exc: UnsupportedCapability) -> JSONResponse:
        return _error(503, str(exc))

    # run store
    @app.get("/", response_class=JSONResponse)
    async def root() -> JSONResponse:
        return JSONResponse(status_code=200, content={"message": "trun API is live"})

    @app.get("/api/status", response_class=JSONResponse)
    async def status() -> JSONResponse:
        return JSONResponse(status_code=200, content={"status": "ok"})

    @app.get("/runs", response_model=list[RunRecord])
    async def list_runs(request: Request):
        return request.app.state.dao.list_runs()

    @app.get("/runs/{run_id}", response_model=RunRecord)
    async def get_run(request: Request, run_id: str):
        record = request.app.state.dao.get_run(run_id)
        if record is None:
            return _error(404, "Run not found")
        return record

    @app.get("/runs/{run_id}/tiles", response_model=list[TileBounds])
    async def get_run_tiles(request: Request, run_id: str):
        """
        Bounds of every tile the run claimed, for the map layer.
        """
        record = request.app.state.dao.get_run(run_id)
        if record is None:
            return _error(404, "Run not found")
        return tile_bounds(record, request.app.state.session.cfg.grid_size)

    @app.post("/run", response_class=JSONResponse)
    async def save_run(request: Request, payload: dict[str, Any] = Body(...)):
        record = build_run_record(payload)
        request.app.state.dao.add_run(record)
        return JSONResponse(status_code=201, content=_record_json(record))

    @app.delete("/runs/{run_id}", response_class=JSONResponse)
    async def delete_run(request: Request, run_id: str):
        record = request.app.state.dao.delete_run(run_id)
        if record is None:
            return _error(404, "Run not found")
        return JSONResponse(
            status_code=200,
            content={"message": "Run deleted", "run": _record_json(record)},
        )

    @app.get("/stats", response_model=AggregateStats)
    async def get_stats(request: Request):
        return request.app.state.dao.get_stats()

    @app.get("/tiles/{key}/bounds", response_model=TileBounds)
    async def get_tile_bounds(request: Request, key: str):
        try:
            bounds = tile_key_to_bounds(key, request.app.state.session.cfg.grid_size)
        except ValueError as e:
            return _error(400, str(e))
        return TileBounds(key=key, bounds=bounds)

    # live session
    @app.get("/session", response_class=JSONResponse)
    async def get_session(request: Request) -> JSONResponse:
        return JSONResponse(status_code=200, content=_session_json(request.app.state.session))

    @app.post("/session/start", response_class=JSONResponse)
    async def start_session(request: Request) -> JSONResponse:
        session = request.app.state.session
        session.start()
        return JSONResponse(status_code=200, content=_session_json(session))

    @app.post("/session/sample", response_class=JSONResponse)
    async def push_sample(request: Request, sample: Sample) -> JSONResponse:
        session = request.app.state.session
        if not session.is_tracking:
            return _error(409, "Session is not tracking.")
        request.app.state.source.push((sample.lat, sample.lng))
        return JSONResponse(status_code=200, content=_session_json(session))

    @app.post("/session/error", response_class=JSONResponse)
    async def push_error(request: Request, failure: SampleFailure) -> JSONResponse:
        session = request.app.state.session
        request.app.state.source.fail(failure.message)
        return JSONResponse(status_code=200, content=_session_json(session))

    @app.post("/session/stop", response_class=JSONResponse)
    async def stop_session(request: Request) -> JSONResponse:
        session = request.app.state.session
        session.stop()
        return JSONResponse(status_code=200, content=_session_json(session))

    @app.post("/session/reset", response_class=JSONResponse)
    async def reset_session(request: Request) -> JSONResponse:
        session = request.app.state.session
        session.reset()
        return JSONResponse(status_code=200, content=_session_json(session))

    @app.post("/session/save", response_class=JSONResponse)
    async def save_session(request: Request) -> JSONResponse:
        """
        Store the live session as a run, then reset it for the next one.

        A run that cannot be recorded (InvalidRun -> 400) leaves the session
        untouched.
        """
        session = request.app.state.session
        record = build_run_record(session)
        session.stop()
        request.app.state.dao.add_run(record)
        session.reset()
        return JSONResponse(status_code=201, content=_record_json(record))

    return app
