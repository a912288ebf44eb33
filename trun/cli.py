#!/usr/bin/env python3
"""
CLI entry point for the trun territory-run toolkit.

Defines the following commands:
  trun serve NAME [--host 127.0.0.1] [--port 8000]
  trun replay NAME <csv> [--interval SECONDS] [--walking] [--save]
  trun runs NAME
  trun stats NAME
  trun delete NAME RUN_ID
  trun version
"""

import asyncio
import logging
import os
import sqlite3
import sys
from argparse import ArgumentParser, Namespace
from importlib.metadata import PackageNotFoundError, version as _get_version

import uvicorn

from trun.errors import InvalidRun, TrunError
from trun.utils.log import get_logger, set_level
from trun.utils.fmt import format_distance, format_duration, format_pace
from trun.storage.dao import DAO, db_path_for
from trun.server import create_app
from trun.tracking.config import TrackingConfig
from trun.tracking.session import TrackingSession
from trun.tracking.sources import ReplaySource
from trun.analysis.aggregate import build_run_record
from trun.utils.geo import path_distance

logger = get_logger(__name__)

# accumulated vs. recomputed path distance, metres
DISTANCE_TOLERANCE_M = 0.01


def distance_drift(session: TrackingSession) -> float:
    """
    Difference between the distance accumulated sample by sample and the
    distance recomputed from the final path.
    """
    return abs(session.distance - path_distance(session.path))


async def _drive_session(source: ReplaySource, cfg: TrackingConfig) -> TrackingSession:
    session = TrackingSession(source, cfg)
    session.start()
    try:
        await source.wait()
        session.tick()
    finally:
        session.stop()
    return session


def replay(name: str, csv_path: str, interval: float, walking: bool, save: bool) -> int:
    """
    Feed a recorded path through a tracking session, as if it were live.

    Parameters
    ----------
    name
        Run store name, which dictates the SQLite database file name.
    csv_path
        CSV file with latitude/longitude columns, one sample per row.
    interval
        Seconds to wait between samples (0 replays as fast as possible).
    walking
        Use the walking preset instead of the running one.
    save
        Store the resulting run.
    """
    logger.info("Replay: store=%s, csv=%s, interval=%s", name, csv_path, interval)
    cfg = TrackingConfig.walking() if walking else TrackingConfig.running()
    source = ReplaySource.from_csv(csv_path, interval=interval)
    session = asyncio.run(_drive_session(source, cfg))

    logger.info(
        "Distance %s, duration %s, pace %s /km, %d points, %d tiles",
        format_distance(session.distance),
        format_duration(session.duration),
        format_pace(session.distance, session.duration, cfg.min_pace_distance_m),
        len(session.path),
        len(session.claimed_tiles),
    )
    drift = distance_drift(session)
    if drift > DISTANCE_TOLERANCE_M:
        logger.warning("Accumulated distance drifts %.3f m from the path", drift)
    if session.error:
        logger.warning("Last sensor error: %s", session.error)

    if not save:
        return 0
    try:
        record = build_run_record(session)
    except InvalidRun as e:
        logger.error("Not saved: %s", e)
        return 1
    DAO(db_path_for(name)).add_run(record)
    return 0


def list_runs(name: str) -> int:
    """
    Log one line per stored run, oldest first.
    """
    dao = DAO(db_path_for(name))
    runs = dao.list_runs()
    if not runs:
        logger.info("No runs stored in %s", db_path_for(name))
    for run in runs:
        logger.info(
            "%s  %s  %s  %s  pace %s  %d tiles",
            run.id,
            run.start_time,
            format_distance(run.distance),
            format_duration(run.duration),
            format_pace(run.distance, run.duration),
            len(run.claimed_tiles),
        )
    return 0


def stats(name: str) -> int:
    """
    Log aggregate stats across every stored run.
    """
    s = DAO(db_path_for(name)).get_stats()
    logger.info(
        "%d runs, %s, %s, %d unique tiles claimed",
        s.total_runs,
        format_distance(s.total_distance),
        format_duration(s.total_duration),
        s.unique_tiles_claimed,
    )
    return 0


def delete(name: str, run_id: str) -> int:
    """
    Delete one stored run.
    """
    record = DAO(db_path_for(name)).delete_run(run_id)
    if record is None:
        logger.error("Run not found: %s", run_id)
        return 1
    return 0


def serve(name: str, host: str, port: int) -> int:
    """
    Spin up FastAPI+Uvicorn serving the run store and the live session.

    Parameters
    ----------
    name
        Run store name, which dictates the SQLite database file name.
    host
        Interface to bind.
    port
        Port on which to serve HTTP.
    """
    logger.info("Serve: store=%s, host=%s, port=%d", name, host, port)
    app = create_app(name)
    uvicorn.run(app, host=host, port=port)
    return 0


def version() -> int:
    """
    Print the installed trun package version.
    """
    try:
        ver = _get_version("trun")
    except PackageNotFoundError:
        ver = "unknown"
    logger.info("trun version %s", ver)
    return 0


def parse_args(argv: list[str] | None = None) -> Namespace:
    """
    Parse command-line arguments and return the populated namespace.
    """
    parser = ArgumentParser(prog="trun")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # trun serve
    p = subparsers.add_parser("serve", help="Serve via FastAPI + Uvicorn.")
    p.add_argument("name", type=str, help="Run store name.")
    p.add_argument("--host", type=str, default="127.0.0.1", help="Interface to bind.")
    p.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", 8000)),
        help="Port number to serve on (default: $PORT or 8000).",
    )

    # trun replay
    p = subparsers.add_parser("replay", help="Replay a recorded path through a session.")
    p.add_argument("name", type=str, help="Run store name.")
    p.add_argument("csv", type=str, help="CSV file with lat/lng columns.")
    p.add_argument(
        "--interval", type=float, default=0.0, help="Seconds between samples."
    )
    p.add_argument("--walking", action="store_true", help="Use the walking preset.")
    p.add_argument("--save", action="store_true", help="Store the replayed run.")

    # trun runs
    p = subparsers.add_parser("runs", help="List stored runs.")
    p.add_argument("name", type=str, help="Run store name.")

    # trun stats
    p = subparsers.add_parser("stats", help="Aggregate stats across stored runs.")
    p.add_argument("name", type=str, help="Run store name.")

    # trun delete
    p = subparsers.add_parser("delete", help="Delete a stored run.")
    p.add_argument("name", type=str, help="Run store name.")
    p.add_argument("run_id", type=str, help="Run id.")

    # trun version
    subparsers.add_parser("version", help="Show trun version and exit.")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: dispatch to the selected subcommand.
    """
    args = parse_args(argv)
    if args.verbose:
        set_level(logging.DEBUG)
    try:
        match args.command:
            case "serve":
                return serve(args.name, args.host, args.port)
            case "replay":
                return replay(args.name, args.csv, args.interval, args.walking, args.save)
            case "runs":
                return list_runs(args.name)
            case "stats":
                return stats(args.name)
            case "delete":
                return delete(args.name, args.run_id)
            case "version":
                return version()
            case _:
                return 1
    except (TrunError, OSError, ValueError, sqlite3.Error) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
