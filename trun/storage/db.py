import os
import sqlite3
from trun.utils.log import get_logger

logger = get_logger(__name__)

# bump when schema.sql changes shape; stored in PRAGMA user_version
SCHEMA_VERSION = 1


def get_connection(db_path: str) -> sqlite3.Connection:
    """
    Open a run store with rows returned as sqlite3.Row.

    The connection is created on one thread and used from the server's
    event loop thread, never from two threads at once.
    """
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def init_db(db_path: str) -> sqlite3.Connection:
    """
    Create the runs table if needed, stamp the schema version and return a
    live connection.

    Raises
    ------
    sqlite3.DatabaseError
        If the store was written by a newer trun with a later schema.
    """
    conn = get_connection(db_path)
    found = schema_version(conn)
    if found > SCHEMA_VERSION:
        conn.close()
        raise sqlite3.DatabaseError(
            f"{db_path} has schema version {found}, this trun reads up to {SCHEMA_VERSION}"
        )
    schema_path = os.path.join(os.path.dirname(__file__), "schema.sql")
    logger.debug("Initializing run store %s (schema v%d)", db_path, found)
    with open(schema_path, "r") as f:
        conn.executescript(f.read())
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()
    return conn
