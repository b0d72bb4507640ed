import logging
import shutil
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask

from infrastructure.database.ops.chat_logs import ChatLogOperations
from infrastructure.database.ops.farm_profiles import FarmProfileOperations
from infrastructure.database.ops.ph_readings import PHReadingOperations
from infrastructure.database.ops.pump_logs import PumpLogOperations

logger = logging.getLogger(__name__)


class SQLiteDatabaseHandler(
    PHReadingOperations,
    PumpLogOperations,
    FarmProfileOperations,
    ChatLogOperations,
):
    """Thread-safe SQLite handler decoupled from Flask globals.

    Each thread gets its own connection. Persistence runs on EventBus worker
    threads, so a file database is expected outside of single-threaded tests.
    """

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()

        # Ensure the directory for the database file exists
        if database_path != ":memory:":
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Created database directory: %s", db_path.parent)

    @property
    def database_path(self) -> str:
        return self._database_path

    # --- Lifecycle ------------------------------------------------------------
    def init_app(self, app: Flask | None = None) -> None:
        if app is not None:
            app.teardown_appcontext(self.close_db)
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            try:
                connection = self._open_connection()
            except sqlite3.DatabaseError as exc:
                if not self._is_corruption_error(exc):
                    raise
                logger.error("Database appears corrupt (%s). Recreating a fresh database.", exc)
                self._quarantine_corrupt_db()
                connection = self._open_connection()
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    @staticmethod
    def _is_corruption_error(exc: sqlite3.Error) -> bool:
        message = str(exc).lower()
        return "malformed" in message or "not a database" in message

    def _quarantine_corrupt_db(self) -> Optional[Path]:
        db_path = Path(self._database_path)
        if not db_path.exists():
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        quarantine_dir = db_path.parent / "corrupt"
        quarantine_dir.mkdir(parents=True, exist_ok=True)
        quarantined = quarantine_dir / f"{db_path.stem}_corrupt_{timestamp}{db_path.suffix or '.db'}"
        try:
            shutil.move(str(db_path), str(quarantined))
            for sidecar_suffix in ("-wal", "-shm"):
                sidecar = Path(f"{db_path}{sidecar_suffix}")
                if sidecar.exists():
                    shutil.move(str(sidecar), str(quarantine_dir / f"{sidecar.name}_{timestamp}"))
            logger.warning("Quarantined corrupt database to %s", quarantined)
            return quarantined
        except OSError as exc:
            logger.error("Failed to quarantine corrupt database %s: %s", db_path, exc)
            return None

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """Configure SQLite for a small always-on board.

        - WAL mode: readers do not block the persistence workers
        - NORMAL synchronous: safe with WAL, fewer fsyncs
        - Memory temp store: avoids temp file creation
        """
        if self._database_path != ":memory:":
            connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA cache_size=-8000")  # 8MB cache (negative = KB)
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        with self.connection() as db:
            db.executescript(
                """
                CREATE TABLE IF NOT EXISTS PHReadings (
                    reading_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    value REAL NOT NULL,
                    source TEXT NOT NULL DEFAULT 'sensor'
                        CHECK (source IN ('sensor', 'simulated')),
                    timestamp_ms INTEGER NOT NULL,
                    UNIQUE (user_id, timestamp_ms)
                );

                CREATE INDEX IF NOT EXISTS idx_ph_readings_user_time
                    ON PHReadings (user_id, timestamp_ms);

                CREATE TABLE IF NOT EXISTS PumpLogs (
                    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    pump_type TEXT NOT NULL CHECK (pump_type IN ('basic', 'acidic')),
                    reagent TEXT NOT NULL,
                    concentration TEXT NOT NULL,
                    ph_before REAL,
                    origin TEXT NOT NULL DEFAULT 'controller'
                        CHECK (origin IN ('controller', 'device')),
                    timestamp_ms INTEGER NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_pump_logs_user_time
                    ON PumpLogs (user_id, timestamp_ms);

                CREATE TABLE IF NOT EXISTS FarmProfiles (
                    user_id INTEGER PRIMARY KEY,
                    farm_name TEXT,
                    farm_location TEXT,
                    current_crop TEXT,
                    crop_min_ph REAL,
                    crop_max_ph REAL,
                    last_visited TEXT
                );

                CREATE TABLE IF NOT EXISTS ChatLogs (
                    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    question TEXT NOT NULL,
                    answer TEXT NOT NULL DEFAULT '',
                    source TEXT NOT NULL DEFAULT 'assistant',
                    timestamp_ms INTEGER NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_chat_logs_user_time
                    ON ChatLogs (user_id, timestamp_ms);
                """
            )
        logger.info("Database tables ready at %s", self._database_path)
