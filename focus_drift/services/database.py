import sqlite3
from contextlib import contextmanager
from pathlib import Path
import logging
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from focus_drift.models.activity import EventInterval
from focus_drift.models.focus_session import FocusSession
from focus_drift.config.settings import settings
from focus_drift.services.errors import ActiveSessionExistsError, DatabaseError

logger = logging.getLogger(__name__)

MIGRATIONS = [
    ("001_initial_schema", """
    -- Declared focus sessions
    CREATE TABLE IF NOT EXISTS focus_sessions (
        id TEXT PRIMARY KEY,
        tag_declared TEXT NOT NULL,
        duration_minutes INTEGER NOT NULL,
        started_at INTEGER NOT NULL,
        ended_at INTEGER,
        source TEXT NOT NULL DEFAULT 'manual'
    );

    -- Continuous, classified activity intervals
    CREATE TABLE IF NOT EXISTS event_intervals (
        id TEXT PRIMARY KEY,
        ts_start INTEGER NOT NULL,
        ts_end INTEGER NOT NULL,
        app TEXT NOT NULL,
        bundle_id TEXT,
        window_title TEXT,
        url TEXT,
        tag_rule TEXT,
        confidence_rule REAL,
        tag_ai TEXT,
        confidence_ai REAL,
        tag_final TEXT,
        session_id TEXT,
        CHECK (ts_end >= ts_start)
    );

    CREATE INDEX IF NOT EXISTS idx_sessions_started ON focus_sessions(started_at);
    CREATE INDEX IF NOT EXISTS idx_intervals_start ON event_intervals(ts_start);
    CREATE INDEX IF NOT EXISTS idx_intervals_session ON event_intervals(session_id);
    """),
]

SESSION_COLUMNS = ["id", "tag_declared", "duration_minutes", "started_at", "ended_at", "source"]
INTERVAL_COLUMNS = [
    "id", "ts_start", "ts_end", "app", "bundle_id", "window_title", "url",
    "tag_rule", "confidence_rule", "tag_ai", "confidence_ai", "tag_final", "session_id",
]

class DatabaseConnectionError(DatabaseError):
    """Exception raised when database connection fails"""
    pass

class QueryError(DatabaseError):
    """Exception raised when a database query fails"""
    pass

class DatabaseManager:
    """SQLite repository for focus sessions and event intervals"""

    def __init__(self, db_path=None):
        """Initialize database manager"""
        self.db_path = str(db_path or settings.DEFAULT_DB_PATH)
        self.conn = self.get_connection()
        logger.info(f"Initialized DatabaseManager with db_path: {self.db_path}")
        self.initialize()

    def get_connection(self) -> sqlite3.Connection:
        """Open a connection usable from worker threads"""
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            # Autocommit mode; transactions are opened explicitly
            conn = sqlite3.connect(self.db_path, isolation_level=None, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            return conn
        except sqlite3.Error as e:
            logger.error(f"Failed to connect to database {self.db_path}: {e}")
            raise DatabaseConnectionError(f"Failed to connect to database: {e}")

    def initialize(self):
        """Apply pending schema migrations"""
        try:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS migrations (
                    name VARCHAR PRIMARY KEY,
                    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            for migration_name, migration in MIGRATIONS:
                cursor = self.conn.execute(
                    "SELECT COUNT(*) FROM migrations WHERE name = ?", [migration_name]
                )
                if cursor.fetchone()[0]:
                    continue
                with self._transaction():
                    for statement in migration.split(";"):
                        if statement.strip():
                            self.conn.execute(statement)
                    self.conn.execute("INSERT INTO migrations (name) VALUES (?)", [migration_name])
                logger.info(f"Successfully applied migration: {migration_name}")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize database: {e}")
            raise DatabaseError(f"Failed to initialize database: {e}")

    @contextmanager
    def _transaction(self, mode: str = "") -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements in one transaction"""
        self.conn.execute(f"BEGIN {mode}".strip())
        try:
            yield self.conn
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        else:
            self.conn.execute("COMMIT")

    def _execute(self, query: str, params: Any = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(query, params)
        except sqlite3.Error as e:
            logger.error(f"Query failed: {e}")
            raise QueryError(f"Query failed: {e}")

    # Sessions

    def create_session(self, session: FocusSession) -> FocusSession:
        """Insert or replace a focus session"""
        self._execute(
            f"INSERT OR REPLACE INTO focus_sessions ({', '.join(SESSION_COLUMNS)}) "
            f"VALUES ({', '.join('?' * len(SESSION_COLUMNS))})",
            self._session_values(session),
        )
        logger.debug(f"Stored session {session.id} ({session.tag_declared})")
        return session

    def create_session_if_idle(self, session: FocusSession) -> FocusSession:
        """Insert a session only if no other session is active

        The check and the insert share one write-locked transaction, so two
        concurrent starts cannot both succeed.
        """
        try:
            with self._transaction("IMMEDIATE"):
                active = self.conn.execute(
                    "SELECT id FROM focus_sessions WHERE ended_at IS NULL LIMIT 1"
                ).fetchone()
                if active is not None:
                    raise ActiveSessionExistsError(
                        f"Session {active['id']} is still active; stop it first"
                    )
                self.conn.execute(
                    f"INSERT INTO focus_sessions ({', '.join(SESSION_COLUMNS)}) "
                    f"VALUES ({', '.join('?' * len(SESSION_COLUMNS))})",
                    self._session_values(session),
                )
        except sqlite3.Error as e:
            logger.error(f"Failed to start session: {e}")
            raise DatabaseError(f"Failed to start session: {e}")
        logger.info(f"Started session {session.id} ({session.tag_declared})")
        return session

    def get_session(self, session_id: str) -> Optional[FocusSession]:
        row = self._execute("SELECT * FROM focus_sessions WHERE id = ?", [session_id]).fetchone()
        return self._row_to_session(row) if row else None

    def get_all_sessions(self) -> List[FocusSession]:
        """All sessions, newest start first"""
        rows = self._execute("SELECT * FROM focus_sessions ORDER BY started_at DESC").fetchall()
        return [self._row_to_session(row) for row in rows]

    def get_active_sessions(self) -> List[FocusSession]:
        """Sessions without an end, newest start first"""
        rows = self._execute(
            "SELECT * FROM focus_sessions WHERE ended_at IS NULL ORDER BY started_at DESC"
        ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def update_session(self, session: FocusSession) -> FocusSession:
        cursor = self._execute(
            "UPDATE focus_sessions SET tag_declared = ?, duration_minutes = ?, "
            "started_at = ?, ended_at = ?, source = ? WHERE id = ?",
            [
                session.tag_declared, session.duration_minutes, session.started_at,
                session.ended_at, session.source, session.id,
            ],
        )
        if cursor.rowcount == 0:
            raise QueryError(f"Session not found: {session.id}")
        return session

    def end_session(self, session_id: str, ended_at: int) -> Optional[FocusSession]:
        """Set a session's end time; returns None when the session is unknown"""
        session = self.get_session(session_id)
        if session is None:
            return None
        session.ended_at = ended_at
        return self.update_session(session)

    def delete_session(self, session_id: str) -> bool:
        cursor = self._execute("DELETE FROM focus_sessions WHERE id = ?", [session_id])
        return cursor.rowcount > 0

    def clear_sessions(self) -> int:
        return self._execute("DELETE FROM focus_sessions").rowcount

    # Intervals

    def create_interval(self, interval: EventInterval) -> EventInterval:
        self._execute(
            f"INSERT INTO event_intervals ({', '.join(INTERVAL_COLUMNS)}) "
            f"VALUES ({', '.join('?' * len(INTERVAL_COLUMNS))})",
            self._interval_values(interval),
        )
        return interval

    def get_interval(self, interval_id: str) -> Optional[EventInterval]:
        row = self._execute("SELECT * FROM event_intervals WHERE id = ?", [interval_id]).fetchone()
        return self._row_to_interval(row) if row else None

    def get_all_intervals(self) -> List[EventInterval]:
        """All intervals, newest start first"""
        rows = self._execute(
            "SELECT * FROM event_intervals ORDER BY ts_start DESC, rowid DESC"
        ).fetchall()
        return [self._row_to_interval(row) for row in rows]

    def get_latest_interval(self) -> Optional[EventInterval]:
        """Most recent interval across all sessions"""
        row = self._execute(
            "SELECT * FROM event_intervals ORDER BY ts_start DESC, rowid DESC LIMIT 1"
        ).fetchone()
        return self._row_to_interval(row) if row else None

    def get_intervals_by_session(self, session_id: str) -> List[EventInterval]:
        rows = self._execute(
            "SELECT * FROM event_intervals WHERE session_id = ? ORDER BY ts_start DESC, rowid DESC",
            [session_id],
        ).fetchall()
        return [self._row_to_interval(row) for row in rows]

    def get_unclassified_intervals(self) -> List[EventInterval]:
        """Intervals the AI classifier has not tagged yet"""
        rows = self._execute(
            "SELECT * FROM event_intervals WHERE tag_ai IS NULL ORDER BY ts_start DESC, rowid DESC"
        ).fetchall()
        return [self._row_to_interval(row) for row in rows]

    def update_interval(self, interval: EventInterval) -> EventInterval:
        assignments = ", ".join(f"{column} = ?" for column in INTERVAL_COLUMNS[1:])
        values = self._interval_values(interval)
        cursor = self._execute(
            f"UPDATE event_intervals SET {assignments} WHERE id = ?",
            [*values[1:], values[0]],
        )
        if cursor.rowcount == 0:
            raise QueryError(f"Interval not found: {interval.id}")
        return interval

    def delete_interval(self, interval_id: str) -> bool:
        cursor = self._execute("DELETE FROM event_intervals WHERE id = ?", [interval_id])
        return cursor.rowcount > 0

    def clear_intervals(self) -> int:
        return self._execute("DELETE FROM event_intervals").rowcount

    # Maintenance

    def get_database_stats(self) -> Dict[str, Any]:
        """Get database statistics"""
        stats: Dict[str, Any] = {"tables": {}}
        for table in ("focus_sessions", "event_intervals"):
            count = self._execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            stats["tables"][table] = {"row_count": count}

        row = self._execute(
            "SELECT MIN(ts_start), MAX(ts_end), COUNT(*) FROM event_intervals"
        ).fetchone()
        stats["time_range"] = {
            "oldest": row[0],
            "newest": row[1],
            "total_records": row[2],
        }
        stats["database_size_mb"] = (
            Path(self.db_path).stat().st_size / (1024 * 1024)
            if self.db_path != ":memory:" and Path(self.db_path).exists()
            else 0.0
        )
        return stats

    def verify_database_integrity(self) -> bool:
        """Run SQLite's integrity check"""
        try:
            result = self.conn.execute("PRAGMA integrity_check").fetchone()[0]
            if result != "ok":
                logger.error(f"Database integrity check failed: {result}")
                return False
            return True
        except sqlite3.Error as e:
            logger.error(f"Integrity check failed: {e}")
            return False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close database connection"""
        if self.conn:
            try:
                self.conn.close()
                logger.info("Database connection closed.")
            except sqlite3.Error as e:
                logger.error(f"Error closing database: {e}")
            finally:
                self.conn = None

    # Row mapping

    @staticmethod
    def _session_values(session: FocusSession) -> List[Any]:
        return [
            session.id, session.tag_declared, session.duration_minutes,
            session.started_at, session.ended_at, session.source,
        ]

    @staticmethod
    def _interval_values(interval: EventInterval) -> List[Any]:
        data = interval.model_dump()
        return [data[column] for column in INTERVAL_COLUMNS]

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> FocusSession:
        return FocusSession(**{column: row[column] for column in SESSION_COLUMNS})

    @staticmethod
    def _row_to_interval(row: sqlite3.Row) -> EventInterval:
        try:
            return EventInterval(**{column: row[column] for column in INTERVAL_COLUMNS})
        except ValidationError as e:
            raise QueryError(f"Corrupt interval row {row['id']}: {e}")
