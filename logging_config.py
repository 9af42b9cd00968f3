# logging_config.py

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

MAX_LOG_ENTRIES = 10000  # Maximum number of log entries to keep
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class SQLiteHandler(logging.Handler):
    """Keeps a bounded history of deploy runs in a SQLite table."""

    def __init__(self, db_path: str, max_entries: int = MAX_LOG_ENTRIES):
        super().__init__()
        self.db_path = db_path
        self.max_entries = max_entries
        self.create_table()

    def create_table(self):
        """Creates the logs table if it doesn't exist."""
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    level TEXT NOT NULL,
                    message TEXT NOT NULL,
                    module TEXT,
                    exception TEXT
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_logs_id ON logs (id DESC)
            """)
            conn.commit()
        finally:
            conn.close()

    def emit(self, record):
        """Inserts a log record and trims the table down to max_entries."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error:
            self.handleError(record)
            return

        try:
            if record.exc_info and not record.exc_text:
                record.exc_text = logging.Formatter().formatException(record.exc_info)

            log_entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "level": record.levelname,
                "message": record.getMessage(),
                "module": record.module,
                "exception": record.exc_text,
            }

            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO logs (timestamp, level, message, module, exception)
                VALUES (:timestamp, :level, :message, :module, :exception)
            """, log_entry)

            cursor.execute("SELECT COUNT(*) FROM logs")
            count = cursor.fetchone()[0]
            if count > self.max_entries:
                excess = count - self.max_entries
                cursor.execute("""
                    DELETE FROM logs
                    WHERE id IN (
                        SELECT id FROM logs
                        ORDER BY id ASC
                        LIMIT ?
                    )
                """, (excess,))

            conn.commit()
        except sqlite3.Error:
            self.handleError(record)
        finally:
            conn.close()


def setup_logging(debug: bool = False, db_path: Optional[str] = None):
    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger()
    logger.setLevel(level)

    # Console handler for real-time logs
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    if db_path:
        enable_log_db(db_path)


def enable_log_db(db_path: str):
    """
    Attach the SQLite handler for persistent logs. Creates the database file,
    so CI runs only call this once their inputs are known to be valid.
    """
    logger = logging.getLogger()
    sqlite_handler = SQLiteHandler(db_path=db_path, max_entries=MAX_LOG_ENTRIES)
    sqlite_handler.setLevel(logger.level)
    sqlite_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(sqlite_handler)
    return sqlite_handler
