"""
Local database helpers for ShiftTrack application.
Device-durable key-value storage backed by SQLite: client settings and
the single pending shift-entry slot.
"""

import sqlite3
from pathlib import Path
from typing import Optional

from shared.models import ServerConfig, ShiftEntry
from shared.utils import get_data_path

DB_BUSY_TIMEOUT_MS = 5000

# Name of the local slot holding the pending shift entry
LOCAL_ENTRY_SLOT = 'shift-track-entry'

CONFIG_KEYS = ('server_url', 'api_key', 'user_id', 'display_name', 'timeout', 'tick_interval_ms')


class DatabaseException(Exception):
    """Custom exception for database operations"""
    pass


class MalformedLocalData(Exception):
    """Stored slot contents could not be decoded"""
    pass


def get_db_path() -> Path:
    """Get the local database file path"""
    return get_data_path('shifttrack.db')


def init_database():
    """Initialize the local database with required tables"""
    conn = get_connection()
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise DatabaseException(f"Failed to initialize database: {e}")
    finally:
        conn.close()


def get_connection() -> sqlite3.Connection:
    """Get a database connection with row factory"""
    conn = sqlite3.connect(str(get_db_path()))
    conn.execute(f"PRAGMA busy_timeout = {DB_BUSY_TIMEOUT_MS}")
    conn.row_factory = sqlite3.Row
    return conn


# Settings functions
def get_setting(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get a setting value from the database"""
    conn = get_connection()
    try:
        cursor = conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else default
    finally:
        conn.close()


def set_setting(key: str, value: str):
    """Set a setting value in the database"""
    conn = get_connection()
    try:
        conn.execute("""
            INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)
        """, (key, value))
        conn.commit()
    finally:
        conn.close()


def delete_setting(key: str):
    """Remove a setting; missing keys are ignored"""
    conn = get_connection()
    try:
        conn.execute("DELETE FROM settings WHERE key = ?", (key,))
        conn.commit()
    finally:
        conn.close()


# Local entry slot
def write_local_entry(entry: ShiftEntry):
    set_setting(LOCAL_ENTRY_SLOT, entry.to_local_json())


def read_local_entry() -> Optional[ShiftEntry]:
    """Read the pending entry slot.

    Raises MalformedLocalData when the slot holds something that is not a
    valid encoded entry.
    """
    raw = get_setting(LOCAL_ENTRY_SLOT)
    if raw is None:
        return None
    try:
        return ShiftEntry.from_local_json(raw)
    except (ValueError, TypeError) as e:
        raise MalformedLocalData(f"Invalid data in slot '{LOCAL_ENTRY_SLOT}': {e}") from e


def remove_local_entry():
    delete_setting(LOCAL_ENTRY_SLOT)


# Client configuration
def load_config() -> ServerConfig:
    """Load client configuration from settings"""
    return ServerConfig(
        server_url=get_setting('server_url', '') or '',
        api_key=get_setting('api_key', '') or '',
        user_id=get_setting('user_id', '') or '',
        display_name=get_setting('display_name', '') or '',
        timeout=int(get_setting('timeout', '10')),
        tick_interval_ms=int(get_setting('tick_interval_ms', '1000')),
    )


def save_config(config: ServerConfig):
    """Persist client configuration to settings"""
    data = config.to_dict()
    for key in CONFIG_KEYS:
        set_setting(key, str(data[key]))
