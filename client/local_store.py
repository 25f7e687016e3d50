"""
Local entry store for ShiftTrack client.
Single-slot, device-durable cache of the pending shift entry.
"""

import sqlite3
from typing import Optional

from shared import db_helpers
from shared.logging_config import get_client_logger
from shared.models import ShiftEntry

logger = get_client_logger()


class LocalEntryStore:
    """
    Holds at most one pending ShiftEntry. Persistence is best-effort:
    write failures are logged and swallowed, unreadable data is reported
    as an empty slot.
    """

    def __init__(self):
        db_helpers.init_database()

    def save(self, entry: ShiftEntry) -> None:
        """Overwrite the slot with entry"""
        try:
            db_helpers.write_local_entry(entry)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Could not save local entry: {e}")

    def load(self) -> Optional[ShiftEntry]:
        """Return the stored entry, or None if the slot is empty or corrupt"""
        try:
            return db_helpers.read_local_entry()
        except db_helpers.MalformedLocalData as e:
            logger.warning(f"Ignoring malformed local entry: {e}")
            return None
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Could not read local entry: {e}")
            return None

    def clear(self) -> None:
        """Empty the slot"""
        try:
            db_helpers.remove_local_entry()
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Could not clear local entry: {e}")
