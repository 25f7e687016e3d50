"""
Client application layer for ShiftTrack.
Wires the session, local slot, reconciler and remote repositories together
so the UI only deals with start/stop/history/bus actions.
"""

from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from client.bus import BusTimesService, best_bus_after_session, sorted_times
from client.local_store import LocalEntryStore
from client.remote_repository import (BusTimesRepository,
                                      RemoteEntryRepository, RepositoryError)
from client.session import ShiftSession
from client.sync_service import SyncReconciler
from shared import db_helpers
from shared.logging_config import get_client_logger
from shared.models import (BusTime, ServerConfig, ShiftEntry, SyncResult,
                           UserContext)
from shared.utils import day_bounds, format_duration, now_utc, period_start

logger = get_client_logger()


class ShiftTrackClient:
    """
    Client abstraction layer that handles:
    - Shift lifecycle with write-local-then-sync
    - Restoring today's entry (remote wins over the local slot)
    - History and bus timetable lookups
    """

    def __init__(self, local_store: LocalEntryStore, reconciler: SyncReconciler,
                 entries: RemoteEntryRepository, bus_service: BusTimesService,
                 clock: Callable[[], datetime] = now_utc, background_sync: bool = True):
        self.local_store = local_store
        self.reconciler = reconciler
        self.entries = entries
        self.bus_service = bus_service
        self.background_sync = background_sync
        self._clock = clock

        self.session = ShiftSession(clock=clock)
        self.last_sync_result: Optional[SyncResult] = None

    @classmethod
    def from_config(cls, config: ServerConfig) -> 'ShiftTrackClient':
        """Build a client talking to the configured server"""
        local_store = LocalEntryStore()
        entries = RemoteEntryRepository(config)
        bus_repository = BusTimesRepository(config)
        return cls(
            local_store,
            SyncReconciler(entries, local_store),
            entries,
            BusTimesService(bus_repository),
        )

    @property
    def entry(self) -> ShiftEntry:
        return self.session.entry

    # Shift lifecycle
    def restore(self, user: Optional[UserContext], today: Optional[date] = None) -> ShiftEntry:
        """Load the pending local entry, then let today's remote entry win"""
        local = self.local_store.load()
        if local is not None:
            self.session.entry = local

        if user is not None:
            day_start, day_end = day_bounds(today or datetime.now().date())
            try:
                remote = self.entries.query_todays_entry(user.user_id, day_start, day_end)
            except RepositoryError as e:
                logger.warning(f"Could not load today's entry from server: {e}")
                remote = None

            if remote is not None:
                self.session.entry = remote
                # The slot must not resurrect a stale local entry on next start-up
                if remote.is_complete:
                    self.local_store.clear()
                else:
                    self.local_store.save(remote)
            elif local is not None and not local.synced:
                self._sync(user)

        return self.session.entry

    def start(self, user: Optional[UserContext], custom_time: Optional[str] = None) -> ShiftEntry:
        """Swap in. custom_time is an optional HH:MM on today's date."""
        entry = self.session.start(custom_time)
        if user is not None:
            entry.user_id = user.user_id

        self.local_store.save(entry)
        logger.info(f"Swapped in at {entry.swap_in.isoformat()}")
        self._sync(user)
        return entry

    def stop(self, user: Optional[UserContext]) -> bool:
        """Swap out. Returns False when there is no active shift."""
        if not self.session.stop():
            logger.debug("Stop ignored, no active shift")
            return False

        entry = self.session.entry
        self.local_store.save(entry)
        logger.info(f"Swapped out at {entry.swap_out.isoformat()}")
        self._sync(user)
        self.local_store.clear()
        return True

    def sync_now(self, user: Optional[UserContext]) -> SyncResult:
        """Reconcile the current entry on the calling thread"""
        entry = self.session.entry
        result = self.reconciler.reconcile(entry, user)
        self._on_sync_done(entry, result)
        return result

    def _sync(self, user: Optional[UserContext]):
        if not self.background_sync:
            self.sync_now(user)
            return

        entry = self.session.entry
        self.reconciler.reconcile_async(
            entry, user, on_done=lambda result: self._on_sync_done(entry, result))

    def _on_sync_done(self, entry: ShiftEntry, result: SyncResult):
        self.last_sync_result = result

        # Reconcile persists the entry on success; completed entries stay evicted
        current = self.session.entry
        if current.is_complete:
            self.local_store.clear()
        elif current is not entry and result.outcome.wrote_remote:
            # The slot was overwritten by an older entry that finished syncing late
            self.local_store.save(current)

    # History
    def history(self, user: UserContext, period: str = 'week',
                today: Optional[date] = None) -> Tuple[List[ShiftEntry], timedelta]:
        """Entries since the start of the period, newest first, and their total"""
        start = period_start(period, today)
        try:
            entries = self.entries.query_entries_since(user.user_id, start)
        except RepositoryError as e:
            logger.warning(f"Could not load history: {e}")
            return [], timedelta(0)

        total = sum((e.duration for e in entries if e.is_complete), timedelta(0))
        return entries, total

    def delete_entries(self, user: UserContext, ids: List[str]) -> int:
        """Best-effort delete; callers drop the rows from their view first"""
        if not ids:
            return 0
        deleted = self.entries.delete_entries(ids)
        if deleted < len(ids):
            logger.warning(f"Deleted {deleted}/{len(ids)} entries for {user.user_id}")
        return deleted

    # Bus times
    def bus_times(self, user: UserContext) -> List[BusTime]:
        try:
            return self.bus_service.list_times(user)
        except RepositoryError as e:
            logger.warning(f"Could not load bus times: {e}")
            return []

    def dashboard(self, bus_times: Optional[List[BusTime]] = None,
                  now: Optional[datetime] = None) -> Dict[str, Any]:
        """Snapshot of everything the dashboard renders"""
        now = now or self._clock()
        session = self.session
        entry = session.entry

        best_bus = None
        if session.is_active and bus_times:
            best_bus = best_bus_after_session(entry.swap_in, sorted_times(bus_times))

        elapsed = session.elapsed(now)
        remaining = session.remaining(now)
        return {
            'state': session.state.value,
            'swap_in': entry.swap_in,
            'swap_out': entry.swap_out,
            'elapsed': elapsed,
            'elapsed_text': format_duration(elapsed),
            'remaining': remaining,
            'remaining_text': format_duration(remaining),
            'progress': session.progress(now),
            'expected_end': session.expected_end(),
            'best_bus': best_bus,
            'total': session.total(),
            'synced': entry.synced,
        }


def get_client() -> ShiftTrackClient:
    """Build a client from the locally stored configuration"""
    db_helpers.init_database()
    return ShiftTrackClient.from_config(db_helpers.load_config())
