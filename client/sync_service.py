"""
Sync reconciler for ShiftTrack client.
Decides what, if anything, the pending local entry still needs on the
server and issues at most one remote write per attempt.
"""

import threading
from datetime import datetime
from typing import Callable, Optional, Tuple

from client.local_store import LocalEntryStore
from client.remote_repository import RemoteEntryRepository, RepositoryError
from shared.logging_config import get_sync_logger
from shared.models import (ShiftEntry, SyncOutcome, SyncResult, SyncStatus,
                           UserContext)
from shared.utils import format_datetime, now_utc

logger = get_sync_logger()


class SyncReconciler:
    """
    Reconciles the single local entry with the remote store:
    - create the remote entry when it has no id yet
    - patch swapOut once it is known and not yet stored
    Failures are logged and returned, never raised. There is no retry
    queue; the next state change that calls reconcile is the retry. A call
    refused while another is in flight is run again once that one is done.
    """

    def __init__(self, repository: RemoteEntryRepository, local_store: LocalEntryStore,
                 clock: Callable[[], datetime] = now_utc):
        self.repository = repository
        self.local_store = local_store
        self._clock = clock

        # One reconcile in flight per local slot; the latest refused call is kept
        self._sync_lock = threading.Lock()
        self._pending_lock = threading.Lock()
        self._pending: Optional[Tuple[ShiftEntry, Optional[UserContext], Optional[bool]]] = None

        self.is_online = False
        self.last_sync: Optional[str] = None
        self.last_error: Optional[str] = None

    @property
    def is_syncing(self) -> bool:
        return self._sync_lock.locked()

    def reconcile(self, entry: ShiftEntry, user: Optional[UserContext],
                  online: Optional[bool] = None) -> SyncResult:
        """Bring the remote store up to date with entry, mutating it in place.

        Args:
            entry: The local entry; id and sync flags are updated on success
            user: Signed-in identity, or None when signed out
            online: Known connectivity; probed through the repository if None
        """
        with self._pending_lock:
            if not self._sync_lock.acquire(blocking=False):
                # The call holding the lock runs this once it is done
                self._pending = (entry, user, online)
                logger.debug("reconcile: already syncing, queued a follow-up pass")
                return SyncResult(SyncOutcome.IN_FLIGHT, entry_id=entry.id)

        try:
            return self._reconcile_locked(entry, user, online)
        finally:
            self._run_follow_ups()

    def _run_follow_ups(self):
        """Run the latest call refused while in flight, then release the lock"""
        released = False
        try:
            while True:
                with self._pending_lock:
                    pending, self._pending = self._pending, None
                    if pending is None:
                        self._sync_lock.release()
                        released = True
                        return
                result = self._reconcile_locked(*pending)
                logger.debug(f"reconcile: follow-up pass finished with {result.outcome.value}")
        finally:
            if not released:
                self._sync_lock.release()

    def _reconcile_locked(self, entry: ShiftEntry, user: Optional[UserContext],
                          online: Optional[bool]) -> SyncResult:
        if user is None or not user.user_id:
            logger.debug("reconcile: no signed-in user, deferring")
            return SyncResult(SyncOutcome.NO_USER, entry_id=entry.id)

        if online is None:
            online = self.repository.check_connection()
        self.is_online = online
        if not online:
            logger.info("reconcile: offline, deferring until next change")
            return SyncResult(SyncOutcome.OFFLINE, entry_id=entry.id)

        if entry.synced:
            return SyncResult(SyncOutcome.ALREADY_SYNCED, entry_id=entry.id)

        try:
            if not entry.id and entry.swap_in:
                return self._create(entry, user)

            if entry.id and entry.swap_out and not entry.swap_out_synced:
                return self._patch_swap_out(entry)

        except RepositoryError as e:
            self.last_error = str(e)
            logger.warning(f"Sync failed, will retry on next change: {e}")
            return SyncResult(SyncOutcome.FAILED, entry_id=entry.id, error=str(e))

        return SyncResult(SyncOutcome.NOTHING_TO_DO, entry_id=entry.id)

    def _create(self, entry: ShiftEntry, user: UserContext) -> SyncResult:
        # stop() may set swapOut while the request is out; flags describe what was sent
        sent_swap_out = entry.swap_out
        entry_id = self.repository.create_entry(
            user.user_id,
            entry.swap_in,
            self._clock(),
            swap_out=sent_swap_out,
        )

        entry.id = entry_id
        entry.user_id = user.user_id
        if sent_swap_out is not None:
            entry.swap_out_synced = True
        # Left False when swapOut changed meanwhile, so the next pass patches it
        entry.synced = entry.swap_out == sent_swap_out
        self.local_store.save(entry)

        self._mark_success()
        logger.info(f"Created remote entry {entry_id}")
        return SyncResult(SyncOutcome.CREATED, entry_id=entry_id)

    def _patch_swap_out(self, entry: ShiftEntry) -> SyncResult:
        self.repository.patch_swap_out(entry.id, entry.swap_out)

        entry.swap_out_synced = True
        entry.synced = True
        self.local_store.save(entry)

        self._mark_success()
        logger.info(f"Patched swapOut on remote entry {entry.id}")
        return SyncResult(SyncOutcome.PATCHED, entry_id=entry.id)

    def _mark_success(self):
        self.last_sync = format_datetime(self._clock())
        self.last_error = None

    def reconcile_async(self, entry: ShiftEntry, user: Optional[UserContext],
                        on_done: Optional[Callable[[SyncResult], None]] = None,
                        online: Optional[bool] = None) -> threading.Thread:
        """Run reconcile on a background thread so callers never block"""
        def background_sync():
            result = self.reconcile(entry, user, online=online)
            if on_done is not None:
                try:
                    on_done(result)
                except Exception as e:
                    logger.error(f"Sync completion callback failed: {e}")

        sync_thread = threading.Thread(target=background_sync, daemon=True)
        sync_thread.start()
        return sync_thread

    def get_sync_status(self) -> SyncStatus:
        return SyncStatus(
            is_online=self.is_online,
            is_syncing=self.is_syncing,
            last_sync=self.last_sync,
            last_error=self.last_error,
            server_url=self.repository.config.server_url or None,
        )
