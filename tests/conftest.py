"""
Shared test fixtures for ShiftTrack tests.
"""
import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone

import pytest

# Loggers open their file handlers on first import; keep them out of the user's data dir
os.environ.setdefault("SHIFTTRACK_DATA_DIR", tempfile.mkdtemp(prefix="shifttrack-tests-"))

from client.bus import BusTimesService  # noqa: E402
from client.local_store import LocalEntryStore  # noqa: E402
from client.remote_repository import RepositoryError  # noqa: E402
from client.sync_service import SyncReconciler  # noqa: E402
from client.timeclock_client import ShiftTrackClient  # noqa: E402
from shared.models import BusTime, ServerConfig, ShiftEntry, UserContext  # noqa: E402

T0 = datetime(2026, 10, 17, 14, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock, advanced explicitly by tests"""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeEntryRepository:
    """In-memory stand-in for RemoteEntryRepository"""

    def __init__(self):
        self.config = ServerConfig(server_url="http://shifttrack.test")
        self.online = True
        self.fail = False
        self.documents = {}
        self.creates = []
        self.patches = []
        self.next_ids = []

    def check_connection(self):
        return self.online

    def _maybe_fail(self, op):
        if self.fail:
            raise RepositoryError(f"{op} failed: server unavailable", status_code=503)

    def create_entry(self, user_id, swap_in, created_at, swap_out=None):
        self._maybe_fail("create")
        entry_id = self.next_ids.pop(0) if self.next_ids else uuid.uuid4().hex
        self.documents[entry_id] = ShiftEntry(
            id=entry_id, user_id=user_id, swap_in=swap_in, swap_out=swap_out,
            synced=True, swap_out_synced=swap_out is not None, created_at=created_at,
        )
        self.creates.append(entry_id)
        return entry_id

    def patch_swap_out(self, entry_id, swap_out):
        self._maybe_fail("patch")
        if entry_id not in self.documents:
            raise RepositoryError("Entry not found", status_code=404)
        self.documents[entry_id].swap_out = swap_out
        self.documents[entry_id].swap_out_synced = True
        self.patches.append(entry_id)

    def _for_user(self, user_id):
        docs = [d for d in self.documents.values() if d.user_id == user_id]
        return sorted(docs, key=lambda d: d.swap_in, reverse=True)

    def query_todays_entry(self, user_id, day_start, day_end):
        self._maybe_fail("query")
        for doc in self._for_user(user_id):
            if day_start <= doc.swap_in < day_end:
                return doc
        return None

    def query_entries_since(self, user_id, period_start):
        self._maybe_fail("query")
        return [d for d in self._for_user(user_id) if d.swap_in >= period_start]

    def delete_entries(self, ids):
        deleted = 0
        for entry_id in ids:
            if self.documents.pop(entry_id, None) is not None:
                deleted += 1
        return deleted


class FakeBusTimesRepository:
    """In-memory stand-in for BusTimesRepository"""

    def __init__(self, times=None):
        self.fail = False
        self.docs = {}
        for value in times or []:
            self.docs[value] = value

    def list(self, user_id):
        if self.fail:
            raise RepositoryError("list failed")
        return [BusTime(id=k, time=v) for k, v in self.docs.items()]

    def upsert(self, user_id, bus_id, time):
        self.docs[bus_id] = time
        return BusTime(id=bus_id, time=time)

    def delete(self, user_id, bus_id):
        self.docs.pop(bus_id, None)


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Fresh local database per test"""
    monkeypatch.setenv("SHIFTTRACK_DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def user():
    return UserContext(user_id="user-1", display_name="Alex", api_key="key-1")


@pytest.fixture
def local_store():
    return LocalEntryStore()


@pytest.fixture
def repository():
    return FakeEntryRepository()


@pytest.fixture
def bus_repository():
    return FakeBusTimesRepository()


@pytest.fixture
def reconciler(repository, local_store, clock):
    return SyncReconciler(repository, local_store, clock=clock)


@pytest.fixture
def client(local_store, reconciler, repository, bus_repository, clock):
    return ShiftTrackClient(
        local_store, reconciler, repository, BusTimesService(bus_repository),
        clock=clock, background_sync=False,
    )
