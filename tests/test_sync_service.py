"""
Tests for the sync reconciler: create/patch decisions, failure handling,
idempotence and the in-flight guard.
"""
import threading
from datetime import timedelta

from conftest import T0

from shared.models import ShiftEntry, SyncOutcome, UserContext

T1 = T0 + timedelta(hours=3, minutes=45)


class TestPreconditions:
    def test_offline_is_noop(self, reconciler, repository, user):
        repository.online = False
        entry = ShiftEntry(swap_in=T0)

        result = reconciler.reconcile(entry, user)

        assert result.outcome == SyncOutcome.OFFLINE
        assert repository.creates == []
        assert entry.id is None and entry.synced is False

    def test_explicit_offline_flag_skips_probe(self, reconciler, repository, user):
        result = reconciler.reconcile(ShiftEntry(swap_in=T0), user, online=False)
        assert result.outcome == SyncOutcome.OFFLINE
        assert repository.creates == []

    def test_no_user_is_noop(self, reconciler, repository):
        entry = ShiftEntry(swap_in=T0)
        result = reconciler.reconcile(entry, None)
        assert result.outcome == SyncOutcome.NO_USER
        assert repository.creates == []

    def test_blank_user_id_is_noop(self, reconciler, repository):
        result = reconciler.reconcile(ShiftEntry(swap_in=T0), UserContext(user_id=""))
        assert result.outcome == SyncOutcome.NO_USER

    def test_already_synced_is_noop(self, reconciler, repository, user):
        entry = ShiftEntry(id="abc", swap_in=T0, synced=True)
        result = reconciler.reconcile(entry, user)
        assert result.outcome == SyncOutcome.ALREADY_SYNCED
        assert repository.creates == [] and repository.patches == []

    def test_idle_entry_has_nothing_to_do(self, reconciler, repository, user):
        result = reconciler.reconcile(ShiftEntry(), user)
        assert result.outcome == SyncOutcome.NOTHING_TO_DO
        assert repository.creates == []


class TestCreate:
    def test_create_sets_id_and_synced(self, reconciler, repository, local_store, user):
        repository.next_ids = ["abc"]
        entry = ShiftEntry(swap_in=T0, synced=False)

        result = reconciler.reconcile(entry, user)

        assert result.outcome == SyncOutcome.CREATED
        assert result.entry_id == "abc"
        assert entry.id == "abc"
        assert entry.synced is True
        assert entry.swap_out_synced is False

        stored = local_store.load()
        assert stored.id == "abc" and stored.synced is True

        doc = repository.documents["abc"]
        assert doc.user_id == user.user_id
        assert doc.swap_in == T0
        assert doc.swap_out is None
        assert doc.created_at == T0  # from the injected clock

    def test_create_with_known_swap_out(self, reconciler, repository, user):
        entry = ShiftEntry(swap_in=T0, swap_out=T1)
        result = reconciler.reconcile(entry, user)

        assert result.outcome == SyncOutcome.CREATED
        assert entry.swap_out_synced is True
        assert repository.documents[entry.id].swap_out == T1
        assert repository.patches == []

    def test_create_is_never_issued_twice(self, reconciler, repository, user):
        entry = ShiftEntry(swap_in=T0)
        reconciler.reconcile(entry, user)
        reconciler.reconcile(entry, user)
        entry.synced = False  # even if a flag is lost, the id guards create
        reconciler.reconcile(entry, user)
        assert len(repository.creates) == 1


class TestPatch:
    def test_stop_then_patch(self, reconciler, repository, local_store, user):
        repository.next_ids = ["abc"]
        entry = ShiftEntry(swap_in=T0)
        reconciler.reconcile(entry, user)

        # what stop() does to an already synced entry
        entry.swap_out = T1
        entry.synced = False
        entry.swap_out_synced = False
        assert entry.confirmed_view().swap_out is None

        result = reconciler.reconcile(entry, user)

        assert result.outcome == SyncOutcome.PATCHED
        assert entry.synced is True and entry.swap_out_synced is True
        assert repository.documents["abc"].swap_out == T1
        assert local_store.load().swap_out_synced is True
        assert entry.confirmed_view().swap_out == T1

    def test_patch_without_id_falls_back_to_create(self, reconciler, repository, user):
        entry = ShiftEntry(swap_in=T0, swap_out=T1)
        result = reconciler.reconcile(entry, user)
        assert result.outcome == SyncOutcome.CREATED
        assert repository.patches == []
        assert entry.synced and entry.swap_out_synced


class TestFailures:
    def test_create_failure_leaves_flags(self, reconciler, repository, local_store, user):
        repository.fail = True
        entry = ShiftEntry(swap_in=T0)

        result = reconciler.reconcile(entry, user)

        assert result.outcome == SyncOutcome.FAILED
        assert not result.ok
        assert "server unavailable" in result.error
        assert entry.id is None and entry.synced is False
        assert local_store.load() is None
        assert reconciler.last_error

    def test_patch_failure_leaves_flags(self, reconciler, repository, user):
        entry = ShiftEntry(swap_in=T0)
        reconciler.reconcile(entry, user)
        entry.swap_out, entry.synced = T1, False

        repository.fail = True
        result = reconciler.reconcile(entry, user)

        assert result.outcome == SyncOutcome.FAILED
        assert entry.synced is False and entry.swap_out_synced is False

    def test_next_trigger_retries(self, reconciler, repository, user):
        repository.fail = True
        entry = ShiftEntry(swap_in=T0)
        reconciler.reconcile(entry, user)

        repository.fail = False
        result = reconciler.reconcile(entry, user)

        assert result.outcome == SyncOutcome.CREATED
        assert reconciler.last_error is None
        assert reconciler.get_sync_status().last_sync is not None


class TestIdempotence:
    def test_twice_equals_once(self, reconciler, repository, user):
        entry = ShiftEntry(swap_in=T0, swap_out=T1)
        reconciler.reconcile(entry, user)
        snapshot = {k: (d.swap_in, d.swap_out) for k, d in repository.documents.items()}

        second = reconciler.reconcile(entry, user)

        assert second.outcome == SyncOutcome.ALREADY_SYNCED
        assert {k: (d.swap_in, d.swap_out) for k, d in repository.documents.items()} == snapshot
        assert len(repository.creates) == 1 and repository.patches == []


class TestInFlightGuard:
    def test_overlapping_call_is_skipped(self, reconciler, repository, user):
        entered = threading.Event()
        release = threading.Event()
        original_create = repository.create_entry

        def slow_create(*args, **kwargs):
            entered.set()
            release.wait(timeout=5)
            return original_create(*args, **kwargs)

        repository.create_entry = slow_create
        entry = ShiftEntry(swap_in=T0)

        worker = reconciler.reconcile_async(entry, user)
        assert entered.wait(timeout=5)
        assert reconciler.get_sync_status().is_syncing is True

        overlapping = reconciler.reconcile(entry, user)
        release.set()
        worker.join(timeout=5)

        assert overlapping.outcome == SyncOutcome.IN_FLIGHT
        assert len(repository.creates) == 1
        assert entry.synced is True

    def test_async_reports_result(self, reconciler, user):
        results = []
        worker = reconciler.reconcile_async(ShiftEntry(swap_in=T0), user, on_done=results.append)
        worker.join(timeout=5)
        assert [r.outcome for r in results] == [SyncOutcome.CREATED]

    def test_stop_during_slow_create_is_patched(self, reconciler, repository, local_store, user):
        entered = threading.Event()
        release = threading.Event()
        original_create = repository.create_entry

        def slow_create(*args, **kwargs):
            entered.set()
            release.wait(timeout=5)
            return original_create(*args, **kwargs)

        repository.create_entry = slow_create
        entry = ShiftEntry(swap_in=T0)

        worker = reconciler.reconcile_async(entry, user)
        assert entered.wait(timeout=5)

        # what stop() does while the create is still out
        entry.swap_out = T1
        entry.synced = False
        entry.swap_out_synced = False
        overlapping = reconciler.reconcile(entry, user)

        release.set()
        worker.join(timeout=5)

        assert overlapping.outcome == SyncOutcome.IN_FLIGHT
        assert len(repository.creates) == 1
        assert repository.patches == [entry.id]
        assert repository.documents[entry.id].swap_out == T1
        assert entry.synced is True and entry.swap_out_synced is True
        assert local_store.load().swap_out_synced is True
        assert reconciler.reconcile(entry, user).outcome == SyncOutcome.ALREADY_SYNCED

    def test_create_does_not_claim_swap_out_it_did_not_send(self, reconciler, repository, user):
        entry = ShiftEntry(swap_in=T0)
        original_create = repository.create_entry

        def create_then_stop(*args, **kwargs):
            entry_id = original_create(*args, **kwargs)
            entry.swap_out = T1  # stop() lands before the response is handled
            return entry_id

        repository.create_entry = create_then_stop

        result = reconciler.reconcile(entry, user)

        assert result.outcome == SyncOutcome.CREATED
        assert entry.synced is False and entry.swap_out_synced is False
        assert repository.documents[entry.id].swap_out is None

        assert reconciler.reconcile(entry, user).outcome == SyncOutcome.PATCHED
        assert repository.documents[entry.id].swap_out == T1


class TestSyncStatus:
    def test_last_sync_uses_clock(self, reconciler, user):
        reconciler.reconcile(ShiftEntry(swap_in=T0), user)
        status = reconciler.get_sync_status()
        assert status.last_sync == "2026-10-17 14:00:00"
        assert status.is_online is True
        assert status.is_syncing is False
