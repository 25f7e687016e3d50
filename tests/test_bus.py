"""
Tests for bus recommendations and timetable management.
Datetimes here are naive, so they are read as device-local time.
"""
from datetime import datetime, timedelta

import pytest
from conftest import FakeBusTimesRepository

from client.bus import (DEFAULT_TIMES, BusTimesService, best_bus_after_session,
                        next_after, next_bus_from, sorted_times)
from shared.models import BusTime
from shared.utils import InvalidTimeFormat

TIMES = ["17:15", "17:30", "18:10", "18:20", "18:20", "19:15", "19:45"]


class TestNextAfter:
    def test_first_at_or_after(self):
        assert next_after(TIMES, "18:15") == "18:20"

    def test_equal_counts(self):
        assert next_after(TIMES, "18:10") == "18:10"

    def test_earliest(self):
        assert next_after(TIMES, "06:00") == "17:15"

    def test_none_after_last_bus(self):
        assert next_after(TIMES, "19:46") is None

    def test_empty_timetable(self):
        assert next_after([], "12:00") is None

    def test_next_bus_from_now(self):
        assert next_bus_from(datetime(2026, 10, 17, 17, 20), TIMES) == "17:30"

    def test_no_rollover_late_evening(self):
        assert next_bus_from(datetime(2026, 10, 17, 23, 50), TIMES) is None


class TestBestBusAfterSession:
    def test_after_expected_end(self):
        # 14:30 + 3h40m = 18:10
        assert best_bus_after_session(datetime(2026, 10, 17, 14, 30), TIMES) == "18:10"

    def test_between_departures(self):
        # 14:40 + 3h40m = 18:20
        assert best_bus_after_session(datetime(2026, 10, 17, 14, 40), TIMES) == "18:20"

    def test_session_ends_after_last_bus(self):
        assert best_bus_after_session(datetime(2026, 10, 17, 16, 30), TIMES) is None

    def test_custom_duration(self):
        swap_in = datetime(2026, 10, 17, 17, 0)
        assert best_bus_after_session(swap_in, TIMES, timedelta(minutes=20)) == "17:30"

    def test_sorted_times(self):
        bus_times = [BusTime(id="b", time="19:15"), BusTime(id="a", time="17:15")]
        assert sorted_times(bus_times) == ["17:15", "19:15"]


class TestBusTimesService:
    def test_empty_timetable_is_seeded(self, bus_repository, user):
        service = BusTimesService(bus_repository)

        times = service.list_times(user)

        assert [b.time for b in times] == DEFAULT_TIMES
        assert [b.time for b in times].count("18:20") == 2
        assert len(bus_repository.docs) == 7
        assert len({b.id for b in times}) == 7

    def test_existing_timetable_is_sorted_not_seeded(self, user):
        repository = FakeBusTimesRepository(["19:00", "07:45"])
        times = BusTimesService(repository).list_times(user)
        assert [b.time for b in times] == ["07:45", "19:00"]

    def test_add_time(self, bus_repository, user):
        service = BusTimesService(bus_repository)
        added = service.add_time(user, " 08:05 ")
        assert added.time == "08:05"
        assert bus_repository.docs[added.id] == "08:05"

    def test_adding_an_existing_time_keeps_both(self, user):
        repository = FakeBusTimesRepository(["17:15"])
        service = BusTimesService(repository)

        added = service.add_time(user, "17:15")

        assert added.id != "17:15"
        assert sorted(repository.docs.values()) == ["17:15", "17:15"]
        assert [b.time for b in service.list_times(user)] == ["17:15", "17:15"]

    @pytest.mark.parametrize("value", ["8:05", "25:00", "08:75", "eight"])
    def test_add_rejects_invalid(self, bus_repository, user, value):
        with pytest.raises(InvalidTimeFormat):
            BusTimesService(bus_repository).add_time(user, value)
        assert bus_repository.docs == {}

    def test_edit_keeps_id(self, user):
        repository = FakeBusTimesRepository(["17:15"])
        BusTimesService(repository).edit_time(user, "17:15", "17:20")
        assert repository.docs == {"17:15": "17:20"}

    def test_delete(self, user):
        repository = FakeBusTimesRepository(["17:15", "17:30"])
        BusTimesService(repository).delete_time(user, "17:15")
        assert list(repository.docs) == ["17:30"]
