"""
Bus recommendations for ShiftTrack client.
Finds the first departure at or after a time of day, and manages the
user's timetable.
"""

import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from client.remote_repository import BusTimesRepository
from client.session import SHIFT_DURATION
from shared.logging_config import get_client_logger
from shared.models import BusTime, UserContext
from shared.utils import format_hhmm, validate_hhmm

logger = get_client_logger()

DEFAULT_TIMES = ['17:15', '17:30', '18:10', '18:20', '18:20', '19:15', '19:45']


def next_after(times: Sequence[str], threshold: str) -> Optional[str]:
    """First entry of sorted HH:MM times that is >= threshold, else None.

    Zero-padded HH:MM strings sort the same as the times of day they name.
    There is no rollover to the next day.
    """
    for value in times:
        if value >= threshold:
            return value
    return None


def next_bus_from(now: datetime, times: Sequence[str]) -> Optional[str]:
    return next_after(times, format_hhmm(now))


def best_bus_after_session(swap_in: datetime, times: Sequence[str],
                           duration: timedelta = SHIFT_DURATION) -> Optional[str]:
    return next_after(times, format_hhmm(swap_in + duration))


def sorted_times(bus_times: Sequence[BusTime]) -> List[str]:
    return sorted(b.time for b in bus_times)


def new_bus_id() -> str:
    """Fresh document id; equal times stay separate documents"""
    return uuid.uuid4().hex


class BusTimesService:
    """User timetable management on top of the bus times repository"""

    def __init__(self, repository: BusTimesRepository):
        self.repository = repository

    def list_times(self, user: UserContext) -> List[BusTime]:
        """Timetable sorted by time; empty timetables get the defaults"""
        bus_times = self.repository.list(user.user_id)
        if not bus_times:
            logger.info(f"Seeding default bus times for {user.user_id}")
            for value in DEFAULT_TIMES:
                self.repository.upsert(user.user_id, new_bus_id(), value)
            bus_times = self.repository.list(user.user_id)

        return sorted(bus_times, key=lambda b: b.time)

    def add_time(self, user: UserContext, time: str) -> BusTime:
        time = validate_hhmm(time)
        return self.repository.upsert(user.user_id, new_bus_id(), time)

    def edit_time(self, user: UserContext, bus_id: str, time: str) -> BusTime:
        time = validate_hhmm(time)
        return self.repository.upsert(user.user_id, bus_id, time)

    def delete_time(self, user: UserContext, bus_id: str) -> None:
        self.repository.delete(user.user_id, bus_id)
