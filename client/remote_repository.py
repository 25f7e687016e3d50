"""
Remote repositories for ShiftTrack client.
Thin HTTP wrappers over the server's document API: shift entries and
per-user bus times. Every failure surfaces as RepositoryError.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import requests

from shared.logging_config import get_sync_logger
from shared.models import (BusTime, CreateEntryRequest, PatchSwapOutRequest,
                           ServerConfig, ShiftEntry)
from shared.utils import format_instant

logger = get_sync_logger()

HEALTH_TIMEOUT = 3  # seconds, short to keep connectivity probes snappy


class RepositoryError(Exception):
    """Network, permission or server-side failure talking to the remote store"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteApi:
    """Shared requests session and response handling"""

    def __init__(self, config: ServerConfig, session: Optional[requests.Session] = None):
        self.config = config
        self._session = session or requests.Session()
        self._session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'ShiftTrack-Client/1.0'
        })
        self.set_api_key(config.api_key)

    def set_api_key(self, api_key: str):
        """Update the bearer token used for all requests"""
        if api_key:
            self._session.headers['Authorization'] = f'Bearer {api_key}'
        else:
            self._session.headers.pop('Authorization', None)

    def _url(self, path: str) -> str:
        return f"{self.config.server_url}{path}"

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Issue a request and unwrap the {success, data, error} envelope"""
        if not self.config.server_url:
            raise RepositoryError("Server URL not configured")

        kwargs.setdefault('timeout', self.config.timeout)
        try:
            response = self._session.request(method, self._url(path), **kwargs)
        except requests.exceptions.RequestException as e:
            raise RepositoryError(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get('success'):
            error = body.get('error') or response.text[:200]
            raise RepositoryError(
                f"{method} {path} returned {response.status_code}: {error}",
                status_code=response.status_code,
            )

        return body.get('data') or {}

    def check_connection(self) -> bool:
        """Check if server is reachable"""
        if not self.config.server_url:
            return False
        try:
            response = self._session.get(self._url('/health'), timeout=HEALTH_TIMEOUT)
            return response.status_code == 200
        except requests.exceptions.RequestException as e:
            logger.debug(f"Connection check failed: {e}")
            return False


class RemoteEntryRepository(RemoteApi):
    """Shift entries collection on the server"""

    def create_entry(self, user_id: str, swap_in: datetime, created_at: datetime,
                     swap_out: Optional[datetime] = None) -> str:
        """Create an entry document and return its id"""
        payload = CreateEntryRequest(
            userId=user_id,
            swapIn=format_instant(swap_in),
            createdAt=format_instant(created_at),
            swapOut=format_instant(swap_out) if swap_out else None,
        ).to_dict()

        data = self._request('POST', '/api/v1/entries', json=payload)
        entry_id = data.get('id')
        if not entry_id:
            raise RepositoryError("Create response missing entry id")
        return entry_id

    def patch_swap_out(self, entry_id: str, swap_out: datetime) -> None:
        """Set swapOut on an existing entry"""
        payload = PatchSwapOutRequest(swapOut=format_instant(swap_out)).to_dict()
        self._request('PATCH', f'/api/v1/entries/{entry_id}', json=payload)

    def query_todays_entry(self, user_id: str, day_start: datetime,
                           day_end: datetime) -> Optional[ShiftEntry]:
        """Return the entry whose swapIn falls in [day_start, day_end), if any"""
        data = self._request('GET', '/api/v1/entries', params={
            'userId': user_id,
            'start': format_instant(day_start),
            'end': format_instant(day_end),
            'limit': 1,
        })
        entries = data.get('entries', [])
        return ShiftEntry.from_dict(entries[0]) if entries else None

    def query_entries_since(self, user_id: str, period_start: datetime) -> List[ShiftEntry]:
        """Entries with swapIn >= period_start, newest first"""
        data = self._request('GET', '/api/v1/entries', params={
            'userId': user_id,
            'start': format_instant(period_start),
        })
        return [ShiftEntry.from_dict(item) for item in data.get('entries', [])]

    def delete_entries(self, ids: Iterable[str]) -> int:
        """Best-effort batch delete. Returns how many deletions succeeded."""
        deleted = 0
        for entry_id in ids:
            try:
                self._request('DELETE', f'/api/v1/entries/{entry_id}')
                deleted += 1
            except RepositoryError as e:
                logger.warning(f"Failed to delete entry {entry_id}: {e}")
        return deleted


class BusTimesRepository(RemoteApi):
    """Per-user bus times sub-collection on the server"""

    def list(self, user_id: str) -> List[BusTime]:
        data = self._request('GET', f'/api/v1/users/{user_id}/bus-times')
        return [BusTime.from_dict(item) for item in data.get('bus_times', [])]

    def upsert(self, user_id: str, bus_id: str, time: str) -> BusTime:
        data = self._request('PUT', f'/api/v1/users/{user_id}/bus-times/{bus_id}',
                             json={'time': time})
        return BusTime.from_dict(data)

    def delete(self, user_id: str, bus_id: str) -> None:
        self._request('DELETE', f'/api/v1/users/{user_id}/bus-times/{bus_id}')


def onboard_user(server_url: str, display_name: str, timeout: int = 10) -> Dict[str, str]:
    """Register with the server and obtain {user_id, api_key}"""
    api = RemoteApi(ServerConfig(server_url=server_url, timeout=timeout))
    return api._request('POST', '/api/v1/users/onboard', json={'display_name': display_name})
