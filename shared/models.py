"""
Shared data models for the ShiftTrack application.
Used by both server and client components.
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from shared.utils import format_instant, parse_instant


class SessionState(Enum):
    """Lifecycle states of a shift session"""
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"


class SyncOutcome(Enum):
    """What a single reconcile attempt did"""
    CREATED = "created"
    PATCHED = "patched"
    ALREADY_SYNCED = "already_synced"
    NOTHING_TO_DO = "nothing_to_do"
    OFFLINE = "offline"
    NO_USER = "no_user"
    IN_FLIGHT = "in_flight"
    FAILED = "failed"

    @property
    def wrote_remote(self) -> bool:
        return self in (SyncOutcome.CREATED, SyncOutcome.PATCHED)


@dataclass
class SyncResult:
    """Typed result of a reconcile attempt; never raised, only returned"""
    outcome: SyncOutcome
    entry_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome != SyncOutcome.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'outcome': self.outcome.value,
            'entry_id': self.entry_id,
            'error': self.error,
        }


@dataclass(frozen=True)
class EntryView:
    """Swap in/out pair as seen from one side of the sync boundary"""
    swap_in: Optional[datetime] = None
    swap_out: Optional[datetime] = None


@dataclass
class UserContext:
    """Signed-in identity, passed explicitly to anything that talks to the server"""
    user_id: str
    display_name: str = ""
    api_key: str = ""


@dataclass
class ShiftEntry:
    """A single shift record with local sync metadata"""
    id: Optional[str] = None  # Server-assigned document id
    user_id: Optional[str] = None
    swap_in: Optional[datetime] = None
    swap_out: Optional[datetime] = None
    synced: bool = False
    swap_out_synced: bool = False
    created_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return self.swap_in is not None and self.swap_out is not None

    @property
    def duration(self):
        """Worked time for a completed entry, None otherwise"""
        if not self.is_complete:
            return None
        return self.swap_out - self.swap_in

    def pending_view(self) -> EntryView:
        """What the user sees locally, confirmed or not"""
        return EntryView(self.swap_in, self.swap_out)

    def confirmed_view(self) -> EntryView:
        """What is known to be durably stored on the server"""
        # An id is only assigned by a successful create, which stored swapIn
        if not self.id:
            return EntryView()
        return EntryView(
            self.swap_in,
            self.swap_out if self.swap_out_synced else None,
        )

    # Local slot encoding
    def to_local_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'swapIn': format_instant(self.swap_in) if self.swap_in else None,
            'swapOut': format_instant(self.swap_out) if self.swap_out else None,
            'synced': self.synced,
            'swapOutSynced': self.swap_out_synced,
        }

    def to_local_json(self) -> str:
        return json.dumps(self.to_local_dict())

    @classmethod
    def from_local_json(cls, raw: str) -> 'ShiftEntry':
        """Decode the local slot. Raises ValueError/TypeError on bad data."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")

        swap_in = _instant_field(data, 'swapIn')
        swap_out = _instant_field(data, 'swapOut')
        entry_id = data.get('id')
        if entry_id is not None and not isinstance(entry_id, str):
            raise TypeError("id must be a string")

        return cls(
            id=entry_id or None,
            swap_in=swap_in,
            swap_out=swap_out,
            synced=bool(data.get('synced', False)),
            swap_out_synced=bool(data.get('swapOutSynced', False)),
        )

    # Server document encoding
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API serialization"""
        return {
            'id': self.id,
            'userId': self.user_id,
            'swapIn': format_instant(self.swap_in) if self.swap_in else None,
            'swapOut': format_instant(self.swap_out) if self.swap_out else None,
            'createdAt': format_instant(self.created_at) if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShiftEntry':
        """Create a ShiftEntry from a server document (always synced)"""
        swap_out = parse_instant(data.get('swapOut'))
        return cls(
            id=data.get('id'),
            user_id=data.get('userId'),
            swap_in=parse_instant(data.get('swapIn')),
            swap_out=swap_out,
            synced=True,
            swap_out_synced=swap_out is not None,
            created_at=parse_instant(data.get('createdAt')),
        )


def _instant_field(data: Dict[str, Any], key: str) -> Optional[datetime]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{key} must be an ISO-8601 string")
    parsed = parse_instant(value)
    if parsed is None:
        raise ValueError(f"{key} is not a valid instant: {value!r}")
    return parsed


@dataclass
class BusTime:
    """A departure time in a user's bus timetable"""
    id: str
    time: str  # zero-padded HH:MM

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BusTime':
        return cls(id=str(data['id']), time=data['time'])


@dataclass
class SyncStatus:
    """Status information for sync operations"""
    is_online: bool = False
    is_syncing: bool = False
    last_sync: Optional[str] = None  # ISO timestamp
    last_error: Optional[str] = None
    server_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# API Request/Response Models
@dataclass
class CreateEntryRequest:
    """API request to create a new shift entry"""
    userId: str
    swapIn: str  # ISO timestamp
    createdAt: str  # ISO timestamp
    swapOut: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data['swapOut'] is None:
            data.pop('swapOut')
        return data


@dataclass
class PatchSwapOutRequest:
    """API request to set swapOut on an existing entry"""
    swapOut: str  # ISO timestamp

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ApiResponse:
    """Standard API response wrapper"""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Configuration models
@dataclass
class ServerConfig:
    """Client connection configuration with validation"""
    server_url: str = ""
    api_key: str = ""
    user_id: str = ""
    display_name: str = ""
    timeout: int = 10  # seconds
    tick_interval_ms: int = 1000

    def __post_init__(self) -> None:
        """Validate configuration after initialization"""
        if self.server_url:
            if not self.server_url.startswith(('http://', 'https://')):
                raise ValueError("Invalid server URL: must start with http:// or https://")
            self.server_url = self.server_url.rstrip('/')

        if not (1 <= self.timeout <= 120):
            raise ValueError(f"Timeout must be between 1 and 120 seconds, got {self.timeout}")

        if self.tick_interval_ms < 500:
            raise ValueError(f"Tick interval must be at least 500ms, got {self.tick_interval_ms}")

    @property
    def is_signed_in(self) -> bool:
        return bool(self.server_url and self.api_key and self.user_id)

    def user_context(self) -> Optional[UserContext]:
        if not self.is_signed_in:
            return None
        return UserContext(self.user_id, self.display_name, self.api_key)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API serialization"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServerConfig':
        """Create from dictionary"""
        return cls(**data)
