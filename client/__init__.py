"""Client package for ShiftTrack application.

Provides the shift session, local entry cache, sync reconciler and remote
repositories, plus the application facade used by the GUI.
"""
from .sync_service import SyncReconciler
from .timeclock_client import ShiftTrackClient, get_client

__all__ = ["get_client", "ShiftTrackClient", "SyncReconciler"]
