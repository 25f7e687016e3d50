"""
Tick worker for ShiftTrack client.
Runs in its own QThread and emits a dashboard snapshot once per tick so the
progress display stays current without blocking the UI thread.
"""

import time

from PyQt6.QtCore import QThread, pyqtSignal

from shared.logging_config import get_client_logger

logger = get_client_logger()


class SessionTicker(QThread):
    """
    Emits tick(dict) with elapsed/remaining/progress every tick_interval_ms.
    Snapshots are computed by the client; the worker never mutates state.
    """

    tick = pyqtSignal(dict)

    def __init__(self, client, bus_times_provider=None, tick_interval_ms=1000):
        super().__init__()
        self._running = True
        self.client = client
        self.bus_times_provider = bus_times_provider
        self.tick_interval_ms = tick_interval_ms

    def snapshot(self) -> dict:
        bus_times = self.bus_times_provider() if self.bus_times_provider else None
        return self.client.dashboard(bus_times=bus_times)

    def run(self):
        while self._running:
            try:
                self.tick.emit(self.snapshot())
            except Exception as e:
                # Keep the loop alive; the next tick recomputes from scratch
                logger.debug(f"Tick failed: {e}")
            time.sleep(self.tick_interval_ms / 1000.0)

    def stop(self) -> None:
        """Stop the worker loop; run() exits on its next iteration"""
        self._running = False

    def update_tick_interval(self, tick_interval_ms: int) -> None:
        self.tick_interval_ms = max(500, tick_interval_ms)
