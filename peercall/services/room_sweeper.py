"""
Room sweeper service for the signaling coordinator.
Periodically evicts rooms and mailboxes that have gone idle.
"""
import asyncio
import datetime
from typing import Optional

from ..core.logging import LoggerMixin, debug_log
from ..signaling.registry import SessionRegistry


class RoomSweeper(LoggerMixin):
    """Runs SessionRegistry.sweep_idle on a fixed interval."""

    def __init__(self, registry: SessionRegistry, interval: float):
        super().__init__()
        self.registry = registry
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

        self.sweep_stats = {
            'sweeps': 0,
            'last_sweep': None
        }

    @property
    def enabled(self) -> bool:
        return self.interval > 0 and bool(self.registry.room_idle_timeout or self.registry.peer_idle_timeout)

    async def start(self):
        """Start the background sweep loop."""
        if not self.enabled:
            debug_log(f"🧹 [Sweeper] Idle sweep disabled")
            return
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
            debug_log(f"🧹 [Sweeper] Idle sweep started", {"interval": self.interval})

    def sweep_once(self):
        rooms, mailboxes = self.registry.sweep_idle()
        self.sweep_stats['sweeps'] += 1
        self.sweep_stats['last_sweep'] = datetime.datetime.now().isoformat()
        return rooms, mailboxes

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep_once()
            except Exception as e:
                self.log_error(f"❌ [Sweeper] Sweep failed", {
                    "error": str(e),
                    "error_type": type(e).__name__
                })

    def get_status(self) -> dict:
        return {
            'enabled': self.enabled,
            'running': self._task is not None and not self._task.done(),
            'interval': self.interval,
            **self.sweep_stats
        }

    async def cleanup(self):
        """Stop the sweep loop."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        debug_log(f"🧹 [Sweeper] Idle sweep stopped")
