"""Deferred reboot scheduling.

Reboots are delayed briefly so the caller of an update gets its answer
before the device goes down. The scheduled reboot is an asyncio task
owned by the scheduler; it can be inspected and cancelled.
"""

import asyncio
import inspect
import logging
import subprocess
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_REBOOT_DELAY = 1.0


def system_reboot(command: Optional[List[str]] = None) -> Callable[[], None]:
    """Reboot action running the system reboot command."""
    args = command or ["reboot"]

    def reboot() -> None:
        logger.warning(f"Rebooting: {' '.join(args)}")
        subprocess.run(args, check=False)

    return reboot


class RebootScheduler:
    """Schedules a single deferred reboot."""

    def __init__(self, reboot_action: Optional[Callable[[], object]] = None, delay: float = DEFAULT_REBOOT_DELAY):
        """Initialize scheduler.

        Args:
            reboot_action: Called when the delay expires (sync or async)
            delay: Default delay in seconds
        """
        self.reboot_action = reboot_action or system_reboot()
        self.delay = delay
        self.reason: Optional[str] = None
        self.task: Optional[asyncio.Task] = None

    @property
    def scheduled(self) -> bool:
        """True while a reboot is pending or has fired."""
        return self.task is not None and not self.task.cancelled()

    def schedule(self, reason: str, delay: Optional[float] = None) -> None:
        """Schedule a reboot; a reboot already pending is kept.

        Must be called from a running event loop.
        """
        if self.task is not None and not self.task.done():
            logger.info(f"Reboot already scheduled ({self.reason}), ignoring: {reason}")
            return

        delay = self.delay if delay is None else delay
        self.reason = reason
        logger.warning(f"Reboot scheduled in {delay}s: {reason}")
        self.task = asyncio.create_task(self._reboot_after(delay))

    def cancel(self) -> bool:
        """Cancel a pending reboot.

        Returns:
            True if a pending reboot was cancelled
        """
        if self.task is None or self.task.done():
            return False

        self.task.cancel()
        logger.info("Scheduled reboot cancelled")
        return True

    async def wait(self) -> None:
        """Wait for a scheduled reboot to fire (or be cancelled)."""
        if self.task is None:
            return
        try:
            await self.task
        except asyncio.CancelledError:
            pass

    async def _reboot_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            result = self.reboot_action()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Reboot failed: {e}", exc_info=True)
