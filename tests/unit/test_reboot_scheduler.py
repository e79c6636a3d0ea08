"""Unit tests for deferred reboots."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from zero_downtime.system.reboot import RebootScheduler, system_reboot


@pytest.mark.unit
class TestRebootScheduler:
    """Test reboot scheduling and cancellation."""

    @pytest.mark.asyncio
    async def test_reboot_fires_after_delay(self):
        """Test the reboot action runs once the delay expires."""
        action = MagicMock()
        scheduler = RebootScheduler(action, delay=0.01)

        scheduler.schedule("update requires reboot")
        assert scheduler.scheduled
        action.assert_not_called()

        await scheduler.wait()

        action.assert_called_once()
        assert scheduler.reason == "update requires reboot"

    @pytest.mark.asyncio
    async def test_async_action(self):
        """Test coroutine reboot actions are awaited."""
        action = AsyncMock()
        scheduler = RebootScheduler(action, delay=0)

        scheduler.schedule("test")
        await scheduler.wait()

        action.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_second_schedule_ignored(self):
        """Test a pending reboot is not replaced."""
        action = MagicMock()
        scheduler = RebootScheduler(action, delay=0.01)

        scheduler.schedule("first")
        scheduler.schedule("second")
        await scheduler.wait()

        action.assert_called_once()
        assert scheduler.reason == "first"

    @pytest.mark.asyncio
    async def test_cancel(self):
        """Test a pending reboot can be cancelled."""
        action = MagicMock()
        scheduler = RebootScheduler(action, delay=10)

        scheduler.schedule("test")
        assert scheduler.cancel()
        await scheduler.wait()

        assert not scheduler.scheduled
        action.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_nothing_pending(self):
        """Test cancelling without a scheduled reboot."""
        assert not RebootScheduler(MagicMock()).cancel()

    @pytest.mark.asyncio
    async def test_action_error_logged(self):
        """Test a failing reboot action does not escape the task."""
        scheduler = RebootScheduler(MagicMock(side_effect=OSError("no reboot binary")), delay=0)

        scheduler.schedule("test")
        await scheduler.wait()

        assert scheduler.task.done()
        assert scheduler.task.exception() is None

    @pytest.mark.asyncio
    async def test_wait_without_schedule(self):
        """Test waiting when nothing was scheduled returns at once."""
        await asyncio.wait_for(RebootScheduler(MagicMock()).wait(), timeout=1)


@pytest.mark.unit
def test_system_reboot_command(mock_subprocess):
    """Test the system reboot action runs the configured command."""
    system_reboot(["systemctl", "reboot"])()

    assert mock_subprocess.call_args[0][0] == ["systemctl", "reboot"]
