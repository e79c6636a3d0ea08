"""Unit tests for the validation gate."""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from zero_downtime.system.validation import (
    TIMEOUT_REASON,
    Check,
    CheckFailed,
    CrashWatch,
    SmokeTests,
    ValidationGate,
    components_running_check,
    disk_space_check,
    memory_available_check,
    system_health_check,
)


def passing(name="ok"):
    return Check(lambda: True, name)


@pytest.mark.unit
class TestValidationGate:
    """Test ordered, short-circuiting validation."""

    @pytest.mark.asyncio
    async def test_all_pass(self):
        """Test a phase where every check passes."""
        result = await ValidationGate().run("pre-update", [passing("one"), passing("two")])

        assert result.passed
        assert result.failed_check is None
        assert result.checks_passed == ["one", "two"]

    @pytest.mark.asyncio
    async def test_empty_phase_passes(self):
        """Test a phase without checks passes."""
        assert (await ValidationGate().run("pre-update", [])).passed

    @pytest.mark.asyncio
    async def test_short_circuit(self):
        """Test checks after the first failure are not run."""
        later = MagicMock(return_value=True)

        result = await ValidationGate().run("pre-update", [
            passing("first"),
            Check(lambda: False, "second"),
            Check(later, "third"),
        ])

        assert not result.passed
        assert result.failed_check == "second"
        assert result.reason == "check returned false"
        later.assert_not_called()

    @pytest.mark.asyncio
    async def test_exception_is_failure(self):
        """Test a raising check fails with the exception text."""
        def broken():
            raise RuntimeError("sensor offline")

        result = await ValidationGate().run("pre-update", [Check(broken, "Sensors")])

        assert not result.passed
        assert result.failed_check == "Sensors"
        assert "sensor offline" in result.reason

    @pytest.mark.asyncio
    async def test_check_failed_reason(self):
        """Test CheckFailed carries the reason verbatim."""
        def low_disk():
            raise CheckFailed("insufficient disk space")

        result = await ValidationGate().run("pre-update", [Check(low_disk, "Disk space")])

        assert result.reason == "insufficient disk space"

    @pytest.mark.asyncio
    async def test_async_checks(self):
        """Test coroutine predicates are awaited."""
        async def ready():
            await asyncio.sleep(0)
            return True

        assert (await ValidationGate().run("post-update", [Check(ready, "ready")])).passed

    @pytest.mark.asyncio
    async def test_timeout_ignores_partial_progress(self):
        """Test a timed-out phase fails even when earlier checks passed."""
        async def hang():
            await asyncio.sleep(10)
            return True

        gate = ValidationGate(timeout=0.05)
        result = await gate.run_with_timeout("post-update", [passing("first"), Check(hang, "Smoke tests")])

        assert not result.passed
        assert result.timed_out
        assert result.reason == TIMEOUT_REASON
        assert result.failed_check == "Smoke tests"
        assert result.checks_passed == ["first"]

    @pytest.mark.asyncio
    async def test_run_with_timeout_passes(self):
        """Test a bounded phase that completes in time."""
        result = await ValidationGate(timeout=1.0).run_with_timeout("post-update", [passing()])

        assert result.passed
        assert not result.timed_out

    @pytest.mark.asyncio
    async def test_result_to_dict(self):
        """Test result serialization."""
        result = await ValidationGate().run("pre-update", [Check(lambda: False, "x")])

        assert result.to_dict() == {
            "phase": "pre-update",
            "passed": False,
            "failed_check": "x",
            "reason": "check returned false",
            "timed_out": False
        }


@pytest.mark.unit
class TestDefaultChecks:
    """Test the built-in checks."""

    @pytest.mark.asyncio
    async def test_pre_update_checks_pass(self, mock_psutil, mock_data_dir):
        """Test default pre-update checks on a healthy system."""
        checks = [
            disk_space_check(mock_data_dir, 100),
            system_health_check(95.0, 95.0),
            memory_available_check(32),
        ]

        assert (await ValidationGate().run("pre-update", checks)).passed

    @pytest.mark.asyncio
    async def test_disk_space_insufficient(self, mock_psutil, mock_data_dir):
        """Test the disk space threshold."""
        mock_psutil.disk_usage.return_value.free = 50 * 1024 * 1024

        result = await ValidationGate().run("pre-update", [disk_space_check(mock_data_dir, 100)])

        assert result.failed_check == "Disk space"
        assert "insufficient disk space" in result.reason

    @pytest.mark.asyncio
    async def test_cpu_critical(self, mock_psutil):
        """Test the CPU load threshold."""
        mock_psutil.cpu_percent.return_value = 99.0

        result = await ValidationGate().run("pre-update", [system_health_check(95.0, 95.0)])

        assert result.failed_check == "System health"
        assert "CPU" in result.reason

    @pytest.mark.asyncio
    async def test_components_running(self):
        """Test expected components must be loaded."""
        gate = ValidationGate()

        assert (await gate.run("post-update", [components_running_check(["zero_downtime"])])).passed

        result = await gate.run("post-update", [components_running_check(["not_a_loaded_module"])])
        assert "not_a_loaded_module" in result.reason


@pytest.mark.unit
class TestCrashWatch:
    """Test crash detection for swapped components."""

    @pytest.mark.asyncio
    async def test_errors_from_watched_component(self):
        """Test errors logged by a swapped component fail the check."""
        watch = CrashWatch()
        watch.watch(["my_app"])
        try:
            logging.getLogger("my_app.core").error("worker crashed")
            logging.getLogger("other_app").error("unrelated")
        finally:
            watch.release()

        result = await ValidationGate().run("post-update", [watch.check()])

        assert not result.passed
        assert result.failed_check == "No crashes"
        assert "worker crashed" in result.reason
        assert len(watch.records) == 1

    @pytest.mark.asyncio
    async def test_no_errors(self):
        """Test a quiet component passes."""
        watch = CrashWatch()
        watch.watch(["my_app"])
        logging.getLogger("my_app").warning("just a warning")
        watch.release()

        assert (await ValidationGate().run("post-update", [watch.check()])).passed

    def test_release_detaches(self):
        """Test released watches stop collecting."""
        watch = CrashWatch()
        watch.watch(["my_app"])
        watch.release()

        logging.getLogger("my_app").error("after release")

        assert watch.records == []


@pytest.mark.unit
class TestSmokeTests:
    """Test the smoke test registry."""

    @pytest.mark.asyncio
    async def test_registered_tests_run(self):
        """Test every registered smoke test runs."""
        registry = SmokeTests()
        first = MagicMock(return_value=True)
        registry.register(first, "api responds")

        assert (await ValidationGate().run("post-update", [registry.check()])).passed
        first.assert_called_once()

    @pytest.mark.asyncio
    async def test_failing_smoke_test(self):
        """Test a failing smoke test fails the phase."""
        registry = SmokeTests()
        registry.register(lambda: False, "api responds")

        result = await ValidationGate().run("post-update", [registry.check()])

        assert result.failed_check == "Smoke tests"
        assert "api responds" in result.reason
