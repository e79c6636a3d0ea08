"""Pre- and post-update validation.

Checks run strictly in order and stop at the first failure. The
post-update phase runs under a deadline: when it expires the whole
phase fails, whatever individual checks already passed, and the check
still in flight is abandoned.

Pre-update checks:
- Disk space on the data partition
- System health (CPU and memory load)
- Memory available

Post-update checks:
- Expected components running
- No crashes in swapped components
- Registered smoke tests
"""

import asyncio
import inspect
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence

import psutil

logger = logging.getLogger(__name__)

DEFAULT_VALIDATION_TIMEOUT = 30.0
DEFAULT_MIN_FREE_SPACE_MB = 100

PRE_UPDATE = "pre-update"
POST_UPDATE = "post-update"
SWAP_READINESS = "swap-readiness"

TIMEOUT_REASON = "validation_timeout"


class CheckFailed(Exception):
    """Raised by a check predicate to report why it failed."""


@dataclass
class Check:
    """A named validation predicate (sync or async)."""

    predicate: Callable[[], Any]
    name: str


@dataclass
class ValidationResult:
    """Result of a validation phase."""

    phase: str
    passed: bool
    failed_check: Optional[str] = None
    reason: Optional[str] = None
    timed_out: bool = False
    checks_passed: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "phase": self.phase,
            "passed": self.passed,
            "failed_check": self.failed_check,
            "reason": self.reason,
            "timed_out": self.timed_out
        }


class ValidationGate:
    """Runs ordered validation checks."""

    def __init__(self, timeout: float = DEFAULT_VALIDATION_TIMEOUT):
        """Initialize gate.

        Args:
            timeout: Default deadline for bounded phases (seconds)
        """
        self.timeout = timeout

    async def run(self, phase: str, checks: Sequence[Check]) -> ValidationResult:
        """Run checks in order, stopping at the first failure."""
        return await self._run(phase, checks, ValidationResult(phase=phase, passed=False))

    async def run_with_timeout(
        self,
        phase: str,
        checks: Sequence[Check],
        timeout: Optional[float] = None
    ) -> ValidationResult:
        """Run checks under a deadline.

        Partial progress is ignored when the deadline passes.
        """
        timeout = self.timeout if timeout is None else timeout
        progress = ValidationResult(phase=phase, passed=False)
        task = asyncio.ensure_future(self._run(phase, checks, progress))

        try:
            return await asyncio.wait_for(task, timeout)
        except asyncio.TimeoutError:
            in_flight = progress.failed_check
            logger.error(
                f"{phase} validation timed out after {timeout}s "
                f"(in flight: {in_flight}, {len(progress.checks_passed)} checks passed)"
            )
            return ValidationResult(
                phase=phase,
                passed=False,
                failed_check=in_flight,
                reason=TIMEOUT_REASON,
                timed_out=True,
                checks_passed=list(progress.checks_passed)
            )

    async def _run(
        self,
        phase: str,
        checks: Sequence[Check],
        progress: ValidationResult
    ) -> ValidationResult:
        logger.info(f"Running {phase} validation checks")

        for check in checks:
            # Names the check in flight if the phase is cancelled
            progress.failed_check = check.name

            ok, reason = await self._evaluate(check)
            if not ok:
                logger.error(f"{phase} check failed: {check.name} - {reason}")
                progress.reason = reason
                return progress

            logger.debug(f"{phase} check passed: {check.name}")
            progress.checks_passed.append(check.name)

        progress.passed = True
        progress.failed_check = None
        return progress

    @staticmethod
    async def _evaluate(check: Check):
        try:
            if inspect.iscoroutinefunction(check.predicate):
                result = await check.predicate()
            else:
                result = await asyncio.to_thread(check.predicate)
        except CheckFailed as e:
            return False, str(e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Check {check.name} raised", exc_info=True)
            return False, f"{type(e).__name__}: {e}"

        if not result:
            return False, "check returned false"
        return True, None


# Default checks


def disk_space_check(path: Path, min_free_mb: int = DEFAULT_MIN_FREE_SPACE_MB) -> Check:
    """Free space on ``path`` must be at least ``min_free_mb``."""

    def check_disk_space() -> bool:
        try:
            usage = psutil.disk_usage(str(path))
        except OSError as e:
            raise CheckFailed(f"disk space check failed for {path}: {e}")

        available_mb = usage.free / (1024 * 1024)
        if available_mb < min_free_mb:
            raise CheckFailed(
                f"insufficient disk space: {available_mb:.0f}MB available, {min_free_mb}MB required"
            )
        return True

    return Check(check_disk_space, "Disk space")


def system_health_check(max_cpu_percent: float = 95.0, max_memory_percent: float = 95.0) -> Check:
    """CPU and memory load must be below the thresholds."""

    def check_system_health() -> bool:
        cpu = psutil.cpu_percent(interval=None)
        memory = psutil.virtual_memory().percent

        if cpu > max_cpu_percent:
            raise CheckFailed(f"CPU usage critically high: {cpu:.1f}%")
        if memory > max_memory_percent:
            raise CheckFailed(f"Memory usage critically high: {memory:.1f}%")
        return True

    return Check(check_system_health, "System health")


def memory_available_check(min_free_mb: int = 32) -> Check:
    """Available memory must be at least ``min_free_mb``."""

    def check_memory_available() -> bool:
        available_mb = psutil.virtual_memory().available / (1024 * 1024)
        if available_mb < min_free_mb:
            raise CheckFailed(
                f"insufficient memory: {available_mb:.0f}MB available, {min_free_mb}MB required"
            )
        return True

    return Check(check_memory_available, "Memory available")


def components_running_check(components: Iterable[str]) -> Check:
    """Every expected component must be loaded."""
    expected = list(components)

    def check_components_running() -> bool:
        missing = [name for name in expected if name not in sys.modules]
        if missing:
            raise CheckFailed(f"components not running: {', '.join(missing)}")
        return True

    return Check(check_components_running, "Components running")


class CrashWatch(logging.Handler):
    """Collects error records logged by watched components.

    Attached to the root logger for the duration of a swap and its
    post-validation; any ERROR or worse from a swapped component counts
    as a crash.
    """

    def __init__(self):
        super().__init__(level=logging.ERROR)
        self.components: List[str] = []
        self.records: List[logging.LogRecord] = []

    def watch(self, components: Iterable[str]) -> None:
        self.components = list(components)
        self.records = []
        logging.getLogger().addHandler(self)

    def release(self) -> None:
        logging.getLogger().removeHandler(self)

    def emit(self, record: logging.LogRecord) -> None:
        if any(record.name == c or record.name.startswith(c + ".") for c in self.components):
            self.records.append(record)

    def check(self) -> Check:
        def check_no_crashes() -> bool:
            if self.records:
                first = self.records[0]
                raise CheckFailed(
                    f"{len(self.records)} error(s) from swapped components, "
                    f"first: {first.name}: {first.getMessage()}"
                )
            return True

        return Check(check_no_crashes, "No crashes")


class SmokeTests:
    """Registry of application smoke tests run after a swap."""

    def __init__(self):
        self.tests: List[Check] = []

    def register(self, predicate: Callable[[], Any], name: Optional[str] = None) -> None:
        self.tests.append(Check(predicate, name or getattr(predicate, "__name__", "smoke test")))
        logger.debug(f"Registered smoke test: {self.tests[-1].name}")

    def check(self) -> Check:
        async def run_smoke_tests() -> bool:
            for test in self.tests:
                ok, reason = await ValidationGate._evaluate(test)
                if not ok:
                    raise CheckFailed(f"smoke test {test.name} failed: {reason}")
            return True

        return Check(run_smoke_tests, "Smoke tests")


# Global smoke test registry
smoke_tests = SmokeTests()
