"""Update orchestrator.

Drives one update attempt through its states:

    idle -> extracting_metadata -> pre_validating -> selecting_strategy
         -> writing_partition -> swapping -> post_validating -> committed
                                 \\-> rebooting

``failed`` is reachable from every state; ``rolling_back`` only from a
failed swap or post-validation.

The partition is always written and the boot pointer moved before any
swap is attempted, so an unplanned reboot at any later point boots the
new firmware. The outcome is persisted after it is known, never before.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from zero_downtime.config import ZeroDowntimeConfig, load_config
from zero_downtime.errors import (
    BootEnvironmentError,
    InvalidPartitionStateError,
    RollbackError,
    StateWriteError,
    SwapError,
    UpdateInProgressError,
    ValidationError,
    ValidationTimeoutError,
    ZeroDowntimeError,
)
from zero_downtime.hot_swap.provider import ImportlibSwapProvider
from zero_downtime.hot_swap.stager import HotSwapStager
from zero_downtime.metadata.compatibility import CompatibilityAnalyzer
from zero_downtime.metadata.models import FirmwareMetadata, UpdateMetadata
from zero_downtime.metadata.parser import current_system_metadata, extract_from_firmware
from zero_downtime.partition.booted import BootedPartition
from zero_downtime.partition.reader import MarkerStatus, PartitionReader
from zero_downtime.partition.rotation import PartitionRotationEngine
from zero_downtime.partition.writer import FwupPartitionWriter, PartitionWriter
from zero_downtime.system.boot_env import (
    ACTIVE_PARTITION,
    BOOTED_PARTITION,
    PENDING_SWAP,
    PENDING_VERSION,
    VALIDATED,
    BootEnvironment,
    UBootEnvironment,
    partition_key,
)
from zero_downtime.system.reboot import RebootScheduler, system_reboot
from zero_downtime.system.state_store import PersistentStateStore, UpdateOutcome
from zero_downtime.system.validation import (
    POST_UPDATE,
    PRE_UPDATE,
    SWAP_READINESS,
    Check,
    CrashWatch,
    ValidationGate,
    ValidationResult,
    components_running_check,
    disk_space_check,
    memory_available_check,
    smoke_tests,
    system_health_check,
)
from zero_downtime.updater.fetch import FirmwareFetcher

logger = logging.getLogger(__name__)

RECENT_HISTORY = 5


class UpdateState(str, Enum):
    """Orchestrator states."""

    IDLE = "idle"
    EXTRACTING_METADATA = "extracting_metadata"
    PRE_VALIDATING = "pre_validating"
    SELECTING_STRATEGY = "selecting_strategy"
    WRITING_PARTITION = "writing_partition"
    SWAPPING = "swapping"
    REBOOTING = "rebooting"
    POST_VALIDATING = "post_validating"
    ROLLING_BACK = "rolling_back"
    COMMITTED = "committed"
    FAILED = "failed"


class UpdateStrategy(str, Enum):
    """How new firmware is brought into service."""

    SWAP = "swap"
    REBOOT = "reboot"


class ApplyOutcome(str, Enum):
    """Outcome reported to the caller of an update."""

    SWAPPED = "swapped"
    REBOOTING = "rebooting"
    FAILED = "failed"
    DRY_RUN = "dry_run"


@dataclass
class UpdateOptions:
    """Options for a single update."""

    force_reboot: bool = False
    dry_run: bool = False
    metadata: Optional[FirmwareMetadata] = None
    checksum: Optional[str] = None


@dataclass
class UpdateResult:
    """Result of an update attempt."""

    outcome: ApplyOutcome
    strategy: Optional[UpdateStrategy] = None
    from_version: Optional[str] = None
    to_version: Optional[str] = None
    state: UpdateState = UpdateState.IDLE
    target_partition: Optional[str] = None
    error: Optional[ZeroDowntimeError] = None
    warnings: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome is not ApplyOutcome.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "outcome": self.outcome.value,
            "strategy": self.strategy.value if self.strategy else None,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "state": self.state.value,
            "target_partition": self.target_partition,
            "error": self.error.to_dict() if self.error else None,
            "warnings": list(self.warnings),
            "reasons": list(self.reasons)
        }


@dataclass
class _Attempt:
    """Bookkeeping for the attempt in progress."""

    from_version: Optional[str] = None
    to_version: Optional[str] = None
    strategy: Optional[UpdateStrategy] = None
    reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    target: Optional[str] = None
    previous_active: Optional[str] = None
    written: bool = False


class UpdateOrchestrator:
    """Coordinates firmware updates across partitions and the running system.

    Only one update runs at a time; a request arriving while one is in
    progress is rejected immediately.
    """

    def __init__(
        self,
        boot_env: BootEnvironment,
        writer: PartitionWriter,
        reader: PartitionReader,
        stager: HotSwapStager,
        state_store: PersistentStateStore,
        reboot_scheduler: RebootScheduler,
        fetcher: FirmwareFetcher,
        gate: Optional[ValidationGate] = None,
        analyzer: Optional[CompatibilityAnalyzer] = None,
        rotation: Optional[PartitionRotationEngine] = None,
        booted: Optional[BootedPartition] = None,
        current_metadata: Optional[Callable[[], FirmwareMetadata]] = None,
        pre_checks: Optional[Sequence[Check]] = None,
        swap_checks: Optional[Sequence[Check]] = None,
        post_checks: Optional[Sequence[Check]] = None,
        crash_watch: Optional[CrashWatch] = None
    ):
        """Initialize orchestrator.

        Args:
            boot_env: Boot environment store
            writer: Partition writer
            reader: Reader for the freshly written partition
            stager: Hot-swap staging area
            state_store: Persistent update state
            reboot_scheduler: Deferred reboot scheduler
            fetcher: Resolves firmware references to local files
            gate: Validation gate
            analyzer: Compatibility analyzer
            rotation: Partition rotation engine
            booted: Booted partition helper (metadata copy-forward)
            current_metadata: Provides metadata of the running firmware
            pre_checks: Checks run before anything is written
            swap_checks: Checks that must pass for a live swap
            post_checks: Checks run after a swap (under the gate's timeout)
            crash_watch: Error collector for swapped components
        """
        self.boot_env = boot_env
        self.writer = writer
        self.reader = reader
        self.stager = stager
        self.state_store = state_store
        self.reboot_scheduler = reboot_scheduler
        self.fetcher = fetcher
        self.gate = gate or ValidationGate()
        self.analyzer = analyzer or CompatibilityAnalyzer()
        self.rotation = rotation or PartitionRotationEngine()
        self.booted = booted or BootedPartition(boot_env, {})
        self.current_metadata = current_metadata or (lambda: current_system_metadata(self.boot_env))
        self.crash_watch = crash_watch or CrashWatch()
        self.pre_checks = list(pre_checks or [])
        self.swap_checks = list(swap_checks or [])
        self.post_checks = list(post_checks) if post_checks is not None else [self.crash_watch.check()]

        self.state = UpdateState.IDLE
        self.transitions: List[UpdateState] = []
        self._lock = asyncio.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    async def apply_update(
        self,
        firmware_ref: Union[str, Path],
        options: Optional[UpdateOptions] = None
    ) -> UpdateResult:
        """Apply a firmware update.

        Never raises; failures are reported in ``UpdateResult.error``.

        Args:
            firmware_ref: Local path or http(s) URL of the firmware image
            options: Update options

        Returns:
            Update result
        """
        options = options or UpdateOptions()

        if self.in_progress:
            return self._busy()

        async with self._lock:
            self.transitions = []
            attempt = _Attempt()
            try:
                return await self._apply(firmware_ref, options, attempt)
            except Exception as e:
                logger.error(f"Unexpected error during update: {e}", exc_info=True)
                return self._fail(attempt, ZeroDowntimeError(f"Unexpected error: {e}"))

    async def handle_firmware_update(self) -> UpdateResult:
        """Bring a partition written by an external uploader into service.

        Called once an upload has written the partition and moved the boot
        pointer. Swaps the new code in when the partition allows it;
        otherwise, or when the swap fails, reboots into the new partition.
        """
        if self.in_progress:
            return self._busy()

        async with self._lock:
            self.transitions = []
            attempt = _Attempt(strategy=UpdateStrategy.SWAP)
            try:
                return await self._handle_uploaded(attempt)
            except Exception as e:
                logger.error(f"Unexpected error handling uploaded firmware: {e}", exc_info=True)
                return self._reboot(attempt, "unexpected error", error=ZeroDowntimeError(f"Unexpected error: {e}"))

    async def rollback(self) -> bool:
        """Re-apply the code of the recorded current version.

        A failed rollback schedules a reboot.

        Returns:
            True if rollback succeeded
        """
        if self.in_progress:
            logger.warning("Cannot roll back while an update is in progress")
            return False

        async with self._lock:
            version = self.state_store.read_state().current_version
            try:
                self.stager.rollback(version)
            except RollbackError as e:
                logger.error(f"Rollback failed: {e}, forcing reboot as last resort")
                self.reboot_scheduler.schedule("rollback failed")
                return False

            logger.info(f"Rolled back to {version}")
            return True

    def status(self) -> Dict[str, Any]:
        """Current update status."""
        state = self.state_store.read_state()

        try:
            env = self.boot_env.get_all()
        except BootEnvironmentError as e:
            logger.warning(f"Cannot read boot environment: {e}")
            env = {}

        return {
            "current_version": state.current_version,
            "staged_version": state.staged_version,
            "active_partition": env.get(ACTIVE_PARTITION, state.active_partition),
            "booted_partition": env.get(BOOTED_PARTITION),
            "validated": env.get(VALIDATED) == "1",
            "pending_swap": env.get(PENDING_SWAP) == "1",
            "last_successful_swap": (
                state.last_successful_swap_time.isoformat()
                if state.last_successful_swap_time else None
            ),
            "update_state": self.state.value,
            "update_in_progress": self.in_progress,
            "reboot_scheduled": self.reboot_scheduler.scheduled,
            "recent_history": [
                record.model_dump(mode="json") for record in state.history[:RECENT_HISTORY]
            ]
        }

    def hot_swap_available(self) -> bool:
        """Whether the staged firmware could be swapped in live."""
        candidate = self.stager.staged_metadata()
        if candidate is None:
            return False

        verdict = self.analyzer.analyze(self.current_metadata(), candidate)
        return verdict.swap_safe and candidate.swap_capable is True

    async def validate_current(self) -> ValidationResult:
        """Validate the running firmware and mark it validated.

        Run after booting into new firmware; no further update can be
        written until the running firmware is validated.
        """
        result = await self.gate.run_with_timeout(POST_UPDATE, self.post_checks)
        if result.passed:
            self.boot_env.set_many({
                VALIDATED: "1",
                PENDING_SWAP: "0",
                PENDING_VERSION: ""
            })
            logger.info("Running firmware validated")
        return result

    def reboot_to_new_partition(self) -> None:
        """Reboot into the partition the boot pointer targets."""
        logger.info("Manually triggering reboot to new partition")
        self.reboot_scheduler.schedule("manual reboot to new partition")

    # Pipeline

    async def _apply(self, firmware_ref: Union[str, Path], options: UpdateOptions, attempt: _Attempt) -> UpdateResult:
        self._enter(UpdateState.EXTRACTING_METADATA)
        try:
            firmware_path = await self.fetcher.fetch(firmware_ref, options.checksum)
            candidate = options.metadata or extract_from_firmware(firmware_path)
            update = UpdateMetadata.from_pair(self.current_metadata(), candidate)
        except ZeroDowntimeError as e:
            return self._fail(attempt, e)

        attempt.from_version = update.from_version
        attempt.to_version = update.to_version
        logger.info(f"Starting update {attempt.from_version} -> {attempt.to_version}")

        self._enter(UpdateState.PRE_VALIDATING)
        pre = await self.gate.run(PRE_UPDATE, self.pre_checks)
        if not pre.passed:
            return self._fail(attempt, ValidationError(
                f"Pre-update check failed: {pre.failed_check}: {pre.reason}",
                details=pre.to_dict()
            ))

        self._enter(UpdateState.SELECTING_STRATEGY)
        attempt.strategy, reasons = await self._select_strategy(update, options)
        attempt.reasons.extend(reasons)
        logger.info(f"Selected strategy: {attempt.strategy.value} (reasons: {reasons})")

        if options.dry_run:
            logger.info("Dry run, nothing written")
            return self._result(attempt, ApplyOutcome.DRY_RUN)

        self._enter(UpdateState.WRITING_PARTITION)
        try:
            await self._write_partition(Path(firmware_path), attempt)
        except ZeroDowntimeError as e:
            return self._fail(attempt, e)

        if attempt.strategy is UpdateStrategy.SWAP:
            return await self._swap(attempt, update.candidate, restore_boot_pointer=True, reboot_on_failure=False)

        return self._reboot(attempt, "firmware requires reboot")

    async def _handle_uploaded(self, attempt: _Attempt) -> UpdateResult:
        self.boot_env.reload()
        env = self.boot_env.get_all()

        booted = env.get(BOOTED_PARTITION)
        attempt.target = env.get(ACTIVE_PARTITION)
        if not attempt.target or attempt.target == booted:
            self._enter(UpdateState.FAILED)
            return self._result(attempt, ApplyOutcome.FAILED, InvalidPartitionStateError(
                f"No newly written partition (booted={booted}, active={attempt.target})"
            ))

        attempt.written = True
        attempt.to_version = env.get(partition_key(attempt.target, "fw_version"))
        attempt.from_version = self.state_store.read_state().current_version
        logger.info(f"Handling uploaded firmware {attempt.to_version} on partition {attempt.target}")

        candidate = FirmwareMetadata(version=attempt.to_version)
        return await self._swap(attempt, candidate, restore_boot_pointer=False, reboot_on_failure=True)

    async def _select_strategy(
        self,
        update: UpdateMetadata,
        options: UpdateOptions
    ) -> Tuple[UpdateStrategy, List[str]]:
        if options.force_reboot:
            return UpdateStrategy.REBOOT, ["force_reboot"]

        verdict = self.analyzer.analyze(update.current, update.candidate)
        if verdict.reboot_required:
            return UpdateStrategy.REBOOT, [reason.value for reason in verdict.reasons]

        readiness = await self.gate.run(SWAP_READINESS, self.swap_checks)
        if not readiness.passed:
            return UpdateStrategy.REBOOT, ["swap_readiness_failed"]

        if not update.swap_capable:
            return UpdateStrategy.REBOOT, ["not_swap_capable"]

        return UpdateStrategy.SWAP, []

    async def _write_partition(self, firmware_path: Path, attempt: _Attempt) -> None:
        env = self.boot_env.get_all()
        attempt.previous_active = env.get(ACTIVE_PARTITION)

        target = self.rotation.next_write_target(
            env.get(BOOTED_PARTITION),
            env.get(ACTIVE_PARTITION),
            env.get(VALIDATED) == "1"
        )
        attempt.target = target.value

        await asyncio.to_thread(self.writer.write, firmware_path, target)
        attempt.written = True
        self.boot_env.reload()

        # Lets the next boot tell a finished swap from an interrupted one
        try:
            self.boot_env.set_many({
                PENDING_SWAP: "1",
                PENDING_VERSION: attempt.to_version or ""
            })
        except BootEnvironmentError as e:
            logger.warning(f"Failed to mark pending swap: {e}")
            attempt.warnings.append(f"Pending swap flags not written: {e.message}")

    async def _swap(
        self,
        attempt: _Attempt,
        candidate: FirmwareMetadata,
        restore_boot_pointer: bool,
        reboot_on_failure: bool
    ) -> UpdateResult:
        self._enter(UpdateState.SWAPPING)
        version = attempt.to_version or f"partition-{attempt.target}"

        try:
            marker = await asyncio.to_thread(self._stage_from_partition, attempt.target, version, candidate)
        except ZeroDowntimeError as e:
            logger.error(f"Cannot stage code from partition {attempt.target}: {e}, falling back to reboot")
            attempt.reasons.append(e.code)
            attempt.warnings.append(f"Live swap not possible: {e.message}")
            return self._reboot(attempt, "staging failed")

        if not marker.swap_eligible:
            attempt.reasons.append(f"marker_{marker.value}")
            return self._reboot(attempt, f"swap marker {marker.value}")

        try:
            report = self.stager.apply(version)
        except SwapError as e:
            return await self._roll_back(attempt, e, restore_boot_pointer, reboot_on_failure)
        except Exception as e:
            logger.error(f"Unexpected error during swap: {e}", exc_info=True)
            return await self._roll_back(attempt, SwapError(str(e)), restore_boot_pointer, reboot_on_failure)

        self._enter(UpdateState.POST_VALIDATING)
        self.crash_watch.watch(report.components)
        try:
            post = await self.gate.run_with_timeout(POST_UPDATE, self.post_checks)
        finally:
            self.crash_watch.release()

        if not post.passed:
            if post.timed_out:
                error = ValidationTimeoutError(
                    f"Post-update validation timed out during {post.failed_check}",
                    details=post.to_dict()
                )
            else:
                error = ValidationError(
                    f"Post-update check failed: {post.failed_check}: {post.reason}",
                    details=post.to_dict()
                )
            return await self._roll_back(attempt, error, restore_boot_pointer, reboot_on_failure)

        return self._commit(attempt)

    def _stage_from_partition(self, target: str, version: str, candidate: FirmwareMetadata) -> MarkerStatus:
        self.reader.mount(target)
        try:
            marker = self.reader.read_marker()
            if marker.swap_eligible:
                self.stager.prepare(self.reader.lib_path, version, candidate)
            return marker
        finally:
            # Swaps read from the staged copy, never from the mount
            self.reader.unmount()

    async def _roll_back(
        self,
        attempt: _Attempt,
        error: ZeroDowntimeError,
        restore_boot_pointer: bool,
        reboot_on_failure: bool
    ) -> UpdateResult:
        self._enter(UpdateState.ROLLING_BACK)
        logger.error(f"Update failed: {error}, rolling back to {attempt.from_version}")

        try:
            self.stager.rollback(attempt.from_version)
        except RollbackError as e:
            logger.error(f"Rollback failed: {e}, forcing reboot as last resort")
            attempt.warnings.append(f"Update failed: {error.message}")
            return self._reboot(attempt, "rollback failed", error=e)

        if reboot_on_failure:
            return self._reboot(attempt, "live swap failed", error=error)

        if restore_boot_pointer:
            self._restore_boot_pointer(attempt)

        return self._fail(attempt, error)

    def _restore_boot_pointer(self, attempt: _Attempt) -> None:
        previous = attempt.previous_active
        if not previous or previous == attempt.target:
            return

        try:
            self.boot_env.set_many({
                ACTIVE_PARTITION: previous,
                PENDING_SWAP: "0",
                PENDING_VERSION: ""
            })
            logger.info(f"Boot pointer restored to partition {previous}")
        except BootEnvironmentError as e:
            logger.warning(f"Failed to restore boot pointer: {e}")
            attempt.warnings.append(f"Boot pointer still targets partition {attempt.target}")

    def _commit(self, attempt: _Attempt) -> UpdateResult:
        self._enter(UpdateState.COMMITTED)

        try:
            self.boot_env.set_many({
                VALIDATED: "1",
                PENDING_SWAP: "0",
                PENDING_VERSION: ""
            })
            self.booted.copy_metadata_forward()
        except BootEnvironmentError as e:
            logger.warning(f"Failed to update boot environment after swap: {e}")
            attempt.warnings.append(f"Boot environment not updated: {e.message}")

        logger.info(f"Update to {attempt.to_version} committed")
        self._persist(attempt, UpdateOutcome.SWAPPED)
        return self._result(attempt, ApplyOutcome.SWAPPED)

    def _reboot(self, attempt: _Attempt, reason: str, error: Optional[ZeroDowntimeError] = None) -> UpdateResult:
        self._enter(UpdateState.REBOOTING)
        attempt.strategy = UpdateStrategy.REBOOT

        self.reboot_scheduler.schedule(reason)
        self._persist(attempt, UpdateOutcome.REBOOTED)
        return self._result(attempt, ApplyOutcome.REBOOTING, error)

    def _fail(self, attempt: _Attempt, error: ZeroDowntimeError) -> UpdateResult:
        failed_in = self.state
        self._enter(UpdateState.FAILED)
        logger.error(f"Update failed during {failed_in.value}: {error}")

        self._persist(attempt, UpdateOutcome.FAILED)
        return self._result(attempt, ApplyOutcome.FAILED, error)

    def _persist(self, attempt: _Attempt, outcome: UpdateOutcome) -> None:
        if outcome is UpdateOutcome.FAILED:
            active = attempt.previous_active
        else:
            active = attempt.target

        try:
            self.state_store.record_update(
                attempt.from_version,
                attempt.to_version,
                outcome,
                active_partition=active,
                staged_version=attempt.to_version if attempt.written else None
            )
        except StateWriteError as e:
            logger.warning(f"Update outcome not persisted: {e}")
            attempt.warnings.append(f"State not persisted: {e.message}")

    def _busy(self) -> UpdateResult:
        logger.warning("Update already in progress, rejecting request")
        return UpdateResult(
            outcome=ApplyOutcome.FAILED,
            state=self.state,
            error=UpdateInProgressError("An update is already in progress")
        )

    def _enter(self, state: UpdateState) -> None:
        logger.debug(f"Update state: {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    def _result(
        self,
        attempt: _Attempt,
        outcome: ApplyOutcome,
        error: Optional[ZeroDowntimeError] = None
    ) -> UpdateResult:
        return UpdateResult(
            outcome=outcome,
            strategy=attempt.strategy,
            from_version=attempt.from_version,
            to_version=attempt.to_version,
            state=self.state,
            target_partition=attempt.target,
            error=error,
            warnings=list(attempt.warnings),
            reasons=list(attempt.reasons)
        )


def build_orchestrator(config: ZeroDowntimeConfig) -> UpdateOrchestrator:
    """Wire an orchestrator for a real device.

    Args:
        config: Updater configuration

    Returns:
        Orchestrator using fwup, U-Boot env and importlib swapping
    """
    boot_env = UBootEnvironment(config.fw_printenv, config.fw_setenv)
    crash_watch = CrashWatch()

    return UpdateOrchestrator(
        boot_env=boot_env,
        writer=FwupPartitionWriter(
            boot_env,
            executable=config.fwup.executable,
            device_path=config.fwup.device_path,
            task=config.fwup.task
        ),
        reader=PartitionReader(
            boot_env,
            config.mount_point,
            marker_subpath=config.marker_subpath,
            lib_subdir=config.partition_lib_subdir
        ),
        stager=HotSwapStager(
            config.hot_swap_dir,
            ImportlibSwapProvider(),
            runtime_lib_dir=config.runtime_lib_dir
        ),
        state_store=PersistentStateStore(config.state_file, boot_env),
        reboot_scheduler=RebootScheduler(system_reboot(config.reboot_command), config.reboot_delay_sec),
        fetcher=FirmwareFetcher(config.download_dir),
        gate=ValidationGate(config.validation_timeout_sec),
        analyzer=CompatibilityAnalyzer(strict=config.strict_metadata),
        booted=BootedPartition(boot_env, config.device_map, config.cmdline_path),
        pre_checks=pre_update_checks(config),
        swap_checks=[
            disk_space_check(config.data_dir, config.min_free_space_mb),
            system_health_check(config.max_cpu_percent, config.max_memory_percent),
        ],
        post_checks=post_update_checks(config, crash_watch),
        crash_watch=crash_watch
    )


def pre_update_checks(config: ZeroDowntimeConfig) -> List[Check]:
    """Default checks run before anything is written."""
    return [
        disk_space_check(config.data_dir, config.min_free_space_mb),
        system_health_check(config.max_cpu_percent, config.max_memory_percent),
        memory_available_check(config.min_free_memory_mb),
    ]


def post_update_checks(config: ZeroDowntimeConfig, crash_watch: CrashWatch) -> List[Check]:
    """Default checks run after a swap."""
    return [
        components_running_check(config.expected_components),
        crash_watch.check(),
        smoke_tests.check(),
    ]


# Global orchestrator instance
update_orchestrator: Optional[UpdateOrchestrator] = None


def initialize_orchestrator(config: Optional[ZeroDowntimeConfig] = None) -> UpdateOrchestrator:
    """Initialize global orchestrator.

    Args:
        config: Configuration (loaded from the default locations if not given)

    Returns:
        Orchestrator instance
    """
    global update_orchestrator
    update_orchestrator = build_orchestrator(config or load_config())
    return update_orchestrator


def get_orchestrator() -> Optional[UpdateOrchestrator]:
    """Get global orchestrator instance.

    Returns:
        Orchestrator or None if not initialized
    """
    return update_orchestrator
