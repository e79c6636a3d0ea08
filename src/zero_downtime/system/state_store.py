"""Persistent update state.

Tracks:
- Current version
- Staged version (if any)
- Active partition
- Last successful swap
- Update history (newest first, at most 10 records)

``record_update`` is the only writer. The state is written after an
outcome is known, so a crash before it leaves the previous record.
"""

import logging
import os
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from zero_downtime.errors import StateWriteError
from zero_downtime.system.boot_env import ACTIVE_PARTITION, BOOTED_PARTITION, BootEnvironment, partition_key

logger = logging.getLogger(__name__)

MAX_HISTORY = 10
DEFAULT_STATE_FILE = Path("/data/zero_downtime/state.json")


class UpdateOutcome(str, Enum):
    """Recorded outcome of an update attempt."""

    SWAPPED = "swapped"
    REBOOTED = "rebooted"
    FAILED = "failed"


class UpdateRecord(BaseModel):
    """One entry of the update history."""

    timestamp: datetime
    from_version: Optional[str] = None
    to_version: Optional[str] = None
    outcome: UpdateOutcome


class PersistedState(BaseModel):
    """Durable update state."""

    current_version: Optional[str] = None
    staged_version: Optional[str] = None
    active_partition: Optional[str] = None
    last_successful_swap_time: Optional[datetime] = None
    history: List[UpdateRecord] = Field(default_factory=list)


class PersistentStateStore:
    """Reads and writes the persisted update state."""

    def __init__(self, state_file: Path = DEFAULT_STATE_FILE, boot_env: Optional[BootEnvironment] = None):
        """Initialize state store.

        Args:
            state_file: Path of the state file
            boot_env: Boot environment used to seed a missing state
        """
        self.state_file = Path(state_file)
        self.boot_env = boot_env

    def read_state(self) -> PersistedState:
        """Read state, seeding it from the live system if none exists.

        Seeding does not write; the first ``record_update`` does.
        """
        try:
            return PersistedState.model_validate_json(self.state_file.read_bytes())
        except FileNotFoundError:
            logger.debug("No state file, initializing from system state")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read state file: {e}, using defaults")

        return self._seed()

    def write_state(self, state: PersistedState) -> None:
        """Atomically replace the state file.

        Raises:
            StateWriteError: If the file cannot be written
        """
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.state_file.parent,
                prefix=f".{self.state_file.name}.",
                suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(state.model_dump_json(indent=2))
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.state_file)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StateWriteError(f"Failed to write state file {self.state_file}: {e}") from e

    def record_update(
        self,
        from_version: Optional[str],
        to_version: Optional[str],
        outcome: UpdateOutcome,
        active_partition: Optional[str] = None,
        staged_version: Optional[str] = None
    ) -> PersistedState:
        """Record an update outcome.

        Args:
            from_version: Version before the update
            to_version: Version the update installed
            outcome: Outcome of the attempt
            active_partition: Boot pointer after the attempt
            staged_version: For failed attempts, the version left written
                to a partition but not running

        Returns:
            The new state

        Raises:
            StateWriteError: If the state cannot be written
        """
        state = self.read_state()
        now = datetime.now(timezone.utc)
        outcome = UpdateOutcome(outcome)

        entry = UpdateRecord(
            timestamp=now,
            from_version=from_version,
            to_version=to_version,
            outcome=outcome
        )

        if outcome is UpdateOutcome.FAILED:
            current_version = state.current_version
            staged_version = staged_version or state.staged_version
        else:
            current_version = to_version
            staged_version = None

        updated = state.model_copy(update={
            "current_version": current_version,
            "staged_version": staged_version,
            "active_partition": active_partition or state.active_partition,
            "last_successful_swap_time": now if outcome is UpdateOutcome.SWAPPED else state.last_successful_swap_time,
            "history": [entry, *state.history][:MAX_HISTORY],
        })

        self.write_state(updated)
        logger.info(f"Recorded update {from_version} -> {to_version}: {outcome.value}")
        return updated

    def _seed(self) -> PersistedState:
        if self.boot_env is None:
            return PersistedState()

        try:
            env = self.boot_env.get_all()
        except Exception as e:
            logger.warning(f"Cannot read boot environment to seed state: {e}")
            return PersistedState()

        booted = env.get(BOOTED_PARTITION)
        version = env.get(partition_key(booted, "fw_version")) if booted else None

        return PersistedState(
            current_version=version or env.get("fw_version"),
            active_partition=env.get(ACTIVE_PARTITION)
        )
