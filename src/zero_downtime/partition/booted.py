"""Booted partition detection.

``booted_partition`` records where the running kernel came from. It is
derived from ``root=`` on the kernel command line once per physical
boot and never changes while code is swapped in from other partitions.
``active_partition`` is the boot pointer and moves on every write.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Optional

from zero_downtime.errors import BootEnvironmentError
from zero_downtime.system.boot_env import (
    ACTIVE_PARTITION,
    BOOTED_PARTITION,
    BootEnvironment,
    partition_key,
)

logger = logging.getLogger(__name__)

ROOT_DEVICE_RE = re.compile(r"root=(/dev/\S+)")

# Mirrored from the active slot to the booted slot after a committed swap
METADATA_KEYS = (
    "fw_version",
    "fw_uuid",
    "fw_vcs_identifier",
    "fw_misc",
)


def parse_root_device(cmdline: str) -> Optional[str]:
    """Extract the root device from a kernel command line."""
    match = ROOT_DEVICE_RE.search(cmdline)
    return match.group(1) if match else None


class BootedPartition:
    """Detects and records the partition the kernel booted from."""

    def __init__(
        self,
        boot_env: BootEnvironment,
        device_map: Dict[str, str],
        cmdline_path: Path = Path("/proc/cmdline")
    ):
        """Initialize detector.

        Args:
            boot_env: Boot environment store
            device_map: Root device path to partition letter
            cmdline_path: Kernel command line file
        """
        self.boot_env = boot_env
        self.device_map = device_map
        self.cmdline_path = cmdline_path

    def device_to_partition(self, device: str) -> Optional[str]:
        partition = self.device_map.get(device)
        if partition is None:
            logger.warning(f"Unknown root device: {device}, cannot determine partition")
        return partition

    def detect(self) -> Optional[str]:
        """Read the booted partition from the kernel command line.

        Returns:
            "a", "b", "c" or None if it cannot be determined
        """
        try:
            cmdline = self.cmdline_path.read_text()
        except OSError as e:
            logger.error(f"Failed to read {self.cmdline_path}: {e}")
            return None

        device = parse_root_device(cmdline)
        if device is None:
            logger.error(f"Could not find root= in cmdline: {cmdline.strip()}")
            return None

        return self.device_to_partition(device)

    def initialize(self) -> bool:
        """Record the booted partition in the boot environment.

        Idempotent: only writes when the stored value differs.

        Returns:
            True if the boot environment holds the correct value
        """
        partition = self.detect()
        if partition is None:
            logger.error("Could not determine boot partition")
            return False

        current = self.boot_env.get(BOOTED_PARTITION)
        if current == partition:
            logger.debug(f"{BOOTED_PARTITION} already set to {partition}")
            return True

        logger.info(f"Initializing {BOOTED_PARTITION} to {partition} (was: {current!r})")
        try:
            self.boot_env.set(BOOTED_PARTITION, partition)
        except BootEnvironmentError as e:
            logger.error(f"Failed to set {BOOTED_PARTITION}: {e}")
            return False

        self.boot_env.reload()
        return True

    def copy_metadata_forward(self) -> None:
        """Mirror firmware metadata from the active slot to the booted slot.

        After a committed swap the running code is the active slot's
        version, so introspection tools reading the booted slot's keys
        must report it.

        Raises:
            BootEnvironmentError: If the boot environment cannot be written
        """
        env = self.boot_env.get_all()
        booted = env.get(BOOTED_PARTITION)
        active = env.get(ACTIVE_PARTITION)

        if not booted or not active or booted == active:
            logger.debug("Skipping metadata copy - booted and active are the same")
            return

        logger.info(f"Updating {booted} partition metadata from {active}")

        updates = {}
        for key in METADATA_KEYS:
            value = env.get(partition_key(active, key))
            if value is None:
                logger.debug(f"Skipping {key} - not set in partition {active}")
                continue
            updates[partition_key(booted, key)] = value

        if updates:
            self.boot_env.set_many(updates)
            self.boot_env.reload()
