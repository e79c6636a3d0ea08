"""Reads a freshly written partition.

The partition the boot pointer now targets holds the new firmware. It
is mounted read-only so the swap-eligibility marker and the new code
can be read. Code must be copied off the mount and the partition
unmounted before any swap reads it.
"""

import logging
import shutil
import subprocess
import time
from enum import Enum
from pathlib import Path
from typing import Optional

from zero_downtime.errors import MountError
from zero_downtime.partition.booted import parse_root_device
from zero_downtime.system.boot_env import BootEnvironment, partition_key

logger = logging.getLogger(__name__)


class MarkerStatus(str, Enum):
    """Swap-eligibility marker states."""

    SWAP_ELIGIBLE = "swap_eligible"
    REBOOT_REQUIRED = "reboot_required"
    INVALID = "invalid"
    MISSING = "missing"

    @property
    def swap_eligible(self) -> bool:
        return self is MarkerStatus.SWAP_ELIGIBLE


def parse_marker(body: Optional[str]) -> MarkerStatus:
    """Parse the body of a swap-eligibility marker file.

    The body must be exactly ``true`` or ``false``; a single trailing
    line ending is allowed. Anything else is invalid.

    Args:
        body: File content, None if the file does not exist

    Returns:
        Marker status
    """
    if body is None:
        return MarkerStatus.MISSING

    if body.endswith("\r\n"):
        body = body[:-2]
    elif body.endswith("\n"):
        body = body[:-1]

    if body == "true":
        return MarkerStatus.SWAP_ELIGIBLE
    if body == "false":
        return MarkerStatus.REBOOT_REQUIRED
    return MarkerStatus.INVALID


class PartitionReader:
    """Mounts a partition read-only and reads firmware content from it."""

    def __init__(
        self,
        boot_env: BootEnvironment,
        mount_point: Path,
        marker_subpath: str = "srv/app/HOT_SWAP",
        lib_subdir: str = "srv/app/lib"
    ):
        """Initialize reader.

        Args:
            boot_env: Boot environment (for per-partition kernel args)
            mount_point: Where to mount the partition
            marker_subpath: Marker location inside the partition
            lib_subdir: Code location inside the partition
        """
        self.boot_env = boot_env
        self.mount_point = Path(mount_point)
        self.marker_subpath = marker_subpath
        self.lib_subdir = lib_subdir
        self.mounted = False

    @property
    def lib_path(self) -> Path:
        return self.mount_point / self.lib_subdir

    def device_for(self, partition: str) -> str:
        """Root device of a partition, from its kernel args.

        Raises:
            MountError: If the device cannot be determined
        """
        kernel_args = self.boot_env.get(partition_key(partition, "kernel_args"))
        if not kernel_args:
            raise MountError(
                f"Missing kernel args for partition {partition}",
                details={"reason": "missing_kernel_args"}
            )

        device = parse_root_device(kernel_args)
        if device is None:
            raise MountError(
                f"No root device in kernel args for partition {partition}",
                details={"reason": "root_device_not_in_kernel_args"}
            )

        if not Path(device).exists():
            raise MountError(
                f"Device not found: {device}",
                details={"reason": "device_not_found", "device": device}
            )

        return device

    def mount(self, partition: str) -> Path:
        """Mount a partition read-only.

        Returns:
            Mount point

        Raises:
            MountError: If mounting fails
        """
        device = self.device_for(partition)
        self.mount_point.mkdir(parents=True, exist_ok=True)

        logger.debug(f"Mounting {device} at {self.mount_point}")
        result = self._run(["mount", "-t", "squashfs", "-o", "ro", device, str(self.mount_point)])

        if result.returncode != 0:
            logger.warning(f"squashfs mount failed: {result.stdout.strip()}, retrying with auto fs type")
            result = self._run(["mount", "-o", "ro", device, str(self.mount_point)])

            if result.returncode != 0:
                raise MountError(
                    f"Failed to mount {device}",
                    details={"returncode": result.returncode, "output": result.stdout.strip()}
                )

        self.mounted = True

        # Give the filesystem a moment before listing it
        time.sleep(0.1)
        try:
            entries = list(self.mount_point.iterdir())
        except OSError as e:
            self.unmount()
            raise MountError(f"Mount point not accessible: {e}") from e

        logger.debug(f"Mount point accessible, contains {len(entries)} entries")
        return self.mount_point

    def unmount(self) -> None:
        """Unmount the partition, forcing if necessary."""
        if not self.mount_point.exists():
            self.mounted = False
            return

        logger.debug(f"Unmounting {self.mount_point}")
        result = self._run(["umount", str(self.mount_point)])
        if result.returncode != 0:
            logger.warning(f"Unmount failed: {result.stdout.strip()}, forcing")
            self._run(["umount", "-f", str(self.mount_point)])

        shutil.rmtree(self.mount_point, ignore_errors=True)
        self.mounted = False

    def read_marker(self) -> MarkerStatus:
        """Read the swap-eligibility marker from the mounted partition."""
        marker_path = self.mount_point / self.marker_subpath

        try:
            body = marker_path.read_text()
        except FileNotFoundError:
            logger.info("No swap marker found - firmware requires reboot")
            return MarkerStatus.MISSING
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading swap marker: {e}")
            return MarkerStatus.INVALID

        status = parse_marker(body)
        if status is MarkerStatus.SWAP_ELIGIBLE:
            logger.info("Swap marker is 'true' - firmware supports live swap")
        elif status is MarkerStatus.REBOOT_REQUIRED:
            logger.info("Swap marker is 'false' - firmware requires reboot")
        else:
            logger.warning(
                f"Swap marker has invalid content: {body!r}, expected 'true' or 'false' "
                f"- defaulting to reboot"
            )
        return status

    @staticmethod
    def _run(args) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True
            )
        except OSError as e:
            raise MountError(f"Failed to run {args[0]}: {e}") from e
