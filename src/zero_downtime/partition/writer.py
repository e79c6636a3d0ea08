"""Partition writer.

Writes a firmware image into a partition and moves the boot pointer.
The physical write is done by fwup; this module only wraps it.
"""

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from zero_downtime.errors import PartitionWriteError
from zero_downtime.partition.rotation import Partition
from zero_downtime.system.boot_env import DEVICE_PATH, BootEnvironment

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_PATH = "/dev/mmcblk0"


class PartitionWriter(ABC):
    """Writes firmware to a partition and updates the boot pointer."""

    @abstractmethod
    def write(self, firmware_path: Path, target: Partition) -> None:
        """Write firmware to ``target`` and point the bootloader at it.

        Blocks until the write is complete.

        Raises:
            PartitionWriteError: If the write fails
        """


class FwupPartitionWriter(PartitionWriter):
    """Partition writer backed by the fwup utility."""

    def __init__(
        self,
        boot_env: BootEnvironment,
        executable: str = "fwup",
        device_path: Optional[str] = None,
        task: str = "upgrade"
    ):
        """Initialize writer.

        Args:
            boot_env: Boot environment (for fw_devpath)
            executable: fwup binary
            device_path: Block device, overrides fw_devpath
            task: fwup task; '{target}' is replaced with the partition letter
        """
        self.boot_env = boot_env
        self.executable = executable
        self.device_path = device_path
        self.task = task

    def write(self, firmware_path: Path, target: Partition) -> None:
        if not Path(firmware_path).exists():
            raise PartitionWriteError(
                f"Firmware file not found: {firmware_path}",
                details={"reason": "firmware_file_not_found"}
            )

        fwup = shutil.which(self.executable) or self.executable
        devpath = self.device_path or self.boot_env.get(DEVICE_PATH) or DEFAULT_DEVICE_PATH
        task = self.task.format(target=target.value)

        args = [
            fwup,
            "--apply",
            "--no-unmount",
            "-d", devpath,
            "--task", task,
            "-i", str(firmware_path)
        ]

        logger.info(f"Writing firmware to partition {target.value} ({devpath}, task {task})")
        logger.debug(f"Running: {' '.join(args)}")

        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True
            )
        except OSError as e:
            raise PartitionWriteError(f"Failed to run fwup: {e}") from e

        if result.returncode != 0:
            output = (result.stdout + result.stderr).strip()
            logger.error(f"fwup failed with exit code {result.returncode}: {output}")
            raise PartitionWriteError(
                f"fwup failed with exit code {result.returncode}",
                details={"returncode": result.returncode, "output": output}
            )

        logger.debug(f"fwup output: {result.stdout.strip()}")
        logger.info(f"Partition {target.value} written successfully")
