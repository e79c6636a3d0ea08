"""Boot environment key/value store.

The bootloader environment (U-Boot env) holds the boot pointer, the
booted partition marker, the pending-swap flags and per-partition
firmware metadata. It is a process-wide shared resource, so it is
injected into every component that needs it instead of being read
from ambient global state.

Keys used by the updater:

    booted_partition      partition the kernel booted from
    active_partition      boot pointer (next boot)
    validated             "1" once the running firmware is validated
    pending_swap          "1" between partition write and swap completion
    pending_version       version written while a swap is pending
    <p>.fw_version        per-partition metadata (also fw_uuid, fw_platform, ...)
    <p>.kernel_args       kernel arguments for partition <p>
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Dict, Optional

from zero_downtime.errors import BootEnvironmentError

logger = logging.getLogger(__name__)

BOOTED_PARTITION = "booted_partition"
ACTIVE_PARTITION = "active_partition"
VALIDATED = "validated"
PENDING_SWAP = "pending_swap"
PENDING_VERSION = "pending_version"
DEVICE_PATH = "fw_devpath"


def partition_key(partition: str, key: str) -> str:
    """Build a per-partition key such as ``b.fw_version``."""
    return f"{partition}.{key}"


class BootEnvironment(ABC):
    """Key/value store backed by the bootloader environment."""

    @abstractmethod
    def get_all(self) -> Dict[str, str]:
        """Get all variables (from cache)."""

    @abstractmethod
    def set_many(self, values: Dict[str, str]) -> None:
        """Write several variables at once.

        Raises:
            BootEnvironmentError: If the write fails
        """

    @abstractmethod
    def reload(self) -> None:
        """Drop the cache and re-read the environment.

        Needed after an external tool (e.g. fwup) modified the environment.
        """

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a single variable."""
        return self.get_all().get(key, default)

    def set(self, key: str, value: str) -> None:
        """Write a single variable."""
        self.set_many({key: value})

    def booted_partition(self) -> Optional[str]:
        return self.get(BOOTED_PARTITION)

    def active_partition(self) -> Optional[str]:
        return self.get(ACTIVE_PARTITION)

    def is_validated(self) -> bool:
        return self.get(VALIDATED) == "1"


class UBootEnvironment(BootEnvironment):
    """U-Boot environment accessed through fw_printenv / fw_setenv."""

    def __init__(self, printenv: str = "fw_printenv", setenv: str = "fw_setenv"):
        """Initialize environment accessor.

        Args:
            printenv: fw_printenv executable
            setenv: fw_setenv executable
        """
        self.printenv = printenv
        self.setenv = setenv
        self._cache: Optional[Dict[str, str]] = None

    def get_all(self) -> Dict[str, str]:
        if self._cache is None:
            self._cache = self._read()
        return dict(self._cache)

    def set_many(self, values: Dict[str, str]) -> None:
        for key, value in values.items():
            try:
                result = subprocess.run(
                    [self.setenv, key, value],
                    capture_output=True,
                    text=True
                )
            except OSError as e:
                raise BootEnvironmentError(f"Failed to run {self.setenv}: {e}") from e

            if result.returncode != 0:
                raise BootEnvironmentError(
                    f"Failed to set {key}: {result.stderr.strip() or result.stdout.strip()}",
                    details={"key": key, "returncode": result.returncode}
                )

            logger.debug(f"Set boot env {key}={value}")
            if self._cache is not None:
                self._cache[key] = value

    def reload(self) -> None:
        logger.debug("Reloading boot environment")
        self._cache = None

    def _read(self) -> Dict[str, str]:
        try:
            result = subprocess.run(
                [self.printenv],
                capture_output=True,
                text=True
            )
        except OSError as e:
            raise BootEnvironmentError(f"Failed to run {self.printenv}: {e}") from e

        if result.returncode != 0:
            raise BootEnvironmentError(
                f"{self.printenv} failed: {result.stderr.strip()}",
                details={"returncode": result.returncode}
            )

        return parse_printenv(result.stdout)


def parse_printenv(output: str) -> Dict[str, str]:
    """Parse ``fw_printenv`` output (one ``key=value`` per line)."""
    env = {}
    for line in output.splitlines():
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        env[key.strip()] = value
    return env
