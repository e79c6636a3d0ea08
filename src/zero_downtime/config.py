"""Configuration for the zero-downtime updater.

Configuration is a pydantic model loaded from YAML. Every field has a
default so a device without a config file still gets safe behavior.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = [
    "/etc/zero-downtime/config.yaml",
    "./config/zero_downtime.yaml",
    "~/.config/zero-downtime/config.yaml"
]

CONFIG_ENV_VAR = "ZERO_DOWNTIME_CONFIG"


class FwupConfig(BaseModel):
    """Options for the fwup partition writer."""

    executable: str = Field(default="fwup", description="fwup binary name or path")
    device_path: Optional[str] = Field(
        default=None,
        description="Block device to write (default: fw_devpath from boot env, then /dev/mmcblk0)"
    )
    task: str = Field(
        default="upgrade",
        description="fwup task; '{target}' is replaced with the target partition"
    )


class ZeroDowntimeConfig(BaseModel):
    """Zero-downtime updater configuration."""

    # Storage locations
    data_dir: Path = Field(default=Path("/data"), description="Writable data partition")
    state_file: Path = Field(
        default=Path("/data/zero_downtime/state.json"),
        description="Persisted update state"
    )
    hot_swap_dir: Path = Field(
        default=Path("/data/hot_swap"),
        description="Staging area for swappable code"
    )
    download_dir: Path = Field(
        default=Path("/data/zero_downtime/downloads"),
        description="Where remote firmware images are downloaded"
    )
    mount_point: Path = Field(
        default=Path("/data/inactive_partition"),
        description="Mount point for the freshly written partition"
    )
    runtime_lib_dir: Path = Field(
        default=Path("/srv/app/lib"),
        description="Code of the running firmware on the booted root filesystem"
    )
    partition_lib_subdir: str = Field(
        default="srv/app/lib",
        description="Code location inside a mounted partition"
    )
    marker_subpath: str = Field(
        default="srv/app/HOT_SWAP",
        description="Swap-eligibility marker inside a mounted partition"
    )

    # Validation
    min_free_space_mb: int = Field(default=100, ge=0)
    min_free_memory_mb: int = Field(default=32, ge=0)
    max_cpu_percent: float = Field(default=95.0, gt=0, le=100)
    max_memory_percent: float = Field(default=95.0, gt=0, le=100)
    validation_timeout_sec: float = Field(default=30.0, gt=0)
    expected_components: List[str] = Field(default_factory=lambda: ["zero_downtime"])

    # Reboot
    reboot_delay_sec: float = Field(default=1.0, ge=0)
    reboot_command: List[str] = Field(default_factory=lambda: ["reboot"])

    # Compatibility
    strict_metadata: bool = Field(
        default=False,
        description="Treat missing metadata fields as reboot-required"
    )

    # Boot environment / partitions
    fw_printenv: str = Field(default="fw_printenv")
    fw_setenv: str = Field(default="fw_setenv")
    cmdline_path: Path = Field(default=Path("/proc/cmdline"))
    device_map: Dict[str, str] = Field(
        default_factory=lambda: {
            "/dev/vda1": "a",
            "/dev/vda2": "b",
            "/dev/vda5": "c",
            "/dev/mmcblk0p1": "a",
            "/dev/mmcblk0p2": "b",
            "/dev/mmcblk0p5": "c",
        },
        description="Root device to partition letter"
    )
    fwup: FwupConfig = Field(default_factory=FwupConfig)


def load_config(config_path: Optional[str] = None) -> ZeroDowntimeConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit config file (default: $ZERO_DOWNTIME_CONFIG, then
            the standard locations)

    Returns:
        Configuration, defaults if no file is found
    """
    explicit = config_path or os.environ.get(CONFIG_ENV_VAR)
    paths = [explicit] if explicit else DEFAULT_CONFIG_PATHS

    for path in paths:
        expanded_path = Path(path).expanduser()
        if expanded_path.exists():
            try:
                with open(expanded_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                logger.info(f"Loaded configuration from {expanded_path}")
                return ZeroDowntimeConfig.model_validate(data)
            except Exception as e:
                logger.error(f"Error loading config from {expanded_path}: {e}")

    logger.warning("No configuration file found, using defaults")
    return ZeroDowntimeConfig()
