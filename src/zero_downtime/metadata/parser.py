"""Firmware metadata extraction.

Firmware images are zip archives carrying a ``meta.conf`` file of
``key=value`` lines. The running system's metadata is assembled from
the boot environment, the kernel and the interpreter.
"""

import logging
import platform
import re
import zipfile
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Dict, Optional

from zero_downtime.errors import MetadataError
from zero_downtime.metadata.models import FirmwareMetadata
from zero_downtime.system.boot_env import BOOTED_PARTITION, BootEnvironment, partition_key

logger = logging.getLogger(__name__)

META_CONF = "meta.conf"
COMPONENT_PREFIX = "meta-component-"
UPDATER_PACKAGE = "zero_downtime"

KEY_MAP = {
    "meta-version": "version",
    "meta-platform": "platform",
    "meta-architecture": "architecture",
    "meta-kernel-version": "kernel_version",
    "meta-device-tree-hash": "device_tree_hash",
    "meta-runtime-version": "runtime_version",
    "meta-native-libraries": "native_libraries",
    "meta-boot-config-hash": "boot_config_hash",
    "meta-hot-swap-capable": "swap_capable",
}

KERNEL_VERSION_RE = re.compile(r"Linux version ([\d.]+)")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def parse_meta_conf(text: str) -> FirmwareMetadata:
    """Parse ``meta.conf`` content.

    Args:
        text: File content

    Returns:
        Parsed metadata; unknown keys are kept in ``extra``
    """
    fields: Dict[str, object] = {}
    components: Dict[str, str] = {}
    extra: Dict[str, str] = {}

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = _unquote(value)

        if key.startswith(COMPONENT_PREFIX):
            components[key[len(COMPONENT_PREFIX):]] = value
        elif key == "meta-native-libraries":
            fields["native_libraries"] = frozenset(
                lib.strip() for lib in value.split(",") if lib.strip()
            )
        elif key == "meta-hot-swap-capable":
            # Only an explicit true/false counts
            fields["swap_capable"] = {"true": True, "false": False}.get(value.lower())
        elif key in KEY_MAP:
            fields[KEY_MAP[key]] = value
        else:
            extra[key] = value

    return FirmwareMetadata(component_versions=components, extra=extra, **fields)


def extract_from_firmware(firmware_path: Path) -> FirmwareMetadata:
    """Read candidate metadata from a firmware archive.

    Raises:
        MetadataError: If the archive or its meta.conf cannot be read
    """
    try:
        with zipfile.ZipFile(firmware_path) as archive:
            try:
                data = archive.read(META_CONF)
            except KeyError:
                raise MetadataError(
                    f"{META_CONF} not found in {firmware_path}",
                    details={"reason": "file_not_found", "file": META_CONF}
                )
    except (OSError, zipfile.BadZipFile) as e:
        raise MetadataError(f"Cannot read firmware archive {firmware_path}: {e}") from e

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MetadataError(f"{META_CONF} is not valid UTF-8") from e

    return parse_meta_conf(text)


def read_kernel_version(proc_version: Path = Path("/proc/version")) -> Optional[str]:
    """Running kernel version, e.g. "5.10.120"."""
    try:
        content = proc_version.read_text()
    except OSError:
        release = platform.release()
        return release.split("-")[0] if release else None

    match = KERNEL_VERSION_RE.search(content)
    return match.group(1) if match else None


def installed_component_versions() -> Dict[str, str]:
    """Versions of installed components.

    Keyed by normalised distribution name and by top-level import
    package, so ``meta-component-<name>`` matches either spelling.
    """
    from zero_downtime import __version__

    versions = {}
    for dist in importlib_metadata.distributions():
        name = dist.metadata["Name"]
        if name:
            versions[name.lower().replace("-", "_")] = dist.version

    for package, dist_names in importlib_metadata.packages_distributions().items():
        for dist_name in dist_names:
            version = versions.get(dist_name.lower().replace("-", "_"))
            if version is not None:
                versions.setdefault(package, version)
                break

    # Editable installs do not list their packages
    versions[UPDATER_PACKAGE] = __version__
    versions["python"] = platform.python_version()
    return versions


def current_system_metadata(boot_env: BootEnvironment) -> FirmwareMetadata:
    """Metadata of the firmware currently running.

    Version, platform and architecture come from the booted partition's
    boot environment keys; native libraries and hashes are unknown.
    """
    env = boot_env.get_all()
    booted = env.get(BOOTED_PARTITION)

    def slot_value(key: str) -> Optional[str]:
        if booted:
            value = env.get(partition_key(booted, key))
            if value is not None:
                return value
        return env.get(key)

    return FirmwareMetadata(
        version=slot_value("fw_version"),
        platform=slot_value("fw_platform"),
        architecture=slot_value("fw_architecture"),
        kernel_version=read_kernel_version(),
        runtime_version=platform.python_version(),
        component_versions=installed_component_versions()
    )
