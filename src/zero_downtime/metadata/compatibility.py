"""Compatibility analysis between running and candidate firmware.

Decides whether a candidate only changes application code (swap-safe)
or touches something a running system cannot replace in place:

- Kernel version
- Device tree
- Interpreter/runtime version
- Native (compiled) libraries
- Boot configuration
- Core runtime components
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from zero_downtime.metadata.models import FirmwareMetadata

logger = logging.getLogger(__name__)

# Interpreter, packaging/build tooling and the updater itself
CORE_COMPONENTS = ("python", "pip", "setuptools", "zero_downtime")


class ReasonCode(str, Enum):
    """Reasons an update requires a reboot."""

    KERNEL_VERSION_CHANGED = "kernel_version_changed"
    DEVICE_TREE_CHANGED = "device_tree_changed"
    RUNTIME_VERSION_CHANGED = "runtime_version_changed"
    NATIVE_LIBRARY_CHANGED = "native_library_changed"
    BOOT_CONFIG_CHANGED = "boot_config_changed"
    CORE_COMPONENT_CHANGED = "core_component_changed"


@dataclass(frozen=True)
class CompatibilityVerdict:
    """Result of a compatibility analysis.

    ``reasons`` is ordered: kernel, device tree, runtime, native
    libraries, boot config, core components.
    """

    reasons: Tuple[ReasonCode, ...] = ()

    @property
    def swap_safe(self) -> bool:
        return not self.reasons

    @property
    def reboot_required(self) -> bool:
        return bool(self.reasons)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "verdict": "swap_safe" if self.swap_safe else "reboot_required",
            "reasons": [reason.value for reason in self.reasons]
        }


class CompatibilityAnalyzer:
    """Classifies a candidate firmware as swap-safe or reboot-required."""

    def __init__(self, strict: bool = False, core_components: Tuple[str, ...] = CORE_COMPONENTS):
        """Initialize analyzer.

        Args:
            strict: Treat a field missing on either side as changed
            core_components: Components whose version change forces a reboot
        """
        self.strict = strict
        self.core_components = core_components

    def analyze(self, current: FirmwareMetadata, candidate: FirmwareMetadata) -> CompatibilityVerdict:
        """Compare running and candidate metadata.

        Args:
            current: Metadata of the running firmware
            candidate: Metadata of the incoming firmware

        Returns:
            Verdict with reboot reasons in diagnostic order
        """
        checks: List[Tuple[ReasonCode, Callable[[], bool]]] = [
            (ReasonCode.KERNEL_VERSION_CHANGED,
             lambda: self._scalar_changed("Kernel version", current.kernel_version, candidate.kernel_version)),
            (ReasonCode.DEVICE_TREE_CHANGED,
             lambda: self._scalar_changed("Device tree", current.device_tree_hash, candidate.device_tree_hash)),
            (ReasonCode.RUNTIME_VERSION_CHANGED,
             lambda: self._scalar_changed("Runtime version", current.runtime_version, candidate.runtime_version)),
            (ReasonCode.NATIVE_LIBRARY_CHANGED,
             lambda: self._native_libraries_changed(current, candidate)),
            (ReasonCode.BOOT_CONFIG_CHANGED,
             lambda: self._scalar_changed("Boot configuration", current.boot_config_hash, candidate.boot_config_hash)),
            (ReasonCode.CORE_COMPONENT_CHANGED,
             lambda: self._core_components_changed(current, candidate)),
        ]

        reasons = tuple(code for code, changed in checks if changed())

        if reasons:
            logger.info(f"Reboot required: {', '.join(r.value for r in reasons)}")
        else:
            logger.info("Update is swap-safe")

        return CompatibilityVerdict(reasons=reasons)

    def _scalar_changed(self, label: str, old: Optional[str], new: Optional[str]) -> bool:
        if old is None or new is None:
            if self.strict:
                logger.info(f"{label} unknown on one side, assuming changed")
                return True
            return False

        if old != new:
            logger.info(f"{label} changed: {old} -> {new}")
            return True
        return False

    def _native_libraries_changed(self, current: FirmwareMetadata, candidate: FirmwareMetadata) -> bool:
        old = current.native_libraries
        new = candidate.native_libraries

        if old is None or new is None:
            return self.strict

        if old == new:
            return False

        added = sorted(new - old)
        removed = sorted(old - new)
        logger.info(f"Native libraries changed - Added: {added}, Removed: {removed}")
        return True

    def _core_components_changed(self, current: FirmwareMetadata, candidate: FirmwareMetadata) -> bool:
        changed = []
        for component in self.core_components:
            old = current.component_versions.get(component)
            new = candidate.component_versions.get(component)

            if old is None or new is None:
                if self.strict:
                    changed.append(component)
                continue

            if old != new:
                changed.append(component)

        if changed:
            logger.info(f"Core component versions changed: {', '.join(changed)}")
            return True
        return False
