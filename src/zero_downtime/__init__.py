"""Zero-downtime firmware updates.

New firmware is always written to a spare partition and the boot
pointer moved first. When the update only changes application code it
is then swapped into the running process; otherwise the device reboots
into the new partition. Three partitions rotate so an update can be
written while the booted partition stays untouched.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from zero_downtime.errors import ZeroDowntimeError
from zero_downtime.updater.orchestrator import (
    ApplyOutcome,
    UpdateOptions,
    UpdateOrchestrator,
    UpdateResult,
    UpdateState,
    get_orchestrator,
    initialize_orchestrator,
)

__version__ = "0.1.0"


def _orchestrator() -> UpdateOrchestrator:
    return get_orchestrator() or initialize_orchestrator()


async def apply_update(
    firmware_ref: Union[str, Path],
    options: Optional[UpdateOptions] = None
) -> UpdateResult:
    """Apply a firmware update with the global orchestrator."""
    return await _orchestrator().apply_update(firmware_ref, options)


async def handle_firmware_update() -> UpdateResult:
    """Bring an uploaded partition into service with the global orchestrator."""
    return await _orchestrator().handle_firmware_update()


def status() -> Dict[str, Any]:
    """Update status from the global orchestrator."""
    return _orchestrator().status()


__all__ = [
    "ZeroDowntimeError",
    "ApplyOutcome",
    "UpdateOptions",
    "UpdateOrchestrator",
    "UpdateResult",
    "UpdateState",
    "apply_update",
    "handle_firmware_update",
    "status",
    "get_orchestrator",
    "initialize_orchestrator",
]
