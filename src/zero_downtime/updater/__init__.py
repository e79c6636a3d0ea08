"""Update orchestration, firmware fetching and the command-line interface."""

from zero_downtime.updater.fetch import FirmwareFetcher
from zero_downtime.updater.orchestrator import (
    ApplyOutcome,
    UpdateOptions,
    UpdateOrchestrator,
    UpdateResult,
    UpdateState,
    UpdateStrategy,
    build_orchestrator,
    get_orchestrator,
    initialize_orchestrator,
)

__all__ = [
    "FirmwareFetcher",
    "ApplyOutcome",
    "UpdateOptions",
    "UpdateOrchestrator",
    "UpdateResult",
    "UpdateState",
    "UpdateStrategy",
    "build_orchestrator",
    "get_orchestrator",
    "initialize_orchestrator",
]
