"""System integration.

Boot environment access, validation checks, persisted update state and
reboot scheduling.
"""

from zero_downtime.system.boot_env import BootEnvironment, UBootEnvironment, parse_printenv
from zero_downtime.system.reboot import RebootScheduler, system_reboot
from zero_downtime.system.state_store import (
    MAX_HISTORY,
    PersistedState,
    PersistentStateStore,
    UpdateOutcome,
    UpdateRecord,
)
from zero_downtime.system.validation import (
    Check,
    CheckFailed,
    CrashWatch,
    SmokeTests,
    ValidationGate,
    ValidationResult,
    components_running_check,
    disk_space_check,
    memory_available_check,
    smoke_tests,
    system_health_check,
)

__all__ = [
    "BootEnvironment",
    "UBootEnvironment",
    "parse_printenv",
    "RebootScheduler",
    "system_reboot",
    "MAX_HISTORY",
    "PersistedState",
    "PersistentStateStore",
    "UpdateOutcome",
    "UpdateRecord",
    "Check",
    "CheckFailed",
    "CrashWatch",
    "SmokeTests",
    "ValidationGate",
    "ValidationResult",
    "components_running_check",
    "disk_space_check",
    "memory_available_check",
    "smoke_tests",
    "system_health_check",
]
