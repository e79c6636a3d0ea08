"""Error types for zero-downtime updates.

Every error carries a stable ``code`` so callers (CLI, upload hooks,
remote management) can report failures without parsing messages.
"""

from typing import Any, Dict, Optional


class ZeroDowntimeError(Exception):
    """Base class for all update errors."""

    code = "update_error"

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# Input errors

class MetadataError(ZeroDowntimeError):
    code = "metadata_extraction_failed"


class InvalidPartitionStateError(ZeroDowntimeError):
    code = "invalid_partition_state"


class NotValidatedError(ZeroDowntimeError):
    code = "firmware_not_validated"


class NoAvailablePartitionError(ZeroDowntimeError):
    code = "no_available_partition"


# Resource errors

class FirmwareFetchError(ZeroDowntimeError):
    code = "firmware_fetch_failed"


class PartitionWriteError(ZeroDowntimeError):
    code = "partition_write_failed"


class MountError(ZeroDowntimeError):
    code = "mount_failed"


class StagingError(ZeroDowntimeError):
    code = "staging_failed"


class StateWriteError(ZeroDowntimeError):
    code = "state_write_failed"


class BootEnvironmentError(ZeroDowntimeError):
    code = "boot_environment_failed"


# Swap errors

class SwapError(ZeroDowntimeError):
    code = "swap_failed"


class PartialSwapError(SwapError):
    code = "partial_swap"


class RollbackError(SwapError):
    code = "rollback_failed"


# Validation errors

class ValidationError(ZeroDowntimeError):
    code = "validation_failed"


class ValidationTimeoutError(ValidationError):
    code = "validation_timeout"


class UpdateInProgressError(ZeroDowntimeError):
    code = "update_in_progress"
