"""Firmware metadata models."""

from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, Field


class FirmwareMetadata(BaseModel):
    """Metadata describing one firmware build.

    Every field is optional. A field missing on either side of a
    comparison means "cannot compare".
    """

    version: Optional[str] = None
    platform: Optional[str] = None
    architecture: Optional[str] = None
    kernel_version: Optional[str] = None
    device_tree_hash: Optional[str] = None
    runtime_version: Optional[str] = None
    native_libraries: Optional[FrozenSet[str]] = Field(
        default=None,
        description="Identifiers of native (compiled extension) libraries"
    )
    boot_config_hash: Optional[str] = None
    component_versions: Dict[str, str] = Field(default_factory=dict)
    swap_capable: Optional[bool] = Field(
        default=None,
        description="Explicit live-swap capability; None means unknown (unsafe)"
    )
    extra: Dict[str, str] = Field(default_factory=dict)


class UpdateMetadata(BaseModel):
    """Current and candidate metadata for one update."""

    current: FirmwareMetadata
    candidate: FirmwareMetadata
    from_version: Optional[str] = None
    to_version: Optional[str] = None

    @property
    def swap_capable(self) -> bool:
        """True only when the candidate explicitly declares itself swap-capable."""
        return self.candidate.swap_capable is True

    @classmethod
    def from_pair(cls, current: FirmwareMetadata, candidate: FirmwareMetadata) -> "UpdateMetadata":
        return cls(
            current=current,
            candidate=candidate,
            from_version=current.version,
            to_version=candidate.version
        )
