"""Firmware metadata and compatibility analysis."""

from zero_downtime.metadata.compatibility import (
    CORE_COMPONENTS,
    CompatibilityAnalyzer,
    CompatibilityVerdict,
    ReasonCode,
)
from zero_downtime.metadata.models import FirmwareMetadata, UpdateMetadata
from zero_downtime.metadata.parser import (
    current_system_metadata,
    extract_from_firmware,
    parse_meta_conf,
)

__all__ = [
    "CORE_COMPONENTS",
    "CompatibilityAnalyzer",
    "CompatibilityVerdict",
    "ReasonCode",
    "FirmwareMetadata",
    "UpdateMetadata",
    "current_system_metadata",
    "extract_from_firmware",
    "parse_meta_conf",
]
