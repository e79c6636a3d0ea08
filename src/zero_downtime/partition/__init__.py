"""Partition management.

Rotation across the A/B/C boot slots, booted-partition detection,
writing firmware into a slot and reading it back.
"""

from zero_downtime.partition.booted import BootedPartition
from zero_downtime.partition.reader import MarkerStatus, PartitionReader, parse_marker
from zero_downtime.partition.rotation import (
    ALL_PARTITIONS,
    Partition,
    PartitionRotationEngine,
    available_partitions,
    is_valid_partition,
    next_write_target,
    simulate_sequence,
)
from zero_downtime.partition.writer import FwupPartitionWriter, PartitionWriter

__all__ = [
    "ALL_PARTITIONS",
    "Partition",
    "PartitionRotationEngine",
    "available_partitions",
    "is_valid_partition",
    "next_write_target",
    "simulate_sequence",
    "BootedPartition",
    "MarkerStatus",
    "PartitionReader",
    "parse_marker",
    "FwupPartitionWriter",
    "PartitionWriter",
]
