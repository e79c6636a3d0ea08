"""Three-partition rotation.

Given the partition the kernel booted from (``booted``, fixed until the
next physical boot) and the boot pointer (``active``, moved by every
write), the next write target is the one partition that is neither.

Boot from A:
    booted=a, active=a -> b (two candidates, alphabetical tie-break)
    booted=a, active=b -> c
    booted=a, active=c -> b
    ... b and c alternate from here on.

The tie-break on a fresh boot must stay alphabetical so that every
device picks the same slot for the same state.
"""

from enum import Enum
from typing import List, Union

from zero_downtime.errors import (
    InvalidPartitionStateError,
    NoAvailablePartitionError,
    NotValidatedError,
)


class Partition(str, Enum):
    """Boot slot identifiers."""

    A = "a"
    B = "b"
    C = "c"


PartitionLike = Union[Partition, str]

ALL_PARTITIONS = (Partition.A, Partition.B, Partition.C)


def is_valid_partition(value: object) -> bool:
    """Check whether a value names one of the three slots."""
    if isinstance(value, Partition):
        return True
    return isinstance(value, str) and value in {p.value for p in ALL_PARTITIONS}


def _coerce(value: PartitionLike, role: str) -> Partition:
    if not is_valid_partition(value):
        raise InvalidPartitionStateError(
            f"Invalid {role} partition: {value!r}",
            details={role: repr(value)}
        )
    return Partition(value)


def available_partitions(booted: PartitionLike, active: PartitionLike) -> List[Partition]:
    """Partitions that are neither booted nor active, alphabetically.

    Raises:
        InvalidPartitionStateError: If either input is not a valid slot
    """
    blocked = {_coerce(booted, "booted"), _coerce(active, "active")}
    return [p for p in ALL_PARTITIONS if p not in blocked]


def next_write_target(
    booted: PartitionLike,
    active: PartitionLike,
    validated: bool
) -> Partition:
    """Determine which partition to write next.

    Args:
        booted: Partition the running kernel booted from
        active: Current boot pointer
        validated: Whether the running firmware has been validated

    Returns:
        The partition to write

    Raises:
        NotValidatedError: If the running firmware is not validated
        InvalidPartitionStateError: If either partition is invalid
        NoAvailablePartitionError: If no partition is left to write
    """
    if not validated:
        raise NotValidatedError("Running firmware is not validated")

    available = available_partitions(booted, active)

    if len(available) == 1:
        return available[0]

    if len(available) == 2:
        # Only when booted == active, right after a physical boot
        return available[0]

    raise NoAvailablePartitionError(
        f"No partition available (booted={booted}, active={active})"
    )


def simulate_sequence(booted: PartitionLike, num_upgrades: int) -> List[Partition]:
    """Simulate consecutive upgrades without rebooting.

    Returns the boot pointer after each upgrade, starting with ``booted``.

    >>> [p.value for p in simulate_sequence("a", 4)]
    ['a', 'b', 'c', 'b', 'c']
    """
    start = _coerce(booted, "booted")
    if num_upgrades < 0:
        raise InvalidPartitionStateError(
            f"Number of upgrades must be non-negative, got {num_upgrades}"
        )

    sequence = [start]
    for _ in range(num_upgrades):
        sequence.append(next_write_target(start, sequence[-1], True))
    return sequence


class PartitionRotationEngine:
    """Object facade over the rotation functions for injection."""

    def next_write_target(
        self,
        booted: PartitionLike,
        active: PartitionLike,
        validated: bool
    ) -> Partition:
        return next_write_target(booted, active, validated)

    def simulate_sequence(self, booted: PartitionLike, num_upgrades: int) -> List[Partition]:
        return simulate_sequence(booted, num_upgrades)

    def available_partitions(
        self,
        booted: PartitionLike,
        active: PartitionLike
    ) -> List[Partition]:
        return available_partitions(booted, active)
