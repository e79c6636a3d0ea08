"""Unit tests for partition rotation."""

import pytest

from zero_downtime.errors import (
    InvalidPartitionStateError,
    NoAvailablePartitionError,
    NotValidatedError,
)
from zero_downtime.partition.rotation import (
    Partition,
    PartitionRotationEngine,
    available_partitions,
    is_valid_partition,
    next_write_target,
    simulate_sequence,
)


@pytest.mark.unit
class TestNextWriteTarget:
    """Test write target selection."""

    @pytest.mark.parametrize("booted,active,expected", [
        ("a", "a", "b"),
        ("a", "b", "c"),
        ("a", "c", "b"),
        ("b", "b", "a"),
        ("b", "a", "c"),
        ("b", "c", "a"),
        ("c", "c", "a"),
        ("c", "a", "b"),
        ("c", "b", "a"),
    ])
    def test_target_table(self, booted, active, expected):
        """Test every valid booted/active combination."""
        assert next_write_target(booted, active, True) == Partition(expected)

    def test_target_is_never_booted_or_active(self):
        """Test the booted and active partitions are never written."""
        for booted in "abc":
            for active in "abc":
                target = next_write_target(booted, active, True)
                assert target.value not in (booted, active)

    def test_accepts_enum_values(self):
        """Test Partition members are accepted."""
        assert next_write_target(Partition.A, Partition.B, True) is Partition.C

    def test_not_validated(self):
        """Test unvalidated firmware blocks further writes."""
        with pytest.raises(NotValidatedError):
            next_write_target("a", "b", False)

    def test_not_validated_checked_first(self):
        """Test validation is checked before partition names."""
        with pytest.raises(NotValidatedError):
            next_write_target("x", "y", False)

    @pytest.mark.parametrize("booted,active", [
        ("d", "a"),
        ("a", ""),
        (None, "a"),
        ("A", "b"),
    ])
    def test_invalid_partition(self, booted, active):
        """Test invalid partition names are rejected."""
        with pytest.raises(InvalidPartitionStateError):
            next_write_target(booted, active, True)

    def test_no_available_partition(self, monkeypatch):
        """Test the error when nothing is left to write."""
        from zero_downtime.partition import rotation

        monkeypatch.setattr(rotation, "available_partitions", lambda booted, active: [])

        with pytest.raises(NoAvailablePartitionError):
            rotation.next_write_target("a", "b", True)


@pytest.mark.unit
class TestSimulateSequence:
    """Test upgrade sequence simulation."""

    def test_sequence_from_a(self):
        """Test four upgrades after booting from A."""
        assert [p.value for p in simulate_sequence("a", 4)] == ["a", "b", "c", "b", "c"]

    def test_sequence_from_b(self):
        """Test four upgrades after booting from B."""
        assert [p.value for p in simulate_sequence("b", 4)] == ["b", "a", "c", "a", "c"]

    def test_zero_upgrades(self):
        """Test the sequence starts with the booted partition."""
        assert simulate_sequence("c", 0) == [Partition.C]

    def test_booted_never_written(self):
        """Test the booted partition is never a write target."""
        sequence = simulate_sequence("a", 20)
        assert Partition.A not in sequence[1:]

    def test_negative_upgrades(self):
        """Test a negative count is rejected."""
        with pytest.raises(InvalidPartitionStateError):
            simulate_sequence("a", -1)

    def test_invalid_booted(self):
        """Test an invalid booted partition is rejected."""
        with pytest.raises(InvalidPartitionStateError):
            simulate_sequence("z", 2)


@pytest.mark.unit
class TestHelpers:
    """Test rotation helpers."""

    def test_available_partitions_sorted(self):
        """Test available partitions are alphabetical."""
        assert available_partitions("c", "c") == [Partition.A, Partition.B]

    def test_is_valid_partition(self):
        """Test partition name validation."""
        assert is_valid_partition("a")
        assert is_valid_partition(Partition.B)
        assert not is_valid_partition("d")
        assert not is_valid_partition(None)
        assert not is_valid_partition(1)

    def test_engine_facade(self):
        """Test the engine delegates to the module functions."""
        engine = PartitionRotationEngine()

        assert engine.next_write_target("a", "b", True) is Partition.C
        assert engine.simulate_sequence("a", 1) == [Partition.A, Partition.B]
        assert engine.available_partitions("a", "b") == [Partition.C]
