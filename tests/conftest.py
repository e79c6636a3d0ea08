"""Pytest configuration and shared fixtures."""

from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Optional, Set
from unittest.mock import MagicMock

import pytest

from zero_downtime.errors import BootEnvironmentError, MountError, PartitionWriteError, SwapError
from zero_downtime.hot_swap.provider import CodeSwapProvider
from zero_downtime.hot_swap.stager import HotSwapStager
from zero_downtime.metadata.models import FirmwareMetadata
from zero_downtime.partition.booted import BootedPartition
from zero_downtime.partition.reader import MarkerStatus
from zero_downtime.partition.rotation import Partition
from zero_downtime.partition.writer import PartitionWriter
from zero_downtime.system.boot_env import BootEnvironment, partition_key
from zero_downtime.system.reboot import RebootScheduler
from zero_downtime.system.state_store import PersistentStateStore
from zero_downtime.system.validation import ValidationGate
from zero_downtime.updater.fetch import FirmwareFetcher
from zero_downtime.updater.orchestrator import UpdateOrchestrator


class MemoryBootEnvironment(BootEnvironment):
    """Boot environment held in a dict."""

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self.values = dict(values or {})
        self.fail_writes = False
        self.reloads = 0
        self.writes: List[Dict[str, str]] = []

    def get_all(self) -> Dict[str, str]:
        return dict(self.values)

    def set_many(self, values: Dict[str, str]) -> None:
        if self.fail_writes:
            raise BootEnvironmentError("boot env is read-only")
        self.writes.append(dict(values))
        self.values.update(values)

    def reload(self) -> None:
        self.reloads += 1


class FakePartitionWriter(PartitionWriter):
    """Records writes and moves the boot pointer like fwup does."""

    def __init__(self, boot_env: MemoryBootEnvironment, version: Optional[str] = "2.0.0"):
        self.boot_env = boot_env
        self.version = version
        self.fail = False
        self.writes: List[Partition] = []

    def write(self, firmware_path: Path, target: Partition) -> None:
        if self.fail:
            raise PartitionWriteError("fwup failed with exit code 1")
        self.writes.append(target)
        self.boot_env.values["active_partition"] = target.value
        if self.version:
            self.boot_env.values[partition_key(target.value, "fw_version")] = self.version


class FakePartitionReader:
    """Serves a prepared lib directory instead of mounting a device."""

    def __init__(self, lib_path: Path, marker: MarkerStatus = MarkerStatus.SWAP_ELIGIBLE):
        self.lib_path = lib_path
        self.marker = marker
        self.mount_error: Optional[MountError] = None
        self.mounted: List[str] = []
        self.unmounts = 0

    def mount(self, partition: str) -> Path:
        if self.mount_error:
            raise self.mount_error
        self.mounted.append(partition)
        return self.lib_path.parent

    def unmount(self) -> None:
        self.unmounts += 1

    def read_marker(self) -> MarkerStatus:
        return self.marker


class FakeSwapProvider(CodeSwapProvider):
    """Records swaps instead of touching sys.modules."""

    def __init__(self, loaded: Optional[Set[str]] = None):
        self.loaded = set(loaded or {"my_app", "my_app.core"})
        self.swapped: List[str] = []
        self.fail_units: Set[str] = set()
        self.fail_sources: Set[str] = set()

    def swap(self, unit_id: str, source_location: Path) -> None:
        if unit_id in self.fail_units or any(s in str(source_location) for s in self.fail_sources):
            raise SwapError(f"Failed to load {unit_id}")
        self.swapped.append(unit_id)

    def currently_loaded_units(self) -> Set[str]:
        return set(self.loaded)


class RecordingRebooter:
    """Reboot action that only counts calls."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def make_lib(root: Path, version: str = "2.0.0", component: str = "my_app") -> Path:
    """Create a lib directory with a small application package."""
    package = root / "lib" / f"{component}-{version}" / component
    package.mkdir(parents=True)
    (package / "__init__.py").write_text(f'VERSION = "{version}"\n')
    (package / "core.py").write_text("def run():\n    return True\n")
    return root / "lib"


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def mock_data_dir(temp_dir):
    """Provide a mock data directory."""
    data_dir = temp_dir / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


@pytest.fixture
def boot_env():
    """Boot environment of a device booted from A and validated."""
    return MemoryBootEnvironment({
        "booted_partition": "a",
        "active_partition": "a",
        "validated": "1",
        "a.fw_version": "1.0.0",
        "a.fw_uuid": "uuid-a",
    })


@pytest.fixture
def firmware_file(temp_dir):
    """A firmware image on disk (content is never parsed by the fakes)."""
    path = temp_dir / "update.fw"
    path.write_bytes(b"firmware")
    return path


@pytest.fixture
def partition_lib(temp_dir):
    """Lib directory of the freshly written partition."""
    return make_lib(temp_dir / "partition", "2.0.0")


@pytest.fixture
def runtime_lib(temp_dir):
    """Lib directory of the booted firmware."""
    return make_lib(temp_dir / "runtime", "1.0.0")


@pytest.fixture
def current_metadata():
    """Metadata of the running firmware."""
    return FirmwareMetadata(
        version="1.0.0",
        kernel_version="6.1.0",
        runtime_version="3.11.4",
        native_libraries=frozenset({"libssl"}),
        component_versions={"python": "3.11.4", "zero_downtime": "0.1.0"}
    )


@pytest.fixture
def swap_candidate(current_metadata):
    """Candidate that only changes application code."""
    return current_metadata.model_copy(update={"version": "2.0.0", "swap_capable": True})


@pytest.fixture
def reboot_candidate(swap_candidate):
    """Candidate with a new kernel."""
    return swap_candidate.model_copy(update={"kernel_version": "6.6.0"})


@pytest.fixture
def orchestrator_parts(temp_dir, boot_env, partition_lib, runtime_lib, current_metadata):
    """Collaborators of an orchestrator, exposed for assertions."""
    provider = FakeSwapProvider()
    rebooter = RecordingRebooter()

    parts = SimpleNamespace()
    parts.boot_env = boot_env
    parts.writer = FakePartitionWriter(boot_env)
    parts.reader = FakePartitionReader(partition_lib)
    parts.provider = provider
    parts.stager = HotSwapStager(temp_dir / "hot_swap", provider, runtime_lib_dir=runtime_lib)
    parts.state_store = PersistentStateStore(temp_dir / "state.json", boot_env)
    parts.rebooter = rebooter
    parts.reboot_scheduler = RebootScheduler(rebooter, delay=0.01)
    parts.current_metadata = current_metadata
    return parts


@pytest.fixture
def orchestrator(orchestrator_parts, temp_dir):
    """Orchestrator wired to in-memory fakes."""
    parts = orchestrator_parts
    return UpdateOrchestrator(
        boot_env=parts.boot_env,
        writer=parts.writer,
        reader=parts.reader,
        stager=parts.stager,
        state_store=parts.state_store,
        reboot_scheduler=parts.reboot_scheduler,
        fetcher=FirmwareFetcher(temp_dir / "downloads"),
        gate=ValidationGate(timeout=1.0),
        booted=BootedPartition(parts.boot_env, {}),
        current_metadata=lambda: parts.current_metadata
    )


@pytest.fixture
def mock_subprocess(monkeypatch):
    """Mock subprocess calls."""
    mock_run = MagicMock()
    mock_run.return_value.returncode = 0
    mock_run.return_value.stdout = "mock output"
    mock_run.return_value.stderr = ""

    import subprocess
    monkeypatch.setattr(subprocess, "run", mock_run)

    return mock_run


@pytest.fixture
def mock_psutil(monkeypatch):
    """Mock psutil calls."""
    import psutil

    monkeypatch.setattr(psutil, "cpu_percent", MagicMock(return_value=45.0))

    memory_mock = MagicMock()
    memory_mock.percent = 60.0
    memory_mock.available = 512 * 1024 * 1024  # 512MB
    monkeypatch.setattr(psutil, "virtual_memory", MagicMock(return_value=memory_mock))

    disk_mock = MagicMock()
    disk_mock.percent = 70.0
    disk_mock.free = 2 * 1024 * 1024 * 1024  # 2GB
    monkeypatch.setattr(psutil, "disk_usage", MagicMock(return_value=disk_mock))

    return psutil


# Markers for test categories
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
    config.addinivalue_line("markers", "requires_hardware: Tests requiring actual hardware")
    config.addinivalue_line("markers", "requires_network: Tests requiring network")


@pytest.fixture
def memory_boot_env():
    """Factory for in-memory boot environments."""
    return MemoryBootEnvironment


@pytest.fixture
def lib_factory():
    """Factory for lib directories: ``lib_factory(root, version)``."""
    return make_lib
