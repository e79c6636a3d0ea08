"""Hot-swap staging area.

Code from a written partition is copied to durable local storage
before it is swapped in, so the partition can be unmounted first:

    <base>/<version>/lib/...      staged code for a version
    <base>/<version>/metadata.json
    <base>/staged  -> <version>    staged version not yet live
    <base>/current -> <version>    version whose code is live
"""

import json
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from zero_downtime.errors import PartialSwapError, RollbackError, StagingError, SwapError
from zero_downtime.hot_swap.changeset import (
    ChangeSet,
    ModuleChangeSetResolver,
    list_units,
    loaded_components_of,
)
from zero_downtime.hot_swap.provider import CodeSwapProvider
from zero_downtime.metadata.models import FirmwareMetadata

logger = logging.getLogger(__name__)

STAGED_LINK = "staged"
CURRENT_LINK = "current"
METADATA_FILE = "metadata.json"


@dataclass
class SwapReport:
    """Outcome of applying a change set."""

    version: str
    change_set: ChangeSet
    swapped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def components(self) -> List[str]:
        """Top-level packages touched by the swap."""
        return sorted({unit.split(".", 1)[0] for unit in self.swapped})


class HotSwapStager:
    """Stages code versions and applies them through a swap provider."""

    def __init__(
        self,
        base_dir: Path,
        provider: CodeSwapProvider,
        resolver: Optional[ModuleChangeSetResolver] = None,
        runtime_lib_dir: Optional[Path] = None
    ):
        """Initialize stager.

        Args:
            base_dir: Staging root on the data partition
            provider: Swap provider for the running process
            resolver: Change-set resolver
            runtime_lib_dir: Code of the booted firmware, used to roll back
                to a version that was never staged
        """
        self.base_dir = Path(base_dir)
        self.provider = provider
        self.resolver = resolver or ModuleChangeSetResolver()
        self.runtime_lib_dir = Path(runtime_lib_dir) if runtime_lib_dir else None

    def version_dir(self, version: str) -> Path:
        return self.base_dir / version

    def lib_dir(self, version: str) -> Path:
        return self.version_dir(version) / "lib"

    def prepare(
        self,
        source_lib: Path,
        version: str,
        metadata: Optional[FirmwareMetadata] = None
    ) -> Path:
        """Copy code for ``version`` into the staging area.

        Args:
            source_lib: Lib directory to copy (e.g. on a mounted partition)
            version: Version being staged
            metadata: Candidate metadata to keep alongside the code

        Returns:
            Staging directory

        Raises:
            StagingError: If copying or validation fails
        """
        logger.info(f"Staging code for version {version} from {source_lib}")
        staging_path = self.version_dir(version)

        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            if staging_path.exists():
                shutil.rmtree(staging_path)
            staging_path.mkdir(parents=True)

            if not Path(source_lib).is_dir():
                raise StagingError(
                    f"Source lib directory not found: {source_lib}",
                    details={"reason": "missing_lib_directory"}
                )

            shutil.copytree(source_lib, self.lib_dir(version), symlinks=True)

            if not list_units(self.lib_dir(version)):
                raise StagingError(
                    f"No code units found in {source_lib}",
                    details={"reason": "no_units_found"}
                )

            if metadata is not None:
                (staging_path / METADATA_FILE).write_text(metadata.model_dump_json(indent=2))

            self._point_link(STAGED_LINK, version)

        except StagingError:
            shutil.rmtree(staging_path, ignore_errors=True)
            raise
        except OSError as e:
            logger.error(f"Staging failed: {e}")
            shutil.rmtree(staging_path, ignore_errors=True)
            raise StagingError(f"Failed to stage {version}: {e}") from e

        logger.info(f"Staging complete for {version}")
        return staging_path

    def resolve(self, lib_root: Path) -> ChangeSet:
        """Change set for a lib directory against the running system."""
        loaded = loaded_components_of(self.provider.currently_loaded_units())
        return self.resolver.resolve(list_units(lib_root), loaded, lib_root)

    def apply(self, version: str) -> SwapReport:
        """Swap in the staged code for ``version``.

        Raises:
            SwapError: If the version is not staged
            PartialSwapError: If any unit failed to load
        """
        lib_root = self.lib_dir(version)
        if not lib_root.is_dir():
            raise SwapError(f"Version {version} is not staged", details={"version": version})

        logger.info(f"Applying staged code for version {version}")
        report = self._swap_all(version, lib_root)

        if report.failed:
            raise PartialSwapError(
                f"{len(report.failed)} of {len(report.change_set)} units failed to load",
                details={"failed": report.failed, "swapped": report.swapped}
            )

        self._point_link(CURRENT_LINK, version)
        if self.staged_version() == version:
            self._remove_link(STAGED_LINK)
        return report

    def rollback(self, previous_version: Optional[str]) -> SwapReport:
        """Re-apply the code of the previous version.

        Uses the staged copy of ``previous_version`` when present, otherwise
        the booted firmware's own lib directory.

        Raises:
            RollbackError: If no source exists or any unit fails to load
        """
        logger.warning(f"Rolling back to version {previous_version}")

        lib_root = self.lib_dir(previous_version) if previous_version else None
        if lib_root is None or not lib_root.is_dir():
            lib_root = self.runtime_lib_dir

        if lib_root is None or not lib_root.is_dir():
            raise RollbackError(
                f"No code available for version {previous_version}",
                details={"version": previous_version}
            )

        try:
            report = self._swap_all(previous_version or "unknown", lib_root)
        except Exception as e:
            logger.error(f"Rollback to {previous_version} aborted: {e}", exc_info=True)
            raise RollbackError(
                f"Rollback to {previous_version} aborted: {e}",
                details={"version": previous_version}
            ) from e

        if report.failed:
            raise RollbackError(
                f"{len(report.failed)} units failed to load during rollback",
                details={"failed": report.failed}
            )

        self._remove_link(STAGED_LINK)
        if previous_version and self.version_dir(previous_version).is_dir():
            self._point_link(CURRENT_LINK, previous_version)

        logger.info(f"Rollback successful to {previous_version}")
        return report

    def staged_version(self) -> Optional[str]:
        link = self.base_dir / STAGED_LINK
        if link.is_symlink():
            return Path(os.readlink(link)).name
        return None

    def staged_metadata(self) -> Optional[FirmwareMetadata]:
        """Metadata saved with the last staged version, if any."""
        path = self.base_dir / STAGED_LINK / METADATA_FILE
        try:
            return FirmwareMetadata.model_validate(json.loads(path.read_text()))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read staged metadata: {e}")
            return None

    def _swap_all(self, version: str, lib_root: Path) -> SwapReport:
        change_set = self.resolve(lib_root)
        logger.info(
            f"Found {len(change_set)} application units to swap "
            f"(filtered {change_set.filtered_count} protected units)"
        )

        report = SwapReport(version=version, change_set=change_set)
        for entry in change_set.entries:
            try:
                self.provider.swap(entry.unit_id, entry.source_location)
                report.swapped.append(entry.unit_id)
            except SwapError as e:
                logger.error(f"Failed to swap {entry.unit_id}: {e}")
                report.failed.append(entry.unit_id)
            except Exception as e:
                logger.error(f"Unexpected error swapping {entry.unit_id}: {e}", exc_info=True)
                report.failed.append(entry.unit_id)

        logger.info(f"Swap complete: {len(report.swapped)} succeeded, {len(report.failed)} failed")
        return report

    def _point_link(self, name: str, version: str) -> None:
        link = self.base_dir / name
        self._remove_link(name)
        link.symlink_to(self.version_dir(version), target_is_directory=True)

    def _remove_link(self, name: str) -> None:
        link = self.base_dir / name
        if link.is_symlink() or link.exists():
            link.unlink()
