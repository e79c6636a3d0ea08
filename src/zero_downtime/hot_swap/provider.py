"""Code swap providers.

A provider replaces one code unit in the running process. The
importlib provider purges the module from ``sys.modules`` and executes
the new source in a fresh module object; on failure the previous module
is put back so a failed unit never leaves a half-initialized module in
place.

Objects that captured references to the old module (``from x import y``)
keep them until they are re-imported; swapping whole packages together
limits the damage.
"""

import importlib
import importlib.util
import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Set

from zero_downtime.errors import SwapError

logger = logging.getLogger(__name__)


class CodeSwapProvider(ABC):
    """Live code replacement capability."""

    @abstractmethod
    def swap(self, unit_id: str, source_location: Path) -> None:
        """Replace a loaded unit with code from ``source_location``.

        Raises:
            SwapError: If the unit cannot be loaded
        """

    @abstractmethod
    def currently_loaded_units(self) -> Set[str]:
        """Identities of all units loaded in the running system."""


class ImportlibSwapProvider(CodeSwapProvider):
    """Swaps Python modules in the current interpreter."""

    def swap(self, unit_id: str, source_location: Path) -> None:
        source_location = Path(source_location)
        is_package = source_location.name == "__init__.py"

        spec = importlib.util.spec_from_file_location(
            unit_id,
            source_location,
            submodule_search_locations=[str(source_location.parent)] if is_package else None
        )
        if spec is None or spec.loader is None:
            raise SwapError(
                f"Cannot create module spec for {unit_id}",
                details={"unit": unit_id, "source": str(source_location)}
            )

        old_module = sys.modules.get(unit_id)
        old_path = getattr(old_module, "__file__", None)

        module = importlib.util.module_from_spec(spec)
        sys.modules[unit_id] = module

        try:
            spec.loader.exec_module(module)
        except Exception as e:
            if old_module is not None:
                sys.modules[unit_id] = old_module
            else:
                sys.modules.pop(unit_id, None)
            logger.error(f"Failed to load {unit_id} from {source_location}: {e}")
            raise SwapError(
                f"Failed to load {unit_id}: {e}",
                details={"unit": unit_id, "source": str(source_location)}
            ) from e

        self._rebind_parent(unit_id, module)
        importlib.invalidate_caches()

        logger.info(f"Reloaded {unit_id}")
        logger.debug(f"  Old: {old_path}")
        logger.debug(f"  New: {source_location}")

    def currently_loaded_units(self) -> Set[str]:
        return {name for name, module in list(sys.modules.items()) if module is not None}

    @staticmethod
    def _rebind_parent(unit_id: str, module) -> None:
        parent_name, _, child = unit_id.rpartition(".")
        if parent_name and parent_name in sys.modules:
            setattr(sys.modules[parent_name], child, module)
