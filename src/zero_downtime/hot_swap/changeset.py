"""Change-set resolution.

Decides which code units from a staged lib directory may be swapped
into the running process. Layout of a lib directory:

    lib/<component>-<version>/<package>/<module>.py

A unit is eligible when its owning component is loaded and not
protected, and its own identity is not a protected primitive. The
second filter applies even when the component check passed.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import AbstractSet, Iterable, List, Optional, Set, Union

logger = logging.getLogger(__name__)

UNIT_SUFFIX = ".py"

# Interpreter, standard library, build/packaging and test tooling, and
# the updater itself
PROTECTED_COMPONENTS = frozenset({
    "python",
    "stdlib",
    "pip",
    "setuptools",
    "wheel",
    "build",
    "packaging",
    "pytest",
    "pytest_asyncio",
    "_pytest",
    "pluggy",
    "coverage",
    "mypy",
    "tox",
    "zero_downtime",
})

# Process, module, code-loading and supervision primitives
PROTECTED_IDENTITIES = frozenset({
    "builtins",
    "sys",
    "os",
    "gc",
    "site",
    "runpy",
    "importlib",
    "pkgutil",
    "zipimport",
    "threading",
    "_thread",
    "multiprocessing",
    "concurrent",
    "asyncio",
    "signal",
    "subprocess",
    "atexit",
    "logging",
    "zero_downtime",
})

VERSION_SUFFIX_RE = re.compile(r"^(?P<name>.+?)-\d[\w.+!]*$")

PathLike = Union[str, PurePath]


@dataclass(frozen=True)
class ChangeSetEntry:
    """One swappable code unit."""

    unit_id: str
    source_location: Path


@dataclass
class ChangeSet:
    """Units eligible for swapping, plus how many were filtered out."""

    entries: List[ChangeSetEntry] = field(default_factory=list)
    filtered_count: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def unit_ids(self) -> List[str]:
        return [entry.unit_id for entry in self.entries]


def normalize_component(name: str) -> str:
    return name.lower().replace("-", "_")


def strip_version(directory_name: str) -> str:
    """``my_app-1.2.0`` -> ``my_app``."""
    match = VERSION_SUFFIX_RE.match(directory_name)
    return match.group("name") if match else directory_name


def is_protected_identity(unit_id: str, identities: AbstractSet[str] = PROTECTED_IDENTITIES) -> bool:
    """True if the unit is a protected identity or lives under one."""
    return any(unit_id == ident or unit_id.startswith(ident + ".") for ident in identities)


def loaded_components_of(unit_ids: Iterable[str]) -> Set[str]:
    """Components of loaded units (their top-level package)."""
    return {normalize_component(unit_id.split(".", 1)[0]) for unit_id in unit_ids if unit_id}


def list_units(lib_root: Path) -> List[Path]:
    """List code units under a lib directory, sorted."""
    if not lib_root.is_dir():
        return []
    return sorted(p for p in lib_root.glob(f"*/**/*{UNIT_SUFFIX}") if p.is_file())


class ModuleChangeSetResolver:
    """Computes the set of code units eligible for swapping."""

    def __init__(
        self,
        protected_components: AbstractSet[str] = PROTECTED_COMPONENTS,
        protected_identities: AbstractSet[str] = PROTECTED_IDENTITIES
    ):
        self.protected_components = frozenset(normalize_component(c) for c in protected_components)
        self.protected_identities = frozenset(protected_identities)

    def component_of(self, unit_path: PathLike, lib_root: PathLike) -> Optional[str]:
        """Owning component of a unit, from its directory under the lib root."""
        try:
            relative = PurePath(unit_path).relative_to(lib_root)
        except ValueError:
            return None

        if len(relative.parts) < 2:
            return None

        return normalize_component(strip_version(relative.parts[0]))

    def unit_id_of(self, unit_path: PathLike, lib_root: PathLike) -> Optional[str]:
        """Dotted module name of a unit, relative to its component directory."""
        try:
            relative = PurePath(unit_path).relative_to(lib_root)
        except ValueError:
            return None

        module_parts = list(relative.parts[1:])
        if not module_parts or not module_parts[-1].endswith(UNIT_SUFFIX):
            return None

        module_parts[-1] = module_parts[-1][:-len(UNIT_SUFFIX)]
        if module_parts[-1] == "__init__":
            module_parts.pop()

        if not module_parts or not all(part.isidentifier() for part in module_parts):
            return None

        return ".".join(module_parts)

    def reloadable_components(self, loaded_components: Iterable[str]) -> Set[str]:
        return {normalize_component(c) for c in loaded_components} - self.protected_components

    def resolve(
        self,
        units: Iterable[PathLike],
        loaded_components: Iterable[str],
        lib_root: PathLike
    ) -> ChangeSet:
        """Compute the change set.

        Args:
            units: Unit source paths under ``lib_root``
            loaded_components: Components loaded in the running system
            lib_root: Root of the lib directory

        Returns:
            Eligible units (packages before their submodules) and the
            filtered count
        """
        reloadable = self.reloadable_components(loaded_components)
        logger.debug(f"Reloadable components: {sorted(reloadable)}")

        entries = []
        filtered = 0

        for unit in sorted(PurePath(u) for u in units):
            component = self.component_of(unit, lib_root)
            unit_id = self.unit_id_of(unit, lib_root)

            if component is None or unit_id is None or component not in reloadable:
                filtered += 1
                continue

            if is_protected_identity(unit_id, self.protected_identities):
                logger.debug(f"Skipping protected unit {unit_id}")
                filtered += 1
                continue

            entries.append(ChangeSetEntry(unit_id=unit_id, source_location=Path(unit)))

        # Packages must be loaded before their submodules
        entries.sort(key=lambda e: (e.unit_id.count("."), e.unit_id))

        logger.debug(f"Change set: {len(entries)} units, {filtered} filtered")
        return ChangeSet(entries=entries, filtered_count=filtered)
