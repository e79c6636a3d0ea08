"""Live code swapping.

Change-set resolution, the swap provider capability and the staging
area that code is swapped in from.
"""

from zero_downtime.hot_swap.changeset import (
    PROTECTED_COMPONENTS,
    PROTECTED_IDENTITIES,
    ChangeSet,
    ChangeSetEntry,
    ModuleChangeSetResolver,
    list_units,
    loaded_components_of,
)
from zero_downtime.hot_swap.provider import CodeSwapProvider, ImportlibSwapProvider
from zero_downtime.hot_swap.stager import HotSwapStager, SwapReport

__all__ = [
    "PROTECTED_COMPONENTS",
    "PROTECTED_IDENTITIES",
    "ChangeSet",
    "ChangeSetEntry",
    "ModuleChangeSetResolver",
    "list_units",
    "loaded_components_of",
    "CodeSwapProvider",
    "ImportlibSwapProvider",
    "HotSwapStager",
    "SwapReport",
]
