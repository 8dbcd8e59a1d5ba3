from typing import List, Sequence

from .base import TuningContext, TuningModule
from .boot import BootloaderModule, InitramfsModule
from .packages import MakepkgModule, PacmanModule
from .storage import BtrfsModule
from .system import JournaldModule, SysctlModule


def all_modules() -> List[TuningModule]:
    """Every tuning module, in the order a run applies them."""
    return [
        PacmanModule(),
        MakepkgModule(),
        InitramfsModule(),
        BootloaderModule(),
        BtrfsModule(),
        SysctlModule(),
        JournaldModule(),
    ]


def select_modules(
    enabled: Sequence[str], only: Sequence[str] = (), skip: Sequence[str] = ()
) -> List[TuningModule]:
    selected = []
    for module in all_modules():
        if only and module.name not in only:
            continue
        if not only and module.name not in enabled:
            continue
        if module.name in skip:
            continue
        selected.append(module)
    return selected


__all__ = [
    "TuningContext",
    "TuningModule",
    "PacmanModule",
    "MakepkgModule",
    "InitramfsModule",
    "BootloaderModule",
    "BtrfsModule",
    "SysctlModule",
    "JournaldModule",
    "all_modules",
    "select_modules",
]
