from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from autotune.config import TuningConfig
from autotune.engine.controller import ExecutionController
from autotune.environment import resolve
from autotune.models import EnvironmentFacts, MutationResult


@dataclass(frozen=True)
class TuningContext:
    config: TuningConfig
    facts: EnvironmentFacts
    controller: ExecutionController

    def path(self, system_path: str | Path) -> Path:
        return resolve(self.facts.sysroot, system_path)


class TuningModule(ABC):
    name: str = ""
    description: str = ""
    followups: Tuple[str, ...] = ()
    touches_boot: bool = False

    def skip_reason(self, ctx: TuningContext) -> Optional[str]:
        """Why this module cannot run in *ctx*, or None when it can."""
        return None

    @abstractmethod
    def targets(self, ctx: TuningContext) -> List[Path]:
        raise NotImplementedError

    @abstractmethod
    def apply(self, ctx: TuningContext) -> List[MutationResult]:
        raise NotImplementedError
