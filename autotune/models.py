from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple


class ExecutionMode(str, Enum):
    APPLY = "apply"
    SIMULATE = "simulate"


class DirectiveStatus(str, Enum):
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    APPENDED = "appended"


class MutationStatus(str, Enum):
    CHANGED = "changed"
    CREATED = "created"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Directive:
    """One logical setting: a line pattern plus its canonical line.

    When ``pattern`` is omitted the mutator builds one from ``key`` that
    accepts a leading comment marker and either ``KEY=...`` / ``KEY = ...``
    or, for flag directives, the bare key alone on the line. A directive
    with a ``section`` that has to be added goes to the end of that
    ``[section]`` instead of the end of the file.
    """

    key: str
    line: str
    pattern: Optional[str] = None
    flag: bool = False
    section: Optional[str] = None

    @classmethod
    def assign(
        cls, key: str, value: str, separator: str = "=", section: Optional[str] = None
    ) -> "Directive":
        return cls(key=key, line=f"{key}{separator}{value}", section=section)

    @classmethod
    def bare(cls, name: str, section: Optional[str] = None) -> "Directive":
        return cls(key=name, line=name, flag=True, section=section)


@dataclass(frozen=True)
class RoleRule:
    add: Tuple[str, ...] = ()
    remove: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OptionRules:
    strip_prefixes: Tuple[str, ...] = ()
    force_add: Tuple[str, ...] = ()
    role_rules: Dict[str, RoleRule] = field(default_factory=dict)
    delimiter: str = ","
    sort: bool = True
    placeholder: Optional[str] = None


@dataclass
class BackupResult:
    source: Path
    status: str
    path: Optional[Path] = None


@dataclass
class MutationResult:
    path: Path
    mode: ExecutionMode
    status: MutationStatus
    backup_path: Optional[Path] = None
    simulated_diff: Optional[str] = None
    new_content: Optional[str] = None
    detail: str = ""

    @property
    def changed(self) -> bool:
        return self.status in (MutationStatus.CHANGED, MutationStatus.CREATED)


@dataclass(frozen=True)
class EnvironmentFacts:
    sysroot: Path
    user: Optional[str] = None
    home: Optional[Path] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    cpu_count: int = 1
    has_nvidia: bool = False
    root_fstype: Optional[str] = None
    systemd_boot: bool = False
    boot_entries: Tuple[Path, ...] = ()


@dataclass
class ModuleOutcome:
    module: str
    results: List[MutationResult] = field(default_factory=list)
    followups: List[str] = field(default_factory=list)
    skipped_reason: Optional[str] = None
    error: Optional[str] = None
    error_path: Optional[Path] = None

    @property
    def changed(self) -> bool:
        return any(r.changed for r in self.results)

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class RunReport:
    run_id: str
    mode: ExecutionMode
    sysroot: Path
    started_at: str
    outcomes: List[ModuleOutcome] = field(default_factory=list)
    reboot_recommended: bool = False
