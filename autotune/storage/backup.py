from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Dict, List

from autotune.errors import BackupFailed
from autotune.models import BackupResult, ExecutionMode
from autotune.utils import current_timestamp

logger = logging.getLogger("autotune")


class BackupManager:
    """Timestamped sibling backups, at most one per file per run.

    ``/etc/fstab`` is copied to ``/etc/fstab.bak.<timestamp>`` with its
    content, mode, times and (as root) owner. If that name is already taken,
    for instance by a second run within the same second, ``.1``, ``.2``
    and so on are appended.
    """

    def __init__(
        self,
        mode: ExecutionMode = ExecutionMode.APPLY,
        timestamp: Callable[[], str] = current_timestamp,
        suffix: str = ".bak.",
    ) -> None:
        self.mode = mode
        self.timestamp = timestamp
        self.suffix = suffix
        self._taken: Dict[Path, Path] = {}

    @property
    def backups(self) -> List[Path]:
        return list(self._taken.values())

    def backup(self, path: Path) -> BackupResult:
        path = Path(path)
        if path in self._taken:
            return BackupResult(source=path, status="reused", path=self._taken[path])
        if not path.exists():
            return BackupResult(source=path, status="skipped")

        target = self._target_for(path)
        if self.mode is ExecutionMode.SIMULATE:
            self._taken[path] = target
            logger.info("DRY-RUN: would back up %s to %s", path, target)
            return BackupResult(source=path, status="simulated", path=target)

        try:
            shutil.copy2(path, target)
            if os.geteuid() == 0:
                st = path.stat()
                os.chown(target, st.st_uid, st.st_gid)
        except OSError as exc:
            target.unlink(missing_ok=True)
            raise BackupFailed(path, f"cannot create backup {target}: {exc.strerror or exc}") from exc

        self._taken[path] = target
        logger.info("Backup created: %s", target)
        return BackupResult(source=path, status="created", path=target)

    def _target_for(self, path: Path) -> Path:
        base = f"{path.name}{self.suffix}{self.timestamp()}"
        candidate = path.with_name(base)
        counter = 1
        while candidate.exists() or candidate in self._taken.values():
            candidate = path.with_name(f"{base}.{counter}")
            counter += 1
        return candidate
