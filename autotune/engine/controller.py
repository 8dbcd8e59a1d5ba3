from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Tuple

from autotune.engine.directives import DirectiveMutator
from autotune.engine.records import RecordTransformer, rewrite_option_line
from autotune.errors import AutotuneError, PathNotFound, PermissionDenied
from autotune.models import (
    Directive,
    ExecutionMode,
    MutationResult,
    MutationStatus,
    OptionRules,
)
from autotune.storage.backup import BackupManager
from autotune.utils import build_diff, read_text, replace_text

logger = logging.getLogger("autotune")

Transform = Callable[[str], str]


class ExecutionController:
    """Single choke point for every file mutation.

    The new content is always computed the same way; the mode only decides
    what happens after that. ``APPLY`` backs the file up and replaces it,
    ``SIMULATE`` returns the same result with a unified diff and touches
    nothing. Content that would not change is neither backed up nor written.
    """

    def __init__(self, mode: ExecutionMode, backups: Optional[BackupManager] = None) -> None:
        if backups is not None and backups.mode is not mode:
            raise ValueError(
                f"backup manager runs in {backups.mode.value} mode, controller in {mode.value}"
            )
        self.mode = mode
        self.backups = backups or BackupManager(mode)
        self.directives = DirectiveMutator()

    @property
    def simulating(self) -> bool:
        return self.mode is ExecutionMode.SIMULATE

    def mutate(
        self,
        path: Path,
        transform: Transform,
        create: bool = False,
        owner: Optional[Tuple[int, int]] = None,
        detail: str = "",
    ) -> MutationResult:
        exists = path.exists()
        if not exists and not create:
            logger.warning("%s not found, skipping", path)
            return MutationResult(path, self.mode, MutationStatus.SKIPPED, detail="not found")

        try:
            current = read_text(path) if exists else ""
        except FileNotFoundError as exc:
            raise PathNotFound(path, "disappeared while reading") from exc
        except PermissionError as exc:
            raise PermissionDenied(path, f"cannot read: {exc.strerror}") from exc
        except OSError as exc:
            raise AutotuneError(path, f"cannot read: {exc.strerror or exc}") from exc
        except UnicodeDecodeError as exc:
            raise AutotuneError(path, f"not valid UTF-8: {exc.reason}") from exc

        updated = transform(current)
        if updated == current:
            logger.info("No change needed: %s", path)
            status = MutationStatus.UNCHANGED if exists else MutationStatus.SKIPPED
            return MutationResult(path, self.mode, status, new_content=updated, detail=detail)

        status = MutationStatus.CHANGED if exists else MutationStatus.CREATED
        backup = self.backups.backup(path)

        if self.simulating:
            logger.info("DRY-RUN: would %s %s", "update" if exists else "create", path)
            return MutationResult(
                path,
                self.mode,
                status,
                backup_path=backup.path,
                simulated_diff=build_diff(current, updated, path),
                new_content=updated,
                detail=detail,
            )

        try:
            if not exists:
                path.parent.mkdir(parents=True, exist_ok=True)
            replace_text(path, updated, owner=owner)
        except PermissionError as exc:
            raise PermissionDenied(path, f"cannot write: {exc.strerror}") from exc
        except OSError as exc:
            raise AutotuneError(path, f"cannot write: {exc.strerror or exc}") from exc

        logger.info("%s %s", "Updated" if exists else "Created", path)
        return MutationResult(
            path,
            self.mode,
            status,
            backup_path=backup.path,
            new_content=updated,
            detail=detail,
        )

    def apply_directives(
        self,
        path: Path,
        directives: Iterable[Directive],
        create: bool = False,
        owner: Optional[Tuple[int, int]] = None,
        seed: str = "",
    ) -> MutationResult:
        """Apply *directives* to *path* in one read and at most one write.

        With ``create`` a missing file is started from *seed* (typically a
        header comment) before the directives are added.
        """
        directives = list(directives)
        summary = []

        def _transform(content: str) -> str:
            updated, outcomes = self.directives.apply(content or seed, directives)
            summary[:] = [f"{d.key}: {status.value}" for d, status in outcomes]
            return updated

        result = self.mutate(path, _transform, create=create, owner=owner)
        if summary:
            result.detail = ", ".join(summary)
        return result

    def transform_records(self, path: Path, transformer: RecordTransformer) -> MutationResult:
        return self.mutate(path, transformer.transform, detail=f"{transformer.type_filter} records")

    def rewrite_option_line(
        self, path: Path, prefix: str, rules: OptionRules
    ) -> MutationResult:
        found = []

        def _transform(content: str) -> str:
            updated, hit = rewrite_option_line(content, prefix, rules)
            found.append(hit)
            return updated

        result = self.mutate(path, _transform, detail=f"'{prefix}' line")
        if found and not found[0]:
            logger.warning("No '%s' line in %s, skipping", prefix, path)
            result.status = MutationStatus.SKIPPED
            result.detail = f"no '{prefix}' line"
        return result
