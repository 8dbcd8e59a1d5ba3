from __future__ import annotations

from pathlib import Path


class AutotuneError(Exception):
    """A failure scoped to one (file, mutation) pair.

    The runner reports it with the path and reason and moves on to the next
    module; it never aborts the whole run.
    """

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class PathNotFound(AutotuneError):
    pass


class PermissionDenied(AutotuneError):
    pass


class BackupFailed(AutotuneError):
    pass


class ConfigError(ValueError):
    pass
