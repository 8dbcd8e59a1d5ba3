from __future__ import annotations

import difflib
import os
import stat
import tempfile
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Tuple


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def current_timestamp() -> str:
    """Local time stamp used in backup names, e.g. ``20260118-214502``."""
    return datetime.now().strftime("%Y%m%d-%H%M%S")


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def write_text(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def build_diff(before: str, after: str, path: Path | str = "") -> str:
    return "\n".join(
        difflib.unified_diff(
            before.splitlines(),
            after.splitlines(),
            fromfile=f"{path} (current)",
            tofile=f"{path} (tuned)",
            lineterm="",
        )
    )


def replace_text(
    path: Path,
    content: str,
    mode: int = 0o644,
    owner: Optional[Tuple[int, int]] = None,
) -> None:
    """Write *content* to *path* through a temporary sibling and ``os.replace``.

    An existing file keeps its mode and ownership; a new one gets *mode* and,
    when given, *owner*.
    """
    if path.exists():
        st = path.stat()
        mode = stat.S_IMODE(st.st_mode)
        owner = (st.st_uid, st.st_gid)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.chmod(tmp, mode)
        if owner is not None and os.geteuid() == 0:
            os.chown(tmp, owner[0], owner[1])
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def split_ending(raw: str) -> Tuple[str, str]:
    """Split a line read with ``keepends=True`` into its body and line ending."""
    body = raw.rstrip("\r\n")
    return body, raw[len(body):]


def dominant_ending(endings: Iterable[str], default: str = "\n") -> str:
    counts = Counter(e for e in endings if e)
    if not counts:
        return default
    return counts.most_common(1)[0][0]
