from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Tuple

from autotune.engine.options import merge_options
from autotune.models import OptionRules
from autotune.utils import split_ending

logger = logging.getLogger("autotune")

RoleFn = Callable[[str], str]


class RecordTransformer:
    """Rewrite the options field of selected records in a mount-table style file.

    Only lines with at least ``field_count`` fields whose type field equals
    ``type_filter`` are touched; they are rebuilt with single tabs between
    fields. Everything else, including comments, blank lines and short
    lines, is kept byte for byte.
    """

    def __init__(
        self,
        field_count: int,
        type_filter: str,
        role_fn: RoleFn,
        rules: OptionRules,
        target_index: int = 1,
        type_index: int = 2,
        options_index: int = 3,
        separator: str = "\t",
    ) -> None:
        self.field_count = field_count
        self.type_filter = type_filter
        self.role_fn = role_fn
        self.rules = rules
        self.target_index = target_index
        self.type_index = type_index
        self.options_index = options_index
        self.separator = separator

    def transform(self, content: str) -> str:
        out: List[str] = []
        for lineno, raw in enumerate(content.splitlines(keepends=True), start=1):
            body, ending = split_ending(raw)
            updated = self.transform_line(body, lineno)
            out.append(raw if updated is None else updated + ending)
        return "".join(out)

    def transform_line(self, body: str, lineno: int = 0) -> Optional[str]:
        stripped = body.strip()
        if not stripped or stripped.startswith("#"):
            return None
        fields = stripped.split()
        if len(fields) < self.field_count:
            logger.debug(
                "Line %d has %d fields, expected %d; leaving it as is: %r",
                lineno,
                len(fields),
                self.field_count,
                body,
            )
            return None
        if fields[self.type_index] != self.type_filter:
            return None
        role = self.role_fn(fields[self.target_index])
        fields[self.options_index] = merge_options(fields[self.options_index], self.rules, role)
        return self.separator.join(fields)


def transform_records(
    content: str,
    field_count: int,
    type_filter: str,
    role_fn: RoleFn,
    rules: OptionRules,
) -> str:
    return RecordTransformer(field_count, type_filter, role_fn, rules).transform(content)


def rewrite_option_line(
    content: str, prefix: str, rules: OptionRules, role: Optional[str] = None
) -> Tuple[str, bool]:
    """Merge *rules* into the first line that starts with *prefix*.

    Returns the new content and whether such a line was found. The line is
    rebuilt as ``<prefix> <tokens>`` with single spaces.
    """
    line_re = re.compile(rf"^{re.escape(prefix)}(?:[ \t]+(.*))?$")
    lines = content.splitlines(keepends=True)
    for idx, raw in enumerate(lines):
        body, ending = split_ending(raw)
        match = line_re.match(body)
        if match is None:
            continue
        merged = merge_options(match.group(1) or "", rules, role)
        rebuilt = f"{prefix} {merged}".rstrip()
        if rebuilt != body:
            lines[idx] = rebuilt + ending
        return "".join(lines), True
    return content, False
