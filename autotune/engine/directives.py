from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

from autotune.models import Directive, DirectiveStatus
from autotune.utils import dominant_ending, split_ending

COMMENT_MARKERS = "#;"


class DirectiveMutator:
    """Find-or-append single-line directives in a line-oriented config file.

    A directive that only exists commented out is re-enabled in place. When
    both a commented and an uncommented occurrence exist, the first
    uncommented one is the one replaced; any later uncommented duplicates
    are left alone.
    """

    def apply(
        self, content: str, directives: Iterable[Directive]
    ) -> Tuple[str, List[Tuple[Directive, DirectiveStatus]]]:
        lines: List[str] = []
        endings: List[str] = []
        for raw in content.splitlines(keepends=True):
            body, ending = split_ending(raw)
            lines.append(body)
            endings.append(ending)
        newline = dominant_ending(endings)

        outcomes: List[Tuple[Directive, DirectiveStatus]] = []
        appended: List[str] = []

        for directive in directives:
            idx = self.locate(lines, directive)
            if idx is None:
                end = section_end(lines, directive.section) if directive.section else None
                if end is not None:
                    lines.insert(end, directive.line)
                    endings.insert(end, newline)
                elif directive.line not in appended:
                    appended.append(directive.line)
                outcomes.append((directive, DirectiveStatus.APPENDED))
            elif lines[idx] == directive.line:
                outcomes.append((directive, DirectiveStatus.UNCHANGED))
            else:
                lines[idx] = directive.line
                outcomes.append((directive, DirectiveStatus.CHANGED))

        if all(status is DirectiveStatus.UNCHANGED for _, status in outcomes):
            return content, outcomes

        if appended:
            if lines and lines[-1].strip():
                lines.append("")
                endings.append(newline)
            lines.extend(appended)
            endings.extend(newline for _ in appended)
        # every line, including a formerly unterminated last one, ends the file's way
        return "".join(line + (ending or newline) for line, ending in zip(lines, endings)), outcomes

    def apply_directive(self, content: str, directive: Directive) -> Tuple[str, DirectiveStatus]:
        updated, outcomes = self.apply(content, [directive])
        return updated, outcomes[0][1]

    def locate(self, lines: List[str], directive: Directive) -> Optional[int]:
        regex = directive_regex(directive)
        commented: Optional[int] = None
        for idx, line in enumerate(lines):
            if not regex.match(line):
                continue
            if not is_commented(line):
                return idx
            if commented is None:
                commented = idx
        return commented


def directive_regex(directive: Directive) -> "re.Pattern[str]":
    if directive.pattern is not None:
        return re.compile(directive.pattern)
    key = re.escape(directive.key)
    prefix = rf"^\s*(?:[{COMMENT_MARKERS}]\s*)?{key}"
    if directive.flag:
        return re.compile(prefix + r"\s*$")
    return re.compile(prefix + r"\s*=")


def section_end(lines: List[str], section: str) -> Optional[int]:
    """Index just past the last non-blank line of ``[section]``, or None."""
    header = f"[{section}]"
    start = None
    for idx, line in enumerate(lines):
        if line.strip() == header:
            start = idx
            break
    if start is None:
        return None
    end = len(lines)
    for idx in range(start + 1, len(lines)):
        stripped = lines[idx].strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            end = idx
            break
    while end > start + 1 and not lines[end - 1].strip():
        end -= 1
    return end


def is_commented(line: str) -> bool:
    stripped = line.lstrip()
    return bool(stripped) and stripped[0] in COMMENT_MARKERS
