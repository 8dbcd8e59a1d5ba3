from __future__ import annotations

from typing import Dict, List, Optional

from autotune.models import OptionRules


def parse_options(current: str, delimiter: str = ",") -> List[str]:
    if delimiter.isspace():
        raw = current.split()
    else:
        raw = current.split(delimiter)
    return [token.strip() for token in raw if token.strip()]


def merge_options(current: str, rules: OptionRules, role: Optional[str] = None) -> str:
    """Merge *current* delimited options with *rules* for a record of *role*.

    Tokens behave as a set. Every token starting with one of
    ``rules.strip_prefixes`` is dropped before the forced additions, so a
    stripped key is left with exactly the value the rules add. The result is
    sorted unless ``rules.sort`` is false, in which case existing tokens
    keep their positions and additions follow in rule order.
    """
    # dict keys give an ordered set
    tokens: Dict[str, None] = dict.fromkeys(parse_options(current, rules.delimiter))

    for token in list(tokens):
        if any(token.startswith(prefix) for prefix in rules.strip_prefixes):
            del tokens[token]

    for token in rules.force_add:
        tokens.setdefault(token, None)

    rule = rules.role_rules.get(role) if role is not None else None
    if rule is not None:
        for token in rule.add:
            tokens.setdefault(token, None)
        for token in rule.remove:
            tokens.pop(token, None)

    if rules.placeholder is not None:
        if len(tokens) > 1:
            tokens.pop(rules.placeholder, None)
        elif not tokens:
            tokens[rules.placeholder] = None

    ordered = sorted(tokens) if rules.sort else list(tokens)
    joiner = " " if rules.delimiter.isspace() else rules.delimiter
    return joiner.join(ordered)
