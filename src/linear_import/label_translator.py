"""
Label renaming applied when labels are created in Linear.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Sequence


class _Rule(NamedTuple):
    pattern: re.Pattern[str]
    replacement: str
    wildcard: bool


class LabelTranslator:
    """Renames labels with "source:target" patterns.

    A single "*" in the source pattern matches any text, which is substituted
    for "*" in the target (e.g., "p_*:priority: *"). Matching is
    case-insensitive and the first matching rule wins.
    """

    def __init__(self, patterns: Sequence[str] | None = None) -> None:
        self._rules: list[_Rule] = [self._compile(pattern) for pattern in patterns or []]

    @staticmethod
    def _compile(pattern: str) -> _Rule:
        if ":" not in pattern:
            msg = f"Invalid pattern format: {pattern}"
            raise ValueError(msg)
        source, target = pattern.split(":", 1)
        if source.count("*") > 1:
            msg = f"Invalid pattern format, only one '*' allowed: {pattern}"
            raise ValueError(msg)
        regex = "(.*)".join(re.escape(part) for part in source.split("*"))
        return _Rule(re.compile(f"^{regex}$", re.IGNORECASE), target, "*" in source)

    def __bool__(self) -> bool:
        return bool(self._rules)

    def translate(self, label_name: str) -> str:
        """Return the translated name, or the name unchanged if no rule matches."""
        for rule in self._rules:
            match = rule.pattern.match(label_name)
            if match is None:
                continue
            if rule.wildcard:
                return rule.replacement.replace("*", match.group(1))
            return rule.replacement
        return label_name
