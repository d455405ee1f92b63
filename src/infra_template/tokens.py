"""Append-only span log written by the grammar engine."""

from __future__ import annotations

from typing import List, Optional

from .rule_types import Rule, Span

INITIAL_CAPACITY = 1024


class TokenRecorder:
    """
    Spans recorded during one parse attempt, in emission order.

    Slots are addressed by the parser's token index: after a rollback the
    index moves back and later spans overwrite the abandoned ones. The slot
    array doubles when an index runs past its end and is trimmed to the
    exact count once the parse succeeds.
    """

    def __init__(self, capacity: int = INITIAL_CAPACITY):
        self.tree: List[Optional[Span]] = [None] * max(capacity, 1)
        self.max = Span(Rule.UNKNOWN, 0, 0)

    def __len__(self) -> int:
        return len(self.tree)

    def add(self, rule: Rule, begin: int, end: int, index: int) -> None:
        if index >= len(self.tree):
            self.tree.extend([None] * max(len(self.tree), index + 1 - len(self.tree)))
        self.tree[index] = Span(rule, begin, end)

        # Furthest-reaching non-empty span, kept for error reporting
        if begin != end and end > self.max.end:
            self.max = Span(rule, begin, end)

    def trim(self, length: int) -> None:
        del self.tree[length:]

    def tokens(self) -> List[Span]:
        return [span for span in self.tree if span is not None]

