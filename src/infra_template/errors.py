"""Exceptions raised while parsing templates and building their AST."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, Iterable, List

from .rule_types import Span


@dataclass(frozen=True)
class TextPosition:
    line: int
    symbol: int


def translate_positions(buffer: List[int], positions: Iterable[int]) -> Dict[int, TextPosition]:
    """
    Map buffer offsets to 1-based (line, symbol) pairs in one forward scan.

    A newline character itself reports the line it starts, at symbol 0.
    """
    wanted = sorted(set(positions))
    translations: Dict[int, TextPosition] = {}
    if not wanted:
        return translations

    line, symbol, j = 1, 0, 0
    newline = ord("\n")

    for i, c in enumerate(buffer):
        if c == newline:
            line, symbol = line + 1, 0
        else:
            symbol += 1

        if i == wanted[j]:
            translations[i] = TextPosition(line, symbol)
            j += 1
            if j == len(wanted):
                break

    return translations


class TemplateError(Exception):
    """Base class for every error raised by the template package"""


class ParseError(TemplateError):
    """No grammar alternative matched; reports the furthest recorded span"""

    def __init__(self, span: Span, buffer: List[int], source: str, pretty: bool = False):
        self.rule = span.kind
        self.begin = span.begin
        self.end = span.end
        self.text = source[span.begin:span.end]
        self.pretty = pretty

        translations = translate_positions(buffer, (span.begin, span.end))
        unknown = TextPosition(0, 0)
        begin_pos = translations.get(span.begin, unknown)
        end_pos = translations.get(span.end, unknown)
        self.begin_line, self.begin_symbol = begin_pos.line, begin_pos.symbol
        self.end_line, self.end_symbol = end_pos.line, end_pos.symbol

        super().__init__(self.format())

    def format(self) -> str:
        name = self.rule.value
        if self.pretty:
            name = f"\x1b[34m{name}\x1b[m"
        return (
            f"parse error near {name} "
            f"(line {self.begin_line} symbol {self.begin_symbol} - "
            f"line {self.end_line} symbol {self.end_symbol}):\n"
            f"{json.dumps(self.text, ensure_ascii=False)}"
        )


class InvalidLiteralError(TemplateError, ValueError):
    """Text accepted by the grammar is not a valid int, IP or CIDR"""

    def __init__(self, kind: str, text: str):
        self.kind = kind
        self.text = text
        super().__init__(f"cannot convert '{text}' to {kind}")


class WrongNodeVariantError(TemplateError, TypeError):
    """An operation was applied to a statement of the wrong node variant"""

    def __init__(self, message: str, node: object = None):
        self.node = node
        super().__init__(message)

