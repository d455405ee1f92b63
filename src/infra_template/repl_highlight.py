"""prompt_toolkit lexer for live template highlighting in the REPL."""

from __future__ import annotations

from typing import Callable, Dict, List

from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .errors import ParseError
from .grammar import TemplateParser
from .rule_types import Rule

# Highlight group -> prompt_toolkit style
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "entity": "bold ansiblue",
    "number": "ansimagenta",
    "address": "ansiyellow",
    "string": "ansigreen",
    "reference": "bold ansimagenta",
    "alias": "bold ansiyellow",
    "hole": "bold ansired",
    "comment": "italic ansigray",
}

# Rule kind -> highlight group. Inner spans are recorded first and win.
_RULE_GROUP = {
    Rule.VAR: "keyword",
    Rule.ACTION: "keyword",
    Rule.ENTITY: "entity",
    Rule.CIDR_VALUE: "address",
    Rule.IP_VALUE: "address",
    Rule.INT_VALUE: "number",
    Rule.INT_RANGE_VALUE: "number",
    Rule.STRING_VALUE: "string",
    Rule.REF_VALUE: "reference",
    Rule.ALIAS_VALUE: "alias",
    Rule.HOLE_VALUE: "hole",
    Rule.COMMENT: "comment",
}


def _highlight_line(text: str) -> StyleAndTextTuples:
    """Parse a single line and return styled fragments."""
    if not text:
        return [("", "")]

    parser = TemplateParser(text)
    try:
        parser.parse()
    except ParseError:
        # Incomplete input while typing.
        return [("", text)]

    styles: List[str] = [""] * len(text)
    painted = [False] * len(text)

    for span in parser.tokens:
        group = _RULE_GROUP.get(span.kind)
        if group is None:
            continue
        style = GROUP_STYLE[group]
        for i in range(span.begin, span.end):
            if not painted[i]:
                styles[i] = style
                painted[i] = True

    result: StyleAndTextTuples = []
    for ch, style in zip(text, styles):
        if result and result[-1][0] == style:
            result[-1] = (style, result[-1][1] + ch)
        else:
            result.append((style, ch))

    return result


class TemplateLexer(Lexer):
    """prompt_toolkit Lexer that highlights template source from grammar spans."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines
        highlighted: Dict[int, StyleAndTextTuples] = {}

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno >= len(lines):
                return [("", "")]
            # Each line is parsed on its own, once per document.
            if lineno not in highlighted:
                highlighted[lineno] = _highlight_line(lines[lineno])
            return highlighted[lineno]

        return get_line
