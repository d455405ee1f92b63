"""
Concrete syntax tree rebuilt from the flat span list.

The grammar records a rule's span only after the spans of everything it
matched, so nesting can be recovered from containment alone: a stack of
pending nodes is popped into each new span that contains them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

from lark import Token, Tree
from lark.tree import Meta

from .errors import translate_positions
from .matcher import to_buffer
from .rule_types import Rule, Span


@dataclass(eq=False)
class SyntaxNode:
    """A span with its first child (up) and next sibling (next)"""

    span: Span
    up: Optional["SyntaxNode"] = None
    next: Optional["SyntaxNode"] = None

    @property
    def kind(self) -> Rule:
        return self.span.kind

    def siblings(self) -> Iterator[SyntaxNode]:
        """This node followed by every later sibling"""
        node: Optional[SyntaxNode] = self
        while node is not None:
            yield node
            node = node.next

    def children(self) -> Iterator[SyntaxNode]:
        if self.up is not None:
            yield from self.up.siblings()

    def walk(self) -> Iterator[SyntaxNode]:
        """Pre-order walk over this node and its descendants"""
        yield self
        for child in self.children():
            yield from child.walk()

    def __repr__(self):
        return f"SyntaxNode({self.span.kind.value}, {self.span.begin}, {self.span.end})"


def build_syntax_tree(spans: Iterable[Span]) -> Optional[SyntaxNode]:
    """
    Rebuild nesting from spans in emission order; empty spans are skipped.

    Returns the first root; when the spans form a forest the remaining roots
    are chained after it as siblings.
    """
    stack: List[SyntaxNode] = []

    for span in spans:
        if span.empty:
            continue

        node = SyntaxNode(span)
        while stack and span.contains(stack[-1].span):
            top = stack.pop()
            top.next = node.up
            node.up = top
        stack.append(node)

    if not stack:
        return None

    for prev, following in zip(stack, stack[1:]):
        prev.next = following
    return stack[0]


def format_syntax_tree(root: Optional[SyntaxNode], source: str, pretty: bool = False) -> str:
    """One `Rule "text"` line per node, indented one space per depth level"""
    lines: List[str] = []

    def emit(node: Optional[SyntaxNode], depth: int) -> None:
        for current in node.siblings() if node is not None else ():
            name = current.kind.value
            if pretty:
                name = f"\x1b[34m{name}\x1b[m"
            text = source[current.span.begin:current.span.end]
            lines.append(f"{' ' * depth}{name} {json.dumps(text, ensure_ascii=False)}")
            emit(current.up, depth + 1)

    emit(root, 0)
    return "\n".join(lines)


def to_lark_tree(root: SyntaxNode, source: str) -> Tree:
    """
    Convert a syntax node into a lark Tree labelled with rule names.

    Leaf rules get a single Token child holding their text. Positions are
    carried on tree meta and tokens (1-based lines and columns).
    """
    positions = set()
    for node in root.walk():
        positions.add(node.span.begin)
        positions.add(node.span.end)
    translations = translate_positions(to_buffer(source), positions)

    def convert(node: SyntaxNode) -> Tree:
        begin, end = node.span.begin, node.span.end
        start_at = translations[begin]
        end_at = translations[end]

        meta = Meta()
        meta.empty = False
        meta.line, meta.column = start_at.line, start_at.symbol
        meta.end_line, meta.end_column = end_at.line, end_at.symbol
        meta.start_pos, meta.end_pos = begin, end

        if node.up is None:
            leaf = Token(
                node.kind.value, source[begin:end],
                begin, start_at.line, start_at.symbol,
                end_at.line, end_at.symbol, end,
            )
            return Tree(node.kind.value, [leaf], meta)

        return Tree(node.kind.value, [convert(child) for child in node.children()], meta)

    return convert(root)
