"""
Semantic driver: one pass over the recorded spans, feeding a TemplateBuilder.

The grammar guarantees that a capture span (PEG_TEXT) is recorded right
before the action marker consuming its text, so the driver only has to
remember the most recent capture.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .builder import TemplateBuilder
from .rule_types import ACTION_RULES, Rule, Span

logger = logging.getLogger(__name__)


def execute(tokens: Iterable[Span], source: str, builder: TemplateBuilder) -> None:
    text = ""
    actions = 0

    for span in tokens:
        if span.kind is Rule.PEG_TEXT:
            text = source[span.begin:span.end]
            continue

        method = ACTION_RULES.get(span.kind)
        if method is None:
            continue

        actions += 1
        if span.kind is Rule.LINE_DONE:
            builder.line_done()
        else:
            getattr(builder, method)(text)

    logger.debug(
        "ran %d actions into %d statements", actions, len(builder.ast.statements)
    )
