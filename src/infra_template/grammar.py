"""
PEG parser for infrastructure templates

Turns template source such as

    var cidr = {vpc.cidr}
    net = create vpc cidr=$cidr name=@main-vpc
    create subnet vpc=$net cidr=10.0.1.0/24

into a flat list of spans, later read by the semantic driver (driver.py) and,
on demand, by the tree builder (syntax_tree.py).

Parsing strategy:
- Every rule is a method returning True/False over shared state (position,
  token_index and the token recorder).
- A failing rule restores position and token_index to their values at entry,
  which is what makes ordered choice and repetition exact.
- Ordered choice is first-match-wins (PEG), repetition is greedy.
- Capture points record a PEG_TEXT span; action markers record an empty span
  at the current position. A rule's own span is recorded after all spans of
  its sub-matches.
"""

from __future__ import annotations

import logging
import string
from typing import Callable, Dict, List, Optional, Tuple

from lark import Tree

from .builder import TemplateBuilder
from .driver import execute
from .errors import ParseError
from .matcher import END_SYMBOL, Matcher, to_buffer
from .nodes import AST
from .rule_types import Rule, Span
from .syntax_tree import SyntaxNode, build_syntax_tree, format_syntax_tree, to_lark_tree
from .tokens import TokenRecorder

logger = logging.getLogger(__name__)

RuleFn = Callable[[], bool]

ACTIONS = ("create", "delete", "start", "stop", "check", "attach", "detach", "update")

# "routetable" must be tried before its prefix "route"
ENTITIES = (
    "vpc",
    "subnet",
    "instance",
    "role",
    "securitygroup",
    "routetable",
    "route",
    "internetgateway",
    "keypair",
    "policy",
    "group",
    "user",
    "tags",
    "bucket",
    "storageobject",
    "volume",
)

IDENTIFIER_CHARS = string.ascii_letters + "-_."
STRING_CHARS = string.ascii_letters + string.digits + "-_.:/"


class TemplateParser(Matcher):
    """
    Backtracking PEG parser for the template language.

    Grammar (ordered choice is '/'):
        Script        <- Spacing Statement+ EndOfFile
        Statement     <- Spacing (VarDeclaration / Expr / Declaration / Comment) Spacing EndOfLine*
        VarDeclaration <- Var <Identifier> Equal VarValue
        Declaration   <- <Identifier> Equal Expr
        Expr          <- <Action> MustWhiteSpacing <Entity> (MustWhiteSpacing Params)?
        Params        <- Param+
        Param         <- <Identifier> Equal Value WhiteSpacing
        Value         <- <CidrValue> / <IpValue> / <IntRangeValue> / <IntValue>
                         / RefValue / AliasValue / HoleValue / <StringValue>
        VarValue      <- HoleValue / <CidrValue> / <IpValue> / <IntRangeValue>
                         / <IntValue> / <StringValue>
        Comment       <- '#' (!EndOfLine .)* / '//' (!EndOfLine .)*

    The order of the Value alternatives matters: numeric and address forms are
    tried before the generic string, and CIDR before IP before plain integers.
    """

    def __init__(self, source: str = "", pretty: bool = False):
        super().__init__(source)
        self.pretty = pretty
        self.token_index = 0
        self.recorder = TokenRecorder()
        self.tokens: List[Span] = []

        self.rules: Dict[Rule, RuleFn] = {
            Rule.SCRIPT: self.rule_script,
            Rule.STATEMENT: self.rule_statement,
            Rule.ACTION: self.rule_action,
            Rule.ENTITY: self.rule_entity,
            Rule.VAR_DECLARATION: self.rule_var_declaration,
            Rule.DECLARATION: self.rule_declaration,
            Rule.EXPR: self.rule_expr,
            Rule.PARAMS: self.rule_params,
            Rule.PARAM: self.rule_param,
            Rule.IDENTIFIER: self.rule_identifier,
            Rule.VALUE: self.rule_value,
            Rule.VAR_VALUE: self.rule_var_value,
            Rule.STRING_VALUE: self.rule_string_value,
            Rule.CIDR_VALUE: self.rule_cidr_value,
            Rule.IP_VALUE: self.rule_ip_value,
            Rule.INT_VALUE: self.rule_int_value,
            Rule.INT_RANGE_VALUE: self.rule_int_range_value,
            Rule.REF_VALUE: self.rule_ref_value,
            Rule.ALIAS_VALUE: self.rule_alias_value,
            Rule.HOLE_VALUE: self.rule_hole_value,
            Rule.COMMENT: self.rule_comment,
            Rule.SPACING: self.rule_spacing,
            Rule.WHITE_SPACING: self.rule_white_spacing,
            Rule.MUST_WHITE_SPACING: self.rule_must_white_spacing,
            Rule.EQUAL: self.rule_equal,
            Rule.VAR: self.rule_var,
            Rule.SPACE: self.rule_space,
            Rule.WHITESPACE: self.rule_whitespace,
            Rule.END_OF_LINE: self.rule_end_of_line,
            Rule.END_OF_FILE: self.rule_end_of_file,
        }

    # ========================================================================
    # Entry points
    # ========================================================================

    def reset(self) -> None:
        """Re-arm the parser for self.source"""
        self.buffer = to_buffer(self.source)
        self.position = 0
        self.token_index = 0
        self.recorder = TokenRecorder()
        self.tokens = []

    def parse(self, rule: Rule = Rule.SCRIPT) -> None:
        """Run rule from the start of the source; raise ParseError if it fails"""
        self.reset()

        if rule not in self.rules:
            raise ValueError(f"{rule.value} is not a grammar rule")

        if self.rules[rule]():
            self.recorder.trim(self.token_index)
            self.tokens = self.recorder.tokens()
            logger.debug(
                "parsed %d characters into %d spans from %s",
                len(self.source), len(self.tokens), rule.value,
            )
            return

        err = ParseError(self.recorder.max, self.buffer, self.source, self.pretty)
        logger.debug("parse failed: %s", err.format())
        raise err

    def execute(self, builder: Optional[TemplateBuilder] = None) -> AST:
        """Run the semantic driver over the spans of the last successful parse"""
        if builder is None:
            builder = TemplateBuilder()
        execute(self.tokens, self.source, builder)
        return builder.ast

    def syntax_tree(self) -> Optional[SyntaxNode]:
        return build_syntax_tree(self.tokens)

    def lark_tree(self) -> Optional[Tree]:
        root = self.syntax_tree()
        return to_lark_tree(root, self.source) if root is not None else None

    def format_syntax_tree(self) -> str:
        return format_syntax_tree(self.syntax_tree(), self.source, pretty=self.pretty)

    def format_tokens(self) -> str:
        return "\n".join(f"{span.kind.value} {span.begin} {span.end}" for span in self.tokens)

    # ========================================================================
    # Combinators
    # ========================================================================

    def add(self, rule: Rule, begin: int) -> None:
        self.recorder.add(rule, begin, self.position, self.token_index)
        self.token_index += 1

    def save(self) -> Tuple[int, int]:
        return self.position, self.token_index

    def restore(self, state: Tuple[int, int]) -> None:
        self.position, self.token_index = state

    def rule(self, kind: Rule, *body: RuleFn) -> bool:
        """Match body as a sequence and record a span of kind around it"""
        state = self.save()
        begin = self.position

        for item in body:
            if not item():
                self.restore(state)
                return False

        self.add(kind, begin)
        return True

    def seq(self, *items: RuleFn) -> bool:
        state = self.save()

        for item in items:
            if not item():
                self.restore(state)
                return False

        return True

    def choice(self, *alternatives: RuleFn) -> bool:
        state = self.save()

        for alternative in alternatives:
            if alternative():
                return True
            self.restore(state)

        return False

    def star(self, item: RuleFn) -> bool:
        while True:
            state = self.save()
            if not item():
                self.restore(state)
                return True
            if self.position == state[0]:
                # Empty match: stop instead of looping forever
                return True

    def plus(self, item: RuleFn) -> bool:
        if not item():
            return False
        return self.star(item)

    def optional(self, item: RuleFn) -> bool:
        state = self.save()
        if not item():
            self.restore(state)
        return True

    def not_(self, item: RuleFn) -> bool:
        """Negative lookahead: never consumes input or keeps spans"""
        state = self.save()
        matched = item()
        self.restore(state)
        return not matched

    def capture(self, item: RuleFn) -> bool:
        begin = self.position
        if not item():
            return False
        self.add(Rule.PEG_TEXT, begin)
        return True

    def action(self, kind: Rule) -> bool:
        self.add(kind, self.position)
        return True

    def captured(self, item: RuleFn, kind: Rule) -> bool:
        """<item> followed by the action marker kind"""
        return self.seq(lambda: self.capture(item), lambda: self.action(kind))

    def keyword(self, words: Tuple[str, ...]) -> bool:
        return any(self.match_string(word) for word in words)

    def digits(self) -> bool:
        return self.plus(lambda: self.match_range("0", "9"))

    # ========================================================================
    # Statements
    # ========================================================================

    def rule_script(self) -> bool:
        return self.rule(
            Rule.SCRIPT,
            self.rule_spacing,
            lambda: self.plus(self.rule_statement),
            self.rule_end_of_file,
        )

    def rule_statement(self) -> bool:
        return self.rule(
            Rule.STATEMENT,
            self.rule_spacing,
            lambda: self.choice(
                self.rule_var_declaration,
                self.rule_expr,
                self.rule_declaration,
                self.rule_comment,
            ),
            self.rule_spacing,
            lambda: self.star(self.rule_end_of_line),
        )

    def rule_var_declaration(self) -> bool:
        return self.rule(
            Rule.VAR_DECLARATION,
            self.rule_var,
            lambda: self.capture(self.rule_identifier),
            lambda: self.action(Rule.ADD_VAR_IDENTIFIER),
            self.rule_equal,
            self.rule_var_value,
            lambda: self.action(Rule.LINE_DONE),
        )

    def rule_declaration(self) -> bool:
        return self.rule(
            Rule.DECLARATION,
            lambda: self.capture(self.rule_identifier),
            lambda: self.action(Rule.ADD_DECLARATION_IDENTIFIER),
            self.rule_equal,
            self.rule_expr,
        )

    def rule_expr(self) -> bool:
        return self.rule(
            Rule.EXPR,
            lambda: self.captured(self.rule_action, Rule.ADD_ACTION),
            self.rule_must_white_spacing,
            lambda: self.captured(self.rule_entity, Rule.ADD_ENTITY),
            lambda: self.optional(
                lambda: self.seq(self.rule_must_white_spacing, self.rule_params)
            ),
            lambda: self.action(Rule.LINE_DONE),
        )

    def rule_action(self) -> bool:
        return self.rule(Rule.ACTION, lambda: self.keyword(ACTIONS))

    def rule_entity(self) -> bool:
        return self.rule(Rule.ENTITY, lambda: self.keyword(ENTITIES))

    def rule_params(self) -> bool:
        return self.rule(Rule.PARAMS, lambda: self.plus(self.rule_param))

    def rule_param(self) -> bool:
        return self.rule(
            Rule.PARAM,
            lambda: self.captured(self.rule_identifier, Rule.ADD_PARAM_KEY),
            self.rule_equal,
            self.rule_value,
            self.rule_white_spacing,
        )

    def rule_identifier(self) -> bool:
        return self.rule(
            Rule.IDENTIFIER, lambda: self.plus(lambda: self.match_any_of(IDENTIFIER_CHARS))
        )

    def rule_comment(self) -> bool:
        def rest_of_line() -> bool:
            return self.star(
                lambda: self.seq(lambda: self.not_(self.rule_end_of_line), self.match_dot)
            )

        return self.rule(
            Rule.COMMENT,
            lambda: self.choice(
                lambda: self.seq(lambda: self.match_char("#"), rest_of_line),
                lambda: self.seq(
                    lambda: self.match_string("//"),
                    rest_of_line,
                    lambda: self.action(Rule.LINE_DONE),
                ),
            ),
        )

    # ========================================================================
    # Values
    # ========================================================================

    def rule_value(self) -> bool:
        return self.rule(
            Rule.VALUE,
            lambda: self.choice(
                lambda: self.captured(self.rule_cidr_value, Rule.ADD_PARAM_CIDR_VALUE),
                lambda: self.captured(self.rule_ip_value, Rule.ADD_PARAM_IP_VALUE),
                lambda: self.captured(self.rule_int_range_value, Rule.ADD_PARAM_VALUE),
                lambda: self.captured(self.rule_int_value, Rule.ADD_PARAM_INT_VALUE),
                self.dispatch_param_value,
            ),
        )

    def dispatch_param_value(self) -> bool:
        """Pick the remaining Value alternative from the leading character"""
        c = self.peek()

        if c == ord("$"):
            return self.seq(self.rule_ref_value, lambda: self.action(Rule.ADD_PARAM_REF_VALUE))
        if c == ord("@"):
            return self.seq(self.rule_alias_value, lambda: self.action(Rule.ADD_PARAM_ALIAS_VALUE))
        if c == ord("{"):
            return self.seq(self.rule_hole_value, lambda: self.action(Rule.ADD_PARAM_HOLE_VALUE))
        if c != END_SYMBOL and chr(c) in STRING_CHARS:
            return self.captured(self.rule_string_value, Rule.ADD_PARAM_VALUE)

        return False

    def rule_var_value(self) -> bool:
        return self.rule(
            Rule.VAR_VALUE,
            lambda: self.choice(
                lambda: self.seq(self.rule_hole_value, lambda: self.action(Rule.ADD_VAR_HOLE_VALUE)),
                lambda: self.captured(self.rule_cidr_value, Rule.ADD_VAR_CIDR_VALUE),
                lambda: self.captured(self.rule_ip_value, Rule.ADD_VAR_IP_VALUE),
                lambda: self.captured(self.rule_int_range_value, Rule.ADD_VAR_VALUE),
                lambda: self.captured(self.rule_int_value, Rule.ADD_VAR_INT_VALUE),
                lambda: self.captured(self.rule_string_value, Rule.ADD_VAR_VALUE),
            ),
        )

    def rule_string_value(self) -> bool:
        return self.rule(
            Rule.STRING_VALUE, lambda: self.plus(lambda: self.match_any_of(STRING_CHARS))
        )

    def rule_cidr_value(self) -> bool:
        return self.rule(
            Rule.CIDR_VALUE,
            self.digits, lambda: self.match_char("."),
            self.digits, lambda: self.match_char("."),
            self.digits, lambda: self.match_char("."),
            self.digits, lambda: self.match_char("/"),
            self.digits,
        )

    def rule_ip_value(self) -> bool:
        return self.rule(
            Rule.IP_VALUE,
            self.digits, lambda: self.match_char("."),
            self.digits, lambda: self.match_char("."),
            self.digits, lambda: self.match_char("."),
            self.digits,
        )

    def rule_int_value(self) -> bool:
        return self.rule(Rule.INT_VALUE, self.digits)

    def rule_int_range_value(self) -> bool:
        return self.rule(
            Rule.INT_RANGE_VALUE, self.digits, lambda: self.match_char("-"), self.digits
        )

    def rule_ref_value(self) -> bool:
        return self.rule(
            Rule.REF_VALUE,
            lambda: self.match_char("$"),
            lambda: self.capture(self.rule_identifier),
        )

    def rule_alias_value(self) -> bool:
        return self.rule(
            Rule.ALIAS_VALUE,
            lambda: self.match_char("@"),
            lambda: self.capture(self.rule_identifier),
        )

    def rule_hole_value(self) -> bool:
        return self.rule(
            Rule.HOLE_VALUE,
            lambda: self.match_char("{"),
            self.rule_white_spacing,
            lambda: self.capture(self.rule_identifier),
            self.rule_white_spacing,
            lambda: self.match_char("}"),
        )

    # ========================================================================
    # Layout
    # ========================================================================

    def rule_spacing(self) -> bool:
        return self.rule(Rule.SPACING, lambda: self.star(self.rule_space))

    def rule_white_spacing(self) -> bool:
        return self.rule(Rule.WHITE_SPACING, lambda: self.star(self.rule_whitespace))

    def rule_must_white_spacing(self) -> bool:
        return self.rule(Rule.MUST_WHITE_SPACING, lambda: self.plus(self.rule_whitespace))

    def rule_equal(self) -> bool:
        return self.rule(
            Rule.EQUAL, self.rule_spacing, lambda: self.match_char("="), self.rule_spacing
        )

    def rule_var(self) -> bool:
        return self.rule(
            Rule.VAR,
            self.rule_spacing,
            lambda: self.match_string("var"),
            self.rule_must_white_spacing,
        )

    def rule_space(self) -> bool:
        return self.rule(
            Rule.SPACE, lambda: self.choice(self.rule_whitespace, self.rule_end_of_line)
        )

    def rule_whitespace(self) -> bool:
        return self.rule(
            Rule.WHITESPACE,
            lambda: self.choice(lambda: self.match_char(" "), lambda: self.match_char("\t")),
        )

    def rule_end_of_line(self) -> bool:
        return self.rule(
            Rule.END_OF_LINE,
            lambda: self.choice(
                lambda: self.match_string("\r\n"),
                lambda: self.match_char("\n"),
                lambda: self.match_char("\r"),
            ),
        )

    def rule_end_of_file(self) -> bool:
        return self.rule(Rule.END_OF_FILE, lambda: self.not_(self.match_dot))


def parse_template(source: str, pretty: bool = False) -> AST:
    """
    Parse template source into an AST.

    Raises ParseError when the source does not match the grammar and
    InvalidLiteralError when an int, IP or CIDR value is malformed.
    """
    parser = TemplateParser(source, pretty=pretty)
    parser.parse()
    return parser.execute()
