"""
Incremental AST construction driven by the grammar's action markers.

TemplateBuilder owns the AST under construction plus the cursor the driver
moves through it: the statement being built and the parameter key most
recently introduced. A builder serves exactly one parse.

Each operation expects a statement of a particular variant to be open.
Calling one out of order means the grammar and the driver disagree, and
raises WrongNodeVariantError instead of guessing.
"""

from __future__ import annotations

from typing import Optional

from .errors import WrongNodeVariantError
from .literals import parse_cidr, parse_int, parse_ip
from .nodes import (
    AST,
    DeclarationNode,
    ExpressionNode,
    IdentifierNode,
    Node,
    Statement,
    VarNode,
)


class TemplateBuilder:
    def __init__(self, ast: Optional[AST] = None):
        self.ast = ast if ast is not None else AST()
        self.current_statement: Optional[Statement] = None
        self.current_key = ""

    # ========================================================================
    # Cursor
    # ========================================================================

    def _add_statement(self, node: Node) -> Statement:
        stmt = Statement(node)
        self.current_statement = stmt
        self.ast.statements.append(stmt)
        return stmt

    def _current_expression(self) -> Optional[ExpressionNode]:
        stmt = self.current_statement
        if stmt is None:
            return None

        match stmt.node:
            case ExpressionNode():
                return stmt.node
            case DeclarationNode(right=expr):
                return expr
            case _:
                raise WrongNodeVariantError(
                    f"last expression: unexpected node type {type(stmt.node).__name__}",
                    stmt.node,
                )

    def _expression(self) -> ExpressionNode:
        expr = self._current_expression()
        if expr is None:
            raise WrongNodeVariantError("no expression under construction")
        return expr

    def _var_decl(self) -> VarNode:
        stmt = self.current_statement
        if stmt is None:
            raise WrongNodeVariantError("no var declaration under construction")

        match stmt.node:
            case VarNode():
                return stmt.node
            case _:
                raise WrongNodeVariantError(
                    f"expected var node type, got {type(stmt.node).__name__}", stmt.node
                )

    def line_done(self) -> None:
        self.current_statement = None
        self.current_key = ""

    # ========================================================================
    # Var declarations
    # ========================================================================

    def add_var_identifier(self, text: str) -> None:
        self._add_statement(VarNode(IdentifierNode(text)))

    def add_var_value(self, text: str) -> None:
        self._var_decl().identifier.val = text

    def add_var_int_value(self, text: str) -> None:
        self._var_decl().identifier.val = parse_int(text)

    def add_var_cidr_value(self, text: str) -> None:
        self._var_decl().identifier.val = parse_cidr(text)

    def add_var_ip_value(self, text: str) -> None:
        self._var_decl().identifier.val = parse_ip(text)

    def add_var_hole_value(self, text: str) -> None:
        vnode = self._var_decl()
        vnode.hole[vnode.identifier.ident] = text

    # ========================================================================
    # Declarations and expressions
    # ========================================================================

    def add_declaration_identifier(self, text: str) -> None:
        self._add_statement(DeclarationNode(IdentifierNode(text), ExpressionNode()))

    def add_action(self, text: str) -> None:
        expr = self._current_expression()
        if expr is None:
            self._add_statement(ExpressionNode(action=text))
        else:
            expr.action = text

    def add_entity(self, text: str) -> None:
        self._expression().entity = text

    def add_param_key(self, text: str) -> None:
        # Parameter maps always exist on ExpressionNode; only the key moves.
        self._expression()
        self.current_key = text

    def add_param_value(self, text: str) -> None:
        self._expression().set_param(self.current_key, text)

    def add_param_int_value(self, text: str) -> None:
        self._expression().set_param(self.current_key, parse_int(text))

    def add_param_cidr_value(self, text: str) -> None:
        self._expression().set_param(self.current_key, parse_cidr(text))

    def add_param_ip_value(self, text: str) -> None:
        self._expression().set_param(self.current_key, parse_ip(text))

    def add_param_ref_value(self, text: str) -> None:
        self._expression().set_ref(self.current_key, text)

    def add_param_alias_value(self, text: str) -> None:
        self._expression().set_alias(self.current_key, text)

    def add_param_hole_value(self, text: str) -> None:
        self._expression().set_hole(self.current_key, text)
