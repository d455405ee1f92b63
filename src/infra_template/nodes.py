from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from typing_extensions import TypeAlias

from .errors import WrongNodeVariantError

logger = logging.getLogger(__name__)

# Values filled into holes and refs come from outside and may be anything.
Fills: TypeAlias = Mapping[str, Any]

# ---------- Nodes ----------

@dataclass
class IdentifierNode:
    ident: str
    val: Any = None

    def clone(self) -> IdentifierNode:
        return IdentifierNode(self.ident, self.val)

    def __str__(self) -> str:
        return self.ident


@dataclass
class VarNode:
    """`var name = value`, or `var name = {hole}` until the hole is filled"""
    identifier: IdentifierNode
    # Keyed by the variable name; holds at most one entry.
    hole: Dict[str, str] = field(default_factory=dict)

    def process_holes(self, fills: Fills) -> Dict[str, Any]:
        processed: Dict[str, Any] = {}

        for key, hole in list(self.hole.items()):
            if hole in fills:
                self.identifier.val = fills[hole]
                processed[key] = fills[hole]
                del self.hole[key]

        return processed

    def clone(self) -> VarNode:
        return VarNode(self.identifier.clone(), dict(self.hole))

    def __str__(self) -> str:
        name = self.identifier.ident
        if self.hole:
            return f"var {name} = {{{next(iter(self.hole.values()))}}}"
        return f"var {name} = {_format_value(self.identifier.val)}"


@dataclass
class ExpressionNode:
    """
    `action entity key=value ...`

    A parameter key lives in exactly one of params (literal values), refs
    ($name), aliases (@name) or holes ({name}); resolving a ref or hole moves
    the key into params.
    """
    action: str = ""
    entity: str = ""
    refs: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    aliases: Dict[str, str] = field(default_factory=dict)
    holes: Dict[str, str] = field(default_factory=dict)

    def set_param(self, key: str, value: Any) -> None:
        self._store(self.params, key, value)

    def set_ref(self, key: str, ref: str) -> None:
        self._store(self.refs, key, ref)

    def set_alias(self, key: str, alias: str) -> None:
        self._store(self.aliases, key, alias)

    def set_hole(self, key: str, hole: str) -> None:
        self._store(self.holes, key, hole)

    def _store(self, target: Dict[str, Any], key: str, value: Any) -> None:
        for kind in (self.refs, self.params, self.aliases, self.holes):
            if kind is not target:
                kind.pop(key, None)
        target[key] = value

    def process_holes(self, fills: Fills) -> Dict[str, Any]:
        processed: Dict[str, Any] = {}

        for key, hole in list(self.holes.items()):
            if hole in fills:
                del self.holes[key]
                self.params[key] = fills[hole]
                processed[key] = fills[hole]

        return processed

    def process_refs(self, fills: Fills) -> Dict[str, Any]:
        processed: Dict[str, Any] = {}

        for key, ref in list(self.refs.items()):
            if ref in fills:
                del self.refs[key]
                self.params[key] = fills[ref]
                processed[key] = fills[ref]

        return processed

    def clone(self) -> ExpressionNode:
        return ExpressionNode(
            action=self.action,
            entity=self.entity,
            refs=dict(self.refs),
            params=dict(self.params),
            aliases=dict(self.aliases),
            holes=dict(self.holes),
        )

    def __str__(self) -> str:
        rendered = [f"{k}=${v}" for k, v in self.refs.items()]
        rendered += [f"{k}={_format_value(v)}" for k, v in self.params.items()]
        rendered += [f"{k}=@{v}" for k, v in self.aliases.items()]
        rendered += [f"{k}={{{v}}}" for k, v in self.holes.items()]
        rendered.sort()

        return " ".join([self.action, self.entity, *rendered])


@dataclass
class DeclarationNode:
    """`name = expression`: name is bound to the result of the expression"""
    left: IdentifierNode
    right: ExpressionNode

    def process_holes(self, fills: Fills) -> Dict[str, Any]:
        return self.right.process_holes(fills)

    def process_refs(self, fills: Fills) -> Dict[str, Any]:
        return self.right.process_refs(fills)

    def clone(self) -> DeclarationNode:
        return DeclarationNode(self.left.clone(), self.right.clone())

    def __str__(self) -> str:
        return f"{self.left} = {self.right}"


Node: TypeAlias = Union[ExpressionNode, DeclarationNode, VarNode]


def _format_value(value: Any) -> str:
    return "" if value is None else str(value)


# ---------- Statements ----------

@dataclass
class Statement:
    node: Node
    # Written by whatever executes the statement; never by the parser.
    result: Any = None
    err: Optional[BaseException] = None

    def expression(self) -> ExpressionNode:
        match self.node:
            case ExpressionNode():
                return self.node
            case DeclarationNode(right=expr):
                return expr
            case _:
                raise WrongNodeVariantError(
                    f"unknown type of node {type(self.node).__name__}", self.node
                )

    def action(self) -> str:
        return self.expression().action

    def entity(self) -> str:
        return self.expression().entity

    def params(self) -> Dict[str, Any]:
        return self.expression().params

    def process_holes(self, fills: Fills) -> Dict[str, Any]:
        return self.node.process_holes(fills)

    def process_refs(self, fills: Fills) -> Dict[str, Any]:
        match self.node:
            case VarNode():
                return {}
            case _:
                return self.node.process_refs(fills)

    def clone(self) -> Statement:
        return Statement(self.node.clone(), self.result, self.err)

    def __str__(self) -> str:
        return str(self.node)


@dataclass
class AST:
    statements: List[Statement] = field(default_factory=list)

    def execution_statements(self) -> List[Statement]:
        """Statements an executor acts on: everything but var declarations"""
        return [stmt for stmt in self.statements if not isinstance(stmt.node, VarNode)]

    def clone(self) -> AST:
        return AST([stmt.clone() for stmt in self.statements])

    def var_values(self) -> Dict[str, Any]:
        """Values bound by var declarations whose holes are all filled"""
        values: Dict[str, Any] = {}

        for stmt in self.statements:
            match stmt.node:
                case VarNode(identifier=ident, hole=hole) if not hole:
                    values[ident.ident] = ident.val

        return values

    def hole_names(self) -> List[str]:
        names = set()

        for stmt in self.statements:
            match stmt.node:
                case VarNode(hole=hole):
                    names.update(hole.values())
                case ExpressionNode(holes=holes) | DeclarationNode(right=ExpressionNode(holes=holes)):
                    names.update(holes.values())

        return sorted(names)

    def process_holes(self, fills: Fills) -> Dict[str, Any]:
        """
        Fill holes in every statement. Returns the filled hole names mapped to
        their values; holes missing from fills stay in place.
        """
        before = set(self.hole_names())

        for stmt in self.statements:
            stmt.process_holes(fills)

        remaining = set(self.hole_names())
        filled = {name: fills[name] for name in sorted(before - remaining)}
        logger.debug("filled %d holes, %d remaining", len(filled), len(remaining))
        return filled

    def process_refs(self, fills: Fills) -> None:
        count = 0
        for stmt in self.statements:
            count += len(stmt.process_refs(fills))
        logger.debug("resolved %d refs", count)

    def __str__(self) -> str:
        return "\n".join(str(stmt) for stmt in self.statements)
