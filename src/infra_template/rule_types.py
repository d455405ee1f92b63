"""
Rule kinds for the template grammar

Shared between the grammar engine, the tree builder and the semantic driver
to avoid circular dependencies.
"""

from dataclasses import dataclass
from enum import Enum


class Rule(Enum):
    """Rule kinds - one per grammar production, capture point or action marker"""

    UNKNOWN = "Unknown"

    # Productions
    SCRIPT = "Script"
    STATEMENT = "Statement"
    ACTION = "Action"
    ENTITY = "Entity"
    VAR_DECLARATION = "VarDeclaration"
    DECLARATION = "Declaration"
    EXPR = "Expr"
    PARAMS = "Params"
    PARAM = "Param"
    IDENTIFIER = "Identifier"
    VALUE = "Value"
    VAR_VALUE = "VarValue"
    STRING_VALUE = "StringValue"
    CIDR_VALUE = "CidrValue"
    IP_VALUE = "IpValue"
    INT_VALUE = "IntValue"
    INT_RANGE_VALUE = "IntRangeValue"
    REF_VALUE = "RefValue"
    ALIAS_VALUE = "AliasValue"
    HOLE_VALUE = "HoleValue"
    COMMENT = "Comment"
    SPACING = "Spacing"
    WHITE_SPACING = "WhiteSpacing"
    MUST_WHITE_SPACING = "MustWhiteSpacing"
    EQUAL = "Equal"
    VAR = "Var"
    SPACE = "Space"
    WHITESPACE = "Whitespace"
    END_OF_LINE = "EndOfLine"
    END_OF_FILE = "EndOfFile"

    # Capture point: the matched text becomes the driver's current text
    PEG_TEXT = "PegText"

    # Action markers (always empty spans)
    ADD_VAR_IDENTIFIER = "AddVarIdentifier"
    ADD_VAR_VALUE = "AddVarValue"
    ADD_VAR_INT_VALUE = "AddVarIntValue"
    ADD_VAR_CIDR_VALUE = "AddVarCidrValue"
    ADD_VAR_IP_VALUE = "AddVarIpValue"
    ADD_VAR_HOLE_VALUE = "AddVarHoleValue"
    ADD_DECLARATION_IDENTIFIER = "AddDeclarationIdentifier"
    ADD_ACTION = "AddAction"
    ADD_ENTITY = "AddEntity"
    ADD_PARAM_KEY = "AddParamKey"
    ADD_PARAM_VALUE = "AddParamValue"
    ADD_PARAM_INT_VALUE = "AddParamIntValue"
    ADD_PARAM_CIDR_VALUE = "AddParamCidrValue"
    ADD_PARAM_IP_VALUE = "AddParamIpValue"
    ADD_PARAM_REF_VALUE = "AddParamRefValue"
    ADD_PARAM_ALIAS_VALUE = "AddParamAliasValue"
    ADD_PARAM_HOLE_VALUE = "AddParamHoleValue"
    LINE_DONE = "LineDone"


# Action marker -> TemplateBuilder method name
ACTION_RULES = {
    Rule.ADD_VAR_IDENTIFIER: "add_var_identifier",
    Rule.ADD_VAR_VALUE: "add_var_value",
    Rule.ADD_VAR_INT_VALUE: "add_var_int_value",
    Rule.ADD_VAR_CIDR_VALUE: "add_var_cidr_value",
    Rule.ADD_VAR_IP_VALUE: "add_var_ip_value",
    Rule.ADD_VAR_HOLE_VALUE: "add_var_hole_value",
    Rule.ADD_DECLARATION_IDENTIFIER: "add_declaration_identifier",
    Rule.ADD_ACTION: "add_action",
    Rule.ADD_ENTITY: "add_entity",
    Rule.ADD_PARAM_KEY: "add_param_key",
    Rule.ADD_PARAM_VALUE: "add_param_value",
    Rule.ADD_PARAM_INT_VALUE: "add_param_int_value",
    Rule.ADD_PARAM_CIDR_VALUE: "add_param_cidr_value",
    Rule.ADD_PARAM_IP_VALUE: "add_param_ip_value",
    Rule.ADD_PARAM_REF_VALUE: "add_param_ref_value",
    Rule.ADD_PARAM_ALIAS_VALUE: "add_param_alias_value",
    Rule.ADD_PARAM_HOLE_VALUE: "add_param_hole_value",
    Rule.LINE_DONE: "line_done",
}


@dataclass(frozen=True)
class Span:
    """Half-open [begin, end) range of the buffer matched by a rule"""

    kind: Rule
    begin: int
    end: int

    @property
    def empty(self) -> bool:
        return self.begin == self.end

    def contains(self, other: "Span") -> bool:
        return other.begin >= self.begin and other.end <= self.end

    def __repr__(self):
        return f"Span({self.kind.value}, {self.begin}, {self.end})"
