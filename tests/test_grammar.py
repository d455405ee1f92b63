from __future__ import annotations

from textwrap import dedent
from typing import Optional

import pytest

from tests.support.harness import (
    ParseError,
    TemplateParser,
    consumed,
    matches,
    node_kinds,
    parse_ok,
    spans_of,
)

from infra_template.errors import InvalidLiteralError, TemplateError
from infra_template.grammar import ACTIONS, ENTITIES, parse_template
from infra_template.rule_types import Rule

RULE_CASES = [
    pytest.param(Rule.ACTION, "created", "create", id="action-prefix"),
    pytest.param(Rule.ACTION, "destroy", None, id="action-unknown"),
    pytest.param(Rule.ENTITY, "routetable", "routetable", id="entity-routetable"),
    pytest.param(Rule.ENTITY, "route x", "route", id="entity-route"),
    pytest.param(Rule.ENTITY, "storageobject", "storageobject", id="entity-storageobject"),
    pytest.param(Rule.IDENTIFIER, "my-name.x_y9", "my-name.x_y", id="identifier-no-digits"),
    pytest.param(Rule.IDENTIFIER, "9lives", None, id="identifier-leading-digit"),
    pytest.param(Rule.STRING_VALUE, "ami-12:ab/c d", "ami-12:ab/c", id="string-chars"),
    pytest.param(Rule.CIDR_VALUE, "10.0.0.0/16", "10.0.0.0/16", id="cidr"),
    pytest.param(Rule.CIDR_VALUE, "10.0.0.0", None, id="cidr-needs-prefix"),
    pytest.param(Rule.CIDR_VALUE, "10-0.0.0/16", None, id="cidr-literal-dots"),
    pytest.param(Rule.IP_VALUE, "192.168.1.10 x", "192.168.1.10", id="ip"),
    pytest.param(Rule.IP_VALUE, "192.168.1", None, id="ip-three-parts"),
    pytest.param(Rule.INT_VALUE, "8080", "8080", id="int"),
    pytest.param(Rule.INT_RANGE_VALUE, "80-90", "80-90", id="int-range"),
    pytest.param(Rule.INT_RANGE_VALUE, "80", None, id="int-range-needs-dash"),
    pytest.param(Rule.REF_VALUE, "$net", "$net", id="ref"),
    pytest.param(Rule.REF_VALUE, "$9", None, id="ref-needs-identifier"),
    pytest.param(Rule.ALIAS_VALUE, "@main-vpc", "@main-vpc", id="alias"),
    pytest.param(Rule.HOLE_VALUE, "{ vpc.cidr }", "{ vpc.cidr }", id="hole-padded"),
    pytest.param(Rule.HOLE_VALUE, "{name", None, id="hole-unclosed"),
    pytest.param(Rule.COMMENT, "# note\nx", "# note", id="comment-hash"),
    pytest.param(Rule.COMMENT, "// note\r\nx", "// note", id="comment-slashes"),
    pytest.param(Rule.COMMENT, "/ note", None, id="comment-single-slash"),
    pytest.param(Rule.EQUAL, " =\t", " =\t", id="equal-padded"),
    pytest.param(Rule.EQUAL, "==", "=", id="equal-single"),
    pytest.param(Rule.MUST_WHITE_SPACING, " \tx", " \t", id="must-ws"),
    pytest.param(Rule.MUST_WHITE_SPACING, "x", None, id="must-ws-missing"),
    pytest.param(Rule.WHITE_SPACING, "  \nx", "  ", id="white-spacing-stops-at-eol"),
    pytest.param(Rule.SPACING, "\n \r\n\tx", "\n \r\n\t", id="spacing-crosses-lines"),
    pytest.param(Rule.END_OF_LINE, "\r\nx", "\r\n", id="eol-crlf"),
    pytest.param(Rule.END_OF_LINE, "\rx", "\r", id="eol-cr"),
    pytest.param(Rule.VAR, "var  x", "var  ", id="var-keyword"),
    pytest.param(Rule.VAR, "variable", None, id="var-needs-space"),
]


@pytest.mark.parametrize("rule, source, expected", RULE_CASES)
def test_rule_consumes(rule: Rule, source: str, expected: Optional[str]) -> None:
    assert consumed(source, rule) == expected


@pytest.mark.parametrize("action", ACTIONS)
def test_every_action_keyword(action: str) -> None:
    assert parse_template(f"{action} vpc").statements[0].action() == action


@pytest.mark.parametrize("entity", ENTITIES)
def test_every_entity_keyword(entity: str) -> None:
    assert parse_template(f"create {entity}").statements[0].entity() == entity


VALUE_CASES = [
    pytest.param("cidr=10.0.0.0/16", "params", "10.0.0.0/16", id="cidr"),
    pytest.param("cidr=10.0.0.12/16", "params", "10.0.0.0/16", id="cidr-masked"),
    pytest.param("ip=10.0.0.1", "params", "10.0.0.1", id="ip"),
    pytest.param("ports=80-90", "params", "80-90", id="int-range-as-string"),
    pytest.param("count=3", "params", 3, id="int"),
    pytest.param("type=t2.micro", "params", "t2.micro", id="string"),
    pytest.param("az=eu-west-1a", "params", "eu-west-1a", id="string-with-digits"),
    pytest.param("path=/srv/data", "params", "/srv/data", id="string-leading-slash"),
    pytest.param("vpc=$net", "refs", "net", id="ref"),
    pytest.param("vpc=@main-vpc", "aliases", "main-vpc", id="alias"),
    pytest.param("cidr={ block }", "holes", "block", id="hole"),
]


@pytest.mark.parametrize("param, field, expected", VALUE_CASES)
def test_value_alternatives(param: str, field: str, expected: object) -> None:
    expr = parse_template(f"create subnet {param}").statements[0].expression()
    key = param.split("=", 1)[0]
    assert getattr(expr, field) == {key: expected}


def test_cidr_tried_before_ip() -> None:
    parser = parse_ok("create vpc cidr=10.0.0.0/16")
    assert spans_of(parser, Rule.CIDR_VALUE, Rule.IP_VALUE) == [
        (Rule.CIDR_VALUE, "10.0.0.0/16")
    ]


def test_int_range_tried_before_int() -> None:
    parser = parse_ok("create securitygroup ports=22-23")
    assert spans_of(parser, Rule.INT_RANGE_VALUE, Rule.INT_VALUE) == [
        (Rule.INT_RANGE_VALUE, "22-23")
    ]


def test_routetable_not_cut_at_route() -> None:
    assert parse_template("create routetable vpc=$net").statements[0].entity() == "routetable"


def test_rollback_discards_abandoned_expression() -> None:
    # "create" matches as an action before the Expr alternative fails
    parser = parse_ok("created = create vpc")
    assert spans_of(parser, Rule.ADD_DECLARATION_IDENTIFIER, Rule.ADD_ACTION) == [
        (Rule.ADD_DECLARATION_IDENTIFIER, ""),
        (Rule.ADD_ACTION, ""),
    ]
    ast = parser.execute()
    assert node_kinds(ast) == ["declaration"]
    assert str(ast) == "created = create vpc"


def test_var_prefix_is_an_identifier() -> None:
    ast = parse_template("variable = create vpc")
    assert node_kinds(ast) == ["declaration"]
    assert ast.statements[0].node.left.ident == "variable"


def test_capture_precedes_action_marker() -> None:
    parser = parse_ok("create vpc name=web")
    kinds = [span.kind for span in parser.tokens]
    for i, kind in enumerate(kinds):
        if kind in (Rule.ADD_ACTION, Rule.ADD_ENTITY, Rule.ADD_PARAM_KEY, Rule.ADD_PARAM_VALUE):
            assert kinds[i - 1] is Rule.PEG_TEXT


def test_rule_span_follows_its_children() -> None:
    parser = parse_ok("create vpc")
    kinds = [span.kind for span in parser.tokens]
    assert kinds.index(Rule.ACTION) < kinds.index(Rule.EXPR) < kinds.index(Rule.STATEMENT)
    assert kinds[-1] is Rule.SCRIPT


def test_comments_and_blank_lines_make_no_statements() -> None:
    source = dedent(
        """\
        # header

        create vpc cidr=10.0.0.0/16 # trailing
        // between
           \t
        create subnet vpc=$vpc

        """
    )
    ast = parse_template(source)
    assert node_kinds(ast) == ["expression", "expression"]
    assert str(ast) == "create vpc cidr=10.0.0.0/16\ncreate subnet vpc=$vpc"


def test_crlf_source() -> None:
    ast = parse_template("var n = 2\r\ncreate instance count=$n\r\n")
    assert node_kinds(ast) == ["var", "expression"]


def test_whitespace_between_params() -> None:
    expr = parse_template("create\tinstance  name=web \t type = t2.micro ").statements[0].expression()
    assert expr.params == {"name": "web", "type": "t2.micro"}


VAR_CASES = [
    pytest.param("var n = 5", 5, id="int"),
    pytest.param("var c = 10.1.2.3/8", "10.0.0.0/8", id="cidr"),
    pytest.param("var ip = 10.0.0.1", "10.0.0.1", id="ip"),
    pytest.param("var r = 1-2", "1-2", id="int-range"),
    pytest.param("var s=hello", "hello", id="string"),
]


@pytest.mark.parametrize("source, expected", VAR_CASES)
def test_var_values(source: str, expected: object) -> None:
    node = parse_template(source).statements[0].node
    assert node.identifier.val == expected
    assert node.hole == {}


def test_var_hole_value() -> None:
    node = parse_template("var ip = { myip }").statements[0].node
    assert node.identifier.ident == "ip"
    assert node.identifier.val is None
    assert node.hole == {"ip": "myip"}


INVALID_SOURCES = [
    pytest.param("", id="empty"),
    pytest.param("   \n", id="blank-only"),
    pytest.param("create", id="missing-entity"),
    pytest.param("createvpc", id="missing-space"),
    pytest.param("destroy vpc", id="unknown-action"),
    pytest.param("create vpc cidr=", id="missing-value"),
    pytest.param("create vpc name=$", id="empty-ref"),
    pytest.param("var x = $y", id="var-ref"),
    pytest.param("var = 5", id="var-without-name"),
    pytest.param("create vpc cidr=10.0.0.0/abc", id="cidr-bad-prefix"),
]


@pytest.mark.parametrize("source", INVALID_SOURCES)
def test_parse_failures(source: str) -> None:
    with pytest.raises(ParseError):
        parse_template(source)


@pytest.mark.parametrize(
    "source",
    [
        pytest.param("create vpc cidr=10.0.0.0/33", id="cidr-prefix-range"),
        pytest.param("create instance ip=300.1.1.1", id="ip-octet-range"),
        pytest.param("var c = 10.0.0.256/8", id="var-cidr-octet"),
    ],
)
def test_malformed_literals_are_fatal(source: str) -> None:
    with pytest.raises(InvalidLiteralError) as excinfo:
        parse_template(source)
    assert isinstance(excinfo.value, TemplateError)


def test_parse_error_reports_furthest_span() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_template("create vpc cidr=10.0.0.0/abc")

    err = excinfo.value
    assert err.rule is Rule.IP_VALUE
    assert err.text == "10.0.0.0"
    assert (err.begin_line, err.begin_symbol) == (1, 17)
    assert (err.end_line, err.end_symbol) == (1, 25)
    assert str(err) == (
        'parse error near IpValue (line 1 symbol 17 - line 1 symbol 25):\n"10.0.0.0"'
    )


def test_parse_error_on_second_line() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_template("create vpc\nstart bogus")

    err = excinfo.value
    assert err.rule is Rule.WHITESPACE
    assert (err.begin_line, err.begin_symbol, err.end_line, err.end_symbol) == (2, 6, 2, 7)


def test_pretty_parse_error() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_template("create vpc cidr=10.0.0.0/abc", pretty=True)
    assert str(excinfo.value).startswith("parse error near \x1b[34mIpValue\x1b[m (line 1")


def test_parse_from_inner_rule() -> None:
    parser = parse_ok("create vpc a=1 trailing junk", Rule.EXPR)
    assert parser.source[: parser.position] == "create vpc a=1 "
    assert str(parser.execute()) == "create vpc a=1"


def test_parse_rejects_non_rule_kind() -> None:
    with pytest.raises(ValueError):
        TemplateParser("create vpc").parse(Rule.PEG_TEXT)


def test_parser_reuse() -> None:
    parser = parse_ok("create vpc")
    parser.source = "delete subnet"
    parser.parse()
    assert str(parser.execute()) == "delete subnet"


def test_format_tokens() -> None:
    parser = parse_ok("create vpc")
    lines = parser.format_tokens().splitlines()
    assert lines[0] == "Spacing 0 0"
    assert lines[-1] == "Script 0 10"
    assert "AddAction 6 6" in lines


def test_matches_helper_respects_prefix() -> None:
    assert matches("var x = 1", Rule.VAR_DECLARATION)
    assert not matches("create vpc", Rule.VAR_DECLARATION)
