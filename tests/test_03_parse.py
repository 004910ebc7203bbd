"""Pytest-based parser tests."""

import signal
from pathlib import Path

import pytest

from conftest import discover_tests
from rsluau.errors import CompileError, ParseError
from rsluau.frontend.ast import (
    Assignment,
    BinaryExpression,
    ClosureExpression,
    CommentStatement,
    EnumDeclaration,
    ExpressionStatement,
    FunctionCall,
    FunctionDeclaration,
    Grouping,
    Identifier,
    IfStatement,
    MatchExpression,
    MemberExpression,
    NamedType,
    Number,
    PathExpression,
    ReAssignment,
    ReturnStatement,
    String,
    TupleType,
    UnaryExpression,
)
from rsluau.frontend.parse import parse
from rsluau.frontend.tokens import tokenize

PARSE_TIMEOUT = 5


def _timeout_handler(signum, frame):
    raise TimeoutError("parse() timed out")


signal.signal(signal.SIGALRM, _timeout_handler)

PARSE_DIR = Path(__file__).parent / "03_parse"


def parse_source(source: str):
    return parse(tokenize(source))


def pytest_generate_tests(metafunc):
    """Parametrize tests over parse test files."""
    if "parse_input" in metafunc.fixturenames:
        params = [
            pytest.param(input_code, expected.strip(), id=test_id)
            for test_id, input_code, expected in discover_tests(PARSE_DIR)
        ]
        metafunc.parametrize("parse_input,parse_expected", params)


def test_parse(parse_input: str, parse_expected: str):
    """Verify parser produces expected result."""
    parse_error: CompileError | None = None
    try:
        signal.alarm(PARSE_TIMEOUT)
        parse_source(parse_input)
    except CompileError as e:
        parse_error = e
    finally:
        signal.alarm(0)

    if parse_expected == "ok":
        if parse_error is not None:
            pytest.fail(f"Expected ok, got parse error: {parse_error}")
    elif parse_expected.startswith("error:"):
        expected_msg = parse_expected[6:].strip()
        if parse_error is None:
            pytest.fail(
                f"Expected error containing '{expected_msg}', but parsing succeeded"
            )
        assert expected_msg in str(parse_error)
    else:
        pytest.fail(f"Unknown expected format: {parse_expected}")


def first_value(source: str):
    stmt = parse_source(source).statements[0]
    assert isinstance(stmt, Assignment)
    return stmt.values[0]


def test_error_carries_expected_and_actual():
    with pytest.raises(ParseError) as info:
        parse_source("let a 1;")
    err = info.value
    assert (err.line, err.col) == (1, 7)
    assert err.expected == "Equal"
    assert err.actual == "Number"
    assert str(err) == "expected Equal, got Number '1' at line 1 col 7"


def test_product_binds_tighter_than_sum():
    value = first_value("let a = 1 + 2 * 3;")
    assert isinstance(value, BinaryExpression)
    assert value.op == "+"
    assert isinstance(value.right, BinaryExpression)
    assert value.right.op == "*"


def test_sum_is_left_associative():
    value = first_value("let a = 1 - 2 - 3;")
    assert value.op == "-"
    assert isinstance(value.left, BinaryExpression)
    assert value.left.op == "-"
    assert value.right == Number(value.right.pos, "3")


def test_logical_and_is_one_operator():
    value = first_value("let a = x && y;")
    assert isinstance(value, BinaryExpression)
    assert value.op == "&&"
    assert isinstance(value.right, Identifier)


def test_spaced_ampersands_are_bitand_of_borrow():
    value = first_value("let a = x & &y;")
    assert value.op == "&"
    assert isinstance(value.right, UnaryExpression)
    assert value.right.op == "&"


def test_or_looser_than_and():
    value = first_value("let a = x || y && z;")
    assert value.op == "||"
    assert value.right.op == "&&"


def test_comparison_above_bitwise():
    value = first_value("let a = x & 1 == 0;")
    assert value.op == "=="
    assert value.left.op == "&"


def test_shift_operators():
    value = first_value("let a = x << 2 >> 1;")
    assert value.op == ">>"
    assert value.left.op == "<<"


def test_range_loosest():
    value = first_value("let r = 0..n + 1;")
    assert value.op == ".."
    assert value.right.op == "+"


def test_unary_binds_tighter_than_binary():
    value = first_value("let a = -x * y;")
    assert value.op == "*"
    assert isinstance(value.left, UnaryExpression)
    assert value.left.op == "-"


def test_borrow_mut_drops_mut():
    value = first_value("let a = &mut b;")
    assert isinstance(value, UnaryExpression)
    assert value.op == "&"
    assert value.operand == Identifier(value.operand.pos, "b")


def test_postfix_chain():
    value = first_value("let a = v.items[0].len();")
    assert isinstance(value, FunctionCall)
    assert isinstance(value.callee, MemberExpression)
    assert value.callee.property == "len"


def test_path_expression():
    value = first_value("let a = Color::Red;")
    assert isinstance(value, PathExpression)
    assert value.property == "Red"


def test_macro_bang_dropped():
    stmt = parse_source('println!("hi");').statements[0]
    assert isinstance(stmt, ExpressionStatement)
    assert isinstance(stmt.expr, FunctionCall)
    assert stmt.expr.callee.name == "println"
    assert stmt.expr.args == (String(stmt.expr.args[0].pos, "hi", '"'),)


def test_string_keeps_quote_kind():
    value = first_value("let a = 'c';")
    assert value.value == "c"
    assert value.quote == "'"


def test_compound_assignment_desugars():
    stmt = parse_source("x += 1;").statements[0]
    assert isinstance(stmt, ReAssignment)
    assert isinstance(stmt.local, Identifier)
    assert isinstance(stmt.value, BinaryExpression)
    assert stmt.value.op == "+"
    assert stmt.value.left.name == "x"


def test_compound_assignment_groups_binary_value():
    stmt = parse_source("x *= a + b;").statements[0]
    assert stmt.value.op == "*"
    assert isinstance(stmt.value.right, Grouping)


def test_shift_compound_assignment():
    stmt = parse_source("x <<= 2;").statements[0]
    assert isinstance(stmt, ReAssignment)
    assert stmt.value.op == "<<"


def test_plain_reassignment_not_equality():
    stmts = parse_source("x = 1;\nx == 1;").statements
    assert isinstance(stmts[0], ReAssignment)
    assert isinstance(stmts[1], ExpressionStatement)
    assert stmts[1].expr.op == "=="


def test_member_assignment():
    stmt = parse_source("t.x = 1;").statements[0]
    assert isinstance(stmt, ReAssignment)
    assert isinstance(stmt.local, MemberExpression)


def test_tail_expression_is_implicit_return():
    fn = parse_source("fn f() -> i32 { 1 + 2 }").statements[0]
    assert isinstance(fn, FunctionDeclaration)
    ret = fn.body[0]
    assert isinstance(ret, ReturnStatement)
    assert ret.implicit
    assert ret.values[0].op == "+"


def test_explicit_return():
    fn = parse_source("fn f() { return; }").statements[0]
    ret = fn.body[0]
    assert isinstance(ret, ReturnStatement)
    assert not ret.implicit
    assert ret.values == ()


def test_generic_types_nest():
    fn = parse_source("fn f(m: HashMap<String, Vec<Vec<u8>>>) {}").statements[0]
    typ = fn.func_def.params[0].typ
    assert isinstance(typ, NamedType)
    assert typ.name.name == "HashMap"
    inner = typ.generic_args[1]
    assert inner.name.name == "Vec"
    assert inner.generic_args[0].generic_args[0].name.name == "u8"


def test_path_type_keeps_last_segment():
    fn = parse_source("fn f(m: std::rc::Rc<i32>) {}").statements[0]
    assert fn.func_def.params[0].typ.name.name == "Rc"


def test_unit_return_type():
    fn = parse_source("fn f() -> () {}").statements[0]
    assert fn.func_def.return_type == TupleType(fn.func_def.return_type.pos, ())


def test_reference_types_dropped():
    fn = parse_source("fn f(s: &mut String, t: &str) {}").statements[0]
    assert [p.typ.name.name for p in fn.func_def.params] == ["String", "str"]


def test_self_params():
    fn = parse_source("fn f(&mut self, x: i32) {}").statements[0]
    assert [p.name for p in fn.func_def.params] == ["self", "x"]
    assert fn.func_def.params[0].typ is None


def test_generic_params_dropped():
    fn = parse_source("fn f<T: Clone>(x: T) -> T { x }").statements[0]
    assert fn.func_def.name == "f"
    assert fn.func_def.params[0].typ.name.name == "T"


def test_else_if_chain():
    stmt = parse_source("if a { } else if b { } else { c(); }").statements[0]
    assert isinstance(stmt, IfStatement)
    assert stmt.else_body is None
    assert isinstance(stmt.else_if, IfStatement)
    assert stmt.else_if.else_if is None
    assert len(stmt.else_if.else_body) == 1


def test_enum_members():
    stmt = parse_source("enum Color { Red, Green, Blue, }").statements[0]
    assert isinstance(stmt, EnumDeclaration)
    assert stmt.members == ("Red", "Green", "Blue")


def test_match_arms():
    value = first_value(
        "let m = match n {\n"
        "    1 | 2 => a,\n"
        "    3..5 => { b(); }\n"
        "    _ => return c,\n"
        "};"
    )
    assert isinstance(value, MatchExpression)
    assert [c.pattern.op for c in value.cases[:2]] == ["|", ".."]
    assert value.cases[0].body[0].implicit
    assert isinstance(value.cases[1].body[0], ExpressionStatement)
    assert not value.cases[2].body[0].implicit


def test_closure_forms():
    stmts = parse_source("let f = |a, b: i32| a + b;\nlet g = || { return 1; };").statements
    f = stmts[0].values[0]
    assert isinstance(f, ClosureExpression)
    assert [p.name for p in f.params] == ["a", "b"]
    assert f.params[1].typ.name.name == "i32"
    assert f.body[0].implicit
    g = stmts[1].values[0]
    assert g.params == ()
    assert not g.body[0].implicit


def test_comments_become_statements():
    stmts = parse_source("// one\nlet a = 1; /* two */\n/// three").statements
    assert isinstance(stmts[0], CommentStatement)
    assert stmts[0].text == " one"
    assert stmts[2].text == " two "
    assert stmts[3].text == " three"


def test_comment_inside_expression_is_skipped():
    value = first_value("let a = 1 + /* note */ 2;")
    assert value.op == "+"


def test_positions():
    stmts = parse_source("let a = 1;\n  let b = a;").statements
    assert (stmts[1].pos.line, stmts[1].pos.col) == (2, 3)
    assert (stmts[1].locals[0].pos.line, stmts[1].locals[0].pos.col) == (2, 7)


def test_empty_program():
    assert parse_source("").statements == ()
    assert parse_source("  // only a comment\n").statements[0].text == " only a comment"
