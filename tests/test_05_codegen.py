"""Pytest-based codegen tests for the Luau writer.

Cases live in 05_codegen/*.tests. The expected section is a fragment that
must appear in the output, compared line by line with surrounding
whitespace ignored.
"""

from pathlib import Path

import pytest

from conftest import contains_normalized, discover_tests
from rsluau import transpile
from rsluau.backend.luau import write
from rsluau.config import Config
from rsluau.errors import SemanticError
from rsluau.frontend.bindings import BindingTables
from rsluau.ir import (
    Assign,
    BinaryOp,
    Call,
    Closure,
    Comment,
    ExprStmt,
    FunctionDecl,
    FuncDef,
    Grouped,
    LocalAssign,
    Module,
    Name,
    Number,
    Return,
    UnaryOp,
    VarDef,
)

CODEGEN_DIR = Path(__file__).parent / "05_codegen"


def pytest_generate_tests(metafunc):
    """Parametrize test_codegen over all .tests files."""
    if "codegen_input" in metafunc.fixturenames:
        params = [
            pytest.param(input_code, expected, id=test_id)
            for test_id, input_code, expected in discover_tests(CODEGEN_DIR)
        ]
        metafunc.parametrize("codegen_input,codegen_expected", params)


def test_codegen(codegen_input: str, codegen_expected: str):
    """Verify transpiler output contains the expected code."""
    output = transpile(codegen_input)
    if not contains_normalized(output, codegen_expected):
        pytest.fail(
            f"Expected not found in output:\n--- expected ---\n{codegen_expected}\n--- got ---\n{output}"
        )


def test_exact_output():
    source = "fn main() {\n    let a = 1;\n}\nlet b = 2;\n"
    assert transpile(source) == (
        "function main()\n"
        "    local a = 1\n"
        "end\n"
        "\n"
        "local b = 2\n"
    )


def test_empty_program():
    assert transpile("") == ""
    assert transpile("// just words") == "-- just words\n"


def test_main_export():
    output = transpile("fn main() {\n    println!(\"hi\");\n}", Config(use_main_func_export=True))
    assert output.endswith("end\n\nmain()\n")


def test_main_export_before_tail_return():
    output = transpile("fn main() { }\n5", Config(use_main_func_export=True))
    assert output == "function main()\nend\n\nmain()\nreturn 5\n"


def test_bindings_disabled():
    output = transpile('let n = "abc".len();', Config(use_luau_bindings=False))
    assert output == 'local n = ("abc").len()\n'


def test_range_helper_absent_when_unused():
    assert "_range" not in transpile("let a = 1;")


def test_range_helper_named_from_tables():
    tables = BindingTables(range_constructor="make_range")
    output = transpile("let r = 0..10;", None, tables)
    assert output.startswith("local function make_range(first, last)\n")
    assert output.endswith("local r = make_range(0, 10)\n")
    assert "_range(" not in output.replace("make_range(", "")


def test_return_before_trailing_statements():
    output = transpile("fn f() {\n    return 1;\n    g();\n}")
    assert output == "function f()\n    do return 1 end\n    g()\nend\n"


def test_writer_wraps_non_final_chunk_return():
    module = Module([Return([]), ExprStmt(Call(Name("g"), []))])
    assert write(module) == "do return end\ng()\n"


def test_guard_after_if_block():
    output = transpile("if a {\n}\nmatch a {\n    _ => f(),\n}\nlet b = 1;")
    assert ";(function()" in output


def test_guard_reset_inside_block():
    output = transpile("fn f() {\n    match a {\n        _ => g(),\n    }\n    h();\n}")
    assert "    (function()" in output


def test_writer_parenthesises_by_precedence():
    mul = BinaryOp(BinaryOp(Name("a"), "+", Name("b")), "*", Name("c"))
    sub_right = BinaryOp(Name("a"), "-", BinaryOp(Name("b"), "-", Name("c")))
    sub_left = BinaryOp(BinaryOp(Name("a"), "-", Name("b")), "-", Name("c"))
    assoc = BinaryOp(Name("a"), "and", BinaryOp(Name("b"), "and", Name("c")))
    module = Module(
        [
            LocalAssign([VarDef("x")], [mul]),
            LocalAssign([VarDef("y")], [sub_right]),
            LocalAssign([VarDef("z")], [sub_left]),
            LocalAssign([VarDef("w")], [assoc]),
        ]
    )
    assert write(module) == (
        "local x = (a + b) * c\n"
        "local y = a - (b - c)\n"
        "local z = a - b - c\n"
        "local w = a and b and c\n"
    )


def test_writer_unary_operands():
    module = Module(
        [
            LocalAssign([VarDef("a")], [UnaryOp("-", BinaryOp(Name("b"), "+", Name("c")))]),
            LocalAssign([VarDef("d")], [UnaryOp("not", Grouped(Name("e")))]),
            LocalAssign([VarDef("f")], [BinaryOp(UnaryOp("-", Name("g")), "^", Number("2"))]),
        ]
    )
    assert write(module) == (
        "local a = -(b + c)\n"
        "local d = not (e)\n"
        "local f = (-g) ^ 2\n"
    )


def test_writer_rejects_borrow():
    module = Module([ExprStmt(Call(Name("f"), [UnaryOp("&", Name("x"))]))])
    with pytest.raises(SemanticError):
        write(module)


def test_writer_calls_non_prefix_callee():
    callee = Closure([], [Return([Number("1")])])
    module = Module([Assign([Name("v")], [Call(callee, [])])])
    assert write(module) == "v = (function()\n    return 1\nend)()\n"


def test_writer_multiline_comment_level():
    module = Module([Comment("a ]] b\nc")])
    assert write(module) == "--[=[a ]] b\nc]=]\n"


def test_writer_blank_lines_around_functions():
    fn = FunctionDecl(FuncDef("f", []), [])
    module = Module(
        [
            LocalAssign([VarDef("a")], [Number("1")]),
            fn,
            fn,
            LocalAssign([VarDef("b")], [Number("2")]),
        ]
    )
    assert write(module) == (
        "local a = 1\n"
        "\n"
        "function f()\n"
        "end\n"
        "\n"
        "function f()\n"
        "end\n"
        "\n"
        "local b = 2\n"
    )


def test_writer_renames_keywords():
    module = Module([LocalAssign([VarDef("then")], [Name("nil")])])
    assert write(module) == "local then_ = nil\n"


def test_output_is_deterministic():
    source = "fn main() {\n    let r = 0..3;\n    let m = match r { _ => 1 };\n}"
    assert transpile(source) == transpile(source)
