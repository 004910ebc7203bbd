"""CLI tests for the rsluau entry point.

Test cases live in 01_cli/*.tests files. Format:

    === test name
    args: --stop-at parse
    source code here
    (stdin for the transpiler)
    ---
    exit: 0
    stderr-contains: error: some message
    stdout-contains: local a = 1
    stdout-empty: true
    stderr-empty: true
    ---

Special directives in the input section:
    args:           CLI arguments (first line, required)
    stdin-bytes:    hex-encoded raw bytes instead of text (e.g. "ff fe")

Assertion directives in the expected section:
    exit:             exact exit code
    stderr-contains:  stderr must contain substring
    stderr-empty:     stderr must be empty
    stdout-contains:  stdout must contain substring
    stdout-empty:     stdout must be empty
"""

import subprocess
import sys
from pathlib import Path

import pytest

from conftest import PROJECT_DIR, parse_test_file

CLI_DIR = Path(__file__).parent / "01_cli"


def _parse_case(input_text: str, expected_text: str) -> dict:
    """Parse input + expected sections into a test case dict."""
    input_lines = input_text.split("\n")
    case: dict = {
        "args": [],
        "stdin": None,
        "stdin_bytes": None,
        "assertions": [],
    }
    body_start = 0
    if input_lines and input_lines[0].startswith("args:"):
        args_str = input_lines[0][5:].strip()
        case["args"] = args_str.split() if args_str else []
        body_start = 1

    remaining = input_lines[body_start:]
    if remaining and remaining[0].startswith("stdin-bytes:"):
        hex_str = remaining[0][len("stdin-bytes:") :].strip()
        case["stdin_bytes"] = bytes.fromhex(hex_str)
    else:
        case["stdin"] = "\n".join(remaining)

    for line in expected_text.split("\n"):
        line = line.strip()
        if not line:
            continue
        if line.startswith("exit:"):
            case["assertions"].append(("exit", int(line[5:].strip())))
        elif line.startswith("stderr-contains:"):
            case["assertions"].append(("stderr-contains", line[16:].strip()))
        elif line.startswith("stderr-empty:"):
            case["assertions"].append(("stderr-empty", None))
        elif line.startswith("stdout-contains:"):
            case["assertions"].append(("stdout-contains", line[16:].strip()))
        elif line.startswith("stdout-empty:"):
            case["assertions"].append(("stdout-empty", None))
    return case


def discover_cli_tests() -> list[tuple[str, dict]]:
    """Find all CLI tests across .tests files."""
    results = []
    for test_file in sorted(CLI_DIR.glob("*.tests")):
        for name, test_input, expected in parse_test_file(test_file):
            test_id = f"{test_file.stem}/{name}"
            results.append((test_id, _parse_case(test_input, expected)))
    return results


def run_cli(args: list[str], stdin_data: bytes) -> subprocess.CompletedProcess[bytes]:
    """Run the rsluau CLI as a subprocess."""
    cmd = [sys.executable, "-m", "rsluau.cli", *args]
    return subprocess.run(
        cmd,
        input=stdin_data,
        capture_output=True,
        cwd=PROJECT_DIR,
    )


def check_assertions(
    result: subprocess.CompletedProcess[bytes], assertions: list[tuple]
) -> None:
    """Check all assertions against a CLI result."""
    for kind, value in assertions:
        if kind == "exit":
            assert result.returncode == value, (
                f"expected exit {value}, got {result.returncode}"
                f"\nstderr: {result.stderr.decode(errors='replace')}"
            )
        elif kind == "stderr-contains":
            actual = result.stderr.decode(errors="replace")
            assert value in actual, (
                f"expected stderr to contain {value!r}, got {actual!r}"
            )
        elif kind == "stderr-empty":
            assert result.stderr == b"", f"expected empty stderr, got {result.stderr!r}"
        elif kind == "stdout-contains":
            actual = result.stdout.decode(errors="replace")
            assert value in actual, (
                f"expected stdout to contain {value!r}, got {actual!r}"
            )
        elif kind == "stdout-empty":
            assert result.stdout == b"", (
                f"expected empty stdout, got {result.stdout[:200]!r}"
            )


def pytest_generate_tests(metafunc):
    """Parametrize test_cli over all .tests files."""
    if "cli_case" in metafunc.fixturenames:
        tests = discover_cli_tests()
        params = [pytest.param(case, id=test_id) for test_id, case in tests]
        metafunc.parametrize("cli_case", params)


def test_cli(cli_case: dict) -> None:
    """Run a single CLI test case from .tests file."""
    if cli_case["stdin_bytes"] is not None:
        stdin_data = cli_case["stdin_bytes"]
    else:
        stdin_data = (cli_case["stdin"] or "").encode()
    result = run_cli(cli_case["args"], stdin_data)
    check_assertions(result, cli_case["assertions"])


def test_input_and_output_files(tmp_path: Path) -> None:
    src = tmp_path / "main.rs"
    src.write_text("fn main() {\n    println!(\"hi\");\n}\n")
    out = tmp_path / "main.luau"
    result = run_cli(["-i", str(src), "-o", str(out), "--main-export"], b"")
    assert result.returncode == 0, result.stderr.decode(errors="replace")
    assert result.stdout == b""
    text = out.read_text()
    assert 'print("hi")' in text
    assert text.rstrip("\n").endswith("main()")


def test_positional_input_file(tmp_path: Path) -> None:
    src = tmp_path / "a.rs"
    src.write_text("let a = 1;\n")
    result = run_cli([str(src)], b"")
    assert result.returncode == 0
    assert result.stdout.decode() == "local a = 1\n"


def test_missing_input_file(tmp_path: Path) -> None:
    result = run_cli([str(tmp_path / "nope.rs")], b"")
    assert result.returncode == 1
    assert b"cannot open" in result.stderr
