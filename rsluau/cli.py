"""Command-line entry point: Rust-like source in, Luau out."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass

import structlog

from .backend.luau import write
from .config import Config
from .errors import CompileError
from .frontend.bindings import DEFAULT_BINDINGS
from .frontend.lowering import lower
from .frontend.parse import parse
from .frontend.tokens import tokenize
from .serialize import to_json

PHASES: list[str] = ["tokens", "parse", "lower"]

USAGE: str = """\
rsluau [OPTIONS] [INPUT] [-o OUTPUT]

Transpile a Rust-like source file to Luau. Reads stdin when no input is given.

Options:
  -i, --input FILE      Read source from FILE
  -o, --output FILE     Write output to FILE instead of stdout
  -n, --interactive     Read source from stdin
  --stop-at PHASE       Stop after phase and dump JSON: tokens, parse, lower
  --no-luau-bindings    Disable function, method and type name substitution
  --main-export         Append a call to main(); fail if main is missing
  --roblox-bindings     Reserved, no effect
  --fold-constants      Reserved, no effect
  -v, --verbose         Log debug events to stderr
  -h, --help            Show this help message
"""


@dataclass
class Options:
    input_file: str | None = None
    output_file: str | None = None
    interactive: bool = False
    stop_at: str | None = None
    verbose: bool = False
    use_luau_bindings: bool = True
    use_main_func_export: bool = False
    use_roblox_bindings: bool = False
    fold_constants: bool = False

    def config(self) -> Config:
        return Config(
            use_roblox_bindings=self.use_roblox_bindings,
            fold_constants=self.fold_constants,
            use_luau_bindings=self.use_luau_bindings,
            use_main_func_export=self.use_main_func_export,
        )


def configure_logging(verbose: bool) -> None:
    """Route structlog through stdlib logging on stderr; stdout carries output only."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=level, format="%(message)s", force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def _usage_error(msg: str) -> None:
    print("error: " + msg, file=sys.stderr)
    sys.exit(2)


def parse_args(args: list[str]) -> Options:
    """Parse command-line arguments. Exits with 2 on usage errors."""
    opts = Options()
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            sys.exit(0)
        elif arg in ("-i", "--input", "-o", "--output", "--stop-at"):
            if i + 1 >= len(args):
                _usage_error(arg + " requires an argument")
            value = args[i + 1]
            if arg == "-o" or arg == "--output":
                opts.output_file = value
            elif arg == "--stop-at":
                opts.stop_at = value
            else:
                if opts.input_file is not None:
                    _usage_error("unexpected argument '" + value + "'")
                opts.input_file = value
            i += 2
        elif arg == "-n" or arg == "--interactive":
            opts.interactive = True
            i += 1
        elif arg == "-v" or arg == "--verbose":
            opts.verbose = True
            i += 1
        elif arg == "--no-luau-bindings":
            opts.use_luau_bindings = False
            i += 1
        elif arg == "--main-export":
            opts.use_main_func_export = True
            i += 1
        elif arg == "--roblox-bindings":
            opts.use_roblox_bindings = True
            i += 1
        elif arg == "--fold-constants":
            opts.fold_constants = True
            i += 1
        elif arg.startswith("-") and arg != "-":
            _usage_error("unknown flag '" + arg + "'")
        else:
            if opts.input_file is not None:
                _usage_error("unexpected argument '" + arg + "'")
            opts.input_file = arg
            i += 1
    if opts.interactive and opts.input_file is not None:
        _usage_error("--interactive reads stdin and takes no input file")
    if opts.input_file == "-":
        opts.input_file = None
    if opts.stop_at is not None and opts.stop_at not in PHASES:
        _usage_error("unknown phase '" + opts.stop_at + "'")
    return opts


def read_source(input_file: str | None) -> tuple[str, int]:
    """Read source from file or stdin. Returns (source, exit_code) where exit_code 0 means OK."""
    if input_file is not None:
        try:
            with open(input_file, "rb") as f:
                raw = f.read()
        except OSError:
            print("error: cannot open '" + input_file + "'", file=sys.stderr)
            return ("", 1)
    else:
        raw = sys.stdin.buffer.read()
    try:
        source = raw.decode("utf-8")
    except ValueError:
        print("error: invalid utf-8 in input", file=sys.stderr)
        return ("", 1)
    return (source, 0)


def write_output(output: str, output_file: str | None) -> int:
    """Write output to file or stdout. Returns 0 on success, 1 on error."""
    if output_file is not None:
        try:
            with open(output_file, "w", encoding="utf-8") as f:
                f.write(output)
        except OSError:
            print("error: cannot write '" + output_file + "'", file=sys.stderr)
            return 1
        return 0
    sys.stdout.write(output)
    return 0


def run_pipeline(source: str, config: Config, stop_at: str | None) -> str:
    """Run tokenize -> parse -> lower -> write. Raises CompileError on failure."""
    tokens = tokenize(source, config)
    if stop_at == "tokens":
        return to_json(tokens) + "\n"
    program = parse(tokens, config)
    if stop_at == "parse":
        return to_json(program) + "\n"
    module = lower(program, config, DEFAULT_BINDINGS)
    if stop_at == "lower":
        return to_json(module) + "\n"
    return write(module, DEFAULT_BINDINGS.range_constructor)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    opts = parse_args(argv if argv is not None else sys.argv[1:])
    configure_logging(opts.verbose)
    source, err = read_source(opts.input_file)
    if err != 0:
        return err
    if source.strip() == "":
        print("error: no input provided", file=sys.stderr)
        return 2
    try:
        output = run_pipeline(source, opts.config(), opts.stop_at)
    except CompileError as e:
        print("error: " + str(e), file=sys.stderr)
        return 1
    return write_output(output, opts.output_file)


if __name__ == "__main__":
    sys.exit(main())
