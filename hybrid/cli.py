"""Command-line entry point."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field

from . import __version__
from .backend import Profile
from .frontend import ReadError, parse_file
from .serialize import ir_to_dict, to_json
from .transpiler import Transpiler, TranspilerOptions, analyze

TARGETS: list[str] = ["rust", "go"]

PHASES: list[str] = ["parse", "analyze"]

HINTS: dict[str, str] = {"rs": "rust", "golang": "go"}

USAGE: str = """\
hybrid-transpiler [OPTIONS] INPUT... [-o OUTPUT]

Options:
  -i, --input FILE    C++ source file (repeatable; positional inputs also accepted)
  -o, --output FILE   Write output to FILE (single input only)
  -t, --target TARGET Output language: rust, go (default rust)
  --stop-at PHASE     Print the IR as JSON after phase: parse, analyze
  --no-safety-checks  Omit null-pointer assertions and #![forbid(unsafe_code)]
  --no-comments       Drop doc comments and the generated-file banner
  --gen-tests         Also write a test scaffold
  -v, --verbose       Debug logging
  --version           Show the version and exit
  -h, --help          Show this help message
"""


class UsageError(Exception):
    """Bad command line; exit status 2."""


@dataclass
class Args:
    inputs: list[str] = field(default_factory=list)
    output: str | None = None
    target: str = "rust"
    stop_at: str | None = None
    safety_checks: bool = True
    comments: bool = True
    gen_tests: bool = False
    verbose: bool = False


def _value(args: list[str], i: int) -> str:
    if i + 1 >= len(args):
        raise UsageError(f"{args[i]} requires an argument")
    return args[i + 1]


def parse_args(argv: list[str]) -> Args:
    """Parse command-line arguments; --help and --version exit directly."""
    result = Args()
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            sys.exit(0)
        elif arg == "--version":
            print(f"hybrid-transpiler {__version__}")
            sys.exit(0)
        elif arg == "-i" or arg == "--input":
            result.inputs.append(_value(argv, i))
            i += 2
        elif arg == "-o" or arg == "--output":
            result.output = _value(argv, i)
            i += 2
        elif arg == "-t" or arg == "--target":
            result.target = _value(argv, i)
            i += 2
        elif arg == "--stop-at":
            result.stop_at = _value(argv, i)
            i += 2
        elif arg == "--no-safety-checks":
            result.safety_checks = False
            i += 1
        elif arg == "--no-comments":
            result.comments = False
            i += 1
        elif arg == "--gen-tests":
            result.gen_tests = True
            i += 1
        elif arg == "-v" or arg == "--verbose":
            result.verbose = True
            i += 1
        elif arg.startswith("-") and arg != "-":
            raise UsageError(f"unknown flag '{arg}'")
        else:
            result.inputs.append(arg)
            i += 1
    if result.target not in TARGETS:
        message = f"unknown target '{result.target}'"
        hint = HINTS.get(result.target.lower())
        if hint is not None:
            message += f" (did you mean '{hint}'?)"
        raise UsageError(message)
    if result.stop_at is not None and result.stop_at not in PHASES:
        raise UsageError(f"unknown phase '{result.stop_at}'")
    if not result.inputs:
        raise UsageError("no input files")
    if result.output is not None and len(result.inputs) > 1:
        raise UsageError("-o/--output needs exactly one input")
    return result


def dump_ir(args: Args) -> int:
    """Print each input's IR as JSON after the requested phase."""
    for path in args.inputs:
        try:
            ir = parse_file(path)
        except ReadError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        if args.stop_at == "analyze":
            analyze(ir)
        text = to_json(ir_to_dict(ir))
        if args.output is not None:
            try:
                with open(args.output, "w", encoding="utf-8") as f:
                    f.write(text + "\n")
            except OSError as e:
                print(f"error: cannot write '{args.output}': {e.strerror}", file=sys.stderr)
                return 1
        else:
            print(text)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        args = parse_args(sys.argv[1:] if argv is None else argv)
    except UsageError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.stop_at is not None:
        return dump_ir(args)
    options = TranspilerOptions(
        target=Profile(args.target),
        output_path=args.output,
        safety_checks=args.safety_checks,
        preserve_comments=args.comments,
        generate_tests=args.gen_tests,
    )
    transpiler = Transpiler(options)
    if not transpiler.transpile_batch(args.inputs):
        print(f"error: {transpiler.last_error}", file=sys.stderr)
        return 1
    return 0
