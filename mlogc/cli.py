"""Command-line entry point: lower a Go function to mlog text, optionally run it."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .api import dump_mlog
from .errors import FunctionNotFoundError, LoweringError
from .lowering_types import LoweringOptions
from .vm import execute
from . import constants

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lower Go source to Mindustry logic")
    parser.add_argument("file", nargs="?", help="Go source file (default: stdin)")
    parser.add_argument(
        "--function",
        "-f",
        default=constants.DEFAULT_FUNCTION_NAME,
        help="Function whose body is lowered (default: main)",
    )
    parser.add_argument(
        "--numbers", "-n", action="store_true", help="Prefix each line with its address"
    )
    parser.add_argument(
        "--comments", "-c", action="store_true", help="Append instruction comments"
    )
    parser.add_argument(
        "--start", type=int, default=0, help="Address of the first line (default: 0)"
    )
    parser.add_argument(
        "--stack-cell",
        default=constants.DEFAULT_STACK_CELL,
        help="Memory cell holding return addresses (default: bank1)",
    )
    parser.add_argument(
        "--run",
        action="store_true",
        help="Execute the output on the mlog machine and print its final state",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=1000,
        help="Maximum rows executed by --run (default: 1000)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def _machine_summary(output: str, start: int, max_steps: int) -> dict:
    state = execute(output, max_steps=max_steps, start=start)
    return {
        "halted": state.halted,
        "steps": state.steps,
        "printed": state.printed,
        "variables": state.variables,
    }


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )

    if args.file:
        with open(args.file) as f:
            source = f.read()
    else:
        source = sys.stdin.read()

    options = LoweringOptions(
        numbers=args.numbers,
        comments=args.comments,
        stack_cell=args.stack_cell,
    )
    try:
        output = dump_mlog(source, args.function, options, args.start)
    except (LoweringError, FunctionNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    sys.stdout.write(output)
    if args.run:
        summary = _machine_summary(output, args.start, args.max_steps)
        print(json.dumps(summary, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
