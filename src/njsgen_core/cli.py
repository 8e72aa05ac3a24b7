from __future__ import annotations

import argparse
import sys

from .core import TOOL_VERSION, NjsGenError
from .commands import command_generate


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="njsgen",
        description="Generate ratjs native module glue code from a JSON IDL description.",
    )
    parser.add_argument("input", help="Path to IDL JSON.")
    parser.add_argument(
        "-o",
        "--output",
        help="Write the C module to path (default: input path with a .c suffix).",
    )
    parser.add_argument(
        "-v",
        "--validate",
        action="store_true",
        help="Validate the IDL against the packaged JSON schema before generating.",
    )
    parser.add_argument("--check", action="store_true", help="Fail when the output file is out of date.")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing files.")
    parser.add_argument("--print-diff", action="store_true", help="Print unified diff of the output change.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {TOOL_VERSION}")
    parser.set_defaults(func=command_generate)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return int(args.func(args))
    except NjsGenError as exc:
        print(f"njsgen error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
