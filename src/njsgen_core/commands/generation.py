from __future__ import annotations

import argparse

from ..core import *  # noqa: F401,F403


def default_output_path(input_path: Path) -> Path:
    return input_path.with_suffix(".c")


def command_generate(args: argparse.Namespace) -> int:
    input_path = Path(args.input).resolve()
    output_path = Path(args.output).resolve() if args.output else default_output_path(input_path)

    idl = load_idl(input_path, validate_schema=bool(args.validate))
    ctxt = build_type_context(idl)
    text = generate_module(ctxt)

    status, diff = merge_into_file(output_path, text, dry_run=bool(args.dry_run), check=bool(args.check))
    print(f"[{input_path.name}] generate: output={status}")
    if args.print_diff and diff:
        print(diff)

    if args.check and status == "drift":
        return 1
    return 0
