"""specasm command line entry point."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from tabulate import tabulate

from .archspec import ArchSpec
from .assembler import Assembler, AssemblyResult
from .errors import LoadError, SpecError
from .literals import format_hex, hex_digits
from .loader import FileSystemLoader, env_search_paths
from .output import pack_words
from .repl import AssemblerREPL

LOG = logging.getLogger("specasm.cli")

FORMATS = ("hex", "bin", "json", "listing")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="specasm", description="Data-driven assembler")
    parser.add_argument("source", nargs="?", help="assembly source file")
    parser.add_argument("-a", "--arch", help="architecture to load before assembling (NAME or NAME.json)")
    parser.add_argument(
        "-I",
        "--include-path",
        action="append",
        default=[],
        type=Path,
        help="directory searched for .arch/.include/.module documents (repeatable)",
    )
    parser.add_argument("-o", "--output", type=Path, help="write output to this file instead of stdout")
    parser.add_argument("-f", "--format", choices=FORMATS, default="hex", help="output format (default hex)")
    parser.add_argument("-i", "--interactive", action="store_true", help="start the interactive assembler")
    parser.add_argument("-v", "--verbose", action="store_true", help="print assembly statistics")
    parser.add_argument("--werror", action="store_true", help="exit non-zero when any diagnostic is reported")
    parser.add_argument(
        "--history",
        type=Path,
        default=Path.home() / ".specasm-history",
        help="history file for the interactive assembler",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("SPECASM_LOG", "WARNING"),
        help="logging level (default WARNING, or $SPECASM_LOG)",
    )
    return parser


def build_loader(source: Optional[Path], include_paths: List[Path]) -> FileSystemLoader:
    paths: List[Path] = []
    if source is not None:
        paths.append(source.resolve().parent)
    paths.extend(include_paths)
    paths.extend(env_search_paths())
    return FileSystemLoader(paths)


def build_assembler(arch: Optional[str], loader: FileSystemLoader) -> Assembler:
    asm = Assembler(loader=loader)
    if arch:
        arch_path = Path(arch)
        if arch_path.suffix == ".json" and arch_path.is_file():
            asm.load_spec(ArchSpec.from_file(arch_path))
        else:
            asm.load_spec(loader.load_arch(arch), name=arch)
    return asm


def report_diagnostics(result: AssemblyResult, source: str, stream: TextIO) -> None:
    for diag in result.errors:
        kind = "error" if diag.fatal else "warning"
        print(f"{source}:{diag.line}: {kind}: {diag.msg}", file=stream)


def format_hex_output(result: AssemblyResult) -> str:
    digits = hex_digits(result.width)
    return "".join(format_hex(word, digits) + "\n" for word in result.output)


def format_listing(result: AssemblyResult) -> str:
    digits = max(4, hex_digits(result.width))
    rows = [
        [rec.line, format_hex(rec.offset, digits), rec.nbits, rec.insns]
        for rec in result.lines
    ]
    return tabulate(rows, headers=["line", "addr", "bits", "words"], tablefmt="github") + "\n"


def format_json(result: AssemblyResult) -> str:
    return json.dumps(result.to_dict(), indent=2) + "\n"


def write_result(result: AssemblyResult, fmt: str, output: Optional[Path]) -> None:
    if fmt == "bin":
        if output is None:
            raise ValueError("binary output requires -o/--output")
        output.write_bytes(pack_words(result.output, result.width))
        return
    if fmt == "json":
        text = format_json(result)
    elif fmt == "listing":
        text = format_listing(result)
    else:
        text = format_hex_output(result)
    if output is None:
        sys.stdout.write(text)
    else:
        output.write_text(text, encoding="utf-8")


def main(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    source = Path(args.source) if args.source else None
    if source is None and not args.interactive:
        parser.error("a source file is required unless --interactive is given")
    loader = build_loader(source, args.include_path)
    try:
        asm = build_assembler(args.arch, loader)
    except (LoadError, SpecError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.interactive:
        return AssemblerREPL(asm, history_path=args.history).run()

    assert source is not None
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"error: cannot read {source}: {exc}", file=sys.stderr)
        return 2

    LOG.debug("assembling %s with search path %s", source, loader.search_paths)
    result = asm.assemble(text)
    report_diagnostics(result, str(source), sys.stderr)
    try:
        write_result(result, args.format, args.output)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    if args.verbose:
        print(
            f"origin=0x{result.origin:X} words={len(result.output)} width={result.width} "
            f"diagnostics={len(result.errors)}",
            file=sys.stderr,
        )
    if result.aborted:
        return 1
    if args.werror and result.errors:
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
