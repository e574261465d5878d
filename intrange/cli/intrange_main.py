#!/usr/bin/env python3
import argparse
import json
import sys

import cbor2

import intrange
from intrange.analysis import TaintSources
from intrange.ir import check_ir, parse_ir
from intrange.ranges import RangeAnalysis, symbol_from_string
from intrange.settings import DEFAULT_MAX_ITERATIONS, Settings
from intrange.warnings import warnings_filter

"""
Standalone entry point into the range analysis. Parses text IR, runs the
analysis to a fixpoint and dumps the symbol table.
"""

format_options_help = """Format to print:
text (default) - one `<symbol> <interval>` line per symbol
json           - symbol table in JSON format
cbor           - symbol table in CBOR format (same structure as json)
"""


def _parse_cli_args():
    return _parse_args(sys.argv[1:])


def ranges_as_dict(analysis: RangeAnalysis) -> dict:
    ranges = []
    for sym, interval in analysis.symbols.dump():
        ranges.append(
            {
                "symbol": str(sym),
                "width": interval.width,
                "lower": interval.lower,
                "upper": interval.upper,
                "interval": str(interval),
            }
        )
    return {"version": intrange.__version__, "iterations": analysis.iterations, "ranges": ranges}


def format_text(analysis: RangeAnalysis) -> str:
    return "".join(f"{sym} {interval}\n" for sym, interval in analysis.symbols.dump())


def _write_output(analysis: RangeAnalysis, output_format: str, output_path):
    if output_format == "cbor":
        data = cbor2.dumps(ranges_as_dict(analysis))
        if output_path:
            with open(output_path, "wb") as f:
                f.write(data)
        else:
            sys.stdout.buffer.write(data)
        return

    if output_format == "json":
        text = json.dumps(ranges_as_dict(analysis)) + "\n"
    else:
        text = format_text(analysis)

    if output_path:
        with open(output_path, "w") as f:
            f.write(text)
    else:
        sys.stdout.write(text)


def _parse_args(argv: list[str]):
    parser = argparse.ArgumentParser(
        description="Interprocedural integer range analysis",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("input_file", help="IR sourcefile", nargs="?")
    parser.add_argument("--version", action="version", version=intrange.__version__)
    parser.add_argument(
        "--stdin", action="store_true", help="whether to pull IR input from stdin"
    )
    parser.add_argument(
        "--max-iterations",
        help=f"Module sweeps before changing symbols are widened (default {DEFAULT_MAX_ITERATIONS})",
        type=int,
        dest="max_iterations",
    )
    parser.add_argument("--watch", help="Trace every update of a symbol, e.g. `global:g`")
    parser.add_argument(
        "--taint",
        help="Mark a symbol as a taint source (may be repeated)",
        action="append",
        default=[],
    )
    parser.add_argument(
        "-f",
        help=format_options_help,
        default="text",
        choices=["text", "json", "cbor"],
        dest="format",
    )
    parser.add_argument("-o", help="Set the output path", dest="output_path")
    parser.add_argument(
        "--debug", help="Print the change set of every module sweep", action="store_true"
    )
    parser.add_argument(
        "-W",
        help="Control warnings: `error` turns them into errors, `none` silences them",
        choices=["error", "none"],
        dest="warnings_control",
    )

    args = parser.parse_args(argv)

    if args.stdin:
        if not sys.stdin.isatty():
            ir_source = sys.stdin.read()
        else:
            # No input provided
            print("Error: --stdin flag used but no input provided")
            sys.exit(1)
    else:
        if args.input_file is None:
            print("Error: No input file provided, either use --stdin or provide a path")
            sys.exit(1)
        with open(args.input_file, "r") as f:
            ir_source = f.read()

    settings_kwargs: dict = {"debug": args.debug}
    if args.max_iterations is not None:
        settings_kwargs["max_iterations"] = args.max_iterations
    if args.watch is not None:
        # fail early on a malformed symbol
        symbol_from_string(args.watch)
        settings_kwargs["watch"] = args.watch
    settings = Settings(**settings_kwargs)

    taint = TaintSources(symbol_from_string(s) for s in args.taint)

    ctx = parse_ir(ir_source)
    check_ir(ctx)

    with warnings_filter(args.warnings_control):
        analysis = RangeAnalysis(ctx, settings=settings, taint=taint)
        analysis.run()

    _write_output(analysis, args.format, args.output_path)
    return analysis


if __name__ == "__main__":
    _parse_args(sys.argv[1:])
