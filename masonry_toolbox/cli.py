from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from masonry_toolbox.core.loader import ToolNotFoundError, discover_tools, get_tool
from masonry_toolbox.core.logging import configure_logging
from masonry_toolbox.core.schema_utils import format_validation_error

DEFAULT_TOOL_ID = "masonry_support_designer"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _load_inputs(path: str) -> Dict[str, Any]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("inputs file must contain a JSON object")
    return data


def _cmd_run(args: argparse.Namespace) -> int:
    tool = get_tool(args.tool)
    try:
        inputs = _load_inputs(args.inputs)
    except (OSError, ValueError) as e:
        print(f"error: cannot read {args.inputs}: {e}", file=sys.stderr)
        return EXIT_USAGE
    try:
        res = tool.run_batch(inputs)
    except ValidationError as e:
        print(f"error: invalid inputs:\n{format_validation_error(e)}", file=sys.stderr)
        return EXIT_USAGE

    _print_json(res)
    if not res.get("ok") or not res.get("feasible"):
        return EXIT_FAILED
    return EXIT_OK


def _cmd_defaults(args: argparse.Namespace) -> int:
    _print_json(get_tool(args.tool).default_inputs())
    return EXIT_OK


def _cmd_layout(args: argparse.Namespace) -> int:
    from masonry_toolbox.tools.masonry_support.errors import NoLayoutError
    from masonry_toolbox.tools.masonry_support.tool import TOOL

    try:
        layout = TOOL.layout(args.length, args.centres, args.piece_length)
    except NoLayoutError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED
    _print_json(layout.to_dict())
    return EXIT_OK


def _cmd_tools(args: argparse.Namespace) -> int:
    for t in discover_tools():
        print(f"{t.meta.id}\t{t.meta.name}\tv{t.meta.version}\t[{t.meta.category}]")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="masonry-toolbox", description="Masonry support design toolbox")
    parser.add_argument("--log-level", default="WARNING", help="Console log level (default WARNING).")
    parser.add_argument("--tool", default=DEFAULT_TOOL_ID, help=f"Tool id for run/defaults (default {DEFAULT_TOOL_ID}).")
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="Run the design search and write the calc package.")
    p_run.add_argument("inputs", help="JSON file with tool inputs.")
    p_run.set_defaults(func=_cmd_run)

    p_def = sub.add_parser("defaults", help="Print the default inputs as JSON.")
    p_def.set_defaults(func=_cmd_defaults)

    p_lay = sub.add_parser("layout", help="Split a support run into angle pieces.")
    p_lay.add_argument("--length", type=float, required=True, help="Run length (mm).")
    p_lay.add_argument("--centres", type=float, required=True, help="Bracket centres (mm).")
    p_lay.add_argument("--piece-length", type=float, default=None, help="Fixed angle piece length (mm).")
    p_lay.set_defaults(func=_cmd_layout)

    p_tools = sub.add_parser("tools", help="List discovered tools.")
    p_tools.set_defaults(func=_cmd_tools)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse exits 2 on usage errors and 0 for --help
        return int(e.code or 0)
    configure_logging(args.log_level)
    try:
        return int(args.func(args))
    except ToolNotFoundError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    raise SystemExit(main())
