# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Command line front-end.

  isoblock check FILE [--body] [--captures a,b] [--json]
  isoblock run FILE [--body] [--captures a,b] [--bind name=JSON]...
  isoblock free-vars FILE [--json]

FILE is a host script unless `--body` is given, in which case it holds a
single construct body (the text between `{|` and `|}`). Exit status is 0 on
success, 1 when diagnostics were reported or the run failed, and 2 on usage
or configuration errors.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from isoblock.analysis.captures import normalize_capture_list, resolve_captures, validate_script
from isoblock.analysis.scope import analyze_body
from isoblock.config import EngineConfig
from isoblock.core.diagnostics import Diagnostic
from isoblock.errors import BlockError, BlockRuntimeError, ConfigError, ThrownValue
from isoblock.parser.parser import parse_body, parse_script
from isoblock.runtime.context import ExecutionContext
from isoblock.runtime.intrinsics import display, from_json_tree, stringify
from isoblock.runtime.values import UNDEFINED

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="isoblock", description="Check and run isolated, transferable code blocks")
	p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
	p.add_argument("--config", type=Path, default=None, help="JSON configuration file (default: ISOBLOCK_* environment)")
	sub = p.add_subparsers(dest="cmd", required=True)

	check = sub.add_parser("check", help="Parse and validate a host script or a construct body")
	check.add_argument("file", type=Path, help="Source file")
	check.add_argument("--body", action="store_true", help="FILE holds a construct body rather than a host script")
	check.add_argument("--captures", type=str, default=None, help="Explicit capture list for --body (e.g. a,b)")
	check.add_argument("--json", action="store_true", help="Emit machine-readable JSON diagnostics")

	run = sub.add_parser("run", help="Run a host script, or reify and run a construct body")
	run.add_argument("file", type=Path, help="Source file")
	run.add_argument("--body", action="store_true", help="FILE holds a construct body rather than a host script")
	run.add_argument("--captures", type=str, default=None, help="Explicit capture list for --body (e.g. a,b)")
	run.add_argument(
		"--bind",
		action="append",
		default=[],
		metavar="NAME=JSON",
		help="Bind a capture (--body) or define a host global (script); repeatable",
	)

	free = sub.add_parser("free-vars", help="Print the free identifiers of a construct body")
	free.add_argument("file", type=Path, help="Body source file")
	free.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
	return p


def _load_config(path: Optional[Path]) -> EngineConfig:
	if path is not None:
		return EngineConfig.from_file(path)
	return EngineConfig.from_env()


def _parse_bindings(items: List[str], p: argparse.ArgumentParser) -> Dict[str, Any]:
	out: Dict[str, Any] = {}
	for item in items:
		name, sep, raw = item.partition("=")
		if not sep or not name.isidentifier():
			p.error(f"--bind expects NAME=JSON, got {item!r}")
		try:
			out[name] = from_json_tree(json.loads(raw))
		except json.JSONDecodeError as err:
			p.error(f"--bind {name}: invalid JSON ({err.msg})")
	return out


def _report(diagnostics: List[Diagnostic], *, file: str, as_json: bool) -> None:
	if as_json:
		obj = {"ok": not diagnostics, "diagnostics": [d.to_json(file=file) for d in diagnostics]}
		print(json.dumps(obj, sort_keys=True, separators=(",", ":")))
		return
	for diag in diagnostics:
		print(diag.render(), file=sys.stderr)


def _check(path: Path, *, body: bool, captures: Optional[str]) -> List[Diagnostic]:
	source = path.read_text(encoding="utf-8")
	file = str(path)
	try:
		if body:
			program = parse_body(source, file=file)
			resolve_captures(program, normalize_capture_list(captures), file=file)
		else:
			validate_script(parse_script(source, file=file), file=file)
	except BlockError as err:
		diag = err.to_diagnostic()
		if diag.span.file is None:
			diag.notes.append(f"in {file}")
		return [diag]
	return []


def _format_result(value: Any) -> str:
	if value is UNDEFINED:
		return "undefined"
	text = stringify(value)
	return repr(value) if text is UNDEFINED else text


def _run(path: Path, *, body: bool, captures: Optional[str], bindings: Dict[str, Any], config: EngineConfig) -> Any:
	source = path.read_text(encoding="utf-8")
	ctx = ExecutionContext(path.stem, config)
	if body:
		reified = ctx.block(source, captures).reify(bindings)
		return asyncio.run(reified())
	for name, value in bindings.items():
		ctx.define_global(name, value)
	return ctx.run_script(source, file=str(path))


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)

	try:
		config = _load_config(args.config)
	except ConfigError as err:
		print(f"isoblock: {err}", file=sys.stderr)
		return 2
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else config.logging_level,
		format="%(levelname)s %(name)s: %(message)s",
	)
	logger.debug("configuration %s", config)
	if not args.file.exists():
		p.error(f"file not found: {args.file}")

	if args.cmd == "check":
		diagnostics = _check(args.file, body=bool(args.body), captures=args.captures)
		_report(diagnostics, file=str(args.file), as_json=bool(args.json))
		return 1 if diagnostics else 0

	if args.cmd == "free-vars":
		source = args.file.read_text(encoding="utf-8")
		try:
			report = analyze_body(parse_body(source, file=str(args.file)), file=str(args.file))
		except BlockError as err:
			_report([err.to_diagnostic()], file=str(args.file), as_json=bool(args.json))
			return 1
		if args.json:
			obj = {"free": sorted(report.free), "markers": sorted(report.markers)}
			print(json.dumps(obj, sort_keys=True, separators=(",", ":")))
		else:
			for name in sorted(report.free | report.markers):
				print(name)
		return 0

	if args.cmd == "run":
		bindings = _parse_bindings(list(args.bind), p)
		logging.getLogger("isoblock.console").setLevel(logging.INFO)
		try:
			result = _run(args.file, body=bool(args.body), captures=args.captures, bindings=bindings, config=config)
		except BlockError as err:
			_report([err.to_diagnostic()], file=str(args.file), as_json=False)
			return 1
		except ThrownValue as err:
			print(f"Uncaught {display(err.value)}", file=sys.stderr)
			return 1
		except BlockRuntimeError as err:
			print(f"Uncaught {err}", file=sys.stderr)
			return 1
		print(_format_result(result))
		return 0

	raise AssertionError("unreachable")
