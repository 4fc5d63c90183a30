# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Capture resolution.

A construct declares its captures either with an explicit list
(`<a, b>{| … |}`) or with inline markers (`${a}`) inside the body. Both forms
are unified here into one `declared` set; downstream components never see
which surface form produced it.

The resolver enforces `free ⊆ declared`. Unused declared names are allowed:
they are still required bindings at reification.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from isoblock.core.span import Span
from isoblock.errors import BlockSyntaxError, CaptureError
from isoblock.parser import ast as A
from isoblock.parser.parser import RESERVED

from .scope import ScopeReport, analyze_body

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedCaptures:
	declared: frozenset
	free: frozenset
	markers: frozenset
	explicit: Optional[tuple] = None

	@property
	def unused(self) -> frozenset:
		return self.declared - self.free - self.markers


def normalize_capture_list(names: Optional[Iterable[str]], *, span: Span | None = None) -> Optional[tuple[str, ...]]:
	"""Validate an explicit capture list: identifiers only, no duplicates."""
	if names is None:
		return None
	if isinstance(names, str):
		names = [n.strip() for n in names.split(",") if n.strip()]
	out: list[str] = []
	for name in names:
		if not isinstance(name, str) or not name.isidentifier() or name in RESERVED:
			raise BlockSyntaxError(f"invalid capture name {name!r}", span=span)
		if name in out:
			raise BlockSyntaxError(f"duplicate capture name '{name}'", span=span)
		out.append(name)
	return tuple(out)


def resolve_captures(
	body: Union[A.Program, A.Block],
	explicit: Optional[Sequence[str]] = None,
	*,
	file: Optional[str] = None,
	report: Optional[ScopeReport] = None,
) -> ResolvedCaptures:
	"""
	Check that every free identifier of `body` is declared.

	Raises `CaptureError` naming exactly the undeclared free identifiers. Nested
	construct literals are validated independently against their own
	declarations.
	"""
	explicit_names = normalize_capture_list(explicit)
	report = report if report is not None else analyze_body(body, file=file)
	declared = frozenset(explicit_names or ()) | report.markers
	missing = report.free - declared
	if missing:
		first = min(missing, key=lambda n: (report.references[n].line, report.references[n].column))
		raise CaptureError(missing, span=Span.from_loc(report.references[first], file=file))
	validate_nested(report.nested, file=file)
	logger.debug("resolved captures declared=%s free=%s", sorted(declared), sorted(report.free))
	return ResolvedCaptures(
		declared=declared,
		free=report.free,
		markers=report.markers,
		explicit=explicit_names,
	)


def validate_nested(literals: Iterable[A.BlockLiteral], *, file: Optional[str] = None) -> None:
	for literal in literals:
		resolve_captures(literal.body, literal.captures, file=file)


def validate_script(program: A.Program, *, file: Optional[str] = None) -> ScopeReport:
	"""
	Validate a host script: structural rules plus every construct literal in it.

	Free names of the script itself are host globals and are returned, not
	rejected.
	"""
	report = analyze_body(program, script=True, file=file)
	if report.markers:
		first = min(report.markers, key=lambda n: (report.references[n].line, report.references[n].column))
		raise BlockSyntaxError(
			f"capture marker '${{{first}}}' is only valid inside a construct body",
			span=Span.from_loc(report.references[first], file=file),
		)
	validate_nested(report.nested, file=file)
	return report


__all__ = ["ResolvedCaptures", "normalize_capture_list", "resolve_captures", "validate_nested", "validate_script"]
