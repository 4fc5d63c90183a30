# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Common diagnostic structure for parser/analysis/runtime failures.

Errors raised by the engine convert to a Diagnostic via
`BlockError.to_diagnostic()`; the CLI renders them as text or JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .span import Span


@dataclass
class Diagnostic:
	"""Represents an engine diagnostic (error/warning/etc.)."""

	message: str
	code: str | None = None
	# Phase label: "parser", "captures", "clone", "reify", "transfer", "runtime".
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	def render(self) -> str:
		where = f"{self.span}: " if self.span.known else ""
		code = f" [{self.code}]" if self.code else ""
		text = f"{where}{self.severity}: {self.message}{code}"
		for note in self.notes:
			text += f"\n  note: {note}"
		return text

	def to_json(self, *, file: str | None = None) -> dict[str, Any]:
		"""Render to a structured JSON-friendly dict."""
		return {
			"phase": self.phase,
			"code": self.code,
			"message": self.message,
			"severity": self.severity,
			"file": self.span.file or file,
			"line": self.span.line,
			"column": self.span.column,
			"notes": list(self.notes),
		}


__all__ = ["Diagnostic"]
