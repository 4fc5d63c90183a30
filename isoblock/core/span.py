# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lightweight source span representation used by errors and diagnostics.

A Span carries best-effort file/line/column information. Parser nodes carry a
`Located` (line, column) pair; `Span.from_loc` lifts those into spans so the
error taxonomy has one location type.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Represents a source span (best-effort file/line/column plus raw parser loc)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	raw: Any = None

	@classmethod
	def from_loc(cls, loc: Any, *, file: Optional[str] = None) -> "Span":
		"""
		Construct a Span from a parser location object.

		If `loc` is already a Span, it is returned unchanged; lark tokens and
		AST `Located` values are read through their `line`/`column` attributes.
		"""
		if loc is None:
			return cls(file=file)
		if isinstance(loc, cls):
			return loc
		return cls(
			file=file or getattr(loc, "file", None),
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
			raw=loc,
		)

	@property
	def known(self) -> bool:
		return self.line is not None

	def __str__(self) -> str:
		if self.line is None:
			return self.file or "<unknown>"
		prefix = f"{self.file}:" if self.file else ""
		return f"{prefix}{self.line}:{self.column}"


__all__ = ["Span"]
