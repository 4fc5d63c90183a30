# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Error taxonomy for the construct engine.

Every engine failure is raised synchronously at the offending operation and is
a `BlockError`. Errors that occur *while a reified body runs* (`ThrownValue`,
`BlockRuntimeError`) are deliberately outside this hierarchy: they reject the
body's awaited result and belong to the body author.
"""

from __future__ import annotations

from typing import Iterable, Optional

from isoblock.core.diagnostics import Diagnostic
from isoblock.core.span import Span


def _quote_names(names: Iterable[str]) -> str:
	return ", ".join(f"'{name}'" for name in names)


class BlockError(Exception):
	"""Base class for engine errors; renders as `line:column: message` when located."""

	phase: str = "engine"
	code: Optional[str] = None

	def __init__(self, message: str, *, span: Span | None = None) -> None:
		self.message = message
		self.span = span or Span()
		super().__init__(self._render())

	def _render(self) -> str:
		if self.span.line is not None:
			return f"{self.span.line}:{self.span.column}: {self.message}"
		return self.message

	def to_diagnostic(self) -> Diagnostic:
		return Diagnostic(message=self.message, code=self.code, phase=self.phase, span=self.span)


class BlockSyntaxError(BlockError, SyntaxError):
	"""Malformed body or host script; fatal at parse time."""

	phase = "parser"
	code = "E-SYNTAX"


class CaptureError(BlockError):
	"""Free identifiers of a body that its capture declaration does not cover."""

	phase = "captures"
	code = "E-CAPTURE"

	def __init__(self, names: Iterable[str], *, span: Span | None = None) -> None:
		self.names = tuple(sorted(set(names)))
		noun = "identifier" if len(self.names) == 1 else "identifiers"
		super().__init__(
			f"free {noun} {_quote_names(self.names)} not declared as captures",
			span=span,
		)


class CloneError(BlockError, TypeError):
	"""A captured (or posted) value cannot be structurally cloned."""

	phase = "clone"
	code = "E-CLONE"

	def __init__(self, reason: str, *, capture: str | None = None, path: str | None = None) -> None:
		self.capture = capture
		self.path = path
		self.reason = reason
		if capture is not None:
			where = f"capture '{capture}'"
			if path and path != capture:
				where += f" at {path}"
		else:
			where = f"value at {path}" if path else "value"
		super().__init__(f"{where} cannot be cloned: {reason}")


class ReificationError(BlockError):
	"""Binding-set mismatch detected by `reify`."""

	phase = "reify"


class IncompleteReificationError(ReificationError):
	code = "E-INCOMPLETE"

	def __init__(self, missing: Iterable[str]) -> None:
		self.missing = tuple(sorted(set(missing)))
		super().__init__(f"missing bindings for captures {_quote_names(self.missing)}")


class UnexpectedBindingError(ReificationError):
	code = "E-UNEXPECTED-BINDING"

	def __init__(self, unexpected: Iterable[str], *, reason: str = "not declared as captures") -> None:
		self.unexpected = tuple(sorted(set(unexpected)))
		super().__init__(f"unexpected bindings {_quote_names(self.unexpected)}: {reason}")


class TransferConsumedError(BlockError):
	"""Operation on a Handle whose usability moved to another context."""

	phase = "transfer"
	code = "E-CONSUMED"

	def __init__(self, handle_id: str, state: str) -> None:
		self.handle_id = handle_id
		self.state = state
		super().__init__(f"handle {handle_id} is {state}; it can no longer be used in this context")


class EnvelopeError(BlockError, ValueError):
	"""Malformed, tampered or untrusted transfer envelope."""

	phase = "transfer"
	code = "E-ENVELOPE"


class ConfigError(BlockError, ValueError):
	phase = "config"
	code = "E-CONFIG"


class BlockRuntimeError(Exception):
	"""
	Runtime fault inside an executing body (TypeError/ReferenceError/RangeError).

	Bodies can catch these with `try/catch`; the catch binder receives
	`{name, message}` like a thrown `Error`.
	"""

	def __init__(self, kind: str, message: str, *, span: Span | None = None) -> None:
		self.kind = kind
		self.message = message
		self.span = span or Span()
		where = f"{self.span.line}:{self.span.column}: " if self.span.line is not None else ""
		super().__init__(f"{where}{kind}: {message}")

	def as_value(self) -> dict:
		return {"name": self.kind, "message": self.message}


class ThrownValue(Exception):
	"""Carries a value thrown by a body's `throw` statement."""

	def __init__(self, value: object) -> None:
		self.value = value
		super().__init__(self._describe(value))

	@staticmethod
	def _describe(value: object) -> str:
		if isinstance(value, dict) and "message" in value:
			name = value.get("name", "Error")
			return f"{name}: {value['message']}"
		return f"Uncaught {value!r}"


__all__ = [
	"BlockError",
	"BlockRuntimeError",
	"BlockSyntaxError",
	"CaptureError",
	"CloneError",
	"ConfigError",
	"EnvelopeError",
	"IncompleteReificationError",
	"ReificationError",
	"ThrownValue",
	"TransferConsumedError",
	"UnexpectedBindingError",
]
