# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Reification: a Definition plus a complete binding set becomes an invocable
unit of work.

`provided | bindings` must equal the declared captures exactly. Values are
snapshotted (cloned) when `reify` is called, and cloned again for each
invocation so runs never observe each other's mutations.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping as MappingABC
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from isoblock.errors import IncompleteReificationError, UnexpectedBindingError
from isoblock.transfer.clone import clone_bindings

from .interp import Interpreter

if TYPE_CHECKING:
	from .registry import Definition, DefinitionRegistry

logger = logging.getLogger(__name__)


class ReifiedBlock:
	"""
	A reified construct. Calling it (with no arguments) returns a coroutine
	that fulfils with the body's return value, or `undefined`, and raises the
	body's error otherwise.
	"""

	js_callable = True

	def __init__(self, definition: "Definition", captures: Dict[str, Any], *, registry: "DefinitionRegistry") -> None:
		self._definition = definition
		self._captures = captures
		self._registry = registry

	def __call__(self) -> Any:
		return self._run()

	async def _run(self) -> Any:
		config = self._registry.config
		captures = clone_bindings(self._captures, max_depth=config.max_clone_depth)
		interp = Interpreter(self._registry, config=config)
		return await interp.run_body(self._definition.body, captures)

	def __repr__(self) -> str:
		return f"<ReifiedBlock {self._definition.id[:12]}>"


def reify(
	definition: "Definition",
	provided: Mapping[str, Any],
	bindings: Optional[Mapping[str, Any]],
	*,
	registry: "DefinitionRegistry",
) -> ReifiedBlock:
	"""Check the binding set against `definition` and snapshot it."""
	if bindings is None:
		bindings = {}
	elif not isinstance(bindings, MappingABC):
		raise TypeError(f"bindings must be a mapping of capture names, got {type(bindings).__name__}")
	declared = definition.declared_captures
	supplied = set(bindings)
	undeclared = supplied - declared
	resupplied = supplied & set(provided)
	if undeclared or resupplied:
		if not resupplied:
			reason = "not declared as captures"
		elif not undeclared:
			reason = "already provided at construction"
		else:
			reason = "not declared as captures or already provided at construction"
		raise UnexpectedBindingError(undeclared | resupplied, reason=reason)
	missing = declared - set(provided) - supplied
	if missing:
		raise IncompleteReificationError(missing)
	max_depth = registry.config.max_clone_depth
	snapshot = clone_bindings(provided, max_depth=max_depth)
	snapshot.update(clone_bindings(bindings, max_depth=max_depth))
	logger.debug("reified %s with %s", definition.id, sorted(snapshot))
	return ReifiedBlock(definition, snapshot, registry=registry)


__all__ = ["ReifiedBlock", "reify"]
