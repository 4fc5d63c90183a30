# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Opaque handle to a validated construct.

A Handle exposes what a holder needs to decide how to use a construct (its
declared, provided and missing captures) and `reify`, and nothing else: the
body, its source and the Definition stay private.

Handles move between contexts only through the transfer codec. Once a handle
is listed in a transfer it leaves the LOCAL state for good; every operation
other than the state queries then raises `TransferConsumedError`.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from isoblock.errors import TransferConsumedError
from isoblock.transfer.clone import clone_bindings

from .intrinsics import Intrinsic
from .reify import ReifiedBlock, reify
from .values import UNDEFINED, Transferable, is_nullish

if TYPE_CHECKING:
	from .registry import Definition, DefinitionRegistry

logger = logging.getLogger(__name__)


class TransferState(enum.Enum):
	LOCAL = "local"
	TRANSFERRED = "transferred"
	CONSUMED = "consumed"


class Handle(Transferable):
	def __init__(
		self,
		definition: "Definition",
		provided: Mapping[str, Any],
		*,
		registry: "DefinitionRegistry",
	) -> None:
		self._definition = definition
		self._provided: Dict[str, Any] = dict(provided)
		self._registry = registry
		self._state = TransferState.LOCAL
		self._lock = threading.RLock()

	# State queries never raise.

	@property
	def transfer_state(self) -> TransferState:
		return self._state

	def is_transferable(self) -> bool:
		return self._state is TransferState.LOCAL

	def _require_local(self) -> None:
		state = self._state
		if state is not TransferState.LOCAL:
			raise TransferConsumedError(self._definition.id, state.value)

	@property
	def declared_captures(self) -> frozenset:
		self._require_local()
		return self._definition.declared_captures

	@property
	def provided_captures(self) -> Dict[str, Any]:
		"""A fresh structural clone of the values bound at construction."""
		self._require_local()
		return clone_bindings(self._provided, max_depth=self._registry.config.max_clone_depth)

	@property
	def missing_captures(self) -> frozenset:
		self._require_local()
		return self._definition.declared_captures - frozenset(self._provided)

	@property
	def is_complete(self) -> bool:
		return not self.missing_captures

	def reify(self, bindings: Optional[Mapping[str, Any]] = None) -> ReifiedBlock:
		with self._lock:
			self._require_local()
			return reify(self._definition, self._provided, bindings, registry=self._registry)

	# Codec-facing -----------------------------------------------------------

	def _move(self, state: TransferState) -> None:
		with self._lock:
			logger.debug("handle %s %s -> %s", self._definition.id, self._state.value, state.value)
			self._state = state

	# Script-facing ----------------------------------------------------------

	def get_attr(self, name: str) -> Any:
		if name == "reify":
			return Intrinsic("reify", lambda interp, args: self.reify(_bindings_arg(args)))
		if name == "isTransferable":
			return Intrinsic("isTransferable", lambda interp, args: self.is_transferable())
		if name == "isComplete":
			return self.is_complete
		if name == "declaredCaptures":
			return sorted(self.declared_captures)
		if name == "missingCaptures":
			return sorted(self.missing_captures)
		if name == "providedCaptures":
			return self.provided_captures
		return UNDEFINED

	# Handles are moved, never copied.

	def __reduce_ex__(self, protocol: Any) -> Any:
		raise TypeError("Handle objects cannot be pickled; transfer them with TransferCodec")

	def __copy__(self) -> "Handle":
		raise TypeError("Handle objects cannot be copied; transfer them with TransferCodec")

	def __deepcopy__(self, memo: dict) -> "Handle":
		raise TypeError("Handle objects cannot be copied; transfer them with TransferCodec")

	def __repr__(self) -> str:
		return f"<Handle {self._definition.id[:12]} {self._state.value}>"


def _bindings_arg(args: Any) -> Optional[Mapping[str, Any]]:
	if not args or is_nullish(args[0]):
		return None
	return args[0]


__all__ = ["Handle", "TransferState"]
