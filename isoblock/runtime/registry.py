# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Definition registry (one per execution context).

`define` turns construct source plus its explicit capture list into an
immutable `Definition`. Every call yields a fresh Definition with a new id,
even for identical source; only the parse and validation work is shared
through a bounded LRU keyed by `(sha256(source), explicit captures)`.

Definitions are tracked weakly by id: the registry never keeps a Definition
alive on its own, Handles do.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import uuid
import weakref
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from isoblock.analysis.captures import ResolvedCaptures, normalize_capture_list, resolve_captures
from isoblock.config import EngineConfig
from isoblock.errors import UnexpectedBindingError
from isoblock.parser import ast as A
from isoblock.parser.parser import parse_body

from .handle import Handle

logger = logging.getLogger(__name__)

Body = Union[A.Program, A.Block]


@dataclass(frozen=True)
class Definition:
	"""
	A validated construct body.

	Invariant: `free_variables <= declared_captures` (checked before
	construction by the capture resolver).
	"""

	id: str
	body: Body = field(repr=False)
	declared_captures: frozenset
	free_variables: frozenset
	# Body text, read only by the transfer codec.
	_source: str = field(repr=False, compare=False)


def source_digest(source: str) -> str:
	return hashlib.sha256(source.encode("utf-8")).hexdigest()


class DefinitionRegistry:
	def __init__(self, config: Optional[EngineConfig] = None, *, name: str = "default") -> None:
		self.config = config or EngineConfig()
		self.name = name
		self._cache: "OrderedDict[Tuple[str, Tuple[str, ...]], Tuple[Body, ResolvedCaptures]]" = OrderedDict()
		self._live: "weakref.WeakValueDictionary[str, Definition]" = weakref.WeakValueDictionary()
		self._lock = threading.Lock()
		self.cache_hits = 0
		self.cache_misses = 0

	def define(
		self,
		source: str,
		captures: Optional[Sequence[str] | str] = None,
		*,
		body: Optional[Body] = None,
		file: Optional[str] = None,
	) -> Definition:
		"""
		Parse (or reuse) and validate `source`, returning a fresh Definition.

		`body` may carry an already parsed tree of `source` (construct literals
		evaluated by the interpreter). Raises `BlockSyntaxError` or
		`CaptureError`.
		"""
		explicit = normalize_capture_list(captures)
		key = (source_digest(source), tuple(sorted(explicit or ())))
		entry = self._cached(key)
		if entry is None:
			parsed = body if body is not None else parse_body(source, file=file)
			resolved = resolve_captures(parsed, explicit, file=file)
			entry = (parsed, resolved)
			self._store(key, entry)
		parsed, resolved = entry
		definition = Definition(
			id=uuid.uuid4().hex,
			body=parsed,
			declared_captures=resolved.declared,
			free_variables=resolved.free,
			_source=source,
		)
		with self._lock:
			self._live[definition.id] = definition
		logger.debug(
			"defined %s in %s declared=%s",
			definition.id,
			self.name,
			sorted(definition.declared_captures),
		)
		return definition

	def _cached(self, key: Tuple[str, Tuple[str, ...]]) -> Optional[Tuple[Body, ResolvedCaptures]]:
		with self._lock:
			entry = self._cache.get(key)
			if entry is None:
				self.cache_misses += 1
				return None
			self._cache.move_to_end(key)
			self.cache_hits += 1
		logger.debug("body cache hit %s", key[0][:12])
		return entry

	def _store(self, key: Tuple[str, Tuple[str, ...]], entry: Tuple[Body, ResolvedCaptures]) -> None:
		limit = self.config.body_cache_size
		if limit == 0:
			return
		with self._lock:
			self._cache[key] = entry
			self._cache.move_to_end(key)
			while len(self._cache) > limit:
				self._cache.popitem(last=False)

	def lookup(self, definition_id: str) -> Optional[Definition]:
		with self._lock:
			return self._live.get(definition_id)

	def live_definitions(self) -> int:
		with self._lock:
			return len(self._live)

	def cache_size(self) -> int:
		with self._lock:
			return len(self._cache)

	def create_handle(self, definition: Definition, provided: Optional[Mapping[str, Any]] = None) -> Handle:
		"""
		Wrap `definition` in a LOCAL Handle.

		`provided` must already hold structural clones; its names must be
		declared captures.
		"""
		provided = dict(provided or {})
		extra = set(provided) - definition.declared_captures
		if extra:
			raise UnexpectedBindingError(extra)
		return Handle(definition, provided, registry=self)

	def __repr__(self) -> str:
		return f"<DefinitionRegistry {self.name} live={self.live_definitions()}>"


__all__ = ["Definition", "DefinitionRegistry", "source_digest"]
