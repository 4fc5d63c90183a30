# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Execution contexts.

A context owns a Definition registry and the host globals its scripts see.
It can optionally run a dedicated event-loop thread; reified blocks submitted
to a started context run on that loop, one context being single-threaded and
cooperative like an agent.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from isoblock.analysis.captures import validate_script
from isoblock.config import EngineConfig
from isoblock.errors import UnexpectedBindingError
from isoblock.parser import ast as A
from isoblock.parser.parser import RESERVED, parse_script
from isoblock.transfer.clone import clone_bindings

from .handle import Handle
from .interp import Interpreter
from .registry import DefinitionRegistry

logger = logging.getLogger(__name__)


class ExecutionContext:
	def __init__(self, name: str = "main", config: Optional[EngineConfig] = None) -> None:
		self.name = name
		self.config = config or EngineConfig()
		self.registry = DefinitionRegistry(self.config, name=name)
		self.globals: Dict[str, Any] = {}
		self._loop: Optional[asyncio.AbstractEventLoop] = None
		self._thread: Optional[threading.Thread] = None
		self._lock = threading.Lock()

	def define_global(self, name: str, value: Any) -> None:
		"""Make `value` visible to host scripts run in this context as `name`."""
		if not isinstance(name, str) or not name.isidentifier() or name in RESERVED:
			raise ValueError(f"invalid global name {name!r}")
		self.globals[name] = value

	def block(
		self,
		body: str,
		captures: Optional[Sequence[str] | str] = None,
		values: Optional[Mapping[str, Any]] = None,
	) -> Handle:
		"""
		Create a Handle from body source, like evaluating a construct literal.

		`captures` is the explicit capture list; inline `${name}` markers in
		`body` are declared as well. `values` binds some or all declared names
		now (structurally cloned); the rest must be supplied at `reify`.
		"""
		definition = self.registry.define(body, captures)
		values = dict(values or {})
		extra = set(values) - definition.declared_captures
		if extra:
			raise UnexpectedBindingError(extra)
		provided = clone_bindings(values, max_depth=self.config.max_clone_depth)
		return self.registry.create_handle(definition, provided)

	def parse_script(self, source: str, *, file: Optional[str] = None) -> A.Program:
		program = parse_script(source, file=file)
		validate_script(program, file=file)
		return program

	async def evaluate(self, source: str, *, file: Optional[str] = None) -> Any:
		"""Run a host script on the current loop; returns its completion value."""
		program = self.parse_script(source, file=file)
		interp = Interpreter(self.registry, globals=self.globals, config=self.config, file=file)
		return await interp.run_script(program)

	def run_script(self, source: str, *, file: Optional[str] = None) -> Any:
		"""Synchronous `evaluate`: on the context loop when started, else on a fresh loop."""
		loop, thread = self._loop, self._thread
		if loop is not None:
			if threading.current_thread() is thread:
				raise RuntimeError(f"run_script called from context {self.name}'s own loop; await evaluate() instead")
			return asyncio.run_coroutine_threadsafe(self.evaluate(source, file=file), loop).result()
		return asyncio.run(self.evaluate(source, file=file))

	# Event loop -----------------------------------------------------------

	@property
	def running(self) -> bool:
		return self._loop is not None

	def start(self) -> "ExecutionContext":
		with self._lock:
			if self._loop is not None:
				return self
			loop = asyncio.new_event_loop()
			ready = threading.Event()

			def run() -> None:
				asyncio.set_event_loop(loop)
				ready.set()
				try:
					loop.run_forever()
				finally:
					loop.run_until_complete(loop.shutdown_asyncgens())
					loop.close()

			thread = threading.Thread(target=run, name=f"isoblock-{self.name}", daemon=True)
			thread.start()
			ready.wait()
			self._loop = loop
			self._thread = thread
		logger.debug("context %s started", self.name)
		return self

	def close(self) -> None:
		with self._lock:
			loop, thread = self._loop, self._thread
			self._loop = None
			self._thread = None
		if loop is None or thread is None:
			return
		loop.call_soon_threadsafe(loop.stop)
		thread.join()
		logger.debug("context %s closed", self.name)

	def submit(self, work: Callable[[], Any]) -> "concurrent.futures.Future[Any]":
		"""
		Run a reified block (or any zero-argument coroutine function) on the
		context loop. The returned future resolves with the body's result.
		"""
		loop = self._loop
		if loop is None:
			raise RuntimeError(f"context {self.name} is not started")
		return asyncio.run_coroutine_threadsafe(work(), loop)

	def __enter__(self) -> "ExecutionContext":
		return self.start()

	def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
		self.close()

	def __repr__(self) -> str:
		return f"<ExecutionContext {self.name}{' running' if self.running else ''}>"


__all__ = ["ExecutionContext"]
