# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
In-process message channel between execution contexts.

Two entangled ports share one codec. Posting encodes immediately (so the
origin handles leave the LOCAL state at `post` time); receiving decodes into
the receiving context and confirms the transfer back to the origin. A
message the receiver rejects is aborted, consuming its origin handles.
"""

from __future__ import annotations

import logging
import queue
from typing import Any, Iterable, Optional

from isoblock.config import EngineConfig
from isoblock.errors import CloneError, EnvelopeError
from isoblock.runtime.handle import Handle

from .codec import DecodedMessage, TransferCodec, TransferEnvelope

logger = logging.getLogger(__name__)


class MessagePort:
	def __init__(self, codec: TransferCodec, inbox: "queue.Queue[TransferEnvelope]", outbox: "queue.Queue[TransferEnvelope]", *, name: str) -> None:
		self._codec = codec
		self._inbox = inbox
		self._outbox = outbox
		self.name = name

	def post(self, message: Any, transfer: Iterable[Handle] = ()) -> TransferEnvelope:
		envelope = self._codec.encode(message, transfer)
		self._outbox.put(envelope)
		logger.debug("%s posted transfer %s", self.name, envelope.transfer_id)
		return envelope

	def receive_decoded(self, context: Any, timeout: Optional[float] = None) -> DecodedMessage:
		"""
		Block until a message arrives and decode it into `context`.

		`context` is an `ExecutionContext` or a bare `DefinitionRegistry`.
		Raises `TimeoutError` when nothing arrives within `timeout` seconds.
		"""
		try:
			envelope = self._inbox.get(timeout=timeout)
		except queue.Empty:
			raise TimeoutError(f"no message on {self.name} within {timeout} seconds") from None
		registry = getattr(context, "registry", context)
		try:
			decoded = self._codec.decode(envelope, registry)
		except (EnvelopeError, CloneError):
			self._codec.abort(envelope.transfer_id)
			raise
		self._codec.confirm(decoded.transfer_id)
		return decoded

	def receive(self, context: Any, timeout: Optional[float] = None) -> Any:
		return self.receive_decoded(context, timeout).message

	def pending(self) -> int:
		return self._inbox.qsize()


class MessageChannel:
	def __init__(self, codec: Optional[TransferCodec] = None, *, config: Optional[EngineConfig] = None) -> None:
		self.codec = codec or TransferCodec(config)
		forward: "queue.Queue[TransferEnvelope]" = queue.Queue()
		backward: "queue.Queue[TransferEnvelope]" = queue.Queue()
		self.port1 = MessagePort(self.codec, inbox=backward, outbox=forward, name="port1")
		self.port2 = MessagePort(self.codec, inbox=forward, outbox=backward, name="port2")


__all__ = ["MessageChannel", "MessagePort"]
