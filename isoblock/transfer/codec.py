# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Transfer codec: moves messages (and the Handles listed for transfer) between
execution contexts.

Envelope (canonical JSON: sorted keys, compact separators, UTF-8):

{
  "payload": {
    "format": "isoblock-transfer",
    "version": 1,
    "transfer_id": "<hex>",
    "message": <clone tree>,
    "handles": [
      { "source": "<body text>", "captures": ["a", ...], "provided": { "a": <clone tree> } }
    ]
  },
  "sha256": "<hex digest of the canonical payload bytes>",
  "signatures": [ { "algo": "ed25519", "kid": "...", "pubkey": "<b64>", "sig": "<b64>" } ]
}

Encoding is atomic with respect to the origin: every listed handle is locked
and checked LOCAL, everything is serialized, and only then are the handles
moved to TRANSFERRED. Any failure leaves them LOCAL. The receiver re-parses
and re-validates each body in its own registry; `confirm` then consumes the
origin handles for good.
"""

from __future__ import annotations

import contextlib
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Set, Tuple

from isoblock.config import EngineConfig
from isoblock.errors import BlockSyntaxError, CaptureError, CloneError, EnvelopeError, UnexpectedBindingError
from isoblock.runtime.handle import Handle, TransferState

from .clone import deserialize_value, serialize_value
from .signing import SigningKey, TrustedKeys, sha256_hex, verify_signatures

logger = logging.getLogger(__name__)

ENVELOPE_FORMAT = "isoblock-transfer"
ENVELOPE_VERSION = 1


def canonical_json(obj: Any) -> bytes:
	return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode("utf-8")


@dataclass(frozen=True)
class TransferEnvelope:
	data: bytes
	transfer_id: str
	sha256: str

	def __bytes__(self) -> bytes:
		return self.data


@dataclass(frozen=True)
class DecodedMessage:
	message: Any
	transfer_id: str
	handles: Tuple[Handle, ...]
	signed_by: Tuple[str, ...] = ()


class TransferCodec:
	def __init__(
		self,
		config: Optional[EngineConfig] = None,
		*,
		signing_key: Optional[SigningKey] = None,
		trusted_keys: Optional[TrustedKeys] = None,
	) -> None:
		self.config = config or EngineConfig()
		self.signing_key = signing_key
		self.trusted_keys = trusted_keys
		self._pending: Dict[str, Tuple[Handle, ...]] = {}
		self._received: Set[str] = set()
		self._lock = threading.Lock()

	# Origin side ----------------------------------------------------------

	def encode(self, message: Any, transfer: Iterable[Handle] = ()) -> TransferEnvelope:
		handles = tuple(transfer)
		for handle in handles:
			if not isinstance(handle, Handle):
				raise CloneError(f"transfer list may only hold handles, got '{type(handle).__name__}'")
		if len({id(h) for h in handles}) != len(handles):
			raise CloneError("handle listed more than once in the transfer list")
		with contextlib.ExitStack() as stack:
			for handle in sorted(handles, key=id):
				stack.enter_context(handle._lock)
			for handle in handles:
				handle._require_local()
			index = {id(handle): i for i, handle in enumerate(handles)}
			max_depth = self.config.max_clone_depth
			transfer_id = uuid.uuid4().hex
			payload = {
				"format": ENVELOPE_FORMAT,
				"version": ENVELOPE_VERSION,
				"transfer_id": transfer_id,
				"message": serialize_value(message, handles=index, max_depth=max_depth),
				"handles": [self._export(handle) for handle in handles],
			}
			try:
				payload_bytes = canonical_json(payload)
			except RecursionError as err:
				raise CloneError("message is nested too deeply to encode") from err
			digest = sha256_hex(payload_bytes)
			envelope = {
				"payload": payload,
				"sha256": digest,
				"signatures": [self.signing_key.sign(payload_bytes)] if self.signing_key is not None else [],
			}
			data = canonical_json(envelope)
			for handle in handles:
				handle._move(TransferState.TRANSFERRED)
			with self._lock:
				self._pending[transfer_id] = handles
		logger.debug("encoded transfer %s with %d handle(s)", transfer_id, len(handles))
		return TransferEnvelope(data=data, transfer_id=transfer_id, sha256=digest)

	def _export(self, handle: Handle) -> dict:
		definition = handle._definition
		max_depth = self.config.max_clone_depth
		return {
			"source": definition._source,
			"captures": sorted(definition.declared_captures),
			"provided": {
				name: serialize_value(value, capture=name, max_depth=max_depth)
				for name, value in sorted(handle._provided.items())
			},
		}

	def confirm(self, transfer_id: str) -> None:
		"""Receipt acknowledged: the origin handles of `transfer_id` become CONSUMED."""
		with self._lock:
			handles = self._pending.pop(transfer_id, None)
		if handles is None:
			raise EnvelopeError(f"unknown or already confirmed transfer '{transfer_id}'")
		for handle in handles:
			handle._move(TransferState.CONSUMED)
		logger.debug("confirmed transfer %s", transfer_id)

	def abort(self, transfer_id: str) -> None:
		"""
		The destination rejected `transfer_id`: its origin handles become
		CONSUMED and the transfer is forgotten. A moved handle never returns
		to LOCAL, so a failed delivery leaves no usable copy on either side.
		"""
		with self._lock:
			handles = self._pending.pop(transfer_id, None)
		if handles is None:
			raise EnvelopeError(f"unknown or already settled transfer '{transfer_id}'")
		for handle in handles:
			handle._move(TransferState.CONSUMED)
		logger.debug("aborted transfer %s", transfer_id)

	def pending_transfers(self) -> Tuple[str, ...]:
		with self._lock:
			return tuple(self._pending)

	# Destination side -----------------------------------------------------

	def decode(self, data: bytes | TransferEnvelope, registry: Any) -> DecodedMessage:
		"""
		Decode an envelope into `registry`'s context.

		Transferred bodies are parsed and validated again here; they are never
		trusted just because the origin accepted them.
		"""
		if isinstance(data, TransferEnvelope):
			data = data.data
		try:
			envelope = json.loads(data)
		except (json.JSONDecodeError, UnicodeDecodeError, TypeError, RecursionError) as err:
			raise EnvelopeError(f"envelope is not valid JSON: {err}") from err
		if not isinstance(envelope, dict) or set(envelope) != {"payload", "sha256", "signatures"}:
			raise EnvelopeError("envelope must be an object with payload, sha256 and signatures")
		payload = envelope["payload"]
		if not isinstance(payload, dict):
			raise EnvelopeError("envelope payload must be an object")
		payload_bytes = canonical_json(payload)
		if envelope["sha256"] != sha256_hex(payload_bytes):
			raise EnvelopeError("envelope sha256 mismatch")
		signed_by = verify_signatures(envelope["signatures"], payload_bytes, self.trusted_keys)
		if self.config.require_signatures and not signed_by:
			raise EnvelopeError("envelope is not signed by a trusted key")
		if payload.get("format") != ENVELOPE_FORMAT or payload.get("version") != ENVELOPE_VERSION:
			raise EnvelopeError("unsupported envelope format/version")
		transfer_id = payload.get("transfer_id")
		entries = payload.get("handles")
		if not isinstance(transfer_id, str) or not isinstance(entries, list) or "message" not in payload:
			raise EnvelopeError("envelope payload is missing transfer_id, message or handles")
		with self._lock:
			if transfer_id in self._received:
				raise EnvelopeError(f"transfer '{transfer_id}' has already been decoded")
			self._received.add(transfer_id)
		try:
			handles = tuple(self._import(entry, registry) for entry in entries)
			message = deserialize_value(payload["message"], handles=handles)
		except BaseException:
			with self._lock:
				self._received.discard(transfer_id)
			raise
		logger.debug("decoded transfer %s into %s", transfer_id, getattr(registry, "name", registry))
		return DecodedMessage(message=message, transfer_id=transfer_id, handles=handles, signed_by=tuple(signed_by))

	def _import(self, entry: Any, registry: Any) -> Handle:
		if not isinstance(entry, dict):
			raise EnvelopeError("handle entry must be an object")
		source = entry.get("source")
		captures = entry.get("captures")
		provided = entry.get("provided")
		if not isinstance(source, str) or not isinstance(captures, list) or not isinstance(provided, dict):
			raise EnvelopeError("handle entry must hold source, captures and provided")
		try:
			definition = registry.define(source, captures)
		except (BlockSyntaxError, CaptureError) as err:
			raise EnvelopeError(f"transferred construct failed validation: {err}") from err
		if definition.declared_captures != frozenset(captures):
			raise EnvelopeError("transferred construct declares different captures than its envelope")
		values = {name: deserialize_value(tree) for name, tree in provided.items()}
		try:
			return registry.create_handle(definition, values)
		except UnexpectedBindingError as err:
			raise EnvelopeError(f"transferred construct has bad provided captures: {err}") from err


__all__ = [
	"DecodedMessage",
	"ENVELOPE_FORMAT",
	"ENVELOPE_VERSION",
	"TransferCodec",
	"TransferEnvelope",
	"canonical_json",
]
