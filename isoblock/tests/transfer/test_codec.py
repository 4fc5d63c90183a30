#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Transfer codec: envelopes, handle state transitions, integrity and signatures.
"""

from __future__ import annotations

import asyncio
import json

import pytest

from isoblock.config import EngineConfig
from isoblock.errors import CaptureError, CloneError, EnvelopeError, TransferConsumedError
from isoblock.runtime.context import ExecutionContext
from isoblock.runtime.handle import Handle, TransferState
from isoblock.transfer.codec import ENVELOPE_FORMAT, TransferCodec, canonical_json
from isoblock.transfer.signing import SigningKey, TrustedKeys, sha256_hex


class _RejectingRegistry:
	def define(self, source, captures):
		raise CaptureError(["outer"])


def _reseal(data: bytes, mutate) -> bytes:
	"""Edit the payload and recompute its digest (signatures are kept as is)."""
	envelope = json.loads(data)
	mutate(envelope["payload"])
	envelope["sha256"] = sha256_hex(canonical_json(envelope["payload"]))
	return canonical_json(envelope)


def test_round_trip_moves_handle_to_destination() -> None:
	origin = ExecutionContext("origin")
	dest = ExecutionContext("dest")
	handle = origin.block("return base * n", ["base", "n"], {"base": 3})
	codec = TransferCodec()

	envelope = codec.encode({"job": handle, "note": "hi"}, [handle])
	assert handle.transfer_state is TransferState.TRANSFERRED
	assert not handle.is_transferable()

	decoded = codec.decode(envelope, dest.registry)
	moved = decoded.message["job"]
	assert isinstance(moved, Handle)
	assert moved is not handle
	assert decoded.message["note"] == "hi"
	assert decoded.handles == (moved,)
	assert moved.declared_captures == frozenset({"base", "n"})
	assert moved.provided_captures == {"base": 3}
	assert asyncio.run(moved.reify({"n": 5})()) == 15

	codec.confirm(decoded.transfer_id)
	assert handle.transfer_state is TransferState.CONSUMED


def test_transferred_handle_is_unusable_at_origin() -> None:
	handle = ExecutionContext("origin").block("return 1")
	TransferCodec().encode(None, [handle])
	with pytest.raises(TransferConsumedError) as exc:
		handle.reify()
	assert exc.value.state == "transferred"
	with pytest.raises(TransferConsumedError):
		handle.declared_captures
	assert handle.transfer_state is TransferState.TRANSFERRED


def test_handle_cannot_be_transferred_twice() -> None:
	handle = ExecutionContext("origin").block("return 1")
	codec = TransferCodec()
	codec.encode(None, [handle])
	with pytest.raises(TransferConsumedError):
		codec.encode(None, [handle])


def test_handle_in_message_must_be_listed() -> None:
	handle = ExecutionContext("origin").block("return 1")
	with pytest.raises(CloneError):
		TransferCodec().encode({"h": handle})
	assert handle.transfer_state is TransferState.LOCAL


def test_failed_encode_leaves_every_handle_local() -> None:
	"""A multi-handle transfer is all or nothing."""
	ctx = ExecutionContext("origin")
	first = ctx.block("return 1")
	second = ctx.block("return 2")
	with pytest.raises(CloneError):
		TransferCodec().encode({"bad": object()}, [first, second])
	assert first.transfer_state is TransferState.LOCAL
	assert second.transfer_state is TransferState.LOCAL

	consumed = ctx.block("return 3")
	codec = TransferCodec()
	codec.encode(None, [consumed])
	with pytest.raises(TransferConsumedError):
		codec.encode(None, [first, consumed, second])
	assert first.transfer_state is TransferState.LOCAL
	assert second.transfer_state is TransferState.LOCAL


def test_transfer_list_validation() -> None:
	handle = ExecutionContext("origin").block("return 1")
	codec = TransferCodec()
	with pytest.raises(CloneError):
		codec.encode(None, ["not a handle"])
	with pytest.raises(CloneError):
		codec.encode(None, [handle, handle])
	assert handle.transfer_state is TransferState.LOCAL


def test_confirm_unknown_transfer() -> None:
	codec = TransferCodec()
	with pytest.raises(EnvelopeError):
		codec.confirm("nope")
	handle = ExecutionContext("origin").block("return 1")
	envelope = codec.encode(None, [handle])
	assert codec.pending_transfers() == (envelope.transfer_id,)
	codec.confirm(envelope.transfer_id)
	with pytest.raises(EnvelopeError):
		codec.confirm(envelope.transfer_id)


def test_envelope_cannot_be_decoded_twice() -> None:
	"""One move yields exactly one usable destination handle."""
	handle = ExecutionContext("origin").block("return 1")
	registry = ExecutionContext("dest").registry
	codec = TransferCodec()
	envelope = codec.encode(handle, [handle])
	moved = codec.decode(envelope, registry).message
	with pytest.raises(EnvelopeError) as exc:
		codec.decode(envelope, registry)
	assert "already been decoded" in exc.value.message
	assert moved.transfer_state is TransferState.LOCAL


def test_failed_decode_does_not_burn_the_transfer_id() -> None:
	handle = ExecutionContext("origin").block("return 1")
	codec = TransferCodec()
	envelope = codec.encode([handle], [handle])
	with pytest.raises(EnvelopeError):
		codec.decode(envelope, _RejectingRegistry())
	decoded = codec.decode(envelope, ExecutionContext("dest").registry)
	assert len(decoded.handles) == 1


def test_abort_consumes_origin_handles() -> None:
	ctx = ExecutionContext("origin")
	first = ctx.block("return 1")
	second = ctx.block("return 2")
	codec = TransferCodec()
	envelope = codec.encode(None, [first, second])
	codec.abort(envelope.transfer_id)
	assert first.transfer_state is TransferState.CONSUMED
	assert second.transfer_state is TransferState.CONSUMED
	assert codec.pending_transfers() == ()
	with pytest.raises(EnvelopeError):
		codec.abort(envelope.transfer_id)
	with pytest.raises(EnvelopeError):
		codec.confirm(envelope.transfer_id)


def test_envelope_is_canonical_json() -> None:
	handle = ExecutionContext("origin").block("return a", ["a"])
	envelope = TransferCodec().encode([1, "x"], [handle])
	obj = json.loads(envelope.data)
	assert canonical_json(obj) == envelope.data
	assert obj["payload"]["format"] == ENVELOPE_FORMAT
	assert obj["payload"]["handles"] == [{"source": "return a", "captures": ["a"], "provided": {}}]
	assert obj["sha256"] == envelope.sha256
	assert bytes(envelope) == envelope.data


def test_tampered_payload_is_rejected() -> None:
	handle = ExecutionContext("origin").block("return 1")
	envelope = TransferCodec().encode(None, [handle])
	data = envelope.data.replace(b"return 1", b"return 2")
	with pytest.raises(EnvelopeError) as exc:
		TransferCodec().decode(data, ExecutionContext("dest").registry)
	assert "sha256 mismatch" in exc.value.message


def test_malformed_envelopes() -> None:
	registry = ExecutionContext("dest").registry
	codec = TransferCodec()
	with pytest.raises(EnvelopeError):
		codec.decode(b"not json", registry)
	with pytest.raises(EnvelopeError):
		codec.decode(b'{"payload": {}}', registry)
	envelope = codec.encode(None)
	with pytest.raises(EnvelopeError):
		codec.decode(_reseal(envelope.data, lambda p: p.update(version=99)), registry)


def test_transferred_body_is_validated_again() -> None:
	"""A rewritten envelope cannot smuggle a body with undeclared free names."""
	handle = ExecutionContext("origin").block("return 1")
	codec = TransferCodec()
	envelope = codec.encode(None, [handle])

	def smuggle(payload: dict) -> None:
		payload["handles"][0]["source"] = "return secret"

	with pytest.raises(EnvelopeError) as exc:
		codec.decode(_reseal(envelope.data, smuggle), ExecutionContext("dest").registry)
	assert "failed validation" in exc.value.message


def test_signed_envelope_verifies_against_trusted_key() -> None:
	key = SigningKey.from_seed(b"\x01" * 32)
	trusted = TrustedKeys.from_pubkeys([key.pubkey_raw])
	handle = ExecutionContext("origin").block("return 1")
	envelope = TransferCodec(signing_key=key).encode("signed", [handle])
	decoded = TransferCodec(trusted_keys=trusted).decode(envelope, ExecutionContext("dest").registry)
	assert decoded.signed_by == (key.kid,)
	assert decoded.message == "signed"


def test_resealed_signed_envelope_fails_signature() -> None:
	key = SigningKey.from_seed(b"\x02" * 32)
	envelope = TransferCodec(signing_key=key).encode("original")
	forged = _reseal(envelope.data, lambda p: p.update(message="forged"))
	with pytest.raises(EnvelopeError) as exc:
		TransferCodec().decode(forged, ExecutionContext("dest").registry)
	assert "invalid signature" in exc.value.message


def test_require_signatures() -> None:
	config = EngineConfig(require_signatures=True)
	registry = ExecutionContext("dest").registry
	unsigned = TransferCodec().encode("plain")
	with pytest.raises(EnvelopeError) as exc:
		TransferCodec(config).decode(unsigned, registry)
	assert "not signed by a trusted key" in exc.value.message

	key = SigningKey.generate()
	other = SigningKey.generate()
	envelope = TransferCodec(signing_key=key).encode("plain")
	strict = TransferCodec(config, trusted_keys=TrustedKeys.from_pubkeys([other.pubkey_raw]))
	with pytest.raises(EnvelopeError):
		strict.decode(envelope, registry)
	accepting = TransferCodec(config, trusted_keys=TrustedKeys.from_pubkeys([key.pubkey_raw]))
	assert accepting.decode(envelope, registry).message == "plain"
