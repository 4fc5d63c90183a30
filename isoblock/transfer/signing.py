# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Ed25519 signing for transfer envelopes.

Pinned scheme:
- public keys are base64 of raw 32-byte keys,
- signatures are base64 of raw 64-byte signatures,
- key ids are `"ed25519:" + base64(sha256(pubkey_raw))`,
- signatures cover the exact canonical payload bytes of the envelope.

Verification uses `cryptography` only; nothing shells out.
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from isoblock.errors import EnvelopeError


def sha256_hex(data: bytes) -> str:
	return hashlib.sha256(data).hexdigest()


def b64_encode(data: bytes) -> str:
	return base64.b64encode(data).decode("ascii")


def b64_decode(text: str) -> bytes:
	return base64.b64decode(text.encode("ascii"), validate=True)


def compute_ed25519_kid(pubkey_raw: bytes) -> str:
	return "ed25519:" + b64_encode(hashlib.sha256(pubkey_raw).digest())


def ed25519_public_bytes_raw(pubkey: Ed25519PublicKey) -> bytes:
	return pubkey.public_bytes(
		encoding=serialization.Encoding.Raw,
		format=serialization.PublicFormat.Raw,
	)


@dataclass(frozen=True)
class SigningKey:
	"""An Ed25519 private key with its derived public key and kid."""

	private: Ed25519PrivateKey
	pubkey_raw: bytes
	kid: str

	@classmethod
	def from_seed(cls, seed32: bytes) -> "SigningKey":
		if len(seed32) != 32:
			raise ValueError("ed25519 private key seed must be 32 bytes")
		private = Ed25519PrivateKey.from_private_bytes(seed32)
		pub = ed25519_public_bytes_raw(private.public_key())
		return cls(private=private, pubkey_raw=pub, kid=compute_ed25519_kid(pub))

	@classmethod
	def generate(cls) -> "SigningKey":
		private = Ed25519PrivateKey.generate()
		pub = ed25519_public_bytes_raw(private.public_key())
		return cls(private=private, pubkey_raw=pub, kid=compute_ed25519_kid(pub))

	@classmethod
	def from_seed_file(cls, path: Path) -> "SigningKey":
		"""Load a file holding base64 of a raw 32-byte seed (whitespace allowed)."""
		text = path.read_text(encoding="utf-8").strip()
		try:
			raw = b64_decode(text)
		except ValueError as err:
			raise ValueError("invalid base64 in key seed file") from err
		return cls.from_seed(raw)

	def sign(self, message: bytes) -> dict:
		return {
			"algo": "ed25519",
			"kid": self.kid,
			"pubkey": b64_encode(self.pubkey_raw),
			"sig": b64_encode(self.private.sign(message)),
		}


@dataclass(frozen=True)
class TrustedKeys:
	"""Public keys accepted when verifying envelope signatures, by kid."""

	keys_by_kid: Mapping[str, bytes]

	@classmethod
	def from_pubkeys(cls, pubkeys: Iterable[bytes]) -> "TrustedKeys":
		keys = {}
		for raw in pubkeys:
			if len(raw) != 32:
				raise ValueError("ed25519 pubkey must be 32 bytes")
			keys[compute_ed25519_kid(raw)] = raw
		return cls(keys_by_kid=keys)

	@classmethod
	def load(cls, path: Path) -> "TrustedKeys":
		"""
		Load a trust file.

		Schema:
		{
		  "format": "isoblock-trust",
		  "version": 1,
		  "keys": { "<kid>": { "algo": "ed25519", "pubkey": "<b64>" } }
		}
		"""
		try:
			obj = json.loads(path.read_text(encoding="utf-8"))
		except json.JSONDecodeError as err:
			raise ValueError("trust file invalid JSON") from err
		if not isinstance(obj, dict) or obj.get("format") != "isoblock-trust" or obj.get("version") != 1:
			raise ValueError("unsupported trust file format/version")
		keys_obj = obj.get("keys")
		if not isinstance(keys_obj, dict):
			raise ValueError("trust file missing keys object")
		keys: dict[str, bytes] = {}
		for kid, entry in keys_obj.items():
			if not isinstance(entry, dict) or entry.get("algo") != "ed25519":
				raise ValueError(f"trust key '{kid}' must be an ed25519 entry")
			pub = entry.get("pubkey")
			if not isinstance(pub, str):
				raise ValueError(f"trust key '{kid}' missing pubkey")
			raw = b64_decode(pub)
			if len(raw) != 32:
				raise ValueError("ed25519 pubkey must be 32 bytes")
			if compute_ed25519_kid(raw) != kid:
				raise ValueError(f"trust key '{kid}' does not match its pubkey")
			keys[kid] = raw
		return cls(keys_by_kid=keys)


def verify_ed25519(*, pubkey_raw: bytes, message: bytes, signature_raw: bytes) -> bool:
	"""
	Verify an Ed25519 signature.

	Returns True on success, False on verification failure.
	Raises on malformed key bytes.
	"""
	try:
		key = Ed25519PublicKey.from_public_bytes(pubkey_raw)
	except ValueError as err:
		raise ValueError("invalid ed25519 public key bytes") from err
	try:
		key.verify(signature_raw, message)
		return True
	except InvalidSignature:
		return False


def verify_signatures(entries: object, payload: bytes, trusted: TrustedKeys | None) -> list[str]:
	"""
	Verify envelope signature entries against `trusted`.

	Returns the kids whose signatures verified. Without a trust set, any
	embedded public key is accepted (integrity only). Unknown or malformed
	entries raise `EnvelopeError`.
	"""
	if not isinstance(entries, list):
		raise EnvelopeError("envelope signatures must be an array")
	verified: list[str] = []
	for entry in entries:
		if not isinstance(entry, dict) or entry.get("algo") != "ed25519":
			raise EnvelopeError("unsupported envelope signature entry")
		kid = entry.get("kid")
		sig_b64 = entry.get("sig")
		if not isinstance(kid, str) or not isinstance(sig_b64, str):
			raise EnvelopeError("envelope signature entry missing kid or sig")
		try:
			sig_raw = b64_decode(sig_b64)
		except ValueError as err:
			raise EnvelopeError("envelope signature contains invalid base64 in 'sig'") from err
		if len(sig_raw) != 64:
			raise EnvelopeError("ed25519 signature must be 64 bytes")
		if trusted is not None:
			pub_raw = trusted.keys_by_kid.get(kid)
			if pub_raw is None:
				continue
		else:
			pub_b64 = entry.get("pubkey")
			if not isinstance(pub_b64, str):
				continue
			try:
				pub_raw = b64_decode(pub_b64)
			except ValueError as err:
				raise EnvelopeError("envelope signature contains invalid base64 in 'pubkey'") from err
			if compute_ed25519_kid(pub_raw) != kid:
				raise EnvelopeError(f"envelope signature kid '{kid}' does not match its pubkey")
		try:
			ok = verify_ed25519(pubkey_raw=pub_raw, message=payload, signature_raw=sig_raw)
		except ValueError as err:
			raise EnvelopeError(f"signature verification failed: {err}") from err
		if not ok:
			raise EnvelopeError(f"invalid signature from '{kid}'")
		verified.append(kid)
	return verified


__all__ = [
	"SigningKey",
	"TrustedKeys",
	"b64_decode",
	"b64_encode",
	"compute_ed25519_kid",
	"sha256_hex",
	"verify_ed25519",
	"verify_signatures",
]
