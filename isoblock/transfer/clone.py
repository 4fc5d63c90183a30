# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Structured clone.

Values are cloned by serializing them to a tagged, JSON-compatible tree and
deserializing that tree again, so a clone can never alias the original. The
same tree is what the transfer codec puts on the wire.

Encoding (plain JSON where possible):

- `None`, `bool`, `int`, `str` and finite `float` are JSON scalars.
- Everything else is an object with a `"$"` tag:
  `undefined`, `float` (`"nan"`, `"inf"`, `"-inf"`), `bytes`/`bytearray`
  (base64), `list`, `tuple`, `dict` (string keys), `map` (other keys), `set`,
  `frozenset`, `datetime`/`date`/`time` (ISO 8601), `timedelta`
  (`[days, seconds, microseconds]`), `handle` (index into the transfer list)
  and `ref` (back-reference to an earlier container by `id`).

Only exact built-in types are clonable; subclasses, functions, handles outside
a transfer list and arbitrary objects raise `CloneError` naming the capture and
the path of the offending value.
"""

from __future__ import annotations

import base64
import datetime as _dt
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from isoblock.errors import CloneError, EnvelopeError
from isoblock.runtime.values import UNDEFINED, Transferable

DEFAULT_MAX_DEPTH = 128

_SCALARS = (str, int, bool)


def _child_path(path: str, key: Any) -> str:
	if isinstance(key, str) and key.isidentifier():
		return f"{path}.{key}"
	if isinstance(key, int) and not isinstance(key, bool):
		return f"{path}[{key}]"
	return f"{path}[{key!r}]"


class _Serializer:
	def __init__(
		self,
		*,
		capture: Optional[str],
		handles: Optional[Dict[int, int]],
		max_depth: int,
	) -> None:
		self.capture = capture
		self.handles = handles
		self.max_depth = max_depth
		self.ids: Dict[int, int] = {}
		self.building: set[int] = set()
		# Keep visited objects alive so their id() stays unique during the walk.
		self.keepalive: List[Any] = []

	def fail(self, reason: str, path: str) -> CloneError:
		return CloneError(reason, capture=self.capture, path=path)

	def encode(self, value: Any, path: str, depth: int) -> Any:
		kind = type(value)
		if value is None or kind in _SCALARS:
			return value
		if kind is float:
			if math.isnan(value):
				return {"$": "float", "v": "nan"}
			if math.isinf(value):
				return {"$": "float", "v": "inf" if value > 0 else "-inf"}
			return value
		if value is UNDEFINED:
			return {"$": "undefined"}
		if kind is bytes:
			return {"$": "bytes", "v": base64.b64encode(value).decode("ascii")}
		if kind is _dt.datetime:
			return {"$": "datetime", "v": value.isoformat()}
		if kind is _dt.date:
			return {"$": "date", "v": value.isoformat()}
		if kind is _dt.time:
			return {"$": "time", "v": value.isoformat()}
		if kind is _dt.timedelta:
			return {"$": "timedelta", "v": [value.days, value.seconds, value.microseconds]}
		if isinstance(value, Transferable):
			if self.handles is None:
				raise self.fail("handles can only be moved by listing them in a transfer list", path)
			index = self.handles.get(id(value))
			if index is None:
				raise self.fail("handle is not listed in the transfer list", path)
			return {"$": "handle", "i": index}
		if kind not in (list, tuple, dict, set, frozenset, bytearray):
			raise self.fail(f"unsupported type '{kind.__name__}'", path)

		key = id(value)
		if key in self.ids:
			if key in self.building and kind in (tuple, frozenset):
				raise self.fail(f"cyclic reference through immutable '{kind.__name__}'", path)
			return {"$": "ref", "id": self.ids[key]}
		if depth >= self.max_depth:
			raise self.fail(f"nesting deeper than {self.max_depth} levels", path)
		ref_id = len(self.ids)
		self.ids[key] = ref_id
		self.keepalive.append(value)
		self.building.add(key)
		try:
			return self.encode_container(value, kind, ref_id, path, depth + 1)
		finally:
			self.building.discard(key)

	def encode_container(self, value: Any, kind: type, ref_id: int, path: str, depth: int) -> Any:
		if kind is bytearray:
			return {"$": "bytearray", "id": ref_id, "v": base64.b64encode(bytes(value)).decode("ascii")}
		if kind in (list, tuple):
			items = [self.encode(item, _child_path(path, i), depth) for i, item in enumerate(value)]
			return {"$": "list" if kind is list else "tuple", "id": ref_id, "v": items}
		if kind in (set, frozenset):
			items = [self.encode(item, f"{path}{{…}}", depth) for item in value]
			return {"$": "set" if kind is set else "frozenset", "id": ref_id, "v": items}
		if all(type(k) is str for k in value):
			return {
				"$": "dict",
				"id": ref_id,
				"v": {k: self.encode(v, _child_path(path, k), depth) for k, v in value.items()},
			}
		pairs = []
		for k, v in value.items():
			pairs.append([self.encode(k, f"{path}<key>", depth), self.encode(v, _child_path(path, k), depth)])
		return {"$": "map", "id": ref_id, "v": pairs}


class _Deserializer:
	def __init__(self, handles: Optional[Sequence[Any]]) -> None:
		self.handles = handles
		self.refs: Dict[int, Any] = {}

	def fail(self, reason: str) -> EnvelopeError:
		return EnvelopeError(f"malformed clone data: {reason}")

	def decode(self, data: Any) -> Any:
		if data is None or type(data) in (str, int, bool, float):
			return data
		if isinstance(data, list):
			raise self.fail("untagged array")
		if not isinstance(data, dict) or not isinstance(data.get("$"), str):
			raise self.fail(f"unexpected node {type(data).__name__}")
		tag = data["$"]
		try:
			return self.decode_tagged(tag, data)
		except (AttributeError, KeyError, TypeError, ValueError) as err:
			if isinstance(err, EnvelopeError):
				raise
			raise self.fail(f"bad '{tag}' node ({err})") from err

	def register(self, data: dict, value: Any) -> Any:
		ref_id = data["id"]
		if not isinstance(ref_id, int) or ref_id in self.refs:
			raise self.fail("bad container id")
		self.refs[ref_id] = value
		return value

	def decode_tagged(self, tag: str, data: dict) -> Any:
		if tag == "undefined":
			return UNDEFINED
		if tag == "float":
			return {"nan": math.nan, "inf": math.inf, "-inf": -math.inf}[data["v"]]
		if tag == "bytes":
			return base64.b64decode(data["v"].encode("ascii"), validate=True)
		if tag == "datetime":
			return _dt.datetime.fromisoformat(data["v"])
		if tag == "date":
			return _dt.date.fromisoformat(data["v"])
		if tag == "time":
			return _dt.time.fromisoformat(data["v"])
		if tag == "timedelta":
			days, seconds, micros = data["v"]
			return _dt.timedelta(days=days, seconds=seconds, microseconds=micros)
		if tag == "handle":
			if self.handles is None:
				raise self.fail("handle reference outside a transfer")
			index = data["i"]
			if not isinstance(index, int) or not 0 <= index < len(self.handles):
				raise self.fail("handle index out of range")
			return self.handles[index]
		if tag == "ref":
			ref_id = data["id"]
			if ref_id not in self.refs:
				raise self.fail(f"dangling reference {ref_id}")
			return self.refs[ref_id]
		if tag == "bytearray":
			return self.register(data, bytearray(base64.b64decode(data["v"].encode("ascii"), validate=True)))
		if tag == "list":
			out: list = self.register(data, [])
			out.extend(self.decode(item) for item in data["v"])
			return out
		if tag == "set":
			result: set = self.register(data, set())
			result.update(self.decode(item) for item in data["v"])
			return result
		if tag == "dict":
			obj: dict = self.register(data, {})
			for k, v in data["v"].items():
				obj[k] = self.decode(v)
			return obj
		if tag == "map":
			mapping: dict = self.register(data, {})
			for k, v in data["v"]:
				mapping[self.decode(k)] = self.decode(v)
			return mapping
		if tag == "tuple":
			return self.register(data, tuple(self.decode(item) for item in data["v"]))
		if tag == "frozenset":
			return self.register(data, frozenset(self.decode(item) for item in data["v"]))
		raise self.fail(f"unknown tag '{tag}'")


def serialize_value(
	value: Any,
	*,
	capture: Optional[str] = None,
	handles: Optional[Dict[int, int]] = None,
	max_depth: int = DEFAULT_MAX_DEPTH,
) -> Any:
	"""
	Encode `value` as a JSON-compatible tagged tree.

	`handles` maps `id(handle)` to its index in the transfer list; without it
	any handle in `value` is a `CloneError`. Values nested past what the
	interpreter stack allows are a `CloneError` as well, even under a large
	`max_depth`.
	"""
	root = capture or "value"
	try:
		return _Serializer(capture=capture, handles=handles, max_depth=max_depth).encode(value, root, 0)
	except RecursionError as err:
		raise CloneError("value is nested too deeply to clone", capture=capture, path=root) from err


def deserialize_value(data: Any, *, handles: Optional[Sequence[Any]] = None) -> Any:
	try:
		return _Deserializer(handles).decode(data)
	except RecursionError as err:
		raise EnvelopeError("malformed clone data: nesting too deep") from err


def structured_clone(value: Any, *, capture: Optional[str] = None, max_depth: int = DEFAULT_MAX_DEPTH) -> Any:
	"""Deep copy `value` through the clone encoding."""
	return deserialize_value(serialize_value(value, capture=capture, max_depth=max_depth))


def clone_bindings(bindings: Mapping[str, Any], *, max_depth: int = DEFAULT_MAX_DEPTH) -> Dict[str, Any]:
	"""Clone each value of a name -> value mapping, naming the capture on failure."""
	return {name: structured_clone(value, capture=name, max_depth=max_depth) for name, value in bindings.items()}


__all__ = [
	"DEFAULT_MAX_DEPTH",
	"clone_bindings",
	"deserialize_value",
	"serialize_value",
	"structured_clone",
]
