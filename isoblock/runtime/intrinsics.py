# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Language intrinsics: global namespaces and the methods of built-in values.

Intrinsics are the only names a body can resolve without declaring a
capture. Namespaces are read-only; assigning to a member raises a
`TypeError` inside the body.

An `Intrinsic` implementation receives the calling interpreter (for invoking
callbacks) and the argument list. When `awaits` is set the implementation is
a coroutine function and the interpreter awaits it in place.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
import logging
import math
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence

from isoblock.errors import BlockRuntimeError, ThrownValue

from .values import (
	UNDEFINED,
	is_callable,
	is_nullish,
	is_number,
	normalize_number,
	number_to_string,
	strict_equals,
	to_number,
	to_string,
	truthy,
)

if TYPE_CHECKING:
	from .interp import Interpreter

console_logger = logging.getLogger("isoblock.console")

IntrinsicImpl = Callable[["Interpreter", Sequence[Any]], Any]


@dataclass
class Intrinsic:
	name: str
	impl: IntrinsicImpl
	awaits: bool = False

	js_callable = True

	def __repr__(self) -> str:
		return f"<intrinsic {self.name}>"


@dataclass
class Namespace:
	"""Read-only global such as `Math`; callable when `call` is set (`Number(x)`)."""

	name: str
	members: Dict[str, Any] = field(default_factory=dict)
	call: Optional[Intrinsic] = None

	@property
	def js_callable(self) -> bool:
		return self.call is not None

	def get_attr(self, name: str) -> Any:
		return self.members.get(name, UNDEFINED)

	def __repr__(self) -> str:
		return f"<namespace {self.name}>"


def _arg(args: Sequence[Any], index: int) -> Any:
	return args[index] if index < len(args) else UNDEFINED


def _type_error(message: str) -> BlockRuntimeError:
	return BlockRuntimeError("TypeError", message)


def make_error(message: Any = UNDEFINED, name: str = "Error") -> dict:
	return {"name": name, "message": "" if message is UNDEFINED else to_string(message)}


async def settle(value: Any) -> Any:
	"""Await `value` if it is awaitable; plain values pass through."""
	if inspect.isawaitable(value):
		return await value
	return value


# Display ---------------------------------------------------------------------


def display(value: Any, *, nested: bool = False) -> str:
	"""Render a value the way `console.log` shows it."""
	if isinstance(value, str):
		return json.dumps(value, ensure_ascii=False) if nested else value
	if isinstance(value, list):
		return "[" + ", ".join(display(v, nested=True) for v in value) + "]"
	if isinstance(value, dict):
		if not value:
			return "{}"
		inner = ", ".join(f"{k}: {display(v, nested=True)}" for k, v in value.items())
		return "{ " + inner + " }"
	return to_string(value) if not hasattr(value, "get_attr") else repr(value)


# JSON ------------------------------------------------------------------------

_SKIP = object()


def to_json_tree(value: Any, *, in_array: bool = False) -> Any:
	if value is UNDEFINED or is_callable(value):
		return None if in_array else _SKIP
	if value is None or isinstance(value, (bool, str)):
		return value
	if is_number(value):
		if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
			return None
		return value
	if isinstance(value, (list, tuple)):
		return [to_json_tree(v, in_array=True) for v in value]
	if isinstance(value, dict):
		out = {}
		for k, v in value.items():
			tree = to_json_tree(v)
			if tree is not _SKIP:
				out[to_string(k)] = tree
		return out
	return {}


def from_json_tree(value: Any) -> Any:
	if isinstance(value, float):
		return normalize_number(value)
	if isinstance(value, list):
		return [from_json_tree(v) for v in value]
	if isinstance(value, dict):
		return {k: from_json_tree(v) for k, v in value.items()}
	return value


def stringify(value: Any, indent: Any = UNDEFINED) -> Any:
	"""`JSON.stringify`: text, or `UNDEFINED` for values JSON cannot represent."""
	tree = to_json_tree(value)
	if tree is _SKIP:
		return UNDEFINED
	if is_number(indent) and indent > 0:
		return json.dumps(tree, ensure_ascii=False, indent=int(indent))
	if isinstance(indent, str) and indent:
		return json.dumps(tree, ensure_ascii=False, indent=indent)
	return json.dumps(tree, ensure_ascii=False, separators=(",", ":"))


def _json_stringify(interp: "Interpreter", args: Sequence[Any]) -> Any:
	return stringify(_arg(args, 0), _arg(args, 2))


def _json_parse(interp: "Interpreter", args: Sequence[Any]) -> Any:
	try:
		return from_json_tree(json.loads(to_string(_arg(args, 0))))
	except json.JSONDecodeError as err:
		raise BlockRuntimeError("SyntaxError", f"JSON.parse: {err.msg}") from None


# Numbers ---------------------------------------------------------------------


def _parse_int(interp: "Interpreter", args: Sequence[Any]) -> Any:
	text = to_string(_arg(args, 0)).strip()
	radix_arg = _arg(args, 1)
	radix = 10 if radix_arg is UNDEFINED else int(to_number(radix_arg))
	sign = 1
	if text[:1] in "+-" and text:
		sign = -1 if text[0] == "-" else 1
		text = text[1:]
	if radix_arg is UNDEFINED and text[:2] in ("0x", "0X"):
		radix, text = 16, text[2:]
	if not 2 <= radix <= 36:
		return math.nan
	digits = "0123456789abcdefghijklmnopqrstuvwxyz"[:radix]
	end = 0
	while end < len(text) and text[end].lower() in digits:
		end += 1
	if end == 0:
		return math.nan
	return sign * int(text[:end], radix)


def _parse_float(interp: "Interpreter", args: Sequence[Any]) -> Any:
	text = to_string(_arg(args, 0)).strip()
	best: Any = math.nan
	for end in range(len(text), 0, -1):
		chunk = text[:end]
		if chunk.lower().lstrip("+-").startswith(("inf", "nan")):
			continue
		try:
			best = normalize_number(float(chunk))
			break
		except ValueError:
			continue
	if text.startswith(("Infinity", "+Infinity")):
		return math.inf
	if text.startswith("-Infinity"):
		return -math.inf
	return best


def _is_nan(interp: "Interpreter", args: Sequence[Any]) -> Any:
	value = to_number(_arg(args, 0))
	return isinstance(value, float) and math.isnan(value)


def _to_fixed(receiver: Any, interp: "Interpreter", args: Sequence[Any]) -> Any:
	digits = _arg(args, 0)
	places = 0 if digits is UNDEFINED else int(to_number(digits))
	return f"{receiver:.{places}f}"


def _math_fn(fn: Callable[..., float]) -> IntrinsicImpl:
	def impl(interp: "Interpreter", args: Sequence[Any]) -> Any:
		try:
			return normalize_number(fn(*(to_number(a) for a in args)))
		except (ValueError, OverflowError):
			return math.nan

	return impl


def _math_round(x: float) -> float:
	if math.isnan(x) or math.isinf(x):
		return x
	return float(math.floor(x + 0.5))


def _math_extreme(pick: Callable[..., Any], empty: float) -> IntrinsicImpl:
	def impl(interp: "Interpreter", args: Sequence[Any]) -> Any:
		numbers = [to_number(a) for a in args]
		if not numbers:
			return empty
		if any(isinstance(n, float) and math.isnan(n) for n in numbers):
			return math.nan
		return pick(numbers)

	return impl


def _math_sign(x: float) -> float:
	if math.isnan(x) or x == 0:
		return x
	return 1.0 if x > 0 else -1.0


# Objects and arrays ----------------------------------------------------------


def _require_object(value: Any, fn: str) -> dict:
	if not isinstance(value, dict):
		raise _type_error(f"{fn} called on non-object")
	return value


def _object_keys(interp: "Interpreter", args: Sequence[Any]) -> Any:
	value = _arg(args, 0)
	if isinstance(value, list):
		return [str(i) for i in range(len(value))]
	return [to_string(k) for k in _require_object(value, "Object.keys")]


def _object_values(interp: "Interpreter", args: Sequence[Any]) -> Any:
	value = _arg(args, 0)
	if isinstance(value, list):
		return list(value)
	return list(_require_object(value, "Object.values").values())


def _object_entries(interp: "Interpreter", args: Sequence[Any]) -> Any:
	value = _arg(args, 0)
	if isinstance(value, list):
		return [[str(i), v] for i, v in enumerate(value)]
	return [[to_string(k), v] for k, v in _require_object(value, "Object.entries").items()]


def _object_assign(interp: "Interpreter", args: Sequence[Any]) -> Any:
	target = _require_object(_arg(args, 0), "Object.assign")
	for source in args[1:]:
		if isinstance(source, dict):
			target.update(source)
	return target


def _object_from_entries(interp: "Interpreter", args: Sequence[Any]) -> Any:
	entries = _arg(args, 0)
	if not isinstance(entries, list):
		raise _type_error("Object.fromEntries expects an array of pairs")
	out: dict = {}
	for pair in entries:
		if not isinstance(pair, list) or not pair:
			raise _type_error("Object.fromEntries expects an array of pairs")
		out[to_string(pair[0])] = pair[1] if len(pair) > 1 else UNDEFINED
	return out


def iterable_items(value: Any) -> List[Any]:
	if isinstance(value, list):
		return list(value)
	if isinstance(value, str):
		return list(value)
	if isinstance(value, (tuple, set, frozenset)):
		return list(value)
	raise _type_error(f"{display(value)} is not iterable")


def _array_from(interp: "Interpreter", args: Sequence[Any]) -> Any:
	return iterable_items(_arg(args, 0))


async def _array_callback(
	interp: "Interpreter",
	items: List[Any],
	fn: Any,
	name: str,
) -> List[Any]:
	if not is_callable(fn):
		raise _type_error(f"{display(fn)} is not a function (Array.prototype.{name})")
	results = []
	for index, item in enumerate(items):
		results.append(await interp.call(fn, [item, index, items]))
	return results


async def _array_map(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	return await _array_callback(interp, list(receiver), _arg(args, 0), "map")


async def _array_filter(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	items = list(receiver)
	keep = await _array_callback(interp, items, _arg(args, 0), "filter")
	return [item for item, flag in zip(items, keep) if truthy(flag)]


async def _array_for_each(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	await _array_callback(interp, list(receiver), _arg(args, 0), "forEach")
	return UNDEFINED


async def _array_some(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	fn = _arg(args, 0)
	for index, item in enumerate(list(receiver)):
		if truthy(await interp.call(fn, [item, index, receiver])):
			return True
	return False


async def _array_every(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	fn = _arg(args, 0)
	for index, item in enumerate(list(receiver)):
		if not truthy(await interp.call(fn, [item, index, receiver])):
			return False
	return True


async def _array_find(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	fn = _arg(args, 0)
	for index, item in enumerate(list(receiver)):
		if truthy(await interp.call(fn, [item, index, receiver])):
			return item
	return UNDEFINED


async def _array_find_index(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	fn = _arg(args, 0)
	for index, item in enumerate(list(receiver)):
		if truthy(await interp.call(fn, [item, index, receiver])):
			return index
	return -1


async def _array_reduce(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	fn = _arg(args, 0)
	items = list(receiver)
	if len(args) > 1:
		acc = args[1]
		start = 0
	elif items:
		acc = items[0]
		start = 1
	else:
		raise _type_error("Reduce of empty array with no initial value")
	for index in range(start, len(items)):
		acc = await interp.call(fn, [acc, items[index], index, items])
	return acc


async def _array_sort(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	fn = _arg(args, 0)
	items = list(receiver)
	if fn is UNDEFINED:
		items.sort(key=to_string)
	else:
		# Insertion sort keeps comparator calls awaitable.
		for i in range(1, len(items)):
			current = items[i]
			j = i - 1
			while j >= 0 and to_number(await interp.call(fn, [items[j], current])) > 0:
				items[j + 1] = items[j]
				j -= 1
			items[j + 1] = current
	receiver[:] = items
	return receiver


def _array_push(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	receiver.extend(args)
	return len(receiver)


def _array_pop(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	return receiver.pop() if receiver else UNDEFINED


def _array_shift(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	return receiver.pop(0) if receiver else UNDEFINED


def _array_unshift(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	receiver[0:0] = list(args)
	return len(receiver)


def _index_of(items: Sequence[Any], needle: Any) -> int:
	for index, item in enumerate(items):
		if strict_equals(item, needle):
			return index
	return -1


def _array_index_of(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	return _index_of(receiver, _arg(args, 0))


def _array_includes(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	needle = _arg(args, 0)
	if isinstance(needle, float) and math.isnan(needle):
		return any(isinstance(v, float) and math.isnan(v) for v in receiver)
	return _index_of(receiver, needle) >= 0


def _array_join(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	sep = _arg(args, 0)
	sep_text = "," if sep is UNDEFINED else to_string(sep)
	return sep_text.join("" if is_nullish(v) else to_string(v) for v in receiver)


def _slice_bounds(length: int, args: Sequence[Any]) -> tuple[int, int]:
	def clamp(value: Any, default: int) -> int:
		if value is UNDEFINED:
			return default
		n = to_number(value)
		if isinstance(n, float) and math.isnan(n):
			n = 0
		n = int(n) if not math.isinf(n) else (length if n > 0 else -length)
		if n < 0:
			n = max(length + n, 0)
		return min(n, length)

	return clamp(_arg(args, 0), 0), clamp(_arg(args, 1), length)


def _array_slice(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	start, end = _slice_bounds(len(receiver), args)
	return receiver[start:end]


def _array_concat(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	out = list(receiver)
	for arg in args:
		if isinstance(arg, list):
			out.extend(arg)
		else:
			out.append(arg)
	return out


def _array_reverse(receiver: list, interp: "Interpreter", args: Sequence[Any]) -> Any:
	receiver.reverse()
	return receiver


ARRAY_METHODS: Dict[str, tuple[Callable[..., Any], bool]] = {
	"push": (_array_push, False),
	"pop": (_array_pop, False),
	"shift": (_array_shift, False),
	"unshift": (_array_unshift, False),
	"indexOf": (_array_index_of, False),
	"includes": (_array_includes, False),
	"join": (_array_join, False),
	"slice": (_array_slice, False),
	"concat": (_array_concat, False),
	"reverse": (_array_reverse, False),
	"map": (_array_map, True),
	"filter": (_array_filter, True),
	"forEach": (_array_for_each, True),
	"some": (_array_some, True),
	"every": (_array_every, True),
	"find": (_array_find, True),
	"findIndex": (_array_find_index, True),
	"reduce": (_array_reduce, True),
	"sort": (_array_sort, True),
}


# Strings ---------------------------------------------------------------------


def _string_method(fn: Callable[..., Any]) -> Callable[..., Any]:
	@functools.wraps(fn)
	def impl(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
		return fn(receiver, *args)

	return impl


def _str_arg(value: Any, default: str = "undefined") -> str:
	return default if value is UNDEFINED else to_string(value)


def _string_split(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
	sep = _arg(args, 0)
	if sep is UNDEFINED:
		return [receiver]
	sep_text = to_string(sep)
	if sep_text == "":
		return list(receiver)
	return receiver.split(sep_text)


def _string_replace(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
	return receiver.replace(_str_arg(_arg(args, 0)), _str_arg(_arg(args, 1)), 1)


def _string_replace_all(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
	return receiver.replace(_str_arg(_arg(args, 0)), _str_arg(_arg(args, 1)))


def _string_slice(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
	start, end = _slice_bounds(len(receiver), args)
	return receiver[start:end]


def _string_index_of(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
	return receiver.find(_str_arg(_arg(args, 0)))


def _string_includes(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
	return _str_arg(_arg(args, 0)) in receiver


def _string_pad(left: bool) -> Callable[..., Any]:
	def impl(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
		width = int(to_number(_arg(args, 0)) or 0)
		fill = _str_arg(_arg(args, 1), " ") or " "
		missing = width - len(receiver)
		if missing <= 0:
			return receiver
		pad = (fill * (missing // len(fill) + 1))[:missing]
		return pad + receiver if left else receiver + pad

	return impl


def _string_char_at(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
	index = int(to_number(_arg(args, 0)) or 0)
	return receiver[index] if 0 <= index < len(receiver) else ""


def _string_repeat(receiver: str, interp: "Interpreter", args: Sequence[Any]) -> Any:
	count = to_number(_arg(args, 0))
	if isinstance(count, float) and (math.isnan(count) or math.isinf(count)) or count < 0:
		raise BlockRuntimeError("RangeError", "Invalid count value")
	return receiver * int(count)


STRING_METHODS: Dict[str, Callable[..., Any]] = {
	"toUpperCase": _string_method(lambda s: s.upper()),
	"toLowerCase": _string_method(lambda s: s.lower()),
	"trim": _string_method(lambda s: s.strip()),
	"startsWith": _string_method(lambda s, p=UNDEFINED, *_: s.startswith(_str_arg(p))),
	"endsWith": _string_method(lambda s, p=UNDEFINED, *_: s.endswith(_str_arg(p))),
	"split": _string_split,
	"replace": _string_replace,
	"replaceAll": _string_replace_all,
	"slice": _string_slice,
	"indexOf": _string_index_of,
	"includes": _string_includes,
	"padStart": _string_pad(True),
	"padEnd": _string_pad(False),
	"charAt": _string_char_at,
	"repeat": _string_repeat,
}


def member_of(value: Any, name: str) -> Any:
	"""Property lookup on built-in values; `UNDEFINED` when absent."""
	if isinstance(value, list):
		if name == "length":
			return len(value)
		entry = ARRAY_METHODS.get(name)
		if entry is None:
			return UNDEFINED
		impl, awaits = entry
		return Intrinsic(f"Array.prototype.{name}", functools.partial(impl, value), awaits=awaits)
	if isinstance(value, str):
		if name == "length":
			return len(value)
		method = STRING_METHODS.get(name)
		if method is None:
			return UNDEFINED
		return Intrinsic(f"String.prototype.{name}", functools.partial(method, value))
	if is_number(value):
		if name == "toFixed":
			return Intrinsic("Number.prototype.toFixed", functools.partial(_to_fixed, value))
		if name == "toString":
			return Intrinsic("Number.prototype.toString", lambda interp, args: number_to_string(value))
	return UNDEFINED


# Promise ---------------------------------------------------------------------


def _promise_resolve(interp: "Interpreter", args: Sequence[Any]) -> Any:
	value = _arg(args, 0)
	if inspect.isawaitable(value):
		return value
	future = asyncio.get_running_loop().create_future()
	future.set_result(value)
	return future


def _promise_reject(interp: "Interpreter", args: Sequence[Any]) -> Any:
	future = asyncio.get_running_loop().create_future()
	future.set_exception(ThrownValue(_arg(args, 0)))
	return future


def _promise_all(interp: "Interpreter", args: Sequence[Any]) -> Any:
	items = iterable_items(_arg(args, 0))
	futures = [asyncio.ensure_future(v) if inspect.isawaitable(v) else v for v in items]

	async def gather() -> List[Any]:
		return [await settle(v) for v in futures]

	return asyncio.ensure_future(gather())


# console ---------------------------------------------------------------------


def _console(level: int) -> IntrinsicImpl:
	def impl(interp: "Interpreter", args: Sequence[Any]) -> Any:
		console_logger.log(level, "%s", " ".join(display(a) for a in args))
		return UNDEFINED

	return impl


def _call(name: str, fn: Callable[[Any], Any]) -> Intrinsic:
	return Intrinsic(name, lambda interp, args: fn(_arg(args, 0)))


def _build_globals() -> Mapping[str, Any]:
	math_ns = Namespace(
		"Math",
		{
			"PI": math.pi,
			"E": math.e,
			"floor": Intrinsic("Math.floor", _math_fn(math.floor)),
			"ceil": Intrinsic("Math.ceil", _math_fn(math.ceil)),
			"round": Intrinsic("Math.round", _math_fn(_math_round)),
			"trunc": Intrinsic("Math.trunc", _math_fn(math.trunc)),
			"abs": Intrinsic("Math.abs", _math_fn(abs)),
			"sqrt": Intrinsic("Math.sqrt", _math_fn(math.sqrt)),
			"pow": Intrinsic("Math.pow", _math_fn(math.pow)),
			"log": Intrinsic("Math.log", _math_fn(math.log)),
			"sign": Intrinsic("Math.sign", _math_fn(_math_sign)),
			"max": Intrinsic("Math.max", _math_extreme(max, -math.inf)),
			"min": Intrinsic("Math.min", _math_extreme(min, math.inf)),
			"random": Intrinsic("Math.random", lambda interp, args: random.random()),
		},
	)
	json_ns = Namespace(
		"JSON",
		{
			"stringify": Intrinsic("JSON.stringify", _json_stringify),
			"parse": Intrinsic("JSON.parse", _json_parse),
		},
	)
	object_ns = Namespace(
		"Object",
		{
			"keys": Intrinsic("Object.keys", _object_keys),
			"values": Intrinsic("Object.values", _object_values),
			"entries": Intrinsic("Object.entries", _object_entries),
			"assign": Intrinsic("Object.assign", _object_assign),
			"fromEntries": Intrinsic("Object.fromEntries", _object_from_entries),
		},
	)
	array_ns = Namespace(
		"Array",
		{
			"isArray": _call("Array.isArray", lambda v: isinstance(v, list)),
			"from": Intrinsic("Array.from", _array_from),
			"of": Intrinsic("Array.of", lambda interp, args: list(args)),
		},
		call=Intrinsic("Array", lambda interp, args: list(args)),
	)
	parse_int = Intrinsic("parseInt", _parse_int)
	parse_float = Intrinsic("parseFloat", _parse_float)
	number_ns = Namespace(
		"Number",
		{
			"isInteger": _call("Number.isInteger", lambda v: is_number(v) and float(v).is_integer()),
			"isFinite": _call("Number.isFinite", lambda v: is_number(v) and math.isfinite(v)),
			"isNaN": _call("Number.isNaN", lambda v: isinstance(v, float) and math.isnan(v)),
			"parseInt": parse_int,
			"parseFloat": parse_float,
			"MAX_SAFE_INTEGER": 2**53 - 1,
			"MIN_SAFE_INTEGER": -(2**53 - 1),
		},
		call=_call("Number", lambda v: 0 if v is UNDEFINED else to_number(v)),
	)
	string_ns = Namespace(
		"String",
		{"fromCharCode": Intrinsic("String.fromCharCode", lambda interp, args: "".join(chr(int(to_number(a))) for a in args))},
		call=_call("String", lambda v: "" if v is UNDEFINED else to_string(v)),
	)
	boolean_ns = Namespace("Boolean", {}, call=_call("Boolean", truthy))
	promise_ns = Namespace(
		"Promise",
		{
			"resolve": Intrinsic("Promise.resolve", _promise_resolve),
			"reject": Intrinsic("Promise.reject", _promise_reject),
			"all": Intrinsic("Promise.all", _promise_all),
		},
	)
	console_ns = Namespace(
		"console",
		{
			"log": Intrinsic("console.log", _console(logging.INFO)),
			"info": Intrinsic("console.info", _console(logging.INFO)),
			"debug": Intrinsic("console.debug", _console(logging.DEBUG)),
			"warn": Intrinsic("console.warn", _console(logging.WARNING)),
			"error": Intrinsic("console.error", _console(logging.ERROR)),
		},
	)
	return {
		"undefined": UNDEFINED,
		"NaN": math.nan,
		"Infinity": math.inf,
		"Math": math_ns,
		"JSON": json_ns,
		"Object": object_ns,
		"Array": array_ns,
		"String": string_ns,
		"Number": number_ns,
		"Boolean": boolean_ns,
		"Promise": promise_ns,
		"Error": Intrinsic("Error", lambda interp, args: make_error(_arg(args, 0))),
		"parseInt": parse_int,
		"parseFloat": parse_float,
		"isNaN": Intrinsic("isNaN", _is_nan),
		"console": console_ns,
	}


GLOBALS: Mapping[str, Any] = _build_globals()


__all__ = [
	"GLOBALS",
	"Intrinsic",
	"Namespace",
	"display",
	"from_json_tree",
	"iterable_items",
	"make_error",
	"member_of",
	"settle",
	"stringify",
	"to_json_tree",
]
