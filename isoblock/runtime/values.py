# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Value model and coercion rules of the body language.

Runtime values are plain Python objects:

| body value | Python |
| --- | --- |
| `undefined` | `UNDEFINED` |
| `null` | `None` |
| boolean | `bool` |
| number | `int` (integral) or `float` |
| string | `str` |
| array | `list` |
| object | `dict` with `str` keys |
| function | `Closure`, `Intrinsic` or any Python callable |

Numbers that come out integral are kept as `int` so `1 + 1` is `2`, not `2.0`.
"""

from __future__ import annotations

import math
from typing import Any

_MAX_SAFE = 2**53


class _Undefined:
	_instance: "_Undefined | None" = None

	def __new__(cls) -> "_Undefined":
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __repr__(self) -> str:
		return "undefined"

	def __bool__(self) -> bool:
		return False

	def __copy__(self) -> "_Undefined":
		return self

	def __deepcopy__(self, memo: dict) -> "_Undefined":
		return self

	def __reduce__(self) -> str:
		return "UNDEFINED"


UNDEFINED = _Undefined()


class Transferable:
	"""
	Base for values that cross contexts only by transfer (move), never by clone.

	Structured clone rejects these unless they are listed in a transfer list.
	"""

	js_callable = False


def is_number(value: Any) -> bool:
	return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_nullish(value: Any) -> bool:
	return value is None or value is UNDEFINED


def normalize_number(value: int | float) -> int | float:
	"""Fold integral floats back to `int`; NaN, infinities and -0 stay floats."""
	if isinstance(value, float) and value.is_integer() and abs(value) <= _MAX_SAFE:
		if value == 0 and math.copysign(1.0, value) < 0:
			return value
		return int(value)
	return value


def truthy(value: Any) -> bool:
	if value is None or value is UNDEFINED or value is False:
		return False
	if value is True:
		return True
	if is_number(value):
		return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
	if isinstance(value, str):
		return value != ""
	return True


def number_to_string(value: int | float) -> str:
	if isinstance(value, int):
		return str(value)
	if math.isnan(value):
		return "NaN"
	if math.isinf(value):
		return "Infinity" if value > 0 else "-Infinity"
	if value.is_integer() and abs(value) < 1e21:
		return str(int(value))
	text = repr(value)
	if "e" in text:
		mantissa, exp = text.split("e")
		sign = "-" if exp.startswith("-") else "+"
		text = f"{mantissa}e{sign}{exp.lstrip('+-').lstrip('0') or '0'}"
	return text


def to_string(value: Any) -> str:
	if isinstance(value, str):
		return value
	if value is UNDEFINED:
		return "undefined"
	if value is None:
		return "null"
	if value is True:
		return "true"
	if value is False:
		return "false"
	if is_number(value):
		return number_to_string(value)
	if isinstance(value, list):
		return ",".join("" if is_nullish(v) else to_string(v) for v in value)
	if isinstance(value, dict):
		if "message" in value and "name" in value:
			return f"{to_string(value['name'])}: {to_string(value['message'])}"
		return "[object Object]"
	if is_callable(value):
		return "function"
	return f"[object {type(value).__name__}]"


def to_number(value: Any) -> int | float:
	if is_number(value):
		return value
	if value is True:
		return 1
	if value is False or value is None:
		return 0
	if value is UNDEFINED:
		return math.nan
	if isinstance(value, str):
		text = value.strip()
		if text == "":
			return 0
		try:
			if text[:2] in ("0x", "0X"):
				return int(text, 16)
			if text in ("Infinity", "+Infinity"):
				return math.inf
			if text == "-Infinity":
				return -math.inf
			if text.lower() in ("inf", "+inf", "-inf", "nan", "infinity", "+infinity", "-infinity"):
				return math.nan
			return normalize_number(float(text))
		except ValueError:
			return math.nan
	if isinstance(value, list):
		return to_number(to_string(value))
	return math.nan


def to_property_key(value: Any) -> str:
	return to_string(value)


def is_callable(value: Any) -> bool:
	flag = getattr(value, "js_callable", None)
	if flag is not None:
		return bool(flag)
	return callable(value) and not isinstance(value, type)


def typeof(value: Any) -> str:
	if value is UNDEFINED:
		return "undefined"
	if isinstance(value, bool):
		return "boolean"
	if is_number(value):
		return "number"
	if isinstance(value, str):
		return "string"
	if value is None:
		return "object"
	if is_callable(value):
		return "function"
	return "object"


def strict_equals(left: Any, right: Any) -> bool:
	if is_number(left) and is_number(right):
		return left == right
	if isinstance(left, str) and isinstance(right, str):
		return left == right
	if isinstance(left, bool) and isinstance(right, bool):
		return left == right
	return left is right


def loose_equals(left: Any, right: Any) -> bool:
	if is_nullish(left) and is_nullish(right):
		return True
	if is_nullish(left) or is_nullish(right):
		return False
	if isinstance(left, bool):
		return loose_equals(int(left), right)
	if isinstance(right, bool):
		return loose_equals(left, int(right))
	if is_number(left) and isinstance(right, str):
		return left == to_number(right)
	if isinstance(left, str) and is_number(right):
		return to_number(left) == right
	return strict_equals(left, right)


def compare(left: Any, right: Any, op: str) -> bool:
	if isinstance(left, str) and isinstance(right, str):
		a: Any = left
		b: Any = right
	else:
		a = to_number(left)
		b = to_number(right)
		if (isinstance(a, float) and math.isnan(a)) or (isinstance(b, float) and math.isnan(b)):
			return False
	if op == "<":
		return a < b
	if op == "<=":
		return a <= b
	if op == ">":
		return a > b
	return a >= b


def add(left: Any, right: Any) -> Any:
	if isinstance(left, (str, list, dict)) or isinstance(right, (str, list, dict)):
		return to_string(left) + to_string(right)
	return normalize_number(to_number(left) + to_number(right))


def arithmetic(op: str, left: Any, right: Any) -> int | float:
	a = to_number(left)
	b = to_number(right)
	if op == "-":
		return normalize_number(a - b)
	if op == "*":
		return normalize_number(a * b)
	if op == "/":
		if b == 0:
			if a == 0 or (isinstance(a, float) and math.isnan(a)):
				return math.nan
			negative = (a < 0) != (math.copysign(1.0, b) < 0)
			return -math.inf if negative else math.inf
		return normalize_number(a / b)
	if op == "%":
		if b == 0 or (isinstance(a, float) and math.isinf(a)):
			return math.nan
		return normalize_number(math.fmod(a, b))
	if op == "**":
		if isinstance(a, int) and isinstance(b, int) and b >= 0:
			return a**b
		try:
			return normalize_number(math.pow(a, b))
		except OverflowError:
			return math.inf
		except ValueError:
			return math.nan
	raise ValueError(f"unknown arithmetic operator {op!r}")


__all__ = [
	"Transferable",
	"UNDEFINED",
	"add",
	"arithmetic",
	"compare",
	"is_callable",
	"is_nullish",
	"is_number",
	"loose_equals",
	"normalize_number",
	"number_to_string",
	"strict_equals",
	"to_number",
	"to_property_key",
	"to_string",
	"truthy",
	"typeof",
]
