#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Structured clone of captured values.
"""

from __future__ import annotations

import datetime as dt
import math

import pytest

from isoblock.errors import CloneError, EnvelopeError
from isoblock.runtime.context import ExecutionContext
from isoblock.runtime.values import UNDEFINED
from isoblock.transfer.clone import DEFAULT_MAX_DEPTH, clone_bindings, deserialize_value, serialize_value, structured_clone


def test_clone_is_independent_of_the_original() -> None:
	original = {"items": [1, 2, {"deep": True}], "name": "x"}
	copy = structured_clone(original)
	assert copy == original
	copy["items"][2]["deep"] = False
	copy["items"].append(3)
	assert original == {"items": [1, 2, {"deep": True}], "name": "x"}


def test_supported_value_kinds() -> None:
	value = {
		"none": None,
		"undef": UNDEFINED,
		"tuple": (1, "two"),
		"set": {1, 2},
		"frozen": frozenset({"a"}),
		"bytes": b"\x00\x01",
		"buf": bytearray(b"xy"),
		"when": dt.datetime(2024, 5, 1, 12, 30),
		"day": dt.date(2024, 5, 1),
		"span": dt.timedelta(days=1, seconds=5),
		"inf": math.inf,
		"keys": {1: "one", (2, 3): "pair"},
	}
	copy = structured_clone(value)
	assert copy == value
	assert copy["undef"] is UNDEFINED
	assert type(copy["tuple"]) is tuple
	assert type(copy["buf"]) is bytearray


def test_nan_round_trips() -> None:
	assert math.isnan(structured_clone(math.nan))


def test_shared_and_cyclic_references_are_preserved() -> None:
	shared = [1]
	value = {"a": shared, "b": shared}
	value["self"] = value
	copy = structured_clone(value)
	assert copy["a"] is copy["b"]
	assert copy["a"] is not shared
	assert copy["self"] is copy


def test_functions_are_rejected_with_path() -> None:
	with pytest.raises(CloneError) as exc:
		structured_clone({"cfg": {"hook": print}}, capture="opts")
	assert exc.value.capture == "opts"
	assert exc.value.path == "opts.cfg.hook"
	assert "capture 'opts' at opts.cfg.hook" in str(exc.value)


def test_subclasses_are_rejected() -> None:
	class Tagged(dict):
		pass

	with pytest.raises(CloneError) as exc:
		structured_clone(Tagged(a=1))
	assert "unsupported type 'Tagged'" in str(exc.value)


def test_handles_are_not_clonable() -> None:
	handle = ExecutionContext("test").block("return 1")
	with pytest.raises(CloneError) as exc:
		structured_clone([handle])
	assert "transfer list" in str(exc.value)


def _nested(levels: int) -> list:
	value: list = []
	cursor = value
	for _ in range(levels - 1):
		inner: list = []
		cursor.append(inner)
		cursor = inner
	return value


def test_depth_limit() -> None:
	with pytest.raises(CloneError) as exc:
		structured_clone(_nested(21), max_depth=10)
	assert "deeper than 10" in str(exc.value)


def test_nesting_just_inside_the_default_limit() -> None:
	value = _nested(DEFAULT_MAX_DEPTH - 1)
	assert structured_clone(value, capture="deep") == value
	with pytest.raises(CloneError) as exc:
		structured_clone(_nested(DEFAULT_MAX_DEPTH + 1), capture="deep")
	assert exc.value.capture == "deep"


def test_nesting_past_the_stack_is_a_clone_error() -> None:
	with pytest.raises(CloneError) as exc:
		structured_clone(_nested(5000), capture="deep", max_depth=100_000)
	assert exc.value.capture == "deep"
	assert "nested too deeply" in str(exc.value)


def test_deeply_nested_tree_is_an_envelope_error() -> None:
	tree: dict = {"$": "list", "id": 0, "v": []}
	cursor = tree
	for ref_id in range(1, 5000):
		inner = {"$": "list", "id": ref_id, "v": []}
		cursor["v"].append(inner)
		cursor = inner
	with pytest.raises(EnvelopeError):
		deserialize_value(tree)


def test_clone_bindings_names_the_capture() -> None:
	with pytest.raises(CloneError) as exc:
		clone_bindings({"ok": 1, "bad": object()})
	assert exc.value.capture == "bad"


def test_serialized_tree_is_json_compatible() -> None:
	tree = serialize_value({"a": [1, 2.5, "s"]})
	assert tree == {"$": "dict", "id": 0, "v": {"a": {"$": "list", "id": 1, "v": [1, 2.5, "s"]}}}


def test_malformed_tree_is_an_envelope_error() -> None:
	with pytest.raises(EnvelopeError):
		deserialize_value({"$": "ref", "id": 7})
	with pytest.raises(EnvelopeError):
		deserialize_value([1, 2])
	with pytest.raises(EnvelopeError):
		deserialize_value({"$": "nope"})
