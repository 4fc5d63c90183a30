#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Handles and reification: binding-set checks, snapshots, repeat invocation.
"""

from __future__ import annotations

import asyncio
import copy
import pickle

import pytest

from isoblock.errors import CloneError, IncompleteReificationError, UnexpectedBindingError
from isoblock.runtime.context import ExecutionContext
from isoblock.runtime.reify import ReifiedBlock
from isoblock.runtime.values import UNDEFINED


def _ctx() -> ExecutionContext:
	return ExecutionContext("test")


def test_reify_and_run_without_captures() -> None:
	"""`{| return 1 + 1 |}` reified with no bindings fulfils with 2."""
	reified = _ctx().block("return 1 + 1").reify()
	assert isinstance(reified, ReifiedBlock)
	assert asyncio.run(reified()) == 2


def test_body_without_return_yields_undefined() -> None:
	assert asyncio.run(_ctx().block("let a = 1").reify()()) is UNDEFINED


def test_handle_reifies_repeatedly_with_different_bindings() -> None:
	"""An endpoint handle stays usable after each reify."""
	handle = _ctx().block("return base + n", ["base", "n"], {"base": 100})
	first = handle.reify({"n": 1})
	second = handle.reify({"n": 2})
	assert asyncio.run(first()) == 101
	assert asyncio.run(second()) == 102
	assert handle.is_complete is False
	assert handle.missing_captures == frozenset({"n"})


def test_reified_block_can_be_invoked_more_than_once() -> None:
	reified = _ctx().block("items.push(4)\nreturn items.length", ["items"]).reify({"items": [1, 2, 3]})
	assert asyncio.run(reified()) == 4
	assert asyncio.run(reified()) == 4


def test_bindings_are_snapshotted_at_reify() -> None:
	data = {"count": 1}
	reified = _ctx().block("return data.count", ["data"]).reify({"data": data})
	data["count"] = 99
	assert asyncio.run(reified()) == 1


def test_body_mutation_does_not_reach_caller() -> None:
	data = {"count": 1}
	reified = _ctx().block("data.count = 5\nreturn data.count", ["data"]).reify({"data": data})
	assert asyncio.run(reified()) == 5
	assert data == {"count": 1}


def test_values_provided_at_construction_are_cloned() -> None:
	values = {"xs": [1, 2]}
	handle = _ctx().block("return xs.length", ["xs"], values)
	values["xs"].append(3)
	assert asyncio.run(handle.reify()()) == 2
	provided = handle.provided_captures
	provided["xs"].append(10)
	assert handle.provided_captures == {"xs": [1, 2]}


def test_missing_bindings() -> None:
	handle = _ctx().block("return a + b", ["a", "b"])
	with pytest.raises(IncompleteReificationError) as exc:
		handle.reify({"a": 1})
	assert exc.value.missing == ("b",)


def test_undeclared_binding() -> None:
	handle = _ctx().block("return a", ["a"])
	with pytest.raises(UnexpectedBindingError) as exc:
		handle.reify({"a": 1, "extra": 2})
	assert exc.value.unexpected == ("extra",)
	assert "not declared as captures" in exc.value.message


def test_binding_already_provided() -> None:
	handle = _ctx().block("return a", ["a"], {"a": 1})
	with pytest.raises(UnexpectedBindingError) as exc:
		handle.reify({"a": 2})
	assert "already provided at construction" in exc.value.message


def test_unused_declared_capture_is_still_required() -> None:
	handle = _ctx().block("return 1", ["spare"])
	with pytest.raises(IncompleteReificationError):
		handle.reify()
	assert asyncio.run(handle.reify({"spare": None})()) == 1


def test_marker_declares_required_binding() -> None:
	handle = _ctx().block("return ${n} * 2")
	assert handle.declared_captures == frozenset({"n"})
	assert asyncio.run(handle.reify({"n": 21})()) == 42


def test_unclonable_binding_names_capture() -> None:
	handle = _ctx().block("return f", ["f"])
	with pytest.raises(CloneError) as exc:
		handle.reify({"f": lambda: 1})
	assert exc.value.capture == "f"
	assert "unsupported type 'function'" in str(exc.value)


def test_bindings_must_be_a_mapping() -> None:
	handle = _ctx().block("return a", ["a"])
	with pytest.raises(TypeError):
		handle.reify([("a", 1)])


def test_block_rejects_undeclared_values() -> None:
	with pytest.raises(UnexpectedBindingError):
		_ctx().block("return a", ["a"], {"b": 1})


def test_handles_cannot_be_copied_or_pickled() -> None:
	handle = _ctx().block("return 1")
	with pytest.raises(TypeError):
		copy.copy(handle)
	with pytest.raises(TypeError):
		copy.deepcopy(handle)
	with pytest.raises(TypeError):
		pickle.dumps(handle)


def test_handle_repr_hides_body() -> None:
	handle = _ctx().block("return 'top secret'")
	assert "top secret" not in repr(handle)
	assert "local" in repr(handle)
