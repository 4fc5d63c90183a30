#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Host scripts and execution contexts: construct literals, tagged forms,
host globals and the context event loop.
"""

from __future__ import annotations

import asyncio

import pytest

from isoblock.errors import BlockSyntaxError, CaptureError
from isoblock.runtime.context import ExecutionContext
from isoblock.runtime.handle import Handle


def _spawn(handle: Handle, values: dict | None = None):
	return handle.reify(values)()


def test_capture_list_literal_binds_current_values() -> None:
	ctx = ExecutionContext("host")
	src = """
	const x = 20
	const h = <x>{| return x + 1 |}
	await h.reify()()
	"""
	assert ctx.run_script(src) == 21


def test_site_bound_values_are_cloned() -> None:
	ctx = ExecutionContext("host")
	src = """
	const list = [1]
	const h = <list>{| return list.length |}
	list.push(2)
	await h.reify()()
	"""
	assert ctx.run_script(src) == 1


def test_tagged_forms_match_explicit_calls() -> None:
	"""`spawn<a, b>{| … |}` behaves like `spawn(<a, b>{| … |})`."""
	ctx = ExecutionContext("host")
	ctx.define_global("spawn", _spawn)
	src = """
	const a = 2
	const b = 5
	const viaTag = await spawn<a, b>{| return a * b |}
	const viaCall = await spawn(<a, b>{| return a * b |})
	const bare = await spawn{| return 3 |}
	;[viaTag, viaCall, bare]
	"""
	assert ctx.run_script(src) == [10, 10, 3]


def test_markers_in_script_literals() -> None:
	ctx = ExecutionContext("host")
	assert ctx.run_script("const h = {| return ${n} * 2 |}\nawait h.reify({n: 21})()") == 42


def test_markers_bind_at_the_site_like_a_capture_list() -> None:
	ctx = ExecutionContext("host")
	src = """
	const x = 5
	const listed = <x>{| return x |}
	const marked = {| return ${x} |}
	;[listed.isComplete, marked.isComplete, listed.providedCaptures, marked.providedCaptures]
	"""
	assert ctx.run_script(src) == [True, True, {"x": 5}, {"x": 5}]


def test_names_unbound_at_the_site_stay_missing() -> None:
	ctx = ExecutionContext("host")
	src = """
	const a = 1
	const listed = <a, b>{| return a + b |}
	const marked = {| return ${a} + ${b} |}
	;[listed.missingCaptures, marked.missingCaptures, await listed.reify({b: 2})(), await marked.reify({b: 2})()]
	"""
	assert ctx.run_script(src) == [["b"], ["b"], 3, 3]


def test_handle_introspection_from_script() -> None:
	ctx = ExecutionContext("host")
	src = """
	const h = {| return ${a} + ${b} |}
	;[h.declaredCaptures, h.missingCaptures, h.isComplete, h.isTransferable()]
	"""
	assert ctx.run_script(src) == [["a", "b"], ["a", "b"], False, True]


def test_script_can_hand_a_handle_back() -> None:
	ctx = ExecutionContext("host")
	handle = ctx.run_script("<>{| return 'from script' |}")
	assert isinstance(handle, Handle)
	assert asyncio.run(handle.reify()()) == "from script"


def test_host_globals() -> None:
	ctx = ExecutionContext("host")
	ctx.define_global("base", 10)
	assert ctx.run_script("base + 1") == 11
	with pytest.raises(ValueError):
		ctx.define_global("let", 1)
	with pytest.raises(ValueError):
		ctx.define_global("not a name", 1)


def test_free_name_in_script_literal_fails_before_running() -> None:
	ctx = ExecutionContext("host")
	ctx.define_global("ran", [])
	with pytest.raises(CaptureError) as exc:
		ctx.run_script("ran.push(1)\nconst h = {| return secret |}")
	assert exc.value.names == ("secret",)
	assert ctx.globals["ran"] == []


def test_marker_outside_construct_is_rejected() -> None:
	with pytest.raises(BlockSyntaxError):
		ExecutionContext("host").run_script("let a = ${b}")


def test_submit_requires_started_context() -> None:
	ctx = ExecutionContext("idle")
	with pytest.raises(RuntimeError):
		ctx.submit(ctx.block("return 1").reify())


def test_context_loop_runs_reified_blocks() -> None:
	with ExecutionContext("worker") as ctx:
		assert ctx.running
		future = ctx.submit(ctx.block("return ${n} + 1").reify({"n": 1}))
		assert future.result(timeout=5) == 2
		assert ctx.run_script("1 + 2") == 3
	assert not ctx.running


def test_run_script_from_own_loop_is_refused() -> None:
	with ExecutionContext("worker") as ctx:

		async def reenter():
			return ctx.run_script("1")

		with pytest.raises(RuntimeError) as exc:
			ctx.submit(reenter).result(timeout=5)
		assert "await evaluate()" in str(exc.value)
		assert ctx.run_script("2") == 2


def test_blocks_move_between_contexts_by_reification() -> None:
	"""A handle built in one context runs on another context's loop."""
	main = ExecutionContext("main")
	handle = main.block("return xs.map(x => x * 2)", ["xs"])
	with ExecutionContext("worker") as worker:
		future = worker.submit(handle.reify({"xs": [1, 2, 3]}))
		assert future.result(timeout=5) == [2, 4, 6]
