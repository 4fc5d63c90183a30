#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Interpreter behaviour inside reified bodies.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from isoblock.errors import BlockRuntimeError, ThrownValue
from isoblock.runtime.context import ExecutionContext
from isoblock.runtime.handle import Handle


def _run(src: str, **captures: Any) -> Any:
	handle = ExecutionContext("test").block(src, sorted(captures))
	return asyncio.run(handle.reify(captures)())


def test_arithmetic_and_strings() -> None:
	assert _run("return (2 + 3) * 4 - 1") == 19
	assert _run("return 7 / 2") == 3.5
	assert _run("return 'a' + 1") == "a1"
	assert _run("return 2 ** 10") == 1024


def test_equality_and_logic() -> None:
	assert _run("return [1 === 1, 1 == '1', null ?? 'x', 0 || 'y', 1 && 2]") == [True, True, "x", "y", 2]


def test_template_literal() -> None:
	assert _run("return `hi ${name}!`", name="bob") == "hi bob!"


def test_closures_capture_per_iteration_bindings() -> None:
	src = """
	const fns = []
	for (let i = 0; i < 3; i++) {
		fns.push(() => i)
	}
	return fns.map(f => f())
	"""
	assert _run(src) == [0, 1, 2]


def test_while_with_break_and_continue() -> None:
	src = """
	let n = 0
	let odd = 0
	while (true) {
		n++
		if (n > 9) { break }
		if (n % 2 === 0) { continue }
		odd += n
	}
	return odd
	"""
	assert _run(src) == 25


def test_for_of_over_captured_array() -> None:
	assert _run("let s = 0\nfor (const x of xs) { s += x }\nreturn s", xs=[1, 2, 3, 4]) == 10


def test_function_declarations_are_hoisted() -> None:
	assert _run("return fact(5)\nfunction fact(n) { return n <= 1 ? 1 : n * fact(n - 1) }") == 120


def test_async_functions_and_await() -> None:
	src = """
	async function twice(n) { return n * 2 }
	const one = await twice(4)
	const all = await Promise.all([twice(1), twice(2)])
	return [one, all]
	"""
	assert _run(src) == [8, [2, 4]]


def test_thrown_value_is_caught() -> None:
	assert _run("try { throw {message: 'boom'} } catch (e) { return e.message }") == "boom"


def test_runtime_error_is_catchable() -> None:
	assert _run("try { null.x } catch (e) { return e.name }") == "TypeError"


def test_finally_runs() -> None:
	src = """
	const log = []
	try {
		log.push('try')
	} finally {
		log.push('finally')
	}
	return log
	"""
	assert _run(src) == ["try", "finally"]


def test_uncaught_throw_rejects_the_run() -> None:
	with pytest.raises(ThrownValue) as exc:
		_run("throw {name: 'Error', message: 'bad input'}")
	assert exc.value.value == {"name": "Error", "message": "bad input"}


def test_temporal_dead_zone() -> None:
	with pytest.raises(BlockRuntimeError) as exc:
		_run("let y = x\nlet x = 1\nreturn y")
	assert exc.value.kind == "ReferenceError"
	assert "before initialization" in exc.value.message


def test_const_assignment() -> None:
	with pytest.raises(BlockRuntimeError) as exc:
		_run("const a = 1\na = 2")
	assert exc.value.message == "Assignment to constant variable."


def test_calling_a_non_function() -> None:
	with pytest.raises(BlockRuntimeError) as exc:
		_run("return value()", value=3)
	assert exc.value.kind == "TypeError"
	assert "is not a function" in exc.value.message


def test_typeof() -> None:
	src = "return [typeof 1, typeof 's', typeof undefined, typeof null, typeof (() => 1), typeof Math]"
	assert _run(src) == ["number", "string", "undefined", "object", "function", "object"]


def test_intrinsics() -> None:
	assert _run("return Math.max(1, 5, 3)") == 5
	assert _run("return JSON.stringify({a: [1, 2], b: 'x'})") == '{"a":[1,2],"b":"x"}'
	assert _run("return JSON.parse('[1, {\"k\": true}]')") == [1, {"k": True}]
	assert _run("return 'a,b'.split(',')") == ["a", "b"]
	assert _run("return Object.keys({x: 1, y: 2})") == ["x", "y"]
	assert _run("return [3, 1, 2].sort((a, b) => a - b)") == [1, 2, 3]


def test_console_logs_through_logging(caplog: pytest.LogCaptureFixture) -> None:
	with caplog.at_level(logging.INFO, logger="isoblock.console"):
		_run("console.log('value', n)", n=3)
	assert any(r.name == "isoblock.console" and r.getMessage() == "value 3" for r in caplog.records)


def test_nested_construct_inside_body() -> None:
	"""A body can build, reify and run its own constructs."""
	assert _run("const inner = <n>{| return n + 1 |}\nreturn await inner.reify()()", n=41) == 42


def test_body_can_return_a_handle() -> None:
	result = _run("return {| return 'inner' |}")
	assert isinstance(result, Handle)
	assert asyncio.run(result.reify()()) == "inner"


def test_each_invocation_gets_fresh_captures() -> None:
	handle = ExecutionContext("test").block("seen.push(1)\nreturn seen.length", ["seen"])
	reified = handle.reify({"seen": []})

	async def twice() -> list:
		return [await reified(), await reified()]

	assert asyncio.run(twice()) == [1, 1]
