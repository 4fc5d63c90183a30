#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Free-identifier analysis of construct bodies.
"""

from __future__ import annotations

import pytest

from isoblock.analysis.scope import INTRINSICS, analyze_body
from isoblock.errors import BlockSyntaxError
from isoblock.parser.parser import parse_body, parse_script


def _free(src: str) -> set[str]:
	return set(analyze_body(parse_body(src)).free)


def test_simple_free_names() -> None:
	assert _free("return a + b") == {"a", "b"}


def test_intrinsics_are_never_free() -> None:
	assert _free("return Math.max(x, 1) + JSON.stringify(undefined).length") == {"x"}
	assert "console" in INTRINSICS


def test_declarations_bind() -> None:
	"""Parameters, let/const/var, functions, catch binders and loop variables all bind."""
	src = """
	let total = 0
	const items = [1, 2, 3]
	for (const item of items) {
		total += item
	}
	for (let i = 0; i < 2; i++) {
		total += i
	}
	function twice(n) {
		var doubled = n * 2
		return doubled
	}
	try {
		throw twice(total)
	} catch (err) {
		return err + offset
	}
	"""
	assert _free(src) == {"offset"}


def test_hoisted_function_used_before_declaration() -> None:
	assert _free("return helper()\nfunction helper() { return 1 }") == set()


def test_closure_references_outer_binding() -> None:
	assert _free("let n = 1\nconst inc = () => n + step\nreturn inc()") == {"step"}


def test_block_scoped_names_do_not_leak() -> None:
	assert _free("if (flag) { let inner = 1 }\nreturn inner") == {"flag", "inner"}


def test_markers_are_reported_separately() -> None:
	report = analyze_body(parse_body("return ${limit} + other"))
	assert report.markers == frozenset({"limit"})
	assert report.free == frozenset({"other"})


def test_nested_construct_is_opaque() -> None:
	"""Names inside a nested body are not references of the enclosing body."""
	report = analyze_body(parse_body("const h = {| return secret |}\nreturn h"))
	assert report.free == frozenset()
	assert len(report.nested) == 1


def test_nested_capture_list_is_evaluated_at_site() -> None:
	report = analyze_body(parse_body("return <y>{| return y |}"))
	assert report.free == frozenset({"y"})


def test_tagged_capture_form_references_cloned_names() -> None:
	report = analyze_body(parse_body("return spawn<a>{| return a |}"))
	assert report.free == frozenset({"spawn", "a"})


def test_reference_site_recorded() -> None:
	report = analyze_body(parse_body("let x = 1\nreturn y"))
	loc = report.references["y"]
	assert loc.line == 2


def test_break_outside_loop() -> None:
	with pytest.raises(BlockSyntaxError) as exc:
		analyze_body(parse_body("break"))
	assert "'break' outside of a loop" in exc.value.message


def test_await_in_non_async_function() -> None:
	with pytest.raises(BlockSyntaxError) as exc:
		analyze_body(parse_body("function f(p) { return await p }\nreturn f"))
	assert "'await' is only valid in async functions" in exc.value.message


def test_await_at_body_top_level_is_allowed() -> None:
	assert _free("return await job") == {"job"}


def test_duplicate_lexical_declaration() -> None:
	with pytest.raises(BlockSyntaxError) as exc:
		analyze_body(parse_body("let a = 1\nlet a = 2"))
	assert "'a' has already been declared" in exc.value.message


def test_const_requires_initializer() -> None:
	with pytest.raises(BlockSyntaxError):
		analyze_body(parse_body("const a\nreturn 1"))


def test_script_rejects_top_level_return() -> None:
	with pytest.raises(BlockSyntaxError) as exc:
		analyze_body(parse_script("return 1"), script=True)
	assert "'return' outside of a function body" in exc.value.message
