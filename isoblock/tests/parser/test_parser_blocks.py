#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Parser tests for construct literals, tagged forms and terminator insertion.
"""

from __future__ import annotations

import pytest

from isoblock.errors import BlockSyntaxError
from isoblock.parser import ast as A
from isoblock.parser.parser import decode_escapes, parse_body, parse_number, parse_script


def _only_expr(src: str) -> A.Expr:
	prog = parse_script(src)
	assert len(prog.statements) == 1
	stmt = prog.statements[0]
	assert isinstance(stmt, A.ExprStmt)
	return stmt.value


def test_body_without_semicolons() -> None:
	"""Newlines terminate statements; no `;` is needed before `|}`."""
	prog = parse_body("let a = 1\nlet b = a + 1\nreturn b")
	assert [type(s).__name__ for s in prog.statements] == ["VarDecl", "VarDecl", "ReturnStmt"]


def test_newline_before_operator_continues_expression() -> None:
	prog = parse_body("let a = 1\n  + 2\nreturn a")
	decl = prog.statements[0]
	assert isinstance(decl, A.VarDecl)
	assert isinstance(decl.bindings[0].value, A.Binary)


def test_bare_construct_literal_keeps_source_text() -> None:
	expr = _only_expr("{| return 1 + 1 |}")
	assert isinstance(expr, A.BlockLiteral)
	assert expr.captures is None
	assert expr.bind_at_site is True
	assert expr.source.strip() == "return 1 + 1"


def test_capture_list_literal_binds_at_site() -> None:
	expr = _only_expr("<a, b>{| return a + b |}")
	assert isinstance(expr, A.BlockLiteral)
	assert expr.captures == ("a", "b")
	assert expr.bind_at_site is True


def test_empty_capture_list() -> None:
	expr = _only_expr("<>{| return 1 |}")
	assert isinstance(expr, A.BlockLiteral)
	assert expr.captures == ()


def test_tagged_block_desugars_to_call() -> None:
	"""`f{| … |}` is the call `f({| … |})`."""
	expr = _only_expr("run{| return 2 |}")
	assert isinstance(expr, A.Call)
	assert isinstance(expr.callee, A.Name) and expr.callee.ident == "run"
	assert len(expr.args) == 1
	literal = expr.args[0]
	assert isinstance(literal, A.BlockLiteral)
	assert literal.bind_at_site is True


def test_tagged_capture_block_passes_cloned_values() -> None:
	"""`f<a, b>{| … |}` passes an unbound construct plus `{a: clone(a), b: clone(b)}`."""
	expr = _only_expr("spawn<a, b>{| return a * b |}")
	assert isinstance(expr, A.Call)
	literal, values = expr.args
	assert isinstance(literal, A.BlockLiteral)
	assert literal.captures == ("a", "b")
	assert literal.bind_at_site is False
	assert isinstance(values, A.ObjectLiteral)
	assert [p.key for p in values.props] == ["a", "b"]
	assert all(isinstance(p.value, A.CloneOf) for p in values.props)


def test_capture_marker_in_body() -> None:
	prog = parse_body("return ${ limit } * 2")
	ret = prog.statements[0]
	assert isinstance(ret, A.ReturnStmt)
	assert isinstance(ret.value, A.Binary)
	marker = ret.value.left
	assert isinstance(marker, A.CaptureRef)
	assert marker.name == "limit"


def test_template_literal_holes_are_expressions() -> None:
	prog = parse_body("return `n=${n + 1}!`")
	ret = prog.statements[0]
	assert isinstance(ret.value, A.Template)
	parts = ret.value.parts
	assert parts[0] == "n="
	assert isinstance(parts[1], A.Binary)
	assert parts[2] == "!"


def test_arrow_functions() -> None:
	prog = parse_body("const f = (a, b) => a + b\nconst g = x => {\n return x\n}\nreturn f(1, g(2))")
	f = prog.statements[0].bindings[0].value
	g = prog.statements[1].bindings[0].value
	assert isinstance(f, A.FunctionExpr) and f.is_arrow and f.params == ("a", "b")
	assert isinstance(g, A.FunctionExpr) and g.params == ("x",)


def test_duplicate_capture_name_is_rejected() -> None:
	with pytest.raises(BlockSyntaxError) as exc:
		parse_script("<a, a>{| return a |}")
	assert "duplicate capture name 'a'" in exc.value.message


def test_reserved_word_as_capture_marker_is_rejected() -> None:
	with pytest.raises(BlockSyntaxError) as exc:
		parse_body("return ${let}")
	assert "reserved word" in exc.value.message


def test_unterminated_construct_is_rejected() -> None:
	with pytest.raises(BlockSyntaxError) as exc:
		parse_script("let h = {| return 1\n")
	assert exc.value.message == "unexpected end of input"


def test_invalid_assignment_target() -> None:
	with pytest.raises(BlockSyntaxError) as exc:
		parse_body("1 = 2")
	assert "invalid assignment target" in exc.value.message


def test_syntax_error_carries_file() -> None:
	with pytest.raises(BlockSyntaxError) as exc:
		parse_body("return )", file="body.blk")
	assert exc.value.span.file == "body.blk"
	assert exc.value.to_diagnostic().phase == "parser"


def test_number_and_escape_helpers() -> None:
	assert parse_number("42") == 42
	assert parse_number("0x10") == 16
	assert parse_number("1.5") == 1.5
	assert parse_number("2.0") == 2
	assert decode_escapes(r"a\nbA") == "a\nbA"


def test_array_literals() -> None:
	prog = parse_body("return [1, [x], ]")
	ret = prog.statements[0]
	assert isinstance(ret, A.ReturnStmt)
	assert isinstance(ret.value, A.ArrayLiteral)
	first, nested = ret.value.elements
	assert isinstance(first, A.Literal)
	assert isinstance(nested, A.ArrayLiteral)
	assert isinstance(nested.elements[0], A.Name)
