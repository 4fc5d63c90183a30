# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Declaration hoisting rules shared by the scope analyzer and the interpreter.

- `var` declarations (including `for (var ...)` headers) are hoisted to the
  nearest enclosing function scope, crossing nested blocks but never nested
  functions or constructs.
- `let`, `const` and function declarations are hoisted to the top of the
  statement list that contains them.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Sequence, Tuple

from isoblock.parser.ast import (
	Block,
	ForOfStmt,
	ForStmt,
	FunctionDecl,
	IfStmt,
	Located,
	Stmt,
	TryStmt,
	VarDecl,
	WhileStmt,
)


def lexical_declarations(statements: Sequence[Stmt]) -> List[Tuple[str, str, Located]]:
	"""(name, kind, loc) for `let`/`const`/`function` declared directly in `statements`."""
	out: List[Tuple[str, str, Located]] = []
	for stmt in statements:
		if isinstance(stmt, VarDecl) and stmt.kind != "var":
			out.extend((b.name, stmt.kind, b.loc) for b in stmt.bindings)
		elif isinstance(stmt, FunctionDecl):
			out.append((stmt.name, "function", stmt.loc))
	return out


def var_names(statements: Sequence[Stmt]) -> List[str]:
	"""Names declared with `var` anywhere in a function body, in source order."""
	seen: List[str] = []
	for name in _iter_var_names(statements):
		if name not in seen:
			seen.append(name)
	return seen


def _iter_var_names(statements: Iterable[Stmt]) -> Iterator[str]:
	for stmt in statements:
		if isinstance(stmt, VarDecl):
			if stmt.kind == "var":
				yield from (b.name for b in stmt.bindings)
		elif isinstance(stmt, IfStmt):
			yield from _iter_var_names(stmt.then_block.statements)
			if stmt.else_block is not None:
				yield from _iter_var_names(stmt.else_block.statements)
		elif isinstance(stmt, WhileStmt):
			yield from _iter_var_names(stmt.body.statements)
		elif isinstance(stmt, ForStmt):
			if isinstance(stmt.init, VarDecl) and stmt.init.kind == "var":
				yield from (b.name for b in stmt.init.bindings)
			yield from _iter_var_names(stmt.body.statements)
		elif isinstance(stmt, ForOfStmt):
			if stmt.kind == "var":
				yield stmt.name
			yield from _iter_var_names(stmt.body.statements)
		elif isinstance(stmt, TryStmt):
			for block in (stmt.body, stmt.catch_block, stmt.finally_block):
				if isinstance(block, Block):
					yield from _iter_var_names(block.statements)


__all__ = ["lexical_declarations", "var_names"]
