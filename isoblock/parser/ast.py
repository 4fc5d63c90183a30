# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Syntax tree for construct bodies and host scripts.

All nodes are frozen dataclasses holding tuples, so a parsed body can be shared
by every Definition created from the same source text without copying.

Tagged construct forms never appear here: `f{| … |}` and `f<a>{| … |}` are
desugared by the parser into ordinary `Call` nodes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class Located:
	line: int
	column: int


class Node:
	loc: Located


class Stmt(Node):
	pass


class Expr(Node):
	pass


@dataclass(frozen=True)
class Block(Node):
	loc: Located
	statements: Tuple[Stmt, ...]


@dataclass(frozen=True)
class Program(Node):
	"""Top-level statement list of a body or host script."""

	loc: Located
	statements: Tuple[Stmt, ...]
	source: str


# Statements ----------------------------------------------------------------


@dataclass(frozen=True)
class Binding(Node):
	loc: Located
	name: str
	value: Optional[Expr] = None


@dataclass(frozen=True)
class VarDecl(Stmt):
	loc: Located
	kind: str  # "let" | "const" | "var"
	bindings: Tuple[Binding, ...]


@dataclass(frozen=True)
class FunctionDecl(Stmt):
	loc: Located
	name: str
	params: Tuple[str, ...]
	body: Block
	is_async: bool = False


@dataclass(frozen=True)
class ReturnStmt(Stmt):
	loc: Located
	value: Optional[Expr] = None


@dataclass(frozen=True)
class ThrowStmt(Stmt):
	loc: Located
	value: Expr


@dataclass(frozen=True)
class BreakStmt(Stmt):
	loc: Located


@dataclass(frozen=True)
class ContinueStmt(Stmt):
	loc: Located


@dataclass(frozen=True)
class ExprStmt(Stmt):
	loc: Located
	value: Expr


@dataclass(frozen=True)
class IfStmt(Stmt):
	loc: Located
	condition: Expr
	then_block: Block
	# `else if` chains are represented as a Block holding the nested IfStmt.
	else_block: Optional[Block] = None


@dataclass(frozen=True)
class WhileStmt(Stmt):
	loc: Located
	condition: Expr
	body: Block


@dataclass(frozen=True)
class ForStmt(Stmt):
	loc: Located
	init: Optional[Union[VarDecl, ExprStmt]]
	condition: Optional[Expr]
	update: Optional[Expr]
	body: Block


@dataclass(frozen=True)
class ForOfStmt(Stmt):
	loc: Located
	kind: str
	name: str
	iterable: Expr
	body: Block


@dataclass(frozen=True)
class TryStmt(Stmt):
	loc: Located
	body: Block
	catch_name: Optional[str] = None
	catch_block: Optional[Block] = None
	finally_block: Optional[Block] = None


# Expressions ---------------------------------------------------------------


@dataclass(frozen=True)
class Literal(Expr):
	"""Number, string, boolean or `null` (held as None)."""

	loc: Located
	value: object


@dataclass(frozen=True)
class Name(Expr):
	loc: Located
	ident: str


@dataclass(frozen=True)
class CaptureRef(Expr):
	"""Inline capture marker `${name}`: declares `name` and reads its bound value."""

	loc: Located
	name: str


@dataclass(frozen=True)
class Template(Expr):
	loc: Located
	parts: Tuple[Union[str, Expr], ...]


@dataclass(frozen=True)
class ArrayLiteral(Expr):
	loc: Located
	elements: Tuple[Expr, ...]


@dataclass(frozen=True)
class Prop(Node):
	loc: Located
	key: str
	value: Expr


@dataclass(frozen=True)
class ObjectLiteral(Expr):
	loc: Located
	props: Tuple[Prop, ...]


@dataclass(frozen=True)
class Member(Expr):
	loc: Located
	target: Expr
	name: str


@dataclass(frozen=True)
class Index(Expr):
	loc: Located
	target: Expr
	index: Expr


@dataclass(frozen=True)
class Call(Expr):
	loc: Located
	callee: Expr
	args: Tuple[Expr, ...]


@dataclass(frozen=True)
class Unary(Expr):
	loc: Located
	op: str  # "!" | "-" | "+" | "typeof"
	operand: Expr


@dataclass(frozen=True)
class Await(Expr):
	loc: Located
	value: Expr


@dataclass(frozen=True)
class Binary(Expr):
	loc: Located
	op: str
	left: Expr
	right: Expr


@dataclass(frozen=True)
class Logical(Expr):
	"""Short-circuiting `&&`, `||` and `??`."""

	loc: Located
	op: str
	left: Expr
	right: Expr


@dataclass(frozen=True)
class Conditional(Expr):
	loc: Located
	condition: Expr
	then_expr: Expr
	else_expr: Expr


@dataclass(frozen=True)
class Assign(Expr):
	loc: Located
	op: str  # "=" | "+=" | "-=" | "*=" | "/="
	target: Expr
	value: Expr


@dataclass(frozen=True)
class Update(Expr):
	"""Postfix `x++` / `x--`; evaluates to the previous value."""

	loc: Located
	op: str
	target: Expr


@dataclass(frozen=True)
class FunctionExpr(Expr):
	loc: Located
	params: Tuple[str, ...]
	body: Block
	is_async: bool = False
	is_arrow: bool = False


@dataclass(frozen=True)
class BlockLiteral(Expr):
	"""
	A construct literal `{| … |}` or `<a, b>{| … |}`.

	`captures` is the explicit capture list (None when absent). When
	`bind_at_site` is set, every declared capture (listed or marked with
	`${name}`) that is bound where the literal is evaluated is cloned into
	the Handle's provided captures; the rest stay missing until reify. The
	tagged capture form clears it and passes the values as a separate object
	argument instead.
	"""

	loc: Located
	body: Block
	source: str
	captures: Optional[Tuple[str, ...]] = None
	bind_at_site: bool = False


@dataclass(frozen=True)
class CloneOf(Expr):
	"""Structural clone of the current value of `name` (tagged capture argument)."""

	loc: Located
	name: str


__all__ = [
	"Assign",
	"Await",
	"Binary",
	"Binding",
	"Block",
	"BlockLiteral",
	"BreakStmt",
	"Call",
	"CaptureRef",
	"CloneOf",
	"Conditional",
	"ContinueStmt",
	"Expr",
	"ExprStmt",
	"ForOfStmt",
	"ForStmt",
	"FunctionDecl",
	"FunctionExpr",
	"IfStmt",
	"Index",
	"Literal",
	"Located",
	"Logical",
	"Member",
	"Name",
	"Node",
	"ObjectLiteral",
	"Program",
	"Prop",
	"ReturnStmt",
	"Stmt",
	"Template",
	"ThrowStmt",
	"TryStmt",
	"Unary",
	"Update",
	"VarDecl",
	"WhileStmt",
]
