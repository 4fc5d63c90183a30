# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Scope analysis: free identifiers of a construct body.

`analyze_body` walks a parsed body with an explicit symbol table and returns
the identifiers it references without binding them (parameters, `let`,
`const`, `var`, function declarations, catch binders and loop variables all
bind), excluding language intrinsics.

Nested constructs are opaque: their bodies are *not* walked for the enclosing
analysis. Only what the enclosing code evaluates at the nested literal's site
counts as a reference here (the capture list of a `<a, b>{| … |}` literal,
the tag of `f{| … |}`, the cloned values of `f<a>{| … |}`). The nested literals
are returned in `ScopeReport.nested` so they can be validated on their own.

The same walk enforces the structural rules a body must obey; violations raise
`BlockSyntaxError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Union

from isoblock.core.span import Span
from isoblock.errors import BlockSyntaxError
from isoblock.parser import ast as A

from .hoisting import lexical_declarations, var_names

# Names resolvable as language intrinsics; never free.
INTRINSICS = frozenset(
	{
		"undefined",
		"NaN",
		"Infinity",
		"Math",
		"JSON",
		"Object",
		"Array",
		"String",
		"Number",
		"Boolean",
		"Promise",
		"Error",
		"parseInt",
		"parseFloat",
		"isNaN",
		"console",
	}
)


@dataclass(frozen=True)
class ScopeReport:
	"""Result of analysing one body (or host script)."""

	free: frozenset
	markers: frozenset
	# First reference site of every free name and marker.
	references: Dict[str, A.Located] = field(default_factory=dict)
	nested: tuple = ()


class _Scope:
	def __init__(self, parent: Optional["_Scope"], *, function: bool) -> None:
		self.parent = parent
		self.function = function
		self.names: Set[str] = set()

	def resolves(self, name: str) -> bool:
		scope: Optional[_Scope] = self
		while scope is not None:
			if name in scope.names:
				return True
			scope = scope.parent
		return False


@dataclass
class _FunctionContext:
	is_async: bool
	loop_depth: int = 0
	allows_return: bool = True


class _ScopeWalker:
	def __init__(self, *, file: Optional[str]) -> None:
		self.file = file
		self.free: Set[str] = set()
		self.markers: Set[str] = set()
		self.references: Dict[str, A.Located] = {}
		self.nested: List[A.BlockLiteral] = []
		self.ctx = _FunctionContext(is_async=True)

	def error(self, message: str, loc: A.Located) -> BlockSyntaxError:
		return BlockSyntaxError(message, span=Span.from_loc(loc, file=self.file))

	def _note(self, name: str, loc: A.Located) -> None:
		self.references.setdefault(name, loc)

	def reference(self, name: str, loc: A.Located, scope: _Scope) -> None:
		if scope.resolves(name) or name in INTRINSICS:
			return
		self.free.add(name)
		self._note(name, loc)

	# Scopes ---------------------------------------------------------------

	def function_scope(self, parent: Optional[_Scope], params: Sequence[str], statements: Sequence[A.Stmt]) -> _Scope:
		scope = _Scope(parent, function=True)
		scope.names.update(params)
		scope.names.update(var_names(statements))
		self.declare_lexical(scope, statements, reserved=set(params))
		return scope

	def declare_lexical(self, scope: _Scope, statements: Sequence[A.Stmt], *, reserved: Set[str] = frozenset()) -> None:
		kinds: Dict[str, str] = {}
		for name, kind, loc in lexical_declarations(statements):
			prev = kinds.get(name)
			lexical = kind in ("let", "const")
			if prev is not None and (lexical or prev in ("let", "const")):
				raise self.error(f"'{name}' has already been declared", loc)
			if lexical and name in reserved:
				raise self.error(f"'{name}' has already been declared", loc)
			kinds[name] = kind
			scope.names.add(name)

	def walk_statements(self, statements: Sequence[A.Stmt], scope: _Scope) -> None:
		for stmt in statements:
			self.walk_stmt(stmt, scope)

	def walk_block(self, block: A.Block, parent: _Scope, *, extra: Sequence[str] = ()) -> None:
		scope = _Scope(parent, function=False)
		scope.names.update(extra)
		self.declare_lexical(scope, block.statements, reserved=set(extra))
		self.walk_statements(block.statements, scope)

	def walk_function(self, params: Sequence[str], body: A.Block, scope: _Scope, *, is_async: bool) -> None:
		saved = self.ctx
		self.ctx = _FunctionContext(is_async=is_async)
		try:
			inner = self.function_scope(scope, params, body.statements)
			self.walk_statements(body.statements, inner)
		finally:
			self.ctx = saved

	# Statements -----------------------------------------------------------

	def walk_stmt(self, stmt: A.Stmt, scope: _Scope) -> None:
		if isinstance(stmt, A.VarDecl):
			self.walk_var_decl(stmt, scope)
		elif isinstance(stmt, A.ExprStmt):
			self.walk_expr(stmt.value, scope)
		elif isinstance(stmt, A.ReturnStmt):
			if not self.ctx.allows_return:
				raise self.error("'return' outside of a function body", stmt.loc)
			if stmt.value is not None:
				self.walk_expr(stmt.value, scope)
		elif isinstance(stmt, A.ThrowStmt):
			self.walk_expr(stmt.value, scope)
		elif isinstance(stmt, (A.BreakStmt, A.ContinueStmt)):
			if self.ctx.loop_depth == 0:
				word = "break" if isinstance(stmt, A.BreakStmt) else "continue"
				raise self.error(f"'{word}' outside of a loop", stmt.loc)
		elif isinstance(stmt, A.IfStmt):
			self.walk_expr(stmt.condition, scope)
			self.walk_block(stmt.then_block, scope)
			if stmt.else_block is not None:
				self.walk_block(stmt.else_block, scope)
		elif isinstance(stmt, A.WhileStmt):
			self.walk_expr(stmt.condition, scope)
			self.walk_loop_body(stmt.body, scope)
		elif isinstance(stmt, A.ForStmt):
			header = _Scope(scope, function=False)
			if isinstance(stmt.init, A.VarDecl):
				if stmt.init.kind != "var":
					self.declare_lexical(header, (stmt.init,))
				self.walk_var_decl(stmt.init, header)
			elif stmt.init is not None:
				self.walk_stmt(stmt.init, header)
			if stmt.condition is not None:
				self.walk_expr(stmt.condition, header)
			if stmt.update is not None:
				self.walk_expr(stmt.update, header)
			self.walk_loop_body(stmt.body, header)
		elif isinstance(stmt, A.ForOfStmt):
			self.walk_expr(stmt.iterable, scope)
			extra = (stmt.name,) if stmt.kind != "var" else ()
			self.walk_loop_body(stmt.body, scope, extra=extra)
		elif isinstance(stmt, A.TryStmt):
			self.walk_block(stmt.body, scope)
			if stmt.catch_block is not None:
				extra = (stmt.catch_name,) if stmt.catch_name else ()
				self.walk_block(stmt.catch_block, scope, extra=extra)
			if stmt.finally_block is not None:
				self.walk_block(stmt.finally_block, scope)
		elif isinstance(stmt, A.FunctionDecl):
			self.walk_function(stmt.params, stmt.body, scope, is_async=stmt.is_async)
		else:
			raise self.error(f"unsupported statement {type(stmt).__name__}", stmt.loc)

	def walk_var_decl(self, decl: A.VarDecl, scope: _Scope) -> None:
		for binding in decl.bindings:
			if binding.value is None:
				if decl.kind == "const":
					raise self.error(f"missing initializer in const declaration of '{binding.name}'", binding.loc)
				continue
			self.walk_expr(binding.value, scope)

	def walk_loop_body(self, body: A.Block, scope: _Scope, *, extra: Sequence[str] = ()) -> None:
		self.ctx.loop_depth += 1
		try:
			self.walk_block(body, scope, extra=extra)
		finally:
			self.ctx.loop_depth -= 1

	# Expressions ----------------------------------------------------------

	def walk_expr(self, expr: A.Expr, scope: _Scope) -> None:
		if isinstance(expr, A.Literal):
			return
		if isinstance(expr, A.Name):
			self.reference(expr.ident, expr.loc, scope)
		elif isinstance(expr, A.CaptureRef):
			self.markers.add(expr.name)
			self._note(expr.name, expr.loc)
		elif isinstance(expr, A.CloneOf):
			self.reference(expr.name, expr.loc, scope)
		elif isinstance(expr, A.BlockLiteral):
			# Opaque: only the site-bound capture list is evaluated here.
			if expr.bind_at_site:
				for name in expr.captures or ():
					self.reference(name, expr.loc, scope)
			self.nested.append(expr)
		elif isinstance(expr, A.Template):
			for part in expr.parts:
				if not isinstance(part, str):
					self.walk_expr(part, scope)
		elif isinstance(expr, A.ArrayLiteral):
			for element in expr.elements:
				self.walk_expr(element, scope)
		elif isinstance(expr, A.ObjectLiteral):
			for prop in expr.props:
				self.walk_expr(prop.value, scope)
		elif isinstance(expr, A.Member):
			self.walk_expr(expr.target, scope)
		elif isinstance(expr, A.Index):
			self.walk_expr(expr.target, scope)
			self.walk_expr(expr.index, scope)
		elif isinstance(expr, A.Call):
			self.walk_expr(expr.callee, scope)
			for arg in expr.args:
				self.walk_expr(arg, scope)
		elif isinstance(expr, A.Unary):
			self.walk_expr(expr.operand, scope)
		elif isinstance(expr, A.Await):
			if not self.ctx.is_async:
				raise self.error("'await' is only valid in async functions", expr.loc)
			self.walk_expr(expr.value, scope)
		elif isinstance(expr, (A.Binary, A.Logical)):
			self.walk_expr(expr.left, scope)
			self.walk_expr(expr.right, scope)
		elif isinstance(expr, A.Conditional):
			self.walk_expr(expr.condition, scope)
			self.walk_expr(expr.then_expr, scope)
			self.walk_expr(expr.else_expr, scope)
		elif isinstance(expr, A.Assign):
			self.walk_expr(expr.target, scope)
			self.walk_expr(expr.value, scope)
		elif isinstance(expr, A.Update):
			self.walk_expr(expr.target, scope)
		elif isinstance(expr, A.FunctionExpr):
			self.walk_function(expr.params, expr.body, scope, is_async=expr.is_async)
		else:
			raise self.error(f"unsupported expression {type(expr).__name__}", expr.loc)


def analyze_body(
	body: Union[A.Program, A.Block],
	*,
	script: bool = False,
	file: Optional[str] = None,
) -> ScopeReport:
	"""
	Compute the free identifiers of `body`.

	With `script=True` the statements are a host script: top-level `return`
	is rejected, and free names are host globals rather than captures.
	"""
	walker = _ScopeWalker(file=file)
	walker.ctx.allows_return = not script
	root = walker.function_scope(None, (), body.statements)
	walker.walk_statements(body.statements, root)
	return ScopeReport(
		free=frozenset(walker.free),
		markers=frozenset(walker.markers),
		references=dict(walker.references),
		nested=tuple(walker.nested),
	)


__all__ = ["INTRINSICS", "ScopeReport", "analyze_body"]
