# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Async tree-walking interpreter for construct bodies and host scripts.

Every evaluation step is a coroutine so `await` can appear anywhere an
expression can. Non-async functions run inline within the caller's await;
calling an `async` function schedules a task and returns it, which the caller
may `await` later.

Environments chain from the language intrinsics, through either the host
globals (scripts) or the bound captures (bodies), to function and block
scopes. `let`/`const` names sit in a temporal dead zone until their
declaration runs.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from isoblock.analysis.hoisting import lexical_declarations, var_names
from isoblock.config import EngineConfig
from isoblock.core.span import Span
from isoblock.errors import BlockError, BlockRuntimeError, ThrownValue
from isoblock.parser import ast as A
from isoblock.transfer.clone import structured_clone

from .intrinsics import GLOBALS, Intrinsic, Namespace, iterable_items, member_of, settle
from .values import (
	UNDEFINED,
	add,
	arithmetic,
	compare,
	is_callable,
	is_nullish,
	is_number,
	loose_equals,
	normalize_number,
	strict_equals,
	to_number,
	to_property_key,
	to_string,
	truthy,
	typeof,
)

logger = logging.getLogger(__name__)

_TDZ = object()


class ReturnSignal(Exception):
	def __init__(self, value: Any) -> None:
		self.value = value


class BreakSignal(Exception):
	pass


class ContinueSignal(Exception):
	pass


class Environment:
	def __init__(self, parent: Environment | None = None) -> None:
		self.parent = parent
		self.values: Dict[str, Any] = {}
		self.consts: set[str] = set()

	@classmethod
	def from_mapping(cls, values: Mapping[str, Any], parent: Environment | None = None, *, const: bool = False) -> "Environment":
		env = cls(parent)
		env.values.update(values)
		if const:
			env.consts.update(values)
		return env

	def declare(self, name: str, value: Any = UNDEFINED, *, const: bool = False) -> None:
		self.values[name] = value
		if const:
			self.consts.add(name)
		else:
			self.consts.discard(name)

	def find(self, name: str) -> Environment | None:
		env: Environment | None = self
		while env is not None:
			if name in env.values:
				return env
			env = env.parent
		return None

	def has(self, name: str) -> bool:
		return self.find(name) is not None

	def lookup(self, name: str, *, span: Span | None = None) -> Any:
		env = self.find(name)
		if env is None:
			raise BlockRuntimeError("ReferenceError", f"{name} is not defined", span=span)
		value = env.values[name]
		if value is _TDZ:
			raise BlockRuntimeError("ReferenceError", f"Cannot access '{name}' before initialization", span=span)
		return value

	def assign(self, name: str, value: Any, *, span: Span | None = None) -> None:
		env = self.find(name)
		if env is None:
			raise BlockRuntimeError("ReferenceError", f"{name} is not defined", span=span)
		if env.values[name] is _TDZ:
			raise BlockRuntimeError("ReferenceError", f"Cannot access '{name}' before initialization", span=span)
		if name in env.consts:
			raise BlockRuntimeError("TypeError", "Assignment to constant variable.", span=span)
		env.values[name] = value


class Closure:
	"""A function value created by a declaration, function expression or arrow."""

	js_callable = True

	def __init__(
		self,
		interp: "Interpreter",
		params: Sequence[str],
		body: A.Block,
		env: Environment,
		*,
		name: Optional[str] = None,
		is_async: bool = False,
		is_arrow: bool = False,
	) -> None:
		self.interp = interp
		self.params = tuple(params)
		self.body = body
		self.env = env
		self.name = name
		self.is_async = is_async
		self.is_arrow = is_arrow

	def __call__(self, *args: Any) -> Any:
		return self.interp.call(self, list(args))

	def __repr__(self) -> str:
		return f"<function {self.name or '(anonymous)'}>"


def _callee_label(expr: A.Expr) -> str:
	if isinstance(expr, A.Name):
		return expr.ident
	if isinstance(expr, A.Member):
		return f"{_callee_label(expr.target)}.{expr.name}"
	if isinstance(expr, A.CaptureRef):
		return f"${{{expr.name}}}"
	return "expression"


class Interpreter:
	def __init__(
		self,
		registry: Any,
		*,
		globals: Optional[Mapping[str, Any]] = None,
		config: Optional[EngineConfig] = None,
		file: Optional[str] = None,
	) -> None:
		self.registry = registry
		self.config = config or EngineConfig()
		self.file = file
		self.intrinsics = Environment.from_mapping(GLOBALS, const=True)
		self.global_env = Environment.from_mapping(globals or {}, self.intrinsics)
		self.capture_env = Environment(self.intrinsics)

	def span(self, loc: Optional[A.Located]) -> Span:
		return Span.from_loc(loc, file=self.file)

	# Entry points ---------------------------------------------------------

	async def run_body(self, body: A.Program | A.Block, captures: Mapping[str, Any]) -> Any:
		"""Run a construct body with `captures` bound; returns its return value."""
		logger.debug("running body with captures %s", sorted(captures))
		self.capture_env = Environment.from_mapping(captures, self.intrinsics)
		env = Environment(self.capture_env)
		self.hoist_function_scope(body.statements, env)
		try:
			await self.exec_statements(body.statements, env)
		except ReturnSignal as signal:
			return signal.value
		return UNDEFINED

	async def run_script(self, program: A.Program) -> Any:
		"""Run a host script; returns the value of its last top-level expression statement."""
		env = Environment(self.global_env)
		self.hoist_function_scope(program.statements, env)
		completion: Any = UNDEFINED
		for stmt in program.statements:
			result = await self.exec_stmt(stmt, env)
			if isinstance(stmt, A.ExprStmt):
				completion = result
		return completion

	async def call(self, fn: Any, args: List[Any], *, loc: Optional[A.Located] = None, label: str = "value") -> Any:
		if isinstance(fn, Closure):
			coro = fn.interp.invoke(fn, args)
			if fn.is_async:
				return asyncio.ensure_future(coro)
			return await coro
		if isinstance(fn, Namespace) and fn.call is not None:
			fn = fn.call
		if isinstance(fn, Intrinsic):
			result = fn.impl(self, args)
			if fn.awaits:
				return await result
			return result
		if is_callable(fn) and callable(fn):
			result = fn(*args)
			if inspect.iscoroutine(result):
				return asyncio.ensure_future(result)
			return result
		raise BlockRuntimeError("TypeError", f"{label} is not a function", span=self.span(loc))

	async def invoke(self, closure: Closure, args: Sequence[Any]) -> Any:
		env = Environment(closure.env)
		for index, param in enumerate(closure.params):
			env.declare(param, args[index] if index < len(args) else UNDEFINED)
		statements = closure.body.statements
		self.hoist_function_scope(statements, env)
		try:
			await self.exec_statements(statements, env)
		except ReturnSignal as signal:
			return signal.value
		return UNDEFINED

	# Hoisting -------------------------------------------------------------

	def hoist_function_scope(self, statements: Sequence[A.Stmt], env: Environment) -> None:
		for name in var_names(statements):
			if name not in env.values:
				env.declare(name)
		self.hoist_lexical(statements, env)

	def hoist_lexical(self, statements: Sequence[A.Stmt], env: Environment) -> None:
		for name, kind, _loc in lexical_declarations(statements):
			if kind != "function":
				env.declare(name, _TDZ)
		for stmt in statements:
			if isinstance(stmt, A.FunctionDecl):
				env.declare(stmt.name, Closure(self, stmt.params, stmt.body, env, name=stmt.name, is_async=stmt.is_async))

	# Statements -----------------------------------------------------------

	async def exec_statements(self, statements: Sequence[A.Stmt], env: Environment) -> None:
		for stmt in statements:
			await self.exec_stmt(stmt, env)

	async def exec_block(self, block: A.Block, parent: Environment, bindings: Optional[Mapping[str, Any]] = None) -> None:
		env = Environment.from_mapping(bindings or {}, parent)
		self.hoist_lexical(block.statements, env)
		await self.exec_statements(block.statements, env)

	async def exec_stmt(self, stmt: A.Stmt, env: Environment) -> Any:
		if isinstance(stmt, A.ExprStmt):
			return await self.eval_expr(stmt.value, env)
		if isinstance(stmt, A.VarDecl):
			await self.exec_var_decl(stmt, env)
			return None
		if isinstance(stmt, A.FunctionDecl):
			return None
		if isinstance(stmt, A.ReturnStmt):
			value = await self.eval_expr(stmt.value, env) if stmt.value is not None else UNDEFINED
			raise ReturnSignal(value)
		if isinstance(stmt, A.ThrowStmt):
			raise ThrownValue(await self.eval_expr(stmt.value, env))
		if isinstance(stmt, A.BreakStmt):
			raise BreakSignal()
		if isinstance(stmt, A.ContinueStmt):
			raise ContinueSignal()
		if isinstance(stmt, A.IfStmt):
			if truthy(await self.eval_expr(stmt.condition, env)):
				await self.exec_block(stmt.then_block, env)
			elif stmt.else_block is not None:
				await self.exec_block(stmt.else_block, env)
			return None
		if isinstance(stmt, A.WhileStmt):
			while truthy(await self.eval_expr(stmt.condition, env)):
				try:
					await self.exec_block(stmt.body, env)
				except BreakSignal:
					break
				except ContinueSignal:
					continue
			return None
		if isinstance(stmt, A.ForStmt):
			await self.exec_for(stmt, env)
			return None
		if isinstance(stmt, A.ForOfStmt):
			await self.exec_for_of(stmt, env)
			return None
		if isinstance(stmt, A.TryStmt):
			await self.exec_try(stmt, env)
			return None
		raise BlockRuntimeError("SyntaxError", f"unsupported statement {type(stmt).__name__}", span=self.span(stmt.loc))

	async def exec_var_decl(self, decl: A.VarDecl, env: Environment) -> None:
		for binding in decl.bindings:
			value = await self.eval_expr(binding.value, env) if binding.value is not None else UNDEFINED
			if decl.kind == "var":
				if binding.value is not None:
					env.assign(binding.name, value, span=self.span(binding.loc))
			else:
				env.declare(binding.name, value, const=decl.kind == "const")

	async def exec_for(self, stmt: A.ForStmt, env: Environment) -> None:
		header = Environment(env)
		per_iteration: List[str] = []
		if isinstance(stmt.init, A.VarDecl):
			if stmt.init.kind != "var":
				per_iteration = [b.name for b in stmt.init.bindings]
				for name in per_iteration:
					header.declare(name, _TDZ)
			await self.exec_var_decl(stmt.init, header)
		elif stmt.init is not None:
			await self.exec_stmt(stmt.init, header)
		iteration = header
		while True:
			if stmt.condition is not None and not truthy(await self.eval_expr(stmt.condition, iteration)):
				break
			try:
				await self.exec_block(stmt.body, iteration)
			except BreakSignal:
				break
			except ContinueSignal:
				pass
			# Each iteration sees its own copy of the loop's let bindings.
			if per_iteration:
				fresh = Environment(env)
				for name in per_iteration:
					fresh.declare(name, iteration.values[name], const=name in iteration.consts)
				iteration = fresh
			if stmt.update is not None:
				await self.eval_expr(stmt.update, iteration)

	async def exec_for_of(self, stmt: A.ForOfStmt, env: Environment) -> None:
		iterable = await self.eval_expr(stmt.iterable, env)
		try:
			items = iterable_items(iterable)
		except BlockRuntimeError as err:
			raise BlockRuntimeError(err.kind, err.message, span=self.span(stmt.iterable.loc)) from None
		for item in items:
			if stmt.kind == "var":
				env.assign(stmt.name, item)
				bindings: Dict[str, Any] = {}
			else:
				bindings = {stmt.name: item}
			loop_env = Environment.from_mapping(bindings, env, const=stmt.kind == "const")
			try:
				await self.exec_block(stmt.body, loop_env)
			except BreakSignal:
				break
			except ContinueSignal:
				continue

	async def exec_try(self, stmt: A.TryStmt, env: Environment) -> None:
		try:
			await self.exec_block(stmt.body, env)
		except (ThrownValue, BlockRuntimeError, BlockError) as err:
			if stmt.catch_block is None:
				raise
			bindings = {stmt.catch_name: caught_value(err)} if stmt.catch_name else {}
			await self.exec_block(stmt.catch_block, env, bindings)
		finally:
			if stmt.finally_block is not None:
				await self.exec_block(stmt.finally_block, env)

	# Expressions ----------------------------------------------------------

	async def eval_expr(self, expr: A.Expr, env: Environment) -> Any:
		if isinstance(expr, A.Literal):
			return expr.value
		if isinstance(expr, A.Name):
			return env.lookup(expr.ident, span=self.span(expr.loc))
		if isinstance(expr, A.CaptureRef):
			return self.capture_env.lookup(expr.name, span=self.span(expr.loc))
		if isinstance(expr, A.CloneOf):
			value = env.lookup(expr.name, span=self.span(expr.loc))
			return structured_clone(value, capture=expr.name, max_depth=self.config.max_clone_depth)
		if isinstance(expr, A.Template):
			parts = []
			for part in expr.parts:
				parts.append(part if isinstance(part, str) else to_string(await self.eval_expr(part, env)))
			return "".join(parts)
		if isinstance(expr, A.ArrayLiteral):
			return [await self.eval_expr(element, env) for element in expr.elements]
		if isinstance(expr, A.ObjectLiteral):
			obj: Dict[str, Any] = {}
			for prop in expr.props:
				obj[prop.key] = await self.eval_expr(prop.value, env)
			return obj
		if isinstance(expr, A.Member):
			target = await self.eval_expr(expr.target, env)
			return self.get_member(target, expr.name, expr.loc)
		if isinstance(expr, A.Index):
			target = await self.eval_expr(expr.target, env)
			index = await self.eval_expr(expr.index, env)
			return self.get_index(target, index, expr.loc)
		if isinstance(expr, A.Call):
			return await self.eval_call(expr, env)
		if isinstance(expr, A.Unary):
			return await self.eval_unary(expr, env)
		if isinstance(expr, A.Await):
			return await settle(await self.eval_expr(expr.value, env))
		if isinstance(expr, A.Binary):
			left = await self.eval_expr(expr.left, env)
			right = await self.eval_expr(expr.right, env)
			return binary_op(expr.op, left, right)
		if isinstance(expr, A.Logical):
			left = await self.eval_expr(expr.left, env)
			if expr.op == "&&":
				return await self.eval_expr(expr.right, env) if truthy(left) else left
			if expr.op == "||":
				return left if truthy(left) else await self.eval_expr(expr.right, env)
			return await self.eval_expr(expr.right, env) if is_nullish(left) else left
		if isinstance(expr, A.Conditional):
			if truthy(await self.eval_expr(expr.condition, env)):
				return await self.eval_expr(expr.then_expr, env)
			return await self.eval_expr(expr.else_expr, env)
		if isinstance(expr, A.Assign):
			return await self.eval_assign(expr, env)
		if isinstance(expr, A.Update):
			return await self.eval_update(expr, env)
		if isinstance(expr, A.FunctionExpr):
			return Closure(self, expr.params, expr.body, env, is_async=expr.is_async, is_arrow=expr.is_arrow)
		if isinstance(expr, A.BlockLiteral):
			return self.eval_block_literal(expr, env)
		raise BlockRuntimeError("SyntaxError", f"unsupported expression {type(expr).__name__}", span=self.span(expr.loc))

	async def eval_call(self, expr: A.Call, env: Environment) -> Any:
		if isinstance(expr.callee, A.Member):
			target = await self.eval_expr(expr.callee.target, env)
			fn = self.get_member(target, expr.callee.name, expr.callee.loc)
		else:
			fn = await self.eval_expr(expr.callee, env)
		args = [await self.eval_expr(arg, env) for arg in expr.args]
		return await self.call(fn, args, loc=expr.loc, label=_callee_label(expr.callee))

	async def eval_unary(self, expr: A.Unary, env: Environment) -> Any:
		if expr.op == "typeof" and isinstance(expr.operand, A.Name) and not env.has(expr.operand.ident):
			return "undefined"
		value = await self.eval_expr(expr.operand, env)
		if expr.op == "!":
			return not truthy(value)
		if expr.op == "-":
			return normalize_number(-to_number(value))
		if expr.op == "+":
			return to_number(value)
		return typeof(value)

	def eval_block_literal(self, literal: A.BlockLiteral, env: Environment) -> Any:
		definition = self.registry.define(literal.source, literal.captures, body=literal.body)
		provided: Dict[str, Any] = {}
		if literal.bind_at_site:
			# Names not bound at this site are left for reify to supply.
			for name in sorted(definition.declared_captures):
				if not env.has(name):
					continue
				value = env.lookup(name, span=self.span(literal.loc))
				provided[name] = structured_clone(value, capture=name, max_depth=self.config.max_clone_depth)
		return self.registry.create_handle(definition, provided)

	async def eval_assign(self, expr: A.Assign, env: Environment) -> Any:
		target = expr.target
		if isinstance(target, A.Name):
			if expr.op == "=":
				value = await self.eval_expr(expr.value, env)
			else:
				current = env.lookup(target.ident, span=self.span(target.loc))
				value = binary_op(expr.op[:-1], current, await self.eval_expr(expr.value, env))
			env.assign(target.ident, value, span=self.span(target.loc))
			return value
		obj, key = await self.eval_reference(target, env)
		if expr.op == "=":
			value = await self.eval_expr(expr.value, env)
		else:
			current = self.get_index(obj, key, target.loc)
			value = binary_op(expr.op[:-1], current, await self.eval_expr(expr.value, env))
		self.set_member(obj, key, value, target.loc)
		return value

	async def eval_update(self, expr: A.Update, env: Environment) -> Any:
		delta = 1 if expr.op == "++" else -1
		target = expr.target
		if isinstance(target, A.Name):
			old = to_number(env.lookup(target.ident, span=self.span(target.loc)))
			env.assign(target.ident, normalize_number(old + delta), span=self.span(target.loc))
			return old
		obj, key = await self.eval_reference(target, env)
		old = to_number(self.get_index(obj, key, target.loc))
		self.set_member(obj, key, normalize_number(old + delta), target.loc)
		return old

	async def eval_reference(self, target: A.Expr, env: Environment) -> tuple[Any, Any]:
		if isinstance(target, A.Member):
			return await self.eval_expr(target.target, env), target.name
		if isinstance(target, A.Index):
			obj = await self.eval_expr(target.target, env)
			return obj, await self.eval_expr(target.index, env)
		raise BlockRuntimeError("SyntaxError", "invalid assignment target", span=self.span(target.loc))

	# Property access ------------------------------------------------------

	def get_member(self, target: Any, name: str, loc: Optional[A.Located]) -> Any:
		if is_nullish(target):
			raise BlockRuntimeError(
				"TypeError",
				f"Cannot read properties of {to_string(target)} (reading '{name}')",
				span=self.span(loc),
			)
		if isinstance(target, dict):
			return target.get(name, UNDEFINED)
		getter = getattr(target, "get_attr", None)
		if getter is not None:
			return getter(name)
		return member_of(target, name)

	def get_index(self, target: Any, index: Any, loc: Optional[A.Located]) -> Any:
		if isinstance(target, (list, str)) and is_number(index):
			if isinstance(index, int) and 0 <= index < len(target):
				return target[index]
			return UNDEFINED
		if isinstance(target, dict) and not isinstance(index, str):
			return target.get(to_property_key(index), UNDEFINED)
		return self.get_member(target, to_property_key(index), loc)

	def set_member(self, target: Any, key: Any, value: Any, loc: Optional[A.Located]) -> None:
		if isinstance(target, dict):
			target[to_property_key(key)] = value
			return
		if isinstance(target, list):
			if is_number(key) and isinstance(key, int) and key >= 0:
				if key >= len(target):
					target.extend([UNDEFINED] * (key + 1 - len(target)))
				target[key] = value
				return
			if key == "length" and isinstance(value, int) and value >= 0:
				del target[value:]
				target.extend([UNDEFINED] * (value - len(target)))
				return
		if is_nullish(target):
			raise BlockRuntimeError(
				"TypeError",
				f"Cannot set properties of {to_string(target)} (setting '{to_property_key(key)}')",
				span=self.span(loc),
			)
		raise BlockRuntimeError(
			"TypeError",
			f"Cannot assign to read only property '{to_property_key(key)}' of {typeof(target)}",
			span=self.span(loc),
		)


def binary_op(op: str, left: Any, right: Any) -> Any:
	if op == "+":
		return add(left, right)
	if op in ("-", "*", "/", "%", "**"):
		return arithmetic(op, left, right)
	if op in ("<", "<=", ">", ">="):
		return compare(left, right, op)
	if op == "===":
		return strict_equals(left, right)
	if op == "!==":
		return not strict_equals(left, right)
	if op == "==":
		return loose_equals(left, right)
	if op == "!=":
		return not loose_equals(left, right)
	raise BlockRuntimeError("SyntaxError", f"unknown operator {op!r}")


def caught_value(err: BaseException) -> Any:
	"""The value a `catch (e)` binder receives for `err`."""
	if isinstance(err, ThrownValue):
		return err.value
	if isinstance(err, BlockRuntimeError):
		return err.as_value()
	if isinstance(err, BlockError):
		return {"name": type(err).__name__, "message": err.message}
	return {"name": "Error", "message": str(err)}


__all__ = [
	"Closure",
	"Environment",
	"Interpreter",
	"binary_op",
	"caught_value",
]
