# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lark-based parser for construct bodies and host scripts.

The grammar lives in `grammar.lark`. Two parser instances share it:
- `_PARSER` parses whole programs (bodies and scripts) and runs the
  `TerminatorInserter` post-lexer for newline-terminated statements;
- `_EXPR_PARSER` parses expression fragments (template-literal holes).

The tree builder desugars tagged construct forms:
- `f{| body |}`      -> `f({| body |})`
- `f<a, b>{| body |}` -> `f(<a, b>{| body |} (unbound), { a: clone(a), b: clone(b) })`

so later phases only ever see ordinary calls.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from isoblock.core.span import Span
from isoblock.errors import BlockSyntaxError

from .ast import (
	ArrayLiteral,
	Assign,
	Await,
	Binary,
	Binding,
	Block,
	BlockLiteral,
	BreakStmt,
	Call,
	CaptureRef,
	CloneOf,
	Conditional,
	ContinueStmt,
	Expr,
	ExprStmt,
	ForOfStmt,
	ForStmt,
	FunctionDecl,
	FunctionExpr,
	IfStmt,
	Index,
	Literal,
	Located,
	Logical,
	Member,
	Name,
	ObjectLiteral,
	Program,
	Prop,
	ReturnStmt,
	Stmt,
	Template,
	ThrowStmt,
	TryStmt,
	Unary,
	Update,
	VarDecl,
	WhileStmt,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text(encoding="utf-8")

RESERVED = frozenset(
	{
		"let", "const", "var", "function", "async", "await", "return", "if", "else",
		"while", "for", "of", "break", "continue", "throw", "try", "catch", "finally",
		"typeof", "true", "false", "null",
	}
)

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INT_RE = re.compile(r"\d+")

# Human-readable names for tokens in error messages.
_TOKEN_LABELS = {
	"_TERM": "end of statement",
	"$END": "end of input",
	"BLOCK_OPEN": "'{|'",
	"BLOCK_CLOSE": "'|}'",
	"CAPTURE_OPEN": "capture list",
	"ARROW_PARAMS": "arrow parameters",
	"ARROW_BRACE": "'=> {'",
}


class TerminatorInserter:
	"""
	Insert `_TERM` tokens for statement boundaries.

	Explicit `;` is an unconditional terminator. A newline becomes a terminator
	only when the previous token can end a statement and the innermost open
	bracket is a brace or construct delimiter (never inside `(...)`/`[...]`).
	A newline is dropped when the next token continues the expression
	(`.`, a binary operator, `else`, `catch`, ...). A terminator is also
	inserted before `}` / `|}` and at end of input when the last token can end
	a statement, so `{| return 1 |}` needs no `;`.

	State lives in the generator's locals; one instance serves concurrent parses.
	"""

	always_accept = ("NEWLINE", "SEMI")

	TERMINABLE = frozenset(
		{
			"NAME",
			"NUMBER",
			"STRING",
			"TEMPLATE",
			"TRUE",
			"FALSE",
			"NULL",
			"RPAR",
			"RSQB",
			"RBRACE",
			"BLOCK_CLOSE",
			"CAPTURE_MARKER",
			"RETURN",
			"BREAK",
			"CONTINUE",
			"INCR",
			"DECR",
		}
	)

	CONTINUATION = frozenset(
		{
			"ELSE",
			"CATCH",
			"FINALLY",
			"DOT",
			"RPAR",
			"RSQB",
			"COMMA",
			"COLON",
			"QMARK",
			"ARROW",
			"ARROW_BRACE",
			"EQEQEQ",
			"NOTEQEQ",
			"EQEQ",
			"NOTEQ",
			"LT",
			"LTE",
			"GT",
			"GTE",
			"PLUS",
			"MINUS",
			"STAR",
			"STARSTAR",
			"SLASH",
			"PERCENT",
			"OROR",
			"ANDAND",
			"NULLISH",
			"EQUAL",
			"PLUSEQ",
			"MINUSEQ",
			"STAREQ",
			"SLASHEQ",
		}
	)

	OPENERS = frozenset({"LPAR", "LSQB", "LBRACE", "ARROW_BRACE", "BLOCK_OPEN", "CAPTURE_OPEN"})
	CLOSERS = frozenset({"RPAR", "RSQB", "RBRACE", "BLOCK_CLOSE"})
	# Openers inside which newlines are significant.
	STATEMENT_OPENERS = frozenset({"LBRACE", "ARROW_BRACE", "BLOCK_OPEN", "CAPTURE_OPEN"})
	# Closers preceded by an implicit terminator.
	STATEMENT_CLOSERS = frozenset({"RBRACE", "BLOCK_CLOSE"})

	def process(self, stream: Iterator[Token]) -> Iterator[Token]:
		stack: List[str] = []
		can_terminate = False
		pending: Optional[Token] = None
		last: Optional[Token] = None
		for token in stream:
			ttype = token.type
			if ttype == "NEWLINE":
				if pending is None and can_terminate and (not stack or stack[-1] in self.STATEMENT_OPENERS):
					pending = token
				continue
			if ttype == "SEMI":
				pending = None
				yield Token.new_borrow_pos("_TERM", token.value, token)
				can_terminate = False
				continue
			if ttype in self.STATEMENT_CLOSERS:
				if pending is not None or can_terminate:
					yield Token.new_borrow_pos("_TERM", "", pending or token)
				pending = None
			elif pending is not None:
				if ttype not in self.CONTINUATION:
					yield Token.new_borrow_pos("_TERM", pending.value, pending)
				pending = None
			yield token
			last = token
			if ttype in self.OPENERS:
				stack.append(ttype)
			elif ttype in self.CLOSERS and stack:
				stack.pop()
			can_terminate = ttype in self.TERMINABLE
		if can_terminate and last is not None:
			yield Token.new_borrow_pos("_TERM", "", last)


_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="program",
	propagate_positions=True,
	maybe_placeholders=False,
	postlex=TerminatorInserter(),
)

_EXPR_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="expr",
	propagate_positions=True,
	maybe_placeholders=False,
)


def parse_body(source: str, *, file: Optional[str] = None) -> Program:
	"""Parse the text between `{|` and `|}` (or a standalone body file)."""
	return _parse_program(source, file=file)


def parse_script(source: str, *, file: Optional[str] = None) -> Program:
	"""Parse a host script; construct literals inside it become `BlockLiteral` nodes."""
	return _parse_program(source, file=file)


def _parse_program(source: str, *, file: Optional[str]) -> Program:
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as err:
		raise _syntax_error(err, file=file) from None
	return _AstBuilder(source, file=file).program(tree)


def _token_label(token: Token) -> str:
	label = _TOKEN_LABELS.get(token.type)
	if label is not None:
		return label
	return repr(str(token.value))


def _syntax_error(err: UnexpectedInput, *, file: Optional[str], origin: tuple[int, int] = (1, 1)) -> BlockSyntaxError:
	if isinstance(err, UnexpectedToken):
		if err.token.type == "$END":
			message = "unexpected end of input"
		else:
			message = f"unexpected {_token_label(err.token)}"
	elif isinstance(err, UnexpectedCharacters):
		message = f"unexpected character {err.char!r}"
	elif isinstance(err, UnexpectedEOF):
		message = "unexpected end of input"
	else:
		message = "invalid syntax"
	line = getattr(err, "line", None)
	column = getattr(err, "column", None)
	if line is None or line < 1:
		return BlockSyntaxError(message, span=Span(file=file))
	line, column = _shift(origin, line, column or 1)
	return BlockSyntaxError(message, span=Span(file=file, line=line, column=column))


def _shift(origin: tuple[int, int], line: int, column: int) -> tuple[int, int]:
	"""Translate a fragment-relative position into the enclosing source."""
	base_line, base_col = origin
	if line == 1:
		return base_line, base_col + column - 1
	return base_line + line - 1, column


_SIMPLE_ESCAPES = {
	"n": "\n",
	"t": "\t",
	"r": "\r",
	"b": "\b",
	"f": "\f",
	"v": "\v",
	"0": "\0",
}


def decode_escapes(raw: str) -> str:
	"""
	Decode backslash escapes of a string or template chunk.

	Unknown escapes yield the escaped character itself; a backslash before a
	newline is a line continuation.
	"""
	if "\\" not in raw:
		return raw
	out: list[str] = []
	i = 0
	n = len(raw)
	while i < n:
		ch = raw[i]
		if ch != "\\" or i + 1 >= n:
			out.append(ch)
			i += 1
			continue
		nxt = raw[i + 1]
		if nxt in _SIMPLE_ESCAPES:
			out.append(_SIMPLE_ESCAPES[nxt])
			i += 2
		elif nxt == "x" and i + 4 <= n and _is_hex(raw[i + 2 : i + 4]):
			out.append(chr(int(raw[i + 2 : i + 4], 16)))
			i += 4
		elif nxt == "u" and i + 2 < n and raw[i + 2] == "{":
			end = raw.find("}", i + 3)
			if end < 0 or not _is_hex(raw[i + 3 : end]):
				raise ValueError("invalid unicode escape")
			out.append(chr(int(raw[i + 3 : end], 16)))
			i = end + 1
		elif nxt == "u":
			if not _is_hex(raw[i + 2 : i + 6]) or i + 6 > n:
				raise ValueError("invalid unicode escape")
			out.append(chr(int(raw[i + 2 : i + 6], 16)))
			i += 6
		elif nxt == "\r" and raw[i + 2 : i + 3] == "\n":
			i += 3
		elif nxt == "\n":
			i += 2
		else:
			out.append(nxt)
			i += 2
	return "".join(out)


def _is_hex(text: str) -> bool:
	return bool(text) and all(c in "0123456789abcdefABCDEF" for c in text)


def _capture_names(token: Token) -> tuple[str, ...]:
	"""Names listed in a `<a, b>{|` token."""
	inner = token.value[: token.value.index(">")]
	return tuple(_IDENT_RE.findall(inner))


def _trees(node: Tree) -> list[Tree]:
	return [c for c in node.children if isinstance(c, Tree)]


def _tokens(node: Tree, *types: str) -> list[Token]:
	return [c for c in node.children if isinstance(c, Token) and (not types or c.type in types)]


class _AstBuilder:
	"""
	Build frozen AST nodes from a lark tree.

	`origin` is the (line, column) of the first character of `source` inside the
	enclosing text; it is (1, 1) except for template holes.
	"""

	def __init__(self, source: str, *, file: Optional[str] = None, origin: tuple[int, int] = (1, 1)) -> None:
		self.source = source
		self.file = file
		self.origin = origin

	def loc(self, node: Tree | Token) -> Located:
		if isinstance(node, Token):
			line, column = node.line, node.column
		else:
			line = getattr(node.meta, "line", None)
			column = getattr(node.meta, "column", None)
		if line is None:
			return Located(line=self.origin[0], column=self.origin[1])
		line, column = _shift(self.origin, line, column)
		return Located(line=line, column=column)

	def error(self, message: str, node: Tree | Token | Located) -> BlockSyntaxError:
		loc = node if isinstance(node, Located) else self.loc(node)
		return BlockSyntaxError(message, span=Span(file=self.file, line=loc.line, column=loc.column))

	def check_name(self, name: str, node: Tree | Token) -> str:
		if name in RESERVED:
			raise self.error(f"'{name}' is a reserved word", node)
		return name

	# Programs and statements ----------------------------------------------

	def program(self, tree: Tree) -> Program:
		return Program(
			loc=Located(line=self.origin[0], column=self.origin[1]),
			statements=self.statements(_trees(tree)),
			source=self.source,
		)

	def statements(self, nodes: Sequence[Tree]) -> tuple[Stmt, ...]:
		out: list[Stmt] = []
		for node in nodes:
			if node.data == "empty_stmt":
				continue
			out.append(self.stmt(node))
		return tuple(out)

	def block(self, tree: Tree) -> Block:
		return Block(loc=self.loc(tree), statements=self.statements(_trees(tree)))

	def stmt(self, tree: Tree) -> Stmt:
		kind = tree.data
		loc = self.loc(tree)
		if kind == "var_decl":
			return self.var_decl(tree)
		if kind == "expr_stmt":
			return ExprStmt(loc=loc, value=self.expr(tree.children[0]))
		if kind == "return_stmt":
			values = _trees(tree)
			return ReturnStmt(loc=loc, value=self.expr(values[0]) if values else None)
		if kind == "throw_stmt":
			return ThrowStmt(loc=loc, value=self.expr(_trees(tree)[0]))
		if kind == "break_stmt":
			return BreakStmt(loc=loc)
		if kind == "continue_stmt":
			return ContinueStmt(loc=loc)
		if kind == "if_stmt":
			parts = _trees(tree)
			else_block: Optional[Block] = None
			if len(parts) > 2:
				alt = parts[2]
				if alt.data == "if_stmt":
					else_block = Block(loc=self.loc(alt), statements=(self.stmt(alt),))
				else:
					else_block = self.block(alt)
			return IfStmt(loc=loc, condition=self.expr(parts[0]), then_block=self.block(parts[1]), else_block=else_block)
		if kind == "while_stmt":
			cond, body = _trees(tree)
			return WhileStmt(loc=loc, condition=self.expr(cond), body=self.block(body))
		if kind == "for_stmt":
			return self.for_stmt(tree)
		if kind == "for_of_stmt":
			decl = _tokens(tree, "LET", "CONST", "VAR")[0]
			name = _tokens(tree, "NAME")[0]
			iterable, body = _trees(tree)
			return ForOfStmt(
				loc=loc,
				kind=decl.value,
				name=str(name),
				iterable=self.expr(iterable),
				body=self.block(body),
			)
		if kind == "try_stmt":
			return self.try_stmt(tree)
		if kind == "func_decl":
			name = _tokens(tree, "NAME")[0]
			return FunctionDecl(
				loc=loc,
				name=self.check_name(str(name), name),
				params=self.params(tree),
				body=self.block(next(t for t in _trees(tree) if t.data == "block")),
				is_async=bool(_tokens(tree, "ASYNC")),
			)
		raise self.error(f"unsupported statement '{kind}'", tree)

	def var_decl(self, tree: Tree) -> VarDecl:
		kind = _tokens(tree, "LET", "CONST", "VAR")[0].value
		bindings: list[Binding] = []
		for b in _trees(tree):
			name = _tokens(b, "NAME")[0]
			values = _trees(b)
			bindings.append(
				Binding(
					loc=self.loc(name),
					name=str(name),
					value=self.expr(values[0]) if values else None,
				)
			)
		return VarDecl(loc=self.loc(tree), kind=kind, bindings=tuple(bindings))

	def for_stmt(self, tree: Tree) -> ForStmt:
		init = cond = update = None
		body: Optional[Block] = None
		for part in _trees(tree):
			if part.data == "for_init":
				inner = _trees(part)[0]
				if inner.data == "var_decl":
					init = self.var_decl(inner)
				else:
					init = ExprStmt(loc=self.loc(inner), value=self.expr(inner))
			elif part.data == "for_cond":
				cond = self.expr(_trees(part)[0])
			elif part.data == "for_update":
				update = self.expr(_trees(part)[0])
			elif part.data == "block":
				body = self.block(part)
		assert body is not None
		return ForStmt(loc=self.loc(tree), init=init, condition=cond, update=update, body=body)

	def try_stmt(self, tree: Tree) -> TryStmt:
		body: Optional[Block] = None
		catch_name: Optional[str] = None
		catch_block: Optional[Block] = None
		finally_block: Optional[Block] = None
		for part in _trees(tree):
			if part.data == "block":
				body = self.block(part)
			elif part.data == "catch_clause":
				names = _tokens(part, "NAME")
				catch_name = str(names[0]) if names else None
				catch_block = self.block(_trees(part)[0])
			elif part.data == "finally_clause":
				finally_block = self.block(_trees(part)[0])
		if catch_block is None and finally_block is None:
			raise self.error("'try' requires a 'catch' or 'finally' clause", tree)
		assert body is not None
		return TryStmt(
			loc=self.loc(tree),
			body=body,
			catch_name=catch_name,
			catch_block=catch_block,
			finally_block=finally_block,
		)

	def params(self, tree: Tree) -> tuple[str, ...]:
		for part in _trees(tree):
			if part.data == "params":
				return self.unique_params([(str(t), t) for t in _tokens(part, "NAME")], part)
		return ()

	def unique_params(self, names: list[tuple[str, Token]], node: Tree | Token) -> tuple[str, ...]:
		seen: list[str] = []
		for name, tok in names:
			self.check_name(name, tok)
			if name in seen:
				raise self.error(f"duplicate parameter '{name}'", tok)
			seen.append(name)
		return tuple(seen)

	# Expressions -----------------------------------------------------------

	def expr(self, node: Tree | Token) -> Expr:
		if isinstance(node, Token):
			raise self.error(f"unexpected {_token_label(node)}", node)
		kind = node.data
		loc = self.loc(node)
		children = node.children
		if kind == "number":
			return Literal(loc=loc, value=parse_number(str(children[0])))
		if kind == "string":
			return Literal(loc=loc, value=self.string(children[0]))
		if kind == "template":
			return self.template(children[0])
		if kind == "true_lit":
			return Literal(loc=loc, value=True)
		if kind == "false_lit":
			return Literal(loc=loc, value=False)
		if kind == "null_lit":
			return Literal(loc=loc, value=None)
		if kind == "var":
			return Name(loc=loc, ident=str(children[0]))
		if kind == "capture_marker":
			name = _IDENT_RE.search(str(children[0])).group(0)
			return CaptureRef(loc=loc, name=self.check_name(name, children[0]))
		if kind == "paren":
			return self.expr(_trees(node)[0])
		if kind == "array_lit":
			return self.array(node)
		if kind == "object_lit":
			return ObjectLiteral(loc=loc, props=tuple(self.prop(p) for p in _trees(node)))
		if kind == "func_expr":
			return FunctionExpr(
				loc=loc,
				params=self.params(node),
				body=self.block(next(t for t in _trees(node) if t.data == "block")),
				is_async=bool(_tokens(node, "ASYNC")),
			)
		if kind == "arrow_fn":
			return self.arrow(node)
		if kind == "member":
			target = children[0]
			name = children[-1]
			return Member(loc=self.loc(name), target=self.expr(target), name=str(name))
		if kind == "index":
			target, index = _trees(node)
			return Index(loc=loc, target=self.expr(target), index=self.expr(index))
		if kind == "call":
			parts = _trees(node)
			args: tuple[Expr, ...] = ()
			if len(parts) > 1:
				args = tuple(self.expr(a) for a in _trees(parts[1]))
			return Call(loc=loc, callee=self.expr(parts[0]), args=args)
		if kind in ("bare_block", "captured_block"):
			return self.block_literal(node, bind_at_site=True)
		if kind == "tagged_block":
			callee = self.expr(children[0])
			return Call(loc=loc, callee=callee, args=(self.block_literal(node, bind_at_site=True),))
		if kind == "tagged_capture_block":
			callee = self.expr(children[0])
			literal = self.block_literal(node, bind_at_site=False)
			values = ObjectLiteral(
				loc=literal.loc,
				props=tuple(
					Prop(loc=literal.loc, key=name, value=CloneOf(loc=literal.loc, name=name))
					for name in literal.captures or ()
				),
			)
			return Call(loc=loc, callee=callee, args=(literal, values))
		if kind == "update_expr":
			target = self.expr(children[0])
			self.check_target(target)
			return Update(loc=loc, op=str(children[1]), target=target)
		if kind == "unary_op":
			return Unary(loc=loc, op=str(children[0]), operand=self.expr(children[1]))
		if kind == "await_op":
			return Await(loc=loc, value=self.expr(children[1]))
		if kind == "binary":
			left, op, right = children
			return Binary(loc=self.loc(op), op=str(op), left=self.expr(left), right=self.expr(right))
		if kind == "logical":
			left, op, right = children
			return Logical(loc=self.loc(op), op=str(op), left=self.expr(left), right=self.expr(right))
		if kind == "cond_expr":
			cond, then_expr, else_expr = _trees(node)
			return Conditional(
				loc=loc,
				condition=self.expr(cond),
				then_expr=self.expr(then_expr),
				else_expr=self.expr(else_expr),
			)
		if kind == "assign_expr":
			target_node, op, value = children
			target = self.expr(target_node)
			self.check_target(target)
			return Assign(loc=self.loc(op), op=str(op), target=target, value=self.expr(value))
		raise self.error(f"unsupported expression '{kind}'", node)

	def check_target(self, target: Expr) -> None:
		if not isinstance(target, (Name, Member, Index)):
			raise self.error("invalid assignment target", target.loc)

	def string(self, token: Token) -> str:
		try:
			return decode_escapes(token.value[1:-1])
		except ValueError as err:
			raise self.error(str(err), token) from None

	def array(self, node: Tree) -> Expr:
		return ArrayLiteral(loc=self.loc(node), elements=tuple(self.expr(e) for e in _trees(node)))

	def prop(self, node: Tree) -> Prop:
		if node.data == "prop_short":
			tok = node.children[0]
			name = str(tok)
			return Prop(loc=self.loc(tok), key=name, value=Name(loc=self.loc(tok), ident=name))
		key_tok = node.children[0]
		value = _trees(node)[-1]
		if key_tok.type == "STRING":
			key = self.string(key_tok)
		elif key_tok.type == "NUMBER":
			key = number_key(parse_number(str(key_tok)))
		else:
			key = str(key_tok)
		return Prop(loc=self.loc(key_tok), key=key, value=self.expr(value))

	def arrow(self, node: Tree) -> FunctionExpr:
		loc = self.loc(node)
		head = _tokens(node, "NAME", "ARROW_PARAMS")[0]
		if head.type == "NAME":
			params = self.unique_params([(str(head), head)], head)
		else:
			params = self.unique_params([(m, head) for m in _IDENT_RE.findall(head.value)], head)
		is_async = bool(_tokens(node, "ASYNC"))
		if _tokens(node, "ARROW_BRACE"):
			brace = _tokens(node, "ARROW_BRACE")[0]
			body = Block(loc=self.loc(brace), statements=self.statements(_trees(node)))
		else:
			value = self.expr(_trees(node)[0])
			body = Block(loc=value.loc, statements=(ReturnStmt(loc=value.loc, value=value),))
		return FunctionExpr(loc=loc, params=params, body=body, is_async=is_async, is_arrow=True)

	def block_literal(self, node: Tree, *, bind_at_site: bool) -> BlockLiteral:
		opener = _tokens(node, "BLOCK_OPEN", "CAPTURE_OPEN")[0]
		closer = _tokens(node, "BLOCK_CLOSE")[-1]
		captures: Optional[tuple[str, ...]] = None
		if opener.type == "CAPTURE_OPEN":
			names = _capture_names(opener)
			seen: list[str] = []
			for name in names:
				self.check_name(name, opener)
				if name in seen:
					raise self.error(f"duplicate capture name '{name}'", opener)
				seen.append(name)
			captures = tuple(seen)
		start = next(i for i, c in enumerate(node.children) if c is opener)
		statements = self.statements([c for c in node.children[start + 1 :] if isinstance(c, Tree)])
		return BlockLiteral(
			loc=self.loc(opener),
			body=Block(loc=self.loc(opener), statements=statements),
			source=self.source[opener.end_pos : closer.start_pos],
			captures=captures,
			bind_at_site=bind_at_site,
		)

	def template(self, token: Token) -> Template:
		raw = token.value[1:-1]
		parts: list[str | Expr] = []
		buf: list[str] = []
		line, column = token.line, token.column + 1
		i = 0
		n = len(raw)

		def advance(text: str) -> None:
			nonlocal line, column
			for ch in text:
				if ch == "\n":
					line += 1
					column = 1
				else:
					column += 1

		while i < n:
			ch = raw[i]
			if ch == "\\" and i + 1 < n:
				buf.append(raw[i : i + 2])
				advance(raw[i : i + 2])
				i += 2
				continue
			if ch == "$" and raw[i + 1 : i + 2] == "{":
				end = _hole_end(raw, i + 2)
				if end < 0:
					raise self.error("unterminated template hole", Located(*_shift(self.origin, line, column)))
				if buf:
					parts.append(self.template_text("".join(buf), token))
					buf = []
				advance("${")
				hole = raw[i + 2 : end]
				if not hole.strip():
					raise self.error("empty template hole", Located(*_shift(self.origin, line, column)))
				parts.append(self.hole(hole, _shift(self.origin, line, column)))
				advance(hole + "}")
				i = end + 1
				continue
			buf.append(ch)
			advance(ch)
			i += 1
		if buf:
			parts.append(self.template_text("".join(buf), token))
		return Template(loc=self.loc(token), parts=tuple(parts))

	def template_text(self, raw: str, token: Token) -> str:
		try:
			return decode_escapes(raw)
		except ValueError as err:
			raise self.error(str(err), token) from None

	def hole(self, text: str, origin: tuple[int, int]) -> Expr:
		# The fragment parser has no terminator inserter, so newlines are blanks.
		flat = text.replace("\r", " ").replace("\n", " ")
		try:
			tree = _EXPR_PARSER.parse(flat)
		except UnexpectedInput as err:
			raise _syntax_error(err, file=self.file, origin=origin) from None
		return _AstBuilder(flat, file=self.file, origin=origin).expr(tree)


def _hole_end(raw: str, start: int) -> int:
	"""Index of the `}` closing a template hole opened before `start`, or -1."""
	depth = 0
	quote: Optional[str] = None
	i = start
	while i < len(raw):
		ch = raw[i]
		if quote is not None:
			if ch == "\\":
				i += 2
				continue
			if ch == quote:
				quote = None
		elif ch in "'\"":
			quote = ch
		elif ch == "{":
			depth += 1
		elif ch == "}":
			if depth == 0:
				return i
			depth -= 1
		i += 1
	return -1


def parse_number(text: str) -> int | float:
	"""Integral literals stay `int`; everything else is a `float`."""
	if text[:2] in ("0x", "0X"):
		return int(text, 16)
	if _INT_RE.fullmatch(text):
		return int(text)
	return float(text)


def number_key(value: int | float) -> str:
	if isinstance(value, float) and value.is_integer():
		return str(int(value))
	return str(value)


__all__ = ["RESERVED", "TerminatorInserter", "decode_escapes", "parse_body", "parse_number", "parse_script"]
