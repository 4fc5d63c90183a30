# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
isoblock.parser: surface language front-end.

Modules:
  - grammar.lark: LALR grammar (bodies, host scripts, expression fragments)
  - parser: lark wiring, terminator insertion, tree -> AST building
  - ast: frozen syntax tree nodes
"""

from .parser import parse_body, parse_script

__all__ = ["parse_body", "parse_script"]
