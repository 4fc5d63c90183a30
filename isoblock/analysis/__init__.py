# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
isoblock.analysis: static checks over parsed bodies.

Modules:
  - hoisting: declaration hoisting rules (shared with the interpreter)
  - scope: free-identifier analysis (`analyze_body`)
  - captures: capture declaration resolution (`resolve_captures`)
"""

from .captures import ResolvedCaptures, resolve_captures, validate_script
from .scope import INTRINSICS, ScopeReport, analyze_body

__all__ = [
	"INTRINSICS",
	"ResolvedCaptures",
	"ScopeReport",
	"analyze_body",
	"resolve_captures",
	"validate_script",
]
