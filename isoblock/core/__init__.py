# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
isoblock.core: shared source-location and diagnostic types.

Modules:
  - span: Span source location used by errors and diagnostics
  - diagnostics: Diagnostic record rendered by the CLI
"""

__all__ = [
	"diagnostics",
	"span",
]
