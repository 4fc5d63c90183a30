# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
isoblock.runtime: evaluation of bodies and host scripts.

Modules:
  - values: value model and coercions
  - intrinsics: global namespaces and built-in methods
  - interp: async tree-walking interpreter
  - registry: per-context Definition registry
  - handle: opaque, transferable construct handles
  - reify: binding checks and invocable reified blocks
  - context: execution contexts (registry, globals, event loop)
"""
