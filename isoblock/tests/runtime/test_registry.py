#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Definition registry: fresh definitions, body cache, weak tracking.
"""

from __future__ import annotations

import gc

import pytest

from isoblock.config import EngineConfig
from isoblock.errors import BlockSyntaxError, CaptureError, UnexpectedBindingError
from isoblock.runtime.handle import Handle, TransferState
from isoblock.runtime.registry import DefinitionRegistry, source_digest


def test_identical_source_yields_distinct_definitions() -> None:
	reg = DefinitionRegistry()
	first = reg.define("return a + 1", ["a"])
	second = reg.define("return a + 1", ["a"])
	assert first.id != second.id
	assert first.declared_captures == second.declared_captures == frozenset({"a"})
	assert reg.cache_misses == 1
	assert reg.cache_hits == 1


def test_capture_list_order_shares_cache_entry() -> None:
	reg = DefinitionRegistry()
	reg.define("return a + b", ["a", "b"])
	reg.define("return a + b", ["b", "a"])
	assert reg.cache_hits == 1
	assert reg.cache_size() == 1


def test_different_capture_lists_are_separate_entries() -> None:
	reg = DefinitionRegistry()
	reg.define("return a", ["a"])
	reg.define("return a", ["a", "spare"])
	assert reg.cache_size() == 2


def test_free_variables_recorded() -> None:
	reg = DefinitionRegistry()
	definition = reg.define("return ${x} + y", ["y", "unused"])
	assert definition.free_variables == frozenset({"y"})
	assert definition.declared_captures == frozenset({"x", "y", "unused"})


def test_validation_errors_propagate() -> None:
	reg = DefinitionRegistry()
	with pytest.raises(CaptureError) as exc:
		reg.define("return secret")
	assert exc.value.names == ("secret",)
	with pytest.raises(BlockSyntaxError):
		reg.define("return (")
	assert reg.cache_size() == 0


def test_cache_is_bounded() -> None:
	reg = DefinitionRegistry(EngineConfig(body_cache_size=2))
	for n in range(4):
		reg.define(f"return {n}")
	assert reg.cache_size() == 2
	reg.define("return 0")
	assert reg.cache_hits == 0


def test_cache_can_be_disabled() -> None:
	reg = DefinitionRegistry(EngineConfig(body_cache_size=0))
	reg.define("return 1")
	reg.define("return 1")
	assert reg.cache_size() == 0
	assert reg.cache_hits == 0


def test_definitions_are_tracked_weakly() -> None:
	reg = DefinitionRegistry()
	definition = reg.define("return 1")
	assert reg.lookup(definition.id) is definition
	assert reg.live_definitions() == 1
	definition_id = definition.id
	del definition
	gc.collect()
	assert reg.lookup(definition_id) is None
	assert reg.live_definitions() == 0


def test_handle_keeps_definition_alive() -> None:
	reg = DefinitionRegistry()
	handle = reg.create_handle(reg.define("return 1"))
	gc.collect()
	assert reg.live_definitions() == 1
	assert isinstance(handle, Handle)
	assert handle.transfer_state is TransferState.LOCAL


def test_create_handle_rejects_undeclared_values() -> None:
	reg = DefinitionRegistry()
	definition = reg.define("return a", ["a"])
	with pytest.raises(UnexpectedBindingError) as exc:
		reg.create_handle(definition, {"a": 1, "b": 2})
	assert exc.value.unexpected == ("b",)


def test_source_digest_is_sha256() -> None:
	assert source_digest("") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
