# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
isoblock: isolated, transferable code blocks.

A construct body may reference only its declared captures and the language
intrinsics. Validated bodies become opaque Handles that can be moved (never
copied) between execution contexts and reified into async units of work once
every capture is bound.

Packages:
  core: source spans and diagnostics
  parser: lark grammar, terminator insertion, AST
  analysis: scope analysis and capture resolution
  runtime: values, intrinsics, interpreter, registry, handles, reification, contexts
  transfer: structured clone, signed transfer envelopes, message channels
"""

from isoblock.config import EngineConfig
from isoblock.errors import (
	BlockError,
	BlockRuntimeError,
	BlockSyntaxError,
	CaptureError,
	CloneError,
	ConfigError,
	EnvelopeError,
	IncompleteReificationError,
	ReificationError,
	ThrownValue,
	TransferConsumedError,
	UnexpectedBindingError,
)
from isoblock.runtime.context import ExecutionContext
from isoblock.runtime.handle import Handle, TransferState
from isoblock.runtime.registry import Definition, DefinitionRegistry
from isoblock.runtime.reify import ReifiedBlock
from isoblock.runtime.values import UNDEFINED
from isoblock.transfer.channel import MessageChannel
from isoblock.transfer.clone import structured_clone
from isoblock.transfer.codec import TransferCodec

__all__ = [
	"BlockError",
	"BlockRuntimeError",
	"BlockSyntaxError",
	"CaptureError",
	"CloneError",
	"ConfigError",
	"Definition",
	"DefinitionRegistry",
	"EngineConfig",
	"EnvelopeError",
	"ExecutionContext",
	"Handle",
	"IncompleteReificationError",
	"MessageChannel",
	"ReificationError",
	"ReifiedBlock",
	"ThrownValue",
	"TransferCodec",
	"TransferConsumedError",
	"TransferState",
	"UNDEFINED",
	"UnexpectedBindingError",
	"structured_clone",
]
