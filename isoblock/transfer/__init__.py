# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
isoblock.transfer: moving values and Handles between execution contexts.

Modules:
  - clone: structured clone (tagged JSON encoding)
  - signing: Ed25519 envelope signatures
  - codec: transfer envelopes (`TransferCodec`)
  - channel: in-process message ports (`MessageChannel`)

Import from the submodules; this package does not re-export them, since the
runtime imports `clone` while `codec` imports the runtime.
"""
