#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Message channels between execution contexts.
"""

from __future__ import annotations

import threading

import pytest

from isoblock.config import EngineConfig
from isoblock.errors import EnvelopeError, TransferConsumedError
from isoblock.runtime.context import ExecutionContext
from isoblock.runtime.handle import TransferState
from isoblock.transfer.channel import MessageChannel


def test_post_and_receive_moves_handles() -> None:
	main = ExecutionContext("main")
	worker = ExecutionContext("worker")
	channel = MessageChannel()
	handle = main.block("return ${x} * 2")

	channel.port1.post({"task": handle, "x": 21}, [handle])
	assert handle.transfer_state is TransferState.TRANSFERRED
	assert channel.port2.pending() == 1

	message = channel.port2.receive(worker, timeout=1)
	assert handle.transfer_state is TransferState.CONSUMED
	with pytest.raises(TransferConsumedError):
		handle.reify({"x": 1})

	with worker:
		task = message["task"]
		future = worker.submit(task.reify({"x": message["x"]}))
		assert future.result(timeout=5) == 42


def test_ports_are_entangled_both_ways() -> None:
	channel = MessageChannel()
	ctx = ExecutionContext("peer")
	channel.port2.post("pong")
	assert channel.port1.receive(ctx, timeout=1) == "pong"
	assert channel.port1.pending() == 0


def test_receive_accepts_a_bare_registry() -> None:
	channel = MessageChannel()
	handle = ExecutionContext("main").block("return 1")
	channel.port1.post([handle], [handle])
	decoded = channel.port2.receive_decoded(ExecutionContext("other").registry, timeout=1)
	assert len(decoded.handles) == 1
	assert decoded.message == [decoded.handles[0]]


def test_receive_timeout() -> None:
	channel = MessageChannel()
	with pytest.raises(TimeoutError):
		channel.port2.receive(ExecutionContext("idle"), timeout=0.01)


def test_receive_from_another_thread() -> None:
	channel = MessageChannel()
	received: list = []
	ready = threading.Event()

	def consumer() -> None:
		ready.set()
		received.append(channel.port2.receive(ExecutionContext("consumer"), timeout=5))

	thread = threading.Thread(target=consumer)
	thread.start()
	ready.wait()
	channel.port1.post({"n": 1})
	thread.join(timeout=5)
	assert received == [{"n": 1}]


def test_rejected_message_consumes_origin_handles() -> None:
	channel = MessageChannel(config=EngineConfig(require_signatures=True))
	handle = ExecutionContext("main").block("return 1")
	channel.port1.post(handle, [handle])
	with pytest.raises(EnvelopeError):
		channel.port2.receive(ExecutionContext("strict"), timeout=1)
	assert handle.transfer_state is TransferState.CONSUMED
	assert channel.codec.pending_transfers() == ()
