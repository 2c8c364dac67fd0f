# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import threading
from typing import Any, List

import pytest

from girbind.closure import ExecutionContext
from girbind.config import ClosureErrorPolicy
from girbind.core.errors import NotCallableError
from girbind.core.type_tags import TypeTag
from girbind.metadata.infos import TypeInfo

INT32 = TypeInfo(TypeTag.INT32)
BOOL = TypeInfo(TypeTag.BOOLEAN)


def test_each_closure_finalizes_exactly_once(demo) -> None:
	loader, _ = demo
	bridge = loader.closures
	handles = [bridge.create(lambda: None) for _ in range(5)]
	for handle in handles[:3]:
		handle.ref()
	for handle in handles:
		handle.unref()
	assert bridge.stats.live == 3
	for handle in handles[:3]:
		handle.unref()
	stats = bridge.stats
	assert (stats.created, stats.finalized) == (5, 5)
	assert stats.released_callables == 5 and stats.released_contexts == 5
	assert all(h.finalized and h.target is None for h in handles)
	with pytest.raises(RuntimeError):
		handles[0].unref()
	with pytest.raises(RuntimeError):
		handles[0].invoke([])


def test_non_callable_target(demo) -> None:
	loader, _ = demo
	with pytest.raises(NotCallableError):
		loader.closures.create(42)
	assert loader.closures.stats.created == 0


def test_invoke_converts_arguments_and_result(demo) -> None:
	loader, _ = demo
	handle = loader.closures.create(lambda a, b: a * b, INT32, arg_types=(INT32, INT32))
	assert handle.call_raw(6, 7) == 42
	marshaller = loader.marshaller
	result = handle(marshaller.load(3, INT32), marshaller.load(5, INT32))
	assert result is not None and marshaller.store(result) == 15
	with pytest.raises(TypeError):
		handle.call_raw(1)


def test_failing_target_returns_zero_value(demo) -> None:
	loader, _ = demo
	seen: List[Any] = []
	loader.log.install_handler(lambda domain, level, message: seen.append((domain, level, message)) or True)

	def explode(index: int) -> bool:
		raise ValueError("nope")

	handle = loader.closures.create(explode, BOOL, arg_types=(INT32,))
	assert handle.call_raw(1) is False
	assert seen and seen[0][:2] == ("girbind", "WARNING")
	assert "nope" in seen[0][2]


def test_failing_target_propagates_when_configured(make_demo) -> None:
	loader, _ = make_demo(ClosureErrorPolicy.PROPAGATE)

	def explode(index: int) -> bool:
		raise ValueError("nope")

	handle = loader.closures.create(explode, BOOL, arg_types=(INT32,))
	with pytest.raises(ValueError, match="nope"):
		handle.call_raw(1)


def test_bad_return_value_is_a_failure(demo) -> None:
	loader, _ = demo
	loader.log.install_handler(lambda *record: True)
	handle = loader.closures.create(lambda: 1 << 40, INT32, arg_types=())
	assert handle.call_raw() == 0


def test_callback_parameter_scope_is_the_call(demo) -> None:
	loader, _ = demo
	Demo = loader.get_package("Demo")
	assert Demo.foreach(lambda i: i % 2 == 0, 5) == 3
	stats = loader.closures.stats
	assert stats.created == 1 and stats.live == 0


def test_native_side_can_keep_closure(demo) -> None:
	loader, native = demo
	Demo = loader.get_package("Demo")
	received: List[int] = []

	def on_emit(index: int) -> bool:
		received.append(index)
		return index > 1

	Demo.connect(on_emit)
	assert loader.closures.stats.live == 1
	assert Demo.emit(1) is False
	assert Demo.emit(2) is True
	assert received == [1, 2]
	Demo.disconnect()
	assert loader.closures.stats.live == 0
	assert native.handler is None


def test_foreign_thread_invocation_runs_in_owner_context(demo) -> None:
	loader, _ = demo
	owner = threading.get_ident()
	ran_on: List[int] = []

	def target(value: int) -> int:
		ran_on.append(threading.get_ident())
		return value + 1

	handle = loader.closures.create(target, INT32, arg_types=(INT32,))
	results: List[Any] = []
	worker = threading.Thread(target=lambda: results.append(handle.call_raw(41)))
	worker.start()
	assert ExecutionContext.current().dispatch_pending(block=True, timeout=5) == 1
	worker.join(timeout=5)
	assert results == [42]
	assert ran_on == [owner]


def test_dispatch_only_on_owner_thread() -> None:
	context = ExecutionContext.current()
	errors: List[BaseException] = []

	def other() -> None:
		try:
			context.dispatch_pending()
		except RuntimeError as err:
			errors.append(err)

	t = threading.Thread(target=other)
	t.start()
	t.join()
	assert len(errors) == 1


def test_closure_with_dead_context_fails_softly(demo) -> None:
	loader, _ = demo
	loader.log.install_handler(lambda *record: True)
	handle = loader.closures.create(lambda: 1, INT32, arg_types=(), context=ExecutionContext())
	assert handle.call_raw() == 0
