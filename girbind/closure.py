# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Closure bridge: native-invocable trampolines around Python callables.

A ClosureHandle is what native code holds when a Python callable is attached
to a signal or callback slot. It keeps:
  - a weak reference to the execution context that created it,
  - a strong reference to the target callable,
  - a native reference count; reaching zero finalizes the handle exactly once.

Invocations always run in the capturing context. When native code calls from
another thread the request is queued on that context and the caller waits
until the owner drains its queue (`ExecutionContext.dispatch_pending`), so
Python state is only ever touched from the thread that owns it.

A Python exception raised by the target has nowhere to go on the native side;
what happens instead is the bridge's ClosureErrorPolicy.
"""

from __future__ import annotations

import logging
import queue
import threading
import weakref
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from girbind.config import ClosureErrorPolicy
from girbind.core.errors import NotCallableError
from girbind.core.type_tags import TypeTag
from girbind.log_bridge import LogBridge
from girbind.marshal import TaggedValue, ValueMarshaller
from girbind.metadata.infos import TypeInfo

logger = logging.getLogger(__name__)

_Request = Tuple[Callable[..., Any], Tuple[Any, ...], Future]


class ExecutionContext:
	"""A thread owning Python-side state, with a queue of pending invocations."""

	_local = threading.local()

	def __init__(self) -> None:
		self.thread_id = threading.get_ident()
		self._queue: "queue.SimpleQueue[_Request]" = queue.SimpleQueue()

	@classmethod
	def current(cls) -> "ExecutionContext":
		"""The calling thread's context (created on first use, dies with the thread)."""
		ctx = getattr(cls._local, "context", None)
		if ctx is None:
			ctx = cls()
			cls._local.context = ctx
		return ctx

	def is_current(self) -> bool:
		return threading.get_ident() == self.thread_id

	def call(self, fn: Callable[..., Any], *args: Any) -> Any:
		"""Run `fn(*args)` in this context, queueing it when called from elsewhere."""
		if self.is_current():
			return fn(*args)
		future: Future = Future()
		self._queue.put((fn, args, future))
		return future.result()

	def dispatch_pending(self, *, block: bool = False, timeout: float | None = None) -> int:
		"""
		Run queued invocations on the owning thread; return how many ran.

		With `block=True` waits up to `timeout` seconds for the first request.
		"""
		if not self.is_current():
			raise RuntimeError("dispatch_pending must be called from the owning thread")
		count = 0
		wait = block
		while True:
			try:
				fn, args, future = self._queue.get(block=wait, timeout=timeout if wait else None)
			except queue.Empty:
				return count
			wait = False
			if future.set_running_or_notify_cancel():
				try:
					future.set_result(fn(*args))
				except Exception as err:
					future.set_exception(err)
			count += 1


@dataclass
class ClosureStats:
	created: int = 0
	finalized: int = 0
	released_callables: int = 0
	released_contexts: int = 0

	@property
	def live(self) -> int:
		return self.created - self.finalized


def _is_void(type_info: TypeInfo | None) -> bool:
	return type_info is None or type_info.tag is TypeTag.VOID


class ClosureHandle:
	"""Native-side handle wrapping one Python callable."""

	def __init__(
		self,
		bridge: "ClosureBridge",
		target: Callable[..., Any],
		context: ExecutionContext,
		return_type: TypeInfo | None,
		arg_types: Tuple[TypeInfo, ...] | None = None,
	) -> None:
		self._bridge = bridge
		self._target: Optional[Callable[..., Any]] = target
		self._context_ref: Optional[weakref.ref] = weakref.ref(context)
		self.return_type = return_type
		self.arg_types = arg_types
		self._refcount = 1
		self._finalized = False

	@property
	def refcount(self) -> int:
		return self._refcount

	@property
	def finalized(self) -> bool:
		return self._finalized

	@property
	def target(self) -> Optional[Callable[..., Any]]:
		return self._target

	def ref(self) -> "ClosureHandle":
		if self._finalized:
			raise RuntimeError("closure already finalized")
		self._refcount += 1
		return self

	def unref(self) -> None:
		if self._finalized:
			raise RuntimeError("closure already finalized")
		self._refcount -= 1
		if self._refcount == 0:
			self._finalize()

	def _finalize(self) -> None:
		self._finalized = True
		stats = self._bridge.stats
		if self._target is not None:
			self._target = None
			stats.released_callables += 1
		if self._context_ref is not None:
			self._context_ref = None
			stats.released_contexts += 1
		stats.finalized += 1

	def invoke(self, args: Sequence[TaggedValue]) -> TaggedValue | None:
		"""Native entry point: call the target with converted args, convert the result."""
		if self._finalized:
			raise RuntimeError("closure invoked after finalization")
		context = self._context_ref() if self._context_ref is not None else None
		if context is None:
			return self._failed(RuntimeError("capturing execution context no longer exists"))
		return context.call(self._invoke_here, list(args))

	def _invoke_here(self, args: List[TaggedValue]) -> TaggedValue | None:
		marshaller = self._bridge.marshaller
		try:
			py_args = [marshaller.store(arg) for arg in args]
			assert self._target is not None
			result = self._target(*py_args)
			if _is_void(self.return_type):
				return None
			assert self.return_type is not None
			return marshaller.load(result, self.return_type)
		except Exception as err:
			return self._failed(err)

	def _failed(self, err: Exception) -> TaggedValue | None:
		if self._bridge.policy is ClosureErrorPolicy.PROPAGATE:
			raise err
		logger.debug("closure invocation failed", exc_info=err)
		self._bridge.log.emit("girbind", "WARNING", f"closure invocation failed: {err!r}")
		if _is_void(self.return_type):
			return None
		assert self.return_type is not None
		return self._bridge.marshaller.init(self.return_type)

	def call_raw(self, *raw_args: Any) -> Any:
		"""
		Native-level convenience: build TaggedValues from raw values per the
		declared `arg_types`, invoke, and return the raw result.
		"""
		if self.arg_types is None:
			raise RuntimeError("closure was created without a declared signature")
		if len(raw_args) != len(self.arg_types):
			raise TypeError(f"closure takes {len(self.arg_types)} arguments ({len(raw_args)} given)")
		marshaller = self._bridge.marshaller
		tagged: List[TaggedValue] = []
		for raw, type_info in zip(raw_args, self.arg_types):
			value = marshaller.init(type_info)
			marshaller.set_raw(value, raw)
			tagged.append(value)
		result = self.invoke(tagged)
		return None if result is None else result.raw()

	def __call__(self, *args: TaggedValue) -> TaggedValue | None:
		return self.invoke(args)


class ClosureBridge:
	"""Creates closure handles and tracks their lifecycle."""

	def __init__(
		self,
		marshaller: ValueMarshaller,
		log: LogBridge,
		policy: ClosureErrorPolicy = ClosureErrorPolicy.LOG_AND_DEFAULT,
	) -> None:
		self.marshaller = marshaller
		self.log = log
		self.policy = policy
		self.stats = ClosureStats()

	def create(
		self,
		target: Any,
		return_type: TypeInfo | None = None,
		*,
		arg_types: Tuple[TypeInfo, ...] | None = None,
		context: ExecutionContext | None = None,
	) -> ClosureHandle:
		"""Wrap `target`, capturing the current execution context."""
		if not callable(target):
			raise NotCallableError(f"closure target must be callable, got {type(target).__name__}")
		if not _is_void(return_type):
			assert return_type is not None
			self.marshaller.init(return_type)  # fail early on unusable return types
		handle = ClosureHandle(self, target, context or ExecutionContext.current(), return_type, arg_types)
		self.stats.created += 1
		return handle


__all__ = ["ExecutionContext", "ClosureHandle", "ClosureBridge", "ClosureStats"]
