# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Compound instances and their Python-side proxies.

Native memory comes in two flavours:
  - objects (`NativeObject`): reference counted; duplicating takes a new ref,
  - boxed records (`NativeBoxed`): value-like; duplicating makes a copy.

A `CompoundProxy` is the Python face of one instance. Proxies created with
`owned=True` hold a native reference of their own and give it back when the
proxy is garbage collected, using the disposer registered for the instance's
type name ("Namespace.Name"), or the instance's default release when no
disposer is registered.

Disposers are chosen by the loader once per type name; the first registration
wins and later ones are ignored unless explicitly overridden.
"""

from __future__ import annotations

import logging
import weakref
from typing import Any, Callable, Dict, Optional, Tuple

from girbind.core.errors import ConversionError
from girbind.core.gtypes import GType
from girbind.metadata.infos import BaseInfo, RegisteredTypeInfo

logger = logging.getLogger(__name__)

Disposer = Callable[[Any], Any]


class NativeInstance:
	"""A block of native memory with a concrete type."""

	def __init__(self, gtype: GType) -> None:
		self.gtype = gtype
		self.disposed = False

	def dup(self) -> "NativeInstance":
		raise NotImplementedError

	def release(self) -> None:
		raise NotImplementedError

	def _check_alive(self) -> None:
		if self.disposed:
			raise RuntimeError(f"{self.gtype.name} instance used after dispose")


class NativeObject(NativeInstance):
	"""Reference-counted native object; starts with one reference."""

	def __init__(self, gtype: GType, **props: Any) -> None:
		super().__init__(gtype)
		self.refcount = 1
		self.props: Dict[str, Any] = dict(props)

	def ref(self) -> "NativeObject":
		self._check_alive()
		self.refcount += 1
		return self

	def unref(self) -> None:
		self._check_alive()
		self.refcount -= 1
		if self.refcount == 0:
			self.disposed = True

	def dup(self) -> "NativeObject":
		return self.ref()

	def release(self) -> None:
		self.unref()


class NativeBoxed(NativeInstance):
	"""Copyable native record."""

	def __init__(self, gtype: GType, **data: Any) -> None:
		super().__init__(gtype)
		self.data: Dict[str, Any] = dict(data)

	def copy(self) -> "NativeBoxed":
		self._check_alive()
		return type(self)(self.gtype, **self.data)

	def free(self) -> None:
		self._check_alive()
		self.disposed = True

	def dup(self) -> "NativeBoxed":
		return self.copy()

	def release(self) -> None:
		self.free()


class DisposerRegistry:
	"""Per-type-name disposer table (first registration wins)."""

	def __init__(self) -> None:
		self._by_name: Dict[str, Disposer] = {}

	def register(self, type_name: str, disposer: Disposer) -> bool:
		"""Record `disposer` unless one is already registered; True if recorded."""
		if type_name in self._by_name:
			return False
		self._by_name[type_name] = disposer
		return True

	def override(self, type_name: str, disposer: Disposer | None) -> None:
		"""Replace (or with None, remove) the disposer for `type_name`."""
		if disposer is None:
			self._by_name.pop(type_name, None)
		else:
			self._by_name[type_name] = disposer

	def get(self, type_name: str) -> Disposer | None:
		return self._by_name.get(type_name)

	def __contains__(self, type_name: object) -> bool:
		return type_name in self._by_name


def _dispose(disposers: DisposerRegistry, type_name: str, instance: NativeInstance) -> None:
	if instance.disposed:
		return
	disposer = disposers.get(type_name)
	logger.debug("disposing %s instance via %s", type_name, "registered disposer" if disposer else "default release")
	if disposer is not None:
		disposer(instance)
	else:
		instance.release()


class CompoundProxy:
	"""
	Python proxy of a native compound instance.

	Attribute access resolves methods/constants through the bound type entity
	(including inherited members); methods come back bound to this proxy.
	"""

	__slots__ = ("_registry", "_info", "_instance", "_owned", "_finalizer", "__weakref__")

	def __init__(self, registry: "CompoundRegistry", info: RegisteredTypeInfo, instance: NativeInstance, owned: bool) -> None:
		self._registry = registry
		self._info = info
		self._instance = instance
		self._owned = owned
		self._finalizer: Optional[weakref.finalize] = None
		if owned:
			self._finalizer = weakref.finalize(self, _dispose, registry.disposers, info.qualified_name, instance)

	@property
	def info(self) -> RegisteredTypeInfo:
		return self._info

	@property
	def instance(self) -> NativeInstance:
		return self._instance

	@property
	def gtype(self) -> GType:
		return self._instance.gtype

	@property
	def owned(self) -> bool:
		return self._owned

	def dispose(self) -> None:
		"""Give the owned reference back now instead of at collection."""
		if self._finalizer is not None:
			self._finalizer()

	def __getattr__(self, name: str) -> Any:
		if name.startswith("__"):
			raise AttributeError(name)
		member = self._registry.lookup_member(self, name)
		if member is None:
			raise AttributeError(f"'{self._info.qualified_name}' has no member '{name}'")
		return member

	def __eq__(self, other: object) -> bool:
		if not isinstance(other, CompoundProxy):
			return NotImplemented
		return self._instance is other._instance

	def __hash__(self) -> int:
		return id(self._instance)

	def __repr__(self) -> str:
		flag = "owned" if self._owned else "borrowed"
		return f"<{self._info.qualified_name} proxy ({self.gtype.name}, {flag})>"


MemberLookup = Callable[[CompoundProxy, str], Any]


class CompoundRegistry:
	"""Creates and unwraps compound proxies; owns the disposer table."""

	def __init__(self, disposers: DisposerRegistry | None = None) -> None:
		self.disposers = disposers if disposers is not None else DisposerRegistry()
		self._member_lookup: MemberLookup | None = None

	def set_member_lookup(self, lookup: MemberLookup | None) -> None:
		self._member_lookup = lookup

	def lookup_member(self, proxy: CompoundProxy, name: str) -> Any:
		if self._member_lookup is None:
			return None
		return self._member_lookup(proxy, name)

	def create_proxy(self, info: BaseInfo, instance: NativeInstance, owned: bool) -> CompoundProxy:
		if not isinstance(info, RegisteredTypeInfo):
			raise TypeError(f"'{info.qualified_name}' is not a registered type")
		return CompoundProxy(self, info, instance, owned)

	def extract(self, value: Any) -> Tuple[NativeInstance, GType]:
		"""Return (instance, concrete type) of a proxy without taking a reference."""
		if not isinstance(value, CompoundProxy):
			raise ConversionError(f"expected compound proxy, got {type(value).__name__}")
		instance = value.instance
		if instance.disposed:
			raise ConversionError(f"{value!r} refers to a disposed instance")
		return instance, instance.gtype


__all__ = [
	"NativeInstance",
	"NativeObject",
	"NativeBoxed",
	"DisposerRegistry",
	"CompoundProxy",
	"CompoundRegistry",
]
