# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Tagged-value marshalling.

A TaggedValue pairs a backing GType with native storage; the GType alone
decides how the storage is read. Values are always created through
`ValueMarshaller.init` (zeroed storage for a type descriptor) and then
filled from Python (`load`/`set`) or from native code (`set_raw`).

Dispatch order for load/store:
  1. fast path: the backing type is exactly one of the scalar fundamentals in
     the type-tag table, use that row's primitives;
  2. fundamental dispatch: ENUM/FLAGS carry plain integers, OBJECT/BOXED/
     INTERFACE carry compound instances wrapped in proxies;
  3. anything else fails loudly.

Integers are range-checked against the declared width/signedness; nothing is
silently widened or wrapped.
"""

from __future__ import annotations

import ctypes
import operator
from typing import Any, Optional

from girbind.compound import CompoundRegistry, NativeInstance
from girbind.core import type_tags
from girbind.core.errors import (
	BadInterfaceError,
	ConversionError,
	MetadataLookupError,
	UnknownCompoundTypeError,
	UnsupportedTypeError,
)
from girbind.core.gtypes import COMPOUND_FUNDAMENTALS, Fundamental, GType, TypeUniverse
from girbind.core.type_tags import StorageKind
from girbind.metadata.infos import BaseInfo, TypeInfo
from girbind.metadata.repository import MetadataProvider

_ENUM_MIN, _ENUM_MAX = -(1 << 31), (1 << 31) - 1
_FLAGS_MAX = (1 << 32) - 1


class TaggedValue:
	"""Native storage plus the type that interprets it."""

	__slots__ = ("gtype", "storage", "info")

	def __init__(self, gtype: GType, storage: Any, info: Optional[BaseInfo] = None) -> None:
		self.gtype = gtype
		self.storage = storage
		self.info = info

	def raw(self) -> Any:
		"""The native-level value (ctypes scalar value, instance, or None)."""
		if self.gtype.fundamental in COMPOUND_FUNDAMENTALS or self.storage is None:
			return self.storage
		return self.storage.value

	def __repr__(self) -> str:
		return f"TaggedValue({self.gtype.name}, {self.raw()!r})"


def _enum_check(value: Any, *, flags: bool) -> int:
	try:
		raw = operator.index(value)
	except TypeError:
		raise ConversionError(f"expected integer for {'flags' if flags else 'enum'}, got {type(value).__name__}") from None
	lo, hi = (0, _FLAGS_MAX) if flags else (_ENUM_MIN, _ENUM_MAX)
	if raw < lo or raw > hi:
		raise ConversionError(f"{raw} out of range for {'flags' if flags else 'enum'}")
	return raw


class ValueMarshaller:
	"""Converts between TaggedValues and Python values."""

	def __init__(self, provider: MetadataProvider, universe: TypeUniverse, compounds: CompoundRegistry) -> None:
		self._provider = provider
		self._universe = universe
		self._compounds = compounds

	# -- construction -----------------------------------------------------

	def init(self, type_info: TypeInfo) -> TaggedValue:
		"""Allocate zeroed storage typed per `type_info`."""
		entry = type_tags.lookup(type_info.tag)
		if entry.storage is StorageKind.COMPOUND:
			try:
				iface = self._provider.resolve_interface(type_info)
			except MetadataLookupError as err:
				raise BadInterfaceError(f"value_init: unresolvable interface '{type_info}': {err.message}") from err
			gtype = self._provider.gtype_of(iface)
			if gtype is None:
				raise BadInterfaceError(
					f"value_init: bad interface type {iface.info_type.name} ({iface.qualified_name})",
					info_kind=iface.info_type,
				)
			return TaggedValue(gtype, self._zero(gtype), iface)
		assert entry.fundamental is not None
		return TaggedValue(self._universe.fundamental(entry.fundamental), entry.new_storage())

	def _zero(self, gtype: GType) -> Any:
		if gtype.fundamental is Fundamental.ENUM:
			return ctypes.c_int32()
		if gtype.fundamental is Fundamental.FLAGS:
			return ctypes.c_uint32()
		return None

	# -- Python -> native -------------------------------------------------

	def load(self, value: Any, type_info: TypeInfo) -> TaggedValue:
		"""Convert a Python value into a new TaggedValue for `type_info`."""
		tagged = self.init(type_info)
		self.set(tagged, value)
		return tagged

	def set(self, tagged: TaggedValue, value: Any) -> None:
		"""Fill existing storage from a Python value."""
		gtype = tagged.gtype
		if not gtype.is_value:
			return
		entry = type_tags.by_backing_type(gtype)
		if entry is not None:
			assert entry.check is not None
			tagged.storage.value = entry.check(value)
			return
		fundamental = gtype.fundamental
		if fundamental is Fundamental.ENUM:
			tagged.storage.value = _enum_check(value, flags=False)
		elif fundamental is Fundamental.FLAGS:
			tagged.storage.value = _enum_check(value, flags=True)
		elif fundamental in COMPOUND_FUNDAMENTALS:
			if value is None:
				tagged.storage = None
				return
			instance, concrete = self._compounds.extract(value)
			if not self._universe.is_a(concrete, gtype):
				raise ConversionError(f"expected {gtype.name}, got {concrete.name}")
			tagged.storage = instance
		else:
			raise ConversionError(f"no handling of {gtype.name}({fundamental.name})")

	def set_raw(self, tagged: TaggedValue, raw: Any) -> None:
		"""Fill storage from a native-level value (as returned by a native symbol)."""
		if not tagged.gtype.is_value:
			return
		if tagged.gtype.fundamental in COMPOUND_FUNDAMENTALS:
			if raw is not None and not isinstance(raw, NativeInstance):
				raise ConversionError(f"native value for {tagged.gtype.name} is not an instance")
			tagged.storage = raw
			return
		try:
			tagged.storage.value = raw
		except TypeError as err:
			raise ConversionError(f"native value {raw!r} does not fit {tagged.gtype.name}: {err}") from None

	# -- native -> Python -------------------------------------------------

	def store(self, tagged: TaggedValue) -> Any:
		"""Convert a TaggedValue into a Python value."""
		gtype = tagged.gtype
		if not gtype.is_value:
			return None
		entry = type_tags.by_backing_type(gtype)
		if entry is not None:
			assert entry.push is not None
			return entry.push(tagged.storage.value)
		fundamental = gtype.fundamental
		if fundamental in (Fundamental.ENUM, Fundamental.FLAGS):
			return int(tagged.storage.value)
		if fundamental in COMPOUND_FUNDAMENTALS:
			instance = tagged.storage
			if instance is None:
				return None
			info = self._provider.find_by_gtype(instance.gtype)
			if info is None:
				raise UnknownCompoundTypeError(f"no metadata for compound type {instance.gtype.name}", gtype=instance.gtype)
			return self._compounds.create_proxy(info, instance.dup(), owned=True)
		raise UnsupportedTypeError(f"no handling of {gtype.name}({fundamental.name})")


__all__ = ["TaggedValue", "ValueMarshaller"]
