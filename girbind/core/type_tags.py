# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Static type-tag table.

Each scalar tag maps to exactly one storage layout (a ctypes primitive with
the declared width/signedness), a backing fundamental type, and a pair of
conversion primitives:

  check(value) -> raw   Python value -> raw storage value (raises ConversionError)
  push(raw) -> value    raw storage value -> Python value

INTERFACE is listed with no primitives: the marshaller resolves it through
the referenced metadata. Container tags (arrays, lists, hashes) and ERROR are
a known limitation and fail loudly with UnsupportedTypeError instead of being
coerced.
"""

from __future__ import annotations

import ctypes
import math
import operator
import os
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional

from girbind.core.errors import ConversionError, UnsupportedTypeError
from girbind.core.gtypes import Fundamental, GType

_FLOAT32_MAX = 3.4028234663852886e38


class TypeTag(Enum):
	"""Abstract type tags used by typelib type descriptors."""

	VOID = auto()
	BOOLEAN = auto()
	INT8 = auto()
	UINT8 = auto()
	INT16 = auto()
	UINT16 = auto()
	INT32 = auto()
	UINT32 = auto()
	INT64 = auto()
	UINT64 = auto()
	FLOAT = auto()
	DOUBLE = auto()
	GTYPE = auto()
	UTF8 = auto()
	FILENAME = auto()
	UNICHAR = auto()
	INTERFACE = auto()
	ARRAY = auto()
	GLIST = auto()
	GSLIST = auto()
	GHASH = auto()
	ERROR = auto()


class StorageKind(Enum):
	NONE = auto()
	BOOLEAN = auto()
	INTEGER = auto()
	FLOAT = auto()
	STRING = auto()
	OPAQUE = auto()  # Python-side reference (GType identities)
	COMPOUND = auto()  # resolved through interface metadata


@dataclass(frozen=True)
class TypeTagEntry:
	"""One row of the tag table."""

	tag: TypeTag
	storage: StorageKind
	fundamental: Optional[Fundamental]
	ctype: Optional[type] = None
	check: Optional[Callable[[Any], Any]] = None
	push: Optional[Callable[[Any], Any]] = None

	def new_storage(self) -> Any:
		"""Zeroed storage for this tag (None for tags without native storage)."""
		if self.ctype is None:
			return None
		if self.ctype is ctypes.py_object:
			return ctypes.py_object(None)
		return self.ctype()


def _int_check(bits: int, signed: bool) -> Callable[[Any], int]:
	if signed:
		lo, hi = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
	else:
		lo, hi = 0, (1 << bits) - 1
	kind = f"{'' if signed else 'u'}int{bits}"

	def check(value: Any) -> int:
		try:
			raw = operator.index(value)
		except TypeError:
			raise ConversionError(f"expected integer for {kind}, got {type(value).__name__}") from None
		if raw < lo or raw > hi:
			raise ConversionError(f"{raw} out of range for {kind} [{lo}, {hi}]")
		return raw

	return check


def _float_check(bits: int) -> Callable[[Any], float]:
	kind = "float" if bits == 32 else "double"

	def check(value: Any) -> float:
		if isinstance(value, bool) or not isinstance(value, (int, float)):
			raise ConversionError(f"expected number for {kind}, got {type(value).__name__}")
		try:
			raw = float(value)
		except OverflowError:
			raise ConversionError(f"{value} out of range for {kind}") from None
		if bits == 32 and math.isfinite(raw) and abs(raw) > _FLOAT32_MAX:
			raise ConversionError(f"{raw} out of range for {kind}")
		return raw

	return check


def _no_nul(raw: bytes, kind: str) -> bytes:
	if b"\x00" in raw:
		raise ConversionError(f"{kind} value contains an embedded NUL")
	return raw


def _utf8_check(value: Any) -> bytes | None:
	if value is None:
		return None
	if not isinstance(value, str):
		raise ConversionError(f"expected str, got {type(value).__name__}")
	return _no_nul(value.encode("utf-8"), "utf8")


def _utf8_push(raw: bytes | None) -> str | None:
	if raw is None:
		return None
	try:
		return raw.decode("utf-8")
	except UnicodeDecodeError as err:
		raise ConversionError(f"native string is not valid UTF-8: {err}") from None


def _filename_check(value: Any) -> bytes | None:
	if value is None:
		return None
	try:
		raw = os.fsencode(value)
	except TypeError:
		raise ConversionError(f"expected path-like, got {type(value).__name__}") from None
	return _no_nul(raw, "filename")


def _filename_push(raw: bytes | None) -> str | None:
	if raw is None:
		return None
	try:
		return os.fsdecode(raw)
	except UnicodeDecodeError as err:
		raise ConversionError(f"native filename cannot be decoded: {err}") from None


def _gtype_check(value: Any) -> GType | None:
	if value is not None and not isinstance(value, GType):
		raise ConversionError(f"expected GType, got {type(value).__name__}")
	return value


def _unichar_check(value: Any) -> int:
	if not isinstance(value, str) or len(value) != 1:
		raise ConversionError(f"expected single character, got {value!r}")
	return ord(value)


def _unichar_push(raw: int) -> str:
	try:
		return chr(raw)
	except ValueError:
		raise ConversionError(f"{raw:#x} is not a valid code point") from None


def _entry(tag: TypeTag, storage: StorageKind, fundamental: Fundamental | None, ctype: type | None = None, check=None, push=None) -> TypeTagEntry:
	return TypeTagEntry(tag=tag, storage=storage, fundamental=fundamental, ctype=ctype, check=check, push=push)


_TABLE: Dict[TypeTag, TypeTagEntry] = {
	TypeTag.VOID: _entry(TypeTag.VOID, StorageKind.NONE, Fundamental.NONE),
	TypeTag.BOOLEAN: _entry(TypeTag.BOOLEAN, StorageKind.BOOLEAN, Fundamental.BOOLEAN, ctypes.c_bool, bool, bool),
	TypeTag.INT8: _entry(TypeTag.INT8, StorageKind.INTEGER, Fundamental.INT8, ctypes.c_int8, _int_check(8, True), int),
	TypeTag.UINT8: _entry(TypeTag.UINT8, StorageKind.INTEGER, Fundamental.UINT8, ctypes.c_uint8, _int_check(8, False), int),
	TypeTag.INT16: _entry(TypeTag.INT16, StorageKind.INTEGER, Fundamental.INT16, ctypes.c_int16, _int_check(16, True), int),
	TypeTag.UINT16: _entry(TypeTag.UINT16, StorageKind.INTEGER, Fundamental.UINT16, ctypes.c_uint16, _int_check(16, False), int),
	TypeTag.INT32: _entry(TypeTag.INT32, StorageKind.INTEGER, Fundamental.INT32, ctypes.c_int32, _int_check(32, True), int),
	TypeTag.UINT32: _entry(TypeTag.UINT32, StorageKind.INTEGER, Fundamental.UINT32, ctypes.c_uint32, _int_check(32, False), int),
	TypeTag.INT64: _entry(TypeTag.INT64, StorageKind.INTEGER, Fundamental.INT64, ctypes.c_int64, _int_check(64, True), int),
	TypeTag.UINT64: _entry(TypeTag.UINT64, StorageKind.INTEGER, Fundamental.UINT64, ctypes.c_uint64, _int_check(64, False), int),
	TypeTag.FLOAT: _entry(TypeTag.FLOAT, StorageKind.FLOAT, Fundamental.FLOAT, ctypes.c_float, _float_check(32), float),
	TypeTag.DOUBLE: _entry(TypeTag.DOUBLE, StorageKind.FLOAT, Fundamental.DOUBLE, ctypes.c_double, _float_check(64), float),
	TypeTag.GTYPE: _entry(TypeTag.GTYPE, StorageKind.OPAQUE, Fundamental.GTYPE, ctypes.py_object, _gtype_check, lambda raw: raw),
	TypeTag.UTF8: _entry(TypeTag.UTF8, StorageKind.STRING, Fundamental.STRING, ctypes.c_char_p, _utf8_check, _utf8_push),
	TypeTag.FILENAME: _entry(TypeTag.FILENAME, StorageKind.STRING, Fundamental.FILENAME, ctypes.c_char_p, _filename_check, _filename_push),
	TypeTag.UNICHAR: _entry(TypeTag.UNICHAR, StorageKind.INTEGER, Fundamental.UNICHAR, ctypes.c_uint32, _unichar_check, _unichar_push),
	TypeTag.INTERFACE: _entry(TypeTag.INTERFACE, StorageKind.COMPOUND, None),
}

_BY_FUNDAMENTAL: Dict[Fundamental, TypeTagEntry] = {
	entry.fundamental: entry
	for entry in _TABLE.values()
	if entry.fundamental is not None and entry.check is not None
}


def lookup(tag: TypeTag) -> TypeTagEntry:
	"""Return the table entry for `tag`, failing loudly for unimplemented tags."""
	entry = _TABLE.get(tag)
	if entry is None:
		raise UnsupportedTypeError(f"type tag {tag.name} is not supported", tag=tag)
	return entry


def by_backing_type(gtype: GType) -> TypeTagEntry | None:
	"""
	Fast-path lookup: the entry whose backing type is exactly `gtype`.

	Registered types (enums, objects, ...) never match here even though they
	derive from a fundamental; they go through the fundamental dispatch.
	"""
	if gtype.parent is not None:
		return None
	return _BY_FUNDAMENTAL.get(gtype.fundamental)


__all__ = ["TypeTag", "StorageKind", "TypeTagEntry", "lookup", "by_backing_type"]
