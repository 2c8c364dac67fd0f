# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Backing type identities for tagged values.

A GType is the runtime identity of a native type: every scalar type tag has a
fixed fundamental value type, and every registered compound/enum/flags type
introduced by a typelib gets its own named GType derived from one of the
compound fundamentals. The universe owns these identities; registering the
same name twice returns the existing identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Iterator, Optional, Set


class Fundamental(Enum):
	"""Root kinds every GType derives from."""

	INVALID = auto()
	NONE = auto()
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
	STRING = auto()
	FILENAME = auto()
	GTYPE = auto()
	UNICHAR = auto()
	ENUM = auto()
	FLAGS = auto()
	BOXED = auto()
	OBJECT = auto()
	INTERFACE = auto()


COMPOUND_FUNDAMENTALS = frozenset({Fundamental.BOXED, Fundamental.OBJECT, Fundamental.INTERFACE})

# Names of the fundamental types themselves; registered types use their own
# typelib-declared names.
_FUNDAMENTAL_NAMES: Dict[Fundamental, str] = {
	Fundamental.INVALID: "<invalid>",
	Fundamental.NONE: "void",
	Fundamental.BOOLEAN: "gboolean",
	Fundamental.INT8: "gint8",
	Fundamental.UINT8: "guint8",
	Fundamental.INT16: "gint16",
	Fundamental.UINT16: "guint16",
	Fundamental.INT32: "gint32",
	Fundamental.UINT32: "guint32",
	Fundamental.INT64: "gint64",
	Fundamental.UINT64: "guint64",
	Fundamental.FLOAT: "gfloat",
	Fundamental.DOUBLE: "gdouble",
	Fundamental.STRING: "gchararray",
	Fundamental.FILENAME: "gfilename",
	Fundamental.GTYPE: "GType",
	Fundamental.UNICHAR: "gunichar",
	Fundamental.ENUM: "GEnum",
	Fundamental.FLAGS: "GFlags",
	Fundamental.BOXED: "GBoxed",
	Fundamental.OBJECT: "GObject",
	Fundamental.INTERFACE: "GInterface",
}


@dataclass(frozen=True)
class GType:
	"""Identity of one native type."""

	name: str
	fundamental: Fundamental
	parent: Optional["GType"] = None

	@property
	def is_value(self) -> bool:
		"""True for types a tagged value can hold (everything but NONE/INVALID)."""
		return self.fundamental not in (Fundamental.NONE, Fundamental.INVALID)

	@property
	def is_compound(self) -> bool:
		return self.fundamental in COMPOUND_FUNDAMENTALS

	def ancestors(self) -> Iterator["GType"]:
		cur: Optional[GType] = self
		while cur is not None:
			yield cur
			cur = cur.parent

	def __str__(self) -> str:
		return self.name


class TypeUniverse:
	"""
	Registry of GType identities.

	Fundamentals are seeded at construction. Registered types are added by the
	metadata provider when a typelib is required; the marshaller only ever
	reads from the universe.
	"""

	def __init__(self) -> None:
		self._by_name: Dict[str, GType] = {}
		self._fundamentals: Dict[Fundamental, GType] = {}
		self._interfaces: Dict[str, Set[str]] = {}
		for kind, name in _FUNDAMENTAL_NAMES.items():
			gtype = GType(name=name, fundamental=kind)
			self._by_name[name] = gtype
			self._fundamentals[kind] = gtype

	def fundamental(self, kind: Fundamental) -> GType:
		"""Return the stable GType of a fundamental kind."""
		return self._fundamentals[kind]

	def register(self, name: str, fundamental: Fundamental, parent: GType | None = None) -> GType:
		"""Register (or return the already-registered) named type."""
		existing = self._by_name.get(name)
		if existing is not None:
			if existing.fundamental is not fundamental:
				raise ValueError(
					f"type '{name}' already registered as {existing.fundamental.name}, not {fundamental.name}"
				)
			return existing
		if parent is None and name != _FUNDAMENTAL_NAMES[fundamental]:
			parent = self._fundamentals[fundamental]
		gtype = GType(name=name, fundamental=fundamental, parent=parent)
		self._by_name[name] = gtype
		return gtype

	def add_interface(self, gtype: GType, iface: GType) -> None:
		"""Record that instances of `gtype` implement `iface`."""
		self._interfaces.setdefault(gtype.name, set()).add(iface.name)

	def from_name(self, name: str) -> GType | None:
		return self._by_name.get(name)

	def is_a(self, gtype: GType, target: GType) -> bool:
		"""Subtype test through the parent chain and implemented interfaces."""
		for anc in gtype.ancestors():
			if anc == target:
				return True
			if target.name in self._interfaces.get(anc.name, ()):
				return True
		return False


__all__ = ["Fundamental", "GType", "TypeUniverse", "COMPOUND_FUNDAMENTALS"]
