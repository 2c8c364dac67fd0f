# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Info records describing one typelib.

Infos are immutable and owned by their `Typelib`. Cross references (object
parents, implemented interfaces, interface-typed arguments) are kept as
qualified names ("Namespace.Name") and resolved through the repository on
use, so a typelib can be built before its dependencies are loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, ClassVar, Dict, Optional, Tuple

from girbind.core.type_tags import TypeTag


class InfoType(Enum):
	"""Meta-kind of an info record."""

	FUNCTION = auto()
	CALLBACK = auto()
	STRUCT = auto()
	UNION = auto()
	ENUM = auto()
	FLAGS = auto()
	OBJECT = auto()
	INTERFACE = auto()
	CONSTANT = auto()
	VALUE = auto()
	FIELD = auto()
	ARG = auto()


def split_qualified(qualified: str) -> Tuple[str, str]:
	"""Split "Namespace.Name" into its parts."""
	namespace, sep, name = qualified.rpartition(".")
	if not sep or not namespace or not name:
		raise ValueError(f"'{qualified}' is not a qualified name")
	return namespace, name


@dataclass(frozen=True)
class TypeInfo:
	"""
	Type descriptor of an argument, field, constant or return value.

	`interface` names the referenced info for TypeTag.INTERFACE and is None
	for every other tag.
	"""

	tag: TypeTag
	interface: Optional[str] = None

	def __str__(self) -> str:
		if self.tag is TypeTag.INTERFACE:
			return self.interface or "<interface>"
		return self.tag.name.lower()


@dataclass(frozen=True)
class BaseInfo:
	info_type: ClassVar[InfoType]

	name: str
	namespace: str
	deprecated: bool = False

	@property
	def qualified_name(self) -> str:
		return f"{self.namespace}.{self.name}"


@dataclass(frozen=True)
class ArgInfo(BaseInfo):
	info_type = InfoType.ARG

	type: TypeInfo = TypeInfo(TypeTag.VOID)


@dataclass(frozen=True)
class ValueInfo(BaseInfo):
	info_type = InfoType.VALUE

	value: int = 0


@dataclass(frozen=True)
class FieldInfo(BaseInfo):
	info_type = InfoType.FIELD

	type: TypeInfo = TypeInfo(TypeTag.VOID)


@dataclass(frozen=True)
class FunctionInfo(BaseInfo):
	"""
	A callable entry point.

	Methods (`is_method`) take an implicit instance of `container` as their
	first native argument.
	"""

	info_type = InfoType.FUNCTION

	args: Tuple[ArgInfo, ...] = ()
	return_type: TypeInfo = TypeInfo(TypeTag.VOID)
	symbol: str = ""
	is_method: bool = False
	container: Optional[str] = None


@dataclass(frozen=True)
class CallbackInfo(BaseInfo):
	info_type = InfoType.CALLBACK

	args: Tuple[ArgInfo, ...] = ()
	return_type: TypeInfo = TypeInfo(TypeTag.VOID)


@dataclass(frozen=True)
class ConstantInfo(BaseInfo):
	info_type = InfoType.CONSTANT

	type: TypeInfo = TypeInfo(TypeTag.VOID)
	value: Any = None


@dataclass(frozen=True)
class RegisteredTypeInfo(BaseInfo):
	"""Base for infos that may carry a registered GType name."""

	gtype_name: Optional[str] = None

	@property
	def is_registered(self) -> bool:
		return self.gtype_name is not None


@dataclass(frozen=True)
class EnumInfo(RegisteredTypeInfo):
	info_type = InfoType.ENUM

	values: Tuple[ValueInfo, ...] = ()


@dataclass(frozen=True)
class FlagsInfo(EnumInfo):
	info_type = InfoType.FLAGS


@dataclass(frozen=True)
class StructInfo(RegisteredTypeInfo):
	info_type = InfoType.STRUCT

	fields: Tuple[FieldInfo, ...] = ()
	methods: Tuple[FunctionInfo, ...] = ()
	gtype_struct_for: Optional[str] = None  # set on class/iface structs of an object type

	@property
	def is_gtype_struct(self) -> bool:
		return self.gtype_struct_for is not None


@dataclass(frozen=True)
class UnionInfo(RegisteredTypeInfo):
	info_type = InfoType.UNION

	fields: Tuple[FieldInfo, ...] = ()
	methods: Tuple[FunctionInfo, ...] = ()


@dataclass(frozen=True)
class ObjectInfo(RegisteredTypeInfo):
	info_type = InfoType.OBJECT

	parent: Optional[str] = None
	interfaces: Tuple[str, ...] = ()
	fields: Tuple[FieldInfo, ...] = ()
	methods: Tuple[FunctionInfo, ...] = ()
	constants: Tuple[ConstantInfo, ...] = ()


@dataclass(frozen=True)
class InterfaceInfo(RegisteredTypeInfo):
	info_type = InfoType.INTERFACE

	prerequisites: Tuple[str, ...] = ()
	fields: Tuple[FieldInfo, ...] = ()
	methods: Tuple[FunctionInfo, ...] = ()
	constants: Tuple[ConstantInfo, ...] = ()


@dataclass
class Typelib:
	"""One namespace worth of metadata, as loaded by the repository."""

	namespace: str
	version: str
	infos: Tuple[BaseInfo, ...] = ()
	dependencies: Tuple[str, ...] = ()  # "Name-version" pairs
	shared_library: Optional[str] = None
	source: Optional[str] = None
	_by_name: Dict[str, BaseInfo] = field(default_factory=dict, init=False, repr=False)

	def __post_init__(self) -> None:
		for info in self.infos:
			if info.namespace != self.namespace:
				raise ValueError(f"info '{info.qualified_name}' does not belong to namespace '{self.namespace}'")
			if info.name in self._by_name:
				raise ValueError(f"duplicate info '{info.name}' in namespace '{self.namespace}'")
			self._by_name[info.name] = info

	def find(self, name: str) -> BaseInfo | None:
		return self._by_name.get(name)


__all__ = [
	"InfoType",
	"split_qualified",
	"TypeInfo",
	"BaseInfo",
	"ArgInfo",
	"ValueInfo",
	"FieldInfo",
	"FunctionInfo",
	"CallbackInfo",
	"ConstantInfo",
	"RegisteredTypeInfo",
	"EnumInfo",
	"FlagsInfo",
	"StructInfo",
	"UnionInfo",
	"ObjectInfo",
	"InterfaceInfo",
	"Typelib",
]
