# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lazy, cached, inheritance-aware loading of namespaces.

A BindingLoader is an explicit loader context: it owns the metadata
repository, the type universe, the compound registry and disposer table, the
marshaller, the closure bridge and the Package cache. Independent loaders do
not share any state; the module-level surface in `girbind` uses one
process-wide loader.

Packages are created on first reference and filled symbol by symbol:
`package.Name` (or `package.lookup("Name")`) resolves the symbol from
metadata once and memoizes it. Unknown and deprecated symbols come back as
absent and are not cached, so they are looked up again on the next access.
A symbol shadows a Python helper of the same name (`Resolvable.lookup(obj,
name)` always reaches the helper).

Cache population uses double-checked locking: reads never lock, a miss takes
the loader's re-entrant lock and re-checks before resolving, so concurrent
first access resolves every symbol at most once.

Resolved values by meta-kind:
  FUNCTION   NativeFunction
  CONSTANT   the constant's Python value
  ENUM       EnumTable (reverse lookup: value -> name)
  FLAGS      FlagsTable (reverse lookup: value -> contained flag names)
  STRUCT     StructTable (methods + raw field infos); class structs are hidden
  OBJECT     InheritingTable (parent, then interfaces)
  INTERFACE  InheritingTable (prerequisites)
  CALLBACK, UNION: not bound
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from girbind.closure import ClosureBridge
from girbind.compound import CompoundProxy, CompoundRegistry, DisposerRegistry, NativeBoxed, NativeObject
from girbind.config import BindingConfig
from girbind.core.errors import MetadataLookupError
from girbind.core.gtypes import TypeUniverse
from girbind.log_bridge import LogBridge, default_log_bridge
from girbind.marshal import ValueMarshaller
from girbind.metadata.infos import (
	BaseInfo,
	ConstantInfo,
	EnumInfo,
	FieldInfo,
	FunctionInfo,
	InfoType,
	InterfaceInfo,
	ObjectInfo,
	StructInfo,
	Typelib,
	split_qualified,
)
from girbind.metadata.repository import Repository
from girbind.native import NativeFunction, constant_value

logger = logging.getLogger(__name__)

DISPOSER_METHODS = ("unref", "free")


class Resolvable:
	"""
	An entity that can answer `lookup(name)` with a value or None.

	Public attribute access goes through the symbol table first, so native
	members named like Python helpers (`lookup`, `items`, ...) stay reachable
	as attributes. Internal state lives under underscore names.
	"""

	def _lookup(self, name: str) -> Optional[Any]:
		raise NotImplementedError

	def lookup(self, name: str) -> Optional[Any]:
		return self._lookup(name)

	def __getattribute__(self, name: str) -> Any:
		if name.startswith("_"):
			return object.__getattribute__(self, name)
		value = object.__getattribute__(self, "_lookup")(name)
		if value is not None:
			return value
		return object.__getattribute__(self, name)

	def __getattr__(self, name: str) -> Any:
		if name.startswith("_"):
			raise AttributeError(name)
		raise AttributeError(f"{self!r} has no symbol '{name}'")


class EnumTable(Resolvable):
	"""Closed name -> value map of an enum, with reverse lookup."""

	def __init__(self, info: EnumInfo) -> None:
		self._info = info
		self._values: Dict[str, int] = {v.name.upper(): v.value for v in info.values}

	def _lookup(self, name: str) -> Optional[int]:
		return self._values.get(name)

	def __getitem__(self, name: str) -> int:
		return self._values[name]

	def __iter__(self) -> Iterator[str]:
		return iter(self._values)

	def __len__(self) -> int:
		return len(self._values)

	def items(self) -> List[Tuple[str, int]]:
		return list(self._values.items())

	def name_of(self, value: int) -> Optional[str]:
		"""Name bound to `value` (None when no member has it)."""
		for name, member in self._values.items():
			if member == value:
				return name
		return None

	def __repr__(self) -> str:
		return f"<enum {self._info.qualified_name}>"


class FlagsTable(EnumTable):
	"""Bit flags; reverse lookup decomposes a value into contained flags."""

	def names_of(self, value: int) -> frozenset[str]:
		"""Every flag whose bits are all set in `value`."""
		return frozenset(name for name, flag in self._values.items() if flag & value == flag)

	def __repr__(self) -> str:
		return f"<flags {self._info.qualified_name}>"


class StructTable(Resolvable):
	"""Methods and (unresolved) field infos of a struct."""

	def __init__(self, info: StructInfo, methods: Dict[str, NativeFunction], fields: Dict[str, FieldInfo]) -> None:
		self._info = info
		self._methods = methods
		self._fields = fields

	def _lookup(self, name: str) -> Optional[Any]:
		if name in self._methods:
			return self._methods[name]
		return self._fields.get(name)

	def __repr__(self) -> str:
		return f"<struct {self._info.qualified_name}>"


class Inherits:
	"""
	Ordered ancestor chain of an object or interface.

	Entries are keyed by the ancestor's name as seen from the owning package
	("Name" in the same namespace, "Namespace.Name" otherwise). Ancestor
	entities are resolved through their package on first use.
	"""

	def __init__(self) -> None:
		self._entries: Dict[str, Tuple["Package", str]] = {}

	def add(self, target_name: str, package: "Package", name: str) -> None:
		self._entries[target_name] = (package, name)

	def names(self) -> List[str]:
		return list(self._entries)

	def __getitem__(self, target_name: str) -> Optional[Resolvable]:
		package, name = self._entries[target_name]
		return package._lookup(name)

	def __len__(self) -> int:
		return len(self._entries)

	def lookup(self, name: str) -> Optional[Any]:
		for package, ancestor_name in self._entries.values():
			ancestor = package._lookup(ancestor_name)
			if ancestor is None:
				continue
			value = ancestor._lookup(name)
			if value is not None:
				return value
		return None

	def __repr__(self) -> str:
		return f"<inherits {', '.join(self._entries)}>"


class InheritingTable(Resolvable):
	"""Object/interface entity; misses fall back through `_inherits` in order."""

	def __init__(
		self,
		info: ObjectInfo | InterfaceInfo,
		methods: Dict[str, NativeFunction],
		constants: Dict[str, Any],
		fields: Dict[str, FieldInfo],
		inherits: Inherits,
	) -> None:
		self._info = info
		self._methods = methods
		self._constants = constants
		self._fields = fields
		self._inherits = inherits

	def _lookup(self, name: str) -> Optional[Any]:
		if name in self._methods:
			return self._methods[name]
		if name in self._constants:
			return self._constants[name]
		if name in self._fields:
			return self._fields[name]
		return self._inherits.lookup(name)

	def __repr__(self) -> str:
		kind = "object" if isinstance(self._info, ObjectInfo) else "interface"
		return f"<{kind} {self._info.qualified_name}>"


@dataclass
class PackageInfo:
	namespace: str
	version: Optional[str] = None
	typelib: Optional[Typelib] = None
	dependencies: Dict[str, "Package"] = field(default_factory=dict)


class Package(Resolvable):
	"""Lazily populated view of one namespace."""

	def __init__(self, loader: "BindingLoader", namespace: str) -> None:
		self._loader = loader
		self._info = PackageInfo(namespace=namespace)
		self._symbols: Dict[str, Any] = {}

	def _lookup(self, name: str) -> Optional[Any]:
		try:
			return self._symbols[name]
		except KeyError:
			pass
		with self._loader.lock:
			if name in self._symbols:
				return self._symbols[name]
			value = self._loader.resolve_symbol(self, name)
			if value is not None:
				self._symbols[name] = value
			return value

	def resolve(self) -> Dict[str, Any]:
		"""Force loading of every symbol; returns the resolved symbols."""
		self._loader.resolve_all(self)
		return dict(self._symbols)

	def cached(self) -> Mapping[str, Any]:
		return dict(self._symbols)

	def __dir__(self) -> List[str]:
		return sorted(set(object.__dir__(self)) | set(self._symbols))

	def __repr__(self) -> str:
		return f"<package {self._info.namespace}-{self._info.version}>"


class BindingLoader:
	"""Loader context: owns every cache the binding layer needs."""

	def __init__(
		self,
		repository: Repository | None = None,
		*,
		config: BindingConfig | None = None,
		log: LogBridge | None = None,
	) -> None:
		self.config = config if config is not None else BindingConfig()
		if repository is None:
			repository = Repository(TypeUniverse(), search_path=self.config.typelib_path)
		self.repository = repository
		self.universe = repository.universe
		self.disposers = DisposerRegistry()
		self.compounds = CompoundRegistry(self.disposers)
		self.compounds.set_member_lookup(self._proxy_member)
		self.marshaller = ValueMarshaller(repository, self.universe, self.compounds)
		self.log = log if log is not None else default_log_bridge()
		self.closures = ClosureBridge(self.marshaller, self.log, self.config.closure_error_policy)
		self.packages: Dict[str, Package] = {}
		self.lock = threading.RLock()

	# -- packages ---------------------------------------------------------

	def get_package(self, namespace: str, version: str | None = None) -> Package:
		"""Return the package for `namespace`, loading it on first reference."""
		package = self.packages.get(namespace)
		if package is not None:
			return package
		return self.load_package(namespace, version)

	def load_package(self, namespace: str, version: str | None = None) -> Package:
		"""
		Load `namespace` and, recursively, its declared dependencies.

		Idempotent: an already loaded namespace is returned unchanged whatever
		version is requested.
		"""
		with self.lock:
			existing = self.packages.get(namespace)
			if existing is not None:
				return existing
			package = Package(self, namespace)
			self.packages[namespace] = package
			try:
				typelib = self.repository.require(namespace, version)
				package._info.typelib = typelib
				package._info.version = typelib.version
				for dep in self.repository.get_dependencies(namespace):
					dep_name, _, dep_version = dep.rpartition("-")
					package._info.dependencies[dep_name] = self.load_package(dep_name, dep_version)
			except BaseException:
				del self.packages[namespace]
				raise
			logger.debug("package %s-%s ready", namespace, package._info.version)
			return package

	def resolve_all(self, package: Package) -> None:
		"""Best-effort eager resolution of every top-level symbol."""
		namespace = package._info.namespace
		for info in self.repository.iter_infos(namespace):
			try:
				package._lookup(info.name)
			except Exception as err:
				logger.debug("skipping %s.%s: %s", namespace, info.name, err)

	# -- symbols ----------------------------------------------------------

	def resolve_symbol(self, package: Package, name: str) -> Optional[Any]:
		"""Build the value for `name` in `package` (None when absent/deprecated)."""
		info = self.repository.find_by_name(package._info.namespace, name)
		if info is None or info.deprecated:
			return None
		try:
			return self._load_info(package, info)
		except MetadataLookupError as err:
			logger.debug("%s unresolved: %s", info.qualified_name, err)
			return None

	def _load_info(self, package: Package, info: BaseInfo) -> Optional[Any]:
		kind = info.info_type
		if kind is InfoType.FUNCTION:
			assert isinstance(info, FunctionInfo)
			return NativeFunction(self, info)
		if kind is InfoType.CONSTANT:
			assert isinstance(info, ConstantInfo)
			return constant_value(self, info)
		if kind is InfoType.FLAGS:
			assert isinstance(info, EnumInfo)
			return FlagsTable(info)
		if kind is InfoType.ENUM:
			assert isinstance(info, EnumInfo)
			return EnumTable(info)
		if kind is InfoType.STRUCT:
			assert isinstance(info, StructInfo)
			return self._load_struct(info)
		if kind is InfoType.OBJECT or kind is InfoType.INTERFACE:
			assert isinstance(info, (ObjectInfo, InterfaceInfo))
			return self._load_inheriting(package, info)
		if kind in (InfoType.CALLBACK, InfoType.UNION):
			return None
		if kind in (InfoType.VALUE, InfoType.FIELD, InfoType.ARG):
			return None  # never top-level
		raise AssertionError(f"unhandled info type {kind}")

	def _load_struct(self, info: StructInfo) -> Optional[StructTable]:
		if info.is_gtype_struct:
			return None
		methods = {m.name: NativeFunction(self, m) for m in info.methods if not m.deprecated}
		fields = {f.name: f for f in info.fields if not f.deprecated}
		type_name = info.qualified_name
		if type_name not in self.disposers:
			chosen = next((name for name in DISPOSER_METHODS if name in methods), None)
			if chosen is not None:
				disposer = methods.pop(chosen)
				self.disposers.register(type_name, disposer.call_raw)
				logger.debug("disposer for %s: %s", type_name, chosen)
		return StructTable(info, methods, fields)

	def _load_inheriting(self, package: Package, info: ObjectInfo | InterfaceInfo) -> InheritingTable:
		methods = {m.name: NativeFunction(self, m) for m in info.methods if not m.deprecated}
		constants = {c.name: constant_value(self, c) for c in info.constants if not c.deprecated}
		fields = {f.name: f for f in info.fields if not f.deprecated}
		inherits = Inherits()
		if isinstance(info, ObjectInfo):
			ancestors = ([info.parent] if info.parent is not None else []) + list(info.interfaces)
		else:
			ancestors = list(info.prerequisites)
		for qualified in ancestors:
			namespace, name = split_qualified(qualified)
			if namespace == package._info.namespace:
				inherits.add(name, package, name)
			else:
				inherits.add(qualified, self.get_package(namespace), name)
		return InheritingTable(info, methods, constants, fields, inherits)

	# -- proxies ----------------------------------------------------------

	def _proxy_member(self, proxy: CompoundProxy, name: str) -> Optional[Any]:
		info = proxy.info
		entity = self.get_package(info.namespace)._lookup(info.name)
		if entity is None:
			return None
		member = entity._lookup(name)
		if isinstance(member, NativeFunction) and member.info.is_method:
			return member.bind(proxy)
		if isinstance(member, FieldInfo):
			return self._read_field(proxy, member)
		return member

	def _read_field(self, proxy: CompoundProxy, field_info: FieldInfo) -> Any:
		instance = proxy.instance
		if isinstance(instance, NativeBoxed):
			raw = instance.data.get(field_info.name)
		elif isinstance(instance, NativeObject):
			raw = instance.props.get(field_info.name)
		else:
			return None
		value = self.marshaller.init(field_info.type)
		if raw is not None:
			self.marshaller.set_raw(value, raw)
		return self.marshaller.store(value)


__all__ = [
	"Resolvable",
	"EnumTable",
	"FlagsTable",
	"StructTable",
	"Inherits",
	"InheritingTable",
	"Package",
	"PackageInfo",
	"BindingLoader",
]
