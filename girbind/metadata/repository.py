# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Metadata provider.

The repository discovers typelibs (registered in memory or found as textual
`*.typelib` files on a search path), loads them on `require`, registers their
types with the type universe, and answers the queries the loader and the
marshaller need:

  find-by-name, get-info-by-index, get-n-infos, get-dependencies,
  get-version, find-by-gtype, require(namespace, version)

Native entry points live in "libraries": plain name -> callable mappings
registered under the typelib's `library` name. Symbols are looked up lazily
on first call.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from girbind.core.errors import MetadataLookupError, TypelibNotFoundError
from girbind.core.gtypes import Fundamental, GType, TypeUniverse
from girbind.core.type_tags import TypeTag
from girbind.metadata.infos import (
	BaseInfo,
	InfoType,
	InterfaceInfo,
	ObjectInfo,
	RegisteredTypeInfo,
	TypeInfo,
	Typelib,
	split_qualified,
)
from girbind.metadata.typelib_text import TYPELIB_SUFFIX, parse_typelib_file

logger = logging.getLogger(__name__)

_FUNDAMENTAL_OF: Dict[InfoType, Fundamental] = {
	InfoType.ENUM: Fundamental.ENUM,
	InfoType.FLAGS: Fundamental.FLAGS,
	InfoType.STRUCT: Fundamental.BOXED,
	InfoType.UNION: Fundamental.BOXED,
	InfoType.OBJECT: Fundamental.OBJECT,
	InfoType.INTERFACE: Fundamental.INTERFACE,
}


class MetadataProvider(Protocol):
	"""Capability set the loader and marshaller consume."""

	def require(self, namespace: str, version: str | None = None) -> Typelib: ...

	def find_by_name(self, namespace: str, name: str) -> BaseInfo | None: ...

	def get_info(self, namespace: str, index: int) -> BaseInfo: ...

	def get_n_infos(self, namespace: str) -> int: ...

	def get_dependencies(self, namespace: str) -> Tuple[str, ...]: ...

	def get_version(self, namespace: str) -> str: ...

	def find_by_gtype(self, gtype: GType) -> RegisteredTypeInfo | None: ...

	def resolve_interface(self, type_info: TypeInfo) -> BaseInfo: ...

	def gtype_of(self, info: BaseInfo) -> GType | None: ...

	def lookup_symbol(self, namespace: str, symbol: str) -> Callable[..., Any]: ...


def _version_key(version: str) -> Tuple[Any, ...]:
	parts: List[Any] = []
	for piece in version.split("."):
		parts.append((0, int(piece)) if piece.isdigit() else (1, piece))
	return tuple(parts)


class Repository:
	"""In-process metadata provider backed by in-memory and on-disk typelibs."""

	def __init__(self, universe: TypeUniverse, *, search_path: Sequence[Path] = ()) -> None:
		self.universe = universe
		self.search_path: List[Path] = list(search_path)
		self._available: Dict[str, Dict[str, Typelib]] = {}
		self._loaded: Dict[str, Typelib] = {}
		self._by_gtype: Dict[str, RegisteredTypeInfo] = {}
		self._libraries: Dict[str, Mapping[str, Callable[..., Any]]] = {}

	# -- registration -----------------------------------------------------

	def add_typelib(self, typelib: Typelib) -> None:
		"""Make a typelib available for `require` (does not load it)."""
		versions = self._available.setdefault(typelib.namespace, {})
		if typelib.version in versions:
			raise ValueError(f"typelib {typelib.namespace}-{typelib.version} already registered")
		versions[typelib.version] = typelib

	def add_library(self, name: str, symbols: Mapping[str, Callable[..., Any]]) -> None:
		"""Register a native library (symbol name -> implementation)."""
		self._libraries[name] = symbols

	# -- loading ----------------------------------------------------------

	def require(self, namespace: str, version: str | None = None) -> Typelib:
		"""
		Load the typelib for `namespace` (highest version when unspecified).

		Idempotent: an already loaded namespace is returned as is, even when a
		different version is requested. Declared dependencies are required
		before the namespace's own types are registered. A load that fails at
		any step leaves the namespace unloaded.
		"""
		loaded = self._loaded.get(namespace)
		if loaded is not None:
			if version is not None and loaded.version != version:
				logger.debug("'%s' requested at %s, keeping loaded version %s", namespace, version, loaded.version)
			return loaded
		typelib = self._locate(namespace, version)
		logger.debug("loaded typelib %s-%s from %s", typelib.namespace, typelib.version, typelib.source or "<memory>")
		self._loaded[namespace] = typelib
		try:
			for dep in typelib.dependencies:
				dep_name, _, dep_version = dep.rpartition("-")
				self.require(dep_name, dep_version)
			for info in typelib.infos:
				self._register_info(info)
		except BaseException:
			del self._loaded[namespace]
			raise
		return typelib

	def _locate(self, namespace: str, version: str | None) -> Typelib:
		candidates: Dict[str, Typelib | Path] = dict(self._available.get(namespace, {}))
		for root in self.search_path:
			if not root.is_dir():
				continue
			for path in sorted(root.glob(f"{namespace}-*{TYPELIB_SUFFIX}")):
				file_version = path.name[len(namespace) + 1 : -len(TYPELIB_SUFFIX)]
				if "-" in file_version:
					continue  # another namespace sharing our prefix
				candidates.setdefault(file_version, path)
		if version is None and candidates:
			version = max(candidates, key=_version_key)
		found = candidates.get(version) if version is not None else None
		if found is None:
			wanted = f"{namespace}-{version}" if version else namespace
			raise TypelibNotFoundError(f"typelib for '{wanted}' not found", namespace=namespace, version=version)
		if isinstance(found, Path):
			typelib = parse_typelib_file(found)
			if typelib.namespace != namespace or typelib.version != version:
				raise TypelibNotFoundError(
					f"{found} declares {typelib.namespace}-{typelib.version}, expected {namespace}-{version}",
					namespace=namespace,
					version=version,
				)
			return typelib
		return found

	def _info_for(self, qualified: str) -> BaseInfo:
		namespace, name = split_qualified(qualified)
		typelib = self.require(namespace)
		info = typelib.find(name)
		if info is None:
			raise MetadataLookupError(f"'{qualified}' not found")
		return info

	def _register_info(self, info: BaseInfo) -> GType | None:
		if not isinstance(info, RegisteredTypeInfo) or info.gtype_name is None:
			return None
		existing = self._by_gtype.get(info.gtype_name)
		if existing is not None:
			if existing is not info:
				raise ValueError(f"type '{info.gtype_name}' registered by both {existing.qualified_name} and {info.qualified_name}")
			return self.universe.from_name(info.gtype_name)
		parent: GType | None = None
		if isinstance(info, ObjectInfo) and info.parent is not None:
			parent = self._register_info(self._info_for(info.parent))
		gtype = self.universe.register(info.gtype_name, _FUNDAMENTAL_OF[info.info_type], parent)
		self._by_gtype[gtype.name] = info
		if isinstance(info, ObjectInfo):
			for iface_name in info.interfaces:
				iface = self._register_info(self._info_for(iface_name))
				if iface is not None:
					self.universe.add_interface(gtype, iface)
		elif isinstance(info, InterfaceInfo):
			for prereq_name in info.prerequisites:
				prereq = self._register_info(self._info_for(prereq_name))
				if prereq is not None:
					self.universe.add_interface(gtype, prereq)
		return gtype

	# -- queries ----------------------------------------------------------

	def _typelib(self, namespace: str) -> Typelib:
		typelib = self._loaded.get(namespace)
		if typelib is None:
			raise MetadataLookupError(f"namespace '{namespace}' is not loaded")
		return typelib

	def is_loaded(self, namespace: str) -> bool:
		return namespace in self._loaded

	def loaded_namespaces(self) -> List[str]:
		return sorted(self._loaded)

	def available_namespaces(self) -> List[str]:
		names = set(self._available) | set(self._loaded)
		for root in self.search_path:
			if root.is_dir():
				for path in root.glob(f"*{TYPELIB_SUFFIX}"):
					names.add(path.name[: -len(TYPELIB_SUFFIX)].rpartition("-")[0])
		return sorted(names)

	def find_by_name(self, namespace: str, name: str) -> BaseInfo | None:
		typelib = self._loaded.get(namespace)
		if typelib is None:
			return None
		return typelib.find(name)

	def get_n_infos(self, namespace: str) -> int:
		return len(self._typelib(namespace).infos)

	def get_info(self, namespace: str, index: int) -> BaseInfo:
		infos = self._typelib(namespace).infos
		if index < 0 or index >= len(infos):
			raise MetadataLookupError(f"info index {index} out of range for '{namespace}'")
		return infos[index]

	def iter_infos(self, namespace: str) -> Iterable[BaseInfo]:
		for index in range(self.get_n_infos(namespace)):
			yield self.get_info(namespace, index)

	def get_dependencies(self, namespace: str) -> Tuple[str, ...]:
		return self._typelib(namespace).dependencies

	def get_version(self, namespace: str) -> str:
		return self._typelib(namespace).version

	def find_by_gtype(self, gtype: GType) -> RegisteredTypeInfo | None:
		return self._by_gtype.get(gtype.name)

	def gtype_of(self, info: BaseInfo) -> GType | None:
		"""Backing GType of a registered info (None for unregistered infos)."""
		if not isinstance(info, RegisteredTypeInfo) or info.gtype_name is None:
			return None
		return self.universe.from_name(info.gtype_name)

	def resolve_interface(self, type_info: TypeInfo) -> BaseInfo:
		"""Resolve the info an INTERFACE-tagged descriptor refers to."""
		if type_info.tag is not TypeTag.INTERFACE or type_info.interface is None:
			raise MetadataLookupError(f"type '{type_info}' does not reference an interface")
		return self._info_for(type_info.interface)

	def lookup_symbol(self, namespace: str, symbol: str) -> Callable[..., Any]:
		typelib = self._typelib(namespace)
		if typelib.shared_library is None:
			raise MetadataLookupError(f"namespace '{namespace}' declares no library (symbol '{symbol}')")
		library = self._libraries.get(typelib.shared_library)
		if library is None:
			raise MetadataLookupError(f"library '{typelib.shared_library}' is not registered")
		impl: Optional[Callable[..., Any]] = library.get(symbol)
		if impl is None:
			raise MetadataLookupError(f"symbol '{symbol}' not found in library '{typelib.shared_library}'")
		return impl


__all__ = ["MetadataProvider", "Repository"]
