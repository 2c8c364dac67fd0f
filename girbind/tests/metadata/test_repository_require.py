# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from pathlib import Path

import pytest

from girbind.core.errors import MetadataLookupError, TypelibNotFoundError
from girbind.core.gtypes import Fundamental, TypeUniverse
from girbind.core.type_tags import TypeTag
from girbind.metadata.infos import ObjectInfo, TypeInfo
from girbind.metadata.repository import Repository
from girbind.metadata.typelib_text import parse_typelib


def _write_file(path: Path, text: str) -> None:
	path.parent.mkdir(parents=True, exist_ok=True)
	path.write_text(text, encoding="utf-8")


def test_require_loads_dependencies_and_registers_types(typelib_dir: Path) -> None:
	universe = TypeUniverse()
	repo = Repository(universe, search_path=[typelib_dir])
	typelib = repo.require("Demo")
	assert typelib.version == "1.0"
	assert repo.loaded_namespaces() == ["Base", "Demo"]
	assert repo.get_dependencies("Demo") == ("Base-1.0",)
	assert repo.get_version("Base") == "1.0"

	widget = universe.from_name("DemoWidget")
	base = universe.from_name("BaseObject")
	sized = universe.from_name("BaseSized")
	assert widget is not None and base is not None and sized is not None
	assert widget.fundamental is Fundamental.OBJECT
	assert widget.parent is base
	assert universe.is_a(widget, sized)
	button = universe.from_name("DemoButton")
	assert button is not None and universe.is_a(button, base)

	info = repo.find_by_gtype(widget)
	assert isinstance(info, ObjectInfo) and info.qualified_name == "Demo.Widget"


def test_require_is_idempotent(typelib_dir: Path) -> None:
	repo = Repository(TypeUniverse(), search_path=[typelib_dir])
	first = repo.require("Demo", "1.0")
	assert repo.require("Demo") is first
	assert repo.require("Demo", "9.9") is first


def test_require_picks_highest_version(tmp_path: Path) -> None:
	_write_file(tmp_path / "Tiny-1.2.typelib", 'namespace Tiny "1.2"\n')
	_write_file(tmp_path / "Tiny-1.10.typelib", 'namespace Tiny "1.10"\n')
	_write_file(tmp_path / "Tiny-Extra-1.0.typelib", 'namespace Tiny-Extra "1.0"\n')
	repo = Repository(TypeUniverse(), search_path=[tmp_path])
	assert repo.require("Tiny").version == "1.10"
	assert repo.available_namespaces() == ["Tiny", "Tiny-Extra"]


def test_missing_typelib_and_dependency(tmp_path: Path) -> None:
	repo = Repository(TypeUniverse(), search_path=[tmp_path])
	with pytest.raises(TypelibNotFoundError) as excinfo:
		repo.require("Gone", "1.0")
	assert excinfo.value.namespace == "Gone"

	repo.add_typelib(parse_typelib('namespace Needy "1.0"\nrequires "Gone-1.0"\n'))
	with pytest.raises(TypelibNotFoundError):
		repo.require("Needy")
	assert not repo.is_loaded("Needy")


def test_file_must_declare_its_own_namespace(tmp_path: Path) -> None:
	_write_file(tmp_path / "Tiny-1.0.typelib", 'namespace Other "1.0"\n')
	repo = Repository(TypeUniverse(), search_path=[tmp_path])
	with pytest.raises(TypelibNotFoundError, match="declares Other-1.0"):
		repo.require("Tiny")


def test_info_queries(typelib_dir: Path) -> None:
	repo = Repository(TypeUniverse(), search_path=[typelib_dir])
	assert repo.find_by_name("Demo", "ANSWER") is None  # not loaded yet
	repo.require("Demo")
	n = repo.get_n_infos("Demo")
	assert [info.name for info in repo.iter_infos("Demo")][:2] == ["ANSWER", "GREETING"]
	assert repo.get_info("Demo", n - 1).name == "Value"
	with pytest.raises(MetadataLookupError):
		repo.get_info("Demo", n)
	with pytest.raises(MetadataLookupError):
		repo.resolve_interface(TypeInfo(TypeTag.INT32))
	assert repo.resolve_interface(TypeInfo(TypeTag.INTERFACE, interface="Base.Sized")).name == "Sized"
	with pytest.raises(MetadataLookupError):
		repo.resolve_interface(TypeInfo(TypeTag.INTERFACE, interface="Demo.Nope"))


def test_lookup_symbol_goes_through_library() -> None:
	repo = Repository(TypeUniverse())
	repo.add_typelib(parse_typelib('namespace Tiny "1.0"\nlibrary "libtiny"\n'))
	repo.require("Tiny")
	with pytest.raises(MetadataLookupError, match="not registered"):
		repo.lookup_symbol("Tiny", "tiny_run")
	repo.add_library("libtiny", {"tiny_run": len})
	assert repo.lookup_symbol("Tiny", "tiny_run") is len
	with pytest.raises(MetadataLookupError, match="not found"):
		repo.lookup_symbol("Tiny", "tiny_stop")


def test_failed_registration_leaves_namespace_unloaded() -> None:
	repo = Repository(TypeUniverse())
	repo.add_typelib(
		parse_typelib(
			'namespace Partial "1.0"\n'
			'object Foo : Missing.Bar gtype "PartialFoo" { }\n'
			'enum Color gtype "PartialColor" { red = 0 }\n'
		)
	)
	with pytest.raises(TypelibNotFoundError):
		repo.require("Partial")
	assert not repo.is_loaded("Partial")
	with pytest.raises(TypelibNotFoundError):
		repo.require("Partial")
	assert repo.universe.from_name("PartialColor") is None
