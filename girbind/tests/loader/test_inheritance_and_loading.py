# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, List

import pytest

from girbind.config import BindingConfig
from girbind.core.errors import TypelibNotFoundError
from girbind.core.gtypes import TypeUniverse
from girbind.loader import BindingLoader
from girbind.log_bridge import LogBridge
from girbind.metadata.repository import Repository
from girbind.metadata.typelib_text import parse_typelib
from girbind.native import NativeFunction


def test_inherited_members_resolve_across_namespaces(demo) -> None:
	loader, _ = demo
	Demo = loader.get_package("Demo")
	Base = loader.get_package("Base")
	assert Demo.Widget._inherits.names() == ["Base.Object", "Base.Sized"]
	assert Demo.Button._inherits.names() == ["Widget"]
	assert Demo.Button._inherits["Widget"] is Demo.Widget
	assert Demo.Widget._inherits["Base.Object"] is Base.Object

	assert Demo.Widget.ref_count is Base.Object.ref_count
	assert Demo.Button.get_size is Base.Sized.get_size
	assert Demo.Button.DEFAULT_PRIORITY == 0
	assert Demo.Button.MAX_CHILDREN == 8
	assert Demo.Button.lookup("no_such_member") is None


def test_inherited_methods_bind_to_subclass_instances(demo) -> None:
	loader, _ = demo
	Demo = loader.get_package("Demo")
	w = Demo.new_widget("four")
	assert w.get_size() == 4
	assert w.get_name() == "widget"
	assert w.ref_count() == 2


def test_dependency_loaded_once(demo) -> None:
	loader, _ = demo
	located: List[str] = []
	original = loader.repository._locate

	def counting_locate(namespace: str, version: str | None) -> Any:
		located.append(namespace)
		return original(namespace, version)

	loader.repository._locate = counting_locate  # type: ignore[method-assign]
	Demo = loader.load_package("Demo")
	assert loader.load_package("Demo") is Demo
	assert loader.get_package("Demo", "2.0") is Demo
	assert loader.get_package("Base") is Demo._info.dependencies["Base"]
	assert located == ["Demo", "Base"]
	assert Demo._info.dependencies["Base"] is loader.packages["Base"]
	assert Demo._info.version == "1.0"


def test_concurrent_first_access_resolves_once(demo) -> None:
	loader, _ = demo
	Demo = loader.get_package("Demo")
	built: List[str] = []
	original = loader.resolve_symbol

	def tracking_resolve(package: Any, name: str) -> Any:
		built.append(name)
		return original(package, name)

	loader.resolve_symbol = tracking_resolve  # type: ignore[method-assign]
	barrier = threading.Barrier(8)
	results: List[Any] = []
	lock = threading.Lock()

	def worker() -> None:
		barrier.wait()
		value = Demo.add
		with lock:
			results.append(value)

	threads = [threading.Thread(target=worker) for _ in range(8)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()
	assert built == ["add"]
	assert len(results) == 8
	assert all(r is results[0] for r in results)
	assert isinstance(results[0], NativeFunction)


def test_loaders_are_isolated(make_demo) -> None:
	first, _ = make_demo()
	second, _ = make_demo()
	assert first.get_package("Demo") is not second.get_package("Demo")
	assert first.universe is not second.universe


def test_loader_from_search_path(typelib_dir: Path) -> None:
	config = BindingConfig(typelib_path=(typelib_dir,))
	loader = BindingLoader(config=config, log=LogBridge())
	Demo = loader.get_package("Demo")
	assert Demo.ANSWER == 42
	assert Demo.Mode.names_of(3) == frozenset({"READ", "WRITE"})
	assert repr(Demo) == "<package Demo-1.0>"


def test_resolution_failure_of_missing_ancestor_namespace() -> None:
	repo = Repository(TypeUniverse())
	repo.add_typelib(
		parse_typelib(
			"""
namespace Lonely "1.0"
object Thing : Gone.Base { }
"""
		)
	)
	loader = BindingLoader(repo, log=LogBridge())
	Lonely = loader.get_package("Lonely")
	assert Lonely.lookup("Thing") is None


def test_failed_load_is_retried_not_half_loaded() -> None:
	repo = Repository(TypeUniverse())
	repo.add_typelib(
		parse_typelib(
			"""
namespace Partial "1.0"
object Foo : Missing.Bar gtype "PartialFoo" { }
enum Color gtype "PartialColor" { red = 0 }
"""
		)
	)
	loader = BindingLoader(repo, log=LogBridge())
	for _ in range(2):
		with pytest.raises(TypelibNotFoundError):
			loader.get_package("Partial")
		assert "Partial" not in loader.packages
	assert not repo.is_loaded("Partial")


def test_resolve_skips_any_per_symbol_failure(demo, monkeypatch: pytest.MonkeyPatch) -> None:
	loader, _ = demo
	Demo = loader.get_package("Demo")
	original = loader.resolve_symbol

	def failing_resolve(package: Any, name: str) -> Any:
		if name == "add":
			raise RuntimeError("native library unavailable")
		return original(package, name)

	monkeypatch.setattr(loader, "resolve_symbol", failing_resolve)
	symbols = Demo.resolve()
	assert "add" not in symbols
	assert {"scale", "Color", "Widget"} <= set(symbols)
