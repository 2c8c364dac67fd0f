# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Shared fixtures: two small namespaces (Base, Demo) and pure-Python native
libraries implementing their symbols.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest

from girbind.closure import ClosureHandle
from girbind.compound import NativeBoxed, NativeInstance, NativeObject
from girbind.config import BindingConfig, ClosureErrorPolicy
from girbind.core.gtypes import Fundamental, TypeUniverse
from girbind.loader import BindingLoader
from girbind.log_bridge import LogBridge
from girbind.metadata.repository import Repository
from girbind.metadata.typelib_text import parse_typelib

BASE_TYPELIB = """
namespace Base "1.0"
library "libbase"

object Object gtype "BaseObject" {
	method ref_count() -> uint32 symbol "base_object_ref_count"
	method get_name() -> utf8 symbol "base_object_get_name"
	constant DEFAULT_PRIORITY: int32 = 0
}

interface Sized gtype "BaseSized" {
	method get_size() -> int32 symbol "base_sized_get_size"
}
"""

DEMO_TYPELIB = """
namespace Demo "1.0"
requires "Base-1.0"
library "libdemo"

constant ANSWER: int32 = 42
constant GREETING: utf8 = "hello"
constant RATIO: double = 0.5
constant BROKEN: int8 = 300

enum Color gtype "DemoColor" { red = 0  green = 1  blue = 2 }
flags Mode gtype "DemoMode" { read = 1  write = 2  exec = 4 }

callback Visitor(index: int32) -> bool

function add(a: int32, b: int32) -> int32 symbol "demo_add"
function scale(x: double, factor: double) -> double symbol "demo_scale"
function describe(color: Color) -> utf8 symbol "demo_describe"
function take_array(items: int32[]) symbol "demo_take_array"
function foreach(visitor: Visitor, count: int32) -> int32 symbol "demo_foreach"
function connect(handler: Visitor) symbol "demo_connect"
function emit(index: int32) -> bool symbol "demo_emit"
function disconnect() symbol "demo_disconnect"
function new_widget(name: utf8) -> Widget symbol "demo_widget_new"
function new_point(x: int32, y: int32) -> Point symbol "demo_point_new"
function make_mystery() -> Base.Object symbol "demo_make_mystery"
deprecated function old_add(a: int32, b: int32) -> int32 symbol "demo_add"

struct Point gtype "DemoPoint" {
	field x: int32
	field y: int32
	method free() symbol "demo_point_free"
	method length2() -> int32 symbol "demo_point_length2"
}

struct Buffer gtype "DemoBuffer" {
	method unref() symbol "demo_buffer_unref"
	method free() symbol "demo_buffer_free"
	method size() -> uint32 symbol "demo_buffer_size"
}

object Widget : Base.Object implements Base.Sized gtype "DemoWidget" {
	field label: utf8
	constructor new(name: utf8) -> Widget symbol "demo_widget_new"
	method show() -> bool symbol "demo_widget_show"
	deprecated method hide() symbol "demo_widget_hide"
	constant MAX_CHILDREN: int32 = 8
}

struct WidgetClass class_for Widget {
	field parent_size: uint32
}

object Button : Widget gtype "DemoButton" {
	method click() -> int32 symbol "demo_button_click"
}

union Value gtype "DemoValue" {
	field as_int: int32
}
"""


class DemoNative:
	"""State shared by the pure-Python "native" libraries."""

	def __init__(self, loader: BindingLoader) -> None:
		self.loader = loader
		self.kept: List[NativeInstance] = []
		self.handler: ClosureHandle | None = None
		self.calls: List[str] = []

	def _gtype(self, name: str) -> Any:
		gtype = self.loader.universe.from_name(name)
		assert gtype is not None
		return gtype

	def base_library(self) -> Dict[str, Callable[..., Any]]:
		return {
			"base_object_ref_count": lambda inst: inst.refcount,
			"base_object_get_name": lambda inst: inst.props.get("name"),
			"base_sized_get_size": lambda inst: len(inst.props.get("label") or b""),
		}

	def demo_library(self) -> Dict[str, Callable[..., Any]]:
		return {
			"demo_add": lambda a, b: a + b,
			"demo_scale": lambda x, factor: x * factor,
			"demo_describe": lambda color: [b"red", b"green", b"blue"][color],
			"demo_take_array": lambda items: None,
			"demo_foreach": self._foreach,
			"demo_connect": self._connect,
			"demo_emit": self._emit,
			"demo_disconnect": self._disconnect,
			"demo_widget_new": self._widget_new,
			"demo_widget_show": lambda inst: True,
			"demo_widget_hide": lambda inst: None,
			"demo_button_click": lambda inst: 1,
			"demo_point_new": lambda x, y: NativeBoxed(self._gtype("DemoPoint"), x=x, y=y),
			"demo_point_free": self._point_free,
			"demo_point_length2": lambda inst: inst.data["x"] ** 2 + inst.data["y"] ** 2,
			"demo_buffer_unref": self._buffer_unref,
			"demo_buffer_free": self._buffer_free,
			"demo_buffer_size": lambda inst: len(inst.data.get("bytes", b"")),
			"demo_make_mystery": self._make_mystery,
		}

	def _foreach(self, visitor: ClosureHandle, count: int) -> int:
		return sum(1 for i in range(count) if visitor.call_raw(i))

	def _connect(self, handler: ClosureHandle) -> None:
		self.handler = handler.ref()

	def _emit(self, index: int) -> bool:
		assert self.handler is not None
		return bool(self.handler.call_raw(index))

	def _disconnect(self) -> None:
		assert self.handler is not None
		self.handler.unref()
		self.handler = None

	def _widget_new(self, name: bytes) -> NativeObject:
		widget = NativeObject(self._gtype("DemoWidget"), label=name, name=b"widget")
		self.kept.append(widget)
		return widget

	def _point_free(self, inst: NativeBoxed) -> None:
		self.calls.append("point_free")
		inst.free()

	def _buffer_unref(self, inst: NativeBoxed) -> None:
		self.calls.append("buffer_unref")
		inst.free()

	def _buffer_free(self, inst: NativeBoxed) -> None:
		self.calls.append("buffer_free")
		inst.free()

	def _make_mystery(self) -> NativeObject:
		gtype = self.loader.universe.register("MysteryObject", Fundamental.OBJECT, self._gtype("BaseObject"))
		return NativeObject(gtype)


def build_loader(policy: ClosureErrorPolicy = ClosureErrorPolicy.LOG_AND_DEFAULT) -> tuple[BindingLoader, DemoNative]:
	repo = Repository(TypeUniverse())
	repo.add_typelib(parse_typelib(BASE_TYPELIB, origin="Base-1.0"))
	repo.add_typelib(parse_typelib(DEMO_TYPELIB, origin="Demo-1.0"))
	loader = BindingLoader(repo, config=BindingConfig(closure_error_policy=policy), log=LogBridge())
	native = DemoNative(loader)
	repo.add_library("libbase", native.base_library())
	repo.add_library("libdemo", native.demo_library())
	return loader, native


@pytest.fixture
def demo() -> tuple[BindingLoader, DemoNative]:
	return build_loader()


@pytest.fixture
def make_demo() -> Callable[..., tuple[BindingLoader, DemoNative]]:
	return build_loader


@pytest.fixture
def typelib_dir(tmp_path: Path) -> Path:
	(tmp_path / "Base-1.0.typelib").write_text(BASE_TYPELIB, encoding="utf-8")
	(tmp_path / "Demo-1.0.typelib").write_text(DEMO_TYPELIB, encoding="utf-8")
	return tmp_path
