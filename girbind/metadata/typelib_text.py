# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Textual typelib reader.

Typelibs are plain-text schema files (`<Namespace>-<version>.typelib`)
describing one namespace: its dependencies, the native library providing its
symbols, and its functions, constants, enums/flags, structs, unions, objects,
interfaces and callbacks. See `typelib.lark` for the grammar.

The parse tree is walked by hand into immutable info records; any structural
problem (unknown names, bad literals) is reported as TypelibSyntaxError with
the offending line/column.
"""

from __future__ import annotations

import codecs
from pathlib import Path
from typing import Any, List, Optional, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from girbind.core.errors import TypelibSyntaxError
from girbind.core.type_tags import TypeTag
from girbind.metadata.infos import (
	ArgInfo,
	BaseInfo,
	CallbackInfo,
	ConstantInfo,
	EnumInfo,
	FieldInfo,
	FlagsInfo,
	FunctionInfo,
	InterfaceInfo,
	ObjectInfo,
	StructInfo,
	TypeInfo,
	Typelib,
	UnionInfo,
	ValueInfo,
)

TYPELIB_SUFFIX = ".typelib"

_GRAMMAR_PATH = Path(__file__).with_name("typelib.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)

_TAG_NAMES = {
	"void": TypeTag.VOID,
	"none": TypeTag.VOID,
	"bool": TypeTag.BOOLEAN,
	"gboolean": TypeTag.BOOLEAN,
	"int8": TypeTag.INT8,
	"uint8": TypeTag.UINT8,
	"int16": TypeTag.INT16,
	"uint16": TypeTag.UINT16,
	"int32": TypeTag.INT32,
	"int": TypeTag.INT32,
	"uint32": TypeTag.UINT32,
	"uint": TypeTag.UINT32,
	"int64": TypeTag.INT64,
	"uint64": TypeTag.UINT64,
	"float": TypeTag.FLOAT,
	"double": TypeTag.DOUBLE,
	"GType": TypeTag.GTYPE,  # "gtype" is a keyword
	"utf8": TypeTag.UTF8,
	"filename": TypeTag.FILENAME,
	"unichar": TypeTag.UNICHAR,
	"glist": TypeTag.GLIST,
	"gslist": TypeTag.GSLIST,
	"ghash": TypeTag.GHASH,
	"error": TypeTag.ERROR,
}

_INTEGER_TAGS = frozenset(
	{
		TypeTag.INT8,
		TypeTag.UINT8,
		TypeTag.INT16,
		TypeTag.UINT16,
		TypeTag.INT32,
		TypeTag.UINT32,
		TypeTag.INT64,
		TypeTag.UINT64,
	}
)


class _BuildError(ValueError):
	def __init__(self, message: str, *, node: Tree | Token | None = None) -> None:
		super().__init__(message)
		self.line = getattr(node, "line", None)
		self.column = getattr(node, "column", None)
		if isinstance(node, Tree) and not node.meta.empty:
			self.line = node.meta.line
			self.column = node.meta.column


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	return node.type


def _decode_string_token(tok: Token) -> str:
	"""Decode a STRING token (strip quotes, interpret backslash escapes)."""
	content = tok.value[1:-1]
	return codecs.decode(content, "unicode_escape").encode("latin-1").decode("utf-8")


def _first_token(tree: Tree, kind: str) -> Token:
	tok = next((c for c in tree.children if isinstance(c, Token) and c.type == kind), None)
	if tok is None:
		raise _BuildError(f"{_name(tree)} missing {kind}", node=tree)
	return tok


def _child(tree: Tree, name: str) -> Optional[Tree]:
	return next((c for c in tree.children if isinstance(c, Tree) and _name(c) == name), None)


def _children(tree: Tree, name: str) -> List[Tree]:
	return [c for c in tree.children if isinstance(c, Tree) and _name(c) == name]


class _Builder:
	"""Walks one parse tree into a Typelib."""

	def __init__(self, origin: str | None) -> None:
		self.origin = origin
		self.namespace = ""

	def build(self, tree: Tree) -> Typelib:
		ns_node = _child(tree, "namespace_decl")
		assert ns_node is not None  # grammar guarantees it
		self.namespace = _first_token(ns_node, "NAME").value
		version = _decode_string_token(_first_token(ns_node, "STRING"))
		dependencies: List[str] = []
		library: str | None = None
		infos: List[BaseInfo] = []
		for node in tree.children:
			if not isinstance(node, Tree):
				continue
			kind = _name(node)
			if kind == "requires_decl":
				dep = _decode_string_token(_first_token(node, "STRING"))
				name, sep, dep_version = dep.rpartition("-")
				if not sep or not name or not dep_version:
					raise _BuildError(f"dependency '{dep}' is not of the form Name-version", node=node)
				dependencies.append(dep)
			elif kind == "library_decl":
				if library is not None:
					raise _BuildError("library declared twice", node=node)
				library = _decode_string_token(_first_token(node, "STRING"))
			elif kind == "definition":
				infos.append(self._definition(node))
		try:
			return Typelib(
				namespace=self.namespace,
				version=version,
				infos=tuple(infos),
				dependencies=tuple(dependencies),
				shared_library=library,
				source=self.origin,
			)
		except ValueError as err:
			raise _BuildError(str(err), node=tree) from None

	def _qualify(self, qname: Tree) -> str:
		parts = [t.value for t in qname.children if isinstance(t, Token)]
		if len(parts) == 1:
			return f"{self.namespace}.{parts[0]}"
		return ".".join(parts)

	def _type_ref(self, node: Tree) -> TypeInfo:
		qname = _child(node, "qname")
		assert qname is not None
		if _child(node, "array_suffix") is not None:
			return TypeInfo(TypeTag.ARRAY)
		parts = [t.value for t in qname.children if isinstance(t, Token)]
		if len(parts) == 1 and parts[0] in _TAG_NAMES:
			return TypeInfo(_TAG_NAMES[parts[0]])
		return TypeInfo(TypeTag.INTERFACE, interface=self._qualify(qname))

	def _params(self, node: Tree) -> Tuple[ArgInfo, ...]:
		params = _child(node, "params")
		assert params is not None
		out: List[ArgInfo] = []
		for param in _children(params, "param"):
			type_node = _child(param, "type_ref")
			assert type_node is not None
			out.append(ArgInfo(name=_first_token(param, "NAME").value, namespace=self.namespace, type=self._type_ref(type_node)))
		return tuple(out)

	def _return_type(self, node: Tree) -> TypeInfo:
		ret = _child(node, "return_clause")
		if ret is None:
			return TypeInfo(TypeTag.VOID)
		type_node = _child(ret, "type_ref")
		assert type_node is not None
		return self._type_ref(type_node)

	def _gtype_name(self, node: Tree) -> str | None:
		clause = _child(node, "gtype_clause")
		return None if clause is None else _decode_string_token(_first_token(clause, "STRING"))

	def _function(self, node: Tree, *, deprecated: bool, container: str | None) -> FunctionInfo:
		symbol = _child(node, "symbol_clause")
		assert symbol is not None
		return FunctionInfo(
			name=_first_token(node, "NAME").value,
			namespace=self.namespace,
			deprecated=deprecated,
			args=self._params(node),
			return_type=self._return_type(node),
			symbol=_decode_string_token(_first_token(symbol, "STRING")),
			is_method=_name(node) == "method_decl",
			container=container,
		)

	def _literal(self, node: Tree, type_info: TypeInfo) -> Any:
		kind = _name(node)
		if kind == "true_lit":
			return True
		if kind == "false_lit":
			return False
		tok = node.children[0]
		assert isinstance(tok, Token)
		if kind == "string_lit":
			return _decode_string_token(tok)
		if type_info.tag in _INTEGER_TAGS:
			try:
				return int(tok.value)
			except ValueError:
				raise _BuildError(f"'{tok.value}' is not an integer", node=tok) from None
		return float(tok.value)

	def _constant(self, node: Tree, *, deprecated: bool) -> ConstantInfo:
		type_node = _child(node, "type_ref")
		assert type_node is not None
		type_info = self._type_ref(type_node)
		lit = next(c for c in node.children if isinstance(c, Tree) and _name(c).endswith("_lit"))
		return ConstantInfo(
			name=_first_token(node, "NAME").value,
			namespace=self.namespace,
			deprecated=deprecated,
			type=type_info,
			value=self._literal(lit, type_info),
		)

	def _field(self, node: Tree, *, deprecated: bool) -> FieldInfo:
		type_node = _child(node, "type_ref")
		assert type_node is not None
		return FieldInfo(
			name=_first_token(node, "NAME").value,
			namespace=self.namespace,
			deprecated=deprecated,
			type=self._type_ref(type_node),
		)

	def _members(self, node: Tree, container: str) -> Tuple[List[FieldInfo], List[FunctionInfo], List[ConstantInfo]]:
		fields: List[FieldInfo] = []
		methods: List[FunctionInfo] = []
		constants: List[ConstantInfo] = []
		for member in _children(node, "member_decl"):
			deprecated = _child(member, "deprecated") is not None
			decl = next(c for c in member.children if isinstance(c, Tree) and _name(c) != "deprecated")
			kind = _name(decl)
			if kind == "field_decl":
				fields.append(self._field(decl, deprecated=deprecated))
			elif kind == "constant_decl":
				constants.append(self._constant(decl, deprecated=deprecated))
			else:
				methods.append(self._function(decl, deprecated=deprecated, container=container))
		return fields, methods, constants

	def _enum(self, node: Tree, *, deprecated: bool, flags: bool) -> EnumInfo:
		values: List[ValueInfo] = []
		for member in _children(node, "member"):
			value_tok = _first_token(member, "SIGNED_NUMBER")
			try:
				value = int(value_tok.value)
			except ValueError:
				raise _BuildError(f"enum value '{value_tok.value}' is not an integer", node=value_tok) from None
			values.append(ValueInfo(name=_first_token(member, "NAME").value, namespace=self.namespace, value=value))
		cls = FlagsInfo if flags else EnumInfo
		return cls(
			name=_first_token(node, "NAME").value,
			namespace=self.namespace,
			deprecated=deprecated,
			gtype_name=self._gtype_name(node),
			values=tuple(values),
		)

	def _definition(self, node: Tree) -> BaseInfo:
		deprecated = _child(node, "deprecated") is not None
		decl = next(c for c in node.children if isinstance(c, Tree) and _name(c) != "deprecated")
		kind = _name(decl)
		name = _first_token(decl, "NAME").value
		qualified = f"{self.namespace}.{name}"
		if kind == "function_decl":
			return self._function(decl, deprecated=deprecated, container=None)
		if kind == "constant_decl":
			return self._constant(decl, deprecated=deprecated)
		if kind == "callback_decl":
			return CallbackInfo(
				name=name,
				namespace=self.namespace,
				deprecated=deprecated,
				args=self._params(decl),
				return_type=self._return_type(decl),
			)
		if kind in ("enum_decl", "flags_decl"):
			return self._enum(decl, deprecated=deprecated, flags=kind == "flags_decl")
		fields, methods, constants = self._members(decl, qualified)
		if kind in ("struct_decl", "union_decl"):
			if constants:
				raise _BuildError(f"{name}: constants are not allowed in {kind[:-5]}s", node=decl)
			if kind == "union_decl":
				return UnionInfo(
					name=name,
					namespace=self.namespace,
					deprecated=deprecated,
					gtype_name=self._gtype_name(decl),
					fields=tuple(fields),
					methods=tuple(methods),
				)
			class_for = _child(decl, "class_for")
			return StructInfo(
				name=name,
				namespace=self.namespace,
				deprecated=deprecated,
				gtype_name=self._gtype_name(decl),
				fields=tuple(fields),
				methods=tuple(methods),
				gtype_struct_for=self._qualify(class_for.children[0]) if class_for is not None else None,
			)
		if kind == "object_decl":
			parent = _child(decl, "parent_clause")
			implements = _child(decl, "implements_clause")
			return ObjectInfo(
				name=name,
				namespace=self.namespace,
				deprecated=deprecated,
				gtype_name=self._gtype_name(decl),
				parent=self._qualify(parent.children[0]) if parent is not None else None,
				interfaces=tuple(self._qualify(q) for q in _children(implements, "qname")) if implements is not None else (),
				fields=tuple(fields),
				methods=tuple(methods),
				constants=tuple(constants),
			)
		if kind == "interface_decl":
			prereqs = _child(decl, "prerequisites_clause")
			return InterfaceInfo(
				name=name,
				namespace=self.namespace,
				deprecated=deprecated,
				gtype_name=self._gtype_name(decl),
				prerequisites=tuple(self._qualify(q) for q in _children(prereqs, "qname")) if prereqs is not None else (),
				fields=tuple(fields),
				methods=tuple(methods),
				constants=tuple(constants),
			)
		raise _BuildError(f"unexpected definition '{kind}'", node=decl)


def parse_typelib(source: str, *, origin: str | None = None) -> Typelib:
	"""Parse typelib text into a Typelib."""
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as err:
		raise TypelibSyntaxError(
			str(err).strip().splitlines()[0],
			source=origin,
			line=getattr(err, "line", None),
			column=getattr(err, "column", None),
		) from err
	try:
		return _Builder(origin).build(tree)
	except _BuildError as err:
		raise TypelibSyntaxError(str(err), source=origin, line=err.line, column=err.column) from err


def parse_typelib_file(path: Path) -> Typelib:
	"""Read and parse a `*.typelib` file."""
	return parse_typelib(path.read_text(encoding="utf-8"), origin=str(path))


__all__ = ["TYPELIB_SUFFIX", "parse_typelib", "parse_typelib_file"]
