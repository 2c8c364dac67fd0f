# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple

from girbind.config import BindingConfig
from girbind.core.errors import BindingError
from girbind.core.gtypes import TypeUniverse
from girbind.metadata.infos import (
	BaseInfo,
	CallbackInfo,
	ConstantInfo,
	EnumInfo,
	FunctionInfo,
	InterfaceInfo,
	ObjectInfo,
	RegisteredTypeInfo,
	StructInfo,
	UnionInfo,
)
from girbind.metadata.repository import Repository
from girbind.native import native_signature


@dataclass(frozen=True)
class InspectOptions:
	namespace: str
	version: str | None
	typelib_path: Tuple[Path, ...]


@dataclass(frozen=True)
class ListOptions:
	typelib_path: Tuple[Path, ...]


def _describe_function(info: FunctionInfo) -> Dict[str, Any]:
	return {
		"kind": "method" if info.is_method else "function",
		"name": info.name,
		"symbol": info.symbol,
		"params": list(native_signature(info)),
		"returns": str(info.return_type),
		"deprecated": info.deprecated,
	}


def _describe(info: BaseInfo) -> Dict[str, Any]:
	if isinstance(info, FunctionInfo):
		return _describe_function(info)
	out: Dict[str, Any] = {"kind": info.info_type.name.lower(), "name": info.name, "deprecated": info.deprecated}
	if isinstance(info, RegisteredTypeInfo) and info.gtype_name is not None:
		out["gtype"] = info.gtype_name
	if isinstance(info, ConstantInfo):
		out["type"] = str(info.type)
		out["value"] = info.value
	elif isinstance(info, CallbackInfo):
		out["params"] = [f"{arg.name}: {arg.type}" for arg in info.args]
		out["returns"] = str(info.return_type)
	elif isinstance(info, EnumInfo):
		out["values"] = {v.name.upper(): v.value for v in info.values}
	elif isinstance(info, (StructInfo, UnionInfo)):
		if isinstance(info, StructInfo) and info.gtype_struct_for is not None:
			out["class_for"] = info.gtype_struct_for
		out["fields"] = {f.name: str(f.type) for f in info.fields}
		out["methods"] = [_describe_function(m) for m in info.methods]
	elif isinstance(info, (ObjectInfo, InterfaceInfo)):
		if isinstance(info, ObjectInfo):
			out["parent"] = info.parent
			out["interfaces"] = list(info.interfaces)
		else:
			out["prerequisites"] = list(info.prerequisites)
		out["fields"] = {f.name: str(f.type) for f in info.fields}
		out["methods"] = [_describe_function(m) for m in info.methods]
		out["constants"] = {c.name: c.value for c in info.constants}
	return out


def inspect_namespace(opts: InspectOptions) -> Dict[str, Any]:
	"""Load one namespace (and its dependencies) and describe its contents."""
	repo = Repository(TypeUniverse(), search_path=opts.typelib_path)
	typelib = repo.require(opts.namespace, opts.version)
	return {
		"namespace": typelib.namespace,
		"version": typelib.version,
		"library": typelib.shared_library,
		"dependencies": list(typelib.dependencies),
		"source": typelib.source,
		"infos": [_describe(info) for info in repo.iter_infos(typelib.namespace)],
	}


def list_namespaces(opts: ListOptions) -> List[str]:
	return Repository(TypeUniverse(), search_path=opts.typelib_path).available_namespaces()


def _format_human(report: Dict[str, Any]) -> List[str]:
	lines = [f"{report['namespace']}-{report['version']} (library: {report['library'] or '-'})"]
	for dep in report["dependencies"]:
		lines.append(f"  requires {dep}")
	for info in report["infos"]:
		flag = " [deprecated]" if info["deprecated"] else ""
		if "params" in info:
			sig = f"{info['name']}({', '.join(info['params'])}) -> {info['returns']}"
			lines.append(f"  {info['kind']:<10} {sig}{flag}")
		else:
			lines.append(f"  {info['kind']:<10} {info['name']}{flag}")
		for method in info.get("methods", []):
			lines.append(f"    {method['kind']:<8} {method['name']}({', '.join(method['params'])}) -> {method['returns']}")
		for name, value in info.get("values", {}).items():
			lines.append(f"    {name} = {value}")
	return lines


def _add_search_path(parser: argparse.ArgumentParser) -> None:
	parser.add_argument(
		"--typelib-dir",
		dest="typelib_dirs",
		type=Path,
		action="append",
		default=None,
		help="Typelib search directory (repeatable; default: $GIRBIND_TYPELIB_PATH)",
	)


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="girbind", description="Inspect introspection typelibs")
	sub = p.add_subparsers(dest="cmd", required=True)

	inspect = sub.add_parser("inspect", help="Describe the contents of one namespace")
	inspect.add_argument("namespace", type=str, help="Namespace to load (e.g. Demo)")
	inspect.add_argument("--version", type=str, default=None, help="Typelib version (default: highest available)")
	inspect.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
	_add_search_path(inspect)

	ls = sub.add_parser("list", help="List namespaces available on the search path")
	ls.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
	_add_search_path(ls)
	return p


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)
	if args.typelib_dirs:
		search_path = tuple(args.typelib_dirs)
	else:
		try:
			search_path = BindingConfig.from_env().typelib_path
		except ValueError as err:
			print(f"girbind: {err}", file=sys.stderr)
			return 2
	if args.cmd == "inspect":
		opts = InspectOptions(namespace=args.namespace, version=args.version, typelib_path=search_path)
		try:
			report = inspect_namespace(opts)
		except BindingError as err:
			if args.json:
				print(json.dumps({"ok": False, "error": err.to_dict()}, sort_keys=True, separators=(",", ":")))
			else:
				print(err.format_human(), file=sys.stderr)
			return 2
		if args.json:
			print(json.dumps({"ok": True, **report}, sort_keys=True, separators=(",", ":")))
		else:
			print("\n".join(_format_human(report)))
		return 0
	if args.cmd == "list":
		names = list_namespaces(ListOptions(typelib_path=search_path))
		if args.json:
			print(json.dumps(names, separators=(",", ":")))
		else:
			for name in names:
				print(name)
		return 0
	raise AssertionError("unreachable")


__all__ = ["InspectOptions", "ListOptions", "inspect_namespace", "list_namespaces", "main"]
