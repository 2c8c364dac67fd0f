# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Accessors for native entry points.

A NativeFunction is what a FUNCTION info (or a struct/object method)
resolves to. Calling it from Python marshals every argument through the
ValueMarshaller according to the declared parameter types, calls the native
symbol with raw storage values, and converts the result back. Methods take
the instance proxy as their first argument.

Callback-typed parameters accept any Python callable; it is wrapped in a
ClosureHandle for the duration of the call (native code that keeps the
handle must `ref()` it).
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from girbind.core.errors import MetadataLookupError
from girbind.core.type_tags import TypeTag
from girbind.metadata.infos import CallbackInfo, ConstantInfo, FunctionInfo, TypeInfo

if TYPE_CHECKING:
	from girbind.closure import ClosureHandle
	from girbind.loader import BindingLoader


class NativeFunction:
	"""Callable bound to one native symbol."""

	def __init__(self, loader: "BindingLoader", info: FunctionInfo) -> None:
		self._loader = loader
		self.info = info
		self._impl: Optional[Callable[..., Any]] = None

	@property
	def native(self) -> Callable[..., Any]:
		"""The native implementation (looked up on first use)."""
		if self._impl is None:
			self._impl = self._loader.repository.lookup_symbol(self.info.namespace, self.info.symbol)
		return self._impl

	def param_types(self) -> List[TypeInfo]:
		params = [arg.type for arg in self.info.args]
		if self.info.is_method:
			assert self.info.container is not None
			params.insert(0, TypeInfo(TypeTag.INTERFACE, interface=self.info.container))
		return params

	def call_raw(self, *raw_args: Any) -> Any:
		"""Call the native symbol directly with native-level values."""
		return self.native(*raw_args)

	def bind(self, instance: Any) -> Callable[..., Any]:
		return functools.partial(self, instance)

	def _callback_info(self, type_info: TypeInfo) -> CallbackInfo | None:
		if type_info.tag is not TypeTag.INTERFACE:
			return None
		try:
			iface = self._loader.repository.resolve_interface(type_info)
		except MetadataLookupError:
			return None
		return iface if isinstance(iface, CallbackInfo) else None

	def __call__(self, *args: Any) -> Any:
		params = self.param_types()
		if len(args) != len(params):
			raise TypeError(f"{self.info.qualified_name}() takes {len(params)} arguments ({len(args)} given)")
		marshaller = self._loader.marshaller
		raw_args: List[Any] = []
		handles: List["ClosureHandle"] = []
		try:
			for value, type_info in zip(args, params):
				callback = self._callback_info(type_info)
				if callback is not None:
					handle = self._loader.closures.create(
						value,
						callback.return_type,
						arg_types=tuple(arg.type for arg in callback.args),
					)
					handles.append(handle)
					raw_args.append(handle)
				else:
					raw_args.append(marshaller.load(value, type_info).raw())
			raw_result = self.native(*raw_args)
		finally:
			for handle in handles:
				handle.unref()
		if self.info.return_type.tag is TypeTag.VOID:
			return None
		result = marshaller.init(self.info.return_type)
		marshaller.set_raw(result, raw_result)
		return marshaller.store(result)

	def __repr__(self) -> str:
		kind = "method" if self.info.is_method else "function"
		return f"<native {kind} {self.info.qualified_name} ({self.info.symbol})>"


def constant_value(loader: "BindingLoader", info: ConstantInfo) -> Any:
	"""Materialize a constant through the marshaller (validates width/shape)."""
	marshaller = loader.marshaller
	return marshaller.store(marshaller.load(info.value, info.type))


def native_signature(info: FunctionInfo) -> Tuple[str, ...]:
	"""Human-readable parameter list, used by inspection output."""
	params = [f"{arg.name}: {arg.type}" for arg in info.args]
	if info.is_method:
		params.insert(0, "self")
	return tuple(params)


__all__ = ["NativeFunction", "constant_value", "native_signature"]
