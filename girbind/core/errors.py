# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Error taxonomy for the binding layer.

Every error carries a stable `reason_code` so tooling (the inspect CLI, tests)
can match on the failure class without parsing messages. Marshalling and
loader errors are local to the operation that raised them; only
`ForcedLogError` is meant to abort the running script.
"""

from __future__ import annotations

from typing import Any


class BindingError(Exception):
	"""Base class for all binding-layer failures."""

	reason_code = "binding-error"

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message

	def to_dict(self) -> dict[str, Any]:
		return {"reason_code": self.reason_code, "message": self.message}

	def format_human(self) -> str:
		return f"[{self.reason_code}] {self.message}"


class UnsupportedTypeError(BindingError):
	"""A type tag has no marshalling implementation (e.g. arrays)."""

	reason_code = "unsupported-type"

	def __init__(self, message: str, *, tag: object | None = None) -> None:
		super().__init__(message)
		self.tag = tag


class BadInterfaceError(BindingError):
	"""An interface-tagged descriptor does not reference a registered type."""

	reason_code = "bad-interface"

	def __init__(self, message: str, *, info_kind: object | None = None) -> None:
		super().__init__(message)
		self.info_kind = info_kind


class ConversionError(BindingError):
	"""A Python value does not satisfy the shape a descriptor requires."""

	reason_code = "conversion"


class UnknownCompoundTypeError(BindingError):
	"""A compound instance has a concrete type with no loaded metadata."""

	reason_code = "unknown-compound-type"

	def __init__(self, message: str, *, gtype: object | None = None) -> None:
		super().__init__(message)
		self.gtype = gtype


class NotCallableError(BindingError):
	"""A closure target is not something Python can call."""

	reason_code = "not-callable"


class MetadataLookupError(BindingError):
	"""
	Metadata could not be found.

	The loader treats this as absence (the symbol resolves to nothing); it is
	only surfaced to callers that ask the provider directly.
	"""

	reason_code = "metadata-lookup"


class TypelibNotFoundError(MetadataLookupError):
	"""No typelib is available for a requested namespace/version."""

	reason_code = "typelib-not-found"

	def __init__(self, message: str, *, namespace: str, version: str | None = None) -> None:
		super().__init__(message)
		self.namespace = namespace
		self.version = version


class TypelibSyntaxError(BindingError):
	"""A textual typelib failed to parse."""

	reason_code = "typelib-syntax"

	def __init__(self, message: str, *, source: str | None = None, line: int | None = None, column: int | None = None) -> None:
		super().__init__(message)
		self.source = source
		self.line = line
		self.column = column

	def format_human(self) -> str:
		where = self.source or "<typelib>"
		if self.line is not None:
			where = f"{where}:{self.line}:{self.column}"
		return f"[{self.reason_code}] {where}: {self.message}"


class ForcedLogError(BindingError):
	"""A fatal-level native log message; never suppressible by a handler."""

	reason_code = "forced-log"

	def __init__(self, domain: str, level_name: str, text: str) -> None:
		super().__init__(f"{domain}-{level_name} **: {text}")
		self.domain = domain
		self.level_name = level_name
		self.text = text


__all__ = [
	"BindingError",
	"UnsupportedTypeError",
	"BadInterfaceError",
	"ConversionError",
	"UnknownCompoundTypeError",
	"NotCallableError",
	"MetadataLookupError",
	"TypelibNotFoundError",
	"TypelibSyntaxError",
	"ForcedLogError",
]
