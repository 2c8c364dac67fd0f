# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
girbind: dynamic bindings to introspectable native libraries.

Namespaces are described by typelibs and bound lazily at runtime:

	import girbind
	Demo = girbind.get_package("Demo")
	Demo.Color.RED

The module-level functions use one process-wide BindingLoader, configured
from the environment on first use (see `girbind.config`). Code that needs
isolated caches builds its own `BindingLoader`.
"""

from __future__ import annotations

import threading
from typing import Optional

from girbind.config import BindingConfig, ClosureErrorPolicy
from girbind.core.errors import (
	BadInterfaceError,
	BindingError,
	ConversionError,
	ForcedLogError,
	MetadataLookupError,
	NotCallableError,
	TypelibNotFoundError,
	TypelibSyntaxError,
	UnknownCompoundTypeError,
	UnsupportedTypeError,
)
from girbind.loader import BindingLoader, Package
from girbind.log_bridge import LogHandler, default_log_bridge

__version__ = "0.1.0"

_default_loader: Optional[BindingLoader] = None
_default_lock = threading.Lock()


def default_loader() -> BindingLoader:
	global _default_loader
	if _default_loader is None:
		with _default_lock:
			if _default_loader is None:
				_default_loader = BindingLoader(config=BindingConfig.from_env())
	return _default_loader


def get_package(namespace: str, version: str | None = None) -> Package:
	"""Load (or return the already loaded) package for `namespace`."""
	return default_loader().get_package(namespace, version)


def log(domain: str, level: str = "DEBUG", message: str = "") -> None:
	"""Emit a log record through the native log dispatch."""
	default_log_bridge().emit(domain, level, message)


def install_log_handler(handler: LogHandler | None) -> None:
	"""
	Install `handler(domain, level_name, message)` for native log records.

	A truthy return marks the record handled. ERROR-level records raise
	ForcedLogError regardless. Passing None removes the handler.
	"""
	default_log_bridge().install_handler(handler)


__all__ = [
	"BindingConfig",
	"BindingLoader",
	"ClosureErrorPolicy",
	"Package",
	"default_loader",
	"get_package",
	"install_log_handler",
	"log",
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
