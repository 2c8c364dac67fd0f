# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Native log forwarding.

Native log records carry a domain, a bit set of level flags and a message.
The bridge hands them to an optional Python handler first:

  - a truthy handler result means "handled", the default sink is skipped;
  - a falsy result, or no handler at all, forwards to the default sink;
  - a failing handler, or any record with the ERROR/FATAL bit set, raises
    ForcedLogError whatever the handler returned.

The default sink writes to the stdlib `logging` tree under
`girbind.native.<domain>`. A single process-wide bridge backs the module
level `girbind.log` / `girbind.install_log_handler` surface.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from girbind.core.errors import ForcedLogError

LOG_LEVELS = ("ERROR", "CRITICAL", "WARNING", "MESSAGE", "INFO", "DEBUG")
UNKNOWN_LEVEL = "???"

LOG_FLAG_RECURSION = 1 << 0
LOG_FLAG_FATAL = 1 << 1
LOG_LEVEL_ERROR = 1 << 2
LOG_LEVEL_CRITICAL = 1 << 3
LOG_LEVEL_WARNING = 1 << 4
LOG_LEVEL_MESSAGE = 1 << 5
LOG_LEVEL_INFO = 1 << 6
LOG_LEVEL_DEBUG = 1 << 7

_PY_LEVELS = {
	"ERROR": logging.CRITICAL,
	"CRITICAL": logging.ERROR,
	"WARNING": logging.WARNING,
	"MESSAGE": logging.INFO,
	"INFO": logging.INFO,
	"DEBUG": logging.DEBUG,
	UNKNOWN_LEVEL: logging.WARNING,
}

LogHandler = Callable[[str, str, str], Any]
NativeSink = Callable[[str, int, str], None]


def level_bits(level_name: str) -> int:
	"""Native level flag for a symbolic level name."""
	try:
		index = LOG_LEVELS.index(level_name)
	except ValueError:
		raise ValueError(f"invalid log level '{level_name}' (expected one of {', '.join(LOG_LEVELS)})") from None
	return 1 << (index + 2)


def level_name(bits: int) -> str:
	"""Symbolic name of the most severe level flag in `bits`."""
	for index, name in enumerate(LOG_LEVELS):
		if bits & (1 << (index + 2)):
			return name
	return UNKNOWN_LEVEL


def default_sink(domain: str, bits: int, message: str) -> None:
	logging.getLogger(f"girbind.native.{domain or 'default'}").log(_PY_LEVELS[level_name(bits)], "%s", message)


class LogBridge:
	"""Routes native log records to a Python handler and/or the default sink."""

	def __init__(self, sink: NativeSink = default_sink) -> None:
		self._sink = sink
		self._handler: Optional[LogHandler] = None

	@property
	def handler(self) -> Optional[LogHandler]:
		return self._handler

	def install_handler(self, handler: LogHandler | None) -> None:
		if handler is not None and not callable(handler):
			raise TypeError(f"log handler must be callable, got {type(handler).__name__}")
		self._handler = handler

	def emit(self, domain: str, level: str = "DEBUG", message: str = "") -> None:
		"""Log `message` at a symbolic level through the native dispatch."""
		self.on_native_log(domain, level_bits(level), message)

	def on_native_log(self, domain: str, bits: int, message: str) -> None:
		name = level_name(bits)
		handled = False
		failure: BaseException | None = None
		if self._handler is not None:
			try:
				handled = bool(self._handler(domain, name, message))
			except Exception as err:
				failure = err
		if failure is not None or bits & (LOG_FLAG_FATAL | LOG_LEVEL_ERROR):
			raise ForcedLogError(domain, name, message) from failure
		if not handled:
			self._sink(domain, bits, message)


_default_bridge = LogBridge()


def default_log_bridge() -> LogBridge:
	"""The process-wide bridge (created at import, never torn down)."""
	return _default_bridge


__all__ = [
	"LOG_LEVELS",
	"LOG_FLAG_FATAL",
	"LOG_LEVEL_ERROR",
	"LOG_LEVEL_CRITICAL",
	"LOG_LEVEL_WARNING",
	"LOG_LEVEL_MESSAGE",
	"LOG_LEVEL_INFO",
	"LOG_LEVEL_DEBUG",
	"LogBridge",
	"default_log_bridge",
	"default_sink",
	"level_bits",
	"level_name",
]
