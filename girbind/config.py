# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Binding configuration.

Two knobs:
  - where textual typelibs are searched (`GIRBIND_TYPELIB_PATH`, os.pathsep
    separated, searched in order),
  - what a closure invocation does when the Python callable raises
    (`GIRBIND_CLOSURE_ERRORS`: "log" or "propagate").
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Tuple

ENV_TYPELIB_PATH = "GIRBIND_TYPELIB_PATH"
ENV_CLOSURE_ERRORS = "GIRBIND_CLOSURE_ERRORS"


class ClosureErrorPolicy(Enum):
	"""
	Behavior when a Python callable invoked from native code raises.

	Native call sites have no channel for a Python exception, so the default
	logs the failure and hands back a zeroed return value. PROPAGATE re-raises
	to whoever drove the invocation, useful when native code is itself driven
	from Python (tests, pure-Python emitters).
	"""

	LOG_AND_DEFAULT = "log"
	PROPAGATE = "propagate"


@dataclass(frozen=True)
class BindingConfig:
	typelib_path: Tuple[Path, ...] = ()
	closure_error_policy: ClosureErrorPolicy = ClosureErrorPolicy.LOG_AND_DEFAULT

	@classmethod
	def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BindingConfig":
		env = os.environ if environ is None else environ
		raw_path = env.get(ENV_TYPELIB_PATH, "")
		paths = tuple(Path(p) for p in raw_path.split(os.pathsep) if p)
		raw_policy = env.get(ENV_CLOSURE_ERRORS, ClosureErrorPolicy.LOG_AND_DEFAULT.value).strip().lower()
		try:
			policy = ClosureErrorPolicy(raw_policy)
		except ValueError:
			choices = ", ".join(p.value for p in ClosureErrorPolicy)
			raise ValueError(f"{ENV_CLOSURE_ERRORS}='{raw_policy}' is not one of: {choices}") from None
		return cls(typelib_path=paths, closure_error_policy=policy)


__all__ = ["BindingConfig", "ClosureErrorPolicy", "ENV_TYPELIB_PATH", "ENV_CLOSURE_ERRORS"]
