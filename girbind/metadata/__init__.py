# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Introspection metadata (the externally supplied schema).

  - infos: immutable info records, one per meta-kind, plus `Typelib`
  - repository: the metadata provider (`Repository`) the loader queries
  - typelib_text: parser for the textual typelib format (`*.typelib`)
"""

from __future__ import annotations

__all__ = [
	"infos",
	"repository",
	"typelib_text",
]
