# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
girbind.core: shared primitives used by every binding layer.

Modules:
  - errors: BindingError taxonomy
  - gtypes: backing type identities (fundamentals + registered types)
  - type_tags: static type-tag table (storage kind + conversion primitives)
"""

__all__ = [
	"errors",
	"gtypes",
	"type_tags",
]
