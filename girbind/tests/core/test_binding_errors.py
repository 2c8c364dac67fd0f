# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from girbind.core.errors import (
	BindingError,
	ForcedLogError,
	MetadataLookupError,
	TypelibNotFoundError,
	TypelibSyntaxError,
)


def test_errors_carry_reason_codes() -> None:
	err = TypelibNotFoundError("typelib for 'Gone' not found", namespace="Gone")
	assert isinstance(err, MetadataLookupError)
	assert isinstance(err, BindingError)
	assert err.to_dict() == {"reason_code": "typelib-not-found", "message": "typelib for 'Gone' not found"}
	assert err.format_human() == "[typelib-not-found] typelib for 'Gone' not found"


def test_syntax_error_reports_position() -> None:
	err = TypelibSyntaxError("unexpected token", source="Demo-1.0.typelib", line=3, column=7)
	assert err.format_human() == "[typelib-syntax] Demo-1.0.typelib:3:7: unexpected token"
	bare = TypelibSyntaxError("unexpected token")
	assert bare.format_human() == "[typelib-syntax] <typelib>: unexpected token"


def test_forced_log_message_format() -> None:
	err = ForcedLogError("Demo", "ERROR", "boom")
	assert str(err) == "Demo-ERROR **: boom"
	assert (err.domain, err.level_name, err.text) == ("Demo", "ERROR", "boom")
