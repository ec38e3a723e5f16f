# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Record lifecycle errors.

Every error carries a stable numeric ``code`` so callers (and the CLI) can
report failures without matching on messages.
"""

from __future__ import annotations

from typing import Any

RECORD_NOT_FOUND = -1
INSERT_FAILED = -2
INSERT_FORBIDDEN = -3
UPDATE_FAILED = -4
UPDATE_FORBIDDEN = -5
DELETE_FAILED = -6
DELETE_FORBIDDEN = -7
FIELD_UNKNOWN = -8
FIELD_PROTECTED = -9
MANDATORY_MISSING = -10
UNIQUE_FIELD_DUPLICATE = -11


class RecordError(Exception):
    """Base class for record lifecycle errors.

    Attributes:
        code: Stable error code (negative integer).
        table: Name of the table involved, if known.
    """

    code: int = 0
    default_message = "Record operation failed"

    def __init__(self, message: str | None = None, *, table: str | None = None):
        self.table = table
        super().__init__(message or self.default_message)


class RecordNotFoundError(RecordError):
    """No record, or more than one, matched a single-record lookup."""

    code = RECORD_NOT_FOUND
    default_message = "Record not found"

    def __init__(
        self,
        message: str | None = None,
        *,
        table: str | None = None,
        where: dict[str, Any] | None = None,
    ):
        self.where = where
        if message is None and table:
            message = f"Record not found in '{table}'"
            if where:
                message += f" with where={where!r}"
        super().__init__(message, table=table)


class InsertFailedError(RecordError):
    code = INSERT_FAILED
    default_message = "Insert failed"


class InsertForbiddenError(RecordError):
    code = INSERT_FORBIDDEN
    default_message = "Insert not allowed"


class UpdateFailedError(RecordError):
    code = UPDATE_FAILED
    default_message = "Update failed"


class UpdateForbiddenError(RecordError):
    code = UPDATE_FORBIDDEN
    default_message = "Update not allowed"


class DeleteFailedError(RecordError):
    code = DELETE_FAILED
    default_message = "Delete failed"


class DeleteForbiddenError(RecordError):
    code = DELETE_FORBIDDEN
    default_message = "Delete not allowed"


class FieldError(RecordError):
    """Base for errors about a single field.

    Attributes:
        field: Name of the offending field.
    """

    def __init__(self, field: str, message: str | None = None, *, table: str | None = None):
        self.field = field
        super().__init__(message or f"{self.default_message}: '{field}'", table=table)


class FieldUnknownError(FieldError):
    code = FIELD_UNKNOWN
    default_message = "Unknown field"


class FieldProtectedError(FieldError):
    code = FIELD_PROTECTED
    default_message = "Protected field"


class MandatoryMissingError(FieldError):
    code = MANDATORY_MISSING
    default_message = "Mandatory field missing"


class UniqueFieldDuplicateError(FieldError):
    """A unique field (or unique index) value is already held by another record.

    Attributes:
        fields: Fields of the violated constraint.
        conflicting_id: Id of the record already holding the value.
    """

    code = UNIQUE_FIELD_DUPLICATE
    default_message = "Duplicate value for unique field"

    def __init__(
        self,
        fields: str | tuple[str, ...],
        conflicting_id: Any = None,
        *,
        table: str | None = None,
    ):
        self.fields = (fields,) if isinstance(fields, str) else tuple(fields)
        self.conflicting_id = conflicting_id
        label = ", ".join(self.fields)
        message = f"{self.default_message}: '{label}'"
        if conflicting_id is not None:
            message += f" (already used by id={conflicting_id!r})"
        super().__init__(label, message, table=table)


__all__ = [
    "DeleteFailedError",
    "DeleteForbiddenError",
    "FieldError",
    "FieldProtectedError",
    "FieldUnknownError",
    "InsertFailedError",
    "InsertForbiddenError",
    "MandatoryMissingError",
    "RecordError",
    "RecordNotFoundError",
    "UniqueFieldDuplicateError",
    "UpdateFailedError",
    "UpdateForbiddenError",
]
