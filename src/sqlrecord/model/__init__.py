# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Record lifecycle engine: tables with schemas, records and their errors."""

from .errors import (
    DeleteFailedError,
    DeleteForbiddenError,
    FieldProtectedError,
    FieldUnknownError,
    InsertFailedError,
    InsertForbiddenError,
    MandatoryMissingError,
    RecordError,
    RecordNotFoundError,
    UniqueFieldDuplicateError,
    UpdateFailedError,
    UpdateForbiddenError,
)
from .record import Record
from .table import Table

__all__ = [
    "DeleteFailedError",
    "DeleteForbiddenError",
    "FieldProtectedError",
    "FieldUnknownError",
    "InsertFailedError",
    "InsertForbiddenError",
    "MandatoryMissingError",
    "Record",
    "RecordError",
    "RecordNotFoundError",
    "Table",
    "UniqueFieldDuplicateError",
    "UpdateFailedError",
    "UpdateForbiddenError",
]
