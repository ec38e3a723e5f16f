# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Record instances bound to a model Table."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from ..sql.codec import typecast_value
from .errors import FieldUnknownError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .table import Table

ID_ALIAS = "_id"


class Record:
    """One row of a table, plus the transient attributes its table declares.

    Records are created by their table (``create``, ``find``, ``load``,
    ``compose``); all persistence goes through the table's lifecycle methods.

    Attributes:
        table: Owning table (schema, hooks, database).
        editable: False for detached records and after delete().
    """

    def __init__(
        self, table: Table, data: Mapping[str, Any] | None = None, editable: bool = False
    ) -> None:
        self.table = table
        self.editable = editable
        self._data: dict[str, Any] = dict(data or {})
        self._transients: dict[str, Any] = {}

    # -------------------------------------------------------------------------
    # Field access
    # -------------------------------------------------------------------------

    @property
    def data(self) -> dict[str, Any]:
        """Copy of the raw row data."""
        return dict(self._data)

    @property
    def id(self) -> Any:
        return self.get(ID_ALIAS)

    def get(self, field: str, default: Any = None) -> Any:
        """Return a field value.

        Schema columns are typecast to their declared type (and stored back
        typecast). "_id" is an alias of the primary key. Non-column keys
        present in the row and declared transients are returned as they are.
        """
        if field == ID_ALIAS:
            if not self.table.pkey:
                return default
            field = self.table.pkey
        col = self.table.columns.get(field)
        if col is not None:
            value = self._data.get(field)
            if value is None:
                return default
            value = typecast_value(value, col.type_)
            self._data[field] = value
            return value
        if field in self._data:
            return self._data[field]
        if field in self.table.transients:
            return self._transients.get(field, default)
        return default

    def __getitem__(self, field: str) -> Any:
        if not self._knows(field):
            raise KeyError(field)
        return self.get(field)

    def __contains__(self, field: object) -> bool:
        return isinstance(field, str) and self._knows(field)

    def _knows(self, field: str) -> bool:
        return (
            field == ID_ALIAS
            or field in self.table.columns
            or field in self._data
            or field in self.table.transients
        )

    def set_transient(self, name: str, value: Any) -> None:
        """Set a transient (non-persistent) attribute declared by the table.

        Raises:
            FieldUnknownError: If the table declares no such transient.
            TypeError: If the value does not match the declared type.
        """
        expected = self.table.transients.get(name)
        if expected is None:
            raise FieldUnknownError(name, table=self.table.name)
        if value is not None and not isinstance(value, expected):
            raise TypeError(
                f"Transient '{name}' expects {expected.__name__}, got {type(value).__name__}"
            )
        self._transients[name] = value

    async def set(self, field: str, value: Any) -> bool:
        """Set a field: columns are persisted through update(), transients in memory.

        Raises:
            FieldUnknownError: If field is neither a column nor a declared transient.
        """
        if field in self.table.columns:
            return await self.update({field: value})
        self.set_transient(field, value)
        return True

    # -------------------------------------------------------------------------
    # Lifecycle (delegated to the table)
    # -------------------------------------------------------------------------

    async def insert(self, values: Mapping[str, Any] | None = None) -> bool:
        """Insert this record; values default to the record's current data."""
        return await self.table.insert_record(self, self.data if values is None else values)

    async def update(self, values: Mapping[str, Any]) -> bool:
        return await self.table.update_record(self, values)

    async def delete(self) -> bool:
        return await self.table.delete_record(self)

    async def reload(self) -> Record:
        return await self.table.reload_record(self)

    def _replace_data(self, data: Mapping[str, Any]) -> None:
        self._data = dict(data)

    def _detach(self) -> None:
        """Make the record permanently read-only and forget its id."""
        self.editable = False
        if self.table.pkey:
            self._data[self.table.pkey] = None

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def to_dict(
        self, hide_internals: bool = False, fields: Iterable[str] | None = None
    ) -> dict[str, Any]:
        """Return column values as a plain dict.

        Args:
            hide_internals: Only include public (selectable) columns.
            fields: Restrict the output to these columns, in this order.
        """
        if hide_internals:
            names = self.table.public_column_names()
        else:
            names = list(self.table.columns)
        if fields is not None:
            allowed = set(names)
            names = [f for f in fields if f in allowed]
        return {name: self.get(name) for name in names}

    async def to_dict_deep(
        self, hide_internals: bool = False, fields: Iterable[str] | None = None
    ) -> dict[str, Any]:
        """Return to_dict() expanded with related data.

        Override in record subclasses that embed related records; the
        default is the flat representation.
        """
        return self.to_dict(hide_internals, fields)

    def __str__(self) -> str:
        body = json.dumps(self.to_dict(), indent=2, default=str, ensure_ascii=False)
        return f"{type(self).__name__}\n{body}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.table.name} id={self.id!r}>"
