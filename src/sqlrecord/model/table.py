# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Table base class: schema, validation and the record lifecycle.

A concrete table declares its schema once and owns every write made
through its records::

    class UsersTable(Table):
        name = "users"
        pkey = "id"
        unique_indexes = (("first_name", "last_name"),)
        transients = {"score": float}

        def configure(self) -> None:
            c = self.columns
            c.column("id", Integer, insert=False, update=False)
            c.column("name", String, mandatory=True, unique=True)
            c.column("age", Integer, default=0)

    async with db.connection():
        users = db.table("users")
        ann = await users.create({"name": "Ann"})
        await ann.update({"age": 31})
        await ann.delete()

Write operations run inside the UnitOfWork of the current connection:
nested operations (for instance a hook creating another record) share
one commit, and any failure rolls the whole nest back before the error
reaches the caller.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ..sql.codec import DATETIME_FORMAT, parse_int, typecast_value
from ..sql.column import Columns, Integer, SchemaError
from .errors import (
    DeleteFailedError,
    DeleteForbiddenError,
    FieldProtectedError,
    FieldUnknownError,
    InsertFailedError,
    InsertForbiddenError,
    MandatoryMissingError,
    RecordNotFoundError,
    UniqueFieldDuplicateError,
    UpdateFailedError,
    UpdateForbiddenError,
)
from .record import Record

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence

    from ..sql.column import Column
    from ..sql.query import Limit, Sort, Where
    from ..sql.sqldb import SqlDb

logger = logging.getLogger(__name__)

# Bookkeeping columns filled automatically when declared
INSERT_TS = "insert_ts"
UPDATE_TS = "update_ts"
DELETED = "deleted"
DELETE_TS = "delete_ts"


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime(DATETIME_FORMAT)


def is_empty(value: Any) -> bool:
    """True for the empty string; whitespace and zero are real values."""
    return isinstance(value, str) and value == ""


class Table:
    """Base class for record tables.

    Subclasses define columns via the configure() hook and may override
    the validation and extension hooks.

    Attributes:
        name: Table name in database (the gateway prefix is added at query time).
        pkey: Autoincrement id column, or None for tables without load-by-id.
        unique_indexes: Column tuples that must be jointly unique.
        transients: Typed in-memory attributes available on records.
        record_class: Record subclass used to hydrate rows.
        db: SqlDb instance reference.
        columns: Column definitions, in declaration order.
    """

    name: str
    pkey: str | None = "id"
    unique_indexes: Sequence[tuple[str, ...]] = ()
    transients: Mapping[str, type] = {}
    record_class: type[Record] = Record

    def __init__(self, db: SqlDb) -> None:
        self.db = db
        if not getattr(self, "name", None):
            raise ValueError(f"{type(self).__name__} must define 'name'")

        self.columns = Columns()
        self.configure()
        self._check_schema()

    def configure(self) -> None:
        """Override to define columns. Called during __init__."""
        pass

    def _check_schema(self) -> None:
        if self.pkey and self.pkey not in self.columns:
            raise SchemaError(f"{self.name}: primary key '{self.pkey}' is not a column")
        for index in self.unique_indexes:
            missing = [f for f in index if f not in self.columns]
            if missing:
                raise SchemaError(f"{self.name}: unique index {index!r} uses unknown {missing!r}")
        overlap = set(self.transients) & set(self.columns)
        if overlap:
            raise SchemaError(f"{self.name}: transients shadow columns {sorted(overlap)!r}")

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def public_columns(self, exclude: Iterable[str] = ()) -> list[Column]:
        """Return selectable columns, minus the excluded names."""
        skip = set(exclude)
        return [c for c in self.columns.values() if c.select and c.name not in skip]

    def public_column_names(self, exclude: Iterable[str] = ()) -> list[str]:
        return [c.name for c in self.public_columns(exclude)]

    def sql_table_name(self) -> str:
        return self.db.adapter._sql_name(self.db.table_prefix + self.name)

    def create_table_sql(self) -> str:
        """Generate CREATE TABLE IF NOT EXISTS statement."""
        col_defs = []
        for col in self.columns.values():
            if col.name == self.pkey and col.type_ == Integer:
                col_defs.append(self.db.adapter.pk_column(col.name))
            else:
                col_defs.append(col.to_sql(primary_key=col.name == self.pkey))

        for index in self.unique_indexes:
            names = ", ".join(self.db.adapter._sql_name(f) for f in index)
            col_defs.append(f"UNIQUE ({names})")

        return (
            f"CREATE TABLE IF NOT EXISTS {self.sql_table_name()} (\n    "
            + ",\n    ".join(col_defs)
            + "\n)"
        )

    async def create_schema(self) -> None:
        """Create table if not exists."""
        await self.db.execute(self.create_table_sql())

    # -------------------------------------------------------------------------
    # Extension hooks
    # -------------------------------------------------------------------------

    async def is_insert_allowed(self, record: Record) -> bool:
        return record.editable

    async def is_update_allowed(self, record: Record) -> bool:
        return record.editable

    async def is_delete_allowed(self, record: Record) -> bool:
        return record.editable

    async def on_insert_field_unknown(self, record: Record, field: str, value: Any) -> bool:
        """Return True to ignore a non-column key passed to insert."""
        return False

    async def on_insert_field_protected(self, record: Record, field: str, value: Any) -> bool:
        """Return True to ignore a key whose column is not insertable."""
        return False

    async def on_insert_mandatory_field_missing(self, record: Record, field: str) -> bool:
        """Return True to accept an empty mandatory value (stored as "")."""
        return False

    async def on_update_field_unknown(self, record: Record, field: str, value: Any) -> bool:
        return False

    async def on_update_field_protected(self, record: Record, field: str, value: Any) -> bool:
        return False

    async def on_update_mandatory_field_missing(self, record: Record, field: str) -> bool:
        return False

    async def after_insert(
        self, record: Record, given: dict[str, Any], executed: dict[str, Any]
    ) -> bool:
        """Called after the row is written and reloaded. Return False to fail the insert."""
        return True

    async def after_update(
        self,
        record: Record,
        given: dict[str, Any],
        executed: dict[str, Any],
        old_data: dict[str, Any],
    ) -> bool:
        """Called after the row is updated and reloaded. Return False to fail the update."""
        return True

    async def after_delete(self, record: Record) -> bool:
        """Called after the row is deleted. Return False to fail the delete."""
        return True

    async def before_commit(self) -> None:
        """Called once before the outermost unit of work commits."""
        pass

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def compose(self, data: Mapping[str, Any], editable: bool = False) -> Record:
        """Build a record from existing data without touching the database."""
        return self.record_class(self, data, editable)

    async def find(
        self,
        where: Where | None = None,
        sort: Sort | None = None,
        limit: Limit | None = None,
        *,
        use_cache: bool | None = None,
        table_prefix: str | None = None,
    ) -> list[Record]:
        """Select rows and return them as editable records."""
        rows = await self.db.select(
            self.name, None, where, sort, limit, use_cache=use_cache, table_prefix=table_prefix
        )
        return [self.compose(row, editable=True) for row in rows]

    async def find_one(self, field: str, value: Any, *, use_cache: bool | None = None) -> Record:
        """Return the only record whose field equals value.

        Raises:
            RecordNotFoundError: If no record, or more than one, matches.
        """
        where = {field: value}
        records = await self.find(where, limit=2, use_cache=use_cache)
        if len(records) != 1:
            raise RecordNotFoundError(table=self.name, where=where)
        return records[0]

    async def load(self, pkey_value: Any, *, use_cache: bool | None = None) -> Record:
        """Load a record by primary key.

        Raises:
            SchemaError: If the table has no primary key.
            RecordNotFoundError: If the id does not exist.
        """
        if not self.pkey:
            raise SchemaError(f"{type(self).__name__} has no primary key, load() unavailable")
        return await self.find_one(self.pkey, pkey_value, use_cache=use_cache)

    async def all(self, sort: Sort | None = None) -> list[Record]:
        return await self.find(sort=sort)

    async def create(self, values: Mapping[str, Any]) -> Record:
        """Validate and insert a new record, return it reloaded from storage."""
        record = self.compose({}, editable=True)
        await self.insert_record(record, values)
        return record

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    async def validate_insert(
        self, record: Record, values: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Return the map to persist for an insert.

        Unknown and protected keys go through their hooks, then the map is
        rebuilt in column order with typecast values and defaults, unique
        columns and indexes are checked, and bookkeeping columns are filled.

        Raises:
            FieldUnknownError, FieldProtectedError, MandatoryMissingError,
            UniqueFieldDuplicateError: On policy violations.
        """
        for key, value in values.items():
            col = self.columns.get(key)
            if col is None:
                if not await self.on_insert_field_unknown(record, key, value):
                    raise FieldUnknownError(key, table=self.name)
            elif not col.insert:
                if not await self.on_insert_field_protected(record, key, value):
                    raise self._protected_error(col)

        validated: dict[str, Any] = {}
        for col in self.columns.values():
            if not col.insert:
                continue
            value = values.get(col.name)
            if value is not None:
                if col.mandatory and is_empty(value):
                    if not await self.on_insert_mandatory_field_missing(record, col.name):
                        raise MandatoryMissingError(col.name, table=self.name)
                    value = ""
                value = typecast_value(value, col.type_)
                if col.unique:
                    await self._check_unique((col.name,), {col.name: value})
                validated[col.name] = value
            elif col.mandatory:
                raise MandatoryMissingError(col.name, table=self.name)
            else:
                validated[col.name] = typecast_value(col.default, col.type_)

        for index in self.unique_indexes:
            where = {f: validated[f] if f in validated else record.get(f) for f in index}
            await self._check_unique(index, where)

        now = utc_now()
        self._set_bookkeeping(validated, INSERT_TS, now)
        self._set_bookkeeping(validated, UPDATE_TS, now)
        self._set_bookkeeping(validated, DELETED, 0)
        self._set_bookkeeping(validated, DELETE_TS, self.db.adapter.zero_datetime)
        return validated

    async def validate_update(
        self, record: Record, values: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Return the changed columns to persist for an update.

        Only columns whose typecast value differs from the record's current
        value are kept. An empty result means there is nothing to write.

        Raises:
            DeleteForbiddenError: If deleted=1 is requested and delete is not allowed.
            FieldUnknownError, FieldProtectedError, MandatoryMissingError,
            UniqueFieldDuplicateError: On policy violations.
        """
        soft_delete = DELETED in self.columns and values.get(DELETED) is not None
        soft_delete = soft_delete and parse_int(values[DELETED]) == 1
        if soft_delete and not await self.is_delete_allowed(record):
            raise DeleteForbiddenError(table=self.name)

        for key, value in values.items():
            col = self.columns.get(key)
            if col is None:
                if not await self.on_update_field_unknown(record, key, value):
                    raise FieldUnknownError(key, table=self.name)
            elif not col.update:
                if not await self.on_update_field_protected(record, key, value):
                    raise self._protected_error(col)

        validated: dict[str, Any] = {}
        for col in self.columns.values():
            if not col.update or values.get(col.name) is None:
                continue
            value = values[col.name]
            if col.mandatory and is_empty(value):
                if not await self.on_update_mandatory_field_missing(record, col.name):
                    raise MandatoryMissingError(col.name, table=self.name)
                value = ""
            value = typecast_value(value, col.type_)
            if value == record.get(col.name):
                continue
            if col.unique:
                await self._check_unique((col.name,), {col.name: value}, exclude_id=record.id)
            validated[col.name] = value

        for index in self.unique_indexes:
            if not any(f in validated for f in index):
                continue
            where = {f: validated[f] if f in validated else record.get(f) for f in index}
            await self._check_unique(index, where, exclude_id=record.id)

        if validated:
            now = utc_now()
            if DELETED in validated and parse_int(validated[DELETED]) == 1:
                self._set_bookkeeping(validated, DELETE_TS, now)
            self._set_bookkeeping(validated, UPDATE_TS, now)
        return validated

    def _protected_error(self, col: Column) -> FieldUnknownError | FieldProtectedError:
        # columns hidden from callers are reported as unknown
        if col.select:
            return FieldProtectedError(col.name, table=self.name)
        return FieldUnknownError(col.name, table=self.name)

    def _set_bookkeeping(self, validated: dict[str, Any], name: str, value: Any) -> None:
        col = self.columns.get(name)
        if col is not None:
            validated[name] = typecast_value(value, col.type_)

    async def _check_unique(
        self, fields: tuple[str, ...], where: dict[str, Any], exclude_id: Any = None
    ) -> None:
        """Raise UniqueFieldDuplicateError if another record matches where."""
        for match in await self.find(where, limit=2, use_cache=False):
            if exclude_id is None or match.id != exclude_id:
                raise UniqueFieldDuplicateError(fields, match.id, table=self.name)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _pkey_where(self, record: Record) -> dict[str, Any]:
        if not self.pkey:
            raise SchemaError(f"{type(self).__name__} has no primary key")
        return {self.pkey: record.id}

    async def insert_record(self, record: Record, values: Mapping[str, Any]) -> bool:
        """Validate and insert record, then reload it from storage.

        Raises:
            InsertForbiddenError: If is_insert_allowed() refuses.
            InsertFailedError: If validation returns nothing, no id is
                generated, or after_insert() returns False.
        """
        if not await self.is_insert_allowed(record):
            raise InsertForbiddenError(table=self.name)

        given = dict(values)
        validated = await self.validate_insert(record, given)
        if not validated:
            raise InsertFailedError(table=self.name)

        uow = self.db.unit_of_work
        await uow.begin()
        try:
            new_id = await self.db.insert(self.name, validated, pk_col=self.pkey)
            if self.pkey:
                if new_id <= 0:
                    raise InsertFailedError(table=self.name)
                fresh = await self.find_one(self.pkey, new_id, use_cache=False)
                record._replace_data(fresh.data)
            else:
                record._replace_data(validated)
            self.set_last_update()
            if not await self.after_insert(record, given, validated):
                raise InsertFailedError("after_insert refused the record", table=self.name)
            await uow.commit(self.before_commit)
        except Exception:
            await uow.rollback()
            raise
        logger.debug("inserted %s id=%r", self.name, record.id)
        return True

    async def update_record(self, record: Record, values: Mapping[str, Any]) -> bool:
        """Validate and write the changed columns, then reload the record.

        An update with no changed column performs no write and returns True.

        Raises:
            UpdateForbiddenError: If is_update_allowed() refuses.
            UpdateFailedError: If validation returns None, the row count is
                not exactly one, or after_update() returns False.
        """
        if not await self.is_update_allowed(record):
            raise UpdateForbiddenError(table=self.name)

        given = dict(values)
        validated = await self.validate_update(record, given)
        if validated is None:
            raise UpdateFailedError(table=self.name)
        if not validated:
            return True

        uow = self.db.unit_of_work
        await uow.begin()
        try:
            old_data = record.data
            affected = await self.db.update(self.name, validated, self._pkey_where(record))
            if affected != 1:
                raise UpdateFailedError(f"{affected} rows affected", table=self.name)
            await self.reload_record(record)
            self.set_last_update()
            if not await self.after_update(record, given, validated, old_data):
                raise UpdateFailedError("after_update refused the change", table=self.name)
            await uow.commit(self.before_commit)
        except Exception:
            await uow.rollback()
            raise
        logger.debug("updated %s id=%r: %s", self.name, record.id, sorted(validated))
        return True

    async def delete_record(self, record: Record) -> bool:
        """Delete the record's row; the record becomes read-only without id.

        Raises:
            DeleteForbiddenError: If is_delete_allowed() refuses.
            DeleteFailedError: If the row count is not exactly one or
                after_delete() returns False.
        """
        if not await self.is_delete_allowed(record):
            raise DeleteForbiddenError(table=self.name)

        uow = self.db.unit_of_work
        await uow.begin()
        try:
            affected = await self.db.delete(self.name, self._pkey_where(record))
            if affected != 1:
                raise DeleteFailedError(f"{affected} rows affected", table=self.name)
            self.set_last_update()
            if not await self.after_delete(record):
                raise DeleteFailedError("after_delete refused the delete", table=self.name)
            await uow.commit(self.before_commit)
        except Exception:
            await uow.rollback()
            raise
        logger.debug("deleted %s id=%r", self.name, record.id)
        record._detach()
        return True

    async def reload_record(self, record: Record) -> Record:
        """Refresh record data from storage, bypassing the cache.

        Raises:
            RecordNotFoundError: If the row no longer exists.
        """
        where = self._pkey_where(record)
        try:
            fresh = await self.find_one(self.pkey, record.id, use_cache=False)
        except RecordNotFoundError as e:
            raise RecordNotFoundError(
                f"{type(self).__name__}: record id={record.id!r} no longer exists",
                table=self.name,
                where=where,
            ) from e
        record._replace_data(fresh.data)
        return record

    # -------------------------------------------------------------------------
    # Last update marker
    # -------------------------------------------------------------------------

    @property
    def last_update_key(self) -> str:
        return f"{type(self).__name__}_latest_update"

    def get_last_update(self) -> int:
        """Return the timestamp of the last write through this table.

        Without a stored marker the current time is stored and returned.
        """
        cache = self.db.cache
        if cache is None:
            return int(time.time())
        value = cache.get(self.last_update_key)
        if value is None:
            value = int(time.time())
            self.set_last_update(value)
        return value

    def set_last_update(self, timestamp: int = 0) -> None:
        """Store the last-update marker (0 means now)."""
        cache = self.db.cache
        if cache is None:
            return
        cache.set(self.last_update_key, timestamp or int(time.time()), ttl_seconds=0)

    # -------------------------------------------------------------------------
    # Bulk helpers
    # -------------------------------------------------------------------------

    def _owns(self, record: Any) -> bool:
        return isinstance(record, self.record_class) and record.table.name == self.name

    def _own_records(self, records: Iterable[Any], helper: str) -> Iterator[Record]:
        """Yield the records of this table, warning about every other element."""
        for item in records:
            if self._owns(item):
                yield item
            else:
                logger.warning("%s.%s: skipping %r", type(self).__name__, helper, item)

    async def records_to_list(
        self,
        records: Iterable[Any],
        hide_internals: bool = False,
        fields: Iterable[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Convert records to plain dicts through Record.to_dict_deep()."""
        fields = list(fields) if fields is not None else None
        return [
            await record.to_dict_deep(hide_internals, fields)
            for record in self._own_records(records, "records_to_list")
        ]

    def sort_records(
        self,
        records: Iterable[Record],
        key: Callable[[Record], Any],
        descending: bool = False,
    ) -> list[Record]:
        """Return records sorted by key(record), text compared case-insensitively.

        The sort is stable; None sorts before any value.
        """

        def normalized(record: Record) -> tuple[bool, Any]:
            value = key(record)
            if isinstance(value, str):
                value = value.lower()
            return (value is not None, value)

        return sorted(records, key=normalized, reverse=descending)

    def id_list(self, records: Iterable[Any]) -> list[Any]:
        return [r.id for r in self._own_records(records, "id_list")]

    def field_values(self, records: Iterable[Any], field: str) -> list[Any]:
        return [r.get(field) for r in self._own_records(records, "field_values")]

    def index_by(
        self, records: Iterable[Any], field: str, strict: bool = False
    ) -> dict[Any, Record]:
        """Index records by a field value; the first record wins on duplicates.

        Raises:
            ValueError: With strict=True, if two records share a value.
        """
        index: dict[Any, Record] = {}
        for record in self._own_records(records, "index_by"):
            value = record.get(field)
            if value in index:
                if strict:
                    raise ValueError(f"Duplicate value {value!r} for '{field}' in {self.name}")
                continue
            index[value] = record
        return index


__all__ = ["Table"]
