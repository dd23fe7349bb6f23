"""SQLite database client wrapper with CRUD and compare-and-set operations."""

import asyncio
import json
import logging
import re
import threading
from collections.abc import Awaitable
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite

from taskdesk.core.config import settings
from taskdesk.core.errors import StoreUnavailableError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseError(StoreUnavailableError):
    """Raised when the store fails, times out, or rejects a statement."""


class RecordNotFoundError(KeyError):
    """Raised when a record with the given id does not exist."""


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    fk_fields = {"id", "assigned_user_id", "recipient_id"}

    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key in fk_fields or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _encode_value(val: Any) -> Any:
    """Encode a Python value into something SQLite can bind."""
    if isinstance(val, Enum):
        return val.value
    if isinstance(val, datetime | date):
        return val.isoformat()
    if isinstance(val, dict | list):
        return json.dumps(val)
    return val


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        return value.replace("%", "\\%").replace("_", "\\_")

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(
        r"""(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", f"%{value}%"
    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params = []

    for raw_part in parts:
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate a sort expression into an ORDER BY clause.

    Accepts "field", "-field" (descending) or "field ASC|DESC"; anything else
    falls back to id order. Ties are broken by id in the same direction.
    """
    if not sort:
        return "id ASC"

    expr = sort.strip()
    match = re.match(r"^(-?)([A-Za-z_][A-Za-z0-9_]*)\s*(ASC|DESC)?$", expr, re.IGNORECASE)
    if not match:
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "id ASC"

    descending = bool(match.group(1)) or (match.group(3) or "").upper() == "DESC"
    direction = "DESC" if descending else "ASC"
    field = match.group(2)
    if field == "id":
        return f"id {direction}"
    return f"{field} {direction}, id {direction}"


async def _bounded(awaitable: Awaitable[T], *, timeout: float | None, operation: str, collection: str) -> T:
    """Await a store call, converting a timeout into DatabaseError."""
    limit = settings.store_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=limit)
    except TimeoutError as e:
        logger.error("store_timeout", extra={"operation": operation, "collection": collection, "timeout": limit})
        msg = f"{operation} on {collection} timed out after {limit}s"
        raise DatabaseError(msg) from e


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            conn = _db_connections.pop(cache_key, None)
            if conn is not None:
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
                )
    except Exception as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from taskdesk.core import schema

    conn = await get_connection(db_path=db_path)
    await schema.init_db(conn)


def _row_to_record(cursor: aiosqlite.Cursor, row: Any) -> dict[str, Any]:
    columns = [description[0] for description in cursor.description]
    return _convert_record_ids(dict(zip(columns, row, strict=True)))


async def create_record(*, collection: str, data: dict[str, Any], timeout: float | None = None) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""

    async def _run() -> dict[str, Any]:
        conn = await get_connection()

        columns = list(data.keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_encode_value(data[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()
        return await _get_record(conn, collection=collection, record_id=str(cursor.lastrowid))

    try:
        _validate_collection_name(collection)
        result = await _bounded(_run(), timeout=timeout, operation="create_record", collection=collection)
        logger.info("Created record", extra={"collection": collection, "record_id": result["id"]})
        return result
    except DatabaseError:
        raise
    except Exception as e:
        if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
            logger.error("Table not found", extra={"collection": collection})
            msg = f"Table '{collection}' does not exist. Call init_db() first."
            raise DatabaseError(msg) from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e


async def _get_record(conn: aiosqlite.Connection, *, collection: str, record_id: str) -> dict[str, Any]:
    query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
    cursor = await conn.execute(query, (int(record_id),))
    row = await cursor.fetchone()

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    return _row_to_record(cursor, row)


async def get_record(*, collection: str, record_id: str, timeout: float | None = None) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""

    async def _run() -> dict[str, Any]:
        conn = await get_connection()
        return await _get_record(conn, collection=collection, record_id=record_id)

    try:
        _validate_collection_name(collection)
        if not str(record_id).isdigit():
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)
        record = await _bounded(_run(), timeout=timeout, operation="get_record", collection=collection)
        logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return record
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e


async def update_record(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    timeout: float | None = None,
) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    async def _run() -> dict[str, Any]:
        conn = await get_connection()

        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_encode_value(val) for val in data.values()]
        values.append(int(record_id))

        query = f"UPDATE {collection} SET {set_clause}, updated = CURRENT_TIMESTAMP WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)
        return await _get_record(conn, collection=collection, record_id=record_id)

    try:
        _validate_collection_name(collection)
        record = await _bounded(_run(), timeout=timeout, operation="update_record", collection=collection)
        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return record
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e


async def compare_and_update(
    *,
    collection: str,
    record_id: str,
    expected: dict[str, Any],
    data: dict[str, Any],
    timeout: float | None = None,
) -> dict[str, Any] | None:
    """Apply an update only if the record still holds the expected values.

    Runs as one conditional UPDATE statement, so the store's per-row atomicity
    is enough to make it a compare-and-set.

    Returns:
        The updated record, or None if the record is missing or any expected
        value no longer matches.
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    async def _run() -> dict[str, Any] | None:
        conn = await get_connection()

        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_encode_value(val) for val in data.values()]
        values.append(int(record_id))

        conditions = ["id = ?"]
        for key, val in expected.items():
            if val is None:
                conditions.append(f"{key} IS NULL")
            else:
                conditions.append(f"{key} = ?")
                values.append(_encode_value(val))

        query = (
            f"UPDATE {collection} SET {set_clause}, updated = CURRENT_TIMESTAMP "  # noqa: S608 - collection is validated
            f"WHERE {' AND '.join(conditions)}"
        )
        cursor = await conn.execute(query, values)
        await conn.commit()

        if cursor.rowcount == 0:
            return None
        return await _get_record(conn, collection=collection, record_id=record_id)

    try:
        _validate_collection_name(collection)
        for key in [*data, *expected]:
            _validate_collection_name(key)
        record = await _bounded(_run(), timeout=timeout, operation="compare_and_update", collection=collection)
        logger.info(
            "Compare-and-set update",
            extra={"collection": collection, "record_id": record_id, "applied": record is not None},
        )
        return record
    except DatabaseError:
        raise
    except Exception as e:
        logger.error(
            "compare_and_update_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
        )
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e


async def update_records(
    *,
    collection: str,
    filter_query: str,
    data: dict[str, Any],
    timeout: float | None = None,
) -> int:
    """Update every record matching the filter in one statement and return the row count."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    async def _run() -> int:
        conn = await get_connection()

        where_clause, params = parse_filter(filter_query)
        set_clause = ", ".join(f"{key} = ?" for key in data)
        values: list[Any] = [_encode_value(val) for val in data.values()]
        values.extend(params)

        query = f"UPDATE {collection} SET {set_clause}"  # noqa: S608 - collection is validated
        if where_clause:
            query += f" WHERE {where_clause}"
        cursor = await conn.execute(query, values)
        await conn.commit()
        return cursor.rowcount

    try:
        _validate_collection_name(collection)
        count = await _bounded(_run(), timeout=timeout, operation="update_records", collection=collection)
        logger.info("Updated records", extra={"collection": collection, "count": count})
        return count
    except DatabaseError:
        raise
    except Exception as e:
        logger.error("update_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to update records in {collection}: {e}"
        raise DatabaseError(msg) from e


async def delete_record(*, collection: str, record_id: str, timeout: float | None = None) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""

    async def _run() -> int:
        conn = await get_connection()
        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        await conn.commit()
        return cursor.rowcount

    try:
        _validate_collection_name(collection)
        rowcount = await _bounded(_run(), timeout=timeout, operation="delete_record", collection=collection)

        if rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to delete record from {collection}: {e}"
        raise DatabaseError(msg) from e


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
    timeout: float | None = None,
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""

    async def _run() -> list[dict[str, Any]]:
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        offset = (page - 1) * per_page
        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {parse_sort(sort)} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [_row_to_record(cursor, row) for row in rows]

    try:
        _validate_collection_name(collection)
        records = await _bounded(_run(), timeout=timeout, operation="list_records", collection=collection)
        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except DatabaseError:
        raise
    except Exception as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e


async def count_records(*, collection: str, filter_query: str = "", timeout: float | None = None) -> int:
    """Count records matching the filter without fetching them."""

    async def _run() -> int:
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        query = f"SELECT COUNT(*) FROM {collection} {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        row = await cursor.fetchone()
        return row[0] if row else 0

    try:
        _validate_collection_name(collection)
        return await _bounded(_run(), timeout=timeout, operation="count_records", collection=collection)
    except DatabaseError:
        raise
    except Exception as e:
        logger.error("count_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to count records in {collection}: {e}"
        raise DatabaseError(msg) from e


async def get_first_record(
    *,
    collection: str,
    filter_query: str,
    sort: str = "",
    timeout: float | None = None,
) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(
        collection=collection,
        per_page=1,
        filter_query=filter_query,
        sort=sort,
        timeout=timeout,
    )
    return records[0] if records else None
