"""
Script: db.py
Created: 2026-10-18
Purpose: SQLite-backed document store for BeaconHub collections
Keywords: database, sqlite, documents, storage, beaconhub
Status: active
Prerequisites:
  - aiosqlite
Changelog:
  - 2026-10-18: Generic JSON document table replaces the traces table
"""

import json
import re
from typing import Any, Dict, Iterable, List, Optional

import aiosqlite
from loguru import logger


USERS = "users"
RECEIPTS = "receipts"

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StorageError(Exception):
    """Raised for any failure inside the document store."""


def _json_path(field: str) -> str:
    if not _FIELD_RE.match(field):
        raise StorageError(f"Invalid field name: {field!r}")
    return f"$.{field}"


def _where(collection: str, filter: Dict[str, Any]):
    clauses = ["collection = ?"]
    params: List[Any] = [collection]
    for key, value in filter.items():
        clauses.append("json_extract(body, ?) = ?")
        params.extend([_json_path(key), value])
    return " AND ".join(clauses), params


class DocumentStore:
    """
    Collection-scoped JSON documents in a single SQLite table.

    Each operation opens its own connection; aiosqlite errors surface as
    StorageError. Documents are flat dicts, matched by field equality.
    """

    def __init__(self, path: str):
        self.path = path
        self.connected = False

    async def init(self) -> None:
        """Create the documents table and indexes."""
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS documents (
                        pk INTEGER PRIMARY KEY AUTOINCREMENT,
                        collection TEXT NOT NULL,
                        body TEXT NOT NULL,
                        created_at REAL DEFAULT (strftime('%s', 'now'))
                    )
                """)
                await db.execute("""
                    CREATE INDEX IF NOT EXISTS idx_collection ON documents(collection)
                """)
                await db.commit()
        except aiosqlite.Error as e:
            self.connected = False
            raise StorageError(f"Failed to initialize database at {self.path}: {e}") from e
        self.connected = True
        logger.info(f"Document store ready: {self.path}")

    async def close(self) -> None:
        self.connected = False

    async def ping(self) -> bool:
        """True if the database answers a trivial query."""
        if not self.connected:
            return False
        try:
            async with aiosqlite.connect(self.path) as db:
                async with db.execute("SELECT 1") as cursor:
                    await cursor.fetchone()
            return True
        except aiosqlite.Error as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def find_all(
        self,
        collection: str,
        sort_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict]:
        """All documents in a collection, in insertion order unless sort_by is given."""
        query = "SELECT body FROM documents WHERE collection = ?"
        params: List[Any] = [collection]
        if sort_by:
            direction = "DESC" if descending else "ASC"
            query += f" ORDER BY json_extract(body, ?) {direction}, pk {direction}"
            params.append(_json_path(sort_by))
        else:
            query += " ORDER BY pk ASC"
        try:
            async with aiosqlite.connect(self.path) as db:
                async with db.execute(query, params) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"find_all({collection}) failed: {e}") from e
        return [json.loads(row[0]) for row in rows]

    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict]:
        where, params = _where(collection, filter)
        try:
            async with aiosqlite.connect(self.path) as db:
                async with db.execute(
                    f"SELECT body FROM documents WHERE {where} ORDER BY pk ASC LIMIT 1", params
                ) as cursor:
                    row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"find_one({collection}) failed: {e}") from e
        return json.loads(row[0]) if row else None

    async def find_max(self, collection: str, field: str) -> Optional[Dict]:
        """Document with the highest value of `field`, or None for an empty collection."""
        try:
            async with aiosqlite.connect(self.path) as db:
                async with db.execute(
                    "SELECT body FROM documents WHERE collection = ? "
                    "ORDER BY json_extract(body, ?) DESC LIMIT 1",
                    (collection, _json_path(field)),
                ) as cursor:
                    row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"find_max({collection}.{field}) failed: {e}") from e
        return json.loads(row[0]) if row else None

    async def insert_one(self, collection: str, document: Dict) -> int:
        """Insert a document, return its row key."""
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "INSERT INTO documents (collection, body) VALUES (?, ?)",
                    (collection, json.dumps(document)),
                )
                await db.commit()
                return cursor.lastrowid
        except aiosqlite.Error as e:
            raise StorageError(f"insert_one({collection}) failed: {e}") from e

    async def insert_many(self, collection: str, documents: Iterable[Dict]) -> int:
        """Insert documents in one transaction, return how many were written."""
        rows = [(collection, json.dumps(doc)) for doc in documents]
        if not rows:
            return 0
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.executemany(
                    "INSERT INTO documents (collection, body) VALUES (?, ?)", rows
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"insert_many({collection}) failed: {e}") from e
        return len(rows)

    async def update_one(self, collection: str, filter: Dict[str, Any], patch: Dict) -> int:
        """Merge `patch` into the first match. Returns the matched count (0 or 1)."""
        where, params = _where(collection, filter)
        try:
            async with aiosqlite.connect(self.path) as db:
                async with db.execute(
                    f"SELECT pk, body FROM documents WHERE {where} ORDER BY pk ASC LIMIT 1", params
                ) as cursor:
                    row = await cursor.fetchone()
                if row is None:
                    return 0
                document = json.loads(row[1])
                document.update(patch)
                await db.execute(
                    "UPDATE documents SET body = ? WHERE pk = ?", (json.dumps(document), row[0])
                )
                await db.commit()
                return 1
        except aiosqlite.Error as e:
            raise StorageError(f"update_one({collection}) failed: {e}") from e

    async def delete_one(self, collection: str, filter: Dict[str, Any]) -> int:
        """Delete the first match. Returns the deleted count (0 or 1)."""
        where, params = _where(collection, filter)
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    f"DELETE FROM documents WHERE pk = "
                    f"(SELECT pk FROM documents WHERE {where} ORDER BY pk ASC LIMIT 1)",
                    params,
                )
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as e:
            raise StorageError(f"delete_one({collection}) failed: {e}") from e

    async def count(self, collection: str) -> int:
        try:
            async with aiosqlite.connect(self.path) as db:
                async with db.execute(
                    "SELECT COUNT(*) FROM documents WHERE collection = ?", (collection,)
                ) as cursor:
                    row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"count({collection}) failed: {e}") from e
        return row[0]
