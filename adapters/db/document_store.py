"""
SQLite 문서 저장소

IRemoteStore 구현 (CLI 기본 원격 저장소).
documents 테이블에 컬렉션별 평면 문서를 JSON으로 저장.

변경 구독은 같은 프로세스 안의 쓰기에만 알림.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

import aiosqlite

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.errors import RemoteStoreError
from adapters.interfaces import ChangeCallback, Document
from core.utils.ids import new_entry_id

logger = logging.getLogger(__name__)


class SQLiteDocumentStore:
    """SQLite 기반 문서 저장소

    Args:
        db: 연결 및 스키마 초기화가 끝난 SQLiteAdapter

    사용 예시:
    ```python
    async with SQLiteAdapter(Paths.STORE_DB) as db:
        await init_schema(db)
        store = SQLiteDocumentStore(db)
        doc_id = await store.add("customers", {"name": "Rahim", "balance": "0"})
    ```
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db
        self._subscribers: dict[str, list[ChangeCallback]] = {}

    async def list_collection(self, name: str) -> list[Document]:
        try:
            rows = await self.db.fetchall(
                """
                SELECT doc_id, fields_json
                FROM documents
                WHERE collection = ?
                ORDER BY seq
                """,
                (name,),
            )
        except aiosqlite.Error as e:
            raise RemoteStoreError(f"list failed: {e}", "list", name) from e

        return [{**json.loads(fields_json), "id": doc_id} for doc_id, fields_json in rows]

    async def get(self, name: str, doc_id: str) -> Document | None:
        try:
            row = await self.db.fetchone(
                "SELECT fields_json FROM documents WHERE collection = ? AND doc_id = ?",
                (name, doc_id),
            )
        except aiosqlite.Error as e:
            raise RemoteStoreError(f"get failed: {e}", "get", name, doc_id) from e

        if row is None:
            return None
        return {**json.loads(row[0]), "id": doc_id}

    async def add(self, name: str, fields: Document, doc_id: str | None = None) -> str:
        doc_id = doc_id or new_entry_id()
        await self._upsert("add", name, doc_id, _clean(fields), merge=False)
        return doc_id

    async def update(self, name: str, doc_id: str, fields: Document) -> None:
        await self._upsert("update", name, doc_id, _clean(fields), merge=True)

    async def delete(self, name: str, doc_id: str) -> None:
        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                    (name, doc_id),
                )
        except aiosqlite.Error as e:
            raise RemoteStoreError(f"delete failed: {e}", "delete", name, doc_id) from e

        logger.debug("Document deleted", extra={"collection": name, "doc_id": doc_id})
        await self._publish(name)

    def subscribe(self, name: str, on_change: ChangeCallback) -> Callable[[], None]:
        callbacks = self._subscribers.setdefault(name, [])
        callbacks.append(on_change)

        def unsubscribe() -> None:
            if on_change in callbacks:
                callbacks.remove(on_change)

        return unsubscribe

    async def _upsert(self, operation: str, name: str, doc_id: str, fields: Document, merge: bool) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            async with self.db.transaction() as conn:
                if merge:
                    cursor = await conn.execute(
                        "SELECT fields_json FROM documents WHERE collection = ? AND doc_id = ?",
                        (name, doc_id),
                    )
                    row = await cursor.fetchone()
                    if row is not None:
                        fields = {**json.loads(row[0]), **fields}

                await conn.execute(
                    """
                    INSERT INTO documents (collection, doc_id, fields_json, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(collection, doc_id) DO UPDATE SET
                        fields_json = excluded.fields_json,
                        updated_at = excluded.updated_at
                    """,
                    (name, doc_id, json.dumps(fields, ensure_ascii=False), now, now),
                )
        except aiosqlite.Error as e:
            raise RemoteStoreError(f"{operation} failed: {e}", operation, name, doc_id) from e

        logger.debug(
            f"Document {operation}",
            extra={"collection": name, "doc_id": doc_id},
        )
        await self._publish(name)

    async def _publish(self, name: str) -> None:
        callbacks = list(self._subscribers.get(name, []))
        if not callbacks:
            return
        docs = await self.list_collection(name)
        for callback in callbacks:
            try:
                callback(docs)
            except Exception as e:
                logger.error(
                    f"Collection subscriber failed: {e}",
                    exc_info=True,
                    extra={"collection": name},
                )


def _clean(fields: dict[str, Any]) -> dict[str, Any]:
    """id 필드는 문서 키로만 관리"""
    return {k: v for k, v in fields.items() if k != "id"}
