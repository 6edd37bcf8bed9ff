"""
SQLite 로컬 캐시

ILocalCache 구현. cache_entries 테이블에 key → JSON blob 저장.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.errors import CacheError

logger = logging.getLogger(__name__)


class SQLiteLocalCache:
    """SQLite 기반 key-value 캐시

    Args:
        db: 연결 및 스키마 초기화가 끝난 SQLiteAdapter
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def get(self, key: str) -> Any | None:
        try:
            row = await self.db.fetchone(
                "SELECT value_json FROM cache_entries WHERE cache_key = ?",
                (key,),
            )
        except aiosqlite.Error as e:
            raise CacheError(f"cache read failed: {e}", key) from e

        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            raise CacheError(f"corrupt cache value: {e}", key) from e

    async def put(self, key: str, blob: Any) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            value_json = json.dumps(blob, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise CacheError(f"cache value not serializable: {e}", key) from e

        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO cache_entries (cache_key, value_json, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(cache_key) DO UPDATE SET
                        value_json = excluded.value_json,
                        updated_at = excluded.updated_at
                    """,
                    (key, value_json, now),
                )
        except aiosqlite.Error as e:
            raise CacheError(f"cache write failed: {e}", key) from e

        logger.debug("Cache updated", extra={"cache_key": key})

    async def delete(self, key: str) -> None:
        try:
            async with self.db.transaction() as conn:
                await conn.execute("DELETE FROM cache_entries WHERE cache_key = ?", (key,))
        except aiosqlite.Error as e:
            raise CacheError(f"cache delete failed: {e}", key) from e

    async def keys(self) -> list[str]:
        """저장된 키 목록 (디버깅/테스트용)"""
        try:
            rows = await self.db.fetchall("SELECT cache_key FROM cache_entries ORDER BY cache_key")
        except aiosqlite.Error as e:
            raise CacheError(f"cache list failed: {e}") from e
        return [row[0] for row in rows]
