"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
CLI와 Web이 같은 파일에 동시에 접근 가능하도록 설정.

테이블:
- documents: 원격 저장소 문서 (SQLiteDocumentStore)
- cache_entries: 로컬 캐시 blob (SQLiteLocalCache)
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from core.constants import Paths

logger = logging.getLogger(__name__)


def get_db_path(role: str) -> Path:
    """용도에 따른 기본 DB 경로 반환

    Args:
        role: "store" (원격 저장소 SQLite 백엔드) 또는 "cache" (로컬 캐시)

    Returns:
        DB 파일 경로 (Path 타입)
    """
    if role == "store":
        return Paths.STORE_DB
    if role == "cache":
        return Paths.CACHE_DB
    raise ValueError(f"Unknown database role: {role}")


async def create_connection(db_path: Path | str) -> aiosqlite.Connection:
    """SQLite 연결 생성 (WAL 모드)

    Args:
        db_path: DB 파일 경로 (":memory:" 허용)

    Returns:
        aiosqlite 연결 객체
    """
    db_path_str = str(db_path)
    in_memory = db_path_str == ":memory:"

    if not in_memory:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path_str)

    if not in_memory:
        await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA busy_timeout=30000")  # 30초 대기

    logger.info(
        "SQLite 연결 생성",
        extra={"db_path": db_path_str},
    )

    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    WAL 모드로 SQLite 연결 관리.
    트랜잭션 컨텍스트 매니저 제공.

    Args:
        db_path: DB 파일 경로

    사용 예시:
    ```python
    async with SQLiteAdapter(Paths.STORE_DB) as adapter:
        await init_schema(adapter)
        async with adapter.transaction() as conn:
            await conn.execute("INSERT INTO ...")
    ```
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._conn is not None

    async def connect(self) -> None:
        """연결 생성"""
        if self._conn is not None:
            return

        self._conn = await create_connection(self.db_path)

    async def close(self) -> None:
        """연결 종료"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite 연결 종료", extra={"db_path": str(self.db_path)})

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Not connected to database")
        return self._conn

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """SQL 실행"""
        conn = self._require_conn()
        if parameters:
            return await conn.execute(sql, parameters)
        return await conn.execute(sql)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        """단일 행 조회"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        """전체 행 조회"""
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())

    async def commit(self) -> None:
        """커밋"""
        if self._conn is not None:
            await self._conn.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 롤백.
        """
        conn = self._require_conn()
        try:
            yield conn
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise

    async def table_exists(self, table_name: str) -> bool:
        """테이블 존재 여부 확인"""
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def init_schema(adapter: SQLiteAdapter) -> None:
    """스키마 초기화 (테이블 생성, 멱등)

    Args:
        adapter: 연결된 SQLiteAdapter
    """
    # documents: 컬렉션별 평면 문서 (seq = 등록 순서)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS documents (
            seq          INTEGER PRIMARY KEY AUTOINCREMENT,
            collection   TEXT NOT NULL,
            doc_id       TEXT NOT NULL,
            fields_json  TEXT NOT NULL,
            created_at   TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at   TEXT NOT NULL DEFAULT (datetime('now')),

            UNIQUE(collection, doc_id)
        )
    """)

    # cache_entries: 로컬 캐시 key-value
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS cache_entries (
            cache_key    TEXT PRIMARY KEY,
            value_json   TEXT NOT NULL,
            updated_at   TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_documents_collection
        ON documents(collection, seq)
    """)

    await adapter.commit()

    logger.info("스키마 초기화 완료", extra={"db_path": str(adapter.db_path)})
