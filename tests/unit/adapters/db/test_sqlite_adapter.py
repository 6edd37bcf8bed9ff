"""
SQLite 어댑터 테스트

SQLiteAdapter 및 관련 함수 테스트.
"""

from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import (
    SQLiteAdapter,
    create_connection,
    get_db_path,
    init_schema,
)
from core.constants import Paths


class TestGetDbPath:
    """get_db_path 테스트"""

    def test_store_role(self) -> None:
        path = get_db_path("store")

        assert path == Paths.STORE_DB
        assert isinstance(path, Path)

    def test_cache_role(self) -> None:
        assert get_db_path("cache") == Paths.CACHE_DB

    def test_unknown_role(self) -> None:
        with pytest.raises(ValueError, match="Unknown database role"):
            get_db_path("events")


class TestCreateConnection:
    """create_connection 테스트"""

    @pytest.mark.asyncio
    async def test_create_connection(self, tmp_path: Path) -> None:
        """연결 생성 (WAL 모드)"""
        conn = await create_connection(tmp_path / "test.db")

        cursor = await conn.execute("PRAGMA journal_mode")
        row = await cursor.fetchone()
        assert row[0].upper() == "WAL"

        await conn.close()

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "subdir" / "test.db"

        conn = await create_connection(db_path)

        assert db_path.parent.exists()
        await conn.close()

    @pytest.mark.asyncio
    async def test_in_memory(self) -> None:
        conn = await create_connection(":memory:")
        cursor = await conn.execute("SELECT 1")
        assert (await cursor.fetchone())[0] == 1
        await conn.close()


class TestSQLiteAdapter:
    """SQLiteAdapter 테스트"""

    @pytest_asyncio.fixture
    async def adapter(self, tmp_path: Path) -> SQLiteAdapter:
        """어댑터 픽스처"""
        adapter = SQLiteAdapter(tmp_path / "test.db")
        await adapter.connect()
        yield adapter
        await adapter.close()

    @pytest.mark.asyncio
    async def test_connect_and_close(self, tmp_path: Path) -> None:
        adapter = SQLiteAdapter(tmp_path / "test.db")
        assert adapter.is_connected is False

        await adapter.connect()
        assert adapter.is_connected is True

        await adapter.close()
        assert adapter.is_connected is False

    @pytest.mark.asyncio
    async def test_not_connected(self, tmp_path: Path) -> None:
        adapter = SQLiteAdapter(tmp_path / "test.db")

        with pytest.raises(RuntimeError, match="Not connected"):
            await adapter.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_execute_and_fetch(self, adapter: SQLiteAdapter) -> None:
        await adapter.execute("CREATE TABLE test (id INTEGER PRIMARY KEY, name TEXT)")
        await adapter.execute("INSERT INTO test (name) VALUES (?)", ("시티은행",))
        await adapter.execute("INSERT INTO test (name) VALUES (?)", ("바이낸스",))
        await adapter.commit()

        row = await adapter.fetchone("SELECT name FROM test WHERE id = 1")
        rows = await adapter.fetchall("SELECT name FROM test ORDER BY id")

        assert row[0] == "시티은행"
        assert [r[0] for r in rows] == ["시티은행", "바이낸스"]

    @pytest.mark.asyncio
    async def test_transaction_commit(self, adapter: SQLiteAdapter) -> None:
        await adapter.execute("CREATE TABLE tx_test (id INTEGER)")
        await adapter.commit()

        async with adapter.transaction() as conn:
            await conn.execute("INSERT INTO tx_test (id) VALUES (1)")
            await conn.execute("INSERT INTO tx_test (id) VALUES (2)")

        rows = await adapter.fetchall("SELECT id FROM tx_test")
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_transaction_rollback(self, adapter: SQLiteAdapter) -> None:
        await adapter.execute("CREATE TABLE tx_test2 (id INTEGER)")
        await adapter.commit()

        with pytest.raises(ValueError):
            async with adapter.transaction() as conn:
                await conn.execute("INSERT INTO tx_test2 (id) VALUES (1)")
                raise ValueError("의도적 에러")

        rows = await adapter.fetchall("SELECT id FROM tx_test2")
        assert len(rows) == 0

    @pytest.mark.asyncio
    async def test_context_manager(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "ctx_test.db") as adapter:
            assert adapter.is_connected is True

        assert adapter.is_connected is False


class TestInitSchema:
    """init_schema 테스트"""

    @pytest.mark.asyncio
    async def test_creates_tables(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "schema_test.db") as adapter:
            await init_schema(adapter)

            assert await adapter.table_exists("documents")
            assert await adapter.table_exists("cache_entries")

    @pytest.mark.asyncio
    async def test_idempotent(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "schema_test.db") as adapter:
            await init_schema(adapter)
            await init_schema(adapter)

            assert await adapter.table_exists("documents")
