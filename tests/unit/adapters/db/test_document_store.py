"""
SQLite 문서 저장소 테스트

SQLiteDocumentStore의 IRemoteStore 동작 (목록 순서, 덮어쓰기 추가, 부분 갱신,
삭제, 변경 구독, 에러 변환) 테스트
"""

from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.document_store import SQLiteDocumentStore
from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from adapters.errors import RemoteStoreError
from adapters.interfaces import IRemoteStore


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> SQLiteDocumentStore:
    async with SQLiteAdapter(tmp_path / "store.db") as db:
        await init_schema(db)
        yield SQLiteDocumentStore(db)


class TestSQLiteDocumentStore:
    """SQLiteDocumentStore 테스트"""

    def test_protocol(self, tmp_path: Path) -> None:
        assert isinstance(SQLiteDocumentStore(SQLiteAdapter(tmp_path / "x.db")), IRemoteStore)

    @pytest.mark.asyncio
    async def test_add_and_list_in_order(self, store: SQLiteDocumentStore) -> None:
        await store.add("customers", {"name": "Rahim", "balance": "0"}, doc_id="c2")
        await store.add("customers", {"name": "Karim", "balance": "10"}, doc_id="c1")

        docs = await store.list_collection("customers")

        assert [d["id"] for d in docs] == ["c2", "c1"]
        assert docs[1] == {"name": "Karim", "balance": "10", "id": "c1"}

    @pytest.mark.asyncio
    async def test_add_generates_id(self, store: SQLiteDocumentStore) -> None:
        doc_id = await store.add("banks", {"name": "City Bank"})

        assert doc_id
        assert (await store.get("banks", doc_id))["name"] == "City Bank"

    @pytest.mark.asyncio
    async def test_add_same_id_replaces(self, store: SQLiteDocumentStore) -> None:
        """같은 ID 재전송은 문서 1개 유지"""
        await store.add("banks/b1/transactions", {"type": "deposit", "amount": "5", "note": "x"}, doc_id="tx-1")
        await store.add("banks/b1/transactions", {"type": "deposit", "amount": "7"}, doc_id="tx-1")

        docs = await store.list_collection("banks/b1/transactions")
        assert docs == [{"type": "deposit", "amount": "7", "id": "tx-1"}]

    @pytest.mark.asyncio
    async def test_update_merges(self, store: SQLiteDocumentStore) -> None:
        await store.add("banks", {"name": "City Bank", "balance": "100"}, doc_id="b1")

        await store.update("banks", "b1", {"balance": "150", "id": "ignored"})

        assert await store.get("banks", "b1") == {"name": "City Bank", "balance": "150", "id": "b1"}

    @pytest.mark.asyncio
    async def test_update_missing_creates(self, store: SQLiteDocumentStore) -> None:
        await store.update("banks", "b9", {"balance": "1"})
        assert await store.get("banks", "b9") == {"balance": "1", "id": "b9"}

    @pytest.mark.asyncio
    async def test_get_missing(self, store: SQLiteDocumentStore) -> None:
        assert await store.get("banks", "nope") is None

    @pytest.mark.asyncio
    async def test_delete(self, store: SQLiteDocumentStore) -> None:
        await store.add("banks", {"name": "City Bank"}, doc_id="b1")

        await store.delete("banks", "b1")
        await store.delete("banks", "b1")

        assert await store.list_collection("banks") == []

    @pytest.mark.asyncio
    async def test_unicode_roundtrip(self, store: SQLiteDocumentStore) -> None:
        await store.add("customers", {"name": "রহিম ট্রেডার্স", "notes": "첫 거래"}, doc_id="c1")
        assert (await store.get("customers", "c1"))["name"] == "রহিম ট্রেডার্স"

    @pytest.mark.asyncio
    async def test_subscribe(self, store: SQLiteDocumentStore) -> None:
        seen: list[list[str]] = []
        unsubscribe = store.subscribe("banks", lambda docs: seen.append([d["id"] for d in docs]))

        await store.add("banks", {"name": "A"}, doc_id="b1")
        await store.add("wallets", {"name": "W"}, doc_id="w1")
        unsubscribe()
        await store.add("banks", {"name": "B"}, doc_id="b2")

        assert seen == [["b1"]]

    @pytest.mark.asyncio
    async def test_subscriber_error_does_not_fail_write(self, store: SQLiteDocumentStore) -> None:
        def broken(docs):
            raise RuntimeError("listener bug")

        store.subscribe("banks", broken)
        await store.add("banks", {"name": "A"}, doc_id="b1")

        assert await store.get("banks", "b1") is not None

    @pytest.mark.asyncio
    async def test_sql_error_wrapped(self, tmp_path: Path) -> None:
        db = SQLiteAdapter(tmp_path / "store.db")
        await db.connect()
        await init_schema(db)
        store = SQLiteDocumentStore(db)
        await db.execute("DROP TABLE documents")

        with pytest.raises(RemoteStoreError) as exc_info:
            await store.list_collection("banks")

        assert exc_info.value.operation == "list"
        assert exc_info.value.collection == "banks"
        await db.close()
