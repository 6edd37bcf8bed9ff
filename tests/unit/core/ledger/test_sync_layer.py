"""
core/ledger/sync.py 테스트

write-through 순서, outbox 보관/복원/재전송, read-through 캐시 대체 테스트
"""

from decimal import Decimal

import pytest

from adapters.mock.local_cache import InMemoryLocalCache
from adapters.mock.remote_store import InMemoryRemoteStore
from core.constants import CacheKeys
from core.ledger.entry import Account
from core.ledger.errors import RemoteWriteFailure
from core.ledger.sync import (
    DataSource,
    PendingWrite,
    SyncLayer,
    WriteOp,
    entries_collection,
)
from core.types import AccountKind


def write(op: WriteOp, doc_id: str, account_id: str = "b1", fields: dict | None = None) -> PendingWrite:
    collection = "banks" if op in (WriteOp.BALANCE, WriteOp.UPDATE) else entries_collection(AccountKind.BANK, account_id)
    return PendingWrite(op, collection, doc_id, AccountKind.BANK, account_id, fields, "mut-1")


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    store = InMemoryRemoteStore()
    store.put_document("banks", "b1", {"name": "City Bank", "balance": "100"})
    return store


@pytest.fixture
def sync(remote: InMemoryRemoteStore, cache: InMemoryLocalCache) -> SyncLayer:
    return SyncLayer(remote, cache)


class TestPendingWrite:
    """PendingWrite 직렬화"""

    def test_dict_roundtrip(self) -> None:
        pending = write(WriteOp.ADD, "tx-1", fields={"type": "deposit", "amount": "5"})
        data = pending.to_dict()

        assert data["op"] == "add"
        assert data["kind"] == "bank"
        assert PendingWrite.from_dict(data) == pending

    def test_touches(self) -> None:
        pending = write(WriteOp.BALANCE, "b1")
        assert pending.touches(AccountKind.BANK, "b1")
        assert not pending.touches(AccountKind.WALLET, "b1")


class TestWriteAll:
    """write-through"""

    @pytest.mark.asyncio
    async def test_all_writes_succeed(self, sync: SyncLayer, remote: InMemoryRemoteStore) -> None:
        writes = [
            write(WriteOp.ADD, "tx-1", fields={"type": "deposit", "amount": "5"}),
            write(WriteOp.BALANCE, "b1", fields={"balance": "105"}),
        ]
        queued, failure = await sync.write_all(writes)

        assert queued == [] and failure is None
        assert remote.document("banks", "b1") == {"name": "City Bank", "balance": "105"}

    @pytest.mark.asyncio
    async def test_first_failure_queues_rest(
        self, sync: SyncLayer, remote: InMemoryRemoteStore, cache: InMemoryLocalCache,
    ) -> None:
        remote.fail_writes_after(1)
        writes = [
            write(WriteOp.ADD, "tx-1", fields={"type": "deposit", "amount": "5"}),
            write(WriteOp.BALANCE, "b1", fields={"balance": "105"}),
        ]

        queued, failure = await sync.write_all(writes)

        assert isinstance(failure, RemoteWriteFailure)
        assert failure.details["op"] == "balance"
        assert queued == writes[1:]
        assert sync.has_pending(AccountKind.BANK, "b1")
        assert cache.data[CacheKeys.PENDING_WRITES] == [writes[1].to_dict()]

    @pytest.mark.asyncio
    async def test_blocked_account_not_attempted(self, sync: SyncLayer, remote: InMemoryRemoteStore) -> None:
        await sync.queue([write(WriteOp.BALANCE, "b1", fields={"balance": "1"})])
        remote.calls.clear()

        queued, failure = await sync.write_all([write(WriteOp.ADD, "tx-2", fields={"type": "deposit", "amount": "1"})])

        assert failure is not None
        assert len(queued) == 1
        assert remote.write_calls == []
        assert len(sync.pending) == 2

    @pytest.mark.asyncio
    async def test_other_account_not_blocked(self, sync: SyncLayer) -> None:
        await sync.queue([write(WriteOp.BALANCE, "b1", fields={"balance": "1"})])

        queued, failure = await sync.write_all([
            write(WriteOp.ADD, "tx-9", account_id="b2", fields={"type": "deposit", "amount": "1"}),
        ])
        assert queued == [] and failure is None

    @pytest.mark.asyncio
    async def test_purge_deletes_collection(self, sync: SyncLayer, remote: InMemoryRemoteStore) -> None:
        collection = entries_collection(AccountKind.BANK, "b1")
        remote.put_document(collection, "tx-1", {"type": "deposit", "amount": "1"})
        remote.put_document(collection, "tx-2", {"type": "deposit", "amount": "2"})

        await sync.write(PendingWrite(WriteOp.PURGE, collection, "", AccountKind.BANK, "b1"))

        assert await remote.list_collection(collection) == []

    @pytest.mark.asyncio
    async def test_outbox_persist_failure_keeps_memory(self, sync: SyncLayer, cache: InMemoryLocalCache) -> None:
        cache.fail_writes = True
        ok = await sync.queue([write(WriteOp.BALANCE, "b1", fields={"balance": "1"})])

        assert ok is False
        assert len(sync.pending) == 1


class TestOutbox:
    """outbox 복원/재전송"""

    @pytest.mark.asyncio
    async def test_load_outbox_restores_from_cache(self, remote: InMemoryRemoteStore, cache: InMemoryLocalCache) -> None:
        pending = write(WriteOp.BALANCE, "b1", fields={"balance": "150"})
        await cache.put(CacheKeys.PENDING_WRITES, [pending.to_dict()])

        sync = SyncLayer(remote, cache)
        restored = await sync.load_outbox()

        assert restored == [pending]
        assert sync.has_pending(AccountKind.BANK)

    @pytest.mark.asyncio
    async def test_load_outbox_cache_failure_starts_empty(self, remote: InMemoryRemoteStore) -> None:
        sync = SyncLayer(remote, InMemoryLocalCache(fail_reads=True))
        assert await sync.load_outbox() == []

    @pytest.mark.asyncio
    async def test_replay_resolves_balance_at_replay_time(
        self, sync: SyncLayer, remote: InMemoryRemoteStore, cache: InMemoryLocalCache,
    ) -> None:
        await sync.queue([
            write(WriteOp.ADD, "tx-1", fields={"type": "deposit", "amount": "5"}),
            write(WriteOp.BALANCE, "b1", fields={"balance": "105"}),
        ])

        result = await sync.replay(lambda kind, account_id: {"balance": "142", "updatedAt": "2026-03-02"})

        assert result.replayed == 2
        assert result.remaining == 0
        assert result.pushed == {(AccountKind.BANK, "b1")}
        assert remote.document("banks", "b1")["balance"] == "142"
        assert CacheKeys.PENDING_WRITES not in cache.data

    @pytest.mark.asyncio
    async def test_replay_drops_balance_for_deleted_account(self, sync: SyncLayer, remote: InMemoryRemoteStore) -> None:
        await sync.queue([write(WriteOp.BALANCE, "b1", fields={"balance": "105"})])
        remote.calls.clear()

        result = await sync.replay(lambda kind, account_id: None)

        assert result.replayed == 0
        assert result.remaining == 0
        assert remote.write_calls == []

    @pytest.mark.asyncio
    async def test_replay_stops_at_first_failure(self, sync: SyncLayer, remote: InMemoryRemoteStore) -> None:
        await sync.queue([
            write(WriteOp.ADD, "tx-1", fields={"type": "deposit", "amount": "5"}),
            write(WriteOp.BALANCE, "b1", fields={"balance": "105"}),
        ])
        remote.fail_writes_after(1)

        result = await sync.replay(lambda kind, account_id: {"balance": "105"})

        assert result.replayed == 1
        assert result.remaining == 1
        assert result.error is not None
        assert result.pushed == set()
        assert sync.pending[0].op == WriteOp.BALANCE


class TestReadThrough:
    """read-through"""

    @pytest.mark.asyncio
    async def test_remote_read_mirrors_cache(self, sync: SyncLayer, cache: InMemoryLocalCache) -> None:
        accounts, source = await sync.load_accounts(AccountKind.BANK)

        assert source == DataSource.REMOTE
        assert accounts[0].balance == Decimal("100")
        assert cache.data["banks"][0]["id"] == "b1"

    @pytest.mark.asyncio
    async def test_remote_failure_falls_back_to_cache(
        self, sync: SyncLayer, remote: InMemoryRemoteStore, cache: InMemoryLocalCache,
    ) -> None:
        await sync.mirror_accounts(AccountKind.BANK, [Account("b1", AccountKind.BANK, "City Bank", balance=Decimal("77"))])
        remote.fail_reads()

        accounts, source = await sync.load_accounts(AccountKind.BANK)

        assert source == DataSource.CACHE
        assert accounts[0].balance == Decimal("77")

    @pytest.mark.asyncio
    async def test_both_unavailable_returns_empty(self, remote: InMemoryRemoteStore) -> None:
        sync = SyncLayer(remote, InMemoryLocalCache(fail_reads=True))
        remote.fail_reads()

        accounts, source = await sync.load_accounts(AccountKind.BANK)
        assert accounts == [] and source == DataSource.CACHE

    @pytest.mark.asyncio
    async def test_fetch_entries_skips_unreadable(self, sync: SyncLayer, remote: InMemoryRemoteStore) -> None:
        collection = entries_collection(AccountKind.BANK, "b1")
        remote.put_document(collection, "tx-1", {"type": "deposit", "amount": "5"})
        remote.put_document(collection, "tx-2", {"type": "teleport", "amount": "5"})

        entries = await sync.fetch_entries(AccountKind.BANK, "b1")
        assert [e.entry_id for e in entries] == ["tx-1"]

    @pytest.mark.asyncio
    async def test_find_remote_entry(self, sync: SyncLayer, remote: InMemoryRemoteStore) -> None:
        collection = entries_collection(AccountKind.BANK, "b1")
        remote.put_document(collection, "tx-1", {"type": "credit", "amount": "5"})

        found = await sync.find_remote_entry(AccountKind.BANK, "b1", "tx-1")
        assert found.amount == Decimal("5")
        assert await sync.find_remote_entry(AccountKind.BANK, "b1", "tx-404") is None

        remote.fail_reads()
        assert await sync.find_remote_entry(AccountKind.BANK, "b1", "tx-1") is None

    @pytest.mark.asyncio
    async def test_find_remote_entry_unreadable(self, sync: SyncLayer, remote: InMemoryRemoteStore) -> None:
        """type 없는 문서는 없는 거래로 처리"""
        remote.put_document(entries_collection(AccountKind.BANK, "b1"), "tx-1", {"amount": "5"})

        assert await sync.find_remote_entry(AccountKind.BANK, "b1", "tx-1") is None
