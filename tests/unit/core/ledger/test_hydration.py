"""
core/ledger/hydration.py 테스트

계정 종류/계정 거래 지연 로딩, 캐시 대체, 미전송 쓰기 계정의 캐시 값 우선 테스트
"""

from decimal import Decimal

import pytest

from adapters.mock.local_cache import InMemoryLocalCache
from adapters.mock.remote_store import InMemoryRemoteStore
from core.constants import CacheKeys
from core.ledger.entry import Account
from core.ledger.errors import AccountNotFound
from core.ledger.records import accounts_to_blob, entries_to_blob
from core.ledger.service import LedgerService
from core.ledger.sync import DataSource, PendingWrite, WriteOp, entries_collection
from core.types import AccountKind


def bank(account_id: str, balance: str) -> Account:
    return Account(account_id, AccountKind.BANK, f"Bank {account_id}", balance=Decimal(balance))


@pytest.fixture
def seeded_remote() -> InMemoryRemoteStore:
    remote = InMemoryRemoteStore()
    remote.put_document("banks", "b1", {"name": "Bank b1", "balance": "100"})
    remote.put_document("banks", "b2", {"name": "Bank b2", "balance": "200"})
    remote.put_document(entries_collection(AccountKind.BANK, "b1"), "tx-1", {"type": "deposit", "amount": "100"})
    return remote


class TestEnsureAccounts:
    """계정 목록 지연 로딩"""

    @pytest.mark.asyncio
    async def test_loads_once(self, seeded_remote: InMemoryRemoteStore, cache: InMemoryLocalCache, clock) -> None:
        service = LedgerService(seeded_remote, cache, clock=clock)

        await service.hydrator.ensure_accounts(AccountKind.BANK)
        await service.hydrator.ensure_accounts(AccountKind.BANK)

        lists = [c for c in seeded_remote.calls if c.operation == "list" and c.collection == "banks"]
        assert len(lists) == 1
        assert service.hydrator.sources[AccountKind.BANK] == DataSource.REMOTE
        assert {a.account_id for a in service.store("bank").list_accounts()} == {"b1", "b2"}

    @pytest.mark.asyncio
    async def test_other_kinds_untouched(self, seeded_remote: InMemoryRemoteStore, cache: InMemoryLocalCache, clock) -> None:
        service = LedgerService(seeded_remote, cache, clock=clock)

        await service.hydrator.ensure_accounts(AccountKind.BANK)

        assert not service.store("customer").hydrated
        assert all(c.collection == "banks" for c in seeded_remote.calls)

    @pytest.mark.asyncio
    async def test_cache_fallback(self, seeded_remote: InMemoryRemoteStore, cache: InMemoryLocalCache, clock) -> None:
        await cache.put("banks", accounts_to_blob([bank("b1", "55")]))
        seeded_remote.fail_reads()
        service = LedgerService(seeded_remote, cache, clock=clock)

        assert await service.get_balance("bank", "b1") == Decimal("55")
        assert service.hydrator.sources[AccountKind.BANK] == DataSource.CACHE

    @pytest.mark.asyncio
    async def test_pending_account_uses_cached_value(
        self, seeded_remote: InMemoryRemoteStore, cache: InMemoryLocalCache, clock,
    ) -> None:
        """원격에 반영되지 않은 로컬 잔액(캐시)을 원격 값보다 우선"""
        await cache.put("banks", accounts_to_blob([bank("b1", "150"), bank("b2", "999"), bank("b3", "30")]))
        await cache.put(CacheKeys.PENDING_WRITES, [
            PendingWrite(WriteOp.BALANCE, "banks", "b1", AccountKind.BANK, "b1", {"balance": "150"}).to_dict(),
            PendingWrite(WriteOp.ADD, "banks", "b3", AccountKind.BANK, "b3", {"name": "Bank b3"}).to_dict(),
        ])
        service = LedgerService(seeded_remote, cache, clock=clock)

        balances = {a.account_id: a.balance for a in await service.list_accounts("bank")}

        # b1: 미전송 → 캐시, b2: 원격, b3: 원격에 아직 없음 → 캐시
        assert balances == {"b1": Decimal("150"), "b2": Decimal("200"), "b3": Decimal("30")}


class TestEnsureEntries:
    """계정 거래 지연 로딩"""

    @pytest.mark.asyncio
    async def test_entries_loaded_on_first_access(
        self, seeded_remote: InMemoryRemoteStore, cache: InMemoryLocalCache, clock,
    ) -> None:
        service = LedgerService(seeded_remote, cache, clock=clock)
        await service.hydrator.ensure_accounts(AccountKind.BANK)
        assert not service.store("bank").entries_loaded("b1")

        entries = await service.list_entries("bank", "b1")

        assert [e.entry_id for e in entries] == ["tx-1"]
        assert service.store("bank").entries_loaded("b1")
        assert not service.store("bank").entries_loaded("b2")
        assert cache.data[CacheKeys.entries("bank", "b1")][0]["id"] == "tx-1"

    @pytest.mark.asyncio
    async def test_pending_account_entries_from_cache(
        self, seeded_remote: InMemoryRemoteStore, cache: InMemoryLocalCache, clock,
    ) -> None:
        service = LedgerService(seeded_remote, cache, clock=clock)
        await service.hydrator.ensure_accounts(AccountKind.BANK)
        local = service.builder.build(AccountKind.BANK, "b1", "deposit", {"amount": "50"})
        await cache.put(CacheKeys.entries("bank", "b1"), entries_to_blob([local]))
        await service.sync.queue([
            PendingWrite(WriteOp.BALANCE, "banks", "b1", AccountKind.BANK, "b1", {"balance": "150"}),
        ])

        entries = await service.list_entries("bank", "b1")

        assert [e.entry_id for e in entries] == [local.entry_id]

    @pytest.mark.asyncio
    async def test_unknown_account(self, seeded_remote: InMemoryRemoteStore, cache: InMemoryLocalCache, clock) -> None:
        service = LedgerService(seeded_remote, cache, clock=clock)

        with pytest.raises(AccountNotFound):
            await service.hydrator.ensure_entries(AccountKind.BANK, "b404")
