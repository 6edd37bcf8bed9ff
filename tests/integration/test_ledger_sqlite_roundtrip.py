"""
SQLite 백엔드 통합 테스트

SQLite 문서 저장소 + SQLite 캐시로 LedgerService를 구성하고
프로세스 재시작(서비스 재생성) 후에도 잔액/거래/연결 관계가 유지되는지 검증.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal
from pathlib import Path

import pytest

from adapters.db.document_store import SQLiteDocumentStore
from adapters.db.local_cache import SQLiteLocalCache
from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.constants import CacheKeys
from core.ledger.service import LedgerService
from core.types import AccountKind


@asynccontextmanager
async def open_service(tmp_path: Path, clock) -> AsyncIterator[LedgerService]:
    """재시작 시뮬레이션: 매번 새 연결과 새 LedgerService"""
    async with SQLiteAdapter(tmp_path / "store.db") as store_db, SQLiteAdapter(tmp_path / "cache.db") as cache_db:
        await init_schema(store_db)
        await init_schema(cache_db)
        service = LedgerService(SQLiteDocumentStore(store_db), SQLiteLocalCache(cache_db), clock=clock)
        await service.start()
        yield service


class TestSqliteRoundtrip:
    """재시작 간 상태 유지"""

    @pytest.mark.asyncio
    async def test_order_survives_restart(self, tmp_path: Path, clock) -> None:
        async with open_service(tmp_path, clock) as service:
            customer = await service.create_account("customer", "Karim", contact="01700000000")
            supplier = await service.create_account("supplier", "Guangzhou", supplier_type="RMB")
            customer_id = customer.accounts[0].account_id
            supplier_id = supplier.accounts[0].account_id

            result = await service.create_order(customer_id, supplier_id, "1000", "16.5", "8", notes="batch 1")
            assert result.state.value == "COMMITTED"

        async with open_service(tmp_path, clock) as service:
            assert await service.get_balance("customer", customer_id) == Decimal("16500")
            assert await service.get_balance("supplier", supplier_id) == Decimal("125")

            customer_entries = await service.list_entries("customer", customer_id)
            supplier_entries = await service.list_entries("supplier", supplier_id)
            account = await service.get_account("customer", customer_id)

        order, bill = customer_entries[0], supplier_entries[0]
        assert order.linked_entry_id == bill.entry_id
        assert bill.linked_entry_id == order.entry_id
        assert bill.linked_kind == AccountKind.CUSTOMER
        assert order.description == "batch 1"
        assert account.contact == "01700000000"

    @pytest.mark.asyncio
    async def test_cascade_delete_after_restart(self, tmp_path: Path, clock) -> None:
        async with open_service(tmp_path, clock) as service:
            customer_id = (await service.create_account("customer", "Karim")).accounts[0].account_id
            bank_id = (await service.create_account("bank", "City Bank")).accounts[0].account_id
            result = await service.receive_payment(customer_id, bank_id, "2500")
            payment = next(e for e in result.entries if e.kind == AccountKind.CUSTOMER)

        async with open_service(tmp_path, clock) as service:
            result = await service.delete_entry("customer", customer_id, payment.entry_id)
            assert result.ok
            assert len(result.entries) == 2

        async with open_service(tmp_path, clock) as service:
            assert await service.get_balance("customer", customer_id) == Decimal("0")
            assert await service.get_balance("bank", bank_id) == Decimal("0")
            assert await service.list_entries("bank", bank_id) == []

    @pytest.mark.asyncio
    async def test_edit_rebases_counterpart(self, tmp_path: Path, clock) -> None:
        async with open_service(tmp_path, clock) as service:
            customer_id = (await service.create_account("customer", "Karim")).accounts[0].account_id
            supplier_id = (await service.create_account("supplier", "Guangzhou")).accounts[0].account_id
            result = await service.create_order(customer_id, supplier_id, "1000", "16.5", "8")
            order = next(e for e in result.entries if e.kind == AccountKind.CUSTOMER)

        async with open_service(tmp_path, clock) as service:
            result = await service.edit_entry("customer", customer_id, order.entry_id, {"rmb_amount": "2000"})
            assert result.ok

        async with open_service(tmp_path, clock) as service:
            assert await service.get_balance("customer", customer_id) == Decimal("33000")
            assert await service.get_balance("supplier", supplier_id) == Decimal("250")

    @pytest.mark.asyncio
    async def test_delete_account_purges_documents(self, tmp_path: Path, clock) -> None:
        async with open_service(tmp_path, clock) as service:
            bank_id = (await service.create_account("bank", "City Bank")).accounts[0].account_id
            await service.post_entry("bank", bank_id, "deposit", {"amount": "500"})
            await service.list_entries("bank", bank_id)

            result = await service.delete_account("bank", bank_id)
            assert result.ok

            remote = service.sync.remote
            cache = service.sync.cache
            assert await remote.get("banks", bank_id) is None
            assert await remote.list_collection(f"banks/{bank_id}/transactions") == []
            assert await cache.get(CacheKeys.entries("bank", bank_id)) is None

        async with open_service(tmp_path, clock) as service:
            assert await service.list_accounts("bank") == []

    @pytest.mark.asyncio
    async def test_cache_fallback_when_store_unreadable(self, tmp_path: Path, clock) -> None:
        """원격 읽기 실패 시 캐시의 마지막 상태로 시작"""
        async with open_service(tmp_path, clock) as service:
            wallet_id = (await service.create_account("wallet", "Binance", initial_balance="40")).accounts[0].account_id

        async with open_service(tmp_path, clock) as service:
            await service.sync.remote.db.execute("DROP TABLE documents")
            assert await service.get_balance("wallet", wallet_id) == Decimal("40")
