"""
지연 로딩 (Lazy Hydration)

- 계정 종류의 첫 접근: 계정 목록 로드 (원격 우선, 실패 시 캐시)
- 계정 거래의 첫 접근: 거래 로그 로드
- 미전송 쓰기가 있는 계정은 원격 값을 쓰지 않고 캐시 값으로 로드
  (원격에는 아직 반영되지 않은 로컬 낙관적 상태가 캐시에 있음)
"""

import asyncio
import logging

from core.ledger.account_store import AccountStore
from core.ledger.entry import Account
from core.ledger.sync import DataSource, SyncLayer
from core.types import AccountKind

logger = logging.getLogger(__name__)


class Hydrator:
    """AccountStore 지연 로딩

    Args:
        stores: 계정 종류별 AccountStore
        sync: 동기화 계층
    """

    def __init__(self, stores: dict[AccountKind, AccountStore], sync: SyncLayer):
        self.stores = stores
        self.sync = sync
        self._kind_locks: dict[AccountKind, asyncio.Lock] = {kind: asyncio.Lock() for kind in AccountKind}
        self.sources: dict[AccountKind, DataSource] = {}

    async def ensure_accounts(self, kind: AccountKind) -> None:
        """계정 목록 로드 (최초 1회)"""
        store = self.stores[kind]
        if store.hydrated:
            return
        async with self._kind_locks[kind]:
            if store.hydrated:
                return
            await self.sync.load_outbox()
            pending = self.sync.has_pending(kind)
            # 원격 결과가 캐시를 덮기 전에 로컬 낙관적 상태 확보
            cached = await self.sync.cached_accounts(kind) if pending else []
            accounts, source = await self.sync.load_accounts(kind, mirror=not pending)
            if source == DataSource.REMOTE and pending:
                accounts = self._overlay_pending(kind, accounts, cached)
                await self.sync.mirror_accounts(kind, accounts)
            store.load_accounts(accounts)
            self.sources[kind] = source
            logger.info(
                "Accounts hydrated",
                extra={"kind": kind.value, "count": len(accounts), "source": source.value},
            )

    def _overlay_pending(self, kind: AccountKind, remote: list[Account], cached_accounts: list[Account]) -> list[Account]:
        """미전송 쓰기가 있는 계정은 캐시 값으로 교체 (캐시에 없으면 제외)"""
        cached = {a.account_id: a for a in cached_accounts}
        merged: list[Account] = []
        seen: set[str] = set()
        for account in remote:
            seen.add(account.account_id)
            if self.sync.has_pending(kind, account.account_id):
                local = cached.get(account.account_id)
                if local is not None:
                    merged.append(local)
                continue
            merged.append(account)
        # 원격에 아직 생성되지 않은 계정
        for account_id, account in cached.items():
            if account_id not in seen and self.sync.has_pending(kind, account_id):
                merged.append(account)
        return merged

    async def ensure_entries(self, kind: AccountKind, account_id: str) -> None:
        """계정 거래 로그 로드 (최초 1회)

        호출자는 해당 계정의 잠금을 잡은 상태여야 함.

        Raises:
            AccountNotFound: 없는 계정
        """
        await self.ensure_accounts(kind)
        store = self.stores[kind]
        store.get_account(account_id)
        if store.entries_loaded(account_id):
            return

        if self.sync.has_pending(kind, account_id):
            entries = await self.sync.cached_entries(kind, account_id)
            source = DataSource.CACHE
        else:
            entries, source = await self.sync.load_entries(kind, account_id)
        store.load_entries(account_id, entries)
        logger.debug(
            "Entries hydrated",
            extra={
                "kind": kind.value,
                "account_id": account_id,
                "count": len(entries),
                "source": source.value,
            },
        )
