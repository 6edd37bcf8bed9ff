"""
계정 잠금

계정당 하나의 asyncio.Lock. 여러 계정을 건드리는 작업은
(kind, account_id) 사전순으로 잠금을 획득해 교착을 방지.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from core.types import AccountKind

logger = logging.getLogger(__name__)

AccountKey = tuple[AccountKind, str]


def lock_order(keys: Iterable[AccountKey]) -> list[AccountKey]:
    """중복 제거 후 전역 잠금 순서로 정렬"""
    unique = {(AccountKind(kind), account_id) for kind, account_id in keys}
    return sorted(unique, key=lambda key: (key[0].value, key[1]))


class AccountLocks:
    """계정별 잠금 레지스트리"""

    def __init__(self) -> None:
        self._locks: dict[AccountKey, asyncio.Lock] = {}

    def get(self, kind: AccountKind, account_id: str) -> asyncio.Lock:
        """계정 잠금 조회 (없으면 생성)"""
        key = (AccountKind(kind), account_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, kind: AccountKind, account_id: str) -> bool:
        lock = self._locks.get((AccountKind(kind), account_id))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, keys: Iterable[AccountKey]) -> AsyncIterator[list[AccountKey]]:
        """여러 계정 잠금을 정해진 순서로 획득

        Example:
            async with locks.hold([(AccountKind.CUSTOMER, "c1"), (AccountKind.SUPPLIER, "s1")]):
                ...
        """
        ordered = lock_order(keys)
        acquired: list[asyncio.Lock] = []
        try:
            for kind, account_id in ordered:
                lock = self.get(kind, account_id)
                await lock.acquire()
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()

    def forget(self, kind: AccountKind, account_id: str) -> None:
        """삭제된 계정의 잠금 제거 (잠겨 있으면 유지)"""
        key = (AccountKind(kind), account_id)
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]
