"""
pytest 공통 fixture 정의

Mock 원격 저장소/캐시/알림으로 구성한 LedgerService와 계정 생성 헬퍼.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.mock.local_cache import InMemoryLocalCache
from adapters.mock.notifier import MockNotifier
from adapters.mock.remote_store import InMemoryRemoteStore
from core.ledger.service import LedgerService


class FixedClock:
    """호출마다 1초씩 증가하는 테스트용 시계 (거래 정렬 결정적)"""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 4, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def cache() -> InMemoryLocalCache:
    return InMemoryLocalCache()


@pytest.fixture
def notifier() -> MockNotifier:
    return MockNotifier()


@pytest_asyncio.fixture
async def service(
    remote: InMemoryRemoteStore,
    cache: InMemoryLocalCache,
    notifier: MockNotifier,
    clock: FixedClock,
) -> LedgerService:
    """Mock 어댑터 기반 LedgerService"""
    ledger = LedgerService(remote, cache, notifier, clock=clock)
    await ledger.start()
    return ledger


@pytest.fixture
def open_account(service: LedgerService):
    """계정 생성 헬퍼 (COMMITTED 확인 후 ID 반환)"""

    async def _open(kind: str, name: str = "테스트 계정", initial_balance: str = "0", **kwargs) -> str:
        result = await service.create_account(kind, name, initial_balance=initial_balance, **kwargs)
        assert result.ok, result.error
        return result.accounts[0].account_id

    return _open
