"""
런타임 구성

설정(LedgerSettings)에 따라 원격 저장소, 로컬 캐시, 알림 어댑터를 생성하고
LedgerService를 묶어 반환. CLI와 Web이 공통으로 사용.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path

from adapters.db.document_store import SQLiteDocumentStore
from adapters.db.local_cache import SQLiteLocalCache
from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from adapters.interfaces import ILocalCache, INotifier, IRemoteStore
from adapters.mock.local_cache import InMemoryLocalCache
from adapters.mock.remote_store import InMemoryRemoteStore
from adapters.remote.rest_store import HttpRemoteStore
from adapters.slack.notifier import SlackNotifier
from core.config.loader import LedgerSettings
from core.ledger.service import LedgerService

logger = logging.getLogger(__name__)


async def _open_sqlite(stack: AsyncExitStack, opened: dict[str, SQLiteAdapter], path: Path) -> SQLiteAdapter:
    """경로별 SQLite 연결 1개 (같은 파일이면 공유)"""
    key = str(path)
    if key not in opened:
        adapter = await stack.enter_async_context(SQLiteAdapter(path))
        await init_schema(adapter)
        opened[key] = adapter
    return opened[key]


@asynccontextmanager
async def open_runtime(settings: LedgerSettings) -> AsyncIterator[LedgerService]:
    """설정에 맞는 어댑터로 LedgerService 구성

    사용 예시:
    ```python
    async with open_runtime(get_settings().ledger) as service:
        await service.post_entry("bank", bank_id, "deposit", {"amount": "500"})
    ```
    """
    async with AsyncExitStack() as stack:
        opened: dict[str, SQLiteAdapter] = {}

        remote: IRemoteStore
        if settings.remote.backend == "http":
            remote = await stack.enter_async_context(HttpRemoteStore(
                base_url=settings.remote.base_url,
                api_token=settings.remote.api_token or None,
                timeout=settings.remote.timeout_sec,
            ))
        elif settings.remote.backend == "memory":
            remote = InMemoryRemoteStore()
        else:
            remote = SQLiteDocumentStore(await _open_sqlite(stack, opened, settings.remote.sqlite_path))

        cache: ILocalCache
        if settings.cache.backend == "memory":
            cache = InMemoryLocalCache()
        else:
            cache = SQLiteLocalCache(await _open_sqlite(stack, opened, settings.cache.path))

        notifier: INotifier | None = None
        if settings.notifier.enabled:
            notifier = await stack.enter_async_context(SlackNotifier(
                webhook_url=settings.notifier.slack_webhook_url,
                channel=settings.notifier.channel or None,
            ))

        service = LedgerService(
            remote,
            cache,
            notifier,
            default_dhs_rate=settings.rates.dhs_rate,
            usd_rate=settings.rates.usd_rate,
        )
        await service.start()
        logger.info(
            "Runtime opened",
            extra={
                "remote_backend": settings.remote.backend,
                "cache_backend": settings.cache.backend,
                "notifier": notifier is not None,
            },
        )
        yield service
