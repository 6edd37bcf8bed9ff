"""
FastAPI 애플리케이션

라우터 등록 및 앱 설정.
"""

import logging
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.factory import open_runtime
from core.config.loader import get_settings
from core.logging import setup_logging
from web.dependencies import get_ledger_service_or_none, set_ledger_service
from web.routes import accounts, dashboard, entries, health, postings, sync

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 생명주기 관리

    LedgerService가 미리 주입되지 않았으면 설정에 따라 런타임 구성.
    """
    async with AsyncExitStack() as stack:
        owned = False
        if get_ledger_service_or_none() is None:
            settings = get_settings().ledger
            setup_logging("web", console_level=logging.getLevelName(settings.log_level))
            service = await stack.enter_async_context(open_runtime(settings))
            set_ledger_service(service)
            owned = True
            logger.info("Web: LedgerService 초기화 완료", extra={"remote_backend": settings.remote.backend})

        yield

        if owned:
            set_ledger_service(None)
            logger.info("Web: LedgerService 종료")


app = FastAPI(
    title="RMB Ledger API",
    description="거래 상대방별 잔액 원장 API",
    version=health.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS 설정 (개발용)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =========================================================================
# API 라우터 등록
# =========================================================================

app.include_router(health.router)
app.include_router(accounts.router)
app.include_router(entries.router)
app.include_router(postings.router)
app.include_router(sync.router)
app.include_router(dashboard.router)
