"""
헬스 체크 엔드포인트

GET /health - 서버 상태 확인
"""

from fastapi import APIRouter, Depends

from core.config.loader import Settings
from core.ledger.service import LedgerService
from web.dependencies import get_app_settings, get_ledger_service
from web.models.responses import HealthResponse

router = APIRouter(tags=["health"])

VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(
    service: LedgerService = Depends(get_ledger_service),
    settings: Settings = Depends(get_app_settings),
) -> HealthResponse:
    """서버 상태 확인

    미전송 원격 쓰기가 있으면 status="degraded".
    """
    pending = len(service.sync.pending)
    return HealthResponse(
        status="degraded" if pending else "ok",
        remote_backend=settings.remote.backend,
        pending_writes=pending,
        version=VERSION,
    )
