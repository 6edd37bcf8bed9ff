"""
동기화 API 라우터

- POST /api/sync/refresh   미전송 쓰기 재전송 + 원격 재조정
- GET  /api/sync/pending   미전송 원격 쓰기 목록
"""

from fastapi import APIRouter, Depends, Query

from core.ledger.errors import LedgerError
from core.ledger.service import LedgerService
from core.types import AccountKind
from web.dependencies import get_ledger_service, raise_ledger_error
from web.models.responses import PendingWriteResponse, ReconcileResponse

router = APIRouter(prefix="/api/sync", tags=["Sync"])


@router.post("/refresh", response_model=ReconcileResponse)
async def refresh(
    kind: AccountKind | None = Query(default=None, description="재조정할 계정 종류 (기본: 전체)"),
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        report = await service.refresh(kind)
    except LedgerError as e:
        raise_ledger_error(e)
    return report.to_dict()


@router.get("/pending", response_model=list[PendingWriteResponse])
async def list_pending(service: LedgerService = Depends(get_ledger_service)):
    pending = await service.sync.load_outbox()
    return [w.to_dict() for w in pending]
