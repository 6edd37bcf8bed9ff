"""
대시보드 API 라우터

GET /api/dashboard - 순자산 요약 (supplier 잔액은 부호 반전)
"""

from fastapi import APIRouter, Depends, Query

from core.ledger.errors import LedgerError
from core.ledger.service import LedgerService
from web.dependencies import get_ledger_service, raise_ledger_error
from web.models.responses import DashboardResponse

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    usd_rate: str | None = Query(default=None, description="BDT per USD (기본: 설정값)"),
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        summary = await service.dashboard(usd_rate)
    except LedgerError as e:
        raise_ledger_error(e)
    return summary.to_dict()
