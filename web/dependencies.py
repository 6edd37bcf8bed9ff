"""
의존성 주입

FastAPI의 Depends를 사용한 의존성 관리.
LedgerService는 프로세스당 하나 (lifespan에서 생성, 테스트에서는 직접 주입).
"""

from fastapi import HTTPException, Response

from core.config.loader import Settings, get_settings
from core.ledger.errors import (
    AccountNotFound,
    EntryNotFound,
    InsufficientBalance,
    LedgerError,
)
from core.ledger.pipeline import MutationResult
from core.ledger.service import LedgerService
from core.domain.state_machines import MutationState
from web.models.responses import MutationResponse

# lifespan 또는 테스트에서 설정되는 전역 LedgerService
_ledger_service: LedgerService | None = None


def get_app_settings() -> Settings:
    """애플리케이션 설정 반환"""
    return get_settings()


def set_ledger_service(service: LedgerService | None) -> None:
    """LedgerService 설정 (None이면 해제)"""
    global _ledger_service
    _ledger_service = service


def get_ledger_service_or_none() -> LedgerService | None:
    return _ledger_service


def get_ledger_service() -> LedgerService:
    """LedgerService 반환

    Raises:
        HTTPException: 초기화 전이면 503
    """
    if _ledger_service is None:
        raise HTTPException(status_code=503, detail={"code": "Unavailable", "message": "Ledger가 초기화되지 않았습니다"})
    return _ledger_service


# =========================================================================
# LedgerError → HTTP
# =========================================================================


def status_for(error: LedgerError) -> int:
    """에러 코드별 HTTP 상태"""
    if isinstance(error, (AccountNotFound, EntryNotFound)):
        return 404
    if isinstance(error, InsufficientBalance):
        return 409
    return 400


def raise_ledger_error(error: LedgerError) -> None:
    """LedgerError를 구조화된 에러 본문의 HTTPException으로 변환"""
    raise HTTPException(status_code=status_for(error), detail=error.to_dict()) from error


def mutation_response(result: MutationResult, response: Response, created: bool = False) -> MutationResponse:
    """MutationResult → 응답

    - REJECTED: 4xx (구조화된 에러)
    - DEGRADED: 202 (로컬 반영 완료, 원격 저장 대기)
    - COMMITTED: 200 (생성 요청은 201)
    """
    if result.state == MutationState.REJECTED:
        assert result.error is not None
        raise HTTPException(status_code=status_for(result.error), detail=result.error.to_dict())

    if result.state == MutationState.DEGRADED:
        response.status_code = 202
    elif created:
        response.status_code = 201
    return MutationResponse.model_validate(result.to_dict())
