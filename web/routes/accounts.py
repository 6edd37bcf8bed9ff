"""
계정 API 라우터

- GET    /api/accounts/{kind}                        계정 목록
- POST   /api/accounts/{kind}                        계정 생성
- GET    /api/accounts/{kind}/{account_id}           계정 조회
- PATCH  /api/accounts/{kind}/{account_id}           이름/연락처 수정
- DELETE /api/accounts/{kind}/{account_id}           계정 삭제 (거래 포함)
- GET    /api/accounts/{kind}/{account_id}/balance   잔액 조회
"""

import logging

from fastapi import APIRouter, Depends, Response

from core.ledger.errors import LedgerError
from core.ledger.records import account_view, dec_str
from core.ledger.service import LedgerService
from core.types import AccountKind
from web.dependencies import get_ledger_service, mutation_response, raise_ledger_error
from web.models.requests import CreateAccountRequest, UpdateAccountRequest
from web.models.responses import AccountResponse, BalanceResponse, MutationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accounts", tags=["Accounts"])


@router.get("/{kind}", response_model=list[AccountResponse])
async def list_accounts(
    kind: AccountKind,
    service: LedgerService = Depends(get_ledger_service),
):
    """계정 목록 (등록 순서)"""
    accounts = await service.list_accounts(kind)
    return [account_view(a) for a in accounts]


@router.post("/{kind}", response_model=MutationResponse, status_code=201)
async def create_account(
    kind: AccountKind,
    request: CreateAccountRequest,
    response: Response,
    service: LedgerService = Depends(get_ledger_service),
):
    """계정 생성"""
    result = await service.create_account(
        kind,
        request.name,
        contact=request.contact,
        initial_balance=request.initial_balance,
        supplier_type=request.supplier_type,
    )
    return mutation_response(result, response, created=True)


@router.get("/{kind}/{account_id}", response_model=AccountResponse)
async def get_account(
    kind: AccountKind,
    account_id: str,
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        account = await service.get_account(kind, account_id)
    except LedgerError as e:
        raise_ledger_error(e)
    return account_view(account)


@router.patch("/{kind}/{account_id}", response_model=MutationResponse)
async def update_account(
    kind: AccountKind,
    account_id: str,
    request: UpdateAccountRequest,
    response: Response,
    service: LedgerService = Depends(get_ledger_service),
):
    """계정 이름/연락처 수정"""
    result = await service.update_account(kind, account_id, name=request.name, contact=request.contact)
    return mutation_response(result, response)


@router.delete("/{kind}/{account_id}", response_model=MutationResponse)
async def delete_account(
    kind: AccountKind,
    account_id: str,
    response: Response,
    service: LedgerService = Depends(get_ledger_service),
):
    """계정 삭제 (거래 로그, 원격 거래 문서, 캐시 함께 삭제)"""
    result = await service.delete_account(kind, account_id)
    return mutation_response(result, response)


@router.get("/{kind}/{account_id}/balance", response_model=BalanceResponse)
async def get_balance(
    kind: AccountKind,
    account_id: str,
    service: LedgerService = Depends(get_ledger_service),
):
    """현재 잔액 (전체 정밀도 문자열)"""
    try:
        balance = await service.get_balance(kind, account_id)
    except LedgerError as e:
        raise_ledger_error(e)
    return BalanceResponse(
        kind=kind.value,
        account_id=account_id,
        balance=dec_str(balance),
        currency=kind.currency,
    )
