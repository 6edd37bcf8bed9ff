"""
거래 API 라우터

- GET    /api/accounts/{kind}/{account_id}/entries             거래 목록 (최신 우선)
- POST   /api/accounts/{kind}/{account_id}/entries             거래 기록
- PATCH  /api/accounts/{kind}/{account_id}/entries/{entry_id}  거래 수정
- DELETE /api/accounts/{kind}/{account_id}/entries/{entry_id}  거래 삭제 (연결 거래 연쇄)
"""

from fastapi import APIRouter, Depends, Query, Response

from core.ledger.errors import LedgerError
from core.ledger.records import entry_view
from core.ledger.service import LedgerService
from core.types import AccountKind
from web.dependencies import get_ledger_service, mutation_response, raise_ledger_error
from web.models.requests import EditEntryRequest, PostEntryRequest
from web.models.responses import EntryResponse, MutationResponse

router = APIRouter(prefix="/api/accounts/{kind}/{account_id}/entries", tags=["Entries"])


@router.get("", response_model=list[EntryResponse])
async def list_entries(
    kind: AccountKind,
    account_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: LedgerService = Depends(get_ledger_service),
):
    """거래 목록 (timestamp 내림차순)"""
    try:
        entries = await service.list_entries(kind, account_id)
    except LedgerError as e:
        raise_ledger_error(e)
    return [entry_view(e) for e in entries[offset:offset + limit]]


@router.post("", response_model=MutationResponse, status_code=201)
async def post_entry(
    kind: AccountKind,
    account_id: str,
    request: PostEntryRequest,
    response: Response,
    service: LedgerService = Depends(get_ledger_service),
):
    result = await service.post_entry(kind, account_id, request.type, request.fields)
    return mutation_response(result, response, created=True)


@router.patch("/{entry_id}", response_model=MutationResponse)
async def edit_entry(
    kind: AccountKind,
    account_id: str,
    entry_id: str,
    request: EditEntryRequest,
    response: Response,
    service: LedgerService = Depends(get_ledger_service),
):
    """거래 수정 (역적용 후 재적용, 연결된 상대 거래도 재계산)"""
    result = await service.edit_entry(kind, account_id, entry_id, request.fields)
    return mutation_response(result, response)


@router.delete("/{entry_id}", response_model=MutationResponse)
async def delete_entry(
    kind: AccountKind,
    account_id: str,
    entry_id: str,
    response: Response,
    service: LedgerService = Depends(get_ledger_service),
):
    result = await service.delete_entry(kind, account_id, entry_id)
    return mutation_response(result, response)
