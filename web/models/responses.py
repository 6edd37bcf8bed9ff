"""
응답 스키마 (Pydantic)

Web API 응답 데이터 직렬화. Decimal 값은 문자열.
"""

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """헬스 체크 응답"""

    status: str = Field(default="ok", description="서비스 상태")
    remote_backend: str = Field(..., description="원격 저장소 종류")
    pending_writes: int = Field(..., description="미전송 원격 쓰기 수")
    version: str


class AccountResponse(BaseModel):
    """계정 응답"""

    id: str
    kind: str
    name: str
    contact: str
    balance: str
    balance_display: str
    currency: str
    initial_balance: str
    supplier_type: str | None = None
    created_at: str
    updated_at: str


class EntryResponse(BaseModel):
    """거래 응답"""

    id: str
    account_id: str
    kind: str
    type: str
    amount: str
    amount_display: str
    currency: str
    secondary_amount: str | None = None
    secondary_unit: str | None = None
    rate: str | None = None
    description: str
    date: str
    timestamp: str
    created_at: str
    calculation: str | None = None
    linked_kind: str | None = None
    linked_account_id: str | None = None
    linked_entry_id: str | None = None
    linked_amount: str | None = None


class BalanceResponse(BaseModel):
    """잔액 응답"""

    kind: str
    account_id: str
    balance: str
    currency: str


class ErrorBody(BaseModel):
    """구조화된 에러"""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class MutationResponse(BaseModel):
    """잔액 변경 결과

    state: COMMITTED / DEGRADED (원격 저장 실패, 로컬 반영 유지)
    """

    mutation_id: str
    operation: str
    state: str
    ok: bool
    balances: list[BalanceResponse]
    entries: list[EntryResponse]
    accounts: list[AccountResponse]
    warnings: list[ErrorBody]
    error: ErrorBody | None = None
    cache_synced: bool
    pending_writes: int


class DriftResponse(BaseModel):
    kind: str
    account_id: str
    local_balance: str | None = None
    remote_balance: str | None = None
    action: str


class ReconcileResponse(BaseModel):
    """refresh 결과"""

    replayed: int
    remaining: int
    source: str
    drifts: list[DriftResponse]
    warnings: list[str]


class PendingWriteResponse(BaseModel):
    op: str
    collection: str
    doc_id: str
    kind: str
    account_id: str
    mutation_id: str


class KindTotalResponse(BaseModel):
    kind: str
    count: int
    total: str
    currency: str
    total_bdt: str
    total_bdt_display: str


class DashboardResponse(BaseModel):
    """순자산 요약 응답"""

    usd_rate: str
    totals: dict[str, KindTotalResponse]
    net_worth_bdt: str
    net_worth_display: str
