"""
Web 모델 패키지

Pydantic 스키마 정의
"""

from web.models.requests import (
    CreateAccountRequest,
    CreateOrderRequest,
    EditEntryRequest,
    PostEntryRequest,
    ReceivePaymentRequest,
    UpdateAccountRequest,
)
from web.models.responses import (
    AccountResponse,
    BalanceResponse,
    DashboardResponse,
    EntryResponse,
    ErrorBody,
    HealthResponse,
    MutationResponse,
    PendingWriteResponse,
    ReconcileResponse,
)

__all__ = [
    # Requests
    "CreateAccountRequest",
    "UpdateAccountRequest",
    "PostEntryRequest",
    "EditEntryRequest",
    "CreateOrderRequest",
    "ReceivePaymentRequest",
    # Responses
    "AccountResponse",
    "BalanceResponse",
    "DashboardResponse",
    "EntryResponse",
    "ErrorBody",
    "HealthResponse",
    "MutationResponse",
    "PendingWriteResponse",
    "ReconcileResponse",
]
