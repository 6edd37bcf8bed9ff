"""
RMB Ledger 엔진

거래 상대방(customer, supplier, agent, bank, wallet)별 불변 거래를 기록하고
잔액을 도출. 원격 저장소(권위 있는 원본)와 로컬 캐시를 부분 실패 상황에서도 일관되게 유지.

사용 예시:
```python
from core.ledger import LedgerService

service = LedgerService(remote, cache)
await service.start()

result = await service.create_order(
    customer_id, supplier_id, rmb_amount="1000", customer_rate="16.5", supplier_rate="7.2",
)
balance = await service.get_balance("customer", customer_id)  # 16500
```
"""

from core.ledger.account_store import AccountStore
from core.ledger.dashboard import DashboardSummary, summarize
from core.ledger.edit_protocol import EditReversalProtocol
from core.ledger.entry import Account, LedgerEntry, compute_delta, delta_sign
from core.ledger.entry_builder import EntryBuilder
from core.ledger.errors import (
    AccountNotFound,
    EntryNotFound,
    InsufficientBalance,
    InvalidRate,
    LedgerError,
    LinkedEntryMissing,
    RemoteWriteFailure,
    ValidationError,
)
from core.ledger.locks import AccountLocks
from core.ledger.pipeline import MutationPipeline, MutationResult
from core.ledger.posting import DualPostingCoordinator
from core.ledger.service import LedgerService, parse_kind
from core.ledger.sync import PendingWrite, ReconcileAction, ReconcileReport, SyncLayer, WriteOp

__all__ = [
    # Facade
    "LedgerService",
    "parse_kind",
    # 구성 요소
    "AccountStore",
    "AccountLocks",
    "EntryBuilder",
    "MutationPipeline",
    "MutationResult",
    "DualPostingCoordinator",
    "EditReversalProtocol",
    "SyncLayer",
    "PendingWrite",
    "WriteOp",
    "ReconcileAction",
    "ReconcileReport",
    "DashboardSummary",
    "summarize",
    # 데이터
    "Account",
    "LedgerEntry",
    "compute_delta",
    "delta_sign",
    # 에러
    "LedgerError",
    "ValidationError",
    "InsufficientBalance",
    "InvalidRate",
    "AccountNotFound",
    "EntryNotFound",
    "RemoteWriteFailure",
    "LinkedEntryMissing",
]
