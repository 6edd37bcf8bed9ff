"""
거래(LedgerEntry)와 계정(Account) 모델

거래는 불변. 수정은 EditReversalProtocol을 통해 같은 id의 새 거래로 교체.
잔액 변화량(delta)은 (계정 종류, 거래 유형) 부호 표와 거래의 기본 단위 금액으로 결정.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from core.ledger.errors import ValidationError
from core.types import AccountKind, EntryType, SupplierType

ZERO = Decimal("0")


# (계정 종류, 거래 유형) → 잔액 변화 부호
# customer/agent: 양수 = 상대방에게 갚을 금액 (부채)
# bank/wallet: 양수 = 보유 자산
# supplier: 양수 = 공급자에게 갚을 USD
DELTA_SIGNS: dict[tuple[AccountKind, EntryType], int] = {
    (AccountKind.AGENT, EntryType.DHS): 1,
    (AccountKind.AGENT, EntryType.PAYMENT): -1,
    (AccountKind.CUSTOMER, EntryType.ORDER): 1,
    (AccountKind.CUSTOMER, EntryType.PAYMENT): -1,
    (AccountKind.SUPPLIER, EntryType.BILL): 1,
    (AccountKind.SUPPLIER, EntryType.PAYMENT): -1,
    (AccountKind.BANK, EntryType.DEPOSIT): 1,
    (AccountKind.BANK, EntryType.CREDIT): 1,
    (AccountKind.BANK, EntryType.WITHDRAW): -1,
    (AccountKind.BANK, EntryType.DEBIT): -1,
    (AccountKind.WALLET, EntryType.DEPOSIT): 1,
    (AccountKind.WALLET, EntryType.CREDIT): 1,
    (AccountKind.WALLET, EntryType.WITHDRAW): -1,
    (AccountKind.WALLET, EntryType.DEBIT): -1,
}

# 잔액 부족 검사 대상 (bank/wallet 출금)
WITHDRAWAL_TYPES: frozenset[EntryType] = frozenset({EntryType.WITHDRAW, EntryType.DEBIT})


def allowed_types(kind: AccountKind) -> list[EntryType]:
    """계정 종류에 허용된 거래 유형 목록"""
    return [t for (k, t) in DELTA_SIGNS if k == kind]


def delta_sign(kind: AccountKind | str, entry_type: EntryType | str) -> int:
    """(계정 종류, 거래 유형) 부호 조회

    Raises:
        ValidationError: 허용되지 않은 조합
    """
    try:
        key = (AccountKind(kind), EntryType(entry_type))
    except ValueError as e:
        raise ValidationError(
            f"알 수 없는 계정 종류/거래 유형: {kind}/{entry_type}",
            kind=kind,
            entry_type=entry_type,
        ) from e

    sign = DELTA_SIGNS.get(key)
    if sign is None:
        raise ValidationError(
            f"{key[0].value} 계정에는 '{key[1].value}' 거래를 기록할 수 없습니다",
            kind=key[0].value,
            entry_type=key[1].value,
        )
    return sign


def compute_delta(kind: AccountKind | str, entry_type: EntryType | str, amount: Decimal) -> Decimal:
    """잔액 변화량 계산

    Args:
        kind: 계정 종류
        entry_type: 거래 유형
        amount: 계정 기본 단위 금액 (음수 불가)

    Returns:
        부호가 적용된 변화량
    """
    return amount * delta_sign(kind, entry_type)


def is_withdrawal(kind: AccountKind, entry_type: EntryType) -> bool:
    """잔액 부족 검사가 필요한 거래인지 여부"""
    return kind.is_asset and entry_type in WITHDRAWAL_TYPES


@dataclass(frozen=True)
class LedgerEntry:
    """거래

    amount는 항상 계정 기본 단위 (customer/agent/bank: BDT, supplier/wallet: USD)의
    음이 아닌 금액. secondary_amount/rate는 amount를 계산한 입력값으로,
    생성 시점의 환율이 거래에 고정되어 이후 환율 변경에 영향받지 않음.

    Attributes:
        entry_id: 거래 ID (클라이언트 생성)
        account_id: 소유 계정 ID
        kind: 소유 계정 종류
        entry_type: 거래 유형
        amount: 기본 단위 금액
        timestamp: 생성 시각 (정렬 기준)
        date: 거래 일자 (YYYY-MM-DD)
        created_at: 생성 일자
        secondary_amount: 환산 전 금액 (RMB, DHS, BDT 등)
        secondary_unit: 환산 전 금액 단위
        rate: 환율
        description: 메모
        linked_*: 이중 기입 상대 거래 정보
    """

    entry_id: str
    account_id: str
    kind: AccountKind
    entry_type: EntryType
    amount: Decimal
    timestamp: datetime
    date: str
    created_at: str
    secondary_amount: Decimal | None = None
    secondary_unit: str | None = None
    rate: Decimal | None = None
    description: str = ""
    linked_kind: AccountKind | None = None
    linked_account_id: str | None = None
    linked_entry_id: str | None = None
    linked_amount: Decimal | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def delta(self) -> Decimal:
        """잔액 변화량 (부호 포함)"""
        return compute_delta(self.kind, self.entry_type, self.amount)

    @property
    def reverse_delta(self) -> Decimal:
        """역적용 변화량"""
        return -self.delta

    @property
    def is_linked(self) -> bool:
        """이중 기입 거래 여부"""
        return bool(self.linked_account_id and self.linked_entry_id)

    @property
    def is_withdrawal(self) -> bool:
        """잔액 부족 검사 대상 여부"""
        return is_withdrawal(self.kind, self.entry_type)

    def with_changes(self, **changes: Any) -> "LedgerEntry":
        """일부 필드를 바꾼 새 거래 (id 유지)"""
        return replace(self, **changes)


@dataclass(frozen=True)
class Account:
    """거래 상대방 계정

    balance는 initial_balance + 모든 거래 delta 합의 구체화된 캐시.
    """

    account_id: str
    kind: AccountKind
    name: str
    balance: Decimal = ZERO
    initial_balance: Decimal = ZERO
    contact: str = ""
    supplier_type: SupplierType | None = None
    created_at: str = ""
    updated_at: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def currency(self) -> str:
        """잔액 통화"""
        return self.kind.currency

    def with_balance(self, balance: Decimal, updated_at: str | None = None) -> "Account":
        """잔액을 바꾼 새 계정"""
        return replace(
            self,
            balance=balance,
            updated_at=updated_at if updated_at is not None else self.updated_at,
        )
