"""
거래 생성기

사용자 입력(raw fields)을 검증하고 AmountMath로 기본 단위 금액을 계산해
환율이 고정된 LedgerEntry를 생성.

입력 필드 (snake_case, 기존 문서의 camelCase 이름도 허용):
- agent dhs: bdt_amount, rate (기본 34.24)
- agent payment: dhs_amount, rate (기본 34.24)
- customer order: rmb_amount, customer_rate
- supplier bill: RMB 공급자 rmb_amount + rate / USDT 공급자 bdt_amount + rate
- 그 외: amount
- 공통: description (notes), date (YYYY-MM-DD)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from core.constants import Defaults
from core.ledger import amount_math
from core.ledger.amount_math import quantize_amount, to_decimal
from core.ledger.entry import LedgerEntry, delta_sign
from core.ledger.errors import InvalidRate, ValidationError
from core.types import AccountKind, Currency, EntryType, SupplierType
from core.utils.ids import new_entry_id
from core.utils.timezone import is_valid_date, now_utc, today_str

logger = logging.getLogger(__name__)


# 입력 필드 별칭 (첫 번째가 표준 이름)
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "amount": ("amount", "amountUSD", "amount_usd"),
    "bdt_amount": ("bdt_amount", "bdtAmount"),
    "dhs_amount": ("dhs_amount", "amountDHS", "amount_dhs"),
    "rmb_amount": ("rmb_amount", "rmbAmount"),
    "rate": ("rate", "dhs_rate", "dhsRate"),
    "customer_rate": ("customer_rate", "customerRmbRate", "customer_rmb_rate"),
    "supplier_rate": ("supplier_rate", "supplierRate"),
    "description": ("description", "notes"),
    "date": ("date",),
}


@dataclass(frozen=True)
class AmountDerivation:
    """기본 단위 금액 계산 결과"""

    amount: Decimal
    secondary_amount: Decimal | None = None
    secondary_unit: str | None = None
    rate: Decimal | None = None


def pick(fields: Mapping[str, Any], name: str) -> Any:
    """별칭을 고려해 입력 필드 조회 (빈 문자열은 없는 값)"""
    for alias in FIELD_ALIASES.get(name, (name,)):
        value = fields.get(alias)
        if value is not None and value != "":
            return value
    return None


def canonical_fields(fields: Mapping[str, Any], entry_type: EntryType | None = None) -> dict[str, Any]:
    """입력 필드 이름을 표준 이름으로 정리

    별칭으로 들어온 값은 표준 이름으로 옮기고, 같은 필드의 별칭이 여러 개면
    FIELD_ALIASES 순서상 앞선 값을 사용. customer order의 rate는 customer_rate.
    """
    known = {alias for aliases in FIELD_ALIASES.values() for alias in aliases}
    result = {k: v for k, v in fields.items() if k not in known and v is not None}
    for name in FIELD_ALIASES:
        value = pick(fields, name)
        if value is not None:
            result[name] = value
    # 메모는 빈 문자열로 지울 수 있음
    if "description" not in result and any(fields.get(a) == "" for a in FIELD_ALIASES["description"]):
        result["description"] = ""

    if entry_type == EntryType.ORDER:
        rate = result.pop("rate", None)
        if rate is not None:
            result.setdefault("customer_rate", rate)
    return result


def _require_positive(fields: Mapping[str, Any], name: str, *, label: str | None = None) -> Decimal:
    raw = pick(fields, name)
    label = label or name
    if raw is None:
        raise ValidationError(f"필수 입력값이 없습니다: {label}", field=name)
    value = to_decimal(raw)
    if value is None:
        raise ValidationError(f"숫자가 아닌 입력값: {label}={raw!r}", field=name, value=raw)
    if value <= 0:
        raise ValidationError(f"금액은 0보다 커야 합니다: {label}={raw}", field=name, value=raw)
    return value


def _require_rate(fields: Mapping[str, Any], name: str, default: Decimal | None = None) -> Decimal:
    raw = pick(fields, name)
    if raw is None:
        if default is not None:
            return default
        raise ValidationError(f"필수 입력값이 없습니다: {name}", field=name)
    value = to_decimal(raw)
    if value is None:
        raise ValidationError(f"숫자가 아닌 환율: {name}={raw!r}", field=name, value=raw)
    if value <= 0:
        raise InvalidRate(f"환율은 0보다 커야 합니다: {name}={raw}", field=name, value=raw)
    return value


class EntryBuilder:
    """LedgerEntry 생성/재계산

    Args:
        default_dhs_rate: agent 거래의 기본 DHS 환율
        clock: 현재 시각 제공 함수 (테스트 주입용)
    """

    def __init__(
        self,
        default_dhs_rate: Decimal = Defaults.DHS_RATE,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.default_dhs_rate = default_dhs_rate
        self._clock = clock

    # ------------------------------------------------------------------
    # 금액 계산
    # ------------------------------------------------------------------

    def derive(
        self,
        kind: AccountKind,
        entry_type: EntryType,
        fields: Mapping[str, Any],
        supplier_type: SupplierType | None = None,
    ) -> AmountDerivation:
        """입력 필드 → 기본 단위 금액

        Raises:
            ValidationError: 필수 필드 누락, 숫자가 아닌 값, 허용되지 않은 유형
            InvalidRate: 0 이하 환율
        """
        delta_sign(kind, entry_type)

        if kind == AccountKind.AGENT and entry_type == EntryType.DHS:
            bdt = _require_positive(fields, "bdt_amount")
            rate = _require_rate(fields, "rate", self.default_dhs_rate)
            return AmountDerivation(
                amount=bdt,
                secondary_amount=amount_math.dhs_to_bdt(bdt, rate),
                secondary_unit=Currency.DHS.value,
                rate=rate,
            )

        if kind == AccountKind.AGENT and entry_type == EntryType.PAYMENT:
            dhs = _require_positive(fields, "dhs_amount")
            rate = _require_rate(fields, "rate", self.default_dhs_rate)
            return AmountDerivation(
                amount=amount_math.dhs_payment_to_bdt(dhs, rate),
                secondary_amount=dhs,
                secondary_unit=Currency.DHS.value,
                rate=rate,
            )

        if kind == AccountKind.CUSTOMER and entry_type == EntryType.ORDER:
            rmb = _require_positive(fields, "rmb_amount")
            rate = _require_rate(fields, "customer_rate")
            return AmountDerivation(
                amount=amount_math.rmb_to_bdt(rmb, rate),
                secondary_amount=rmb,
                secondary_unit=Currency.RMB.value,
                rate=rate,
            )

        if kind == AccountKind.SUPPLIER and entry_type == EntryType.BILL:
            if supplier_type == SupplierType.USDT:
                bdt = _require_positive(fields, "bdt_amount")
                rate = _require_rate(fields, "rate")
                return AmountDerivation(
                    amount=amount_math.bdt_to_usd(bdt, rate),
                    secondary_amount=bdt,
                    secondary_unit=Currency.BDT.value,
                    rate=rate,
                )
            rmb = _require_positive(fields, "rmb_amount")
            rate = _require_rate(fields, "rate")
            return AmountDerivation(
                amount=amount_math.rmb_to_usd(rmb, rate),
                secondary_amount=rmb,
                secondary_unit=Currency.RMB.value,
                rate=rate,
            )

        return AmountDerivation(amount=_require_positive(fields, "amount"))

    # ------------------------------------------------------------------
    # 생성
    # ------------------------------------------------------------------

    def build(
        self,
        kind: AccountKind,
        account_id: str,
        entry_type: EntryType | str,
        fields: Mapping[str, Any],
        *,
        supplier_type: SupplierType | None = None,
        entry_id: str | None = None,
        timestamp: datetime | None = None,
    ) -> LedgerEntry:
        """새 거래 생성

        Args:
            kind: 계정 종류
            account_id: 계정 ID
            entry_type: 거래 유형
            fields: 사용자 입력
            supplier_type: 공급자 청구 통화 (supplier bill 전용)
            entry_id: 미리 생성한 거래 ID (이중 기입용)
            timestamp: 생성 시각 (이중 기입 양쪽 동일하게 사용)

        Returns:
            환율이 고정된 LedgerEntry
        """
        try:
            etype = EntryType(entry_type)
        except ValueError as e:
            raise ValidationError(f"알 수 없는 거래 유형: {entry_type}", entry_type=entry_type) from e

        fields = canonical_fields(fields, etype)
        derivation = self.derive(kind, etype, fields, supplier_type)
        date = self._date(fields)
        ts = timestamp or self._clock()

        entry = LedgerEntry(
            entry_id=entry_id or new_entry_id(),
            account_id=account_id,
            kind=kind,
            entry_type=etype,
            amount=quantize_amount(derivation.amount),
            timestamp=ts,
            date=date,
            created_at=today_str(ts),
            secondary_amount=_q(derivation.secondary_amount),
            secondary_unit=derivation.secondary_unit,
            rate=derivation.rate,
            description=str(pick(fields, "description") or ""),
        )

        logger.debug(
            "Entry built",
            extra={
                "kind": kind.value,
                "account_id": account_id,
                "entry_id": entry.entry_id,
                "entry_type": etype.value,
                "amount": str(entry.amount),
            },
        )
        return entry

    def rebuild(
        self,
        existing: LedgerEntry,
        fields: Mapping[str, Any],
        supplier_type: SupplierType | None = None,
    ) -> LedgerEntry:
        """수정 입력으로 거래 재계산 (같은 id, 생성 시각, 연결 정보 유지)

        입력에 없는 필드는 기존 거래 값을 사용. 별칭 입력은 표준 이름으로 바꾼 뒤 덮어씀.
        """
        merged = {**input_fields(existing), **canonical_fields(fields, existing.entry_type)}
        if supplier_type is None and existing.kind == AccountKind.SUPPLIER:
            if existing.secondary_unit == Currency.BDT.value:
                supplier_type = SupplierType.USDT
        derivation = self.derive(existing.kind, existing.entry_type, merged, supplier_type)

        return existing.with_changes(
            amount=quantize_amount(derivation.amount),
            secondary_amount=_q(derivation.secondary_amount),
            secondary_unit=derivation.secondary_unit,
            rate=derivation.rate,
            description=str(pick(merged, "description") or ""),
            date=self._date(merged),
        )

    def rebase_counterpart(
        self,
        counterpart: LedgerEntry,
        primary: LedgerEntry,
        fields: Mapping[str, Any] | None = None,
    ) -> LedgerEntry:
        """수정된 거래에 맞춰 연결된 상대 거래 재계산

        상대 거래는 자신의 고정 환율로 재계산.
        - order ↔ bill: 공유 RMB 금액
        - payment ↔ credit: 공유 금액
        수정 입력의 supplier_rate는 상대 supplier bill의 환율을 교체.
        """
        fields = fields or {}
        shared: dict[str, Any] = {
            "description": primary.description,
            "date": primary.date,
        }

        if counterpart.secondary_unit in (Currency.RMB.value, Currency.BDT.value):
            shared_secondary = _shared_secondary(counterpart, primary)
            if counterpart.secondary_unit == Currency.BDT.value:
                shared["bdt_amount"] = shared_secondary
            else:
                shared["rmb_amount"] = shared_secondary
            if counterpart.kind == AccountKind.SUPPLIER and pick(fields, "supplier_rate") is not None:
                shared["rate"] = pick(fields, "supplier_rate")
        else:
            shared["amount"] = primary.amount

        rebased = self.rebuild(counterpart, shared)
        return rebased.with_changes(linked_amount=primary.amount)

    def _date(self, fields: Mapping[str, Any]) -> str:
        raw = pick(fields, "date")
        if raw is None:
            return today_str(self._clock())
        date = str(raw).strip()
        if not is_valid_date(date):
            raise ValidationError(f"날짜 형식 오류 (YYYY-MM-DD): {raw!r}", field="date", value=raw)
        return date


def _q(value: Decimal | None) -> Decimal | None:
    return quantize_amount(value) if value is not None else None


def _shared_secondary(counterpart: LedgerEntry, primary: LedgerEntry) -> Decimal:
    """상대 거래 재계산에 쓸 공유 금액

    주문의 RMB 금액 / 청구의 RMB 금액처럼 같은 단위면 그대로 사용.
    단위가 다르면 주 거래의 기본 단위 금액 사용.
    """
    if primary.secondary_unit == counterpart.secondary_unit and primary.secondary_amount is not None:
        return primary.secondary_amount
    return primary.amount


def input_fields(entry: LedgerEntry) -> dict[str, Any]:
    """거래 → 재계산용 입력 필드 (rebuild 기본값)"""
    fields: dict[str, Any] = {
        "description": entry.description,
        "date": entry.date,
    }
    if entry.rate is not None:
        rate_name = "customer_rate" if entry.entry_type == EntryType.ORDER else "rate"
        fields[rate_name] = entry.rate

    if entry.secondary_amount is None:
        fields["amount"] = entry.amount
    elif entry.kind == AccountKind.AGENT and entry.entry_type == EntryType.DHS:
        fields["bdt_amount"] = entry.amount
    elif entry.secondary_unit == Currency.DHS.value:
        fields["dhs_amount"] = entry.secondary_amount
    elif entry.secondary_unit == Currency.BDT.value:
        fields["bdt_amount"] = entry.secondary_amount
    else:
        fields["rmb_amount"] = entry.secondary_amount
    return fields


def link_pair(first: LedgerEntry, second: LedgerEntry) -> tuple[LedgerEntry, LedgerEntry]:
    """두 거래를 서로 연결 (이중 기입)"""
    return (
        first.with_changes(
            linked_kind=second.kind,
            linked_account_id=second.account_id,
            linked_entry_id=second.entry_id,
            linked_amount=second.amount,
        ),
        second.with_changes(
            linked_kind=first.kind,
            linked_account_id=first.account_id,
            linked_entry_id=first.entry_id,
            linked_amount=first.amount,
        ),
    )
