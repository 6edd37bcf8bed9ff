"""
문서 매핑

LedgerEntry/Account ↔ 원격 저장소/캐시의 평면(flat) key-value 문서 변환.
필드 이름은 기존 앱이 쓰던 문서와 호환 (billBDT, amountUSD, customerRmbRate 등).
Decimal은 정밀도 보존을 위해 문자열로 기록하고, 읽을 때는 숫자/문자열 모두 허용.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, NamedTuple

from core.ledger.amount_math import ZERO, round_display, to_decimal
from core.ledger.entry import Account, LedgerEntry
from core.types import AccountKind, Currency, EntryType, SupplierType
from core.utils.timezone import parse_iso, to_iso

logger = logging.getLogger(__name__)


class EntryLayout(NamedTuple):
    """(계정 종류, 거래 유형)별 문서 필드 이름"""

    amount_field: str
    secondary_field: str | None = None
    secondary_unit: str | None = None
    rate_field: str | None = None


_BANK_LAYOUT = EntryLayout("amount")

ENTRY_LAYOUTS: dict[tuple[AccountKind, EntryType], EntryLayout] = {
    (AccountKind.AGENT, EntryType.DHS): EntryLayout("bdtAmount", "dhsAmount", Currency.DHS.value, "dhsRate"),
    (AccountKind.AGENT, EntryType.PAYMENT): EntryLayout("bdtAmount", "amountDHS", Currency.DHS.value, "dhsRate"),
    (AccountKind.CUSTOMER, EntryType.ORDER): EntryLayout("billBDT", "rmbAmount", Currency.RMB.value, "customerRmbRate"),
    (AccountKind.CUSTOMER, EntryType.PAYMENT): EntryLayout("amount"),
    (AccountKind.SUPPLIER, EntryType.BILL): EntryLayout("amountUSD", "rmbAmount", Currency.RMB.value, "rate"),
    (AccountKind.SUPPLIER, EntryType.PAYMENT): EntryLayout("amountUSD"),
}

# USDT 공급자 청구는 BDT 금액을 기록
_SECONDARY_FIELDS: dict[str, str] = {
    Currency.RMB.value: "rmbAmount",
    Currency.BDT.value: "bdtAmount",
}

# 기본 단위 금액을 읽을 때 추가로 확인하는 필드 (원본 데이터 호환)
_AMOUNT_ALIASES: tuple[str, ...] = ("amount", "amountUSD", "billBDT", "bdtAmount")


def entry_layout(kind: AccountKind, entry_type: EntryType) -> EntryLayout:
    """문서 필드 배치 조회 (bank/wallet은 유형과 무관하게 amount)"""
    if kind.is_asset:
        return _BANK_LAYOUT
    return ENTRY_LAYOUTS.get((kind, entry_type), EntryLayout("amount"))


def dec_str(value: Decimal | None) -> str | None:
    """Decimal → 문서 값 (문자열)"""
    if value is None:
        return None
    return str(value)


def _fmt(value: Decimal | None) -> str:
    return f"{round_display(value):f}" if value is not None else "0"


def calculation_text(entry: LedgerEntry) -> str:
    """사람이 읽을 수 있는 계산식 (문서의 calculation 필드)

    Example:
        '1000 RMB ÷ 7.2 = 138.89 USD'
    """
    if entry.secondary_amount is None or entry.rate is None:
        return ""

    sec = _fmt(entry.secondary_amount)
    rate = f"{entry.rate.normalize():f}"
    amount = _fmt(entry.amount)
    currency = entry.kind.currency

    if entry.kind == AccountKind.AGENT and entry.entry_type == EntryType.DHS:
        return f"{amount} BDT ÷ {rate} = {sec} DHS"
    if entry.secondary_unit == Currency.DHS.value:
        return f"{sec} DHS × {rate} = {amount} BDT"
    if entry.kind == AccountKind.SUPPLIER:
        return f"{sec} {entry.secondary_unit} ÷ {rate} = {amount} {currency}"
    return f"{sec} {entry.secondary_unit} × {rate} = {amount} {currency}"


def entry_to_doc(entry: LedgerEntry) -> dict[str, Any]:
    """LedgerEntry → 문서

    id는 문서 키로 별도 관리하므로 포함하지 않음.
    """
    layout = entry_layout(entry.kind, entry.entry_type)
    doc: dict[str, Any] = {
        "type": entry.entry_type.value,
        layout.amount_field: dec_str(entry.amount),
        "description": entry.description,
        "notes": entry.description,
        "date": entry.date,
        "timestamp": to_iso(entry.timestamp),
        "createdAt": entry.created_at,
    }

    if entry.secondary_amount is not None:
        field = layout.secondary_field
        if entry.secondary_unit in _SECONDARY_FIELDS and entry.kind == AccountKind.SUPPLIER:
            field = _SECONDARY_FIELDS[entry.secondary_unit]
        doc[field or "secondaryAmount"] = dec_str(entry.secondary_amount)
        doc["secondaryUnit"] = entry.secondary_unit
    if entry.rate is not None:
        doc[layout.rate_field or "rate"] = dec_str(entry.rate)

    calculation = calculation_text(entry)
    if calculation:
        doc["calculation"] = calculation

    if entry.is_linked:
        doc.update({
            "linkedKind": entry.linked_kind.value if entry.linked_kind else None,
            "linkedAccountId": entry.linked_account_id,
            "linkedEntryId": entry.linked_entry_id,
            "linkedAmount": dec_str(entry.linked_amount),
        })
        doc.update(_legacy_link_fields(entry))

    for key, value in entry.extra.items():
        doc.setdefault(key, value)
    return doc


def _legacy_link_fields(entry: LedgerEntry) -> dict[str, Any]:
    """기존 앱이 주문/청구 문서에 쓰던 연결 필드"""
    if entry.entry_type == EntryType.ORDER and entry.linked_kind == AccountKind.SUPPLIER:
        return {
            "supplierId": entry.linked_account_id,
            "supplierTransactionId": entry.linked_entry_id,
            "supplierAmountUSD": dec_str(entry.linked_amount),
        }
    if entry.entry_type == EntryType.BILL and entry.linked_kind == AccountKind.CUSTOMER:
        return {
            "customerId": entry.linked_account_id,
            "customerTransactionId": entry.linked_entry_id,
        }
    return {}


_KNOWN_ENTRY_FIELDS: frozenset[str] = frozenset({
    "id", "type", "amount", "amountUSD", "billBDT", "bdtAmount", "dhsAmount", "amountDHS",
    "rmbAmount", "secondaryAmount", "secondaryUnit", "rate", "dhsRate", "customerRmbRate",
    "description", "notes", "date", "timestamp", "createdAt", "calculation",
    "linkedKind", "linkedAccountId", "linkedEntryId", "linkedAmount",
    "supplierId", "supplierTransactionId", "supplierAmountUSD",
    "customerId", "customerTransactionId",
})


def _first_decimal(doc: dict[str, Any], *fields: str | None) -> Decimal | None:
    for field in fields:
        if field and doc.get(field) is not None:
            value = to_decimal(doc[field])
            if value is not None:
                return value
    return None


def entry_from_doc(
    doc: dict[str, Any],
    kind: AccountKind,
    account_id: str,
    entry_id: str | None = None,
) -> LedgerEntry:
    """문서 → LedgerEntry

    원본 앱 문서(linked* 필드 없이 supplierTransactionId만 있는 주문 등)도 읽음.

    Raises:
        ValueError: type 필드가 없거나 알 수 없는 값
    """
    entry_type = EntryType(doc.get("type"))
    layout = entry_layout(kind, entry_type)

    amount = _first_decimal(doc, layout.amount_field, *_AMOUNT_ALIASES)
    secondary_unit = doc.get("secondaryUnit") or layout.secondary_unit
    secondary_field = layout.secondary_field
    if kind == AccountKind.SUPPLIER and entry_type == EntryType.BILL:
        if doc.get("rmbAmount") is None and doc.get("bdtAmount") is not None:
            secondary_unit = Currency.BDT.value
        secondary_field = _SECONDARY_FIELDS.get(secondary_unit or "", secondary_field)
    secondary = _first_decimal(doc, secondary_field, "secondaryAmount")
    if secondary is None:
        secondary_unit = None
    rate = _first_decimal(doc, layout.rate_field, "rate")

    timestamp = parse_iso(doc.get("timestamp")) or parse_iso(doc.get("date"))
    if timestamp is None:
        timestamp = datetime.fromtimestamp(0, tz=timezone.utc)

    linked_kind, linked_account_id, linked_entry_id, linked_amount = _link_from_doc(doc, kind, entry_type)

    return LedgerEntry(
        entry_id=entry_id or str(doc.get("id") or ""),
        account_id=account_id,
        kind=kind,
        entry_type=entry_type,
        amount=amount if amount is not None else ZERO,
        timestamp=timestamp,
        date=str(doc.get("date") or ""),
        created_at=str(doc.get("createdAt") or ""),
        secondary_amount=secondary,
        secondary_unit=secondary_unit,
        rate=rate,
        description=str(doc.get("description") or doc.get("notes") or ""),
        linked_kind=linked_kind,
        linked_account_id=linked_account_id,
        linked_entry_id=linked_entry_id,
        linked_amount=linked_amount,
        extra={k: v for k, v in doc.items() if k not in _KNOWN_ENTRY_FIELDS},
    )


def _link_from_doc(
    doc: dict[str, Any],
    kind: AccountKind,
    entry_type: EntryType,
) -> tuple[AccountKind | None, str | None, str | None, Decimal | None]:
    if doc.get("linkedEntryId"):
        linked_kind = AccountKind(doc["linkedKind"]) if doc.get("linkedKind") else None
        return (
            linked_kind,
            doc.get("linkedAccountId"),
            doc.get("linkedEntryId"),
            to_decimal(doc.get("linkedAmount")),
        )

    if kind == AccountKind.CUSTOMER and entry_type == EntryType.ORDER and doc.get("supplierTransactionId"):
        return (
            AccountKind.SUPPLIER,
            doc.get("supplierId"),
            doc.get("supplierTransactionId"),
            to_decimal(doc.get("supplierAmountUSD")),
        )
    if kind == AccountKind.SUPPLIER and entry_type == EntryType.BILL and doc.get("customerTransactionId"):
        return (AccountKind.CUSTOMER, doc.get("customerId"), doc.get("customerTransactionId"), None)

    return None, None, None, None


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


_KNOWN_ACCOUNT_FIELDS: frozenset[str] = frozenset({
    "id", "name", "balance", "balanceUSD", "initialBalance", "phone", "account", "address",
    "type", "createdAt", "updatedAt",
})


def account_to_doc(account: Account) -> dict[str, Any]:
    """Account → 문서"""
    kind = account.kind
    doc: dict[str, Any] = {
        "name": account.name,
        kind.balance_field: dec_str(account.balance),
        "initialBalance": dec_str(account.initial_balance),
        kind.contact_field: account.contact,
        "createdAt": account.created_at,
        "updatedAt": account.updated_at,
    }
    if kind == AccountKind.SUPPLIER:
        doc["type"] = (account.supplier_type or SupplierType.RMB).value
    for key, value in account.extra.items():
        doc.setdefault(key, value)
    return doc


def balance_fields(account: Account) -> dict[str, Any]:
    """잔액 갱신용 부분 문서"""
    return {
        account.kind.balance_field: dec_str(account.balance),
        "updatedAt": account.updated_at,
    }


def account_from_doc(doc: dict[str, Any], kind: AccountKind, account_id: str | None = None) -> Account:
    """문서 → Account

    initialBalance가 없는 기존 문서는 잔액 필드가 없을 때 0으로 간주.
    """
    balance = to_decimal(doc.get(kind.balance_field))
    if balance is None:
        # 잔액 필드 혼용 데이터 (supplier의 balance 등)
        balance = to_decimal(doc.get("balance")) or ZERO

    initial = to_decimal(doc.get("initialBalance"))

    supplier_type = None
    if kind == AccountKind.SUPPLIER:
        try:
            supplier_type = SupplierType(doc.get("type") or SupplierType.RMB.value)
        except ValueError:
            logger.warning(
                "Unknown supplier type, using RMB",
                extra={"account_id": account_id, "type": doc.get("type")},
            )
            supplier_type = SupplierType.RMB

    return Account(
        account_id=account_id or str(doc.get("id") or ""),
        kind=kind,
        name=str(doc.get("name") or ""),
        balance=balance,
        initial_balance=initial if initial is not None else ZERO,
        contact=str(doc.get(kind.contact_field) or ""),
        supplier_type=supplier_type,
        created_at=str(doc.get("createdAt") or ""),
        updated_at=str(doc.get("updatedAt") or ""),
        extra={k: v for k, v in doc.items() if k not in _KNOWN_ACCOUNT_FIELDS},
    )


# ---------------------------------------------------------------------------
# Cache blob (문서 + id)
# ---------------------------------------------------------------------------


def entries_to_blob(entries: list[LedgerEntry]) -> list[dict[str, Any]]:
    """거래 목록 → 캐시 blob (id 포함 문서 리스트)"""
    return [{"id": e.entry_id, **entry_to_doc(e)} for e in entries]


def entries_from_blob(blob: list[dict[str, Any]], kind: AccountKind, account_id: str) -> list[LedgerEntry]:
    """캐시 blob → 거래 목록 (읽을 수 없는 항목은 건너뜀)"""
    entries: list[LedgerEntry] = []
    for doc in blob or []:
        try:
            entries.append(entry_from_doc(doc, kind, account_id))
        except (ValueError, KeyError) as e:
            logger.warning(
                f"Skipping unreadable cached entry: {e}",
                extra={"kind": kind.value, "account_id": account_id, "entry_id": doc.get("id")},
            )
    return entries


def accounts_to_blob(accounts: list[Account]) -> list[dict[str, Any]]:
    """계정 목록 → 캐시 blob"""
    return [{"id": a.account_id, **account_to_doc(a)} for a in accounts]


def accounts_from_blob(blob: list[dict[str, Any]], kind: AccountKind) -> list[Account]:
    """캐시 blob → 계정 목록"""
    return [account_from_doc(doc, kind) for doc in blob or []]


# ---------------------------------------------------------------------------
# 응답용 뷰 (CLI/Web JSON)
# ---------------------------------------------------------------------------


def entry_view(entry: LedgerEntry) -> dict[str, Any]:
    """거래 → 응답 dict (snake_case, Decimal은 문자열)"""
    return {
        "id": entry.entry_id,
        "account_id": entry.account_id,
        "kind": entry.kind.value,
        "type": entry.entry_type.value,
        "amount": dec_str(entry.amount),
        "amount_display": _fmt(entry.amount),
        "currency": entry.kind.currency,
        "secondary_amount": dec_str(entry.secondary_amount),
        "secondary_unit": entry.secondary_unit,
        "rate": dec_str(entry.rate),
        "description": entry.description,
        "date": entry.date,
        "timestamp": to_iso(entry.timestamp),
        "created_at": entry.created_at,
        "calculation": calculation_text(entry) or None,
        "linked_kind": entry.linked_kind.value if entry.linked_kind else None,
        "linked_account_id": entry.linked_account_id,
        "linked_entry_id": entry.linked_entry_id,
        "linked_amount": dec_str(entry.linked_amount),
    }


def account_view(account: Account) -> dict[str, Any]:
    """계정 → 응답 dict"""
    return {
        "id": account.account_id,
        "kind": account.kind.value,
        "name": account.name,
        "contact": account.contact,
        "balance": dec_str(account.balance),
        "balance_display": _fmt(account.balance),
        "currency": account.currency,
        "initial_balance": dec_str(account.initial_balance),
        "supplier_type": account.supplier_type.value if account.supplier_type else None,
        "created_at": account.created_at,
        "updated_at": account.updated_at,
    }
