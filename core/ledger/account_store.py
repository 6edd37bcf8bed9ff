"""
계정 저장소

계정 종류별 구체화된 잔액 + 거래 로그 (메모리).
모든 변경은 동기적으로 수행되어 I/O 전에 잔액과 로그가 함께 갱신됨.
잔액 = initial_balance + Σ delta 불변식 유지.

호출자는 해당 계정의 잠금(AccountLocks)을 잡은 상태에서 변경 메서드를 호출.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from core.ledger.entry import ZERO, Account, LedgerEntry
from core.ledger.errors import (
    AccountNotFound,
    EntryNotFound,
    InsufficientBalance,
    ValidationError,
)
from core.types import AccountKind
from core.utils.timezone import now_utc, today_str

logger = logging.getLogger(__name__)

# (kind, account) 변경 알림
Listener = Callable[[AccountKind, Account], None]


class AccountStore:
    """계정 종류 하나의 잔액/거래 저장소

    종류별로 하나의 인스턴스를 모든 소비자(CLI, Web, 대시보드)가 공유.

    Args:
        kind: 계정 종류
        clock: 현재 시각 제공 함수 (updated_at 기록용)
    """

    def __init__(self, kind: AccountKind, clock: Callable[[], datetime] = now_utc):
        self.kind = kind
        self._clock = clock
        self._accounts: dict[str, Account] = {}
        self._entries: dict[str, list[LedgerEntry]] = {}
        self._listeners: list[Listener] = []
        self.hydrated = False

    # ------------------------------------------------------------------
    # 구독
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """변경 구독

        Returns:
            구독 해제 함수
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, account: Account) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.kind, account)
            except Exception as e:
                logger.error(
                    f"Account listener failed: {e}",
                    exc_info=True,
                    extra={"kind": self.kind.value, "account_id": account.account_id},
                )

    # ------------------------------------------------------------------
    # 계정 관리
    # ------------------------------------------------------------------

    def has_account(self, account_id: str) -> bool:
        return account_id in self._accounts

    def get_account(self, account_id: str) -> Account:
        """계정 조회

        Raises:
            AccountNotFound: 없는 계정
        """
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(
                f"{self.kind.value} 계정을 찾을 수 없습니다: {account_id}",
                kind=self.kind.value,
                account_id=account_id,
            )
        return account

    def list_accounts(self) -> list[Account]:
        """계정 목록 (등록 순서)"""
        return list(self._accounts.values())

    def add_account(self, account: Account) -> Account:
        """새 계정 등록

        Raises:
            ValidationError: 종류 불일치 또는 중복 ID
        """
        self._check_kind(account.kind)
        if account.account_id in self._accounts:
            raise ValidationError(
                f"이미 존재하는 계정입니다: {account.account_id}",
                account_id=account.account_id,
            )
        self._accounts[account.account_id] = account
        self._entries[account.account_id] = []
        self._notify(account)
        return account

    def update_account(self, account_id: str, **changes: Any) -> Account:
        """계정 정보 수정 (name, contact 등, 잔액 제외)"""
        if "balance" in changes:
            raise ValidationError("잔액은 거래를 통해서만 변경할 수 있습니다", account_id=account_id)
        current = self.get_account(account_id)
        updated = replace(current, updated_at=self._today(), **changes)
        self._accounts[account_id] = updated
        self._notify(updated)
        return updated

    def remove_account(self, account_id: str) -> Account:
        """계정 삭제 (거래 로그도 함께 폐기)"""
        account = self.get_account(account_id)
        del self._accounts[account_id]
        self._entries.pop(account_id, None)
        self._notify(account)
        return account

    def load_account(self, account: Account) -> None:
        """원격/캐시에서 읽은 계정으로 교체 (hydration)

        거래 로그는 유지. 같은 ID의 계정이 이미 있으면 덮어씀.
        """
        self._check_kind(account.kind)
        self._accounts[account.account_id] = account
        self._notify(account)

    def load_accounts(self, accounts: Iterable[Account]) -> None:
        """계정 목록 일괄 hydration"""
        for account in accounts:
            self.load_account(account)
        self.hydrated = True

    def drop_account(self, account_id: str) -> None:
        """원격에서 사라진 계정을 메모리에서 제거 (알림 없음)"""
        self._accounts.pop(account_id, None)
        self._entries.pop(account_id, None)

    # ------------------------------------------------------------------
    # 거래 로그
    # ------------------------------------------------------------------

    def entries_loaded(self, account_id: str) -> bool:
        return account_id in self._entries

    def load_entries(self, account_id: str, entries: Iterable[LedgerEntry]) -> None:
        """거래 로그 hydration (잔액은 변경하지 않음)"""
        self.get_account(account_id)
        self._entries[account_id] = list(entries)

    def list_entries(self, account_id: str) -> list[LedgerEntry]:
        """거래 목록 (최신 timestamp 우선, 동률은 등록 순서)"""
        self.get_account(account_id)
        return sorted(self._entries.get(account_id, []), key=lambda e: e.timestamp, reverse=True)

    def find_entry(self, account_id: str, entry_id: str) -> LedgerEntry | None:
        for entry in self._entries.get(account_id, []):
            if entry.entry_id == entry_id:
                return entry
        return None

    def get_entry(self, account_id: str, entry_id: str) -> LedgerEntry:
        """거래 조회

        Raises:
            AccountNotFound: 없는 계정
            EntryNotFound: 없는 거래
        """
        self.get_account(account_id)
        entry = self.find_entry(account_id, entry_id)
        if entry is None:
            raise EntryNotFound(
                f"거래를 찾을 수 없습니다: {entry_id}",
                kind=self.kind.value,
                account_id=account_id,
                entry_id=entry_id,
            )
        return entry

    # ------------------------------------------------------------------
    # 잔액 변경
    # ------------------------------------------------------------------

    def preview_balance(
        self,
        account_id: str,
        removed: Iterable[LedgerEntry] = (),
        added: Iterable[LedgerEntry] = (),
    ) -> Decimal:
        """역적용/적용 결과 잔액 계산 (변경 없음)

        추가되는 거래에 bank/wallet 출금이 있고 결과 잔액이 음수면 거부.

        Raises:
            InsufficientBalance: 잔액 부족
        """
        account = self.get_account(account_id)
        added = list(added)
        balance = account.balance
        for entry in removed:
            self._check_entry(account_id, entry)
            balance += entry.reverse_delta
        for entry in added:
            self._check_entry(account_id, entry)
            balance += entry.delta

        if balance < 0 and any(e.is_withdrawal for e in added):
            raise InsufficientBalance(
                "Insufficient balance for withdrawal",
                kind=self.kind.value,
                account_id=account_id,
                balance=account.balance,
                resulting_balance=balance,
            )
        return balance

    def apply_entry(self, account_id: str, entry: LedgerEntry) -> tuple[Decimal, LedgerEntry]:
        """거래 적용 (잔액 갱신 + 로그 추가)

        Returns:
            (새 잔액, 적용된 거래)
        """
        if self.find_entry(account_id, entry.entry_id) is not None:
            raise ValidationError(
                f"이미 존재하는 거래입니다: {entry.entry_id}",
                account_id=account_id,
                entry_id=entry.entry_id,
            )
        new_balance = self.preview_balance(account_id, added=[entry])
        self._entries.setdefault(account_id, []).append(entry)
        self._set_balance(account_id, new_balance)
        return new_balance, entry

    def reverse_entry(self, account_id: str, entry: LedgerEntry) -> Decimal:
        """거래 역적용 (로그에서 제거 + 음의 delta 적용)

        로그에 저장된 거래의 delta를 사용.
        """
        stored = self.get_entry(account_id, entry.entry_id)
        new_balance = self.preview_balance(account_id, removed=[stored])
        self._entries[account_id] = [
            e for e in self._entries[account_id] if e.entry_id != stored.entry_id
        ]
        self._set_balance(account_id, new_balance)
        return new_balance

    def replace_entry(self, account_id: str, old: LedgerEntry, new: LedgerEntry) -> Decimal:
        """거래 교체 (역적용 후 적용, 같은 ID, 로그 위치 유지)"""
        if old.entry_id != new.entry_id:
            raise ValidationError(
                "교체 거래는 같은 ID를 가져야 합니다",
                old_entry_id=old.entry_id,
                new_entry_id=new.entry_id,
            )
        stored = self.get_entry(account_id, old.entry_id)
        new_balance = self.preview_balance(account_id, removed=[stored], added=[new])
        self._entries[account_id] = [
            new if e.entry_id == stored.entry_id else e for e in self._entries[account_id]
        ]
        self._set_balance(account_id, new_balance)
        return new_balance

    def derived_balance(self, account_id: str) -> Decimal:
        """initial_balance + Σ delta 재계산 (불변식 검사용)"""
        account = self.get_account(account_id)
        total = sum((e.delta for e in self._entries.get(account_id, [])), ZERO)
        return account.initial_balance + total

    def _set_balance(self, account_id: str, balance: Decimal) -> None:
        updated = self._accounts[account_id].with_balance(balance, self._today())
        self._accounts[account_id] = updated
        logger.debug(
            "Balance updated",
            extra={"kind": self.kind.value, "account_id": account_id, "balance": str(balance)},
        )
        self._notify(updated)

    def _check_kind(self, kind: AccountKind) -> None:
        if kind != self.kind:
            raise ValidationError(
                f"{self.kind.value} 저장소에 {kind.value} 계정을 넣을 수 없습니다",
                expected=self.kind.value,
                actual=kind.value,
            )

    def _check_entry(self, account_id: str, entry: LedgerEntry) -> None:
        if entry.kind != self.kind or entry.account_id != account_id:
            raise ValidationError(
                "거래의 계정 정보가 일치하지 않습니다",
                account_id=account_id,
                entry_account_id=entry.account_id,
                entry_kind=entry.kind.value,
            )

    def _today(self) -> str:
        return today_str(self._clock())
