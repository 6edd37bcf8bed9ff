"""
Mutation 파이프라인

모든 잔액 변경 요청을 명시적 상태 머신으로 처리:
PENDING → VALIDATING → APPLYING → PERSISTING_REMOTE → PERSISTING_CACHE → COMMITTED
(검증 실패: REJECTED, 원격 저장 실패: DEGRADED)

- 관련 계정 잠금은 VALIDATING부터 캐시 저장까지 유지.
- 로컬 반영은 첫 원격 호출 전에 동기적으로 완료 (낙관적 갱신).
- 원격 쓰기는 로컬 작업에서 도출: 거래 쓰기(작업 순서) → 계정별 잔액 쓰기.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from adapters.interfaces import INotifier
from core.domain.state_machines import MutationState, MutationStateMachine
from core.ledger.account_store import AccountStore
from core.ledger.entry import Account, LedgerEntry
from core.ledger.errors import LedgerError, ValidationError
from core.ledger.locks import AccountKey, AccountLocks
from core.ledger.records import (
    account_to_doc,
    account_view,
    balance_fields,
    dec_str,
    entry_to_doc,
    entry_view,
)
from core.ledger.sync import PendingWrite, SyncLayer, WriteOp, entries_collection
from core.types import AccountKind
from core.utils.ids import new_mutation_id

logger = logging.getLogger(__name__)


class LocalAction(str, Enum):
    """로컬 작업 종류"""

    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    OPEN_ACCOUNT = "open_account"
    UPDATE_ACCOUNT = "update_account"
    CLOSE_ACCOUNT = "close_account"


ENTRY_ACTIONS: frozenset[LocalAction] = frozenset({LocalAction.ADD, LocalAction.REMOVE, LocalAction.REPLACE})


@dataclass(frozen=True)
class LocalOp:
    """로컬 작업 1건

    Attributes:
        action: 작업 종류
        kind: 계정 종류
        account_id: 계정 ID
        entry: ADD/REMOVE 대상 거래, REPLACE의 새 거래
        previous: REPLACE의 기존 거래
        account: OPEN_ACCOUNT의 새 계정
        changes: UPDATE_ACCOUNT 변경 필드
    """

    action: LocalAction
    kind: AccountKind
    account_id: str
    entry: LedgerEntry | None = None
    previous: LedgerEntry | None = None
    account: Account | None = None
    changes: dict[str, Any] | None = None

    @classmethod
    def add(cls, entry: LedgerEntry) -> "LocalOp":
        return cls(LocalAction.ADD, entry.kind, entry.account_id, entry=entry)

    @classmethod
    def remove(cls, entry: LedgerEntry) -> "LocalOp":
        return cls(LocalAction.REMOVE, entry.kind, entry.account_id, entry=entry)

    @classmethod
    def replace(cls, previous: LedgerEntry, entry: LedgerEntry) -> "LocalOp":
        return cls(LocalAction.REPLACE, entry.kind, entry.account_id, entry=entry, previous=previous)

    @property
    def key(self) -> AccountKey:
        return (self.kind, self.account_id)


@dataclass
class MutationPlan:
    """검증된 로컬 작업 목록 + 처리 중 발생한 경고

    adopted: 원격에만 있던 거래. 검증 직전 잔액 변경 없이 로컬 로그에 편입되고
    거부되면 다시 제거됨.
    """

    ops: list[LocalOp]
    warnings: list[LedgerError] = field(default_factory=list)
    adopted: list[LedgerEntry] = field(default_factory=list)


PlanBuilder = Callable[[], Awaitable[MutationPlan]]


@dataclass
class MutationResult:
    """Mutation 처리 결과"""

    mutation_id: str
    operation: str
    state: MutationState = MutationState.PENDING
    balances: list[dict[str, Any]] = field(default_factory=list)
    entries: list[LedgerEntry] = field(default_factory=list)
    accounts: list[Account] = field(default_factory=list)
    warnings: list[dict[str, Any]] = field(default_factory=list)
    error: LedgerError | None = None
    cache_synced: bool = True
    pending_writes: int = 0

    @property
    def ok(self) -> bool:
        """로컬 반영 여부 (COMMITTED 또는 DEGRADED)"""
        return self.state in (MutationState.COMMITTED, MutationState.DEGRADED)

    @property
    def degraded(self) -> bool:
        return self.state == MutationState.DEGRADED

    def balance_of(self, kind: AccountKind, account_id: str) -> Decimal | None:
        for item in self.balances:
            if item["kind"] == kind.value and item["account_id"] == account_id:
                return Decimal(item["balance"])
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mutation_id": self.mutation_id,
            "operation": self.operation,
            "state": self.state.value,
            "ok": self.ok,
            "balances": list(self.balances),
            "entries": [entry_view(e) for e in self.entries],
            "accounts": [account_view(a) for a in self.accounts],
            "warnings": list(self.warnings),
            "error": self.error.to_dict() if self.error else None,
            "cache_synced": self.cache_synced,
            "pending_writes": self.pending_writes,
        }


class MutationPipeline:
    """Mutation 실행기

    Args:
        stores: 계정 종류별 AccountStore
        sync: 동기화 계층
        locks: 계정 잠금
        notifier: DEGRADED 알림 (선택)
    """

    def __init__(
        self,
        stores: dict[AccountKind, AccountStore],
        sync: SyncLayer,
        locks: AccountLocks,
        notifier: INotifier | None = None,
    ):
        self.stores = stores
        self.sync = sync
        self.locks = locks
        self.notifier = notifier

    async def run(
        self,
        operation: str,
        lock_keys: Iterable[AccountKey],
        build_plan: PlanBuilder,
    ) -> MutationResult:
        """Mutation 실행

        Args:
            operation: 작업 이름 (로깅/결과용)
            lock_keys: 잠글 계정 목록
            build_plan: 잠금 획득 후 호출되는 작업 목록 생성 함수
                        (LedgerError 발생 시 REJECTED)

        Returns:
            MutationResult (예외 대신 상태로 결과 전달)
        """
        mutation_id = new_mutation_id()
        machine = MutationStateMachine(mutation_id=mutation_id)
        result = MutationResult(mutation_id=mutation_id, operation=operation)
        log_extra = {"mutation_id": mutation_id, "operation": operation}

        async with self.locks.hold(lock_keys):
            machine.transition(MutationState.VALIDATING)
            try:
                plan = await build_plan()
            except LedgerError as e:
                return self._reject(machine, result, e, log_extra)

            release = self._adopt(plan.adopted)
            try:
                self._validate(plan.ops)
            except LedgerError as e:
                release()
                return self._reject(machine, result, e, log_extra)

            result.warnings.extend(w.to_dict() for w in plan.warnings)

            machine.transition(MutationState.APPLYING)
            try:
                self._apply(plan.ops)
            except LedgerError as e:
                release()
                return self._reject(machine, result, e, log_extra)

            machine.transition(MutationState.PERSISTING_REMOTE)
            writes = self._remote_writes(plan.ops, mutation_id)
            queued, failure = await self.sync.write_all(writes)

            if failure is None:
                machine.transition(MutationState.PERSISTING_CACHE)
            else:
                result.warnings.append(failure.to_dict())

            result.cache_synced = await self._mirror(plan.ops)
            if not result.cache_synced:
                result.warnings.append({
                    "code": "CacheWriteFailure",
                    "message": "로컬 캐시 저장 실패 (다음 refresh에서 갱신)",
                    "details": {},
                })

            self._collect(plan.ops, result)
            result.pending_writes = len(self.sync.pending)

            if failure is None:
                result.state = MutationState(machine.transition(MutationState.COMMITTED))
                logger.info(
                    "Mutation committed",
                    extra={**log_extra, "cache_synced": result.cache_synced},
                )
            else:
                result.state = MutationState(machine.transition(MutationState.DEGRADED))
                logger.warning(
                    "Mutation degraded: remote write failed",
                    extra={**log_extra, "queued": len(queued), "pending": result.pending_writes},
                )

        if result.degraded:
            await self._notify_degraded(result)
        return result

    # ------------------------------------------------------------------
    # 단계별 처리
    # ------------------------------------------------------------------

    def _reject(
        self,
        machine: MutationStateMachine,
        result: MutationResult,
        error: LedgerError,
        log_extra: dict[str, Any],
    ) -> MutationResult:
        result.state = MutationState(machine.transition(MutationState.REJECTED))
        result.error = error
        logger.info(
            f"Mutation rejected: {error.message}",
            extra={**log_extra, "code": error.code},
        )
        return result

    def _store(self, kind: AccountKind) -> AccountStore:
        return self.stores[kind]

    def _adopt(self, entries: list[LedgerEntry]) -> Callable[[], None]:
        """원격 전용 거래를 로그에 편입 (잔액 변경 없음), 되돌리기 함수 반환"""
        adopted: list[LedgerEntry] = []
        for entry in entries:
            store = self._store(entry.kind)
            if store.find_entry(entry.account_id, entry.entry_id) is None:
                store.load_entries(entry.account_id, [*store.list_entries(entry.account_id), entry])
                adopted.append(entry)

        def release() -> None:
            for entry in adopted:
                store = self._store(entry.kind)
                if store.has_account(entry.account_id):
                    store.load_entries(
                        entry.account_id,
                        [e for e in store.list_entries(entry.account_id) if e.entry_id != entry.entry_id],
                    )

        return release

    def _validate(self, ops: list[LocalOp]) -> None:
        """변경 없이 결과 잔액 검증 (잔액 부족, 존재 여부)"""
        if not ops:
            raise ValidationError("변경할 내용이 없습니다")

        opened: set[AccountKey] = set()
        grouped: dict[AccountKey, tuple[list[LedgerEntry], list[LedgerEntry]]] = {}

        for op in ops:
            store = self._store(op.kind)
            if op.action == LocalAction.OPEN_ACCOUNT:
                if store.has_account(op.account_id):
                    raise ValidationError(f"이미 존재하는 계정입니다: {op.account_id}", account_id=op.account_id)
                opened.add(op.key)
                continue
            if op.action in (LocalAction.UPDATE_ACCOUNT, LocalAction.CLOSE_ACCOUNT):
                store.get_account(op.account_id)
                continue

            removed, added = grouped.setdefault(op.key, ([], []))
            if op.action == LocalAction.ADD:
                if store.find_entry(op.account_id, op.entry.entry_id) is not None:
                    raise ValidationError(f"이미 존재하는 거래입니다: {op.entry.entry_id}", entry_id=op.entry.entry_id)
                added.append(op.entry)
            elif op.action == LocalAction.REMOVE:
                removed.append(store.get_entry(op.account_id, op.entry.entry_id))
            elif op.action == LocalAction.REPLACE:
                removed.append(store.get_entry(op.account_id, op.previous.entry_id))
                added.append(op.entry)

        for (kind, account_id), (removed, added) in grouped.items():
            if (kind, account_id) in opened:
                continue
            self._store(kind).preview_balance(account_id, removed=removed, added=added)

    def _apply(self, ops: list[LocalOp]) -> None:
        """로컬 반영 (중간 실패 시 이미 반영한 작업 되돌림)"""
        undo: list[Callable[[], Any]] = []
        try:
            for op in ops:
                undo.append(self._apply_one(op))
        except LedgerError:
            for revert in reversed(undo):
                revert()
            raise

    def _apply_one(self, op: LocalOp) -> Callable[[], Any]:
        store = self._store(op.kind)
        if op.action == LocalAction.ADD:
            store.apply_entry(op.account_id, op.entry)
            return lambda: store.reverse_entry(op.account_id, op.entry)
        if op.action == LocalAction.REMOVE:
            stored = store.get_entry(op.account_id, op.entry.entry_id)
            store.reverse_entry(op.account_id, stored)
            return lambda: store.apply_entry(op.account_id, stored)
        if op.action == LocalAction.REPLACE:
            stored = store.get_entry(op.account_id, op.previous.entry_id)
            store.replace_entry(op.account_id, stored, op.entry)
            return lambda: store.replace_entry(op.account_id, op.entry, stored)
        if op.action == LocalAction.OPEN_ACCOUNT:
            store.add_account(op.account)
            return lambda: store.remove_account(op.account_id)
        if op.action == LocalAction.UPDATE_ACCOUNT:
            previous = store.get_account(op.account_id)
            store.update_account(op.account_id, **(op.changes or {}))
            return lambda: store.load_account(previous)
        if op.action == LocalAction.CLOSE_ACCOUNT:
            previous = store.get_account(op.account_id)
            entries = store.list_entries(op.account_id) if store.entries_loaded(op.account_id) else None
            store.remove_account(op.account_id)

            def restore() -> None:
                store.add_account(previous)
                if entries is not None:
                    store.load_entries(op.account_id, reversed(entries))

            return restore
        raise ValidationError(f"알 수 없는 작업: {op.action}")

    def _remote_writes(self, ops: list[LocalOp], mutation_id: str) -> list[PendingWrite]:
        """로컬 작업 → 원격 쓰기 목록 (거래 쓰기 → 잔액 쓰기)"""
        writes: list[PendingWrite] = []
        balance_keys: list[AccountKey] = []
        closed: set[AccountKey] = set()

        for op in ops:
            kind, account_id = op.key
            collection = entries_collection(kind, account_id)

            if op.action in (LocalAction.ADD, LocalAction.REPLACE):
                writes.append(PendingWrite(
                    WriteOp.ADD, collection, op.entry.entry_id, kind, account_id,
                    entry_to_doc(op.entry), mutation_id,
                ))
            elif op.action == LocalAction.REMOVE:
                writes.append(PendingWrite(
                    WriteOp.DELETE, collection, op.entry.entry_id, kind, account_id, None, mutation_id,
                ))
            elif op.action == LocalAction.OPEN_ACCOUNT:
                writes.append(PendingWrite(
                    WriteOp.ADD, kind.collection, account_id, kind, account_id,
                    account_to_doc(self._store(kind).get_account(account_id)), mutation_id,
                ))
            elif op.action == LocalAction.UPDATE_ACCOUNT:
                account = self._store(kind).get_account(account_id)
                fields = {k: v for k, v in account_to_doc(account).items() if k not in (kind.balance_field, "initialBalance")}
                writes.append(PendingWrite(
                    WriteOp.UPDATE, kind.collection, account_id, kind, account_id, fields, mutation_id,
                ))
            elif op.action == LocalAction.CLOSE_ACCOUNT:
                closed.add(op.key)
                writes.append(PendingWrite(WriteOp.PURGE, collection, "", kind, account_id, None, mutation_id))
                writes.append(PendingWrite(
                    WriteOp.DELETE, kind.collection, account_id, kind, account_id, None, mutation_id,
                ))

            if op.action in ENTRY_ACTIONS and op.key not in balance_keys:
                balance_keys.append(op.key)

        for kind, account_id in balance_keys:
            if (kind, account_id) in closed:
                continue
            account = self._store(kind).get_account(account_id)
            writes.append(PendingWrite(
                WriteOp.BALANCE, kind.collection, account_id, kind, account_id,
                balance_fields(account), mutation_id,
            ))
        return writes

    async def _mirror(self, ops: list[LocalOp]) -> bool:
        """변경된 계정/거래 목록을 캐시에 저장"""
        ok = True
        kinds: list[AccountKind] = []
        for op in ops:
            if op.kind not in kinds:
                kinds.append(op.kind)

        for kind in kinds:
            ok &= await self.sync.mirror_accounts(kind, self._store(kind).list_accounts())

        mirrored: set[AccountKey] = set()
        for op in ops:
            if op.key in mirrored:
                continue
            mirrored.add(op.key)
            store = self._store(op.kind)
            if not store.has_account(op.account_id):
                ok &= await self.sync.drop_entries_cache(op.kind, op.account_id)
            elif store.entries_loaded(op.account_id):
                ok &= await self.sync.mirror_entries(op.kind, op.account_id, store.list_entries(op.account_id))
        return ok

    def _collect(self, ops: list[LocalOp], result: MutationResult) -> None:
        seen: set[AccountKey] = set()
        for op in ops:
            if op.entry is not None:
                result.entries.append(op.entry)

            if op.key in seen:
                continue
            seen.add(op.key)
            store = self._store(op.kind)
            if not store.has_account(op.account_id):
                continue
            account = store.get_account(op.account_id)
            result.balances.append({
                "kind": op.kind.value,
                "account_id": op.account_id,
                "balance": dec_str(account.balance),
                "currency": account.currency,
            })
            if op.action in (LocalAction.OPEN_ACCOUNT, LocalAction.UPDATE_ACCOUNT):
                result.accounts.append(account)

    async def _notify_degraded(self, result: MutationResult) -> None:
        if self.notifier is None:
            return
        sent = await self.notifier.send(
            f"원격 저장 실패: {result.operation} (미전송 {result.pending_writes}건, refresh 필요)",
            level="WARNING",
            extra={
                "mutation_id": result.mutation_id,
                "operation": result.operation,
                "state": result.state.value,
                "pending_writes": result.pending_writes,
            },
        )
        if not sent:
            logger.warning("Degraded notification not delivered", extra={"mutation_id": result.mutation_id})
