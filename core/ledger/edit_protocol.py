"""
거래 수정/삭제 (역적용 후 재적용)

수정: reverse(E) → apply(E') (같은 ID). 이중 기입 거래는 상대 거래도
자신의 고정 환율로 재계산해 같은 규칙으로 교체.
삭제: reverse(E) + 연결된 상대 거래 연쇄 삭제.
상대 거래가 메모리에도 원격 저장소에도 없으면 LinkedEntryMissing 경고 후 원래 거래만 삭제.

잔액 부족 검사를 포함한 모든 검증은 변경 전에 수행 (MutationPipeline VALIDATING).
"""

import logging
from typing import Any

from core.ledger.account_store import AccountStore
from core.ledger.entry import LedgerEntry
from core.ledger.entry_builder import EntryBuilder
from core.ledger.errors import AccountNotFound, LinkedEntryMissing, ValidationError
from core.ledger.hydration import Hydrator
from core.ledger.locks import AccountKey
from core.ledger.pipeline import LocalOp, MutationPipeline, MutationPlan, MutationResult
from core.types import AccountKind

logger = logging.getLogger(__name__)

# 원격 저장 시 먼저 기록되는 쪽 (이중 기입의 의존 측)
DEPENDENT_KINDS: frozenset[AccountKind] = frozenset({
    AccountKind.SUPPLIER,
    AccountKind.BANK,
    AccountKind.WALLET,
})


def ordered_pair(primary: LocalOp, counterpart: LocalOp) -> list[LocalOp]:
    """의존 측 작업이 먼저 오도록 정렬"""
    if counterpart.kind in DEPENDENT_KINDS and primary.kind not in DEPENDENT_KINDS:
        return [counterpart, primary]
    return [primary, counterpart]


class EditReversalProtocol:
    """거래 수정/삭제 처리기

    Args:
        pipeline: Mutation 실행기
        builder: 거래 재계산
        hydrator: 지연 로딩
    """

    def __init__(self, pipeline: MutationPipeline, builder: EntryBuilder, hydrator: Hydrator):
        self.pipeline = pipeline
        self.builder = builder
        self.hydrator = hydrator

    def _store(self, kind: AccountKind) -> AccountStore:
        return self.pipeline.stores[kind]

    async def _linked_key(self, kind: AccountKind, account_id: str, entry_id: str) -> AccountKey | None:
        """잠글 상대 계정 확인 (없는 거래면 None, 파이프라인 검증에서 거부)"""
        await self.hydrator.ensure_accounts(kind)
        try:
            async with self.pipeline.locks.hold([(kind, account_id)]):
                await self.hydrator.ensure_entries(kind, account_id)
        except AccountNotFound:
            return None
        entry = self._store(kind).find_entry(account_id, entry_id)
        if entry is None or not entry.is_linked:
            return None
        return (entry.linked_kind, entry.linked_account_id)

    async def _find_counterpart(self, entry: LedgerEntry) -> tuple[LedgerEntry | None, bool]:
        """상대 거래 조회 (메모리 → 원격 저장소)

        Returns:
            (상대 거래, 원격 전용 여부). 원격 전용 거래는 계획이 완성된 뒤
            MutationPlan.adopted로 로그에 편입.
        """
        kind, account_id = entry.linked_kind, entry.linked_account_id
        store = self._store(kind)
        try:
            await self.hydrator.ensure_entries(kind, account_id)
        except AccountNotFound:
            return None, False

        found = store.find_entry(account_id, entry.linked_entry_id)
        if found is not None:
            return found, False

        remote = await self.hydrator.sync.find_remote_entry(kind, account_id, entry.linked_entry_id)
        if remote is None:
            return None, False
        logger.warning(
            "Linked entry found only in remote store, adopting into local log",
            extra={"kind": kind.value, "account_id": account_id, "entry_id": remote.entry_id},
        )
        return remote, True

    def _missing(self, entry: LedgerEntry) -> LinkedEntryMissing:
        warning = LinkedEntryMissing(
            "연결된 상대 거래를 찾을 수 없습니다",
            entry_id=entry.entry_id,
            linked_kind=entry.linked_kind.value if entry.linked_kind else "",
            linked_account_id=entry.linked_account_id or "",
            linked_entry_id=entry.linked_entry_id or "",
        )
        logger.warning(
            warning.message,
            extra={
                "entry_id": entry.entry_id,
                "linked_account_id": entry.linked_account_id,
                "linked_entry_id": entry.linked_entry_id,
            },
        )
        return warning

    # ------------------------------------------------------------------
    # 수정
    # ------------------------------------------------------------------

    async def edit(
        self,
        kind: AccountKind,
        account_id: str,
        entry_id: str,
        fields: dict[str, Any],
    ) -> MutationResult:
        """거래 수정

        Args:
            fields: 변경할 입력 필드 (없는 필드는 기존 값 유지).
                    supplier_rate는 연결된 supplier bill의 환율을 교체.
        """
        linked_key = await self._linked_key(kind, account_id, entry_id)
        lock_keys: list[AccountKey] = [(kind, account_id)]
        if linked_key is not None:
            await self.hydrator.ensure_accounts(linked_key[0])
            lock_keys.append(linked_key)

        async def build_plan() -> MutationPlan:
            await self.hydrator.ensure_entries(kind, account_id)
            store = self._store(kind)
            existing = store.get_entry(account_id, entry_id)
            _check_linked_key(existing, linked_key)

            account = store.get_account(account_id)
            updated = self.builder.rebuild(existing, fields, account.supplier_type)
            if not existing.is_linked:
                return MutationPlan([LocalOp.replace(existing, updated)])

            counterpart, remote_only = await self._find_counterpart(existing)
            if counterpart is None:
                return MutationPlan([LocalOp.replace(existing, updated)], warnings=[self._missing(existing)])

            rebased = self.builder.rebase_counterpart(counterpart, updated, fields)
            updated = updated.with_changes(linked_amount=rebased.amount)
            ops = ordered_pair(LocalOp.replace(existing, updated), LocalOp.replace(counterpart, rebased))
            return MutationPlan(ops, adopted=[counterpart] if remote_only else [])

        return await self.pipeline.run("edit_entry", lock_keys, build_plan)

    # ------------------------------------------------------------------
    # 삭제
    # ------------------------------------------------------------------

    async def delete(self, kind: AccountKind, account_id: str, entry_id: str) -> MutationResult:
        """거래 삭제 (연결된 상대 거래 연쇄 삭제)"""
        linked_key = await self._linked_key(kind, account_id, entry_id)
        lock_keys: list[AccountKey] = [(kind, account_id)]
        if linked_key is not None:
            await self.hydrator.ensure_accounts(linked_key[0])
            lock_keys.append(linked_key)

        async def build_plan() -> MutationPlan:
            await self.hydrator.ensure_entries(kind, account_id)
            existing = self._store(kind).get_entry(account_id, entry_id)
            _check_linked_key(existing, linked_key)

            if not existing.is_linked:
                return MutationPlan([LocalOp.remove(existing)])

            counterpart, remote_only = await self._find_counterpart(existing)
            if counterpart is None:
                return MutationPlan([LocalOp.remove(existing)], warnings=[self._missing(existing)])
            return MutationPlan(
                ordered_pair(LocalOp.remove(existing), LocalOp.remove(counterpart)),
                adopted=[counterpart] if remote_only else [],
            )

        return await self.pipeline.run("delete_entry", lock_keys, build_plan)


def _check_linked_key(entry: LedgerEntry, locked: AccountKey | None) -> None:
    """잠금 획득 사이 거래 연결이 바뀌지 않았는지 확인"""
    current = (entry.linked_kind, entry.linked_account_id) if entry.is_linked else None
    if current != locked:
        raise ValidationError(
            "거래가 처리 중에 변경되었습니다. 다시 시도하세요",
            entry_id=entry.entry_id,
        )
