"""
동기화 계층

원격 저장소(권위 있는 원본)와 로컬 캐시 사이의 쓰기/읽기 정책.

- 쓰기: 원격 쓰기를 순서대로 실행. 첫 실패 시 그 쓰기와 나머지를 outbox에 보관.
- 읽기: 원격 우선, 결과를 캐시에 반영. 원격 읽기 실패 시에만 캐시 사용.
- outbox: 캐시의 pending_writes 키에 저장. 명시적 refresh에서만 재전송.
  잔액 쓰기는 재전송 시점의 로컬 잔액으로 다시 계산.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from adapters.errors import CacheError, RemoteStoreError
from adapters.interfaces import ILocalCache, IRemoteStore
from core.constants import CacheKeys, Collections
from core.ledger.entry import Account, LedgerEntry
from core.ledger.errors import RemoteWriteFailure
from core.ledger.records import (
    account_from_doc,
    accounts_from_blob,
    accounts_to_blob,
    entries_from_blob,
    entries_to_blob,
    entry_from_doc,
)
from core.types import AccountKind

logger = logging.getLogger(__name__)


class WriteOp(str, Enum):
    """원격 쓰기 종류"""

    ADD = "add"  # 문서 추가 (ID 지정, 재전송 멱등)
    UPDATE = "update"  # 부분 갱신
    DELETE = "delete"  # 문서 삭제
    BALANCE = "balance"  # 계정 잔액 갱신 (재전송 시 로컬 잔액으로 재계산)
    PURGE = "purge"  # 컬렉션 전체 삭제 (계정 삭제 시 거래 하위 컬렉션)


class ReconcileAction(str, Enum):
    """refresh 시 계정별 조치"""

    ADOPTED_REMOTE = "adopted_remote"
    KEPT_LOCAL = "kept_local"
    PUSHED_LOCAL = "pushed_local"


class DataSource(str, Enum):
    """읽기 결과 출처"""

    REMOTE = "remote"
    CACHE = "cache"


@dataclass(frozen=True)
class PendingWrite:
    """미전송 원격 쓰기

    Attributes:
        op: 쓰기 종류
        collection: 대상 컬렉션
        doc_id: 대상 문서 ID (PURGE는 빈 문자열)
        fields: 문서 필드 (ADD/UPDATE/BALANCE)
        kind: 관련 계정 종류
        account_id: 관련 계정 ID
        mutation_id: 발생시킨 mutation
    """

    op: WriteOp
    collection: str
    doc_id: str
    kind: AccountKind
    account_id: str
    fields: dict[str, Any] | None = None
    mutation_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["op"] = self.op.value
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingWrite":
        return cls(
            op=WriteOp(data["op"]),
            collection=data["collection"],
            doc_id=data.get("doc_id") or "",
            kind=AccountKind(data["kind"]),
            account_id=data["account_id"],
            fields=data.get("fields"),
            mutation_id=data.get("mutation_id") or "",
        )

    def touches(self, kind: AccountKind, account_id: str) -> bool:
        return self.kind == kind and self.account_id == account_id


@dataclass
class DriftItem:
    """계정별 로컬/원격 잔액 비교"""

    kind: AccountKind
    account_id: str
    local_balance: Decimal | None
    remote_balance: Decimal | None
    action: ReconcileAction

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "account_id": self.account_id,
            "local_balance": str(self.local_balance) if self.local_balance is not None else None,
            "remote_balance": str(self.remote_balance) if self.remote_balance is not None else None,
            "action": self.action.value,
        }


@dataclass
class ReconcileReport:
    """refresh 결과"""

    replayed: int = 0
    remaining: int = 0
    source: DataSource = DataSource.REMOTE
    drifts: list[DriftItem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        """미전송 쓰기 없음 여부"""
        return self.remaining == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "replayed": self.replayed,
            "remaining": self.remaining,
            "source": self.source.value,
            "drifts": [d.to_dict() for d in self.drifts],
            "warnings": list(self.warnings),
        }


@dataclass
class ReplayResult:
    """outbox 재전송 결과"""

    replayed: int = 0
    remaining: int = 0
    pushed: set[tuple[AccountKind, str]] = field(default_factory=set)
    error: str | None = None


# (kind, account_id) → 현재 로컬 잔액 문서 (없으면 None = 계정 삭제됨)
BalanceResolver = Callable[[AccountKind, str], dict[str, Any] | None]


def entries_collection(kind: AccountKind, account_id: str) -> str:
    """계정 거래 하위 컬렉션 이름"""
    return Collections.transactions(kind.collection, account_id)


class SyncLayer:
    """원격 저장소 + 로컬 캐시 동기화

    Args:
        remote: 원격 문서 저장소
        cache: 로컬 캐시
    """

    def __init__(self, remote: IRemoteStore, cache: ILocalCache):
        self.remote = remote
        self.cache = cache
        self._outbox: list[PendingWrite] = []
        self._outbox_loaded = False

    # ------------------------------------------------------------------
    # outbox
    # ------------------------------------------------------------------

    async def load_outbox(self) -> list[PendingWrite]:
        """캐시에 보관된 outbox 로드 (최초 1회)"""
        if self._outbox_loaded:
            return list(self._outbox)
        try:
            blob = await self.cache.get(CacheKeys.PENDING_WRITES)
        except CacheError as e:
            logger.warning(f"Outbox load failed, starting empty: {e}")
            blob = None

        self._outbox = [PendingWrite.from_dict(item) for item in blob or []]
        self._outbox_loaded = True
        if self._outbox:
            logger.warning(
                "Pending remote writes restored",
                extra={"pending": len(self._outbox)},
            )
        return list(self._outbox)

    @property
    def pending(self) -> list[PendingWrite]:
        return list(self._outbox)

    def pending_for(self, kind: AccountKind, account_id: str) -> list[PendingWrite]:
        """계정 관련 미전송 쓰기"""
        return [w for w in self._outbox if w.touches(kind, account_id)]

    def has_pending(self, kind: AccountKind | None = None, account_id: str | None = None) -> bool:
        """미전송 쓰기 존재 여부 (계정 지정 시 해당 계정만)"""
        if kind is None:
            return bool(self._outbox)
        if account_id is None:
            return any(w.kind == kind for w in self._outbox)
        return any(w.touches(kind, account_id) for w in self._outbox)

    async def queue(self, writes: Iterable[PendingWrite]) -> bool:
        """outbox에 추가 후 캐시에 저장

        Returns:
            캐시 저장 성공 여부 (실패해도 메모리 outbox는 유지)
        """
        self._outbox.extend(writes)
        return await self._persist_outbox()

    async def _persist_outbox(self) -> bool:
        try:
            if self._outbox:
                await self.cache.put(CacheKeys.PENDING_WRITES, [w.to_dict() for w in self._outbox])
            else:
                await self.cache.delete(CacheKeys.PENDING_WRITES)
        except CacheError as e:
            logger.warning(
                f"Outbox persist failed: {e}",
                extra={"pending": len(self._outbox)},
            )
            return False
        return True

    # ------------------------------------------------------------------
    # write-through
    # ------------------------------------------------------------------

    async def write(self, pending: PendingWrite, balance_fields: dict[str, Any] | None = None) -> None:
        """원격 쓰기 1건 실행

        Args:
            pending: 쓰기
            balance_fields: BALANCE 쓰기에 사용할 현재 잔액 문서 (없으면 pending.fields)

        Raises:
            RemoteWriteFailure: 원격 저장 실패
        """
        try:
            if pending.op == WriteOp.ADD:
                await self.remote.add(pending.collection, pending.fields or {}, doc_id=pending.doc_id)
            elif pending.op in (WriteOp.UPDATE, WriteOp.BALANCE):
                fields = balance_fields if balance_fields is not None else pending.fields
                await self.remote.update(pending.collection, pending.doc_id, fields or {})
            elif pending.op == WriteOp.DELETE:
                await self.remote.delete(pending.collection, pending.doc_id)
            elif pending.op == WriteOp.PURGE:
                for doc in await self.remote.list_collection(pending.collection):
                    await self.remote.delete(pending.collection, doc["id"])
        except RemoteStoreError as e:
            raise RemoteWriteFailure(
                f"원격 저장 실패: {e}",
                op=pending.op.value,
                collection=pending.collection,
                doc_id=pending.doc_id,
            ) from e

    async def write_all(self, writes: list[PendingWrite]) -> tuple[list[PendingWrite], RemoteWriteFailure | None]:
        """원격 쓰기를 순서대로 실행

        관련 계정에 이전 미전송 쓰기가 있으면 순서 보장을 위해 시도 없이 outbox에 추가.

        Returns:
            (outbox에 보관된 쓰기 목록, 실패 원인)
        """
        blocked = [w for w in writes if self.has_pending(w.kind, w.account_id)]
        if blocked:
            failure = RemoteWriteFailure(
                "이전 원격 쓰기가 미전송 상태라 순서 보장을 위해 보류",
                pending=len(self._outbox),
            )
            await self.queue(writes)
            return list(writes), failure

        for index, pending in enumerate(writes):
            try:
                await self.write(pending)
            except RemoteWriteFailure as e:
                remaining = writes[index:]
                await self.queue(remaining)
                logger.warning(
                    f"Remote write failed, {len(remaining)} write(s) kept in outbox",
                    extra={
                        "mutation_id": pending.mutation_id,
                        "op": pending.op.value,
                        "collection": pending.collection,
                        "doc_id": pending.doc_id,
                    },
                )
                return remaining, e
        return [], None

    async def replay(self, resolve_balance: BalanceResolver) -> ReplayResult:
        """outbox 재전송 (첫 실패에서 중단, 나머지 유지)

        Args:
            resolve_balance: BALANCE 쓰기 시점의 로컬 잔액 문서 조회
        """
        await self.load_outbox()
        result = ReplayResult()
        touched: set[tuple[AccountKind, str]] = set()

        while self._outbox:
            pending = self._outbox[0]
            balance_fields = None
            if pending.op == WriteOp.BALANCE:
                balance_fields = resolve_balance(pending.kind, pending.account_id)
                if balance_fields is None:
                    # 이후 계정 삭제됨
                    self._outbox.pop(0)
                    continue
            try:
                await self.write(pending, balance_fields)
            except RemoteWriteFailure as e:
                result.error = e.message
                logger.warning(
                    f"Outbox replay stopped: {e.message}",
                    extra={"replayed": result.replayed, "remaining": len(self._outbox)},
                )
                break
            self._outbox.pop(0)
            result.replayed += 1
            touched.add((pending.kind, pending.account_id))

        await self._persist_outbox()
        result.remaining = len(self._outbox)
        result.pushed = {key for key in touched if not self.has_pending(*key)}

        if result.replayed:
            logger.info(
                "Outbox replayed",
                extra={"replayed": result.replayed, "remaining": result.remaining},
            )
        return result

    # ------------------------------------------------------------------
    # 캐시 반영
    # ------------------------------------------------------------------

    async def mirror_accounts(self, kind: AccountKind, accounts: list[Account]) -> bool:
        """계정 목록을 캐시에 저장 (실패 시 False)"""
        return await self._cache_put(kind.collection, accounts_to_blob(accounts))

    async def mirror_entries(self, kind: AccountKind, account_id: str, entries: list[LedgerEntry]) -> bool:
        """계정 거래 목록을 캐시에 저장 (실패 시 False)"""
        return await self._cache_put(CacheKeys.entries(kind.value, account_id), entries_to_blob(entries))

    async def drop_entries_cache(self, kind: AccountKind, account_id: str) -> bool:
        """계정 거래 캐시 삭제"""
        key = CacheKeys.entries(kind.value, account_id)
        try:
            await self.cache.delete(key)
        except CacheError as e:
            logger.warning(f"Cache delete failed: {e}", extra={"cache_key": key})
            return False
        return True

    async def _cache_put(self, key: str, blob: Any) -> bool:
        try:
            await self.cache.put(key, blob)
        except CacheError as e:
            logger.warning(f"Cache write failed: {e}", extra={"cache_key": key})
            return False
        return True

    # ------------------------------------------------------------------
    # read-through
    # ------------------------------------------------------------------

    async def cached_accounts(self, kind: AccountKind) -> list[Account]:
        """캐시의 계정 목록 (읽기 실패 시 빈 목록)"""
        try:
            blob = await self.cache.get(kind.collection)
        except CacheError as e:
            logger.warning(f"Cache read failed: {e}", extra={"cache_key": kind.collection})
            return []
        return accounts_from_blob(blob or [], kind)

    async def cached_entries(self, kind: AccountKind, account_id: str) -> list[LedgerEntry]:
        """캐시의 거래 목록 (읽기 실패 시 빈 목록)"""
        key = CacheKeys.entries(kind.value, account_id)
        try:
            blob = await self.cache.get(key)
        except CacheError as e:
            logger.warning(f"Cache read failed: {e}", extra={"cache_key": key})
            return []
        return entries_from_blob(blob or [], kind, account_id)

    async def fetch_accounts(self, kind: AccountKind) -> list[Account]:
        """원격 계정 목록 (캐시 반영 없음)

        Raises:
            RemoteStoreError: 원격 읽기 실패
        """
        docs = await self.remote.list_collection(kind.collection)
        return [account_from_doc(doc, kind, doc["id"]) for doc in docs]

    async def fetch_entries(self, kind: AccountKind, account_id: str) -> list[LedgerEntry]:
        """원격 거래 목록 (읽을 수 없는 문서는 건너뜀)

        Raises:
            RemoteStoreError: 원격 읽기 실패
        """
        docs = await self.remote.list_collection(entries_collection(kind, account_id))
        entries: list[LedgerEntry] = []
        for doc in docs:
            try:
                entries.append(entry_from_doc(doc, kind, account_id, doc["id"]))
            except (ValueError, KeyError) as e:
                logger.warning(
                    f"Skipping unreadable remote entry: {e}",
                    extra={"kind": kind.value, "account_id": account_id, "entry_id": doc.get("id")},
                )
        return entries

    async def load_accounts(self, kind: AccountKind, mirror: bool = True) -> tuple[list[Account], DataSource]:
        """계정 목록 read-through (원격 우선, 실패 시 캐시)

        Args:
            kind: 계정 종류
            mirror: 원격 결과를 캐시에 반영할지 여부
        """
        try:
            accounts = await self.fetch_accounts(kind)
        except RemoteStoreError as e:
            logger.warning(
                f"Remote read failed, using cache: {e}",
                extra={"kind": kind.value},
            )
            return await self.cached_accounts(kind), DataSource.CACHE

        if mirror:
            await self.mirror_accounts(kind, accounts)
        return accounts, DataSource.REMOTE

    async def load_entries(self, kind: AccountKind, account_id: str) -> tuple[list[LedgerEntry], DataSource]:
        """거래 목록 read-through (원격 우선, 실패 시 캐시)"""
        try:
            entries = await self.fetch_entries(kind, account_id)
        except RemoteStoreError as e:
            logger.warning(
                f"Remote read failed, using cache: {e}",
                extra={"kind": kind.value, "account_id": account_id},
            )
            return await self.cached_entries(kind, account_id), DataSource.CACHE

        await self.mirror_entries(kind, account_id, entries)
        return entries, DataSource.REMOTE

    async def find_remote_entry(self, kind: AccountKind, account_id: str, entry_id: str) -> LedgerEntry | None:
        """원격 저장소에서 거래 1건 조회 (없거나 읽기 실패 시 None)"""
        try:
            doc = await self.remote.get(entries_collection(kind, account_id), entry_id)
        except RemoteStoreError as e:
            logger.warning(
                f"Remote entry lookup failed: {e}",
                extra={"kind": kind.value, "account_id": account_id, "entry_id": entry_id},
            )
            return None
        if doc is None:
            return None
        try:
            return entry_from_doc(doc, kind, account_id, entry_id)
        except (ValueError, KeyError) as e:
            logger.warning(
                f"Unreadable remote entry: {e}",
                extra={"kind": kind.value, "account_id": account_id, "entry_id": entry_id},
            )
            return None
