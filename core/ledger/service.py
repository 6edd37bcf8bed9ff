"""
LedgerService (Facade)

계정 종류별 AccountStore, 동기화 계층, 잠금, Mutation 파이프라인을 묶어
CLI/Web이 사용하는 단일 진입점 제공.

사용 예시:
```python
service = LedgerService(remote, cache, notifier=notifier)
await service.start()

result = await service.create_account("bank", "City Bank", initial_balance="100")
bank_id = result.accounts[0].account_id
result = await service.post_entry("bank", bank_id, "withdraw", {"amount": "150"})
assert result.state == MutationState.REJECTED  # InsufficientBalance
```
"""

import logging
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

from adapters.errors import RemoteStoreError
from adapters.interfaces import ILocalCache, INotifier, IRemoteStore
from core.constants import Defaults
from core.ledger.account_store import AccountStore, Listener
from core.ledger.amount_math import to_decimal
from core.ledger.dashboard import DashboardSummary, summarize
from core.ledger.edit_protocol import EditReversalProtocol
from core.ledger.entry import Account, LedgerEntry
from core.ledger.entry_builder import EntryBuilder
from core.ledger.errors import ValidationError
from core.ledger.hydration import Hydrator
from core.ledger.locks import AccountLocks
from core.ledger.pipeline import LocalAction, LocalOp, MutationPipeline, MutationPlan, MutationResult
from core.ledger.posting import DualPostingCoordinator
from core.ledger.records import balance_fields
from core.ledger.sync import DataSource, DriftItem, ReconcileAction, ReconcileReport, SyncLayer
from core.types import AccountKind, EntryType, SupplierType
from core.utils.ids import new_account_id
from core.utils.timezone import now_utc, today_str

logger = logging.getLogger(__name__)


def parse_kind(value: AccountKind | str) -> AccountKind:
    """계정 종류 파싱

    Raises:
        ValidationError: 알 수 없는 종류
    """
    try:
        return AccountKind(value)
    except ValueError as e:
        raise ValidationError(f"알 수 없는 계정 종류: {value}", kind=value) from e


class LedgerService:
    """Ledger Facade

    Args:
        remote: 원격 문서 저장소 (권위 있는 원본)
        cache: 로컬 캐시
        notifier: DEGRADED 알림 (선택)
        default_dhs_rate: agent 거래 기본 DHS 환율
        usd_rate: 대시보드 기본 USD 환율
        clock: 현재 시각 (테스트 주입용)
    """

    def __init__(
        self,
        remote: IRemoteStore,
        cache: ILocalCache,
        notifier: INotifier | None = None,
        *,
        default_dhs_rate: Decimal = Defaults.DHS_RATE,
        usd_rate: Decimal = Defaults.USD_RATE,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._clock = clock
        self.usd_rate = usd_rate
        self.stores: dict[AccountKind, AccountStore] = {
            kind: AccountStore(kind, clock=clock) for kind in AccountKind
        }
        self.sync = SyncLayer(remote, cache)
        self.locks = AccountLocks()
        self.pipeline = MutationPipeline(self.stores, self.sync, self.locks, notifier)
        self.builder = EntryBuilder(default_dhs_rate=default_dhs_rate, clock=clock)
        self.hydrator = Hydrator(self.stores, self.sync)
        self.posting = DualPostingCoordinator(self.pipeline, self.builder, self.hydrator, clock=clock)
        self.editor = EditReversalProtocol(self.pipeline, self.builder, self.hydrator)

    async def start(self) -> None:
        """시작 시 미전송 쓰기 복원"""
        pending = await self.sync.load_outbox()
        logger.info("LedgerService started", extra={"pending_writes": len(pending)})

    def store(self, kind: AccountKind | str) -> AccountStore:
        return self.stores[parse_kind(kind)]

    def subscribe(self, kind: AccountKind | str, listener: Listener) -> Callable[[], None]:
        """계정 변경 구독 (종류별 공유 저장소)"""
        return self.store(kind).subscribe(listener)

    # ------------------------------------------------------------------
    # 계정 관리
    # ------------------------------------------------------------------

    async def create_account(
        self,
        kind: AccountKind | str,
        name: str,
        contact: str = "",
        initial_balance: Any = "0",
        supplier_type: SupplierType | str | None = None,
    ) -> MutationResult:
        """계정 생성 (initial_balance는 기초 잔액, 거래 없이 잔액에 포함)"""
        kind = parse_kind(kind)
        await self.hydrator.ensure_accounts(kind)
        account_id = new_account_id()

        async def build_plan() -> MutationPlan:
            if not name or not name.strip():
                raise ValidationError("계정 이름은 필수입니다", field="name")
            initial = to_decimal(initial_balance if initial_balance not in (None, "") else "0")
            if initial is None:
                raise ValidationError(
                    f"숫자가 아닌 기초 잔액: {initial_balance!r}",
                    field="initial_balance",
                    value=initial_balance,
                )
            today = today_str(self._clock())
            account = Account(
                account_id=account_id,
                kind=kind,
                name=name.strip(),
                balance=initial,
                initial_balance=initial,
                contact=contact or "",
                supplier_type=_supplier_type(kind, supplier_type),
                created_at=today,
                updated_at=today,
            )
            return MutationPlan([LocalOp(LocalAction.OPEN_ACCOUNT, kind, account_id, account=account)])

        return await self.pipeline.run("create_account", [(kind, account_id)], build_plan)

    async def update_account(
        self,
        kind: AccountKind | str,
        account_id: str,
        name: str | None = None,
        contact: str | None = None,
    ) -> MutationResult:
        """계정 정보 수정 (이름, 연락처)"""
        kind = parse_kind(kind)
        await self.hydrator.ensure_accounts(kind)

        async def build_plan() -> MutationPlan:
            changes: dict[str, Any] = {}
            if name is not None:
                if not name.strip():
                    raise ValidationError("계정 이름은 비울 수 없습니다", field="name")
                changes["name"] = name.strip()
            if contact is not None:
                changes["contact"] = contact
            if not changes:
                raise ValidationError("변경할 필드가 없습니다", account_id=account_id)
            return MutationPlan([
                LocalOp(LocalAction.UPDATE_ACCOUNT, kind, account_id, changes=changes),
            ])

        return await self.pipeline.run("update_account", [(kind, account_id)], build_plan)

    async def delete_account(self, kind: AccountKind | str, account_id: str) -> MutationResult:
        """계정 삭제 (거래 로그, 원격 거래 문서, 캐시 함께 폐기)"""
        kind = parse_kind(kind)
        await self.hydrator.ensure_accounts(kind)

        async def build_plan() -> MutationPlan:
            return MutationPlan([LocalOp(LocalAction.CLOSE_ACCOUNT, kind, account_id)])

        result = await self.pipeline.run("delete_account", [(kind, account_id)], build_plan)
        if result.ok:
            self.locks.forget(kind, account_id)
        return result

    # ------------------------------------------------------------------
    # 거래
    # ------------------------------------------------------------------

    async def post_entry(
        self,
        kind: AccountKind | str,
        account_id: str,
        entry_type: EntryType | str,
        fields: dict[str, Any],
    ) -> MutationResult:
        """단일 계정 거래 기록"""
        kind = parse_kind(kind)
        await self.hydrator.ensure_accounts(kind)

        async def build_plan() -> MutationPlan:
            await self.hydrator.ensure_entries(kind, account_id)
            account = self.stores[kind].get_account(account_id)
            entry = self.builder.build(
                kind,
                account_id,
                entry_type,
                fields,
                supplier_type=account.supplier_type,
            )
            return MutationPlan([LocalOp.add(entry)])

        return await self.pipeline.run("post_entry", [(kind, account_id)], build_plan)

    async def edit_entry(
        self,
        kind: AccountKind | str,
        account_id: str,
        entry_id: str,
        fields: dict[str, Any],
    ) -> MutationResult:
        """거래 수정 (연결된 상대 거래도 재계산)"""
        return await self.editor.edit(parse_kind(kind), account_id, entry_id, fields)

    async def delete_entry(self, kind: AccountKind | str, account_id: str, entry_id: str) -> MutationResult:
        """거래 삭제 (연결된 상대 거래 연쇄 삭제)"""
        return await self.editor.delete(parse_kind(kind), account_id, entry_id)

    async def create_order(
        self,
        customer_id: str,
        supplier_id: str,
        rmb_amount: Any,
        customer_rate: Any,
        supplier_rate: Any,
        notes: str = "",
        date: str | None = None,
    ) -> MutationResult:
        return await self.posting.create_order(
            customer_id, supplier_id, rmb_amount, customer_rate, supplier_rate, notes, date,
        )

    async def receive_payment(
        self,
        customer_id: str,
        bank_id: str,
        amount: Any,
        notes: str = "",
        date: str | None = None,
    ) -> MutationResult:
        return await self.posting.receive_payment(customer_id, bank_id, amount, notes, date)

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    async def get_account(self, kind: AccountKind | str, account_id: str) -> Account:
        """계정 조회

        Raises:
            AccountNotFound: 없는 계정
        """
        kind = parse_kind(kind)
        await self.hydrator.ensure_accounts(kind)
        return self.stores[kind].get_account(account_id)

    async def get_balance(self, kind: AccountKind | str, account_id: str) -> Decimal:
        """현재 잔액 (계정 기본 단위, 전체 정밀도)"""
        account = await self.get_account(kind, account_id)
        return account.balance

    async def list_accounts(self, kind: AccountKind | str) -> list[Account]:
        kind = parse_kind(kind)
        await self.hydrator.ensure_accounts(kind)
        return self.stores[kind].list_accounts()

    async def list_entries(self, kind: AccountKind | str, account_id: str) -> list[LedgerEntry]:
        """계정 거래 목록 (최신 우선)"""
        kind = parse_kind(kind)
        await self.hydrator.ensure_accounts(kind)
        async with self.locks.hold([(kind, account_id)]):
            await self.hydrator.ensure_entries(kind, account_id)
            return self.stores[kind].list_entries(account_id)

    async def dashboard(self, usd_rate: Any = None) -> DashboardSummary:
        """순자산 요약 (모든 계정 종류 로드)"""
        for kind in AccountKind:
            await self.hydrator.ensure_accounts(kind)
        return summarize(self.stores, usd_rate if usd_rate is not None else self.usd_rate)

    # ------------------------------------------------------------------
    # refresh / reconcile
    # ------------------------------------------------------------------

    async def refresh(self, kind: AccountKind | str | None = None) -> ReconcileReport:
        """미전송 쓰기 재전송 후 원격 상태와 재조정

        미전송 쓰기가 남은 계정은 원격 값으로 덮어쓰지 않고 로컬 값 유지.

        Args:
            kind: 재조정할 계정 종류 (None이면 전체). 재전송은 항상 전체 outbox.
        """
        kinds = [parse_kind(kind)] if kind is not None else list(AccountKind)

        pending = await self.sync.load_outbox()
        for pending_kind in {w.kind for w in pending}:
            await self.hydrator.ensure_accounts(pending_kind)

        replay = await self.sync.replay(self._resolve_balance)
        report = ReconcileReport(replayed=replay.replayed, remaining=replay.remaining)
        if replay.error:
            report.warnings.append(f"미전송 쓰기 재전송 중단: {replay.error}")

        for reconcile_kind in kinds:
            await self._reconcile_kind(reconcile_kind, replay.pushed, report)

        logger.info(
            "Refresh completed",
            extra={
                "replayed": report.replayed,
                "remaining": report.remaining,
                "source": report.source.value,
                "drifts": len(report.drifts),
            },
        )
        return report

    def _resolve_balance(self, kind: AccountKind, account_id: str) -> dict[str, Any] | None:
        store = self.stores[kind]
        if not store.has_account(account_id):
            return None
        return balance_fields(store.get_account(account_id))

    async def _reconcile_kind(
        self,
        kind: AccountKind,
        pushed: set[tuple[AccountKind, str]],
        report: ReconcileReport,
    ) -> None:
        store = self.stores[kind]
        try:
            remote_accounts = await self.sync.fetch_accounts(kind)
        except RemoteStoreError as e:
            report.source = DataSource.CACHE
            report.warnings.append(f"{kind.value}: 원격 읽기 실패, 로컬 상태 유지 ({e})")
            await self.hydrator.ensure_accounts(kind)
            return

        was_hydrated = store.hydrated
        remote_by_id = {a.account_id: a for a in remote_accounts}
        account_ids = list(remote_by_id)
        account_ids += [a.account_id for a in store.list_accounts() if a.account_id not in remote_by_id]

        async with self.locks.hold([(kind, account_id) for account_id in account_ids]):
            for account_id in account_ids:
                drift = await self._reconcile_account(
                    kind, account_id, remote_by_id.get(account_id), (kind, account_id) in pushed,
                )
                if was_hydrated and drift is not None:
                    report.drifts.append(drift)
            store.hydrated = True
            await self.sync.mirror_accounts(kind, store.list_accounts())

    async def _reconcile_account(
        self,
        kind: AccountKind,
        account_id: str,
        remote: Account | None,
        was_pushed: bool,
    ) -> DriftItem | None:
        """계정 1개 재조정 (호출자가 잠금 보유)

        Returns:
            보고할 차이 (원격 값을 그대로 채택했고 잔액이 같으면 None)
        """
        store = self.stores[kind]
        local = store.get_account(account_id) if store.has_account(account_id) else None

        if self.sync.has_pending(kind, account_id):
            action = ReconcileAction.KEPT_LOCAL
        elif was_pushed:
            action = ReconcileAction.PUSHED_LOCAL
        else:
            action = ReconcileAction.ADOPTED_REMOTE

        if action != ReconcileAction.KEPT_LOCAL:
            if remote is not None:
                store.load_account(remote)
                if store.entries_loaded(account_id):
                    entries, _ = await self.sync.load_entries(kind, account_id)
                    store.load_entries(account_id, entries)
            elif action == ReconcileAction.ADOPTED_REMOTE:
                store.drop_account(account_id)

        local_balance = local.balance if local is not None else None
        remote_balance = remote.balance if remote is not None else None
        if action == ReconcileAction.ADOPTED_REMOTE and local_balance == remote_balance:
            return None

        if action == ReconcileAction.KEPT_LOCAL:
            logger.warning(
                "Remote balance not adopted: pending writes",
                extra={
                    "kind": kind.value,
                    "account_id": account_id,
                    "local_balance": str(local_balance),
                    "remote_balance": str(remote_balance),
                },
            )
        return DriftItem(
            kind=kind,
            account_id=account_id,
            local_balance=local_balance,
            remote_balance=remote_balance,
            action=action,
        )


def _supplier_type(kind: AccountKind, value: SupplierType | str | None) -> SupplierType | None:
    if kind != AccountKind.SUPPLIER:
        return None
    if value is None or value == "":
        return SupplierType.RMB
    if isinstance(value, SupplierType):
        return value
    try:
        return SupplierType(str(value).upper())
    except ValueError as e:
        raise ValidationError(f"알 수 없는 공급자 유형: {value}", field="supplier_type", value=value) from e
