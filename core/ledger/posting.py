"""
이중 기입 (Dual Posting)

한 번의 사용자 동작으로 두 계정에 서로 연결된 거래 2건을 기록.

- 주문: supplier bill (RMB ÷ 공급자 환율 USD) + customer order (RMB × 고객 환율 BDT)
- 결제 수령: bank credit (+금액) + customer payment (−금액)

거래 ID는 쓰기 전에 클라이언트에서 생성되어 양쪽 linked_entry_id가 처음부터 확정.
원격 저장 순서는 의존 측(supplier bill, bank credit)이 먼저.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from core.ledger.entry_builder import EntryBuilder, link_pair
from core.ledger.hydration import Hydrator
from core.ledger.pipeline import LocalOp, MutationPipeline, MutationPlan, MutationResult
from core.types import AccountKind, EntryType, SupplierType
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)


class DualPostingCoordinator:
    """이중 기입 처리기

    Args:
        pipeline: Mutation 실행기
        builder: 거래 생성기
        hydrator: 지연 로딩
        clock: 현재 시각 (양쪽 거래가 같은 timestamp 사용)
    """

    def __init__(
        self,
        pipeline: MutationPipeline,
        builder: EntryBuilder,
        hydrator: Hydrator,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.pipeline = pipeline
        self.builder = builder
        self.hydrator = hydrator
        self._clock = clock

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
        """주문 기록 (customer order + supplier bill)

        Returns:
            MutationResult (supplier_rate ≤ 0이면 InvalidRate로 REJECTED)
        """
        await self.hydrator.ensure_accounts(AccountKind.CUSTOMER)
        await self.hydrator.ensure_accounts(AccountKind.SUPPLIER)

        async def build_plan() -> MutationPlan:
            await self.hydrator.ensure_entries(AccountKind.SUPPLIER, supplier_id)
            await self.hydrator.ensure_entries(AccountKind.CUSTOMER, customer_id)

            timestamp = self._clock()
            common = {"description": notes, "date": date}
            bill = self.builder.build(
                AccountKind.SUPPLIER,
                supplier_id,
                EntryType.BILL,
                {**common, "rmb_amount": rmb_amount, "rate": supplier_rate},
                supplier_type=SupplierType.RMB,
                timestamp=timestamp,
            )
            order = self.builder.build(
                AccountKind.CUSTOMER,
                customer_id,
                EntryType.ORDER,
                {**common, "rmb_amount": rmb_amount, "customer_rate": customer_rate},
                timestamp=timestamp,
            )
            bill, order = link_pair(bill, order)
            return MutationPlan([LocalOp.add(bill), LocalOp.add(order)])

        result = await self.pipeline.run(
            "create_order",
            [(AccountKind.CUSTOMER, customer_id), (AccountKind.SUPPLIER, supplier_id)],
            build_plan,
        )
        logger.info(
            "Order posted",
            extra={
                "mutation_id": result.mutation_id,
                "state": result.state.value,
                "customer_id": customer_id,
                "supplier_id": supplier_id,
            },
        )
        return result

    async def receive_payment(
        self,
        customer_id: str,
        bank_id: str,
        amount: Any,
        notes: str = "",
        date: str | None = None,
    ) -> MutationResult:
        """고객 결제 수령 (bank credit + customer payment)"""
        await self.hydrator.ensure_accounts(AccountKind.CUSTOMER)
        await self.hydrator.ensure_accounts(AccountKind.BANK)

        async def build_plan() -> MutationPlan:
            await self.hydrator.ensure_entries(AccountKind.BANK, bank_id)
            await self.hydrator.ensure_entries(AccountKind.CUSTOMER, customer_id)

            timestamp = self._clock()
            fields = {"amount": amount, "description": notes, "date": date}
            credit = self.builder.build(
                AccountKind.BANK, bank_id, EntryType.CREDIT, fields, timestamp=timestamp,
            )
            payment = self.builder.build(
                AccountKind.CUSTOMER, customer_id, EntryType.PAYMENT, fields, timestamp=timestamp,
            )
            credit, payment = link_pair(credit, payment)
            return MutationPlan([LocalOp.add(credit), LocalOp.add(payment)])

        result = await self.pipeline.run(
            "receive_payment",
            [(AccountKind.CUSTOMER, customer_id), (AccountKind.BANK, bank_id)],
            build_plan,
        )
        logger.info(
            "Payment received",
            extra={
                "mutation_id": result.mutation_id,
                "state": result.state.value,
                "customer_id": customer_id,
                "bank_id": bank_id,
            },
        )
        return result
