"""
대시보드 (순자산 집계)

순자산(BDT) = customers + agents + banks + wallets(USD→BDT) − suppliers(USD→BDT)

supplier 양수 잔액은 사업자가 갚아야 할 금액이므로 부호를 뒤집어 합산.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from core.ledger.account_store import AccountStore
from core.ledger.amount_math import round_display, to_decimal, usd_to_bdt
from core.ledger.entry import ZERO
from core.ledger.errors import InvalidRate
from core.ledger.records import dec_str
from core.types import AccountKind, Currency


@dataclass(frozen=True)
class KindTotal:
    """계정 종류별 합계"""

    kind: AccountKind
    count: int
    total: Decimal  # 기본 단위 (BDT 또는 USD)
    total_bdt: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "count": self.count,
            "total": dec_str(self.total),
            "currency": self.kind.currency,
            "total_bdt": dec_str(self.total_bdt),
            "total_bdt_display": f"{round_display(self.total_bdt):.2f}",
        }


@dataclass(frozen=True)
class DashboardSummary:
    """순자산 요약"""

    usd_rate: Decimal
    totals: dict[AccountKind, KindTotal]
    net_worth_bdt: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "usd_rate": dec_str(self.usd_rate),
            "totals": {kind.value: total.to_dict() for kind, total in self.totals.items()},
            "net_worth_bdt": dec_str(self.net_worth_bdt),
            "net_worth_display": f"{round_display(self.net_worth_bdt):.2f}",
        }


def summarize(stores: dict[AccountKind, AccountStore], usd_rate: Any) -> DashboardSummary:
    """순자산 계산

    Args:
        stores: 로드된 계정 종류별 AccountStore
        usd_rate: BDT/USD 환율 (supplier/wallet 환산)

    Raises:
        InvalidRate: 0 이하 환율
    """
    rate = to_decimal(usd_rate)
    if rate is None or rate <= 0:
        raise InvalidRate(f"USD 환율은 0보다 커야 합니다: {usd_rate}", field="usd_rate", value=usd_rate)

    totals: dict[AccountKind, KindTotal] = {}
    net_worth = ZERO
    for kind in AccountKind:
        accounts = stores[kind].list_accounts()
        total = sum((a.balance for a in accounts), ZERO)
        total_bdt = usd_to_bdt(total, rate) if kind.currency == Currency.USD.value else total
        totals[kind] = KindTotal(kind=kind, count=len(accounts), total=total, total_bdt=total_bdt)

        if kind == AccountKind.SUPPLIER:
            net_worth -= total_bdt
        else:
            net_worth += total_bdt

    return DashboardSummary(usd_rate=rate, totals=totals, net_worth_bdt=net_worth)
