"""
타입 정의 모듈

Enum 등 핵심 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from enum import Enum

from core.constants import Collections


class AccountKind(str, Enum):
    """거래 상대방 종류"""

    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    AGENT = "agent"
    BANK = "bank"
    WALLET = "wallet"

    @property
    def collection(self) -> str:
        """원격 저장소 컬렉션 이름"""
        return _COLLECTIONS[self]

    @property
    def balance_field(self) -> str:
        """문서의 잔액 필드 (supplier/wallet은 USD 잔액)"""
        if self in (AccountKind.SUPPLIER, AccountKind.WALLET):
            return "balanceUSD"
        return "balance"

    @property
    def currency(self) -> str:
        """잔액 통화 단위"""
        if self in (AccountKind.SUPPLIER, AccountKind.WALLET):
            return Currency.USD.value
        return Currency.BDT.value

    @property
    def contact_field(self) -> str:
        """문서의 연락처 필드 (전화번호 / 계좌번호 / 지갑 주소)"""
        return _CONTACT_FIELDS[self]

    @property
    def is_asset(self) -> bool:
        """자산 계정 여부 (bank/wallet: 양수 = 보유 자산)"""
        return self in (AccountKind.BANK, AccountKind.WALLET)


class EntryType(str, Enum):
    """거래 유형

    계정 종류별로 허용되는 유형이 다름 (core.ledger.entry.DELTA_SIGNS 참고).
    """

    DHS = "dhs"  # agent: DHS 구매 (BDT 부채 증가)
    ORDER = "order"  # customer: 주문 청구
    BILL = "bill"  # supplier: 공급자 청구
    PAYMENT = "payment"  # agent/customer/supplier: 결제
    DEPOSIT = "deposit"  # bank/wallet: 입금
    WITHDRAW = "withdraw"  # bank/wallet: 출금
    CREDIT = "credit"  # bank/wallet: 고객 결제 수령 (입금 미러)
    DEBIT = "debit"  # bank/wallet: 출금 미러


class Currency(str, Enum):
    """통화 단위"""

    BDT = "BDT"
    RMB = "RMB"
    USD = "USD"
    DHS = "DHS"


class SupplierType(str, Enum):
    """공급자 청구 통화

    RMB 공급자: RMB ÷ 환율(RMB/$) = USD
    USDT 공급자: BDT ÷ 환율(BDT/$) = USD
    """

    RMB = "RMB"
    USDT = "USDT"


_COLLECTIONS: dict[AccountKind, str] = {
    AccountKind.CUSTOMER: Collections.CUSTOMERS,
    AccountKind.SUPPLIER: Collections.SUPPLIERS,
    AccountKind.AGENT: Collections.AGENTS,
    AccountKind.BANK: Collections.BANKS,
    AccountKind.WALLET: Collections.WALLETS,
}

_CONTACT_FIELDS: dict[AccountKind, str] = {
    AccountKind.CUSTOMER: "phone",
    AccountKind.SUPPLIER: "phone",
    AccountKind.AGENT: "phone",
    AccountKind.BANK: "account",
    AccountKind.WALLET: "address",
}
