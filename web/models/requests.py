"""
요청 스키마 (Pydantic)

Web API 요청 데이터 검증.
금액/환율은 부동소수점 오차를 피하기 위해 문자열로 받음 (숫자도 허용).
"""

from typing import Any

from pydantic import BaseModel, Field

Amount = str | int | float


class CreateAccountRequest(BaseModel):
    """계정 생성 요청"""

    name: str = Field(..., min_length=1, description="표시 이름")
    contact: str = Field(default="", description="전화번호 / 계좌번호 / 지갑 주소")
    initial_balance: Amount = Field(default="0", description="기초 잔액 (계정 기본 단위)")
    supplier_type: str | None = Field(default=None, description="공급자 유형 (RMB/USDT, supplier 전용)")


class UpdateAccountRequest(BaseModel):
    """계정 정보 수정 요청"""

    name: str | None = Field(default=None, description="새 이름")
    contact: str | None = Field(default=None, description="새 연락처")


class PostEntryRequest(BaseModel):
    """거래 기록 요청

    fields 예시:
    - bank deposit: {"amount": "500"}
    - agent dhs: {"bdt_amount": "3424", "rate": "34.24"}
    - supplier bill: {"rmb_amount": "1000", "rate": "7.2"}
    """

    type: str = Field(..., description="거래 유형 (dhs, order, bill, payment, deposit, withdraw, credit, debit)")
    fields: dict[str, Any] = Field(default_factory=dict, description="입력 필드")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"type": "deposit", "fields": {"amount": "500", "description": "cash in"}},
                {"type": "dhs", "fields": {"bdt_amount": "3424", "rate": "34.24"}},
            ]
        }
    }


class EditEntryRequest(BaseModel):
    """거래 수정 요청 (없는 필드는 기존 값 유지)"""

    fields: dict[str, Any] = Field(..., description="변경할 입력 필드")


class CreateOrderRequest(BaseModel):
    """주문 요청 (customer order + supplier bill)"""

    customer_id: str
    supplier_id: str
    rmb_amount: Amount
    customer_rate: Amount = Field(..., description="BDT per RMB")
    supplier_rate: Amount = Field(..., description="RMB per USD")
    notes: str = ""
    date: str | None = Field(default=None, description="YYYY-MM-DD (기본: 오늘)")


class ReceivePaymentRequest(BaseModel):
    """결제 수령 요청 (bank credit + customer payment)"""

    customer_id: str
    bank_id: str
    amount: Amount
    notes: str = ""
    date: str | None = None
