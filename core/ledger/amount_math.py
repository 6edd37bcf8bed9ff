"""
금액/환율 계산

부작용 없는 순수 함수만 포함.
0 이하 환율, 0 나누기, 비유한(NaN/Infinity) 입력은 예외 없이 0으로 처리.
커밋 전 환율 검증은 호출자(EntryBuilder) 책임.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
DISPLAY_QUANT = Decimal("0.01")
INTERNAL_QUANT = Decimal("0.0000000001")


def to_decimal(value: Any) -> Decimal | None:
    """사용자 입력을 Decimal로 변환

    float는 문자열을 거쳐 변환 (이진 오차 방지).

    Returns:
        Decimal 또는 None (빈 값, 숫자가 아닌 값, 비유한 값)
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None

    if not result.is_finite():
        return None
    return result


def _safe(value: Any) -> Decimal:
    """계산 입력 정규화 (변환 불가 시 0)"""
    result = to_decimal(value)
    return result if result is not None else ZERO


def _divide(amount: Any, rate: Any) -> Decimal:
    rate_dec = _safe(rate)
    if rate_dec <= 0:
        return ZERO
    return _safe(amount) / rate_dec


def _multiply(amount: Any, rate: Any) -> Decimal:
    return _safe(amount) * _safe(rate)


def dhs_to_bdt(bdt_amount: Any, rate: Any) -> Decimal:
    """DHS 구매 거래의 BDT 금액 → DHS 수량

    dhs = bdt / rate (rate <= 0 이면 0)
    """
    return _divide(bdt_amount, rate)


def dhs_payment_to_bdt(dhs_amount: Any, rate: Any) -> Decimal:
    """DHS 결제 수량 → BDT 금액 (dhs * rate)"""
    return _multiply(dhs_amount, rate)


def rmb_to_usd(rmb_amount: Any, rate_rmb_per_usd: Any) -> Decimal:
    """RMB → USD (rmb / rate, rate <= 0 이면 0)"""
    return _divide(rmb_amount, rate_rmb_per_usd)


def rmb_to_bdt(rmb_amount: Any, rate_bdt_per_rmb: Any) -> Decimal:
    """RMB → BDT (rmb * rate)"""
    return _multiply(rmb_amount, rate_bdt_per_rmb)


def bdt_to_usd(bdt_amount: Any, rate_bdt_per_usd: Any) -> Decimal:
    """BDT → USD (USDT 공급자 청구용, rate <= 0 이면 0)"""
    return _divide(bdt_amount, rate_bdt_per_usd)


def usd_to_bdt(usd_amount: Any, rate_bdt_per_usd: Any) -> Decimal:
    """USD → BDT (대시보드 환산용)"""
    return _multiply(usd_amount, rate_bdt_per_usd)


def _quantize(value: Any, quant: Decimal) -> Decimal:
    dec = _safe(value)
    try:
        return dec.quantize(quant, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # 문맥 정밀도를 넘는 큰 값은 그대로 유지
        return dec


def quantize_amount(value: Any) -> Decimal:
    """저장용 정밀도(소수점 10자리)로 고정

    거래에 고정되는 금액은 모두 이 정밀도를 가지므로
    잔액 가감(적용/역적용)이 Decimal 문맥 정밀도 안에서 정확히 상쇄됨.
    """
    return _quantize(value, INTERNAL_QUANT)


def round_display(value: Any) -> Decimal:
    """표시용 소수점 2자리 반올림

    내부 계산에는 사용하지 않음 (전체 정밀도 유지).
    """
    return _quantize(value, DISPLAY_QUANT)
