"""
이중 기입 API 라우터

- POST /api/orders    customer order + supplier bill
- POST /api/payments  bank credit + customer payment
"""

from fastapi import APIRouter, Depends, Response

from core.ledger.service import LedgerService
from web.dependencies import get_ledger_service, mutation_response
from web.models.requests import CreateOrderRequest, ReceivePaymentRequest
from web.models.responses import MutationResponse

router = APIRouter(prefix="/api", tags=["Postings"])


@router.post("/orders", response_model=MutationResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    response: Response,
    service: LedgerService = Depends(get_ledger_service),
):
    """주문 기록

    customer: +rmb × customer_rate (BDT), supplier: +rmb ÷ supplier_rate (USD)
    """
    result = await service.create_order(
        request.customer_id,
        request.supplier_id,
        request.rmb_amount,
        request.customer_rate,
        request.supplier_rate,
        notes=request.notes,
        date=request.date,
    )
    return mutation_response(result, response, created=True)


@router.post("/payments", response_model=MutationResponse, status_code=201)
async def receive_payment(
    request: ReceivePaymentRequest,
    response: Response,
    service: LedgerService = Depends(get_ledger_service),
):
    """고객 결제 수령 (bank +금액, customer −금액)"""
    result = await service.receive_payment(
        request.customer_id,
        request.bank_id,
        request.amount,
        notes=request.notes,
        date=request.date,
    )
    return mutation_response(result, response, created=True)
