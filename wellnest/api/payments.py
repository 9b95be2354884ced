"""
Payment endpoints: manual/provider confirmation, PayWay init and the PayWay
browser callbacks. Callbacks always answer with a 303 redirect so the
member's browser lands on a GET page.
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.api.schemas import OrderEnvelope, OrderOut, PaymentConfirm, PaywayInitOut
from wellnest.auth.dependencies import get_current_user, require_admin
from wellnest.core.config import settings
from wellnest.core.errors import DomainError, OrderNotPending, UpstreamError, ValidationError
from wellnest.core.logging_config import log_payment_event
from wellnest.core.state_machine import OrderStatus, PaymentProvider, TransactionStatus
from wellnest.crud.ordersCrud import TransactionResult, confirm_payment, get_order, get_order_model, order_to_data
from wellnest.db.postgresql import get_db
from wellnest.models import User
from wellnest.services import payway

logger = logging.getLogger(__name__)

router = APIRouter()


def _redirect(path: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.public_base_url}{path}", status_code=303)


async def _read_form(request: Request) -> Dict[str, str]:
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        body = await request.json()
        return {str(k): str(v) for k, v in (body or {}).items()}
    if "form" in content_type:
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}
    return {}


@router.post("/payments/{provider}/confirm", response_model=OrderEnvelope)
async def confirm(
    provider: str,
    body: PaymentConfirm,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Record a payment outcome reported out of band (manual or provider dashboard)"""
    try:
        provider_enum = PaymentProvider(provider.upper())
        status = TransactionStatus(body.status.upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown provider or status: {provider}/{body.status}") from exc

    order = await confirm_payment(
        db,
        order_id=body.order_id,
        result=TransactionResult(
            provider=provider_enum,
            status=status,
            provider_transaction_id=body.transaction_id,
            authorization_number=body.authorization_number,
            reference_number=body.reference_number,
            card_brand=body.card_brand,
            card_last_digits=body.card_last_digits,
            card_holder=body.card_holder,
            raw_payload={"confirmed_by": admin.id},
        ),
    )
    return OrderEnvelope(order=OrderOut.model_validate(order_to_data(order)))


@router.post("/payments/payway/init/{order_id}", response_model=PaywayInitOut)
async def payway_init(
    order_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Encrypted payload for the PayWay checkout button"""
    order = await get_order(db, order_id, user_id=current_user.id)
    if order.status != OrderStatus.PENDING:
        raise OrderNotPending(f"Order is not pending payment (status: {order.status.value})")
    if not payway.is_configured():
        raise UpstreamError("Payment gateway is not configured")

    forwarded = request.headers.get("x-forwarded-for", "")
    client_ip = forwarded.split(",")[0].strip() or (request.client.host if request.client else "127.0.0.1")

    payload = payway.build_init_payload(order.id, order.total, client_ip=client_ip, user_client=current_user.email)
    return PaywayInitOut(
        payload=payload,
        order=OrderOut.model_validate(order_to_data(order)),
        script_url=payway.script_url(),
        env=settings.payway_env,
    )


@router.post("/payments/payway/callback")
async def payway_callback(request: Request, db: AsyncSession = Depends(get_db)):
    form = await _read_form(request)
    order_id = payway.extract_order_id(request.query_params, form)
    if order_id is None:
        log_payment_event("callback", provider="PAYWAY", success=False, details="missing order id")
        return JSONResponse(
            status_code=400,
            content={"error": "Missing orderId", "code": "VALIDATION_ERROR", "availableFields": sorted(form)},
        )

    order = await get_order_model(db, order_id)
    if order is None:
        return _redirect(f"/checkout/payway/{order_id}?status=error")
    if order.status == OrderStatus.PAID:
        return _redirect(f"/payment/success?oid={order_id}")
    if order.status != OrderStatus.PENDING:
        return _redirect(f"/checkout/payway/{order_id}?status=error&reason=invalid_status")

    callback = payway.parse_callback(order_id, form)
    try:
        await confirm_payment(
            db,
            order_id=order_id,
            result=callback.to_result(TransactionStatus.APPROVED, payway.sanitize_payload(form)),
        )
    except DomainError as e:
        log_payment_event("callback", order_id=order_id, provider="PAYWAY", success=False, details=e.message)
        return _redirect(f"/checkout/payway/{order_id}?status=error&reason=processing_failed")

    return _redirect(f"/payment/success?oid={order_id}")


@router.post("/payments/payway/denied")
async def payway_denied(request: Request, db: AsyncSession = Depends(get_db)):
    form = await _read_form(request)
    order_id = payway.extract_order_id(request.query_params, form)
    if order_id is None:
        return _redirect("/checkout?error=missing_order")

    order = await get_order_model(db, order_id)
    if order is None:
        return _redirect("/checkout?error=order_not_found")
    if order.status == OrderStatus.PAID:
        return _redirect(f"/payment/success?oid={order_id}")

    callback = payway.parse_callback(order_id, form)
    await confirm_payment(
        db,
        order_id=order_id,
        result=callback.to_result(TransactionStatus.DENIED, payway.sanitize_payload(form)),
    )
    return _redirect(f"/checkout/payway/{order_id}?status=denied")
