"""
Cart, checkout and discount-code endpoints.

Anonymous shoppers are tracked by the cart cookie; once they sign in the
cookie cart is merged into their member cart on the next cart request.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.api.schemas import (
    CartItemIn, CartItemUpdate, CartOut, CartLineOut, OrderCreate, OrderOut, OrderPlaced,
    OrderEnvelope, OrderList, DiscountValidate, DiscountValidation,
)
from wellnest.auth.dependencies import get_current_user, get_optional_user
from wellnest.core.config import settings
from wellnest.core.errors import DiscountError
from wellnest.crud import cartCrud
from wellnest.crud.discountsCrud import validate_discount
from wellnest.crud.ordersCrud import place_order, cancel_order, get_order, list_user_orders, order_to_data
from wellnest.db.postgresql import get_db
from wellnest.models import User

router = APIRouter()

CART_COOKIE = "cart_session"


def _cart_out(cart: cartCrud.CartData) -> CartOut:
    return CartOut(items=[CartLineOut.model_validate(line) for line in cart.items], subtotal=cart.subtotal)


async def _session_key(
    request: Request,
    response: Response,
    db: AsyncSession,
    user: Optional[User],
) -> str:
    cookie = request.cookies.get(CART_COOKIE)
    if user is not None:
        if cookie:
            await cartCrud.merge_carts(db, anonymous_session_id=cookie, user_id=user.id)
            response.delete_cookie(CART_COOKIE)
        return cartCrud.user_session_key(user.id)
    if not cookie:
        cookie = uuid.uuid4().hex
        response.set_cookie(
            CART_COOKIE, cookie, httponly=True, samesite="lax", secure=settings.is_production,
            max_age=60 * 60 * 24 * 30,
        )
    return cookie


@router.get("/cart", response_model=CartOut)
async def show_cart(
    request: Request,
    response: Response,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    session_id = await _session_key(request, response, db, user)
    return _cart_out(await cartCrud.get_cart(db, session_id))


@router.post("/cart", response_model=CartOut)
async def add_item(
    body: CartItemIn,
    request: Request,
    response: Response,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    session_id = await _session_key(request, response, db, user)
    cart = await cartCrud.add_to_cart(db, session_id=session_id, package_id=body.package_id, quantity=body.quantity)
    return _cart_out(cart)


@router.patch("/cart", response_model=CartOut)
async def update_item(
    body: CartItemUpdate,
    request: Request,
    response: Response,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    session_id = await _session_key(request, response, db, user)
    cart = await cartCrud.update_cart_item(
        db, session_id=session_id, package_id=body.package_id, quantity=body.quantity
    )
    return _cart_out(cart)


@router.delete("/cart/{package_id}", response_model=CartOut)
async def remove_item(
    package_id: int,
    request: Request,
    response: Response,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    session_id = await _session_key(request, response, db, user)
    return _cart_out(await cartCrud.remove_from_cart(db, session_id=session_id, package_id=package_id))


@router.post("/orders", response_model=OrderPlaced)
async def create_order(
    body: OrderCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Check out the caller's cart"""
    order, redirect_url = await place_order(
        db,
        user_id=current_user.id,
        discount_code=body.discount_code,
        payment_method=body.payment_method,
    )
    return OrderPlaced(order=OrderOut.model_validate(order_to_data(order)), redirect_url=redirect_url)


@router.get("/orders", response_model=OrderList)
async def my_orders(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders = await list_user_orders(db, current_user.id)
    return OrderList(orders=[OrderOut.model_validate(o) for o in orders])


@router.get("/orders/{order_id}", response_model=OrderEnvelope)
async def show_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await get_order(db, order_id, user_id=None if current_user.is_admin else current_user.id)
    return OrderEnvelope(order=OrderOut.model_validate(order_to_data(order)))


@router.post("/orders/{order_id}/cancel", response_model=OrderEnvelope)
async def cancel_pending_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await cancel_order(db, order_id=order_id, user_id=current_user.id)
    return OrderEnvelope(order=OrderOut.model_validate(order_to_data(order)))


@router.post("/discount/validate", response_model=DiscountValidation, response_model_exclude_none=True)
async def check_discount(
    body: DiscountValidate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        quote = await validate_discount(db, code=body.code, package_ids=body.package_ids, user_id=current_user.id)
    except DiscountError as e:
        return DiscountValidation(valid=False, error=e.message)
    return DiscountValidation(valid=True, code=quote.code, percentage=quote.percentage)
