from typing import List, Optional

import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.conversions import coerce_int
from wellnest.core.errors import DiscountError, OrderNotFound
from wellnest.crud.cartCrud import get_cart, user_session_key
from wellnest.crud.discountsCrud import list_discount_codes, validate_discount
from wellnest.crud.ordersCrud import get_order, list_user_orders, order_to_data
from wellnest.graphql.auth.permissions import IsAdmin, IsAuthenticated
from wellnest.graphql.commerce.types import Cart, DiscountCode, DiscountValidation, Order, OrdersResponse


@strawberry.type
class CommerceQuery:
    @strawberry.field(permission_classes=[IsAuthenticated])
    async def my_cart(self, info: strawberry.Info) -> Cart:
        db: AsyncSession = info.context.db
        cart = await get_cart(db, user_session_key(info.context.user.id))
        return Cart.from_data(cart)

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def my_orders(self, info: strawberry.Info) -> OrdersResponse:
        db: AsyncSession = info.context.db
        orders_data = await list_user_orders(db, info.context.user.id)
        return OrdersResponse(orders=[Order.from_data(o) for o in orders_data], total_count=len(orders_data))

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def order(self, info: strawberry.Info, order_id: int) -> Optional[Order]:
        """Members see their own orders; admins see any"""
        db: AsyncSession = info.context.db
        user = info.context.user

        order_id = coerce_int(order_id)
        if order_id is None:
            return None

        try:
            order = await get_order(db, order_id, user_id=None if user.is_admin else user.id)
        except OrderNotFound:
            return None
        return Order.from_data(order_to_data(order))

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def validate_discount(self, info: strawberry.Info, code: str, package_ids: List[int]) -> DiscountValidation:
        db: AsyncSession = info.context.db
        try:
            quote = await validate_discount(db, code=code, package_ids=package_ids, user_id=info.context.user.id)
        except DiscountError as e:
            return DiscountValidation(valid=False, error=e.message)
        return DiscountValidation(valid=True, code=quote.code, percentage=quote.percentage)

    @strawberry.field(permission_classes=[IsAdmin])
    async def discount_codes(self, info: strawberry.Info) -> List[DiscountCode]:
        db: AsyncSession = info.context.db
        codes = await list_discount_codes(db)
        return [DiscountCode.from_data(c) for c in codes]
