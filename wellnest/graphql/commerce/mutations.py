import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import DomainError
from wellnest.crud import cartCrud
from wellnest.crud.discountsCrud import create_discount_code, discount_to_data, update_discount_code
from wellnest.crud.ordersCrud import cancel_order, order_to_data, place_order
from wellnest.graphql.auth.permissions import IsAdmin, IsAuthenticated
from wellnest.graphql.commerce.types import (
    Cart, CartResponse, DiscountCode, DiscountCodeInput, DiscountCodeResponse, DiscountCodeUpdateInput,
    Order, OrderResponse, PlaceOrderInput,
)
from wellnest.graphql.utils import updates_from


@strawberry.type
class CommerceMutation:
    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def add_to_cart(self, info: strawberry.Info, package_id: int, quantity: int = 1) -> CartResponse:
        db: AsyncSession = info.context.db

        try:
            cart = await cartCrud.add_to_cart(
                db,
                session_id=cartCrud.user_session_key(info.context.user.id),
                package_id=package_id,
                quantity=quantity,
            )
            return CartResponse(success=True, cart=Cart.from_data(cart), message="Added to cart")
        except DomainError as e:
            await db.rollback()
            return CartResponse(success=False, cart=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def update_cart_item(self, info: strawberry.Info, package_id: int, quantity: int) -> CartResponse:
        """Set a line's quantity; zero removes the line"""
        db: AsyncSession = info.context.db

        try:
            cart = await cartCrud.update_cart_item(
                db,
                session_id=cartCrud.user_session_key(info.context.user.id),
                package_id=package_id,
                quantity=quantity,
            )
            return CartResponse(success=True, cart=Cart.from_data(cart), message="Cart updated")
        except DomainError as e:
            await db.rollback()
            return CartResponse(success=False, cart=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def remove_from_cart(self, info: strawberry.Info, package_id: int) -> CartResponse:
        db: AsyncSession = info.context.db

        try:
            cart = await cartCrud.remove_from_cart(
                db,
                session_id=cartCrud.user_session_key(info.context.user.id),
                package_id=package_id,
            )
            return CartResponse(success=True, cart=Cart.from_data(cart), message="Removed from cart")
        except DomainError as e:
            await db.rollback()
            return CartResponse(success=False, cart=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def place_order(self, info: strawberry.Info, input: PlaceOrderInput) -> OrderResponse:
        """Turn the member's cart into an order and return where to send them next"""
        db: AsyncSession = info.context.db

        try:
            order, redirect_url = await place_order(
                db,
                user_id=info.context.user.id,
                discount_code=input.discount_code,
                payment_method=input.payment_method,
            )
            return OrderResponse(
                success=True,
                order=Order.from_data(order_to_data(order)),
                message="Order created",
                redirect_url=redirect_url
            )
        except DomainError as e:
            await db.rollback()
            return OrderResponse(success=False, order=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def cancel_order(self, info: strawberry.Info, order_id: int) -> OrderResponse:
        db: AsyncSession = info.context.db

        try:
            order = await cancel_order(db, order_id=order_id, user_id=info.context.user.id)
            return OrderResponse(success=True, order=Order.from_data(order_to_data(order)), message="Order cancelled")
        except DomainError as e:
            await db.rollback()
            return OrderResponse(success=False, order=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def create_discount_code(self, info: strawberry.Info, input: DiscountCodeInput) -> DiscountCodeResponse:
        db: AsyncSession = info.context.db

        try:
            discount = await create_discount_code(
                db,
                code=input.code,
                percentage=input.percentage,
                valid_from=input.valid_from,
                valid_until=input.valid_until,
                max_uses=input.max_uses,
                applicable_to=input.applicable_to,
                description=input.description,
                is_active=input.is_active,
            )
            return DiscountCodeResponse(
                success=True,
                discount_code=DiscountCode.from_data(discount_to_data(discount)),
                message="Discount code created"
            )
        except DomainError as e:
            await db.rollback()
            return DiscountCodeResponse(success=False, discount_code=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def update_discount_code(
        self, info: strawberry.Info, discount_id: int, input: DiscountCodeUpdateInput
    ) -> DiscountCodeResponse:
        db: AsyncSession = info.context.db

        try:
            discount = await update_discount_code(db, discount_id, updates_from(input))
            return DiscountCodeResponse(
                success=True,
                discount_code=DiscountCode.from_data(discount_to_data(discount)),
                message="Discount code updated"
            )
        except DomainError as e:
            await db.rollback()
            return DiscountCodeResponse(success=False, discount_code=None, message=e.message, code=e.code.value)
