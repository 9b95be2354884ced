"""
GraphQL types for carts, orders and discount codes.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
import strawberry

from wellnest.crud.cartCrud import CartData
from wellnest.crud.discountsCrud import DiscountCodeData
from wellnest.crud.ordersCrud import OrderData


@strawberry.type
class CartLine:
    package_id: int
    package_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_available: bool


@strawberry.type
class Cart:
    items: List[CartLine]
    subtotal: Decimal
    item_count: int

    @classmethod
    def from_data(cls, data: CartData) -> "Cart":
        return cls(
            items=[CartLine(**line.__dict__) for line in data.items],
            subtotal=data.subtotal,
            item_count=sum(line.quantity for line in data.items),
        )


@strawberry.type
class OrderItem:
    package_id: int
    package_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@strawberry.type
class PaymentTransaction:
    id: int
    provider: str
    status: str
    provider_transaction_id: Optional[str]
    authorization_number: Optional[str]
    card_brand: Optional[str]
    card_last_digits: Optional[str]
    created_at: datetime


@strawberry.type
class Order:
    id: int
    user_id: int
    status: str
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    discount_code: Optional[str]
    payment_method: Optional[str]
    created_at: datetime
    paid_at: Optional[datetime]
    items: List[OrderItem]
    transactions: List[PaymentTransaction]

    @classmethod
    def from_data(cls, data: OrderData) -> "Order":
        return cls(
            id=data.id,
            user_id=data.user_id,
            status=data.status,
            subtotal=data.subtotal,
            discount=data.discount,
            total=data.total,
            discount_code=data.discount_code,
            payment_method=data.payment_method,
            created_at=data.created_at,
            paid_at=data.paid_at,
            items=[OrderItem(**i.__dict__) for i in data.items],
            transactions=[PaymentTransaction(**t.__dict__) for t in data.transactions],
        )


@strawberry.type
class DiscountCode:
    id: int
    code: str
    description: Optional[str]
    percentage: int
    max_uses: Optional[int]
    current_uses: int
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    applicable_to: List[int]

    @classmethod
    def from_data(cls, data: DiscountCodeData) -> "DiscountCode":
        return cls(**data.__dict__)


@strawberry.type
class DiscountValidation:
    valid: bool
    code: Optional[str] = None
    percentage: Optional[int] = None
    error: Optional[str] = None


# Inputs

@strawberry.input
class PlaceOrderInput:
    discount_code: Optional[str] = None
    payment_method: str = "payway"


@strawberry.input
class DiscountCodeInput:
    code: str
    percentage: int
    valid_from: datetime
    valid_until: datetime
    max_uses: Optional[int] = None
    applicable_to: Optional[List[int]] = None
    description: Optional[str] = None
    is_active: bool = True


@strawberry.input
class DiscountCodeUpdateInput:
    description: Optional[str] = None
    percentage: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    max_uses: Optional[int] = None
    applicable_to: Optional[List[int]] = None
    is_active: Optional[bool] = None


# Responses

@strawberry.type
class CartResponse:
    success: bool
    cart: Optional[Cart]
    message: str
    code: Optional[str] = None


@strawberry.type
class OrderResponse:
    success: bool
    order: Optional[Order]
    message: str
    redirect_url: Optional[str] = None
    code: Optional[str] = None


@strawberry.type
class OrdersResponse:
    orders: List[Order]
    total_count: int


@strawberry.type
class DiscountCodeResponse:
    success: bool
    discount_code: Optional[DiscountCode]
    message: str
    code: Optional[str] = None
