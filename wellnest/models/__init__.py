# Wellnest models - every table registers on Base.metadata on import
from wellnest.models.userModel import User
from wellnest.models.catalogModel import Discipline, Instructor, Package, UNLIMITED_CLASSES
from wellnest.models.classModel import StudioClass, Reservation, WaitlistEntry
from wellnest.models.purchaseModel import Purchase
from wellnest.models.commerceModel import CartItem, Order, OrderItem, PaymentTransaction
from wellnest.models.discountModel import DiscountCode, PromoRedemption
from wellnest.models.refundModel import RefundRequest
from wellnest.models.settingsModel import SiteSetting

__all__ = [
    "User",
    "Discipline", "Instructor", "Package", "UNLIMITED_CLASSES",
    "StudioClass", "Reservation", "WaitlistEntry",
    "Purchase",
    "CartItem", "Order", "OrderItem", "PaymentTransaction",
    "DiscountCode", "PromoRedemption",
    "RefundRequest",
    "SiteSetting",
]
