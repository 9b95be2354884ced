"""
PayWay One integration helpers.

Only the server-side pieces live here: encrypting the init payload and
reading the provider's callback form. PAYWAY_TOKEN_ENCRYPT never leaves the
server; PAYWAY_TOKEN_AUTH and the retailer ids are merchant identifiers the
checkout widget needs.
"""
import base64
import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from wellnest.core.config import settings
from wellnest.core.conversions import coerce_int, format_amount
from wellnest.core.errors import UpstreamError
from wellnest.core.state_machine import PaymentProvider, TransactionStatus
from wellnest.crud.ordersCrud import TransactionResult

logger = logging.getLogger(__name__)

# Fixed IV mandated by the PayWay integration guide
PAYWAY_IV = b"fedcba9876543210"
SERVICE_PRODUCT_PREFIX = "wellnest_order_"
SERVICE_PRODUCT_RE = re.compile(r"wellnest_order_(.+)")
SENSITIVE_KEYS = ("token", "key", "secret", "password", "cvv", "cc", "card")


@dataclass
class PaywayCallback:
    order_id: int
    authorization_number: Optional[str] = None
    reference_number: Optional[str] = None
    payway_number: Optional[str] = None
    transaction_date: Optional[str] = None
    payment_number: Optional[str] = None
    card_brand: Optional[str] = None
    card_last_digits: Optional[str] = None
    card_holder: Optional[str] = None

    def to_result(self, status: TransactionStatus, raw_payload: Dict[str, Any]) -> TransactionResult:
        return TransactionResult(
            provider=PaymentProvider.PAYWAY,
            status=status,
            provider_transaction_id=self.payway_number or self.authorization_number or self.reference_number,
            authorization_number=self.authorization_number,
            reference_number=self.reference_number,
            payway_number=self.payway_number,
            transaction_date=self.transaction_date,
            payment_number=self.payment_number,
            card_brand=self.card_brand,
            card_last_digits=self.card_last_digits,
            card_holder=self.card_holder,
            raw_payload=raw_payload,
        )


def _key_bytes(encryption_key: str) -> bytes:
    # Space-padded or truncated to the 32 bytes AES-256 needs
    return encryption_key.encode("utf-8").ljust(32)[:32]


def encrypt_value(value: str, encryption_key: str) -> str:
    """AES-256-CBC with the PayWay IV and PKCS7 padding, base64 encoded."""
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    data = padder.update(value.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(_key_bytes(encryption_key)), modes.CBC(PAYWAY_IV)).encryptor()
    return base64.b64encode(encryptor.update(data) + encryptor.finalize()).decode("ascii")


def decrypt_value(value: str, encryption_key: str) -> str:
    decryptor = Cipher(algorithms.AES(_key_bytes(encryption_key)), modes.CBC(PAYWAY_IV)).decryptor()
    data = decryptor.update(base64.b64decode(value)) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    return (unpadder.update(data) + unpadder.finalize()).decode("utf-8")


def callback_url(order_id: int, denied: bool = False) -> str:
    base = settings.payway_callback_base_url or settings.public_base_url
    endpoint = "denied" if denied else "callback"
    return f"{base}/api/payments/payway/{endpoint}?oid={order_id}"


def script_url() -> str:
    return f"{settings.payway_base_url}/web-payway-sv/resources/js/paywayOneButton.js"


def is_configured() -> bool:
    return bool(settings.payway_token_auth and settings.payway_token_encrypt and settings.payway_retailer_owner)


def build_init_payload(
    order_id: int,
    amount: Decimal,
    client_ip: str = "127.0.0.1",
    user_client: str = "anonymous",
) -> Dict[str, str]:
    """Encrypted fields and merchant identifiers for the checkout widget."""
    if not settings.payway_token_encrypt:
        raise UpstreamError("PAYWAY_TOKEN_ENCRYPT is not configured")
    if not settings.payway_token_auth:
        raise UpstreamError("PAYWAY_TOKEN_AUTH is not configured")
    if not settings.payway_retailer_owner:
        raise UpstreamError("PAYWAY_RETAILER_OWNER is not configured")

    key = settings.payway_token_encrypt
    formatted = format_amount(amount)
    logger.info("PayWay payload generated order_id=%s amount=%s env=%s", order_id, formatted, settings.payway_env)

    return {
        "amountEncrypted": encrypt_value(formatted, key),
        "responseCallbackEncrypted": encrypt_value(callback_url(order_id), key),
        "deniedCallbackEncrypted": encrypt_value(callback_url(order_id, denied=True), key),
        "serviceProduct": f"{SERVICE_PRODUCT_PREFIX}{order_id}",
        "userClient": user_client,
        "clientIP": client_ip,
        "tokenAuth": settings.payway_token_auth,
        "retailerOwner": settings.payway_retailer_owner,
        "userOperation": settings.payway_user_operation,
    }


def extract_order_id(query: Mapping[str, str], form: Mapping[str, str]) -> Optional[int]:
    """Order id from ?oid=, the form's oid, or the serviceProduct echo."""
    for raw in (query.get("oid"), form.get("oid")):
        order_id = coerce_int(raw)
        if order_id is not None:
            return order_id
    for field_name in ("serviceProduct", "pwoServiceProduct"):
        match = SERVICE_PRODUCT_RE.search(form.get(field_name) or "")
        if match:
            order_id = coerce_int(match.group(1))
            if order_id is not None:
                return order_id
    return None


def parse_callback(order_id: int, form: Mapping[str, str]) -> PaywayCallback:
    return PaywayCallback(
        order_id=order_id,
        authorization_number=form.get("pwoAuthorizationNumber") or None,
        reference_number=form.get("pwoReferenceNumber") or None,
        payway_number=form.get("pwoPayWayNumber") or None,
        transaction_date=form.get("pwoTransactionDate") or None,
        payment_number=form.get("pwoPaymentNumber") or None,
        card_brand=form.get("pwoCustomerCCBrand") or None,
        card_last_digits=form.get("pwoCustomerCCLastD") or None,
        card_holder=form.get("pwoCustomerName") or None,
    )


def sanitize_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of the callback form with anything secret-looking redacted."""
    sanitized = dict(payload)
    for key in sanitized:
        lower = key.lower()
        if "last" in lower:
            continue
        if any(sensitive in lower for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "[REDACTED]"
    return sanitized
