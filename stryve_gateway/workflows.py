"""
Order lifecycle workflows: create an order on Stryve, verify the customer's
return from Stryve, and settle Shopify payment sessions from Stryve webhooks.
"""

import secrets
import string
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from stryve_gateway import repository, shopify_service, stryve_service
from stryve_gateway.config import Settings
from stryve_gateway.exceptions import (
    InvalidArgumentError,
    InvalidCallbackError,
    NotConfiguredError,
    RecordNotFoundError,
    StryveApiError,
    VerificationError,
)
from stryve_gateway.logging import get_logger
from stryve_gateway.models import StryvePayment, StryveSettings
from stryve_gateway.schemas import (
    CallbackParams,
    CustomerDetails,
    OrderItem,
    SettlementNotification,
    ShippingAddress,
)

log = get_logger(__name__)

DEFAULT_CURRENCY = "EGP"
DEFAULT_FIRST_NAME = "Shopify"
DEFAULT_LAST_NAME = "Customer"
# Stryve rejects an empty phone number
DEFAULT_PHONE = "0000000000"

SUCCESS_STATUSES = {"paid", "processing", "pending"}
SETTLEMENT_SUCCESS_STATUSES = {"success", "paid"}
# Verified orders Stryve has not finished yet
UNSETTLED_STATUSES = {"pending", "processing"}

_REFERENCE_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class CreatedOrder:
    payment_url: str
    stryve_order_id: Optional[str]
    merchant_reference: str


@dataclass
class CallbackOutcome:
    status: str
    verified: bool
    redirect_url: str


def generate_merchant_reference() -> str:
    """Millisecond timestamp plus a random suffix; unique in practice per API key."""
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(6))
    return f"SHOP-{int(time.time() * 1000)}-{suffix}"


def build_callback_url(app_url: str, shop: str, merchant_reference: str) -> str:
    query = urlencode({"shop": shop, "ref": merchant_reference})
    return f"{app_url.rstrip('/')}/payments/callback?{query}"


def build_customer_details(address: Optional[ShippingAddress]) -> CustomerDetails:
    address = address or ShippingAddress()
    return CustomerDetails(
        first_name=address.firstName or DEFAULT_FIRST_NAME,
        last_name=address.lastName or DEFAULT_LAST_NAME,
        phone=address.phone or DEFAULT_PHONE,
        email="",
        address_line=address.address1 or "",
        address_city=address.city or "",
        address_country=address.countryCode or "",
    )


def shop_domain(shop: str) -> str:
    return shop if "." in shop else f"{shop}.myshopify.com"


def redirect_for_status(shop: str, status: str) -> str:
    """Anything outside the known success statuses goes back to the cart."""
    if status in SUCCESS_STATUSES:
        return f"https://{shop_domain(shop)}"
    return f"https://{shop_domain(shop)}/cart"


def create_stryve_order(
    db: Session,
    shop: str,
    amount: Decimal,
    currency: Optional[str],
    shipping_address: Optional[ShippingAddress],
    app_url: str,
) -> CreatedOrder:
    settings = repository.get_stryve_settings(db, shop)
    if settings is None or not settings.api_key:
        raise NotConfiguredError()

    base_url = stryve_service.resolve_base_url(settings.base_url, settings.sandbox)
    currency = currency or DEFAULT_CURRENCY

    if settings.debug:
        log.info("stryve_create_order_started", shop=shop, base_url=base_url, sandbox=settings.sandbox)

    merchant_reference = generate_merchant_reference()
    callback_url = build_callback_url(app_url, shop, merchant_reference)

    order = stryve_service.create_order(
        api_key=settings.api_key,
        base_url=base_url,
        merchant_reference=merchant_reference,
        callback_url=callback_url,
        items=[
            OrderItem(
                name="Order Payment",
                quantity=1,
                price=str(amount),
                description=f"Shopify order - {currency}",
            )
        ],
        customer_details=build_customer_details(shipping_address),
    )

    # Only reached once Stryve accepted the order
    repository.create_payment(
        db,
        shop=shop,
        merchant_reference=merchant_reference,
        stryve_order_id=order.get("id") or None,
        amount=str(amount),
        currency=currency,
        payment_url=order["payment_url"],
        callback_url=callback_url,
        test=settings.sandbox,
    )

    log.info(
        "stryve_order_created",
        shop=shop,
        merchant_reference=merchant_reference,
        stryve_order_id=order.get("id"),
    )

    return CreatedOrder(
        payment_url=order["payment_url"],
        stryve_order_id=order.get("id"),
        merchant_reference=merchant_reference,
    )


def fetch_verified_order(settings: StryveSettings, payment: StryvePayment) -> dict:
    """
    Re-fetch a payment's order from Stryve.

    The lookup uses only identifiers this service issued or received from
    Stryve, and the returned order must carry the same merchant reference.
    """
    base_url = stryve_service.resolve_base_url(settings.base_url, settings.sandbox)
    order = stryve_service.get_order(
        api_key=settings.api_key,
        base_url=base_url,
        order_id=payment.stryve_order_id or None,
        merchant_reference=payment.merchant_reference,
    )
    returned_reference = order.get("merchant_reference")
    if returned_reference is not None and str(returned_reference) != payment.merchant_reference:
        raise VerificationError(
            f"Stryve get order failed: order belongs to merchant reference {returned_reference}"
        )
    return order


def verify_callback(db: Session, params: CallbackParams) -> CallbackOutcome:
    """
    Handle the customer's return from Stryve.

    The query string is client-controlled, so its status is only a hint: the
    order is re-fetched from Stryve and that status wins. If Stryve cannot be
    reached the hint is used so the customer is not stuck.
    """
    shop = params.shop
    ref = params.ref or params.merchant_reference
    if not shop or not ref:
        raise InvalidCallbackError()

    payment = repository.find_payment(db, shop, ref)
    if payment is None:
        log.error("stryve_callback_payment_not_found", shop=shop, ref=ref)
        raise RecordNotFoundError()

    settings = repository.get_stryve_settings(db, shop)
    debug = bool(settings and settings.debug)

    if debug:
        log.info(
            "stryve_callback_received",
            shop=shop,
            ref=ref,
            status=params.status,
            order_id=params.order_id,
            merchant_reference=params.merchant_reference,
        )

    status = params.status
    verified = False
    verified_order_id = None

    if settings is not None and settings.api_key:
        try:
            order = fetch_verified_order(settings, payment)
        except (StryveApiError, InvalidArgumentError) as exc:
            log.warning(
                "stryve_callback_verification_failed",
                shop=shop,
                ref=ref,
                fallback_status=params.status,
                error=exc.message,
            )
        else:
            if order.get("status"):
                status = str(order["status"])
                verified = True
                verified_order_id = order.get("id")
                if debug:
                    log.info("stryve_callback_verified", shop=shop, ref=ref, status=status)
    else:
        log.warning("stryve_callback_unverified", shop=shop, ref=ref, reason="not_configured")

    if status:
        # Only ids returned by Stryve are stored, never the one from the query string
        repository.update_payment_status(
            db,
            payment,
            status,
            stryve_order_id=payment.stryve_order_id or verified_order_id or None,
        )
        if debug:
            log.info("stryve_payment_updated", payment_id=payment.id, status=status)

    return CallbackOutcome(
        status=status,
        verified=verified,
        redirect_url=redirect_for_status(shop, status),
    )


def settle_payment_session(
    db: Session,
    settings: Settings,
    notification: SettlementNotification,
) -> str:
    """
    Resolve or reject a Shopify payment session. One platform call, no retries.

    When the session id matches one of our payment records, the order status
    is re-fetched from Stryve and overrides the one in the notification.
    Verified orders still pending or processing are left unsettled.
    """
    session_id = notification.session_id
    if not session_id:
        raise InvalidArgumentError("Missing payment session id.")

    status = notification.status or ""
    verified = False

    payment = repository.find_payment_by_reference(db, session_id)
    merchant_settings = repository.get_stryve_settings(db, payment.shop) if payment else None
    if merchant_settings is not None and merchant_settings.api_key:
        try:
            order = fetch_verified_order(merchant_settings, payment)
        except (StryveApiError, InvalidArgumentError) as exc:
            log.warning(
                "stryve_settlement_verification_failed",
                session_id=session_id,
                fallback_status=status,
                error=exc.message,
            )
        else:
            if order.get("status"):
                status = str(order["status"])
                verified = True
                repository.update_payment_status(
                    db,
                    payment,
                    status,
                    stryve_order_id=payment.stryve_order_id or order.get("id") or None,
                )

    if status in SETTLEMENT_SUCCESS_STATUSES:
        shopify_service.resolve_session(settings, session_id)
        return "resolved"

    if verified and status in UNSETTLED_STATUSES:
        log.info("stryve_settlement_deferred", session_id=session_id, status=status)
        return "pending"

    reason = notification.message or notification.reason or "Payment failed"
    shopify_service.reject_session(settings, session_id, reason)
    return "rejected"
