"""
Stryve SME Checkout API client.

- POST /payment-gateway/authenticate  (api_key as form-data, returns a single-use token)
- POST /payment-gateway/create-order  (token + order data as form-data, returns payment_url)
- GET  /payment-gateway/get-order     (api_key + order_id or mechant_reference as query params)

POST bodies are multipart/form-data, never JSON. Nested data uses bracket
notation: items[0][name], customer_details[first_name]. Tokens are single-use
and expire after 30 minutes, so every order gets a fresh one.
"""

import math
from typing import Iterable, Optional

import requests

from stryve_gateway.exceptions import (
    AuthenticationError,
    InvalidArgumentError,
    OrderCreationError,
    StryveApiError,
    VerificationError,
)
from stryve_gateway.logging import get_logger
from stryve_gateway.schemas import CustomerDetails, OrderItem

log = get_logger(__name__)

PRODUCTION_BASE_URL = "https://app.stryve.me/api/v1"
SANDBOX_BASE_URL = "http://127.0.0.1:8000/api/v1"

TIMEOUT_SECONDS = 30
HEADERS = {"Accept": "application/json"}

CUSTOMER_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "email",
    "address_line",
    "address_city",
    "address_country",
)


def resolve_base_url(custom_url: Optional[str], sandbox: bool) -> str:
    """Custom URL first (trailing slashes stripped), then the sandbox or production default."""
    if custom_url and custom_url.strip():
        return custom_url.strip().rstrip("/")
    return SANDBOX_BASE_URL if sandbox else PRODUCTION_BASE_URL


def _read_json(response: requests.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _failed(response: requests.Response, data: dict) -> bool:
    return not (200 <= response.status_code < 300) or data.get("success") is False


def _failure_message(response: requests.Response, data: dict, fallback: Optional[str] = None) -> str:
    return data.get("message") or fallback or f"HTTP {response.status_code}"


def _send(method: str, url: str, error_cls: type[StryveApiError], prefix: str, **kwargs) -> requests.Response:
    try:
        return requests.request(method, url, headers=HEADERS, timeout=TIMEOUT_SECONDS, **kwargs)
    except requests.RequestException as exc:
        raise error_cls(f"{prefix}: {exc}") from exc


def _to_quantity(value) -> int:
    try:
        quantity = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 1
    return quantity or 1


def _to_price(value) -> str:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return "0"
    if math.isnan(price):
        return "0"
    if price.is_integer():
        return str(int(price))
    return repr(price)


def build_order_form(
    token: str,
    merchant_reference,
    callback_url: str,
    items: Iterable[OrderItem],
    customer_details: Optional[CustomerDetails],
) -> list[tuple[str, tuple[None, str]]]:
    """Encode create-order fields as multipart parts, dropping empty optional values."""
    fields = [
        ("token", token),
        ("merchant_reference", str(merchant_reference)),
        ("callback_url", callback_url),
    ]

    for i, item in enumerate(items or []):
        fields.append((f"items[{i}][name]", str(item.name or "")))
        fields.append((f"items[{i}][quantity]", str(_to_quantity(item.quantity))))
        fields.append((f"items[{i}][price]", _to_price(item.price)))
        if item.description:
            fields.append((f"items[{i}][description]", str(item.description)))

    if customer_details is not None:
        for field in CUSTOMER_FIELDS:
            value = getattr(customer_details, field)
            if value:
                fields.append((f"customer_details[{field}]", str(value)))

    # (None, value) parts carry no filename, so they are sent as plain form fields
    return [(name, (None, value)) for name, value in fields]


def authenticate(api_key: str, base_url: str) -> str:
    """Exchange the API key for a single-use token. Never cache the result."""
    prefix = "Stryve authentication failed"
    response = _send(
        "POST",
        f"{base_url}/payment-gateway/authenticate",
        AuthenticationError,
        prefix,
        files=[("api_key", (None, api_key))],
    )
    data = _read_json(response)

    if _failed(response, data):
        raise AuthenticationError(f"{prefix}: {_failure_message(response, data)}")

    token = data.get("token")
    if not token:
        raise AuthenticationError(f"{prefix}: {_failure_message(response, data, 'No token received')}")

    return token


def create_order(
    api_key: str,
    base_url: str,
    merchant_reference,
    callback_url: str,
    items: Iterable[OrderItem],
    customer_details: Optional[CustomerDetails] = None,
) -> dict:
    """
    Create an order on Stryve and return it unwrapped from the "order" key.

    Authenticates first with a fresh token. Stryve computes the order total
    from the items; no total is sent.
    """
    token = authenticate(api_key, base_url)

    prefix = "Stryve order creation failed"
    response = _send(
        "POST",
        f"{base_url}/payment-gateway/create-order",
        OrderCreationError,
        prefix,
        files=build_order_form(token, merchant_reference, callback_url, items, customer_details),
    )
    data = _read_json(response)

    if _failed(response, data):
        raise OrderCreationError(f"{prefix}: {_failure_message(response, data)}")

    order = data.get("order") or data
    if not order.get("payment_url"):
        raise OrderCreationError(f"{prefix}: {_failure_message(response, data, 'No payment URL received')}")

    return order


def get_order(
    api_key: str,
    base_url: str,
    order_id: Optional[str] = None,
    merchant_reference: Optional[str] = None,
) -> dict:
    """Fetch an order for server-side status verification."""
    params = {"api_key": api_key}
    if order_id:
        params["order_id"] = order_id
    elif merchant_reference:
        # The Stryve API spells this parameter without the first "r"
        params["mechant_reference"] = merchant_reference
    else:
        raise InvalidArgumentError("Either order_id or merchant_reference is required.")

    prefix = "Stryve get order failed"
    response = _send(
        "GET",
        f"{base_url}/payment-gateway/get-order",
        VerificationError,
        prefix,
        params=params,
    )
    data = _read_json(response)

    if _failed(response, data):
        raise VerificationError(f"{prefix}: {_failure_message(response, data)}")

    return data.get("order") or data
