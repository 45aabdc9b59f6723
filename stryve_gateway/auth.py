import base64
import hashlib
import hmac
from collections import defaultdict
from urllib.parse import urlparse

from fastapi import Depends, Header, Request
from jose import JWTError, jwt

from stryve_gateway.config import Settings, get_settings
from stryve_gateway.exceptions import UnauthorizedError


def verify_session_token(
    authorization: str = Header(None),
    settings: Settings = Depends(get_settings),
) -> str:
    """Validate a Shopify admin session token and return the shop domain from its dest claim."""
    if not settings.shopify_api_secret:
        raise UnauthorizedError("Invalid or missing token")
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Unsupported authorization scheme")
        claims = jwt.decode(
            token,
            settings.shopify_api_secret,
            algorithms=["HS256"],
            audience=settings.shopify_api_key or None,
            options={"verify_aud": bool(settings.shopify_api_key)},
        )
        shop = urlparse(claims["dest"]).netloc
        if not shop:
            raise ValueError("Session token has no shop")
    except (AttributeError, KeyError, ValueError, JWTError):
        raise UnauthorizedError("Invalid or missing token")
    return shop


def app_proxy_signature(query_items: list[tuple[str, str]], secret: str) -> str:
    """Shopify app proxy signature: sorted key=value pairs, no separators, hex HMAC-SHA256."""
    grouped = defaultdict(list)
    for key, value in query_items:
        if key != "signature":
            grouped[key].append(value)
    message = "".join(sorted(f"{key}={','.join(values)}" for key, values in grouped.items()))
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_app_proxy(request: Request, settings: Settings = Depends(get_settings)) -> str:
    """Dependency for storefront requests forwarded by the Shopify app proxy. Returns the shop."""
    signature = request.query_params.get("signature", "")
    shop = request.query_params.get("shop", "")
    if not settings.shopify_api_secret or not signature or not shop:
        raise UnauthorizedError("Unauthorized")
    expected = app_proxy_signature(request.query_params.multi_items(), settings.shopify_api_secret)
    if not hmac.compare_digest(expected, signature):
        raise UnauthorizedError("Unauthorized")
    return shop


def verify_webhook_hmac(payload: bytes, signature: str, secret: str) -> bool:
    """Base64 HMAC-SHA256 of the raw body. Nothing verifies without a secret."""
    if not secret:
        return False
    expected = base64.b64encode(
        hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    ).decode("utf-8")
    return hmac.compare_digest(expected, signature or "")
