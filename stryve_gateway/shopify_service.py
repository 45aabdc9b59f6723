import requests

from stryve_gateway.config import Settings
from stryve_gateway.exceptions import SettlementError
from stryve_gateway.logging import get_logger

log = get_logger(__name__)

TIMEOUT_SECONDS = 30


def _post_session_action(settings: Settings, session_id: str, action: str, body: dict) -> None:
    url = f"{settings.shopify_payments_api_url.rstrip('/')}/payment_sessions/{session_id}/{action}"
    try:
        response = requests.post(
            url,
            json=body,
            headers={"Authorization": f"Bearer {settings.shopify_payment_token}"},
            timeout=TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        raise SettlementError(f"Payment session {action} failed: {exc}") from exc

    if not (200 <= response.status_code < 300):
        raise SettlementError(f"Payment session {action} failed: HTTP {response.status_code}")

    log.info("payment_session_settled", session_id=session_id, action=action)


def resolve_session(settings: Settings, session_id: str) -> None:
    """Tell Shopify the payment session succeeded."""
    _post_session_action(settings, session_id, "resolve", {})


def reject_session(settings: Settings, session_id: str, reason: str = "Payment failed") -> None:
    _post_session_action(settings, session_id, "reject", {"reason": reason})
