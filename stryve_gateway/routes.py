import json
from html import escape

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from stryve_gateway import repository
from stryve_gateway.auth import verify_app_proxy, verify_session_token
from stryve_gateway.config import Settings, get_settings
from stryve_gateway.database import get_db
from stryve_gateway.exceptions import InvalidArgumentError, InvalidCallbackError, RecordNotFoundError
from stryve_gateway.logging import get_logger
from stryve_gateway.schemas import CallbackParams, CreateOrderRequest, SettingsForm, SettlementNotification
from stryve_gateway.workflows import create_stryve_order, settle_payment_session, shop_domain, verify_callback

router = APIRouter()
log = get_logger(__name__)


def _html_page(title: str, message: str, shop: str, status_code: int) -> HTMLResponse:
    store_url = f"https://{escape(shop_domain(shop) if shop else 'shopify.com')}"
    body = (
        f"<html><body><h1>{title}</h1><p>{message}</p>"
        f'<p><a href="{store_url}">Return to store</a></p></body></html>'
    )
    return HTMLResponse(content=body, status_code=status_code)


@router.post("/api/create-stryve-order")
def create_stryve_order_api(
    request: CreateOrderRequest,
    shop: str = Depends(verify_app_proxy),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    created = create_stryve_order(
        db,
        shop=shop,
        amount=request.amount,
        currency=request.currencyCode,
        shipping_address=request.shippingAddress,
        app_url=settings.shopify_app_url,
    )
    return {
        "payment_url": created.payment_url,
        "stryve_order_id": created.stryve_order_id,
        "merchant_reference": created.merchant_reference,
    }


@router.get("/payments/callback")
def payment_callback(params: CallbackParams = Depends(), db: Session = Depends(get_db)):
    try:
        outcome = verify_callback(db, params)
    except InvalidCallbackError as exc:
        return _html_page("Invalid Callback", exc.message, params.shop, exc.status_code)
    except RecordNotFoundError as exc:
        return _html_page("Payment Not Found", exc.message, params.shop, exc.status_code)
    except Exception:
        log.exception("stryve_callback_error", shop=params.shop, ref=params.ref)
        return _html_page("Payment Error", "An error occurred.", params.shop, 500)

    return RedirectResponse(outcome.redirect_url, status_code=302)


@router.post("/webhooks/stryve")
async def stryve_webhook(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        payload = json.loads(await request.body())
        if not isinstance(payload, dict):
            raise ValueError("Payload must be a JSON object")
        notification = SettlementNotification.model_validate(payload)
    except (ValueError, ValidationError):
        raise InvalidArgumentError("Invalid payload")

    result = await run_in_threadpool(settle_payment_session, db, settings, notification)
    return {"ok": True, "result": result}


@router.get("/app/settings")
def read_settings(shop: str = Depends(verify_session_token), db: Session = Depends(get_db)):
    stored = repository.get_stryve_settings(db, shop)
    if stored is None:
        return {"shop": shop, "stryveSettings": None}

    return {
        "shop": shop,
        "stryveSettings": {
            "apiKey": "***" + stored.api_key[-6:] if stored.api_key else "",
            "baseUrl": stored.base_url,
            "sandbox": stored.sandbox,
            "debug": stored.debug,
            "hasApiKey": bool(stored.api_key),
        },
    }


@router.post("/app/settings")
def save_settings(
    form: SettingsForm,
    shop: str = Depends(verify_session_token),
    db: Session = Depends(get_db),
):
    if not form.apiKey:
        raise InvalidArgumentError("API Key is required.")

    repository.upsert_stryve_settings(
        db,
        shop,
        api_key=form.apiKey,
        base_url=form.baseUrl,
        sandbox=form.sandbox,
        debug=form.debug,
    )
    log.info("stryve_settings_saved", shop=shop, sandbox=form.sandbox, debug=form.debug)
    return {"success": True, "message": "Stryve settings saved successfully."}


@router.get("/app/payments")
def list_payments(shop: str = Depends(verify_session_token), db: Session = Depends(get_db)):
    payments = repository.list_recent_payments(db, shop)
    return {
        "payments": [
            {
                "id": p.id,
                "merchantReference": p.merchant_reference,
                "amount": p.amount,
                "currency": p.currency,
                "status": p.status,
                "test": p.test,
                "stryveOrderId": p.stryve_order_id,
                "createdAt": p.created_at.isoformat() if p.created_at else None,
            }
            for p in payments
        ]
    }
