import time
import uuid

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from stryve_gateway import repository
from stryve_gateway.auth import verify_webhook_hmac
from stryve_gateway.config import Settings, get_settings
from stryve_gateway.database import Base, engine, get_db
from stryve_gateway.exceptions import (
    AppError,
    UnauthorizedError,
    app_exception_handler,
    generic_exception_handler,
)
from stryve_gateway.logging import bind_request_id, configure_logging, get_logger
from stryve_gateway.routes import router

configure_logging(debug=get_settings().debug)
log = get_logger(__name__)

app = FastAPI(title="Stryve Payment Gateway for Shopify")

app.add_exception_handler(AppError, app_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(router)

Base.metadata.create_all(bind=engine)

# Shopify webhook topics that erase every record of a shop
TEARDOWN_TOPICS = {"app/uninstalled", "shop/redact"}
# Acknowledged only: no customer data is stored beyond the shop's payment records
ACKNOWLEDGED_TOPICS = {"customers/data_request", "customers/redact"}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    bind_request_id(request_id)
    start = time.perf_counter()
    response = await call_next(request)
    log.info(
        "request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.post("/webhooks/shopify")
async def shopify_webhook(
    request: Request,
    x_shopify_topic: str = Header(""),
    x_shopify_shop_domain: str = Header(""),
    x_shopify_hmac_sha256: str = Header(""),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    payload = await request.body()
    if not verify_webhook_hmac(payload, x_shopify_hmac_sha256, settings.shopify_api_secret):
        raise UnauthorizedError("Invalid webhook signature")

    topic = x_shopify_topic.lower()
    if topic in TEARDOWN_TOPICS:
        deleted = repository.delete_shop_data(db, x_shopify_shop_domain)
        log.info("shop_data_deleted", shop=x_shopify_shop_domain, topic=topic, payments=deleted)
    elif topic not in ACKNOWLEDGED_TOPICS:
        raise AppError("Unhandled webhook topic", code="UNHANDLED_TOPIC", status_code=404)

    return {"ok": True}


@app.get("/", response_class=HTMLResponse)
def index():
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>Stryve Payments</title></head>"
        "<body><h1>Stryve Payments</h1>"
        "<p>This is the Stryve Shopify Payment App backend.</p>"
        "<p>Merchants configure their Stryve API key from the app settings inside Shopify.</p>"
        "</body></html>"
    )


@app.get("/health")
def health():
    return {"status": "ok"}
