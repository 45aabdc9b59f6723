"""Database operations for Stryve settings and payment records."""

from sqlalchemy.orm import Session

from stryve_gateway.models import StryvePayment, StryveSettings

RECENT_PAYMENTS_LIMIT = 50


# --- Stryve settings ---

def get_stryve_settings(db: Session, shop: str) -> StryveSettings | None:
    return db.get(StryveSettings, shop)


def upsert_stryve_settings(
    db: Session,
    shop: str,
    api_key: str,
    base_url: str = "",
    sandbox: bool = True,
    debug: bool = False,
) -> StryveSettings:
    settings = db.get(StryveSettings, shop)
    if settings is None:
        settings = StryveSettings(shop=shop)
        db.add(settings)

    settings.api_key = api_key
    settings.base_url = base_url or ""
    settings.sandbox = sandbox
    settings.debug = debug
    db.commit()
    db.refresh(settings)
    return settings


# --- Payment records ---

def create_payment(db: Session, **fields) -> StryvePayment:
    payment = StryvePayment(status="pending", **fields)
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def find_payment(db: Session, shop: str, merchant_reference: str) -> StryvePayment | None:
    return (
        db.query(StryvePayment)
        .filter_by(shop=shop, merchant_reference=merchant_reference)
        .first()
    )


def find_payment_by_reference(db: Session, merchant_reference: str) -> StryvePayment | None:
    """Lookup across shops, for Stryve notifications that carry no shop."""
    return db.query(StryvePayment).filter_by(merchant_reference=merchant_reference).first()


def update_payment_status(
    db: Session,
    payment: StryvePayment,
    status: str,
    stryve_order_id: str | None = None,
) -> StryvePayment:
    """Overwrite status (and order id when known). Safe to repeat for the same callback."""
    payment.status = status
    if stryve_order_id:
        payment.stryve_order_id = stryve_order_id
    db.commit()
    db.refresh(payment)
    return payment


def list_recent_payments(db: Session, shop: str, limit: int = RECENT_PAYMENTS_LIMIT) -> list[StryvePayment]:
    return (
        db.query(StryvePayment)
        .filter_by(shop=shop)
        .order_by(StryvePayment.created_at.desc())
        .limit(limit)
        .all()
    )


def delete_shop_data(db: Session, shop: str) -> int:
    """Tenant teardown: remove settings and every payment record of a shop."""
    deleted = db.query(StryvePayment).filter_by(shop=shop).delete()
    db.query(StryveSettings).filter_by(shop=shop).delete()
    db.commit()
    return deleted
