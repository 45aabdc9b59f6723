import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String, UniqueConstraint

from stryve_gateway.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class StryveSettings(Base):
    __tablename__ = "stryve_settings"

    shop = Column(String, primary_key=True)
    api_key = Column(String, nullable=False, default="")
    base_url = Column(String, nullable=False, default="")     # empty -> sandbox/production default
    sandbox = Column(Boolean, nullable=False, default=True)
    debug = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class StryvePayment(Base):
    __tablename__ = "stryve_payments"
    __table_args__ = (
        UniqueConstraint("shop", "merchant_reference", name="uq_stryve_payments_shop_reference"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    shop = Column(String, nullable=False, index=True)
    merchant_reference = Column(String, nullable=False, index=True)
    stryve_order_id = Column(String, nullable=True)            # Stryve order UUID, may arrive late
    amount = Column(String, nullable=False)
    currency = Column(String, nullable=False, default="EGP")
    status = Column(String, nullable=False, default="pending")  # pending | processing | paid | failed
    payment_url = Column(String, nullable=False)
    callback_url = Column(String, nullable=False)
    test = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
