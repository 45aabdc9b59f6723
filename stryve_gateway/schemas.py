from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ShippingAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    address1: Optional[str] = None
    city: Optional[str] = None
    countryCode: Optional[str] = None


class CreateOrderRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    currencyCode: Optional[str] = None
    shippingAddress: Optional[ShippingAddress] = None


class OrderItem(BaseModel):
    name: str = ""
    quantity: Any = 1
    price: Any = 0
    description: Optional[str] = None


class CustomerDetails(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address_line: Optional[str] = None
    address_city: Optional[str] = None
    address_country: Optional[str] = None


class CallbackParams(BaseModel):
    # From Stryve
    status: str = ""
    message: str = ""
    order_id: str = ""
    merchant_reference: str = ""
    # Appended by us when building callback_url
    shop: str = ""
    ref: str = ""


class SettlementNotification(BaseModel):
    model_config = ConfigDict(extra="ignore")

    shopify_session_id: Optional[str] = None
    merchant_reference: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    reason: Optional[str] = None

    @property
    def session_id(self) -> Optional[str]:
        return self.shopify_session_id or self.merchant_reference


class SettingsForm(BaseModel):
    apiKey: str = ""
    baseUrl: str = ""
    sandbox: bool = True
    debug: bool = False
