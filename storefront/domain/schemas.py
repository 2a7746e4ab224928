# storefront/domain/schemas.py
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

OrderStatus = Literal[
    "pending",
    "processing",
    "paid",
    "shipped",
    "out_for_delivery",
    "delivered",
    "cancelled",
]
AddressType = Literal["shipping", "billing"]

PAYMENT_METHODS = ("cod", "jazzcash", "easypaisa")


class ActionResult(BaseModel):
    """Envelope returned by every endpoint."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    field_errors: Optional[dict[str, list[str]]] = None


_REQUEST_LOCATIONS = ("body", "query", "path", "header")


def collect_field_errors(exc: ValidationError) -> dict[str, list[str]]:
    """Field path -> messages. Also accepts FastAPI's RequestValidationError."""
    errors: dict[str, list[str]] = {}
    for issue in exc.errors():
        loc = [str(p) for p in issue["loc"]]
        if loc and loc[0] in _REQUEST_LOCATIONS:
            loc = loc[1:]
        path = ".".join(loc) or "__root__"
        message = issue["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(path, []).append(message)
    return errors


# =====================================================
# USERS
# =====================================================
class UserCreate(BaseModel):
    id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    role: Literal["customer", "admin"] = "customer"


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: str

    model_config = ConfigDict(from_attributes=True)


# =====================================================
# CART
# =====================================================
class CartItemIn(BaseModel):
    """Add to cart. Simple products: product_id only, configurable: both ids."""

    product_id: Optional[int] = Field(None, gt=0)
    product_variant_id: Optional[int] = Field(None, gt=0)
    is_simple_product: bool = False
    quantity: int = Field(1, ge=1)

    @model_validator(mode="after")
    def _check_target(self):
        if self.is_simple_product:
            ok = self.product_id is not None and self.product_variant_id is None
        else:
            ok = self.product_id is not None and self.product_variant_id is not None
        if not ok:
            raise ValueError(
                "For simple products, provide product_id only. "
                "For configurable products, provide both product_id and product_variant_id."
            )
        return self


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class CartLine(BaseModel):
    """A cart line with the product data needed to price and check it."""

    id: int
    cart_id: int
    product_id: Optional[int] = None
    product_variant_id: Optional[int] = None
    is_simple_product: bool
    quantity: int

    name: str
    sku: str = ""
    price: Decimal
    sale_price: Optional[Decimal] = None
    in_stock: int = 0
    stock_status: Optional[str] = None
    color_name: Optional[str] = None
    color_hex: Optional[str] = None
    size_name: Optional[str] = None

    @property
    def unit_price(self) -> Decimal:
        return self.sale_price if self.sale_price else self.price

    @property
    def display_name(self) -> str:
        if self.is_simple_product:
            return self.name
        attrs = f"{self.color_name or ''} {self.size_name or ''}".strip()
        return f"{self.name} ({attrs})" if attrs else self.name


class CartOut(BaseModel):
    items: List[CartLine]
    total: Decimal
    guest_token: Optional[str] = None


# =====================================================
# ADDRESSES
# =====================================================
_PHONE_RE = re.compile(r"^(\+92|0)?3\d{9}$")


class AddressIn(BaseModel):
    type: AddressType
    full_name: str
    line1: str
    line2: Optional[str] = ""
    state_id: int
    state: str
    city_id: int
    city: str
    postal_code: str
    phone: Optional[str] = ""
    country: str = "Pakistan"
    country_code: str = "PK"
    country_id: int = 167
    is_default: bool = False

    @field_validator("full_name")
    @classmethod
    def _full_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Full name is required")
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        if len(v) > 100:
            raise ValueError("Name must be less than 100 characters")
        return v

    @field_validator("line1")
    @classmethod
    def _line1(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Street address is required")
        if len(v) < 5:
            raise ValueError("Please enter a complete address")
        if len(v) > 200:
            raise ValueError("Address is too long")
        return v

    @field_validator("line2")
    @classmethod
    def _line2(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) > 200:
            raise ValueError("Address is too long")
        return v

    @field_validator("state_id")
    @classmethod
    def _state_id(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Please select a valid state")
        return v

    @field_validator("city_id")
    @classmethod
    def _city_id(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Please select a valid city")
        return v

    @field_validator("state")
    @classmethod
    def _state(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("State name is required")
        return v

    @field_validator("city")
    @classmethod
    def _city(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("City name is required")
        return v

    @field_validator("postal_code")
    @classmethod
    def _postal_code(cls, v: str) -> str:
        if not v:
            raise ValueError("Postal code is required")
        if not v.isdigit():
            raise ValueError("Postal code must contain only digits")
        if len(v) != 5:
            raise ValueError("Postal code must be exactly 5 digits")
        return v

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        if not v or not v.strip():
            return v
        cleaned = re.sub(r"[\s-]", "", v)
        if not _PHONE_RE.match(cleaned):
            raise ValueError("Invalid phone format (e.g., +92 300 1234567 or 03001234567)")
        return v

    @field_validator("country_code")
    @classmethod
    def _country_code(cls, v: str) -> str:
        if len(v) != 2:
            raise ValueError("Country code must be 2 letters")
        return v.upper()


class AddressOut(BaseModel):
    id: int
    user_id: int
    type: str
    full_name: str
    line1: str
    line2: Optional[str] = None
    city: str
    city_id: Optional[int] = None
    state: str
    state_id: Optional[int] = None
    country: str
    country_code: str
    country_id: int
    postal_code: str
    phone: Optional[str] = None
    is_default: bool

    model_config = ConfigDict(from_attributes=True)


class DefaultAddresses(BaseModel):
    shipping: Optional[AddressOut] = None
    billing: Optional[AddressOut] = None


# =====================================================
# CHECKOUT
# =====================================================
class CheckoutData(BaseModel):
    shipping_address_id: Optional[int] = None
    billing_address_id: Optional[int] = None
    payment_method: str = "cod"
    notes: Optional[str] = None
    use_same_address: bool = True

    @property
    def effective_billing_address_id(self) -> Optional[int]:
        if self.use_same_address:
            return self.shipping_address_id
        return self.billing_address_id


class OrderCalculation(BaseModel):
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total_amount: Decimal


class CheckoutSession(BaseModel):
    id: str
    user_id: int
    cart_items: List[CartLine]
    calculation: OrderCalculation
    user_addresses: List[AddressOut] = []
    default_addresses: DefaultAddresses = DefaultAddresses()
    checkout_data: Optional[CheckoutData] = None
    created_at: datetime
    expires_at: datetime


# =====================================================
# ORDERS
# =====================================================
class OrderItemOut(BaseModel):
    id: int
    quantity: int
    price_at_purchase: Decimal
    sale_price_at_purchase: Optional[Decimal] = None
    is_simple_product: bool
    product_id: Optional[int] = None
    product_variant_id: Optional[int] = None
    name: str
    sku: str = ""
    color_name: Optional[str] = None
    size_name: Optional[str] = None


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: Optional[int]
    status: OrderStatus
    status_label: str = ""
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    payment_method: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    shipping_address: Optional[AddressOut] = None
    billing_address: Optional[AddressOut] = None
    items: List[OrderItemOut] = []
    estimated_delivery: Optional[datetime] = None
    next_action: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class BulkOrderStatusUpdate(BaseModel):
    order_ids: List[int] = Field(..., min_length=1)
    status: OrderStatus


class OrderFilters(BaseModel):
    status: Optional[str] = None
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    payment_method: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class DashboardOrder(BaseModel):
    id: int
    order_number: str
    user_id: Optional[int]
    customer_name: str
    customer_email: Optional[str] = None
    status: OrderStatus
    status_label: str = ""
    total_amount: Decimal
    payment_method: str
    item_count: int
    created_at: datetime
    shipping_city: Optional[str] = None
    shipping_phone: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class DashboardOrderPage(BaseModel):
    orders: List[DashboardOrder]
    pagination: Pagination


class OrderStats(BaseModel):
    total_orders: int = 0
    pending_orders: int = 0
    processing_orders: int = 0
    shipped_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0
    total_revenue: Decimal = Decimal("0.00")
    today_orders: int = 0
