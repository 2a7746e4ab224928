# storefront/domain/pricing.py
"""
Order totals and checkout checks.

Pure functions over cart snapshots; nothing here touches the database.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

from storefront.domain.schemas import CartLine, CheckoutData, OrderCalculation, PAYMENT_METHODS
from storefront.utils.settings import SHIPPING_COST, FREE_SHIPPING_THRESHOLD, TAX_RATE

LOW_STOCK_LEVEL = 5

ORDER_STATUS_LABELS = {
    "pending": "Order Received",
    "processing": "Processing",
    "paid": "Payment Confirmed",
    "shipped": "Shipped",
    "out_for_delivery": "Out for Delivery",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
}

_NEXT_ACTIONS = {
    "pending": "We will confirm your order within 24 hours.",
    "processing": "Your order is being packed and will ship soon.",
    "paid": "Your order will be processed and shipped soon.",
    "shipped": "Track your package. It will arrive in 2-3 business days.",
    "out_for_delivery": "Your order will be delivered today. Please keep your payment ready.",
}


def calculate_order_totals(
    items: Iterable[CartLine],
    shipping_cost: Decimal = SHIPPING_COST,
    tax_rate: Decimal = TAX_RATE,
    free_shipping_threshold: Decimal = FREE_SHIPPING_THRESHOLD,
) -> OrderCalculation:
    subtotal = sum((i.unit_price * i.quantity for i in items), Decimal("0.00"))

    shipping = Decimal("0.00") if subtotal >= free_shipping_threshold else Decimal(shipping_cost)
    # tax is charged in whole units
    tax = (subtotal * Decimal(tax_rate)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)

    return OrderCalculation(
        subtotal=subtotal,
        shipping_cost=shipping,
        tax_amount=tax,
        total_amount=subtotal + shipping + tax,
    )


def validate_cart_for_checkout(items: List[CartLine]) -> List[str]:
    if not items:
        return ["Your cart is empty"]

    errors = []
    for item in items:
        if item.in_stock < item.quantity:
            errors.append(f"{item.display_name} is out of stock")
    return errors


def validate_checkout_data(data: CheckoutData) -> List[str]:
    errors = []
    if not data.shipping_address_id:
        errors.append("Shipping address is required")
    if not data.use_same_address and not data.billing_address_id:
        errors.append("Billing address is required")
    if data.payment_method not in PAYMENT_METHODS:
        errors.append("Invalid payment method")
    return errors


def generate_order_number(order_id: int) -> str:
    return f"ORD-{order_id:08d}"


def status_label(status: str) -> str:
    return ORDER_STATUS_LABELS.get(status, status.replace("_", " ").title())


def estimate_delivery_date(created_at: datetime | None = None, status: str | None = None) -> datetime:
    base = created_at or datetime.now(timezone.utc)
    if status == "delivered":
        return base
    if status in ("shipped", "out_for_delivery"):
        return base + timedelta(days=2)
    return base + timedelta(days=5)


def next_action(status: str, payment_method: str) -> str:
    if status == "cancelled":
        return "This order was cancelled."
    if status == "delivered":
        return "Your order has been delivered. Enjoy your purchase!"
    if status == "out_for_delivery" and payment_method != "cod":
        return "Your order will be delivered today."
    return _NEXT_ACTIONS.get(status, "Your order is being processed.")


def inventory_status(in_stock: int) -> dict:
    if in_stock <= 0:
        return {"status": "out_of_stock", "display_text": "Out of Stock", "can_order": False}
    if in_stock <= LOW_STOCK_LEVEL:
        return {"status": "low_stock", "display_text": f"Only {in_stock} left in stock!", "can_order": True}
    return {"status": "in_stock", "display_text": "In Stock", "can_order": True}


def can_add_to_cart(requested: int, in_stock: int, in_cart: int = 0) -> dict:
    if in_stock <= 0:
        return {"can_add": False, "max_quantity": 0, "error": "This item is out of stock"}

    if requested + in_cart > in_stock:
        return {
            "can_add": False,
            "max_quantity": max(in_stock - in_cart, 0),
            "error": f"Only {in_stock} available. You already have {in_cart} in cart.",
        }

    return {"can_add": True, "max_quantity": in_stock}
