from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    ForeignKey,
    String,
    Text,
    DateTime,
    Numeric,
    Boolean,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from storefront.data.database import Base

ORDER_STATUSES = (
    "pending",
    "processing",
    "paid",
    "shipped",
    "out_for_delivery",
    "delivered",
    "cancelled",
)


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    status = Column(String, nullable=False, default="pending")
    subtotal = Column(Numeric(10, 2), nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)

    shipping_address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    billing_address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    payment_method = Column(String, nullable=False, default="cod")
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items = relationship("OrderItemModel", back_populates="order", cascade="all, delete-orphan")


class OrderItemModel(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        # a line points at a simple product or at a variant, never both
        CheckConstraint(
            "(product_id IS NOT NULL AND product_variant_id IS NULL) OR "
            "(product_id IS NULL AND product_variant_id IS NOT NULL)",
            name="ck_order_items_single_target",
        ),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=True)
    product_variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=True)
    is_simple_product = Column(Boolean, nullable=False, default=False)

    quantity = Column(Integer, nullable=False, default=1)
    price_at_purchase = Column(Numeric(10, 2), nullable=False)
    sale_price_at_purchase = Column(Numeric(10, 2), nullable=True)

    order = relationship("OrderModel", back_populates="items")
    product = relationship("ProductModel")
    variant = relationship("ProductVariantModel")
