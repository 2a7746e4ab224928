# storefront/data/models/product.py
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Numeric,
    DateTime,
    ForeignKey,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class ProductModel(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("in_stock >= 0", name="ck_products_in_stock"),)

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    product_type = Column(String, nullable=False, default="simple")  # simple, configurable
    is_published = Column(Boolean, nullable=False, default=False)

    # simple products keep price and stock on the product row
    price = Column(Numeric(10, 2), nullable=True)
    sale_price = Column(Numeric(10, 2), nullable=True)
    sku = Column(String, nullable=True)
    in_stock = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    variants = relationship("ProductVariantModel", back_populates="product", cascade="all, delete-orphan")


class ProductVariantModel(Base):
    __tablename__ = "product_variants"
    __table_args__ = (CheckConstraint("in_stock >= 0", name="ck_product_variants_in_stock"),)

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    sku = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    sale_price = Column(Numeric(10, 2), nullable=True)
    color_name = Column(String, nullable=True)
    color_hex = Column(String, nullable=True)
    size_name = Column(String, nullable=True)
    in_stock = Column(Integer, nullable=False, default=0)

    product = relationship("ProductModel", back_populates="variants")

    @property
    def display_name(self) -> str:
        # "Shirt (Red M)"
        attrs = f"{self.color_name or ''} {self.size_name or ''}".strip()
        return f"{self.product.name} ({attrs})" if attrs else self.product.name
