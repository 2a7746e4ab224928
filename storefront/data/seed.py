# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import ProductModel, ProductVariantModel, UserModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # only seed an empty catalog
        if db.query(ProductModel).first():
            return

        db.add_all(
            [
                UserModel(id=1, name="Ayesha Khan", email="ayesha@example.com", role="customer"),
                UserModel(id=2, name="Store Admin", email="admin@example.com", role="admin"),
            ]
        )

        mug = ProductModel(
            name="Ceramic Mug",
            description="350 ml stoneware mug",
            product_type="simple",
            is_published=True,
            price=Decimal("1000.00"),
            sku="MUG-001",
            in_stock=5,
        )
        shirt = ProductModel(
            name="Cotton Shirt",
            description="Lawn cotton, regular fit",
            product_type="configurable",
            is_published=True,
        )
        shirt.variants = [
            ProductVariantModel(
                sku="SHIRT-RED-M",
                price=Decimal("2200.00"),
                sale_price=Decimal("1800.00"),
                color_name="Red",
                color_hex="#C0392B",
                size_name="M",
                in_stock=3,
            ),
            ProductVariantModel(
                sku="SHIRT-BLU-L",
                price=Decimal("2200.00"),
                color_name="Blue",
                color_hex="#2E86C1",
                size_name="L",
                in_stock=1,
            ),
        ]
        db.add_all([mug, shirt])
        db.commit()
        logger.info("Seeded demo users and products")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
