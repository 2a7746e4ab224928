# storefront/repos/product_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel, ProductVariantModel


class ProductRepo:
    """
    Product and variant rows, including the stock counters.

    The lock_* methods issue SELECT ... FOR UPDATE and must run inside the
    caller's transaction; the lock is held until that transaction ends.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_variant(self, variant_id: int) -> ProductVariantModel | None:
        return self.db.get(ProductVariantModel, variant_id)

    def lock_product(self, product_id: int) -> ProductModel | None:
        stmt = (
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_variant(self, variant_id: int) -> ProductVariantModel | None:
        stmt = (
            select(ProductVariantModel)
            .where(ProductVariantModel.id == variant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def adjust_product_stock(self, product_id: int, delta: int) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(in_stock=ProductModel.in_stock + delta)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def adjust_variant_stock(self, variant_id: int, delta: int) -> int:
        result = self.db.execute(
            update(ProductVariantModel)
            .where(ProductVariantModel.id == variant_id)
            .values(in_stock=ProductVariantModel.in_stock + delta)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
