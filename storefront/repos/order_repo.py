# storefront/repos/order_repo.py
import re
from datetime import datetime

from sqlalchemy import select, func, update, delete, or_
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.address import AddressModel
from storefront.data.models.order import OrderModel, OrderItemModel
from storefront.data.models.product import ProductVariantModel
from storefront.data.models.user import UserModel

_ORDER_NUMBER_RE = re.compile(r"^(?:ord-?)?0*(\d+)$", re.IGNORECASE)


def _with_items():
    return selectinload(OrderModel.items).options(
        selectinload(OrderItemModel.product),
        selectinload(OrderItemModel.variant).selectinload(ProductVariantModel.product),
    )


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_items(self, items: list[OrderItemModel]):
        self.db.add_all(items)
        self.db.flush()

    def get_order(self, order_id: int, with_items: bool = False) -> OrderModel | None:
        stmt = select(OrderModel).where(OrderModel.id == order_id)
        if with_items:
            stmt = stmt.options(_with_items())
        return self.db.execute(stmt).scalar_one_or_none()

    def get_user_order(self, order_id: int, user_id: int) -> OrderModel | None:
        stmt = (
            select(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.user_id == user_id)
            .options(_with_items())
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_user_orders(self, user_id: int) -> list[OrderModel]:
        stmt = (
            select(OrderModel)
            .where(OrderModel.user_id == user_id)
            .options(_with_items())
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_items(self, order_id: int) -> list[OrderItemModel]:
        return list(
            self.db.execute(select(OrderItemModel).where(OrderItemModel.order_id == order_id)).scalars().all()
        )

    def set_status_if(self, order_id: int, status: str, expected: tuple[str, ...]) -> int:
        """Moves the order to status only while it is still in one of expected; 0 rows when it is not."""
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status.in_(expected))
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def set_status_many(self, order_ids: list[int], status: str) -> int:
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id.in_(order_ids))
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_order(self, order_id: int) -> int:
        self.db.execute(delete(OrderItemModel).where(OrderItemModel.order_id == order_id))
        result = self.db.execute(delete(OrderModel).where(OrderModel.id == order_id))
        return result.rowcount

    # dashboard queries

    def search_orders(
        self,
        status: str | None = None,
        payment_method: str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[tuple[OrderModel, UserModel | None, AddressModel | None]], int]:
        conditions = []
        if status and status != "all":
            conditions.append(OrderModel.status == status)
        if payment_method and payment_method != "all":
            conditions.append(OrderModel.payment_method == payment_method)
        if created_from:
            conditions.append(OrderModel.created_at >= created_from)
        if created_to:
            conditions.append(OrderModel.created_at <= created_to)
        if search:
            pattern = f"%{search.lower()}%"
            matches = [
                func.lower(UserModel.name).like(pattern),
                func.lower(UserModel.email).like(pattern),
                func.lower(AddressModel.full_name).like(pattern),
            ]
            # "ORD-00000042", "ord-42" and "42" all find order 42
            digits = _ORDER_NUMBER_RE.match(search.strip())
            if digits:
                matches.append(OrderModel.id == int(digits.group(1)))
            conditions.append(or_(*matches))

        def joined(stmt):
            return (
                stmt.outerjoin(UserModel, UserModel.id == OrderModel.user_id)
                .outerjoin(AddressModel, AddressModel.id == OrderModel.shipping_address_id)
                .where(*conditions)
            )

        stmt = (
            joined(select(OrderModel, UserModel, AddressModel))
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        rows = [(row[0], row[1], row[2]) for row in self.db.execute(stmt).all()]

        total = self.db.execute(joined(select(func.count(OrderModel.id)).select_from(OrderModel))).scalar_one()
        return rows, total

    def item_counts(self, order_ids: list[int]) -> dict[int, int]:
        if not order_ids:
            return {}
        stmt = (
            select(OrderItemModel.order_id, func.count(OrderItemModel.id))
            .where(OrderItemModel.order_id.in_(order_ids))
            .group_by(OrderItemModel.order_id)
        )
        return {order_id: count for order_id, count in self.db.execute(stmt).all()}

    def count_by_status(self) -> dict[str, int]:
        stmt = select(OrderModel.status, func.count(OrderModel.id)).group_by(OrderModel.status)
        return {status: count for status, count in self.db.execute(stmt).all()}

    def count_since(self, since: datetime) -> int:
        return self.db.execute(
            select(func.count(OrderModel.id)).where(OrderModel.created_at >= since)
        ).scalar_one()

    def delivered_revenue(self):
        return self.db.execute(
            select(func.coalesce(func.sum(OrderModel.total_amount), 0)).where(OrderModel.status == "delivered")
        ).scalar_one()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
