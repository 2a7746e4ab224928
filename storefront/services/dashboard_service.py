# storefront/services/dashboard_service.py
"""
Admin view of orders: listing with filters, statistics and status changes.
"""
import math
from datetime import datetime, time, timezone
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from storefront.domain.errors import InvalidStatusTransition, NotFound, ShopError, ValidationFailed
from storefront.domain.pricing import generate_order_number, status_label
from storefront.domain.schemas import (
    DashboardOrder,
    DashboardOrderPage,
    OrderFilters,
    OrderOut,
    OrderStats,
    Pagination,
)
from storefront.repos.address_repo import AddressRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.order_service import OrderService, to_order_out
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_LEVELS = {
    "pending": 1,
    "processing": 2,
    "paid": 2,
    "shipped": 3,
    "out_for_delivery": 4,
    "delivered": 5,
}
ACTIVE_STATUSES = tuple(STATUS_LEVELS)

STALE_STATUS_MESSAGE = "Order status was changed by someone else. Please refresh and try again."

# failed delivery, courier return
ALLOWED_BACKWARD = {
    "out_for_delivery": ("shipped",),
    "shipped": ("processing", "paid"),
}


def validate_status_transition(current: str, new: str):
    """Raises InvalidStatusTransition when an admin may not move an order from current to new."""
    if current == "cancelled":
        raise InvalidStatusTransition("Cannot modify a cancelled order. Cancelled orders are final.")
    if current == "delivered":
        raise InvalidStatusTransition("Cannot modify a delivered order. Order has been completed.")
    if current == new or new == "cancelled":
        return

    current_level = STATUS_LEVELS[current]
    new_level = STATUS_LEVELS[new]

    if new_level < current_level:
        if new in ALLOWED_BACKWARD.get(current, ()):
            return
        raise InvalidStatusTransition(
            f"Cannot revert from {current} to {new}. "
            "Orders generally move forward in the fulfillment process."
        )

    if new_level - current_level > 2:
        raise InvalidStatusTransition(
            f"Cannot skip directly from {current} to {new}. Please update status progressively."
        )


class DashboardService:
    def __init__(self, db: Session, orders: OrderService | None = None):
        self.repo = OrderRepo(db)
        self.addresses = AddressRepo(db)
        self.orders = orders or OrderService(db)

    def list_orders(self, filters: OrderFilters) -> DashboardOrderPage:
        created_to = None
        if filters.date_to:
            # the end date is inclusive
            created_to = datetime.combine(filters.date_to, time.max, tzinfo=timezone.utc)
        created_from = None
        if filters.date_from:
            created_from = datetime.combine(filters.date_from, time.min, tzinfo=timezone.utc)

        rows, total = self.repo.search_orders(
            status=filters.status,
            payment_method=filters.payment_method,
            created_from=created_from,
            created_to=created_to,
            search=filters.search,
            limit=filters.limit,
            offset=(filters.page - 1) * filters.limit,
        )
        counts = self.repo.item_counts([order.id for order, _, _ in rows])

        orders: List[DashboardOrder] = []
        for order, user, address in rows:
            customer_name = (user.name if user else None) or (address.full_name if address else None) or "Guest"
            orders.append(
                DashboardOrder(
                    id=order.id,
                    order_number=generate_order_number(order.id),
                    user_id=order.user_id,
                    customer_name=customer_name,
                    customer_email=user.email if user else None,
                    status=order.status,
                    status_label=status_label(order.status),
                    total_amount=order.total_amount,
                    payment_method=order.payment_method,
                    item_count=counts.get(order.id, 0),
                    created_at=order.created_at,
                    shipping_city=address.city if address else None,
                    shipping_phone=address.phone if address else None,
                )
            )

        return DashboardOrderPage(
            orders=orders,
            pagination=Pagination(
                page=filters.page,
                limit=filters.limit,
                total=total,
                total_pages=math.ceil(total / filters.limit),
            ),
        )

    def get_order(self, order_id: int) -> OrderOut:
        order = self.repo.get_order(order_id, with_items=True)
        if not order:
            raise NotFound("Order not found.")
        addresses = self.addresses.get_many(
            [a for a in (order.shipping_address_id, order.billing_address_id) if a]
        )
        return to_order_out(order, addresses)

    def order_stats(self) -> OrderStats:
        by_status = self.repo.count_by_status()
        today = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)
        return OrderStats(
            total_orders=sum(by_status.values()),
            pending_orders=by_status.get("pending", 0),
            processing_orders=by_status.get("processing", 0),
            shipped_orders=by_status.get("shipped", 0),
            delivered_orders=by_status.get("delivered", 0),
            cancelled_orders=by_status.get("cancelled", 0),
            total_revenue=Decimal(str(self.repo.delivered_revenue())),
            today_orders=self.repo.count_since(today),
        )

    def update_status(self, order_id: int, new_status: str) -> OrderOut:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Order not found.")
        current, user_id = order.status, order.user_id

        validate_status_transition(current, new_status)

        # the status change and the stock restore commit together, and only
        # if nobody moved the order away from `current` in the meantime
        if not self.repo.set_status_if(order_id, new_status, expected=(current,)):
            self.repo.rollback()
            raise ShopError(STALE_STATUS_MESSAGE)

        if new_status == "cancelled":
            try:
                self.orders.restore_inventory(order_id)
            except Exception as e:
                self.repo.rollback()
                logger.error(f"Inventory restore failed for order {order_id}: {e}")
                raise ShopError("Failed to restore inventory. Order cancellation aborted.") from e
        else:
            self.repo.commit()
        logger.info(f"Order {order_id} status {current} -> {new_status}")

        if user_id and new_status != current:
            self.orders.notify(user_id, order_id, new_status)
        return self.get_order(order_id)

    def bulk_update_status(self, order_ids: List[int], new_status: str) -> int:
        """No transition checks here; cancelling restores stock per order and keeps going on failure."""
        if not order_ids:
            raise ValidationFailed("No orders selected")

        if new_status == "cancelled":
            for order_id in order_ids:
                claimed = self.repo.set_status_if(order_id, "cancelled", expected=ACTIVE_STATUSES)
                self.repo.commit()
                if not claimed:
                    continue
                try:
                    self.orders.restore_inventory(order_id)
                except Exception as e:
                    logger.error(f"Inventory restore failed for order {order_id}, continuing: {e}")

        updated = self.repo.set_status_many(order_ids, new_status)
        self.repo.commit()
        logger.info(f"{updated} orders updated to {new_status}")
        return updated

    def delete_order(self, order_id: int):
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Order not found.")
        if order.status != "cancelled":
            raise ShopError("Only cancelled orders can be deleted. Cancel the order first.")

        self.repo.delete_order(order_id)
        self.repo.commit()
        logger.info(f"Order {order_id} deleted")
