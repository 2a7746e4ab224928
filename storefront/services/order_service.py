# storefront/services/order_service.py
from typing import List

from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel
from storefront.data.models.order import OrderModel, OrderItemModel
from storefront.domain.errors import (
    InsufficientStock,
    NotFound,
    ShopError,
    ValidationFailed,
)
from storefront.domain.pricing import (
    calculate_order_totals,
    estimate_delivery_date,
    generate_order_number,
    next_action,
    status_label,
    validate_cart_for_checkout,
    validate_checkout_data,
)
from storefront.domain.schemas import (
    AddressOut,
    CartLine,
    CheckoutData,
    OrderCalculation,
    OrderItemOut,
    OrderOut,
)
from storefront.repos.address_repo import AddressRepo
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

EMPTY_CART_MESSAGE = "Your cart is empty. Please add items before checkout."


def check_checkout_data(addresses: AddressRepo, user_id: int, data: CheckoutData):
    """Raises ValidationFailed unless the data is complete and the addresses are the user's."""
    errors = validate_checkout_data(data)
    if errors:
        raise ValidationFailed(", ".join(errors))

    if not addresses.get_for_user(data.shipping_address_id, user_id):
        raise ValidationFailed("Invalid shipping address.")

    billing_id = data.effective_billing_address_id
    if billing_id != data.shipping_address_id and not addresses.get_for_user(billing_id, user_id):
        raise ValidationFailed("Invalid billing address.")


def check_cart(items: List[CartLine]):
    if not items:
        raise ValidationFailed(EMPTY_CART_MESSAGE)
    errors = validate_cart_for_checkout(items)
    if errors:
        raise ValidationFailed(", ".join(errors))


def _item_out(item: OrderItemModel) -> OrderItemOut:
    if item.product_variant_id is not None and item.variant is not None:
        v = item.variant
        return OrderItemOut(
            id=item.id,
            quantity=item.quantity,
            price_at_purchase=item.price_at_purchase,
            sale_price_at_purchase=item.sale_price_at_purchase,
            is_simple_product=False,
            product_id=v.product_id,
            product_variant_id=v.id,
            name=v.product.name,
            sku=v.sku,
            color_name=v.color_name,
            size_name=v.size_name,
        )

    p = item.product
    return OrderItemOut(
        id=item.id,
        quantity=item.quantity,
        price_at_purchase=item.price_at_purchase,
        sale_price_at_purchase=item.sale_price_at_purchase,
        is_simple_product=True,
        product_id=item.product_id,
        product_variant_id=None,
        name=p.name if p else "Unavailable product",
        sku=(p.sku or "") if p else "",
    )


def to_order_out(order: OrderModel, addresses: dict[int, AddressModel]) -> OrderOut:
    shipping = addresses.get(order.shipping_address_id)
    billing = None
    # billing is only reported when it differs from shipping
    if order.billing_address_id and order.billing_address_id != order.shipping_address_id:
        billing = addresses.get(order.billing_address_id)

    return OrderOut(
        id=order.id,
        order_number=generate_order_number(order.id),
        user_id=order.user_id,
        status=order.status,
        status_label=status_label(order.status),
        subtotal=order.subtotal,
        shipping_cost=order.shipping_cost,
        tax_amount=order.tax_amount,
        total_amount=order.total_amount,
        payment_method=order.payment_method,
        notes=order.notes,
        created_at=order.created_at,
        updated_at=order.updated_at,
        shipping_address=AddressOut.model_validate(shipping) if shipping else None,
        billing_address=AddressOut.model_validate(billing) if billing else None,
        items=[_item_out(i) for i in order.items],
        estimated_delivery=estimate_delivery_date(order.created_at, order.status),
        next_action=next_action(order.status, order.payment_method),
    )


class OrderService:
    """
    Orders: creation from a cart snapshot, queries and customer cancellation.

    Stock is reserved with row locks inside the order transaction, so two
    checkouts of the last unit cannot both succeed even when both snapshots
    claimed the unit was available.
    """

    def __init__(self, db: Session, notification_service: NotificationService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.products = ProductRepo(db)
        self.addresses = AddressRepo(db)
        self.carts = CartRepo(db)
        self.notification_service = notification_service or NotificationService()

    def _reserve_stock(self, line: CartLine):
        if line.is_simple_product:
            product = self.products.lock_product(line.product_id)
            if not product:
                raise NotFound(f"Product {line.product_id} not found.")
            if product.in_stock < line.quantity:
                raise InsufficientStock(product.name, product.in_stock, line.quantity)
            self.products.adjust_product_stock(product.id, -line.quantity)
            return

        variant = self.products.lock_variant(line.product_variant_id)
        if not variant:
            raise NotFound(f"Product variant {line.product_variant_id} not found.")
        if variant.in_stock < line.quantity:
            raise InsufficientStock(variant.display_name, variant.in_stock, line.quantity)
        self.products.adjust_variant_stock(variant.id, -line.quantity)

    def create_order(
        self,
        user_id: int,
        cart_items: List[CartLine],
        calculation: OrderCalculation,
        checkout_data: CheckoutData,
    ) -> OrderOut:
        """
        Use case: place an order from a cart snapshot.

        1. lock every product/variant row, check and decrement its stock
        2. insert the order and its lines at snapshot prices
        3. commit; any failure before this point rolls everything back
        4. clear the user's cart and dispatch the notification
        """
        if not cart_items:
            raise ValidationFailed(EMPTY_CART_MESSAGE)

        try:
            for line in cart_items:
                self._reserve_stock(line)

            order = self.repo.add_order(
                OrderModel(
                    user_id=user_id,
                    status="pending",
                    subtotal=calculation.subtotal,
                    shipping_cost=calculation.shipping_cost,
                    tax_amount=calculation.tax_amount,
                    total_amount=calculation.total_amount,
                    shipping_address_id=checkout_data.shipping_address_id,
                    billing_address_id=checkout_data.effective_billing_address_id,
                    payment_method=checkout_data.payment_method,
                    notes=checkout_data.notes,
                )
            )
            self.repo.add_items(
                [
                    OrderItemModel(
                        order_id=order.id,
                        product_id=line.product_id if line.is_simple_product else None,
                        product_variant_id=None if line.is_simple_product else line.product_variant_id,
                        is_simple_product=line.is_simple_product,
                        quantity=line.quantity,
                        price_at_purchase=line.price,
                        sale_price_at_purchase=line.sale_price,
                    )
                    for line in cart_items
                ]
            )
            self.repo.commit()
        except Exception as e:
            self.repo.rollback()
            logger.warning(f"Order for user {user_id} rolled back: {e}")
            raise

        order_id = order.id
        logger.info(f"Order {order_id} created for user {user_id}, total {calculation.total_amount}")

        self._clear_user_cart(user_id)
        self.notify(user_id, order_id)

        return self.get_order(user_id, order_id)

    def create_order_from_cart(self, user_id: int, checkout_data: CheckoutData) -> OrderOut:
        """Places an order straight from the user's current cart, priced server side."""
        check_checkout_data(self.addresses, user_id, checkout_data)

        cart = self.carts.get_cart_by_user(user_id)
        lines = CartService(self.db).cart_lines(cart.id) if cart else []
        check_cart(lines)

        return self.create_order(user_id, lines, calculate_order_totals(lines), checkout_data)

    def _clear_user_cart(self, user_id: int):
        cart = self.carts.get_cart_by_user(user_id)
        if not cart:
            return
        try:
            self.carts.clear_cart(cart.id)
            self.carts.commit()
        except Exception as e:
            # the order is already committed; a stale cart is recoverable
            self.carts.rollback()
            logger.error(f"Failed to clear cart {cart.id} after order: {e}")

    def notify(self, user_id: int, order_id: int, status: str = "pending"):
        try:
            self.notification_service.send_order_notification(user_id, order_id, status)
        except Exception as e:
            logger.warning(f"Notification for order {order_id} not dispatched: {e}")

    # queries
    def get_order(self, user_id: int, order_id: int) -> OrderOut:
        order = self.repo.get_user_order(order_id, user_id)
        if not order:
            raise NotFound("Order not found.")
        addresses = self.addresses.get_many(
            [a for a in (order.shipping_address_id, order.billing_address_id) if a]
        )
        return to_order_out(order, addresses)

    def get_user_orders(self, user_id: int) -> List[OrderOut]:
        orders = self.repo.list_user_orders(user_id)
        address_ids = {a for o in orders for a in (o.shipping_address_id, o.billing_address_id) if a}
        addresses = self.addresses.get_many(list(address_ids))
        return [to_order_out(o, addresses) for o in orders]

    # commands
    def restore_inventory(self, order_id: int):
        """Puts the order's quantities back on stock, in a transaction of its own."""
        try:
            for item in self.repo.get_items(order_id):
                if item.product_variant_id is not None:
                    self.products.adjust_variant_stock(item.product_variant_id, item.quantity)
                elif item.product_id is not None:
                    self.products.adjust_product_stock(item.product_id, item.quantity)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        logger.info(f"Inventory restored for order {order_id}")

    def cancel_order(self, user_id: int, order_id: int) -> OrderOut:
        order = self.repo.get_user_order(order_id, user_id)
        if not order:
            raise NotFound("Order not found.")
        if order.status != "pending":
            raise ShopError("Only pending orders can be cancelled.")

        # only the request that flips pending -> cancelled puts stock back
        claimed = self.repo.set_status_if(order_id, "cancelled", expected=("pending",))
        self.repo.commit()
        if not claimed:
            raise ShopError("Only pending orders can be cancelled.")
        logger.info(f"Order {order_id} cancelled by user {user_id}")

        try:
            self.restore_inventory(order_id)
        except Exception as e:
            # TODO: queue a retry of the restore instead of only logging it
            logger.error(f"Inventory restore failed for cancelled order {order_id}: {e}")

        self.notify(user_id, order_id, "cancelled")
        return self.get_order(user_id, order_id)
