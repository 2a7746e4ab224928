# storefront/services/checkout_service.py
from sqlalchemy.orm import Session

from storefront.domain.errors import AuthenticationRequired, ValidationFailed
from storefront.domain.pricing import calculate_order_totals, validate_checkout_data
from storefront.domain.schemas import (
    AddressOut,
    CheckoutData,
    CheckoutSession,
    DefaultAddresses,
    OrderOut,
)
from storefront.repos.address_repo import AddressRepo
from storefront.repos.cart_repo import CartRepo
from storefront.services.cart_service import CartService
from storefront.services.checkout_session import CheckoutSessionManager, get_session_manager
from storefront.services.order_service import OrderService, check_cart, check_checkout_data
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _require_user(user_id: int | None) -> int:
    if not user_id:
        raise AuthenticationRequired()
    return user_id


class CheckoutService:
    """
    Checkout flow: start a session from the cart, let the user pick addresses
    and payment, then turn the session into an order.
    """

    def __init__(
        self,
        db: Session,
        sessions: CheckoutSessionManager | None = None,
        orders: OrderService | None = None,
    ):
        self.db = db
        self.sessions = sessions or get_session_manager()
        self.orders = orders or OrderService(db)
        self.carts = CartRepo(db)
        self.addresses = AddressRepo(db)

    def create_checkout_session(self, user_id: int | None, checkout_data: CheckoutData | None = None) -> CheckoutSession:
        user_id = _require_user(user_id)

        cart = self.carts.get_cart_by_user(user_id)
        lines = CartService(self.db).cart_lines(cart.id) if cart else []
        check_cart(lines)

        if checkout_data is not None:
            errors = validate_checkout_data(checkout_data)
            if errors:
                raise ValidationFailed(", ".join(errors))

        user_addresses = [AddressOut.model_validate(a) for a in self.addresses.list_for_user(user_id)]
        defaults = DefaultAddresses()
        for a in user_addresses:
            if a.is_default and a.type == "shipping":
                defaults.shipping = a
            elif a.is_default and a.type == "billing":
                defaults.billing = a

        return self.sessions.create(
            user_id=user_id,
            cart_items=lines,
            calculation=calculate_order_totals(lines),
            user_addresses=user_addresses,
            default_addresses=defaults,
            checkout_data=checkout_data,
        )

    def get_checkout_session(self, session_id: str, user_id: int | None) -> CheckoutSession:
        return self.sessions.get(session_id, _require_user(user_id))

    def update_checkout_session(self, session_id: str, user_id: int | None, checkout_data: CheckoutData) -> CheckoutSession:
        user_id = _require_user(user_id)
        self.sessions.get(session_id, user_id)
        check_checkout_data(self.addresses, user_id, checkout_data)
        return self.sessions.update(session_id, user_id, checkout_data)

    def delete_checkout_session(self, session_id: str, user_id: int | None):
        self.sessions.delete(session_id, _require_user(user_id))

    def process_order(self, session_id: str, user_id: int | None, checkout_data: CheckoutData) -> OrderOut:
        """
        Turns a checkout session into an order. The session is only consumed
        when the order commits, so a failed attempt can be retried.
        """
        user_id = _require_user(user_id)
        session = self.sessions.get(session_id, user_id)

        check_checkout_data(self.addresses, user_id, checkout_data)
        check_cart(session.cart_items)

        order = self.orders.create_order(user_id, session.cart_items, session.calculation, checkout_data)
        self.sessions.delete(session_id, user_id)

        logger.info(f"Checkout session {session_id} completed as order {order.order_number}")
        return order
