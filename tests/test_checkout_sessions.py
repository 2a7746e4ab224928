from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import redis

from factories import make_address, make_product, make_user
from storefront.domain.errors import AuthenticationRequired, CheckoutSessionNotFound, ValidationFailed
from storefront.domain.schemas import CartItemIn, CheckoutData, DefaultAddresses, OrderCalculation
from storefront.services.cart_service import CartOwner, CartService
from storefront.services.checkout_service import CheckoutService
from storefront.services.checkout_session import (
    CheckoutSessionManager,
    InMemorySessionStore,
    RedisSessionStore,
)
from storefront.services.order_service import OrderService


class Clock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeRedis:
    """The handful of redis-py calls the session store makes."""

    def __init__(self, fail_times=0):
        self.data = {}
        self.ttls = {}
        self.fail_times = fail_times

    def _maybe_fail(self):
        if self.fail_times:
            self.fail_times -= 1
            raise redis.ConnectionError("connection reset")

    def set(self, name, value, ex=None):
        self._maybe_fail()
        self.data[name] = value
        self.ttls[name] = ex
        return True

    def get(self, name):
        self._maybe_fail()
        return self.data.get(name)

    def delete(self, name):
        self._maybe_fail()
        return 1 if self.data.pop(name, None) is not None else 0


def empty_calc():
    zero = Decimal("0")
    return OrderCalculation(subtotal=zero, shipping_cost=zero, tax_amount=zero, total_amount=zero)


def new_session(manager, user_id=1):
    return manager.create(
        user_id=user_id,
        cart_items=[],
        calculation=empty_calc(),
        user_addresses=[],
        default_addresses=DefaultAddresses(),
    )


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def manager(clock):
    return CheckoutSessionManager(store=InMemorySessionStore(), ttl_seconds=1800, clock=clock)


def test_session_id_embeds_user_and_expires_in_thirty_minutes(manager, clock):
    session = new_session(manager, user_id=7)
    assert session.id.startswith("checkout_7_")
    assert session.expires_at - session.created_at == timedelta(minutes=30)
    assert manager.get(session.id, 7).id == session.id


def test_session_id_timestamp_comes_from_the_clock(manager, clock):
    session = new_session(manager, user_id=7)

    millis = int(session.id.split("_")[2])
    assert millis == int(clock.now.timestamp() * 1000)
    assert datetime.fromtimestamp(millis / 1000, tz=timezone.utc) == session.created_at


def test_expired_session_is_rejected_and_evicted(manager, clock):
    session = new_session(manager)
    clock.advance(minutes=30, seconds=1)

    with pytest.raises(CheckoutSessionNotFound, match="has expired"):
        manager.get(session.id, 1)
    with pytest.raises(CheckoutSessionNotFound, match="not found or expired"):
        manager.get(session.id, 1)


def test_other_users_cannot_read_or_delete_a_session(manager):
    session = new_session(manager, user_id=1)

    with pytest.raises(CheckoutSessionNotFound, match="Invalid checkout session"):
        manager.get(session.id, 2)

    manager.delete(session.id, 2)
    assert manager.get(session.id, 1)


def test_user_id_prefix_is_not_fooled_by_longer_ids(manager):
    session = new_session(manager, user_id=1)
    with pytest.raises(CheckoutSessionNotFound):
        manager.get(session.id, 11)


def test_creating_a_session_purges_expired_ones(manager, clock):
    old = new_session(manager)
    clock.advance(hours=1)
    new_session(manager)

    assert manager.store.load(old.id) is None
    assert len(manager.store) == 1


def test_update_stores_checkout_data(manager):
    session = new_session(manager)
    updated = manager.update(session.id, 1, CheckoutData(shipping_address_id=3, notes="ring twice"))
    assert manager.get(session.id, 1).checkout_data.notes == "ring twice"
    assert updated.expires_at == session.expires_at


def test_redis_store_round_trip_with_ttl(clock):
    fake = FakeRedis()
    manager = CheckoutSessionManager(store=RedisSessionStore(client=fake), clock=clock)

    session = new_session(manager, user_id=4)
    key = f"checkout_session:{session.id}"
    assert fake.ttls[key] == 1800

    loaded = manager.get(session.id, 4)
    assert loaded.expires_at == session.expires_at

    manager.delete(session.id, 4)
    assert key not in fake.data


def test_redis_store_retries_transient_errors(clock):
    fake = FakeRedis(fail_times=2)
    store = RedisSessionStore(client=fake)
    manager = CheckoutSessionManager(store=store, clock=clock)

    session = new_session(manager)
    assert f"checkout_session:{session.id}" in fake.data


# checkout service

@pytest.fixture
def shopper(db):
    user = make_user(db)
    product = make_product(db, price="1000.00", in_stock=5)
    address = make_address(db, user_id=user.id, is_default=True)
    return user, product, address


def test_checkout_requires_authentication(db, manager):
    with pytest.raises(AuthenticationRequired):
        CheckoutService(db, sessions=manager).create_checkout_session(None)


def test_checkout_rejects_empty_cart(db, manager, shopper):
    user, _, _ = shopper
    with pytest.raises(ValidationFailed, match="Your cart is empty"):
        CheckoutService(db, sessions=manager).create_checkout_session(user.id)


def test_checkout_snapshots_cart_totals_and_addresses(db, manager, shopper):
    user, product, address = shopper
    CartService(db).add_item(
        CartOwner(user_id=user.id), CartItemIn(product_id=product.id, is_simple_product=True, quantity=3)
    )

    session = CheckoutService(db, sessions=manager).create_checkout_session(user.id)

    assert session.calculation.total_amount == Decimal("3300")
    assert [i.quantity for i in session.cart_items] == [3]
    assert session.default_addresses.shipping.id == address.id
    assert session.default_addresses.billing is None


def test_update_rejects_someone_elses_address(db, manager, shopper):
    user, product, _ = shopper
    make_user(db, user_id=2)
    foreign = make_address(db, user_id=2)
    CartService(db).add_item(CartOwner(user_id=user.id), CartItemIn(product_id=product.id, is_simple_product=True))
    svc = CheckoutService(db, sessions=manager)
    session = svc.create_checkout_session(user.id)

    with pytest.raises(ValidationFailed, match="Invalid shipping address"):
        svc.update_checkout_session(session.id, user.id, CheckoutData(shipping_address_id=foreign.id))


def test_process_order_consumes_session(db, manager, shopper, notifications):
    user, product, address = shopper
    CartService(db).add_item(
        CartOwner(user_id=user.id), CartItemIn(product_id=product.id, is_simple_product=True, quantity=3)
    )
    svc = CheckoutService(db, sessions=manager, orders=OrderService(db, notifications))
    session = svc.create_checkout_session(user.id)

    order = svc.process_order(session.id, user.id, CheckoutData(shipping_address_id=address.id))

    assert order.total_amount == Decimal("3300")
    assert order.status == "pending"
    with pytest.raises(CheckoutSessionNotFound):
        manager.get(session.id, user.id)
    assert CartService(db).get_cart(CartOwner(user_id=user.id)).items == []
