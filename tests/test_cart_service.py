from decimal import Decimal

import pytest
from pydantic import ValidationError

from factories import make_product, make_user, make_variant
from storefront.domain.errors import NotFound, ValidationFailed
from storefront.domain.schemas import CartItemIn
from storefront.services.cart_service import CartOwner, CartService


@pytest.fixture
def user(db):
    return make_user(db)


def test_cart_is_created_lazily_and_empty(db, user):
    cart = CartService(db).get_cart(CartOwner(user_id=user.id))
    assert cart.items == []
    assert cart.total == Decimal("0")
    assert cart.guest_token is None


def test_add_simple_and_variant_items(db, user):
    mug = make_product(db, price="1000.00")
    shirt = make_variant(db, price="2200.00", sale_price="1800.00")
    svc = CartService(db)
    owner = CartOwner(user_id=user.id)

    svc.add_item(owner, CartItemIn(product_id=mug.id, is_simple_product=True, quantity=2))
    cart = svc.add_item(
        owner, CartItemIn(product_id=shirt.product_id, product_variant_id=shirt.id, quantity=1)
    )

    assert len(cart.items) == 2
    assert cart.total == Decimal("3800")
    variant_line = next(i for i in cart.items if not i.is_simple_product)
    assert variant_line.display_name == "Cotton Shirt (Red M)"
    assert variant_line.unit_price == Decimal("1800")


def test_adding_same_item_sums_quantity(db, user):
    mug = make_product(db)
    svc = CartService(db)
    owner = CartOwner(user_id=user.id)

    svc.add_item(owner, CartItemIn(product_id=mug.id, is_simple_product=True, quantity=1))
    cart = svc.add_item(owner, CartItemIn(product_id=mug.id, is_simple_product=True, quantity=2))

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 3


def test_item_shape_is_checked():
    with pytest.raises(ValidationError):
        CartItemIn(product_id=1, product_variant_id=2, is_simple_product=True)
    with pytest.raises(ValidationError):
        CartItemIn(product_id=1, is_simple_product=False)


def test_unknown_product_and_mismatched_variant(db, user):
    shirt = make_variant(db)
    other = make_product(db)
    svc = CartService(db)
    owner = CartOwner(user_id=user.id)

    with pytest.raises(NotFound):
        svc.add_item(owner, CartItemIn(product_id=999, is_simple_product=True))
    with pytest.raises(ValidationFailed):
        svc.add_item(owner, CartItemIn(product_id=other.id, product_variant_id=shirt.id))


def test_update_and_remove_are_scoped_to_owner(db, user):
    make_user(db, user_id=2)
    mug = make_product(db)
    svc = CartService(db)
    owner = CartOwner(user_id=user.id)
    cart = svc.add_item(owner, CartItemIn(product_id=mug.id, is_simple_product=True))
    item_id = cart.items[0].id

    with pytest.raises(NotFound, match="Cart item not found"):
        svc.update_item(CartOwner(user_id=2), item_id, 4)
    with pytest.raises(ValidationFailed):
        svc.update_item(owner, item_id, 0)

    assert svc.update_item(owner, item_id, 4).items[0].quantity == 4
    assert svc.remove_item(owner, item_id).items == []


def test_clear_cart(db, user):
    mug = make_product(db)
    shirt = make_variant(db)
    svc = CartService(db)
    owner = CartOwner(user_id=user.id)
    svc.add_item(owner, CartItemIn(product_id=mug.id, is_simple_product=True))
    svc.add_item(owner, CartItemIn(product_id=shirt.product_id, product_variant_id=shirt.id))

    assert svc.clear_cart(owner).items == []


def test_guest_gets_token_and_cart_merges_on_sign_in(db, user):
    mug = make_product(db)
    shirt = make_variant(db)
    svc = CartService(db)

    guest = CartOwner()
    cart = svc.add_item(guest, CartItemIn(product_id=mug.id, is_simple_product=True, quantity=2))
    token = cart.guest_token
    assert token

    svc.add_item(CartOwner(guest_token=token), CartItemIn(product_id=shirt.product_id, product_variant_id=shirt.id))
    svc.add_item(CartOwner(user_id=user.id), CartItemIn(product_id=mug.id, is_simple_product=True, quantity=1))

    merged = svc.merge_guest_cart(user.id, token)

    quantities = {(i.product_id, i.product_variant_id): i.quantity for i in merged.items}
    assert quantities == {(mug.id, None): 3, (shirt.product_id, shirt.id): 1}
    assert svc.repo.get_cart_by_guest(token) is None


def test_adding_beyond_stock_counts_what_is_already_in_cart(db, user):
    mug = make_product(db, in_stock=3)
    svc = CartService(db)
    owner = CartOwner(user_id=user.id)
    cart = svc.add_item(owner, CartItemIn(product_id=mug.id, is_simple_product=True, quantity=2))
    assert cart.items[0].stock_status == "low_stock"

    with pytest.raises(ValidationFailed, match="Only 3 available. You already have 2 in cart.") as exc:
        svc.add_item(owner, CartItemIn(product_id=mug.id, is_simple_product=True, quantity=2))

    assert exc.value.field_errors == {"quantity": ["Only 3 available. You already have 2 in cart."]}
    assert svc.get_cart(owner).items[0].quantity == 2


def test_sold_out_variant_cannot_be_added(db, user):
    shirt = make_variant(db, in_stock=0)

    with pytest.raises(ValidationFailed, match="This item is out of stock"):
        CartService(db).add_item(
            CartOwner(user_id=user.id), CartItemIn(product_id=shirt.product_id, product_variant_id=shirt.id)
        )
