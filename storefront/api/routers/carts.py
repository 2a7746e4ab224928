# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.api.deps import get_cart_owner, require_user
from storefront.api.results import fail, ok
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import ShopError
from storefront.domain.schemas import CartItemIn, CartItemUpdate
from storefront.services.cart_service import CartOwner, CartService

router = APIRouter(prefix="/cart", tags=["cart"])


class MergeIn(BaseModel):
    guest_token: str


def get_service(db: Session):
    return CartService(db)


@router.get("")
def get_cart(owner: CartOwner = Depends(get_cart_owner), db: Session = Depends(get_db)):
    return ok(get_service(db).get_cart(owner))


@router.post("/items")
def add_item(
    payload: CartItemIn,
    owner: CartOwner = Depends(get_cart_owner),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return ok(svc.add_item(owner, payload))
    except ShopError as e:
        return fail(e)


@router.patch("/items/{cart_item_id}")
def update_item(
    cart_item_id: int,
    payload: CartItemUpdate,
    owner: CartOwner = Depends(get_cart_owner),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return ok(svc.update_item(owner, cart_item_id, payload.quantity))
    except ShopError as e:
        return fail(e)


@router.delete("/items/{cart_item_id}")
def remove_item(
    cart_item_id: int,
    owner: CartOwner = Depends(get_cart_owner),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return ok(svc.remove_item(owner, cart_item_id))
    except ShopError as e:
        return fail(e)


@router.delete("")
def clear_cart(owner: CartOwner = Depends(get_cart_owner), db: Session = Depends(get_db)):
    return ok(get_service(db).clear_cart(owner))


@router.post("/merge")
def merge_guest_cart(
    payload: MergeIn,
    user: UserModel = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Called right after sign-in with the token the guest cart was kept under."""
    return ok(get_service(db).merge_guest_cart(user.id, payload.guest_token))
