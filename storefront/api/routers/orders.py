# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import require_user
from storefront.api.results import fail, ok
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import ShopError
from storefront.domain.schemas import CheckoutData
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session):
    return OrderService(db)


@router.post("", status_code=201)
def create_order(
    payload: CheckoutData,
    user: UserModel = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Places an order from the current cart, without a checkout session."""
    svc = get_service(db)
    try:
        return ok(svc.create_order_from_cart(user.id, payload), status_code=201)
    except ShopError as e:
        return fail(e)


@router.get("")
def get_user_orders(user: UserModel = Depends(require_user), db: Session = Depends(get_db)):
    return ok(get_service(db).get_user_orders(user.id))


@router.get("/{order_id}")
def get_order(
    order_id: int,
    user: UserModel = Depends(require_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return ok(svc.get_order(user.id, order_id))
    except ShopError as e:
        return fail(e)


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    user: UserModel = Depends(require_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return ok(svc.cancel_order(user.id, order_id))
    except ShopError as e:
        return fail(e)
