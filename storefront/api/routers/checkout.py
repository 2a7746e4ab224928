# storefront/api/routers/checkout.py
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.api.results import fail, ok
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import ShopError
from storefront.domain.schemas import CheckoutData
from storefront.services.checkout_service import CheckoutService

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_service(db: Session):
    return CheckoutService(db)


def _user_id(user: UserModel | None) -> int | None:
    return user.id if user else None


@router.post("/sessions", status_code=201)
def create_checkout_session(
    payload: CheckoutData | None = Body(None),
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return ok(svc.create_checkout_session(_user_id(user), payload), status_code=201)
    except ShopError as e:
        return fail(e)


@router.get("/sessions/{session_id}")
def get_checkout_session(
    session_id: str,
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return ok(svc.get_checkout_session(session_id, _user_id(user)))
    except ShopError as e:
        return fail(e)


@router.patch("/sessions/{session_id}")
def update_checkout_session(
    session_id: str,
    payload: CheckoutData,
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return ok(svc.update_checkout_session(session_id, _user_id(user), payload))
    except ShopError as e:
        return fail(e)


@router.delete("/sessions/{session_id}")
def delete_checkout_session(
    session_id: str,
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        svc.delete_checkout_session(session_id, _user_id(user))
        return ok()
    except ShopError as e:
        return fail(e)


@router.post("/sessions/{session_id}/order", status_code=201)
def process_order(
    session_id: str,
    payload: CheckoutData,
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Places the order for a checkout session.
    Stock is checked again under row locks, so this can still fail with 409.
    """
    svc = get_service(db)
    try:
        return ok(svc.process_order(session_id, _user_id(user), payload), status_code=201)
    except ShopError as e:
        return fail(e)
