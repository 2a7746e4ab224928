# storefront/api/routers/addresses.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.api.results import fail, ok
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import ShopError
from storefront.domain.schemas import AddressIn, AddressType
from storefront.services.address_service import AddressService

router = APIRouter(prefix="/addresses", tags=["addresses"])


def _user_id(user: UserModel | None) -> int | None:
    return user.id if user else None


@router.get("")
def list_addresses(user: UserModel | None = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return ok(AddressService(db).list_addresses(_user_id(user)))
    except ShopError as e:
        return fail(e)


@router.get("/defaults")
def default_addresses(user: UserModel | None = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return ok(AddressService(db).default_addresses(_user_id(user)))
    except ShopError as e:
        return fail(e)


@router.get("/type/{address_type}")
def addresses_by_type(
    address_type: AddressType,
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return ok(AddressService(db).list_by_type(_user_id(user), address_type))
    except ShopError as e:
        return fail(e)


@router.get("/{address_id}")
def get_address(
    address_id: int,
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return ok(AddressService(db).get_address(_user_id(user), address_id))
    except ShopError as e:
        return fail(e)


@router.post("", status_code=201)
def create_address(
    payload: AddressIn,
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return ok(AddressService(db).create_address(_user_id(user), payload), status_code=201)
    except ShopError as e:
        return fail(e)


@router.put("/{address_id}")
def update_address(
    address_id: int,
    payload: AddressIn,
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return ok(AddressService(db).update_address(_user_id(user), address_id, payload))
    except ShopError as e:
        return fail(e)


@router.delete("/{address_id}")
def delete_address(
    address_id: int,
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        AddressService(db).delete_address(_user_id(user), address_id)
        return ok()
    except ShopError as e:
        return fail(e)


@router.post("/{address_id}/default")
def set_default_address(
    address_id: int,
    address_type: AddressType = Query(..., alias="type"),
    user: UserModel | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return ok(AddressService(db).set_default(_user_id(user), address_id, address_type))
    except ShopError as e:
        return fail(e)
