# storefront/api/routers/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.results import fail, ok
from storefront.data.database import get_db
from storefront.domain.errors import ShopError
from storefront.domain.schemas import UserCreate
from storefront.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return ok(service.create_user(payload), status_code=201)
    except ShopError as e:
        return fail(e)


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return ok(service.get_user(user_id))
    except ShopError as e:
        return fail(e)
