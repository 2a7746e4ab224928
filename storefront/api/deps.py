# storefront/api/deps.py
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import AccessDenied, AuthenticationRequired
from storefront.repos.user_repo import UserRepo
from storefront.services.cart_service import CartOwner

# Identity comes from the auth gateway in front of the service, as headers.


def get_current_user(
    x_user_id: int | None = Header(None),
    db: Session = Depends(get_db),
) -> UserModel | None:
    if x_user_id is None:
        return None
    return UserRepo(db).get_user(x_user_id)


def require_user(user: UserModel | None = Depends(get_current_user)) -> UserModel:
    if user is None:
        raise AuthenticationRequired()
    return user


def require_admin(user: UserModel = Depends(require_user)) -> UserModel:
    if not user.is_admin:
        raise AccessDenied("Admin access required.")
    return user


def get_cart_owner(
    user: UserModel | None = Depends(get_current_user),
    x_guest_token: str | None = Header(None),
) -> CartOwner:
    if user is not None:
        return CartOwner(user_id=user.id)
    return CartOwner(guest_token=x_guest_token)
