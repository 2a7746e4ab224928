# storefront/services/address_service.py
from typing import List

from pydantic import ValidationError
from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel
from storefront.domain.errors import AuthenticationRequired, NotFound, ValidationFailed
from storefront.domain.schemas import AddressIn, AddressOut, DefaultAddresses, collect_field_errors
from storefront.repos.address_repo import AddressRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

NOT_FOUND_MESSAGE = "Address not found or access denied."


def parse_address(data: dict | AddressIn) -> AddressIn:
    if isinstance(data, AddressIn):
        return data
    try:
        return AddressIn.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed("Validation failed", collect_field_errors(e)) from e


class AddressService:
    """Address book of a signed-in user. At most one default per address type."""

    def __init__(self, db: Session):
        self.repo = AddressRepo(db)

    @staticmethod
    def _require_user(user_id: int | None) -> int:
        if not user_id:
            raise AuthenticationRequired("Authentication required. Please sign in to continue.")
        return user_id

    def _owned(self, user_id: int, address_id: int) -> AddressModel:
        address = self.repo.get_for_user(address_id, user_id)
        if not address:
            raise NotFound(NOT_FOUND_MESSAGE)
        return address

    def list_addresses(self, user_id: int | None) -> List[AddressOut]:
        user_id = self._require_user(user_id)
        return [AddressOut.model_validate(a) for a in self.repo.list_for_user(user_id)]

    def get_address(self, user_id: int | None, address_id: int) -> AddressOut:
        user_id = self._require_user(user_id)
        return AddressOut.model_validate(self._owned(user_id, address_id))

    def list_by_type(self, user_id: int | None, address_type: str) -> List[AddressOut]:
        user_id = self._require_user(user_id)
        return [AddressOut.model_validate(a) for a in self.repo.list_by_type(user_id, address_type)]

    def default_addresses(self, user_id: int | None) -> DefaultAddresses:
        user_id = self._require_user(user_id)
        defaults = DefaultAddresses()
        for a in self.repo.list_defaults(user_id):
            setattr(defaults, a.type, AddressOut.model_validate(a))
        return defaults

    def create_address(self, user_id: int | None, data: dict | AddressIn) -> AddressOut:
        user_id = self._require_user(user_id)
        payload = parse_address(data)

        try:
            if payload.is_default:
                self.repo.clear_defaults(user_id, payload.type)
            address = self.repo.add(AddressModel(user_id=user_id, **payload.model_dump()))
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Address {address.id} ({address.type}) created for user {user_id}")
        return AddressOut.model_validate(address)

    def update_address(self, user_id: int | None, address_id: int, data: dict | AddressIn) -> AddressOut:
        user_id = self._require_user(user_id)
        address = self._owned(user_id, address_id)
        payload = parse_address(data)

        try:
            if payload.is_default:
                self.repo.clear_defaults(user_id, payload.type, exclude_id=address.id)
            for field, value in payload.model_dump().items():
                setattr(address, field, value)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        return AddressOut.model_validate(address)

    def delete_address(self, user_id: int | None, address_id: int):
        user_id = self._require_user(user_id)
        address = self._owned(user_id, address_id)
        self.repo.delete(address)
        self.repo.commit()
        logger.info(f"Address {address_id} deleted for user {user_id}")

    def set_default(self, user_id: int | None, address_id: int, address_type: str) -> AddressOut:
        user_id = self._require_user(user_id)
        address = self.repo.get_for_user(address_id, user_id)
        if not address or address.type != address_type:
            raise NotFound("Address not found or type mismatch.")

        self.repo.clear_defaults(user_id, address_type, exclude_id=address.id)
        address.is_default = True
        self.repo.commit()
        return AddressOut.model_validate(address)
