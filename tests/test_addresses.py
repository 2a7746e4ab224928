import pytest

from factories import address_payload, make_user
from storefront.domain.errors import AuthenticationRequired, NotFound, ValidationFailed
from storefront.services.address_service import AddressService


@pytest.fixture
def svc(db):
    make_user(db, user_id=1)
    make_user(db, user_id=2)
    return AddressService(db)


def test_create_and_list(svc):
    created = svc.create_address(1, address_payload())

    assert created.country == "Pakistan"
    assert created.country_code == "PK"
    assert created.country_id == 167
    assert [a.id for a in svc.list_addresses(1)] == [created.id]
    assert svc.list_addresses(2) == []


def test_requires_user(svc):
    with pytest.raises(AuthenticationRequired):
        svc.list_addresses(None)


def test_field_errors_are_collected(svc):
    with pytest.raises(ValidationFailed) as exc:
        svc.create_address(
            1,
            address_payload(full_name="A", postal_code="54A00", phone="12345", city_id=0, country_code="PAK"),
        )

    errors = exc.value.field_errors
    assert errors["full_name"] == ["Name must be at least 2 characters"]
    assert errors["postal_code"] == ["Postal code must contain only digits"]
    assert errors["phone"] == ["Invalid phone format (e.g., +92 300 1234567 or 03001234567)"]
    assert errors["city_id"] == ["Please select a valid city"]
    assert errors["country_code"] == ["Country code must be 2 letters"]


@pytest.mark.parametrize("phone", ["03001234567", "+923001234567", "0300-1234567", "", None])
def test_accepted_phone_formats(svc, phone):
    assert svc.create_address(1, address_payload(phone=phone)).phone == phone


def test_only_one_default_per_type(svc):
    first = svc.create_address(1, address_payload(is_default=True))
    billing = svc.create_address(1, address_payload(type="billing", is_default=True))
    second = svc.create_address(1, address_payload(is_default=True, city="Karachi"))

    defaults = svc.default_addresses(1)
    assert defaults.shipping.id == second.id
    assert defaults.billing.id == billing.id
    assert svc.get_address(1, first.id).is_default is False

    svc.set_default(1, first.id, "shipping")
    assert svc.default_addresses(1).shipping.id == first.id
    assert svc.get_address(1, second.id).is_default is False


def test_set_default_checks_type_and_owner(svc):
    shipping = svc.create_address(1, address_payload())

    with pytest.raises(NotFound, match="type mismatch"):
        svc.set_default(1, shipping.id, "billing")
    with pytest.raises(NotFound):
        svc.set_default(2, shipping.id, "shipping")


def test_update_and_delete_are_owner_only(svc):
    address = svc.create_address(1, address_payload())

    with pytest.raises(NotFound, match="Address not found or access denied."):
        svc.update_address(2, address.id, address_payload(city="Multan"))

    updated = svc.update_address(1, address.id, address_payload(city="Multan"))
    assert updated.city == "Multan"

    with pytest.raises(NotFound):
        svc.delete_address(2, address.id)
    svc.delete_address(1, address.id)
    assert svc.list_addresses(1) == []


def test_list_by_type(svc):
    svc.create_address(1, address_payload())
    svc.create_address(1, address_payload(type="billing"))

    assert [a.type for a in svc.list_by_type(1, "billing")] == ["billing"]
