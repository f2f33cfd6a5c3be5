import pytest

from conftest import FakeApi
from errors import ValidationError
from users import UserAdminService, UserForm, validate_user


def test_form_round_trip_from_api_user():
    user = {"id": "u1", "fullName": "Lan", "email": "lan@example.com", "role": "admin",
            "status": "inactive", "phoneNumber": "0901", "loyaltyPoints": 12}
    payload = UserForm.from_user(user).to_payload()
    assert payload == {
        "fullName": "Lan", "email": "lan@example.com", "role": "admin",
        "status": "inactive", "phoneNumber": "0901", "loyaltyPoints": 12,
    }


def test_validation():
    errors = validate_user(UserForm(full_name="", email="nope", role="owner", status="gone", loyalty_points="-1"))
    assert set(errors) == {"fullName", "email", "role", "status", "loyaltyPoints"}


def test_update_rejects_invalid_form_without_calling_api():
    api = FakeApi()
    with pytest.raises(ValidationError):
        UserAdminService(api).update_user("u1", UserForm(full_name="Lan", email="bad"))
    assert api.calls == []


def test_list_filters_are_forwarded():
    api = FakeApi({("GET", "/admin/users"): {"users": []}})
    UserAdminService(api).list_users(page=2, search="lan", role="admin")
    assert api.calls_to("GET", "/admin/users")[0]["params"] == {
        "page": 2, "limit": 10, "search": "lan", "role": "admin", "status": None,
    }


def test_set_status():
    api = FakeApi()
    service = UserAdminService(api)
    service.set_status("u1", "inactive")
    assert api.calls_to("PATCH", "/admin/users/u1/status") == [{"data": {"status": "inactive"}}]
    with pytest.raises(ValidationError):
        service.set_status("u1", "banned")


def test_delete_uses_either_id_shape_and_confirms():
    api = FakeApi()
    service = UserAdminService(api)
    assert service.delete_user({"_id": "u7", "fullName": "Lan"}, lambda message: False) is False
    assert service.delete_user({"_id": "u7", "fullName": "Lan"}, lambda message: True) is True
    assert api.calls_to("DELETE", "/admin/users/u7") == [{}]
