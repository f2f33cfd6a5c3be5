import pytest

import config
from auth import AuthService, validate_registration
from conftest import ADMIN, CUSTOMER, FakeApi
from errors import ApiError, ValidationError
from session import ConsoleSession, create_session, destroy_session, get_session


def test_token_store_round_trip(token_store):
    token_store.save("s1", "tok", {"id": "u1"})
    assert token_store.load("s1") == {"token": "tok", "user": {"id": "u1"}}

    token_store.save("s1", "tok2")
    assert token_store.load("s1") == {"token": "tok2", "user": None}

    token_store.clear("s1")
    assert token_store.load("s1") is None


def test_login_persists_token(token_store):
    api = FakeApi({("POST", "/auth/login"): {"token": "tok", "user": CUSTOMER}})
    console = ConsoleSession("s1", token_store, api)

    user = AuthService(console).login(" carl@example.com ", "secret")

    assert user == CUSTOMER
    assert console.is_authenticated and not console.is_admin
    assert api.calls_to("POST", "/auth/login")[0]["data"] == {"email": "carl@example.com", "password": "secret"}
    assert token_store.load("s1")["token"] == "tok"


def test_login_without_user_fetches_profile(token_store):
    api = FakeApi({
        ("POST", "/auth/login"): {"token": "tok"},
        ("GET", "/users/profile"): ADMIN,
    })
    console = ConsoleSession("s1", token_store, api)
    AuthService(console).login("ada@example.com", "secret")
    assert console.is_admin


def test_login_validates_before_calling_api():
    api = FakeApi()
    with pytest.raises(ValidationError) as exc:
        AuthService(ConsoleSession("s1", api=api)).login("not-an-email", "")
    assert set(exc.value.errors) == {"email", "password"}
    assert api.calls == []


def test_login_rejected():
    api = FakeApi({("POST", "/auth/login"): ApiError("Invalid credentials", status=401)})
    console = ConsoleSession("s1", api=api)
    with pytest.raises(ApiError):
        AuthService(console).login("carl@example.com", "wrong")
    assert not console.is_authenticated


def test_new_session_hydrates_from_store(token_store):
    token_store.save("s1", "tok", ADMIN)
    console = create_session(token_store, "s1", api_factory=FakeApi)

    assert console.token == "tok"
    assert console.is_admin
    assert get_session("s1") is console


def test_logout_tears_down_everything(token_store):
    console = create_session(token_store, "s1", api_factory=FakeApi)
    console.sign_in("tok", CUSTOMER)

    destroy_session("s1")

    assert get_session("s1") is None
    assert token_store.load("s1") is None
    assert not console.is_authenticated and console.user is None


def test_unauthorized_signs_out(token_store):
    console = create_session(token_store, "s1", api_factory=FakeApi)
    console.sign_in("tok", CUSTOMER)

    console.api.on_unauthorized()

    assert not console.is_authenticated
    assert token_store.load("s1") is None


def test_registration_rules():
    errors = validate_registration({"fullName": "", "email": "x@y", "password": "123"})
    assert set(errors) == {"fullName", "email", "password"}

    errors = validate_registration({
        "fullName": "Lan", "email": "lan@example.com", "password": "secret1", "confirmPassword": "secret2",
    })
    assert errors == {"confirmPassword": "Passwords do not match"}


def test_register_drops_confirmation_field():
    api = FakeApi()
    data = {"fullName": "Lan", "email": "lan@example.com", "password": "secret1", "confirmPassword": "secret1"}
    AuthService(ConsoleSession("s1", api=api)).register(data)
    assert "confirmPassword" not in api.calls_to("POST", "/auth/register")[0]["data"]


def test_oauth_callback(token_store):
    api = FakeApi({("GET", "/users/profile"): CUSTOMER})
    console = ConsoleSession("s1", token_store, api)

    with pytest.raises(ValidationError):
        AuthService(console).handle_oauth_callback("")

    AuthService(console).handle_oauth_callback("oauth-token")
    assert console.token == "oauth-token"
    assert token_store.load("s1") == {"token": "oauth-token", "user": CUSTOMER}


def test_oauth_urls():
    assert AuthService.oauth_url("google") == f"{config.API_URL}/auth/google"
    with pytest.raises(ValueError):
        config.oauth_url("myspace")


def test_password_flows():
    api = FakeApi()
    service = AuthService(ConsoleSession("s1", api=api))

    with pytest.raises(ValidationError):
        service.reset_password("t0k", "abc", "abc")
    service.reset_password("t0k", "secret1", "secret1")
    assert api.calls_to("POST", "/auth/reset-password/t0k")[0]["data"] == {"newPassword": "secret1"}

    with pytest.raises(ValidationError) as exc:
        service.update_password("", "secret1", "secret1")
    assert list(exc.value.errors) == ["currentPassword"]

    service.forgot_password("lan@example.com")
    assert api.calls_to("POST", "/auth/forgot-password")[0]["data"] == {"email": "lan@example.com"}
