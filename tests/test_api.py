import pytest
import requests

from api import ApiClient, entity_id
from errors import ApiError


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self.body = body

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self.body is None:
            raise ValueError("No JSON")
        return self.body


class FakeHttp:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response


def make_client(response=None, error=None, **kwargs):
    http = FakeHttp(response, error)
    return ApiClient(base_url="http://api.test/api/", http=http, **kwargs), http


def test_unwraps_envelope_and_attaches_bearer_token():
    api, http = make_client(FakeResponse(200, {"success": True, "data": {"id": 1}}), token="abc")

    assert api.get("/users/profile") == {"id": 1}

    method, url, kwargs = http.requests[0]
    assert method == "GET"
    assert url == "http://api.test/api/users/profile"
    assert kwargs["headers"]["Authorization"] == "Bearer abc"


def test_no_authorization_header_without_token():
    api, http = make_client(FakeResponse(200, {"success": True, "data": []}))
    api.get("/admin/categories")
    assert "Authorization" not in http.requests[0][2]["headers"]


def test_blank_query_params_are_dropped():
    api, http = make_client(FakeResponse(200, {"success": True, "data": {}}))
    api.get("/admin/orders", params={"page": 2, "status": None, "period": ""})
    assert http.requests[0][2]["params"] == {"page": 2}


def test_json_body_for_plain_writes():
    api, http = make_client(FakeResponse(200, {"success": True, "data": {}}))
    api.patch("/admin/orders/o1/status", {"status": "confirmed", "note": ""})
    kwargs = http.requests[0][2]
    assert kwargs["json"] == {"status": "confirmed", "note": ""}
    assert "files" not in kwargs


def test_multipart_sends_form_fields_with_files():
    api, http = make_client(FakeResponse(201, {"success": True, "data": {"id": "img"}}))
    files = {"image": ("a.jpg", b"123", "image/jpeg")}
    api.post("/admin/products/p1/images", data={"isMain": "true"}, files=files)
    kwargs = http.requests[0][2]
    assert kwargs["files"] == files
    assert kwargs["data"] == {"isMain": "true"}
    assert "json" not in kwargs


def test_401_clears_token_and_notifies():
    seen = []
    api, _ = make_client(
        FakeResponse(401, {"success": False, "message": "Token expired"}),
        token="stale",
        on_unauthorized=lambda: seen.append(True),
    )

    with pytest.raises(ApiError) as exc:
        api.get("/users/profile")

    assert exc.value.status == 401
    assert exc.value.kind == "http"
    assert exc.value.message == "Token expired"
    assert api.token is None
    assert seen == [True]


def test_http_error_without_json_body():
    api, _ = make_client(FakeResponse(502))
    with pytest.raises(ApiError) as exc:
        api.get("/orders/user")
    assert exc.value.message == "An error occurred"
    assert exc.value.status == 502


def test_business_failure_on_success_false():
    api, _ = make_client(FakeResponse(200, {"success": False, "message": "Code expired"}))
    with pytest.raises(ApiError) as exc:
        api.post("/orders/verify-discount", {"code": "AB12C"})
    assert exc.value.kind == "business"
    assert exc.value.message == "Code expired"


def test_network_failure():
    api, _ = make_client(error=requests.ConnectionError("connection refused"))
    with pytest.raises(ApiError) as exc:
        api.get("/admin/orders")
    assert exc.value.kind == "network"
    assert exc.value.status is None


def test_inventory_errors_are_recognised():
    assert ApiError("Not enough inventory for SKU-1", status=400).is_inventory_error
    assert not ApiError("Not enough inventory", status=500).is_inventory_error


def test_entity_id_accepts_both_id_shapes():
    assert entity_id({"id": 5}) == "5"
    assert entity_id({"_id": "abc"}) == "abc"
    assert entity_id(None) is None
