# ============================================================
# api.py — REST client for the storefront API
# ============================================================
# Thin wrapper over requests:
#   - attaches "Authorization: Bearer <token>" when a token is set
#   - unwraps the {success, data, message} envelope
#   - turns every failure into an ApiError
#
# A 401 calls on_unauthorized() so the caller can drop its token.
# ============================================================

from typing import Any, Callable, Dict, Optional

import requests

import config
from errors import ApiError


def entity_id(entity: Optional[Dict[str, Any]]) -> Optional[str]:
    """Entities come back with either "id" or "_id"."""
    if not entity:
        return None
    value = entity.get("id", entity.get("_id"))
    return None if value is None else str(value)


class ApiClient:
    """One client per console session (it carries that session's token)."""

    def __init__(
            self,
            base_url: Optional[str] = None,
            token: Optional[str] = None,
            timeout: Optional[float] = None,
            http=None,
            on_unauthorized: Optional[Callable[[], None]] = None
    ):
        settings = config.get_api_config()
        self.base_url = (base_url or settings["base_url"]).rstrip("/")
        self.token = token
        self.timeout = timeout if timeout is not None else settings["timeout"]
        self.http = http or requests.Session()
        self.on_unauthorized = on_unauthorized

    # ── Verbs ────────────────────────────────────────────────

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", endpoint, params=params)

    def post(self, endpoint: str, data: Any = None, files=None) -> Any:
        return self.request("POST", endpoint, data=data, files=files)

    def put(self, endpoint: str, data: Any = None) -> Any:
        return self.request("PUT", endpoint, data=data)

    def patch(self, endpoint: str, data: Any = None) -> Any:
        return self.request("PATCH", endpoint, data=data)

    def delete(self, endpoint: str) -> Any:
        return self.request("DELETE", endpoint)

    # ── Core ─────────────────────────────────────────────────

    def headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
            self,
            method: str,
            endpoint: str,
            params: Optional[Dict[str, Any]] = None,
            data: Any = None,
            files=None
    ) -> Any:
        """
        Perform one call and return the envelope's "data".

        Multipart uploads pass `files` and send `data` as form fields;
        everything else is sent as JSON.
        """
        url = f"{self.base_url}{endpoint}"
        kwargs: Dict[str, Any] = {"headers": self.headers(), "timeout": self.timeout}
        if params:
            kwargs["params"] = {k: v for k, v in params.items() if v not in (None, "")}
        if files is not None:
            kwargs["files"] = files
            if data:
                kwargs["data"] = data
        elif data is not None:
            kwargs["json"] = data

        try:
            response = self.http.request(method, url, **kwargs)
        except requests.RequestException as e:
            print(f"❌ API {method} {endpoint} failed: {e}")
            raise ApiError(str(e) or "Network error", kind="network") from e

        return self._handle_response(response)

    def _handle_response(self, response) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if not response.ok:
            if response.status_code == 401:
                self.token = None
                if self.on_unauthorized:
                    self.on_unauthorized()
            raise ApiError(
                body.get("message") or "An error occurred",
                status=response.status_code,
                errors=body.get("errors"),
                kind="http",
            )

        if body.get("success") is False:
            raise ApiError(
                body.get("message") or "Request failed",
                status=response.status_code,
                errors=body.get("errors"),
                kind="business",
            )

        return body.get("data")
