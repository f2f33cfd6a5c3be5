# ============================================================
# errors.py — Failures surfaced by the console
# ============================================================
# ApiError        → anything that went wrong talking to the REST API
# ValidationError → client-side checks that stopped a submission
#
# Both are caught at the call site and shown as an alert or notice.
# ============================================================

from typing import Dict, Optional, Any


class ApiError(Exception):
    """
    A failed REST call.

    kind:
      "network"  → the request never got a response
      "http"     → non-2xx status
      "business" → 2xx with success=false
    """

    def __init__(
            self,
            message: str,
            status: Optional[int] = None,
            errors: Optional[Any] = None,
            kind: str = "http"
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors
        self.kind = kind

    @property
    def is_inventory_error(self) -> bool:
        return self.status == 400 and "inventory" in (self.message or "").lower()


class ValidationError(Exception):
    """Client-side validation failure, one message per field."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(self.errors.values()))

    @property
    def message(self) -> str:
        return str(self)


def raise_if_errors(errors: Dict[str, str]):
    if errors:
        raise ValidationError(errors)
