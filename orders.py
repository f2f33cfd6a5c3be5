# ============================================================
# orders.py — Order lifecycle
# ============================================================
# States:
#   pending → confirmed → processing → shipping → delivered
#   cancelled is reachable from any non-terminal state
#
# The transition rules are pure functions; OrderService (customer)
# and AdminOrderService wrap the REST calls around them. Neither
# service updates status optimistically: after a change the order
# is fetched again.
# ============================================================

from typing import Any, Dict, List, Optional

import config
from api import ApiClient, entity_id
from errors import ValidationError, raise_if_errors
from validators import required, to_int

PROGRESSION = ["pending", "confirmed", "processing", "shipping", "delivered"]
CANCELLED = "cancelled"
ORDER_STATUSES = PROGRESSION + [CANCELLED]
STATUS_RANK = {status: rank for rank, status in enumerate(PROGRESSION)}
TERMINAL_STATUSES = {"delivered", CANCELLED}
CANCELLABLE_STATUSES = {"pending", "confirmed"}
PAYMENT_METHODS = ("cod",)


# ── State machine ────────────────────────────────────────────

def status_history(order: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Most-recent-first history. Customer endpoints name it "status"."""
    if not order:
        return []
    history = order.get("statusHistory")
    if history is None and isinstance(order.get("status"), list):
        history = order["status"]
    return list(history or [])


def current_status(order: Optional[Dict[str, Any]]) -> Optional[str]:
    history = status_history(order)
    if history:
        return history[0].get("status")
    if order and isinstance(order.get("status"), str):
        return order["status"]
    return None


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES


def get_available_status_options(current: Optional[str]) -> List[str]:
    """
    Statuses an admin may pick next.

    Forward-only along PROGRESSION, plus cancelled from anywhere
    non-terminal. A terminal order only offers its own status.
    """
    if current is None or current not in ORDER_STATUSES:
        return list(ORDER_STATUSES)
    if is_terminal(current):
        return [current]
    rank = STATUS_RANK[current]
    return [s for s in PROGRESSION if STATUS_RANK[s] >= rank] + [CANCELLED]


def can_cancel(order: Optional[Dict[str, Any]]) -> bool:
    return current_status(order) in CANCELLABLE_STATUSES


def validate_transition(current: Optional[str], new_status: str):
    if new_status not in ORDER_STATUSES:
        raise ValidationError({"status": f"Unknown status: {new_status}"})
    if new_status not in get_available_status_options(current):
        raise ValidationError({"status": f"Cannot change status from {current} to {new_status}"})


def format_status(status: Optional[str]) -> str:
    if not status:
        return ""
    return status[0].upper() + status[1:].replace("-", " ")


# ── Checkout ─────────────────────────────────────────────────

ADDRESS_FIELDS = {
    "fullName": "Full name",
    "phoneNumber": "Phone number",
    "addressLine1": "Address",
    "city": "City",
    "country": "Country",
}


def validate_address(address: Dict[str, Any]) -> Dict[str, str]:
    errors = {}
    for field, label in ADDRESS_FIELDS.items():
        message = required(address.get(field), label)
        if message:
            errors[field] = message
    return errors


def loyalty_points_to_use(available: int, subtotal: float, discount_amount: float = 0) -> int:
    """Whole points worth at most the subtotal left after the discount."""
    if available <= 0:
        return 0
    max_value = min(available * config.LOYALTY_POINT_VALUE, subtotal - (discount_amount or 0))
    if max_value <= 0:
        return 0
    return int(max_value // config.LOYALTY_POINT_VALUE)


# ── Customer orders ──────────────────────────────────────────

class OrderService:
    def __init__(self, api: ApiClient):
        self.api = api

    def place_order(
            self,
            shipping_address: Dict[str, Any],
            payment_method: str = "cod",
            discount_code: Optional[str] = None,
            loyalty_points_used: int = 0,
            notes: str = ""
    ) -> Dict[str, Any]:
        errors = validate_address(shipping_address)
        if payment_method not in PAYMENT_METHODS:
            errors["paymentMethod"] = "Only cash on delivery is available"
        if loyalty_points_used < 0:
            errors["loyaltyPointsUsed"] = "Loyalty points cannot be negative"
        raise_if_errors(errors)

        return self.api.post("/orders", {
            "shippingAddress": shipping_address,
            "paymentMethod": payment_method,
            "discountCode": discount_code or None,
            "loyaltyPointsUsed": loyalty_points_used,
            "notes": notes,
        })

    def list_orders(self, page: int = 1, limit: int = 10, status: Optional[str] = None) -> Dict[str, Any]:
        return self.api.get("/orders/user", params={"page": page, "limit": limit, "status": status}) or {}

    def get_order(self, order_id: str) -> Dict[str, Any]:
        return self.api.get(f"/orders/user/{order_id}")

    def get_tracking(self, order_id: str) -> Dict[str, Any]:
        return self.api.get(f"/orders/user/{order_id}/tracking")

    def cancel_order(self, order: Dict[str, Any], reason: str) -> Dict[str, Any]:
        """Cancel, then return the order as the server now has it."""
        order_id = entity_id(order)
        if not can_cancel(order):
            raise ValidationError({"status": f"Orders that are {current_status(order)} cannot be cancelled"})
        if not reason or not reason.strip():
            raise ValidationError({"reason": "Please provide a reason for cancellation"})

        self.api.post(f"/orders/user/{order_id}/cancel", {"reason": reason.strip()})
        return self.get_order(order_id)


# ── Admin orders ─────────────────────────────────────────────

class AdminOrderService:
    def __init__(self, api: ApiClient):
        self.api = api

    def list_orders(
            self,
            page: int = 1,
            limit: int = 20,
            status: Optional[str] = None,
            period: Optional[str] = None,
            start_date: Optional[str] = None,
            end_date: Optional[str] = None
    ) -> Dict[str, Any]:
        return self.api.get("/admin/orders", params={
            "page": page,
            "limit": limit,
            "status": status,
            "period": period,
            "startDate": start_date,
            "endDate": end_date,
        }) or {}

    def get_order(self, order_id: str) -> Dict[str, Any]:
        return self.api.get(f"/admin/orders/{order_id}")

    def update_status(self, order: Dict[str, Any], status: str, note: str = "") -> Dict[str, Any]:
        """Append a status entry, then re-fetch the order to resync."""
        order_id = entity_id(order)
        validate_transition(current_status(order), status)
        self.api.patch(f"/admin/orders/{order_id}/status", {"status": status, "note": note or ""})
        return self.get_order(order_id)

    def statistics(self) -> Dict[str, Any]:
        return self.api.get("/admin/orders/statistics")

    def revenue_chart(
            self,
            timeframe: Optional[str] = "week",
            start_date: Optional[str] = None,
            end_date: Optional[str] = None
    ) -> Any:
        if start_date or end_date:
            if not (start_date and end_date):
                raise ValidationError({"dateRange": "Both start and end dates are required"})
            return self.api.get("/admin/orders/revenue-chart", params={"startDate": start_date, "endDate": end_date})
        return self.api.get("/admin/orders/revenue-chart", params={"timeframe": timeframe})


def parse_page(value: Any, default: int = 1) -> int:
    try:
        page = to_int(value)
    except ValueError:
        return default
    return page if page and page > 0 else default
