import pytest

from conftest import FakeApi, Replies
from errors import ApiError, ValidationError
from orders import (
    ORDER_STATUSES,
    AdminOrderService,
    OrderService,
    can_cancel,
    current_status,
    format_status,
    get_available_status_options,
    loyalty_points_to_use,
    parse_page,
    validate_transition,
)


def order_with(status, order_id="o1"):
    return {"id": order_id, "orderNumber": "1001", "statusHistory": [{"status": status, "note": ""}]}


# ── State machine ────────────────────────────────────────────

@pytest.mark.parametrize("status", ["delivered", "cancelled"])
def test_terminal_status_offers_only_itself(status):
    assert get_available_status_options(status) == [status]
    assert not can_cancel(order_with(status))


def test_forward_only_with_cancel_escape():
    assert get_available_status_options("processing") == ["processing", "shipping", "delivered", "cancelled"]
    assert get_available_status_options("pending") == ORDER_STATUSES


def test_unknown_status_offers_everything():
    assert get_available_status_options(None) == ORDER_STATUSES


@pytest.mark.parametrize("status,allowed", [
    ("pending", True), ("confirmed", True), ("processing", False), ("shipping", False),
])
def test_customer_cancellation_window(status, allowed):
    assert can_cancel(order_with(status)) is allowed


def test_backward_transition_rejected():
    with pytest.raises(ValidationError):
        validate_transition("shipping", "confirmed")
    with pytest.raises(ValidationError):
        validate_transition("pending", "refunded")


def test_current_status_reads_latest_history_entry():
    order = {"status": [{"status": "confirmed"}, {"status": "pending"}]}
    assert current_status(order) == "confirmed"
    assert current_status({"status": "shipping"}) == "shipping"
    assert current_status({}) is None


def test_format_status():
    assert format_status("shipping") == "Shipping"
    assert format_status(None) == ""


# ── Customer service ─────────────────────────────────────────

def test_cancel_posts_reason_and_refetches():
    api = FakeApi()
    api.script("GET", "/orders/user/o1", order_with("cancelled"))
    refreshed = OrderService(api).cancel_order(order_with("pending"), "  changed my mind ")

    assert api.calls_to("POST", "/orders/user/o1/cancel") == [
        {"data": {"reason": "changed my mind"}, "files": None}
    ]
    assert current_status(refreshed) == "cancelled"


def test_cancel_requires_reason():
    api = FakeApi()
    with pytest.raises(ValidationError) as exc:
        OrderService(api).cancel_order(order_with("pending"), "   ")
    assert "reason" in exc.value.errors
    assert api.calls == []


def test_cancel_rejected_once_processing():
    api = FakeApi()
    with pytest.raises(ValidationError):
        OrderService(api).cancel_order(order_with("processing"), "late")
    assert api.calls == []


def test_place_order_validates_address_and_payment():
    api = FakeApi()
    with pytest.raises(ValidationError) as exc:
        OrderService(api).place_order({"fullName": "A"}, payment_method="card")
    assert {"phoneNumber", "addressLine1", "city", "country", "paymentMethod"} <= set(exc.value.errors)
    assert api.calls == []


def test_place_order_payload():
    api = FakeApi({("POST", "/orders"): {"id": "o9", "orderNumber": "1009"}})
    address = {"fullName": "A", "phoneNumber": "1", "addressLine1": "x", "city": "c", "country": "VN"}
    OrderService(api).place_order(address, discount_code="AB12C", loyalty_points_used=2)

    payload = api.calls_to("POST", "/orders")[0]["data"]
    assert payload["paymentMethod"] == "cod"
    assert payload["discountCode"] == "AB12C"
    assert payload["loyaltyPointsUsed"] == 2


def test_loyalty_points_capped_by_remaining_subtotal():
    assert loyalty_points_to_use(5, 3500) == 3
    assert loyalty_points_to_use(2, 3500) == 2
    assert loyalty_points_to_use(5, 3500, discount_amount=3500) == 0
    assert loyalty_points_to_use(0, 10000) == 0


# ── Admin service ────────────────────────────────────────────

def test_admin_update_status_patches_then_refetches():
    api = FakeApi()
    api.script("GET", "/admin/orders/o1", order_with("confirmed"))
    result = AdminOrderService(api).update_status(order_with("pending"), "confirmed", "ok")

    assert api.calls_to("PATCH", "/admin/orders/o1/status") == [{"data": {"status": "confirmed", "note": "ok"}}]
    assert current_status(result) == "confirmed"


def test_admin_update_status_on_terminal_order_makes_no_call():
    api = FakeApi()
    with pytest.raises(ValidationError):
        AdminOrderService(api).update_status(order_with("delivered"), "cancelled")
    assert api.calls == []


def test_admin_update_status_failure_propagates():
    api = FakeApi({("PATCH", "/admin/orders/o1/status"): Replies(ApiError("Server down", status=500))})
    with pytest.raises(ApiError):
        AdminOrderService(api).update_status(order_with("pending"), "confirmed")
    assert api.calls_to("GET") == []


def test_revenue_chart_needs_both_dates():
    api = FakeApi()
    service = AdminOrderService(api)
    with pytest.raises(ValidationError):
        service.revenue_chart(start_date="2024-01-01")

    service.revenue_chart(start_date="2024-01-01", end_date="2024-01-31")
    service.revenue_chart("month")
    assert api.calls_to("GET", "/admin/orders/revenue-chart") == [
        {"params": {"startDate": "2024-01-01", "endDate": "2024-01-31"}},
        {"params": {"timeframe": "month"}},
    ]


@pytest.mark.parametrize("raw,expected", [("3", 3), ("", 1), ("abc", 1), ("-2", 1), ("1.5", 1)])
def test_parse_page(raw, expected):
    assert parse_page(raw) == expected
