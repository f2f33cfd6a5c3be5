import random

import pytest

import config
from conftest import FakeApi
from discounts import DiscountForm, DiscountService, can_delete, generate_code, validate_discount
from errors import ValidationError


def test_generated_codes_are_five_alphanumerics():
    rng = random.Random(42)
    for _ in range(50):
        code = generate_code(rng)
        assert len(code) == 5
        assert set(code) <= set(config.DISCOUNT_CODE_ALPHABET)


def test_percentage_over_100_rejected_before_submission():
    api = FakeApi()
    form = DiscountForm(code="AB12C", discount_type="percentage", discount_value="150", usage_limit="5")

    with pytest.raises(ValidationError) as exc:
        DiscountService(api).create(form)

    assert list(exc.value.errors) == ["discountValue"]
    assert api.calls == []


@pytest.mark.parametrize("overrides,field", [
    ({"code": "AB12"}, "code"),
    ({"code": "AB12CD"}, "code"),
    ({"discount_value": "0"}, "discountValue"),
    ({"discount_type": "fixed", "discount_value": "0"}, "discountValue"),
    ({"discount_type": "bogo"}, "discountType"),
    ({"usage_limit": "0"}, "usageLimit"),
    ({"usage_limit": "11"}, "usageLimit"),
    ({"usage_limit": "2.5"}, "usageLimit"),
    ({"usage_limit": "inf"}, "usageLimit"),
    ({"discount_value": "nan"}, "discountValue"),
    ({"discount_type": "fixed", "discount_value": "inf"}, "discountValue"),
])
def test_bounds(overrides, field):
    values = dict(code="AB12C", discount_type="percentage", discount_value="10", usage_limit="5")
    values.update(overrides)
    assert field in validate_discount(DiscountForm(**values))


def test_fixed_amount_has_no_upper_bound():
    form = DiscountForm(code="FIX50", discount_type="fixed", discount_value="50000", usage_limit="10")
    assert validate_discount(form) == {}


def test_create_payload():
    api = FakeApi({("POST", "/discounts"): {"code": "AB12C"}})
    DiscountService(api).create(DiscountForm(code=" AB12C ", discount_value="15", usage_limit="3"))
    assert api.calls_to("POST", "/discounts")[0]["data"] == {
        "code": "AB12C", "discountType": "percentage", "discountValue": 15, "usageLimit": 3,
    }


def test_used_code_cannot_be_deleted():
    api = FakeApi()
    used = {"code": "AB12C", "usedCount": 2}
    assert not can_delete(used)
    with pytest.raises(ValidationError):
        DiscountService(api).delete(used, lambda message: True)
    assert api.calls == []


def test_unused_code_deleted_after_confirmation():
    api = FakeApi()
    service = DiscountService(api)
    fresh = {"code": "AB12C", "usedCount": 0}
    assert service.delete(fresh, lambda message: False) is False
    assert service.delete(fresh, lambda message: True) is True
    assert api.calls_to("DELETE", "/discounts/AB12C") == [{}]


def test_toggle_and_listing():
    api = FakeApi({
        ("GET", "/discounts"): {"discountCodes": [{"code": "AB12C"}], "pagination": {"page": 1, "totalPages": 1}},
        ("GET", "/discounts/AB12C"): {"discountCode": {"code": "AB12C"}, "usage": {"orders": [{"id": "o1"}]}},
    })
    service = DiscountService(api)

    codes, pagination = service.list_discounts()
    assert codes == [{"code": "AB12C"}] and pagination["page"] == 1

    discount, orders = service.get_details("AB12C")
    assert discount["code"] == "AB12C" and orders == [{"id": "o1"}]

    service.toggle("AB12C")
    assert api.calls_to("PATCH", "/discounts/AB12C/toggle") == [{"data": None}]
