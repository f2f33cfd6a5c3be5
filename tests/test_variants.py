import pytest

from conftest import FakeApi
from errors import ApiError, ValidationError
from variants import (
    VariantForm,
    VariantsManager,
    attribute_keys,
    attribute_value_options,
    blank_form,
    suggest_sku,
    validate_variant,
)

VARIANTS = [
    {"id": "v1", "name": "Red S", "sku": "TEE-RED-S", "price": 100, "inventory": 3,
     "attributes": {"color": "Red", "size": "S"}},
    {"id": "v2", "name": "Blue M", "sku": "TEE-BLUE-M", "price": 100, "inventory": 0,
     "attributes": {"color": "Blue", "size": "M", "fit": "Slim"}},
]


def form(**overrides):
    values = dict(name="Green L", sku="TEE-GREEN-L", price="120", sale_price="", inventory="5",
                  attributes={"color": "Green", "size": "L"})
    values.update(overrides)
    return VariantForm(**values)


# ── Validation ───────────────────────────────────────────────

def test_valid_form_has_no_errors():
    assert validate_variant(form(), VARIANTS) == {}


def test_sku_must_be_unique_among_other_variants():
    errors = validate_variant(form(sku="TEE-RED-S"), VARIANTS)
    assert "sku" in errors


def test_editing_a_variant_may_keep_its_own_sku():
    assert validate_variant(form(sku="TEE-RED-S"), VARIANTS, editing_id="v1") == {}


@pytest.mark.parametrize("sale_price", ["120", "150", "0", "-5"])
def test_sale_price_must_be_positive_and_below_price(sale_price):
    assert "salePrice" in validate_variant(form(sale_price=sale_price), VARIANTS)


def test_sale_price_below_price_is_fine():
    assert validate_variant(form(sale_price="99.5"), VARIANTS) == {}


@pytest.mark.parametrize("field,value", [("name", " "), ("sku", ""), ("price", ""), ("price", "0")])
def test_required_fields(field, value):
    key = {"name": "name", "sku": "sku", "price": "price"}[field]
    assert key in validate_variant(form(**{field: value}), VARIANTS)


@pytest.mark.parametrize("inventory", ["-1", "2.5", "lots"])
def test_inventory_must_be_a_non_negative_whole_number(inventory):
    assert "inventory" in validate_variant(form(inventory=inventory), VARIANTS)


@pytest.mark.parametrize("field,value,key", [
    ("price", "nan", "price"),
    ("price", "inf", "price"),
    ("sale_price", "nan", "salePrice"),
    ("inventory", "inf", "inventory"),
    ("inventory", "-inf", "inventory"),
])
def test_non_finite_numbers_are_rejected(field, value, key):
    assert key in validate_variant(form(**{field: value}), VARIANTS)


def test_every_attribute_needs_a_value():
    errors = validate_variant(form(attributes={"color": "Green", "size": " "}), VARIANTS)
    assert list(errors) == ["attributes.size"]


def test_payload_omits_missing_sale_price():
    payload = form().to_payload()
    assert payload["price"] == 120
    assert payload["inventory"] == 5
    assert "salePrice" not in payload
    assert form(sale_price="99").to_payload()["salePrice"] == 99


# ── Attribute schema ─────────────────────────────────────────

def test_attribute_keys_union_in_first_seen_order():
    assert attribute_keys(VARIANTS) == ["color", "size", "fit"]


def test_attribute_value_options():
    assert attribute_value_options(VARIANTS) == {
        "color": ["Red", "Blue"], "size": ["S", "M"], "fit": ["Slim"],
    }


def test_blank_form_suggests_sku_and_known_attributes():
    blank = blank_form(VARIANTS)
    assert blank.sku.startswith("SKU-")
    assert blank.attributes == {"color": "", "size": "", "fit": ""}
    assert suggest_sku(1700000000000) == "SKU-1700000000000"


# ── Manager ──────────────────────────────────────────────────

def test_create_posts_and_appends():
    api = FakeApi()
    api.script("POST", "/admin/products/p1/variants", lambda data, files: {"id": "v3", **data})
    manager = VariantsManager(api, "p1", VARIANTS)

    created = manager.create(form())

    assert created["id"] == "v3"
    assert [v["id"] for v in manager.variants] == ["v1", "v2", "v3"]
    assert manager.notices.peek()[-1].level == "success"


def test_invalid_form_never_reaches_the_api():
    api = FakeApi()
    manager = VariantsManager(api, "p1", VARIANTS)
    with pytest.raises(ValidationError):
        manager.create(form(sku="TEE-BLUE-M"))
    assert api.calls == []
    assert manager.notices.peek()[-1].level == "error"


def test_server_failure_leaves_list_unchanged():
    api = FakeApi({("POST", "/admin/products/p1/variants"): ApiError("Duplicate SKU", status=400)})
    manager = VariantsManager(api, "p1", VARIANTS)
    with pytest.raises(ApiError):
        manager.create(form())
    assert len(manager.variants) == 2
    assert "Duplicate SKU" in manager.notices.peek()[-1].message


def test_updating_attributes_round_trips():
    api = FakeApi()
    api.script("PUT", "/admin/products/p1/variants/v1", lambda data: {"id": "v1", **data})
    manager = VariantsManager(api, "p1", VARIANTS)

    edited = VariantForm.from_variant(manager.find("v1"))
    edited.attributes["material"] = "Cotton"
    manager.update("v1", edited)

    assert manager.find("v1")["attributes"] == {"color": "Red", "size": "S", "material": "Cotton"}
    assert VariantForm.from_variant(manager.find("v1")).attributes == edited.attributes


def test_delete_needs_confirmation():
    api = FakeApi()
    manager = VariantsManager(api, "p1", VARIANTS)
    asked = []

    assert manager.delete("v1", lambda message: asked.append(message) or False) is False
    assert api.calls == []
    assert "Red S" in asked[0]

    changed = []
    manager.on_change = changed.append
    assert manager.delete("v1", lambda message: True) is True
    assert api.calls_to("DELETE") == [{}]
    assert [v["id"] for v in manager.variants] == ["v2"]
    assert changed == [manager.variants]
