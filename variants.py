# ============================================================
# variants.py — Variant manager
# ============================================================
# CRUD over one product's variants. Every create/update/delete is
# its own REST call; the local list is updated from the server's
# answer only after the call succeeds.
#
# Attributes are an open {name → value} map. The "schema" offered
# to the editor is whatever keys existing variants already use.
# ============================================================

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from api import ApiClient, entity_id
from errors import ApiError, ValidationError
from notices import NoticeBoard
from validators import is_blank, to_int, to_number


@dataclass
class VariantForm:
    """What the variant editor submits. Numbers may still be raw strings."""
    name: str = ""
    sku: str = ""
    price: Any = ""
    sale_price: Any = ""
    inventory: Any = "0"
    is_active: bool = True
    attributes: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_variant(cls, variant: Dict[str, Any]) -> "VariantForm":
        sale_price = variant.get("salePrice")
        return cls(
            name=variant.get("name") or "",
            sku=variant.get("sku") or "",
            price=variant.get("price", ""),
            sale_price="" if sale_price is None else sale_price,
            inventory=variant.get("inventory", 0),
            is_active=bool(variant.get("isActive", True)),
            attributes=dict(variant.get("attributes") or {}),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Call validate_variant first; this assumes the numbers parse."""
        payload = {
            "name": self.name.strip(),
            "sku": self.sku.strip(),
            "price": to_number(self.price),
            "inventory": to_int(self.inventory),
            "isActive": self.is_active,
            "attributes": {k: str(v).strip() for k, v in self.attributes.items()},
        }
        sale_price = to_number(self.sale_price)
        if sale_price is not None:
            payload["salePrice"] = sale_price
        return payload


# ── Attribute schema ─────────────────────────────────────────

def attribute_keys(variants: List[Dict[str, Any]]) -> List[str]:
    """Union of attribute names across variants, first-seen order."""
    keys: List[str] = []
    for variant in variants:
        for key in (variant.get("attributes") or {}):
            if key not in keys:
                keys.append(key)
    return keys


def attribute_value_options(variants: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Prior values per attribute, for the editor's select boxes."""
    options: Dict[str, List[str]] = {}
    for variant in variants:
        for key, value in (variant.get("attributes") or {}).items():
            values = options.setdefault(key, [])
            if value not in (None, "") and value not in values:
                values.append(value)
    return options


def suggest_sku(now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"SKU-{now_ms}"


def blank_form(variants: List[Dict[str, Any]]) -> VariantForm:
    """A new variant starts with a suggested SKU and every known attribute empty."""
    return VariantForm(
        sku=suggest_sku(),
        attributes={key: "" for key in attribute_keys(variants)},
    )


# ── Validation ───────────────────────────────────────────────

def validate_variant(
        form: VariantForm,
        variants: List[Dict[str, Any]],
        editing_id: Optional[str] = None
) -> Dict[str, str]:
    """
    Return {field: message}; empty means the form can be submitted.

    SKU uniqueness is checked against the variants we know about,
    ignoring the one being edited.
    """
    errors: Dict[str, str] = {}

    if is_blank(form.name):
        errors["name"] = "Variant name is required"

    if is_blank(form.sku):
        errors["sku"] = "SKU is required"
    else:
        sku = form.sku.strip()
        for variant in variants:
            if entity_id(variant) != editing_id and (variant.get("sku") or "").strip() == sku:
                errors["sku"] = f"SKU {sku} is already used by variant {variant.get('name')}"
                break

    price = None
    try:
        price = to_number(form.price)
    except (TypeError, ValueError):
        errors["price"] = "Price must be a number"
    else:
        if price is None:
            errors["price"] = "Price is required"
        elif price <= 0:
            errors["price"] = "Price must be greater than 0"

    try:
        sale_price = to_number(form.sale_price)
    except (TypeError, ValueError):
        errors["salePrice"] = "Sale price must be a number"
    else:
        if sale_price is not None:
            if sale_price <= 0:
                errors["salePrice"] = "Sale price must be greater than 0"
            elif price is not None and "price" not in errors and sale_price >= price:
                errors["salePrice"] = "Sale price must be less than the regular price"

    try:
        inventory = to_int(form.inventory)
    except (TypeError, ValueError):
        errors["inventory"] = "Inventory must be a whole number"
    else:
        if inventory is None:
            errors["inventory"] = "Inventory is required"
        elif inventory < 0:
            errors["inventory"] = "Inventory cannot be negative"

    for key, value in form.attributes.items():
        if is_blank(key):
            errors["attributes"] = "Attribute names cannot be empty"
        elif is_blank(value):
            errors[f"attributes.{key}"] = f"Please enter a value for {key}"

    return errors


# ── Manager ──────────────────────────────────────────────────

class VariantsManager:
    def __init__(
            self,
            api: ApiClient,
            product_id: str,
            variants: List[Dict[str, Any]],
            notices: Optional[NoticeBoard] = None,
            on_change: Optional[Callable[[List[Dict[str, Any]]], None]] = None
    ):
        self.api = api
        self.product_id = product_id
        self.variants = list(variants or [])
        self.notices = notices or NoticeBoard()
        self.on_change = on_change

    def _base(self) -> str:
        return f"/admin/products/{self.product_id}/variants"

    def _set(self, variants: List[Dict[str, Any]]):
        self.variants = variants
        if self.on_change:
            self.on_change(variants)

    def find(self, variant_id: str) -> Optional[Dict[str, Any]]:
        for variant in self.variants:
            if entity_id(variant) == variant_id:
                return variant
        return None

    def refresh(self) -> List[Dict[str, Any]]:
        self.variants = list(self.api.get(self._base()) or [])
        return self.variants

    @property
    def attribute_keys(self) -> List[str]:
        return attribute_keys(self.variants)

    def new_form(self) -> VariantForm:
        return blank_form(self.variants)

    def _validate(self, form: VariantForm, editing_id: Optional[str] = None):
        errors = validate_variant(form, self.variants, editing_id)
        if errors:
            self.notices.error("Please fix the highlighted variant fields")
            raise ValidationError(errors)

    def create(self, form: VariantForm) -> Dict[str, Any]:
        self._validate(form)
        try:
            created = self.api.post(self._base(), form.to_payload())
        except ApiError as e:
            self.notices.error(f"Failed to save variant: {e.message}")
            raise
        self._set(self.variants + [created])
        self.notices.success("Variant added successfully")
        return created

    def update(self, variant_id: str, form: VariantForm) -> Dict[str, Any]:
        if self.find(variant_id) is None:
            raise ValidationError({"variant": "Variant not found"})
        self._validate(form, editing_id=variant_id)
        try:
            updated = self.api.put(f"{self._base()}/{variant_id}", form.to_payload())
        except ApiError as e:
            self.notices.error(f"Failed to save variant: {e.message}")
            raise
        self._set([updated if entity_id(v) == variant_id else v for v in self.variants])
        self.notices.success("Variant updated successfully")
        return updated

    def delete(self, variant_id: str, confirm: Callable[[str], bool]) -> bool:
        """Delete after confirm(message) says yes. No undo."""
        variant = self.find(variant_id)
        if variant is None:
            raise ValidationError({"variant": "Variant not found"})
        if not confirm(f'Are you sure you want to delete the variant "{variant.get("name")}"?'):
            return False
        try:
            self.api.delete(f"{self._base()}/{variant_id}")
        except ApiError as e:
            self.notices.error(f"Failed to delete variant: {e.message}")
            raise
        self._set([v for v in self.variants if entity_id(v) != variant_id])
        self.notices.success("Variant deleted successfully")
        return True
