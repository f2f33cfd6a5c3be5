# ============================================================
# discounts.py — Discount code management
# ============================================================
# Codes are 5 characters. Percentage codes take 1–100, fixed codes
# any positive amount, and every code is capped at 1–10 uses.
# A code that has been used cannot be deleted (deactivate it).
# ============================================================

import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import config
from api import ApiClient
from errors import ValidationError, raise_if_errors
from validators import to_int, to_number

DISCOUNT_TYPES = ("percentage", "fixed")


@dataclass
class DiscountForm:
    code: str = ""
    discount_type: str = "percentage"
    discount_value: Any = 10
    usage_limit: Any = 5

    def to_payload(self) -> Dict[str, Any]:
        return {
            "code": self.code.strip(),
            "discountType": self.discount_type,
            "discountValue": to_number(self.discount_value),
            "usageLimit": to_int(self.usage_limit),
        }


def generate_code(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.SystemRandom()
    return "".join(rng.choice(config.DISCOUNT_CODE_ALPHABET) for _ in range(config.DISCOUNT_CODE_LENGTH))


def validate_discount(form: DiscountForm) -> Dict[str, str]:
    errors = {}
    code = (form.code or "").strip()
    if len(code) != config.DISCOUNT_CODE_LENGTH:
        errors["code"] = f"Discount code must be {config.DISCOUNT_CODE_LENGTH} characters"

    if form.discount_type not in DISCOUNT_TYPES:
        errors["discountType"] = "Discount type must be percentage or fixed"

    try:
        value = to_number(form.discount_value)
    except (TypeError, ValueError):
        errors["discountValue"] = "Discount value must be a number"
    else:
        if value is None:
            errors["discountValue"] = "Discount value is required"
        elif form.discount_type == "percentage" and not 1 <= value <= 100:
            errors["discountValue"] = "Percentage discount must be between 1 and 100"
        elif form.discount_type == "fixed" and value <= 0:
            errors["discountValue"] = "Fixed discount must be greater than 0"

    try:
        limit = to_int(form.usage_limit)
    except (TypeError, ValueError):
        errors["usageLimit"] = "Usage limit must be a whole number"
    else:
        if limit is None or not 1 <= limit <= config.DISCOUNT_MAX_USAGE_LIMIT:
            errors["usageLimit"] = f"Usage limit must be between 1 and {config.DISCOUNT_MAX_USAGE_LIMIT}"

    return errors


def can_delete(discount: Dict[str, Any]) -> bool:
    return (discount.get("usedCount") or 0) <= 0


class DiscountService:
    def __init__(self, api: ApiClient):
        self.api = api

    def list_discounts(self, page: int = 1, limit: int = 20) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        """Returns (discountCodes, pagination)."""
        data = self.api.get("/discounts", params={"page": page, "limit": limit}) or {}
        return data.get("discountCodes") or [], data.get("pagination") or {}

    def get_details(self, code: str) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        """Returns (discountCode, orders that used it)."""
        data = self.api.get(f"/discounts/{code}") or {}
        return data.get("discountCode") or {}, (data.get("usage") or {}).get("orders") or []

    def create(self, form: DiscountForm) -> Dict[str, Any]:
        raise_if_errors(validate_discount(form))
        return self.api.post("/discounts", form.to_payload())

    def toggle(self, code: str) -> Dict[str, Any]:
        return self.api.patch(f"/discounts/{code}/toggle")

    def delete(self, discount: Dict[str, Any], confirm) -> bool:
        code = discount.get("code")
        if not can_delete(discount):
            raise ValidationError({"code": f"Discount code {code} has been used and cannot be deleted"})
        if not confirm(f"Are you sure you want to delete discount code {code}?"):
            return False
        self.api.delete(f"/discounts/{code}")
        return True

    def available(self) -> List[Dict[str, Any]]:
        """Codes a signed-in customer may apply at checkout."""
        return self.api.get("/discounts/available") or []
