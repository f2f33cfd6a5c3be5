# ============================================================
# cart.py — Storefront cart
# ============================================================
# The cart lives on the server, keyed by the signed-in user.
# Items are product variants. Inventory problems come back as a
# 400 whose message mentions inventory (ApiError.is_inventory_error).
# ============================================================

from typing import Any, Dict

from api import ApiClient
from errors import ValidationError
from validators import is_blank


class CartService:
    def __init__(self, api: ApiClient):
        self.api = api

    def get_cart(self) -> Dict[str, Any]:
        return self.api.get("/cart") or {"items": []}

    def add_item(self, variant_id: str, quantity: int = 1) -> Dict[str, Any]:
        if quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1"})
        return self.api.post("/cart/items", {"productVariantId": variant_id, "quantity": quantity})

    def update_item(self, variant_id: str, quantity: int) -> Dict[str, Any]:
        """Quantity 0 removes the line."""
        if quantity < 0:
            raise ValidationError({"quantity": "Quantity cannot be negative"})
        if quantity == 0:
            return self.remove_item(variant_id)
        return self.api.put(f"/cart/items/{variant_id}", {"quantity": quantity})

    def remove_item(self, variant_id: str) -> Dict[str, Any]:
        return self.api.delete(f"/cart/items/{variant_id}")

    def clear(self) -> Dict[str, Any]:
        return self.api.delete("/cart")

    def loyalty_points(self) -> int:
        data = self.api.get("/users/loyalty-points") or {}
        return int(data.get("loyaltyPoints") or 0)

    def verify_discount(self, code: str) -> Dict[str, Any]:
        if is_blank(code):
            raise ValidationError({"code": "Please enter a discount code"})
        return self.api.post("/orders/verify-discount", {"code": code.strip()})
