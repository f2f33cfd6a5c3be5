# ============================================================
# users.py — Admin user management
# ============================================================

from dataclasses import dataclass
from typing import Any, Dict, Optional

from api import ApiClient, entity_id
from errors import ValidationError, raise_if_errors
from validators import email_error, is_blank, to_int

ROLES = ("customer", "admin")
STATUSES = ("active", "inactive")


@dataclass
class UserForm:
    full_name: str = ""
    email: str = ""
    role: str = "customer"
    status: str = "active"
    phone_number: str = ""
    loyalty_points: Any = 0

    @classmethod
    def from_user(cls, user: Dict[str, Any]) -> "UserForm":
        return cls(
            full_name=user.get("fullName") or "",
            email=user.get("email") or "",
            role=user.get("role") or "customer",
            status=user.get("status") or "active",
            phone_number=user.get("phoneNumber") or "",
            loyalty_points=user.get("loyaltyPoints") or 0,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "fullName": self.full_name.strip(),
            "email": self.email.strip(),
            "role": self.role,
            "status": self.status,
            "phoneNumber": self.phone_number.strip(),
            "loyaltyPoints": to_int(self.loyalty_points) or 0,
        }


def validate_user(form: UserForm) -> Dict[str, str]:
    errors = {}
    if is_blank(form.full_name):
        errors["fullName"] = "Full name is required"
    message = email_error(form.email)
    if message:
        errors["email"] = message
    if form.role not in ROLES:
        errors["role"] = "Role must be customer or admin"
    if form.status not in STATUSES:
        errors["status"] = "Status must be active or inactive"
    try:
        points = to_int(form.loyalty_points)
    except (TypeError, ValueError):
        errors["loyaltyPoints"] = "Loyalty points must be a whole number"
    else:
        if points is not None and points < 0:
            errors["loyaltyPoints"] = "Loyalty points cannot be negative"
    return errors


class UserAdminService:
    def __init__(self, api: ApiClient):
        self.api = api

    def list_users(
            self,
            page: int = 1,
            limit: int = 10,
            search: Optional[str] = None,
            role: Optional[str] = None,
            status: Optional[str] = None
    ) -> Dict[str, Any]:
        return self.api.get("/admin/users", params={
            "page": page, "limit": limit, "search": search, "role": role, "status": status,
        }) or {}

    def get_user(self, user_id: str) -> Dict[str, Any]:
        return self.api.get(f"/admin/users/{user_id}")

    def update_user(self, user_id: str, form: UserForm) -> Dict[str, Any]:
        raise_if_errors(validate_user(form))
        return self.api.put(f"/admin/users/{user_id}", form.to_payload())

    def set_status(self, user_id: str, status: str) -> Dict[str, Any]:
        if status not in STATUSES:
            raise ValidationError({"status": "Status must be active or inactive"})
        return self.api.patch(f"/admin/users/{user_id}/status", {"status": status})

    def delete_user(self, user: Dict[str, Any], confirm) -> bool:
        if not confirm(f"Are you sure you want to delete {user.get('fullName') or 'this user'}?"):
            return False
        self.api.delete(f"/admin/users/{entity_id(user)}")
        return True

    def statistics(self) -> Dict[str, Any]:
        return self.api.get("/admin/users/statistics")
