# ============================================================
# auth.py — Sign-in flows
# ============================================================
# The API issues bearer tokens; this module only collects
# credentials, forwards them, and stores what comes back on the
# ConsoleSession (which persists the token).
#
# OAuth: the browser is sent to <API_URL>/auth/<provider>; the API
# redirects back to /auth/callback?token=... which lands here.
# ============================================================

from typing import Any, Dict, Optional

import config
from errors import ApiError, ValidationError, raise_if_errors
from session import ConsoleSession
from validators import email_error, is_blank, password_error


def validate_registration(data: Dict[str, Any]) -> Dict[str, str]:
    errors = {}
    if is_blank(data.get("fullName")):
        errors["fullName"] = "Full name is required"
    message = email_error(data.get("email"))
    if message:
        errors["email"] = message
    message = password_error(data.get("password"))
    if message:
        errors["password"] = message
    elif data.get("password") != data.get("confirmPassword"):
        errors["confirmPassword"] = "Passwords do not match"
    return errors


def validate_new_password(new_password: str, confirm_password: str) -> Dict[str, str]:
    errors = {}
    message = password_error(new_password)
    if message:
        errors["newPassword"] = message
    elif new_password != confirm_password:
        errors["confirmPassword"] = "Passwords do not match"
    return errors


class AuthService:
    def __init__(self, session: ConsoleSession):
        self.session = session
        self.api = session.api

    def login(self, email: str, password: str) -> Dict[str, Any]:
        errors = {}
        message = email_error(email)
        if message:
            errors["email"] = message
        if is_blank(password):
            errors["password"] = "Password is required"
        raise_if_errors(errors)

        data = self.api.post("/auth/login", {"email": email.strip(), "password": password}) or {}
        token = data.get("token")
        if not token:
            raise ApiError("Login response did not include a token", kind="business")
        self.session.sign_in(token, data.get("user"))
        if not self.session.user:
            self.refresh_profile()
        return self.session.user

    def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        raise_if_errors(validate_registration(data))
        payload = {k: v for k, v in data.items() if k != "confirmPassword"}
        return self.api.post("/auth/register", payload) or {}

    def refresh_profile(self) -> Dict[str, Any]:
        user = self.api.get("/users/profile")
        self.session.set_user(user)
        return user

    def handle_oauth_callback(self, token: Optional[str]) -> Dict[str, Any]:
        if is_blank(token):
            raise ValidationError({"token": "Authentication failed: no token received"})
        self.session.sign_in(token)
        return self.refresh_profile()

    def forgot_password(self, email: str):
        message = email_error(email)
        if message:
            raise ValidationError({"email": message})
        self.api.post("/auth/forgot-password", {"email": email.strip()})

    def reset_password(self, token: str, new_password: str, confirm_password: str):
        raise_if_errors(validate_new_password(new_password, confirm_password))
        self.api.post(f"/auth/reset-password/{token}", {"newPassword": new_password})

    def update_password(self, current_password: str, new_password: str, confirm_password: str):
        errors = validate_new_password(new_password, confirm_password)
        if is_blank(current_password):
            errors["currentPassword"] = "Current password is required"
        raise_if_errors(errors)
        self.api.post("/auth/update-password", {
            "currentPassword": current_password,
            "newPassword": new_password,
        })

    def logout(self):
        self.session.sign_out()

    @staticmethod
    def oauth_url(provider: str) -> str:
        return config.oauth_url(provider)
