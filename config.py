import os

# ── REST API ──────────────────────────────────────────────────
# Every entity lives behind this API. The console only ever holds
# per-request copies of what it returns.
API_URL = os.getenv("API_URL", "http://localhost:3000/api").rstrip("/")

# No timeout unless one is configured explicitly (seconds)
_timeout = os.getenv("REQUEST_TIMEOUT")
REQUEST_TIMEOUT = float(_timeout) if _timeout else None

# ── Database ──────────────────────────────────────────────────
# Only console sessions (bearer tokens) are persisted here
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./console.db")

# ── Console sessions ──────────────────────────────────────────
SESSION_COOKIE = os.getenv("SESSION_COOKIE", "console_session")

# OAuth providers hosted by the API server
OAUTH_PROVIDERS = ("google", "facebook")

# ── Catalog limits ────────────────────────────────────────────
MAX_IMAGE_SIZE = int(os.getenv("MAX_IMAGE_SIZE", str(2 * 1024 * 1024)))  # 2MB

# ── Discounts & loyalty ───────────────────────────────────────
DISCOUNT_CODE_LENGTH = 5
DISCOUNT_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
DISCOUNT_MAX_USAGE_LIMIT = 10
LOYALTY_POINT_VALUE = int(os.getenv("LOYALTY_POINT_VALUE", "1000"))  # currency units per point

# ── Server ────────────────────────────────────────────────────
PORT = int(os.getenv("PORT", "8000"))


# ── Get API client configuration ──────────────────────────────
def get_api_config():
    """Return the settings an ApiClient is built from."""
    return {
        "base_url": API_URL,
        "timeout": REQUEST_TIMEOUT,
    }


def oauth_url(provider: str) -> str:
    """Server-hosted OAuth entry point for a provider."""
    if provider not in OAUTH_PROVIDERS:
        raise ValueError(f"Unknown OAuth provider: {provider}")
    return f"{API_URL}/auth/{provider}"
