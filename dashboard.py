# ============================================================
# dashboard.py — Admin dashboard data
# ============================================================
# Three statistics endpoints are fetched side by side. Any of them
# may fail: the dashboard renders whatever succeeded and lists the
# rest in a "Failed to load: ..." banner.
# ============================================================

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from api import ApiClient
from errors import ApiError

ENDPOINTS = {
    "orders": ("Order statistics", "/admin/orders/statistics"),
    "best_sellers": ("Best selling products", "/admin/products/stats/best-selling"),
    "users": ("User statistics", "/admin/users/statistics"),
}


@dataclass
class DashboardData:
    order_stats: Optional[Dict[str, Any]] = None
    best_sellers: List[Dict[str, Any]] = field(default_factory=list)
    user_stats: Optional[Dict[str, Any]] = None
    failed: List[str] = field(default_factory=list)  # labels of endpoints that failed

    @property
    def error(self) -> Optional[str]:
        if not self.failed:
            return None
        return f"Failed to load: {', '.join(self.failed)}"

    @property
    def status_counts(self) -> Dict[str, int]:
        return dict((self.order_stats or {}).get("statusCounts") or {})


def _fetch(api: ApiClient, endpoint: str):
    try:
        return True, api.get(endpoint)
    except ApiError as e:
        print(f"❌ Dashboard fetch {endpoint} failed: {e.message}")
        return False, None


def load_dashboard(api: ApiClient) -> DashboardData:
    with ThreadPoolExecutor(max_workers=len(ENDPOINTS)) as pool:
        futures = {key: pool.submit(_fetch, api, path) for key, (_, path) in ENDPOINTS.items()}
        results = {key: future.result() for key, future in futures.items()}

    data = DashboardData()
    for key, (ok, value) in results.items():
        if not ok:
            data.failed.append(ENDPOINTS[key][0])
            continue
        if key == "orders":
            data.order_stats = value or {}
        elif key == "best_sellers":
            data.best_sellers = list(value or [])
        else:
            data.user_stats = value or {}
    return data
