# ============================================================
# views.py — HTML helpers for the console pages
# ============================================================
# Pages are plain HTML built from f-strings. Everything that came
# from the API or a form goes through esc() first.
# ============================================================

import html
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlencode

from notices import Notice


def esc(value: Any) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def format_price(value: Any) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "0"
    if number == int(number):
        return f"{int(number):,}"
    return f"{number:,.2f}"


def format_date(value: Any) -> str:
    if not value:
        return ""
    try:
        moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return moment.strftime("%b %d, %Y, %I:%M %p")


def options(values: Iterable[str], selected: Optional[str] = None, labels: Optional[Dict[str, str]] = None) -> str:
    labels = labels or {}
    return "".join(
        f"<option value='{esc(v)}' {'selected' if v == selected else ''}>{esc(labels.get(v, v))}</option>"
        for v in values
    )


def notices_html(notices: List[Notice]) -> str:
    if not notices:
        return ""
    items = "".join(f"<li class='notice {esc(n.level)}'>{esc(n.message)}</li>" for n in notices)
    return f"<ul class='notices'>{items}</ul>"


def alert(message: Optional[str], level: str = "danger") -> str:
    if not message:
        return ""
    return f"<div class='alert {esc(level)}'>{esc(message)}</div>"


def field_errors(errors: Optional[Dict[str, str]]) -> str:
    if not errors:
        return ""
    items = "".join(f"<li>{esc(message)}</li>" for message in errors.values())
    return f"<ul class='field-errors'>{items}</ul>"


def page_link(base_url: str, page_number: int, filters: Optional[Dict[str, Any]] = None) -> str:
    params = {"page": page_number}
    params.update({k: v for k, v in (filters or {}).items() if v})
    return f"{base_url}?{urlencode(params)}"


def pagination(base_url: str, pagination_data: Dict[str, Any], filters: Optional[Dict[str, Any]] = None) -> str:
    page = int(pagination_data.get("page") or 1)
    total_pages = int(pagination_data.get("totalPages") or 1)
    if total_pages <= 1:
        return ""
    links = []
    if page > 1:
        links.append(f"<a href='{esc(page_link(base_url, page - 1, filters))}'>« Prev</a>")
    links.append(f"Page {page} of {total_pages}")
    if page < total_pages:
        links.append(f"<a href='{esc(page_link(base_url, page + 1, filters))}'>Next »</a>")
    return f"<div class='pagination'>{' | '.join(links)}</div>"


def page(title: str, body: str, user: Optional[Dict[str, Any]] = None, notices: Optional[List[Notice]] = None) -> str:
    if user:
        admin_link = " | <a href='/admin'>Admin</a>" if user.get("role") == "admin" else ""
        nav = (
            f"Signed in as {esc(user.get('fullName') or user.get('email'))} | "
            f"<a href='/orders'>My orders</a> | <a href='/cart'>Cart</a>{admin_link} | "
            f"<a href='/logout'>Logout</a>"
        )
    else:
        nav = "<a href='/login'>Login</a> | <a href='/register'>Register</a>"
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{esc(title)}</title></head>
<body>
<nav>{nav}</nav>
{notices_html(notices or [])}
<h1>{esc(title)}</h1>
{body}
</body>
</html>"""
