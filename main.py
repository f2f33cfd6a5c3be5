# ============================================================
# main.py — FastAPI Application (storefront console)
# ============================================================
# Endpoints:
#   GET  /login, /register, /forgot-password, /reset-password/{token}
#   GET  /auth/oauth/{provider}   → Redirect to the API's OAuth flow
#   GET  /auth/callback?token=    → OAuth landing, stores the token
#   GET  /cart, /checkout         → Storefront cart and checkout
#   GET  /orders, /orders/{id}    → Customer order history/detail
#   /admin/...                    → Back-office (admin.py)
#
# Request flow:
#   1. Cookie → ConsoleSession (hydrated from the stored token)
#   2. Guards redirect anonymous users to /login, non-admins to /
#   3. The route fetches what it needs, applies the form, calls the API
#   4. Failures become an inline alert or a notice; nothing is retried
# ============================================================

from typing import Optional

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

import config
from admin import router as admin_router
from api import entity_id
from auth import AuthService
from cart import CartService
from database import init_db
from deps import (
    AdminRequired,
    LoginRequired,
    get_console_session,
    render,
    require_user,
    safe_next,
)
from errors import ApiError, ValidationError
from orders import (
    ORDER_STATUSES,
    OrderService,
    can_cancel,
    current_status,
    format_status,
    loyalty_points_to_use,
    parse_page,
)
from session import ConsoleSession, destroy_session, rotate_session
from views import alert, esc, field_errors, format_date, format_price, options, pagination

# ── Initialize FastAPI app ────────────────────────────────────
app = FastAPI(title="Storefront Console")
app.include_router(admin_router)


# ── Startup: create database tables ───────────────────────────
@app.on_event("startup")
def on_startup():
    init_db()
    print("✅ Database initialized")


# ── Keep the session cookie on every response ─────────────────
@app.middleware("http")
async def session_cookie(request: Request, call_next):
    response = await call_next(request)
    session = getattr(request.state, "console_session", None)
    if session is not None and request.cookies.get(config.SESSION_COOKIE) != session.session_id:
        response.set_cookie(config.SESSION_COOKIE, session.session_id, httponly=True, samesite="lax")
    return response


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(exc.redirect_url, status_code=303)


@app.exception_handler(AdminRequired)
async def admin_required_handler(request: Request, exc: AdminRequired):
    return RedirectResponse("/", status_code=303)


@app.get("/")
def home(session: ConsoleSession = Depends(get_console_session)):
    if session.is_admin:
        return RedirectResponse("/admin", status_code=303)
    if session.is_authenticated:
        return RedirectResponse("/orders", status_code=303)
    return RedirectResponse("/login", status_code=303)


# ============================================================
# AUTH
# ============================================================

def login_form(next_url: str = "/", email: str = "", error: Optional[str] = None) -> str:
    providers = " | ".join(
        f"<a href='/auth/oauth/{p}'>Continue with {p.capitalize()}</a>" for p in config.OAUTH_PROVIDERS
    )
    return f"""
    {alert(error)}
    <form method="post" action="/login">
        <input type="hidden" name="next" value="{esc(next_url)}">
        Email: <input name="email" value="{esc(email)}"><br>
        Password: <input type="password" name="password"><br>
        <button type="submit">Login</button>
    </form>
    <p>{providers}</p>
    <p><a href="/forgot-password">Forgot password?</a></p>
    """


@app.get("/login", response_class=HTMLResponse)
def login_page(next: str = "/", session: ConsoleSession = Depends(get_console_session)):
    if session.is_authenticated:
        return RedirectResponse(safe_next(next), status_code=303)
    return render(session, "Login", login_form(next))


@app.post("/login")
def login(
    email: str = Form(""),
    password: str = Form(""),
    next: str = Form("/"),
    session: ConsoleSession = Depends(get_console_session)
):
    try:
        user = AuthService(session).login(email, password)
    except (ValidationError, ApiError) as e:
        print(f"❌ Login failed for {email}: {e}")
        return render(session, "Login", login_form(next, email, str(e)), status_code=400)

    rotate_session(session)
    session.notices.success(f"Welcome back, {(user or {}).get('fullName') or email}")
    return RedirectResponse(safe_next(next), status_code=303)


@app.get("/logout")
def logout(session: ConsoleSession = Depends(get_console_session)):
    destroy_session(session.session_id)
    return RedirectResponse("/login", status_code=303)


@app.get("/auth/oauth/{provider}")
def oauth_start(provider: str):
    if provider not in config.OAUTH_PROVIDERS:
        return RedirectResponse("/login", status_code=303)
    return RedirectResponse(AuthService.oauth_url(provider), status_code=303)


@app.get("/auth/callback")
def oauth_callback(token: Optional[str] = None, session: ConsoleSession = Depends(get_console_session)):
    try:
        AuthService(session).handle_oauth_callback(token)
    except (ValidationError, ApiError) as e:
        print(f"❌ OAuth callback failed: {e}")
        session.sign_out()
        return render(session, "Login", login_form(error=str(e)), status_code=400)
    rotate_session(session)
    return RedirectResponse("/", status_code=303)


def register_form(data: Optional[dict] = None, errors: Optional[dict] = None, error: Optional[str] = None) -> str:
    data = data or {}
    return f"""
    {alert(error)}{field_errors(errors)}
    <form method="post" action="/register">
        Full name: <input name="fullName" value="{esc(data.get('fullName'))}"><br>
        Email: <input name="email" value="{esc(data.get('email'))}"><br>
        Phone: <input name="phoneNumber" value="{esc(data.get('phoneNumber'))}"><br>
        Password: <input type="password" name="password"><br>
        Confirm password: <input type="password" name="confirmPassword"><br>
        <button type="submit">Register</button>
    </form>
    """


@app.get("/register", response_class=HTMLResponse)
def register_page(session: ConsoleSession = Depends(get_console_session)):
    return render(session, "Register", register_form())


@app.post("/register")
def register(
    fullName: str = Form(""),
    email: str = Form(""),
    phoneNumber: str = Form(""),
    password: str = Form(""),
    confirmPassword: str = Form(""),
    session: ConsoleSession = Depends(get_console_session)
):
    data = {
        "fullName": fullName,
        "email": email,
        "phoneNumber": phoneNumber,
        "password": password,
        "confirmPassword": confirmPassword,
    }
    try:
        AuthService(session).register(data)
    except ValidationError as e:
        return render(session, "Register", register_form(data, errors=e.errors), status_code=400)
    except ApiError as e:
        return render(session, "Register", register_form(data, error=e.message), status_code=400)

    session.notices.success("Registration successful. Please log in.")
    return RedirectResponse("/login", status_code=303)


@app.get("/forgot-password", response_class=HTMLResponse)
def forgot_password_page(session: ConsoleSession = Depends(get_console_session)):
    body = """
    <form method="post" action="/forgot-password">
        Email: <input name="email"><br>
        <button type="submit">Send reset link</button>
    </form>
    """
    return render(session, "Forgot password", body)


@app.post("/forgot-password")
def forgot_password(email: str = Form(""), session: ConsoleSession = Depends(get_console_session)):
    try:
        AuthService(session).forgot_password(email)
    except (ValidationError, ApiError) as e:
        return render(session, "Forgot password", alert(str(e)), status_code=400)
    return render(session, "Forgot password", alert(
        "If an account exists for that email, a reset link is on its way.", "success"
    ))


@app.get("/reset-password/{token}", response_class=HTMLResponse)
def reset_password_page(token: str, session: ConsoleSession = Depends(get_console_session)):
    body = f"""
    <form method="post" action="/reset-password/{esc(token)}">
        New password: <input type="password" name="newPassword"><br>
        Confirm password: <input type="password" name="confirmPassword"><br>
        <button type="submit">Reset password</button>
    </form>
    """
    return render(session, "Reset password", body)


@app.post("/reset-password/{token}")
def reset_password(
    token: str,
    newPassword: str = Form(""),
    confirmPassword: str = Form(""),
    session: ConsoleSession = Depends(get_console_session)
):
    try:
        AuthService(session).reset_password(token, newPassword, confirmPassword)
    except ValidationError as e:
        return render(session, "Reset password", field_errors(e.errors), status_code=400)
    except ApiError as e:
        return render(session, "Reset password", alert(e.message), status_code=400)
    session.notices.success("Password reset. Please log in with your new password.")
    return RedirectResponse("/login", status_code=303)


@app.get("/account/password", response_class=HTMLResponse)
def update_password_page(session: ConsoleSession = Depends(require_user)):
    body = """
    <form method="post" action="/account/password">
        Current password: <input type="password" name="currentPassword"><br>
        New password: <input type="password" name="newPassword"><br>
        Confirm password: <input type="password" name="confirmPassword"><br>
        <button type="submit">Update password</button>
    </form>
    """
    return render(session, "Change password", body)


@app.post("/account/password")
def update_password(
    currentPassword: str = Form(""),
    newPassword: str = Form(""),
    confirmPassword: str = Form(""),
    session: ConsoleSession = Depends(require_user)
):
    try:
        AuthService(session).update_password(currentPassword, newPassword, confirmPassword)
    except ValidationError as e:
        return render(session, "Change password", field_errors(e.errors), status_code=400)
    except ApiError as e:
        return render(session, "Change password", alert(e.message), status_code=400)
    session.notices.success("Password updated successfully")
    return RedirectResponse("/orders", status_code=303)


# ============================================================
# CART & CHECKOUT
# ============================================================

@app.get("/cart", response_class=HTMLResponse)
def cart_page(session: ConsoleSession = Depends(require_user)):
    try:
        cart = CartService(session.api).get_cart()
    except ApiError as e:
        return render(session, "Cart", alert(f"Failed to load cart: {e.message}"))

    items = cart.get("items") or []
    if not items:
        return render(session, "Cart", "<p>Your cart is empty.</p>")

    rows = "".join(
        f"<tr><td>{esc(it.get('productName') or it.get('name'))}</td>"
        f"<td>{esc(it.get('variantName'))}</td>"
        f"<td>{format_price(it.get('price'))}</td>"
        f"<td><form method='post' action='/cart/items/{esc(it.get('productVariantId'))}'>"
        f"<input name='quantity' value='{esc(it.get('quantity'))}' size='3'>"
        f"<button type='submit'>Update</button></form></td>"
        f"<td>{format_price(it.get('totalPrice'))}</td></tr>"
        for it in items
    )
    body = f"""
    <table border="1" cellpadding="6">
        <tr><th>Product</th><th>Variant</th><th>Price</th><th>Quantity</th><th>Total</th></tr>
        {rows}
    </table>
    <p>Subtotal: {format_price(cart.get('subtotal'))}</p>
    <form method="post" action="/cart/clear"><button type="submit">Clear cart</button></form>
    <p><a href="/checkout">Proceed to checkout</a></p>
    """
    return render(session, "Cart", body)


@app.post("/cart/items")
def cart_add(
    variant_id: str = Form(...),
    quantity: int = Form(1),
    session: ConsoleSession = Depends(require_user)
):
    try:
        CartService(session.api).add_item(variant_id, quantity)
        session.notices.success("Added to cart")
    except ValidationError as e:
        session.notices.error(e.message)
    except ApiError as e:
        session.notices.error(e.message if e.is_inventory_error else f"Failed to add to cart: {e.message}")
    return RedirectResponse("/cart", status_code=303)


@app.post("/cart/items/{variant_id}")
def cart_update(variant_id: str, quantity: int = Form(...), session: ConsoleSession = Depends(require_user)):
    try:
        CartService(session.api).update_item(variant_id, quantity)
    except ValidationError as e:
        session.notices.error(e.message)
    except ApiError as e:
        session.notices.error(e.message if e.is_inventory_error else f"Failed to update cart: {e.message}")
    return RedirectResponse("/cart", status_code=303)


@app.post("/cart/clear")
def cart_clear(session: ConsoleSession = Depends(require_user)):
    try:
        CartService(session.api).clear()
        session.notices.success("Cart cleared")
    except ApiError as e:
        session.notices.error(f"Failed to clear cart: {e.message}")
    return RedirectResponse("/cart", status_code=303)


def checkout_form(address: Optional[dict] = None, errors: Optional[dict] = None, error: Optional[str] = None) -> str:
    address = address or {}
    fields = [
        ("fullName", "Full name"), ("phoneNumber", "Phone"), ("addressLine1", "Address"),
        ("addressLine2", "Address line 2"), ("city", "City"), ("state", "State"),
        ("postalCode", "Postal code"), ("country", "Country"),
    ]
    inputs = "".join(
        f"{label}: <input name='{name}' value='{esc(address.get(name))}'><br>" for name, label in fields
    )
    return f"""
    {alert(error)}{field_errors(errors)}
    <form method="post" action="/checkout">
        {inputs}
        Discount code: <input name="discount_code" value="{esc(address.get('discount_code'))}"><br>
        <label><input type="checkbox" name="use_loyalty_points" value="yes"> Use loyalty points</label><br>
        Notes: <textarea name="notes"></textarea><br>
        Payment: Cash on delivery<br>
        <button type="submit">Place order</button>
    </form>
    """


@app.get("/checkout", response_class=HTMLResponse)
def checkout_page(session: ConsoleSession = Depends(require_user)):
    return render(session, "Checkout", checkout_form())


@app.post("/checkout")
async def checkout(request: Request, session: ConsoleSession = Depends(require_user)):
    form = await request.form()
    address = {
        key: (form.get(key) or "").strip()
        for key in ("fullName", "phoneNumber", "addressLine1", "addressLine2",
                    "city", "state", "postalCode", "country")
    }
    discount_code = (form.get("discount_code") or "").strip() or None
    cart_service = CartService(session.api)

    try:
        cart = cart_service.get_cart()
        if not cart.get("items"):
            return render(session, "Checkout", alert("Your cart is empty."), status_code=400)

        discount_amount = 0
        if discount_code:
            discount = cart_service.verify_discount(discount_code) or {}
            discount_amount = discount.get("discountAmount") or discount.get("amount") or 0

        points = 0
        if form.get("use_loyalty_points") == "yes":
            points = loyalty_points_to_use(
                cart_service.loyalty_points(), float(cart.get("subtotal") or 0), discount_amount
            )

        order = OrderService(session.api).place_order(
            address,
            discount_code=discount_code,
            loyalty_points_used=points,
            notes=(form.get("notes") or "").strip(),
        )
    except ValidationError as e:
        return render(session, "Checkout", checkout_form({**address, "discount_code": discount_code}, errors=e.errors),
                      status_code=400)
    except ApiError as e:
        print(f"❌ Checkout failed: {e.message}")
        return render(session, "Checkout", checkout_form({**address, "discount_code": discount_code}, error=e.message),
                      status_code=400)

    session.notices.success(f"Order {order.get('orderNumber')} placed successfully")
    return RedirectResponse(f"/orders/{entity_id(order)}", status_code=303)


# ============================================================
# CUSTOMER ORDERS
# ============================================================

@app.get("/orders", response_class=HTMLResponse)
def orders_page(page: str = "1", status: str = "", session: ConsoleSession = Depends(require_user)):
    try:
        data = OrderService(session.api).list_orders(page=parse_page(page), status=status or None)
    except ApiError as e:
        return render(session, "My orders", alert(f"Failed to load orders: {e.message}"))

    orders = data.get("orders") or []
    rows = "".join(
        f"<tr><td><a href='/orders/{esc(entity_id(o))}'>#{esc(o.get('orderNumber'))}</a></td>"
        f"<td>{format_date(o.get('createdAt'))}</td>"
        f"<td>{esc(format_status(current_status(o)))}</td>"
        f"<td>{format_price(o.get('total'))}</td></tr>"
        for o in orders
    ) or "<tr><td colspan='4'>No orders yet.</td></tr>"
    body = f"""
    <form method="get" action="/orders">
        <select name="status" onchange="this.form.submit()">
            <option value="">-- All statuses --</option>
            {options(ORDER_STATUSES, status, {s: format_status(s) for s in ORDER_STATUSES})}
        </select>
    </form>
    <table border="1" cellpadding="6">
        <tr><th>Order</th><th>Placed</th><th>Status</th><th>Total</th></tr>
        {rows}
    </table>
    {pagination('/orders', data.get('pagination') or {}, {'status': status})}
    """
    return render(session, "My orders", body)


def order_items_table(order: dict) -> str:
    rows = "".join(
        f"<tr><td>{esc(it.get('productName'))}</td><td>{esc(it.get('variantName'))}</td>"
        f"<td>{format_price(it.get('price'))}</td><td>{esc(it.get('quantity'))}</td>"
        f"<td>{format_price(it.get('totalPrice'))}</td></tr>"
        for it in order.get("items") or []
    )
    return f"""
    <table border="1" cellpadding="6">
        <tr><th>Product</th><th>Variant</th><th>Price</th><th>Qty</th><th>Total</th></tr>
        {rows}
    </table>
    """


def order_summary(order: dict) -> str:
    address = order.get("shippingAddress") or {}
    discount = ""
    if order.get("discountAmount"):
        discount = f"<li>Discount ({esc(order.get('discountCode'))}): -{format_price(order.get('discountAmount'))}</li>"
    points = ""
    if order.get("loyaltyPointsUsed"):
        points = f"<li>Loyalty points used: {esc(order.get('loyaltyPointsUsed'))}</li>"
    return f"""
    <ul>
        <li>Subtotal: {format_price(order.get('subtotal'))}</li>
        <li>Shipping: {format_price(order.get('shippingFee'))}</li>
        <li>Tax: {format_price(order.get('tax'))}</li>
        {discount}{points}
        <li><strong>Total: {format_price(order.get('total'))}</strong></li>
        <li>Payment: {esc(order.get('paymentStatus'))}</li>
        <li>Loyalty points earned: {esc(order.get('loyaltyPointsEarned') or 0)}</li>
    </ul>
    <h3>Shipping address</h3>
    <p>{esc(address.get('fullName'))}, {esc(address.get('phoneNumber'))}<br>
    {esc(address.get('addressLine1'))} {esc(address.get('addressLine2'))}<br>
    {esc(address.get('city'))} {esc(address.get('state'))} {esc(address.get('postalCode'))}<br>
    {esc(address.get('country'))}</p>
    """


def history_table(history: list) -> str:
    rows = "".join(
        f"<tr><td>{esc(format_status(h.get('status')))}</td><td>{esc(h.get('note') or '-')}</td>"
        f"<td>{format_date(h.get('createdAt'))}</td></tr>"
        for h in history
    ) or "<tr><td colspan='3'>No status history available.</td></tr>"
    return f"""
    <table border="1" cellpadding="6">
        <tr><th>Status</th><th>Note</th><th>Date</th></tr>
        {rows}
    </table>
    """


def customer_order_body(order: dict, tracking: Optional[dict] = None, error: Optional[str] = None) -> str:
    order_id = esc(entity_id(order))
    if tracking is not None:
        history = history_table(tracking.get("statusHistory") or [])
    else:
        history = f"<p><a href='/orders/{order_id}?tracking=1'>View tracking</a></p>"

    cancel = ""
    if can_cancel(order):
        cancel = f"""
        <h3>Cancel order</h3>
        <form method="post" action="/orders/{order_id}/cancel">
            Reason: <textarea name="reason"></textarea><br>
            <button type="submit">Cancel order</button>
        </form>
        """
    return f"""
    {alert(error)}
    <p>Placed on {format_date(order.get('createdAt'))}: <strong>{esc(format_status(current_status(order)))}</strong></p>
    {order_items_table(order)}
    {order_summary(order)}
    <h3>Tracking</h3>
    {history}
    {cancel}
    <p><a href="/orders">Back to orders</a></p>
    """


@app.get("/orders/{order_id}", response_class=HTMLResponse)
def order_detail(order_id: str, tracking: bool = False, session: ConsoleSession = Depends(require_user)):
    service = OrderService(session.api)
    try:
        order = service.get_order(order_id)
    except ApiError as e:
        return render(session, "Order", alert(f"Failed to load order details: {e.message}"), status_code=404)

    tracking_data = None
    error = None
    if tracking:
        try:
            tracking_data = service.get_tracking(order_id) or {}
        except ApiError as e:
            error = f"Failed to load tracking: {e.message}"
    return render(session, f"Order #{order.get('orderNumber')}", customer_order_body(order, tracking_data, error))


@app.post("/orders/{order_id}/cancel")
def cancel_order(order_id: str, reason: str = Form(""), session: ConsoleSession = Depends(require_user)):
    service = OrderService(session.api)
    try:
        order = service.get_order(order_id)
    except ApiError as e:
        return render(session, "Order", alert(f"Failed to load order details: {e.message}"), status_code=404)

    try:
        service.cancel_order(order, reason)
    except (ValidationError, ApiError) as e:
        print(f"❌ Cancel order {order_id} failed: {e}")
        return render(session, f"Order #{order.get('orderNumber')}",
                      customer_order_body(order, error=str(e)), status_code=400)

    session.notices.success("Order cancelled")
    return RedirectResponse(f"/orders/{order_id}", status_code=303)


# ============================================================
# RUN THE APP
# ============================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
