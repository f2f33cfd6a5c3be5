# ============================================================
# admin.py — Back-office routes (role=admin only)
# ============================================================
# GET  /admin                         → Dashboard (partial failures)
# GET  /admin/revenue                 → Revenue chart data
# /admin/orders/...                   → Order list, detail, status
# /admin/products/...                 → Product list and the editor
#      .../variants/...               → VariantsManager
#      .../images/...                 → ImagesManager
# /admin/discounts/...                → Discount codes
# /admin/users/...                    → User management
# ============================================================

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse

from api import entity_id
from dashboard import load_dashboard
from deps import confirm_page, confirmation, render, require_admin
from discounts import DISCOUNT_TYPES, DiscountForm, DiscountService, can_delete, generate_code
from errors import ApiError, ValidationError
from images import VIEW_MODES, ImageUpload
from orders import (
    ORDER_STATUSES,
    AdminOrderService,
    current_status,
    format_status,
    get_available_status_options,
    is_terminal,
    parse_page,
    status_history,
)
from products import SECTIONS, BasicInfo, Pricing, ProductAdminService, ProductEditor, parse_tags
from session import ConsoleSession
from users import ROLES, STATUSES, UserAdminService, UserForm
from variants import VariantForm, attribute_value_options
from views import alert, esc, field_errors, format_date, format_price, options, pagination

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def back(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


# ============================================================
# DASHBOARD
# ============================================================

@router.get("", response_class=HTMLResponse)
def dashboard(session: ConsoleSession = Depends(require_admin)):
    data = load_dashboard(session.api)

    order_stats = ""
    if data.order_stats is not None:
        counts = "".join(
            f"<li>{esc(format_status(status))}: {esc(count)}</li>"
            for status, count in data.status_counts.items()
        )
        order_stats = f"""
        <h2>Orders</h2>
        <p>Total orders: {esc(data.order_stats.get('totalOrders') or 0)}
        | Revenue: {format_price(data.order_stats.get('totalRevenue'))}</p>
        <ul>{counts}</ul>
        """

    best_sellers = ""
    if data.best_sellers:
        rows = "".join(
            f"<tr><td>{esc(p.get('name'))}</td><td>{esc(p.get('soldCount') or p.get('totalSold') or 0)}</td></tr>"
            for p in data.best_sellers
        )
        best_sellers = f"""
        <h2>Best selling products</h2>
        <table border="1" cellpadding="6"><tr><th>Product</th><th>Sold</th></tr>{rows}</table>
        """

    user_stats = ""
    if data.user_stats is not None:
        user_stats = f"""
        <h2>Users</h2>
        <p>Total users: {esc(data.user_stats.get('totalUsers') or 0)}
        | New this month: {esc(data.user_stats.get('newUsers') or 0)}</p>
        """

    body = f"""
    {alert(data.error)}
    <p><a href="/admin/orders">Orders</a> | <a href="/admin/products">Products</a> |
    <a href="/admin/discounts">Discounts</a> | <a href="/admin/users">Users</a> |
    <a href="/admin/revenue">Revenue</a></p>
    {order_stats}{best_sellers}{user_stats}
    """
    return render(session, "Dashboard", body)


@router.get("/revenue", response_class=HTMLResponse)
def revenue(
    timeframe: str = "week",
    start_date: str = "",
    end_date: str = "",
    session: ConsoleSession = Depends(require_admin)
):
    try:
        chart = AdminOrderService(session.api).revenue_chart(timeframe, start_date or None, end_date or None)
    except ValidationError as e:
        return render(session, "Revenue", field_errors(e.errors), status_code=400)
    except ApiError as e:
        return render(session, "Revenue", alert(f"Failed to load revenue: {e.message}"))

    points = chart if isinstance(chart, list) else (chart or {}).get("data") or []
    rows = "".join(
        f"<tr><td>{esc(p.get('date') or p.get('label'))}</td><td>{format_price(p.get('revenue'))}</td>"
        f"<td>{esc(p.get('orders') or 0)}</td></tr>"
        for p in points
    ) or "<tr><td colspan='3'>No revenue in this period.</td></tr>"
    body = f"""
    <form method="get" action="/admin/revenue">
        <select name="timeframe">{options(["week", "month", "year"], timeframe)}</select>
        or from <input type="date" name="start_date" value="{esc(start_date)}">
        to <input type="date" name="end_date" value="{esc(end_date)}">
        <button type="submit">Show</button>
    </form>
    <table border="1" cellpadding="6"><tr><th>Date</th><th>Revenue</th><th>Orders</th></tr>{rows}</table>
    """
    return render(session, "Revenue", body)


# ============================================================
# ORDERS
# ============================================================

@router.get("/orders", response_class=HTMLResponse)
def orders_list(
    page: str = "1",
    status: str = "",
    period: str = "",
    session: ConsoleSession = Depends(require_admin)
):
    try:
        data = AdminOrderService(session.api).list_orders(
            page=parse_page(page), status=status or None, period=period or None
        )
    except ApiError as e:
        return render(session, "Orders", alert(f"Failed to load orders: {e.message}"))

    rows = "".join(
        f"<tr><td><a href='/admin/orders/{esc(entity_id(o))}'>#{esc(o.get('orderNumber'))}</a></td>"
        f"<td>{esc((o.get('user') or {}).get('fullName') or (o.get('shippingAddress') or {}).get('fullName'))}</td>"
        f"<td>{format_date(o.get('createdAt'))}</td>"
        f"<td>{esc(format_status(current_status(o)))}</td>"
        f"<td>{format_price(o.get('total'))}</td></tr>"
        for o in data.get("orders") or []
    ) or "<tr><td colspan='5'>No orders found.</td></tr>"

    filters = {"status": status, "period": period}
    body = f"""
    <form method="get" action="/admin/orders">
        <select name="status"><option value="">-- All statuses --</option>
            {options(ORDER_STATUSES, status, {s: format_status(s) for s in ORDER_STATUSES})}</select>
        <select name="period"><option value="">-- Any time --</option>
            {options(["today", "week", "month", "year"], period)}</select>
        <button type="submit">Filter</button>
    </form>
    <table border="1" cellpadding="6">
        <tr><th>Order</th><th>Customer</th><th>Placed</th><th>Status</th><th>Total</th></tr>
        {rows}
    </table>
    {pagination('/admin/orders', data.get('pagination') or {}, filters)}
    """
    return render(session, "Orders", body)


def admin_order_body(order: Dict[str, Any], error: Optional[str] = None) -> str:
    order_id = esc(entity_id(order))
    status = current_status(order)
    items = "".join(
        f"<tr><td>{esc(it.get('productName'))}</td><td>{esc(it.get('variantName'))}</td>"
        f"<td>{format_price(it.get('price'))}</td><td>{esc(it.get('quantity'))}</td>"
        f"<td>{format_price(it.get('totalPrice'))}</td></tr>"
        for it in order.get("items") or []
    )
    history = "".join(
        f"<tr><td>{esc(format_status(h.get('status')))}</td><td>{esc(h.get('note') or '-')}</td>"
        f"<td>{format_date(h.get('createdAt'))}</td></tr>"
        for h in status_history(order)
    ) or "<tr><td colspan='3'>No status history available.</td></tr>"

    if is_terminal(status):
        update = f"<p>This order is {esc(format_status(status))} and can no longer change status.</p>"
    else:
        choices = get_available_status_options(status)
        update = f"""
        <form method="post" action="/admin/orders/{order_id}/status">
            <select name="status">{options(choices, status, {s: format_status(s) for s in choices})}</select>
            Note: <input name="note">
            <button type="submit">Update status</button>
        </form>
        """
    address = order.get("shippingAddress") or {}
    return f"""
    {alert(error)}
    <p>Status: <strong>{esc(format_status(status))}</strong> | Placed {format_date(order.get('createdAt'))}</p>
    <p>Ship to: {esc(address.get('fullName'))}, {esc(address.get('phoneNumber'))},
    {esc(address.get('addressLine1'))}, {esc(address.get('city'))}, {esc(address.get('country'))}</p>
    <table border="1" cellpadding="6">
        <tr><th>Product</th><th>Variant</th><th>Price</th><th>Qty</th><th>Total</th></tr>
        {items}
    </table>
    <p>Subtotal {format_price(order.get('subtotal'))} | Shipping {format_price(order.get('shippingFee'))}
    | Discount {format_price(order.get('discountAmount'))} | <strong>Total {format_price(order.get('total'))}</strong></p>
    <h3>Update status</h3>
    {update}
    <h3>History</h3>
    <table border="1" cellpadding="6"><tr><th>Status</th><th>Note</th><th>Date</th></tr>{history}</table>
    <p><a href="/admin/orders">Back to orders</a></p>
    """


@router.get("/orders/{order_id}", response_class=HTMLResponse)
def order_detail(order_id: str, session: ConsoleSession = Depends(require_admin)):
    try:
        order = AdminOrderService(session.api).get_order(order_id)
    except ApiError as e:
        return render(session, "Order", alert(f"Failed to load order details: {e.message}"), status_code=404)
    return render(session, f"Order #{order.get('orderNumber')}", admin_order_body(order))


@router.post("/orders/{order_id}/status")
def order_update_status(
    order_id: str,
    status: str = Form(...),
    note: str = Form(""),
    session: ConsoleSession = Depends(require_admin)
):
    service = AdminOrderService(session.api)
    try:
        order = service.get_order(order_id)
    except ApiError as e:
        return render(session, "Order", alert(f"Failed to load order details: {e.message}"), status_code=404)

    try:
        service.update_status(order, status, note)
    except (ValidationError, ApiError) as e:
        print(f"❌ Status update for order {order_id} failed: {e}")
        return render(session, f"Order #{order.get('orderNumber')}",
                      admin_order_body(order, f"Failed to update status: {e}"), status_code=400)

    session.notices.success(f"Order status updated to {format_status(status)}")
    return back(f"/admin/orders/{order_id}")


# ============================================================
# PRODUCTS
# ============================================================

@router.get("/products", response_class=HTMLResponse)
def products_list(
    page: str = "1",
    search: str = "",
    category: str = "",
    status: str = "",
    session: ConsoleSession = Depends(require_admin)
):
    service = ProductAdminService(session.api)
    try:
        data = service.list_products(
            page=parse_page(page), search=search or None, category=category or None, status=status or None
        )
        categories = service.categories()
    except ApiError as e:
        return render(session, "Products", alert(f"Failed to load products: {e.message}"))

    rows = "".join(
        f"<tr><td><a href='/admin/products/{esc(entity_id(p))}/edit'>{esc(p.get('name'))}</a></td>"
        f"<td>{esc(p.get('brand'))}</td><td>{format_price(p.get('basePrice'))}</td>"
        f"<td>{'Active' if p.get('isActive', True) else 'Inactive'}"
        f"<form method='post' action='/admin/products/{esc(entity_id(p))}/status' style='display:inline'>"
        f"<input type='hidden' name='is_active' value='{'no' if p.get('isActive', True) else 'yes'}'>"
        f"<button type='submit'>{'Deactivate' if p.get('isActive', True) else 'Activate'}</button></form></td>"
        f"<td><form method='post' action='/admin/products/{esc(entity_id(p))}/delete'>"
        f"<button type='submit'>Delete</button></form></td></tr>"
        for p in data.get("products") or []
    ) or "<tr><td colspan='5'>No products found.</td></tr>"

    category_ids = [entity_id(c) for c in categories]
    filters = {"search": search, "category": category, "status": status}
    body = f"""
    <p><a href="/admin/products/new">+ New product</a></p>
    <form method="get" action="/admin/products">
        <input name="search" value="{esc(search)}" placeholder="Search">
        <select name="category"><option value="">-- All categories --</option>
            {options(category_ids, category, {entity_id(c): c.get('name') for c in categories})}</select>
        <select name="status"><option value="">-- Any status --</option>
            {options(["active", "inactive"], status)}</select>
        <button type="submit">Filter</button>
    </form>
    <table border="1" cellpadding="6">
        <tr><th>Name</th><th>Brand</th><th>Base price</th><th>Status</th><th></th></tr>
        {rows}
    </table>
    {pagination('/admin/products', data.get('pagination') or {}, filters)}
    """
    return render(session, "Products", body)


def basic_from_form(form) -> BasicInfo:
    return BasicInfo(
        name=(form.get("name") or "").strip(),
        brand=(form.get("brand") or "").strip(),
        description=form.get("description") or "",
        short_description=form.get("short_description") or "",
        categories=[c for c in form.getlist("categories") if c],
        tags=parse_tags(form.get("tags") or ""),
        is_active=form.get("is_active") == "yes",
        is_featured=form.get("is_featured") == "yes",
        is_new_product=form.get("is_new_product") == "yes",
        is_best_seller=form.get("is_best_seller") == "yes",
    )


def checkbox(name: str, label: str, checked: bool) -> str:
    return f"<label><input type='checkbox' name='{name}' value='yes' {'checked' if checked else ''}> {label}</label>"


def product_fields(basic: BasicInfo, pricing: Pricing, categories: List[Dict[str, Any]]) -> str:
    category_options = "".join(
        f"<option value='{esc(entity_id(c))}' {'selected' if entity_id(c) in basic.categories else ''}>"
        f"{esc(c.get('name'))}</option>"
        for c in categories
    )
    return f"""
    Name: <input name="name" value="{esc(basic.name)}"><br>
    Brand: <input name="brand" value="{esc(basic.brand)}"><br>
    Categories: <select name="categories" multiple>{category_options}</select><br>
    Short description: <input name="short_description" value="{esc(basic.short_description)}"><br>
    Description: <textarea name="description">{esc(basic.description)}</textarea><br>
    Tags: <input name="tags" value="{esc(', '.join(basic.tags))}"><br>
    {checkbox('is_active', 'Active', basic.is_active)}
    {checkbox('is_featured', 'Featured', basic.is_featured)}
    {checkbox('is_new_product', 'New', basic.is_new_product)}
    {checkbox('is_best_seller', 'Best seller', basic.is_best_seller)}<br>
    Base price: <input name="base_price" value="{esc(pricing.base_price)}"><br>
    {checkbox('has_variants', 'This product has variants', pricing.has_variants)}<br>
    """


def load_categories(session: ConsoleSession) -> List[Dict[str, Any]]:
    try:
        return ProductAdminService(session.api).categories()
    except ApiError as e:
        session.notices.warning(f"Failed to load categories: {e.message}")
        return []


def new_product_body(basic: BasicInfo, pricing: Pricing, categories, errors=None, error=None) -> str:
    return f"""
    {alert(error)}{field_errors(errors)}
    <form method="post" action="/admin/products/new">
        {product_fields(basic, pricing, categories)}
        <button type="submit">Create product</button>
    </form>
    """


@router.get("/products/new", response_class=HTMLResponse)
def product_new_page(session: ConsoleSession = Depends(require_admin)):
    return render(session, "New product", new_product_body(BasicInfo(), Pricing(), load_categories(session)))


@router.post("/products/new")
async def product_create(request: Request, session: ConsoleSession = Depends(require_admin)):
    form = await request.form()
    basic = basic_from_form(form)
    pricing = Pricing(base_price=form.get("base_price"), has_variants=form.get("has_variants") == "yes")
    try:
        product = ProductAdminService(session.api).create_product(basic, pricing)
    except ValidationError as e:
        body = new_product_body(basic, pricing, load_categories(session), errors=e.errors)
        return render(session, "New product", body, status_code=400)
    except ApiError as e:
        body = new_product_body(basic, pricing, load_categories(session), error=f"Failed to create product: {e.message}")
        return render(session, "New product", body, status_code=400)

    session.notices.success("Product created. Add images and variants to complete it.")
    return back(f"/admin/products/{entity_id(product)}/edit")


@router.post("/products/{product_id}/status")
def product_status(product_id: str, is_active: str = Form(...), session: ConsoleSession = Depends(require_admin)):
    try:
        ProductAdminService(session.api).set_status(product_id, is_active == "yes")
        session.notices.success("Product status updated")
    except ApiError as e:
        session.notices.error(f"Failed to update product status: {e.message}")
    return back("/admin/products")


@router.post("/products/{product_id}/delete")
def product_delete(product_id: str, confirmed: str = Form(""), session: ConsoleSession = Depends(require_admin)):
    confirm, asked = confirmation(confirmed == "yes")
    try:
        deleted = ProductAdminService(session.api).delete_product(product_id, confirm)
    except ApiError as e:
        session.notices.error(f"Failed to delete product: {e.message}")
        return back("/admin/products")
    if not deleted:
        return confirm_page(session, asked[0], f"/admin/products/{product_id}/delete", "/admin/products")
    session.notices.success("Product deleted successfully")
    return back("/admin/products")


# ── Product editor ───────────────────────────────────────────

def load_editor(session: ConsoleSession, product_id: str) -> ProductEditor:
    return ProductEditor.load(session.api, product_id, session.notices)


def completion_html(editor: ProductEditor) -> str:
    badges = " ".join(
        f"<span class='badge {'done' if editor.completion[s] else 'todo'}'>"
        f"{'✔' if editor.completion[s] else '✖'} {s.capitalize()}</span>"
        for s in SECTIONS
    )
    warnings = "".join(f"<li>{esc(w)}</li>" for w in editor.warnings())
    return f"""
    <p>Completion: <strong>{editor.completion_percentage}%</strong> {badges}</p>
    {f"<ul class='warnings'>{warnings}</ul>" if warnings else ""}
    """


def images_html(editor: ProductEditor, view: str, variant_filter: Optional[str]) -> str:
    product_id = esc(editor.product_id)
    variant_names = {entity_id(v): v.get("name") for v in editor.variants.variants}
    shown = editor.images.visible(view, variant_filter)
    rows = []
    for index, img in enumerate(editor.images.images):
        if img not in shown:
            continue
        image_id = esc(entity_id(img))
        owner = variant_names.get(str(img.get("variantId")), "Variant") if img.get("variantId") else "Product"
        main = "<strong>Main</strong>" if img.get("isMain") else (
            f"<form method='post' action='/admin/products/{product_id}/images/{image_id}/main'>"
            f"<button type='submit'>Set main</button></form>"
        )
        rows.append(
            f"<tr><td><img src='{esc(img.get('imageUrl') or img.get('url'))}' width='80'></td>"
            f"<td>{esc(owner)}</td><td>{main}</td>"
            f"<td><form method='post' action='/admin/products/{product_id}/images/{image_id}/alt'>"
            f"<input name='alt' value='{esc(img.get('alt'))}'><button type='submit'>Save</button></form></td>"
            f"<td><form method='post' action='/admin/products/{product_id}/images/reorder'>"
            f"<input type='hidden' name='from_index' value='{index}'>"
            f"<input name='to_index' value='{index}' size='2'><button type='submit'>Move</button></form></td>"
            f"<td><form method='post' action='/admin/products/{product_id}/images/{image_id}/delete'>"
            f"<button type='submit'>Delete</button></form></td></tr>"
        )
    view_links = " | ".join(
        f"<a href='/admin/products/{product_id}/edit?view={m}'>{m.capitalize()}</a>" for m in VIEW_MODES
    )
    variant_ids = list(variant_names)
    return f"""
    <h2>Images</h2>
    <p>Show: {view_links}</p>
    <table border="1" cellpadding="6">
        <tr><th></th><th>For</th><th>Main</th><th>Alt text</th><th>Position</th><th></th></tr>
        {''.join(rows) or "<tr><td colspan='6'>No images.</td></tr>"}
    </table>
    <form method="post" action="/admin/products/{product_id}/images" enctype="multipart/form-data">
        <input type="file" name="files" multiple accept="image/*">
        <select name="variant_id"><option value="">Product image</option>
            {options(variant_ids, None, variant_names)}</select>
        <button type="submit">Upload</button>
    </form>
    """


def variant_form_html(
        product_id: str,
        form: VariantForm,
        action: str,
        value_options: Dict[str, List[str]],
        errors: Optional[Dict[str, str]] = None
) -> str:
    attrs = "".join(
        f"<input name='attr_key' value='{esc(key)}' list='attr-{esc(key)}'> = "
        f"<input name='attr_value' value='{esc(value)}' list='attr-{esc(key)}'>"
        f"<datalist id='attr-{esc(key)}'>{options(value_options.get(key, []))}</datalist><br>"
        for key, value in form.attributes.items()
    )
    return f"""
    {field_errors(errors)}
    <form method="post" action="/admin/products/{esc(product_id)}/variants{esc(action)}">
        Name: <input name="name" value="{esc(form.name)}">
        SKU: <input name="sku" value="{esc(form.sku)}"><br>
        Price: <input name="price" value="{esc(form.price)}">
        Sale price: <input name="sale_price" value="{esc(form.sale_price)}">
        Inventory: <input name="inventory" value="{esc(form.inventory)}">
        {checkbox('is_active', 'Active', form.is_active)}<br>
        {attrs}
        New attribute: <input name="attr_key"> = <input name="attr_value"><br>
        <button type="submit">Save variant</button>
    </form>
    """


def variants_html(
        editor: ProductEditor,
        edit_variant: Optional[str] = None,
        form: Optional[VariantForm] = None,
        errors: Optional[Dict[str, str]] = None
) -> str:
    product_id = editor.product_id
    value_options = attribute_value_options(editor.variants.variants)
    rows = "".join(
        f"<tr><td>{esc(v.get('name'))}</td><td>{esc(v.get('sku'))}</td>"
        f"<td>{format_price(v.get('price'))}</td><td>{format_price(v.get('salePrice')) if v.get('salePrice') else '-'}</td>"
        f"<td>{esc(v.get('inventory'))}</td>"
        f"<td>{esc(', '.join(f'{k}: {val}' for k, val in (v.get('attributes') or {}).items()))}</td>"
        f"<td><a href='/admin/products/{esc(product_id)}/edit?variant={esc(entity_id(v))}'>Edit</a>"
        f"<form method='post' action='/admin/products/{esc(product_id)}/variants/{esc(entity_id(v))}/delete'>"
        f"<button type='submit'>Delete</button></form></td></tr>"
        for v in editor.variants.variants
    ) or "<tr><td colspan='7'>No variants yet.</td></tr>"

    if edit_variant:
        variant = editor.variants.find(edit_variant)
        form = form or (VariantForm.from_variant(variant) if variant else None)
        title = "Edit variant"
        action = f"/{edit_variant}"
    else:
        form = form or editor.variants.new_form()
        title = "Add variant"
        action = ""

    editor_form = variant_form_html(product_id, form, action, value_options, errors) if form else ""
    return f"""
    <h2>Variants</h2>
    <table border="1" cellpadding="6">
        <tr><th>Name</th><th>SKU</th><th>Price</th><th>Sale</th><th>Stock</th><th>Attributes</th><th></th></tr>
        {rows}
    </table>
    <h3>{title}</h3>
    {editor_form}
    """


def editor_body(
        editor: ProductEditor,
        categories: List[Dict[str, Any]],
        view: str = "all",
        variant_filter: Optional[str] = None,
        edit_variant: Optional[str] = None,
        product_errors: Optional[Dict[str, str]] = None,
        variant_form: Optional[VariantForm] = None,
        variant_errors: Optional[Dict[str, str]] = None
) -> str:
    return f"""
    {completion_html(editor)}
    <h2>Basic info &amp; pricing</h2>
    {field_errors(product_errors)}
    <form method="post" action="/admin/products/{esc(editor.product_id)}/edit">
        {product_fields(editor.basic, editor.pricing, categories)}
        <button type="submit">Save product</button>
    </form>
    {images_html(editor, view, variant_filter)}
    {variants_html(editor, edit_variant, variant_form, variant_errors)}
    <p><a href="/admin/products">Back to products</a></p>
    """


def editor_title(editor: ProductEditor) -> str:
    return f"Edit product: {editor.basic.name or editor.product_id}"


@router.get("/products/{product_id}/edit", response_class=HTMLResponse)
def product_edit_page(
    product_id: str,
    view: str = "all",
    variant_filter: str = "",
    variant: str = "",
    session: ConsoleSession = Depends(require_admin)
):
    try:
        editor = load_editor(session, product_id)
    except ApiError as e:
        return render(session, "Edit product", alert(f"Failed to load product: {e.message}"), status_code=404)
    if view not in VIEW_MODES:
        view = "all"
    body = editor_body(editor, load_categories(session), view, variant_filter or None, variant or None)
    return render(session, editor_title(editor), body)


@router.post("/products/{product_id}/edit")
async def product_save(product_id: str, request: Request, session: ConsoleSession = Depends(require_admin)):
    form = await request.form()
    try:
        editor = load_editor(session, product_id)
    except ApiError as e:
        return render(session, "Edit product", alert(f"Failed to load product: {e.message}"), status_code=404)

    basic = basic_from_form(form)
    editor.update_basic(**vars(basic))
    editor.update_pricing(base_price=form.get("base_price"), has_variants=form.get("has_variants") == "yes")
    try:
        editor.save()
    except ValidationError as e:
        body = editor_body(editor, load_categories(session), product_errors=e.errors)
        return render(session, editor_title(editor), body, status_code=400)
    except ApiError:
        body = editor_body(editor, load_categories(session))
        return render(session, editor_title(editor), body, status_code=400)
    return back(f"/admin/products/{product_id}/edit")


# ── Variants ─────────────────────────────────────────────────

def variant_form_from(form) -> VariantForm:
    attributes = {}
    for key, value in zip(form.getlist("attr_key"), form.getlist("attr_value")):
        key = (key or "").strip()
        if key:
            attributes[key] = (value or "").strip()
    return VariantForm(
        name=form.get("name") or "",
        sku=form.get("sku") or "",
        price=form.get("price") or "",
        sale_price=form.get("sale_price") or "",
        inventory=form.get("inventory") or "0",
        is_active=form.get("is_active") == "yes",
        attributes=attributes,
    )


async def save_variant(product_id: str, variant_id: Optional[str], request: Request, session: ConsoleSession):
    form = await request.form()
    try:
        editor = load_editor(session, product_id)
    except ApiError as e:
        return render(session, "Edit product", alert(f"Failed to load product: {e.message}"), status_code=404)

    variant_form = variant_form_from(form)
    try:
        if variant_id:
            editor.variants.update(variant_id, variant_form)
        else:
            editor.variants.create(variant_form)
    except ValidationError as e:
        body = editor_body(editor, load_categories(session), edit_variant=variant_id,
                           variant_form=variant_form, variant_errors=e.errors)
        return render(session, editor_title(editor), body, status_code=400)
    except ApiError:
        body = editor_body(editor, load_categories(session), edit_variant=variant_id, variant_form=variant_form)
        return render(session, editor_title(editor), body, status_code=400)
    return back(f"/admin/products/{product_id}/edit")


@router.post("/products/{product_id}/variants")
async def variant_create(product_id: str, request: Request, session: ConsoleSession = Depends(require_admin)):
    return await save_variant(product_id, None, request, session)


@router.post("/products/{product_id}/variants/{variant_id}")
async def variant_update(
    product_id: str,
    variant_id: str,
    request: Request,
    session: ConsoleSession = Depends(require_admin)
):
    return await save_variant(product_id, variant_id, request, session)


@router.post("/products/{product_id}/variants/{variant_id}/delete")
def variant_delete(
    product_id: str,
    variant_id: str,
    confirmed: str = Form(""),
    session: ConsoleSession = Depends(require_admin)
):
    edit_url = f"/admin/products/{product_id}/edit"
    try:
        editor = load_editor(session, product_id)
    except ApiError as e:
        session.notices.error(f"Failed to load product: {e.message}")
        return back("/admin/products")

    confirm, asked = confirmation(confirmed == "yes")
    try:
        deleted = editor.variants.delete(variant_id, confirm)
    except ValidationError as e:
        session.notices.error(e.message)
        return back(edit_url)
    except ApiError:
        return back(edit_url)
    if not deleted:
        return confirm_page(session, asked[0], f"/admin/products/{product_id}/variants/{variant_id}/delete", edit_url)
    return back(edit_url)


# ── Images ───────────────────────────────────────────────────

@router.post("/products/{product_id}/images")
async def images_upload(
    product_id: str,
    files: List[UploadFile] = File(...),
    variant_id: str = Form(""),
    session: ConsoleSession = Depends(require_admin)
):
    edit_url = f"/admin/products/{product_id}/edit"
    try:
        editor = load_editor(session, product_id)
    except ApiError as e:
        session.notices.error(f"Failed to load product: {e.message}")
        return back("/admin/products")

    uploads = []
    for f in files:
        if not f.filename:
            continue
        uploads.append(ImageUpload(f.filename, await f.read(), f.content_type or "application/octet-stream"))
    if not uploads:
        session.notices.warning("Choose at least one image to upload")
        return back(edit_url)

    editor.images.upload(uploads, variant_id or None)
    editor.images.ensure_main()
    return back(edit_url)


def image_action(session: ConsoleSession, product_id: str, action) -> RedirectResponse:
    """Run one optimistic image action; failures are already on the notice board."""
    edit_url = f"/admin/products/{product_id}/edit"
    try:
        editor = load_editor(session, product_id)
    except ApiError as e:
        session.notices.error(f"Failed to load product: {e.message}")
        return back("/admin/products")
    try:
        action(editor.images)
    except ValidationError as e:
        session.notices.error(e.message)
    except IndexError as e:
        session.notices.error(str(e))
    except ApiError:
        pass
    return back(edit_url)


@router.post("/products/{product_id}/images/reorder")
def image_reorder(
    product_id: str,
    from_index: int = Form(...),
    to_index: int = Form(...),
    session: ConsoleSession = Depends(require_admin)
):
    return image_action(session, product_id, lambda images: images.reorder(from_index, to_index))


@router.post("/products/{product_id}/images/{image_id}/main")
def image_set_main(product_id: str, image_id: str, session: ConsoleSession = Depends(require_admin)):
    return image_action(session, product_id, lambda images: images.set_main(image_id))


@router.post("/products/{product_id}/images/{image_id}/alt")
def image_alt(product_id: str, image_id: str, alt: str = Form(""), session: ConsoleSession = Depends(require_admin)):
    return image_action(session, product_id, lambda images: images.update_alt(image_id, alt))


@router.post("/products/{product_id}/images/{image_id}/delete")
def image_delete(
    product_id: str,
    image_id: str,
    confirmed: str = Form(""),
    session: ConsoleSession = Depends(require_admin)
):
    edit_url = f"/admin/products/{product_id}/edit"
    try:
        editor = load_editor(session, product_id)
    except ApiError as e:
        session.notices.error(f"Failed to load product: {e.message}")
        return back("/admin/products")

    confirm, asked = confirmation(confirmed == "yes")
    try:
        deleted = editor.images.delete(image_id, confirm)
    except ValidationError as e:
        session.notices.error(e.message)
        return back(edit_url)
    except ApiError:
        return back(edit_url)
    if not deleted:
        return confirm_page(session, asked[0], f"/admin/products/{product_id}/images/{image_id}/delete", edit_url)
    editor.images.ensure_main()
    return back(edit_url)


# ============================================================
# DISCOUNTS
# ============================================================

def discount_form_html(form: DiscountForm, errors=None, error=None) -> str:
    return f"""
    {alert(error)}{field_errors(errors)}
    <form method="post" action="/admin/discounts">
        Code: <input name="code" value="{esc(form.code)}" maxlength="5">
        <a href="/admin/discounts?generate=1">Generate</a><br>
        Type: <select name="discount_type">{options(DISCOUNT_TYPES, form.discount_type)}</select>
        Value: <input name="discount_value" value="{esc(form.discount_value)}">
        Usage limit: <input name="usage_limit" value="{esc(form.usage_limit)}"><br>
        <button type="submit">Create discount code</button>
    </form>
    """


def discounts_body(session: ConsoleSession, page: int, form: DiscountForm, errors=None, error=None) -> str:
    try:
        codes, page_data = DiscountService(session.api).list_discounts(page=page)
    except ApiError as e:
        return alert(f"Failed to load discount codes: {e.message}") + discount_form_html(form, errors, error)

    rows = "".join(
        f"<tr><td><a href='/admin/discounts/{esc(d.get('code'))}'>{esc(d.get('code'))}</a></td>"
        f"<td>{esc(d.get('discountValue'))}{'%' if d.get('discountType') == 'percentage' else ''}</td>"
        f"<td>{esc(d.get('usedCount') or 0)} / {esc(d.get('usageLimit'))}</td>"
        f"<td>{'Active' if d.get('isActive', True) else 'Inactive'}"
        f"<form method='post' action='/admin/discounts/{esc(d.get('code'))}/toggle' style='display:inline'>"
        f"<button type='submit'>Toggle</button></form></td>"
        f"<td>{format_date(d.get('createdAt'))}</td><td>"
        + (
            f"<form method='post' action='/admin/discounts/{esc(d.get('code'))}/delete'>"
            f"<button type='submit'>Delete</button></form>"
            if can_delete(d) else "Used"
        )
        + "</td></tr>"
        for d in codes
    ) or "<tr><td colspan='6'>No discount codes yet.</td></tr>"
    return f"""
    {discount_form_html(form, errors, error)}
    <table border="1" cellpadding="6">
        <tr><th>Code</th><th>Value</th><th>Used</th><th>Status</th><th>Created</th><th></th></tr>
        {rows}
    </table>
    {pagination('/admin/discounts', page_data)}
    """


@router.get("/discounts", response_class=HTMLResponse)
def discounts_list(page: str = "1", generate: bool = False, session: ConsoleSession = Depends(require_admin)):
    form = DiscountForm(code=generate_code() if generate else "")
    return render(session, "Discount codes", discounts_body(session, parse_page(page), form))


@router.post("/discounts")
def discount_create(
    code: str = Form(""),
    discount_type: str = Form("percentage"),
    discount_value: str = Form(""),
    usage_limit: str = Form(""),
    session: ConsoleSession = Depends(require_admin)
):
    form = DiscountForm(code.strip().upper(), discount_type, discount_value, usage_limit)
    try:
        DiscountService(session.api).create(form)
    except ValidationError as e:
        return render(session, "Discount codes", discounts_body(session, 1, form, errors=e.errors), status_code=400)
    except ApiError as e:
        body = discounts_body(session, 1, form, error=f"Failed to create discount code: {e.message}")
        return render(session, "Discount codes", body, status_code=400)
    session.notices.success(f"Discount code {form.code} created")
    return back("/admin/discounts")


@router.get("/discounts/{code}", response_class=HTMLResponse)
def discount_detail(code: str, session: ConsoleSession = Depends(require_admin)):
    try:
        discount, orders = DiscountService(session.api).get_details(code)
    except ApiError as e:
        return render(session, "Discount code", alert(f"Failed to load discount code: {e.message}"), status_code=404)

    rows = "".join(
        f"<tr><td><a href='/admin/orders/{esc(entity_id(o))}'>#{esc(o.get('orderNumber'))}</a></td>"
        f"<td>{format_price(o.get('discountAmount'))}</td><td>{format_date(o.get('createdAt'))}</td></tr>"
        for o in orders
    ) or "<tr><td colspan='3'>Not used yet.</td></tr>"
    body = f"""
    <p>Type: {esc(discount.get('discountType'))} | Value: {esc(discount.get('discountValue'))}
    | Used {esc(discount.get('usedCount') or 0)} of {esc(discount.get('usageLimit'))}
    | {'Active' if discount.get('isActive', True) else 'Inactive'}</p>
    <table border="1" cellpadding="6"><tr><th>Order</th><th>Discount</th><th>Date</th></tr>{rows}</table>
    <p><a href="/admin/discounts">Back to discount codes</a></p>
    """
    return render(session, f"Discount code {code}", body)


@router.post("/discounts/{code}/toggle")
def discount_toggle(code: str, session: ConsoleSession = Depends(require_admin)):
    try:
        DiscountService(session.api).toggle(code)
        session.notices.success(f"Discount code {code} updated")
    except ApiError as e:
        session.notices.error(f"Failed to update discount code: {e.message}")
    return back("/admin/discounts")


@router.post("/discounts/{code}/delete")
def discount_delete(code: str, confirmed: str = Form(""), session: ConsoleSession = Depends(require_admin)):
    service = DiscountService(session.api)
    confirm, asked = confirmation(confirmed == "yes")
    try:
        discount, _ = service.get_details(code)
        deleted = service.delete(discount or {"code": code}, confirm)
    except ValidationError as e:
        session.notices.warning(e.message)
        return back("/admin/discounts")
    except ApiError as e:
        session.notices.error(f"Failed to delete discount code: {e.message}")
        return back("/admin/discounts")
    if not deleted:
        return confirm_page(session, asked[0], f"/admin/discounts/{code}/delete", "/admin/discounts")
    session.notices.success(f"Discount code {code} deleted")
    return back("/admin/discounts")


# ============================================================
# USERS
# ============================================================

@router.get("/users", response_class=HTMLResponse)
def users_list(
    page: str = "1",
    search: str = "",
    role: str = "",
    status: str = "",
    session: ConsoleSession = Depends(require_admin)
):
    try:
        data = UserAdminService(session.api).list_users(
            page=parse_page(page), search=search or None, role=role or None, status=status or None
        )
    except ApiError as e:
        return render(session, "Users", alert(f"Failed to load users: {e.message}"))

    rows = "".join(
        f"<tr><td><a href='/admin/users/{esc(entity_id(u))}'>{esc(u.get('fullName'))}</a></td>"
        f"<td>{esc(u.get('email'))}</td><td>{esc(u.get('role'))}</td><td>{esc(u.get('status'))}</td>"
        f"<td>{format_date(u.get('createdAt'))}</td></tr>"
        for u in data.get("users") or []
    ) or "<tr><td colspan='5'>No users found.</td></tr>"
    filters = {"search": search, "role": role, "status": status}
    body = f"""
    <form method="get" action="/admin/users">
        <input name="search" value="{esc(search)}" placeholder="Name or email">
        <select name="role"><option value="">-- Any role --</option>{options(ROLES, role)}</select>
        <select name="status"><option value="">-- Any status --</option>{options(STATUSES, status)}</select>
        <button type="submit">Filter</button>
    </form>
    <table border="1" cellpadding="6">
        <tr><th>Name</th><th>Email</th><th>Role</th><th>Status</th><th>Joined</th></tr>
        {rows}
    </table>
    {pagination('/admin/users', data.get('pagination') or {}, filters)}
    """
    return render(session, "Users", body)


def user_body(user_id: str, form: UserForm, errors=None, error=None) -> str:
    uid = esc(user_id)
    next_status = "inactive" if form.status == "active" else "active"
    return f"""
    {alert(error)}{field_errors(errors)}
    <form method="post" action="/admin/users/{uid}">
        Full name: <input name="full_name" value="{esc(form.full_name)}"><br>
        Email: <input name="email" value="{esc(form.email)}"><br>
        Phone: <input name="phone_number" value="{esc(form.phone_number)}"><br>
        Role: <select name="role">{options(ROLES, form.role)}</select>
        Status: <select name="status">{options(STATUSES, form.status)}</select><br>
        Loyalty points: <input name="loyalty_points" value="{esc(form.loyalty_points)}"><br>
        <button type="submit">Save</button>
    </form>
    <form method="post" action="/admin/users/{uid}/status">
        <input type="hidden" name="status" value="{next_status}">
        <button type="submit">Mark {next_status}</button>
    </form>
    <form method="post" action="/admin/users/{uid}/delete"><button type="submit">Delete user</button></form>
    <p><a href="/admin/users">Back to users</a></p>
    """


@router.get("/users/{user_id}", response_class=HTMLResponse)
def user_detail(user_id: str, session: ConsoleSession = Depends(require_admin)):
    try:
        user = UserAdminService(session.api).get_user(user_id)
    except ApiError as e:
        return render(session, "User", alert(f"Failed to load user: {e.message}"), status_code=404)
    return render(session, user.get("fullName") or "User", user_body(user_id, UserForm.from_user(user)))


@router.post("/users/{user_id}")
def user_update(
    user_id: str,
    full_name: str = Form(""),
    email: str = Form(""),
    phone_number: str = Form(""),
    role: str = Form("customer"),
    status: str = Form("active"),
    loyalty_points: str = Form("0"),
    session: ConsoleSession = Depends(require_admin)
):
    form = UserForm(full_name, email, role, status, phone_number, loyalty_points)
    try:
        UserAdminService(session.api).update_user(user_id, form)
    except ValidationError as e:
        return render(session, "User", user_body(user_id, form, errors=e.errors), status_code=400)
    except ApiError as e:
        return render(session, "User", user_body(user_id, form, error=f"Failed to update user: {e.message}"),
                      status_code=400)
    session.notices.success("User updated successfully")
    return back(f"/admin/users/{user_id}")


@router.post("/users/{user_id}/status")
def user_status(user_id: str, status: str = Form(...), session: ConsoleSession = Depends(require_admin)):
    try:
        UserAdminService(session.api).set_status(user_id, status)
        session.notices.success(f"User marked {status}")
    except (ValidationError, ApiError) as e:
        session.notices.error(f"Failed to update user status: {e}")
    return back(f"/admin/users/{user_id}")


@router.post("/users/{user_id}/delete")
def user_delete(user_id: str, confirmed: str = Form(""), session: ConsoleSession = Depends(require_admin)):
    service = UserAdminService(session.api)
    confirm, asked = confirmation(confirmed == "yes")
    try:
        user = service.get_user(user_id) or {"id": user_id}
        deleted = service.delete_user(user, confirm)
    except ApiError as e:
        session.notices.error(f"Failed to delete user: {e.message}")
        return back(f"/admin/users/{user_id}")
    if not deleted:
        return confirm_page(session, asked[0], f"/admin/users/{user_id}/delete", f"/admin/users/{user_id}")
    session.notices.success("User deleted successfully")
    return back("/admin/users")
