# ============================================================
# products.py — Product catalog administration
# ============================================================
# ProductAdminService → list/create/update/delete/status + categories
# ProductEditor       → the tabbed editor: basic info, pricing,
#                       images (ImagesManager) and variants
#                       (VariantsManager) over one product
#
# Completion is derived from the editor snapshot every time it is
# read; it is advisory except for the two image guards in save().
# ============================================================

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from api import ApiClient, entity_id
from errors import ApiError, ValidationError, raise_if_errors
from images import ImagesManager, has_main_product_image, pool
from notices import NoticeBoard
from validators import is_blank, to_number
from variants import VariantsManager

SECTIONS = ("basic", "pricing", "images", "variants")


@dataclass
class BasicInfo:
    name: str = ""
    brand: str = ""
    description: str = ""
    short_description: str = ""
    categories: List[str] = field(default_factory=list)  # category ids
    tags: List[str] = field(default_factory=list)
    is_active: bool = True
    is_featured: bool = False
    is_new_product: bool = False
    is_best_seller: bool = False

    @classmethod
    def from_product(cls, product: Dict[str, Any]) -> "BasicInfo":
        return cls(
            name=product.get("name") or "",
            brand=product.get("brand") or "",
            description=product.get("description") or "",
            short_description=product.get("shortDescription") or "",
            categories=[
                entity_id(c) if isinstance(c, dict) else str(c)
                for c in (product.get("categories") or [])
            ],
            tags=list(product.get("tags") or []),
            is_active=bool(product.get("isActive", True)),
            is_featured=bool(product.get("isFeatured", False)),
            is_new_product=bool(product.get("isNewProduct", False)),
            is_best_seller=bool(product.get("isBestSeller", False)),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name.strip(),
            "brand": self.brand.strip(),
            "description": self.description,
            "shortDescription": self.short_description,
            "categories": list(self.categories),
            "tags": list(self.tags),
            "isActive": self.is_active,
            "isFeatured": self.is_featured,
            "isNewProduct": self.is_new_product,
            "isBestSeller": self.is_best_seller,
        }


@dataclass
class Pricing:
    base_price: Any = None
    has_variants: bool = False


def parse_tags(raw: str) -> List[str]:
    return [tag.strip() for tag in (raw or "").split(",") if tag.strip()]


# ── Completion ───────────────────────────────────────────────

def completion_status(
        basic: BasicInfo,
        pricing: Pricing,
        images: List[Dict[str, Any]],
        variants: List[Dict[str, Any]]
) -> Dict[str, bool]:
    variants_ok = not pricing.has_variants or len(variants) > 0
    try:
        price = to_number(pricing.base_price)
    except (TypeError, ValueError):
        price = None
    return {
        "basic": bool(
            basic.name and basic.brand and basic.categories
            and basic.short_description and basic.description
        ),
        "pricing": bool(price) and variants_ok,
        "images": has_main_product_image(images),
        "variants": variants_ok,
    }


def completion_percentage(status: Dict[str, bool]) -> int:
    if not status:
        return 0
    done = sum(1 for value in status.values() if value)
    return round(done * 100 / len(status))


def validate_product(basic: BasicInfo, pricing: Pricing) -> Dict[str, str]:
    errors = {}
    if is_blank(basic.name):
        errors["name"] = "Product name is required"
    if is_blank(basic.brand):
        errors["brand"] = "Brand is required"
    if not basic.categories:
        errors["categories"] = "Select at least one category"
    try:
        price = to_number(pricing.base_price)
    except (TypeError, ValueError):
        errors["basePrice"] = "Base price must be a number"
    else:
        if price is None or price <= 0:
            errors["basePrice"] = "Base price must be greater than 0"
    return errors


# ── Service ──────────────────────────────────────────────────

class ProductAdminService:
    def __init__(self, api: ApiClient):
        self.api = api

    def list_products(
            self,
            page: int = 1,
            limit: int = 10,
            search: Optional[str] = None,
            category: Optional[str] = None,
            status: Optional[str] = None,
            sort: Optional[str] = None,
            order: Optional[str] = None
    ) -> Dict[str, Any]:
        return self.api.get("/admin/products", params={
            "page": page, "limit": limit, "search": search, "category": category,
            "status": status, "sort": sort, "order": order,
        }) or {}

    def get_product(self, product_id: str) -> Dict[str, Any]:
        return self.api.get(f"/admin/products/{product_id}")

    def create_product(self, basic: BasicInfo, pricing: Pricing) -> Dict[str, Any]:
        raise_if_errors(validate_product(basic, pricing))
        payload = basic.to_payload()
        payload["basePrice"] = to_number(pricing.base_price)
        payload["hasVariants"] = pricing.has_variants
        return self.api.post("/admin/products", payload)

    def update_product(self, product_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.api.put(f"/admin/products/{product_id}", payload)

    def delete_product(self, product_id: str, confirm) -> bool:
        if not confirm("Are you sure you want to delete this product?"):
            return False
        self.api.delete(f"/admin/products/{product_id}")
        return True

    def set_status(self, product_id: str, is_active: bool) -> Dict[str, Any]:
        return self.api.patch(f"/admin/products/{product_id}/status", {"isActive": is_active})

    def categories(self) -> List[Dict[str, Any]]:
        return self.api.get("/admin/categories") or []

    def parent_categories(self) -> List[Dict[str, Any]]:
        return self.api.get("/admin/categories/parents") or []

    def best_selling(self) -> List[Dict[str, Any]]:
        return self.api.get("/admin/products/stats/best-selling") or []


# ── Editor ───────────────────────────────────────────────────

class ProductEditor:
    """
    One product's editor state for the length of a page visit.

    Images and variants are saved as soon as they change (through
    their managers); basic info and pricing wait for save().
    """

    def __init__(self, api: ApiClient, product: Dict[str, Any], notices: Optional[NoticeBoard] = None):
        self.api = api
        self.product = product
        self.product_id = entity_id(product)
        self.notices = notices or NoticeBoard()
        self.basic = BasicInfo.from_product(product)
        variants = list(product.get("variants") or [])
        self.pricing = Pricing(
            base_price=product.get("basePrice"),
            has_variants=bool(product.get("hasVariants", len(variants) > 0)),
        )
        self.images = ImagesManager(api, self.product_id, product.get("images") or [], self.notices)
        self.variants = VariantsManager(
            api, self.product_id, variants, self.notices, on_change=self._variants_changed
        )
        self.unsaved_changes = False

    @classmethod
    def load(cls, api: ApiClient, product_id: str, notices: Optional[NoticeBoard] = None) -> "ProductEditor":
        return cls(api, ProductAdminService(api).get_product(product_id), notices)

    # ── Form changes ─────────────────────────────────────────

    def update_basic(self, **changes):
        for key, value in changes.items():
            if not hasattr(self.basic, key):
                raise AttributeError(f"Unknown product field: {key}")
            setattr(self.basic, key, value)
        self.unsaved_changes = True

    def update_pricing(self, base_price: Any = None, has_variants: Optional[bool] = None):
        if base_price is not None:
            self.pricing.base_price = base_price
        if has_variants is not None:
            self.pricing.has_variants = has_variants
        self.unsaved_changes = True

    def _variants_changed(self, variants: List[Dict[str, Any]]):
        known = {entity_id(v) for v in variants}
        removed = [key for key in {img.get("variantId") for img in self.images.images} if key and str(key) not in known]
        if removed:
            self.images.detach_variants(removed)

    # ── Derived state ────────────────────────────────────────

    @property
    def completion(self) -> Dict[str, bool]:
        return completion_status(self.basic, self.pricing, self.images.images, self.variants.variants)

    @property
    def completion_percentage(self) -> int:
        return completion_percentage(self.completion)

    @property
    def needs_variant(self) -> bool:
        return self.pricing.has_variants and not self.variants.variants

    def warnings(self) -> List[str]:
        messages = []
        if self.needs_variant:
            messages.append("This product requires variants. Add at least one in the Variants tab.")
        if not pool(self.images.images, None):
            messages.append("Add at least one product image in the Images tab.")
        elif not has_main_product_image(self.images.images):
            messages.append("Choose a main product image in the Images tab.")
        return messages

    # ── Save ─────────────────────────────────────────────────

    def save(self) -> Dict[str, Any]:
        """
        Save basic info and pricing.

        Blocked only when there is no product-level image or none of
        them is main; everything else just warns.
        """
        product_images = pool(self.images.images, None)
        if not product_images:
            self.notices.warning("Please add at least one image for the product")
            raise ValidationError({"images": "At least one product image is required"})
        if not has_main_product_image(self.images.images):
            self.notices.warning("Please choose a main image for the product")
            raise ValidationError({"images": "A main product image is required"})

        errors = validate_product(self.basic, self.pricing)
        if errors:
            self.notices.error("Please fix the highlighted product fields")
            raise ValidationError(errors)

        without_images = [
            v for v in self.variants.variants if not pool(self.images.images, entity_id(v))
        ]
        if without_images:
            self.notices.info(
                "Some variants don't have specific images. They will use the general product images."
            )
        if self.needs_variant:
            self.notices.warning("Product saved, but it needs at least one variant to be complete")

        payload = self.basic.to_payload()
        payload["basePrice"] = to_number(self.pricing.base_price)
        payload["hasVariants"] = self.pricing.has_variants
        try:
            saved = ProductAdminService(self.api).update_product(self.product_id, payload)
        except ApiError as e:
            self.notices.error(f"Failed to update product: {e.message}")
            raise
        self.unsaved_changes = False
        self.notices.success("Product updated successfully")
        return saved

    def snapshot(self) -> Dict[str, Any]:
        """Plain view of the editor, for rendering."""
        return {
            "basic": asdict(self.basic),
            "pricing": asdict(self.pricing),
            "images": self.images.images,
            "variants": self.variants.variants,
            "completion": self.completion,
            "completionPercentage": self.completion_percentage,
        }
