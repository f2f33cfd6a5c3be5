# ============================================================
# images.py — Image manager
# ============================================================
# CRUD over one product's images. Images are grouped in "main
# pools": product-level images (variantId None) form one pool and
# each variant's images form their own. Exactly one image per pool
# should be main.
#
# set_main and update_alt are optimistic: the local list changes
# first, and the previous snapshot is restored if the API rejects
# the change. reorder is optimistic too, but reloads from the API
# when only some of its writes were stored.
# ============================================================

import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import config
from api import ApiClient, entity_id
from errors import ApiError, ValidationError
from notices import NoticeBoard

VIEW_MODES = ("all", "product", "variant")


@dataclass
class ImageUpload:
    filename: str
    content: bytes
    content_type: str = "image/jpeg"

    @property
    def size(self) -> int:
        return len(self.content)


def pool_key(image: Dict[str, Any]) -> Optional[str]:
    """None for product-level images, otherwise the variant id."""
    variant_id = image.get("variantId")
    return None if variant_id in (None, "") else str(variant_id)


def pool(images: List[Dict[str, Any]], key: Optional[str]) -> List[Dict[str, Any]]:
    return [img for img in images if pool_key(img) == key]


def apply_main(images: List[Dict[str, Any]], image_id: str) -> List[Dict[str, Any]]:
    """Flag image_id as main and clear the flag on the rest of its pool."""
    target = next((img for img in images if entity_id(img) == image_id), None)
    if target is None:
        return list(images)
    key = pool_key(target)
    return [
        {**img, "isMain": entity_id(img) == image_id} if pool_key(img) == key else img
        for img in images
    ]


def ensure_main_images(images: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Promote the first image of every pool that has no main image.

    Returns (images, promoted image ids).
    """
    promoted: List[str] = []
    keys: List[Optional[str]] = []
    for img in images:
        if pool_key(img) not in keys:
            keys.append(pool_key(img))

    for key in keys:
        members = pool(images, key)
        if members and not any(img.get("isMain") for img in members):
            first_id = entity_id(members[0])
            images = apply_main(images, first_id)
            promoted.append(first_id)
    return images, promoted


def has_main_product_image(images: List[Dict[str, Any]]) -> bool:
    return any(img.get("isMain") for img in pool(images, None))


def visible_images(
        images: List[Dict[str, Any]],
        view_mode: str = "all",
        variant_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Display filter only; never changes what is stored."""
    if view_mode not in VIEW_MODES:
        raise ValueError(f"Unknown view mode: {view_mode}")
    if view_mode == "product":
        return pool(images, None)
    if view_mode == "variant":
        if variant_id:
            return pool(images, str(variant_id))
        return [img for img in images if pool_key(img) is not None]
    return list(images)


def move(items: List[Dict[str, Any]], from_index: int, to_index: int) -> List[Dict[str, Any]]:
    """Move one item and re-index sortOrder 0..n-1."""
    if not (0 <= from_index < len(items)) or not (0 <= to_index < len(items)):
        raise IndexError("Image position out of range")
    items = list(items)
    item = items.pop(from_index)
    items.insert(to_index, item)
    return [{**img, "sortOrder": index} for index, img in enumerate(items)]


class ImagesManager:
    def __init__(
            self,
            api: ApiClient,
            product_id: str,
            images: List[Dict[str, Any]],
            notices: Optional[NoticeBoard] = None,
            max_size: int = config.MAX_IMAGE_SIZE
    ):
        self.api = api
        self.product_id = product_id
        self.images = list(images or [])
        self.notices = notices or NoticeBoard()
        self.max_size = max_size

    def _base(self) -> str:
        return f"/admin/products/{self.product_id}/images"

    def find(self, image_id: str) -> Optional[Dict[str, Any]]:
        return next((img for img in self.images if entity_id(img) == image_id), None)

    def _require(self, image_id: str) -> Dict[str, Any]:
        image = self.find(image_id)
        if image is None:
            raise ValidationError({"image": "Image not found"})
        return image

    # ── Optimistic update + revert ───────────────────────────

    def _optimistic(
            self,
            apply: Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]],
            remote: Callable[[], Any],
            failure: str
    ):
        snapshot = copy.deepcopy(self.images)
        self.images = apply(self.images)
        try:
            remote()
        except ApiError as e:
            self.images = snapshot
            self.notices.error(f"{failure}: {e.message}")
            raise

    # ── Operations ───────────────────────────────────────────

    def upload(self, files: List[ImageUpload], variant_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Upload each file in turn. Oversized files and per-file API
        failures are reported and skipped; the rest still go up.
        """
        uploaded = []
        key = None if not variant_id else str(variant_id)
        limit_mb = self.max_size / (1024 * 1024)

        for upload in files:
            if upload.size > self.max_size:
                self.notices.error(
                    f'File "{upload.filename}" is too large. Maximum size is {limit_mb:g}MB.'
                )
                continue

            is_first = not pool(self.images, key)
            fields = {"isMain": "true" if is_first else "false"}
            if key:
                fields["variantId"] = key

            try:
                image = self.api.post(
                    self._base(),
                    data=fields,
                    files={"image": (upload.filename, upload.content, upload.content_type)},
                )
            except ApiError as e:
                self.notices.error(f'Failed to upload "{upload.filename}": {e.message}')
                continue

            self.images.append(image)
            uploaded.append(image)

        if uploaded:
            self.notices.success(f"{len(uploaded)} image(s) uploaded successfully")
        return uploaded

    def delete(self, image_id: str, confirm: Callable[[str], bool]) -> bool:
        self._require(image_id)
        if not confirm("Are you sure you want to delete this image?"):
            return False
        try:
            self.api.delete(f"{self._base()}/{image_id}")
        except ApiError as e:
            self.notices.error(f"Failed to delete image: {e.message}")
            raise
        self.images = [img for img in self.images if entity_id(img) != image_id]
        self.notices.success("Image deleted successfully")
        return True

    def set_main(self, image_id: str):
        self._require(image_id)
        self._optimistic(
            lambda images: apply_main(images, image_id),
            lambda: self.api.put(f"{self._base()}/{image_id}", {"isMain": True}),
            "Failed to set main image",
        )
        self.notices.success("Main image updated")

    def update_alt(self, image_id: str, alt: str):
        self._require(image_id)
        alt = (alt or "").strip()
        self._optimistic(
            lambda images: [{**img, "alt": alt} if entity_id(img) == image_id else img for img in images],
            lambda: self.api.put(f"{self._base()}/{image_id}", {"alt": alt}),
            "Failed to update alt text",
        )
        self.notices.success("Alt text updated")

    def reload(self) -> List[Dict[str, Any]]:
        """Replace the local list with the images the API has stored."""
        product = self.api.get(f"/admin/products/{self.product_id}")
        self.images = list(product.get("images") or [])
        return self.images

    def reorder(self, from_index: int, to_index: int):
        """
        Move an image and persist the new sortOrder of every image that
        moved. One PUT goes out per image, so when a later PUT fails the
        earlier ones are already stored: the list is then reloaded from
        the API rather than reverted to the snapshot.
        """
        before = {entity_id(img): img.get("sortOrder") for img in self.images}
        reordered = move(self.images, from_index, to_index)
        changed = [img for img in reordered if before.get(entity_id(img)) != img["sortOrder"]]

        snapshot = copy.deepcopy(self.images)
        self.images = reordered
        saved = 0
        try:
            for img in changed:
                self.api.put(f"{self._base()}/{entity_id(img)}", {"sortOrder": img["sortOrder"]})
                saved += 1
        except ApiError as e:
            self.images = snapshot
            if saved:
                try:
                    self.reload()
                except ApiError as reload_error:
                    print(f"⚠️ Could not reload images of product {self.product_id}: {reload_error.message}")
                self.notices.error(
                    f"Failed to save image order: {e.message} ({saved} of {len(changed)} moves were saved)"
                )
            else:
                self.notices.error(f"Failed to save image order: {e.message}")
            raise
        self.notices.success("Image order updated")

    def ensure_main(self) -> List[str]:
        """Auto-promote a main image in each pool and persist the promotions."""
        self.images, promoted = ensure_main_images(self.images)
        saved = []
        for image_id in promoted:
            try:
                self.api.put(f"{self._base()}/{image_id}", {"isMain": True})
            except ApiError as e:
                self.images = [
                    {**img, "isMain": False} if entity_id(img) == image_id else img
                    for img in self.images
                ]
                self.notices.error(f"Failed to update main image: {e.message}")
                continue
            saved.append(image_id)
            self.notices.success("Main image has been set automatically")
        return saved

    def detach_variants(self, variant_ids: List[str]):
        """Images of deleted variants fall back to the product-level pool."""
        gone = {str(v) for v in variant_ids}
        self.images = [
            {**img, "variantId": None} if pool_key(img) in gone else img
            for img in self.images
        ]

    def visible(self, view_mode: str = "all", variant_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return visible_images(self.images, view_mode, variant_id)
