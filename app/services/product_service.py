"""
Product Service - catalog writes and image reconciliation

Create, update and delete coordinate three stores that share no
transaction: the relational record, the object store holding the images,
and the blob cleanup outbox. Ordering rules:

- create: upload, then insert. A failed insert leaves the uploads orphaned.
- update: upload, write the record, then delete the images the client
  dropped. A failed deletion can leak a blob but never a reference.
- delete: remove the record, then garbage-collect its images.

Storage failures are logged (and failed deletions queued for retry); they
never fail the operation.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import (
    BadReferenceError,
    ConflictError,
    NotFoundError,
    ValidationError,
    is_foreign_key_violation,
    is_unique_violation,
)
from app.models.product import Product
from app.services.blob_cleanup import record_failed_deletions
from app.services.storage import DeleteResult, StorageService
from app.utils.sanitizers import (
    SanitizationError,
    parse_url_list,
    sanitize_decimal,
    sanitize_integer,
    sanitize_specs,
    sanitize_string,
    slugify,
)

logger = logging.getLogger(__name__)

# Form field names as sent by the admin console
FIELD_NAME = "name"
FIELD_DESCRIPTION = "description"
FIELD_PRICE = "price"
FIELD_STOCK = "stock"
FIELD_CATEGORY_ID = "categoryId"
FIELD_SPECS = "specs"
FIELD_KEEP_IMAGE_URLS = "keepImageUrls"
FIELD_AVERAGE_RATING = "averageRating"
FIELD_REVIEW_COUNT = "reviewCount"
FIELD_DISCOUNT_PERCENT = "discountPercent"
FIELD_WARRANTY = "warranty"

REQUIRED_CREATE_FIELDS = (
    FIELD_NAME,
    FIELD_DESCRIPTION,
    FIELD_PRICE,
    FIELD_STOCK,
    FIELD_CATEGORY_ID,
)

PRODUCT_FORM_FIELDS = (
    FIELD_NAME,
    FIELD_DESCRIPTION,
    FIELD_PRICE,
    FIELD_STOCK,
    FIELD_CATEGORY_ID,
    FIELD_SPECS,
    FIELD_KEEP_IMAGE_URLS,
    FIELD_AVERAGE_RATING,
    FIELD_REVIEW_COUNT,
    FIELD_DISCOUNT_PERCENT,
    FIELD_WARRANTY,
)

MAX_RATING = Decimal("5")


@dataclass
class ImageUpload:
    """An image file attached to an admin request."""
    filename: str
    content: bytes
    content_type: str


@dataclass
class ImagePlan:
    """Outcome of comparing the stored image set with the client's keep-list."""
    keep: List[str] = field(default_factory=list)
    to_delete: List[str] = field(default_factory=list)


def plan_image_reconciliation(current_urls: Sequence[str], keep_urls: Sequence[str]) -> ImagePlan:
    """
    Split the stored images into survivors and deletions.

    keep preserves the client's order but only contains URLs that are
    actually stored on the product; to_delete is every stored URL the client
    did not keep (current minus keep).
    """
    current = list(dict.fromkeys(url for url in current_urls if url))
    keep = [url for url in dict.fromkeys(keep_urls) if url in current]
    to_delete = [url for url in current if url not in keep]
    return ImagePlan(keep=keep, to_delete=to_delete)


def _strict(parse, *args, **kwargs):
    """Run a strict sanitizer, turning its failure into a 400."""
    try:
        return parse(*args, strict=True, **kwargs)
    except SanitizationError as e:
        raise ValidationError(str(e), details={"field": e.field_name}) from e


def _parse_price(raw) -> Optional[Decimal]:
    return _strict(sanitize_decimal, raw, FIELD_PRICE, min_value=Decimal("0"), exclusive_min=True)


def _parse_stock(raw) -> Optional[int]:
    return _strict(sanitize_integer, raw, FIELD_STOCK, min_value=0)


def _parse_category_id(raw) -> Optional[int]:
    return _strict(sanitize_integer, raw, FIELD_CATEGORY_ID, min_value=1)


def _parse_marketing_fields(fields: Mapping[str, str]) -> Dict[str, object]:
    """
    Parse the optional marketing fields that are present in the form.

    Keys are model attribute names; a blank value maps to None.
    """
    parsed: Dict[str, object] = {}
    if FIELD_AVERAGE_RATING in fields:
        parsed["average_rating"] = _strict(
            sanitize_decimal, fields[FIELD_AVERAGE_RATING], FIELD_AVERAGE_RATING,
            min_value=Decimal("0"), max_value=MAX_RATING,
        )
    if FIELD_REVIEW_COUNT in fields:
        parsed["review_count"] = _strict(
            sanitize_integer, fields[FIELD_REVIEW_COUNT], FIELD_REVIEW_COUNT, min_value=0,
        )
    if FIELD_DISCOUNT_PERCENT in fields:
        parsed["discount_percent"] = _strict(
            sanitize_integer, fields[FIELD_DISCOUNT_PERCENT], FIELD_DISCOUNT_PERCENT,
            min_value=0, max_value=100,
        )
    if FIELD_WARRANTY in fields:
        parsed["warranty"] = sanitize_string(fields[FIELD_WARRANTY], FIELD_WARRANTY)
    return parsed


def _slug_for(name: str) -> str:
    slug = slugify(name)
    if not slug:
        raise ValidationError(
            "Product name must contain at least one letter or digit",
            details={"field": FIELD_NAME},
        )
    return slug


class ProductService:
    """Product CRUD bound to one database session and one storage client."""

    def __init__(self, db: AsyncSession, storage: StorageService):
        self.db = db
        self.storage = storage

    # ----- Reads -----

    async def get_product(self, product_id: int) -> Product:
        result = await self.db.execute(
            select(Product)
            .options(selectinload(Product.category))
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product not found", resource_type="product", resource_id=product_id)
        return product

    # ----- Writes -----

    async def create_product(
        self,
        fields: Mapping[str, str],
        images: Sequence[ImageUpload] = (),
    ) -> Product:
        """
        Create a product from admin form fields and attached images.

        All validation happens before any upload. Images that fail to upload
        are skipped; the product is created with whatever succeeded.
        """
        missing = [
            name for name in REQUIRED_CREATE_FIELDS
            if sanitize_string(fields.get(name), name) is None
        ]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                missing_fields=missing,
            )

        name = sanitize_string(fields[FIELD_NAME], FIELD_NAME)
        slug = _slug_for(name)
        price = _parse_price(fields[FIELD_PRICE])
        stock = _parse_stock(fields[FIELD_STOCK])
        category_id = _parse_category_id(fields[FIELD_CATEGORY_ID])
        marketing = _parse_marketing_fields(fields)
        specs = sanitize_specs(fields.get(FIELD_SPECS))

        image_urls = await self._upload_images(images)

        product = Product(
            name=name,
            slug=slug,
            description=sanitize_string(fields[FIELD_DESCRIPTION], FIELD_DESCRIPTION),
            price=price,
            stock=stock,
            category_id=category_id,
            image_url=image_urls[0] if image_urls else None,
            image_urls=image_urls or None,
            specs=specs or None,
            **marketing,
        )
        self.db.add(product)
        await self._commit_product_write(uploaded=image_urls)

        logger.info(f"Created product {product.id} ({slug}) with {len(image_urls)} image(s)")
        return await self.get_product(product.id)

    async def update_product(
        self,
        product_id: int,
        fields: Mapping[str, str],
        images: Sequence[ImageUpload] = (),
    ) -> Product:
        """
        Apply a partial update and reconcile the product's images.

        Only fields present in the form are touched. keepImageUrls is the
        client's authoritative list of stored images to retain; when it is
        absent the stored images all survive. New uploads are appended after
        the kept images. Dropped images are deleted after the record is saved.
        """
        product = await self.get_product(product_id)
        current_urls = product.stored_image_urls

        if FIELD_KEEP_IMAGE_URLS in fields:
            requested_keep = parse_url_list(fields[FIELD_KEEP_IMAGE_URLS])
        else:
            requested_keep = current_urls
        plan = plan_image_reconciliation(current_urls, requested_keep)

        changes = self._parse_update_fields(fields)

        new_urls = await self._upload_images(images)
        final_urls = plan.keep + new_urls

        for attribute, value in changes.items():
            setattr(product, attribute, value)
        product.image_url = final_urls[0] if final_urls else None
        product.image_urls = final_urls or None

        await self._commit_product_write(uploaded=new_urls)

        logger.info(
            f"Updated product {product_id}: fields={sorted(changes)} "
            f"kept={len(plan.keep)} added={len(new_urls)} removed={len(plan.to_delete)}"
        )

        await self._delete_blobs(plan.to_delete)
        return await self.get_product(product_id)

    async def delete_product(self, product_id: int) -> int:
        """
        Delete a product, then best-effort delete all of its images.

        Succeeds as long as the row is gone, whatever happens to the blobs.
        """
        product = await self.get_product(product_id)
        urls = product.stored_image_urls

        await self.db.delete(product)
        await self.db.commit()
        logger.info(f"Deleted product {product_id}; cleaning up {len(urls)} image(s)")

        await self._delete_blobs(urls)
        return product_id

    # ----- Helpers -----

    def _parse_update_fields(self, fields: Mapping[str, str]) -> Dict[str, object]:
        """
        Model attribute changes for the fields present in an update form.

        Blank values leave required columns (name, price, stock, category)
        unchanged and clear nullable ones.
        """
        changes: Dict[str, object] = {}

        if FIELD_NAME in fields:
            name = sanitize_string(fields[FIELD_NAME], FIELD_NAME)
            if name is not None:
                changes["name"] = name
                changes["slug"] = _slug_for(name)

        if FIELD_DESCRIPTION in fields:
            changes["description"] = sanitize_string(fields[FIELD_DESCRIPTION], FIELD_DESCRIPTION)

        if FIELD_PRICE in fields:
            price = _parse_price(fields[FIELD_PRICE])
            if price is not None:
                changes["price"] = price

        if FIELD_STOCK in fields:
            stock = _parse_stock(fields[FIELD_STOCK])
            if stock is not None:
                changes["stock"] = stock

        if FIELD_CATEGORY_ID in fields:
            category_id = _parse_category_id(fields[FIELD_CATEGORY_ID])
            if category_id is not None:
                changes["category_id"] = category_id

        if FIELD_SPECS in fields:
            specs = sanitize_specs(fields[FIELD_SPECS])
            # Malformed JSON keeps the stored specs
            if specs is not None:
                changes["specs"] = specs or None

        changes.update(_parse_marketing_fields(fields))
        return changes

    async def _commit_product_write(self, uploaded: Sequence[str]) -> None:
        """Commit, mapping constraint violations to domain errors."""
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if uploaded:
                logger.warning(
                    f"Product write failed after uploading {len(uploaded)} image(s); "
                    f"leaving them in storage: {list(uploaded)}"
                )
            if is_foreign_key_violation(e):
                raise BadReferenceError("Invalid category ID") from e
            if is_unique_violation(e):
                raise ConflictError("A product with this name or slug already exists") from e
            raise

    async def _upload_images(self, images: Sequence[ImageUpload]) -> List[str]:
        """Upload concurrently; return the URLs that succeeded, in input order."""
        if not images:
            return []

        results = await asyncio.gather(
            *(
                self.storage.upload_product_image(
                    content=image.content,
                    filename=image.filename,
                    content_type=image.content_type,
                )
                for image in images
            ),
            return_exceptions=True,
        )

        urls = []
        for image, result in zip(images, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to upload {image.filename}: {result}")
            elif result.success and result.url:
                urls.append(result.url)
            else:
                logger.warning(f"Skipping image {image.filename}: {result.error}")

        if len(urls) < len(images):
            logger.warning(f"Uploaded {len(urls)} of {len(images)} product image(s)")
        return urls

    async def _delete_blobs(self, urls: Sequence[str]) -> List[DeleteResult]:
        """
        Delete blobs concurrently, tolerating individual failures.

        Failures are logged and queued in the cleanup outbox.
        """
        if not urls:
            return []

        results = await asyncio.gather(
            *(self.storage.delete_by_url(url) for url in urls),
            return_exceptions=True,
        )

        outcomes: List[DeleteResult] = []
        for url, result in zip(urls, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to delete S3 object {url}: {result}")
                result = DeleteResult(
                    success=False,
                    url=url,
                    key=self.storage.key_from_url(url),
                    error=str(result),
                )
            outcomes.append(result)

        failures = [outcome for outcome in outcomes if not outcome.success]
        if failures:
            await record_failed_deletions(self.db, failures)
        return outcomes
