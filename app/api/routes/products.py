"""
Product routes

Catalog reads are public. Product and category writes come from the admin
console as multipart forms and are audit logged.
"""
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from app.api.deps import get_current_admin, get_product_service
from app.core.audit_log import (
    ACTION_CATEGORY_CREATE,
    ACTION_PRODUCT_CREATE,
    ACTION_PRODUCT_DELETE,
    ACTION_PRODUCT_UPDATE,
    log_admin_action,
)
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import StoreBaseError, ValidationError
from app.core.rate_limit import get_client_ip, limiter
from app.core.security import Principal
from app.schemas.category import CategoryCreate, CategoryCreated, CategoryResponse
from app.schemas.product import ProductDeleted, ProductList, ProductMutationResponse, ProductResponse
from app.services import catalog_service, category_service
from app.services.product_service import PRODUCT_FORM_FIELDS, ImageUpload, ProductService
from app.utils.sanitizers import SanitizationError, sanitize_integer

router = APIRouter()

IMAGES_FIELD = "images"


def _parse_product_id(raw: str) -> int:
    try:
        product_id = sanitize_integer(raw, "id", min_value=1, strict=True)
    except SanitizationError as e:
        raise ValidationError("Valid product ID is required") from e
    if product_id is None:
        raise ValidationError("Valid product ID is required")
    return product_id


async def _read_product_form(request: Request) -> Tuple[dict, List[ImageUpload]]:
    """
    Collect the product fields and image files from a multipart body.

    Only fields actually sent are returned, so an empty string stays
    distinguishable from an absent field.
    """
    form = await request.form()
    try:
        fields = {}
        for name in PRODUCT_FORM_FIELDS:
            if name in form:
                value = form.get(name)
                if isinstance(value, str):
                    fields[name] = value

        images = []
        for upload in form.getlist(IMAGES_FIELD):
            if not isinstance(upload, UploadFile):
                continue
            images.append(ImageUpload(
                filename=upload.filename or "image",
                content=await upload.read(),
                content_type=upload.content_type or "application/octet-stream",
            ))
    finally:
        await form.close()
    return fields, images


# ----- Categories -----

@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    """All categories, ordered by name"""
    return await category_service.list_categories(db)


@router.post("/categories", response_model=CategoryCreated, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_ADMIN_WRITE)
async def create_category(
    request: Request,
    payload: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(get_current_admin),
):
    """Create a category (admin only)"""
    category = await category_service.create_category(db, payload.name)

    log_admin_action(
        action=ACTION_CATEGORY_CREATE,
        admin_id=admin.subject,
        resource_type="category",
        resource_id=category.id,
        details={"name": category.name},
        ip_address=get_client_ip(request),
    )
    return {"message": "Category created successfully", "category": category}


# ----- Products -----

@router.get("", response_model=ProductList)
async def list_products(
    search: Optional[str] = None,
    category_id: Optional[str] = Query(None, alias="categoryId"),
    price_min: Optional[str] = Query(None, alias="priceMin"),
    price_max: Optional[str] = Query(None, alias="priceMax"),
    in_stock: Optional[str] = Query(None, alias="inStock"),
    sort: Optional[str] = None,
    page: Optional[str] = None,
    page_size: Optional[str] = Query(None, alias="pageSize"),
    db: AsyncSession = Depends(get_db),
):
    """List products with filtering, sorting, and pagination"""
    filters = catalog_service.CatalogFilters.from_query(
        category_id=category_id,
        price_min=price_min,
        price_max=price_max,
        in_stock=in_stock,
        search=search,
        sort=sort,
        page=page,
        page_size=page_size,
    )
    products, total = await catalog_service.search_products(db, filters)
    return ProductList(
        products=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=filters.page,
        page_size=filters.page_size,
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    service: ProductService = Depends(get_product_service),
):
    """Get a single product"""
    return await service.get_product(_parse_product_id(product_id))


@router.post("", response_model=ProductMutationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_ADMIN_WRITE)
async def create_product(
    request: Request,
    service: ProductService = Depends(get_product_service),
    admin: Principal = Depends(get_current_admin),
):
    """Create a product from a multipart form (admin only)"""
    fields, images = await _read_product_form(request)

    try:
        product = await service.create_product(fields, images)
    except StoreBaseError as e:
        log_admin_action(
            action=ACTION_PRODUCT_CREATE,
            admin_id=admin.subject,
            resource_type="product",
            details={"name": fields.get("name"), "error": e.code},
            ip_address=get_client_ip(request),
            success=False,
        )
        raise

    log_admin_action(
        action=ACTION_PRODUCT_CREATE,
        admin_id=admin.subject,
        resource_type="product",
        resource_id=product.id,
        details={"name": product.name, "slug": product.slug, "images": len(product.stored_image_urls)},
        ip_address=get_client_ip(request),
    )
    return {"message": "Product created successfully", "product": product}


@router.patch("/{product_id}", response_model=ProductMutationResponse)
@limiter.limit(settings.RATE_LIMIT_ADMIN_WRITE)
async def update_product(
    request: Request,
    product_id: str,
    service: ProductService = Depends(get_product_service),
    admin: Principal = Depends(get_current_admin),
):
    """Partially update a product and reconcile its images (admin only)"""
    pid = _parse_product_id(product_id)
    fields, images = await _read_product_form(request)

    try:
        product = await service.update_product(pid, fields, images)
    except StoreBaseError as e:
        log_admin_action(
            action=ACTION_PRODUCT_UPDATE,
            admin_id=admin.subject,
            resource_type="product",
            resource_id=pid,
            details={"fields": sorted(fields), "error": e.code},
            ip_address=get_client_ip(request),
            success=False,
        )
        raise

    log_admin_action(
        action=ACTION_PRODUCT_UPDATE,
        admin_id=admin.subject,
        resource_type="product",
        resource_id=pid,
        details={"fields": sorted(fields), "new_images": len(images)},
        ip_address=get_client_ip(request),
    )
    return {"message": "Product updated successfully", "product": product}


@router.delete("/{product_id}", response_model=ProductDeleted)
@limiter.limit(settings.RATE_LIMIT_ADMIN_WRITE)
async def delete_product(
    request: Request,
    product_id: str,
    service: ProductService = Depends(get_product_service),
    admin: Principal = Depends(get_current_admin),
):
    """Delete a product and its images (admin only)"""
    pid = _parse_product_id(product_id)
    try:
        deleted_id = await service.delete_product(pid)
    except StoreBaseError as e:
        log_admin_action(
            action=ACTION_PRODUCT_DELETE,
            admin_id=admin.subject,
            resource_type="product",
            resource_id=pid,
            details={"error": e.code},
            ip_address=get_client_ip(request),
            success=False,
        )
        raise

    log_admin_action(
        action=ACTION_PRODUCT_DELETE,
        admin_id=admin.subject,
        resource_type="product",
        resource_id=deleted_id,
        ip_address=get_client_ip(request),
    )
    return {"message": "Product deleted successfully", "deletedProductId": deleted_id}
