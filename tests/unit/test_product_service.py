"""
ProductService tests against SQLite with a mocked S3 client.
"""
import json
from decimal import Decimal

import pytest
from botocore.exceptions import ClientError
from sqlalchemy import func, select

from app.core.exceptions import BadReferenceError, ConflictError, NotFoundError, ValidationError
from app.models import PendingBlobDeletion, Product
from app.services.product_service import ImageUpload, ProductService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _png(name: str) -> ImageUpload:
    return ImageUpload(filename=name, content=PNG_BYTES, content_type="image/png")


def _fields(category_id, **overrides) -> dict:
    fields = {
        "name": "Gaming PC #1",
        "description": "Ryzen 9, RTX 4080",
        "price": "2499.99",
        "stock": "3",
        "categoryId": str(category_id),
    }
    fields.update(overrides)
    return fields


def _deleted_keys(s3_client) -> list:
    return [call.kwargs["Key"] for call in s3_client.delete_object.call_args_list]


@pytest.fixture
def service(db, storage):
    return ProductService(db, storage)


# ----- create -----

@pytest.mark.asyncio
async def test_create_product_uploads_images_and_derives_slug(service, category, s3_client):
    product = await service.create_product(
        _fields(
            category.id,
            specs=json.dumps([{"key": " CPU ", "value": "Ryzen 9"}, {"key": "GPU", "value": ""}]),
            averageRating="4.5",
            reviewCount="12",
            discountPercent="10",
            warranty=" 2 years ",
        ),
        [_png("front.png"), _png("back.png")],
    )

    assert product.slug == "gaming-pc-1"
    assert product.price == Decimal("2499.99")
    assert product.stock == 3
    assert product.category.name == "Laptops"
    assert len(product.image_urls) == 2
    assert product.image_url == product.image_urls[0]
    assert product.specs == [{"key": "CPU", "value": "Ryzen 9"}]
    assert product.average_rating == Decimal("4.5")
    assert product.review_count == 12
    assert product.discount_percent == 10
    assert product.warranty == "2 years"
    assert s3_client.put_object.call_count == 2


@pytest.mark.asyncio
async def test_create_without_images_stores_nulls(service, category):
    product = await service.create_product(_fields(category.id))
    assert product.image_url is None
    assert product.image_urls is None
    assert product.specs is None


@pytest.mark.asyncio
async def test_create_reports_every_missing_field_before_uploading(service, s3_client):
    with pytest.raises(ValidationError) as exc_info:
        await service.create_product({"name": "Case", "price": "  "}, [_png("a.png")])

    assert exc_info.value.status_code == 400
    assert exc_info.value.details["missing_fields"] == ["description", "price", "stock", "categoryId"]
    assert "Missing required fields" in exc_info.value.message
    s3_client.put_object.assert_not_called()


@pytest.mark.parametrize(
    "overrides",
    [
        {"price": "free"},
        {"price": "0"},
        {"price": "-5"},
        {"stock": "1.5"},
        {"stock": "-1"},
        {"categoryId": "abc"},
        {"averageRating": "7"},
        {"discountPercent": "150"},
    ],
)
@pytest.mark.asyncio
async def test_create_rejects_malformed_numbers(service, category, s3_client, overrides):
    with pytest.raises(ValidationError):
        await service.create_product(_fields(category.id, **overrides), [_png("a.png")])
    s3_client.put_object.assert_not_called()


@pytest.mark.asyncio
async def test_create_skips_failed_uploads(service, category, s3_client):
    s3_client.put_object.side_effect = [
        {},
        ClientError({"Error": {"Code": "SlowDown", "Message": "Slow down"}}, "PutObject"),
    ]

    product = await service.create_product(_fields(category.id), [_png("a.png"), _png("b.png")])

    assert len(product.stored_image_urls) == 1


@pytest.mark.asyncio
async def test_create_with_unknown_category_is_bad_reference(service, category):
    with pytest.raises(BadReferenceError) as exc_info:
        await service.create_product(_fields(category.id + 999))
    assert exc_info.value.message == "Invalid category ID"


@pytest.mark.asyncio
async def test_create_with_duplicate_slug_conflicts(service, category):
    await service.create_product(_fields(category.id))
    with pytest.raises(ConflictError):
        await service.create_product(_fields(category.id, name="gaming   pc 1"))


# ----- update -----

@pytest.mark.asyncio
async def test_update_reconciles_images(service, category, storage, s3_client):
    product = await service.create_product(
        _fields(category.id), [_png("a.png"), _png("b.png"), _png("c.png")]
    )
    a, b, c = product.image_urls

    updated = await service.update_product(
        product.id,
        {"keepImageUrls": json.dumps([c, a, "https://elsewhere.example.com/x.png"])},
        [_png("d.png")],
    )

    assert updated.image_urls[:2] == [c, a]
    assert len(updated.image_urls) == 3
    assert updated.image_url == c
    assert _deleted_keys(s3_client) == [storage.key_from_url(b)]


@pytest.mark.asyncio
async def test_update_with_empty_keep_list_removes_all_images(service, category, s3_client):
    product = await service.create_product(_fields(category.id), [_png("a.png"), _png("b.png")])

    updated = await service.update_product(product.id, {"keepImageUrls": "[]"})

    assert updated.image_url is None
    assert updated.image_urls is None
    assert s3_client.delete_object.call_count == 2


@pytest.mark.asyncio
async def test_update_without_keep_field_preserves_images(service, category, s3_client):
    product = await service.create_product(_fields(category.id), [_png("a.png")])
    original_url = product.image_url

    updated = await service.update_product(product.id, {"stock": "9"}, [_png("b.png")])

    assert updated.stock == 9
    assert updated.image_urls[0] == original_url
    assert len(updated.image_urls) == 2
    s3_client.delete_object.assert_not_called()


@pytest.mark.asyncio
async def test_repeated_update_deletes_nothing_more(service, category, s3_client):
    product = await service.create_product(_fields(category.id), [_png("a.png"), _png("b.png")])
    keep = json.dumps([product.image_urls[1]])

    await service.update_product(product.id, {"keepImageUrls": keep})
    await service.update_product(product.id, {"keepImageUrls": keep})

    assert s3_client.delete_object.call_count == 1


@pytest.mark.asyncio
async def test_update_partial_fields(service, category):
    product = await service.create_product(
        _fields(category.id, warranty="1 year", specs='[{"key": "RAM", "value": "32GB"}]')
    )

    updated = await service.update_product(
        product.id,
        {"name": "Gaming PC Pro", "price": "", "warranty": "", "specs": "[]"},
    )

    assert updated.name == "Gaming PC Pro"
    assert updated.slug == "gaming-pc-pro"
    assert updated.price == Decimal("2499.99")
    assert updated.warranty is None
    assert updated.specs is None
    assert updated.description == "Ryzen 9, RTX 4080"


@pytest.mark.asyncio
@pytest.mark.parametrize("raw_specs", ["{not json", '{"key": "RAM"}'])
async def test_update_malformed_specs_keeps_stored_specs(service, category, raw_specs):
    product = await service.create_product(
        _fields(category.id, specs='[{"key": "RAM", "value": "32GB"}]')
    )

    updated = await service.update_product(product.id, {"specs": raw_specs, "stock": "5"})

    assert updated.specs == [{"key": "RAM", "value": "32GB"}]
    assert updated.stock == 5


@pytest.mark.asyncio
async def test_update_validates_before_uploading(service, category, s3_client):
    product = await service.create_product(_fields(category.id))
    with pytest.raises(ValidationError):
        await service.update_product(product.id, {"price": "abc"}, [_png("a.png")])
    s3_client.put_object.assert_not_called()


@pytest.mark.asyncio
async def test_update_missing_product_is_not_found(service):
    with pytest.raises(NotFoundError):
        await service.update_product(424242, {"name": "Ghost"})


@pytest.mark.asyncio
async def test_failed_image_deletion_is_queued_not_raised(service, category, db, s3_client):
    product = await service.create_product(_fields(category.id), [_png("a.png"), _png("b.png")])
    first, second = product.image_urls
    s3_client.delete_object.side_effect = ClientError(
        {"Error": {"Code": "InternalError", "Message": "boom"}}, "DeleteObject"
    )

    updated = await service.update_product(product.id, {"keepImageUrls": json.dumps([first])})

    assert updated.image_urls == [first]
    rows = (await db.execute(select(PendingBlobDeletion))).scalars().all()
    assert [row.url for row in rows] == [second]
    assert rows[0].attempts == 1
    assert "boom" in rows[0].last_error


# ----- delete -----

@pytest.mark.asyncio
async def test_delete_removes_row_and_blobs(service, category, db, s3_client):
    product = await service.create_product(_fields(category.id), [_png("a.png"), _png("b.png")])

    assert await service.delete_product(product.id) == product.id

    assert await db.scalar(select(func.count(Product.id))) == 0
    assert s3_client.delete_object.call_count == 2


@pytest.mark.asyncio
async def test_delete_succeeds_when_every_blob_delete_fails(service, category, db, s3_client):
    product = await service.create_product(_fields(category.id), [_png("a.png"), _png("b.png")])
    s3_client.delete_object.side_effect = RuntimeError("network down")

    assert await service.delete_product(product.id) == product.id

    assert await db.scalar(select(func.count(Product.id))) == 0
    assert await db.scalar(select(func.count(PendingBlobDeletion.id))) == 2


@pytest.mark.asyncio
async def test_delete_missing_product_is_not_found(service, s3_client):
    with pytest.raises(NotFoundError):
        await service.delete_product(424242)
    s3_client.delete_object.assert_not_called()
