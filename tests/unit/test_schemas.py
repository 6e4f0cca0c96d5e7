"""
Response schema tests: camelCase aliases and decimal serialisation.
"""
from decimal import Decimal
from types import SimpleNamespace

from app.schemas.product import ProductResponse


def _product(**overrides):
    values = dict(
        id=7,
        name="Gaming PC",
        slug="gaming-pc",
        description=None,
        price=Decimal("2499.99"),
        stock=None,
        discount_percent=None,
        warranty=None,
        average_rating=Decimal("4.5"),
        review_count=None,
        image_url=None,
        image_urls=None,
        specs=None,
        category_id=3,
        category=None,
        created_at=None,
        updated_at=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_product_response_reads_attributes_and_dumps_camel_case():
    data = ProductResponse.model_validate(_product()).model_dump(mode="json", by_alias=True)

    assert data["categoryId"] == 3
    assert data["stock"] == 0
    assert "category_id" not in data


def test_prices_keep_exact_decimal_value():
    data = ProductResponse.model_validate(_product(price=Decimal("0.10"))).model_dump(
        mode="json", by_alias=True
    )

    assert data["price"] == "0.10"
    assert data["averageRating"] == "4.5"


def test_snake_case_field_names_are_accepted():
    response = ProductResponse(id=1, name="Mouse", slug="mouse", price="19.99", category_id=2)
    assert response.price == Decimal("19.99")
    assert response.category_id == 2
