from decimal import Decimal

import pytest

from app.utils.sanitizers import (
    SanitizationError,
    is_absolute_url,
    parse_url_list,
    sanitize_boolean,
    sanitize_decimal,
    sanitize_integer,
    sanitize_specs,
    sanitize_string,
    slugify,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Gaming PC #1", "gaming-pc-1"),
        ("  RTX   4090  Ti ", "rtx-4090-ti"),
        ("Café Laptop", "caf-laptop"),
        ("already-slugged", "already-slugged"),
    ],
)
def test_slugify(name, expected):
    assert slugify(name) == expected


def test_sanitize_decimal_parses_and_rejects_in_strict_mode():
    assert sanitize_decimal("199.99", "price") == Decimal("199.99")
    assert sanitize_decimal("", "price") is None
    assert sanitize_decimal("abc", "price") is None

    with pytest.raises(SanitizationError) as exc_info:
        sanitize_decimal("abc", "price", strict=True)
    assert exc_info.value.field_name == "price"

    with pytest.raises(SanitizationError):
        sanitize_decimal("0", "price", min_value=Decimal("0"), exclusive_min=True, strict=True)

    with pytest.raises(SanitizationError):
        sanitize_decimal("NaN", "price", strict=True)


def test_sanitize_integer_requires_whole_numbers():
    assert sanitize_integer("12", "stock") == 12
    assert sanitize_integer(" 3 ", "stock") == 3
    assert sanitize_integer("2.5", "stock") is None

    with pytest.raises(SanitizationError):
        sanitize_integer("2.5", "stock", strict=True)
    with pytest.raises(SanitizationError):
        sanitize_integer("-1", "stock", min_value=0, strict=True)


def test_sanitize_string_trims_and_blanks_to_none():
    assert sanitize_string("  Ryzen 9  ") == "Ryzen 9"
    assert sanitize_string("   ") is None
    assert sanitize_string("   ", allow_empty=True) == ""
    assert sanitize_string("abcdef", max_length=3) == "abc"


def test_sanitize_boolean_spellings():
    assert sanitize_boolean("true") is True
    assert sanitize_boolean("1") is True
    assert sanitize_boolean("off") is False
    assert sanitize_boolean("maybe") is None


def test_sanitize_specs_trims_drops_and_keeps_order():
    raw = (
        '[{"key": " CPU ", "value": " Ryzen 9 "},'
        ' {"key": "", "value": "orphan"},'
        ' {"key": "RAM", "value": "   "},'
        ' {"key": "CPU", "value": "second"},'
        ' "not-an-object"]'
    )
    assert sanitize_specs(raw) == [
        {"key": "CPU", "value": "Ryzen 9"},
        {"key": "CPU", "value": "second"},
    ]


@pytest.mark.parametrize("raw", [None, "", "null", "undefined", "[]"])
def test_sanitize_specs_blank_input_is_empty(raw):
    assert sanitize_specs(raw) == []


@pytest.mark.parametrize("raw", ["{not json", '{"key": "a"}', "42"])
def test_sanitize_specs_malformed_input_is_none(raw):
    assert sanitize_specs(raw) is None


def test_parse_url_list_keeps_only_absolute_urls():
    raw = (
        '["https://cdn.example.com/a.png", "relative/b.png", 42,'
        ' "ftp://example.com/c.png", "https://cdn.example.com/a.png",'
        ' "http://cdn.example.com/d.png"]'
    )
    assert parse_url_list(raw) == [
        "https://cdn.example.com/a.png",
        "http://cdn.example.com/d.png",
    ]
    assert parse_url_list("not json") == []


def test_is_absolute_url():
    assert is_absolute_url("https://bucket.s3.us-east-1.amazonaws.com/products/x.png")
    assert not is_absolute_url("/products/x.png")
    assert not is_absolute_url(" https://example.com/x.png")
    assert not is_absolute_url(None)
