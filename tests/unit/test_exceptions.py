from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.audit_log import ACTION_PRODUCT_DELETE, log_admin_action
from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    is_foreign_key_violation,
    is_unique_violation,
)


def _integrity_error(sqlstate=None, message=""):
    orig = MagicMock()
    orig.sqlstate = sqlstate
    orig.__str__.return_value = message
    return IntegrityError("INSERT ...", {}, orig)


def test_integrity_errors_classified_by_sqlstate():
    assert is_unique_violation(_integrity_error("23505"))
    assert not is_foreign_key_violation(_integrity_error("23505"))
    assert is_foreign_key_violation(_integrity_error("23503"))


def test_integrity_errors_classified_by_message():
    assert is_unique_violation(_integrity_error(None, "UNIQUE constraint failed: products.slug"))
    assert is_foreign_key_violation(_integrity_error(None, "FOREIGN KEY constraint failed"))


def test_error_details():
    err = NotFoundError("Product not found", resource_type="product", resource_id=7)
    assert err.status_code == 404
    assert err.to_dict()["details"] == {"resource_type": "product", "resource_id": 7}

    err = ValidationError("Missing required fields: price", missing_fields=["price"])
    assert err.status_code == 400
    assert err.details["missing_fields"] == ["price"]

    assert ConflictError("dup").code == "CONFLICT"


def test_audit_log_strips_sensitive_details(caplog):
    with caplog.at_level("INFO", logger="audit"):
        entry = log_admin_action(
            ACTION_PRODUCT_DELETE,
            admin_id="admin-sub",
            resource_type="product",
            resource_id=12,
            details={"name": "Case", "token": "abc"},
            ip_address="10.0.0.1",
        )

    assert entry["resource_id"] == "12"
    assert entry["details"] == {"name": "Case"}
    assert "product.delete by admin-sub on product/12" in caplog.text


@pytest.mark.parametrize("success, level", [(True, "INFO"), (False, "WARNING")])
def test_audit_log_level_follows_outcome(caplog, success, level):
    with caplog.at_level("INFO", logger="audit"):
        log_admin_action("category.create", "admin-sub", "category", success=success)
    assert caplog.records[-1].levelname == level
