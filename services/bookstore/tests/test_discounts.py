from datetime import datetime

import pytest

from bookstore.application.discounts import DiscountService
from conftest import FailingClient, fixed_clock


@pytest.fixture
def discounts(client):
    client.insert("discounts", {"code": "SAVE10", "pct_off": 10, "active": True})
    client.insert("discounts", {"code": "OLD", "pct_off": 5, "active": False})
    client.insert("discounts", {"code": "USEDUP", "pct_off": 20, "active": True, "max_uses": 3, "used_count": 3})
    client.insert("discounts", {"code": "UNLIMITED", "pct_off": 20, "active": True, "max_uses": 0, "used_count": 8})
    client.insert("discounts", {"code": "EXPIRED", "pct_off": 30, "active": True, "expires_at": datetime(2024, 4, 1)})
    client.insert("discounts", {"code": "LATER", "pct_off": 25, "active": True, "expires_at": datetime(2024, 6, 1)})
    return DiscountService(client, clock=fixed_clock)


def test_valid_code_is_normalized(discounts):
    result = discounts.validate_code("  save10 ")
    assert result.valid
    assert result.code == "SAVE10"
    assert result.pct_off == 10
    assert result.error is None


@pytest.mark.parametrize("code,message", [
    ("", "Please enter a discount code"),
    ("   ", "Please enter a discount code"),
    ("NOPE", "Invalid discount code"),
    ("old", "This discount code is no longer active"),
    ("USEDUP", "This discount code has reached its usage limit"),
    ("EXPIRED", "This discount code has expired"),
])
def test_rejections(discounts, code, message):
    result = discounts.validate_code(code)
    assert not result.valid
    assert result.pct_off == 0
    assert result.error == message


def test_zero_max_uses_means_unlimited(discounts):
    assert discounts.validate_code("UNLIMITED").valid


def test_future_expiry_is_accepted(discounts):
    assert discounts.validate_code("LATER").pct_off == 25


def test_backend_failure_message():
    result = DiscountService(FailingClient()).validate_code("SAVE10")
    assert not result.valid
    assert result.error == "Failed to apply discount code"
