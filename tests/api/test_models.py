"""Tests for Listing price helpers."""

import pytest

from api.models import Listing
from shared.types import StockStatus


def _listing(**overrides) -> Listing:
    fields = {
        "store_name": "Amazon",
        "title": "Samsung Galaxy S24",
        "url": "https://amazon.example/s24",
        "price": 799.0,
        "original_price": 999.0,
        "currency": "INR",
        "stock_status": StockStatus.in_stock,
        "shipping_info": None,
    }
    fields.update(overrides)
    return Listing(**fields)


class TestDiscount:
    """Tests for calculate_discount and is_good_deal."""

    def test_rounded_to_two_decimals(self) -> None:
        assert _listing().calculate_discount() == 20.02

    def test_missing_original_price_is_zero(self) -> None:
        listing = _listing(original_price=None)
        assert listing.calculate_discount() == 0.0
        assert listing.is_good_deal() is False

    def test_threshold_is_inclusive(self) -> None:
        assert _listing(price=800.0, original_price=1000.0).is_good_deal() is True
        assert _listing(price=801.0, original_price=1000.0).is_good_deal() is False
        assert _listing(price=900.0, original_price=1000.0).is_good_deal(threshold=10) is True


class TestCosts:
    """Tests for stock, shipping and price formatting helpers."""

    @pytest.mark.parametrize(
        "status, expected",
        [
            (StockStatus.in_stock, True),
            (StockStatus.limited_stock, True),
            (StockStatus.out_of_stock, False),
            (StockStatus.pre_order, False),
        ],
    )
    def test_is_in_stock(self, status, expected) -> None:
        assert _listing(stock_status=status).is_in_stock() is expected

    def test_shipping_cost_falls_back_to_zero(self) -> None:
        assert _listing().shipping_cost() == 0.0
        assert _listing(shipping_info={"free": True}).shipping_cost() == 0.0
        assert _listing(shipping_info={"cost": "49"}).shipping_cost() == 49.0

    def test_total_cost_adds_shipping(self) -> None:
        assert _listing(shipping_info={"cost": 49}).total_cost() == 848.0
        assert _listing().total_cost() == 799.0

    def test_formatted_price(self) -> None:
        assert _listing(price=74999).formatted_price() == "₹74999.00"
        assert _listing(price=9.5, currency="JPY").formatted_price() == "JPY9.50"
