from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest

from app.core.money import add_money, round_money, to_money_string
from app.services.sale_calculations import (
    SaleCalculationRequest,
    SaleItemInput,
    allocate_discount,
    clamp_discount,
    compute_sale_totals,
)


def _sum(values):
    return to_money_string(add_money(*values))


# =========================================================
# DISCOUNT ALLOCATION
# =========================================================

def test_allocate_discount_gives_remainder_to_last_item():
    shares = allocate_discount([Decimal("100.00"), Decimal("90.00")], Decimal("10.00"))

    # 10 * 100 / 190 = 5.263... -> 5.26, the last item takes the rest
    assert shares == [Decimal("5.26"), Decimal("4.74")]


def test_allocate_discount_last_item_absorbs_rounding():
    shares = allocate_discount(["10.00", "10.00", "10.00"], "10.00")

    assert shares[0] == Decimal("3.33")
    assert shares[1] == Decimal("3.33")
    assert shares[2] == Decimal("3.34")
    assert _sum(shares) == "10.00"


def test_allocate_discount_order_matters():
    shares = allocate_discount(["10.00", "10.00", "10.00"], "0.02")

    assert shares == [Decimal("0.01"), Decimal("0.01"), Decimal("0.00")]


def test_allocate_discount_with_zero_gross_total():
    assert allocate_discount(["0.00", "0.00"], "5.00") == [Decimal("0.00"), Decimal("0.00")]


def test_allocate_discount_never_negative_on_last_item():
    # Earlier shares round up past the discount; the last share clamps at zero
    shares = allocate_discount(["1.00", "1.00", "0.00"], "0.01")

    assert shares == [Decimal("0.01"), Decimal("0.01"), Decimal("0.00")]
    assert all(share >= 0 for share in shares)


def test_clamp_discount():
    assert clamp_discount("250.00", "190.00") == Decimal("190.00")
    assert clamp_discount("-5.00", "190.00") == Decimal("0.00")
    assert clamp_discount("12.345", "190.00") == Decimal("12.35")


# =========================================================
# SALE TOTALS
# =========================================================

def test_distributes_sale_discount_and_preserves_totals():
    result = compute_sale_totals(
        SaleCalculationRequest(
            sale_discount=10,
            items=[
                SaleItemInput(product_id=1, quantity=2, unit_price=50),
                SaleItemInput(product_id=2, quantity=3, unit_price=30),
            ],
        )
    )

    assert str(result.gross_total) == "190.00"
    assert str(result.sale_discount) == "10.00"
    assert str(result.sale_total) == "180.00"
    assert _sum(item.item_discount for item in result.items) == "10.00"
    assert _sum(item.net_value for item in result.items) == str(result.sale_total)
    assert str(result.items[-1].item_discount) == "4.74"


def test_single_item_discount():
    result = compute_sale_totals(
        SaleCalculationRequest(
            sale_discount=5,
            items=[SaleItemInput(product_id=1, quantity=1, unit_price=100)],
        )
    )

    assert str(result.sale_total) == "95.00"
    assert str(result.items[0].net_value) == "95.00"


def test_cent_level_distribution_sums_exactly():
    result = compute_sale_totals(
        SaleCalculationRequest(
            sale_discount=1,
            items=[
                SaleItemInput(product_id=1, quantity=1, unit_price="0.33"),
                SaleItemInput(product_id=2, quantity=1, unit_price="0.33"),
                SaleItemInput(product_id=3, quantity=1, unit_price="0.34"),
            ],
        )
    )

    assert _sum(item.item_discount for item in result.items) == "1.00"
    assert str(result.sale_discount) == "1.00"
    assert str(result.sale_total) == "0.00"

    for item in result.items:
        assert item.net_value == round_money(item.gross_value - item.item_discount)


def test_sale_discount_overrides_item_discounts():
    result = compute_sale_totals(
        SaleCalculationRequest(
            sale_discount="20.00",
            items=[
                SaleItemInput(product_id=1, quantity=1, unit_price="100.00", item_discount="50.00"),
                SaleItemInput(product_id=2, quantity=1, unit_price="100.00", item_discount="30.00"),
            ],
        )
    )

    assert [str(item.item_discount) for item in result.items] == ["10.00", "10.00"]
    assert str(result.sale_discount) == "20.00"
    assert str(result.sale_total) == "180.00"


def test_item_discounts_used_when_no_sale_discount():
    result = compute_sale_totals(
        SaleCalculationRequest(
            items=[
                SaleItemInput(product_id=1, quantity=2, unit_price="25.00", item_discount="5.00"),
                SaleItemInput(product_id=2, quantity=1, unit_price="10.00", item_discount="1.50"),
            ],
        )
    )

    assert str(result.sale_discount) == "6.50"
    assert str(result.gross_total) == "60.00"
    assert str(result.sale_total) == "53.50"
    assert [str(item.net_value) for item in result.items] == ["45.00", "8.50"]


def test_zero_sale_discount_keeps_item_discounts():
    result = compute_sale_totals(
        SaleCalculationRequest(
            sale_discount=0,
            items=[SaleItemInput(product_id=1, quantity=1, unit_price="10.00", item_discount="2.00")],
        )
    )

    assert str(result.sale_discount) == "2.00"
    assert str(result.sale_total) == "8.00"


def test_sale_discount_above_gross_is_clamped():
    result = compute_sale_totals(
        SaleCalculationRequest(
            sale_discount="500.00",
            items=[
                SaleItemInput(product_id=1, quantity=1, unit_price="30.00"),
                SaleItemInput(product_id=2, quantity=2, unit_price="10.00"),
            ],
        )
    )

    assert result.sale_discount == result.gross_total
    assert str(result.sale_discount) == "50.00"
    assert str(result.sale_total) == "0.00"
    assert all(item.net_value == Decimal("0.00") for item in result.items)


def test_negative_sale_discount_is_clamped_to_zero():
    result = compute_sale_totals(
        SaleCalculationRequest(
            sale_discount="-10.00",
            items=[SaleItemInput(product_id=1, quantity=1, unit_price="30.00")],
        )
    )

    assert str(result.sale_discount) == "0.00"
    assert str(result.sale_total) == "30.00"


def test_prices_are_rounded_before_multiplying():
    result = compute_sale_totals(
        SaleCalculationRequest(
            items=[SaleItemInput(product_id=1, quantity=3, unit_price="0.105")],
        )
    )

    assert str(result.items[0].unit_price) == "0.11"
    assert str(result.items[0].gross_value) == "0.33"


def test_totals_invariants_over_many_shapes():
    prices = ["0.01", "0.99", "3.33", "19.99", "1234.56", "7.77"]
    quantities = [1, 3, 7, 2, 1, 11]

    for count in range(1, len(prices) + 1):
        for discount in ["0.01", "1.00", "3.33", "100.00", "99999.99"]:
            items = [
                SaleItemInput(product_id=i + 1, quantity=quantities[i], unit_price=prices[i])
                for i in range(count)
            ]
            result = compute_sale_totals(SaleCalculationRequest(sale_discount=discount, items=items))

            assert _sum(item.item_discount for item in result.items) == str(result.sale_discount)
            assert _sum(item.net_value for item in result.items) == str(result.sale_total)
            assert _sum(item.gross_value for item in result.items) == str(result.gross_total)
            assert Decimal("0") <= result.sale_discount <= result.gross_total
            for item in result.items:
                assert item.net_value == round_money(item.gross_value - item.item_discount)


def test_result_is_immutable():
    result = compute_sale_totals(
        SaleCalculationRequest(items=[SaleItemInput(product_id=1, quantity=1, unit_price="1.00")])
    )

    with pytest.raises(FrozenInstanceError):
        result.items[0].net_value = Decimal("0")
