# app/services/sale_calculations.py
#
# Pure sale arithmetic. No I/O and no shared state: safe to call from any
# number of request handlers at once.

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence, Tuple

from app.core.money import (
    ZERO,
    MoneyInput,
    add_money,
    is_greater_than,
    multiply_money,
    round_money,
    subtract_money,
    to_decimal,
)


@dataclass(frozen=True)
class SaleItemInput:
    product_id: Optional[int]
    quantity: int
    unit_price: MoneyInput
    item_discount: Optional[MoneyInput] = None


@dataclass(frozen=True)
class CalculatedSaleItem:
    product_id: Optional[int]
    quantity: int
    unit_price: Decimal
    item_discount: Decimal
    gross_value: Decimal
    net_value: Decimal


@dataclass(frozen=True)
class SaleCalculationRequest:
    items: Sequence[SaleItemInput]
    sale_discount: Optional[MoneyInput] = None


@dataclass(frozen=True)
class SaleCalculationResult:
    sale_discount: Decimal
    sale_total: Decimal
    items: Tuple[CalculatedSaleItem, ...]
    gross_total: Decimal


def clamp_discount(discount: MoneyInput, max_discount: MoneyInput) -> Decimal:
    if is_greater_than(discount, max_discount):
        return round_money(max_discount)
    if is_greater_than(ZERO, discount):
        return ZERO
    return round_money(discount)


def allocate_discount(gross_values: Sequence[MoneyInput], discount: MoneyInput) -> List[Decimal]:
    """
    Split ``discount`` across items proportionally to their gross values.

    Every share except the last is rounded half-up to cents. The last item
    takes the exact remainder, so the shares always add up to ``discount``.
    Input order matters: the last item absorbs the rounding residue.
    """
    grosses = [to_decimal(value) for value in gross_values]
    total_gross = sum(grosses, Decimal(0))

    if total_gross == 0:
        return [ZERO for _ in grosses]

    discount = to_decimal(discount)
    allocated = Decimal(0)
    shares = []

    for index, gross in enumerate(grosses):
        if index == len(grosses) - 1:
            share = discount - allocated
        else:
            share = (discount * gross / total_gross).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
            allocated += share

        if share < 0:
            share = Decimal(0)

        shares.append(round_money(share))

    return shares


def _calculate_item(item: SaleItemInput) -> CalculatedSaleItem:
    unit_price = round_money(item.unit_price)
    item_discount = round_money(item.item_discount if item.item_discount is not None else ZERO)
    gross_value = multiply_money(unit_price, item.quantity)

    return CalculatedSaleItem(
        product_id=item.product_id,
        quantity=item.quantity,
        unit_price=unit_price,
        item_discount=item_discount,
        gross_value=gross_value,
        net_value=subtract_money(gross_value, item_discount),
    )


def compute_sale_totals(request: SaleCalculationRequest) -> SaleCalculationResult:
    items = [_calculate_item(item) for item in request.items]

    gross_total = add_money(*[item.gross_value for item in items])

    requested = request.sale_discount if request.sale_discount is not None else ZERO
    sale_discount = clamp_discount(round_money(requested), gross_total)

    # A sale-level discount overrides item-level discounts, never both
    if is_greater_than(sale_discount, ZERO):
        shares = allocate_discount([item.gross_value for item in items], sale_discount)
        items = [
            replace(
                item,
                item_discount=share,
                net_value=subtract_money(item.gross_value, share),
            )
            for item, share in zip(items, shares)
        ]
    else:
        item_discounts = add_money(*[item.item_discount for item in items])
        sale_discount = clamp_discount(item_discounts, gross_total)

    sale_total = add_money(*[item.net_value for item in items])

    return SaleCalculationResult(
        sale_discount=sale_discount,
        sale_total=sale_total,
        items=tuple(items),
        gross_total=gross_total,
    )
