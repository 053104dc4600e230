"""
Unit tests for the discount preview evaluator.

Tests verify:
- Percent rounding is half-up in integer cents and clamped to the subtotal
- Fixed amounts clamp to the subtotal
- Each applicability check fails with its own error, in order
- Time window boundaries are inclusive
- The evaluator has no hidden state
"""

import pytest

from givio.pricing import (
    DEFAULT_CATALOG, FIXED, PARTNER_TIERED, PERCENT,
    CardTemplate, CartLine, Catalog, DiscountCode, PartnerTier,
    compute_discount_amount, evaluate_discount, normalize_code, parse_cart,
    price_cart, round_half_up,
)
from givio.pricing import errors

NOW = 1_750_000_000.0

# one cent per card: the cart quantity is the product subtotal
PENNY = Catalog([
    CardTemplate(
        id="penny", name="Penny card", size="4x6", sku="PENNY",
        printful_sync_variant_id=1, price_breaks=((1, 1),),
    ),
])


def cart_of(subtotal_cents):
    return [CartLine("penny", subtotal_cents)]


def percent(value, **kw):
    return DiscountCode(code="PCT", active=True, discount_type=PERCENT,
                        discount_value=value, **kw)


def fixed(value, **kw):
    return DiscountCode(code="FIX", active=True, discount_type=FIXED,
                        discount_value=value, **kw)


def evaluate(record, subtotal, now=NOW, code="pct"):
    return evaluate_discount(
        cart_of(subtotal), code, record, now=now, catalog=PENNY
    )


#
# Amount computation
#

def test_percent_scenario_ten_percent_of_10000():
    result = evaluate(percent(10), 10000)
    assert result.discount_amount_cents == 1000
    assert result.product_subtotal_cents == 10000
    assert result.product_subtotal_after_discount_cents == 9000


def test_fixed_scenario_clamps_to_subtotal():
    result = evaluate(fixed(1000), 500, code="fix")
    assert result.discount_amount_cents == 500
    assert result.product_subtotal_after_discount_cents == 0


@pytest.mark.parametrize("subtotal", [0, 1, 49, 50, 99, 150, 250, 1999, 10001])
def test_percent_amount_is_bounded_and_half_up(subtotal):
    for v in range(1, 101):
        amount = compute_discount_amount(percent(v), subtotal)
        assert 0 <= amount <= subtotal
        # floor(s*v/100 + 1/2) without floats
        assert amount == (subtotal * v * 2 + 100) // 200


@pytest.mark.parametrize("subtotal,value", [(0, 1), (1, 5), (500, 1000),
                                            (1000, 1000), (1001, 1000)])
def test_fixed_amount_is_min_of_value_and_subtotal(subtotal, value):
    assert compute_discount_amount(fixed(value), subtotal) == min(value, subtotal)


def test_round_half_up_ties_go_up_not_to_even():
    assert round_half_up(50, 100) == 1     # 0.5
    assert round_half_up(250, 100) == 3    # 2.5, banker's rounding would say 2
    assert round_half_up(249, 100) == 2
    assert round_half_up(0, 100) == 0


def test_percent_tie_on_real_cart():
    # 5 four-by-six cards at the 5+ price: 2495 cents, 10% = 249.5 -> 250
    cart = [CartLine("card1_4x6", 5)]
    result = evaluate_discount(cart, "pct", percent(10), now=NOW)
    assert result.product_subtotal_cents == 2495
    assert result.discount_amount_cents == 250


def test_zero_amount_is_not_applicable():
    # 1% of 49 cents rounds to 0
    with pytest.raises(errors.DiscountNotApplicable):
        evaluate(percent(1), 49)


def test_partner_code_is_not_a_preview_discount():
    record = DiscountCode(
        code="PARTNER", active=True, discount_type=PARTNER_TIERED,
        partner_moq=1, partner_tiers=(PartnerTier(1, None, 1),),
    )
    with pytest.raises(errors.DiscountNotApplicable):
        evaluate(record, 100)


#
# Applicability checks
#

def test_missing_record_is_invalid_code():
    with pytest.raises(errors.InvalidCode):
        evaluate(None, 1000)


def test_inactive_code():
    with pytest.raises(errors.CodeInactive):
        evaluate(DiscountCode(code="X", active=False, discount_type=PERCENT,
                              discount_value=10), 1000)


def test_expired_wins_regardless_of_other_fields():
    record = percent(10, valid_to=NOW - 1, max_redemptions=5,
                     redemption_count=0, min_subtotal_cents=1)
    with pytest.raises(errors.Expired):
        evaluate(record, 1000)
    # even when it would also fail later checks
    record = percent(10, valid_to=NOW - 1, max_redemptions=1,
                     redemption_count=1, min_subtotal_cents=10**9)
    with pytest.raises(errors.Expired):
        evaluate(record, 1000)


def test_not_yet_valid():
    with pytest.raises(errors.NotYetValid):
        evaluate(percent(10, valid_from=NOW + 1), 1000)


def test_window_boundaries_are_inclusive():
    assert evaluate(percent(10, valid_from=NOW), 1000).discount_amount_cents == 100
    assert evaluate(percent(10, valid_to=NOW), 1000).discount_amount_cents == 100


def test_redemption_limit():
    with pytest.raises(errors.RedemptionLimitReached):
        evaluate(percent(10, max_redemptions=3, redemption_count=3), 1000)
    ok = evaluate(percent(10, max_redemptions=3, redemption_count=2), 1000)
    assert ok.discount_amount_cents == 100


def test_minimum_subtotal():
    with pytest.raises(errors.BelowMinimumSubtotal):
        evaluate(percent(10, min_subtotal_cents=1500), 1499)
    ok = evaluate(percent(10, min_subtotal_cents=1500), 1500)
    assert ok.discount_amount_cents == 150


def test_evaluator_is_idempotent():
    record = percent(15, max_redemptions=10, redemption_count=9)
    first = evaluate(record, 3333)
    second = evaluate(record, 3333)
    assert first == second
    assert record.redemption_count == 9


#
# Cart handling
#

def test_unknown_product():
    with pytest.raises(errors.UnknownProduct):
        evaluate_discount([CartLine("nope", 1)], "pct", percent(10), now=NOW)


@pytest.mark.parametrize("qty", [0, -3])
def test_invalid_quantity(qty):
    with pytest.raises(errors.InvalidQuantity):
        evaluate_discount([CartLine("card1_4x6", qty)], "pct", percent(10),
                          now=NOW)


def test_empty_cart():
    with pytest.raises(errors.EmptyCart):
        evaluate_discount([], "pct", percent(10), now=NOW)


def test_code_is_trimmed_and_uppercased():
    assert normalize_code("  summer10 ") == "SUMMER10"
    result = evaluate(percent(10), 1000, code=" pct ")
    assert result.code == "PCT"
    with pytest.raises(errors.MissingCode):
        normalize_code("   ")


def test_parse_cart_accepts_template_id_alias():
    lines = parse_cart([
        {"templateId": "card1_4x6", "quantity": 2},
        {"productId": "card1_5x7", "quantity": 1.0},
    ])
    assert lines == [CartLine("card1_4x6", 2), CartLine("card1_5x7", 1)]


@pytest.mark.parametrize("items,error", [
    (None, errors.EmptyCart),
    ([], errors.EmptyCart),
    ([{"quantity": 1}], errors.UnknownProduct),
    ([{"productId": "card1_4x6", "quantity": "2"}], errors.InvalidQuantity),
    ([{"productId": "card1_4x6", "quantity": 1.5}], errors.InvalidQuantity),
    ([{"productId": "card1_4x6", "quantity": True}], errors.InvalidQuantity),
])
def test_parse_cart_rejects_bad_payloads(items, error):
    with pytest.raises(error):
        parse_cart(items)


def test_volume_price_follows_total_cards_across_designs():
    one = price_cart([CartLine("card1_4x6", 2)])
    assert one.product_subtotal_cents == 2 * 599

    mixed = price_cart([CartLine("card1_4x6", 2), CartLine("card1_5x7", 1)])
    assert [line.unit_price_cents for line in mixed.lines] == [549, 649]
    assert mixed.product_subtotal_cents == 2 * 549 + 649

    five = price_cart([CartLine("card1_5x7", 5)], DEFAULT_CATALOG)
    assert five.product_subtotal_cents == 5 * 599


def test_preview_payload_shape():
    body = evaluate(percent(10), 10000).to_dict()
    assert body == {
        "ok": True,
        "code": "PCT",
        "discountType": "percent",
        "discountValue": 10,
        "discountAmountCents": 1000,
        "productSubtotalCents": 10000,
        "productSubtotalAfterDiscountCents": 9000,
    }
