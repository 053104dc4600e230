"""
Partner (bulk) pricing: the unit price depends on the total card count.

Tiered codes are not a percent/fixed discount. At checkout every card is priced
at the matched tier's unit price, and the difference to the single-card list
price is carried as an "amount off" so the order still shows list prices per
line. Catalog volume breaks are not applied on top of a tier.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..helpers import coerce_int
from .catalog import Catalog, DEFAULT_CATALOG
from .discount import (
    PARTNER_TIERED, CartLine, DiscountCode, PartnerTier, PricedCart,
    check_code_applies, normalize_code, price_cart,
)
from .errors import (
    BelowMinimumOrderQuantity, DiscountNotApplicable, InvalidTiers,
    MoqOutsideTierRanges,
)

DEFAULT_PARTNER_MOQ = 25


def select_tier(
    tiers: Sequence[PartnerTier], quantity: int,
    moq: Optional[int] = None,
) -> PartnerTier:
    if moq is not None and quantity < moq:
        raise BelowMinimumOrderQuantity()
    for tier in tiers:
        if tier.contains(quantity):
            return tier
    raise BelowMinimumOrderQuantity()


@dataclass(frozen=True)
class PartnerQuote:
    code: str
    partner_moq: Optional[int]
    tier: PartnerTier
    priced: PricedCart

    @property
    def total_quantity(self) -> int:
        return self.priced.total_quantity

    @property
    def product_subtotal_cents(self) -> int:
        return self.priced.product_subtotal_cents

    @property
    def discount_amount_cents(self) -> int:
        # priced lines carry list prices, so this is the sum over lines of
        # (list unit - tier unit) * qty; never a surcharge
        partner_total = self.tier.unit_price_cents * self.total_quantity
        return max(0, self.product_subtotal_cents - partner_total)

    @property
    def product_subtotal_after_discount_cents(self) -> int:
        return self.product_subtotal_cents - self.discount_amount_cents

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "code": self.code,
            "discountType": PARTNER_TIERED,
            "discountValue": None,
            "discountAmountCents": self.discount_amount_cents,
            "productSubtotalCents": self.product_subtotal_cents,
            "productSubtotalAfterDiscountCents":
                self.product_subtotal_after_discount_cents,
            "unitPriceCents": self.tier.unit_price_cents,
            "totalQuantity": self.total_quantity,
            "partnerMoq": self.partner_moq,
        }


def price_partner_order(
    cart: Sequence[CartLine],
    code: str,
    record: Optional[DiscountCode],
    *,
    now: float,
    catalog: Catalog = DEFAULT_CATALOG,
) -> PartnerQuote:
    code = normalize_code(code)
    # volume breaks do not stack with partner tiers
    priced = price_cart(cart, catalog, volume_pricing=False)
    record = check_code_applies(record, priced.product_subtotal_cents, now)
    if record.discount_type != PARTNER_TIERED or not record.partner_tiers:
        raise DiscountNotApplicable()

    tier = select_tier(
        record.partner_tiers, priced.total_quantity, record.partner_moq
    )
    return PartnerQuote(
        code=code, partner_moq=record.partner_moq, tier=tier, priced=priced
    )


# ----------------------------
# Authoring-time normalization
# ----------------------------
def normalize_tiers(raw: Any) -> List[PartnerTier]:
    """Coerce a stored/submitted tier list; unusable entries are dropped."""
    if not isinstance(raw, list):
        return []
    tiers = []
    for t in raw:
        if isinstance(t, PartnerTier):
            t = t.to_dict()
        if not isinstance(t, dict):
            continue
        min_qty = coerce_int(t.get("min_qty", t.get("minQty")))
        raw_max = t.get("max_qty", t.get("maxQty"))
        max_qty = None if raw_max is None else coerce_int(raw_max)
        unit = coerce_int(t.get("unit_price_cents", t.get("unitPriceCents")))

        if min_qty is None or min_qty < 1:
            continue
        if raw_max is not None and (max_qty is None or max_qty < min_qty):
            continue
        if unit is None or unit < 1:
            continue
        tiers.append(PartnerTier(min_qty, max_qty, unit))

    tiers.sort(key=lambda tier: tier.min_qty)
    return tiers


def validate_tiers(tiers: Sequence[PartnerTier]) -> None:
    if not tiers:
        raise InvalidTiers("partner_tiers is required")
    prev = None
    for tier in tiers:
        if tier.max_qty is not None and tier.max_qty < tier.min_qty:
            raise InvalidTiers("partner_tiers has an invalid max_qty")
        if tier.unit_price_cents < 1:
            raise InvalidTiers("partner_tiers has an invalid unit_price_cents")
        if prev is not None:
            if prev.max_qty is None:
                raise InvalidTiers(
                    "partner_tiers cannot have tiers after an open ended tier"
                )
            if tier.min_qty <= prev.max_qty:
                raise InvalidTiers("partner_tiers tiers overlap")
        prev = tier


def validate_partner_config(
    moq: Optional[int], tiers: Sequence[PartnerTier]
) -> None:
    validate_tiers(tiers)
    if moq is None:
        return
    if moq < 1:
        raise MoqOutsideTierRanges("Invalid partner_moq")
    if not any(tier.contains(moq) for tier in tiers):
        raise MoqOutsideTierRanges()
