from __future__ import annotations
from typing import Any, Dict, Optional, Sequence

from .catalog import Catalog, DEFAULT_CATALOG
from .discount import (
    PARTNER_TIERED, CartLine, DiscountCode, evaluate_discount, price_cart,
)
from .tiers import price_partner_order


def build_quote(
    cart: Sequence[CartLine],
    code: Optional[str],
    record: Optional[DiscountCode],
    *,
    now: float,
    catalog: Catalog = DEFAULT_CATALOG,
    shipping_cents: int = 0,
) -> Dict[str, Any]:
    """Checkout totals for a cart, with an optional code applied.

    Shipping is added after the discount; it is never discounted and never
    counts towards a code's minimum subtotal.
    """
    priced = price_cart(cart, catalog)
    mode = "list"
    discount = 0
    extra: Dict[str, Any] = {}

    if code:
        if record is not None and record.discount_type == PARTNER_TIERED:
            partner = price_partner_order(
                cart, code, record, now=now, catalog=catalog
            )
            priced = partner.priced
            discount = partner.discount_amount_cents
            extra = {
                "unitPriceCents": partner.tier.unit_price_cents,
                "partnerMoq": partner.partner_moq,
            }
        else:
            preview = evaluate_discount(
                cart, code, record, now=now, catalog=catalog
            )
            discount = preview.discount_amount_cents
        mode = record.discount_type
        extra["code"] = code.strip().upper()

    subtotal = priced.product_subtotal_cents
    after = subtotal - discount
    return {
        "ok": True,
        "pricingMode": mode,
        "items": [line.to_dict() for line in priced.lines],
        "totalQuantity": priced.total_quantity,
        "productSubtotalCents": subtotal,
        "discountAmountCents": discount,
        "productSubtotalAfterDiscountCents": after,
        "shippingCents": shipping_cents,
        "totalCents": after + shipping_cents,
        **extra,
    }
