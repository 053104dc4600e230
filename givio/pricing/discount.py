"""
Discount preview: decide whether a code applies to a cart and by how much.

Everything here is a pure function of its inputs. The clock is passed in as
``now`` (unix seconds) and the catalog is injectable, so the same inputs always
give the same answer. Redemption counters are never touched.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .catalog import Catalog, DEFAULT_CATALOG
from .errors import (
    BelowMinimumSubtotal, CodeInactive, DiscountNotApplicable, EmptyCart,
    Expired, InvalidCode, InvalidQuantity, MissingCode, NotYetValid,
    RedemptionLimitReached, UnknownProduct,
)

PERCENT = "percent"
FIXED = "fixed"
PARTNER_TIERED = "partner_tiered_unit_price"
DISCOUNT_TYPES = (PERCENT, FIXED, PARTNER_TIERED)


# ----------------------------
# Types
# ----------------------------
@dataclass(frozen=True)
class PartnerTier:
    min_qty: int
    max_qty: Optional[int]  # None -> open ended
    unit_price_cents: int

    def contains(self, quantity: int) -> bool:
        return self.min_qty <= quantity and (
            self.max_qty is None or quantity <= self.max_qty
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_qty": self.min_qty,
            "max_qty": self.max_qty,
            "unit_price_cents": self.unit_price_cents,
        }


@dataclass(frozen=True)
class DiscountCode:
    code: str
    active: bool
    discount_type: str
    discount_value: Optional[int] = None
    valid_from: Optional[float] = None
    valid_to: Optional[float] = None
    max_redemptions: Optional[int] = None
    redemption_count: int = 0
    min_subtotal_cents: Optional[int] = None
    partner_moq: Optional[int] = None
    partner_tiers: Tuple[PartnerTier, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "quantity": self.quantity,
            "unitPriceCents": self.unit_price_cents,
            "lineTotalCents": self.line_total_cents,
        }


@dataclass(frozen=True)
class PricedCart:
    lines: Tuple[PricedLine, ...]

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def product_subtotal_cents(self) -> int:
        return sum(line.line_total_cents for line in self.lines)


@dataclass(frozen=True)
class DiscountPreview:
    code: str
    discount_type: str
    discount_value: Optional[int]
    discount_amount_cents: int
    product_subtotal_cents: int

    @property
    def product_subtotal_after_discount_cents(self) -> int:
        return self.product_subtotal_cents - self.discount_amount_cents

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "code": self.code,
            "discountType": self.discount_type,
            "discountValue": self.discount_value,
            "discountAmountCents": self.discount_amount_cents,
            "productSubtotalCents": self.product_subtotal_cents,
            "productSubtotalAfterDiscountCents":
                self.product_subtotal_after_discount_cents,
        }


# ----------------------------
# Cart normalization
# ----------------------------
def normalize_code(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise MissingCode()
    return raw.strip().upper()


def parse_cart(items: Any) -> List[CartLine]:
    """Wire payload -> cart lines. ``templateId`` is accepted for ``productId``."""
    if not isinstance(items, list) or not items:
        raise EmptyCart()
    lines = []
    for item in items:
        if not isinstance(item, dict):
            raise UnknownProduct()
        product_id = item.get("productId", item.get("templateId"))
        if not isinstance(product_id, str) or not product_id:
            raise UnknownProduct()
        quantity = item.get("quantity")
        if isinstance(quantity, float) and quantity.is_integer():
            quantity = int(quantity)
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidQuantity()
        lines.append(CartLine(product_id=product_id, quantity=quantity))
    return lines


def price_cart(
    cart: Sequence[CartLine],
    catalog: Catalog = DEFAULT_CATALOG,
    volume_pricing: bool = True,
) -> PricedCart:
    """Price each line; ``volume_pricing=False`` uses single-card list prices."""
    if not cart:
        raise EmptyCart()
    for line in cart:
        if catalog.get(line.product_id) is None:
            raise UnknownProduct()
        if line.quantity <= 0:
            raise InvalidQuantity()
    total_qty = sum(line.quantity for line in cart)

    def unit_price(product_id: str) -> int:
        if volume_pricing:
            return catalog.unit_price_cents(product_id, total_qty)
        return catalog.list_price_cents(product_id)

    return PricedCart(lines=tuple(
        PricedLine(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price_cents=unit_price(line.product_id),
        )
        for line in cart
    ))


# ----------------------------
# Code checks
# ----------------------------
def check_code_applies(
    record: Optional[DiscountCode], product_subtotal_cents: int, now: float
) -> DiscountCode:
    """Steps shared by every code type; the first failing check wins."""
    if record is None:
        raise InvalidCode()
    if not record.active:
        raise CodeInactive()
    # both ends of the window are inclusive
    if record.valid_from is not None and now < record.valid_from:
        raise NotYetValid()
    if record.valid_to is not None and now > record.valid_to:
        raise Expired()
    if (record.max_redemptions is not None
            and record.redemption_count >= record.max_redemptions):
        raise RedemptionLimitReached()
    if (record.min_subtotal_cents is not None
            and product_subtotal_cents < record.min_subtotal_cents):
        raise BelowMinimumSubtotal()
    return record


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounding ties toward +inf (non-negative inputs)."""
    return (2 * numerator + denominator) // (2 * denominator)


def compute_discount_amount(
    record: DiscountCode, product_subtotal_cents: int
) -> int:
    s = max(0, product_subtotal_cents)
    if record.discount_type == PERCENT:
        amount = round_half_up(s * int(record.discount_value or 0), 100)
    elif record.discount_type == FIXED:
        amount = int(record.discount_value or 0)
    else:
        # partner tiers change the unit price, see tiers.price_partner_order
        return 0
    return max(0, min(s, amount))


def evaluate_discount(
    cart: Sequence[CartLine],
    code: str,
    record: Optional[DiscountCode],
    *,
    now: float,
    catalog: Catalog = DEFAULT_CATALOG,
) -> DiscountPreview:
    code = normalize_code(code)
    priced = price_cart(cart, catalog)
    subtotal = priced.product_subtotal_cents

    record = check_code_applies(record, subtotal, now)
    if record.discount_type not in (PERCENT, FIXED):
        raise DiscountNotApplicable()

    amount = compute_discount_amount(record, subtotal)
    if amount <= 0:
        raise DiscountNotApplicable()

    return DiscountPreview(
        code=code,
        discount_type=record.discount_type,
        discount_value=record.discount_value,
        discount_amount_cents=amount,
        product_subtotal_cents=subtotal,
    )
