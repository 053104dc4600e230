# pricing/__init__.py
from .catalog import CARD_TEMPLATES, DEFAULT_CATALOG, CardTemplate, Catalog
from .discount import (
    DISCOUNT_TYPES, FIXED, PARTNER_TIERED, PERCENT,
    CartLine, DiscountCode, DiscountPreview, PartnerTier, PricedCart,
    compute_discount_amount, evaluate_discount, normalize_code, parse_cart,
    price_cart, round_half_up,
)
from .errors import PricingError
from .quote import build_quote
from .tiers import (
    DEFAULT_PARTNER_MOQ, PartnerQuote, normalize_tiers, price_partner_order,
    select_tier, validate_partner_config, validate_tiers,
)
from .authoring import merge_code_update, parse_new_code

__all__ = [
  "CARD_TEMPLATES", "DEFAULT_CATALOG", "CardTemplate", "Catalog",
  "DISCOUNT_TYPES", "FIXED", "PARTNER_TIERED", "PERCENT",
  "CartLine", "DiscountCode", "DiscountPreview", "PartnerTier", "PricedCart",
  "compute_discount_amount", "evaluate_discount", "normalize_code",
  "parse_cart", "price_cart", "round_half_up",
  "PricingError", "build_quote",
  "DEFAULT_PARTNER_MOQ", "PartnerQuote", "normalize_tiers",
  "price_partner_order", "select_tier", "validate_partner_config",
  "validate_tiers", "merge_code_update", "parse_new_code",
]
