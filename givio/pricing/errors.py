class PricingError(Exception):
    """An expected, user-correctable pricing outcome.

    ``code`` is stable and machine readable; ``message`` is safe to show to the
    shopper or the admin as is.
    """
    code = "PricingError"
    default_message = "Unable to price this cart"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ----------------------------
# Cart / request shape
# ----------------------------
class EmptyCart(PricingError):
    code = "EmptyCart"
    default_message = "Your cart is empty"


class MissingCode(PricingError):
    code = "MissingCode"
    default_message = "Missing discount code"


class UnknownProduct(PricingError):
    code = "UnknownProduct"
    default_message = "Unknown product in cart"


class InvalidQuantity(PricingError):
    code = "InvalidQuantity"
    default_message = "Invalid quantity in cart"


# ----------------------------
# Checkout-time code checks
# ----------------------------
class InvalidCode(PricingError):
    code = "InvalidCode"
    default_message = "Invalid discount code"


class CodeInactive(PricingError):
    code = "CodeInactive"
    default_message = "This discount code is not active"


class NotYetValid(PricingError):
    code = "NotYetValid"
    default_message = "This discount code is not valid yet"


class Expired(PricingError):
    code = "Expired"
    default_message = "This discount code has expired"


class RedemptionLimitReached(PricingError):
    code = "RedemptionLimitReached"
    default_message = "This discount code has reached its redemption limit"


class BelowMinimumSubtotal(PricingError):
    code = "BelowMinimumSubtotal"
    default_message = (
        "Cart subtotal does not meet the minimum for this discount"
    )


class DiscountNotApplicable(PricingError):
    code = "DiscountNotApplicable"
    default_message = "This discount code does not apply to this cart"


class BelowMinimumOrderQuantity(PricingError):
    code = "BelowMinimumOrderQuantity"
    default_message = (
        "Order quantity is below the minimum for this partner code"
    )


# ----------------------------
# Authoring-time (admin console)
# ----------------------------
class InvalidDiscountConfig(PricingError):
    code = "InvalidDiscountConfig"
    default_message = "Invalid discount code configuration"


class InvalidTiers(InvalidDiscountConfig):
    code = "InvalidTiers"
    default_message = "partner_tiers is invalid"


class MoqOutsideTierRanges(InvalidDiscountConfig):
    code = "MoqOutsideTierRanges"
    default_message = "partner_moq must fall inside one of the partner tiers"


class DuplicateCode(InvalidDiscountConfig):
    code = "DuplicateCode"
    default_message = "Code already exists"
