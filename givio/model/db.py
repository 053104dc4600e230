from sqlalchemy.orm import declarative_base
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    Text,
    JSON,
    Index,
    func,
)


Base = declarative_base()


# ----------------------------
# ORM models
# ----------------------------
class DiscountCodeRow(Base):
    __tablename__ = "discount_codes"
    id = Column(String, primary_key=True)
    code = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    # percent | fixed | partner_tiered_unit_price
    discount_type = Column(String, nullable=False)
    # percent 1..100 or cents; NULL for partner tier codes
    discount_value = Column(Integer, nullable=True)

    # unix seconds, both ends inclusive
    valid_from = Column(Float, nullable=True)
    valid_to = Column(Float, nullable=True)

    max_redemptions = Column(Integer, nullable=True)
    redemption_count = Column(Integer, nullable=False, default=0)
    min_subtotal_cents = Column(Integer, nullable=True)

    notes = Column(Text, nullable=True)
    stripe_coupon_id = Column(String, nullable=True)

    partner_moq = Column(Integer, nullable=True)
    # [{"min_qty", "max_qty" (null = open), "unit_price_cents"}], ascending
    partner_tiers = Column(JSON, nullable=True)

    created_at = Column(Float, nullable=False)


Index(
    "discount_codes_code_unique_ci",
    func.upper(DiscountCodeRow.code),
    unique=True,
)
