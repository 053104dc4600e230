from __future__ import annotations
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..helpers import now_ts, to_iso
from ..pricing import DiscountCode, normalize_tiers
from ..pricing.errors import DuplicateCode
from .db import DiscountCodeRow

COLUMNS = (
    "id", "code", "active", "discount_type", "discount_value", "valid_from",
    "valid_to", "max_redemptions", "redemption_count", "min_subtotal_cents",
    "notes", "stripe_coupon_id", "partner_moq", "partner_tiers", "created_at",
)


def row_to_record(row: DiscountCodeRow) -> Dict[str, Any]:
    return {c: getattr(row, c) for c in COLUMNS}


def row_to_json(row: DiscountCodeRow) -> Dict[str, Any]:
    out = row_to_record(row)
    for key in ("valid_from", "valid_to", "created_at"):
        out[key] = to_iso(out[key])
    tiers = normalize_tiers(out["partner_tiers"] or [])
    out["partner_tiers"] = [t.to_dict() for t in tiers] or None
    return out


def row_to_discount(row: DiscountCodeRow) -> DiscountCode:
    return DiscountCode(
        code=row.code,
        active=bool(row.active),
        discount_type=row.discount_type,
        discount_value=row.discount_value,
        valid_from=row.valid_from,
        valid_to=row.valid_to,
        max_redemptions=row.max_redemptions,
        redemption_count=row.redemption_count or 0,
        min_subtotal_cents=row.min_subtotal_cents,
        partner_moq=row.partner_moq,
        partner_tiers=tuple(normalize_tiers(row.partner_tiers or [])),
    )


class DiscountCodeStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_code(self, code: str) -> Optional[DiscountCodeRow]:
        async with self.db.begin():
            result = await self.db.execute(
                select(DiscountCodeRow)
                .where(func.upper(DiscountCodeRow.code) == code.strip().upper())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            return result.scalars().first()

    async def get(self, code_id: str) -> Optional[DiscountCodeRow]:
        async with self.db.begin():
            return await self.db.get(
                DiscountCodeRow, code_id, populate_existing=True
            )

    async def list_codes(
            self, include_inactive: bool = False
    ) -> List[DiscountCodeRow]:
        stmt = select(DiscountCodeRow).order_by(
            DiscountCodeRow.created_at.desc()
        )
        if not include_inactive:
            stmt = stmt.where(DiscountCodeRow.active.is_(True))
        async with self.db.begin():
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def create(self, fields: Dict[str, Any]) -> DiscountCodeRow:
        row = DiscountCodeRow(
            id=uuid.uuid4().hex,
            redemption_count=0,
            created_at=now_ts(),
            **fields,
        )
        try:
            async with self.db.begin():
                self.db.add(row)
        except IntegrityError:
            raise DuplicateCode()
        return row

    async def update(
            self, code_id: str, fields: Dict[str, Any]
    ) -> Optional[DiscountCodeRow]:
        try:
            async with self.db.begin():
                row = await self.db.get(
                    DiscountCodeRow, code_id, populate_existing=True
                )
                if row is None:
                    return None
                for key, value in fields.items():
                    setattr(row, key, value)
        except IntegrityError:
            raise DuplicateCode()
        return row

    async def deactivate(self, code_id: str) -> Optional[DiscountCodeRow]:
        return await self.update(code_id, {"active": False})

    async def record_redemption(self, code_id: str) -> bool:
        """
        Count one redemption, only while the code is active and under its cap.
        The guard lives in the UPDATE itself, so concurrent order finalizers
        can never push the count past max_redemptions.

        This is the hook for order finalization (the payment webhook, which
        lives outside this service). Preview and quote never call it.
        """
        async with self.db.begin():
            result = await self.db.execute(
                update(DiscountCodeRow)
                .where(
                    DiscountCodeRow.id == code_id,
                    DiscountCodeRow.active.is_(True),
                    or_(
                        DiscountCodeRow.max_redemptions.is_(None),
                        DiscountCodeRow.redemption_count
                        < DiscountCodeRow.max_redemptions,
                    ),
                )
                .values(redemption_count=DiscountCodeRow.redemption_count + 1)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount == 1
