from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .errors import UnknownProduct


@dataclass(frozen=True)
class CardTemplate:
    id: str
    name: str
    size: str  # "4x6" | "5x7"
    sku: str
    printful_sync_variant_id: int
    # (min cards in cart, unit price in cents), ascending by min cards
    price_breaks: Tuple[Tuple[int, int], ...]

    def unit_price_cents(self, cart_quantity: int) -> int:
        price = self.price_breaks[0][1]
        for min_qty, unit in self.price_breaks:
            if cart_quantity >= min_qty:
                price = unit
        return price

    @property
    def list_price_cents(self) -> int:
        return self.price_breaks[0][1]


# Card designs can be mixed: the per card price follows the total number of
# cards in the cart, not the number of cards of one design.
CARD_TEMPLATES: Tuple[CardTemplate, ...] = (
    CardTemplate(
        id="card1_4x6",
        name="Classic Givio card four by six",
        size="4x6",
        sku="CARD1_4X6",
        printful_sync_variant_id=5064628437,
        price_breaks=((1, 599), (3, 549), (5, 499)),
    ),
    CardTemplate(
        id="card1_5x7",
        name="Classic Givio card five by seven",
        size="5x7",
        sku="CARD1_5X7",
        printful_sync_variant_id=5064628437,
        price_breaks=((1, 699), (3, 649), (5, 599)),
    ),
)


class Catalog:
    def __init__(self, templates: Iterable[CardTemplate]) -> None:
        self._by_id = {t.id: t for t in templates}

    def get(self, product_id: str) -> Optional[CardTemplate]:
        return self._by_id.get(product_id)

    def unit_price_cents(self, product_id: str, cart_quantity: int) -> int:
        template = self._by_id.get(product_id)
        if template is None:
            raise UnknownProduct()
        return template.unit_price_cents(cart_quantity)

    def list_price_cents(self, product_id: str) -> int:
        template = self._by_id.get(product_id)
        if template is None:
            raise UnknownProduct()
        return template.list_price_cents

    def __iter__(self):
        return iter(self._by_id.values())


DEFAULT_CATALOG = Catalog(CARD_TEMPLATES)
