"""Merging reserved and local cart items into the cart the buyer sees."""
from typing import List, Optional, Sequence

from pydantic import BaseModel

from storefront.client.cart_store import CartItem, LocalCartStore
from storefront.client.reservations import ReservedItemResolver


class ReconciledCart(BaseModel):
    items: List[CartItem]
    total: float
    currency: str

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def locked_ids(self) -> List[str]:
        return [item.id for item in self.items if item.is_locked]


def reconcile_cart(reserved: Sequence[CartItem], local: Sequence[CartItem]) -> ReconciledCart:
    """
    Reserved items first, then local items whose listing is not reserved.
    A reservation always wins over a local entry for the same listing, so the
    negotiated price replaces the list price. Neither input is modified.
    """
    reserved_ids = {item.id for item in reserved}
    items = [item.model_copy() for item in reserved]
    items.extend(item.model_copy() for item in local if item.id not in reserved_ids)

    total = sum(item.price for item in items)
    currency = (items[0].currency if items else None) or "USD"
    return ReconciledCart(items=items, total=total, currency=currency)


class ShoppingCart:
    """The local store and the reserved items, recombined on every read."""

    def __init__(self, store: LocalCartStore, resolver: ReservedItemResolver):
        self.store = store
        self.resolver = resolver

    async def load(self) -> ReconciledCart:
        reserved = await self.resolver.resolve()
        return reconcile_cart(reserved, self.store.list())

    def add(self, item: CartItem) -> bool:
        return self.store.add(item)

    async def remove(self, item_id: str) -> bool:
        """Remove a local item. Reserved items cannot be removed; returns False for them."""
        reserved = await self.resolver.resolve()
        reserved_ids = {item.id for item in reserved}
        return self.store.remove(item_id, is_locked=lambda listing_id: listing_id in reserved_ids)

    def clear_local(self, purchased: Optional[Sequence[str]] = None) -> None:
        """Drop purchased ids from the local store, or everything when none are given."""
        if purchased is None:
            self.store.clear()
            return
        for listing_id in purchased:
            self.store.remove(listing_id)
