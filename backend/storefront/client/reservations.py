import logging
from typing import List

import pydantic

from storefront.client.cart_store import CartItem
from storefront.client.errors import AuthorizationError, ServiceError
from storefront.client.http import StorefrontApi
from storefront.schemas.cart import ReservedCartEntry

logger = logging.getLogger(__name__)


def entry_to_cart_item(entry: ReservedCartEntry) -> CartItem:
    return CartItem(
        id=entry.listing_id,
        title=entry.title,
        price=entry.price,
        currency=entry.currency,
        image=entry.image,
        is_locked=True,
        offer_id=entry.offer_id,
    )


class ReservedItemResolver:
    """
    Locked cart items of the signed-in user, derived from accepted offers.

    Signed out, or holding a token the server no longer accepts, means no
    reservations: the cart falls back to local items without an error.
    """

    def __init__(self, api: StorefrontApi):
        self.api = api

    async def resolve(self) -> List[CartItem]:
        if not self.api.is_authenticated:
            return []

        try:
            payload = await self.api.get_pending_cart()
        except AuthorizationError as e:
            logger.debug(f"Reserved items unavailable ({e.status_code}): {e.message}")
            return []

        try:
            entries = [ReservedCartEntry.model_validate(entry) for entry in payload or []]
        except pydantic.ValidationError as e:
            logger.warning(f"Malformed reserved items payload: {e}")
            raise ServiceError("Failed to load reserved items, please try again") from e

        return [entry_to_cart_item(entry) for entry in entries]
