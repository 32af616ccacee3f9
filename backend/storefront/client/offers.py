"""
Offer actions as the buyer and seller screens perform them.

Each mutation is sent once and the returned offer replaces the caller's copy;
nothing is changed locally before the server confirms. While a request for an
offer is in flight, further actions on that offer are ignored. The same holds
for a second submit on a listing while the first is pending.
"""
import logging
import math
from typing import Awaitable, Callable, FrozenSet, Optional, Set

from storefront.client.errors import ValidationError
from storefront.client.http import StorefrontApi
from storefront.core.config import settings
from storefront.core.offer_states import (
    InvalidTransition,
    OfferAction,
    OfferRole,
    OfferStatus,
    allowed_actions,
    next_status,
)
from storefront.core.utils import format_money
from storefront.schemas.offer import OfferResponse

logger = logging.getLogger(__name__)

BUYER_RESERVED_NOTICE = "Your offer was accepted! Proceed to your cart to complete the purchase."
SOLD_NOTICE = "This listing has already been sold"


def validate_amount(amount) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("Please enter a valid offer amount")
    if not math.isfinite(value) or value <= 0:
        raise ValidationError("Please enter a valid offer amount")
    if value > settings.OFFER_MAX_AMOUNT:
        raise ValidationError(f"Offer amount cannot exceed {format_money(settings.OFFER_MAX_AMOUNT, decimals=0)}")
    return value


def role_for(offer: OfferResponse, user_id: str) -> OfferRole:
    """Only the two parties ever see an offer: the buyer, or else the seller."""
    return OfferRole.BUYER if offer.buyer_id == user_id else OfferRole.SELLER


def reservation_notice(offer: OfferResponse, user_id: Optional[str]) -> Optional[str]:
    """
    What to show for an accepted offer whose listing is off sale: the buyer is
    sent to the cart, anybody else is told the item is gone.
    """
    if offer.status != OfferStatus.ACCEPTED or offer.listing is None or not offer.listing.disabled:
        return None
    if user_id is not None and offer.buyer_id == user_id:
        return BUYER_RESERVED_NOTICE
    return SOLD_NOTICE


def submit_key(listing_id: str) -> str:
    return f"listing:{listing_id}"


class OfferActions:
    def __init__(self, api: StorefrontApi, user_id: str):
        self.api = api
        self.user_id = user_id
        self._busy: Set[str] = set()

    def is_busy(self, offer_id: str) -> bool:
        return offer_id in self._busy

    def is_submitting(self, listing_id: str) -> bool:
        return submit_key(listing_id) in self._busy

    def available_actions(self, offer: OfferResponse) -> FrozenSet[OfferAction]:
        if self.is_busy(offer.id):
            return frozenset()
        return allowed_actions(offer.status, role_for(offer, self.user_id))

    def _check(self, offer: OfferResponse, action: OfferAction) -> None:
        try:
            next_status(offer.status, action, role_for(offer, self.user_id))
        except InvalidTransition as e:
            raise ValidationError(str(e))

    async def _guarded(
        self, key: str, send: Callable[[], Awaitable[dict]]
    ) -> Optional[OfferResponse]:
        if key in self._busy:
            logger.debug(f"{key} has a request in flight, ignoring")
            return None

        self._busy.add(key)
        try:
            payload = await send()
        finally:
            self._busy.discard(key)

        return OfferResponse.model_validate(payload)

    async def submit(self, listing_id: str, amount, message: Optional[str] = None) -> Optional[OfferResponse]:
        """No offer exists yet, so the listing is what stays busy until the server answers."""
        value = validate_amount(amount)
        offer = await self._guarded(
            submit_key(listing_id), lambda: self.api.submit_offer(listing_id, value, message or None)
        )
        if offer is not None:
            logger.info(f"Offer {offer.id} submitted on listing {listing_id}")
        return offer

    async def counter(self, offer: OfferResponse, amount, message: Optional[str] = None) -> Optional[OfferResponse]:
        value = validate_amount(amount)
        self._check(offer, OfferAction.COUNTER)
        return await self._guarded(
            offer.id, lambda: self.api.counter_offer(offer.id, value, message or None)
        )

    async def accept(self, offer: OfferResponse) -> Optional[OfferResponse]:
        self._check(offer, OfferAction.ACCEPT)
        return await self._guarded(offer.id, lambda: self.api.accept_offer(offer.id))

    async def reject(self, offer: OfferResponse, reason: Optional[str] = None) -> Optional[OfferResponse]:
        self._check(offer, OfferAction.REJECT)
        return await self._guarded(offer.id, lambda: self.api.reject_offer(offer.id, reason or None))
