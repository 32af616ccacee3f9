"""
Notification feed: actionable offers and unread conversations of the
signed-in user, refreshed by polling.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from storefront.client.config import client_settings
from storefront.client.errors import AuthorizationError
from storefront.client.http import StorefrontApi
from storefront.core.offer_states import ACTIVE_STATUSES, OfferStatus
from storefront.core.utils import ensure_aware, format_money
from storefront.schemas.message import ConversationResponse
from storefront.schemas.offer import OfferResponse

logger = logging.getLogger(__name__)

MAX_PER_SOURCE = 5
MAX_NOTIFICATIONS = 10
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class OfferNotification(BaseModel):
    id: str
    type: Literal["offer"] = "offer"
    offer_id: str
    listing_id: str
    listing_title: str
    listing_image: Optional[str] = None
    status: OfferStatus
    amount: float
    counter_amount: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_new: bool

    @property
    def sort_key(self) -> datetime:
        return ensure_aware(self.updated_at) or EPOCH


class MessageNotification(BaseModel):
    id: str
    type: Literal["message"] = "message"
    conversation_id: str
    other_user_name: str
    listing_title: Optional[str] = None
    listing_image: Optional[str] = None
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int

    @property
    def sort_key(self) -> datetime:
        return ensure_aware(self.last_message_at) or EPOCH


Notification = Union[OfferNotification, MessageNotification]


class NotificationCounts(BaseModel):
    offers: int = 0
    messages: int = 0
    total: int = 0


class NotificationFeed(BaseModel):
    notifications: List[Notification] = Field(default_factory=list)
    counts: NotificationCounts = Field(default_factory=NotificationCounts)


def offer_notification(offer: OfferResponse) -> OfferNotification:
    return OfferNotification(
        id=f"offer-{offer.id}",
        offer_id=offer.id,
        listing_id=offer.listing_id,
        listing_title=offer.listing.title if offer.listing else "Unknown Listing",
        listing_image=offer.listing.image if offer.listing else None,
        status=offer.status,
        amount=offer.current_offer_amount,
        counter_amount=offer.counter_offer_amount,
        created_at=offer.created_at,
        updated_at=offer.updated_at,
        is_new=offer.status == OfferStatus.COUNTERED,
    )


def message_notification(conversation: ConversationResponse) -> MessageNotification:
    return MessageNotification(
        id=f"message-{conversation.id}",
        conversation_id=conversation.id,
        other_user_name=conversation.other_user_name,
        listing_title=conversation.listing_title,
        listing_image=conversation.listing_image,
        last_message=conversation.last_message,
        last_message_at=conversation.last_message_at,
        unread_count=conversation.unread_count,
    )


def build_feed(
    offers: Optional[List[OfferResponse]],
    conversations: Optional[List[ConversationResponse]],
    unread_count: Optional[int],
) -> NotificationFeed:
    """
    Combine whatever sources loaded. A source that failed is passed as None
    and contributes nothing.
    """
    notifications: List[Notification] = []
    counts = NotificationCounts()

    if offers is not None:
        actionable = [offer for offer in offers if offer.status in ACTIVE_STATUSES]
        counts.offers = len(actionable)
        notifications.extend(offer_notification(offer) for offer in actionable[:MAX_PER_SOURCE])

    if conversations is not None:
        unread = [conversation for conversation in conversations if conversation.unread_count > 0]
        notifications.extend(message_notification(conversation) for conversation in unread[:MAX_PER_SOURCE])

    if unread_count is not None:
        counts.messages = unread_count

    counts.total = counts.offers + counts.messages

    seen = set()
    unique: List[Notification] = []
    for notification in notifications:
        if notification.id in seen:
            continue
        seen.add(notification.id)
        unique.append(notification)

    unique.sort(key=lambda notification: notification.sort_key, reverse=True)
    return NotificationFeed(notifications=unique[:MAX_NOTIFICATIONS], counts=counts)


class NotificationAggregator:
    def __init__(self, api: StorefrontApi):
        self.api = api

    def _unwrap(self, source: str, result):
        if not isinstance(result, BaseException):
            return result
        if isinstance(result, AuthorizationError):
            logger.debug(f"Notification source {source} unavailable: {result.message}")
        else:
            logger.warning(f"Notification source {source} failed: {result}")
        return None

    async def fetch(self) -> NotificationFeed:
        """Load all three sources concurrently; each may fail on its own."""
        if not self.api.is_authenticated:
            return NotificationFeed()

        offers_result, conversations_result, unread_result = await asyncio.gather(
            self.api.get_my_offers(),
            self.api.get_conversations(),
            self.api.get_unread_count(),
            return_exceptions=True,
        )

        offers = self._unwrap("offers", offers_result)
        conversations = self._unwrap("conversations", conversations_result)
        unread = self._unwrap("unread-count", unread_result)

        return build_feed(
            [OfferResponse.model_validate(offer) for offer in offers] if offers is not None else None,
            [ConversationResponse.model_validate(c) for c in conversations] if conversations is not None else None,
            unread.get("unread_count", 0) if unread is not None else None,
        )


class NotificationPoller:
    """
    Refreshes the feed every `interval` seconds and on demand.

    Every refresh carries a sequence number; a response older than the one
    already applied, or arriving after stop(), is dropped.
    """

    def __init__(
        self,
        aggregator: NotificationAggregator,
        interval: Optional[float] = None,
        on_update: Optional[Callable[[NotificationFeed], None]] = None,
    ):
        self.aggregator = aggregator
        self.interval = interval if interval is not None else client_settings.POLL_INTERVAL
        self.on_update = on_update
        self.feed = NotificationFeed()
        self._sequence = 0
        self._applied = 0
        self._stopped = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._stopped.is_set()

    def start(self) -> None:
        if self.running:
            return
        self._stopped = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stopped))
        # A loop stopped just before this call may still be winding down
        self._tasks = [task for task in self._tasks if not task.done()]
        self._tasks.append(self._task)

    def stop(self) -> None:
        """Stop polling. A request already in flight completes but is not applied."""
        self._stopped.set()

    async def join(self) -> None:
        """Wait for every loop started so far to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks)

    async def refresh(self) -> Optional[NotificationFeed]:
        self._sequence += 1
        sequence = self._sequence
        stopped = self._stopped

        feed = await self.aggregator.fetch()

        if stopped.is_set():
            logger.debug(f"Dropping notification response {sequence} received after stop")
            return None
        if sequence <= self._applied:
            logger.debug(f"Dropping stale notification response {sequence}")
            return None

        self._applied = sequence
        self.feed = feed
        if self.on_update is not None:
            self.on_update(feed)
        return feed

    async def _run(self, stopped: asyncio.Event) -> None:
        # Each loop watches only the event it was started with
        while not stopped.is_set():
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Notification refresh failed: {e}")
            try:
                await asyncio.wait_for(stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue


def format_time_ago(value: Union[datetime, str, None], now: Optional[datetime] = None) -> str:
    """'Just now', '5m ago', '3h ago', '2d ago', then 'Mar 4'."""
    if not value:
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    value = ensure_aware(value)
    now = ensure_aware(now) if now else datetime.now(timezone.utc)

    diff = now - value
    if diff < timedelta(minutes=1):
        return "Just now"
    if diff < timedelta(hours=1):
        return f"{int(diff.total_seconds() // 60)}m ago"
    if diff < timedelta(days=1):
        return f"{int(diff.total_seconds() // 3600)}h ago"
    if diff < timedelta(days=7):
        return f"{diff.days}d ago"
    return f"{value.strftime('%b')} {value.day}"


def format_price(price: float, currency: str = "USD") -> str:
    """Whole currency units, e.g. '$1,250'."""
    return format_money(price, currency, decimals=0)
