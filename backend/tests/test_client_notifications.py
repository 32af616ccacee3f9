import asyncio
import unittest
from datetime import datetime, timedelta, timezone

import httpx

from helpers import json_response
from storefront.client.http import StorefrontApi
from storefront.client.notifications import (
    NotificationAggregator,
    NotificationFeed,
    NotificationPoller,
    build_feed,
    format_price,
    format_time_ago,
)
from storefront.schemas.message import ConversationResponse
from storefront.schemas.offer import OfferResponse

BASE_URL = "http://testserver/api/v1"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def offer_payload(offer_id, status="pending", minutes_ago=0, counter=None):
    stamp = (NOW - timedelta(minutes=minutes_ago)).isoformat()
    return {
        "id": offer_id,
        "listing_id": f"listing-{offer_id}",
        "buyer_id": "buyer",
        "buyer_name": "Bea Buyer",
        "initial_offer_amount": 500,
        "current_offer_amount": 500,
        "counter_offer_amount": counter,
        "status": status,
        "created_at": stamp,
        "updated_at": stamp,
        "version": 1,
        "messages": [],
        "listing": {
            "id": f"listing-{offer_id}",
            "title": f"Guitar {offer_id}",
            "price": 800,
            "currency": "USD",
            "image": None,
            "disabled": False,
        },
    }


def conversation_payload(conversation_id, unread=1, minutes_ago=0):
    return {
        "id": conversation_id,
        "other_user_id": "seller",
        "other_user_name": "Sam Seller",
        "listing_id": None,
        "listing_title": None,
        "listing_image": None,
        "last_message": "Hello",
        "last_message_at": (NOW - timedelta(minutes=minutes_ago)).isoformat(),
        "unread_count": unread,
    }


def offers(*payloads):
    return [OfferResponse.model_validate(p) for p in payloads]


def conversations(*payloads):
    return [ConversationResponse.model_validate(p) for p in payloads]


class BuildFeedTest(unittest.TestCase):
    def test_only_actionable_offers_and_unread_conversations(self):
        feed = build_feed(
            offers(
                offer_payload("1", "pending"),
                offer_payload("2", "countered", counter=650),
                offer_payload("3", "accepted"),
                offer_payload("4", "rejected"),
            ),
            conversations(conversation_payload("c1", unread=2), conversation_payload("c2", unread=0)),
            7,
        )

        ids = {n.id for n in feed.notifications}
        self.assertEqual(ids, {"offer-1", "offer-2", "message-c1"})
        self.assertEqual(feed.counts.offers, 2)
        self.assertEqual(feed.counts.messages, 7)
        self.assertEqual(feed.counts.total, 9)

        countered = next(n for n in feed.notifications if n.id == "offer-2")
        self.assertTrue(countered.is_new)
        self.assertEqual(countered.counter_amount, 650)
        self.assertFalse(next(n for n in feed.notifications if n.id == "offer-1").is_new)

    def test_bounded_and_sorted_by_recency(self):
        feed = build_feed(
            offers(*[offer_payload(str(i), minutes_ago=i * 2) for i in range(8)]),
            conversations(*[conversation_payload(f"c{i}", minutes_ago=i * 2 + 1) for i in range(8)]),
            0,
        )

        self.assertEqual(len(feed.notifications), 10)
        keys = [n.sort_key for n in feed.notifications]
        self.assertEqual(keys, sorted(keys, reverse=True))
        self.assertEqual(sum(1 for n in feed.notifications if n.type == "offer"), 5)
        self.assertEqual(sum(1 for n in feed.notifications if n.type == "message"), 5)
        # Every actionable offer is counted, not only the five shown
        self.assertEqual(feed.counts.offers, 8)

    def test_duplicates_are_dropped(self):
        feed = build_feed(offers(offer_payload("1"), offer_payload("1")), [], 0)
        self.assertEqual([n.id for n in feed.notifications], ["offer-1"])

    def test_missing_timestamp_sorts_last(self):
        stale = conversation_payload("c1")
        stale["last_message_at"] = None
        feed = build_feed(offers(offer_payload("1", minutes_ago=600)), conversations(stale), 1)
        self.assertEqual([n.id for n in feed.notifications], ["offer-1", "message-c1"])

    def test_failed_sources_contribute_nothing(self):
        feed = build_feed(None, conversations(conversation_payload("c1")), None)
        self.assertEqual([n.id for n in feed.notifications], ["message-c1"])
        self.assertEqual(feed.counts.total, 0)


class NotificationAggregatorTest(unittest.IsolatedAsyncioTestCase):
    async def test_sources_fail_independently(self):
        def handler(request):
            if request.url.path.endswith("/offers/"):
                return json_response({"detail": "boom"}, 500)
            if request.url.path.endswith("/conversations"):
                return json_response([conversation_payload("c1", unread=3)])
            return json_response({"unread_count": 3})

        api = StorefrontApi(base_url=BASE_URL, token="token", transport=httpx.MockTransport(handler))
        feed = await NotificationAggregator(api).fetch()

        self.assertEqual([n.id for n in feed.notifications], ["message-c1"])
        self.assertEqual(feed.counts.offers, 0)
        self.assertEqual(feed.counts.messages, 3)
        await api.close()

    async def test_signed_out_feed_is_empty(self):
        calls = []
        api = StorefrontApi(
            base_url=BASE_URL,
            transport=httpx.MockTransport(lambda request: calls.append(request) or json_response([])),
        )
        feed = await NotificationAggregator(api).fetch()
        self.assertEqual(feed, NotificationFeed())
        self.assertEqual(calls, [])
        await api.close()


class SlowAggregator:
    """Returns queued feeds after the given delays."""

    def __init__(self, responses):
        self.responses = list(responses)

    async def fetch(self):
        delay, feed = self.responses.pop(0)
        await asyncio.sleep(delay)
        return feed


class CountingAggregator:
    def __init__(self):
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        return feed_with(self.calls)


def feed_with(count):
    feed = NotificationFeed()
    feed.counts.total = count
    return feed


class NotificationPollerTest(unittest.IsolatedAsyncioTestCase):
    async def test_stale_response_is_dropped(self):
        poller = NotificationPoller(SlowAggregator([(0.05, feed_with(1)), (0.0, feed_with(2))]), interval=60)

        first = asyncio.create_task(poller.refresh())
        await asyncio.sleep(0)
        second = await poller.refresh()

        self.assertIsNotNone(second)
        self.assertIsNone(await first)
        self.assertEqual(poller.feed.counts.total, 2)

    async def test_response_after_stop_is_discarded(self):
        updates = []
        poller = NotificationPoller(
            SlowAggregator([(0.05, feed_with(5))]), interval=60, on_update=updates.append
        )

        pending = asyncio.create_task(poller.refresh())
        await asyncio.sleep(0)
        poller.stop()

        self.assertIsNone(await pending)
        self.assertEqual(updates, [])
        self.assertEqual(poller.feed.counts.total, 0)

    async def test_polls_until_stopped(self):
        updates = []
        poller = NotificationPoller(
            SlowAggregator([(0.0, feed_with(i)) for i in range(100)]), interval=0.01, on_update=updates.append
        )

        poller.start()
        await asyncio.sleep(0.05)
        poller.stop()
        await poller.join()

        self.assertGreaterEqual(len(updates), 2)
        self.assertFalse(poller.running)
        count = len(updates)
        await asyncio.sleep(0.03)
        self.assertEqual(len(updates), count)

    async def test_restart_leaves_a_single_loop(self):
        aggregator = CountingAggregator()
        poller = NotificationPoller(aggregator, interval=60)

        poller.start()
        await asyncio.sleep(0.01)
        self.assertEqual(aggregator.calls, 1)

        poller.stop()
        poller.start()
        await asyncio.sleep(0.05)

        # One fetch per loop start; the stopped loop does not poll again
        self.assertEqual(aggregator.calls, 2)
        self.assertTrue(poller.running)

        poller.stop()
        await asyncio.wait_for(poller.join(), timeout=1)
        self.assertFalse(poller.running)
        self.assertEqual(aggregator.calls, 2)


class FormattingTest(unittest.TestCase):
    def test_format_time_ago(self):
        self.assertEqual(format_time_ago(None, now=NOW), "")
        self.assertEqual(format_time_ago(NOW - timedelta(seconds=30), now=NOW), "Just now")
        self.assertEqual(format_time_ago(NOW - timedelta(minutes=5), now=NOW), "5m ago")
        self.assertEqual(format_time_ago(NOW - timedelta(hours=3), now=NOW), "3h ago")
        self.assertEqual(format_time_ago(NOW - timedelta(days=2), now=NOW), "2d ago")
        self.assertEqual(format_time_ago("2026-03-04T10:00:00Z", now=NOW), "Mar 4")

    def test_format_price(self):
        self.assertEqual(format_price(1250), "$1,250")
        self.assertEqual(format_price(649.5), "$650")
        self.assertEqual(format_price(99, "EUR"), "€99")


if __name__ == "__main__":
    unittest.main()
