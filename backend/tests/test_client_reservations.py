import logging
import unittest

import httpx

from helpers import json_response
from storefront.client.cart_store import CartItem, LocalCartStore, MemoryStorage
from storefront.client.errors import AuthorizationError, RequestError, ServiceError, SignInRequired
from storefront.client.http import StorefrontApi
from storefront.client.reconcile import ShoppingCart
from storefront.client.reservations import ReservedItemResolver

BASE_URL = "http://testserver/api/v1"

PENDING_ENTRY = {
    "id": "res-1",
    "listing_id": "guitar",
    "offer_id": "offer-1",
    "title": "Fender Stratocaster",
    "image": "https://img.example.com/strat.jpg",
    "price": 650,
    "currency": "USD",
    "is_locked": True,
    "created_at": "2026-10-01T12:00:00Z",
    "expires_at": "2026-10-04T12:00:00Z",
}


class RecordingTransport:
    """Answers from a handler and keeps every request it saw."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def make_api(handler, token="token"):
    recorder = RecordingTransport(handler)
    api = StorefrontApi(base_url=BASE_URL, token=token, transport=httpx.MockTransport(recorder))
    return api, recorder


class ReservedItemResolverTest(unittest.IsolatedAsyncioTestCase):
    async def test_signed_out_makes_no_request(self):
        api, recorder = make_api(lambda request: json_response([PENDING_ENTRY]), token=None)
        self.assertEqual(await ReservedItemResolver(api).resolve(), [])
        self.assertEqual(recorder.requests, [])
        await api.close()

    async def test_entries_become_locked_items(self):
        api, recorder = make_api(lambda request: json_response([PENDING_ENTRY]))

        items = await ReservedItemResolver(api).resolve()

        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].id, "guitar")
        self.assertEqual(items[0].price, 650)
        self.assertTrue(items[0].is_locked)
        self.assertEqual(items[0].offer_id, "offer-1")
        self.assertEqual(recorder.requests[0].url.path, "/api/v1/cart/pending")
        self.assertEqual(recorder.requests[0].headers["Authorization"], "Bearer token")
        await api.close()

    async def test_rejected_token_is_an_empty_result(self):
        api, _ = make_api(lambda request: json_response({"detail": "Could not validate credentials"}, 401))

        with self.assertLogs("storefront.client.reservations", level=logging.DEBUG) as logs:
            self.assertEqual(await ReservedItemResolver(api).resolve(), [])
        self.assertTrue(all(record.levelno == logging.DEBUG for record in logs.records))
        await api.close()

    async def test_malformed_entry_is_a_service_error(self):
        broken = dict(PENDING_ENTRY)
        del broken["listing_id"]
        api, _ = make_api(lambda request: json_response([PENDING_ENTRY, broken]))

        with self.assertRaises(ServiceError) as ctx:
            await ReservedItemResolver(api).resolve()
        self.assertEqual(ctx.exception.message, "Failed to load reserved items, please try again")
        await api.close()

    async def test_cart_shows_local_items_only_after_401(self):
        api, _ = make_api(lambda request: json_response({"detail": "expired"}, 401))
        store = LocalCartStore(MemoryStorage())
        store.add(CartItem(id="amp", title="Vox AC30", price=300))

        cart = await ShoppingCart(store, ReservedItemResolver(api)).load()

        self.assertEqual([item.id for item in cart.items], ["amp"])
        self.assertEqual(cart.total, 300)
        await api.close()

    async def test_reserved_item_cannot_be_removed(self):
        api, _ = make_api(lambda request: json_response([PENDING_ENTRY]))
        store = LocalCartStore(MemoryStorage())
        store.add(CartItem(id="guitar", title="Fender Stratocaster", price=800))
        store.add(CartItem(id="amp", title="Vox AC30", price=300))
        cart = ShoppingCart(store, ReservedItemResolver(api))

        self.assertFalse(await cart.remove("guitar"))
        self.assertTrue(await cart.remove("amp"))
        self.assertEqual([item.id for item in store.list()], ["guitar"])

        reconciled = await cart.load()
        self.assertEqual([(item.id, item.price) for item in reconciled.items], [("guitar", 650)])
        await api.close()


class ErrorMappingTest(unittest.IsolatedAsyncioTestCase):
    async def test_status_codes(self):
        cases = [
            (401, AuthorizationError),
            (403, AuthorizationError),
            (400, RequestError),
            (404, RequestError),
            (409, RequestError),
            (422, RequestError),
            (500, ServiceError),
            (502, ServiceError),
        ]
        for status_code, expected in cases:
            api, _ = make_api(lambda request, code=status_code: json_response({"detail": "Nope"}, code))
            with self.assertRaises(expected, msg=str(status_code)) as ctx:
                await api.accept_offer("offer-1")
            self.assertEqual(ctx.exception.status_code, status_code)
            await api.close()

    async def test_request_error_carries_detail(self):
        api, _ = make_api(lambda request: json_response({"detail": "Offer has already been accepted"}, 400))
        with self.assertRaises(RequestError) as ctx:
            await api.accept_offer("offer-1")
        self.assertEqual(ctx.exception.detail, "Offer has already been accepted")
        await api.close()

    async def test_validation_detail_list_is_flattened(self):
        detail = [{"loc": ["body", "amount"], "msg": "Offer amount must be positive", "type": "value_error"}]
        api, _ = make_api(lambda request: json_response({"detail": detail}, 422))
        with self.assertRaises(RequestError) as ctx:
            await api.submit_offer("guitar", 1)
        self.assertIn("Offer amount must be positive", ctx.exception.detail)
        await api.close()

    async def test_transport_failure_is_a_service_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        api, _ = make_api(handler)
        with self.assertRaises(ServiceError) as ctx:
            await api.submit_offer("guitar", 500)
        self.assertEqual(ctx.exception.message, "Failed to submit offer, please try again")
        await api.close()

    async def test_authenticated_call_without_token(self):
        api, recorder = make_api(lambda request: json_response({}), token=None)
        with self.assertRaises(SignInRequired):
            await api.get_my_offers()
        self.assertEqual(recorder.requests, [])
        await api.close()


if __name__ == "__main__":
    unittest.main()
