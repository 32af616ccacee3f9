import unittest
from unittest import mock

from helpers import ApiTestCase


class OfferNegotiationTest(ApiTestCase):
    """Offer lifecycle through the HTTP API"""

    def setUp(self):
        super().setUp()
        self.seller_token, self.seller_id = self.register("seller@example.com", is_seller=True, full_name="Sam Seller")
        self.buyer_token, self.buyer_id = self.register("buyer@example.com", full_name="Bea Buyer")
        self.listing = self.create_listing(self.seller_token, price=800)

    def test_01_submit_offer(self):
        response = self.submit_offer(self.buyer_token, self.listing["id"], 500, "Would you take 500?")
        self.assertEqual(response.status_code, 201, response.text)

        offer = response.json()
        self.assertEqual(offer["status"], "pending")
        self.assertEqual(offer["initial_offer_amount"], 500)
        self.assertEqual(offer["current_offer_amount"], 500)
        self.assertIsNone(offer["counter_offer_amount"])
        self.assertEqual(offer["buyer_name"], "Bea Buyer")
        self.assertEqual(offer["listing"]["title"], "Fender Stratocaster")
        self.assertEqual(offer["version"], 1)

        texts = [m["message_text"] for m in offer["messages"]]
        self.assertEqual(texts, ["Would you take 500?", "Offer of $500.00 submitted"])
        self.assertTrue(offer["messages"][1]["is_system_message"])

    def test_02_counter_then_buyer_accepts(self):
        offer = self.submit_offer(self.buyer_token, self.listing["id"], 500).json()

        response = self.make_request("PUT", f"/offers/{offer['id']}/counter", {"amount": 650}, token=self.seller_token)
        self.assertEqual(response.status_code, 200, response.text)
        countered = response.json()
        self.assertEqual(countered["status"], "countered")
        self.assertEqual(countered["counter_offer_amount"], 650)
        self.assertEqual(countered["current_offer_amount"], 500)
        self.assertEqual(countered["messages"][-1]["message_text"], "Counter offer of $650.00 submitted")

        response = self.make_request("PUT", f"/offers/{offer['id']}/accept", token=self.buyer_token)
        self.assertEqual(response.status_code, 200, response.text)
        accepted = response.json()
        self.assertEqual(accepted["status"], "accepted")
        self.assertEqual(accepted["current_offer_amount"], 650)
        self.assertEqual(accepted["counter_offer_amount"], 650)
        self.assertTrue(accepted["listing"]["disabled"])
        self.assertEqual(accepted["messages"][-1]["message_text"], "Counter offer of $650.00 accepted")
        self.assertEqual(accepted["version"], 3)

        pending = self.make_request("GET", "/cart/pending", token=self.buyer_token).json()
        self.assertEqual(len(pending), 1)
        self.assertEqual(pending[0]["listing_id"], self.listing["id"])
        self.assertEqual(pending[0]["offer_id"], offer["id"])
        self.assertEqual(pending[0]["price"], 650)
        self.assertTrue(pending[0]["is_locked"])

        # Nothing reserved for the seller
        self.assertEqual(self.make_request("GET", "/cart/pending", token=self.seller_token).json(), [])

    def test_03_seller_accepts_pending_offer_at_offer_amount(self):
        offer = self.submit_offer(self.buyer_token, self.listing["id"], 700).json()

        response = self.make_request("PUT", f"/offers/{offer['id']}/accept", token=self.seller_token)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["current_offer_amount"], 700)
        self.assertEqual(response.json()["messages"][-1]["message_text"], "Offer of $700.00 accepted")

        pending = self.make_request("GET", "/cart/pending", token=self.buyer_token).json()
        self.assertEqual(pending[0]["price"], 700)

    def test_04_duplicate_active_offer_rejected(self):
        self.assertEqual(self.submit_offer(self.buyer_token, self.listing["id"], 500).status_code, 201)

        response = self.submit_offer(self.buyer_token, self.listing["id"], 550)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "You already have an active offer on this listing")

    def test_05_new_offer_allowed_after_rejection(self):
        offer = self.submit_offer(self.buyer_token, self.listing["id"], 300).json()

        response = self.make_request("PUT", f"/offers/{offer['id']}/reject", {"reason": "Too low"}, token=self.seller_token)
        self.assertEqual(response.status_code, 200, response.text)
        rejected = response.json()
        self.assertEqual(rejected["status"], "rejected")
        self.assertEqual([m["message_text"] for m in rejected["messages"]][-2:], ["Offer rejected", "Too low"])

        response = self.submit_offer(self.buyer_token, self.listing["id"], 450)
        self.assertEqual(response.status_code, 201, response.text)

    def test_06_terminal_offers_refuse_every_action(self):
        offer = self.submit_offer(self.buyer_token, self.listing["id"], 500).json()
        self.make_request("PUT", f"/offers/{offer['id']}/reject", token=self.buyer_token)

        for action, body in (("counter", {"amount": 600}), ("accept", None), ("reject", None)):
            response = self.make_request("PUT", f"/offers/{offer['id']}/{action}", body, token=self.seller_token)
            self.assertEqual(response.status_code, 400, f"{action}: {response.text}")

        response = self.make_request("PUT", f"/offers/{offer['id']}/accept", token=self.seller_token)
        self.assertEqual(response.json()["detail"], "Cannot accept a rejected offer")

        status = self.make_request("GET", f"/offers/{offer['id']}", token=self.buyer_token).json()["status"]
        self.assertEqual(status, "rejected")

    def test_07_buyer_cannot_counter_or_accept_own_pending_offer(self):
        offer = self.submit_offer(self.buyer_token, self.listing["id"], 500).json()

        response = self.make_request("PUT", f"/offers/{offer['id']}/counter", {"amount": 550}, token=self.buyer_token)
        self.assertEqual(response.status_code, 403)

        response = self.make_request("PUT", f"/offers/{offer['id']}/accept", token=self.buyer_token)
        self.assertEqual(response.status_code, 400)

    def test_08_accept_auto_rejects_other_offers(self):
        other_token, _ = self.register("other@example.com")
        losing = self.submit_offer(other_token, self.listing["id"], 450).json()
        winning = self.submit_offer(self.buyer_token, self.listing["id"], 600).json()

        response = self.make_request("PUT", f"/offers/{winning['id']}/accept", token=self.seller_token)
        self.assertEqual(response.status_code, 200, response.text)

        losing = self.make_request("GET", f"/offers/{losing['id']}", token=other_token).json()
        self.assertEqual(losing["status"], "rejected")
        self.assertTrue(losing["messages"][-1]["is_system_message"])

        # The listing is off sale
        response = self.submit_offer(other_token, self.listing["id"], 700)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "This listing is no longer available")

    def test_09_reject_by_buyer_while_countered(self):
        offer = self.submit_offer(self.buyer_token, self.listing["id"], 500).json()
        self.make_request("PUT", f"/offers/{offer['id']}/counter", {"amount": 700}, token=self.seller_token)

        response = self.make_request("PUT", f"/offers/{offer['id']}/reject", token=self.buyer_token)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["counter_offer_amount"], 700)
        self.assertEqual(self.make_request("GET", "/cart/pending", token=self.buyer_token).json(), [])

    def test_10_amount_validation(self):
        for amount in (0, -5, 100000):
            response = self.submit_offer(self.buyer_token, self.listing["id"], amount)
            self.assertEqual(response.status_code, 422, f"amount {amount}")

        offer = self.submit_offer(self.buyer_token, self.listing["id"], 99999).json()
        response = self.make_request("PUT", f"/offers/{offer['id']}/counter", {"amount": 0}, token=self.seller_token)
        self.assertEqual(response.status_code, 422)

    def test_11_cannot_offer_on_own_listing(self):
        response = self.submit_offer(self.seller_token, self.listing["id"], 500)
        self.assertEqual(response.status_code, 400)

    def test_12_requires_authentication(self):
        response = self.submit_offer(None, self.listing["id"], 500)
        self.assertEqual(response.status_code, 401)

        response = self.make_request("GET", "/offers/", token="not-a-token")
        self.assertEqual(response.status_code, 401)

    def test_13_only_parties_see_an_offer(self):
        offer = self.submit_offer(self.buyer_token, self.listing["id"], 500).json()
        stranger_token, _ = self.register("stranger@example.com")

        response = self.make_request("GET", f"/offers/{offer['id']}", token=stranger_token)
        self.assertEqual(response.status_code, 403)

        response = self.make_request("PUT", f"/offers/{offer['id']}/reject", token=stranger_token)
        self.assertEqual(response.status_code, 403)

    def test_14_list_offers_with_status_filter(self):
        second_listing = self.create_listing(self.seller_token, title="Gibson Les Paul", price=1500)
        first = self.submit_offer(self.buyer_token, self.listing["id"], 500).json()
        self.submit_offer(self.buyer_token, second_listing["id"], 1200)
        self.make_request("PUT", f"/offers/{first['id']}/counter", {"amount": 650}, token=self.seller_token)

        mine = self.make_request("GET", "/offers/", token=self.buyer_token).json()
        self.assertEqual(len(mine), 2)

        countered = self.make_request("GET", "/offers/", token=self.buyer_token, params={"status": "countered"}).json()
        self.assertEqual([o["id"] for o in countered], [first["id"]])

        received = self.make_request("GET", f"/offers/listing/{self.listing['id']}", token=self.seller_token).json()
        self.assertEqual([o["id"] for o in received], [first["id"]])

        response = self.make_request("GET", f"/offers/listing/{self.listing['id']}", token=self.buyer_token)
        self.assertEqual(response.status_code, 403)

    def test_15_transitions_queue_notifications(self):
        with mock.patch("storefront.api.v1.endpoints.offers.notify_offer_event") as notify:
            offer = self.submit_offer(self.buyer_token, self.listing["id"], 500).json()
            self.make_request("PUT", f"/offers/{offer['id']}/counter", {"amount": 650}, token=self.seller_token)
            self.make_request("PUT", f"/offers/{offer['id']}/accept", token=self.buyer_token)

        events = [(c.args[0], c.args[1]) for c in notify.call_args_list]
        self.assertEqual(events, [
            (self.seller_id, "submitted"),
            (self.buyer_id, "countered"),
            (self.buyer_id, "accepted"),
            (self.seller_id, "accepted"),
        ])


if __name__ == "__main__":
    unittest.main()
