import unittest

from storefront.core.offer_states import (
    InvalidTransition,
    OfferAction,
    OfferRole,
    OfferStatus,
    TERMINAL_STATUSES,
    allowed_actions,
    can_transition,
    is_active,
    next_status,
)
from storefront.tasks.notifications import build_offer_notification


class OfferStateMachineTest(unittest.TestCase):
    def test_graph(self):
        self.assertTrue(can_transition("pending", "countered"))
        self.assertTrue(can_transition("countered", "countered"))
        self.assertTrue(can_transition("countered", "accepted"))
        self.assertFalse(can_transition("pending", "pending"))
        self.assertFalse(can_transition("accepted", "rejected"))
        self.assertTrue(is_active("countered"))
        self.assertFalse(is_active("accepted"))

    def test_terminal_statuses_are_closed(self):
        for status in TERMINAL_STATUSES:
            for role in OfferRole:
                self.assertEqual(allowed_actions(status, role), frozenset(), f"{status} {role}")
                for action in OfferAction:
                    with self.assertRaises(InvalidTransition):
                        next_status(status, action, role)

    def test_role_permissions(self):
        self.assertEqual(next_status("pending", "accept", "seller"), OfferStatus.ACCEPTED)
        self.assertEqual(next_status("countered", "accept", "buyer"), OfferStatus.ACCEPTED)
        self.assertEqual(next_status("countered", "counter", "seller"), OfferStatus.COUNTERED)

        with self.assertRaises(InvalidTransition):
            next_status("pending", "accept", "buyer")
        with self.assertRaises(InvalidTransition):
            next_status("countered", "counter", "buyer")

    def test_messages(self):
        self.assertEqual(str(InvalidTransition("accepted", "accept")), "Offer has already been accepted")
        self.assertEqual(str(InvalidTransition("rejected", "counter")), "Cannot counter a rejected offer")
        self.assertEqual(
            str(InvalidTransition("pending", "accept", OfferRole.BUYER)),
            "The buyer cannot accept an offer that is pending",
        )


class OfferNotificationTest(unittest.TestCase):
    def test_counter_notification(self):
        notification = build_offer_notification("countered", {
            "listing_title": "Fender Stratocaster",
            "currency": "USD",
            "amount": 500,
            "counter_amount": 650,
            "message": "Best I can do",
        })
        self.assertEqual(notification["subject"], "Counter offer on Fender Stratocaster")
        self.assertIn("$650.00", notification["body"])
        self.assertTrue(notification["body"].endswith("Best I can do"))

    def test_accepted_buyer_is_sent_to_cart(self):
        notification = build_offer_notification("accepted", {"listing_title": "Amp", "amount": 650, "is_buyer": True})
        self.assertIn("waiting in your cart", notification["body"])


if __name__ == "__main__":
    unittest.main()
