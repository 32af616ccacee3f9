import unittest
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

import httpx
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.db import session as db_session
from storefront.db.base import Base
from storefront.main import app

API = "/api/v1"

SHIPPING = {
    "full_name": "Jane Buyer",
    "line1": "1 Main St",
    "line2": None,
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "country": "US",
}


def setup_database():
    """Fresh in-memory database shared by every session of the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    db_session.engine = engine
    db_session.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db_session._is_initialized = True
    return engine


def teardown_database(engine) -> None:
    Base.metadata.drop_all(bind=engine)
    db_session.dispose()


class ApiTestCase(unittest.TestCase):
    """Runs the API in-process against an in-memory SQLite database."""

    def setUp(self):
        self.engine = setup_database()
        self.client = TestClient(app)

    def tearDown(self):
        teardown_database(self.engine)

    def make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return self.client.request(
            method, f"{API}{endpoint}", json=data, headers=headers, params=params
        )

    def register(self, email: str, is_seller: bool = False, full_name: Optional[str] = None) -> Tuple[str, str]:
        """Register and sign in a user; returns (token, user_id)."""
        response = self.make_request("POST", "/users/register", {
            "email": email,
            "password": "Password123!",
            "full_name": full_name or email.split("@")[0].title(),
            "is_seller": is_seller,
        })
        self.assertEqual(response.status_code, 201, response.text)

        response = self.client.post(
            f"{API}/users/login",
            data={"username": email, "password": "Password123!"},
        )
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        return body["access_token"], body["user_id"]

    def create_listing(self, token: str, title: str = "Fender Stratocaster", price: float = 800) -> Dict[str, Any]:
        response = self.make_request("POST", "/listings/", {
            "title": title,
            "price": price,
            "currency": "USD",
            "condition": "Excellent",
            "image": f"https://img.example.com/{title.lower().replace(' ', '-')}.jpg",
        }, token=token)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def submit_offer(self, token: str, listing_id: str, amount: float, message: Optional[str] = None) -> httpx.Response:
        return self.make_request("POST", "/offers/", {
            "listing_id": listing_id,
            "amount": amount,
            "message": message,
        }, token=token)

    def age_reservations(self, hours: float) -> None:
        """Move every reservation's expiry `hours` into the past."""
        from storefront.models.reservation import Reservation

        db = db_session.SessionLocal()
        try:
            for reservation in db.query(Reservation).all():
                reservation.expires_at = reservation.expires_at - timedelta(hours=hours)
            db.commit()
        finally:
            db.close()


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)
