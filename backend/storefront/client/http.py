"""HTTP access to the storefront API."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from storefront.client.config import client_settings
from storefront.client.errors import (
    AuthorizationError,
    RequestError,
    ServiceError,
    SignInRequired,
)

logger = logging.getLogger(__name__)

AUTH_STATUSES = {401, 403}
REQUEST_STATUSES = {400, 404, 409, 422}


def error_detail(response: httpx.Response) -> str:
    """Pull the `detail` message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, list):
        # FastAPI request validation errors
        return "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail)
    if detail:
        return str(detail)
    return f"HTTP {response.status_code}"


class ApiClient:
    """Async JSON client with bearer authentication and error mapping."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or client_settings.API_BASE_URL).rstrip("/")
        self.token = token
        self.timeout = timeout or client_settings.TIMEOUT
        self.client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    async def close(self) -> None:
        """Close the client."""
        await self.client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        *,
        action: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        `action` names the operation for error messages, e.g. "submit offer".
        """
        headers = {}
        if authenticated:
            if not self.token:
                raise SignInRequired()
            headers["Authorization"] = f"Bearer {self.token}"

        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(
                method, url, json=json, params=params, data=data, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"Transport error calling {method} {url}: {e}")
            raise ServiceError(f"Failed to {action}, please try again") from e

        if response.status_code in AUTH_STATUSES:
            raise AuthorizationError(error_detail(response), response.status_code)
        if response.status_code in REQUEST_STATUSES:
            raise RequestError(error_detail(response), response.status_code)
        if response.status_code >= 400:
            logger.error(f"HTTP error calling {method} {url}: {response.status_code}")
            raise ServiceError(f"Failed to {action}, please try again", response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from {method} {url}: {e}")
            raise ServiceError(f"Failed to {action}, please try again", response.status_code) from e


class StorefrontApi(ApiClient):
    """The storefront routes the client core talks to."""

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        token = await self.request(
            "POST", "/users/login",
            action="sign in",
            data={"username": email, "password": password},
            authenticated=False,
        )
        self.set_token(token["access_token"])
        return token

    async def get_me(self) -> Dict[str, Any]:
        return await self.request("GET", "/users/me", action="load profile")

    # Offers

    async def get_my_offers(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"status": status} if status else None
        return await self.request("GET", "/offers/", action="load offers", params=params)

    async def get_listing_offers(self, listing_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"status": status} if status else None
        return await self.request("GET", f"/offers/listing/{listing_id}", action="load offers", params=params)

    async def get_offer(self, offer_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/offers/{offer_id}", action="load offer")

    async def submit_offer(self, listing_id: str, amount: float, message: Optional[str] = None) -> Dict[str, Any]:
        return await self.request(
            "POST", "/offers/",
            action="submit offer",
            json={"listing_id": listing_id, "amount": amount, "message": message},
        )

    async def counter_offer(self, offer_id: str, amount: float, message: Optional[str] = None) -> Dict[str, Any]:
        return await self.request(
            "PUT", f"/offers/{offer_id}/counter",
            action="send counter offer",
            json={"amount": amount, "message": message},
        )

    async def accept_offer(self, offer_id: str) -> Dict[str, Any]:
        return await self.request("PUT", f"/offers/{offer_id}/accept", action="accept offer")

    async def reject_offer(self, offer_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        return await self.request(
            "PUT", f"/offers/{offer_id}/reject",
            action="reject offer",
            json={"reason": reason} if reason else None,
        )

    # Cart and messages

    async def get_pending_cart(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/cart/pending", action="load reserved items")

    async def get_conversations(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/messages/conversations", action="load conversations")

    async def get_unread_count(self) -> Dict[str, Any]:
        return await self.request("GET", "/messages/unread-count", action="load unread count")

    # Checkout

    async def create_checkout_session(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", "/checkout/", action="create checkout session", json=payload)

    async def complete_checkout(self, session_id: str) -> Dict[str, Any]:
        return await self.request(
            "POST", "/checkout/complete",
            action="complete checkout",
            json={"session_id": session_id},
        )

    async def create_provider_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", "/checkout/provider/create", action="create order", json=payload)

    async def capture_provider_order(self, order_id: str) -> Dict[str, Any]:
        return await self.request(
            "POST", "/checkout/provider/capture",
            action="capture payment",
            json={"order_id": order_id},
        )
