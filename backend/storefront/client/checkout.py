import logging
from typing import Any, Dict, Mapping, Union

from pydantic import BaseModel, ValidationError as SchemaValidationError

from storefront.client.errors import SignInRequired, ValidationError
from storefront.client.http import StorefrontApi
from storefront.client.reconcile import ReconciledCart
from storefront.schemas.checkout import ShippingAddress

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Please fill in all required shipping fields"


class CheckoutSession(BaseModel):
    session_id: str
    redirect_url: str
    total: float
    currency: str


class ProviderOrder(BaseModel):
    order_id: str
    total: float
    currency: str


def validate_shipping(shipping: Union[ShippingAddress, Mapping[str, Any], None]) -> ShippingAddress:
    if shipping is None:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)
    if isinstance(shipping, ShippingAddress):
        return shipping
    try:
        return ShippingAddress.model_validate(dict(shipping))
    except SchemaValidationError as e:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE) from e


class CheckoutAssembler:
    """
    Turns the reconciled cart and a shipping address into one checkout
    request. Both payment paths send the same items and show the cart total.
    """

    def __init__(self, api: StorefrontApi):
        self.api = api

    def build_request(self, cart: ReconciledCart, shipping) -> Dict[str, Any]:
        if cart.is_empty:
            raise ValidationError("Cart is empty")
        address = validate_shipping(shipping)
        return {
            "items": [{"listing_id": item.id, "quantity": 1} for item in cart.items],
            "shipping_address": address.model_dump(),
        }

    def _require_sign_in(self) -> None:
        if not self.api.is_authenticated:
            raise SignInRequired("Please sign in to check out")

    async def start_redirect_checkout(self, cart: ReconciledCart, shipping) -> CheckoutSession:
        """Create a hosted payment session; the buyer continues at `redirect_url`."""
        self._require_sign_in()
        payload = self.build_request(cart, shipping)

        response = await self.api.create_checkout_session(payload)
        logger.info(f"Checkout session {response['session_id']} created for {len(payload['items'])} items")
        return CheckoutSession(
            session_id=response["session_id"],
            redirect_url=response["redirect_url"],
            total=cart.total,
            currency=cart.currency,
        )

    async def complete_redirect_checkout(self, session_id: str) -> Dict[str, Any]:
        if not session_id:
            raise ValidationError("Session ID is required")
        return await self.api.complete_checkout(session_id)

    async def create_provider_order(self, cart: ReconciledCart, shipping) -> ProviderOrder:
        """Create an order for the provider's embedded approval flow."""
        self._require_sign_in()
        payload = self.build_request(cart, shipping)

        response = await self.api.create_provider_order(payload)
        logger.info(f"Provider order {response['order_id']} created for {len(payload['items'])} items")
        return ProviderOrder(order_id=response["order_id"], total=cart.total, currency=cart.currency)

    async def capture_provider_order(self, order_id: str) -> Dict[str, Any]:
        self._require_sign_in()
        if not order_id:
            raise ValidationError("Order ID is required")
        return await self.api.capture_provider_order(order_id)
