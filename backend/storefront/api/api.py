from fastapi import APIRouter
from storefront.api.v1.endpoints import users, listings, offers, cart, messages, checkout

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(listings.router, prefix="/listings", tags=["listings"])
api_router.include_router(offers.router, prefix="/offers", tags=["offers"])
api_router.include_router(cart.router, prefix="/cart", tags=["cart"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(checkout.router, prefix="/checkout", tags=["checkout"])
