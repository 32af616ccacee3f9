# Import every model so Base.metadata knows all tables before create_all
from storefront.db.base_class import Base  # noqa: F401
from storefront.models.user import User  # noqa: F401
from storefront.models.listing import Listing  # noqa: F401
from storefront.models.offer import Offer, OfferMessage  # noqa: F401
from storefront.models.reservation import Reservation  # noqa: F401
from storefront.models.message import Conversation, Message  # noqa: F401
from storefront.models.order import Order, OrderItem  # noqa: F401
