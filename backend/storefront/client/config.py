from pydantic_settings import BaseSettings

class ClientSettings(BaseSettings):
    """Client side settings, read from STOREFRONT_* environment variables."""
    API_BASE_URL: str = "http://localhost:8000/api/v1"
    TIMEOUT: float = 10.0
    CART_PATH: str = "~/.storefront/cart.json"
    # Notification feed refresh, seconds
    POLL_INTERVAL: float = 30.0

    class Config:
        env_prefix = "STOREFRONT_"
        case_sensitive = True
        extra = "ignore"

client_settings = ClientSettings()
