import os

# Must be in place before storefront.core.config is imported
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "testing-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("STOREFRONT_API_BASE_URL", "http://testserver/api/v1")
