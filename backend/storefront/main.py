from fastapi import FastAPI
from fastapi.openapi.docs import get_swagger_ui_html
import logging
from contextlib import asynccontextmanager

from storefront.api.api import api_router
from storefront.core.config import settings
from storefront.middleware.security import setup_security_middleware

logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

async def initialize_database() -> bool:
    from storefront.db import session as db_session

    if db_session._is_initialized:
        logger.info("Database already initialized")
        return True

    logger.info("Initializing database connection...")
    return await db_session.init_db_connection(
        max_retries=settings.DB_CONNECT_RETRIES, initial_delay=2
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    from storefront.db import session as db_session

    logger.info(f"Starting application in environment: {settings.ENVIRONMENT}")

    if not await initialize_database():
        logger.error("Database connection could not be initialized, requests will get 503")
    else:
        db_session.create_tables()
        logger.info("Database tables created/verified")

    yield

    logger.info("Stopping application...")
    db_session.dispose()
    logger.info("Database connections closed")

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Storefront API: offers, reserved cart and checkout",
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json" if not settings.ENVIRONMENT == "production" else None,
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

setup_security_middleware(app)

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/docs", include_in_schema=False)
async def custom_swagger_ui_html():
    """
    Swagger UI served from the CDN.
    """
    return get_swagger_ui_html(
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        title=f"{settings.PROJECT_NAME} - API Documentation",
        swagger_js_url="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5.12.0/swagger-ui-bundle.js",
        swagger_css_url="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5.12.0/swagger-ui.css",
        swagger_ui_parameters={"persistAuthorization": True},
    )

@app.get("/health", include_in_schema=False)
def health() -> dict:
    return {"status": "ok", "environment": settings.ENVIRONMENT}
