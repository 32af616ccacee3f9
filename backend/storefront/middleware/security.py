from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware
import time
import json
import logging
from typing import Any, Callable, List, Optional
from storefront.core.config import settings

logger = logging.getLogger(__name__)

DOCS_PREFIXES = ("/docs", "/redoc", "/openapi.json", f"{settings.API_V1_STR}/openapi.json")

class SecurityMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers and the request processing time to every response.
    Documentation pages keep a relaxed policy so Swagger UI can load from its CDN.
    """

    def __init__(self, app: FastAPI, exclude_paths: Optional[List[str]] = None):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or DOCS_PREFIXES)

    def is_path_excluded(self, path: str) -> bool:
        return path.startswith(self.exclude_paths)

    def add_security_headers(self, response: Response, path: str) -> None:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), camera=(), microphone=()"

        if self.is_path_excluded(path):
            response.headers["X-Frame-Options"] = "SAMEORIGIN"
            if "Content-Security-Policy" in response.headers:
                del response.headers["Content-Security-Policy"]
            return

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "img-src 'self' data:; "
            "connect-src 'self'"
        )

        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Any]
    ) -> Response:
        start_time = time.time()
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {path}: {str(e)}")
            response = Response(
                content=json.dumps({"detail": "Internal server error"}),
                status_code=500,
                media_type="application/json",
            )

        self.add_security_headers(response, path)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        return response

def setup_security_middleware(app: FastAPI) -> None:
    """Install CORS (when origins are configured) and the security headers middleware"""
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["X-Process-Time"],
        )

    app.add_middleware(SecurityMiddleware)

    logger.info("Security middleware configured")
