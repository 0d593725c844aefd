"""
HTTP middleware: security headers and maintenance mode.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from journal_ledger.core.config import get_settings

MAINTENANCE_MESSAGE = "Service in maintenance, please retry shortly."
MAINTENANCE_EXEMPT_PATHS = frozenset({"/health"})


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"

        # Swagger UI and ReDoc pull assets from the jsdelivr CDN
        path = request.url.path
        if path.endswith(("/docs", "/redoc")):
            csp_directives = [
                "default-src 'self'",
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
                "img-src 'self' data: https://fastapi.tiangolo.com",
                "frame-ancestors 'none'",
            ]
        else:
            csp_directives = ["default-src 'none'", "frame-ancestors 'none'"]
        response.headers["Content-Security-Policy"] = "; ".join(csp_directives)

        settings = get_settings()
        if settings.environment in ("production", "staging"):
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"

        return response


class MaintenanceModeMiddleware(BaseHTTPMiddleware):
    """Answer 503 for everything but the health probe while maintenance is on."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if get_settings().maintenance_mode and request.url.path not in MAINTENANCE_EXEMPT_PATHS:
            return JSONResponse(
                status_code=503,
                content={"error": MAINTENANCE_MESSAGE},
                headers={"Retry-After": "60"},
            )
        return await call_next(request)
