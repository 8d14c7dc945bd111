"""Response hardening headers.

Listing pages embed user-supplied images and get shared as links, so every
response is marked nosniff / no-framing with a tight referrer policy.
Metrics snapshots additionally get `Cache-Control: no-store`: the polling
fallback must see the live row, never a cached copy.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS = "max-age=31536000; includeSubDomains"


def is_live_metrics_path(path: str) -> bool:
    return path.startswith("/api/v1/listings/") and path.endswith(
        ("/metrics", "/view", "/share", "/click")
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers.update(BASE_HEADERS)
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = HSTS
        if is_live_metrics_path(request.url.path):
            response.headers["Cache-Control"] = "no-store"
        return response
