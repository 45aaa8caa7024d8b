import logging

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.responses import Response

from backoffice.csrf import (
    CSRF_COOKIE_NAME,
    generate_csrf_token,
    needs_protection,
    set_csrf_cookie,
    submitted_token,
    tokens_match,
)
from backoffice.errors import register_error_handlers
from backoffice.logging import configure_logging
from backoffice.observability import ObservabilityMiddleware
from backoffice.services.web_common import TEMPLATE_DIR
from backoffice.web import router as web_router
from backoffice.web.auth.routes import limiter as login_limiter

STATIC_DIR = TEMPLATE_DIR.parent / "static"

configure_logging()
app = FastAPI(title="Bank back-office console")
logger = logging.getLogger(__name__)
app.state.limiter = login_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_error_handlers(app)


def _csrf_forbidden(message: str) -> HTMLResponse:
    return HTMLResponse(
        content=f"<h1>403 Forbidden</h1><p>{message}</p>",
        status_code=403,
    )


@app.middleware("http")
async def csrf_middleware(request: Request, call_next):
    """
    CSRF protection middleware using double-submit cookie pattern.

    For GET requests: Sets CSRF cookie if not present.
    For POST/PUT/DELETE on console paths: Validates CSRF token.
    """
    if not needs_protection(request.url.path):
        return await call_next(request)

    cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
    generated_token: str | None = None
    if not cookie_token:
        generated_token = generate_csrf_token()
        request.state.csrf_token = generated_token
    else:
        request.state.csrf_token = cookie_token

    if request.method.upper() in ("POST", "PUT", "DELETE", "PATCH"):
        if not cookie_token:
            return _csrf_forbidden("CSRF token missing. Please refresh the page and try again.")
        body = await request.body()
        if not tokens_match(cookie_token, submitted_token(request, body)):
            logger.info("Rejected %s %s: CSRF token mismatch", request.method, request.url.path)
            return _csrf_forbidden("CSRF token invalid. Please refresh the page and try again.")

        # Reconstruct request with body for downstream handlers
        async def receive():
            return {"type": "http.request", "body": body}

        request = Request(scope=request.scope, receive=receive)

    response = await call_next(request)

    if generated_token:
        set_csrf_cookie(response, generated_token, request)
    return response


# Outermost: request ids and metrics cover CSRF rejections too.
app.add_middleware(ObservabilityMiddleware)

app.include_router(web_router)

app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
