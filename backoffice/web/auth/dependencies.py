"""Route guards for console sessions."""

from fastapi import Request

from backoffice.services.session_context import (
    CoreSession,
    MerchantSession,
    SessionContext,
    read_session,
)


class AuthenticationRequired(Exception):
    """Raised when a page needs a different session than the browser has."""

    def __init__(self, redirect_url: str = "/"):
        self.redirect_url = redirect_url
        super().__init__("Authentication required")


def get_session_context(request: Request) -> SessionContext:
    context = getattr(request.state, "session_context", None)
    if context is None:
        context = read_session(request)
        request.state.session_context = context
    return context


def _require(request: Request, session_type: type) -> SessionContext:
    context = get_session_context(request)
    if not context.is_authenticated:
        raise AuthenticationRequired("/")
    if not isinstance(context.session, session_type):
        raise AuthenticationRequired(context.session.home_url)
    return context


def require_core_session(request: Request) -> SessionContext:
    """Admin pages: logged-out users go home, merchant users to their dashboard."""
    return _require(request, CoreSession)


def require_merchant_session(request: Request) -> SessionContext:
    return _require(request, MerchantSession)


def redirect_if_authenticated(request: Request) -> None:
    """Public pages send signed-in users to their own dashboard."""
    context = get_session_context(request)
    if context.is_authenticated:
        raise AuthenticationRequired(context.session.home_url)
