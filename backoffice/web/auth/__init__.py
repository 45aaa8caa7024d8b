from backoffice.web.auth.routes import router

__all__ = ["router"]
