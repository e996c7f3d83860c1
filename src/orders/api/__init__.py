"""Orders domain API package."""

from orders.api.routes import register_order_error_handlers, router

__all__ = ["router", "register_order_error_handlers"]
