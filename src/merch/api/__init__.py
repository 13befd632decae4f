"""Merch domain API package."""

from merch.api.routes import callback_router, creator_router, order_router, quote_router

__all__ = ["callback_router", "order_router", "creator_router", "quote_router"]
