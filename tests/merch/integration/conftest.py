import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from merch.api import callback_router, creator_router, order_router, quote_router
from merch.api.errors import register_merch_exception_handlers


@pytest.fixture()
def client(services):
    from merch.domain import merch

    app = FastAPI()
    app.state.services = services

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with merch.domain_context():
            return await call_next(request)

    app.include_router(callback_router)
    app.include_router(order_router)
    app.include_router(creator_router)
    app.include_router(quote_router)
    register_merch_exception_handlers(app)
    return TestClient(app)
