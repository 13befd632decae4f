"""Merch FastAPI application.

Web server for print-on-demand orders, provider callbacks, creator earnings
and quotes. Every request runs inside the merch domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from merch.domain import merch  # noqa: E402
from merch.services import build_services  # noqa: E402

merch.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Merch API",
    description="Print-on-demand orders, provider callbacks and creator earnings",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Locks, ledger, reconciler and quote provider are shared by every request
# served by this process.
app.state.services = build_services()


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the merch domain context for each request."""
    with merch.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from merch.api import callback_router, creator_router, order_router, quote_router  # noqa: E402
from merch.api.errors import register_merch_exception_handlers  # noqa: E402

app.include_router(callback_router)
app.include_router(order_router)
app.include_router(creator_router)
app.include_router(quote_router)
register_merch_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "merch": {"name": merch.name},
            },
        }
    )
