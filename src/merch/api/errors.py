"""HTTP mapping for Merch domain errors.

protean's ``register_exception_handlers`` already turns ``ValidationError``
into 400 and ``ObjectNotFoundError`` into 404. The handlers here cover the
cases that need a different status code. Starlette resolves handlers along
the exception's MRO, so ``IllegalTransition`` gets 409 even though it is a
``ValidationError``.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from merch.errors import IllegalTransition, PersistenceConflict, ProviderUnavailable

_STATUS_CODES = {
    IllegalTransition: 409,
    PersistenceConflict: 409,
    ProviderUnavailable: 503,
}


def _handler(status_code: int):
    async def handle(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"error": exc.messages})

    return handle


def register_merch_exception_handlers(app: FastAPI) -> None:
    """Register protean's handlers plus the Merch-specific status codes."""
    register_exception_handlers(app)
    for exc_class, status_code in _STATUS_CODES.items():
        app.add_exception_handler(exc_class, _handler(status_code))
