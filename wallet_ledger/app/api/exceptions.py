from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.errors import (
    ConcurrentModificationError,
    DuplicateIdempotencyKeyError,
    InsufficientFundsError,
    LedgerValidationError,
    NotFoundError,
    PartialApplicationFailureError,
)


logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(LedgerValidationError)
    async def ledger_validation_handler(
        request: Request, exc: LedgerValidationError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(DuplicateIdempotencyKeyError)
    async def duplicate_idempotency_handler(
        request: Request, exc: DuplicateIdempotencyKeyError
    ) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ConcurrentModificationError)
    async def concurrent_modification_handler(
        request: Request, exc: ConcurrentModificationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "retryable": True},
        )

    @app.exception_handler(PartialApplicationFailureError)
    async def partial_application_handler(
        request: Request, exc: PartialApplicationFailureError
    ) -> JSONResponse:
        logger.critical(
            "ledger.partial_application",
            extra={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})
