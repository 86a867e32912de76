from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rentflow.api.v1.contracts import router as contracts_router
from rentflow.api.v1.health import router as health_router
from rentflow.api.v1.schemas import ErrorResponse
from rentflow.config import get_settings
from rentflow.core.errors import (
    CapacityExceededError,
    ContractConflictError,
    ContractError,
    ContractNotFoundError,
    ContractStateError,
    ContractValidationError,
    PermissionDeniedError,
    TransitionError,
)
from rentflow.db import engine


settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ContractValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ContractNotFoundError: status.HTTP_404_NOT_FOUND,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    ContractConflictError: status.HTTP_409_CONFLICT,
    TransitionError: status.HTTP_409_CONFLICT,
    ContractStateError: status.HTTP_409_CONFLICT,
    CapacityExceededError: status.HTTP_409_CONFLICT,
}


def _error_data(exc: ContractError) -> dict:
    if isinstance(exc, ContractValidationError):
        return {"violations": exc.violations}
    if isinstance(exc, ContractConflictError):
        return {
            "room_id": exc.room_id,
            "contract_id": exc.contract_id,
            "start_date": exc.start_date.isoformat(),
            "end_date": exc.end_date.isoformat(),
        }
    if isinstance(exc, TransitionError):
        return {"from_status": exc.from_status, "to_status": exc.to_status}
    if isinstance(exc, CapacityExceededError):
        return {"room_id": exc.room_id, "max_tenants": exc.max_tenants, "current": exc.current}
    return {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup completed")
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Application shutdown completed")


app = FastAPI(
    title="Rentflow",
    description="Rental contract lifecycle service",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

origins = (
    [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    if settings.allowed_origins != "*"
    else ["*"]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ContractError)
async def contract_error_handler(request: Request, exc: ContractError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    logger.info("%s %s -> %s: %s", request.method, request.url.path, status_code, exc)
    body = ErrorResponse(code=exc.code, detail=str(exc), data=_error_data(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


app.include_router(health_router)
app.include_router(contracts_router)
