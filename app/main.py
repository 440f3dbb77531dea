"""
Main FastAPI application for the marketplace access engine.
Serves health, access/paywall, payments, referral access, admin and metrics.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import access, admin, health, payments, referral
from app.core.config import settings
from app.core.errors import InitiationError, LedgerWriteError, PaymentValidationError
from app.core.logging import configure_logging, log_requests
from app.paywall.cache import StatusCache
from app.services.payments.processor import LencoPayProcessor
from app.services.payments.registry import SettlementRegistry
from app.utils.metrics import router as metrics_router


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    cache = StatusCache()
    processor = LencoPayProcessor()
    app.state.status_cache = cache
    app.state.processor = processor
    app.state.settlements = SettlementRegistry(processor, cache)
    yield
    await app.state.settlements.shutdown()


app = FastAPI(
    title="Marketplace Access API",
    description="Profile-view quota, subscriptions, contact unlocks and mobile-money payments",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.middleware("http")(log_requests)


# Errors
@app.exception_handler(PaymentValidationError)
async def payment_validation_error_handler(request: Request, exc: PaymentValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "field": exc.field},
    )


@app.exception_handler(InitiationError)
async def initiation_error_handler(request: Request, exc: InitiationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


@app.exception_handler(LedgerWriteError)
async def ledger_write_error_handler(request: Request, exc: LedgerWriteError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Your payment was received but could not be applied yet. Please retry shortly."},
    )


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(access.router)
app.include_router(payments.router)
app.include_router(referral.router)
app.include_router(admin.router)
app.include_router(metrics_router)
