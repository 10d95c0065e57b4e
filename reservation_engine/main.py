"""Reservation engine — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from reservation_engine.api.v1.properties import router as properties_router
from reservation_engine.api.v1.reservations import router as reservations_router
from reservation_engine.api.v1.rewards import router as rewards_router
from reservation_engine.api.v1.sweeps import router as sweeps_router
from reservation_engine.api.v1.webhooks import router as webhooks_router
from reservation_engine.config import settings
from reservation_engine.database import async_session_factory
from reservation_engine.payments.stripe_client import StripePaymentGateway
from reservation_engine.services.notifications import get_host_notifier
from reservation_engine.services.payment_orchestrator import PaymentOrchestrator
from reservation_engine.services.reservation_machine import ReservationStateMachine

# Configure root logger so all reservation_engine.* loggers output to stderr.
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def build_state_machine() -> ReservationStateMachine:
    """Wire the engine against the configured database, Stripe, and host notifier."""
    return ReservationStateMachine(
        async_session_factory,
        PaymentOrchestrator(StripePaymentGateway()),
        notifier=get_host_notifier(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup: tests may pre-install their own machine
    if getattr(app.state, "reservations", None) is None:
        app.state.reservations = build_state_machine()
    yield
    # Shutdown: dispose engine connections
    from reservation_engine.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Availability, payment, cancellation, and reward lifecycle of property reservations.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Routers
app.include_router(reservations_router)
app.include_router(properties_router)
app.include_router(rewards_router)
app.include_router(webhooks_router)
app.include_router(sweeps_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
