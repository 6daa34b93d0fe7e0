"""
MikroBill Backend - Main FastAPI Application.

Billing backend for MikroTik captive-portal DHCP clients: plan catalogue,
activation/renewal with downtime discounts, grace periods and the sale ledger.

Run with:
    uvicorn mikrobill.main:app --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from supabase import acreate_client
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from mikrobill.api.v1.clients import router as clients_router
from mikrobill.api.v1.plans import router as plans_router
from mikrobill.api.v1.pppoe import router as pppoe_router
from mikrobill.api.v1.sales import router as sales_router
from mikrobill.config import get_settings
from mikrobill.constants import API_TITLE, API_VERSION
from mikrobill.logging_config import setup_logging
from mikrobill.middleware import RequestContextMiddleware
from mikrobill.services.activation_service import DhcpBillingService
from mikrobill.services.client_records import (
    InMemoryClientRecordRepository,
    SupabaseClientRecordRepository,
)
from mikrobill.services.plan_store import InMemoryPlanRepository, SupabasePlanRepository
from mikrobill.services.router_gateway import MikrotikApiGateway
from mikrobill.services.sales_ledger import InMemorySaleLedger, SupabaseSaleLedger

# Get settings before logging setup so we know the debug flag
settings = get_settings()

# Configure logging
setup_logging(settings.debug)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler for startup and shutdown."""
    logger.info("api_startup", cors_origins=settings.cors_origins)
    billing = settings.billing

    supabase_client: AsyncSupabaseClient | None = None
    if settings.supabase_url and settings.supabase_secret_key:
        try:
            supabase_client = await acreate_client(
                settings.supabase_url,
                settings.supabase_secret_key,
            )
            logger.info("supabase_configured")
        except Exception as e:
            logger.warning("supabase_init_failed", error=str(e))
    else:
        logger.warning("supabase_not_configured", detail="Using in-memory stores; auth endpoints return 503")

    _app.state.supabase = supabase_client

    if supabase_client is not None:
        plan_repository = SupabasePlanRepository(
            supabase_client, billing.plans_table, billing.default_currency
        )
        sale_ledger = SupabaseSaleLedger(supabase_client, billing.sales_table)
        client_records = SupabaseClientRecordRepository(supabase_client, billing.clients_table)
    else:
        plan_repository = InMemoryPlanRepository(billing.default_currency)
        sale_ledger = InMemorySaleLedger()
        client_records = InMemoryClientRecordRepository()

    gateway = MikrotikApiGateway(settings.router_api)
    logger.info("router_api_configured", base_url=settings.router_api.base_url)

    _app.state.plan_repository = plan_repository
    _app.state.sale_ledger = sale_ledger
    _app.state.dhcp_billing_service = DhcpBillingService(
        plan_repository,
        sale_ledger,
        client_records,
        gateway,
        config=billing,
    )

    logger.info("services_initialized")

    yield

    await gateway.close()
    logger.info("api_shutdown")


# Create FastAPI app
app = FastAPI(
    title=API_TITLE,
    description=(
        "Billing API for MikroTik captive-portal clients: plans, activation "
        "with downtime discounts, grace periods and the sales ledger."
    ),
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Request context middleware must come before CORS so every response gets
# the X-Request-ID header (including preflight OPTIONS responses).
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(plans_router, prefix="/api/v1")
app.include_router(clients_router, prefix="/api/v1")
app.include_router(sales_router, prefix="/api/v1")
app.include_router(pppoe_router, prefix="/api/v1")


@app.get("/")
async def root() -> dict:
    """Root endpoint with API info."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "description": "Billing API for MikroTik captive-portal clients",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}
