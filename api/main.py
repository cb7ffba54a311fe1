"""UnifiedBizOS API: FastAPI entry point.

Registers middleware, exception handlers, routers, and lifecycle hooks.
Each domain adds its own router under /api/{domain}/.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.middleware import SessionMiddleware
from core.config import get_settings
from core.database import close_db
from core.errors import DomainError
from core.observability.tracing import setup_tracing
from patterns.workflow_states import InvalidTransitionError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("api")

setup_tracing(settings.tracing)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    logger.info("UnifiedBizOS API started")
    yield
    await close_db()
    logger.info("UnifiedBizOS API shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="UnifiedBizOS",
    description="Multi-tenant business operating system: CRM, bookings, campaigns, documents and payments",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Bearer-token session
app.add_middleware(SessionMiddleware)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ---------------------------------------------------------------------------
# Routers: domains register here
# ---------------------------------------------------------------------------

from domains.accounts.router import router as accounts_router  # noqa: E402
from domains.automations.router import router as automations_router  # noqa: E402
from domains.bookings.router import public_router as public_bookings_router  # noqa: E402
from domains.bookings.router import router as bookings_router  # noqa: E402
from domains.campaigns.router import router as campaigns_router  # noqa: E402
from domains.crm.router import router as crm_router  # noqa: E402
from domains.documents.router import router as documents_router  # noqa: E402
from domains.drive.router import router as drive_router  # noqa: E402
from domains.funnels.router import public_router as public_funnels_router  # noqa: E402
from domains.funnels.router import router as funnels_router  # noqa: E402
from domains.payments.router import router as payments_router  # noqa: E402
from domains.payments.router import webhook_router  # noqa: E402
from domains.social.router import router as social_router  # noqa: E402
from domains.subscriptions.router import router as subscriptions_router  # noqa: E402

app.include_router(accounts_router, prefix="/api", tags=["Accounts"])
app.include_router(crm_router, prefix="/api/crm", tags=["CRM"])
app.include_router(bookings_router, prefix="/api/bookings", tags=["Bookings"])
app.include_router(automations_router, prefix="/api/automations", tags=["Automations"])
app.include_router(campaigns_router, prefix="/api/campaigns", tags=["Campaigns"])
app.include_router(documents_router, prefix="/api/documents", tags=["Documents"])
app.include_router(drive_router, prefix="/api/drive", tags=["Drive"])
app.include_router(social_router, prefix="/api/social", tags=["Social"])
app.include_router(payments_router, prefix="/api/payments", tags=["Payments"])
app.include_router(funnels_router, prefix="/api/funnels", tags=["Funnels"])
app.include_router(subscriptions_router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(public_bookings_router, prefix="/api/public", tags=["Public"])
app.include_router(public_funnels_router, prefix="/api/public", tags=["Public"])
app.include_router(webhook_router, prefix="/api/webhooks", tags=["Webhooks"])


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/")
async def root():
    return {
        "name": "UnifiedBizOS",
        "version": "0.1.0",
        "docs": "/docs",
    }
