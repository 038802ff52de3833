import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import (
    admin,
    auth,
    cart,
    marketplace,
    notifications,
    orders,
    service_offers,
    service_requests,
    shipping,
)
from app.config import settings
from app.db_init import init_db, seed_admin_user
from app.models import get_db
from app.services.errors import OrderWorkflowError
from app.startup import (
    database_url_diagnostics,
    parse_cors_origins,
    validate_database_url,
    validate_runtime_settings,
)
from app.webhooks import razorpay_webhook, stripe_webhook

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("app.startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    database_url = "<unavailable>"
    logger.info("Application startup initiated.")
    try:
        database_url = settings.DATABASE_URL
        logger.info("DATABASE_URL diagnostics at startup: %s", database_url_diagnostics(database_url))
        validate_database_url(database_url)
        validate_runtime_settings()
        init_db()
    except Exception as exc:
        diagnostics = (
            database_url_diagnostics(database_url)
            if database_url != "<unavailable>"
            else "DATABASE_URL unavailable (missing or unreadable)."
        )
        logger.exception(
            "Database initialization failed: %s. DATABASE_URL diagnostics: %s",
            str(exc),
            diagnostics,
        )
        raise
    db = next(get_db())
    try:
        seed_admin_user(db)
    finally:
        db.close()
    logger.info("Application startup completed successfully.")
    yield


app = FastAPI(
    title="Marketplace API",
    description=(
        "Backend API for the social-impact marketplace: orders with Razorpay/Stripe payments, "
        "shipment tracking, and admin review of NGO service offers. "
        "Use **Authorize** with the token from `POST /api/auth/login` for protected endpoints."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Register individual, company and NGO accounts; login (JWT)."},
        {"name": "Marketplace", "description": "Browse and list items for sale."},
        {"name": "Cart", "description": "Buyer cart (requires auth)."},
        {"name": "Orders", "description": "Checkout, payment verification, status changes, cancel and refund."},
        {"name": "Shipping", "description": "Shipment tracking and carrier updates."},
        {"name": "Service Offers", "description": "NGO job offers, visible once approved by an admin."},
        {"name": "Service Requests", "description": "NGO volunteer requests."},
        {"name": "Notifications", "description": "In-app notifications for the current user."},
        {"name": "Admin", "description": "Admin login, service offer review queue, user verification."},
        {"name": "Webhooks", "description": "Called by Razorpay and Stripe."},
    ],
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        **openapi_schema.get("components", {}).get("securitySchemes", {}),
        "bearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "JWT from POST /api/auth/login",
        },
        "adminCookie": {
            "type": "apiKey",
            "in": "cookie",
            "name": settings.ADMIN_COOKIE_NAME,
            "description": "Set by POST /api/admin/auth/login",
        },
    }
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_cors_origins(settings.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(marketplace.router, prefix="/api/marketplace", tags=["Marketplace"])
app.include_router(cart.router, prefix="/api/cart", tags=["Cart"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(shipping.router, prefix="/api/shipping", tags=["Shipping"])
app.include_router(service_offers.router, prefix="/api/service-offers", tags=["Service Offers"])
app.include_router(service_requests.router, prefix="/api/service-requests", tags=["Service Requests"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(razorpay_webhook.router, prefix="/webhooks", tags=["Webhooks"])
app.include_router(stripe_webhook.router, prefix="/webhooks", tags=["Webhooks"])


@app.exception_handler(OrderWorkflowError)
async def order_workflow_error_handler(request: Request, exc: OrderWorkflowError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, **exc.extra},
    )


@app.get("/")
def root():
    return {"status": "ok", "service": "Marketplace API"}


@app.get("/health")
def health():
    return {"status": "ok"}
