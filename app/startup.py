"""Runtime configuration checks run once from the application lifespan."""

import logging
import os
from urllib.parse import urlparse

from app.config import settings
from app.services.payment_gateways import get_enabled_payment_methods

logger = logging.getLogger("app.startup")

LOCAL_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0"}
POSTGRES_SCHEMES = {"postgres", "postgresql", "postgresql+psycopg"}
HOSTED_RUNTIME_MARKERS = (
    "RAILWAY_PROJECT_ID",
    "RAILWAY_SERVICE_ID",
    "RAILWAY_ENVIRONMENT",
    "RAILWAY_ENVIRONMENT_NAME",
    "RAILWAY_PUBLIC_DOMAIN",
)
DEFAULT_JWT_SECRET = "change-me-in-production"


def is_hosted_runtime() -> bool:
    return any(os.getenv(name) for name in HOSTED_RUNTIME_MARKERS)


def _is_local(host: str | None) -> bool:
    return host in LOCAL_HOSTS


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def parse_cors_origins(raw: str) -> list[str]:
    return [origin.strip().strip("'\"") for origin in raw.split(",") if origin.strip()]


def validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if not parsed.scheme:
        raise RuntimeError("DATABASE_URL is missing URL scheme (expected postgresql:// or sqlite://).")
    if parsed.scheme == "sqlite":
        return
    if parsed.scheme not in POSTGRES_SCHEMES:
        raise RuntimeError(
            f"DATABASE_URL has unsupported scheme '{parsed.scheme}' (expected postgresql:// or sqlite://)."
        )
    if not parsed.hostname:
        raise RuntimeError("DATABASE_URL is missing host.")
    if not parsed.path.lstrip("/"):
        raise RuntimeError("DATABASE_URL is missing database name in path.")
    if is_hosted_runtime() and _is_local(parsed.hostname):
        raise RuntimeError(
            f"DATABASE_URL points to {parsed.hostname} in a hosted runtime; "
            "use the managed Postgres connection string instead."
        )


def database_url_diagnostics(database_url: str) -> str:
    parsed = urlparse(database_url)
    host = parsed.hostname or "<missing>"
    query = parsed.query or "<empty>"
    hints = []
    if _is_local(parsed.hostname):
        hints.append("host is local; hosted deployments need the managed database host")
    if parsed.scheme in {"postgres", "postgresql"}:
        hints.append("scheme is rewritten to postgresql+psycopg internally")
    if parsed.scheme != "sqlite" and "sslmode" not in query:
        hints.append("no sslmode in query; managed databases often require sslmode=require")
    return (
        f"scheme={parsed.scheme or '<missing>'}, host={host}, port={parsed.port or '<missing>'}, "
        f"database={parsed.path.lstrip('/') or '<missing>'}, query={query}; "
        f"hints={' | '.join(hints) or 'none'}"
    )


def _payment_problems(hosted: bool) -> tuple[list[str], list[str]]:
    errors: list[str] = []
    warnings: list[str] = []

    if bool(settings.RAZORPAY_KEY_ID) != bool(settings.RAZORPAY_KEY_SECRET):
        errors.append("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set together.")
    if settings.RAZORPAY_KEY_ID and not settings.RAZORPAY_WEBHOOK_SECRET:
        warnings.append("RAZORPAY_WEBHOOK_SECRET is not set; Razorpay webhooks will be refused.")
    if settings.STRIPE_SECRET_KEY and not settings.STRIPE_WEBHOOK_SECRET:
        message = "STRIPE_WEBHOOK_SECRET is not set; Stripe webhooks are accepted unverified."
        (errors if hosted else warnings).append(message)
    if not get_enabled_payment_methods():
        warnings.append("No payment gateway is configured; checkout will answer 503.")
    if settings.TAX_RATE < 0 or settings.SHIPPING_FLAT_FEE < 0:
        errors.append("TAX_RATE and SHIPPING_FLAT_FEE must not be negative.")
    return errors, warnings


def validate_runtime_settings() -> None:
    """Raise RuntimeError listing every blocking problem; log the non-blocking ones."""
    hosted = is_hosted_runtime()
    errors: list[str] = []
    warnings: list[str] = []

    jwt_secret = settings.JWT_SECRET.strip()
    if not jwt_secret:
        errors.append("JWT_SECRET is required.")
    elif hosted and jwt_secret == DEFAULT_JWT_SECRET:
        errors.append("JWT_SECRET uses insecure default value in a hosted runtime.")

    base_url = settings.BASE_URL.strip()
    if not _is_http_url(base_url):
        errors.append("BASE_URL must be an absolute http(s) URL, e.g. https://api.example.org")
    elif hosted and _is_local(urlparse(base_url).hostname):
        errors.append("BASE_URL points to localhost in a hosted runtime.")

    if not _is_http_url(settings.FRONTEND_URL):
        errors.append("FRONTEND_URL must be an absolute http(s) URL.")

    origins = parse_cors_origins(settings.CORS_ORIGINS)
    if not origins:
        errors.append("CORS_ORIGINS must contain at least one comma-separated origin URL.")
    invalid = [origin for origin in origins if not _is_http_url(origin)]
    if invalid:
        errors.append(f"CORS_ORIGINS contains invalid URL(s): {', '.join(invalid)}")
    if hosted and any(_is_local(urlparse(origin).hostname) for origin in origins):
        warnings.append("CORS_ORIGINS includes localhost in a hosted runtime.")

    payment_errors, payment_warnings = _payment_problems(hosted)
    errors.extend(payment_errors)
    warnings.extend(payment_warnings)

    if warnings:
        logger.warning("Startup environment warnings: %s", " | ".join(warnings))
    if errors:
        raise RuntimeError("Startup environment validation failed: " + " | ".join(errors))
