import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings:
    @staticmethod
    def _get_int(name: str, default: int) -> int:
        return int(os.getenv(name, str(default)))

    @staticmethod
    def _get_bool(name: str, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None:
            return default
        return raw.strip().lower() in {"1", "true", "yes", "on"}

    @staticmethod
    def _get_decimal(name: str, default: str) -> Decimal:
        return Decimal(os.getenv(name, default))

    @property
    def BASE_URL(self) -> str:
        return os.getenv("BASE_URL", "http://localhost:8000")

    @property
    def FRONTEND_URL(self) -> str:
        return os.getenv("FRONTEND_URL", "http://localhost:3000")

    @property
    def DATABASE_URL(self) -> str:
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL is required")
        return database_url

    @property
    def DB_POOL_SIZE(self) -> int:
        return self._get_int("DB_POOL_SIZE", 10)

    @property
    def DB_CONNECT_RETRIES(self) -> int:
        return self._get_int("DB_CONNECT_RETRIES", 5)

    @property
    def DB_CONNECT_RETRY_DELAY_SECONDS(self) -> int:
        return self._get_int("DB_CONNECT_RETRY_DELAY_SECONDS", 2)

    @property
    def JWT_SECRET(self) -> str:
        return os.getenv("JWT_SECRET", "change-me-in-production")

    @property
    def JWT_ALGORITHM(self) -> str:
        return os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def JWT_EXPIRE_MINUTES(self) -> int:
        return self._get_int("JWT_EXPIRE_MINUTES", 60 * 24 * 7)

    @property
    def ADMIN_TOKEN_EXPIRE_MINUTES(self) -> int:
        return self._get_int("ADMIN_TOKEN_EXPIRE_MINUTES", 60 * 24)

    @property
    def ADMIN_COOKIE_NAME(self) -> str:
        return os.getenv("ADMIN_COOKIE_NAME", "admin-token")

    @property
    def ADMIN_BOOTSTRAP_EMAIL(self) -> str:
        return os.getenv("ADMIN_BOOTSTRAP_EMAIL", "").strip()

    @property
    def ADMIN_BOOTSTRAP_PASSWORD(self) -> str:
        return os.getenv("ADMIN_BOOTSTRAP_PASSWORD", "")

    @property
    def RAZORPAY_KEY_ID(self) -> str:
        return os.getenv("RAZORPAY_KEY_ID", "")

    @property
    def RAZORPAY_KEY_SECRET(self) -> str:
        return os.getenv("RAZORPAY_KEY_SECRET", "")

    @property
    def RAZORPAY_WEBHOOK_SECRET(self) -> str:
        return os.getenv("RAZORPAY_WEBHOOK_SECRET", "")

    @property
    def STRIPE_SECRET_KEY(self) -> str:
        return os.getenv("STRIPE_SECRET_KEY", "")

    @property
    def STRIPE_WEBHOOK_SECRET(self) -> str:
        return os.getenv("STRIPE_WEBHOOK_SECRET", "")

    @property
    def STRIPE_SUCCESS_URL(self) -> str:
        return os.getenv("STRIPE_SUCCESS_URL", "http://localhost:3000/orders/success")

    @property
    def STRIPE_CANCEL_URL(self) -> str:
        return os.getenv("STRIPE_CANCEL_URL", "http://localhost:3000/cart")

    @property
    def CURRENCY(self) -> str:
        return os.getenv("CURRENCY", "INR")

    @property
    def SHIPPING_FLAT_FEE(self) -> Decimal:
        return self._get_decimal("SHIPPING_FLAT_FEE", "50")

    @property
    def TAX_RATE(self) -> Decimal:
        return self._get_decimal("TAX_RATE", "0.18")

    @property
    def DEFAULT_COURIER(self) -> str:
        return os.getenv("DEFAULT_COURIER", "delhivery")

    @property
    def SHIPPING_TRANSIT_DAYS(self) -> int:
        return self._get_int("SHIPPING_TRANSIT_DAYS", 3)

    @property
    def SHIPPING_WEBHOOK_SECRET(self) -> str:
        return os.getenv("SHIPPING_WEBHOOK_SECRET", "")

    @property
    def REVIEW_SLA_DAYS(self) -> int:
        return self._get_int("REVIEW_SLA_DAYS", 5)

    @property
    def SMTP_HOST(self) -> str:
        return os.getenv("SMTP_HOST", "")

    @property
    def SMTP_PORT(self) -> int:
        return self._get_int("SMTP_PORT", 587)

    @property
    def SMTP_USER(self) -> str:
        return os.getenv("SMTP_USER", "")

    @property
    def SMTP_PASSWORD(self) -> str:
        return os.getenv("SMTP_PASSWORD", "")

    @property
    def SMTP_USE_TLS(self) -> bool:
        return self._get_bool("SMTP_USE_TLS", True)

    @property
    def SMTP_FROM_EMAIL(self) -> str:
        return os.getenv("SMTP_FROM_EMAIL", "")

    @property
    def SMTP_FROM_NAME(self) -> str:
        return os.getenv("SMTP_FROM_NAME", "Marketplace")

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")


settings = Settings()

# Validate critical settings
if settings.JWT_SECRET == "change-me-in-production":
    import warnings
    warnings.warn("JWT_SECRET is using default value. Change it in production!", UserWarning)
