import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings:
    @staticmethod
    def _get_int(name: str, default: int) -> int:
        return int(os.getenv(name, str(default)))

    @staticmethod
    def _get_float(name: str, default: float) -> float:
        return float(os.getenv(name, str(default)))

    @property
    def BASE_URL(self) -> str:
        return os.getenv("BASE_URL", "http://localhost:8000")

    @property
    def DATABASE_URL(self) -> str:
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL is required")
        return database_url

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
    def GATEWAY_KEY_ID(self) -> str:
        return os.getenv("GATEWAY_KEY_ID", "")

    @property
    def GATEWAY_KEY_SECRET(self) -> str:
        return os.getenv("GATEWAY_KEY_SECRET", "")

    @property
    def GATEWAY_WEBHOOK_SECRET(self) -> str:
        # The gateway signs webhooks with the API secret unless a dedicated one is configured.
        return os.getenv("GATEWAY_WEBHOOK_SECRET", "") or self.GATEWAY_KEY_SECRET

    @property
    def GATEWAY_API_BASE_URL(self) -> str:
        return os.getenv("GATEWAY_API_BASE_URL", "https://api.razorpay.com/v1")

    @property
    def GATEWAY_TIMEOUT_SECONDS(self) -> float:
        return self._get_float("GATEWAY_TIMEOUT_SECONDS", 15.0)

    @property
    def PAYMENT_CURRENCY(self) -> str:
        return os.getenv("PAYMENT_CURRENCY", "INR")

    @property
    def PAYMENT_CALLBACK_URL(self) -> str:
        default = f"{self.BASE_URL.rstrip('/')}/webhooks/gateway/callback"
        return os.getenv("PAYMENT_CALLBACK_URL", default)

    @property
    def PAYMENT_SUCCESS_REDIRECT_URL(self) -> str:
        return os.getenv("PAYMENT_SUCCESS_REDIRECT_URL", "http://localhost:3000/orders?payment=success")

    @property
    def PAYMENT_FAILURE_REDIRECT_URL(self) -> str:
        return os.getenv("PAYMENT_FAILURE_REDIRECT_URL", "http://localhost:3000/orders?payment=failed")

    @property
    def PAYMENT_POLL_INTERVAL_SECONDS(self) -> float:
        return self._get_float("PAYMENT_POLL_INTERVAL_SECONDS", 5.0)

    @property
    def PAYMENT_POLL_TIMEOUT_SECONDS(self) -> float:
        return self._get_float("PAYMENT_POLL_TIMEOUT_SECONDS", 600.0)

    @property
    def PENDING_ORDER_RETENTION_HOURS(self) -> int:
        return self._get_int("PENDING_ORDER_RETENTION_HOURS", 72)

    @property
    def RETURN_WINDOW_DAYS(self) -> int:
        return self._get_int("RETURN_WINDOW_DAYS", 30)

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")


settings = Settings()

# Validate critical settings
if settings.JWT_SECRET == "change-me-in-production":
    import warnings
    warnings.warn("JWT_SECRET is using default value. Change it in production!", UserWarning)
