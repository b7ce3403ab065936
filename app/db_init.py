import logging
import time
from pathlib import Path

from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.models.database import Base, _normalize_database_url, engine
from app.models import Order, OrderItem, PayoutRequest, PendingOrder, Product, User  # noqa: F401 - register models

logger = logging.getLogger(__name__)

# One confirmed order per payment and one pending order per gateway reference.
REQUIRED_UNIQUE_COLUMNS = (
    ("orders", "razorpay_payment_id"),
    ("pending_orders", "razorpay_order_id"),
)


def wait_for_db(retries: int, retry_delay_seconds: int) -> None:
    """Wait for database to accept connections before running migrations."""
    last_error = None
    for attempt in range(1, retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection established on attempt %s", attempt)
            return
        except OperationalError as exc:
            last_error = exc
            logger.warning(
                "Database not reachable yet (attempt %s/%s): %s",
                attempt,
                retries,
                exc,
            )
            if attempt < retries:
                time.sleep(retry_delay_seconds)

    raise RuntimeError(
        "Database is unreachable after "
        f"{retries} attempts. Check DATABASE_URL and ensure the DB server is running."
    ) from last_error


def init_db():
    wait_for_db(
        retries=settings.DB_CONNECT_RETRIES,
        retry_delay_seconds=settings.DB_CONNECT_RETRY_DELAY_SECONDS,
    )
    if not settings.DATABASE_URL.startswith("sqlite://"):
        run_migrations()
    Base.metadata.create_all(bind=engine)
    verify_checkout_schema(engine)


def run_migrations() -> None:
    """Apply Alembic migrations to the latest revision."""
    try:
        from alembic import command
        from alembic.config import Config
    except Exception as exc:  # pragma: no cover - environment/setup failure
        raise RuntimeError(
            "Alembic is required for non-sqlite runtime. Install the project dependencies."
        ) from exc

    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    script_location = project_root / "alembic"
    if not alembic_ini.exists() or not script_location.exists():
        raise RuntimeError("Alembic configuration is missing (alembic.ini or alembic/ directory not found).")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(script_location))
    config.set_main_option("sqlalchemy.url", _normalize_database_url(settings.DATABASE_URL))
    command.upgrade(config, "head")


def _unique_column_sets(inspector, table_name: str) -> set[tuple[str, ...]]:
    unique = {tuple(constraint["column_names"]) for constraint in inspector.get_unique_constraints(table_name)}
    unique.update(
        tuple(index["column_names"])
        for index in inspector.get_indexes(table_name)
        if index.get("unique")
    )
    return unique


def verify_checkout_schema(bind) -> None:
    """Refuse to start on a database that cannot reject a duplicate payment.

    Tables created by hand or by an older schema may lack the unique keys the
    materializer depends on; without them two channels could both insert.
    """
    inspector = inspect(bind)
    missing = [
        f"{table_name}.{column_name}"
        for table_name, column_name in REQUIRED_UNIQUE_COLUMNS
        if (column_name,) not in _unique_column_sets(inspector, table_name)
    ]
    if missing:
        raise RuntimeError(
            "Database schema is missing unique constraints required for checkout: " + ", ".join(missing)
        )
    logger.info("Checkout schema verified")
