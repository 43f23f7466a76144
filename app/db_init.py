import logging
import time
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.models.database import Base, _normalize_database_url, engine
from app.models import ExchangeRate, KVEntry, Order, Product, Refund  # noqa: F401 - register models
from app.services import exchange_rates

logger = logging.getLogger(__name__)


def _ping() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def wait_for_db(retries: int, retry_delay_seconds: int) -> None:
    """Block until the shop database answers a ping, or raise after the last attempt."""
    target = engine.url.render_as_string(hide_password=True)
    for attempt in range(1, retries + 1):
        try:
            _ping()
        except OperationalError as exc:
            if attempt == retries:
                raise RuntimeError(
                    f"Database is unreachable at {target} after {retries} attempts. "
                    "Check DATABASE_URL and DB_CONNECT_RETRIES."
                ) from exc
            logger.warning("Database %s not ready (attempt %s/%s): %s", target, attempt, retries, exc.orig)
            time.sleep(retry_delay_seconds)
        else:
            logger.info("Database %s reachable on attempt %s", target, attempt)
            return


def init_db():
    wait_for_db(
        retries=settings.DB_CONNECT_RETRIES,
        retry_delay_seconds=settings.DB_CONNECT_RETRY_DELAY_SECONDS,
    )
    if settings.DATABASE_URL.startswith("sqlite://"):
        Base.metadata.create_all(bind=engine)
        return

    run_migrations()


def run_migrations() -> None:
    """Apply Alembic migrations to the latest revision."""
    from alembic import command
    from alembic.config import Config

    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    script_location = project_root / "alembic"
    if not alembic_ini.exists() or not script_location.exists():
        raise RuntimeError("Alembic configuration is missing (alembic.ini or alembic/ directory not found).")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(script_location))
    config.set_main_option("sqlalchemy.url", _normalize_database_url(settings.DATABASE_URL))
    command.upgrade(config, "head")
    logger.info("Database migrations applied")


def seed_exchange_rate(db_session) -> None:
    """Store INITIAL_EXCHANGE_RATE as the first rate when none has been configured yet."""
    initial_rate = settings.INITIAL_EXCHANGE_RATE
    if not initial_rate:
        return
    if db_session.query(ExchangeRate).first() is not None:
        return
    exchange_rates.set_rate(db_session, initial_rate)
    logger.info("Seeded initial exchange rate %s", initial_rate)
