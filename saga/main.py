import logging

from .database import init_db
from .settings.config import settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)


# ----------------------
# Process startup
# ----------------------
async def on_startup():
    from . import models  # noqa: F401  Required for SQLAlchemy model detection
    configure_logging()
    await init_db()
    logger.info("Saga prompt delivery ready (create_all=%s)", settings.RUN_DB_CREATE_ALL)
