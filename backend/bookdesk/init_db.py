"""Create all tables on the configured database (local development)."""

import logging

from bookdesk.database import Base, engine
import bookdesk.models  # noqa: F401

logger = logging.getLogger(__name__)


def init_db() -> None:
    logger.info(f"Creating database tables on {engine.url.render_as_string(hide_password=True)}")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
