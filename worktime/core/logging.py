import logging

from worktime.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Konfiguriert das Root-Logging einmalig beim Start (API und Celery-Worker)."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # SQL-Echo nur im DEBUG-Modus über den Engine-Logger
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )
