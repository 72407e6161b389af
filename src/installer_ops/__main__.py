"""Run the installer ops API with uvicorn (``python -m installer_ops``)."""

import logging

import uvicorn

from installer_ops.config import get_settings
from installer_ops.logging_config import configure_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    driver = settings.database_url.split("://", 1)[0]
    logger.info("Serving on %s:%d (database %s)", settings.host, settings.port, driver)
    uvicorn.run(
        "installer_ops.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
