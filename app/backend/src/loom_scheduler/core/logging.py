import logging

from loom_scheduler.core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings | None = None) -> logging.Logger:
    """Attach a single stream handler to the ``loom_scheduler`` logger tree."""
    settings = settings or get_settings()
    logger = logging.getLogger("loom_scheduler")
    logger.setLevel(settings.log_level.upper())
    if not any(getattr(handler, "_loom_handler", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._loom_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
