"""
Logging setup.

Every module logs through ``logging.getLogger(__name__)``; this only wires the
root handler once at startup.
"""
import logging
import logging.config

_configured = False


def configure_logging(level: str = "INFO") -> None:
    global _configured
    if _configured:
        logging.getLogger().setLevel(level.upper())
        return

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["console"],
                "level": level.upper(),
            },
            "loggers": {
                # SQL echo is noisy, keep it opt-in
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
    _configured = True
