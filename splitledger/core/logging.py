import logging.config

from splitledger.core.config import settings


def configure_logging(level: str | None = None):
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)-5.5s [%(name)s] %(message)s",
                "datefmt": "%H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "splitledger": {
                "handlers": ["console"],
                "level": (level or settings.LOG_LEVEL).upper(),
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "handlers": ["console"],
                "level": "WARN",
                "propagate": False,
            },
        },
    })
