import logging
from typing import Literal

LOG_FORMAT_DEBUG = (
    "[%(levelname)7s]: %(name)s - %(message)s --- %(pathname)s:%(lineno)d"
)
LOG_FORMAT_PROD = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers kept at WARNING in every environment.
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def setup_logging(env: Literal["local", "dev", "prod"]) -> None:
    """Configure root logging once per process for the given environment."""
    if env in ("local", "dev"):
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT_DEBUG)
    else:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT_PROD)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
