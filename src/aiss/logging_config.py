"""Application logging setup.

Modules log through ``logging.getLogger(__name__)``; handlers are installed
once, by the CLI or by create_app(), never on import.
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache

from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("litellm", "LiteLLM", "httpx", "httpcore", "openai")


@lru_cache(maxsize=4)
def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger for the ``aiss`` package.

    Uses a rich handler when stderr is a terminal and the plain pipe format
    otherwise. Third-party client libraries are held at WARNING.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if sys.stderr.isatty():
        handler: logging.Handler = RichHandler(
            show_path=False, rich_tracebacks=False, log_time_format=DATE_FORMAT
        )
        handler.setFormatter(logging.Formatter("%(name)s | %(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    logging.basicConfig(level=log_level, handlers=[handler], force=True)
    logging.getLogger("aiss").setLevel(log_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
