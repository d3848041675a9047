import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Route every logger to stdout in the shared format."""
    from config.settings import settings

    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.handlers.clear()
    root.addHandler(handler)
