import logging
import sys
from typing import Optional

from navtracker.config import settings


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure centralized application logging (defaults to settings.LOG_LEVEL).
    """
    level = level or settings.LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # APScheduler logs every job submission at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
