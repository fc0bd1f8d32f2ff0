"""
Logging configuration for the helpdesk API.

One stream handler on the root logger; modules log through
``logging.getLogger(__name__)``.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
HANDLER_NAME = "helpdesk"


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())

    # Avoid stacking handlers when the app module is imported more than once
    if any(h.get_name() == HANDLER_NAME for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.set_name(HANDLER_NAME)
    root.addHandler(handler)

    # APScheduler is chatty at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
