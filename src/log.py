import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

import seqlog

from core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DIR = "logs"


def setup_logging_to_console(level=logging.INFO, logger: Optional[logging.Logger] = None):
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    target = logger or logging.getLogger()
    target.setLevel(level)
    target.addHandler(handler)
    setup_logging_to_seq(level)


def setup_logging_to_file(
    app: str, level=logging.INFO, logger: Optional[logging.Logger] = None
):
    os.makedirs(LOG_DIR, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(LOG_DIR, f"{app}.log"),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    target = logger or logging.getLogger()
    target.setLevel(level)
    target.addHandler(handler)


def setup_logging_to_seq(level=logging.INFO):
    """Ship records to Seq when a server is configured."""
    if not settings.SEQ_SERVER_URL:
        return
    seqlog.log_to_seq(
        server_url=settings.SEQ_SERVER_URL,
        api_key=settings.SEQ_SERVER_API_KEY,
        level=level,
        batch_size=10,
        auto_flush_timeout=10,
        override_root_logger=False,
    )
