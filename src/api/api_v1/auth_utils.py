import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException

from core.config import settings

logger = logging.getLogger(__name__)


def verify_cron_secret(authorization: Optional[str] = Header(default=None)):
    cron_secret = settings.CRON_SECRET
    if not cron_secret:
        logger.error("CRON_SECRET not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")

    expected = f"Bearer {cron_secret}"
    # Constant time comparison to prevent timing attacks
    if not authorization or not secrets.compare_digest(
        authorization.encode("utf-8"), expected.encode("utf-8")
    ):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"Content-Type": "application/json"},
        )
    return True
