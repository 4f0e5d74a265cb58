import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import text

from api.api_v1.deps import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthCheckResponse(BaseModel):
    status: str


@router.get("/", response_model=HealthCheckResponse, status_code=status.HTTP_200_OK)
def health_check(session: SessionDep):
    try:
        session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Database unavailable")
    return HealthCheckResponse(status="ok")
