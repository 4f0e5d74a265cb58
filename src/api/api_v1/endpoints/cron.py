import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.api_v1.auth_utils import verify_cron_secret
from api.api_v1.deps import NotifierDep, ProgramServiceDep, RateLimitServiceDep, SessionDep
from core.config import settings
from schemas.rewards import DistributionSummary
from services.distribution_recorder import DistributionRecorder
from services.reward_distribution_service import RewardDistributionService, build_summary

logger = logging.getLogger(__name__)

router = APIRouter()


# Sync handler: runs in the threadpool so blocking RPC confirmation and the
# alert event loop stay off the server loop.
@router.get(
    "/distribute",
    response_model=DistributionSummary,
    dependencies=[Depends(verify_cron_secret)],
)
def distribute(
    session: SessionDep,
    program: ProgramServiceDep,
    rate_limit: RateLimitServiceDep,
    notifier: NotifierDep,
):
    recorder = DistributionRecorder(
        session, program, confirm_timeout=settings.SOLANA_CONFIRM_TIMEOUT_SECONDS
    )
    service = RewardDistributionService(
        session, rate_limit=rate_limit, recorder=recorder, notifier=notifier
    )
    try:
        outcome = service.run()
    except Exception as e:
        logger.error(f"Daily distribution failed: {e}", exc_info=True)
        summary = DistributionSummary(success=False, message="Distribution failed")
        return JSONResponse(
            status_code=500, content=summary.model_dump(mode="json", by_alias=True)
        )

    return build_summary(outcome)
