import logging

from fastapi import APIRouter, HTTPException

from api.api_v1.deps import ClaimLedgerDep, CurrentUserDep, RateLimitServiceDep, SessionDep
from core.exceptions import ExternalDependencyError, RewardsError
from schemas.rewards import (
    ClaimableReward,
    ClaimHistoryItem,
    ClaimRequest,
    ClaimResponse,
    ClaimStatusResponse,
    DistributionHistoryItem,
    PoolInfoResponse,
    RewardHistoryResponse,
    TokenBalanceResponse,
)
from services.distribution_calculator import proportional_share, scale_points
from services.reward_distribution_service import (
    get_total_pending_points,
    get_user_distributed_points,
)
from utils.api import require_wallet
from utils.extension_utils import seconds_until_midnight_utc, to_amount

logger = logging.getLogger(__name__)

router = APIRouter()


def to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, RewardsError):
        return HTTPException(status_code=e.status_code, detail=e.message)
    logger.error(f"Unexpected rewards error: {e}", exc_info=True)
    return HTTPException(status_code=500, detail="Internal server error")


@router.get("/claim", response_model=ClaimStatusResponse)
def get_claim_status(
    wallet: str | None = None,
    *,
    user: CurrentUserDep,
    ledger: ClaimLedgerDep,
):
    try:
        wallet_address = str(require_wallet(wallet, "Wallet address"))
    except RewardsError as e:
        raise to_http_error(e)

    if not user.wallet_address:
        raise HTTPException(status_code=400, detail="No wallet linked to account")
    if user.wallet_address != wallet_address:
        raise HTTPException(status_code=403, detail="Wallet mismatch")

    try:
        status = ledger.get_claim_status(user.id, wallet_address)
    except Exception as e:
        raise to_http_error(e)

    return ClaimStatusResponse(
        wallet=status.wallet,
        claimable=status.claimable,
        reward_id=str(status.reward_id) if status.reward_id else None,
        amount=str(status.amount) if status.amount is not None else None,
        proof=status.proof,
        message=status.message,
    )


@router.post("/claim", response_model=ClaimResponse)
def submit_claim(request: ClaimRequest, user: CurrentUserDep, ledger: ClaimLedgerDep):
    try:
        result = ledger.record_claim(user.id, request.reward_id, request.claim_tx)
    except Exception as e:
        raise to_http_error(e)

    return ClaimResponse(
        success=result.success,
        message=result.message,
        amount_claimed=(
            str(result.amount_claimed) if result.amount_claimed is not None else None
        ),
    )


@router.get("/history", response_model=RewardHistoryResponse)
def get_reward_history(user: CurrentUserDep, ledger: ClaimLedgerDep):
    try:
        rewards = ledger.get_user_rewards(user.id)
        claims = ledger.get_user_claim_events(user.id)
    except Exception as e:
        raise to_http_error(e)

    return RewardHistoryResponse(
        distributions=[
            DistributionHistoryItem(
                id=str(r.id),
                amount_earned=r.amount_earned,
                cumulative_amount=r.amount,
                points_converted=r.points_converted,
                distributed_at=r.created_at,
            )
            for r in rewards
        ],
        claims=[
            ClaimHistoryItem(
                id=str(c.id),
                amount_claimed=c.amount_claimed,
                cumulative_claimed=c.cumulative_claimed,
                tx_signature=c.tx_signature,
                claimed_at=c.claimed_at,
            )
            for c in claims
        ],
        total_claimed=str(sum(to_amount(c.amount_claimed) for c in claims)),
    )


@router.get("/yap", response_model=TokenBalanceResponse)
def get_token_balance(user: CurrentUserDep, ledger: ClaimLedgerDep):
    try:
        claimed_total = ledger.get_user_claimed_total(user.id)
        unclaimed_total = ledger.get_user_unclaimed_total(user.id)
        claimable = ledger.get_claimable_reward(user.id)
    except Exception as e:
        raise to_http_error(e)

    return TokenBalanceResponse(
        wallet_connected=bool(user.wallet_address),
        claimable=(
            ClaimableReward(
                id=str(claimable.id),
                amount=claimable.amount,
                distribution_id=str(claimable.distribution_id),
            )
            if claimable
            else None
        ),
        claimable_total=str(unclaimed_total),
        claimed_total=str(claimed_total),
    )


@router.get("/pool", response_model=PoolInfoResponse)
def get_pool_info(
    session: SessionDep,
    user: CurrentUserDep,
    ledger: ClaimLedgerDep,
    rate_limit: RateLimitServiceDep,
):
    # informational read, an unreachable chain shows an empty pool
    try:
        daily_pool = rate_limit.get_rate_limited_available()
    except ExternalDependencyError as e:
        logger.warning(f"Could not read rate-limited pool from chain: {e}")
        daily_pool = 0

    try:
        total_pending = get_total_pending_points(session)
        user_pending = max(user.points - get_user_distributed_points(session, user.id), 0)
        unclaimed = ledger.get_user_unclaimed_total(user.id)
    except Exception as e:
        raise to_http_error(e)

    share_percent = user_pending / total_pending * 100 if total_pending > 0 else 0
    total_scaled = scale_points(total_pending)
    estimated = (
        proportional_share(scale_points(user_pending), daily_pool, total_scaled)
        if total_scaled > 0
        else 0
    )

    return PoolInfoResponse(
        wallet_connected=bool(user.wallet_address),
        daily_pool=str(daily_pool),
        total_pending_points=total_pending,
        user_pending_points=user_pending,
        user_share_percent=round(share_percent, 4),
        estimated_reward=str(estimated),
        unclaimed=str(unclaimed),
        next_distribution_in=seconds_until_midnight_utc(),
    )
