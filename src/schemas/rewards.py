from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClaimRequest(CamelModel):
    reward_id: Optional[str] = None
    claim_tx: Optional[str] = None


class ClaimResponse(CamelModel):
    success: bool
    message: Optional[str] = None
    amount_claimed: Optional[str] = None


class ClaimStatusResponse(CamelModel):
    wallet: str
    claimable: bool
    reward_id: Optional[str] = None
    amount: Optional[str] = None
    proof: List[str] = []
    message: Optional[str] = None


class DistributionHistoryItem(CamelModel):
    id: str
    amount_earned: str
    cumulative_amount: str
    points_converted: float
    distributed_at: datetime


class ClaimHistoryItem(CamelModel):
    id: str
    amount_claimed: str
    cumulative_claimed: str
    tx_signature: str
    claimed_at: datetime


class RewardHistoryResponse(CamelModel):
    distributions: List[DistributionHistoryItem] = []
    claims: List[ClaimHistoryItem] = []
    total_claimed: str = "0"


class ClaimableReward(CamelModel):
    id: str
    amount: str
    distribution_id: str


class TokenBalanceResponse(CamelModel):
    wallet_connected: bool
    claimable: Optional[ClaimableReward] = None
    claimable_total: str = "0"
    claimed_total: str = "0"


class PoolInfoResponse(CamelModel):
    wallet_connected: bool
    daily_pool: str
    total_pending_points: float
    user_pending_points: float
    user_share_percent: float
    estimated_reward: str
    unclaimed: str
    next_distribution_in: int


class DistributionSummary(CamelModel):
    success: bool
    message: Optional[str] = None
    distribution_id: Optional[str] = None
    users_processed: int = 0
    total_new_amount: str = "0"
    daily_pool: Optional[str] = None
    total_allocatable_points: float = 0
    merkle_root: Optional[str] = None
    submit_tx: Optional[str] = None
    submission_error: Optional[str] = None
    timestamp: Optional[datetime] = None
