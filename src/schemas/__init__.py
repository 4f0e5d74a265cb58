from .rewards import (
    ClaimHistoryItem,
    ClaimRequest,
    ClaimResponse,
    ClaimStatusResponse,
    DistributionHistoryItem,
    DistributionSummary,
    PoolInfoResponse,
    RewardHistoryResponse,
)
from .wallet_auth import WalletAuth
