from sqlmodel import SQLModel
from .user import User
from .merkle_distributions import MerkleDistribution
from .user_rewards import UserReward
from .claim_events import ClaimEvent
