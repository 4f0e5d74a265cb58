from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class UserReward(SQLModel, table=True):
    __tablename__ = "user_rewards"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    distribution_id: UUID = Field(foreign_key="merkle_distributions.id", index=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    wallet_address: str = Field(index=True)
    # cumulative amount committed in the merkle leaf for this distribution
    amount: str
    # amount - previous cumulative amount
    amount_earned: str
    points_converted: float
    # position of this leaf in the tree, rebuilds must use the same order
    leaf_index: int
    # JSON array of hex sibling hashes
    merkle_proof: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
