from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class ClaimEvent(SQLModel, table=True):
    """Append-only record of an on-chain claim. Never updated or deleted."""

    __tablename__ = "claim_events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    wallet_address: str = Field(index=True)
    amount_claimed: str
    cumulative_claimed: str
    reward_id: Optional[UUID] = Field(default=None, foreign_key="user_rewards.id")
    # idempotency key, the unique index backs insert-if-absent
    tx_signature: str = Field(unique=True, index=True)
    claimed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )
