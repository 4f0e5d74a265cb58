from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class MerkleDistribution(SQLModel, table=True):
    __tablename__ = "merkle_distributions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    # hex encoded 32 bytes
    merkle_root: str = Field(max_length=64)
    # decimal strings, never floats: u64 amounts do not fit a double
    total_amount: str
    daily_pool: Optional[str] = None
    user_count: int
    total_allocatable_points: float = 0
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )
    submitted_at: Optional[datetime] = Field(default=None, index=True)
    submit_tx: Optional[str] = None
