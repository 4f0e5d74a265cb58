from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    username: Optional[str] = Field(default=None, index=True)
    wallet_address: Optional[str] = Field(default=None, index=True, unique=True)
    # Lifetime points earned on the feed, weighted by vote power
    points: float = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
