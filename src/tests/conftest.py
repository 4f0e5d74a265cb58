import json
import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from solders.keypair import Keypair
from solders.signature import Signature
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import models  # noqa: F401
from models.claim_events import ClaimEvent
from models.merkle_distributions import MerkleDistribution
from models.user import User
from models.user_rewards import UserReward
from services.merkle_tree import RewardEntry, build_merkle_tree, get_proof_by_index

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def new_wallet() -> str:
    return str(Keypair().pubkey())


def new_tx_signature() -> str:
    # a high first byte keeps the base58 form at 88 characters
    return str(Signature.from_bytes(bytes([0xFF]) + os.urandom(63)))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(db_session: Session):
    def _make_user(points: float = 0, wallet_address: Optional[str] = "new") -> User:
        user = User(
            username=f"user-{len(db_session.new)}",
            wallet_address=new_wallet() if wallet_address == "new" else wallet_address,
            points=points,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_distribution(db_session: Session):
    """Persist a distribution over (user, cumulative amount) pairs with real proofs."""

    def _make_distribution(
        allocations: List[tuple],
        created_at: datetime = BASE_TIME,
        submitted: bool = True,
        store_proofs: bool = True,
    ) -> MerkleDistribution:
        tree = build_merkle_tree(
            RewardEntry(wallet=user.wallet_address, amount=amount)
            for user, amount in allocations
        )
        distribution = MerkleDistribution(
            merkle_root=tree.root_hex,
            total_amount=str(sum(amount for _, amount in allocations)),
            daily_pool=str(sum(amount for _, amount in allocations)),
            user_count=len(allocations),
            total_allocatable_points=0,
            created_at=created_at,
            submitted_at=created_at + timedelta(minutes=1) if submitted else None,
            submit_tx=new_tx_signature() if submitted else None,
        )
        db_session.add(distribution)
        db_session.flush()
        for index, (user, amount) in enumerate(allocations):
            proof = [p.hex() for p in get_proof_by_index(tree, index)]
            db_session.add(
                UserReward(
                    distribution_id=distribution.id,
                    user_id=user.id,
                    wallet_address=user.wallet_address,
                    amount=str(amount),
                    amount_earned=str(amount),
                    points_converted=0,
                    leaf_index=index,
                    merkle_proof=json.dumps(proof) if store_proofs else None,
                    created_at=created_at,
                )
            )
        db_session.commit()
        db_session.refresh(distribution)
        return distribution

    return _make_distribution


@pytest.fixture
def make_claim(db_session: Session):
    def _make_claim(user: User, amount_claimed: int, cumulative: int = 0) -> ClaimEvent:
        event = ClaimEvent(
            user_id=user.id,
            wallet_address=user.wallet_address,
            amount_claimed=str(amount_claimed),
            cumulative_claimed=str(cumulative or amount_claimed),
            tx_signature=new_tx_signature(),
        )
        db_session.add(event)
        db_session.commit()
        return event

    return _make_claim
