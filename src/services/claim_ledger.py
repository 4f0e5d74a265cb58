"""Cumulative claim ledger.

Each reward row commits to the wallet's all-time cumulative amount. What a
claim actually transfers is the delta between that amount and everything the
user has already claimed, so claims are recorded as an append-only event log
and every total is derived from it.

Amounts are stored as decimal strings. They are converted to ``int`` before
any arithmetic or comparison: comparing the strings orders "999999999" above
"1000000000".
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, col, select

from core.constants import ClaimMessage
from core.exceptions import (
    ConfigurationError,
    RewardAuthorizationError,
    RewardNotFoundError,
    RewardStateError,
)
from models.claim_events import ClaimEvent
from models.merkle_distributions import MerkleDistribution
from models.user_rewards import UserReward
from services.merkle_tree import (
    RewardEntry,
    build_merkle_tree,
    get_proof,
    proof_to_hex,
    to_pubkey,
)
from utils.api import require_tx_signature, require_uuid
from utils.extension_utils import to_amount

logger = logging.getLogger(__name__)


def compute_claimable_delta(cumulative_amount, claimed_total) -> int:
    """Cumulative minus claimed, floored at zero."""
    return max(to_amount(cumulative_amount) - to_amount(claimed_total), 0)


@dataclass(frozen=True)
class ClaimResult:
    success: bool
    message: str
    amount_claimed: Optional[int] = None
    already_recorded: bool = False


ALREADY_RECORDED = ClaimResult(
    success=True, message=ClaimMessage.ALREADY_RECORDED.value, already_recorded=True
)


@dataclass
class ClaimStatus:
    wallet: str
    claimable: bool
    reward_id: Optional[UUID] = None
    # cumulative amount committed in the leaf, what the on-chain claim proves
    amount: Optional[int] = None
    proof: List[str] = field(default_factory=list)
    message: Optional[str] = None


class ClaimLedger:
    def __init__(self, session: Session):
        self.session = session

    def claim_event_exists(self, tx_signature: str) -> bool:
        return (
            self.session.exec(
                select(ClaimEvent.id).where(ClaimEvent.tx_signature == tx_signature)
            ).first()
            is not None
        )

    def get_reward(self, reward_id: UUID) -> Optional[UserReward]:
        return self.session.get(UserReward, reward_id)

    def get_user_claimed_total(self, user_id: UUID) -> int:
        amounts = self.session.exec(
            select(ClaimEvent.amount_claimed).where(ClaimEvent.user_id == user_id)
        ).all()
        return sum(to_amount(a) for a in amounts)

    def get_user_claim_events(self, user_id: UUID) -> List[ClaimEvent]:
        return self.session.exec(
            select(ClaimEvent)
            .where(ClaimEvent.user_id == user_id)
            .order_by(col(ClaimEvent.claimed_at).desc())
        ).all()

    def get_user_rewards(self, user_id: UUID) -> List[UserReward]:
        return self.session.exec(
            select(UserReward)
            .join(MerkleDistribution, MerkleDistribution.id == UserReward.distribution_id)
            .where(UserReward.user_id == user_id)
            .order_by(col(MerkleDistribution.created_at).desc())
        ).all()

    def get_latest_submitted_reward(
        self, user_id: UUID, wallet_address: Optional[str] = None
    ) -> Optional[Tuple[UserReward, MerkleDistribution]]:
        """Most recent reward whose distribution root is on chain."""
        query = (
            select(UserReward, MerkleDistribution)
            .join(MerkleDistribution, MerkleDistribution.id == UserReward.distribution_id)
            .where(UserReward.user_id == user_id)
            .where(col(MerkleDistribution.submitted_at).is_not(None))
        )
        if wallet_address:
            query = query.where(UserReward.wallet_address == wallet_address)
        return self.session.exec(
            query.order_by(col(MerkleDistribution.created_at).desc())
        ).first()

    def get_claimable_reward(self, user_id: UUID) -> Optional[UserReward]:
        latest = self.get_latest_submitted_reward(user_id)
        if latest is None:
            return None
        reward, _ = latest
        if compute_claimable_delta(reward.amount, self.get_user_claimed_total(user_id)) == 0:
            return None
        return reward

    def get_user_unclaimed_total(self, user_id: UUID) -> int:
        latest = self.get_latest_submitted_reward(user_id)
        if latest is None:
            return 0
        reward, _ = latest
        return compute_claimable_delta(reward.amount, self.get_user_claimed_total(user_id))

    def get_claim_status(self, user_id: UUID, wallet_address: str) -> ClaimStatus:
        latest = self.get_latest_submitted_reward(user_id, wallet_address)
        if latest is None:
            return ClaimStatus(
                wallet=wallet_address,
                claimable=False,
                message="No claimable rewards found",
            )

        reward, distribution = latest
        cumulative = to_amount(reward.amount)
        if compute_claimable_delta(cumulative, self.get_user_claimed_total(user_id)) == 0:
            return ClaimStatus(
                wallet=wallet_address,
                claimable=False,
                message="No claimable rewards found",
            )

        proof = self._parse_stored_proof(reward)
        if proof is None:
            proof = self._rebuild_proof(distribution, wallet_address)
            if proof is None:
                return ClaimStatus(
                    wallet=wallet_address,
                    claimable=False,
                    message="Wallet not found in distribution",
                )

        return ClaimStatus(
            wallet=wallet_address,
            claimable=True,
            reward_id=reward.id,
            amount=cumulative,
            proof=proof,
        )

    def _parse_stored_proof(self, reward: UserReward) -> Optional[List[str]]:
        if not reward.merkle_proof:
            return None
        try:
            proof = json.loads(reward.merkle_proof)
        except ValueError:
            logger.warning("Invalid stored merkle proof for reward %s, rebuilding", reward.id)
            return None
        if not isinstance(proof, list) or not all(isinstance(p, str) for p in proof):
            logger.warning("Invalid stored merkle proof for reward %s, rebuilding", reward.id)
            return None
        return proof

    def _rebuild_proof(
        self, distribution: MerkleDistribution, wallet_address: str
    ) -> Optional[List[str]]:
        rewards = self.session.exec(
            select(UserReward)
            .where(UserReward.distribution_id == distribution.id)
            .order_by(UserReward.leaf_index)
        ).all()
        if not rewards:
            return None

        tree = build_merkle_tree(
            RewardEntry(wallet=to_pubkey(r.wallet_address), amount=to_amount(r.amount))
            for r in rewards
        )
        if tree.root_hex != distribution.merkle_root:
            logger.error(
                "Rebuilt root %s does not match stored root %s for distribution %s",
                tree.root_hex,
                distribution.merkle_root,
                distribution.id,
            )
            raise RewardStateError("Distribution proof unavailable")

        claim_proof = get_proof(tree, wallet_address)
        return proof_to_hex(claim_proof.proof) if claim_proof else None

    def record_claim(self, user_id: UUID, reward_id, tx_signature) -> ClaimResult:
        """Record a confirmed on-chain claim for ``user_id``.

        Replays of a known ``tx_signature`` succeed without writing anything.
        Rejections raise a RewardsError subclass and leave no trace.
        """
        tx_signature = require_tx_signature(tx_signature)
        reward_id = require_uuid(reward_id, "rewardId")

        if self.claim_event_exists(tx_signature):
            logger.info("Claim transaction already recorded: %s", tx_signature)
            return ALREADY_RECORDED

        reward = self.get_reward(reward_id)
        if reward is None:
            raise RewardNotFoundError(ClaimMessage.REWARD_NOT_FOUND.value)
        if reward.user_id != user_id:
            logger.warning(
                "User %s tried to claim reward %s owned by %s",
                user_id,
                reward_id,
                reward.user_id,
            )
            raise RewardAuthorizationError(ClaimMessage.NOT_YOUR_REWARD.value)

        cumulative = to_amount(reward.amount)
        claimed_total = self.get_user_claimed_total(user_id)
        amount_claimed = cumulative - claimed_total
        if amount_claimed <= 0:
            # a concurrent request with the same tx may have committed since the check above
            if self.claim_event_exists(tx_signature):
                logger.info("Claim transaction recorded concurrently: %s", tx_signature)
                return ALREADY_RECORDED
            logger.info(
                "Nothing to claim for user %s: cumulative=%s claimed=%s",
                user_id,
                cumulative,
                claimed_total,
            )
            raise RewardStateError(ClaimMessage.NOTHING_TO_CLAIM.value)

        event = ClaimEvent(
            user_id=user_id,
            wallet_address=reward.wallet_address,
            amount_claimed=str(amount_claimed),
            cumulative_claimed=str(cumulative),
            reward_id=reward.id,
            tx_signature=tx_signature,
            claimed_at=datetime.now(timezone.utc),
        )
        if not self._insert_claim_event_if_absent(event):
            logger.info("Claim transaction recorded concurrently: %s", tx_signature)
            return ALREADY_RECORDED

        logger.info(
            "Claim event recorded: user=%s reward=%s tx=%s amount=%s",
            user_id,
            reward_id,
            tx_signature,
            amount_claimed,
        )
        return ClaimResult(
            success=True,
            message=ClaimMessage.RECORDED.value,
            amount_claimed=amount_claimed,
        )

    def _insert_claim_event_if_absent(self, event: ClaimEvent) -> bool:
        """INSERT ... ON CONFLICT (tx_signature) DO NOTHING. True if a row was written."""
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            insert = pg_insert
        elif dialect == "sqlite":
            insert = sqlite_insert
        else:
            raise ConfigurationError(f"Unsupported database dialect {dialect}")

        statement = (
            insert(ClaimEvent.__table__)
            .values(**event.model_dump())
            .on_conflict_do_nothing(index_elements=["tx_signature"])
        )
        try:
            result = self.session.execute(statement)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return result.rowcount == 1
