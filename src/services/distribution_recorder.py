import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlmodel import Session, select

from models.merkle_distributions import MerkleDistribution
from models.user_rewards import UserReward
from services.distribution_calculator import DistributionPlan
from services.merkle_tree import MerkleTree, get_all_proofs
from services.yap_program_service import YapProgramService
from utils.extension_utils import to_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of the best-effort on-chain root submission.

    The distribution is persisted either way; ``submitted`` tells whether the
    chain accepted the root too.
    """

    submitted: bool
    submit_tx: Optional[str] = None
    error: Optional[str] = None


class DistributionRecorder:
    def __init__(
        self,
        session: Session,
        program: Optional[YapProgramService] = None,
        confirm_timeout: int = 60,
    ):
        self.session = session
        self.program = program
        self.confirm_timeout = confirm_timeout

    def record(
        self,
        plan: DistributionPlan,
        tree: MerkleTree,
        created_at: Optional[datetime] = None,
    ) -> MerkleDistribution:
        """Write the distribution and one reward row per leaf in a single transaction."""
        created_at = created_at or datetime.now(timezone.utc)
        proofs = get_all_proofs(tree)

        distribution = MerkleDistribution(
            merkle_root=tree.root_hex,
            total_amount=str(plan.total_new_amount),
            daily_pool=str(plan.daily_pool),
            user_count=len(tree.entries),
            total_allocatable_points=plan.total_allocatable_points,
            created_at=created_at,
        )

        try:
            self.session.add(distribution)
            self.session.flush()
            for leaf_index, allocation in enumerate(plan.allocations):
                claim_proof = proofs.get(bytes(allocation.wallet))
                self.session.add(
                    UserReward(
                        distribution_id=distribution.id,
                        user_id=allocation.user.user_id,
                        wallet_address=str(allocation.wallet),
                        amount=str(allocation.cumulative_amount),
                        amount_earned=str(allocation.new_amount),
                        points_converted=allocation.user.allocatable_points,
                        leaf_index=leaf_index,
                        merkle_proof=(
                            json.dumps(claim_proof.proof_hex()) if claim_proof else None
                        ),
                        created_at=created_at,
                    )
                )
            self.session.commit()
        except Exception as e:
            logger.error(
                f"Database operation failed while recording distribution: {str(e)}",
                exc_info=True,
            )
            self.session.rollback()
            raise

        self.session.refresh(distribution)
        logger.info(
            "Distribution %s created: users=%s total=%s",
            distribution.id,
            distribution.user_count,
            distribution.total_amount,
        )
        return distribution

    def get_distribution(self, distribution_id: UUID) -> Optional[MerkleDistribution]:
        return self.session.get(MerkleDistribution, distribution_id)

    def get_distribution_rewards(self, distribution_id: UUID):
        return self.session.exec(
            select(UserReward)
            .where(UserReward.distribution_id == distribution_id)
            .order_by(UserReward.leaf_index)
        ).all()

    def mark_submitted(
        self,
        distribution: MerkleDistribution,
        submit_tx: str,
        submitted_at: Optional[datetime] = None,
    ) -> MerkleDistribution:
        distribution.submit_tx = submit_tx
        distribution.submitted_at = submitted_at or datetime.now(timezone.utc)
        self.session.add(distribution)
        self.session.commit()
        self.session.refresh(distribution)
        logger.info("Distribution %s submitted onchain: %s", distribution.id, submit_tx)
        return distribution

    def submit_root(self, distribution: MerkleDistribution) -> SubmissionResult:
        """Send the root and total to the program. Never raises and never retries."""
        if self.program is None:
            return SubmissionResult(submitted=False, error="No chain client configured")

        try:
            submit_tx = self.program.submit_merkle_root(
                bytes.fromhex(distribution.merkle_root),
                to_amount(distribution.total_amount),
                confirm_timeout=self.confirm_timeout,
            )
        except Exception as e:
            logger.error(
                "Failed to submit merkle root onchain for distribution %s - manual submission required: %s",
                distribution.id,
                e,
                exc_info=True,
            )
            return SubmissionResult(submitted=False, error=str(e))

        try:
            self.mark_submitted(distribution, submit_tx)
        except Exception as e:
            self.session.rollback()
            logger.error(
                "Root for distribution %s landed in %s but could not be marked submitted: %s",
                distribution.id,
                submit_tx,
                e,
                exc_info=True,
            )
            return SubmissionResult(submitted=True, submit_tx=submit_tx, error=str(e))

        return SubmissionResult(submitted=True, submit_tx=submit_tx)
