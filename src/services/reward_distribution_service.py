import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session, col, select

from models.user import User
from models.user_rewards import UserReward
from schemas.rewards import DistributionSummary
from services.distribution_calculator import DistributableUser, DistributionCalculator
from services.distribution_recorder import DistributionRecorder
from services.merkle_tree import build_merkle_tree
from services.rate_limit_service import RateLimitService
from utils.extension_utils import format_token_amount, to_amount

logger = logging.getLogger(__name__)


@dataclass
class DistributionOutcome:
    success: bool
    message: str
    users_processed: int = 0
    total_new_amount: int = 0
    daily_pool: Optional[int] = None
    total_allocatable_points: float = 0
    merkle_root: Optional[str] = None
    distribution_id: Optional[UUID] = None
    submit_tx: Optional[str] = None
    submission_error: Optional[str] = None
    timestamp: Optional[datetime] = None


def get_points_distributed(session: Session) -> dict:
    rows = session.exec(
        select(UserReward.user_id, func.sum(UserReward.points_converted)).group_by(
            UserReward.user_id
        )
    ).all()
    return {user_id: total or 0 for user_id, total in rows}


def get_distributable_users(session: Session) -> List[DistributableUser]:
    """Users with a wallet and points not yet converted into a distribution."""
    users = session.exec(
        select(User)
        .where(col(User.wallet_address).is_not(None))
        .where(User.wallet_address != "")
        .where(User.points > 0)
    ).all()
    if not users:
        return []

    points_distributed = get_points_distributed(session)

    # cumulative amounts are non-decreasing, so the max is the latest
    previous_cumulative = defaultdict(int)
    rows = session.exec(
        select(UserReward.user_id, UserReward.amount).where(
            col(UserReward.user_id).in_([u.id for u in users])
        )
    ).all()
    for user_id, amount in rows:
        previous_cumulative[user_id] = max(previous_cumulative[user_id], to_amount(amount))

    distributable = []
    for user in users:
        allocatable = user.points - points_distributed.get(user.id, 0)
        if allocatable <= 0:
            continue
        distributable.append(
            DistributableUser(
                user_id=user.id,
                wallet_address=user.wallet_address,
                previous_cumulative=previous_cumulative[user.id],
                allocatable_points=allocatable,
            )
        )
    return distributable


def get_total_pending_points(session: Session) -> float:
    users = session.exec(
        select(User)
        .where(col(User.wallet_address).is_not(None))
        .where(User.wallet_address != "")
    ).all()
    points_distributed = get_points_distributed(session)
    return sum(max(u.points - points_distributed.get(u.id, 0), 0) for u in users)


def get_user_distributed_points(session: Session, user_id: UUID) -> float:
    total = session.exec(
        select(func.sum(UserReward.points_converted)).where(UserReward.user_id == user_id)
    ).one()
    return total or 0


class RewardDistributionService:
    """One distribution cycle: pool -> allocations -> tree -> records -> chain.

    Fatal: fetching users, querying the rate limit, writing records.
    Best effort: root submission and alerts, reported in the outcome.
    """

    def __init__(
        self,
        session: Session,
        rate_limit: RateLimitService,
        recorder: DistributionRecorder,
        calculator: Optional[DistributionCalculator] = None,
        notifier: Optional[Callable[[str], None]] = None,
    ):
        self.session = session
        self.rate_limit = rate_limit
        self.recorder = recorder
        self.calculator = calculator or DistributionCalculator()
        self.notifier = notifier

    def run(self, now: Optional[datetime] = None) -> DistributionOutcome:
        now = now or datetime.now(timezone.utc)
        logger.info("Starting daily distribution")

        users = get_distributable_users(self.session)
        if not users:
            logger.info("No users with allocatable points, skipping distribution")
            return DistributionOutcome(
                success=True, message="No distribution needed", timestamp=now
            )

        daily_pool = self.rate_limit.get_rate_limited_available()

        plan = self.calculator.calculate(users, daily_pool)
        if plan.nothing_to_distribute:
            logger.info("Total allocatable points is 0, skipping")
            return DistributionOutcome(
                success=True,
                message="No points to distribute",
                daily_pool=daily_pool,
                timestamp=now,
            )
        if plan.total_new_amount == 0:
            logger.info("Rate-limited pool %s too small to allocate, skipping", daily_pool)
            return DistributionOutcome(
                success=True,
                message="Nothing to distribute",
                daily_pool=daily_pool,
                total_allocatable_points=plan.total_allocatable_points,
                timestamp=now,
            )

        logger.info(
            "Calculating proportional distribution: points=%s pool=%s users=%s",
            plan.total_allocatable_points,
            daily_pool,
            len(users),
        )

        tree = build_merkle_tree(plan.reward_entries(), reject_duplicates=True)
        logger.info(
            "Merkle tree built with cumulative amounts: entries=%s root=%s...",
            len(tree.entries),
            tree.root_hex[:16],
        )

        distribution = self.recorder.record(plan, tree, created_at=now)
        submission = self.recorder.submit_root(distribution)

        outcome = DistributionOutcome(
            success=True,
            message=(
                "Distribution submitted"
                if submission.submitted
                else "Distribution recorded, onchain submission failed"
            ),
            users_processed=plan.users_processed,
            total_new_amount=plan.total_new_amount,
            daily_pool=daily_pool,
            total_allocatable_points=plan.total_allocatable_points,
            merkle_root=tree.root_hex,
            distribution_id=distribution.id,
            submit_tx=submission.submit_tx,
            submission_error=submission.error,
            timestamp=now,
        )
        self._notify(outcome)
        return outcome

    def _notify(self, outcome: DistributionOutcome) -> None:
        if self.notifier is None:
            return
        if outcome.submit_tx:
            message = (
                f"<b>YAP distribution</b> {outcome.distribution_id}\n"
                f"Users: {outcome.users_processed}\n"
                f"Amount: {format_token_amount(outcome.total_new_amount)} YAP\n"
                f"Tx: {outcome.submit_tx}"
            )
        else:
            message = (
                f"<b>YAP distribution {outcome.distribution_id} needs manual submission</b>\n"
                f"Root: {outcome.merkle_root}\n"
                f"Amount: {format_token_amount(outcome.total_new_amount)} YAP\n"
                f"Error: {outcome.submission_error}"
            )
        try:
            self.notifier(message)
        except Exception as e:
            logger.error(f"Failed to send distribution alert: {e}", exc_info=True)


def build_summary(outcome: DistributionOutcome) -> DistributionSummary:
    return DistributionSummary(
        success=outcome.success,
        message=outcome.message,
        distribution_id=str(outcome.distribution_id) if outcome.distribution_id else None,
        users_processed=outcome.users_processed,
        total_new_amount=str(outcome.total_new_amount),
        daily_pool=str(outcome.daily_pool) if outcome.daily_pool is not None else None,
        total_allocatable_points=outcome.total_allocatable_points,
        merkle_root=outcome.merkle_root,
        submit_tx=outcome.submit_tx,
        submission_error=outcome.submission_error,
        timestamp=outcome.timestamp,
    )
