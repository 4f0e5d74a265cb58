import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence
from uuid import UUID

from solders.pubkey import Pubkey

from core.constants import POINTS_PRECISION
from services.merkle_tree import RewardEntry, to_pubkey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistributableUser:
    user_id: UUID
    wallet_address: Optional[str]
    previous_cumulative: int
    allocatable_points: float


@dataclass(frozen=True)
class UserAllocation:
    user: DistributableUser
    wallet: Optional[Pubkey]
    scaled_points: int
    new_amount: int
    cumulative_amount: int


@dataclass
class DistributionPlan:
    daily_pool: int
    total_allocatable_points: float
    total_scaled_points: int
    allocations: List[UserAllocation] = field(default_factory=list)
    # users whose wallet is missing or malformed; counted in the points sum only
    skipped: List[UserAllocation] = field(default_factory=list)

    @property
    def nothing_to_distribute(self) -> bool:
        return self.total_scaled_points == 0 or not self.allocations

    @property
    def total_new_amount(self) -> int:
        return sum(a.new_amount for a in self.allocations)

    @property
    def unallocated_amount(self) -> int:
        return self.daily_pool - self.total_new_amount

    @property
    def users_processed(self) -> int:
        return len(self.allocations) + len(self.skipped)

    def reward_entries(self) -> List[RewardEntry]:
        return [
            RewardEntry(wallet=a.wallet, amount=a.cumulative_amount)
            for a in self.allocations
        ]


def scale_points(points: float) -> int:
    """points * POINTS_PRECISION rounded half-up to an exact integer."""
    if not math.isfinite(points):
        raise ValueError(f"Points must be finite, got {points}")
    scaled = Decimal(str(points)) * POINTS_PRECISION
    return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def proportional_share(scaled_points: int, pool: int, total_scaled_points: int) -> int:
    # Floor division: sum of shares never exceeds the pool
    return scaled_points * pool // total_scaled_points


class DistributionCalculator:
    """Splits a rate-limited token pool across users proportionally to points.

    Each user receives ``floor(scaled_points * pool / total_scaled_points)``,
    so the sum over all users is at most ``pool``; the remainder (fewer than
    one unit per user) stays in the vault and is picked up by the next cycle.
    The merkle leaf commits to ``previous_cumulative + new_amount``.
    """

    def calculate(
        self, users: Sequence[DistributableUser], daily_pool: int
    ) -> DistributionPlan:
        if isinstance(daily_pool, bool) or not isinstance(daily_pool, int):
            raise TypeError("daily_pool must be an int")
        if daily_pool < 0:
            raise ValueError(f"daily_pool must be non-negative, got {daily_pool}")

        scaled = []
        for user in users:
            points = user.allocatable_points
            if points < 0:
                logger.warning(
                    "User %s has negative allocatable points (%s), treating as 0",
                    user.user_id,
                    points,
                )
                points = 0
            scaled.append(scale_points(points))

        total_scaled_points = sum(scaled)
        total_points = sum(max(u.allocatable_points, 0) for u in users)

        plan = DistributionPlan(
            daily_pool=daily_pool,
            total_allocatable_points=total_points,
            total_scaled_points=total_scaled_points,
        )

        if total_scaled_points == 0:
            logger.info("Total allocatable points is 0, nothing to distribute")
            return plan

        for user, scaled_points in zip(users, scaled):
            new_amount = proportional_share(
                scaled_points, daily_pool, total_scaled_points
            )
            wallet = self._parse_wallet(user)
            allocation = UserAllocation(
                user=user,
                wallet=wallet,
                scaled_points=scaled_points,
                new_amount=new_amount,
                cumulative_amount=user.previous_cumulative + new_amount,
            )
            if wallet is None:
                plan.skipped.append(allocation)
            else:
                plan.allocations.append(allocation)

        logger.info(
            "Calculated distribution: pool=%s users=%s skipped=%s total_new=%s unallocated=%s",
            daily_pool,
            len(plan.allocations),
            len(plan.skipped),
            plan.total_new_amount,
            plan.unallocated_amount,
        )
        return plan

    @staticmethod
    def _parse_wallet(user: DistributableUser) -> Optional[Pubkey]:
        if not user.wallet_address:
            logger.error("User %s has no wallet - skipping", user.user_id)
            return None
        try:
            return to_pubkey(user.wallet_address.strip())
        except ValueError:
            logger.error(
                "User %s has malformed wallet %r - skipping",
                user.user_id,
                user.wallet_address,
            )
            return None
