import logging
from dataclasses import dataclass

from core.constants import SECONDS_PER_YEAR, U64_MAX
from services.yap_program_service import YapProgramService

logger = logging.getLogger(__name__)


def compute_rate_limited_available(elapsed_seconds: int, vault_balance: int) -> int:
    """available = elapsed * vault_balance / SECONDS_PER_YEAR, integer math.

    Mirrors the program: elapsed saturates at 0 and the result is cut to u64.
    """
    elapsed_seconds = max(int(elapsed_seconds), 0)
    available = elapsed_seconds * int(vault_balance) // SECONDS_PER_YEAR
    return min(available, U64_MAX)


@dataclass(frozen=True)
class RateLimitSnapshot:
    chain_time: int
    last_distribution_ts: int
    vault_balance: int
    available: int

    @property
    def elapsed_seconds(self) -> int:
        return max(self.chain_time - self.last_distribution_ts, 0)


class RateLimitService:
    """Off-chain mirror of the program's time-based emission limit.

    Every input is read from the chain on each call. Any RPC failure
    propagates as ExternalDependencyError; callers must not fall back to a
    cached or assumed pool size.
    """

    def __init__(self, program: YapProgramService):
        self.program = program

    def get_snapshot(self) -> RateLimitSnapshot:
        config = self.program.get_config()
        vault_balance = self.program.get_token_balance(config.vault)
        chain_time = self.program.get_chain_time()

        available = compute_rate_limited_available(
            chain_time - config.last_distribution_ts, vault_balance
        )
        snapshot = RateLimitSnapshot(
            chain_time=chain_time,
            last_distribution_ts=config.last_distribution_ts,
            vault_balance=vault_balance,
            available=available,
        )
        logger.info(
            "Rate-limited available from chain: %s (elapsed=%ss vault=%s)",
            available,
            snapshot.elapsed_seconds,
            vault_balance,
        )
        return snapshot

    def get_rate_limited_available(self) -> int:
        return self.get_snapshot().available
