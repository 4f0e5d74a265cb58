from unittest.mock import MagicMock

import pytest
from solders.keypair import Keypair

from core.constants import SECONDS_PER_YEAR, U64_MAX
from core.exceptions import ExternalDependencyError
from services.rate_limit_service import RateLimitService, compute_rate_limited_available
from services.yap_program_service import ProgramConfig


def test_full_year_releases_whole_balance():
    assert compute_rate_limited_available(SECONDS_PER_YEAR, 1_000_000) == 1_000_000


def test_one_day_of_emission():
    balance = 365_000_000_000_000
    assert compute_rate_limited_available(86_400, balance) == 1_000_000_000_000


def test_result_is_floored():
    assert compute_rate_limited_available(1, SECONDS_PER_YEAR - 1) == 0
    assert compute_rate_limited_available(1, SECONDS_PER_YEAR) == 1


def test_negative_elapsed_saturates_to_zero():
    assert compute_rate_limited_available(-3600, 10**18) == 0


def test_result_is_capped_at_u64():
    assert compute_rate_limited_available(SECONDS_PER_YEAR * 10, U64_MAX) == U64_MAX


@pytest.fixture
def program():
    program = MagicMock()
    program.get_config.return_value = ProgramConfig(
        mint=Keypair().pubkey(),
        vault=Keypair().pubkey(),
        pending_claims=Keypair().pubkey(),
        merkle_root=bytes(32),
        merkle_updater=Keypair().pubkey(),
        last_distribution_ts=1_700_000_000,
    )
    program.get_token_balance.return_value = 365 * 10**12
    program.get_chain_time.return_value = 1_700_000_000 + 86_400
    return program


def test_snapshot_reads_chain_state(program):
    snapshot = RateLimitService(program).get_snapshot()

    assert snapshot.elapsed_seconds == 86_400
    assert snapshot.vault_balance == 365 * 10**12
    assert snapshot.available == 10**12
    program.get_token_balance.assert_called_once_with(program.get_config.return_value.vault)


def test_chain_clock_behind_last_distribution(program):
    program.get_chain_time.return_value = 1_699_999_000
    assert RateLimitService(program).get_rate_limited_available() == 0


def test_rpc_failure_propagates(program):
    program.get_token_balance.side_effect = ExternalDependencyError("rpc down")

    with pytest.raises(ExternalDependencyError):
        RateLimitService(program).get_rate_limited_available()
