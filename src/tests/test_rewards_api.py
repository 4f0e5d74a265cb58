import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from solders.keypair import Keypair
from sqlmodel import select

from api.api_v1 import deps
from conftest import new_tx_signature
from core.config import settings
from core.exceptions import ExternalDependencyError
from main import app
from models.user import User
from models.user_rewards import UserReward
from utils.web3_utils import build_auth_message

API = settings.API_V1_STR


@pytest.fixture
def rate_limit():
    rate_limit = MagicMock()
    rate_limit.get_rate_limited_available.return_value = 10_000
    return rate_limit


@pytest.fixture
def program():
    program = MagicMock()
    program.submit_merkle_root.return_value = new_tx_signature()
    return program


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
def current_user(make_user, keypair) -> User:
    return make_user(points=40, wallet_address=str(keypair.pubkey()))


@pytest.fixture
def client(db_session, current_user, rate_limit, program):
    app.dependency_overrides[deps.get_db] = lambda: db_session
    app.dependency_overrides[deps.get_current_user] = lambda: current_user
    app.dependency_overrides[deps.get_rate_limit_service] = lambda: rate_limit
    app.dependency_overrides[deps.get_program_service] = lambda: program
    app.dependency_overrides[deps.get_notifier] = lambda: MagicMock()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
    return "s3cret"


def test_healthz(client):
    response = client.get(f"{API}/healthz/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_cron_requires_configured_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", None)

    response = client.get(f"{API}/cron/distribute", headers={"Authorization": "Bearer x"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Server configuration error"


@pytest.mark.parametrize("header", [None, "Bearer wrong", "s3cret", "Basic s3cret"])
def test_cron_rejects_bad_secret(client, cron_secret, header):
    headers = {"Authorization": header} if header else {}

    response = client.get(f"{API}/cron/distribute", headers=headers)

    assert response.status_code == 401


def test_cron_runs_distribution(client, cron_secret, program, make_user):
    make_user(points=60)

    response = client.get(
        f"{API}/cron/distribute", headers={"Authorization": f"Bearer {cron_secret}"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"]
    assert body["usersProcessed"] == 2
    assert body["totalNewAmount"] == "10000"
    assert body["dailyPool"] == "10000"
    assert body["submitTx"] == program.submit_merkle_root.return_value
    assert len(body["merkleRoot"]) == 64


def test_cron_submission_failure_is_partial_success(client, cron_secret, program):
    program.submit_merkle_root.side_effect = ExternalDependencyError("rpc down")

    response = client.get(
        f"{API}/cron/distribute", headers={"Authorization": f"Bearer {cron_secret}"}
    )

    assert response.status_code == 200
    assert response.json()["success"]
    assert response.json()["submitTx"] is None
    assert response.json()["distributionId"]


def test_cron_rate_limit_failure_is_500(client, cron_secret, rate_limit):
    rate_limit.get_rate_limited_available.side_effect = ExternalDependencyError("rpc down")

    response = client.get(
        f"{API}/cron/distribute", headers={"Authorization": f"Bearer {cron_secret}"}
    )

    assert response.status_code == 500
    assert response.json()["success"] is False


def test_claim_status_and_submit(client, current_user, make_distribution, make_user):
    make_distribution([(current_user, 2_500), (make_user(), 7)])

    status = client.get(f"{API}/rewards/claim", params={"wallet": current_user.wallet_address})

    assert status.status_code == 200
    body = status.json()
    assert body["claimable"]
    assert body["amount"] == "2500"
    assert len(body["proof"]) == 1

    tx = new_tx_signature()
    claim = client.post(f"{API}/rewards/claim", json={"rewardId": body["rewardId"], "claimTx": tx})
    assert claim.status_code == 200
    assert claim.json()["success"]
    assert claim.json()["amountClaimed"] == "2500"

    replay = client.post(f"{API}/rewards/claim", json={"rewardId": body["rewardId"], "claimTx": tx})
    assert replay.status_code == 200
    assert replay.json()["message"] == "already recorded"

    after = client.get(f"{API}/rewards/claim", params={"wallet": current_user.wallet_address})
    assert after.json()["claimable"] is False


def test_claim_status_wallet_checks(client, current_user):
    missing = client.get(f"{API}/rewards/claim")
    assert missing.status_code == 400

    malformed = client.get(f"{API}/rewards/claim", params={"wallet": "0xabc"})
    assert malformed.status_code == 400

    mismatch = client.get(f"{API}/rewards/claim", params={"wallet": str(Keypair().pubkey())})
    assert mismatch.status_code == 403
    assert mismatch.json()["detail"] == "Wallet mismatch"


def test_claim_errors_map_to_status_codes(client, db_session, make_distribution, make_user):
    other = make_user()
    distribution = make_distribution([(other, 100)])
    reward_id = db_session.exec(
        select(UserReward.id).where(UserReward.distribution_id == distribution.id)
    ).one()

    bad_tx = client.post(f"{API}/rewards/claim", json={"rewardId": str(reward_id), "claimTx": "nope"})
    assert bad_tx.status_code == 400

    not_found = client.post(
        f"{API}/rewards/claim",
        json={"rewardId": "00000000-0000-0000-0000-000000000000", "claimTx": new_tx_signature()},
    )
    assert not_found.status_code == 404

    not_yours = client.post(
        f"{API}/rewards/claim", json={"rewardId": str(reward_id), "claimTx": new_tx_signature()}
    )
    assert not_yours.status_code == 403


def test_history(client, current_user, make_distribution, make_claim):
    make_distribution([(current_user, 300)])
    make_claim(current_user, 300)

    response = client.get(f"{API}/rewards/history")

    assert response.status_code == 200
    body = response.json()
    assert body["distributions"][0]["cumulativeAmount"] == "300"
    assert body["claims"][0]["amountClaimed"] == "300"
    assert body["totalClaimed"] == "300"


def test_pool_info(client, current_user, make_user):
    make_user(points=60)

    body = client.get(f"{API}/rewards/pool").json()

    assert body["walletConnected"]
    assert body["dailyPool"] == "10000"
    assert body["totalPendingPoints"] == 100
    assert body["userSharePercent"] == 40
    assert body["estimatedReward"] == "4000"
    assert body["unclaimed"] == "0"
    assert 0 < body["nextDistributionIn"] <= 86_400


def test_pool_info_when_chain_unreachable(client, rate_limit):
    rate_limit.get_rate_limited_available.side_effect = ExternalDependencyError("down")

    body = client.get(f"{API}/rewards/pool").json()

    assert body["dailyPool"] == "0"
    assert body["estimatedReward"] == "0"


def test_wallet_signature_auth(db_session, current_user, keypair):
    app.dependency_overrides[deps.get_db] = lambda: db_session
    client = TestClient(app)
    message = build_auth_message(int(time.time()))
    headers = {
        "X-Wallet-Address": current_user.wallet_address,
        "X-Wallet-Signature": str(keypair.sign_message(message.encode("utf-8"))),
        "X-Wallet-Message": message.replace("\n", "\\n"),
    }
    try:
        assert client.get(f"{API}/rewards/history", headers=headers).status_code == 200

        forged = dict(headers, **{"X-Wallet-Signature": str(Keypair().sign_message(message.encode()))})
        assert client.get(f"{API}/rewards/history", headers=forged).status_code == 401

        stale_message = build_auth_message(int(time.time()) - settings.AUTH_MESSAGE_TTL_SECONDS - 60)
        stale = {
            **headers,
            "X-Wallet-Signature": str(keypair.sign_message(stale_message.encode())),
            "X-Wallet-Message": stale_message.replace("\n", "\\n"),
        }
        assert client.get(f"{API}/rewards/history", headers=stale).status_code == 401

        assert client.get(f"{API}/rewards/history").status_code == 401
    finally:
        app.dependency_overrides.clear()


def test_token_balance(client, current_user, make_distribution, make_claim, make_user):
    make_distribution([(current_user, 1_500_000_000), (make_user(), 3)])
    make_claim(current_user, 1_000_000_000)

    response = client.get(f"{API}/rewards/yap")

    assert response.status_code == 200
    body = response.json()
    assert body["walletConnected"]
    assert body["claimable"]["amount"] == "1500000000"
    assert body["claimable"]["distributionId"]
    assert body["claimableTotal"] == "500000000"
    assert body["claimedTotal"] == "1000000000"


def test_token_balance_nothing_claimable(client, current_user, make_distribution, make_claim):
    make_distribution([(current_user, 700)], submitted=False)

    body = client.get(f"{API}/rewards/yap").json()

    assert body["claimable"] is None
    assert body["claimableTotal"] == "0"
    assert body["claimedTotal"] == "0"

    make_distribution([(current_user, 700)])
    make_claim(current_user, 700)

    body = client.get(f"{API}/rewards/yap").json()
    assert body["claimable"] is None
    assert body["claimedTotal"] == "700"


def test_token_balance_ledger_failure(client):
    ledger = MagicMock()
    ledger.get_user_claimed_total.side_effect = RuntimeError("db down")
    app.dependency_overrides[deps.get_claim_ledger] = lambda: ledger

    response = client.get(f"{API}/rewards/yap")

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"
