import base64
import json
import struct
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from core import constants
from core.constants import ConfigAccountOffset
from core.exceptions import ConfigurationError, ExternalDependencyError
from services.yap_program_service import (
    ProgramConfig,
    SolanaRpcClient,
    YapProgramService,
    build_distribute_data,
    load_keypair,
)

PROGRAM_ID = "CP5uP8kmwMnRDLh2yfrbeZLByo2wNCUdmQqTz3bso5dy"


def config_account_bytes(vault: Pubkey, merkle_root: bytes, last_distribution_ts: int) -> bytes:
    data = bytearray(ConfigAccountOffset.BUMP + 1)
    data[ConfigAccountOffset.VAULT : ConfigAccountOffset.VAULT + 32] = bytes(vault)
    data[ConfigAccountOffset.MERKLE_ROOT : ConfigAccountOffset.MERKLE_ROOT + 32] = merkle_root
    struct.pack_into("<q", data, ConfigAccountOffset.LAST_DISTRIBUTION_TS, last_distribution_ts)
    return bytes(data)


def token_account_bytes(amount: int) -> bytes:
    return bytes(64) + struct.pack("<Q", amount) + bytes(93)


def clock_bytes(unix_timestamp: int) -> bytes:
    return bytes(32) + struct.pack("<q", unix_timestamp)


def rpc_response(result, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = {"jsonrpc": "2.0", "id": 1, "result": result}
    return response


def account_result(data: bytes):
    return {"context": {"slot": 1}, "value": {"data": [base64.b64encode(data).decode(), "base64"]}}


def test_program_config_decoding():
    vault = Keypair().pubkey()
    root = bytes(range(32))

    config = ProgramConfig.from_bytes(config_account_bytes(vault, root, 1_700_000_123))

    assert config.vault == vault
    assert config.merkle_root == root
    assert config.last_distribution_ts == 1_700_000_123


def test_program_config_too_short():
    with pytest.raises(ExternalDependencyError):
        ProgramConfig.from_bytes(bytes(100))


def test_distribute_instruction_data():
    root = bytes([7]) * 32
    data = build_distribute_data(1_000_000_000, root)

    assert len(data) == 41
    assert data[0] == 2
    assert int.from_bytes(data[1:9], "little") == 1_000_000_000
    assert data[9:] == root

    with pytest.raises(ValueError):
        build_distribute_data(-1, root)
    with pytest.raises(ValueError):
        build_distribute_data(1, root[:31])


def test_distribute_instruction_accounts():
    service = YapProgramService(MagicMock(), PROGRAM_ID)
    updater = Keypair().pubkey()

    instruction = service.create_distribute_instruction(updater, 5, bytes(32))

    program_id = Pubkey.from_string(PROGRAM_ID)
    assert instruction.program_id == program_id
    assert [a.pubkey for a in instruction.accounts] == [
        updater,
        Pubkey.find_program_address([b"config"], program_id)[0],
        Pubkey.find_program_address([b"vault"], program_id)[0],
        Pubkey.find_program_address([b"pending_claims"], program_id)[0],
        Pubkey.find_program_address([b"mint"], program_id)[0],
        Pubkey.from_string(constants.TOKEN_PROGRAM_ID),
    ]
    assert instruction.accounts[0].is_signer
    assert [a.is_writable for a in instruction.accounts] == [False, True, True, True, False, False]


def test_load_keypair():
    keypair = Keypair()
    assert load_keypair(json.dumps(list(bytes(keypair)))).pubkey() == keypair.pubkey()

    with pytest.raises(ConfigurationError):
        load_keypair(None)
    with pytest.raises(ConfigurationError):
        load_keypair("not json")


@patch("services.yap_program_service.requests.post")
def test_reads_config_balance_and_clock(mock_post):
    vault = Keypair().pubkey()
    mock_post.side_effect = [
        rpc_response(account_result(config_account_bytes(vault, bytes(32), 1_700_000_000))),
        rpc_response(account_result(token_account_bytes(42_000_000_000))),
        rpc_response(account_result(clock_bytes(1_700_086_400))),
    ]
    service = YapProgramService(SolanaRpcClient("http://rpc.test"), PROGRAM_ID)

    config = service.get_config()

    assert config.vault == vault
    assert service.get_token_balance(config.vault) == 42_000_000_000
    assert service.get_chain_time() == 1_700_086_400
    payload = mock_post.call_args_list[0].kwargs["json"]
    assert payload["method"] == "getAccountInfo"
    assert payload["params"][0] == str(service.config_pda)


@patch("services.yap_program_service.requests.post")
def test_missing_config_account(mock_post):
    mock_post.return_value = rpc_response({"context": {"slot": 1}, "value": None})
    service = YapProgramService(SolanaRpcClient("http://rpc.test"), PROGRAM_ID)

    with pytest.raises(ExternalDependencyError, match="not initialized"):
        service.get_config()


@patch("services.yap_program_service.requests.post")
def test_rpc_errors_raise(mock_post):
    client = SolanaRpcClient("http://rpc.test")

    mock_post.return_value = rpc_response(None, status_code=503)
    with pytest.raises(ExternalDependencyError):
        client.get_latest_blockhash()

    error = Mock(status_code=200)
    error.json.return_value = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32002, "message": "boom"}}
    mock_post.return_value = error
    with pytest.raises(ExternalDependencyError, match="boom"):
        client.get_latest_blockhash()

    mock_post.side_effect = requests.ConnectionError("refused")
    with pytest.raises(ExternalDependencyError):
        client.get_latest_blockhash()


@patch("services.yap_program_service.requests.post")
def test_non_json_rpc_body_raises(mock_post):
    gateway_page = Mock(status_code=200)
    gateway_page.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)
    mock_post.return_value = gateway_page

    with pytest.raises(ExternalDependencyError, match="invalid JSON"):
        SolanaRpcClient("http://rpc.test").get_latest_blockhash()


@patch("services.yap_program_service.time.sleep")
def test_confirm_transaction_polls_without_resending(mock_sleep):
    client = SolanaRpcClient("http://rpc.test")
    client.get_signature_status = MagicMock(
        side_effect=[None, {"confirmationStatus": "processed", "err": None}, {"confirmationStatus": "confirmed", "err": None}]
    )
    client.send_transaction = MagicMock()

    client.confirm_transaction("sig", timeout=60)

    assert client.get_signature_status.call_count == 3
    client.send_transaction.assert_not_called()


def test_confirm_transaction_failed_tx():
    client = SolanaRpcClient("http://rpc.test")
    client.get_signature_status = MagicMock(return_value={"err": {"InstructionError": [0, "Custom"]}})

    with pytest.raises(ExternalDependencyError, match="failed"):
        client.confirm_transaction("sig", timeout=60)


def test_submit_merkle_root_signs_and_confirms():
    keypair = Keypair()
    rpc = MagicMock()
    rpc.get_latest_blockhash.return_value = Hash.default()
    rpc.send_transaction.return_value = "5" * 88
    service = YapProgramService(rpc, PROGRAM_ID, json.dumps(list(bytes(keypair))))

    signature = service.submit_merkle_root(bytes(32), 1_000, confirm_timeout=5)

    assert signature == "5" * 88
    transaction = rpc.send_transaction.call_args.args[0]
    assert transaction.message.account_keys[0] == keypair.pubkey()
    rpc.confirm_transaction.assert_called_once_with("5" * 88, timeout=5)


def test_verify_merkle_root():
    root = bytes([1]) * 32
    service = YapProgramService(MagicMock(), PROGRAM_ID)
    service.get_config = MagicMock(
        return_value=ProgramConfig.from_bytes(config_account_bytes(Keypair().pubkey(), root, 0))
    )

    assert service.verify_merkle_root(root)
    assert not service.verify_merkle_root(bytes(32))

    service.get_config.side_effect = ExternalDependencyError("down")
    assert not service.verify_merkle_root(root)
