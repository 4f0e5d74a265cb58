import base64
import json
import logging
import struct
import time
from dataclasses import dataclass
from typing import Any, List, Optional

import requests
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from core import constants
from core.config import settings
from core.constants import ConfigAccountOffset
from core.exceptions import ConfigurationError, ExternalDependencyError

logger = logging.getLogger(__name__)


class SolanaRpcClient:
    """Minimal JSON-RPC client over HTTP for the calls the rewards flow needs."""

    def __init__(self, rpc_url: str, timeout: int = 30, commitment: str = constants.RPC_COMMITMENT):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.commitment = commitment
        self._request_id = 0

    def _call(self, method: str, params: List[Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        try:
            response = requests.post(self.rpc_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalDependencyError(f"Solana RPC {method} failed: {e}") from e

        if response.status_code != 200:
            raise ExternalDependencyError(
                f"Solana RPC {method} failed with status {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ExternalDependencyError(f"Solana RPC {method} returned invalid JSON") from e
        if body.get("error"):
            raise ExternalDependencyError(
                f"Solana RPC {method} error: {body['error'].get('message', body['error'])}"
            )
        return body.get("result")

    def get_account_data(self, pubkey: Pubkey) -> Optional[bytes]:
        result = self._call(
            "getAccountInfo",
            [str(pubkey), {"encoding": "base64", "commitment": self.commitment}],
        )
        value = result.get("value") if result else None
        if value is None:
            return None
        data, encoding = value["data"]
        if encoding != "base64":
            raise ExternalDependencyError(f"Unexpected account encoding {encoding}")
        return base64.b64decode(data)

    def get_latest_blockhash(self) -> Hash:
        result = self._call("getLatestBlockhash", [{"commitment": self.commitment}])
        return Hash.from_string(result["value"]["blockhash"])

    def send_transaction(self, transaction: Transaction) -> str:
        encoded = base64.b64encode(bytes(transaction)).decode("ascii")
        return self._call(
            "sendTransaction",
            [encoded, {"encoding": "base64", "preflightCommitment": self.commitment}],
        )

    def get_signature_status(self, signature: str) -> Optional[dict]:
        result = self._call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": True}],
        )
        return result["value"][0]

    def confirm_transaction(self, signature: str, timeout: int, poll_interval: float = 2.0) -> None:
        """Wait until the signature reaches the client's commitment.

        This only polls the status of an already sent transaction, it never
        resends it.
        """
        deadline = time.monotonic() + timeout
        while True:
            status = self.get_signature_status(signature)
            if status is not None:
                if status.get("err"):
                    raise ExternalDependencyError(
                        f"Transaction {signature} failed: {status['err']}"
                    )
                if status.get("confirmationStatus") in ("confirmed", "finalized"):
                    return
            if time.monotonic() >= deadline:
                raise ExternalDependencyError(
                    f"Transaction {signature} not confirmed after {timeout}s"
                )
            time.sleep(poll_interval)


@dataclass(frozen=True)
class ProgramConfig:
    mint: Pubkey
    vault: Pubkey
    pending_claims: Pubkey
    merkle_root: bytes
    merkle_updater: Pubkey
    last_distribution_ts: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "ProgramConfig":
        if len(data) < ConfigAccountOffset.ADMIN:
            raise ExternalDependencyError(
                f"Config account data too short: {len(data)} bytes"
            )

        def pubkey_at(offset: int) -> Pubkey:
            return Pubkey.from_bytes(data[offset : offset + 32])

        (last_distribution_ts,) = struct.unpack_from(
            "<q", data, ConfigAccountOffset.LAST_DISTRIBUTION_TS
        )
        return cls(
            mint=pubkey_at(ConfigAccountOffset.MINT),
            vault=pubkey_at(ConfigAccountOffset.VAULT),
            pending_claims=pubkey_at(ConfigAccountOffset.PENDING_CLAIMS),
            merkle_root=bytes(
                data[ConfigAccountOffset.MERKLE_ROOT : ConfigAccountOffset.MERKLE_ROOT + 32]
            ),
            merkle_updater=pubkey_at(ConfigAccountOffset.MERKLE_UPDATER),
            last_distribution_ts=last_distribution_ts,
        )


def load_keypair(secret_key: Optional[str]) -> Keypair:
    if not secret_key:
        raise ConfigurationError("MERKLE_UPDATER_SECRET_KEY not set")
    try:
        return Keypair.from_bytes(bytes(json.loads(secret_key)))
    except (ValueError, TypeError) as e:
        raise ConfigurationError("Invalid MERKLE_UPDATER_SECRET_KEY format") from e


def build_distribute_data(amount: int, merkle_root: bytes) -> bytes:
    # Layout: [discriminator(1)] [amount(8)] [merkle_root(32)]
    if len(merkle_root) != constants.HASH_LENGTH:
        raise ValueError("Merkle root must be 32 bytes")
    if amount < 0 or amount > constants.U64_MAX:
        raise ValueError(f"Amount {amount} is outside the u64 range")
    return struct.pack("<BQ", constants.DISTRIBUTE_DISCRIMINATOR, amount) + merkle_root


class YapProgramService:
    """Reads and writes the YAP token program's accounts."""

    def __init__(self, rpc: SolanaRpcClient, program_id: str, updater_secret_key: Optional[str] = None):
        self.rpc = rpc
        self.program_id = Pubkey.from_string(program_id)
        self._updater_secret_key = updater_secret_key

    def find_pda(self, seed: bytes) -> Pubkey:
        pda, _ = Pubkey.find_program_address([seed], self.program_id)
        return pda

    @property
    def config_pda(self) -> Pubkey:
        return self.find_pda(constants.CONFIG_SEED)

    def get_config(self) -> ProgramConfig:
        data = self.rpc.get_account_data(self.config_pda)
        if data is None:
            raise ExternalDependencyError(
                "Config account not found - program not initialized"
            )
        return ProgramConfig.from_bytes(data)

    def get_token_balance(self, token_account: Pubkey) -> int:
        data = self.rpc.get_account_data(token_account)
        if data is None:
            raise ExternalDependencyError(f"Token account {token_account} not found")
        if len(data) < constants.TOKEN_ACCOUNT_MIN_LENGTH:
            raise ExternalDependencyError(
                f"Invalid token account data length {len(data)}"
            )
        (amount,) = struct.unpack_from("<Q", data, constants.TOKEN_ACCOUNT_AMOUNT_OFFSET)
        return amount

    def get_chain_time(self) -> int:
        data = self.rpc.get_account_data(Pubkey.from_string(constants.CLOCK_SYSVAR_ID))
        if data is None or len(data) < constants.CLOCK_UNIX_TIMESTAMP_OFFSET + 8:
            raise ExternalDependencyError("Clock sysvar unavailable")
        (unix_timestamp,) = struct.unpack_from(
            "<q", data, constants.CLOCK_UNIX_TIMESTAMP_OFFSET
        )
        return unix_timestamp

    def create_distribute_instruction(
        self, updater: Pubkey, amount: int, merkle_root: bytes
    ) -> Instruction:
        accounts = [
            AccountMeta(updater, is_signer=True, is_writable=False),
            AccountMeta(self.config_pda, is_signer=False, is_writable=True),
            AccountMeta(self.find_pda(constants.VAULT_SEED), is_signer=False, is_writable=True),
            AccountMeta(
                self.find_pda(constants.PENDING_CLAIMS_SEED), is_signer=False, is_writable=True
            ),
            AccountMeta(self.find_pda(constants.MINT_SEED), is_signer=False, is_writable=False),
            AccountMeta(
                Pubkey.from_string(constants.TOKEN_PROGRAM_ID), is_signer=False, is_writable=False
            ),
        ]
        return Instruction(
            self.program_id, build_distribute_data(amount, merkle_root), accounts
        )

    def submit_merkle_root(self, merkle_root: bytes, amount: int, confirm_timeout: int = 60) -> str:
        """Transfer ``amount`` to pending claims and set the root. Returns the tx signature."""
        updater = load_keypair(self._updater_secret_key)
        instruction = self.create_distribute_instruction(updater.pubkey(), amount, merkle_root)

        blockhash = self.rpc.get_latest_blockhash()
        message = Message.new_with_blockhash([instruction], updater.pubkey(), blockhash)
        transaction = Transaction([updater], message, blockhash)

        signature = self.rpc.send_transaction(transaction)
        logger.info("Distribute transaction sent: %s", signature)
        self.rpc.confirm_transaction(signature, timeout=confirm_timeout)
        return signature

    def verify_merkle_root(self, expected_root: bytes) -> bool:
        try:
            config = self.get_config()
        except ExternalDependencyError:
            logger.warning("Could not read config account to verify merkle root")
            return False
        return config.merkle_root == expected_root


def create_program_service() -> YapProgramService:
    rpc = SolanaRpcClient(settings.SOLANA_RPC_URL, timeout=settings.SOLANA_RPC_TIMEOUT_SECONDS)
    return YapProgramService(
        rpc,
        program_id=settings.YAP_PROGRAM_ID,
        updater_secret_key=settings.MERKLE_UPDATER_SECRET_KEY,
    )
