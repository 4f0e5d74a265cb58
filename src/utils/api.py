import re
from typing import Any
from uuid import UUID

from solders.pubkey import Pubkey

from core.constants import TX_SIGNATURE_PATTERN, UUID_PATTERN
from core.exceptions import RewardValidationError

_tx_signature_re = re.compile(TX_SIGNATURE_PATTERN)
_uuid_re = re.compile(UUID_PATTERN, re.IGNORECASE)


def is_valid_wallet_address(wallet_address: Any) -> bool:
    if not isinstance(wallet_address, str) or not wallet_address.strip():
        return False
    try:
        Pubkey.from_string(wallet_address.strip())
    except ValueError:
        return False
    return True


def require_wallet(value: Any, field_name: str = "Wallet address") -> Pubkey:
    if not isinstance(value, str) or not value.strip():
        raise RewardValidationError(f"{field_name} required")
    if not is_valid_wallet_address(value):
        raise RewardValidationError(f"Invalid {field_name.lower()} format")
    return Pubkey.from_string(value.strip())


def require_tx_signature(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise RewardValidationError("Transaction signature required")
    signature = value.strip()
    if not _tx_signature_re.match(signature):
        raise RewardValidationError("Invalid transaction signature format")
    return signature


def require_uuid(value: Any, field_name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str) or not value.strip():
        raise RewardValidationError(f"{field_name} required")
    if not _uuid_re.match(value.strip()):
        raise RewardValidationError(f"Invalid {field_name} format")
    return UUID(value.strip())
