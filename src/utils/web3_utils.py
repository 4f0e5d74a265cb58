import logging
import re
from typing import Optional

from solders.pubkey import Pubkey
from solders.signature import Signature

from core.constants import AUTH_MESSAGE_PREFIX

logger = logging.getLogger(__name__)

_timestamp_re = re.compile(r"^Timestamp:\s*(\d+)\s*$", re.MULTILINE)


def build_auth_message(timestamp: int) -> str:
    return f"{AUTH_MESSAGE_PREFIX}\nTimestamp: {timestamp}"


def parse_auth_timestamp(message: str) -> Optional[int]:
    """Unix timestamp of a sign-in message, None if the message is not one."""
    if not message or not message.startswith(AUTH_MESSAGE_PREFIX):
        return None
    match = _timestamp_re.search(message)
    return int(match.group(1)) if match else None


def verify_signature(message: str, signature: str, address: str) -> bool:
    """ed25519 check of a base58 wallet signature over the UTF-8 message."""
    try:
        pubkey = Pubkey.from_string(address)
        sig = Signature.from_string(signature)
        return sig.verify(pubkey, message.encode("utf-8"))
    except ValueError as e:
        logger.info(f"Verification failed: {str(e)}")
        return False
