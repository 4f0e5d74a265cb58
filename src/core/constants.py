from enum import Enum

# Domain separator prepended to every leaf, must match the program's LEAF_DOMAIN
LEAF_DOMAIN = b"YAP_CLAIM_V1"

HASH_LENGTH = 32
PUBKEY_LENGTH = 32
U64_MAX = 2**64 - 1

# Points are fractional (vote weight 1.0 - 5.0), scaled to integers before division
POINTS_PRECISION = 10**12

YAP_DECIMALS = 9
SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Solana tx signatures are 87-88 base58 characters (no 0, O, I, l)
TX_SIGNATURE_PATTERN = r"^[1-9A-HJ-NP-Za-km-z]{87,88}$"
UUID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"

AUTH_MESSAGE_PREFIX = "Sign in to YAP"

# PROGRAM
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
CLOCK_SYSVAR_ID = "SysvarC1ock11111111111111111111111111111111"

CONFIG_SEED = b"config"
MINT_SEED = b"mint"
VAULT_SEED = b"vault"
PENDING_CLAIMS_SEED = b"pending_claims"

DISTRIBUTE_DISCRIMINATOR = 2


class ConfigAccountOffset(int, Enum):
    DISCRIMINATOR = 0
    MINT = 8
    VAULT = 40
    PENDING_CLAIMS = 72
    MERKLE_ROOT = 104
    MERKLE_UPDATER = 136
    CURRENT_SUPPLY = 168
    LAST_INFLATION_TS = 176
    LAST_DISTRIBUTION_TS = 184
    ADMIN = 192
    INFLATION_RATE_BPS = 224
    BUMP = 226


# SPL token account: mint (32) + owner (32) + amount (8)
TOKEN_ACCOUNT_AMOUNT_OFFSET = 64
TOKEN_ACCOUNT_MIN_LENGTH = 72

# Clock sysvar: slot, epoch_start_timestamp, epoch, leader_schedule_epoch, unix_timestamp
CLOCK_UNIX_TIMESTAMP_OFFSET = 32

RPC_COMMITMENT = "confirmed"


class ClaimMessage(str, Enum):
    ALREADY_RECORDED = "already recorded"
    RECORDED = "Claim recorded"
    REWARD_NOT_FOUND = "Reward not found"
    NOT_YOUR_REWARD = "Not your reward"
    NOTHING_TO_CLAIM = "Nothing to claim"
