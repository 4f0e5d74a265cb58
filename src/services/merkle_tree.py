"""Merkle commitment over (wallet, cumulative amount) reward entries.

Leaves are ``keccak256(LEAF_DOMAIN || wallet(32) || amount(u64 LE))`` and
internal nodes hash the two children after sorting them by byte value, so a
proof is a plain list of sibling hashes with no left/right flags. An odd node
at the end of a level is promoted to the next level unchanged.

The encoding must stay byte-identical to the on-chain program's
``compute_leaf`` / ``verify_proof``: any drift invalidates every proof.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from eth_utils import keccak
from solders.pubkey import Pubkey

from core.constants import HASH_LENGTH, LEAF_DOMAIN, PUBKEY_LENGTH, U64_MAX

WalletLike = Union[Pubkey, str, bytes]


class EmptyDistributionError(ValueError):
    def __init__(self):
        super().__init__("Cannot build tree with no entries (empty input)")


class RootMismatchError(ValueError):
    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"Merkle root mismatch - data may be corrupted "
            f"(expected {expected}, computed {actual})"
        )
        self.expected = expected
        self.actual = actual


class DuplicateWalletError(ValueError):
    def __init__(self, wallet: str):
        super().__init__(f"Duplicate wallet in distribution entries: {wallet}")
        self.wallet = wallet


@dataclass(frozen=True)
class RewardEntry:
    wallet: Pubkey
    # cumulative amount in the smallest token unit
    amount: int


@dataclass
class MerkleTree:
    root: bytes
    entries: List[RewardEntry]
    # layers[0] are the leaves, layers[-1] == [root]
    layers: List[List[bytes]] = field(repr=False)

    @property
    def root_hex(self) -> str:
        return self.root.hex()

    @property
    def depth(self) -> int:
        return len(self.layers) - 1


@dataclass(frozen=True)
class ClaimProof:
    wallet: Pubkey
    amount: int
    proof: List[bytes]

    def proof_hex(self) -> List[str]:
        return proof_to_hex(self.proof)


def to_pubkey(wallet: WalletLike) -> Pubkey:
    if isinstance(wallet, Pubkey):
        return wallet
    if isinstance(wallet, (bytes, bytearray)):
        if len(wallet) != PUBKEY_LENGTH:
            raise ValueError(f"Wallet must be {PUBKEY_LENGTH} bytes, got {len(wallet)}")
        return Pubkey.from_bytes(bytes(wallet))
    return Pubkey.from_string(wallet)


def _amount_bytes(amount: int) -> bytes:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"Amount must be an int, got {type(amount).__name__}")
    if amount < 0 or amount > U64_MAX:
        raise ValueError(f"Amount {amount} is outside the u64 range")
    return amount.to_bytes(8, "little")


def hash_leaf(wallet: WalletLike, amount: int) -> bytes:
    return keccak(LEAF_DOMAIN + bytes(to_pubkey(wallet)) + _amount_bytes(amount))


def hash_pair(a: bytes, b: bytes) -> bytes:
    if a <= b:
        return keccak(a + b)
    return keccak(b + a)


def _next_layer(nodes: List[bytes]) -> List[bytes]:
    parents = []
    for i in range(0, len(nodes) - 1, 2):
        parents.append(hash_pair(nodes[i], nodes[i + 1]))
    if len(nodes) % 2 == 1:
        parents.append(nodes[-1])
    return parents


def tree_depth(leaf_count: int) -> int:
    """ceil(log2(n)) for n >= 1."""
    if leaf_count < 1:
        raise ValueError("leaf_count must be positive")
    return (leaf_count - 1).bit_length()


def build_merkle_tree(
    entries: Iterable[RewardEntry], reject_duplicates: bool = False
) -> MerkleTree:
    """Build the tree over ``entries`` in the given order.

    Duplicate wallets are accepted by default and each occurrence becomes its
    own leaf. Pass ``reject_duplicates=True`` to fail fast instead.
    """
    entries = [RewardEntry(wallet=to_pubkey(e.wallet), amount=e.amount) for e in entries]
    if not entries:
        raise EmptyDistributionError()

    if reject_duplicates:
        seen = set()
        for entry in entries:
            key = bytes(entry.wallet)
            if key in seen:
                raise DuplicateWalletError(str(entry.wallet))
            seen.add(key)

    layers = [[hash_leaf(e.wallet, e.amount) for e in entries]]
    while len(layers[-1]) > 1:
        layers.append(_next_layer(layers[-1]))

    return MerkleTree(root=layers[-1][0], entries=entries, layers=layers)


def get_proof_by_index(tree: MerkleTree, index: int) -> List[bytes]:
    if index < 0 or index >= len(tree.entries):
        raise IndexError(f"Leaf index {index} out of range")

    proof = []
    for layer in tree.layers[:-1]:
        sibling = index ^ 1
        if sibling < len(layer):
            proof.append(layer[sibling])
        index //= 2
    return proof


def get_proof(tree: MerkleTree, wallet: WalletLike) -> Optional[ClaimProof]:
    """Proof for the first entry whose wallet matches, or None.

    With duplicate wallets the first occurrence in entry order wins.
    """
    target = bytes(to_pubkey(wallet))
    for index, entry in enumerate(tree.entries):
        if bytes(entry.wallet) == target:
            return ClaimProof(
                wallet=entry.wallet,
                amount=entry.amount,
                proof=get_proof_by_index(tree, index),
            )
    return None


def get_all_proofs(tree: MerkleTree) -> Dict[bytes, ClaimProof]:
    """Proofs keyed by wallet bytes, first occurrence wins."""
    proofs = {}
    for index, entry in enumerate(tree.entries):
        key = bytes(entry.wallet)
        if key not in proofs:
            proofs[key] = ClaimProof(
                wallet=entry.wallet,
                amount=entry.amount,
                proof=get_proof_by_index(tree, index),
            )
    return proofs


def verify_proof(
    root: bytes, wallet: WalletLike, amount: int, proof: List[bytes]
) -> bool:
    try:
        computed = hash_leaf(wallet, amount)
    except (TypeError, ValueError):
        return False

    for sibling in proof:
        if len(sibling) != HASH_LENGTH:
            return False
        computed = hash_pair(computed, sibling)

    return len(root) == HASH_LENGTH and computed == root


def proof_to_hex(proof: List[bytes]) -> List[str]:
    return [p.hex() for p in proof]


def proof_from_hex(proof: List[str]) -> List[bytes]:
    return [bytes.fromhex(p.removeprefix("0x")) for p in proof]


def export_distribution(tree: MerkleTree) -> dict:
    return {
        "root": tree.root_hex,
        "entries": [
            {"wallet": str(e.wallet), "amount": str(e.amount)} for e in tree.entries
        ],
    }


def import_distribution(data: dict) -> MerkleTree:
    """Rebuild a tree from exported data, refusing it if the root does not match."""
    entries = [
        RewardEntry(wallet=to_pubkey(e["wallet"]), amount=int(e["amount"]))
        for e in data["entries"]
    ]
    tree = build_merkle_tree(entries)

    expected = data["root"].lower().removeprefix("0x")
    if tree.root_hex != expected:
        raise RootMismatchError(expected, tree.root_hex)

    return tree
