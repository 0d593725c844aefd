"""
Merkle tree construction and inclusion proof verification.

Leaves are lowercase hex SHA-256 digests. Parent nodes are
``SHA256(left_hex + right_hex)`` over the hex *strings*, and an odd level
pairs its last node with itself. A single leaf therefore yields
``SHA256(leaf + leaf)``, never the bare leaf.

Callers are responsible for leaf ordering; daily anchors sort leaves
lexicographically before building.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Literal

Side = Literal["L", "R"]


@dataclass(frozen=True)
class ProofStep:
    """One sibling on the path from a leaf to the root.

    ``side`` is the side the sibling sits on relative to the running node.
    """

    side: Side
    hash: str


def _hash_pair(left: str, right: str) -> str:
    """Hash two hex-encoded digests together."""
    hasher = hashlib.sha256()
    hasher.update(left.encode("utf-8"))
    hasher.update(right.encode("utf-8"))
    return hasher.hexdigest()


def _next_level(level: list[str]) -> list[str]:
    next_level: list[str] = []
    for i in range(0, len(level), 2):
        left = level[i]
        right = level[i + 1] if i + 1 < len(level) else level[i]
        next_level.append(_hash_pair(left, right))
    return next_level


def compute_merkle_root(hashes: list[str]) -> str | None:
    """Compute the Merkle root from a list of leaf hashes.

    Parameters
    ----------
    hashes:
        List of hex-encoded SHA-256 hashes (the leaves), already ordered.

    Returns
    -------
    str | None
        Hex-encoded root, or ``None`` when there are no leaves.
    """
    if not hashes:
        return None

    level = list(hashes)
    while True:
        level = _next_level(level)
        if len(level) == 1:
            return level[0]


def compute_inclusion_proof(hashes: list[str], index: int) -> list[ProofStep]:
    """Compute an inclusion proof for the leaf at ``index``.

    Raises
    ------
    ValueError
        If ``hashes`` is empty or ``index`` is out of range.
    """
    if not hashes:
        raise ValueError("Cannot compute proof from empty list")
    if index < 0 or index >= len(hashes):
        raise ValueError(f"Index {index} out of range for {len(hashes)} hashes")

    proof: list[ProofStep] = []
    level = list(hashes)
    idx = index

    while True:
        if idx % 2 == 0:
            sibling_idx = idx + 1 if idx + 1 < len(level) else idx
            proof.append(ProofStep(side="R", hash=level[sibling_idx]))
        else:
            proof.append(ProofStep(side="L", hash=level[idx - 1]))

        level = _next_level(level)
        idx //= 2
        if len(level) == 1:
            return proof


def replay_inclusion_proof(leaf_hash: str, proof: list[ProofStep]) -> str:
    """Fold ``proof`` into ``leaf_hash`` and return the resulting root."""
    current = leaf_hash
    for step in proof:
        if step.side == "L":
            current = _hash_pair(step.hash, current)
        elif step.side == "R":
            current = _hash_pair(current, step.hash)
        else:
            raise ValueError(f"Unknown proof side: {step.side!r}")
    return current


def verify_inclusion_proof(leaf_hash: str, proof: list[ProofStep], root: str | None) -> bool:
    """Verify that a leaf hash is included in a Merkle tree with the given root."""
    if root is None:
        return False
    return replay_inclusion_proof(leaf_hash, proof) == root


@dataclass
class MerkleTree:
    """A Merkle tree built from an ordered batch of leaf hashes."""

    leaves: list[str] = field(default_factory=list)
    root: str | None = None

    def __post_init__(self) -> None:
        if self.leaves and self.root is None:
            self.root = compute_merkle_root(self.leaves)

    @classmethod
    def from_unordered(cls, leaves: list[str]) -> MerkleTree:
        """Build a tree over ``leaves`` sorted lexicographically."""
        return cls(leaves=sorted(leaves))

    def index_of(self, leaf_hash: str) -> int | None:
        try:
            return self.leaves.index(leaf_hash)
        except ValueError:
            return None

    def inclusion_proof(self, index: int) -> list[ProofStep]:
        """Return the inclusion proof for the leaf at ``index``."""
        return compute_inclusion_proof(self.leaves, index)

    def verify(self, leaf_hash: str, proof: list[ProofStep]) -> bool:
        """Verify an inclusion proof against this tree's root."""
        return verify_inclusion_proof(leaf_hash, proof, self.root)

    @property
    def size(self) -> int:
        """Number of leaves in the tree."""
        return len(self.leaves)
