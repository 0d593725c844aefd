"""
Cryptographic primitives for tamper-evident journal entries.

Pure library modules:
- **canonicalization**: fixed-order canonical form and SHA-256 entry digest
- **signing**: HMAC-SHA256 witness signatures with a rotatable keyring
- **merkle**: Merkle tree construction and inclusion proof verification
"""

from journal_ledger.core.crypto.canonicalization import (
    CANONICALIZATION_ENTRY_V1,
    ENTRY_FIELD_ORDER,
    SHA256_ALGORITHM,
    EntryLocation,
    canonicalize_entry,
    compute_entry_digest,
    format_timestamp,
    truncate_to_millis,
)
from journal_ledger.core.crypto.merkle import (
    MerkleTree,
    ProofStep,
    compute_inclusion_proof,
    compute_merkle_root,
    replay_inclusion_proof,
    verify_inclusion_proof,
)
from journal_ledger.core.crypto.signing import (
    WITNESS_ALGORITHM,
    WitnessKeyring,
    WitnessSignature,
    sign_digest,
    verify_digest_signature,
)

__all__ = [
    "CANONICALIZATION_ENTRY_V1",
    "ENTRY_FIELD_ORDER",
    "SHA256_ALGORITHM",
    "EntryLocation",
    "canonicalize_entry",
    "compute_entry_digest",
    "format_timestamp",
    "truncate_to_millis",
    "MerkleTree",
    "ProofStep",
    "compute_merkle_root",
    "compute_inclusion_proof",
    "replay_inclusion_proof",
    "verify_inclusion_proof",
    "WITNESS_ALGORITHM",
    "WitnessKeyring",
    "WitnessSignature",
    "sign_digest",
    "verify_digest_signature",
]
