"""Journal Ledger: tamper-evident journal entries with daily Merkle anchoring."""

__version__ = "0.1.0"
