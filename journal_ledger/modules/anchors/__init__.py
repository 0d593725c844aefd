"""Daily Merkle anchors and inclusion proofs."""
