"""Entry commit, verification and tombstoning."""
