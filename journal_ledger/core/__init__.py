"""Core configuration, logging, errors and cryptographic primitives."""
