"""
HMAC-SHA256 witness signatures over entry digests.

A witness signature shows that the server observed a digest at commit time
under a specific key. Keys are looked up by key id so that signatures made
before a rotation stay verifiable with the key that produced them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from journal_ledger.core.errors import SigningUnavailable

WITNESS_ALGORITHM = "HS256"


@dataclass(frozen=True)
class WitnessSignature:
    """Signature plus the metadata recorded alongside it."""

    signature: str
    algorithm: str
    kid: str


def _mac(secret: str, digest: str) -> hmac.HMAC:
    mac = hmac.HMAC(secret.encode("utf-8"), hashes.SHA256())
    mac.update(digest.encode("utf-8"))
    return mac


def sign_digest(digest: str, secret: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``digest`` under ``secret``."""
    return _mac(secret, digest).finalize().hex()


def verify_digest_signature(digest: str, signature: str, secret: str) -> bool:
    """Check ``signature`` against ``digest`` in constant time."""
    try:
        expected = bytes.fromhex(signature)
    except ValueError:
        return False
    try:
        _mac(secret, digest).verify(expected)
        return True
    except InvalidSignature:
        return False


class WitnessKeyring:
    """Immutable mapping of key ids to HMAC secrets, with one active id."""

    def __init__(self, keys: Mapping[str, str], active_kid: str) -> None:
        self._keys = dict(keys)
        self._active_kid = active_kid

    @property
    def active_kid(self) -> str:
        return self._active_kid

    def secret_for(self, kid: str) -> str:
        """Return the secret for ``kid``.

        Raises
        ------
        SigningUnavailable
            If ``kid`` is unknown or has an empty secret.
        """
        secret = self._keys.get(kid)
        if not secret:
            raise SigningUnavailable(kid)
        return secret

    def sign(self, digest: str) -> WitnessSignature:
        """Sign ``digest`` with the active key."""
        secret = self.secret_for(self._active_kid)
        return WitnessSignature(
            signature=sign_digest(digest, secret),
            algorithm=WITNESS_ALGORITHM,
            kid=self._active_kid,
        )

    def verify(self, digest: str, signature: str, kid: str, algorithm: str | None = None) -> bool:
        """Verify a stored signature with the key recorded at signing time."""
        if algorithm is not None and algorithm != WITNESS_ALGORITHM:
            return False
        return verify_digest_signature(digest, signature, self.secret_for(kid))
