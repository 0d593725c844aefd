"""Pydantic schemas for daily anchor and inclusion proof responses."""

from __future__ import annotations

from pydantic import Field

from journal_ledger.core.crypto.merkle import ProofStep, Side
from journal_ledger.modules.anchors.service import DailyAnchor, InclusionProof
from journal_ledger.modules.ledger.schemas import CamelModel

DIGEST_PATTERN = r"^[a-f0-9]{64}$"


class AnchorResponse(CamelModel):
    """Merkle root over one UTC day of entry digests.

    ``root`` is null for a day with no entries. ``closed`` is true once the
    day has fully elapsed and the root can no longer change.
    """

    date: str
    count: int
    root: str | None = None
    closed: bool

    @classmethod
    def from_anchor(cls, anchor: DailyAnchor) -> AnchorResponse:
        return cls(
            date=anchor.date.isoformat(),
            count=anchor.count,
            root=anchor.root,
            closed=anchor.closed,
        )


class ProofStepModel(CamelModel):
    side: Side
    hash: str = Field(pattern=DIGEST_PATTERN)

    def to_step(self) -> ProofStep:
        return ProofStep(side=self.side, hash=self.hash)


class ProofResponse(CamelModel):
    date: str
    digest: str
    root: str
    count: int
    proof: list[ProofStepModel]

    @classmethod
    def from_proof(cls, proof: InclusionProof) -> ProofResponse:
        return cls(
            date=proof.date.isoformat(),
            digest=proof.digest,
            root=proof.root,
            count=proof.count,
            proof=[ProofStepModel(side=step.side, hash=step.hash) for step in proof.proof],
        )


class ProofVerifyRequest(CamelModel):
    """A digest, a sibling path and the root it should fold into."""

    digest: str = Field(pattern=DIGEST_PATTERN)
    root: str = Field(pattern=DIGEST_PATTERN)
    proof: list[ProofStepModel]


class ProofVerifyResponse(CamelModel):
    ok: bool
    computed_root: str
