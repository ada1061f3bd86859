# models.py
# Data contracts for the append-only ledger.
# No business logic lives here — pure schema and validation.

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from merkle_log.merkle import SUPPORTED_HASHES

HEX_DIGEST = r"^(?:[0-9a-fA-F]{2})+$"


def _normalize_hash_name(value: str) -> str:
    value = value.strip().lower()
    if value not in SUPPORTED_HASHES:
        raise ValueError(
            f"Unknown algorithm: {value!r} (expected one of {', '.join(SUPPORTED_HASHES)})"
        )
    return value


class Commitment(BaseModel):
    """Receipt returned after each append: where the record landed and the new root."""

    index: int = Field(..., ge=0, description="0-based position of the record.")
    leaf_hash: str = Field(..., pattern=HEX_DIGEST, description="Hex digest of the record.")
    root: str = Field(..., pattern=HEX_DIGEST, description="Hex root hash after the append.")
    size: int = Field(..., ge=1, description="Record count after the append.")


class ProofStep(BaseModel):
    """One level of an inclusion proof."""

    sibling: str = Field(..., pattern=HEX_DIGEST, description="Hex checksum of the sibling node.")
    side: Literal["left", "right"] = Field(..., description="Which side the sibling sits on.")


class InclusionProof(BaseModel):
    """Everything a verifier needs to recompute the root from one record."""

    index: int = Field(..., ge=0)
    tree_size: int = Field(..., ge=1)
    leaf_hash: str = Field(..., pattern=HEX_DIGEST)
    root: str = Field(..., pattern=HEX_DIGEST)
    path: list[ProofStep] = Field(default_factory=list)
    hash_name: str = "sha256"

    @field_validator("hash_name")
    @classmethod
    def _known_hash(cls, value: str) -> str:
        return _normalize_hash_name(value)


class AuditReport(BaseModel):
    """Outcome of a full structural walk of the tree."""

    size: int
    root: str
    peaks: list[int] = Field(default_factory=list, description="Peak sizes, largest first.")
    nodes_checked: int = 0


class LedgerConfig(BaseModel):
    """Runtime settings. Environment loading lives in ledger.load_config()."""

    hash_name: str = Field(default="sha256", description="Digest used for every checksum.")
    display: bool = Field(default=True, description="Emit rich terminal output.")

    @field_validator("hash_name")
    @classmethod
    def _known_hash(cls, value: str) -> str:
        return _normalize_hash_name(value)
