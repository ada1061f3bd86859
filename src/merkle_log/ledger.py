# ledger.py
# Tamper-evident record ledger.
#
# The Ledger is the service seam around MerkleTree. It owns encoding,
# locking, receipts, inclusion proofs and the structural audit. The tree
# itself stays a single-writer data structure.
#
# Control flow:
#   record → encode → tree.append → Commitment
#   index  → tree.proof → InclusionProof → verify / require
#   audit  → full walk: checksums, arity, back-links, leaf order, peak shape
#
# All terminal output is delegated to display.py — no formatting here.

import json
import os
import threading
from typing import Any

from dotenv import load_dotenv

from merkle_log import display
from merkle_log.merkle import MerkleTree, Node, get_hasher, verify_proof
from merkle_log.models import (
    AuditReport,
    Commitment,
    InclusionProof,
    LedgerConfig,
    ProofStep,
)

load_dotenv()


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class IntegrityError(Exception):
    """Raised when a proof or the tree structure fails verification. Always fatal."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def encode_record(record: Any) -> bytes:
    """
    Bytes pass through untouched, str is UTF-8 encoded, anything else is
    serialized as deterministic JSON. sort_keys is non-negotiable.
    """
    if isinstance(record, (bytes, bytearray, memoryview)):
        return bytes(record)
    if isinstance(record, str):
        return record.encode("utf-8")
    return json.dumps(
        record, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def load_config() -> LedgerConfig:
    """Build a LedgerConfig from MERKLE_LOG_HASH and MERKLE_LOG_DISPLAY."""
    display_flag = os.getenv("MERKLE_LOG_DISPLAY", "1").strip().lower()
    return LedgerConfig(
        hash_name=os.getenv("MERKLE_LOG_HASH", "sha256"),
        display=display_flag not in ("0", "false", "no", "off"),
    )


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class Ledger:
    """
    Append-only ledger backed by an incrementally hashed Merkle tree.

    Every public method holds one re-entrant lock, so appends never
    interleave with proofs or audits on the same instance.

    Example:
        ledger = Ledger(LedgerConfig(display=False))
        receipt = ledger.append({"event": "login", "user": "alice"})
        proof = ledger.prove(receipt.index)
        ledger.verify({"event": "login", "user": "alice"}, proof)  # True
    """

    def __init__(self, config: LedgerConfig | None = None) -> None:
        self._config = config or load_config()
        self._hasher = get_hasher(self._config.hash_name)
        self._tree = MerkleTree(self._hasher)
        self._lock = threading.RLock()
        if self._config.display:
            display.banner(self._config.hash_name)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def tree(self) -> MerkleTree:
        return self._tree

    @property
    def size(self) -> int:
        with self._lock:
            return self._tree.record_count()

    @property
    def root(self) -> str:
        with self._lock:
            return self._tree.root

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def append(self, record: Any) -> Commitment:
        data = encode_record(record)
        with self._lock:
            self._tree.append(data)
            index = self._tree.record_count() - 1
            commitment = Commitment(
                index=index,
                leaf_hash=self._tree.leaf_hash(index).hex(),
                root=self._tree.root,
                size=index + 1,
            )
        if self._config.display:
            display.record_appended(commitment)
        return commitment

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    def prove(self, index: int) -> InclusionProof:
        """
        Build an inclusion proof for record `index` against the current root.
        Raises IndexError if the index is out of range.
        """
        with self._lock:
            path = self._tree.proof(index)
            proof = InclusionProof(
                index=index,
                tree_size=self._tree.record_count(),
                leaf_hash=self._tree.leaf_hash(index).hex(),
                root=self._tree.root,
                path=[ProofStep(sibling=sibling.hex(), side=side) for sibling, side in path],
                hash_name=self._config.hash_name,
            )
        if self._config.display:
            display.proof_generated(proof)
        return proof

    def verify(self, record: Any, proof: InclusionProof) -> bool:
        """
        Recompute the proof's root from `record` alone. Does not consult the
        tree, so a proof taken at an older size still verifies against its
        own root. A malformed proof (bad hex, unknown digest) is a failed
        proof, never an exception.
        """
        try:
            hasher = get_hasher(proof.hash_name.strip().lower())
            path = [(bytes.fromhex(step.sibling), step.side) for step in proof.path]
            root = bytes.fromhex(proof.root)
        except ValueError:
            ok = False
        else:
            ok = verify_proof(encode_record(record), path, root, hasher)
        if self._config.display:
            if ok:
                display.proof_verified(proof)
            else:
                display.proof_failed(proof)
        return ok

    def require(self, record: Any, proof: InclusionProof) -> None:
        """Like verify(), but raises IntegrityError instead of returning False."""
        if not self.verify(record, proof):
            raise IntegrityError(
                f"Inclusion proof for index {proof.index} does not reproduce root "
                f"{proof.root[:16]}… — record or proof has been altered."
            )

    def verify_leaf(self, index: int, record: Any) -> bool:
        with self._lock:
            return self._tree.verify_leaf(index, encode_record(record))

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def audit(self) -> AuditReport:
        """
        Walk the entire tree and check every structural invariant.

        Raises IntegrityError on the first violation. A failure here means
        the implementation is broken, not that a caller misused it.
        """
        with self._lock:
            try:
                report = self._audit()
            except IntegrityError as exc:
                if self._config.display:
                    display.audit_fail(str(exc))
                raise
        if self._config.display:
            display.audit_pass(report)
        return report

    def _audit(self) -> AuditReport:
        tree = self._tree
        root = tree.root_node
        size = tree.record_count()

        if root is None:
            if size:
                raise IntegrityError(f"Tree has no root but {size} leaf record(s).")
            if tree.root_hash() != self._hasher(b""):
                raise IntegrityError("Empty tree root is not H(b'').")
            return AuditReport(size=0, root=tree.root)

        if root.parent is not None:
            raise IntegrityError("Root node has a parent link.")

        checked = 0
        leaves: list[Node] = []
        for node in tree.iter_nodes():
            checked += 1
            if node.is_leaf:
                leaves.append(node)
                continue
            if node.left is None or node.right is None:
                raise IntegrityError("Internal node with a single child.")
            for child in (node.left, node.right):
                if child.parent is not node:
                    raise IntegrityError("Child back-link does not point at its parent.")
            if node.checksum != self._hasher(node.left.checksum + node.right.checksum):
                raise IntegrityError("Stale checksum on internal node.")

        ordered = [tree.leaf_node(i) for i in range(size)]
        if len(leaves) != size or any(a is not b for a, b in zip(leaves, ordered)):
            raise IntegrityError("Leaf sequence does not match tree leaf order.")

        peaks = tree.peaks()
        sizes = [count for count, _ in peaks]
        expected = [1 << bit for bit in reversed(range(size.bit_length())) if size >> bit & 1]
        if sizes != expected:
            raise IntegrityError(f"Peak sizes {sizes} do not match binary decomposition of {size}.")
        for count, peak in peaks:
            if _complete_size(peak) != count:
                raise IntegrityError(f"Peak of expected size {count} is not a complete subtree.")

        return AuditReport(
            size=size,
            root=tree.root,
            peaks=expected,
            nodes_checked=checked,
        )


def _complete_size(node: Node) -> int:
    """Leaf count of a perfectly balanced subtree, or -1 if unbalanced."""
    if node.is_leaf:
        return 1
    left = _complete_size(node.left)
    right = _complete_size(node.right)
    if left < 0 or left != right:
        return -1
    return left + right
