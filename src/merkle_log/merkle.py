# merkle.py
# Append-only binary Merkle tree.
#
# Shape: the tree is a chain of complete subtrees ("peaks") hanging off the
# right spine, one per set bit of the leaf count, largest nearest the root.
# Each append merges the new leaf with the smallest peak, the same way a
# binary counter carries, so only the path from the merge point to the root
# is rehashed.
#
# Leaf  = H(record)
# Node  = H(left.checksum + right.checksum)
# Empty = H(b"")

import hashlib
import weakref
from typing import Callable, Iterator

Hasher = Callable[[bytes], bytes]

SUPPORTED_HASHES = ("sha256", "sha512", "sha3_256", "blake2b", "blake2s", "blake3")


# ---------------------------------------------------------------------------
# Hash primitive
# ---------------------------------------------------------------------------


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def _blake3(data: bytes) -> bytes:
    from blake3 import blake3
    return blake3(data).digest()


def get_hasher(name: str) -> Hasher:
    """Resolve a digest name to a bytes -> bytes hash function.

    Raises:
        ValueError: If the name is not one of SUPPORTED_HASHES.
    """
    if name == "sha256":
        return sha256
    if name == "blake3":
        return _blake3
    if name in SUPPORTED_HASHES:
        return lambda data: hashlib.new(name, data).digest()
    raise ValueError(f"Unknown algorithm: {name}")


# ---------------------------------------------------------------------------
# Bit helpers (exact integer arithmetic only)
# ---------------------------------------------------------------------------


def _is_power_of_two(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0


def _largest_power_of_two(n: int) -> int:
    """Largest power of two <= n, for n >= 1."""
    return 1 << (n.bit_length() - 1)


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------


class Node:
    """
    A vertex of the tree: a leaf (no children) or an internal node
    (exactly two children).

    Children are owned. The parent link is a weak reference used only to
    walk upwards when rehashing.
    """

    __slots__ = ("left", "right", "checksum", "_parent", "__weakref__")

    def __init__(
        self,
        checksum: bytes = b"",
        left: "Node | None" = None,
        right: "Node | None" = None,
    ) -> None:
        self.left = left
        self.right = right
        self.checksum = checksum
        self._parent: "weakref.ref[Node] | None" = None

    @property
    def parent(self) -> "Node | None":
        return self._parent() if self._parent is not None else None

    @parent.setter
    def parent(self, node: "Node | None") -> None:
        self._parent = weakref.ref(node) if node is not None else None

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def replace_child(self, old: "Node", new: "Node") -> None:
        """Point whichever child slot holds `old` (by identity) at `new`."""
        if self.left is old:
            self.left = new
        elif self.right is old:
            self.right = new
        else:
            raise ValueError("Node is not a child of this parent.")
        new.parent = self

    def rehash(self, hasher: Hasher) -> None:
        self.checksum = hasher(self.left.checksum + self.right.checksum)


# ---------------------------------------------------------------------------
# MerkleTree
# ---------------------------------------------------------------------------


class MerkleTree:
    """
    Incrementally built binary Merkle tree over opaque byte records.

    Not safe for concurrent mutation: append() re-links several nodes and
    must not interleave with another append or with readers. Wrap it (see
    Ledger) when more than one thread touches the same tree.

    Example:
        tree = MerkleTree()
        tree.append(b"r1")
        tree.append(b"r2")
        tree.root_hash() == sha256(sha256(b"r1") + sha256(b"r2"))
    """

    def __init__(self, hasher: Hasher = sha256) -> None:
        self._hasher = hasher
        self._root: Node | None = None
        self._leaves: list[Node] = []

    # ------------------------------------------------------------------
    # Growth
    # ------------------------------------------------------------------

    def append(self, record: bytes) -> None:
        """Add `record` as the next leaf and refresh every affected checksum."""
        leaf = Node(self._hasher(record))

        if self._root is None:
            self._root = leaf
            self._leaves.append(leaf)
            return

        # Smallest peak: strip the high bits of the count, stepping right,
        # until what remains is a single power of two.
        remaining = len(self._leaves)
        peak = self._root
        while not _is_power_of_two(remaining):
            remaining -= _largest_power_of_two(remaining)
            peak = peak.right

        grandparent = peak.parent
        merged = Node(left=peak, right=leaf)
        peak.parent = merged
        leaf.parent = merged

        if grandparent is None:
            self._root = merged
        else:
            grandparent.replace_child(peak, merged)

        node: Node | None = merged
        while node is not None:
            node.rehash(self._hasher)
            node = node.parent

        self._leaves.append(leaf)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def record_count(self) -> int:
        return len(self._leaves)

    def __len__(self) -> int:
        return len(self._leaves)

    def root_hash(self) -> bytes:
        if self._root is None:
            return self._hasher(b"")
        return self._root.checksum

    @property
    def root(self) -> str:
        """Hex-encoded root hash."""
        return self.root_hash().hex()

    @property
    def root_node(self) -> Node | None:
        return self._root

    @property
    def hasher(self) -> Hasher:
        return self._hasher

    @property
    def leaves(self) -> list[str]:
        """Hex leaf hashes in insertion order (a copy)."""
        return [leaf.checksum.hex() for leaf in self._leaves]

    def leaf_hash(self, index: int) -> bytes:
        if index < 0 or index >= len(self._leaves):
            raise IndexError(f"Leaf index {index} out of range for {len(self._leaves)} record(s).")
        return self._leaves[index].checksum

    def leaf_node(self, index: int) -> Node:
        if index < 0 or index >= len(self._leaves):
            raise IndexError(f"Leaf index {index} out of range for {len(self._leaves)} record(s).")
        return self._leaves[index]

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def peaks(self) -> list[tuple[int, Node]]:
        """
        Complete subtrees along the right spine as (leaf count, node),
        largest first. The counts are the set bits of len(self).
        """
        result: list[tuple[int, Node]] = []
        remaining = len(self._leaves)
        node = self._root
        while remaining and not _is_power_of_two(remaining):
            size = _largest_power_of_two(remaining)
            result.append((size, node.left))
            remaining -= size
            node = node.right
        if remaining:
            result.append((remaining, node))
        return result

    def iter_nodes(self) -> Iterator[Node]:
        """Every node reachable from the root, pre-order, left before right."""
        stack = [self._root] if self._root is not None else []
        while stack:
            node = stack.pop()
            yield node
            if node.right is not None:
                stack.append(node.right)
            if node.left is not None:
                stack.append(node.left)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_leaf(self, index: int, record: bytes) -> bool:
        """
        Recompute the leaf hash for `record` and compare against the stored
        value. Returns False on any mismatch or out-of-bounds index.
        """
        if index < 0 or index >= len(self._leaves):
            return False
        return self._hasher(record) == self._leaves[index].checksum

    def proof(self, index: int) -> list[tuple[bytes, str]]:
        """
        Sibling checksums from leaf `index` up to the root, each paired with
        the side the sibling sits on. Valid against the current root only.
        """
        node = self.leaf_node(index)
        path: list[tuple[bytes, str]] = []
        parent = node.parent
        while parent is not None:
            if parent.left is node:
                path.append((parent.right.checksum, "right"))
            else:
                path.append((parent.left.checksum, "left"))
            node = parent
            parent = node.parent
        return path


def verify_proof(
    record: bytes,
    path: list[tuple[bytes, str]],
    root: bytes,
    hasher: Hasher = sha256,
) -> bool:
    """Fold H(record) up `path` and compare the result with `root`."""
    current = hasher(record)
    for sibling, side in path:
        if side == "left":
            current = hasher(sibling + current)
        elif side == "right":
            current = hasher(current + sibling)
        else:
            return False
    return current == root
