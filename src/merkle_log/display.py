# display.py
# All terminal output for the merkle-log ledger.
#
# This module owns presentation entirely. ledger.py never formats strings —
# it calls named functions here. Swap this file to change the entire UI.
#
# Colour language:
#   cyan    — ledger events
#   yellow  — hashes and proofs
#   green   — success / confirmed
#   red     — failures, halts, integrity breaches

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from merkle_log.merkle import MerkleTree, Node
from merkle_log.models import AuditReport, Commitment, InclusionProof

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _short(digest: str, head: int = 12, tail: int = 6) -> str:
    if len(digest) <= head + tail + 1:
        return digest
    return f"{digest[:head]}…{digest[-tail:]}"


# ---------------------------------------------------------------------------
# Ledger entry
# ---------------------------------------------------------------------------


def banner(hash_name: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]merkle-log[/bold cyan]\n"
            "[dim]Append-only ledger over an incrementally hashed Merkle tree[/dim]\n\n"
            f"[dim]Digest :[/dim] [white]{hash_name}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def record_appended(commitment: Commitment) -> None:
    console.print(
        _label("APPEND", "cyan"),
        f"[cyan] #{commitment.index}[/cyan]"
        f"  [dim]leaf[/dim] [yellow]{_short(commitment.leaf_hash)}[/yellow]"
        f"  [dim]root[/dim] [bold yellow]{_short(commitment.root)}[/bold yellow]"
        f"  [dim]size={commitment.size}[/dim]",
    )


# ---------------------------------------------------------------------------
# Tree graph
# ---------------------------------------------------------------------------


def _add_subtree(branch: Tree, node: Node, leaf_index: dict[int, int]) -> None:
    if node.is_leaf:
        branch.add(f"[green]leaf #{leaf_index[id(node)]}[/green] [dim]{_short(node.checksum.hex())}[/dim]")
        return
    child = branch.add(f"[yellow]node[/yellow] [dim]{_short(node.checksum.hex())}[/dim]")
    _add_subtree(child, node.left, leaf_index)
    _add_subtree(child, node.right, leaf_index)


def tree_graph(tree: MerkleTree) -> Tree:
    """Render the node graph as a rich Tree, left child listed first."""
    graph = Tree(
        f"[bold green]Merkle root {_short(tree.root)}[/bold green] "
        f"[dim]({tree.record_count()} record(s))[/dim]"
    )
    root = tree.root_node
    if root is None:
        graph.add("[dim]empty — root is H(b'')[/dim]")
        return graph
    leaf_index = {id(tree.leaf_node(i)): i for i in range(tree.record_count())}
    if root.is_leaf:
        _add_subtree(graph, root, leaf_index)
    else:
        _add_subtree(graph, root.left, leaf_index)
        _add_subtree(graph, root.right, leaf_index)
    return graph


def tree_rendered(tree: MerkleTree) -> None:
    console.print()
    console.print(tree_graph(tree))


# ---------------------------------------------------------------------------
# Proofs
# ---------------------------------------------------------------------------


def proof_generated(proof: InclusionProof) -> None:
    console.print()
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold yellow", padding=(0, 1))
    table.add_column("Level", justify="center", width=6)
    table.add_column("Side", justify="center", width=6)
    table.add_column(f"Sibling ({proof.hash_name})", style="yellow")

    for level, step in enumerate(proof.path):
        table.add_row(str(level), step.side, step.sibling)

    console.print(
        Panel(
            table,
            title=_label(f"INCLUSION PROOF #{proof.index}", "yellow"),
            subtitle=f"[dim]root {_short(proof.root)} @ size {proof.tree_size}[/dim]",
            border_style="yellow",
            padding=(0, 1),
        )
    )


def proof_verified(proof: InclusionProof) -> None:
    console.print(
        f"  [bold green]✓ Proof verified[/bold green]  "
        f"[dim]#{proof.index} → {_short(proof.root)}[/dim]"
    )


def proof_failed(proof: InclusionProof) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold red]Proof for record #{proof.index} does not reproduce the root.[/bold red]\n"
            f"[white]Expected {proof.root}[/white]\n"
            "[dim]Either the record or the proof was altered after it was issued.[/dim]",
            title=_label("PROOF MISMATCH ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


def audit_pass(report: AuditReport) -> None:
    console.print()
    console.print(Rule("[green]AUDIT[/green]", style="green"))
    peaks = " + ".join(str(p) for p in report.peaks) or "0"
    console.print(
        f"  [bold green]✓ Structure verified[/bold green]  "
        f"[dim]{report.nodes_checked} node(s), size {report.size} = {peaks}[/dim]\n"
        f"  [dim]root[/dim] [yellow]{report.root}[/yellow]"
    )


def audit_fail(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold red]{reason}[/bold red]\n"
            "[dim]The tree violates a structural invariant. This is a bug, not bad input.[/dim]",
            title=_label("AUDIT FAILED ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{reason}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
