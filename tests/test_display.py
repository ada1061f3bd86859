import pytest

from merkle_log import display, run
from merkle_log.ledger import Ledger
from merkle_log.merkle import MerkleTree
from merkle_log.models import LedgerConfig

# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render(fn, *args) -> str:
    with display.console.capture() as capture:
        fn(*args)
    return capture.get()

def test_tree_graph_lists_every_leaf():
    tree = MerkleTree()
    for i in range(5):
        tree.append(str(i).encode())
    out = render(display.tree_rendered, tree)
    for i in range(5):
        assert f"leaf #{i}" in out
    assert "5 record(s)" in out

def test_tree_graph_empty():
    out = render(display.tree_rendered, MerkleTree())
    assert "empty" in out

def test_proof_and_audit_panels():
    ledger = Ledger(LedgerConfig(display=False))
    for r in ("a", "b", "c"):
        ledger.append(r)
    proof = ledger.prove(2)
    assert "INCLUSION PROOF #2" in render(display.proof_generated, proof)
    assert "left" in render(display.proof_generated, proof)
    assert "Structure verified" in render(display.audit_pass, ledger.audit())

def test_short_keeps_short_digests():
    assert display._short("abcd") == "abcd"
    assert display._short("a" * 64) == "a" * 12 + "…" + "a" * 6


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def test_run_main_prints_tree_when_display_enabled(monkeypatch):
    monkeypatch.setenv("MERKLE_LOG_DISPLAY", "1")
    monkeypatch.setenv("MERKLE_LOG_HASH", "sha256")
    out = render(run.main)
    assert f"{len(run.RECORDS)} record(s)" in out

def test_run_main_is_silent_when_display_disabled(monkeypatch):
    monkeypatch.setenv("MERKLE_LOG_DISPLAY", "0")
    monkeypatch.setenv("MERKLE_LOG_HASH", "sha256")
    assert render(run.main) == ""

def test_run_main_halts_on_integrity_error(monkeypatch):
    monkeypatch.setenv("MERKLE_LOG_DISPLAY", "0")
    monkeypatch.setattr(Ledger, "verify", lambda self, record, proof: False)
    with pytest.raises(SystemExit):
        render(run.main)
