# run.py
# Entry point. Config and wiring only — no logic lives here.
#
# Digest and output are read from the environment (or .env):
#   MERKLE_LOG_HASH=sha256|sha512|sha3_256|blake2b|blake2s|blake3
#   MERKLE_LOG_DISPLAY=1|0

from merkle_log import display
from merkle_log.ledger import IntegrityError, Ledger

# Demo records — a short audit trail of mixed record types.
RECORDS = [
    b"genesis",
    "user alice logged in",
    {"event": "deploy", "service": "api", "version": "1.4.2"},
    {"event": "config_change", "key": "max_conn", "old": 100, "new": 250},
    "user alice logged out",
]

PROVE_INDEX = 2


def main() -> None:
    ledger = Ledger()

    for record in RECORDS:
        ledger.append(record)

    if ledger.config.display:
        display.tree_rendered(ledger.tree)

    proof = ledger.prove(PROVE_INDEX)
    try:
        ledger.require(RECORDS[PROVE_INDEX], proof)
        ledger.audit()
    except IntegrityError as exc:
        display.halt(str(exc))
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
