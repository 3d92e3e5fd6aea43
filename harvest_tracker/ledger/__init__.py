# harvest_tracker/ledger/__init__.py

from typing import Any, Dict

from harvest_tracker.ledger.base import LedgerClient, SimulatedLedgerClient


def build_ledger_client(config: Dict[str, Any]) -> LedgerClient:
    """Pick the ledger backend named by LEDGER_BACKEND."""
    backend = config.get("LEDGER_BACKEND", "simulated")

    if backend == "simulated":
        print(f"⚠️ Using simulated ledger (delay {config.get('LEDGER_SIM_DELAY', 2.0)}s)")
        return SimulatedLedgerClient(delay=config.get("LEDGER_SIM_DELAY", 2.0))

    if backend == "mongo":
        from harvest_tracker.ledger.mongo_ledger import MongoLedgerClient
        return MongoLedgerClient.from_config(config)

    if backend == "http":
        from harvest_tracker.ledger.http_ledger import HttpLedgerClient
        return HttpLedgerClient.from_config(config)

    if backend == "chain":
        from harvest_tracker.ledger.chain_ledger import ChainLedgerClient
        return ChainLedgerClient.from_config(config)

    raise ValueError(f"Unknown LEDGER_BACKEND: {backend}")


__all__ = ["LedgerClient", "SimulatedLedgerClient", "build_ledger_client"]
