# harvest_tracker/app.py
# Run locally:  uvicorn harvest_tracker.app:create_app --factory --reload

from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from harvest_tracker import __version__
from harvest_tracker.api.harvest_api import SessionRegistry, router as harvest_router
from harvest_tracker.app_config import load_config
from harvest_tracker.ledger import LedgerClient, build_ledger_client
from harvest_tracker.services.harvest_session import HarvestSession
from harvest_tracker.services.verification_links import VerificationLinkGenerator


def create_app(config: Optional[Dict[str, Any]] = None, ledger: Optional[LedgerClient] = None) -> FastAPI:
    app = FastAPI(title="Harvest Tracker Field API", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------
    # Config & ledger
    # -------------------------
    config = config or load_config()
    ledger = ledger or build_ledger_client(config)
    links = VerificationLinkGenerator.from_config(config)

    app.state.config = config
    app.state.sessions = SessionRegistry(
        lambda: HarvestSession(ledger, links),
        max_sessions=config.get("MAX_SESSIONS", 1000),
    )

    # -------------------------
    # Routers
    # -------------------------
    app.include_router(harvest_router)

    return app


# Local run only
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
