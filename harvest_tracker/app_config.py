# harvest_tracker/app_config.py

import os
from typing import Any, Dict


def load_config() -> Dict[str, Any]:
    """
    Load all runtime configuration from the environment in one place.
    """
    config: Dict[str, Any] = {}

    # ------------------------------
    # Verification links / QR
    # ------------------------------
    config["VERIFY_BASE_URL"] = os.getenv("VERIFY_BASE_URL", "https://blockchain-verify.com")
    config["QR_SERVICE_URL"] = os.getenv(
        "QR_SERVICE_URL",
        "https://api.qrserver.com/v1/create-qr-code/"
    )
    config["QR_SIZE"] = int(os.getenv("QR_SIZE", "200"))

    # ------------------------------
    # Field API
    # ------------------------------
    config["MAX_SESSIONS"] = int(os.getenv("MAX_SESSIONS", "1000"))

    # ------------------------------
    # Ledger backend: simulated | mongo | http | chain
    # ------------------------------
    config["LEDGER_BACKEND"] = (os.getenv("LEDGER_BACKEND", "simulated") or "simulated").strip().lower()
    config["LEDGER_SIM_DELAY"] = float(os.getenv("LEDGER_SIM_DELAY", "2.0"))

    config["MONGO_URI"] = os.getenv(
        "MONGO_URI",
        "mongodb://localhost:27017/crop_traceability_db"
    )

    config["LEDGER_API_BASE_URL"] = (os.getenv("LEDGER_API_BASE_URL", "") or "").rstrip("/")
    config["LEDGER_API_TIMEOUT"] = int(os.getenv("LEDGER_API_TIMEOUT", "20"))
    config["LEDGER_API_MAX_RETRIES"] = int(os.getenv("LEDGER_API_MAX_RETRIES", "3"))

    # ------------------------------
    # Blockchain Settings
    # ------------------------------
    config["CHAIN_RPC_URL"] = os.getenv("CHAIN_RPC_URL", "https://rpc-amoy.polygon.technology")
    config["CHAIN_CONTRACT_ADDRESS"] = os.getenv("CHAIN_CONTRACT_ADDRESS", "")
    config["CHAIN_ABI_FILE"] = os.getenv("CHAIN_ABI_FILE", "HarvestLedgerABI.json")
    config["CHAIN_PRIVATE_KEY"] = os.getenv("CHAIN_PRIVATE_KEY", "")
    config["CHAIN_ID"] = int(os.getenv("CHAIN_ID", "80002"))  # Polygon Amoy

    print("✓ Config Loaded Successfully")
    return config
