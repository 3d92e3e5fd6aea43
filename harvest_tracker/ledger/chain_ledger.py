# harvest_tracker/ledger/chain_ledger.py
"""
EVM ledger backend.

Contract function expected in the ABI:
    recordHarvest(operatorId, cropType, quantityGrams, latE6, lngE6, capturedAt)
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from harvest_tracker.errors import SubmissionRejected
from harvest_tracker.ledger.base import run_blocking
from harvest_tracker.models.harvest_models import HarvestRecordModel, LedgerAck


def _normalize_pk(pk: str) -> str:
    pk = pk.strip().replace(" ", "").replace("\n", "").replace("\r", "")
    hexpart = pk[2:] if pk.lower().startswith("0x") else pk
    if not re.fullmatch(r"[0-9a-fA-F]{64}", hexpart):
        raise ValueError("Private key must be 64 hex chars")
    return "0x" + hexpart


def _e6(value: float) -> int:
    return int(round(value * 1_000_000))


def harvest_call_args(record: HarvestRecordModel) -> Tuple[Any, ...]:
    """Contract arguments; decimals are scaled to integers (kg -> g, degrees -> 1e-6)."""
    loc = record.location
    return (
        record.operatorId,
        record.cropType.value,
        int(round(record.quantityKg * 1000)),
        _e6(loc.latitude) if loc else 0,
        _e6(loc.longitude) if loc else 0,
        int(record.capturedAt.timestamp()),
    )


class ChainLedgerClient:

    def __init__(self, web3: Any, contract: Any, account: Any, chain_id: int = 80002):
        self.web3 = web3
        self.contract = contract
        self.account = account
        self.chain_id = chain_id

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ChainLedgerClient":
        web3 = Web3(Web3.HTTPProvider(config["CHAIN_RPC_URL"], request_kwargs={"timeout": 30}))
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        account = web3.eth.account.from_key(_normalize_pk(config["CHAIN_PRIVATE_KEY"]))
        with open(config["CHAIN_ABI_FILE"], "r") as f:
            abi = json.load(f)
        contract = web3.eth.contract(
            address=Web3.to_checksum_address(config["CHAIN_CONTRACT_ADDRESS"]),
            abi=abi,
        )
        print("✓ Chain ledger wired")
        print(f"  • Account: {account.address}")
        print(f"  • Contract: {contract.address}")
        return cls(web3, contract, account, chain_id=config["CHAIN_ID"])

    def suggest_fees(self, multiplier: float = 1.25, min_prio_gwei: int = 25) -> Tuple[int, int]:
        """Return (priority_tip_wei, max_fee_wei) using fee_history."""
        hist = self.web3.eth.fee_history(5, "latest", [10, 50, 90])
        base = hist.get("baseFeePerGas", [0])[-1] or self.web3.to_wei(30, "gwei")
        tips = [r[-1] for r in hist.get("reward", []) if r]
        prio = max(tips) if tips else self.web3.to_wei(min_prio_gwei, "gwei")
        return prio, int(base * multiplier + prio)

    def _send(self, record: HarvestRecordModel) -> LedgerAck:
        try:
            fn = self.contract.functions.recordHarvest(*harvest_call_args(record))
            gas_est = fn.estimate_gas({"from": self.account.address})
            prio, max_fee = self.suggest_fees()

            tx = fn.build_transaction(
                {
                    "from": self.account.address,
                    "nonce": self.web3.eth.get_transaction_count(self.account.address, "pending"),
                    "chainId": self.chain_id,
                    "gas": int(gas_est * 1.20),
                    "maxPriorityFeePerGas": prio,
                    "maxFeePerGas": max_fee,
                }
            )
            signed = self.account.sign_transaction(tx)
            tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=180)
        except Exception as e:
            raise SubmissionRejected(f"Blockchain error: {e}") from e

        if not receipt or receipt.status != 1:
            raise SubmissionRejected("Blockchain transaction failed (receipt.status != 1)")

        return LedgerAck(acknowledgedAt=datetime.now(timezone.utc), ledgerRef=self.web3.to_hex(tx_hash))

    async def submit_record(self, record: HarvestRecordModel) -> LedgerAck:
        return await run_blocking(self._send, record)
