# harvest_tracker/ledger/mongo_ledger.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from harvest_tracker.errors import SubmissionRejected
from harvest_tracker.ledger.base import run_blocking
from harvest_tracker.models.harvest_models import HarvestRecordModel, LedgerAck


class MongoLedgerClient:
    """Stores each frozen record as one document in `harvest_batches`."""

    def __init__(self, collection: Any):
        self.collection = collection

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "MongoLedgerClient":
        client = MongoClient(config["MONGO_URI"])
        db = client.get_database()
        print(f"✅ Mongo ledger wired ({db.name}.harvest_batches)")
        return cls(db["harvest_batches"])

    def _insert(self, record: HarvestRecordModel) -> LedgerAck:
        now = datetime.now(timezone.utc)
        doc = {
            **record.ledger_payload(),
            "status": "harvest_registered",
            "created_at": now,
            "updated_at": now,
        }
        try:
            res = self.collection.insert_one(doc)
        except PyMongoError as e:
            raise SubmissionRejected(f"Mongo insert failed: {e}") from e
        return LedgerAck(acknowledgedAt=now, ledgerRef=str(res.inserted_id))

    async def submit_record(self, record: HarvestRecordModel) -> LedgerAck:
        return await run_blocking(self._insert, record)
