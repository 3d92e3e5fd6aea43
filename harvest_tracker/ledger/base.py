# harvest_tracker/ledger/base.py

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, List, Optional, Protocol

from harvest_tracker.errors import SubmissionRejected
from harvest_tracker.models.harvest_models import HarvestRecordModel, LedgerAck


class LedgerClient(Protocol):
    async def submit_record(self, record: HarvestRecordModel) -> LedgerAck:
        """
        Durably record a frozen harvest record.
        Raises SubmissionRejected when the ledger refuses it; any other
        exception is treated by the flow as a network failure.
        """
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def run_blocking(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking client call (pymongo, requests, web3) off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(fn, *args, **kwargs))


class SimulatedLedgerClient:
    """
    In-process ledger for demos and local development: waits `delay`
    seconds, then acknowledges (or rejects with `reject_reason`).
    """

    def __init__(self, delay: float = 2.0, reject_reason: Optional[str] = None):
        self.delay = delay
        self.reject_reason = reject_reason
        self.records: List[HarvestRecordModel] = []

    async def submit_record(self, record: HarvestRecordModel) -> LedgerAck:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.reject_reason:
            raise SubmissionRejected(self.reject_reason)
        self.records.append(record)
        return LedgerAck(acknowledgedAt=_utcnow(), ledgerRef=f"sim-{len(self.records)}")
