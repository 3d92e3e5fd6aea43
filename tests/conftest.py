"""
Deterministic stand-ins for the device capabilities and the ledger.
No timers, no network, no sensors.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from harvest_tracker.capabilities import ShareStatus
from harvest_tracker.errors import AcquisitionFailed, CapabilityUnavailable, SubmissionRejected
from harvest_tracker.models.harvest_models import LedgerAck

FIXED_NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


class FakeLocationProvider:

    def __init__(self, lat: float = 12.97, lng: float = 77.59, error: Optional[Exception] = None):
        self.lat = lat
        self.lng = lng
        self.error = error
        self.calls = 0
        self.gate: Optional[asyncio.Event] = None

    async def request_current_position(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.lat, self.lng


class FakeLedger:

    def __init__(self, reject: Optional[str] = None, error: Optional[Exception] = None):
        self.reject = reject
        self.error = error
        self.records: List = []
        self.gate: Optional[asyncio.Event] = None

    async def submit_record(self, record):
        self.records.append(record)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.reject:
            raise SubmissionRejected(self.reject)
        return LedgerAck(acknowledgedAt=FIXED_NOW, ledgerRef=f"fake-{len(self.records)}")


class FakeShare:

    def __init__(self, status: ShareStatus = ShareStatus.OK, error: Optional[Exception] = None):
        self.status = status
        self.error = error
        self.payloads: List[Dict[str, str]] = []

    async def share(self, payload):
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return self.status


class FakeClipboard:

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.copied: List[str] = []

    async def copy_text(self, text):
        if self.ok:
            self.copied.append(text)
        return self.ok


def provider_error(kind: str = "failed") -> Exception:
    if kind == "absent":
        return CapabilityUnavailable("no gps")
    return AcquisitionFailed("permission denied")


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def provider():
    return FakeLocationProvider()


@pytest.fixture
def test_config():
    return {
        "VERIFY_BASE_URL": "https://blockchain-verify.com",
        "QR_SERVICE_URL": "https://api.qrserver.com/v1/create-qr-code/",
        "QR_SIZE": 200,
        "LEDGER_BACKEND": "simulated",
        "LEDGER_SIM_DELAY": 0,
    }
