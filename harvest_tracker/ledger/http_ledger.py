# harvest_tracker/ledger/http_ledger.py

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from harvest_tracker.errors import SubmissionRejected
from harvest_tracker.ledger.base import run_blocking
from harvest_tracker.models.harvest_models import HarvestRecordModel, LedgerAck

# Retry these (typical transient / cold start / gateway)
RETRY_STATUS = {502, 503, 504}


def _safe_json(resp: requests.Response) -> Optional[Dict[str, Any]]:
    """
    Return JSON dict if response body is JSON, else None.
    Handles HTML gateway error pages safely.
    """
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else {"data": data}


class HttpLedgerClient:
    """
    POSTs frozen records to a remote ledger API at {base_url}/harvests.

    - retry on 502/503/504 and network errors with exponential backoff
    - 4xx (and any other non-retryable error) -> SubmissionRejected
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 20,
        max_retries: int = 3,
        backoff: float = 0.6,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ValueError("LEDGER_API_BASE_URL is not set")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff = backoff
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "HttpLedgerClient":
        return cls(
            config["LEDGER_API_BASE_URL"],
            timeout=config["LEDGER_API_TIMEOUT"],
            max_retries=config["LEDGER_API_MAX_RETRIES"],
        )

    def _sleep(self, attempt: int) -> None:
        if self.backoff > 0:
            time.sleep(self.backoff * (2 ** (attempt - 1)))

    def _post(self, record: HarvestRecordModel) -> LedgerAck:
        url = f"{self.base_url}/harvests"
        last_err: Optional[str] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                resp = self.session.post(url, json=record.ledger_payload(), timeout=self.timeout)
            except (requests.Timeout, requests.ConnectionError) as e:
                last_err = f"Network error on {url}: {e}"
                if attempt < self.max_retries:
                    self._sleep(attempt)
                continue

            if resp.status_code in RETRY_STATUS:
                last_err = f"Upstream error {resp.status_code} on {url}"
                if attempt < self.max_retries:
                    self._sleep(attempt)
                continue

            data = _safe_json(resp) or {}
            if resp.status_code >= 400:
                msg = data.get("message") or data.get("detail") or data.get("error") or "Request failed"
                raise SubmissionRejected(f"{msg} (HTTP {resp.status_code})")

            ref = data.get("ledgerRef") or data.get("id") or data.get("txHash")
            return LedgerAck(
                acknowledgedAt=datetime.now(timezone.utc),
                ledgerRef=str(ref) if ref is not None else None,
            )

        raise SubmissionRejected(f"Ledger API not responding after {self.max_retries} attempts. Last: {last_err}")

    async def submit_record(self, record: HarvestRecordModel) -> LedgerAck:
        return await run_blocking(self._post, record)
