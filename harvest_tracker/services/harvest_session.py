# harvest_tracker/services/harvest_session.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from harvest_tracker.capabilities import LocationProvider
from harvest_tracker.ledger.base import LedgerClient
from harvest_tracker.services.harvest_flow import BatchIdFactory, HarvestSubmissionFlow, default_batch_ids
from harvest_tracker.services.location_capture import LocationCapture, LocationFailed
from harvest_tracker.services.verification_links import ShareReport, VerificationLinkGenerator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HarvestSession:
    """
    One field entry screen: LocationCapture feeding a HarvestSubmissionFlow,
    with the VerificationLinkGenerator used once the batch is confirmed.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        links: VerificationLinkGenerator,
        provider: Optional[LocationProvider] = None,
        batch_ids: BatchIdFactory = default_batch_ids,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.location = LocationCapture(provider, clock=clock)
        self.flow = HarvestSubmissionFlow(ledger, self.location, batch_ids=batch_ids, clock=clock)
        self.links = links

    async def share_batch(self) -> ShareReport:
        """Share the confirmed batch link. Never changes the flow state."""
        result = self.flow.result
        if result is None:
            return ShareReport(ok=False, channel="none", url="", error="no confirmed batch to share")
        return await self.links.share(result.batchIdentifier)

    def snapshot(self) -> Dict[str, Any]:
        """Everything the presentation layer renders, as plain JSON-able data."""
        flow = self.flow
        loc_state = self.location.state
        fix = self.location.last_fix

        if flow.draft is not None:
            form = flow.draft.to_dict()
        else:
            form = flow.record.model_dump(mode="json")

        out: Dict[str, Any] = {
            "state": flow.state.name,
            "canSubmit": flow.can_submit(),
            "form": form,
            "location": {
                "state": loc_state.name,
                "fix": fix.model_dump(mode="json") if fix else None,
                "error": str(loc_state.error) if isinstance(loc_state, LocationFailed) else None,
                "capabilityAbsent": loc_state.capability_absent if isinstance(loc_state, LocationFailed) else False,
            },
            "lastError": None,
            "result": None,
            "links": None,
        }

        if flow.last_error is not None:
            out["lastError"] = {"type": type(flow.last_error).__name__, "message": str(flow.last_error)}

        result = flow.result
        if result is not None:
            out["result"] = result.model_dump(mode="json")
            out["links"] = self.links.links_for(result.batchIdentifier)

        return out
