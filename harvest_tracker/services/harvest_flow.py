# harvest_tracker/services/harvest_flow.py
"""
Harvest submission lifecycle.

    editing --submit()--> submitting --ack--> confirmed --reset()--> editing
                              |
                              +--reject / network error--> editing

The record is edited as a mutable HarvestDraft and frozen into a validated
HarvestRecordModel the moment submission starts. The ledger call is the only
await in the flow; while it is outstanding every other mutating operation is
refused.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, ClassVar, Optional, Set, Union

from pydantic import ValidationError

from harvest_tracker.errors import HarvestTrackerError, SubmissionRejected, ValidationFailed
from harvest_tracker.ledger.base import LedgerClient
from harvest_tracker.models.harvest_models import (
    EDITABLE_FIELDS,
    CropType,
    HarvestDraft,
    HarvestRecordModel,
    LocationFix,
    SubmissionResult,
    coerce_quantity,
)
from harvest_tracker.services.location_capture import LocationCapture


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -------------------------------------------------------------------
# Batch identifiers
# -------------------------------------------------------------------
class BatchIdFactory:
    """
    BATCH-<ack time>-<random suffix>, never handed out twice by one factory.
    Only suffixes for the current stamp are remembered; ids with different
    stamps cannot collide.
    These are opaque session tokens, not content hashes: identical records
    still get different identifiers.
    """

    def __init__(self):
        self._stamp = ""
        self._issued: Set[str] = set()

    def issue(self, acknowledged_at: datetime) -> str:
        stamp = acknowledged_at.strftime("%Y%m%d%H%M%S")
        if stamp != self._stamp:
            self._stamp = stamp
            self._issued = set()
        while True:
            candidate = f"BATCH-{stamp}-{os.urandom(3).hex().upper()}"
            if candidate not in self._issued:
                self._issued.add(candidate)
                return candidate


default_batch_ids = BatchIdFactory()


# -------------------------------------------------------------------
# States
# -------------------------------------------------------------------
@dataclass(frozen=True)
class Editing:
    draft: HarvestDraft
    name: ClassVar[str] = "editing"


@dataclass(frozen=True)
class Submitting:
    record: HarvestRecordModel
    draft: HarvestDraft
    name: ClassVar[str] = "submitting"


@dataclass(frozen=True)
class Confirmed:
    record: HarvestRecordModel
    result: SubmissionResult
    name: ClassVar[str] = "confirmed"


FlowState = Union[Editing, Submitting, Confirmed]


class HarvestSubmissionFlow:

    def __init__(
        self,
        ledger: LedgerClient,
        location: LocationCapture,
        batch_ids: BatchIdFactory = default_batch_ids,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._ledger = ledger
        self._location = location
        self._batch_ids = batch_ids
        self._clock = clock

        self.state: FlowState = Editing(draft=self._new_draft())
        self.last_error: Optional[HarvestTrackerError] = None

        location.on_fix(self._take_fix)
        location.on_failure(self._drop_fix)

    # ---------------------------------------------------
    # Read side
    # ---------------------------------------------------
    @property
    def location(self) -> LocationCapture:
        return self._location

    @property
    def draft(self) -> Optional[HarvestDraft]:
        if isinstance(self.state, (Editing, Submitting)):
            return self.state.draft
        return None

    @property
    def record(self) -> Optional[HarvestRecordModel]:
        if isinstance(self.state, (Submitting, Confirmed)):
            return self.state.record
        return None

    @property
    def result(self) -> Optional[SubmissionResult]:
        if isinstance(self.state, Confirmed):
            return self.state.result
        return None

    def can_submit(self) -> bool:
        return isinstance(self.state, Editing) and self.state.draft.is_complete()

    # ---------------------------------------------------
    # Editing
    # ---------------------------------------------------
    def update_field(self, field: str, value: Any) -> bool:
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"unknown harvest field: {field}")
        if not isinstance(self.state, Editing):
            print(f"⚠️ update_field({field}) ignored while {self.state.name}")
            return False

        draft = self.state.draft
        if field == "quantityKg":
            draft.quantityKg = coerce_quantity(value)
        elif field == "cropType":
            draft.cropType = value.value if isinstance(value, CropType) else ("" if value is None else str(value))
        else:
            draft.operatorId = "" if value is None else str(value)
        return True

    async def capture_location(self) -> Optional[LocationFix]:
        return await self._location.request_fix()

    # ---------------------------------------------------
    # Submission
    # ---------------------------------------------------
    async def submit(self) -> Optional[SubmissionResult]:
        state = self.state
        if not isinstance(state, Editing):
            print(f"⚠️ submit() ignored while {state.name}")
            return None

        missing = state.draft.missing_fields()
        if missing:
            self.last_error = ValidationFailed("missing or invalid: " + ", ".join(missing))
            return None

        try:
            record = state.draft.freeze()
        except ValidationError as e:
            self.last_error = ValidationFailed(f"record rejected by validation ({e.error_count()} errors)")
            return None

        self.last_error = None
        self.state = Submitting(record=record, draft=state.draft)

        try:
            ack = await self._ledger.submit_record(record)
        except SubmissionRejected as e:
            return self._back_to_editing(state.draft, e)
        except Exception as e:
            return self._back_to_editing(state.draft, SubmissionRejected(f"ledger unreachable: {e}"))

        batch_id = self._batch_ids.issue(ack.acknowledgedAt)
        result = SubmissionResult(
            batchIdentifier=batch_id,
            confirmedAt=self._clock(),
            success=True,
            ledgerRef=ack.ledgerRef,
        )
        self.state = Confirmed(record=record, result=result)
        print(f"✓ Harvest recorded as {batch_id}")
        return result

    def reset(self) -> bool:
        """
        Start a new harvest entry. Only from confirmed. The location fix is
        never carried over: LocationCapture goes back to idle too.
        """
        if not isinstance(self.state, Confirmed):
            return False
        self.state = Editing(draft=self._new_draft())
        self.last_error = None
        self._location.reset()
        return True

    # ---------------------------------------------------
    # Internals
    # ---------------------------------------------------
    def _new_draft(self) -> HarvestDraft:
        return HarvestDraft(capturedAt=self._clock())

    def _back_to_editing(self, draft: HarvestDraft, error: SubmissionRejected) -> None:
        print(f"❌ Harvest submission failed: {error}")
        # fixes acquired or lost while submitting were not applied to the draft
        fix = self._location.last_fix
        draft.location = fix.model_copy() if fix is not None else None
        self.state = Editing(draft=draft)
        self.last_error = error
        return None

    def _take_fix(self, fix: LocationFix) -> None:
        # frozen records never see later fixes
        if isinstance(self.state, Editing):
            self.state.draft.location = fix.model_copy()

    def _drop_fix(self, _error: HarvestTrackerError) -> None:
        if isinstance(self.state, Editing):
            self.state.draft.location = None
