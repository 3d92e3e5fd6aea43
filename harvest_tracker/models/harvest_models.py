# harvest_tracker/models/harvest_models.py

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CropType(str, Enum):
    TULSI = "Tulsi"
    PATHARCHITTA = "Patharchitta"
    MULETHI = "Mulethi"
    ASHWAGANDHA = "Ashwagandha"
    BRAHMI = "Brahmi"
    NEEM = "Neem"
    ALOE_VERA = "Aloe Vera"

    @classmethod
    def labels(cls) -> List[str]:
        return [c.value for c in cls]


EDITABLE_FIELDS = ("cropType", "quantityKg", "operatorId")


# ========= Pydantic models =========
class LocationFix(BaseModel):
    """One GPS reading. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    capturedAt: datetime


class HarvestRecordModel(BaseModel):
    """Frozen, validated harvest record handed to the ledger."""

    model_config = ConfigDict(frozen=True)

    cropType: CropType
    quantityKg: float = Field(..., gt=0, allow_inf_nan=False)
    operatorId: str = Field(..., min_length=1)
    location: Optional[LocationFix] = None
    capturedAt: datetime

    @field_validator("operatorId")
    @classmethod
    def _strip_operator(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("operatorId must not be blank")
        return v

    def ledger_payload(self) -> Dict[str, Any]:
        """JSON-safe dict used by the ledger backends."""
        return self.model_dump(mode="json")


class LedgerAck(BaseModel):
    acknowledgedAt: datetime
    ledgerRef: Optional[str] = None


class SubmissionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    batchIdentifier: str = Field(..., min_length=1)
    confirmedAt: datetime
    success: bool = True
    ledgerRef: Optional[str] = None


# ========= helpers =========
def coerce_quantity(value: Any) -> Any:
    """
    Numeric coercion only; anything unparsable is kept as typed so the
    user does not lose input. Validation happens at submit time.
    """
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            return value
        return number if math.isfinite(number) else value
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return text
    # "1e400", "inf", "nan" stay as typed
    return number if math.isfinite(number) else text


def is_valid_quantity(value: Any) -> bool:
    return isinstance(value, float) and math.isfinite(value) and value > 0


# ========= record in progress =========
@dataclass
class HarvestDraft:
    capturedAt: datetime
    cropType: str = ""
    quantityKg: Any = None
    operatorId: str = ""
    location: Optional[LocationFix] = None

    def missing_fields(self) -> List[str]:
        missing: List[str] = []
        if (self.cropType or "").strip() not in CropType.labels():
            missing.append("cropType")
        if not is_valid_quantity(self.quantityKg):
            missing.append("quantityKg")
        if not (self.operatorId or "").strip():
            missing.append("operatorId")
        if self.location is None:
            missing.append("location")
        return missing

    def is_complete(self) -> bool:
        return not self.missing_fields()

    def freeze(self) -> HarvestRecordModel:
        # raises pydantic.ValidationError on bad input
        return HarvestRecordModel(
            cropType=(self.cropType or "").strip(),
            quantityKg=self.quantityKg,
            operatorId=self.operatorId,
            location=self.location,
            capturedAt=self.capturedAt,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cropType": self.cropType,
            "quantityKg": self.quantityKg,
            "operatorId": self.operatorId,
            "location": self.location.model_dump(mode="json") if self.location else None,
            "capturedAt": self.capturedAt.isoformat(),
        }
