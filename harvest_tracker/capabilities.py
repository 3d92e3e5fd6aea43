# harvest_tracker/capabilities.py
"""
Narrow contracts for the device facilities the core depends on.

Everything here is injected into the state machines; nothing reaches for a
global sensor, share sheet or clipboard.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Protocol, Tuple

from harvest_tracker.errors import AcquisitionFailed, CapabilityUnavailable


class ShareStatus(str, Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"


class LocationProvider(Protocol):
    async def request_current_position(self) -> Tuple[float, float]:
        """
        Single-shot position request.
        Raises CapabilityUnavailable when the device has no geolocation,
        AcquisitionFailed when the request itself fails.
        """
        ...


class ShareCapability(Protocol):
    async def share(self, payload: Dict[str, str]) -> ShareStatus:
        ...


class Clipboard(Protocol):
    async def copy_text(self, text: str) -> bool:
        ...


class ReportedPositionProvider:
    """
    Location provider fed by a position the device already measured
    (the field API receives coordinates from the phone's own GPS).
    """

    def __init__(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        error: Optional[str] = None,
        unavailable: bool = False,
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.error = error
        self.unavailable = unavailable

    async def request_current_position(self) -> Tuple[float, float]:
        if self.unavailable:
            raise CapabilityUnavailable("geolocation is not supported on this device")
        if self.error:
            raise AcquisitionFailed(self.error)
        if self.latitude is None or self.longitude is None:
            raise AcquisitionFailed("device reported no coordinates")
        return float(self.latitude), float(self.longitude)
