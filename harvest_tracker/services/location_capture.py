# harvest_tracker/services/location_capture.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, ClassVar, List, Optional, Union

from pydantic import ValidationError

from harvest_tracker.capabilities import LocationProvider
from harvest_tracker.errors import AcquisitionFailed, CapabilityUnavailable, HarvestTrackerError
from harvest_tracker.models.harvest_models import LocationFix


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ========= states =========
@dataclass(frozen=True)
class LocationIdle:
    name: ClassVar[str] = "idle"


@dataclass(frozen=True)
class LocationAcquiring:
    name: ClassVar[str] = "acquiring"


@dataclass(frozen=True)
class LocationAcquired:
    fix: LocationFix
    name: ClassVar[str] = "acquired"


@dataclass(frozen=True)
class LocationFailed:
    error: HarvestTrackerError
    name: ClassVar[str] = "failed"

    @property
    def capability_absent(self) -> bool:
        return isinstance(self.error, CapabilityUnavailable)


LocationState = Union[LocationIdle, LocationAcquiring, LocationAcquired, LocationFailed]

FixListener = Callable[[LocationFix], None]
FailureListener = Callable[[HarvestTrackerError], None]


class LocationCapture:
    """
    Single-shot GPS capture: idle -> acquiring -> acquired | failed.

    acquired and failed may both go back to acquiring via request_fix();
    there is never more than one provider request in flight.
    """

    def __init__(
        self,
        provider: Optional[LocationProvider] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.provider = provider
        self._clock = clock
        self.state: LocationState = LocationIdle()
        self._generation = 0
        self._in_flight = False
        self._fix_listeners: List[FixListener] = []
        self._failure_listeners: List[FailureListener] = []

    @property
    def busy(self) -> bool:
        """True while a provider request is outstanding, even across reset()."""
        return self._in_flight

    @property
    def last_fix(self) -> Optional[LocationFix]:
        if isinstance(self.state, LocationAcquired):
            return self.state.fix
        return None

    def on_fix(self, listener: FixListener) -> None:
        self._fix_listeners.append(listener)

    def on_failure(self, listener: FailureListener) -> None:
        self._failure_listeners.append(listener)

    async def request_fix(self) -> Optional[LocationFix]:
        if self._in_flight:
            return None

        self.state = LocationAcquiring()
        generation = self._generation

        try:
            if self.provider is None:
                raise CapabilityUnavailable("no location provider on this device")
            self._in_flight = True
            try:
                lat, lng = await self.provider.request_current_position()
            finally:
                self._in_flight = False
            fix = LocationFix(latitude=lat, longitude=lng, capturedAt=self._clock())
        except ValidationError as e:
            return self._fail(generation, AcquisitionFailed(f"unusable position fix ({e.error_count()} invalid values)"))
        except HarvestTrackerError as e:
            return self._fail(generation, e)
        except Exception as e:
            return self._fail(generation, AcquisitionFailed(str(e) or type(e).__name__))

        # reset() while the provider was answering: drop the stale result
        if generation != self._generation:
            return None

        self.state = LocationAcquired(fix=fix)
        for listener in list(self._fix_listeners):
            listener(fix)
        return fix

    def reset(self) -> None:
        self._generation += 1
        self.state = LocationIdle()

    def _fail(self, generation: int, error: HarvestTrackerError) -> None:
        if generation != self._generation:
            return None
        print(f"⚠️ Location fix failed: {error}")
        self.state = LocationFailed(error=error)
        for listener in list(self._failure_listeners):
            listener(error)
        return None
