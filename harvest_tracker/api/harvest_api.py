# harvest_tracker/api/harvest_api.py
# FastAPI router the field app talks to. One in-memory HarvestSession per
# session id; the phone reports its own GPS reading to /location.

import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from harvest_tracker.capabilities import ReportedPositionProvider
from harvest_tracker.errors import SubmissionRejected, ValidationFailed
from harvest_tracker.services.harvest_flow import Editing
from harvest_tracker.services.harvest_session import HarvestSession

router = APIRouter(prefix="/api/v1/harvest", tags=["harvest"])


# ========= Pydantic models =========
class FieldsUpdateRequest(BaseModel):
    cropType: Optional[str] = None
    quantityKg: Optional[Union[float, str]] = None
    operatorId: Optional[str] = None


class LocationReportRequest(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    error: Optional[str] = None
    unavailable: bool = False


# ========= session registry =========
class SessionRegistry:
    """
    In-memory sessions, least recently used evicted once `max_sessions`
    is reached.
    """

    def __init__(self, factory: Callable[[], HarvestSession], max_sessions: int = 1000):
        self._factory = factory
        self.max_sessions = max(1, max_sessions)
        self._sessions: "OrderedDict[str, HarvestSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> str:
        while len(self._sessions) >= self.max_sessions:
            old_sid, _ = self._sessions.popitem(last=False)
            print(f"⚠️ Harvest session {old_sid} evicted (limit {self.max_sessions})")
        sid = uuid.uuid4().hex
        self._sessions[sid] = self._factory()
        return sid

    def get(self, sid: str) -> Optional[HarvestSession]:
        session = self._sessions.get(sid)
        if session is not None:
            self._sessions.move_to_end(sid)
        return session

    def remove(self, sid: str) -> bool:
        return self._sessions.pop(sid, None) is not None


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def _session_or_404(sid: str, registry: SessionRegistry) -> HarvestSession:
    session = registry.get(sid)
    if session is None:
        raise HTTPException(status_code=404, detail="Unknown harvest session")
    return session


def _require_editing(session: HarvestSession) -> None:
    if not isinstance(session.flow.state, Editing):
        raise HTTPException(status_code=409, detail=f"Harvest entry is {session.flow.state.name}")


def _payload(sid: str, session: HarvestSession) -> Dict[str, Any]:
    return {"ok": True, "sessionId": sid, **session.snapshot()}


# ========= routes =========
@router.post("/sessions")
def create_session(registry: SessionRegistry = Depends(get_registry)):
    sid = registry.create()
    return _payload(sid, registry.get(sid))


@router.get("/sessions/{sid}")
def get_session(sid: str, registry: SessionRegistry = Depends(get_registry)):
    return _payload(sid, _session_or_404(sid, registry))


@router.patch("/sessions/{sid}/fields")
def update_fields(sid: str, body: FieldsUpdateRequest, registry: SessionRegistry = Depends(get_registry)):
    session = _session_or_404(sid, registry)
    _require_editing(session)
    for field, value in body.model_dump(exclude_unset=True).items():
        session.flow.update_field(field, value)
    return _payload(sid, session)


@router.post("/sessions/{sid}/location")
async def report_location(sid: str, body: LocationReportRequest, registry: SessionRegistry = Depends(get_registry)):
    session = _session_or_404(sid, registry)
    _require_editing(session)
    if session.location.busy:
        raise HTTPException(status_code=409, detail="Location request already in progress")

    session.location.provider = ReportedPositionProvider(
        latitude=body.latitude,
        longitude=body.longitude,
        error=body.error,
        unavailable=body.unavailable,
    )
    await session.flow.capture_location()
    return _payload(sid, session)


@router.post("/sessions/{sid}/submit")
async def submit_harvest(sid: str, registry: SessionRegistry = Depends(get_registry)):
    session = _session_or_404(sid, registry)
    _require_editing(session)

    result = await session.flow.submit()
    if result is None:
        err = session.flow.last_error
        if isinstance(err, ValidationFailed):
            raise HTTPException(status_code=422, detail=str(err))
        if isinstance(err, SubmissionRejected):
            raise HTTPException(status_code=502, detail=f"Ledger error: {err}")
        raise HTTPException(status_code=409, detail="Harvest was not submitted")
    return _payload(sid, session)


@router.delete("/sessions/{sid}")
def delete_session(sid: str, registry: SessionRegistry = Depends(get_registry)):
    if not registry.remove(sid):
        raise HTTPException(status_code=404, detail="Unknown harvest session")
    return {"ok": True, "sessionId": sid}


@router.post("/sessions/{sid}/reset")
def reset_session(sid: str, registry: SessionRegistry = Depends(get_registry)):
    session = _session_or_404(sid, registry)
    if not session.flow.reset():
        raise HTTPException(status_code=409, detail="Only a confirmed harvest can be reset")
    return _payload(sid, session)


@router.get("/sessions/{sid}/qr.png")
def batch_qr(sid: str, registry: SessionRegistry = Depends(get_registry)):
    session = _session_or_404(sid, registry)
    result = session.flow.result
    if result is None:
        raise HTTPException(status_code=409, detail="No confirmed batch yet")
    url = session.links.build_verification_url(result.batchIdentifier)
    return Response(content=session.links.render_scan_image(url), media_type="image/png")


@router.get("/_health")
def harvest_health():
    """Health check endpoint"""
    return {"ok": True, "source": "harvest_api", "ts": int(datetime.now(timezone.utc).timestamp())}
