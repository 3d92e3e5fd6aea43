# harvest_tracker/services/verification_links.py

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, Optional
from urllib.parse import quote, unquote, urlsplit

import qrcode

from harvest_tracker.capabilities import Clipboard, ShareCapability, ShareStatus
from harvest_tracker.errors import ShareFailed


@dataclass
class ShareReport:
    ok: bool
    channel: str            # "share" | "clipboard" | "none"
    url: str
    error: Optional[str] = None


class VerificationLinkGenerator:
    """
    Turns a confirmed batch identifier into:
      - {base}/batch/{id}          verification URL (id percent-encoded)
      - QR service image URL       embedding that verification URL
    and shares the link (native share sheet, else clipboard).
    """

    def __init__(
        self,
        verify_base_url: str = "https://blockchain-verify.com",
        qr_service_url: str = "https://api.qrserver.com/v1/create-qr-code/",
        qr_size: int = 200,
        share_capability: Optional[ShareCapability] = None,
        clipboard: Optional[Clipboard] = None,
    ):
        self.verify_base_url = verify_base_url.rstrip("/")
        self.qr_service_url = qr_service_url
        self.qr_size = qr_size
        self.share_capability = share_capability
        self.clipboard = clipboard

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        share_capability: Optional[ShareCapability] = None,
        clipboard: Optional[Clipboard] = None,
    ) -> "VerificationLinkGenerator":
        return cls(
            verify_base_url=config["VERIFY_BASE_URL"],
            qr_service_url=config["QR_SERVICE_URL"],
            qr_size=config["QR_SIZE"],
            share_capability=share_capability,
            clipboard=clipboard,
        )

    # ---------------------------------------------------
    # Pure URL builders
    # ---------------------------------------------------
    def build_verification_url(self, batch_id: str) -> str:
        if not batch_id:
            raise ValueError("batch identifier is required")
        return f"{self.verify_base_url}/batch/{quote(batch_id, safe='')}"

    def extract_batch_identifier(self, verification_url: str) -> str:
        """Inverse of build_verification_url (used when a code is scanned)."""
        prefix = urlsplit(self.verify_base_url).path.rstrip("/") + "/batch/"
        path = urlsplit(verification_url).path
        if not path.startswith(prefix):
            raise ValueError(f"not a batch verification URL: {verification_url}")
        segment = path[len(prefix):]
        if not segment or "/" in segment:
            raise ValueError(f"not a batch verification URL: {verification_url}")
        return unquote(segment)

    def build_scan_image_url(self, verification_url: str) -> str:
        sep = "&" if "?" in self.qr_service_url else "?"
        size = f"{self.qr_size}x{self.qr_size}"
        return f"{self.qr_service_url}{sep}size={size}&data={quote(verification_url, safe='')}"

    def links_for(self, batch_id: str) -> Dict[str, str]:
        url = self.build_verification_url(batch_id)
        return {"verificationUrl": url, "scanImageUrl": self.build_scan_image_url(url)}

    def render_scan_image(self, verification_url: str) -> bytes:
        """PNG bytes of the QR code, rendered locally (no network)."""
        img = qrcode.make(verification_url)
        buf = BytesIO()
        img.save(buf)
        return buf.getvalue()

    # ---------------------------------------------------
    # Share / copy
    # ---------------------------------------------------
    async def share(self, batch_id: str) -> ShareReport:
        url = self.build_verification_url(batch_id)
        payload = {
            "title": f"Harvest Batch {batch_id}",
            "text": f"View harvest details for batch {batch_id}",
            "url": url,
        }

        if self.share_capability is not None:
            try:
                status = await self.share_capability.share(payload)
            except Exception as e:
                print(f"⚠️ Native share failed: {e}")
                status = None
            if status == ShareStatus.OK:
                return ShareReport(ok=True, channel="share", url=url)

        try:
            await self._copy(url)
        except ShareFailed as e:
            print(f"❌ Could not share batch link: {e}")
            return ShareReport(ok=False, channel="none", url=url, error=str(e))
        return ShareReport(ok=True, channel="clipboard", url=url)

    async def _copy(self, url: str) -> None:
        if self.clipboard is None:
            raise ShareFailed("clipboard is not available")
        try:
            copied = await self.clipboard.copy_text(url)
        except Exception as e:
            raise ShareFailed(f"clipboard copy failed: {e}") from e
        if not copied:
            raise ShareFailed("clipboard copy failed")
