"""
Content-addressed upload client.

POSTs a multipart payload to a pinning endpoint and returns the CID from
its JSON body. Two deployments are supported:

- the upload relay (api.server), authenticated with a bearer token; this is
  what client-side code uses, so no pinning credentials leave the server
- Pinata directly, with the two static credential headers; server-side only
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from medledger.errors import UploadFailure
from medledger.validation import require_payload
from medledger_eth.metrics import Metrics

logger = logging.getLogger(__name__)

PINATA_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"


class ContentStoreClient:
    """
    Upload bytes, get a CID back. Never retries.

    Usage:
        store = ContentStoreClient.for_relay("https://relay.example/api/upload", token)
        cid = store.upload(pdf_bytes, mime_hint="application/pdf")
    """

    def __init__(
        self,
        upload_url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        cid_field: str = "cid",
        timeout: float = 120.0,
        session: Optional[requests.Session] = None,
        metrics: Optional[Metrics] = None,
    ):
        self.upload_url = upload_url
        self.headers = dict(headers or {})
        self.cid_field = cid_field
        self.timeout = timeout
        self.session = session or requests.Session()
        self.metrics = metrics or Metrics()

    @classmethod
    def for_relay(cls, upload_url: str, token: str = "", **kwargs) -> ContentStoreClient:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return cls(upload_url, headers=headers, cid_field="cid", **kwargs)

    @classmethod
    def for_pinata(
        cls, api_key: str, secret_key: str, *, upload_url: str = PINATA_URL, **kwargs
    ) -> ContentStoreClient:
        headers = {"pinata_api_key": api_key, "pinata_secret_api_key": secret_key}
        return cls(upload_url, headers=headers, cid_field="IpfsHash", **kwargs)

    def upload(
        self,
        data: bytes,
        mime_hint: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> str:
        """
        Upload a payload and return its CID.

        Raises:
            InvalidInput: If data is empty (no request is made)
            UploadFailure: On transport error, non-2xx status, or a body
                without a usable CID
        """
        payload = require_payload(data)
        files = {"file": (filename or "record", payload, mime_hint or "application/octet-stream")}

        try:
            with self.metrics.timed("store_upload"):
                resp = self.session.post(
                    self.upload_url, files=files, headers=self.headers, timeout=self.timeout
                )
        except requests.exceptions.RequestException as e:
            raise UploadFailure(f"Upload transport error: {e}", cause=e) from e

        if resp.status_code in (401, 403):
            raise UploadFailure(
                f"Content store authentication failed (HTTP {resp.status_code})",
                status_code=resp.status_code,
            )
        if resp.status_code == 413:
            raise UploadFailure("Content store rejected payload size (HTTP 413)", status_code=413)
        if not 200 <= resp.status_code < 300:
            raise UploadFailure(
                f"Content store rejected upload (HTTP {resp.status_code}): {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise UploadFailure(
                "Content store returned malformed JSON", status_code=resp.status_code, cause=e
            ) from e

        cid = body.get(self.cid_field) if isinstance(body, dict) else None
        if not isinstance(cid, str) or not cid.strip():
            raise UploadFailure(
                f"Content store response has no '{self.cid_field}' field",
                status_code=resp.status_code,
            )

        self.metrics.inc("store_uploads_total")
        logger.info(f"Payload pinned: {cid}")
        return cid.strip()
