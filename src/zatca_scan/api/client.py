"""
Scan Records API Client.

Async HTTP client for the REST service that stores scan sessions and their
decoded QR records. Failures here are transport/storage errors and are
raised as ``httpx.HTTPError``; they are unrelated to a payload failing to
decode.

Requires: httpx>=0.25.0
"""

from __future__ import annotations

import logging

import httpx

from zatca_scan.api.models import (
    ScannedQR,
    ScannedQRCreate,
    SessionInfo,
    SessionStats,
)

logger = logging.getLogger(__name__)

COMMON_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class RecordsClient:
    """Async client for the scan records service."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
    ):
        """
        Initialize records API client.

        Args:
            base_url: Service root, e.g. "http://localhost:5000"
            token: Optional bearer token
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = dict(COMMON_HEADERS)
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def create_session(self) -> SessionInfo:
        """
        Open a new scan session.

        POST /api/sessions
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/api/sessions",
                json={},
                headers=self._headers(),
            )
            response.raise_for_status()
            return SessionInfo.model_validate(response.json())

    async def create_record(self, record: ScannedQRCreate) -> ScannedQR:
        """
        Store one scan record.

        POST /api/qr-codes

        Args:
            record: Record to store

        Returns:
            The stored record with its server-side id
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/api/qr-codes",
                json=record.model_dump(),
                headers=self._headers(),
            )
            response.raise_for_status()
            stored = ScannedQR.model_validate(response.json())
        logger.info("Stored record %s for session %s", stored.id, stored.sessionId)
        return stored

    async def list_records(self, session_id: str) -> list[ScannedQR]:
        """
        Fetch every record of a session.

        GET /api/qr-codes/{session_id}
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.base_url}/api/qr-codes/{session_id}",
                headers=self._headers(),
            )
            response.raise_for_status()
            return [ScannedQR.model_validate(item) for item in response.json()]

    async def get_session_stats(self, session_id: str) -> SessionStats:
        """
        Fetch aggregate counts for a session.

        GET /api/sessions/{session_id}/stats
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.base_url}/api/sessions/{session_id}/stats",
                headers=self._headers(),
            )
            response.raise_for_status()
            return SessionStats.model_validate(response.json())

    async def delete_record(self, record_id: str) -> None:
        """
        Delete one record.

        DELETE /api/qr-codes/{record_id}
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.delete(
                f"{self.base_url}/api/qr-codes/{record_id}",
                headers=self._headers(),
            )
            response.raise_for_status()
