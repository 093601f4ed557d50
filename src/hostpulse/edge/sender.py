"""
Collector Sender.

Performs single delivery attempts of a metrics snapshot to the remote
collector and classifies the outcome. Retrying is the caller's job.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import aiohttp

from .. import __version__
from .collectors.base import MetricsSnapshot

logger = logging.getLogger(__name__)


class Outcome(Enum):
    """Classification of one delivery attempt."""
    SUCCESS = "success"
    RETRYABLE = "retryable_server_error"
    FATAL = "fatal_client_error"


def classify(status_code: Optional[int], transport_error: bool = False) -> Outcome:
    """Classify an attempt from its transport error flag and status code.

    2xx is success, 5xx and transport failures are retryable, everything
    else (1xx, 3xx, 4xx) is fatal.
    """
    if transport_error or status_code is None:
        return Outcome.RETRYABLE
    if 200 <= status_code < 300:
        return Outcome.SUCCESS
    if status_code >= 500:
        return Outcome.RETRYABLE
    return Outcome.FATAL


@dataclass(frozen=True)
class DeliveryResult:
    """Result of a single delivery attempt."""
    outcome: Outcome
    status_code: Optional[int] = None
    body: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def describe(self) -> str:
        """Summary for log lines, including the full response body."""
        if self.status_code is None:
            return f"transport error: {self.error}"
        return f"status {self.status_code}: {self.body}" if self.body else f"status {self.status_code}"


def encode_snapshot(snapshot: MetricsSnapshot) -> bytes:
    """Canonical JSON encoding; identical input gives identical bytes."""
    return json.dumps(
        snapshot.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


class CollectorClient:
    """
    Sends snapshots to the remote collector.

    Features:
    - Async HTTP client with connection pooling, reused across cycles
    - Bearer token authentication
    - Exactly one request per ``post()``; no internal retries
    """

    def __init__(
        self,
        endpoint: str,
        auth_token: str,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the client."""
        self.endpoint = endpoint
        self.auth_token = auth_token
        self.timeout = timeout

        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    def _get_headers(self) -> dict:
        """Get request headers."""
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.auth_token}",
            "User-Agent": f"hostpulse/{__version__}",
        }

    def encode(self, snapshot: MetricsSnapshot) -> bytes:
        return encode_snapshot(snapshot)

    async def deliver(self, snapshot: MetricsSnapshot) -> DeliveryResult:
        """Encode and send a snapshot once."""
        return await self.post(self.encode(snapshot))

    async def post(self, payload: bytes) -> DeliveryResult:
        """Send an encoded payload in a single request."""
        try:
            session = await self._get_session()
            async with session.post(
                self.endpoint,
                data=payload,
                headers=self._get_headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                # 3xx is classified, never followed
                allow_redirects=False,
            ) as response:
                body = await response.text(errors="replace")
                return DeliveryResult(
                    outcome=classify(response.status),
                    status_code=response.status,
                    body=body,
                )

        except asyncio.TimeoutError:
            return DeliveryResult(
                outcome=classify(None, transport_error=True),
                error=f"request timed out after {self.timeout:g}s",
            )
        except aiohttp.ClientError as e:
            return DeliveryResult(
                outcome=classify(None, transport_error=True),
                error=str(e) or e.__class__.__name__,
            )

    async def close(self):
        """Close the HTTP session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
