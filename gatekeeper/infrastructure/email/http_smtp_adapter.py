from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from gatekeeper.domain.ports.email_port import EmailPort

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    """The mail relay refused or could not be reached; the outbox will retry."""


class HttpSmtpEmailAdapter(EmailPort):
    """Posts messages to an HTTP mail relay (``POST {base_url}/send``)."""

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
        send_path: str = "/send",
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._send_path = send_path if send_path.startswith("/") else f"/{send_path}"
        self._owns_client: bool = client is None
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(timeout=timeout)

    async def send(
        self,
        *,
        to: str,
        subject: str,
        body: str,
        idempotency_key: str | None = None,
    ) -> None:
        headers: Dict[str, str] = {}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        url = f"{self._base_url}{self._send_path}"
        try:
            resp = await self._client.post(
                url, json={"to": to, "subject": subject, "body": body}, headers=headers
            )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"mail relay unreachable: {e}") from e

        if resp.is_error:
            raise EmailDeliveryError(
                f"mail relay responded {resp.status_code}: {resp.text[:200]}"
            )
        logger.info("email handed to relay", extra={"subject": subject})

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
