"""Async HTTP client for the `/transfer` endpoints."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .transfer_errors import (
    TransferExpiredError,
    TransferNetworkError,
    TransferNotFoundError,
)

logger = logging.getLogger(__name__)


class TransferClient:
    """Thin client for registering and redeeming transfer payloads.

    Redeem failures are never retried: a consumed id cannot come back.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 15,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            transport=self._transport,
        )

    async def register(self, payload: Any) -> str:
        """Upload `payload` and return the id the server minted for it."""
        try:
            async with self._client() as client:
                response = await client.post("/transfer", json=payload)
        except httpx.HTTPError as exc:
            raise TransferNetworkError() from exc

        if response.status_code >= 400:
            logger.warning("Transfer register failed with HTTP %s", response.status_code)
            raise TransferNetworkError()

        try:
            transfer_id = response.json()["id"]
        except (ValueError, KeyError, TypeError) as exc:
            raise TransferNetworkError("The transfer service sent an unexpected response.") from exc

        if not isinstance(transfer_id, str) or not transfer_id:
            raise TransferNetworkError("The transfer service sent an unexpected response.")

        return transfer_id

    async def redeem(self, transfer_id: str) -> Any:
        """Fetch and consume the payload stored under `transfer_id`."""
        try:
            async with self._client() as client:
                response = await client.get("/transfer", params={"id": transfer_id})
        except httpx.HTTPError as exc:
            raise TransferNetworkError() from exc

        if response.status_code == 404:
            raise TransferNotFoundError()
        if response.status_code == 410:
            raise TransferExpiredError()
        if response.status_code >= 400:
            logger.warning("Transfer redeem failed with HTTP %s", response.status_code)
            raise TransferNetworkError()

        try:
            return response.json()
        except ValueError as exc:
            raise TransferNetworkError("The transfer service sent an unexpected response.") from exc
