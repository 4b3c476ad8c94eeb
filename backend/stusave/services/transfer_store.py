"""In-memory exchange store for one-shot, short-lived transfer payloads.

Records live in a single process. Sender and receiver must hit the same
instance; a multi-instance deployment needs an external TTL store with an
atomic get-and-delete, keyed the same way.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .transfer_errors import (
    TransferExpiredError,
    TransferNotFoundError,
    TransferStoreError,
)

logger = logging.getLogger(__name__)

DEFAULT_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


@dataclass
class ExchangeRecord:
    """One registered payload, kept serialized so redeem returns an exact copy."""

    payload_json: str
    expires_at: float


class ExchangeStore:
    """Registry of id -> payload with read-once and TTL semantics."""

    def __init__(
        self,
        *,
        ttl_seconds: float = 300,
        id_length: int = 6,
        id_alphabet: str = DEFAULT_ALPHABET,
        max_id_attempts: int = 16,
        sweep_interval_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if id_length < 1:
            raise ValueError("id_length must be >= 1")
        if not id_alphabet:
            raise ValueError("id_alphabet must not be empty")
        if max_id_attempts < 1:
            raise ValueError("max_id_attempts must be >= 1")

        self.ttl_seconds = ttl_seconds
        self.id_length = id_length
        self.id_alphabet = id_alphabet
        self.max_id_attempts = max_id_attempts
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._records: dict[str, ExchangeRecord] = {}
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _generate_id(self) -> str:
        return "".join(secrets.choice(self.id_alphabet) for _ in range(self.id_length))

    def register(self, payload: Any) -> str:
        """Store `payload` under a fresh id and return the id."""
        try:
            payload_json = json.dumps(payload, ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise TransferStoreError("Payload is not JSON-serializable") from exc

        with self._lock:
            now = self._clock()
            for _ in range(self.max_id_attempts):
                transfer_id = self._generate_id()
                existing = self._records.get(transfer_id)
                # An expired holder is dead weight; its id may be reused.
                if existing is not None and now <= existing.expires_at:
                    continue
                self._records[transfer_id] = ExchangeRecord(
                    payload_json=payload_json,
                    expires_at=now + self.ttl_seconds,
                )
                break
            else:
                raise TransferStoreError(
                    f"Could not mint a unique id after {self.max_id_attempts} attempts"
                )

        logger.info("Registered transfer %s (%d bytes)", transfer_id, len(payload_json))
        return transfer_id

    def redeem(self, transfer_id: str) -> Any:
        """Return the payload for `transfer_id` exactly once, then forget it."""
        with self._lock:
            record = self._records.pop(transfer_id, None)
            now = self._clock()

        if record is None:
            logger.info("Redeem of unknown transfer %s", transfer_id)
            raise TransferNotFoundError()

        if now > record.expires_at:
            logger.info("Redeem of expired transfer %s", transfer_id)
            raise TransferExpiredError()

        logger.info("Redeemed transfer %s", transfer_id)
        return json.loads(record.payload_json)

    def sweep(self) -> int:
        """Drop every expired record; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, record in self._records.items() if now > record.expires_at]
            for key in expired:
                del self._records[key]

        if expired:
            logger.debug("Swept %d expired transfer(s)", len(expired))
        return len(expired)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self.sweep()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        task = self._sweep_task
        self._sweep_task = None
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
