"""Client-side transfer dialog: generate a code, or scan one and confirm the overwrite.

View states form a closed set of small dataclasses; only `TransferDialog`
methods move between them. Every network result is checked against the dialog
session it was started in, so a response that lands after the dialog was
closed (or the user went back) is dropped instead of applied.

Scan results from a live camera can fire several times for one visible code.
`ScanSession` holds a single-slot guard so that exactly one redemption is in
flight per session:

    IDLE --decode--> IN_FLIGHT --failure--> IDLE (session torn down, back to Options)
                               --success--> RELEASING (camera stopped, awaiting confirm/cancel)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..config import settings
from .app_state import LocalStateStore, validate_transfer_payload
from .transfer_client import TransferClient
from .transfer_errors import CameraUnavailableError, InvalidQrPayloadError, TransferError
from .transfer_links import (
    ImageDecoder,
    QrDecoder,
    build_transfer_url,
    parse_transfer_url,
    render_qr_png,
)
from .transfer_store import DEFAULT_ALPHABET

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Options:
    pass


@dataclass(frozen=True)
class Generating:
    pass


@dataclass(frozen=True)
class ReadyToShare:
    url: str


@dataclass(frozen=True)
class Scanning:
    pass


@dataclass(frozen=True)
class PendingConfirmation:
    payload: dict[str, Any]


TransferViewState = Options | Generating | ReadyToShare | Scanning | PendingConfirmation


@dataclass(frozen=True)
class TransferNotice:
    """Toast-style message for the user."""

    title: str
    description: str
    destructive: bool = False


class ScanGuard(Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    RELEASING = "releasing"


class ScanSession:
    """One activation of the scan surface, owning the decoder and the in-flight guard."""

    def __init__(self, decoder: QrDecoder | None = None) -> None:
        self.decoder = decoder
        self.guard = ScanGuard.IDLE
        self.closed = False

    def try_acquire(self) -> bool:
        if self.closed or self.guard is not ScanGuard.IDLE:
            return False
        self.guard = ScanGuard.IN_FLIGHT
        return True

    def release(self) -> None:
        self.guard = ScanGuard.IDLE

    def finish(self) -> None:
        """A payload was accepted: keep ignoring decodes and let go of the camera."""
        self.guard = ScanGuard.RELEASING
        self.stop_decoder()

    def stop_decoder(self) -> None:
        decoder, self.decoder = self.decoder, None
        if decoder is not None:
            decoder.stop()

    def close(self) -> None:
        self.closed = True
        self.guard = ScanGuard.IDLE
        self.stop_decoder()


class TransferDialog:
    """State machine behind the "Transfer Data" dialog."""

    def __init__(
        self,
        client: TransferClient,
        state_store: LocalStateStore,
        *,
        app_base_url: str,
        id_alphabet: str = DEFAULT_ALPHABET,
        notify: Callable[[TransferNotice], None] | None = None,
    ) -> None:
        self.client = client
        self.state_store = state_store
        self.app_base_url = app_base_url
        self.id_alphabet = id_alphabet
        self._notify_callback = notify

        self.view: TransferViewState = Options()
        self.is_open = False
        self.last_error: TransferError | None = None
        self._epoch = 0
        self._scan: ScanSession | None = None
        self._tasks: set[asyncio.Task] = set()

    # -- dialog lifecycle -------------------------------------------------

    def open(self) -> None:
        self._teardown()
        self.is_open = True
        self.view = Options()

    def close(self) -> None:
        self._teardown()
        self.is_open = False
        self.view = Options()

    def back(self) -> None:
        self._expect("go back", Generating, ReadyToShare, Scanning)
        self._teardown()
        self.view = Options()

    def _teardown(self) -> None:
        self._epoch += 1
        session, self._scan = self._scan, None
        if session is not None:
            session.close()

    def _expect(self, action: str, *allowed: type) -> Any:
        if not self.is_open or not isinstance(self.view, allowed):
            raise RuntimeError(f"Cannot {action} from {type(self.view).__name__}")
        return self.view

    def _notify(self, notice: TransferNotice) -> None:
        if self._notify_callback is not None:
            self._notify_callback(notice)

    def _fail(self, exc: TransferError) -> None:
        logger.info("Transfer step failed: %s", type(exc).__name__)
        self.last_error = exc
        self._teardown()
        self.view = Options()
        self._notify(TransferNotice(exc.title, exc.user_message, destructive=True))

    # -- sending ----------------------------------------------------------

    async def generate(self) -> None:
        """Register current local state and show its share URL."""
        self._expect("generate", Options)
        epoch = self._epoch
        self.view = Generating()

        try:
            transfer_id = await self.client.register(self.state_store.snapshot())
        except TransferError as exc:
            if epoch == self._epoch:
                self._fail(exc)
            return

        if epoch != self._epoch:
            logger.debug("Dropping transfer id for a closed dialog session")
            return

        self.view = ReadyToShare(url=build_transfer_url(self.app_base_url, transfer_id))

    def render_qr(self, *, box_size: int = 10, border: int = 2) -> bytes:
        view = self._expect("render QR", ReadyToShare)
        return render_qr_png(view.url, box_size=box_size, border=border)

    # -- receiving --------------------------------------------------------

    async def start_scan(self, decoder: QrDecoder | None = None) -> None:
        """Enter `Scanning`; with a decoder, start the live camera stream."""
        self._expect("scan", Options)
        loop = asyncio.get_running_loop()
        session = ScanSession(decoder)
        self._scan = session
        self.view = Scanning()

        if decoder is None:
            return

        def on_result(text: str) -> None:
            loop.call_soon_threadsafe(self._on_stream_result, session, text)

        def on_error(exc: Exception) -> None:
            loop.call_soon_threadsafe(self._on_stream_error, session, exc)

        try:
            decoder.start(on_result, on_error)
        except CameraUnavailableError as exc:
            self._fail(exc)
        except Exception as exc:
            logger.warning("Could not start QR decoder: %s", exc)
            self._fail(CameraUnavailableError())

    def _on_stream_result(self, session: ScanSession, text: str) -> None:
        if session is not self._scan or not session.try_acquire():
            return
        self._spawn(self._redeem(session, text))

    def _on_stream_error(self, session: ScanSession, exc: Exception) -> None:
        if session is not self._scan:
            return
        if isinstance(exc, CameraUnavailableError):
            self._fail(exc)
            return
        logger.warning("QR decoder error: %s", exc)

    async def handle_decoded_text(self, text: str) -> bool:
        """Process one decoded QR text; returns False when it was ignored."""
        session = self._scan
        if session is None or not session.try_acquire():
            return False
        await self._redeem(session, text)
        return True

    async def scan_image(self, image: bytes, decode_image: ImageDecoder) -> bool:
        """Decode an uploaded picture through the same guard as the camera stream."""
        self._expect("scan an image", Scanning)
        session = self._scan
        if session is None or not session.try_acquire():
            return False

        try:
            text = await asyncio.to_thread(decode_image, image)
        except Exception as exc:
            logger.warning("Could not decode uploaded image: %s", exc)
            if session is self._scan:
                self._fail(InvalidQrPayloadError("No QR code was found in that image."))
            return True

        await self._redeem(session, text)
        return True

    async def _redeem(self, session: ScanSession, text: str) -> None:
        try:
            transfer_id = parse_transfer_url(text, self.id_alphabet)
            payload = validate_transfer_payload(await self.client.redeem(transfer_id))
        except TransferError as exc:
            if session is self._scan:
                session.release()
                self._fail(exc)
            return
        except Exception:
            logger.exception("Unexpected failure while redeeming a transfer code")
            if session is self._scan:
                session.release()
                self._fail(TransferError())
            return

        if session is not self._scan:
            logger.warning("Transfer redeemed after its dialog closed; payload dropped")
            return

        session.finish()
        self.view = PendingConfirmation(payload=payload)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for redemptions started from camera callbacks."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # -- confirmation -----------------------------------------------------

    def confirm(self) -> None:
        """Overwrite local state with the received payload."""
        view = self._expect("confirm", PendingConfirmation)
        try:
            self.state_store.replace(view.payload)
        except OSError:
            logger.exception("Could not apply transferred state")
            self._notify(TransferNotice("Transfer Failed", "Could not apply the new data.", destructive=True))
        else:
            self._notify(TransferNotice("Success!", "Data transferred successfully."))
        self.close()

    def cancel(self) -> None:
        self._expect("cancel", PendingConfirmation)
        self.close()


def build_transfer_dialog(
    notify: Callable[[TransferNotice], None] | None = None,
) -> TransferDialog:
    """Wire a dialog to the configured API, app origin and local state file."""
    state_store = LocalStateStore(settings.state_file)
    state_store.load()
    return TransferDialog(
        TransferClient(base_url=settings.api_base_url),
        state_store,
        app_base_url=settings.app_base_url,
        id_alphabet=settings.transfer_id_alphabet,
        notify=notify,
    )
