"""Error taxonomy for the device-to-device data transfer handshake."""

from __future__ import annotations


class TransferError(Exception):
    """Base exception for transfer failures; carries user-facing text."""

    title = "Transfer Failed"
    user_message = "Something went wrong while transferring your data."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


class TransferNotFoundError(TransferError):
    """Unknown id, or one that was already redeemed."""

    title = "Code Not Found"
    user_message = "This transfer code was already used or does not exist. Scan the code again."


class TransferExpiredError(TransferError):
    """The id was registered but its TTL has passed."""

    title = "Code Expired"
    user_message = "This transfer code has expired. Generate a new code on the other device."


class TransferStoreError(TransferError):
    """Server-side failure while registering a payload."""

    user_message = "Failed to process request"


class InvalidQrPayloadError(TransferError):
    """Decoded QR text is not a transfer URL carrying an id."""

    title = "Invalid QR Code"
    user_message = "The scanned QR code is not a StuSave transfer code."


class InvalidDataShapeError(TransferError):
    """Redeemed payload does not look like StuSave application state."""

    title = "Invalid QR Code"
    user_message = "The scanned QR code does not contain valid StuSave data."


class TransferNetworkError(TransferError):
    """Transport failure or unexpected response from the transfer API."""

    title = "Network Error"
    user_message = "Could not reach the transfer service. Check your connection and try again."


class CameraUnavailableError(TransferError):
    """Camera permission denied or no capture device."""

    title = "Camera Access Denied"
    user_message = "Please enable camera permissions, or upload a photo of the code instead."
