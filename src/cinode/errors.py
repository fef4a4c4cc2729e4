"""Custom exceptions for cinode with readable context."""

from typing import Any


class CinodeError(Exception):
    """Base error for cinode."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context."""
        parts = [self.message]

        if self.context:
            ctx_parts = [f"{k}={v}" for k, v in self.context.items() if v is not None]
            if ctx_parts:
                parts.append(f"({', '.join(ctx_parts)})")

        return " ".join(parts)


def _short(bid: str) -> str:
    return bid[:16] + "..." if len(bid) > 16 else bid


class InsufficientKeySourceError(CinodeError):
    """Key source shorter than the factory's policy minimum."""

    def __init__(self, got: int, required: int, **context: Any):
        super().__init__(
            f"Insufficient key source data: got {got} bytes, "
            f"at least {required} bytes are required",
            got=got,
            required=required,
            **context
        )


class InvalidKeyError(CinodeError):
    """Key string is empty, malformed or carries an unknown algorithm tag."""

    def __init__(self, reason: str, **context: Any):
        super().__init__(f"Invalid key: {reason}", **context)


class BIDCollisionError(CinodeError):
    """Different content is already stored under the same blob id."""

    def __init__(self, bid: str, **context: Any):
        super().__init__(
            f"A colliding blob id has been found: '{_short(bid)}' is already "
            f"bound to different content",
            bid=bid,
            **context
        )


class BIDNotFoundError(CinodeError):
    """No committed blob exists under the given id."""

    def __init__(self, bid: str, **context: Any):
        super().__init__(
            f"A blob with id '{_short(bid)}' was not found",
            bid=bid,
            **context
        )


class InvalidBlobError(CinodeError):
    """Stored blob bytes are malformed (empty, unknown validation tag)."""

    def __init__(self, bid: str, reason: str, **context: Any):
        super().__init__(f"Invalid blob '{_short(bid)}': {reason}", bid=bid, **context)


class BlobValidationError(CinodeError):
    """Stored ciphertext does not hash to the blob id."""

    def __init__(self, bid: str, actual: str, **context: Any):
        super().__init__(
            f"Blob '{_short(bid)}' failed hash validation. The blob store may be corrupted.",
            bid=bid,
            actual=_short(actual),
            **context
        )


class UnexpectedBlobTypeError(CinodeError):
    """Decrypted payload is not of the kind the caller asked for."""

    def __init__(
        self,
        bid: str,
        blob_type: int | None,
        expected: str,
        **context: Any
    ):
        if blob_type is None:
            msg = f"Blob '{_short(bid)}' has an empty payload, expected {expected}"
        else:
            msg = f"Blob '{_short(bid)}' has type 0x{blob_type:02x}, expected {expected}"
        super().__init__(msg, bid=bid, **context)


class WriterFinalizedError(CinodeError):
    """Writer used after it was finalized or cancelled."""

    def __init__(self, writer: str, **context: Any):
        super().__init__(
            f"{writer} has already been finalized or cancelled",
            **context
        )


class SerializationError(CinodeError):
    """Blob payload could not be decoded."""
