"""Error taxonomy for the image store, with structured bodies for API responses."""

from __future__ import annotations


class ImageStoreError(Exception):
    """Base class for every failure the store surfaces to its caller."""

    status_code: int = 500

    def __init__(self, message: str, **context: object):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_response_body(self) -> dict:
        body: dict = {"detail": self.message, "error": type(self).__name__}
        if self.context:
            body["context"] = {key: str(value) for key, value in self.context.items()}
        return body


class EncodingError(ImageStoreError):
    """Raised when a raw resource cannot be read or a data URI cannot be decoded."""

    status_code = 400


class InvalidTargetError(ImageStoreError):
    """Raised when an insert has no destination document.

    Callers show ``notice`` to the user instead of treating it as a store failure.
    """

    status_code = 400
    notice = "Invalid file path."

    def __init__(self, message: str | None = None, **context: object):
        super().__init__(message or self.notice, **context)


class StorageIOError(ImageStoreError):
    """Raised when the backing medium is unreachable, unwritable or holds a corrupt map."""

    status_code = 503


class IdentifierExhaustedError(ImageStoreError):
    """Raised when the allocator keeps colliding past its retry cap."""

    status_code = 500

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not allocate a free identifier after {attempts} attempt(s)", attempts=attempts)
