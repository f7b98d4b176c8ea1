# -*- coding: utf-8 -*-
"""Exception types for the content store.

Core code raises these without knowing about HTTP; each class carries the
``kind`` and ``status_code`` the HTTP layer uses to render an error body.
"""


class ContentStoreError(Exception):
    """Base class for all content store errors."""

    kind = "ContentStoreError"
    status_code = 500
    #: Message shown to clients instead of ``str(exc)`` when set.
    public_message = None

    @property
    def message(self):
        if self.public_message is not None:
            return self.public_message
        return str(self) or self.kind


class ConfigurationError(ContentStoreError, ValueError):
    """Raised at construction time for an invalid hash factory, algorithm,
    encoding or other setting.
    """

    kind = "ConfigurationError"


class StorageError(ContentStoreError):
    """Raised when writing, renaming or removing a file fails."""

    kind = "StorageError"
    public_message = "Storage operation failed"


class StreamError(StorageError):
    """Raised when a part's byte stream fails before its digest is known."""

    kind = "StreamError"
    public_message = "Upload stream failed"


class NotFoundError(ContentStoreError, LookupError):
    """Raised when a digest does not name a stored object."""

    kind = "NotFound"
    status_code = 404


class ConflictError(ContentStoreError):
    """Raised when an existing object could not be removed."""

    kind = "ConflictError"
    status_code = 409
    public_message = "Object could not be removed"
