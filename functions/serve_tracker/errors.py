"""
Exceptions raised across the serve tracker backend.
"""


class BackendError(Exception):
    """A remote backend call failed (network, auth, validation)."""


class DocumentNotFoundError(BackendError):
    """The requested document does not exist in the collection."""


class LocalStoreError(Exception):
    """A write to the device-local store did not succeed."""


class ValidationError(ValueError):
    """A required field is missing; nothing was persisted."""


class ExportError(ValueError):
    """The export request cannot be satisfied (e.g. inverted date range)."""
