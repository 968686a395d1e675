"""Exception types raised by the koordinates_ogc package."""

from __future__ import annotations

from typing import Optional


class KoordinatesError(Exception):
    """Base class for all errors raised by this package."""


class UnsupportedOperationError(KoordinatesError):
    """The requested operation is not available for this dataset."""


class KoordinatesRequestError(KoordinatesError):
    """A request to the Koordinates site failed.

    ``status_code`` is ``None`` when no response was received at all
    (connection errors, timeouts, exhausted retries).
    """

    def __init__(self, message: str, url: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class DatasetDownloadError(KoordinatesError):
    """The initial dataset could not be downloaded into the local cache."""


class DatasetUnavailableError(KoordinatesError):
    """The initial dataset cannot be obtained for this dataset."""


class DatasetReadError(KoordinatesError):
    """A cached dataset file could not be read or parsed."""

    def __init__(self, message: str, file_path: str) -> None:
        super().__init__(message)
        self.file_path = file_path
