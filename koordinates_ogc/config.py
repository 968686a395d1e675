"""Runtime configuration for the Koordinates client.

All tunables (API key, cache directory, timeouts and retry policy) live
in a single :class:`KoordinatesSettings` instance that is handed to each
:class:`~koordinates_ogc.koordinates_api.KoordinatesDataset`.  Nothing is
read from the environment implicitly; call
:meth:`KoordinatesSettings.from_env` to opt in.

Environment variables
---------------------
``KOORDINATES_API_KEY``
    Default API key used when a request method is called without one.
``KOORDINATES_CACHE_DIR``
    Directory holding downloaded initial datasets (default ``datasets``).
``KOORDINATES_FILE_WRITE_TIMEOUT``
    Seconds to wait for a downloaded file to appear (default ``300``).
``KOORDINATES_REQUEST_TIMEOUT``
    Seconds before an HTTP request times out (default ``30``).
``KOORDINATES_TILES_HOST``
    Base URL of the XYZ tile CDN.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

LINZ_HOST = "https://data.linz.govt.nz"
TILES_HOST = "https://tiles-cdn.koordinates.com"


@dataclass(frozen=True)
class KoordinatesSettings:
    """Settings shared by the HTTP client and the dataset cache.

    Attributes
    ----------
    api_key : str, optional
        Fallback API key for requests that need one.
    cache_dir : Path
        Local directory where initial datasets are stored.
    file_write_timeout : float
        Seconds to wait for a freshly downloaded file to become visible.
    poll_interval : float
        Seconds between two existence checks while waiting for a file.
    request_timeout : float
        Timeout applied to every HTTP request.
    retries : int
        Retries for failed GET requests (connection errors and 429/5xx).
    backoff_factor : float
        Backoff factor passed to :class:`urllib3.util.Retry`.
    tiles_host : str
        Base URL of the XYZ tile service.
    user_agent : str
        ``User-Agent`` header sent with every request.
    """

    api_key: Optional[str] = None
    cache_dir: Path = field(default_factory=lambda: Path("datasets"))
    file_write_timeout: float = 300.0
    poll_interval: float = 2.0
    request_timeout: float = 30.0
    retries: int = 3
    backoff_factor: float = 0.5
    tiles_host: str = TILES_HOST
    user_agent: str = "koordinates_ogc/0.1"

    def __post_init__(self) -> None:
        # frozen dataclass: coerce through object.__setattr__
        object.__setattr__(self, "cache_dir", Path(self.cache_dir))
        object.__setattr__(self, "tiles_host", self.tiles_host.rstrip("/"))
        if self.file_write_timeout <= 0:
            raise ValueError("file_write_timeout must be positive")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.retries < 0:
            raise ValueError("retries cannot be negative")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "KoordinatesSettings":
        """Build settings from ``KOORDINATES_*`` environment variables.

        Variables that are unset (or empty) keep their default value.
        """
        env = os.environ if environ is None else environ
        kwargs = {}
        api_key = env.get("KOORDINATES_API_KEY")
        if api_key:
            kwargs["api_key"] = api_key
        cache_dir = env.get("KOORDINATES_CACHE_DIR")
        if cache_dir:
            kwargs["cache_dir"] = Path(cache_dir)
        write_timeout = env.get("KOORDINATES_FILE_WRITE_TIMEOUT")
        if write_timeout:
            kwargs["file_write_timeout"] = float(write_timeout)
        request_timeout = env.get("KOORDINATES_REQUEST_TIMEOUT")
        if request_timeout:
            kwargs["request_timeout"] = float(request_timeout)
        tiles_host = env.get("KOORDINATES_TILES_HOST")
        if tiles_host:
            kwargs["tiles_host"] = tiles_host
        return cls(**kwargs)
