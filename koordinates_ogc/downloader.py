"""Utilities for caching the initial dataset of a Koordinates layer.

Large layers publish a snapshot of their content, the "initial dataset",
as a single delimited file in a remote archive.  The functions in this
module fetch that file once into a local cache directory and hand the
local path to the batch reader.  A file already present in the cache is
never downloaded again: initial datasets are immutable.

Examples
--------
>>> from koordinates_ogc.downloader import ensure_dataset
>>> path = ensure_dataset(
...     "nz-addresses.csv",
...     "https://example-bucket.s3.amazonaws.com/linz",
...     Path("datasets"),
... )  # doctest: +SKIP
>>> path
PosixPath('datasets/nz-addresses.csv')

Note
----
The downloader does not validate the content of the file.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional, Union

import requests
from requests.adapters import HTTPAdapter, Retry

from .config import KoordinatesSettings
from .exceptions import DatasetDownloadError

# Configure module level logger
logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def create_session(settings: Optional[KoordinatesSettings] = None) -> requests.Session:
    """Return a ``requests.Session`` configured with retry logic.

    Only idempotent GET requests are retried, on connection errors and on
    the status codes where a retry makes sense.
    """
    settings = settings or KoordinatesSettings()
    session = requests.Session()
    retry_strategy = Retry(
        total=settings.retries,
        connect=settings.retries,
        read=settings.retries,
        status=settings.retries,
        backoff_factor=settings.backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": settings.user_agent})
    return session


def wait_for_file(path: Union[str, Path], timeout: float, poll_interval: float = 2.0) -> bool:
    """Poll until ``path`` exists or ``timeout`` seconds have elapsed.

    Returns ``True`` as soon as the file is visible, ``False`` on timeout.
    """
    deadline = time.monotonic() + timeout
    while True:
        if os.path.exists(path):
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(poll_interval)


def download_file(
    url: str,
    dest_path: Path,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = 30.0,
) -> Path:
    """Stream ``url`` into ``dest_path``.

    The body is written to ``<dest_path>.part`` first and renamed once
    complete, so ``dest_path`` either holds the whole file or does not
    exist.

    Raises
    ------
    ValueError
        If ``url`` is not an HTTP(S) URL.
    DatasetDownloadError
        If the request fails, the server answers with an error status or
        the file cannot be written.
    """
    if not url or not url.startswith(("http://", "https://")):
        raise ValueError(f"Unsupported URL scheme for download: {url}")

    session = session or create_session()
    try:
        logger.debug("Fetching %s", url)
        response = session.get(url, stream=True, timeout=timeout)
    except requests.RequestException as exc:
        raise DatasetDownloadError(f"Failed to download {url}: {exc}") from exc

    part_path = dest_path.with_name(dest_path.name + ".part")
    try:
        if response.status_code >= 400:
            raise DatasetDownloadError(f"Failed to download {url}: HTTP {response.status_code}")
        with open(part_path, "wb") as fh:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:  # filter out keep-alive chunks
                    fh.write(chunk)
        os.replace(part_path, dest_path)
    except (OSError, requests.RequestException) as exc:
        if part_path.exists():
            part_path.unlink()
        raise DatasetDownloadError(f"Error writing {url} to {dest_path}: {exc}") from exc
    finally:
        response.close()
    return dest_path


def ensure_dataset(
    name: str,
    location: str,
    cache_dir: Union[str, Path],
    *,
    timeout: float = 300.0,
    poll_interval: float = 2.0,
    session: Optional[requests.Session] = None,
    request_timeout: float = 30.0,
) -> Path:
    """Return the local path of dataset ``name``, downloading it if needed.

    Parameters
    ----------
    name : str
        File name of the dataset inside the remote archive and the cache.
    location : str
        Base URL of the remote archive; the file is fetched from
        ``{location}/{name}``.
    cache_dir : str or Path
        Local cache directory, created when missing.
    timeout : float
        Seconds to wait for the downloaded file to become visible.
    poll_interval : float
        Seconds between two existence checks while waiting.
    session : requests.Session, optional
        Session used for the download.  A retrying session is created
        when omitted.
    request_timeout : float
        Timeout of the HTTP request itself.

    Raises
    ------
    DatasetDownloadError
        If the download fails or the file does not appear in time.
    """
    if not name:
        raise ValueError("A dataset file name must be provided")
    cache_dir = Path(cache_dir)
    cache_dir.mkdir(parents=True, exist_ok=True)

    dest_path = cache_dir / name
    if dest_path.exists():
        logger.debug("Dataset %s already cached at %s", name, dest_path)
        return dest_path

    url = f"{location.rstrip('/')}/{name}"
    logger.info("Started downloading %s", url)
    download_file(url, dest_path, session=session, timeout=request_timeout)
    if not wait_for_file(dest_path, timeout, poll_interval):
        raise DatasetDownloadError(f"Timed out after {timeout}s waiting for {dest_path}")
    logger.info("Dataset written to %s", dest_path)
    return dest_path


__all__ = ["create_session", "download_file", "ensure_dataset", "wait_for_file"]
