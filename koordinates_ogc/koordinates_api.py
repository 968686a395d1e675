"""Interface to the web services of a Koordinates data site.

Koordinates hosts open geospatial data portals such as the LINZ Data
Service (https://data.linz.govt.nz).  Each layer or table published on
such a site is reachable through several OGC services and a couple of
proprietary APIs.  :class:`KoordinatesDataset` describes one layer or
table and exposes those services as methods:

* capability documents of the Web Feature Service (WFS), the Web Map Tile
  Service (WMTS) and the Catalogue Service for the Web (CS-W), either as
  raw XML or converted to nested dicts;
* WFS changesets between two timestamps;
* the spatial query API (vector and raster);
* the XYZ tile service;
* the "initial dataset", a bulk snapshot of a WFS layer that is cached
  locally and read back in bounded batches.

Network calls go through a ``requests.Session`` configured with retry
logic.  Unlike the lookups of a search API, every request here targets a
known resource, so failures are raised as
:class:`~koordinates_ogc.exceptions.KoordinatesRequestError` rather than
turned into empty results.

Examples
--------
>>> from koordinates_ogc import APIKind, KoordinatesDataset
>>> dem = KoordinatesDataset(
...     koordinates_host="https://data.linz.govt.nz",
...     name="NZ 8m Digital Elevation Model (2012)",
...     layer_id=51768,
...     api_kind=APIKind.WMTS,
...     api_version="v1",
...     version="1.0.0",
...     has_spatial_information=True,
... )
>>> caps = dem.get_layer_capabilities_json(api_key)  # doctest: +SKIP
>>> caps["Capabilities"]["$"]["version"]  # doctest: +SKIP
'1.0.0'
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from .config import KoordinatesSettings
from .downloader import create_session, ensure_dataset
from .exceptions import (
    DatasetUnavailableError,
    KoordinatesRequestError,
    UnsupportedOperationError,
)
from .parsers.csv_parser import MAX_BATCH_SIZE, count_records, read_csv_in_batches
from .parsers.geojson_parser import parse_vector_query
from .parsers.xml_parser import parse_xml

logger = logging.getLogger(__name__)

_KEY_IN_URL = re.compile(r"(key=)[^/&;\s]+")


def _redact_key(text: str) -> str:
    """Mask API keys embedded in a URL or in a message quoting one."""
    return _KEY_IN_URL.sub(r"\1***", text)


class APIKind(str, Enum):
    """OGC service family through which a dataset is published."""

    WFS = "OGC Web Feature Service"
    WMTS = "OGC Web Map Tile Service"


class KoordinatesDataset:
    """Client for one layer or table of a Koordinates site.

    Exactly one of ``layer_id`` and ``table_id`` must be given; the other
    is stored as ``-1``.  The instance holds a ``requests.Session`` and can
    be reused for any number of calls.

    Parameters
    ----------
    koordinates_host : str
        Base URL of the site, e.g. ``https://data.linz.govt.nz``.
    name : str
        Human readable dataset name.
    api_kind : APIKind
        Service family of the dataset.
    api_version : str
        Version of the spatial query API, e.g. ``"v1"``.
    version : str
        OGC service version, e.g. ``"2.0.0"`` for WFS or ``"1.0.0"`` for
        WMTS.
    layer_id, table_id : int, optional
        Identifier of the layer or of the (non-spatial) table.
    initial_dataset : str
        File name of the initial dataset in the remote archive.
    initial_dataset_location : str
        Base URL of the remote archive.
    initial_dataset_ts : str
        Timestamp of the initial dataset snapshot.
    has_changesets : bool
        Whether the WFS changeset API is enabled for the dataset.
    has_spatial_information : bool
        Whether the dataset can be used with the spatial query API.
    settings : KoordinatesSettings, optional
        Cache, timeout and retry configuration.
    session : requests.Session, optional
        Session to use instead of a freshly configured one.
    """

    def __init__(
        self,
        koordinates_host: str,
        name: str,
        api_kind: APIKind,
        api_version: str,
        version: str,
        layer_id: Optional[int] = None,
        table_id: Optional[int] = None,
        initial_dataset: str = "",
        initial_dataset_location: str = "",
        initial_dataset_ts: str = "",
        has_changesets: bool = False,
        has_spatial_information: bool = False,
        settings: Optional[KoordinatesSettings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if layer_id is None and table_id is None:
            raise ValueError("layer_id and table_id cannot be both undefined")
        if layer_id is not None and table_id is not None:
            raise ValueError("layer_id and table_id cannot be assigned values")

        self.koordinates_host = koordinates_host.rstrip("/")
        self.name = name
        self.layer_id = layer_id if layer_id is not None else -1
        self.table_id = table_id if table_id is not None else -1
        self.api_kind = APIKind(api_kind)
        self.api_version = api_version
        self.version = version
        self.initial_dataset = initial_dataset
        self.initial_dataset_location = initial_dataset_location
        self.initial_dataset_ts = initial_dataset_ts
        self.has_changesets = has_changesets
        self.has_spatial_information = has_spatial_information
        self.settings = settings or KoordinatesSettings()
        self.session = session or create_session(self.settings)

    def __repr__(self) -> str:
        return f"KoordinatesDataset(name={self.name!r}, id={self.dataset_id!r}, api_kind={self.api_kind.name})"

    @property
    def dataset_id(self) -> str:
        """Identifier used in WFS paths: ``table-<id>`` or ``layer-<id>``."""
        if self.table_id > 0:
            return f"table-{self.table_id}"
        return f"layer-{self.layer_id}"

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _api_key(self, api_key: Optional[str]) -> str:
        key = api_key or self.settings.api_key
        if not key:
            raise ValueError(
                "Missing Koordinates API key. Pass api_key or set 'KOORDINATES_API_KEY'."
            )
        return key

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Perform a GET request and raise on transport or HTTP errors."""
        safe_url = _redact_key(url)
        safe_params = {k: "***" if k == "key" else v for k, v in (params or {}).items()}
        try:
            logger.debug("Requesting URL %s with params %s", safe_url, safe_params)
            response = self.session.get(url, params=params, timeout=self.settings.request_timeout)
        except requests.RequestException as exc:
            reason = _redact_key(str(exc))
            logger.error("Request exception for %s: %s", safe_url, reason)
            raise KoordinatesRequestError(f"Request to {safe_url} failed: {reason}", safe_url) from exc
        if response.status_code >= 400:
            logger.warning("Received HTTP %s for %s", response.status_code, safe_url)
            raise KoordinatesRequestError(
                f"Request to {safe_url} failed with HTTP {response.status_code}",
                safe_url,
                status_code=response.status_code,
            )
        return response

    def _require_kind(self, kind: APIKind, message: str) -> None:
        if self.api_kind != kind:
            raise UnsupportedOperationError(message)

    def _require_spatial_information(self) -> None:
        if not self.has_spatial_information:
            raise UnsupportedOperationError("This dataset does not have spatial information.")

    # ------------------------------------------------------------------
    # Catalogue and capabilities
    # ------------------------------------------------------------------

    def get_web_catalog_services_xml(self) -> str:
        """Return the CS-W capabilities document listing all public datasets of the site."""
        url = f"{self.koordinates_host}/services/csw/"
        return self._get(url, params={"service": "CSW", "request": "GetCapabilities"}).text

    def get_web_catalog_services_json(self) -> Dict[str, Any]:
        """Return the CS-W capabilities document converted to nested dicts."""
        url = f"{self.koordinates_host}/services/csw/"
        response = self._get(url, params={"service": "CSW", "request": "GetCapabilities"})
        return parse_xml(response.content)

    def _layer_capabilities_request(self, api_key: Optional[str]):
        key = self._api_key(api_key)
        if self.api_kind == APIKind.WFS:
            url = f"{self.koordinates_host}/services;key={key}/wfs/{self.dataset_id}/"
            return url, {"service": "WFS", "request": "GetCapabilities"}
        if self.api_kind == APIKind.WMTS:
            url = (
                f"{self.koordinates_host}/services;key={key}/wmts/{self.version}"
                f"/layer/{self.layer_id}/WMTSCapabilities.xml"
            )
            return url, None
        raise UnsupportedOperationError(f"Unsupported API kind {self.api_kind}")

    def _all_capabilities_request(self, api_key: Optional[str]):
        key = self._api_key(api_key)
        if self.api_kind == APIKind.WFS:
            url = f"{self.koordinates_host}/services;key={key}/wfs/"
            return url, {"service": "WFS", "request": "GetCapabilities"}
        if self.api_kind == APIKind.WMTS:
            url = f"{self.koordinates_host}/services;key={key}/wmts/{self.version}/WMTSCapabilities.xml"
            return url, None
        raise UnsupportedOperationError(f"Unsupported API kind {self.api_kind}")

    def get_layer_capabilities_xml(self, api_key: Optional[str] = None) -> str:
        """Return the capabilities document of this layer (WFS or WMTS) as XML text."""
        url, params = self._layer_capabilities_request(api_key)
        return self._get(url, params=params).text

    def get_layer_capabilities_json(self, api_key: Optional[str] = None) -> Dict[str, Any]:
        """Return the capabilities document of this layer converted to nested dicts."""
        url, params = self._layer_capabilities_request(api_key)
        return parse_xml(self._get(url, params=params).content)

    def get_all_capabilities_xml(self, api_key: Optional[str] = None) -> str:
        """Return the capabilities document of the whole site for this service as XML text."""
        url, params = self._all_capabilities_request(api_key)
        return self._get(url, params=params).text

    def get_all_capabilities_json(self, api_key: Optional[str] = None) -> Dict[str, Any]:
        """Return the site-wide capabilities document converted to nested dicts."""
        url, params = self._all_capabilities_request(api_key)
        return parse_xml(self._get(url, params=params).content)

    # ------------------------------------------------------------------
    # Changesets and spatial queries
    # ------------------------------------------------------------------

    def get_wfs_changesets(
        self, api_key: Optional[str], timestamp_from: str, timestamp_to: str
    ) -> Dict[str, Any]:
        """Return the WFS changeset between two timestamps.

        Parameters
        ----------
        api_key : str or None
            Koordinates API key, ``None`` to use the configured one.
        timestamp_from, timestamp_to : str
            ISO 8601 timestamps delimiting the changes.

        Returns
        -------
        dict
            A GeoJSON ``FeatureCollection`` of changed features.  Each
            feature carries a ``__change__`` property (``INSERT``,
            ``UPDATE`` or ``DELETE``).
        """
        if not self.has_changesets:
            raise UnsupportedOperationError(f"Changesets API is not supported by dataset {self.name}.")
        self._require_kind(
            APIKind.WFS, "Changesets API is available for WFS (Web Feature Service) only."
        )
        key = self._api_key(api_key)
        url = f"{self.koordinates_host}/services;key={key}/wfs/{self.dataset_id}-changeset"
        params = {
            "SERVICE": "WFS",
            "VERSION": self.version,
            "REQUEST": "GetFeature",
            "typeNames": f"{self.dataset_id}-changeset",
            "viewparams": f"from:{timestamp_from};to:{timestamp_to}",
            "outputFormat": "json",
        }
        return self._get(url, params=params).json()

    def _vector_query(self, fmt: str, api_key, latitude, longitude, max_result, radius):
        self._require_kind(
            APIKind.WFS, "This method is applied to Web Feature Service datasets only"
        )
        self._require_spatial_information()
        url = f"{self.koordinates_host}/services/query/{self.api_version}/vector.{fmt}"
        params = {
            "key": self._api_key(api_key),
            "layer": self.layer_id,
            "x": longitude,
            "y": latitude,
            "max_results": max_result,
            "radius": radius,
            "geometry": "true",
            "with_field_names": "true",
        }
        return self._get(url, params=params)

    def query_wfs_spatial_api_json(
        self,
        api_key: Optional[str],
        latitude: float,
        longitude: float,
        max_result: int,
        radius: float,
    ) -> Dict[str, Any]:
        """Return the features within ``radius`` metres of a point, as JSON.

        At most ``max_result`` features are returned.  Only WFS datasets
        with spatial information support this query.
        """
        return self._vector_query("json", api_key, latitude, longitude, max_result, radius).json()

    def query_wfs_spatial_api_xml(
        self,
        api_key: Optional[str],
        latitude: float,
        longitude: float,
        max_result: int,
        radius: float,
    ) -> str:
        """Same as :meth:`query_wfs_spatial_api_json` but returns the XML text."""
        return self._vector_query("xml", api_key, latitude, longitude, max_result, radius).text

    def query_wfs_spatial_features(
        self,
        api_key: Optional[str],
        latitude: float,
        longitude: float,
        max_result: int,
        radius: float,
    ):
        """Run a vector query and return the features as a GeoDataFrame.

        Requires the optional ``geopandas`` dependency.
        """
        payload = self.query_wfs_spatial_api_json(api_key, latitude, longitude, max_result, radius)
        return parse_vector_query(payload, self.layer_id)

    def query_wmts_spatial_api_json(
        self, api_key: Optional[str], latitude: float, longitude: float
    ) -> Dict[str, Any]:
        """Return the raster values of this layer at a point."""
        self._require_kind(
            APIKind.WMTS, "This method is applied to Web Map Tile Service datasets only"
        )
        self._require_spatial_information()
        url = f"{self.koordinates_host}/services/query/{self.api_version}/raster.json"
        params = {
            "key": self._api_key(api_key),
            "layer": self.layer_id,
            "x": longitude,
            "y": latitude,
        }
        return self._get(url, params=params).json()

    def query_xyz_tile_service_api(
        self, api_key: Optional[str], x: int, y: int, zoom_level: int = 18
    ) -> bytes:
        """Return the PNG tile at ``(x, y)`` for ``zoom_level`` (Web Mercator grid)."""
        self._require_kind(
            APIKind.WMTS, "This method is applied to Web Map Tile Service datasets only"
        )
        key = self._api_key(api_key)
        url = (
            f"{self.settings.tiles_host}/services;key={key}/tiles/v4"
            f"/layer={self.layer_id}/EPSG:3857/{zoom_level}/{x}/{y}.png"
        )
        return self._get(url).content

    # ------------------------------------------------------------------
    # Initial dataset
    # ------------------------------------------------------------------

    def _ensure_initial_dataset(self):
        return ensure_dataset(
            self.initial_dataset,
            self.initial_dataset_location,
            self.settings.cache_dir,
            timeout=self.settings.file_write_timeout,
            poll_interval=self.settings.poll_interval,
            session=self.session,
            request_timeout=self.settings.request_timeout,
        )

    def get_initial_dataset_count(self) -> int:
        """Return the number of records in the initial dataset.

        The dataset is downloaded into the cache first if necessary.
        """
        if not self.initial_dataset:
            raise DatasetUnavailableError(f"Dataset {self.name} has no initial dataset.")
        return count_records(self._ensure_initial_dataset())

    def get_initial_dataset_in_batch(self, start: int, batch: int) -> List[Dict[str, str]]:
        """Return a subset of the initial dataset.

        Parameters
        ----------
        start : int
            Index of the first record, starting from 0.
        batch : int
            Number of records to return, at most 100,000.

        Returns
        -------
        list of dict
            Records mapping column names to string values.  Empty when
            ``start`` is past the last record.
        """
        self._require_kind(
            APIKind.WFS, "Initial dataset is available for WFS (Web Feature Service) only."
        )
        if batch <= 0 or batch > MAX_BATCH_SIZE:
            raise ValueError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}")
        if start < 0:
            raise ValueError("start must be zero or positive")
        if self.initial_dataset and self.initial_dataset_ts:
            path = self._ensure_initial_dataset()
            return read_csv_in_batches(path, start, batch)
        if self.initial_dataset_ts:
            logger.info("Dataset %s has no initial dataset archive", self.name)
            raise DatasetUnavailableError(
                f"Initial dataset of {self.name} is not available from the archive."
            )
        raise ValueError("Initial dataset timestamp cannot be empty")


__all__ = ["APIKind", "KoordinatesDataset"]
