"""Top level package for the koordinates_ogc project.

This package contains a thin client for geospatial data published on a
Koordinates site (for example the LINZ Data Service).  It wraps the OGC
web services exposed by the site (WFS, WMTS and CS-W), the spatial
query API, the XYZ tile service and the bulk "initial dataset" archive
that is cached locally and read back in bounded batches.

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
...     initial_dataset_ts="2014-05-13T05:27:00Z",
... )
>>> xml = dem.get_layer_capabilities_xml(api_key)  # doctest: +SKIP
"""

import logging

from .config import KoordinatesSettings
from .exceptions import (
    DatasetDownloadError,
    DatasetReadError,
    DatasetUnavailableError,
    KoordinatesError,
    KoordinatesRequestError,
    UnsupportedOperationError,
)
from .koordinates_api import APIKind, KoordinatesDataset

__version__ = "0.1"

# Applications are expected to configure logging themselves; until they
# do, messages from the package are printed at INFO level.
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)s in %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

__all__ = [
    "APIKind",
    "KoordinatesDataset",
    "KoordinatesSettings",
    "KoordinatesError",
    "KoordinatesRequestError",
    "UnsupportedOperationError",
    "DatasetDownloadError",
    "DatasetUnavailableError",
    "DatasetReadError",
]
