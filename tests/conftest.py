"""
Shared pytest fixtures for the koordinates_ogc tests.

Provides sample dataset files and fake HTTP sessions so that no test
touches the network.
"""

from unittest.mock import MagicMock

import pytest
import requests

from koordinates_ogc import APIKind, KoordinatesDataset, KoordinatesSettings

from .helpers import LINZ_HOST, make_response


# =============================================================================
# HTTP Fixtures
# =============================================================================

@pytest.fixture
def session():
    """Fake session answering every GET with an empty 200 response."""
    fake = MagicMock(spec=requests.Session)
    fake.get.return_value = make_response()
    return fake


@pytest.fixture
def settings(tmp_path):
    """Settings with a temporary cache directory and fast polling."""
    return KoordinatesSettings(
        api_key="test-key",
        cache_dir=tmp_path / "datasets",
        file_write_timeout=1.0,
        poll_interval=0.01,
    )


# =============================================================================
# Dataset Fixtures
# =============================================================================

@pytest.fixture
def wfs_dataset(session, settings):
    """WFS layer with changesets, spatial information and an initial dataset."""
    return KoordinatesDataset(
        koordinates_host=LINZ_HOST,
        name="NZ Street Address",
        layer_id=105689,
        api_kind=APIKind.WFS,
        api_version="v1",
        version="2.0.0",
        initial_dataset="nz-street-address.csv",
        initial_dataset_location="https://archive.example.com/linz",
        initial_dataset_ts="2023-01-01T00:00:00Z",
        has_changesets=True,
        has_spatial_information=True,
        settings=settings,
        session=session,
    )


@pytest.fixture
def wmts_dataset(session, settings):
    """WMTS raster layer with spatial information."""
    return KoordinatesDataset(
        koordinates_host=LINZ_HOST,
        name="NZ 8m Digital Elevation Model (2012)",
        layer_id=51768,
        api_kind=APIKind.WMTS,
        api_version="v1",
        version="1.0.0",
        initial_dataset_ts="2014-05-13T05:27:00Z",
        has_spatial_information=True,
        settings=settings,
        session=session,
    )


@pytest.fixture
def table_dataset(session, settings):
    """Non-spatial WFS table."""
    return KoordinatesDataset(
        koordinates_host=LINZ_HOST,
        name="NZ Parcel Owners",
        table_id=51564,
        api_kind=APIKind.WFS,
        api_version="v1",
        version="2.0.0",
        settings=settings,
        session=session,
    )


# =============================================================================
# File Fixtures
# =============================================================================

@pytest.fixture
def people_csv(tmp_path):
    """Two-record file with an ``id,name`` header."""
    path = tmp_path / "people.csv"
    path.write_text("id,name\n1,Alice\n2,Bob\n", encoding="utf-8")
    return path


@pytest.fixture
def numbers_csv(tmp_path):
    """Header plus 25 records ``i,value-i``."""
    path = tmp_path / "numbers.csv"
    lines = ["idx,value"] + [f"{i},value-{i}" for i in range(25)]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
