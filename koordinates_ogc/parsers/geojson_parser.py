"""
GeoJSON Parser Module
=====================

Helpers turning the GeoJSON payloads returned by a Koordinates site into
:class:`geopandas.GeoDataFrame` objects.  Two payload shapes are handled:

* a plain ``FeatureCollection`` (or a single ``Feature``), as returned by
  the WFS changeset endpoint;
* the result of the vector spatial query API, which nests one
  ``FeatureCollection`` per layer under ``vectorQuery.layers.<layer id>``.

Because :mod:`geopandas` is an optional dependency (install the ``geo``
extra), it is imported lazily.  If GeoPandas is not available an
:class:`ImportError` with a clear message is raised.  No fallback to a
plain :class:`pandas.DataFrame` is provided.

Example
-------
>>> from koordinates_ogc.parsers.geojson_parser import parse_vector_query
>>> payload = dataset.query_wfs_spatial_api_json(api_key, -41.29, 174.78, 10, 500)
>>> gdf = parse_vector_query(payload, dataset.layer_id)  # doctest: +SKIP
>>> gdf[["distance", "geometry"]]  # doctest: +SKIP

Coordinates are not reprojected; Koordinates returns WGS84 longitude and
latitude, which is the default CRS assigned here.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

DEFAULT_CRS = "EPSG:4326"


def _import_geopandas():
    try:
        import geopandas as gpd  # type: ignore
    except ImportError as e:
        raise ImportError(
            "geopandas is required to build GeoDataFrames. Install the 'geo' extra"
            " (pip install koordinates-ogc[geo])."
        ) from e
    return gpd


def features_to_geodataframe(features: Iterable[Mapping[str, Any]], crs: str = DEFAULT_CRS):
    """Build a GeoDataFrame from a sequence of GeoJSON features.

    One row is produced per feature, with a column per property plus the
    ``geometry`` column.  An empty sequence yields an empty GeoDataFrame.
    """
    gpd = _import_geopandas()
    features = list(features)
    if not features:
        return gpd.GeoDataFrame(geometry=[], crs=crs)
    return gpd.GeoDataFrame.from_features(features, crs=crs)


def parse_feature_collection(payload: Dict[str, Any], crs: str = DEFAULT_CRS):
    """Convert a GeoJSON ``FeatureCollection`` or ``Feature`` to a GeoDataFrame.

    Raises
    ------
    ValueError
        If ``payload`` is not a Feature or FeatureCollection.
    """
    if not isinstance(payload, dict) or "type" not in payload:
        raise ValueError("Invalid GeoJSON: top-level object must be a dict with a 'type' key")
    geo_type = payload["type"]
    if geo_type == "FeatureCollection":
        features = payload.get("features")
        if not isinstance(features, list):
            raise ValueError("Invalid GeoJSON: 'features' must be a list")
        return features_to_geodataframe(features, crs=crs)
    if geo_type == "Feature":
        return features_to_geodataframe([payload], crs=crs)
    raise ValueError(f"Unsupported GeoJSON type '{geo_type}'. Must be 'FeatureCollection' or 'Feature'.")


def parse_vector_query(payload: Dict[str, Any], layer_id: int, crs: str = DEFAULT_CRS):
    """Extract the features of ``layer_id`` from a vector query response.

    A layer missing from the response (nothing found within the search
    radius) yields an empty GeoDataFrame.

    Raises
    ------
    ValueError
        If ``payload`` has no ``vectorQuery.layers`` mapping.
    """
    try:
        layers = payload["vectorQuery"]["layers"]
    except (KeyError, TypeError) as e:
        raise ValueError("Invalid vector query response: missing 'vectorQuery.layers'") from e
    layer = layers.get(str(layer_id))
    if layer is None:
        return features_to_geodataframe([], crs=crs)
    return parse_feature_collection(layer, crs=crs)


__all__ = ["features_to_geodataframe", "parse_feature_collection", "parse_vector_query"]
