#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Vector geometry operations.

Point construction, buffering and explicit reprojection of feature
collections. Buffer distances are in the units of the collection's CRS, so
points in a geographic CRS should be reprojected to a metric CRS first.
"""
from typing import Any, Optional

import geopandas as gpd
from shapely.geometry import Point

from raster_extraction.core.config import EXTRACTION_CONFIG
from raster_extraction.core.exceptions import CrsMismatch
from raster_extraction.core.logging_config import get_module_logger
from raster_extraction.utils.utils import crs_equal, crs_label, is_geographic

# Initialize logger
logger = get_module_logger(__name__)


def make_point(x: float, y: float, crs: Any) -> gpd.GeoDataFrame:
    """Create a one-feature point collection at ``(x, y)`` in ``crs``."""
    if crs is None:
        raise CrsMismatch("A CRS is required to create a point feature")
    return gpd.GeoDataFrame({'id': [0]}, geometry=[Point(x, y)], crs=crs)


def buffer_features(
    features: gpd.GeoDataFrame,
    distance: float,
    resolution: Optional[int] = None
) -> gpd.GeoDataFrame:
    """
    Buffer every geometry of a collection.

    Parameters
    ----------
    features : gpd.GeoDataFrame
        Input features.
    distance : float
        Buffer radius in CRS units. Must be positive.
    resolution : int, optional
        Segments per quarter circle, by default from EXTRACTION_CONFIG.

    Returns
    -------
    gpd.GeoDataFrame
        Copy of ``features`` with buffered geometries; attributes and CRS kept.
    """
    if distance <= 0:
        raise ValueError(f"Buffer distance must be positive, got {distance}")
    if resolution is None:
        resolution = EXTRACTION_CONFIG.get("buffer_resolution", 16)

    if is_geographic(features.crs):
        logger.warning(
            f"Buffering in geographic CRS {crs_label(features.crs)}: distance {distance} "
            f"is interpreted in degrees"
        )

    buffered = features.copy()
    buffered = buffered.set_geometry(features.geometry.buffer(distance, resolution=resolution))
    logger.debug(f"Buffered {len(features)} features by {distance}")
    return buffered


def buffer_point(
    features: gpd.GeoDataFrame,
    distance: float,
    index: int = 0,
    resolution: Optional[int] = None
) -> gpd.GeoDataFrame:
    """
    Buffer a single point feature.

    Parameters
    ----------
    features : gpd.GeoDataFrame
        Collection holding the point.
    distance : float
        Buffer radius in CRS units.
    index : int, optional
        Positional index of the point in the collection, by default 0.

    Returns
    -------
    gpd.GeoDataFrame
        One-row collection with the buffer polygon, the point's attributes and
        the collection's CRS.
    """
    if not 0 <= index < len(features):
        raise IndexError(f"Feature index {index} out of range for {len(features)} features")

    feature = features.iloc[[index]]
    geom_type = feature.geom_type.iloc[0]
    if geom_type != "Point":
        raise ValueError(f"buffer_point expects a Point feature, got {geom_type}")

    return buffer_features(feature, distance, resolution=resolution)


def reproject_features(features: gpd.GeoDataFrame, dst_crs: Any) -> gpd.GeoDataFrame:
    """
    Reproject a collection to ``dst_crs``.

    Returns a copy even when no transformation is needed, so callers never
    share a frame with their input.
    """
    if features.crs is None:
        raise CrsMismatch("Cannot reproject features without a CRS", target_crs=dst_crs)
    if dst_crs is None:
        raise CrsMismatch("Cannot reproject features to an undefined CRS", source_crs=features.crs)

    if crs_equal(features.crs, dst_crs):
        return features.copy()

    logger.info(f"Reprojecting {len(features)} features from {crs_label(features.crs)} "
                f"to {crs_label(dst_crs)}")
    # rasterio CRS objects go through WKT so pyproj sees a standard definition
    target = dst_crs.to_wkt() if hasattr(dst_crs, "to_wkt") else dst_crs
    return features.to_crs(target)
