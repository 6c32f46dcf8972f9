#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Synthetic data for the test suite.

Small grids, GeoTIFFs and vector files with known values, written into
temporary directories by the tests.
"""
import os
from typing import Optional, Sequence, Tuple

import numpy as np
import geopandas as gpd
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import Point

from raster_extraction.core.grid import Grid

# UTM zone 18N, used by the field-site data the workshop is built around
TEST_CRS = "EPSG:32618"
SITE_ORIGIN = (731000.0, 4713000.0)

NINE = np.array([[1, 2, 3], [4, 5, 6], [7, 8, 9]], dtype=np.float32)


def make_grid(
    values: np.ndarray,
    west: float = 0.0,
    north: Optional[float] = None,
    res: float = 1.0,
    crs: Optional[str] = TEST_CRS,
    nodata: Optional[float] = -9999.0,
    band_labels: Sequence[str] = ()
) -> Grid:
    """
    Grid whose lower-left corner is ``(west, north - rows * res)``.

    With the defaults the grid is anchored at the origin: a 3x3 grid covers
    (0, 0)-(3, 3).
    """
    values = np.asarray(values)
    rows = values.shape[-2]
    if north is None:
        north = rows * res
    return Grid(
        data=values,
        transform=from_origin(west, north, res, res),
        crs=crs,
        nodata=nodata,
        band_labels=band_labels,
    )


def create_synthetic_raster(
    shape: Tuple[int, int] = (20, 20),
    seed: Optional[int] = None
) -> np.ndarray:
    """
    Smooth synthetic elevation surface between 300 and 500.
    """
    rng = np.random.default_rng(seed)
    rows, cols = shape
    x = np.linspace(0, 10, cols)
    y = np.linspace(0, 10, rows)
    xx, yy = np.meshgrid(x, y)

    elevation = (
        np.sin(xx) * np.cos(yy) +
        0.5 * np.sin(2 * xx) * np.cos(2 * yy)
    )
    elevation += 0.1 * xx + 0.05 * yy
    elevation += 0.05 * rng.standard_normal((rows, cols))

    elevation = 300 + 200 * (elevation - elevation.min()) / (elevation.max() - elevation.min())
    return elevation.astype(np.float32)


def save_synthetic_raster(
    output_path: str,
    values: np.ndarray,
    west: float = SITE_ORIGIN[0],
    north: float = SITE_ORIGIN[1],
    res: float = 1.0,
    crs: Optional[str] = TEST_CRS,
    nodata: Optional[float] = -9999.0
) -> str:
    """
    Write a single- or multi-band GeoTIFF.
    """
    values = np.asarray(values)
    if values.ndim == 2:
        values = values[np.newaxis]

    os.makedirs(os.path.dirname(output_path), exist_ok=True)
    with rasterio.open(
        output_path,
        'w',
        driver='GTiff',
        height=values.shape[1],
        width=values.shape[2],
        count=values.shape[0],
        dtype=values.dtype,
        crs=crs,
        transform=from_origin(west, north, res, res),
        nodata=nodata
    ) as dst:
        dst.write(values)

    return output_path


def save_points(
    output_path: str,
    coords: Sequence[Tuple[float, float]],
    crs: Optional[str] = TEST_CRS,
    names: Optional[Sequence[str]] = None
) -> str:
    """
    Write point features to a vector file (format from the extension).
    """
    names = list(names) if names is not None else [f"plot_{i}" for i in range(len(coords))]
    features = gpd.GeoDataFrame(
        {'name': names},
        geometry=[Point(x, y) for x, y in coords],
        crs=crs,
    )
    features.to_file(output_path)
    return output_path
