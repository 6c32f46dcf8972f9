#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Raster algebra module.

Cell-wise arithmetic and summary statistics between grids, e.g. a canopy
height model as the difference between a surface and a terrain model, plus
explicit raster reprojection. Every function returns a new grid.
"""
from typing import Any, Optional

import numpy as np
import pandas as pd
from rasterio.warp import Resampling, calculate_default_transform, reproject

from raster_extraction.core.config import DEFAULT_NODATA_VALUE
from raster_extraction.core.exceptions import CrsMismatch, GridMismatch
from raster_extraction.core.grid import Grid
from raster_extraction.core.logging_config import get_module_logger
from raster_extraction.utils.utils import crs_equal, crs_label, timer

# Initialize logger
logger = get_module_logger(__name__)


def _check_compatible(a: Grid, b: Grid) -> None:
    if not crs_equal(a.crs, b.crs):
        raise CrsMismatch(
            f"Grids are in different CRS ({crs_label(a.crs)} vs {crs_label(b.crs)}); "
            f"reproject one of them first",
            source_crs=b.crs, target_crs=a.crs,
        )
    if not a.same_georeference(b):
        raise GridMismatch(
            f"Grids do not share shape/transform: {a.shape} {tuple(a.transform)[:6]} vs "
            f"{b.shape} {tuple(b.transform)[:6]}"
        )
    if b.count not in (1, a.count):
        raise GridMismatch(f"Cannot combine {a.count}-band grid with {b.count}-band grid")


def _output_nodata(grid: Grid) -> float:
    return float(grid.nodata) if grid.nodata is not None and not np.isnan(grid.nodata) else DEFAULT_NODATA_VALUE


def subtract(a: Grid, b: Grid) -> Grid:
    """
    Cell-wise difference ``a - b``.

    Parameters
    ----------
    a, b : Grid
        Grids sharing CRS, shape and transform. ``b`` may be single-band and is
        then subtracted from every band of ``a``.

    Returns
    -------
    Grid
        Float64 grid; cells that are nodata in either input are nodata.
    """
    _check_compatible(a, b)
    nodata = _output_nodata(a)

    valid = a.valid_mask & b.valid_mask
    diff = a.data.astype(np.float64) - b.data.astype(np.float64)
    result = np.where(valid, diff, nodata)

    labels = [f"{la}_minus_{lb}" for la, lb in zip(a.band_labels, b.band_labels * a.count)]
    logger.debug(f"Subtracted {b!r} from {a!r}")
    return a.with_data(result, band_labels=labels, nodata=nodata)


def band_mean(grid: Grid) -> Grid:
    """
    Per-cell mean across bands, ignoring nodata.

    Cells without data in any band are nodata in the output.
    """
    nodata = _output_nodata(grid)
    masked = np.ma.array(grid.data.astype(np.float64), mask=~grid.valid_mask)
    mean = masked.mean(axis=0).filled(nodata)
    return grid.with_data(mean, band_labels=["mean"], nodata=nodata)


def threshold(grid: Grid, value: float, above: bool = True) -> Grid:
    """
    Classify valid cells as 1 where ``cell > value`` (or ``<=`` when
    ``above`` is False) and 0 elsewhere. Nodata cells stay nodata.
    """
    nodata = _output_nodata(grid)
    hit = grid.data > value if above else grid.data <= value
    classes = np.where(grid.valid_mask, hit.astype(np.float64), nodata)
    op = "gt" if above else "le"
    labels = [f"{label}_{op}_{value:g}" for label in grid.band_labels]
    return grid.with_data(classes, band_labels=labels, nodata=nodata)


def grid_statistics(grid: Grid) -> pd.DataFrame:
    """
    Per-band summary statistics over valid cells.

    Returns
    -------
    pd.DataFrame
        Indexed by band label with min, max, mean, std, median and count.
    """
    rows = []
    valid = grid.valid_mask
    for i, label in enumerate(grid.band_labels):
        values = grid.data[i][valid[i]].astype(np.float64)
        if values.size:
            rows.append({
                'band': label,
                'min': float(np.min(values)),
                'max': float(np.max(values)),
                'mean': float(np.mean(values)),
                'std': float(np.std(values)),
                'median': float(np.median(values)),
                'count': int(values.size),
            })
        else:
            rows.append({'band': label, 'min': np.nan, 'max': np.nan, 'mean': np.nan,
                         'std': np.nan, 'median': np.nan, 'count': 0})
    return pd.DataFrame(rows).set_index('band')


@timer
def reproject_grid(
    grid: Grid,
    dst_crs: Any,
    resolution: Optional[float] = None,
    resampling: str = "nearest"
) -> Grid:
    """
    Reproject a grid to another CRS.

    Parameters
    ----------
    grid : Grid
        Source grid; must have a CRS.
    dst_crs : CRS-like
        Target CRS.
    resolution : float, optional
        Target cell size in target CRS units; estimated if None.
    resampling : str, optional
        Name of a ``rasterio.warp.Resampling`` method, by default "nearest".

    Returns
    -------
    Grid
        New grid in ``dst_crs``.
    """
    if grid.crs is None:
        raise CrsMismatch("Cannot reproject a grid without a CRS", target_crs=dst_crs)
    try:
        method = Resampling[resampling]
    except KeyError:
        raise ValueError(f"Unknown resampling method: {resampling}") from None

    west, south, east, north = grid.bounds
    transform, width, height = calculate_default_transform(
        grid.crs, dst_crs, grid.width, grid.height,
        left=west, bottom=south, right=east, top=north,
        resolution=resolution,
    )

    nodata = _output_nodata(grid)
    source = np.where(grid.valid_mask, grid.data, nodata).astype(np.float64)
    destination = np.full((grid.count, height, width), nodata, dtype=np.float64)

    reproject(
        source=source,
        destination=destination,
        src_transform=grid.transform,
        src_crs=grid.crs,
        src_nodata=nodata,
        dst_transform=transform,
        dst_crs=dst_crs,
        dst_nodata=nodata,
        resampling=method,
    )

    logger.info(f"Reprojected grid from {crs_label(grid.crs)} to {crs_label(dst_crs)}: "
                f"{grid.shape} -> {(height, width)}")
    return Grid(
        data=destination,
        transform=transform,
        crs=dst_crs,
        nodata=nodata,
        band_labels=grid.band_labels,
    )
