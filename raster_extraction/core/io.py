#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Input/output handling for the raster-vector extraction toolbox.

This module handles loading rasters (single files and dated stacks), writing
rasters, loading vector feature collections and exporting result tables and
metadata.
"""
import os
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
from datetime import datetime

import numpy as np
import pandas as pd
import geopandas as gpd
import rasterio
from rasterio.errors import RasterioError
from tqdm import tqdm

from raster_extraction.core.config import (
    DEFAULT_NODATA_VALUE, DEFAULT_RASTER_SUFFIX, EXPORT_CONFIG
)
from raster_extraction.core.exceptions import (
    CrsMismatch, GridMismatch, RasterFileNotFound, UnreadableFormat
)
from raster_extraction.core.grid import Grid, nodata_fits
from raster_extraction.core.logging_config import get_module_logger
from raster_extraction.utils.utils import crs_equal, crs_label, timer

# Initialize logger
logger = get_module_logger(__name__)

PathLike = Union[str, Path]

# Output drivers keyed by file extension
RASTER_DRIVERS: Dict[str, str] = {
    ".tif": "GTiff",
    ".tiff": "GTiff",
    ".asc": "AAIGrid",
    ".img": "HFA",
}


def _require_file(path: PathLike) -> Path:
    path = Path(path)
    if not path.exists():
        logger.error(f"File not found: {path}")
        raise RasterFileNotFound(f"File not found: {path}")
    return path


@timer
def load_raster(path: PathLike, band: Optional[int] = None) -> Grid:
    """
    Load raster data from file.

    Parameters
    ----------
    path : str or Path
        Path to any raster rasterio can read (GeoTIFF in practice).
    band : int, optional
        1-based band index to read. All bands are read if None.

    Returns
    -------
    Grid
        Grid with the file's transform, CRS and nodata value.

    Raises
    ------
    RasterFileNotFound
        If ``path`` does not exist.
    UnreadableFormat
        If rasterio cannot open or read the file.
    """
    path = _require_file(path)
    logger.info(f"Loading raster from {path}")

    try:
        with rasterio.open(path) as src:
            if band is not None and not 1 <= band <= src.count:
                raise UnreadableFormat(
                    f"Band {band} requested from {path}, which has {src.count} band(s)"
                )
            indexes = [band] if band is not None else list(range(1, src.count + 1))
            arr = src.read(indexes)

            nodata = src.nodata
            if nodata is not None and not nodata_fits(nodata, arr.dtype):
                logger.warning(f"Ignoring nodata value {nodata} of {path.name}: outside the {arr.dtype} range")
                nodata = None
            elif nodata is None and nodata_fits(DEFAULT_NODATA_VALUE, arr.dtype):
                nodata = DEFAULT_NODATA_VALUE
                logger.warning(f"No nodata value found in {path.name}, using default: {nodata}")
            elif nodata is None:
                logger.warning(f"No nodata value found in {path.name}; every {arr.dtype} cell is treated as valid")

            descriptions = [src.descriptions[i - 1] for i in indexes]
            transform = src.transform
            crs = src.crs
    except RasterioError as e:
        logger.error(f"Rasterio could not read {path}: {e}")
        raise UnreadableFormat(f"Cannot read raster {path}: {e}") from e

    if all(descriptions):
        labels = descriptions
    elif len(indexes) == 1:
        labels = [path.stem]
    else:
        labels = [f"{path.stem}_b{i}" for i in indexes]

    if crs is None:
        logger.warning(f"Raster {path.name} has no CRS; extraction will require CRS-less geometries")

    grid = Grid(data=arr, transform=transform, crs=crs, nodata=nodata, band_labels=labels)
    logger.info(f"Loaded {grid!r}, {int(grid.valid_mask.sum())} valid cells")
    return grid


def save_raster(grid: Grid, path: PathLike, driver: Optional[str] = None) -> Path:
    """
    Write a grid to disk.

    The driver is chosen from the file extension unless given explicitly.
    Band labels are stored as band descriptions so that a reloaded grid keeps
    them.

    Parameters
    ----------
    grid : Grid
        Grid to write.
    path : str or Path
        Output path; parent directories are created.
    driver : str, optional
        GDAL driver short name overriding the extension lookup.

    Returns
    -------
    Path
        The written path.
    """
    path = Path(path)
    if driver is None:
        driver = RASTER_DRIVERS.get(path.suffix.lower())
        if driver is None:
            raise UnreadableFormat(
                f"Cannot infer raster format from extension '{path.suffix}' of {path}. "
                f"Supported extensions: {sorted(RASTER_DRIVERS)}"
            )

    if grid.nodata is not None and not nodata_fits(grid.nodata, grid.dtype):
        raise UnreadableFormat(
            f"Cannot write {path}: nodata value {grid.nodata} is outside the {grid.dtype} range"
        )

    if path.parent:
        os.makedirs(path.parent, exist_ok=True)

    profile = {
        'driver': driver,
        'height': grid.height,
        'width': grid.width,
        'count': grid.count,
        'dtype': grid.dtype.name,
        'crs': grid.crs,
        'transform': grid.transform,
        'nodata': grid.nodata,
    }
    if driver == "GTiff" and EXPORT_CONFIG.get("raster_compress"):
        profile['compress'] = EXPORT_CONFIG["raster_compress"]

    logger.info(f"Writing {grid!r} to {path} ({driver})")
    try:
        with rasterio.open(path, 'w', **profile) as dst:
            dst.write(grid.data)
            for i, label in enumerate(grid.band_labels, start=1):
                dst.set_band_description(i, label)
    except (RasterioError, ValueError) as e:
        logger.error(f"Failed to write raster {path}: {e}")
        raise UnreadableFormat(f"Cannot write raster {path} with driver {driver}: {e}") from e

    return path


def list_rasters(directory: PathLike, suffix: str = DEFAULT_RASTER_SUFFIX) -> List[Path]:
    """
    List the rasters in a directory, sorted lexicographically by file name.

    Parameters
    ----------
    directory : str or Path
        Directory to scan (not recursive).
    suffix : str, optional
        File name suffix to match, by default ".tif".

    Returns
    -------
    list of Path
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.error(f"Directory not found: {directory}")
        raise RasterFileNotFound(f"Directory not found: {directory}")

    paths = sorted(
        (p for p in directory.iterdir() if p.is_file() and p.name.endswith(suffix)),
        key=lambda p: p.name,
    )
    logger.info(f"Found {len(paths)} '*{suffix}' files in {directory}")
    return paths


def _stack_nodata(grids: Sequence[Grid], dtype: np.dtype) -> Optional[float]:
    """First nodata value among ``grids`` that ``dtype`` can hold; NaN for float stacks without one."""
    for grid in grids:
        if grid.nodata is not None and nodata_fits(grid.nodata, dtype):
            return grid.nodata
    return np.nan if np.issubdtype(dtype, np.floating) else None


@timer
def load_raster_stack(
    source: Union[PathLike, Sequence[PathLike]],
    suffix: str = DEFAULT_RASTER_SUFFIX,
    progress: bool = False
) -> Grid:
    """
    Stack single-band rasters into one multi-band grid.

    Parameters
    ----------
    source : str, Path or sequence of paths
        A directory (scanned with :func:`list_rasters`) or explicit files,
        used in the given order.
    suffix : str, optional
        Suffix used when ``source`` is a directory.
    progress : bool, optional
        Show a progress bar while loading, by default False.

    Returns
    -------
    Grid
        Grid with one band per file, labelled with the file names.

    Raises
    ------
    RasterFileNotFound
        If no file matches.
    CrsMismatch
        If the rasters do not share a CRS.
    GridMismatch
        If the rasters do not share shape and transform, or a file has more
        than one band.
    """
    if isinstance(source, (str, Path)):
        paths = list_rasters(source, suffix=suffix)
    else:
        paths = [Path(p) for p in source]

    if not paths:
        raise RasterFileNotFound(f"No '*{suffix}' rasters found in {source}")

    iterable = tqdm(paths, desc="Loading rasters") if progress else paths
    grids = [load_raster(p) for p in iterable]
    reference = grids[0]

    for path, grid in zip(paths, grids):
        if grid.count != 1:
            raise GridMismatch(
                f"{path.name} has {grid.count} bands; a raster stack is built from single-band files"
            )
        if not crs_equal(grid.crs, reference.crs):
            raise CrsMismatch(
                f"{path.name} is in {crs_label(grid.crs)} but {paths[0].name} "
                f"is in {crs_label(reference.crs)}",
                source_crs=grid.crs, target_crs=reference.crs,
            )
        if not grid.same_georeference(reference):
            raise GridMismatch(
                f"{path.name} (shape {grid.shape}, transform {tuple(grid.transform)[:6]}) does not "
                f"match {paths[0].name} (shape {reference.shape}, transform {tuple(reference.transform)[:6]})"
            )

    # Harmonize nodata to the first raster's value where the stack dtype allows it
    dtype = np.result_type(*(grid.dtype for grid in grids))
    nodata = _stack_nodata(grids, dtype)

    layers = []
    for path, grid in zip(paths, grids):
        layer = grid.data[0]
        valid = grid.valid_mask[0]
        if not valid.all():
            if nodata is None:
                raise GridMismatch(
                    f"{path.name} has nodata cells but no nodata value fits the stack dtype {dtype}"
                )
            layer = np.where(valid, layer, nodata)
        layers.append(layer.astype(dtype))

    stack = reference.with_data(np.stack(layers), band_labels=[p.name for p in paths], nodata=nodata)
    logger.info(f"Stacked {stack.count} rasters into {stack!r}")
    return stack


def load_vector(path: PathLike, crs: Optional[Any] = None) -> gpd.GeoDataFrame:
    """
    Load a vector feature collection (shapefile, GeoPackage, GeoJSON, ...).

    Parameters
    ----------
    path : str or Path
        Path to the vector file.
    crs : optional
        CRS to assign when the file carries none. Ignored with a warning if
        the file has its own CRS.

    Returns
    -------
    gpd.GeoDataFrame
        Features with attributes and CRS.

    Raises
    ------
    RasterFileNotFound
        If ``path`` does not exist.
    UnreadableFormat
        If geopandas cannot read the file.
    CrsMismatch
        If the file has no CRS and none is supplied.
    """
    path = _require_file(path)
    logger.info(f"Loading vector from {path}")

    try:
        features = gpd.read_file(path)
    except Exception as e:
        logger.error(f"Failed to load vector {path}: {e}")
        raise UnreadableFormat(f"Cannot read vector file {path}: {e}") from e

    if features.crs is None:
        if crs is None:
            raise CrsMismatch(
                f"Vector file {path} has no CRS; pass one explicitly to load_vector"
            )
        features = features.set_crs(crs)
    elif crs is not None and not crs_equal(features.crs, crs):
        logger.warning(
            f"Ignoring requested CRS {crs_label(crs)}: {path.name} declares {crs_label(features.crs)}"
        )

    logger.info(f"Loaded {len(features)} features ({crs_label(features.crs)}) from {path.name}")
    return features


def describe_vector(features: gpd.GeoDataFrame) -> Dict[str, Any]:
    """
    Summarize a feature collection.

    Returns
    -------
    dict
        Feature count, geometry types, CRS, bounds and attribute columns.
    """
    minx, miny, maxx, maxy = features.total_bounds if len(features) else (np.nan,) * 4
    return {
        'feature_count': int(len(features)),
        'geometry_types': sorted(features.geom_type.dropna().unique().tolist()),
        'crs': crs_label(features.crs),
        'bounds': {'minx': float(minx), 'miny': float(miny), 'maxx': float(maxx), 'maxy': float(maxy)},
        'attributes': [c for c in features.columns if c != features.geometry.name],
    }


def export_table(df: pd.DataFrame, output_path: PathLike, index: bool = False) -> Path:
    """
    Export a result table to CSV.

    Parameters
    ----------
    df : pd.DataFrame
        Table to write.
    output_path : str or Path
        Path to output CSV file.
    index : bool, optional
        Whether to write the index, by default False.
    """
    output_path = Path(output_path)
    if output_path.parent:
        os.makedirs(output_path.parent, exist_ok=True)

    logger.info(f"Exporting {len(df)} rows to {output_path}")
    df.to_csv(
        output_path,
        index=index,
        float_format=EXPORT_CONFIG.get("float_format"),
        date_format=EXPORT_CONFIG.get("date_format"),
    )
    return output_path


def save_metadata(grid: Grid, output_path: PathLike, extra: Optional[Dict[str, Any]] = None) -> Path:
    """
    Save metadata about a grid and the step that produced it as JSON.

    Parameters
    ----------
    grid : Grid
        Grid to describe.
    output_path : str or Path
        Path to output JSON file.
    extra : dict, optional
        Additional entries stored under ``extraction_info``.
    """
    masked = grid.masked()
    valid_values = masked.compressed()
    stats = {
        'min': float(np.min(valid_values)) if valid_values.size else None,
        'max': float(np.max(valid_values)) if valid_values.size else None,
        'mean': float(np.mean(valid_values)) if valid_values.size else None,
        'std': float(np.std(valid_values)) if valid_values.size else None,
        'count': int(valid_values.size),
        'total_cells': int(grid.data.size),
        'valid_percentage': float(valid_values.size / grid.data.size * 100),
    }

    metadata = {
        'timestamp': datetime.now().isoformat(),
        'raster_info': {
            'stats': stats,
            **grid.to_meta()
        },
        'extraction_info': extra or {},
    }

    output_path = Path(output_path)
    if output_path.parent:
        os.makedirs(output_path.parent, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(metadata, f, indent=2, default=str)

    logger.info(f"Saved metadata to {output_path}")
    return output_path


def log_raster_stats(grid: Grid) -> None:
    """
    Log basic statistics about each band of a grid.
    """
    valid = grid.valid_mask
    logger.info(f"Raster shape: {grid.shape}, bands: {grid.count}")
    for i, label in enumerate(grid.band_labels):
        values = grid.data[i][valid[i]]
        logger.info(f"[{label}] valid cells: {values.size} / {valid[i].size} "
                    f"({values.size / valid[i].size * 100:.2f}%)")
        if values.size:
            logger.info(f"[{label}] range: {np.min(values):.2f} to {np.max(values):.2f}, "
                        f"mean {np.mean(values):.2f} ± {np.std(values):.2f}")
