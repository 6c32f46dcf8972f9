#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Raster-vector extraction module.

Retrieves the raster values lying under a point or inside a polygon. The same
code path serves single-band and multi-band grids: values are always gathered
along the band axis and only squeezed to a scalar for single-band grids.

CRS handling is explicit. The query geometry must be in the grid's CRS;
otherwise :class:`CrsMismatch` is raised and the caller reprojects with
:func:`raster_extraction.features.geometry.reproject_features` or
:func:`raster_extraction.features.algebra.reproject_grid`.

Cell lookup uses the inverse affine transform and takes the floor in pixel
space, so the grid extent is half-open: ``[left, right)`` in x and
``(bottom, top]`` in y for north-up grids. A point exactly on an edge shared by
two cells belongs to the cell to its right / below it, i.e. the cell whose
upper-left corner it is.
"""
import math
from typing import Any, Callable, Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd
import geopandas as gpd
from rasterio.features import geometry_mask
from shapely.geometry import MultiPolygon, Point, Polygon
from shapely.geometry.base import BaseGeometry

from raster_extraction.core.config import EXTRACTION_CONFIG
from raster_extraction.core.exceptions import CrsMismatch, OutOfExtent
from raster_extraction.core.grid import Grid, GridKind
from raster_extraction.core.logging_config import get_module_logger
from raster_extraction.utils.utils import crs_equal, crs_label, timer

# Initialize logger
logger = get_module_logger(__name__)

# Pixel coordinates are rounded before flooring so that points on a cell edge
# do not fall on either side depending on floating point noise.
PIXEL_SNAP_DECIMALS = 9

AGGREGATES: Dict[str, Callable[[np.ndarray], float]] = {
    'mean': np.mean,
    'median': np.median,
    'min': np.min,
    'max': np.max,
    'sum': np.sum,
    'std': np.std,
    'count': lambda values: float(values.size),
}

Aggregate = Union[str, Callable[[np.ndarray], float], None]
GeometryLike = Union[BaseGeometry, gpd.GeoSeries, gpd.GeoDataFrame]


def resolve_aggregate(aggregate: Aggregate) -> Optional[Callable[[np.ndarray], float]]:
    """Turn an aggregation name into a reducer; callables pass through."""
    if aggregate is None or callable(aggregate):
        return aggregate
    try:
        return AGGREGATES[aggregate.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown aggregate '{aggregate}'. Choose one of {sorted(AGGREGATES)} or pass a callable"
        ) from None


def _resolve_geometry(geometry: GeometryLike, crs: Any) -> Tuple[BaseGeometry, Any]:
    """Return the shapely geometry and its CRS for any supported input."""
    if isinstance(geometry, (gpd.GeoDataFrame, gpd.GeoSeries)):
        if len(geometry) != 1:
            raise ValueError(
                f"Expected a single geometry, got {len(geometry)} features; "
                f"use extract_features for collections"
            )
        if crs is not None and not crs_equal(crs, geometry.crs):
            raise CrsMismatch(
                f"Explicit CRS {crs_label(crs)} contradicts the features' CRS {crs_label(geometry.crs)}",
                source_crs=geometry.crs, target_crs=crs,
            )
        shapes = geometry.geometry if isinstance(geometry, gpd.GeoDataFrame) else geometry
        return shapes.iloc[0], geometry.crs
    if isinstance(geometry, BaseGeometry):
        return geometry, crs
    raise TypeError(f"Unsupported geometry type: {type(geometry).__name__}")


def check_crs(grid: Grid, crs: Any) -> None:
    """
    Require the query CRS to match the grid CRS.

    Raises
    ------
    CrsMismatch
        If the CRS differ or only one of them is defined.
    """
    if not crs_equal(grid.crs, crs):
        raise CrsMismatch(
            f"Geometry CRS {crs_label(crs)} does not match grid CRS {crs_label(grid.crs)}; "
            f"reproject the geometry (or the grid) before extracting",
            source_crs=crs, target_crs=grid.crs,
        )


def _squeeze(grid: Grid, values: np.ndarray) -> Union[float, np.ndarray]:
    if grid.kind is GridKind.SINGLE_BAND:
        return values[0]
    return values


def cell_index(grid: Grid, x: float, y: float) -> Tuple[int, int]:
    """
    Map a coordinate to its ``(row, col)`` cell.

    Raises
    ------
    OutOfExtent
        If the coordinate lies outside the grid.
    """
    col_f, row_f = ~grid.transform * (x, y)
    col = math.floor(round(col_f, PIXEL_SNAP_DECIMALS))
    row = math.floor(round(row_f, PIXEL_SNAP_DECIMALS))

    if not (0 <= row < grid.height and 0 <= col < grid.width):
        raise OutOfExtent(
            f"Point ({x}, {y}) is outside the grid extent {tuple(grid.bounds)}",
            xy=(x, y), bounds=tuple(grid.bounds),
        )
    return row, col


def _reduce(values: np.ndarray, reducer: Callable[[np.ndarray], float]) -> np.ndarray:
    """Apply `reducer` to the non-NaN values of each band; NaN for empty bands."""
    reduced = []
    for band in values:
        present = band[~np.isnan(band)]
        reduced.append(float(reducer(present)) if present.size else np.nan)
    return np.array(reduced)


def _band_values(grid: Grid, rows: Any, cols: Any) -> np.ndarray:
    """Values at the given cells for every band, NaN where nodata."""
    values = grid.data[:, rows, cols].astype(np.float64)
    return np.where(grid.valid_mask[:, rows, cols], values, np.nan)


def extract_point(grid: Grid, point: GeometryLike, crs: Any = None) -> Union[float, np.ndarray]:
    """
    Value of the cell under a point.

    Parameters
    ----------
    grid : Grid
        Grid to query.
    point : shapely Point, GeoSeries or GeoDataFrame
        Query point. Collections carry their own CRS.
    crs : optional
        CRS of a bare shapely point.

    Returns
    -------
    float or np.ndarray
        Scalar for a single-band grid, one value per band otherwise. Nodata
        cells give NaN.
    """
    geom, geom_crs = _resolve_geometry(point, crs)
    if not isinstance(geom, Point):
        raise ValueError(f"extract_point expects a Point, got {geom.geom_type}")
    check_crs(grid, geom_crs)

    row, col = cell_index(grid, geom.x, geom.y)
    values = _band_values(grid, row, col)
    logger.debug(f"Point ({geom.x}, {geom.y}) -> cell ({row}, {col})")
    return _squeeze(grid, values)


def covered_cells(grid: Grid, polygon: BaseGeometry, all_touched: Optional[bool] = None) -> np.ndarray:
    """
    Boolean ``(rows, cols)`` mask of the cells covered by a polygon.

    Cells count as covered when their centre lies inside the polygon, or,
    with ``all_touched``, when the polygon touches them at all.
    """
    if all_touched is None:
        all_touched = EXTRACTION_CONFIG.get("all_touched", False)
    if polygon.is_empty:
        return np.zeros(grid.shape, dtype=bool)
    return geometry_mask(
        [polygon],
        out_shape=grid.shape,
        transform=grid.transform,
        all_touched=all_touched,
        invert=True,
    )


@timer
def extract_polygon(
    grid: Grid,
    polygon: GeometryLike,
    crs: Any = None,
    aggregate: Aggregate = None,
    all_touched: Optional[bool] = None
) -> Union[float, np.ndarray]:
    """
    Values of the cells covered by a polygon.

    Parameters
    ----------
    grid : Grid
        Grid to query.
    polygon : shapely (Multi)Polygon, GeoSeries or GeoDataFrame
        Query region.
    crs : optional
        CRS of a bare shapely polygon.
    aggregate : str or callable, optional
        Reducer applied per band (``mean``, ``median``, ``min``, ``max``,
        ``sum``, ``std``, ``count`` or a callable on a 1-D array). If None all
        covered values are returned.
    all_touched : bool, optional
        Use every touched cell instead of cells whose centre is inside.

    Returns
    -------
    float or np.ndarray
        With ``aggregate``: a scalar (single band) or one value per band.
        Without: the covered values, 1-D for a single band or
        ``(bands, n_cells)``. Cells that are nodata in every band are dropped;
        remaining nodata entries are NaN. A polygon covering no cell gives a
        zero-length array, never an error.
    """
    geom, geom_crs = _resolve_geometry(polygon, crs)
    if not isinstance(geom, (Polygon, MultiPolygon)):
        raise ValueError(f"extract_polygon expects a Polygon or MultiPolygon, got {geom.geom_type}")
    check_crs(grid, geom_crs)
    reducer = resolve_aggregate(aggregate)

    mask = covered_cells(grid, geom, all_touched=all_touched)
    rows, cols = np.nonzero(mask)
    values = _band_values(grid, rows, cols)
    values = values[:, ~np.all(np.isnan(values), axis=0)]
    logger.debug(f"Polygon covers {values.shape[1]} cells with data")

    if values.shape[1] == 0:
        return np.empty(0, dtype=np.float64)

    if reducer is None:
        return _squeeze(grid, values)

    return _squeeze(grid, _reduce(values, reducer))


def extract(
    grid: Grid,
    geometry: GeometryLike,
    crs: Any = None,
    aggregate: Aggregate = None,
    all_touched: Optional[bool] = None
) -> Union[float, np.ndarray]:
    """
    Extract values under any supported geometry.

    Points go to :func:`extract_point` (``aggregate`` is ignored); polygons
    and multipolygons to :func:`extract_polygon`.
    """
    geom, geom_crs = _resolve_geometry(geometry, crs)
    if isinstance(geom, Point):
        return extract_point(grid, geom, crs=geom_crs)
    if isinstance(geom, (Polygon, MultiPolygon)):
        return extract_polygon(grid, geom, crs=geom_crs, aggregate=aggregate, all_touched=all_touched)
    raise ValueError(f"Extraction is not supported for {geom.geom_type} geometries")


@timer
def extract_features(
    grid: Grid,
    features: gpd.GeoDataFrame,
    aggregate: Aggregate = "mean",
    all_touched: Optional[bool] = None,
    id_column: Optional[str] = None
) -> pd.DataFrame:
    """
    Extract one row of values per feature of a collection.

    Parameters
    ----------
    grid : Grid
        Grid to query.
    features : gpd.GeoDataFrame
        Point and/or polygon features in the grid's CRS.
    aggregate : str or callable, optional
        Reducer for polygon features, by default "mean". Required when the
        collection contains polygons.
    all_touched : bool, optional
        Cell coverage rule for polygons.
    id_column : str, optional
        Attribute copied into the ``feature`` column; the frame index is used
        if None.

    Returns
    -------
    pd.DataFrame
        Columns ``feature``, ``geometry_type``, ``n_cells`` and one column per
        band label. Points outside the extent, features without geometry and
        polygons covering no cell give NaN values (with a warning for the
        first two).
    """
    check_crs(grid, features.crs)
    reducer = resolve_aggregate(aggregate)

    records = []
    for idx, row in features.iterrows():
        geom = row[features.geometry.name]
        record = {
            'feature': row[id_column] if id_column else idx,
            'geometry_type': geom.geom_type if geom is not None else None,
        }
        values = np.full(grid.count, np.nan)

        if geom is None or geom.is_empty:
            logger.warning(f"Feature {record['feature']} has no geometry; writing NaN values")
            record['n_cells'] = 0
        elif isinstance(geom, Point):
            try:
                values = np.atleast_1d(extract_point(grid, geom, crs=features.crs))
                record['n_cells'] = 1
            except OutOfExtent as e:
                logger.warning(f"Feature {record['feature']}: {e}")
                record['n_cells'] = 0
        elif isinstance(geom, (Polygon, MultiPolygon)):
            if reducer is None:
                raise ValueError("An aggregate is required to tabulate polygon features")
            raw = extract_polygon(grid, geom, crs=features.crs, all_touched=all_touched)
            raw = np.atleast_2d(raw) if raw.size else np.empty((grid.count, 0))
            record['n_cells'] = raw.shape[1]
            if raw.shape[1]:
                values = _reduce(raw, reducer)
        else:
            raise ValueError(
                f"Feature {record['feature']}: extraction is not supported for "
                f"{record['geometry_type']} geometries"
            )

        record.update(dict(zip(grid.band_labels, values)))
        records.append(record)

    table = pd.DataFrame(records, columns=['feature', 'geometry_type', 'n_cells', *grid.band_labels])
    logger.info(f"Extracted {len(grid.band_labels)} band(s) for {len(table)} features")
    return table
