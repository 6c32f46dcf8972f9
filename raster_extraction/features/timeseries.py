#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Time-series assembly module.

Builds a date-indexed series of extracted values from a stack of single-date
rasters. Each raster's date is encoded in its file name as a 1-based
day-of-year offset from an epoch, e.g. ``X5_site_ndvi_crop.tif`` is day 5,
which is 2011-01-05 for the default 2011-01-01 epoch.
"""
import re
from datetime import date, timedelta
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from raster_extraction.core.config import (
    DATE_STRIP_PATTERN, DEFAULT_AGGREGATE, DEFAULT_EPOCH, DEFAULT_RASTER_SUFFIX
)
from raster_extraction.core.exceptions import DateParseError
from raster_extraction.core.grid import Grid
from raster_extraction.core.io import load_raster_stack
from raster_extraction.core.logging_config import get_module_logger
from raster_extraction.features.extraction import Aggregate, GeometryLike, extract
from raster_extraction.utils.utils import timer

# Initialize logger
logger = get_module_logger(__name__)


def parse_day_offset(name: Union[str, Path], strip_pattern: str = DATE_STRIP_PATTERN) -> int:
    """
    Day-of-year offset encoded in a file name.

    Directories are dropped, everything matched by ``strip_pattern`` is
    removed and the remainder must be a positive integer written with ASCII
    digits only (no sign or whitespace).
    """
    base = Path(name).name
    remainder = re.sub(strip_pattern, "", base)
    if not re.fullmatch(r"[0-9]+", remainder):
        raise DateParseError(
            f"Cannot parse a day offset from '{base}': '{remainder}' is not a day number",
            name=base,
        )
    offset = int(remainder)
    if offset < 1:
        raise DateParseError(f"Day offset in '{base}' must be >= 1, got {offset}", name=base)
    return offset


def parse_date_label(
    name: Union[str, Path],
    epoch: date = DEFAULT_EPOCH,
    strip_pattern: str = DATE_STRIP_PATTERN
) -> date:
    """
    Parse the date encoded in a raster file name.

    Parameters
    ----------
    name : str or Path
        File name or path, e.g. ``X5_site_ndvi_crop.tif``.
    epoch : date, optional
        Date of day 1, by default 2011-01-01.
    strip_pattern : str, optional
        Regular expression for the prefix/suffix around the day number.

    Returns
    -------
    date
        ``epoch + (offset - 1)`` days.

    Raises
    ------
    DateParseError
        If no positive integer remains after stripping.
    """
    return epoch + timedelta(days=parse_day_offset(name, strip_pattern) - 1)


def parse_date_labels(
    names: Sequence[Union[str, Path]],
    epoch: date = DEFAULT_EPOCH,
    strip_pattern: str = DATE_STRIP_PATTERN
) -> List[date]:
    """Parse every name; the first unparsable name raises."""
    return [parse_date_label(name, epoch=epoch, strip_pattern=strip_pattern) for name in names]


@timer
def assemble_time_series(
    grid: Grid,
    geometry: GeometryLike,
    crs: Any = None,
    aggregate: Aggregate = DEFAULT_AGGREGATE,
    labels: Optional[Sequence[Union[str, Path]]] = None,
    epoch: date = DEFAULT_EPOCH,
    strip_pattern: str = DATE_STRIP_PATTERN,
    all_touched: Optional[bool] = None
) -> pd.Series:
    """
    Extract one value per band and index it by the band's date.

    Parameters
    ----------
    grid : Grid
        Multi-date grid, one band per date (a single-band grid gives a
        one-point series).
    geometry : shapely geometry, GeoSeries or GeoDataFrame
        Point or polygon in the grid's CRS.
    crs : optional
        CRS of a bare shapely geometry.
    aggregate : str or callable, optional
        Reducer for polygon queries, by default "mean".
    labels : sequence, optional
        Names to parse dates from; the grid's band labels if None.
    epoch, strip_pattern : optional
        Passed to :func:`parse_date_label`.

    Returns
    -------
    pd.Series
        Values indexed by date (``DatetimeIndex`` named ``date``), sorted
        chronologically. Empty if the polygon covers no cell.
    """
    labels = list(labels) if labels is not None else list(grid.band_labels)
    if len(labels) != grid.count:
        raise ValueError(f"Got {len(labels)} labels for a grid with {grid.count} bands")

    dates = parse_date_labels(labels, epoch=epoch, strip_pattern=strip_pattern)
    if aggregate is None:
        name = "value"
    else:
        name = aggregate if isinstance(aggregate, str) else getattr(aggregate, "__name__", "value")

    values = np.atleast_1d(extract(grid, geometry, crs=crs, aggregate=aggregate, all_touched=all_touched))
    if values.size == 0:
        logger.warning("Geometry covers no cell with data; returning an empty time series")
        return pd.Series([], index=pd.DatetimeIndex([], name="date"), name=name, dtype=float)
    if values.shape != (grid.count,):
        raise ValueError("Polygon time series need an aggregate to reduce each date to one value")

    series = pd.Series(
        values.astype(float),
        index=pd.DatetimeIndex(pd.to_datetime(dates), name="date"),
        name=name,
    ).sort_index()

    logger.info(f"Assembled time series with {len(series)} dates "
                f"from {series.index.min().date()} to {series.index.max().date()}")
    return series


def time_series_from_directory(
    directory: Union[str, Path],
    geometry: GeometryLike,
    crs: Any = None,
    suffix: str = DEFAULT_RASTER_SUFFIX,
    aggregate: Aggregate = DEFAULT_AGGREGATE,
    epoch: date = DEFAULT_EPOCH,
    strip_pattern: str = DATE_STRIP_PATTERN,
    all_touched: Optional[bool] = None
) -> pd.Series:
    """Load every ``*suffix`` raster of ``directory`` and assemble the series."""
    stack = load_raster_stack(directory, suffix=suffix)
    return assemble_time_series(
        stack, geometry, crs=crs, aggregate=aggregate,
        epoch=epoch, strip_pattern=strip_pattern, all_touched=all_touched,
    )


def time_series_frame(series: pd.Series) -> pd.DataFrame:
    """
    Tabulate a time series as ``date``, ``day_of_year`` and ``value`` columns.
    """
    index = pd.DatetimeIndex(series.index)
    return pd.DataFrame({
        'date': index,
        'day_of_year': index.dayofyear,
        'value': series.to_numpy(dtype=float),
    })
