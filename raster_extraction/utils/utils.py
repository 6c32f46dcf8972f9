#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Utility functions for the raster-vector extraction toolbox.

This module provides the timing decorator used by the loaders and extraction
functions, plus helpers for comparing coordinate reference systems coming
from rasterio (``rasterio.crs.CRS``) and geopandas (``pyproj.CRS``).
"""
import time
import functools
from typing import Any, Callable, Optional

from pyproj import CRS as ProjCRS
from pyproj.exceptions import CRSError

from raster_extraction.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)


def timer(func: Callable) -> Callable:
    """
    Decorator to time function execution.

    Parameters
    ----------
    func : Callable
        Function to time.

    Returns
    -------
    Callable
        Wrapped function with timing.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        elapsed = time.time() - start_time
        logger.debug(f"Function {func.__name__} took {elapsed:.2f} seconds to run")
        return result
    return wrapper


def to_proj_crs(crs: Any) -> Optional[ProjCRS]:
    """
    Normalize any CRS representation to a ``pyproj.CRS``.

    Accepts rasterio CRS objects, pyproj CRS objects, EPSG codes, PROJ strings
    and WKT. Returns None for None.
    """
    if crs is None:
        return None
    if isinstance(crs, ProjCRS):
        return crs
    try:
        return ProjCRS.from_user_input(crs)
    except CRSError as e:
        raise ValueError(f"Unrecognized CRS: {crs!r}") from e


def crs_equal(a: Any, b: Any) -> bool:
    """
    Compare two CRS definitions.

    Two missing CRS are equal; a missing and a defined CRS are not. Definitions
    that resolve to the same EPSG code are equal even if their WKT differs,
    which is common between shapefile ``.prj`` files and GeoTIFF keys.
    """
    a, b = to_proj_crs(a), to_proj_crs(b)
    if a is None or b is None:
        return a is None and b is None

    if a.equals(b, ignore_axis_order=True):
        return True

    epsg_a, epsg_b = a.to_epsg(), b.to_epsg()
    return epsg_a is not None and epsg_a == epsg_b


def crs_label(crs: Any) -> str:
    """Short human readable name for a CRS, used in log and error messages."""
    proj = to_proj_crs(crs)
    if proj is None:
        return "<no CRS>"
    epsg = proj.to_epsg()
    return f"EPSG:{epsg}" if epsg else proj.name


def is_geographic(crs: Any) -> bool:
    proj = to_proj_crs(crs)
    return bool(proj is not None and proj.is_geographic)
