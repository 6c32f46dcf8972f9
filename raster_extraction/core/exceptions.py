#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Exceptions raised by the raster-vector extraction toolbox.

Every error names the input that caused it so that a failing step can be
fixed without re-running the whole session.
"""
from typing import Any, Optional, Tuple


class RasterExtractionError(Exception):
    """Base class for all toolbox errors."""


class RasterFileNotFound(RasterExtractionError, FileNotFoundError):
    """An input raster, vector file or directory does not exist."""


class UnreadableFormat(RasterExtractionError):
    """A file exists but cannot be read (or written) in the requested format."""


class CrsMismatch(RasterExtractionError):
    """Two inputs live in different coordinate reference systems."""

    def __init__(self, message: str, source_crs: Any = None, target_crs: Any = None):
        super().__init__(message)
        self.source_crs = source_crs
        self.target_crs = target_crs


class GridMismatch(RasterExtractionError, ValueError):
    """Two grids do not share shape or affine transform."""


class OutOfExtent(RasterExtractionError):
    """A point query falls outside the grid extent."""

    def __init__(self, message: str, xy: Optional[Tuple[float, float]] = None,
                 bounds: Optional[Tuple[float, float, float, float]] = None):
        super().__init__(message)
        self.xy = xy
        self.bounds = bounds


class DateParseError(RasterExtractionError, ValueError):
    """A file name does not carry a parsable date label."""

    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.name = name
