#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
In-memory raster grid.

A :class:`Grid` bundles the cell values of one or more bands with the affine
transform, coordinate reference system and nodata value they were read with.
Values are always stored as a 3-D ``(bands, rows, cols)`` array; whether a grid
is single- or multi-band is exposed through :attr:`Grid.kind`.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
from affine import Affine
from rasterio.coords import BoundingBox
from rasterio.crs import CRS
from rasterio.dtypes import in_dtype_range

from raster_extraction.core.config import DEFAULT_NODATA_VALUE


_INHERIT = object()


def nodata_fits(nodata: Any, dtype: Any) -> bool:
    """Whether ``nodata`` can be stored in an array of ``dtype``."""
    dtype = np.dtype(dtype)
    if np.isnan(nodata):
        return np.issubdtype(dtype, np.floating)
    if dtype.kind not in "iuf":
        return False
    return bool(in_dtype_range(nodata, dtype))


class GridKind(Enum):
    SINGLE_BAND = "single_band"
    MULTI_BAND = "multi_band"


@dataclass(frozen=True, eq=False)
class Grid:
    """
    Immutable raster grid.

    Parameters
    ----------
    data : np.ndarray
        2-D ``(rows, cols)`` or 3-D ``(bands, rows, cols)`` array. A copy is
        stored and marked read-only.
    transform : Affine
        Pixel-to-map affine transform.
    crs : rasterio.crs.CRS, optional
        Coordinate reference system. Strings and EPSG codes are accepted.
    nodata : float, optional
        Value marking missing cells. The default -9999 is dropped (None) for
        dtypes that cannot hold it, e.g. uint8; any other value outside the
        dtype range raises ValueError.
    band_labels : sequence of str, optional
        One label per band, by default ``band_1 .. band_n``.
    """
    data: np.ndarray
    transform: Affine
    crs: Optional[CRS] = None
    nodata: Optional[float] = DEFAULT_NODATA_VALUE
    band_labels: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        arr = np.array(self.data, copy=True)
        if arr.ndim == 2:
            arr = arr[np.newaxis, :, :]
        if arr.ndim != 3:
            raise ValueError(f"Grid data must be 2-D or 3-D, got shape {arr.shape}")
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)

        if self.nodata is not None and not nodata_fits(self.nodata, arr.dtype):
            if self.nodata != DEFAULT_NODATA_VALUE:
                raise ValueError(f"Nodata value {self.nodata} does not fit grid dtype {arr.dtype}")
            object.__setattr__(self, "nodata", None)

        if not isinstance(self.transform, Affine):
            object.__setattr__(self, "transform", Affine(*tuple(self.transform)[:6]))

        if self.crs is not None and not isinstance(self.crs, CRS):
            object.__setattr__(self, "crs", CRS.from_user_input(self.crs))

        labels = tuple(self.band_labels) or tuple(f"band_{i + 1}" for i in range(arr.shape[0]))
        if len(labels) != arr.shape[0]:
            raise ValueError(
                f"Got {len(labels)} band labels for a grid with {arr.shape[0]} bands"
            )
        object.__setattr__(self, "band_labels", labels)

    @property
    def kind(self) -> GridKind:
        return GridKind.SINGLE_BAND if self.count == 1 else GridKind.MULTI_BAND

    @property
    def count(self) -> int:
        return self.data.shape[0]

    @property
    def height(self) -> int:
        return self.data.shape[1]

    @property
    def width(self) -> int:
        return self.data.shape[2]

    @property
    def shape(self) -> Tuple[int, int]:
        """Spatial shape ``(rows, cols)``."""
        return self.data.shape[1], self.data.shape[2]

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    @property
    def res(self) -> Tuple[float, float]:
        return abs(self.transform.a), abs(self.transform.e)

    @property
    def bounds(self) -> BoundingBox:
        corners = [self.transform * (col, row)
                   for col, row in ((0, 0), (self.width, 0), (0, self.height), (self.width, self.height))]
        xs, ys = zip(*corners)
        return BoundingBox(min(xs), min(ys), max(xs), max(ys))

    @property
    def valid_mask(self) -> np.ndarray:
        """Boolean ``(bands, rows, cols)`` array, True where a cell holds data."""
        mask = np.ones(self.data.shape, dtype=bool)
        if np.issubdtype(self.data.dtype, np.floating):
            mask &= ~np.isnan(self.data)
        if self.nodata is not None and not np.isnan(self.nodata):
            mask &= self.data != self.nodata
        return mask

    def masked(self) -> np.ma.MaskedArray:
        return np.ma.array(self.data, mask=~self.valid_mask)

    def band(self, index: int) -> "Grid":
        """Return band ``index`` (0-based) as a new single-band grid."""
        if not -self.count <= index < self.count:
            raise IndexError(f"Band index {index} out of range for {self.count} bands")
        return self.with_data(self.data[index], band_labels=(self.band_labels[index],))

    def with_data(self, data: np.ndarray, band_labels: Optional[Sequence[str]] = None,
                  nodata: Any = _INHERIT) -> "Grid":
        """Return a new grid sharing this grid's georeferencing."""
        return Grid(
            data=data,
            transform=self.transform,
            crs=self.crs,
            nodata=self.nodata if nodata is _INHERIT else nodata,
            band_labels=tuple(band_labels) if band_labels is not None else (),
        )

    def same_georeference(self, other: "Grid") -> bool:
        return self.shape == other.shape and self.transform.almost_equals(other.transform)

    def to_meta(self) -> Dict[str, Any]:
        """Metadata dictionary in the layout used by the raster loader."""
        return {
            'width': self.width,
            'height': self.height,
            'count': self.count,
            'crs': self.crs.to_string() if self.crs else None,
            'bounds': self.bounds._asdict(),
            'nodata': self.nodata,
            'dtype': str(self.dtype),
            'res': self.res,
            'band_labels': list(self.band_labels),
        }

    def __repr__(self) -> str:
        return (f"Grid(kind={self.kind.value}, bands={self.count}, shape={self.shape}, "
                f"crs={self.crs.to_string() if self.crs else None}, res={self.res})")
