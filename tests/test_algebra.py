#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for raster algebra.
"""
import unittest

import numpy as np
from rasterio.crs import CRS

from raster_extraction.core.exceptions import CrsMismatch, GridMismatch
from raster_extraction.features.algebra import (
    band_mean, grid_statistics, reproject_grid, subtract, threshold
)
from tests.synthetic import NINE, SITE_ORIGIN, create_synthetic_raster, make_grid


class TestSubtract(unittest.TestCase):
    """Cell-wise difference between two grids."""

    def setUp(self):
        self.dsm = make_grid(NINE * 10, band_labels=["dsm"])
        self.dtm = make_grid(NINE, band_labels=["dtm"])

    def test_difference(self):
        chm = subtract(self.dsm, self.dtm)
        np.testing.assert_array_equal(chm.data[0], NINE * 9)
        self.assertEqual(chm.dtype, np.float64)
        self.assertEqual(chm.band_labels, ("dsm_minus_dtm",))
        self.assertTrue(chm.same_georeference(self.dsm))

    def test_recomputation_is_bit_identical(self):
        surface = make_grid(create_synthetic_raster(seed=1))
        terrain = make_grid(create_synthetic_raster(seed=2))
        first = subtract(surface, terrain)
        second = subtract(surface, terrain)
        self.assertEqual(first.data.tobytes(), second.data.tobytes())

    def test_nodata_propagates(self):
        values = NINE.copy()
        values[0, 0] = -9999
        dtm = make_grid(values)
        chm = subtract(self.dsm, dtm)
        self.assertEqual(chm.data[0, 0, 0], -9999.0)
        self.assertFalse(chm.valid_mask[0, 0, 0])
        self.assertEqual(int(chm.valid_mask.sum()), 8)

    def test_single_band_subtrahend_broadcasts(self):
        stack = make_grid(np.stack([NINE, NINE * 2]))
        result = subtract(stack, self.dtm)
        np.testing.assert_array_equal(result.data[0], np.zeros((3, 3)))
        np.testing.assert_array_equal(result.data[1], NINE)

    def test_unsigned_inputs_do_not_wrap(self):
        a = make_grid(np.full((3, 3), 2, dtype=np.uint8))
        b = make_grid(NINE.astype(np.uint8))
        diff = subtract(a, b)
        self.assertEqual(diff.dtype, np.float64)
        self.assertEqual(diff.nodata, -9999.0)
        np.testing.assert_array_equal(diff.data[0], 2.0 - NINE)

    def test_crs_mismatch(self):
        other = make_grid(NINE, crs="EPSG:4326")
        with self.assertRaises(CrsMismatch):
            subtract(self.dsm, other)

    def test_grid_mismatch(self):
        shifted = make_grid(NINE, west=1.0)
        with self.assertRaises(GridMismatch):
            subtract(self.dsm, shifted)
        with self.assertRaises(GridMismatch):
            subtract(self.dsm, make_grid(np.ones((4, 4), dtype=np.float32)))


class TestBandOperations(unittest.TestCase):

    def test_threshold(self):
        classes = threshold(make_grid(NINE), 5)
        np.testing.assert_array_equal(classes.data[0], (NINE > 5).astype(float))
        self.assertEqual(classes.band_labels, ("band_1_gt_5",))

        below = threshold(make_grid(NINE), 5, above=False)
        self.assertEqual(below.data[0, 1, 1], 1.0)
        self.assertEqual(below.band_labels, ("band_1_le_5",))

    def test_threshold_keeps_nodata(self):
        values = NINE.copy()
        values[2, 2] = -9999
        classes = threshold(make_grid(values), 5)
        self.assertEqual(classes.data[0, 2, 2], -9999.0)

    def test_threshold_integer_grid(self):
        values = NINE.astype(np.int16)
        values[0, 0] = -9999
        classes = threshold(make_grid(values), 5)
        self.assertEqual(classes.dtype, np.float64)
        self.assertEqual(classes.data[0, 0, 0], -9999.0)
        self.assertEqual(classes.data[0, 2, 2], 1.0)

    def test_band_mean(self):
        grid = make_grid(np.stack([NINE, NINE * 3]))
        mean = band_mean(grid)
        self.assertEqual(mean.count, 1)
        np.testing.assert_allclose(mean.data[0], NINE * 2)

    def test_band_mean_ignores_nodata(self):
        second = NINE * 3
        second[0, 0] = -9999
        mean = band_mean(make_grid(np.stack([NINE, second])))
        self.assertEqual(mean.data[0, 0, 0], 1.0)

    def test_grid_statistics(self):
        stats = grid_statistics(make_grid(np.stack([NINE, NINE * 2]), band_labels=["a", "b"]))
        self.assertEqual(list(stats.index), ["a", "b"])
        self.assertEqual(stats.loc["a", "mean"], 5.0)
        self.assertEqual(stats.loc["a", "median"], 5.0)
        self.assertEqual(stats.loc["b", "max"], 18.0)
        self.assertEqual(stats.loc["b", "count"], 9)


class TestReprojectGrid(unittest.TestCase):

    def setUp(self):
        values = create_synthetic_raster(shape=(10, 10), seed=3)
        self.grid = make_grid(values, west=SITE_ORIGIN[0], north=SITE_ORIGIN[1], res=10.0)

    def test_reproject_to_geographic(self):
        result = reproject_grid(self.grid, "EPSG:4326")
        self.assertEqual(result.crs, CRS.from_epsg(4326))
        self.assertGreater(int(result.valid_mask.sum()), 0)

        # Nearest neighbour only copies source values
        valid = result.data[result.valid_mask].astype(np.float32)
        self.assertTrue(np.isin(valid, self.grid.data).all())

        west, south, east, north = result.bounds
        self.assertTrue(-73.0 < west < east < -71.0)
        self.assertTrue(42.0 < south < north < 43.0)

    def test_unknown_resampling(self):
        with self.assertRaises(ValueError):
            reproject_grid(self.grid, "EPSG:4326", resampling="fancy")

    def test_grid_without_crs(self):
        with self.assertRaises(CrsMismatch):
            reproject_grid(make_grid(NINE, crs=None), "EPSG:4326")


if __name__ == '__main__':
    unittest.main()
