#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for the plotting helpers.
"""
import os
import tempfile
import unittest

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import geopandas as gpd
from shapely.geometry import Point

from raster_extraction.utils.visualization import (
    plot_grid, plot_grid_with_features, plot_histogram, plot_time_series
)
from tests.synthetic import NINE, TEST_CRS, create_synthetic_raster, make_grid


class TestVisualization(unittest.TestCase):
    """Each plot is written to disk without a display."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.test_dir = self.tmpdir.name
        self.grid = make_grid(create_synthetic_raster(seed=42), band_labels=["chm"])

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_plot_grid(self):
        output = os.path.join(self.test_dir, "plots", "chm.png")
        fig = plot_grid(self.grid, output_path=output)
        self.assertTrue(os.path.exists(output))
        self.assertEqual(fig.axes[0].get_title(), "chm")

    def test_plot_grid_with_nodata(self):
        values = NINE.copy()
        values[1, 1] = -9999
        output = os.path.join(self.test_dir, "holes.png")
        plot_grid(make_grid(values), title="holes", output_path=output)
        self.assertTrue(os.path.exists(output))

    def test_plot_grid_with_features(self):
        plots = gpd.GeoDataFrame(geometry=[Point(5, 5).buffer(2), Point(12, 15)], crs=TEST_CRS)
        output = os.path.join(self.test_dir, "overlay.png")
        plot_grid_with_features(self.grid, plots, output_path=output)
        self.assertTrue(os.path.exists(output))

    def test_plot_histogram(self):
        output = os.path.join(self.test_dir, "hist.png")
        plot_histogram(self.grid, bins=10, output_path=output)
        self.assertTrue(os.path.exists(output))

    def test_plot_time_series(self):
        series = pd.Series(
            [0.2, 0.5, 0.4],
            index=pd.DatetimeIndex(pd.to_datetime(["2011-01-05", "2011-01-20", "2011-05-13"]), name="date"),
            name="mean",
        )
        output = os.path.join(self.test_dir, "series.png")
        fig = plot_time_series(series, output_path=output)
        self.assertTrue(os.path.exists(output))
        self.assertEqual(fig.axes[0].get_ylabel(), "mean")

    def test_no_output_path(self):
        fig = plot_histogram(make_grid(np.arange(9, dtype=float).reshape(3, 3)))
        self.assertEqual(len(fig.axes), 1)


if __name__ == '__main__':
    unittest.main()
