#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for the command line interface.
"""
import json
import os
import tempfile
import unittest

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd

from raster_extraction.cli import main, parse_arguments
from raster_extraction.core.io import load_raster
from tests.synthetic import NINE, SITE_ORIGIN, save_points, save_synthetic_raster


class TestCommandLine(unittest.TestCase):
    """End-to-end runs of the three commands."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.test_dir = self.tmpdir.name
        x, y = SITE_ORIGIN
        self.dsm = save_synthetic_raster(os.path.join(self.test_dir, "dsm.tif"), NINE * 10)
        self.dtm = save_synthetic_raster(os.path.join(self.test_dir, "dtm.tif"), NINE)
        self.plots = save_points(
            os.path.join(self.test_dir, "plots.gpkg"),
            [(x + 1.5, y - 1.5), (x + 0.5, y - 2.5)],
            names=["centre", "corner"],
        )

    def tearDown(self):
        self.tmpdir.cleanup()

    def _path(self, *parts):
        return os.path.join(self.test_dir, *parts)

    def test_parse_arguments(self):
        args = parse_arguments(["extract", "a.tif", "b.gpkg", "--buffer", "20", "--aggregate", "max"])
        self.assertEqual(args.command, "extract")
        self.assertEqual(args.buffer, 20.0)
        self.assertEqual(args.aggregate, "max")
        self.assertFalse(args.all_touched)
        self.assertIsNone(args.log_level)

        bare = parse_arguments(["timeseries", "ndvi", "plots.shp", "--buffer"])
        self.assertEqual(bare.buffer, 20.0)
        self.assertEqual(bare.epoch.isoformat(), "2011-01-01")

    def test_command_is_required(self):
        with self.assertRaises(SystemExit):
            parse_arguments([])

    def test_difference(self):
        output = self._path("out", "chm.tif")
        status = main(["--log-level", "WARNING", "difference", self.dsm, self.dtm,
                       "--output", output, "--save-metadata"])
        self.assertEqual(status, 0)

        chm = load_raster(output)
        np.testing.assert_array_equal(chm.data[0], NINE * 9)
        with open(self._path("out", "chm.json")) as f:
            metadata = json.load(f)
        self.assertEqual(metadata['extraction_info']['operation'], 'difference')

    def test_extract_points(self):
        output = self._path("values.csv")
        status = main(["--log-level", "WARNING", "extract", self.dtm, self.plots,
                       "--id-column", "name", "--output", output])
        self.assertEqual(status, 0)

        table = pd.read_csv(output)
        self.assertEqual(list(table['feature']), ["centre", "corner"])
        self.assertEqual(list(table['dtm']), [5.0, 7.0])

    def test_extract_buffered_points(self):
        output = self._path("buffered.csv")
        status = main(["--log-level", "WARNING", "extract", self.dtm, self.plots,
                       "--buffer", "1.2", "--aggregate", "max", "--output", output])
        self.assertEqual(status, 0)

        table = pd.read_csv(output)
        self.assertEqual(list(table['geometry_type']), ["Polygon", "Polygon"])
        self.assertEqual(list(table['n_cells']), [5, 3])
        self.assertEqual(list(table['dtm']), [8.0, 8.0])

    def test_timeseries(self):
        series_dir = self._path("ndvi")
        for day in (20, 5):
            save_synthetic_raster(os.path.join(series_dir, f"X{day}_HARV_ndvi_crop.tif"), NINE + day)

        output = self._path("series.csv")
        plot = self._path("series.png")
        status = main(["--log-level", "WARNING", "timeseries", series_dir, self.plots,
                       "--output", output, "--plot", plot])
        self.assertEqual(status, 0)
        self.assertTrue(os.path.exists(plot))

        table = pd.read_csv(output)
        self.assertEqual(list(table['date']), ["2011-01-05", "2011-01-20"])
        self.assertEqual(list(table['value']), [10.0, 25.0])

    def test_timeseries_feature_index_out_of_range(self):
        series_dir = self._path("ndvi")
        save_synthetic_raster(os.path.join(series_dir, "X1_HARV_ndvi_crop.tif"), NINE)
        status = main(["--log-level", "CRITICAL", "timeseries", series_dir, self.plots,
                       "--feature-index", "5"])
        self.assertEqual(status, 1)

    def test_missing_input(self):
        status = main(["--log-level", "CRITICAL", "difference", self._path("missing.tif"), self.dtm,
                       "--output", self._path("chm.tif")])
        self.assertEqual(status, 1)

    def test_crs_mismatch_fails(self):
        other = save_synthetic_raster(self._path("utm17.tif"), NINE, crs="EPSG:32617")
        status = main(["--log-level", "CRITICAL", "difference", self.dsm, other,
                       "--output", self._path("chm.tif")])
        self.assertEqual(status, 1)
        self.assertFalse(os.path.exists(self._path("chm.tif")))

    def test_invalid_config(self):
        config_path = self._path("config.yaml")
        with open(config_path, "w") as f:
            f.write("unknown_section:\n  value: 1\n")
        status = main(["--log-level", "CRITICAL", "--config", config_path,
                       "extract", self.dtm, self.plots])
        self.assertEqual(status, 1)


if __name__ == '__main__':
    unittest.main()
