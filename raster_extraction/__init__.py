#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Raster-Vector Extraction Package.

A small toolbox for loading rasters and vector boundaries, doing basic raster
algebra, buffering features and extracting raster values under points and
polygons, including NDVI-style time series assembled from dated files.
"""

__version__ = "0.1.0"
__author__ = "Elena Project Team"
__email__ = "user@example.com"
