#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Raster algebra, geometry operations, raster-vector extraction and time-series
assembly.
"""
