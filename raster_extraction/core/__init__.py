#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core functionality for raster-vector extraction.

This module contains the grid entity, raster and vector I/O, the error
taxonomy, configuration management and logging setup.
"""
