#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration settings for the raster-vector extraction toolbox.

This module centralizes the defaults used across the loaders, the extraction
functions and the command line interface. Sections can be overridden from a
YAML file with :func:`load_config`.
"""
from typing import Dict, Any, Union
from datetime import date
from pathlib import Path
import yaml

# General configuration
DEFAULT_NODATA_VALUE: float = -9999.0
DEFAULT_RASTER_SUFFIX: str = ".tif"
DEFAULT_BUFFER_DISTANCE: float = 20.0  # CRS units; used by a bare --buffer
DEFAULT_AGGREGATE: str = "mean"

# Date labels: "X<day-of-year>_<site>_ndvi_crop.tif", day 1 == epoch
DEFAULT_EPOCH: date = date(2011, 1, 1)
DATE_STRIP_PATTERN: str = r"^X|_[^.]*\.tif$"

# Path configuration
DEFAULT_OUTPUT_DIR: Path = Path.cwd() / "output"

# Extraction configuration
EXTRACTION_CONFIG: Dict[str, Any] = {
    "all_touched": False,       # True: every touched cell, False: cell centres
    "aggregate": DEFAULT_AGGREGATE,
    "buffer_resolution": 16,    # Segments per quarter circle
}

# Export configuration
EXPORT_CONFIG: Dict[str, Any] = {
    "float_format": "%.6f",
    "date_format": "%Y-%m-%d",
    "raster_compress": "lzw",   # GTiff only
}

# Plot configuration
PLOT_CONFIG: Dict[str, Any] = {
    "cmap": "viridis",
    "figsize": (10, 8),
    "dpi": 150,
}

# Logging configuration
LOGGING_CONFIG: Dict[str, Any] = {
    "level": "INFO",  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    "log_to_file": False,
    "log_file": DEFAULT_OUTPUT_DIR / "extraction.log",
    "log_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

CONFIG_SECTIONS: Dict[str, Dict[str, Any]] = {
    "extraction": EXTRACTION_CONFIG,
    "export": EXPORT_CONFIG,
    "plot": PLOT_CONFIG,
    "logging": LOGGING_CONFIG,
}


def load_config(path: Union[str, Path]) -> Dict[str, Dict[str, Any]]:
    """
    Load a YAML configuration file and apply it to the section dictionaries.

    Parameters
    ----------
    path : str or Path
        Path to a YAML file whose top-level keys are section names
        (``extraction``, ``export``, ``plot``, ``logging``).

    Returns
    -------
    dict
        The updated configuration sections.
    """
    with open(path, "r") as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    unknown = set(overrides) - set(CONFIG_SECTIONS)
    if unknown:
        raise ValueError(
            f"Unknown configuration sections in {path}: {sorted(unknown)}. "
            f"Valid sections are {sorted(CONFIG_SECTIONS)}"
        )

    for section, values in overrides.items():
        if not isinstance(values, dict):
            raise ValueError(f"Section '{section}' in {path} must be a mapping")
        CONFIG_SECTIONS[section].update(values)

    return CONFIG_SECTIONS
