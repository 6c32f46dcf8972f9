#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Visualization utilities for the raster-vector extraction toolbox.

This module provides functions for plotting grids, grids with vector
overlays, value histograms and extracted time series.
"""
import os
from typing import Optional, Tuple

import numpy as np
import pandas as pd
import geopandas as gpd
import matplotlib.pyplot as plt
import matplotlib.dates as mdates
from rasterio.plot import plotting_extent

from raster_extraction.core.config import PLOT_CONFIG
from raster_extraction.core.grid import Grid
from raster_extraction.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)


def _finish(fig: plt.Figure, output_path: Optional[str], show_plot: bool) -> plt.Figure:
    fig.tight_layout()

    if output_path:
        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
        fig.savefig(output_path, dpi=PLOT_CONFIG.get("dpi", 150), bbox_inches='tight')
        logger.info(f"Saved plot to {output_path}")

    if show_plot:
        plt.show()
    else:
        plt.close(fig)

    return fig


def _draw_band(fig: plt.Figure, ax: plt.Axes, grid: Grid, band: int, cmap: str) -> Grid:
    """Draw one band in map coordinates with a colour bar; returns the band."""
    layer = grid.band(band)
    masked = layer.masked()[0]
    im = ax.imshow(masked, cmap=cmap, extent=plotting_extent(masked, layer.transform))
    fig.colorbar(im, ax=ax, shrink=0.8)
    return layer


def plot_grid(
    grid: Grid,
    band: int = 0,
    title: Optional[str] = None,
    cmap: Optional[str] = None,
    figsize: Optional[Tuple[int, int]] = None,
    output_path: Optional[str] = None,
    show_plot: bool = False,
    ax: Optional[plt.Axes] = None
) -> plt.Figure:
    """
    Plot one band of a grid in map coordinates.

    Parameters
    ----------
    grid : Grid
        Grid to plot.
    band : int, optional
        0-based band index, by default 0.
    title : str, optional
        Plot title, by default the band label.
    cmap : str, optional
        Colormap name, by default from PLOT_CONFIG.
    figsize : tuple, optional
        Figure size, by default from PLOT_CONFIG.
    output_path : str, optional
        Path to save the plot, by default None.
    show_plot : bool, optional
        Whether to show the plot, by default False.
    ax : plt.Axes, optional
        Axes to draw into; a new figure is created if None.

    Returns
    -------
    plt.Figure
        Matplotlib figure.
    """
    cmap = cmap or PLOT_CONFIG.get("cmap", "viridis")
    figsize = figsize or PLOT_CONFIG.get("figsize", (10, 8))

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    layer = _draw_band(fig, ax, grid, band, cmap)
    masked = layer.masked()[0]
    ax.set_title(title or layer.band_labels[0])
    ax.set_xlabel("x")
    ax.set_ylabel("y")

    # Basic statistics in the corner
    valid_data = masked.compressed()
    if len(valid_data) > 0:
        stats_text = (
            f"Min: {np.min(valid_data):.2f}\n"
            f"Max: {np.max(valid_data):.2f}\n"
            f"Mean: {np.mean(valid_data):.2f}\n"
            f"Std: {np.std(valid_data):.2f}"
        )
        fig.text(0.02, 0.02, stats_text, fontsize=10,
                 bbox=dict(facecolor='white', alpha=0.7))

    return _finish(fig, output_path, show_plot)


def plot_grid_with_features(
    grid: Grid,
    features: gpd.GeoDataFrame,
    band: int = 0,
    title: Optional[str] = None,
    edgecolor: str = "red",
    output_path: Optional[str] = None,
    show_plot: bool = False
) -> plt.Figure:
    """
    Plot a grid band with a vector overlay.

    The features are drawn as they are; reproject them to the grid CRS first.
    """
    fig, ax = plt.subplots(figsize=PLOT_CONFIG.get("figsize", (10, 8)))
    layer = _draw_band(fig, ax, grid, band, PLOT_CONFIG.get("cmap", "viridis"))
    features.plot(ax=ax, facecolor="none", edgecolor=edgecolor, linewidth=1.5, markersize=30)
    ax.set_title(title or f"{layer.band_labels[0]} with {len(features)} features")
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    return _finish(fig, output_path, show_plot)


def plot_histogram(
    grid: Grid,
    band: int = 0,
    bins: int = 20,
    title: Optional[str] = None,
    output_path: Optional[str] = None,
    show_plot: bool = False
) -> plt.Figure:
    """Histogram of the valid values of one band."""
    layer = grid.band(band)
    values = layer.masked().compressed()

    fig, ax = plt.subplots(figsize=PLOT_CONFIG.get("figsize", (10, 8)))
    ax.hist(values, bins=bins, color="steelblue", edgecolor="white")
    ax.set_title(title or f"Distribution of {layer.band_labels[0]}")
    ax.set_xlabel("Value")
    ax.set_ylabel("Cell count")
    return _finish(fig, output_path, show_plot)


def plot_time_series(
    series: pd.Series,
    title: Optional[str] = None,
    ylabel: Optional[str] = None,
    output_path: Optional[str] = None,
    show_plot: bool = False
) -> plt.Figure:
    """
    Plot a date-indexed series as markers joined by a line.
    """
    fig, ax = plt.subplots(figsize=PLOT_CONFIG.get("figsize", (10, 8)))
    ax.plot(series.index, series.values, marker="o", linestyle="-", color="darkgreen")
    ax.set_title(title or "Time series")
    ax.set_xlabel("Date")
    ax.set_ylabel(ylabel or (series.name if series.name else "Value"))
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m-%d"))
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()
    return _finish(fig, output_path, show_plot)
