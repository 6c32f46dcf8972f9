#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Main entry point for the raster-vector extraction toolbox.

Three commands cover the workshop steps:

- ``difference``: write the cell-wise difference of two rasters
  (e.g. canopy height = surface model - terrain model),
- ``extract``: tabulate raster values under the features of a vector file,
- ``timeseries``: assemble a dated series of values from a directory of
  single-date rasters.
"""
import sys
import time
import argparse
from datetime import date
from pathlib import Path
from typing import List, Optional

import geopandas as gpd
import yaml

from raster_extraction import __version__
from raster_extraction.core.config import (
    DEFAULT_AGGREGATE, DEFAULT_BUFFER_DISTANCE, DEFAULT_EPOCH, DEFAULT_RASTER_SUFFIX, load_config
)
from raster_extraction.core.exceptions import RasterExtractionError
from raster_extraction.core.logging_config import LOG_LEVELS, setup_logging, get_module_logger

# Initialize logger
logger = get_module_logger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns
    -------
    argparse.Namespace
        Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(
        prog="raster-extraction",
        description="Raster algebra and raster-vector extraction."
    )

    parser.add_argument(
        "--config", "-c",
        help="Path to a YAML configuration file overriding the defaults"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        help="Logging level (default: the configured level, INFO)"
    )

    parser.add_argument(
        "--log-file",
        help="Also write the log to this file"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Raster-Vector Extraction v{__version__}"
    )

    subparsers = parser.add_subparsers(dest='command', required=True, help='Command to execute')

    # difference
    diff_parser = subparsers.add_parser('difference', help='Subtract one raster from another')
    diff_parser.add_argument("minuend", help="Raster to subtract from (e.g. surface model)")
    diff_parser.add_argument("subtrahend", help="Raster to subtract (e.g. terrain model)")
    diff_parser.add_argument("--output", "-o", required=True, help="Output raster path")
    diff_parser.add_argument("--plot", help="Save a plot of the result to this path")
    diff_parser.add_argument(
        "--save-metadata", "-m",
        action="store_true",
        help="Save a JSON description of the result next to the output raster"
    )

    # extract
    extract_parser = subparsers.add_parser('extract', help='Extract raster values under vector features')
    extract_parser.add_argument("raster", help="Input raster")
    extract_parser.add_argument("vector", help="Vector file with point or polygon features")
    _add_query_arguments(extract_parser)
    extract_parser.add_argument("--id-column", help="Attribute identifying each feature")
    extract_parser.add_argument("--output", "-o", help="Output CSV (printed if omitted)")

    # timeseries
    ts_parser = subparsers.add_parser('timeseries', help='Assemble a time series from dated rasters')
    ts_parser.add_argument("directory", help="Directory of single-date rasters")
    ts_parser.add_argument("vector", help="Vector file with the query feature")
    _add_query_arguments(ts_parser)
    ts_parser.add_argument(
        "--feature-index",
        type=int,
        default=0,
        help="Position of the query feature in the vector file (default: 0)"
    )
    ts_parser.add_argument(
        "--suffix",
        default=DEFAULT_RASTER_SUFFIX,
        help=f"Raster file suffix (default: {DEFAULT_RASTER_SUFFIX})"
    )
    ts_parser.add_argument(
        "--epoch",
        type=date.fromisoformat,
        default=DEFAULT_EPOCH,
        help=f"Date of day 1 in the file names (default: {DEFAULT_EPOCH.isoformat()})"
    )
    ts_parser.add_argument("--output", "-o", help="Output CSV (printed if omitted)")
    ts_parser.add_argument("--plot", help="Save a plot of the series to this path")

    return parser.parse_args(argv)


def _add_query_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--buffer", "-b",
        type=float,
        nargs="?",
        const=DEFAULT_BUFFER_DISTANCE,
        help=f"Buffer point features by this distance (CRS units) before extracting "
             f"(default distance when given without a value: {DEFAULT_BUFFER_DISTANCE:g})"
    )
    parser.add_argument(
        "--aggregate", "-a",
        default=DEFAULT_AGGREGATE,
        help=f"Aggregation for polygons: mean, median, min, max, sum, std, count "
             f"(default: {DEFAULT_AGGREGATE})"
    )
    parser.add_argument(
        "--all-touched",
        action="store_true",
        help="Use every cell a polygon touches instead of cells whose centre is inside"
    )
    parser.add_argument(
        "--reproject",
        action="store_true",
        help="Reproject the features to the raster CRS when they differ"
    )


def _prepare_features(features: gpd.GeoDataFrame, grid, args: argparse.Namespace) -> gpd.GeoDataFrame:
    from raster_extraction.features.geometry import buffer_features, reproject_features

    if args.reproject:
        features = reproject_features(features, grid.crs)
    if args.buffer:
        points = features.geom_type == "Point"
        if points.any():
            logger.info(f"Buffering {int(points.sum())} point feature(s) by {args.buffer}")
            buffered = buffer_features(features[points], args.buffer)
            features = features.copy()
            features.loc[points, features.geometry.name] = buffered.geometry
    return features


def run_difference(args: argparse.Namespace) -> int:
    """
    Write ``minuend - subtrahend`` to a raster.
    """
    from raster_extraction.core.io import load_raster, log_raster_stats, save_metadata, save_raster
    from raster_extraction.features.algebra import subtract

    minuend = load_raster(args.minuend)
    subtrahend = load_raster(args.subtrahend)
    result = subtract(minuend, subtrahend)
    log_raster_stats(result)

    output = save_raster(result, args.output)
    if args.save_metadata:
        save_metadata(result, Path(output).with_suffix('.json'), extra={
            'operation': 'difference',
            'minuend': str(args.minuend),
            'subtrahend': str(args.subtrahend),
        })
    if args.plot:
        from raster_extraction.utils.visualization import plot_grid
        plot_grid(result, title=f"{Path(args.minuend).stem} - {Path(args.subtrahend).stem}",
                  output_path=args.plot)
    return 0


def run_extract(args: argparse.Namespace) -> int:
    """
    Tabulate values under every feature of a vector file.
    """
    from raster_extraction.core.io import export_table, load_raster, load_vector
    from raster_extraction.features.extraction import extract_features

    grid = load_raster(args.raster)
    features = _prepare_features(load_vector(args.vector), grid, args)

    table = extract_features(
        grid, features,
        aggregate=args.aggregate,
        all_touched=args.all_touched or None,
        id_column=args.id_column,
    )

    if args.output:
        export_table(table, args.output)
    else:
        print(table.to_string(index=False))
    return 0


def run_timeseries(args: argparse.Namespace) -> int:
    """
    Assemble and export the time series for one feature.
    """
    from raster_extraction.core.io import export_table, load_raster_stack, load_vector
    from raster_extraction.features.timeseries import assemble_time_series, time_series_frame

    stack = load_raster_stack(args.directory, suffix=args.suffix, progress=True)
    features = load_vector(args.vector)
    if not 0 <= args.feature_index < len(features):
        logger.error(f"Feature index {args.feature_index} out of range for {len(features)} features")
        return 1

    feature = _prepare_features(features.iloc[[args.feature_index]], stack, args)
    series = assemble_time_series(
        stack, feature,
        aggregate=args.aggregate,
        epoch=args.epoch,
        all_touched=args.all_touched or None,
    )
    table = time_series_frame(series)

    if args.output:
        export_table(table, args.output)
    else:
        print(table.to_string(index=False))

    if args.plot:
        from raster_extraction.utils.visualization import plot_time_series
        plot_time_series(series, title=f"{Path(args.directory).name} time series",
                         output_path=args.plot)
    return 0


COMMANDS = {
    'difference': run_difference,
    'extract': run_extract,
    'timeseries': run_timeseries,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to run the command line interface.
    """
    args = parse_arguments(argv)

    # Configuration first so that a logging section takes effect
    config_error = None
    if args.config:
        try:
            load_config(args.config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            config_error = e

    setup_logging(log_level=args.log_level, log_file=args.log_file)
    if config_error is not None:
        logger.error(f"Invalid configuration file {args.config}: {config_error}")
        return 1

    start_time = time.time()
    try:
        status = COMMANDS[args.command](args)
    except (RasterExtractionError, ValueError) as e:
        logger.error(str(e))
        return 1

    elapsed_time = time.time() - start_time
    logger.info(f"Command '{args.command}' completed in {elapsed_time:.2f} seconds")
    return status


if __name__ == "__main__":
    sys.exit(main())
