"""Command-line collaborator: query a point and print the report as JSON.

Usage:
    pinpoint locate "35.68,139.69" --layers data_list.json \\
        --vector parcels=parcels.geojson --raster temp=0,35 --sample temp=21.4 --resolve
    pinpoint markers points.csv --layers data_list.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from pinpoint.codec.location import Coordinate, require_coordinates
from pinpoint.config import Settings, load_project_config
from pinpoint.content.probe import ContentProber
from pinpoint.errors import PinpointError
from pinpoint.layers.parsers import parse_geojson, parse_marker_csv
from pinpoint.layers.registry import LayerRegistry
from pinpoint.query import QueryContext, query_point


def _split_pair(text: str, option: str) -> tuple[str, str]:
    layer_id, sep, value = text.partition("=")
    if not sep or not layer_id:
        raise argparse.ArgumentTypeError(f"{option} expects id=value, got {text!r}")
    return layer_id, value


def _parse_range(text: str) -> tuple[float, float] | None:
    if not text:
        return None
    low, _, high = text.partition(",")
    return float(low), float(high)


def _parse_sample(text: str):
    if "," in text:
        return [float(v) if v.lower() != "nan" else float("nan") for v in text.split(",")]
    try:
        return float(text)
    except ValueError:
        return text


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    common.add_argument("--layers", type=str, default=None, help="data_list.json path or URL")
    common.add_argument("--project", type=str, default=None, help="project_config.yaml path")
    common.add_argument("--vector", action="append", default=[], metavar="ID=PATH",
                        help="Activate a vector layer from a GeoJSON file")
    common.add_argument("--raster", action="append", default=[], metavar="ID[=MIN,MAX]",
                        help="Activate a raster layer with its value range")
    common.add_argument("--resolve", action="store_true", help="Resolve per-slot content")
    common.add_argument("--content-base", type=str, default="",
                        help="Base URL that relative content paths are resolved against")

    parser = argparse.ArgumentParser(prog="pinpoint", description="Point lookup over map data layers")
    sub = parser.add_subparsers(dest="command", required=True)

    locate = sub.add_parser("locate", parents=[common], help="Describe one point")
    locate.add_argument("location", help='"lat,lon", "lat lon" or "30 120"')
    locate.add_argument("--id", dest="identifier", default=None, help="Explicit location identifier")
    locate.add_argument("--name", default=None, help="Display name")
    locate.add_argument("--sample", action="append", default=[], metavar="ID=VALUE",
                        help="Raster value sampled at the point")

    markers = sub.add_parser("markers", parents=[common], help="Describe every point of a marker CSV")
    markers.add_argument("csv", type=Path, help="CSV with name/lat/lon/id columns")
    return parser


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


async def _activate_layers(ctx: QueryContext, args: argparse.Namespace, sample_ids: list[str]) -> None:
    for spec in args.vector:
        layer_id, path = _split_pair(spec, "--vector")
        layer = parse_geojson(Path(path).read_text(encoding="utf-8"), layer_id=layer_id, name=layer_id)
        await ctx.activate_layer(layer_id, features=layer)

    rasters: dict[str, tuple[float, float] | None] = {}
    for spec in args.raster:
        layer_id, _, value_range = spec.partition("=")
        rasters[layer_id] = _parse_range(value_range)
    for layer_id in sample_ids:
        rasters.setdefault(layer_id, None)
    for layer_id, value_range in rasters.items():
        await ctx.activate_layer(layer_id, raster_range=value_range)


async def run(args: argparse.Namespace) -> list[dict]:
    settings = Settings()
    registry = LayerRegistry(
        args.layers or settings.layers_config,
        default_layer_id=settings.default_layer_id,
        user_agent=settings.http_user_agent,
    )
    registry.load()
    project = load_project_config(args.project or settings.project_config)

    prober = ContentProber(base_url=args.content_base, user_agent=settings.http_user_agent)
    ctx = QueryContext.create(settings, registry, project=project, prober=prober)

    try:
        if args.command == "locate":
            samples = dict(_split_pair(s, "--sample") for s in args.sample)
            samples = {layer_id: _parse_sample(value) for layer_id, value in samples.items()}
            await _activate_layers(ctx, args, list(samples))
            coordinate = require_coordinates(args.location)
            report = await query_point(
                ctx, coordinate, samples, identifier=args.identifier, name=args.name,
                resolve_content=args.resolve,
            )
            return [report.to_dict()]

        await _activate_layers(ctx, args, [])
        reports = []
        for marker in parse_marker_csv(args.csv.read_text(encoding="utf-8")):
            coordinate = Coordinate.validated(marker.lat, marker.lon)
            report = await query_point(
                ctx, coordinate, identifier=marker.identifier, name=marker.name,
                resolve_content=args.resolve,
            )
            reports.append(report.to_dict())
        return reports
    finally:
        await ctx.pipeline.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        reports = asyncio.run(run(args))
    except (PinpointError, argparse.ArgumentTypeError, OSError, ValueError) as e:
        logger.error(f"pinpoint failed: {e}")
        return 1

    payload = reports[0] if args.command == "locate" else reports
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
