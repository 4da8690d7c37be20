"""
GeoJSON Export Module - zone asset and grid feature exports.

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Turn zone descriptors and generated grid polygons into
GeoDataFrames and GeoJSON files, and load a previously exported zone asset
back into ZoneDescriptors.

Export Formats:
- GeoJSON zone asset: one feature per zone designation (static boundary set)
- GeoJSON grid export: the features currently visible, one per polygon piece

Key Entry Points:
- zones_to_geodataframe() / features_to_geodataframe(): tabular views
- export_zone_asset(): write the zone boundary set
- load_zone_asset(): read it back (used by create_grid_context)
- export_features_geojson(): write visible grid features

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import geopandas as gpd
import pandas as pd
from shapely.geometry import Polygon

from mgrs_graticule.models import GridPolygon, ZoneDescriptor
from mgrs_graticule.zone_boundaries import build_zone_descriptors

logger = logging.getLogger("MGRS.Exporters")

CRS_WGS84 = "EPSG:4326"

ZONE_COLUMNS = [
    "name",
    "number",
    "band",
    "hemisphere",
    "west",
    "east",
    "south",
    "north",
    "exists",
]
FEATURE_COLUMNS = [
    "id",
    "parent_id",
    "precision_m",
    "part",
    "center_lon",
    "center_lat",
]


# ═══════════════════════════════════════════════════════════════════════════
# 🔧 GEODATAFRAME CONVERSION
# ═══════════════════════════════════════════════════════════════════════════


def zones_to_geodataframe(zones: Sequence[ZoneDescriptor]) -> gpd.GeoDataFrame:
    """One row per zone designation with its rectangle as geometry."""
    records = pd.DataFrame([z.to_dict() for z in zones], columns=ZONE_COLUMNS)
    geometry = [Polygon(z.ring) for z in zones]
    return gpd.GeoDataFrame(records, geometry=geometry, crs=CRS_WGS84)


def features_to_geodataframe(features: Sequence[GridPolygon]) -> gpd.GeoDataFrame:
    """One row per grid polygon piece."""
    records = pd.DataFrame(
        [
            {
                "id": f.id,
                "parent_id": f.parent_id,
                "precision_m": f.precision_m,
                "part": f.part,
                "center_lon": f.center[0] if f.center else None,
                "center_lat": f.center[1] if f.center else None,
            }
            for f in features
        ],
        columns=FEATURE_COLUMNS,
    )
    geometry = [Polygon(f.ring) for f in features]
    return gpd.GeoDataFrame(records, geometry=geometry, crs=CRS_WGS84)


def _write_feature_collection(gdf: gpd.GeoDataFrame, output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    geojson = json.loads(gdf.to_json(na="null"))
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(geojson, f)
    return output_path


# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ ZONE ASSET
# ═══════════════════════════════════════════════════════════════════════════


def export_zone_asset(
    output_path: Path, zones: Optional[Sequence[ZoneDescriptor]] = None
) -> Path:
    """
    Write the zone boundary set as GeoJSON.

    Args:
        output_path: Target .geojson file (parent directories are created)
        zones: Zones to write (all 1200 designations when None, suppressed
            ones flagged with exists=false)

    Returns:
        Path of the written file
    """
    zones = build_zone_descriptors() if zones is None else zones
    path = _write_feature_collection(zones_to_geodataframe(zones), output_path)
    logger.info(f"📄 Zone asset exported: {path.name} ({len(zones)} zones)")
    return path


def load_zone_asset(path: Path) -> List[ZoneDescriptor]:
    """
    Read zone descriptors from a GeoJSON asset written by export_zone_asset.

    The rectangle bounds come from the properties; geometry is not
    re-derived.

    Raises:
        ValueError: The file has no features or misses zone properties.
    """
    with open(path, "r", encoding="utf-8") as f:
        data: Dict[str, Any] = json.load(f)

    features = data.get("features", [])
    if not features:
        raise ValueError(f"Zone asset {path} contains no features")

    gdf = gpd.GeoDataFrame.from_features(features, crs=CRS_WGS84)
    missing = [c for c in ZONE_COLUMNS if c != "name" and c not in gdf.columns]
    if missing:
        raise ValueError(f"Zone asset {path} is missing properties: {missing}")

    return [ZoneDescriptor.from_dict(row) for row in gdf.to_dict("records")]


# ═══════════════════════════════════════════════════════════════════════════
# 🔲 GRID FEATURES
# ═══════════════════════════════════════════════════════════════════════════


def features_to_geojson(features: Sequence[GridPolygon]) -> str:
    """GeoJSON FeatureCollection text of grid polygons."""
    return features_to_geodataframe(features).to_json(na="null")


def export_features_geojson(features: Sequence[GridPolygon], output_path: Path) -> Path:
    """
    Write grid polygons as a GeoJSON FeatureCollection.

    An empty sequence still writes a valid, empty collection.
    """
    path = _write_feature_collection(features_to_geodataframe(features), output_path)
    logger.info(f"📄 GeoJSON exported: {path.name} ({len(features)} features)")
    return path
