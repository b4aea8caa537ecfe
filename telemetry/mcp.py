#
# build the area of interest of each (site, period): the 100% minimum convex polygon of the surveyed points.
#
# The polygon is used twice: as the boundary for in/out classification of bird positions, and as a reported
# summary (area in hectares, centroid).
#
# parameters:
#   substitutions   {(site, period): source_period} - groups that were never surveyed (e.g. a control patch in its
#                   first year) borrow the polygon of another period at the same site. Substituted rows are tagged,
#                   and a substitution can never replace a group that has its own usable survey. Groups whose survey
#                   is too sparse for a hull (< 3 distinct or collinear points) can only be kept through a substitution.
#   corrections_ha  {site: hectares} - fixed area removed from a site's reported area (a lake inside the hull of one
#                   patch). The geometry is left untouched, only area_ha changes.
#
# limitations:
#   - the hull includes any non-habitat enclosed by the survey points; corrections_ha is the only remedy.
#   - CRS units are assumed to be meters.
#

import geopandas as gpd
import pandas as pd
import numpy as np
from shapely import MultiPoint, Polygon

from telemetry.errors import DegenerateGeometryError, KeyMismatchError, TelemetryError

keys = ['site', 'period']


def mcp(points) -> Polygon:
    points = np.unique(np.asarray(points, dtype=np.float64).reshape(-1, 2), axis=0)
    if points.shape[0] < 3:
        raise DegenerateGeometryError(f"convex hull needs at least 3 distinct points, got {points.shape[0]}")
    geom = MultiPoint(points).convex_hull
    if type(geom) != Polygon or geom.area == 0:
        raise DegenerateGeometryError(f"convex hull of {points.shape[0]} collinear points has no area")
    return geom

def _substitute(areas:gpd.GeoDataFrame, substitutions:dict, degenerate:dict, verbose:bool=False) -> gpd.GeoDataFrame:
    rows = []
    for (site, period), source in substitutions.items():
        if (site, period) in areas.index:
            raise TelemetryError(f"({site}, {period}) was surveyed, refusing to substitute the polygon of period {source}")
        if (site, source) not in areas.index:
            raise KeyMismatchError([(site, source)], 'substitution source polygon')
        row = areas.loc[[(site, source)]].copy()
        row.index = pd.MultiIndex.from_tuples([(site, period)], names=keys)
        row['substituted'] = True
        row['source_period'] = source
        # survey too sparse for a hull: keep its own point count
        if (site, period) in degenerate:
            row['npoints'] = degenerate[(site, period)]
        rows.append(row)
    if verbose:
        print(f"substituted {len(rows)} polygons - groups not surveyed ({len(degenerate)} with a degenerate survey)")
    return areas if not rows else pd.concat([areas] + rows).sort_index()

def _correct(areas:gpd.GeoDataFrame, corrections_ha:dict, verbose:bool=False) -> gpd.GeoDataFrame:
    areas = areas.copy()
    sites = areas.index.get_level_values('site')
    for site, ha in corrections_ha.items():
        match = sites == str(site)
        areas.loc[match, 'correction_ha'] = float(ha)
        if verbose:
            print(f"corrected {match.sum()} polygons - removed {ha} ha from site {site}")
    areas['area_ha'] = areas.area_ha - areas.correction_ha
    bad = areas.loc[areas.area_ha <= 0]
    if bad.shape[0]:
        raise TelemetryError(f"area correction leaves no area for (site, period): {list(bad.index)}")
    return areas

def build_areas(gdf_survey:pd.DataFrame, substitutions:dict | None=None, corrections_ha:dict | None=None, crs=None, verbose:bool=False) -> gpd.GeoDataFrame:
    substitutions = {(str(site), str(period)): str(source) for (site, period), source in (substitutions or {}).items()}
    index, npoints, geom, degenerate = [], [], [], {}
    for (site, period), df in gdf_survey.groupby(keys):
        key = (str(site), str(period))
        try:
            geom.append(mcp(df[['x', 'y']].to_numpy()))
        except DegenerateGeometryError as exc:
            if key in substitutions:
                degenerate[key] = df.shape[0]
                continue
            raise DegenerateGeometryError(f"({site}, {period}): {exc} - substitute another period's polygon or drop the group") from exc
        index.append(key)
        npoints.append(df.shape[0])
    if not geom:
        raise DegenerateGeometryError("no survey points to build polygons from")
    crs = crs if crs is not None else getattr(gdf_survey, 'crs', None)
    areas = gpd.GeoDataFrame(
        index=pd.MultiIndex.from_tuples(index, names=keys),
        data={'npoints': npoints},
        geometry=geom,
        crs=crs)
    areas['area_ha'] = areas.geometry.area * 1e-4
    areas['centroid_x'] = areas.geometry.centroid.x
    areas['centroid_y'] = areas.geometry.centroid.y
    areas['substituted'] = False
    areas['source_period'] = areas.index.get_level_values('period')
    areas['correction_ha'] = 0.
    areas = _substitute(areas, substitutions, degenerate, verbose)
    return _correct(areas, corrections_ha or {}, verbose)

# long-format vertex table (hull ring without the closing vertex) for the reported polygon table
def vertices(areas:gpd.GeoDataFrame) -> pd.DataFrame:
    rows = []
    for (site, period), geom in areas.geometry.items():
        xx, yy = geom.exterior.coords.xy
        for i, (x, y) in enumerate(zip(list(xx)[:-1], list(yy)[:-1])):
            rows.append((site, period, i, x, y))
    return pd.DataFrame(rows, columns=keys + ['vertex', 'x', 'y'])


if 'snakemake' in globals():
    cfg = snakemake.config['areas']
    substitutions = {(s['site'], s['period']): s['source_period'] for s in cfg.get('substitutions') or []}
    areas = build_areas(pd.read_parquet(snakemake.input[0]), substitutions, cfg.get('corrections_ha'), f"EPSG:{snakemake.config['epsg']}", True)
    areas.to_parquet(snakemake.output['areas'])
    vertices(areas).to_csv(snakemake.output['vertices'], index=False)
