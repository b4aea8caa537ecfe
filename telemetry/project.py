#
# project bearing/distance readings into planar coordinates.
#
# Each reading is taken from a reference point with surveyed coordinates: the observer notes the compass bearing
# (0 = north, clockwise) and the estimated distance to the bird. Compass bearings are turned into unit-circle angles
# (angle = 90 - bearing) before applying cos/sin.
#
# parameters:
#   short_range     distance (CRS units, meters) under which a reading with no bearing is taken to be at the origin.
#
# rules:
#   - distance == 0: origin, whatever the bearing.
#   - distance <= short_range and no bearing: origin.
#   - no distance, or distance > short_range and no bearing: undeterminable (NaN / empty geometry).
#
# limitations:
#   - coordinates must already be in a single planar CRS; this is the caller's responsibility.
#

import math

import geopandas as gpd
import pandas as pd
import numpy as np
import shapely

from telemetry.errors import MISSING


def wrap_bearing(bearing):
    return np.mod(bearing, 360.)

def project_point(x:float, y:float, bearing:float | None, distance:float | None, short_range:float=20.) -> tuple[float, float] | None:
    if distance is None or pd.isna(distance) or pd.isna(x) or pd.isna(y):
        return None
    if distance == 0:
        return (x, y)
    if bearing is None or pd.isna(bearing):
        return (x, y) if distance <= short_range else None
    angle = math.radians(90. - wrap_bearing(bearing))
    return (x + distance * math.cos(angle), y + distance * math.sin(angle))

# Vectorized version of project_point(). Adds x, y (NaN where undeterminable) and a 'projection' column telling how
# each coordinate was obtained ('bearing', 'origin' or 'missing').
def project(df:pd.DataFrame, short_range:float=20., crs=None, verbose:bool=False) -> gpd.GeoDataFrame:
    d, b = df.distance, df.bearing
    at_origin = (d == 0) | ((d <= short_range) & b.isna())
    by_bearing = d.notna() & (d != 0) & b.notna()
    angle = np.radians(90. - wrap_bearing(b))
    x = np.where(at_origin, df.origin_x, np.where(by_bearing, df.origin_x + d * np.cos(angle), np.nan))
    y = np.where(at_origin, df.origin_y, np.where(by_bearing, df.origin_y + d * np.sin(angle), np.nan))
    projection = pd.Series(MISSING, index=df.index, name='projection')
    projection.loc[by_bearing] = 'bearing'
    projection.loc[at_origin] = 'origin'
    # origin itself may be missing
    projection.loc[np.isnan(x) | np.isnan(y)] = MISSING
    x[projection.to_numpy() == MISSING] = np.nan
    y[projection.to_numpy() == MISSING] = np.nan
    if verbose:
        print(f"{(projection == MISSING).sum()} observations - position undeterminable")
    gdf = df.assign(x=x, y=y, projection=projection)
    geometry = shapely.points(np.column_stack([x, y]))
    geometry[projection.to_numpy() == MISSING] = None
    return gpd.GeoDataFrame(gdf, geometry=geometry, crs=crs)


if 'snakemake' in globals():
    project(pd.read_parquet(snakemake.input[0]), snakemake.config['projection']['short_range'], f"EPSG:{snakemake.config['epsg']}", True) \
            .to_parquet(snakemake.output[0])
