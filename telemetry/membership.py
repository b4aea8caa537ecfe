#
# classify each projected position as in / out of its patch polygon.
#
# Positions are matched to polygons by the exact (site, period) key; an observation whose key has no polygon stops the
# run rather than borrowing another period's boundary (borrowing is done explicitly, see mcp.py substitutions).
#
# Points on the polygon boundary count as 'in': hull vertices are surveyed points of the patch.
#
# When no position could be derived, the field note is checked against the in-area vocabulary. A match gives 'in'
# unless the note also matches the exclusion vocabulary ("not in patch"); anything else gives 'undetermined', never
# 'out'.
#
# returns: the observations with two extra columns
#   membership          categorical 'in' | 'out' | 'undetermined'
#   membership_source   'geometry' | 'note' | 'none'
#

import geopandas as gpd
import pandas as pd
import numpy as np

from telemetry.errors import KeyMismatchError
from telemetry.vocabulary import IN_AREA, NOT_IN_AREA, Vocabulary

MEMBERSHIP = pd.CategoricalDtype(['in', 'out', 'undetermined'])


def classify(gdf:gpd.GeoDataFrame, areas:gpd.GeoDataFrame, vocabulary:Vocabulary=IN_AREA, exclusion:Vocabulary=NOT_IN_AREA, verbose:bool=False) -> gpd.GeoDataFrame:
    keys = pd.MultiIndex.from_arrays([gdf.site.astype(str), gdf.period.astype(str)], names=['site', 'period'])
    missing = keys.unique().difference(areas.index)
    if len(missing):
        raise KeyMismatchError(missing.tolist())

    polygons = gpd.GeoSeries(areas.geometry.reindex(keys).to_numpy(), index=gdf.index, crs=gdf.crs)
    located = ~(gdf.geometry.isna() | gdf.geometry.is_empty).to_numpy()
    inside = polygons.covers(gdf.geometry, align=False).to_numpy(dtype=bool)

    membership = np.full(gdf.shape[0], 'undetermined', dtype=object)
    source = np.full(gdf.shape[0], 'none', dtype=object)
    membership[located] = np.where(inside[located], 'in', 'out')
    source[located] = 'geometry'

    notes = gdf['note'] if 'note' in gdf.columns else pd.Series(pd.NA, index=gdf.index)
    noted = ~located & vocabulary.any_match(notes).to_numpy() & ~exclusion.any_match(notes).to_numpy()
    membership[noted] = 'in'
    source[noted] = 'note'

    if verbose:
        print(f"classified {located.sum()} observations by geometry, {noted.sum()} by note - {(membership == 'undetermined').sum()} undetermined")
    return gdf.assign(
        membership=pd.Categorical(membership, dtype=MEMBERSHIP),
        membership_source=source)


if 'snakemake' in globals():
    from telemetry.vocabulary import from_config
    cfg = (snakemake.config.get('vocabulary') or {}).get('in_area')
    vocabulary = from_config('in_area', cfg['version'], cfg['patterns']) if cfg else IN_AREA
    classify(gpd.read_parquet(snakemake.input['observations']), gpd.read_parquet(snakemake.input['areas']), vocabulary, verbose=True) \
            .to_parquet(snakemake.output[0])
