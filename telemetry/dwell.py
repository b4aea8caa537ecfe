#
# estimate how long each bird stayed at each recorded position.
#
# Observations of one bird on one date are ordered by arrival time. The duration of each one comes from the first rule
# in RULES that gives a value:
#   known_departure     departure - arrival
#   next_arrival        arrival of the next observation (same bird, same date) - arrival     (estimated)
#   last_of_day         no departure and no next observation: the floor                       (estimated)
# Every duration is then clamped to the floor (1 min): a reading always stands for at least one minute.
#
# Before the rules run, observations whose note matches the unreliable vocabulary (lost signal, interference, bird
# left the patch) get departure = arrival, so a single poor reading is never credited with the gap up to the next one.
#
# Observations without an arrival time cannot anchor a duration and are set aside (returned separately, they still
# count as tracking effort).
#
# parameters:
#   floor       minimum duration in minutes
#
# limitations:
#   - a known departure running past the next arrival double-counts the overlap. Such rows are flagged ('overlap'),
#     not corrected.
#

import pandas as pd
import numpy as np

from telemetry.vocabulary import UNRELIABLE, Vocabulary

group = ['subject', 'date']
minute = pd.Timedelta('1min')


def _next_arrival(df:pd.DataFrame) -> pd.Series:
    return df.groupby(group, sort=False).arrival.shift(-1)

def known_departure(df:pd.DataFrame, floor:float) -> pd.Series:
    return (df.departure - df.arrival) / minute

def next_arrival(df:pd.DataFrame, floor:float) -> pd.Series:
    return (_next_arrival(df) - df.arrival) / minute

def last_of_day(df:pd.DataFrame, floor:float) -> pd.Series:
    return pd.Series(floor, index=df.index).where(_next_arrival(df).isna())

RULES = [
    ('known_departure', 'known', known_departure),
    ('next_arrival', 'estimated', next_arrival),
    ('last_of_day', 'estimated', last_of_day),
]


def flag_unreliable(df:pd.DataFrame, vocabulary:Vocabulary=UNRELIABLE, verbose:bool=False) -> pd.DataFrame:
    notes = df['note'] if 'note' in df.columns else pd.Series(pd.NA, index=df.index)
    unreliable = vocabulary.any_match(notes)
    if verbose:
        print(f"flagged {unreliable.sum()} observations - unreliable reading, departure set to arrival")
    return df.assign(
        departure=df.departure.where(~unreliable, df.arrival),
        unreliable=unreliable)

def apply_rules(df:pd.DataFrame, rules:list=RULES, floor:float=1.) -> pd.DataFrame:
    duration = np.full(df.shape[0], np.nan)
    rule = np.full(df.shape[0], None, dtype=object)
    provenance = np.full(df.shape[0], None, dtype=object)
    for name, prov, fn in rules:
        value = fn(df, floor).to_numpy(dtype=np.float64)
        fill = np.isnan(duration) & ~np.isnan(value)
        duration[fill] = value[fill]
        rule[fill] = name
        provenance[fill] = prov
    return df.assign(dwell_min=duration,
                     rule=pd.Series(rule, index=df.index, dtype=object),
                     provenance=pd.Series(provenance, index=df.index, dtype=object))

def dwell(df:pd.DataFrame, floor:float=1., vocabulary:Vocabulary=UNRELIABLE, verbose:bool=False) -> tuple[pd.DataFrame, pd.DataFrame]:
    unusable = df.loc[df.arrival.isna()]
    if verbose:
        print(f"set aside {unusable.shape[0]} observations - no arrival time (effort kept, position unusable)")
    df = df.loc[df.arrival.notna()].sort_values(group + ['arrival'], kind='stable')
    df = apply_rules(flag_unreliable(df, vocabulary, verbose), RULES, floor)

    df['clamped'] = df.dwell_min < floor
    df['dwell_min'] = df.dwell_min.clip(lower=floor)
    nxt = _next_arrival(df)
    df['overlap'] = (nxt.notna() & (df.arrival + df.dwell_min * minute > nxt)).astype(bool)
    if verbose:
        print(f"clamped {df.clamped.sum()} durations to {floor} min - {df.overlap.sum()} overlapping the next observation")
    return df, unusable


if 'snakemake' in globals():
    import geopandas as gpd
    from telemetry.vocabulary import from_config
    cfg = (snakemake.config.get('vocabulary') or {}).get('unreliable')
    vocabulary = from_config('unreliable', cfg['version'], cfg['patterns']) if cfg else UNRELIABLE
    intervals, unusable = dwell(gpd.read_parquet(snakemake.input[0]), snakemake.config['dwell']['floor_min'], vocabulary, True)
    intervals.to_parquet(snakemake.output['intervals'])
    unusable.to_parquet(snakemake.output['unusable'])
