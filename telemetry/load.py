#
# load raw telemetry field sheets into usable pandas dataframes
#
# Three tables come in: observations (one row per bearing/distance reading of a tagged bird), survey points (the
# surveyed coordinates of each patch, used to draw its boundary) and effort (minutes spent tracking each bird).
# Effort can also be built from raw tracking sessions with summarize_effort().
#
# Field sheets record time of day separately from the date, and departure times are often blank. Both are combined
# into timestamps here; blanks become NaT and are dealt with downstream.
#

import pandas as pd
import numpy as np

from telemetry.errors import TelemetryError


#
# observations
#

colmap = {
    'frequency': 'subject',
    'patch': 'site',
    'year': 'period',
    'exp_phase': 'phase',
    'date': 'date',
    'time_arrive': 'arrival',
    'time_leave': 'departure',
    'bearing': 'bearing',
    'distance': 'distance',
    'ref_x': 'origin_x',
    'ref_y': 'origin_y',
    'notes': 'note',
}
dtypes = {
    'frequency': str,
    'patch': str,
    'year': str,
    'bearing': np.float64,
    'distance': np.float64,
    'ref_x': np.float64,
    'ref_y': np.float64,
}

# Times of day come as 'H:MM', 'HH:MM' or 'HH:MM:SS'. Blank cells become NaT; anything else that does not parse to
# a time within the day is a data entry error and stops the load rather than passing for a missing time.
def _timestamps(date:pd.Series, tod:pd.Series, what:str='time') -> pd.Series:
    if pd.api.types.is_datetime64_any_dtype(tod):
        return tod
    text = tod.astype('string').str.strip().fillna('')
    blank = (text == '').to_numpy(dtype=bool)
    text = text.where(text.str.count(':') != 1, text + ':00')
    values = text.to_numpy(dtype=object)
    values[blank] = None
    td = pd.to_timedelta(pd.Series(values, index=tod.index, dtype=object), errors='coerce')
    bad = ~blank & (td.isna() | (td < pd.Timedelta(0)) | (td >= pd.Timedelta('1D'))).to_numpy(dtype=bool)
    if bad.any():
        raise TelemetryError(f"unreadable {what} of day: {sorted(set(tod.astype('string')[bad]))}")
    return date + td

def load_observations(df:pd.DataFrame) -> pd.DataFrame:
    df = df.rename(colmap, axis=1)
    if 'departure' not in df.columns:
        df['departure'] = pd.NA
    if 'note' not in df.columns:
        df['note'] = pd.NA
    for col in ['subject', 'site', 'period', 'phase']:
        df[col] = df[col].astype(str)
    for col in ['bearing', 'distance', 'origin_x', 'origin_y']:
        df[col] = pd.to_numeric(df[col], errors='coerce').astype(np.float64)
    df['date'] = pd.to_datetime(df.date).dt.normalize()
    df['arrival'] = _timestamps(df.date, df.arrival, 'arrival')
    df['departure'] = _timestamps(df.date, df.departure, 'departure')
    df['note'] = df.note.astype('string')
    return df.sort_values(['subject', 'date', 'arrival'], na_position='last').reset_index(drop=True)


#
# survey points
#

def load_survey(df:pd.DataFrame, verbose:bool=False) -> pd.DataFrame:
    df = df.rename({'patch': 'site', 'year': 'period'}, axis=1)
    df = df.assign(site=df.site.astype(str), period=df.period.astype(str),
                   x=pd.to_numeric(df.x, errors='coerce'), y=pd.to_numeric(df.y, errors='coerce'))
    rm = df.loc[df.x.isna() | df.y.isna()]
    if verbose:
        print(f"filtered {rm.shape[0]} survey points - missing coordinates")
    return df.drop(rm.index)[['site', 'period', 'x', 'y']].reset_index(drop=True)


#
# effort
#

effort_keys = ['subject', 'site', 'period', 'phase', 'date']

def load_effort(df:pd.DataFrame) -> pd.DataFrame:
    df = df.rename({k: v for k, v in colmap.items() if k in ['frequency', 'patch', 'year', 'exp_phase']}, axis=1)
    df = df.assign(**{col: df[col].astype(str) for col in ['subject', 'site', 'period', 'phase']})
    df['date'] = pd.to_datetime(df.date).dt.normalize()
    df['minutes'] = pd.to_numeric(df.minutes).astype(np.float64)
    return df[effort_keys + ['minutes']]

# Tracking sessions can be logged more than once (same bird, same start/end entered on two sheets), so duplicates
# are dropped before summing, the same way camera effort is counted once per video file.
def summarize_effort(sessions:pd.DataFrame) -> pd.DataFrame:
    sessions = sessions.drop_duplicates(subset=effort_keys + ['start', 'end'])
    minutes = (sessions.end - sessions.start) / pd.Timedelta('1min')
    bad = sessions.loc[minutes < 0]
    if bad.shape[0]:
        raise TelemetryError(f"{bad.shape[0]} tracking sessions end before they start: {bad[effort_keys].to_dict('records')}")
    return sessions.assign(minutes=minutes) \
        .groupby(effort_keys, as_index=False).minutes.sum()


if 'snakemake' in globals():
    load_observations(pd.read_csv(snakemake.input['observations'], dtype=dtypes)) \
            .to_parquet(snakemake.output['observations'])
    load_survey(pd.read_csv(snakemake.input['survey'], dtype={'patch': str, 'year': str}), True) \
            .to_parquet(snakemake.output['survey'])
    if snakemake.params.get('sessions'):
        sessions = pd.read_csv(snakemake.input['effort'], dtype={'frequency': str, 'patch': str, 'year': str}, parse_dates=['date', 'start', 'end']) \
            .rename({k: v for k, v in colmap.items() if k in ['frequency', 'patch', 'year', 'exp_phase']}, axis=1)
        sessions = sessions.assign(date=sessions.date.dt.normalize())
        summarize_effort(sessions).to_parquet(snakemake.output['effort'])
    else:
        load_effort(pd.read_csv(snakemake.input['effort'], dtype={'frequency': str, 'patch': str, 'year': str})) \
                .to_parquet(snakemake.output['effort'])
