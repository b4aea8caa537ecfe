#
# occupancy: fraction of tracked time each bird spent inside its patch.
#
# For each bird and date, dwell minutes are summed by membership and divided by the tracking effort (minutes watched)
# of that bird/date. Daily sums are then pooled over the dates of each experimental phase (pre/post) and the ratio is
# recomputed on the pooled minutes.
#
# Rows come from the effort table: a bird tracked during a phase but never located in the patch gets an explicit
# zero ('no_observations'), which is a valid data point and not missing data. A bird whose every reading is
# 'undetermined' gets NaN ('undetermined_only'): its time in the patch is unknown, not zero.
#
# Ratios above 1 (dwell estimates overlapping in time) are flagged with 'exceeds_effort', never clipped.
#
# raises ZeroEffortError when an effort row is <= 0 or when observations have no effort row at all.
#

import pandas as pd

from telemetry.errors import ZeroEffortError

daily_keys = ['subject', 'site', 'period', 'phase', 'date']
phase_keys = ['subject', 'site', 'period', 'phase']
minute_cols = ['minutes_in', 'minutes_out', 'minutes_undetermined']


def _keyed(df:pd.DataFrame) -> pd.DataFrame:
    return df.assign(**{col: df[col].astype(str) for col in phase_keys}, date=pd.to_datetime(df.date).dt.normalize())

def _status(df:pd.DataFrame) -> pd.DataFrame:
    determined = (df.minutes_in + df.minutes_out) > 0
    status = pd.Series('observed', index=df.index)
    status.loc[df.nobs == 0] = 'no_observations'
    status.loc[(df.nobs > 0) & ~determined] = 'undetermined_only'
    occupancy = (df.minutes_in / df.effort_min).where(status != 'undetermined_only')
    return df.assign(occupancy=occupancy, exceeds_effort=(occupancy > 1).astype(bool), status=status)

def daily_occupancy(obs:pd.DataFrame, effort:pd.DataFrame, verbose:bool=False) -> pd.DataFrame:
    obs, effort = _keyed(pd.DataFrame(obs)), _keyed(effort)
    effort = effort.groupby(daily_keys).minutes.sum().rename('effort_min')

    bad = effort.loc[effort <= 0]
    if bad.shape[0]:
        raise ZeroEffortError(f"zero tracking effort for {bad.index.tolist()}")
    orphans = pd.MultiIndex.from_frame(obs[daily_keys]).unique().difference(effort.index)
    if len(orphans):
        raise ZeroEffortError(f"observations without tracking effort for {orphans.tolist()}")

    minutes = obs.groupby(daily_keys + ['membership'], observed=True).dwell_min.sum().unstack('membership')
    minutes.columns = [f'minutes_{c}' for c in minutes.columns]
    minutes = minutes.reindex(columns=minute_cols, fill_value=0.)
    nobs = obs.groupby(daily_keys).size().rename('nobs')

    df = pd.concat([effort.to_frame(), minutes.reindex(effort.index), nobs.reindex(effort.index)], axis=1)
    df[minute_cols] = df[minute_cols].fillna(0.)
    df['nobs'] = df.nobs.fillna(0).astype(int)
    df = _status(df)
    if verbose:
        print(f"{df.exceeds_effort.sum()} bird-days with dwell time exceeding effort - {(df.status == 'undetermined_only').sum()} undetermined only")
    return df.reset_index()

def phase_occupancy(daily:pd.DataFrame) -> pd.DataFrame:
    df = daily.groupby(phase_keys).agg(
        minutes_in=pd.NamedAgg(column='minutes_in', aggfunc='sum'),
        minutes_out=pd.NamedAgg(column='minutes_out', aggfunc='sum'),
        minutes_undetermined=pd.NamedAgg(column='minutes_undetermined', aggfunc='sum'),
        effort_min=pd.NamedAgg(column='effort_min', aggfunc='sum'),
        nobs=pd.NamedAgg(column='nobs', aggfunc='sum'),
        ndays=pd.NamedAgg(column='date', aggfunc='nunique'))
    return _status(df).reset_index()


if 'snakemake' in globals():
    daily = daily_occupancy(pd.read_parquet(snakemake.input['intervals']), pd.read_parquet(snakemake.input['effort']), True)
    daily.to_parquet(snakemake.output['daily'])
    phase_occupancy(daily).to_parquet(snakemake.output['phase'])
