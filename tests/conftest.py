"""Shared fixtures for the telemetry pipeline tests."""

import os
import sys

import geopandas as gpd
import pandas as pd
import pytest
from shapely import Point

# Ensure project root is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


@pytest.fixture
def survey():
    """Two 100m x 100m square patches surveyed in 2018 (1 ha each)."""
    return pd.DataFrame({
        "site": ["1"] * 4 + ["2"] * 4,
        "period": "2018",
        "x": [0.0, 100.0, 100.0, 0.0, 500.0, 600.0, 600.0, 500.0],
        "y": [0.0, 0.0, 100.0, 100.0, 0.0, 0.0, 100.0, 100.0],
    })


@pytest.fixture
def areas(survey):
    from telemetry.mcp import build_areas
    return build_areas(survey)


@pytest.fixture
def located():
    """Build an observation GeoDataFrame from (x, y) tuples (None for no position) and notes."""
    def build(points, notes=None, site="1", period="2018"):
        notes = notes or [None] * len(points)
        df = pd.DataFrame({"site": site, "period": period, "note": pd.array(notes, dtype="string")}, index=range(len(points)))
        geometry = [Point(p) if p is not None else None for p in points]
        return gpd.GeoDataFrame(df, geometry=geometry)
    return build


@pytest.fixture
def observations():
    """Build dwell-ready observations from (subject, arrival, departure, note) rows, times as 'HH:MM'."""
    def build(rows, date="2018-03-01", site="1", period="2018", phase="pre"):
        df = pd.DataFrame(rows, columns=["subject", "arrival", "departure", "note"])
        for col in ["arrival", "departure"]:
            df[col] = pd.to_datetime([f"{date} {t}" if pd.notna(t) else None for t in df[col]])
        df["note"] = df.note.astype("string")
        return df.assign(date=pd.Timestamp(date), site=site, period=period, phase=phase)
    return build
