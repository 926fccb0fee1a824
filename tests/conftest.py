"""Shared GTFS fixtures for the gtfsdurations test suite."""

import zipfile
from pathlib import Path

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Point

from gtfsdurations.schedule import Schedule
from gtfsdurations.schedule import as_schedule


# ============================================================================
# GTFS TABLES
# ============================================================================


def _stops() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "stop_id": ["S1", "S2", "S3"],
            "stop_name": ["Stop 1", "Stop 2", "Stop 3"],
            "stop_lat": [41.90, 41.91, 41.92],
            "stop_lon": [12.49, 12.50, 12.51],
        },
    )


def _routes() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "route_id": ["R1", "R2"],
            "route_short_name": ["1", "2"],
            "route_type": [3, 3],
        },
    )


def _trips() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "route_id": ["R1", "R1", "R2", "R2", "R2"],
            "service_id": ["WK", "WK", "WK", "WE", "WE"],
            "trip_id": ["T1", "T2", "T3", "T4", "T5"],
        },
    )


def _stop_times() -> pd.DataFrame:
    """
    Stop times of the sample feed.

    * T1 - three stops, 08:00 -> 08:10 -> 08:25, rows deliberately out of order
    * T2 - two stops, 09:00 -> 09:20
    * T3 - a single timed stop
    * T4 - untimed middle stop, 07:00 -> "" -> 07:30
    * T5 - crosses midnight, 23:50 -> 25:10
    """
    rows = [
        ("T1", "08:25:00", "08:25:00", "S3", 3),
        ("T1", "08:00:00", "08:00:00", "S1", 1),
        ("T1", "08:10:00", "08:10:00", "S2", 2),
        ("T2", "09:00:00", "09:00:00", "S1", 1),
        ("T2", "09:20:00", "09:20:00", "S2", 2),
        ("T3", "10:00:00", "10:00:00", "S1", 1),
        ("T4", "07:00:00", "07:00:00", "S1", 1),
        ("T4", "", "", "S2", 2),
        ("T4", "07:30:00", "07:30:00", "S3", 3),
        ("T5", "23:50:00", "23:50:00", "S1", 1),
        ("T5", "25:10:00", "25:10:00", "S2", 2),
    ]
    return pd.DataFrame(
        rows,
        columns=["trip_id", "arrival_time", "departure_time", "stop_id", "stop_sequence"],
    )


def _calendar() -> pd.DataFrame:
    # 2024-01-01 is a Monday
    return pd.DataFrame(
        {
            "service_id": ["WK", "WE"],
            "monday": [1, 0],
            "tuesday": [1, 0],
            "wednesday": [1, 0],
            "thursday": [1, 0],
            "friday": [1, 0],
            "saturday": [0, 1],
            "sunday": [0, 1],
            "start_date": ["20240101", "20240101"],
            "end_date": ["20240107", "20240107"],
        },
    )


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def sample_gtfs_dict() -> dict[str, pd.DataFrame]:
    """Raw (non-canonical) GTFS tables: weekday service WK and weekend service WE."""
    return {
        "stops": _stops(),
        "routes": _routes(),
        "trips": _trips(),
        "stop_times": _stop_times(),
        "calendar": _calendar(),
    }


@pytest.fixture
def expected_trip_durations() -> dict[str, int]:
    """Whole-trip durations of the sample feed in seconds."""
    return {"T1": 1500, "T2": 1200, "T3": 0, "T4": 1800, "T5": 4800}


@pytest.fixture
def sample_schedule(sample_gtfs_dict: dict[str, pd.DataFrame]) -> Schedule:
    """Canonical version of ``sample_gtfs_dict``."""
    return as_schedule(sample_gtfs_dict)


@pytest.fixture
def overlapping_gtfs_dict(sample_gtfs_dict: dict[str, pd.DataFrame]) -> dict[str, pd.DataFrame]:
    """
    Sample feed where WE also runs on Wednesday 2024-01-03.

    Service days then split into three patterns:
    {WK} on four days, {WE} on two days and {WE, WK} on one day.
    """
    gtfs = dict(sample_gtfs_dict)
    gtfs["calendar_dates"] = pd.DataFrame(
        {"service_id": ["WE"], "date": ["20240103"], "exception_type": [1]},
    )
    return gtfs


@pytest.fixture
def single_trip_gtfs_dict() -> dict[str, pd.DataFrame]:
    """One trip T1 on route R1: 08:00:00 -> 08:10:00 -> 08:25:00."""
    stop_times = _stop_times()
    return {
        "routes": _routes().iloc[[0]],
        "trips": _trips().iloc[[0]],
        "stop_times": stop_times[stop_times["trip_id"] == "T1"],
        "calendar": _calendar().iloc[[0]],
    }


@pytest.fixture
def stops_gdf() -> gpd.GeoDataFrame:
    """Stops of the sample feed with point geometry."""
    stops = _stops()
    return gpd.GeoDataFrame(
        stops,
        geometry=[Point(x, y) for x, y in zip(stops["stop_lon"], stops["stop_lat"], strict=True)],
        crs="EPSG:4326",
    )


@pytest.fixture
def sample_gtfs_zip(tmp_path: Path, sample_gtfs_dict: dict[str, pd.DataFrame]) -> Path:
    """Write the sample feed to a zipped GTFS archive."""
    path = tmp_path / "sample_gtfs.zip"
    with zipfile.ZipFile(path, "w") as zf:
        for name, table in sample_gtfs_dict.items():
            zf.writestr(f"{name}.txt", table.to_csv(index=False))
    return path


@pytest.fixture
def empty_gtfs_zip(tmp_path: Path) -> Path:
    """A zip archive without any GTFS file."""
    path = tmp_path / "empty_gtfs.zip"
    with zipfile.ZipFile(path, "w"):
        pass
    return path
