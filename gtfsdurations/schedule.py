"""
GTFS Schedule Normalization Module.

This module turns GTFS data into the canonical in-memory schedule consumed by
the duration calculations: a dictionary of pandas DataFrames, one per GTFS
file, with identifiers typed as strings, stop sequences typed as numbers,
missing times represented by empty strings and ``stop_times`` ordered by trip
and sequence.

A schedule can be read straight from a zipped feed with :func:`load_gtfs`,
normalized with :func:`as_schedule` and restricted to a subset of trips with
:func:`filter_trips`.
"""

# Future annotations for type hints
from __future__ import annotations

# Standard library imports
import io
import logging
import zipfile
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING
from typing import TypeGuard

# Third-party imports
import geopandas as gpd
import pandas as pd
from shapely.geometry import Point

# Type checking imports
if TYPE_CHECKING:
    from collections.abc import Iterable

# Module logger configuration
logger = logging.getLogger(__name__)

__all__ = ["Schedule", "as_schedule", "filter_trips", "is_schedule", "load_gtfs"]

REQUIRED_TABLES = ("stop_times", "trips", "routes")
REQUIRED_COLUMNS: dict[str, tuple[str, ...]] = {
    "stop_times": ("trip_id", "stop_id", "stop_sequence", "arrival_time", "departure_time"),
    "trips": ("trip_id", "route_id", "service_id"),
    "routes": ("route_id",),
}
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Identifier columns cast to str wherever they appear
_ID_COLUMNS = ("trip_id", "stop_id", "route_id", "service_id", "parent_station")
_TIME_COLUMNS = ("arrival_time", "departure_time")
_DATE_COLUMNS = ("start_date", "end_date", "date")


class Schedule(dict[str, pd.DataFrame]):
    """
    Canonical GTFS schedule.

    A plain ``dict`` mapping GTFS table names (file names without ``.txt``) to
    DataFrames. Instances are only created by :func:`as_schedule` and
    :func:`filter_trips`; being a ``Schedule`` certifies that the tables meet
    the canonical layout, so normalization can be skipped.

    See Also
    --------
    as_schedule : Build a Schedule from raw GTFS data.
    is_schedule : Check whether an object is already canonical.

    Examples
    --------
    >>> schedule = as_schedule(gtfs)
    >>> schedule.stop_times.columns[:3].tolist()
    ['trip_id', 'arrival_time', 'departure_time']
    """

    @property
    def stop_times(self) -> pd.DataFrame:
        """The ``stop_times`` table."""
        return self["stop_times"]

    @property
    def trips(self) -> pd.DataFrame:
        """The ``trips`` table."""
        return self["trips"]

    @property
    def routes(self) -> pd.DataFrame:
        """The ``routes`` table."""
        return self["routes"]


# =============================================================================
# INTERNAL HELPER FUNCTIONS
# =============================================================================

# -----------------------------------------------------------------------------
# Reading
# -----------------------------------------------------------------------------


def _read_csv_bytes(buf: bytes) -> pd.DataFrame:
    """Read an in-memory CSV with every column typed as string."""
    return pd.read_csv(io.BytesIO(buf), dtype=str, encoding="utf-8-sig")


def _load_gtfs_zip(path: str | Path) -> dict[str, pd.DataFrame]:
    """
    Unzip every *.txt* file found inside *path* into a raw DataFrame.

    Parameters
    ----------
    path : str or Path
        Path to the GTFS zip file.

    Returns
    -------
    dict
        Dictionary mapping GTFS file names (without .txt extension) to DataFrames.
    """
    gtfs: dict[str, pd.DataFrame] = {}
    with zipfile.ZipFile(path) as zf:
        for name in zf.namelist():
            if name.endswith(".txt") and not name.endswith("/"):
                key = name.rsplit("/", 1)[-1].removesuffix(".txt")
                try:
                    gtfs[key] = _read_csv_bytes(zf.read(name))
                except pd.errors.EmptyDataError:
                    logger.warning("Skipping empty GTFS file %s", name)
    return gtfs


def _point_geometries(stops: pd.DataFrame) -> gpd.GeoSeries:
    """Return an EPSG:4326 GeoSeries built from ``stop_lon`` / ``stop_lat``."""
    pts = [
        Point(lon, lat) if pd.notna(lon) and pd.notna(lat) else None
        for lon, lat in zip(stops["stop_lon"], stops["stop_lat"], strict=False)
    ]
    return gpd.GeoSeries(pts, index=stops.index, crs="EPSG:4326")


# -----------------------------------------------------------------------------
# Type coercion
# -----------------------------------------------------------------------------


def _as_str(values: pd.Series) -> pd.Series:
    """Cast non-missing values to ``str`` while keeping missing values missing."""
    return values.map(lambda v: v if pd.isna(v) else str(v).strip())


def _as_time_str(values: pd.Series) -> pd.Series:
    """Cast GTFS times to stripped strings with missing values as ``""``."""
    return values.map(lambda v: "" if pd.isna(v) else str(v).strip())


def _coerce_table(name: str, table: pd.DataFrame) -> pd.DataFrame:
    """
    Return a typed copy of one GTFS table.

    Parameters
    ----------
    name : str
        GTFS table name, used to pick table specific rules.
    table : pd.DataFrame
        Raw table. It is not modified.

    Returns
    -------
    pd.DataFrame
        Copy with identifiers as strings, times as strings and numeric or
        boolean columns converted.
    """
    table = table.copy()

    for col in _ID_COLUMNS:
        if col in table.columns:
            table[col] = _as_str(table[col])
    for col in _DATE_COLUMNS:
        if col in table.columns:
            table[col] = _as_str(table[col])

    if name == "stop_times":
        for col in _TIME_COLUMNS:
            table[col] = _as_time_str(table[col])
        table["stop_sequence"] = pd.to_numeric(table["stop_sequence"], errors="coerce")
        if n_bad := int(table["stop_sequence"].isna().sum()):
            logger.warning("Dropped %d stop_times rows without a numeric stop_sequence", n_bad)
            table = table.dropna(subset=["stop_sequence"])
        table = table.sort_values(["trip_id", "stop_sequence"], kind="mergesort")
        table = table.reset_index(drop=True)

    elif name == "stops":
        for col in ("stop_lat", "stop_lon"):
            if col in table.columns:
                table[col] = pd.to_numeric(table[col], errors="coerce")

    elif name == "routes" and "route_type" in table.columns:
        table["route_type"] = pd.to_numeric(table["route_type"], errors="coerce")

    elif name == "calendar":
        for day in WEEKDAYS:
            if day in table.columns:
                table[day] = pd.to_numeric(table[day], errors="coerce").fillna(0).astype(bool)

    elif name == "calendar_dates" and "exception_type" in table.columns:
        table["exception_type"] = pd.to_numeric(table["exception_type"], errors="coerce")

    return table


def _validate_tables(gtfs: Mapping[str, pd.DataFrame]) -> None:
    """Raise ``ValueError`` when a required table or column is missing."""
    missing = [name for name in REQUIRED_TABLES if name not in gtfs]
    if missing:
        msg = f"GTFS must contain {', '.join(REQUIRED_TABLES)}. Missing: {', '.join(missing)}"
        raise ValueError(msg)

    for name, columns in REQUIRED_COLUMNS.items():
        absent = [col for col in columns if col not in gtfs[name].columns]
        if absent:
            msg = f"GTFS table '{name}' is missing required columns: {', '.join(absent)}"
            raise ValueError(msg)


# ===========================================================================
# PUBLIC API
# ===========================================================================


def load_gtfs(path: str | Path) -> dict[str, pd.DataFrame | gpd.GeoDataFrame]:
    """
    Parse a GTFS zip file into a dictionary of DataFrames.

    Every ``.txt`` member of the archive is read as a string-typed table.
    Stop coordinates are converted to numbers and, when present, turned into
    an EPSG:4326 point geometry so that the stops table is a GeoDataFrame.

    Parameters
    ----------
    path : str or pathlib.Path
        Location of the zipped GTFS feed.

    Returns
    -------
    dict[str, pandas.DataFrame or geopandas.GeoDataFrame]
        Keys are the GTFS file names without extension.

    See Also
    --------
    as_schedule : Normalize the loaded tables.

    Examples
    --------
    >>> gtfs = load_gtfs("data/rail_gtfs.zip")
    >>> sorted(gtfs)
    ['agency', 'calendar', 'routes', 'stop_times', 'stops', 'trips']
    """
    gtfs: dict[str, pd.DataFrame | gpd.GeoDataFrame] = dict(_load_gtfs_zip(path))
    if not gtfs:
        logger.warning("No GTFS files found in %s", path)
        return gtfs

    if (stops := gtfs.get("stops")) is not None and {"stop_lat", "stop_lon"} <= set(stops):
        stops = _coerce_table("stops", stops)
        gtfs["stops"] = gpd.GeoDataFrame(stops, geometry=_point_geometries(stops), crs="EPSG:4326")

    logger.info("GTFS loaded: %s", ", ".join(gtfs))
    return gtfs


def is_schedule(obj: object) -> TypeGuard[Schedule]:
    """
    Tell whether ``obj`` is already a canonical :class:`Schedule`.

    Parameters
    ----------
    obj : object
        Anything.

    Returns
    -------
    bool
        ``True`` only for Schedule instances.
    """
    return isinstance(obj, Schedule)


def as_schedule(gtfs: Schedule | Mapping[str, pd.DataFrame] | str | Path) -> Schedule:
    """
    Normalize GTFS data into a canonical :class:`Schedule`.

    The operation is idempotent: a Schedule is returned unchanged. Other
    inputs are never mutated; every table is copied before it is typed.

    Parameters
    ----------
    gtfs : Schedule, mapping of DataFrames, str or Path
        Either a path to a zipped GTFS feed or a mapping from table name to
        DataFrame (for example the output of :func:`load_gtfs`).

    Returns
    -------
    Schedule
        Canonical schedule containing at least ``stop_times``, ``trips`` and
        ``routes``.

    Raises
    ------
    ValueError
        If a required table, or a required column of one, is missing.
    TypeError
        If ``gtfs`` is neither a mapping nor a path.

    See Also
    --------
    load_gtfs : Read a zipped feed.
    filter_trips : Restrict a schedule to some trips.

    Examples
    --------
    >>> schedule = as_schedule({"stop_times": st, "trips": trips, "routes": routes})
    >>> is_schedule(schedule)
    True
    """
    if isinstance(gtfs, Schedule):
        return gtfs
    if isinstance(gtfs, (str, Path)):
        gtfs = load_gtfs(gtfs)
    if not isinstance(gtfs, Mapping):
        msg = f"gtfs must be a mapping of DataFrames or a path, got {type(gtfs).__name__}"
        raise TypeError(msg)

    _validate_tables(gtfs)
    return Schedule({name: _coerce_table(name, table) for name, table in gtfs.items()})


def filter_trips(
    schedule: Schedule | Mapping[str, pd.DataFrame],
    trips: str | Iterable[str],
) -> Schedule:
    """
    Restrict a schedule to the given trip ids.

    ``stop_times``, ``trips`` and ``frequencies`` keep only rows of the
    selected trips; ``routes`` and ``stops`` keep only rows still referenced
    by them. Every other table is carried over as is.

    Parameters
    ----------
    schedule : Schedule or mapping of DataFrames
        Schedule to filter. Non-canonical input is normalized first.
    trips : str or iterable of str
        A single trip id or a collection of trip ids.

    Returns
    -------
    Schedule
        A new, filtered schedule.

    Examples
    --------
    >>> subset = filter_trips(schedule, ["T1", "T3"])
    >>> sorted(subset.trips["trip_id"])
    ['T1', 'T3']
    """
    schedule = as_schedule(schedule)
    trip_ids = {trips} if isinstance(trips, str) else {str(t) for t in trips}

    filtered = Schedule(schedule)
    for name in ("stop_times", "trips", "frequencies"):
        table = filtered.get(name)
        if table is not None and "trip_id" in table.columns:
            filtered[name] = table[table["trip_id"].isin(trip_ids)].reset_index(drop=True)

    route_ids = set(filtered.trips["route_id"])
    filtered["routes"] = filtered.routes[filtered.routes["route_id"].isin(route_ids)].reset_index(
        drop=True
    )
    if (stops := filtered.get("stops")) is not None and "stop_id" in stops.columns:
        stop_ids = set(filtered.stop_times["stop_id"])
        filtered["stops"] = stops[stops["stop_id"].isin(stop_ids)].reset_index(drop=True)

    logger.info(
        "Filtered trips from %d to %d",
        len(schedule.trips),
        len(filtered.trips),
    )
    return filtered
