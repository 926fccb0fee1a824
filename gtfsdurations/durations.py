"""
Trip Duration Module.

This module computes scheduled trip durations from a GTFS schedule at three
levels of detail:

* ``"by.route"`` - average trip duration per route and service pattern,
* ``"by.trip"`` - total duration of every trip,
* ``"detailed"`` - duration of every stop-to-stop segment of every trip.

Route and trip durations run from the first to the last timed arrival of a
trip and therefore include dwell times. Segment durations run from the
departure at one stop to the arrival at the next and exclude them.

All results are joined to the service pattern of each trip, see
:mod:`gtfsdurations.service`.
"""

# Future annotations for type hints
from __future__ import annotations

# Standard library imports
import logging
import warnings
from typing import TYPE_CHECKING

# Third-party imports
import geopandas as gpd
import pandas as pd

# Local imports
from .schedule import Schedule
from .schedule import as_schedule
from .schedule import filter_trips
from .schedule import is_schedule
from .segments import segment_geometries
from .segments import trip_bounds
from .segments import trip_segments
from .service import get_service_pattern
from .service import join_service_pattern
from .times import format_time

# Type checking imports
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterable
    from collections.abc import Mapping
    from pathlib import Path

    GTFSInput = Schedule | Mapping[str, pd.DataFrame] | str | Path

# Module logger configuration
logger = logging.getLogger(__name__)

__all__ = ["durations_by_route", "durations_by_trip", "durations_detailed", "get_durations"]

DURATION_METHODS = ("by.route", "by.trip", "detailed")
DEFAULT_METHOD = "by.route"

BY_ROUTE_COLUMNS = ["route_id", "trips", "average.duration", "service_pattern", "pattern_frequency"]
BY_TRIP_COLUMNS = ["route_id", "trip_id", "duration", "service_pattern", "pattern_frequency"]
DETAILED_COLUMNS = [
    "route_id",
    "trip_id",
    "arrival_time",
    "hour",
    "from_stop_id",
    "to_stop_id",
    "duration",
    "service_pattern",
    "pattern_frequency",
]


# =============================================================================
# INTERNAL HELPER FUNCTIONS
# =============================================================================


def _ensure_schedule(gtfs: GTFSInput) -> Schedule:
    """Normalize ``gtfs`` unless it already is a Schedule, with an advisory."""
    if is_schedule(gtfs):
        return gtfs
    logger.info(
        "This gtfs object is not a canonical Schedule. Computation may take longer. "
        "Using as_schedule() beforehand is advised.",
    )
    return as_schedule(gtfs)


def _prepare(
    gtfs: GTFSInput,
    service_pattern: pd.DataFrame | None,
) -> tuple[Schedule, pd.DataFrame]:
    """Return the canonical schedule and its service pattern table."""
    schedule = _ensure_schedule(gtfs)
    if service_pattern is None:
        service_pattern = get_service_pattern(schedule)
    return schedule, service_pattern


def _attach_trips(frame: pd.DataFrame, schedule: Schedule) -> pd.DataFrame:
    """Left-join ``route_id`` and ``service_id`` from the trips table."""
    trips = schedule.trips[["trip_id", "route_id", "service_id"]].drop_duplicates("trip_id")
    return frame.merge(trips, on="trip_id", how="left")


def _trip_durations(schedule: Schedule, service_pattern: pd.DataFrame) -> pd.DataFrame:
    """Trip bounds joined to trips and (many-to-many) service patterns."""
    bounds = trip_bounds(schedule.stop_times)
    return join_service_pattern(_attach_trips(bounds, schedule), service_pattern)


# ===========================================================================
# AGGREGATION STRATEGIES
# ===========================================================================


def durations_by_route(
    gtfs: GTFSInput,
    service_pattern: pd.DataFrame | None = None,
) -> pd.DataFrame:
    """
    Average trip duration per route and service pattern.

    Trip durations are joined to the service patterns first and grouped
    afterwards, so a trip whose service belongs to several patterns counts
    once in each of them.

    Parameters
    ----------
    gtfs : Schedule, mapping of DataFrames, str or Path
        GTFS data. Anything that is not a :class:`~gtfsdurations.schedule.Schedule`
        is normalized first.
    service_pattern : pd.DataFrame, optional
        Pre-computed service pattern table. Derived from ``gtfs`` when omitted.

    Returns
    -------
    pd.DataFrame
        Columns ``route_id``, ``trips``, ``average.duration`` (seconds),
        ``service_pattern`` and ``pattern_frequency``.

    See Also
    --------
    durations_by_trip : The per-trip values being averaged.
    """
    schedule, service_pattern = _prepare(gtfs, service_pattern)
    per_trip = _trip_durations(schedule, service_pattern)
    if per_trip.empty:
        return pd.DataFrame(columns=BY_ROUTE_COLUMNS)

    per_trip["duration"] = per_trip["duration"].astype(float)
    summary = (
        per_trip.groupby(["route_id", "service_pattern", "pattern_frequency"], dropna=False)
        .agg(trips=("trip_id", "size"), average_duration=("duration", "mean"))
        .reset_index()
        .rename(columns={"average_duration": "average.duration"})
    )
    return summary[BY_ROUTE_COLUMNS]


def durations_by_trip(
    gtfs: GTFSInput,
    service_pattern: pd.DataFrame | None = None,
) -> pd.DataFrame:
    """
    Total scheduled duration of every trip.

    The duration runs from the arrival at the first timed stop to the arrival
    at the last timed stop. Trips with a single timed stop last ``0`` seconds
    and trips without any are left out.

    Parameters
    ----------
    gtfs : Schedule, mapping of DataFrames, str or Path
        GTFS data, normalized first when needed.
    service_pattern : pd.DataFrame, optional
        Pre-computed service pattern table. Derived from ``gtfs`` when omitted.

    Returns
    -------
    pd.DataFrame
        Columns ``route_id``, ``trip_id``, ``duration`` (seconds),
        ``service_pattern`` and ``pattern_frequency``; one row per trip and
        matching pattern.

    Examples
    --------
    >>> durations_by_trip(schedule)
      route_id trip_id  duration    service_pattern  pattern_frequency
    0       R1      T1      1500  servicepattern-1                  2
    """
    schedule, service_pattern = _prepare(gtfs, service_pattern)
    per_trip = _trip_durations(schedule, service_pattern)
    return per_trip[BY_TRIP_COLUMNS].reset_index(drop=True)


def durations_detailed(
    gtfs: GTFSInput,
    service_pattern: pd.DataFrame | None = None,
    include_geometry: bool = False,
) -> pd.DataFrame | gpd.GeoDataFrame:
    """
    Duration of every stop-to-stop segment of every trip.

    Parameters
    ----------
    gtfs : Schedule, mapping of DataFrames, str or Path
        GTFS data, normalized first when needed.
    service_pattern : pd.DataFrame, optional
        Pre-computed service pattern table. Derived from ``gtfs`` when omitted.
    include_geometry : bool, default False
        If True return a GeoDataFrame with a straight LineString between the
        two stops of each segment. Requires a ``stops`` table.

    Returns
    -------
    pandas.DataFrame or geopandas.GeoDataFrame
        Columns ``route_id``, ``trip_id``, ``arrival_time`` (destination
        arrival, ``HH:MM:SS``), ``hour`` (hour of the origin arrival as
        written in the feed), ``from_stop_id``, ``to_stop_id``, ``duration``
        (seconds), ``service_pattern`` and ``pattern_frequency``. Rows with
        any missing value, such as the last stop of each trip, are dropped.

    Raises
    ------
    ValueError
        If ``include_geometry`` is True and the schedule has no stops table.
    """
    schedule, service_pattern = _prepare(gtfs, service_pattern)

    segments = join_service_pattern(
        _attach_trips(trip_segments(schedule.stop_times), schedule),
        service_pattern,
    )
    segments["arrival_time"] = segments["arrival_sec"].map(
        lambda sec: format_time(sec) if pd.notna(sec) else None,
    )
    detailed = segments[DETAILED_COLUMNS].dropna().reset_index(drop=True)

    if not include_geometry:
        return detailed

    if "stops" not in schedule:
        msg = "include_geometry=True requires a stops table"
        raise ValueError(msg)
    return gpd.GeoDataFrame(
        detailed,
        geometry=segment_geometries(detailed, schedule["stops"]),
        crs="EPSG:4326",
    )


# ===========================================================================
# DISPATCH
# ===========================================================================

_STRATEGIES: dict[str, Callable[..., pd.DataFrame]] = {
    "by.route": durations_by_route,
    "by.trip": durations_by_trip,
    "detailed": durations_detailed,
}


def get_durations(
    gtfs: GTFSInput,
    method: str = DEFAULT_METHOD,
    trips: str | Iterable[str] = "all",
    *,
    service_pattern: pd.DataFrame | None = None,
    include_geometry: bool = False,
) -> pd.DataFrame | gpd.GeoDataFrame:
    """
    Calculate trip durations of a GTFS schedule.

    Parameters
    ----------
    gtfs : Schedule, mapping of DataFrames, str or Path
        GTFS data. Passing a Schedule from
        :func:`~gtfsdurations.schedule.as_schedule` avoids repeated
        normalization.
    method : {"by.route", "by.trip", "detailed"}, default "by.route"
        * ``"by.route"`` - average duration per route (dwell times included).
        * ``"by.trip"`` - total duration per trip (dwell times included).
        * ``"detailed"`` - duration per stop-to-stop segment (dwell times
          excluded).

        Any other value falls back to ``"by.route"`` with a warning.
    trips : str or iterable of str, default "all"
        Trip ids to consider. ``"all"`` keeps every trip.
    service_pattern : pd.DataFrame, optional
        Pre-computed service pattern table.
    include_geometry : bool, default False
        Only used by ``"detailed"``, see :func:`durations_detailed`.

    Returns
    -------
    pandas.DataFrame or geopandas.GeoDataFrame
        Duration table whose columns depend on ``method``.

    See Also
    --------
    durations_by_route, durations_by_trip, durations_detailed

    Examples
    --------
    >>> by_route = get_durations(schedule, method="by.route")
    >>> by_trip = get_durations(schedule, method="by.trip", trips=["T1", "T2"])
    >>> detailed = get_durations(schedule, method="detailed")
    """
    trip_ids = [trips] if isinstance(trips, str) else list(trips)
    if "all" not in trip_ids:
        gtfs = filter_trips(_ensure_schedule(gtfs), trip_ids)

    if method not in _STRATEGIES:
        warnings.warn(
            f'"method" should be one of "by.route", "by.trip" or "detailed", got {method!r}. '
            'Returning "method = by.route".',
            UserWarning,
            stacklevel=2,
        )
        method = DEFAULT_METHOD

    if method == "detailed":
        return durations_detailed(gtfs, service_pattern, include_geometry=include_geometry)
    return _STRATEGIES[method](gtfs, service_pattern)
