"""
Trip Segmentation Module.

This module orders the stop-time records of every trip by ``stop_sequence``
and derives the two views the duration calculations are built on:

* trip bounds - the first and last timed stop of each trip, and
* trip segments - every consecutive (from stop, to stop) pair of a trip.

Records whose arrival time is empty or malformed are removed up front by
:func:`valid_arrivals` so that no duration is ever computed from a value
coerced to zero.
"""

# Future annotations for type hints
from __future__ import annotations

# Standard library imports
import logging

# Third-party imports
import geopandas as gpd
import pandas as pd
from shapely.geometry import LineString

# Local imports
from .schedule import _point_geometries
from .times import extract_hour
from .times import times_to_seconds

# Module logger configuration
logger = logging.getLogger(__name__)

__all__ = ["segment_geometries", "trip_bounds", "trip_segments", "valid_arrivals"]

BOUNDS_COLUMNS = ["trip_id", "starts", "ends", "duration"]
SEGMENT_COLUMNS = [
    "trip_id",
    "from_stop_id",
    "to_stop_id",
    "hour",
    "departure_sec",
    "arrival_sec",
    "duration",
]


def valid_arrivals(stop_times: pd.DataFrame) -> pd.DataFrame:
    """
    Keep the stop-time records that carry a usable arrival time.

    Both times are parsed into the nullable ``arrival_sec`` and
    ``departure_sec`` columns. Rows whose arrival cannot be parsed (empty,
    missing or malformed strings) are dropped; a missing departure is kept
    and only surfaces later as a missing segment duration.

    Parameters
    ----------
    stop_times : pd.DataFrame
        Canonical ``stop_times`` table.

    Returns
    -------
    pd.DataFrame
        Filtered copy ordered by ``trip_id`` then ``stop_sequence``.

    Examples
    --------
    >>> st = pd.DataFrame({
    ...     "trip_id": ["T1", "T1"], "stop_id": ["A", "B"], "stop_sequence": [1, 2],
    ...     "arrival_time": ["08:00:00", ""], "departure_time": ["08:00:00", ""],
    ... })
    >>> valid_arrivals(st)["stop_id"].tolist()
    ['A']
    """
    st = stop_times.copy()
    st["arrival_sec"] = times_to_seconds(st["arrival_time"])
    st["departure_sec"] = times_to_seconds(st["departure_time"])

    mask = st["arrival_sec"].notna()
    if n_excluded := int((~mask).sum()):
        logger.debug("Excluded %d stop_times rows without a valid arrival_time", n_excluded)

    return (
        st.loc[mask]
        .sort_values(["trip_id", "stop_sequence"], kind="mergesort")
        .reset_index(drop=True)
    )


def trip_bounds(stop_times: pd.DataFrame) -> pd.DataFrame:
    """
    Compute the start, end and total duration of every trip.

    The start is the arrival at the first timed stop and the end the arrival
    at the last timed stop, in sequence order, so dwell times along the way
    are included. A trip with a single timed stop lasts ``0`` seconds; a trip
    without any timed stop is absent from the result.

    Parameters
    ----------
    stop_times : pd.DataFrame
        Canonical ``stop_times`` table.

    Returns
    -------
    pd.DataFrame
        Columns ``trip_id``, ``starts``, ``ends`` and ``duration`` (seconds).

    See Also
    --------
    trip_segments : Stop-to-stop breakdown of each trip.
    """
    st = valid_arrivals(stop_times)
    if st.empty:
        return pd.DataFrame(columns=BOUNDS_COLUMNS)

    grouped = st.groupby("trip_id", sort=False)["arrival_sec"]
    bounds = pd.DataFrame({"starts": grouped.first(), "ends": grouped.last()}).reset_index()
    bounds["duration"] = bounds["ends"] - bounds["starts"]
    return bounds[BOUNDS_COLUMNS]


def trip_segments(stop_times: pd.DataFrame) -> pd.DataFrame:
    """
    Within each trip build successive stop pairs (from -> to).

    Every timed record is paired with the next timed record of the same trip.
    The segment duration runs from the departure at the origin to the arrival
    at the destination, so the dwell time at the origin is excluded. ``hour``
    is the hour written in the origin's raw arrival time.

    The last record of each trip has no successor: it is still emitted, with
    missing ``to_stop_id``, ``arrival_sec`` and ``duration``, and has to be
    discarded by the caller.

    Parameters
    ----------
    stop_times : pd.DataFrame
        Canonical ``stop_times`` table.

    Returns
    -------
    pd.DataFrame
        Columns ``trip_id``, ``from_stop_id``, ``to_stop_id``, ``hour``,
        ``departure_sec``, ``arrival_sec`` and ``duration``.

    See Also
    --------
    trip_bounds : Whole-trip durations.

    Examples
    --------
    >>> segments = trip_segments(schedule.stop_times).dropna()
    >>> segments[["from_stop_id", "to_stop_id", "duration"]].head(2)
      from_stop_id to_stop_id  duration
    0           S1         S2       600
    1           S2         S3       900
    """
    st = valid_arrivals(stop_times)
    if st.empty:
        return pd.DataFrame(columns=SEGMENT_COLUMNS)

    # Shift within trips so pairs never cross a trip boundary
    grouped = st.groupby("trip_id", sort=False)
    segments = pd.DataFrame(
        {
            "trip_id": st["trip_id"],
            "from_stop_id": st["stop_id"],
            "to_stop_id": grouped["stop_id"].shift(-1),
            "hour": st["arrival_time"].map(extract_hour).astype("Int64"),
            "departure_sec": st["departure_sec"],
            "arrival_sec": grouped["arrival_sec"].shift(-1),
        },
    )
    segments["duration"] = segments["arrival_sec"] - segments["departure_sec"]
    return segments[SEGMENT_COLUMNS]


def segment_geometries(segments: pd.DataFrame, stops: pd.DataFrame) -> gpd.GeoSeries:
    """
    Build a straight LineString between the two stops of every segment.

    Parameters
    ----------
    segments : pd.DataFrame
        Frame with ``from_stop_id`` and ``to_stop_id`` columns.
    stops : pd.DataFrame or gpd.GeoDataFrame
        GTFS stops, either with a point geometry or with ``stop_lon`` /
        ``stop_lat`` columns.

    Returns
    -------
    gpd.GeoSeries
        EPSG:4326 geometries aligned with ``segments``; ``None`` where either
        stop has no known location.

    Raises
    ------
    ValueError
        If ``stops`` has neither a geometry nor coordinate columns.
    """
    stops = stops.drop_duplicates("stop_id").set_index("stop_id")
    if isinstance(stops, gpd.GeoDataFrame):
        points = stops.geometry
    elif {"stop_lat", "stop_lon"} <= set(stops.columns):
        coords = stops[["stop_lon", "stop_lat"]].apply(pd.to_numeric, errors="coerce")
        points = _point_geometries(coords)
    else:
        msg = "stops must have a geometry or stop_lon/stop_lat columns"
        raise ValueError(msg)

    lookup = {sid: pt for sid, pt in points.items() if pt is not None and not pt.is_empty}
    lines = [
        LineString([lookup[o], lookup[d]]) if o in lookup and d in lookup else None
        for o, d in zip(segments["from_stop_id"], segments["to_stop_id"], strict=False)
    ]
    return gpd.GeoSeries(lines, index=segments.index, crs="EPSG:4326")
