"""
Service Pattern Module.

A *service pattern* groups the service days of a feed that share exactly the
same set of active ``service_id`` values. Every pattern is labelled
``servicepattern-<n>`` (the most frequent pattern first) and carries the
number of trips operating under it. Because a ``service_id`` is usually active
on days belonging to several patterns, the mapping from ``service_id`` to
pattern is many-to-many and joins against it fan out.
"""

# Future annotations for type hints
from __future__ import annotations

# Standard library imports
import logging
from typing import TYPE_CHECKING

# Third-party imports
import pandas as pd

# Local imports
from .schedule import WEEKDAYS

# Type checking imports
if TYPE_CHECKING:
    from .schedule import Schedule

# Module logger configuration
logger = logging.getLogger(__name__)

__all__ = ["get_service_pattern", "join_service_pattern"]

PATTERN_PREFIX = "servicepattern-"
PATTERN_COLUMNS = ["service_id", "service_pattern", "pattern_frequency"]


# ---------------------------------------------------------------------------
# Service day expansion
# ---------------------------------------------------------------------------


def _calendar_dates(calendar: pd.DataFrame) -> pd.DataFrame:
    """
    Expand ``calendar.txt`` into one row per active ``(service_id, date)``.

    Parameters
    ----------
    calendar : pd.DataFrame
        Canonical calendar table with weekday flags and ``start_date`` /
        ``end_date`` in YYYYMMDD format.

    Returns
    -------
    pd.DataFrame
        Columns ``service_id`` and ``date``.
    """
    cal = calendar.copy()
    cal["start_date"] = pd.to_datetime(cal["start_date"], format="%Y%m%d")
    cal["end_date"] = pd.to_datetime(cal["end_date"], format="%Y%m%d")

    all_dates = pd.date_range(start=cal["start_date"].min(), end=cal["end_date"].max(), freq="D")
    date_df = pd.DataFrame({"date": all_dates, "day_name": all_dates.strftime("%A").str.lower()})

    cal_df = cal.melt(
        id_vars=["service_id", "start_date", "end_date"],
        value_vars=[d for d in WEEKDAYS if d in cal.columns],
        var_name="day_name",
        value_name="is_active",
    )
    cal_df = cal_df[cal_df["is_active"].astype(bool)]

    merged = cal_df.merge(date_df, on="day_name")
    active = merged[
        (merged["date"] >= merged["start_date"]) & (merged["date"] <= merged["end_date"])
    ]
    return active[["service_id", "date"]]


def _service_dates(schedule: Schedule) -> pd.DataFrame:
    """
    Return every ``(service_id, date)`` on which a service runs.

    Regular service comes from ``calendar``; ``calendar_dates`` then adds
    (``exception_type == 1``) or removes (``exception_type == 2``) dates.

    Parameters
    ----------
    schedule : Schedule
        Canonical schedule.

    Returns
    -------
    pd.DataFrame
        Deduplicated ``service_id`` / ``date`` pairs.
    """
    dates = pd.DataFrame(
        {"service_id": pd.Series(dtype=object), "date": pd.Series(dtype="datetime64[ns]")},
    )

    if (calendar := schedule.get("calendar")) is not None and not calendar.empty:
        dates = _calendar_dates(calendar)

    if (calendar_dates := schedule.get("calendar_dates")) is not None and not calendar_dates.empty:
        exceptions = calendar_dates.assign(
            date=pd.to_datetime(calendar_dates["date"], format="%Y%m%d"),
        )
        added = exceptions.loc[exceptions["exception_type"] == 1, ["service_id", "date"]]
        removed = exceptions.loc[exceptions["exception_type"] == 2, ["service_id", "date"]]

        dates = pd.concat([dates, added], ignore_index=True)
        if not removed.empty:
            merged = dates.merge(removed.drop_duplicates(), how="left", indicator=True)
            dates = merged.loc[merged["_merge"] == "left_only", ["service_id", "date"]]

    return dates.drop_duplicates().reset_index(drop=True)


# ===========================================================================
# PUBLIC API
# ===========================================================================


def get_service_pattern(schedule: Schedule) -> pd.DataFrame:
    """
    Derive the service pattern table of a schedule.

    Each service day is characterised by the set of service ids running on
    it. Days sharing the same set form one pattern. Patterns are numbered by
    descending number of service days (ties broken by their first date) and
    their ``pattern_frequency`` is the number of trips whose ``service_id``
    belongs to the pattern. Service ids used by trips but absent from
    ``calendar`` and ``calendar_dates`` each get a pattern of their own,
    numbered after the dated ones.

    Parameters
    ----------
    schedule : Schedule
        Canonical schedule (see :func:`~gtfsdurations.schedule.as_schedule`).

    Returns
    -------
    pd.DataFrame
        Columns ``service_id``, ``service_pattern`` and ``pattern_frequency``.
        A service id appears once per pattern it belongs to.

    See Also
    --------
    join_service_pattern : Attach patterns to duration records.

    Examples
    --------
    >>> get_service_pattern(schedule)
      service_id    service_pattern  pattern_frequency
    0    weekday  servicepattern-1                  3
    1    weekend  servicepattern-2                  1
    """
    # Group service days by the exact set of services running on them
    signatures: dict[tuple[str, ...], list[pd.Timestamp]] = {}
    for date, group in _service_dates(schedule).groupby("date"):
        key = tuple(sorted(group["service_id"].unique()))
        signatures.setdefault(key, []).append(date)

    ranked = sorted(signatures.items(), key=lambda item: (-len(item[1]), min(item[1])))
    records = [
        {"service_id": sid, "pattern_number": number}
        for number, (services, _) in enumerate(ranked, start=1)
        for sid in services
    ]

    # Services without any dated operation still need a pattern
    dated = {rec["service_id"] for rec in records}
    undated = sorted(set(schedule.trips["service_id"].dropna()) - dated)
    if undated:
        logger.info("%d service_id values have no calendar entry", len(undated))
    records.extend(
        {"service_id": sid, "pattern_number": number}
        for number, sid in enumerate(undated, start=len(ranked) + 1)
    )

    if not records:
        return pd.DataFrame(columns=PATTERN_COLUMNS)

    rows = pd.DataFrame.from_records(records)
    trip_counts = schedule.trips.groupby("service_id").size()
    rows["n_trips"] = rows["service_id"].map(trip_counts).fillna(0).astype(int)
    rows["pattern_frequency"] = rows.groupby("pattern_number")["n_trips"].transform("sum")
    rows["service_pattern"] = PATTERN_PREFIX + rows["pattern_number"].astype(str)

    return rows.sort_values(["pattern_number", "service_id"], kind="mergesort")[
        PATTERN_COLUMNS
    ].reset_index(drop=True)


def join_service_pattern(durations: pd.DataFrame, service_pattern: pd.DataFrame) -> pd.DataFrame:
    """
    Left-join duration records to service patterns on ``service_id``.

    The join is many-to-many: a record whose ``service_id`` belongs to several
    patterns is replicated once per pattern. Records without a matching
    pattern are kept with missing pattern columns.

    Parameters
    ----------
    durations : pd.DataFrame
        Duration records carrying a ``service_id`` column.
    service_pattern : pd.DataFrame
        Table with ``service_id``, ``service_pattern`` and
        ``pattern_frequency`` columns, as from :func:`get_service_pattern`.

    Returns
    -------
    pd.DataFrame
        Joined records.

    Raises
    ------
    ValueError
        If either frame lacks the columns needed for the join.
    """
    if "service_id" not in durations.columns:
        msg = "durations must contain a 'service_id' column"
        raise ValueError(msg)
    missing = [col for col in PATTERN_COLUMNS if col not in service_pattern.columns]
    if missing:
        msg = f"service_pattern is missing required columns: {', '.join(missing)}"
        raise ValueError(msg)

    return durations.merge(
        service_pattern[PATTERN_COLUMNS],
        on="service_id",
        how="left",
        validate="many_to_many",
    )
