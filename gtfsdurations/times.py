"""
GTFS Time Conversion Module.

This module converts the ``H:MM:SS`` strings found in GTFS ``stop_times.txt``
into integer seconds since service midnight and back. GTFS allows hours beyond
23 for trips running past midnight (``"25:30:00"``), so values are never
wrapped to a 24 hour clock.

All parsing failures are reported as missing values rather than exceptions so
that callers can filter them out explicitly before any duration arithmetic.
"""

# Future annotations for type hints
from __future__ import annotations

# Standard library imports
import re

# Third-party imports
import pandas as pd

__all__ = ["extract_hour", "format_time", "parse_time", "times_to_seconds"]

_LEADING_DIGITS = re.compile(r"[0-9]+")


# ---------------------------------------------------------------------------
# Scalar conversions
# ---------------------------------------------------------------------------


def parse_time(value: str | float | None) -> int | None:
    """
    Convert a GTFS ``H:MM:SS`` string (24 h+ supported) into seconds.

    The string is split on ``:`` and each of the three components must be a
    non-negative integer. The hour component may exceed 23, which represents
    service on the following day, and is kept as is.

    Parameters
    ----------
    value : str, float or None
        Raw GTFS time. Missing values (``None``, ``NaN``) and empty strings are
        accepted and yield ``None``.

    Returns
    -------
    int or None
        Seconds since service midnight, or ``None`` when the value is empty or
        malformed.

    See Also
    --------
    format_time : Inverse conversion.
    times_to_seconds : Vectorised version for pandas Series.

    Examples
    --------
    >>> parse_time("08:10:00")
    29400
    >>> parse_time("25:50:00")
    93000
    >>> parse_time("") is None
    True
    """
    if not isinstance(value, str):
        return None

    parts = value.strip().split(":")
    if len(parts) != 3 or not all(p.isascii() and p.isdigit() for p in parts):
        return None

    h, m, s = map(int, parts)
    return h * 3600 + m * 60 + s


def format_time(seconds: int) -> str:
    """
    Render seconds since service midnight as a zero-padded ``HH:MM:SS`` string.

    Hours are not reduced modulo 24, so ``93000`` becomes ``"25:50:00"``.

    Parameters
    ----------
    seconds : int
        Non-negative number of seconds.

    Returns
    -------
    str
        Canonical GTFS time string.

    Raises
    ------
    ValueError
        If ``seconds`` is negative.

    Examples
    --------
    >>> format_time(29400)
    '08:10:00'
    >>> format_time(93000)
    '25:50:00'
    """
    seconds = int(seconds)
    if seconds < 0:
        msg = f"Cannot format a negative time: {seconds}"
        raise ValueError(msg)

    h, remainder = divmod(seconds, 3600)
    m, s = divmod(remainder, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def extract_hour(value: str | float | None) -> int | None:
    """
    Return the leading integer token of a raw GTFS time string.

    Parameters
    ----------
    value : str, float or None
        Raw GTFS time, e.g. ``"25:10:00"``.

    Returns
    -------
    int or None
        The hour exactly as written (``25`` for ``"25:10:00"``), or ``None``
        when the string carries no digits.

    Examples
    --------
    >>> extract_hour("7:05:00")
    7
    >>> extract_hour("26:00:00")
    26
    """
    if not isinstance(value, str):
        return None
    match = _LEADING_DIGITS.search(value)
    return int(match.group()) if match else None


# ---------------------------------------------------------------------------
# Vectorised conversions
# ---------------------------------------------------------------------------


def times_to_seconds(values: pd.Series) -> pd.Series:
    """
    Apply :func:`parse_time` to every element of a Series.

    Parameters
    ----------
    values : pd.Series
        Raw GTFS time strings.

    Returns
    -------
    pd.Series
        Nullable ``Int64`` Series aligned with ``values``; unparseable entries
        are ``<NA>``.

    Examples
    --------
    >>> times_to_seconds(pd.Series(["08:00:00", "", "24:00:01"])).tolist()
    [28800, <NA>, 86401]
    """
    return values.map(parse_time).astype("Int64")
