"""
gtfsdurations: Scheduled trip durations from GTFS feeds.

This package derives time-based measures from the stop times of a General
Transit Feed Specification (GTFS) schedule: average trip duration per route,
total duration per trip and stop-to-stop segment durations, each correlated
with the service pattern of the trip.

Notes
-----
Main modules include:
- times : Conversion between GTFS ``H:MM:SS`` strings and seconds
- schedule : Loading, normalizing and filtering GTFS schedules
- segments : Ordering stop times and pairing consecutive stops
- service : Deriving and joining service patterns
- durations : Duration aggregation and the ``get_durations`` entry point
"""

# Standard library imports
import contextlib
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version

# Import all public APIs from submodules
from .durations import *  # noqa: F403
from .schedule import *  # noqa: F403
from .segments import *  # noqa: F403
from .service import *  # noqa: F403
from .times import *  # noqa: F403

# Version handling with graceful fallback
with contextlib.suppress(PackageNotFoundError):
    __version__ = version("gtfsdurations")
