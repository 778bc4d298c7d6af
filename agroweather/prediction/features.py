"""Pure feature-window construction for the prediction models."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np

from agroweather.domain import Observation
from agroweather.errors import InsufficientHistory

MIN_HISTORY_HOURS = 24
TEMPERATURE_WINDOW = 24
MULTIVARIATE_WINDOW = 36
MULTIVARIATE_FIELDS = ("temperature", "humidity", "pressure", "wind_speed", "precipitation")
DEFAULT_MAX_GAP = dt.timedelta(minutes=90)

# used only when a field is missing for the whole run
FIELD_FALLBACKS: Dict[str, float] = {"pressure": 1013.25, "wind_speed": 0.0}


@dataclass(frozen=True)
class FeatureWindows:
    temperature: np.ndarray  # shape (24,)
    multivariate: np.ndarray  # shape (36 * 5,), row-major by hour
    history: List[Observation]
    matrix: np.ndarray  # shape (len(history), 5), gaps filled

    @property
    def features_used(self) -> List[str]:
        return [f"temperature[-{TEMPERATURE_WINDOW}h]"] + [
            f"{name}[-{MULTIVARIATE_WINDOW}h]" for name in MULTIVARIATE_FIELDS
        ]

    def series(self, field: str) -> np.ndarray:
        """Gap-filled values of one multivariate field over the whole run."""
        return self.matrix[:, MULTIVARIATE_FIELDS.index(field)]


def latest_contiguous_run(
    observations: Sequence[Observation], max_gap: dt.timedelta = DEFAULT_MAX_GAP
) -> List[Observation]:
    """Return the most recent run of observations with no gap larger than `max_gap`.

    Input order does not matter; duplicate timestamps keep the last reading seen.
    """
    by_time = {obs.timestamp: obs for obs in observations}
    ordered = [by_time[t] for t in sorted(by_time)]
    if not ordered:
        return []
    start = len(ordered) - 1
    while start > 0 and ordered[start].timestamp - ordered[start - 1].timestamp <= max_gap:
        start -= 1
    return ordered[start:]


def fill_gaps(run: Sequence[Observation]) -> np.ndarray:
    """Stack the multivariate fields, interpolating unreported values.

    Interior gaps are linearly interpolated over time; leading and trailing
    gaps take the nearest reported value. A field never reported in the run
    falls back to FIELD_FALLBACKS.
    """
    times = np.array([o.timestamp.timestamp() for o in run], dtype=float)
    columns = []
    for name in MULTIVARIATE_FIELDS:
        raw = np.array(
            [np.nan if getattr(o, name) is None else getattr(o, name) for o in run], dtype=float
        )
        known = ~np.isnan(raw)
        if known.all():
            columns.append(raw)
        elif known.any():
            columns.append(np.interp(times, times[known], raw[known]))
        else:
            columns.append(np.full(len(run), FIELD_FALLBACKS.get(name, 0.0)))
    return np.column_stack(columns)


def build_feature_windows(history: Sequence[Observation]) -> FeatureWindows:
    """Build the temperature and multivariate windows from contiguous history.

    Raises InsufficientHistory when fewer than 24 contiguous hours are available.
    With 24..35 hours the multivariate window is front-padded by repeating the
    earliest row.
    """
    run = latest_contiguous_run(history)
    if len(run) < MIN_HISTORY_HOURS:
        raise InsufficientHistory(len(run), MIN_HISTORY_HOURS)

    matrix = fill_gaps(run)
    temperature = matrix[-TEMPERATURE_WINDOW:, MULTIVARIATE_FIELDS.index("temperature")].copy()
    rows = matrix[-MULTIVARIATE_WINDOW:]
    if len(rows) < MULTIVARIATE_WINDOW:
        padding = np.repeat(rows[:1], MULTIVARIATE_WINDOW - len(rows), axis=0)
        rows = np.vstack([padding, rows])
    return FeatureWindows(
        temperature=temperature,
        multivariate=rows.reshape(-1),
        history=run,
        matrix=matrix,
    )
