"""RPE chart: (reps, RPE) to a fraction of the one-rep max."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_CHART_REPS = 1
MAX_CHART_REPS = 12
VALID_RPE_VALUES = (7.0, 7.5, 8.0, 8.5, 9.0, 9.5, 10.0)

# Rows by RPE, columns reps 1..12. The half-point rows average their neighbours.
_DEFAULT_ROWS: dict[float, tuple[float, ...]] = {
    7.0: (0.88, 0.82, 0.80, 0.74, 0.74, 0.68, 0.66, 0.64, 0.62, 0.60, 0.58, 0.56),
    7.5: (0.895, 0.85, 0.81, 0.77, 0.755, 0.695, 0.67, 0.65, 0.63, 0.61, 0.59, 0.57),
    8.0: (0.91, 0.88, 0.82, 0.80, 0.77, 0.71, 0.68, 0.66, 0.64, 0.62, 0.60, 0.58),
    8.5: (0.93, 0.895, 0.855, 0.81, 0.785, 0.725, 0.695, 0.67, 0.65, 0.63, 0.61, 0.59),
    9.0: (0.95, 0.91, 0.89, 0.82, 0.80, 0.74, 0.71, 0.68, 0.66, 0.64, 0.62, 0.60),
    9.5: (0.975, 0.93, 0.905, 0.85, 0.81, 0.77, 0.725, 0.695, 0.67, 0.65, 0.63, 0.61),
    10.0: (1.00, 0.95, 0.92, 0.88, 0.82, 0.80, 0.74, 0.71, 0.68, 0.66, 0.64, 0.62),
}


def validate_rpe(value: float) -> float:
    if value not in VALID_RPE_VALUES:
        raise ValueError(f"RPE must be one of {', '.join(str(v) for v in VALID_RPE_VALUES)}, got {value}")
    return value


class RpeChartEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    target_reps: int = Field(ge=MIN_CHART_REPS, le=MAX_CHART_REPS)
    target_rpe: float
    percentage: float = Field(ge=0, le=1)

    @field_validator("target_rpe")
    @classmethod
    def check_rpe(cls, value: float) -> float:
        return validate_rpe(value)


class RpeChart:
    def __init__(self, percentages: Mapping[tuple[int, float], float]):
        self._percentages = dict(percentages)

    @classmethod
    def from_entries(cls, entries: Sequence[RpeChartEntry]) -> "RpeChart":
        if not entries:
            raise ValueError("RPE chart needs at least one entry")
        percentages: dict[tuple[int, float], float] = {}
        for entry in entries:
            key = (entry.target_reps, entry.target_rpe)
            if key in percentages:
                raise ValueError(f"Duplicate RPE chart entry for {entry.target_reps} reps at RPE {entry.target_rpe}")
            percentages[key] = entry.percentage
        return cls(percentages)

    def percentage(self, reps: int, rpe: float) -> float | None:
        return self._percentages.get((reps, rpe))

    def __len__(self) -> int:
        return len(self._percentages)


DEFAULT_RPE_CHART = RpeChart(
    {
        (reps, rpe): fraction
        for rpe, row in _DEFAULT_ROWS.items()
        for reps, fraction in enumerate(row, start=MIN_CHART_REPS)
    }
)
