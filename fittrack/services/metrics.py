"""Which set field carries the measurement for each metric type, and how volume accumulates."""
from dataclasses import dataclass
from typing import Callable

from fittrack.models import MetricType, WorkoutSet

# Exactly one field of a WorkoutSet is the measurement for a given metric type
METRIC_FIELDS: dict[MetricType, str] = {
    MetricType.COUNT: "reps",
    MetricType.WEIGHT: "weight",
    MetricType.DURATION: "duration_sec",
    MetricType.DISTANCE: "distance_meters",
}


@dataclass(frozen=True)
class Measurement:
    metric_type: MetricType
    value: float


def measure(metric_type: MetricType, workout_set: WorkoutSet) -> Measurement | None:
    """The set's reading for ``metric_type``, or None when that field was not logged."""
    value = getattr(workout_set, METRIC_FIELDS[MetricType(metric_type)])
    if value is None:
        return None
    return Measurement(metric_type=MetricType(metric_type), value=value)


def _weight_volume(workout_set: WorkoutSet) -> float:
    if workout_set.weight is None:
        return 0
    if workout_set.reps is None:
        return workout_set.weight
    return workout_set.weight * workout_set.reps


def _field_volume(name: str) -> Callable[[WorkoutSet], float]:
    def volume(workout_set: WorkoutSet) -> float:
        return getattr(workout_set, name) or 0
    return volume


VOLUME_RULES: dict[MetricType, Callable[[WorkoutSet], float]] = {
    MetricType.COUNT: _field_volume("reps"),
    MetricType.WEIGHT: _weight_volume,
    MetricType.DURATION: _field_volume("duration_sec"),
    MetricType.DISTANCE: _field_volume("distance_meters"),
}


def set_volume(metric_type: MetricType, workout_set: WorkoutSet) -> float:
    """Count sums reps, weight sums weight x reps (weight alone without reps), duration and distance sum their field."""
    return VOLUME_RULES[MetricType(metric_type)](workout_set)
