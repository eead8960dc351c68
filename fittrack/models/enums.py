from enum import Enum

class MetricType(str, Enum):
    COUNT = "count"
    WEIGHT = "weight"
    DURATION = "duration"
    DISTANCE = "distance"

class ChallengeStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"

DEFAULT_UNITS = {
    MetricType.COUNT: "reps",
    MetricType.WEIGHT: "lbs",
    MetricType.DURATION: "seconds",
    MetricType.DISTANCE: "meters",
}
