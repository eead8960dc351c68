from fittrack.models.user import User
from fittrack.models.workout import Exercise, WorkoutSession, WorkoutSet
from fittrack.models.challenge import Challenge, ChallengeEntry, ChallengeParticipant
from fittrack.models.enums import ChallengeStatus, MetricType


__all__ = [
    "User",
    "Exercise",
    "WorkoutSession",
    "WorkoutSet",
    "Challenge",
    "ChallengeParticipant",
    "ChallengeEntry",
    "ChallengeStatus",
    "MetricType",
]
