from fittrack.client.api import ApiError, FitTrackClient
from fittrack.client.coordinator import ActiveWorkoutCoordinator, NoActiveWorkout
from fittrack.client.signals import FileSignalChannel, LocalBroadcastChannel, Signal, SignalChannel
from fittrack.client.timer import format_duration, format_timer, parse_timer_to_seconds

__all__ = [
    "ActiveWorkoutCoordinator",
    "ApiError",
    "FileSignalChannel",
    "FitTrackClient",
    "LocalBroadcastChannel",
    "NoActiveWorkout",
    "Signal",
    "SignalChannel",
    "format_duration",
    "format_timer",
    "parse_timer_to_seconds",
]
