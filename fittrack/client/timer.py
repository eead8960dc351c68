from datetime import datetime, timezone


def format_timer(seconds: int) -> str:
    """``M:SS`` below an hour, ``H:MM:SS`` from an hour up."""
    seconds = max(int(seconds), 0)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_duration(started_at: datetime, ended_at: datetime | None = None) -> str:
    end = ended_at or datetime.now(timezone.utc)
    return format_timer(int((end - started_at).total_seconds()))


def parse_timer_to_seconds(value: str) -> int:
    """Inverse of format_timer. Anything that is not ``MM:SS`` or ``HH:MM:SS`` parses as 0."""
    try:
        parts = [int(part) for part in value.split(":")]
    except ValueError:
        return 0
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    return 0
