from datetime import datetime, timedelta, timezone


def humanize_timestamp(value: datetime) -> str:
    """Return a human-readable timestamp (YYYY-MM-DD HH:MM:SS) in UTC.

    Naive datetimes are assumed to already be UTC.

    Args:
        value: datetime object to format.

    Returns:
        Human-readable UTC timestamp string.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_timedelta(duration: timedelta) -> str:
    """Render a duration using its largest whole unit, e.g. ``15 minutes`` or ``1 day``.

    Args:
        duration: Length of time to render.

    Returns:
        Singular or plural label for the largest non-zero unit.
    """
    seconds = int(duration.total_seconds())
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400

    if days > 0:
        return f"{days} day{'s' if days != 1 else ''}"
    if hours > 0:
        return f"{hours} hour{'s' if hours != 1 else ''}"
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, appending an ellipsis when shortened."""
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)] + "..."
