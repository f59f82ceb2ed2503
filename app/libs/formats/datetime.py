from datetime import datetime, timezone


def now() -> datetime:
    """UTC hiện tại, bỏ tzinfo (naive). Dùng cho toàn bộ project."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def timestamp_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def time_ago(dt: datetime | None, reference: datetime | None = None) -> str:
    if dt is None:
        return ""
    reference = reference or now()
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    seconds = int((reference - dt).total_seconds())

    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    if seconds < 2592000:
        return f"{seconds // 86400} days ago"
    if seconds < 31536000:
        return f"{seconds // 2592000} months ago"
    return f"{seconds // 31536000} years ago"
