from datetime import datetime, timezone
from typing import Optional, Union

def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns' convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_naive_utc(value: Union[datetime, str, None]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
