"""Lookback window calculation for scheduled order queries."""

from datetime import datetime, timedelta, timezone

from order_service.errors import ValidationError
from order_service.schemas import TimeWindow


def compute_window(now: datetime, lookback_minutes: int) -> TimeWindow:
    """
    Compute the UTC interval ``[now - lookback_minutes, now]``.

    Args:
        now: Capture point of the current time. Naive values are taken as UTC.
        lookback_minutes: Positive window length in minutes

    Returns:
        TimeWindow with both bounds in UTC

    Raises:
        ValidationError: If lookback_minutes is not a positive integer
    """
    if (
        isinstance(lookback_minutes, bool)
        or not isinstance(lookback_minutes, int)
        or lookback_minutes <= 0
    ):
        raise ValidationError(
            f"lookback_minutes must be a positive integer, got {lookback_minutes!r}"
        )

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)

    return TimeWindow(date_from=now - timedelta(minutes=lookback_minutes), date_to=now)
