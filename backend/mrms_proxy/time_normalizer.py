"""
Time Normalizer

Converts the time-step description found in an ArcGIS service metadata
document into an ordered list of ISO-8601 instants, most recent first.

Upstream services describe time in several ways:
- timeInfo.timeValues: epoch milliseconds, 10-digit epoch seconds or date strings
- timeInfo.timeExtent: [start, end] range
- top-level timeExtent: [start, end] range

When none is available the current instant is returned so clients can
still request the "live" image.
"""

import math
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def format_iso(moment: datetime) -> str:
    """Format an aware datetime as UTC ISO-8601 with millisecond precision."""
    moment = moment.astimezone(timezone.utc)
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
        f".{moment.microsecond // 1000:03d}Z"
    )


def utc_now_iso() -> str:
    return format_iso(datetime.now(timezone.utc))


def from_epoch_ms(value: float) -> Optional[datetime]:
    """Epoch milliseconds to an aware datetime, None if out of range."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        return EPOCH + timedelta(milliseconds=int(value))
    except OverflowError:
        return None


def parse_date_string(value: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 date/time string.

    A trailing "Z" is accepted; values without an offset are read as UTC.
    Returns a UTC datetime, or None when the instant falls outside the
    representable range once converted to UTC.
    """
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_epoch_seconds(value: str) -> bool:
    return len(value) == 10 and value.isascii() and value.isdigit()


def parse_time_value(value: Any) -> Optional[datetime]:
    """
    Interpret a single timeValues entry.

    Numbers are epoch milliseconds, 10-digit digit strings are epoch
    seconds, other strings are parsed as dates. Anything else is None.
    """
    if _is_number(value):
        return from_epoch_ms(value)
    if isinstance(value, str):
        if _is_epoch_seconds(value):
            return from_epoch_ms(int(value) * 1000)
        return parse_date_string(value)
    return None


def _coerce_number(value: Any) -> Optional[float]:
    if _is_number(value):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _is_range(extent: Any) -> bool:
    return isinstance(extent, list) and len(extent) >= 2


def _single(moment: Optional[datetime]) -> List[str]:
    return [format_iso(moment)] if moment is not None else []


def normalize_times(document: Any, now: Optional[datetime] = None) -> List[str]:
    """
    Derive the available time-steps from a service metadata document.

    Args:
        document: Parsed JSON metadata (non-dict input is treated as empty)
        now: Fallback instant, defaults to the current time

    Returns:
        ISO-8601 strings, most recent first
    """
    if not isinstance(document, dict):
        document = {}

    time_info = document.get("timeInfo") or document.get("timeinfo")
    if not isinstance(time_info, dict):
        time_info = None

    if time_info is not None:
        values = time_info.get("timeValues")
        if isinstance(values, list) and values:
            parsed = [parse_time_value(v) for v in values]
            times = [format_iso(m) for m in parsed if m is not None]
            dropped = len(values) - len(times)
            if dropped:
                logger.debug(f"[TimeNormalizer] Dropped {dropped} unparseable time values")
            times.reverse()
            return times

        extent = time_info.get("timeExtent")
        if _is_range(extent):
            number = _coerce_number(extent[1])
            return _single(from_epoch_ms(number) if number is not None else None)

    extent = document.get("timeExtent")
    if _is_range(extent):
        end = extent[1]
        if _is_number(end):
            return _single(from_epoch_ms(end))
        if isinstance(end, str):
            return _single(parse_date_string(end))
        return []

    logger.debug("[TimeNormalizer] No time information in metadata, using current time")
    return [format_iso(now or datetime.now(timezone.utc))]
