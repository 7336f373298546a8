from datetime import date, datetime, timezone
from typing import Callable, Tuple
from zoneinfo import ZoneInfo

BUSINESS_TZ = ZoneInfo("America/Sao_Paulo")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_civil(instant: datetime) -> datetime:
    """
    Converts an instant to the wall-clock time of the business, without offset.
    Naive values are taken to be in UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(BUSINESS_TZ).replace(tzinfo=None)


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """Half-open [start, end) civil range covering the given month."""
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return start, end


def civil_today(clock: Clock) -> date:
    return to_civil(clock()).date()
