from datetime import datetime

MS_IN_SECOND = 1000
MS_IN_MINUTE = 60 * MS_IN_SECOND
MS_IN_HOUR = 60 * MS_IN_MINUTE
MS_IN_DAY = 24 * MS_IN_HOUR


def next_christmas(reference: datetime) -> datetime:
    """Christmas Day midnight still being counted down to (or celebrated) at ``reference``."""
    year = reference.year
    christmas_this_year = reference.replace(year=year, month=12, day=25, hour=0, minute=0, second=0, microsecond=0)
    day_after = christmas_this_year.replace(day=26)
    if reference >= day_after:
        return christmas_this_year.replace(year=year + 1)
    return christmas_this_year


def time_left(target: datetime, now: datetime) -> dict:
    difference_ms = int((target - now).total_seconds() * MS_IN_SECOND)
    clamped = max(difference_ms, 0)
    return {
        'totalMs': difference_ms,
        'days': clamped // MS_IN_DAY,
        'hours': (clamped % MS_IN_DAY) // MS_IN_HOUR,
        'minutes': (clamped % MS_IN_HOUR) // MS_IN_MINUTE,
        'seconds': (clamped % MS_IN_MINUTE) // MS_IN_SECOND,
    }


def default_message(days: int) -> str:
    return f"Хо хо хо! Остават {days} дни до Коледа!"


def build_countdown(now: datetime) -> dict:
    target = next_christmas(now)
    remaining = time_left(target, now)
    return {
        'target': target.isoformat(),
        'timeLeft': remaining,
        'isChristmas': remaining['totalMs'] <= 0,
        'defaultMessage': default_message(remaining['days']),
    }
