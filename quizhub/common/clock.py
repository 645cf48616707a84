"""Time source used by the lifecycle, access and submission code."""
from datetime import datetime


class Clock:
    """Supplies the current local time as a naive datetime."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now().replace(microsecond=0)


system_clock = SystemClock()


def get_clock() -> Clock:
    """Clock registered on the current app (tests swap it), else the system clock."""
    from flask import current_app
    return current_app.extensions.get('quizhub_clock', system_clock)
