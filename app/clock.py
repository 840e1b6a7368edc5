from datetime import date, datetime, timedelta


class Clock:
    """Time source for "is in the past" and "which week" decisions."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now()


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; tests move it explicitly."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime):
        self.current = current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


system_clock = SystemClock()


def get_clock() -> Clock:
    return system_clock
