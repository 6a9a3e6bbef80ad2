import datetime


class CalendarTools:
    """Calendar-day helpers working on ``YYYY-MM-DD`` strings."""

    @staticmethod
    def parse(day: str) -> datetime.date:
        try:
            parsed = datetime.date.fromisoformat(day)
        except (TypeError, ValueError):
            raise ValueError(f"invalid date: {day!r}")
        if parsed.isoformat() != day:
            raise ValueError(f"invalid date: {day!r}")
        return parsed

    @staticmethod
    def fmt_date(day: datetime.date | None = None) -> str:
        return (day or datetime.date.today()).isoformat()

    @classmethod
    def days_between(cls, later: str, earlier: str) -> int:
        """Return the number of calendar days from ``earlier`` to ``later``."""
        return (cls.parse(later) - cls.parse(earlier)).days

    @classmethod
    def year_of(cls, day: str) -> int:
        return cls.parse(day).year

    @staticmethod
    def days_in_year(year: int) -> list[str]:
        start = datetime.date(year, 1, 1)
        end = datetime.date(year + 1, 1, 1)
        return [
            (start + datetime.timedelta(days=i)).isoformat()
            for i in range((end - start).days)
        ]
