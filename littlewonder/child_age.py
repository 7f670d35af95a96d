from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union

MONTHS_PER_YEAR = 12
EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Optional[Union[str, datetime]]) -> datetime:
    """Parse a stored ISO timestamp as an aware UTC datetime; missing or malformed sorts first."""

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value:
        return EPOCH
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return EPOCH
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _parse_date(value: Union[str, date, datetime]) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if "T" in text:
        return _parse_date(datetime.fromisoformat(text))
    return date.fromisoformat(text[:10])


def age_in_months(birthdate: Union[str, date, datetime], today: Optional[date] = None) -> int:
    """Whole calendar months between birthdate and today (UTC), never negative."""

    birth = _parse_date(birthdate)
    current = today or datetime.now(timezone.utc).date()
    months = (current.year - birth.year) * MONTHS_PER_YEAR + (current.month - birth.month)
    if current.day < birth.day:
        months -= 1
    return max(months, 0)


def format_age_label(age_months: int, language: str = "es") -> str:
    if language == "en":
        month_word, months_word, year_word, years_word = "month", "months", "year", "years"
    else:
        month_word, months_word, year_word, years_word = "mes", "meses", "año", "años"

    if age_months < MONTHS_PER_YEAR:
        return f"{age_months} {month_word if age_months == 1 else months_word}"

    years = age_months // MONTHS_PER_YEAR
    months = age_months % MONTHS_PER_YEAR
    year_label = f"1 {year_word}" if years == 1 else f"{years} {years_word}"
    if months == 0:
        return year_label
    month_label = f"1 {month_word}" if months == 1 else f"{months} {months_word}"
    return f"{year_label} {month_label}"
