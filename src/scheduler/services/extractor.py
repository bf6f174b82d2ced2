"""Rule-based appointment field extraction.

Turns a free-text sentence such as
"John Doe 7205551212 wants estimate Tuesday at 3pm" into a name, a
10-digit phone number, a target date/time and a details remainder.

Extraction is ablative: name, phone and date/time are matched in that
order, and each matched substring is removed from the working buffer
before the next step runs. Whatever is left becomes the details.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo

import pytz

UNKNOWN_NAME = "Unknown"
NO_PHONE = "No phone"
NO_DETAILS = "No details provided"

DEFAULT_HOUR = 9

NAME_PATTERN = re.compile(r"^[A-Z][a-z]+(?: [A-Z][a-z]+)*")

PHONE_PATTERNS = [
    re.compile(r"\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}"),
    re.compile(r"\d{10}"),
]

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

WEEKDAY_PATTERN = re.compile(
    r"\b(next\s+)?(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
    re.IGNORECASE,
)
NUMERIC_DATE_PATTERN = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b")
TIME_12H_PATTERN = re.compile(
    r"(?:\bat\s+)?\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b",
    re.IGNORECASE,
)
TIME_24H_PATTERN = re.compile(r"(?:\bat\s+)?\b(\d{1,2}):(\d{2})\b", re.IGNORECASE)


@dataclass
class ParsedAppointment:
    """Fully populated extraction result. Sentinels stand in for missing fields."""

    name: str
    phone: str
    datetime: str
    details: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class PhoneMatch:
    raw: str
    formatted: str


@dataclass
class DateTimeMatch:
    """Date/time extraction result.

    ``raw`` is the accumulated matched text (date text, then time text).
    ``spans`` holds every substring a stage matched, in original casing,
    including date spans that a later stage overwrote.
    """

    raw: str
    datetime: str
    spans: list[str] = field(default_factory=list)


def resolve_timezone(timezone: str | tzinfo | None = None) -> tzinfo:
    if timezone is None:
        from scheduler.config import settings

        timezone = settings.user_timezone
    if isinstance(timezone, str):
        return pytz.timezone(timezone)
    return timezone


def localize(value: datetime, tz: tzinfo) -> datetime:
    """Attach ``tz`` to a naive datetime or convert an aware one into it."""
    if value.tzinfo is not None:
        return value.astimezone(tz)
    if hasattr(tz, "localize"):
        return tz.localize(value)
    return value.replace(tzinfo=tz)


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def format_phone(digits: str) -> str:
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"


def extract_name(text: str) -> str | None:
    """Return the run of capitalized words at the very start of ``text``.

    Names are assumed to come first. A sentence that opens with any other
    capitalized word ("Tuesday works for Bob") yields that word instead.
    """
    match = NAME_PATTERN.match(text)
    return match.group(0) if match else None


def extract_phone(text: str) -> PhoneMatch | None:
    for pattern in PHONE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        digits = re.sub(r"\D", "", match.group(0))
        if len(digits) == 10:
            return PhoneMatch(raw=match.group(0), formatted=format_phone(digits))
    return None


def _calendar_date(year: int, month: int, day: int) -> date:
    """Build a date letting month and day overflow into neighbouring ones (2/30 -> 3/2)."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return date(year, month, 1) + timedelta(days=day - 1)


def _compose(day: date, hours: int, minutes: int, tz: tzinfo | None) -> datetime:
    # Overflowing 12-hour values (e.g. "13pm") roll into the next day.
    naive = datetime.combine(day, time()) + timedelta(hours=hours, minutes=minutes)
    return localize(naive, tz) if tz else naive


def extract_datetime(
    text: str, now: datetime, timezone: tzinfo | None = None
) -> DateTimeMatch | None:
    """Resolve relative and absolute date/time cues in ``text``.

    Stages run in a fixed order and are independent: "tomorrow", then a
    weekday name, then an M/D[/Y] date. Each one that matches overwrites
    the working date, so the last matching stage wins. A 12-hour time
    (or, failing that, a valid 24-hour time) sets the clock, otherwise
    the time defaults to 09:00. Returns None when no stage matched.

    A numeric date that cannot be represented, either on its own or once
    the time and timezone are applied, contributes nothing.
    """
    lower_text = text.lower()
    working_date = now.date()
    clock: tuple[int, int] | None = None
    date_text = ""
    time_text = ""
    spans: list[str] = []

    index = lower_text.find("tomorrow")
    if index != -1:
        working_date = now.date() + timedelta(days=1)
        date_text = "tomorrow"
        spans.append(text[index : index + len("tomorrow")])

    weekday_match = WEEKDAY_PATTERN.search(text)
    if weekday_match:
        target = WEEKDAYS.index(weekday_match.group(2).lower())
        days_ahead = target - now.weekday()
        if days_ahead <= 0 or weekday_match.group(1):
            days_ahead += 7
        working_date = now.date() + timedelta(days=days_ahead)
        date_text = weekday_match.group(0)
        spans.append(weekday_match.group(0))

    numeric_date: tuple[date, str] | None = None
    date_match = NUMERIC_DATE_PATTERN.search(text)
    if date_match:
        month, day, year_text = date_match.groups()
        if year_text is None:
            year = now.year
        elif len(year_text) == 2:
            year = 2000 + int(year_text)
        else:
            year = int(year_text)
        try:
            numeric_date = (_calendar_date(year, int(month), int(day)), date_match.group(0))
        except (ValueError, OverflowError):
            pass

    time_match = TIME_12H_PATTERN.search(text)
    if time_match:
        hours = int(time_match.group(1))
        minutes = int(time_match.group(2) or 0)
        meridiem = time_match.group(3).lower()
        if meridiem == "pm" and hours != 12:
            hours += 12
        if meridiem == "am" and hours == 12:
            hours = 0
        clock = (hours, minutes)
        time_text = time_match.group(0)
    else:
        time_match = TIME_24H_PATTERN.search(text)
        if time_match:
            hours, minutes = int(time_match.group(1)), int(time_match.group(2))
            if 0 <= hours < 24 and 0 <= minutes < 60:
                clock = (hours, minutes)
                time_text = time_match.group(0)

    hours, minutes = clock if clock else (DEFAULT_HOUR, 0)
    tz = timezone or now.tzinfo

    resolved: datetime | None = None
    if numeric_date is not None:
        try:
            resolved = _compose(numeric_date[0], hours, minutes, tz)
        except OverflowError:
            pass
        else:
            date_text = numeric_date[1]
            spans.append(numeric_date[1])
    if time_text:
        spans.append(time_text)

    if not spans:
        return None

    if resolved is None:
        resolved = _compose(working_date, hours, minutes, tz)

    raw = f"{date_text} {time_text}".strip()
    return DateTimeMatch(raw=raw, datetime=format_timestamp(resolved), spans=spans)


StepResult = tuple[str, list[str]]


class FieldExtractor:
    """Ordered name -> phone -> date/time pipeline over a shrinking buffer."""

    def __init__(
        self,
        timezone: str | tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.timezone = resolve_timezone(timezone)
        self._clock = clock

    def now(self) -> datetime:
        if self._clock is not None:
            return localize(self._clock(), self.timezone)
        return datetime.now(self.timezone)

    def extract(self, text: str, now: datetime | None = None) -> ParsedAppointment | None:
        buffer = text.strip()
        if not buffer:
            return None

        current = localize(now, self.timezone) if now is not None else self.now()
        values: dict[str, str] = {}

        for field_name, matcher in self._pipeline():
            result = matcher(buffer, current)
            if result is None:
                continue
            value, spans = result
            values[field_name] = value
            for span in spans:
                buffer = _remove_first(buffer, span)

        return ParsedAppointment(
            name=values.get("name", UNKNOWN_NAME),
            phone=values.get("phone", NO_PHONE),
            datetime=values.get("datetime", format_timestamp(current)),
            details=" ".join(buffer.split()) or NO_DETAILS,
        )

    def _pipeline(self) -> list[tuple[str, Callable[[str, datetime], StepResult | None]]]:
        return [
            ("name", self._match_name),
            ("phone", self._match_phone),
            ("datetime", self._match_datetime),
        ]

    def _match_name(self, text: str, now: datetime) -> StepResult | None:
        name = extract_name(text)
        return (name, [name]) if name else None

    def _match_phone(self, text: str, now: datetime) -> StepResult | None:
        phone = extract_phone(text)
        return (phone.formatted, [phone.raw]) if phone else None

    def _match_datetime(self, text: str, now: datetime) -> StepResult | None:
        match = extract_datetime(text, now, self.timezone)
        return (match.datetime, match.spans) if match else None


def _remove_first(buffer: str, span: str) -> str:
    if not span:
        return buffer
    return buffer.replace(span, "", 1).strip()


_extractor: FieldExtractor | None = None


def get_extractor() -> FieldExtractor:
    global _extractor
    if _extractor is None:
        _extractor = FieldExtractor()
    return _extractor


def extract(text: str, now: datetime | None = None) -> ParsedAppointment | None:
    """Extract an appointment from ``text`` with the rule-based pipeline."""
    return get_extractor().extract(text, now)
