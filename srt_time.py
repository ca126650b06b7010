"""
SRT timestamp handling
Parses, formats and shifts HH:MM:SS,mmm time-of-day values
"""

import re
from dataclasses import dataclass


MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

TIMESTAMP_RE = re.compile(r'([0-9]{2}):([0-9]{2}):([0-9]{2}),([0-9]{3})')
# Same shape, but with a colon before the milliseconds
COLON_MS_RE = re.compile(r'[0-9]{2}:[0-9]{2}:[0-9]{2}:[0-9]{3}')


class ParseError(ValueError):
    """Raised when a timestamp substring is not a valid HH:MM:SS,mmm value"""

    def __init__(self, text: str, cause: str):
        self.text = text
        self.cause = cause
        super().__init__(f"Invalid timestamp '{text}': {cause}")


@dataclass(frozen=True)
class TimeOfDay:
    """A clock time with millisecond precision. Not a duration."""
    hours: int
    minutes: int
    seconds: int
    milliseconds: int

    def __post_init__(self):
        for name, upper in (('hours', 23), ('minutes', 59), ('seconds', 59), ('milliseconds', 999)):
            value = getattr(self, name)
            if not 0 <= value <= upper:
                raise ValueError(f"{name}={value} not in [0, {upper}]")

    def to_milliseconds(self) -> int:
        """Milliseconds elapsed since midnight"""
        return (self.hours * MS_PER_HOUR + self.minutes * MS_PER_MINUTE
                + self.seconds * MS_PER_SECOND + self.milliseconds)

    @classmethod
    def from_milliseconds(cls, total_ms: int) -> 'TimeOfDay':
        """Build a time from milliseconds since midnight, wrapping around 24h"""
        total_ms %= MS_PER_DAY
        hours, total_ms = divmod(total_ms, MS_PER_HOUR)
        minutes, total_ms = divmod(total_ms, MS_PER_MINUTE)
        seconds, milliseconds = divmod(total_ms, MS_PER_SECOND)
        return cls(hours, minutes, seconds, milliseconds)


class SRTFormatter:
    """Handles SRT timestamp parsing, formatting and shifting"""

    @staticmethod
    def parse_time(time_str: str) -> TimeOfDay:
        """Parse SRT time format (HH:MM:SS,mmm) to a TimeOfDay"""
        match = TIMESTAMP_RE.fullmatch(time_str)
        if match is None:
            if COLON_MS_RE.fullmatch(time_str):
                raise ParseError(time_str, "expected ',' before milliseconds, found ':'")
            raise ParseError(time_str, "expected format HH:MM:SS,mmm")

        hours, minutes, seconds, milliseconds = (int(group) for group in match.groups())
        if hours > 23:
            raise ParseError(time_str, f"hours {hours:02d} out of range (00-23)")
        if minutes > 59:
            raise ParseError(time_str, f"minutes {minutes:02d} out of range (00-59)")
        if seconds > 59:
            raise ParseError(time_str, f"seconds {seconds:02d} out of range (00-59)")

        return TimeOfDay(hours, minutes, seconds, milliseconds)

    @staticmethod
    def format_time(time: TimeOfDay) -> str:
        """Convert a TimeOfDay to SRT time format (HH:MM:SS,mmm)"""
        return f"{time.hours:02d}:{time.minutes:02d}:{time.seconds:02d},{time.milliseconds:03d}"

    @staticmethod
    def apply_offset(time: TimeOfDay, offset_ms: int) -> TimeOfDay:
        """Shift a time by offset_ms, wrapping within the 24-hour clock"""
        return TimeOfDay.from_milliseconds(time.to_milliseconds() + offset_ms)
